# delta_viewer/html_renderer.py
import re
from typing import List, Optional, Sequence, Union

import lxml.html
from lxml import etree

from .config import ViewerConfig, get_config
from .schemas import (AlignNode, BlockquoteNode, CodeBlockNode, EmptyNode, FormulaNode, HeadingNode, ImageNode,
                      LineBreak, ListNode, MarkupRun, ParagraphNode, RenderNode, TextRun)

MARK_TAGS = {'bold': 'strong', 'italic': 'em', 'underline': 'u', 'strike': 's', 'code': 'code', 'link': 'a'}
LIST_TAGS = {'bullet': 'ul', 'ordered': 'ol'}
# Characters lxml refuses in text and attribute values.
XML_INCOMPATIBLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def _xml_safe(text: Optional[str]) -> str:
    return XML_INCOMPATIBLE_RE.sub('', text or '')


def _append(parent: etree._Element, node: Union[str, etree._Element]) -> None:
    """Appends text or an element, respecting lxml's text/tail model."""
    if not isinstance(node, str):
        parent.append(node)
        return
    node = _xml_safe(node)
    if not node:
        return
    if len(parent):
        parent[-1].tail = (parent[-1].tail or '') + node
    else:
        parent.text = (parent.text or '') + node


def _parse_markup(markup: str) -> etree._Element:
    """Parses pre-rendered markup into one element, trying XML first so MathML empty elements survive."""
    markup = _xml_safe(markup)
    try:
        wrapper = etree.fromstring(f"<span>{markup}</span>")
    except etree.XMLSyntaxError:
        wrapper = lxml.html.fragment_fromstring(markup, create_parent='span')
    if len(wrapper) == 1 and not wrapper.text and not wrapper[0].tail:
        return wrapper[0]
    return wrapper


def _wrap_marks(content: Union[str, etree._Element], marks: Sequence[str],
                link: Optional[str] = None) -> Union[str, etree._Element]:
    node = content
    for mark in marks:
        wrapper = etree.Element(MARK_TAGS[mark])
        if mark == 'link':
            wrapper.set('href', _xml_safe(link))
            wrapper.set('target', '_blank')
            wrapper.set('rel', 'noopener noreferrer')
        _append(wrapper, node)
        node = wrapper
    return node


def _render_inline(parent: etree._Element, children: Sequence) -> etree._Element:
    for child in children:
        if isinstance(child, LineBreak):
            etree.SubElement(parent, 'br')
        elif isinstance(child, TextRun):
            _append(parent, _wrap_marks(child.text, child.marks, child.link))
        elif isinstance(child, MarkupRun):
            _append(parent, _wrap_marks(_parse_markup(child.markup), child.marks))
    return parent


def _render_node(node: RenderNode, config: ViewerConfig) -> etree._Element:
    if isinstance(node, ParagraphNode):
        return _render_inline(etree.Element('p'), node.children)
    if isinstance(node, HeadingNode):
        return _render_inline(etree.Element(f'h{node.level}'), node.children)
    if isinstance(node, BlockquoteNode):
        return _render_inline(etree.Element('blockquote'), node.children)
    if isinstance(node, CodeBlockNode):
        pre = etree.Element('pre')
        _render_inline(etree.SubElement(pre, 'code'), node.children)
        return pre
    if isinstance(node, ListNode):
        list_el = etree.Element(LIST_TAGS[node.kind])
        for item in node.items:
            _render_inline(etree.SubElement(list_el, 'li'), item.children)
        return list_el
    if isinstance(node, ImageNode):
        return etree.Element('img', src=_xml_safe(node.src), alt=_xml_safe(config.image.alt),
                             width=str(config.image.width), height=str(config.image.height))
    if isinstance(node, FormulaNode):
        container = etree.Element('div', attrib={'class': 'ql-formula'})
        _append(container, _wrap_marks(_parse_markup(node.markup), node.marks))
        return container
    if isinstance(node, AlignNode):
        container = etree.Element('div', attrib={'class': f'ql-align-{node.alignment}',
                                                 'style': f'text-align: {node.alignment};'})
        container.append(_render_node(node.child, config))
        return container
    if isinstance(node, EmptyNode):
        container = etree.Element('div', attrib={'class': 'delta-empty'})
        etree.SubElement(container, 'p').text = node.message
        etree.SubElement(container, 'p', attrib={'class': 'delta-empty-hint'}).text = node.hint
        return container
    raise TypeError(f"Unsupported render node: {type(node).__name__}")


def render_html(nodes: List[RenderNode], config: Optional[ViewerConfig] = None) -> str:
    """
    Projects a compiled node sequence to an HTML fragment.

    Args:
        nodes (List[RenderNode]): Output of compile_delta().
        config (Optional[ViewerConfig]): Image sizing and alt text. Defaults to the process config.

    Returns:
        str: A <div class="delta-preview"> element serialized as HTML.
    """
    config = config or get_config()
    root = etree.Element('div', attrib={'class': 'delta-preview'})
    for node in nodes:
        root.append(_render_node(node, config))
    return etree.tostring(root, method='html', encoding='unicode')
