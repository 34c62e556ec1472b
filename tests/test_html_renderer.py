from typing import Any, Dict

from delta_viewer.config import ViewerConfig
from delta_viewer.delta_compiler import DeltaCompiler
from delta_viewer.html_renderer import render_html
from delta_viewer.schemas import (AlignNode, CodeBlockNode, DeltaDocument, EmptyNode, FormulaNode, HeadingNode,
                                  ImageNode, ListItem, ListNode, MarkupRun, ParagraphNode, TextRun)


def make_delta(*ops: Dict[str, Any]) -> DeltaDocument:
    return DeltaDocument.model_validate({"ops": list(ops)})


def _body(html: str) -> str:
    prefix, suffix = '<div class="delta-preview">', '</div>'
    assert html.startswith(prefix) and html.endswith(suffix)
    return html[len(prefix):-len(suffix)]


def test_hello_world_preview(config: ViewerConfig) -> None:
    nodes = DeltaCompiler().compile(make_delta(
        {"insert": "Hello "},
        {"insert": "World", "attributes": {"bold": True}},
        {"insert": "!\n"},
    ))
    assert render_html(nodes, config) == '<div class="delta-preview"><p>Hello <strong>World</strong>!<br></p></div>'


def test_marks_nest_innermost_first(config: ViewerConfig) -> None:
    node = ParagraphNode(children=[TextRun(text="x", marks=["bold", "italic", "underline", "strike", "code"])])
    assert _body(render_html([node], config)) == "<p><code><s><u><em><strong>x</strong></em></u></s></code></p>"


def test_link_attributes(config: ViewerConfig) -> None:
    node = ParagraphNode(children=[TextRun(text="Quill", marks=["bold", "link"], link="https://quilljs.com")])
    assert _body(render_html([node], config)) == (
        '<p><a href="https://quilljs.com" target="_blank" rel="noopener noreferrer"><strong>Quill</strong></a></p>'
    )


def test_text_is_escaped(config: ViewerConfig) -> None:
    node = ParagraphNode(children=[TextRun(text="<script>a & b</script>")])
    assert _body(render_html([node], config)) == "<p>&lt;script&gt;a &amp; b&lt;/script&gt;</p>"


def test_block_elements(config: ViewerConfig) -> None:
    nodes = [
        HeadingNode(level=2, children=[TextRun(text="Title")]),
        CodeBlockNode(children=[TextRun(text="x = 1")]),
        ListNode(kind="bullet", items=[ListItem(children=[TextRun(text="a")]),
                                       ListItem(children=[TextRun(text="b")])]),
        ListNode(kind="ordered", items=[ListItem(children=[TextRun(text="c")])]),
    ]
    assert _body(render_html(nodes, config)) == (
        "<h2>Title</h2><pre><code>x = 1</code></pre><ul><li>a</li><li>b</li></ul><ol><li>c</li></ol>"
    )


def test_blockquote_and_alignment(config: ViewerConfig) -> None:
    nodes = DeltaCompiler().compile(make_delta(
        {"insert": "Quote", "attributes": {"blockquote": True, "align": "center"}},
    ))
    assert _body(render_html(nodes, config)) == (
        '<div class="ql-align-center" style="text-align: center;"><blockquote>Quote</blockquote></div>'
    )


def test_image_uses_configured_size_and_alt() -> None:
    config = ViewerConfig.model_validate({"image": {"width": 640, "height": 480, "alt": "Picture"}})
    assert _body(render_html([ImageNode(src="a.png")], config)) == (
        '<img src="a.png" alt="Picture" width="640" height="480">'
    )


def test_default_image_attributes(config: ViewerConfig) -> None:
    assert _body(render_html([ImageNode(src="a.png")], config)) == (
        '<img src="a.png" alt="Embedded content" width="300" height="200">'
    )


def test_formula_markup_is_embedded_as_elements(config: ViewerConfig) -> None:
    nodes = DeltaCompiler().compile(make_delta({"insert": {"formula": "x^2"}, "attributes": {"italic": True}}))
    html = _body(render_html(nodes, config))
    assert html.startswith('<div class="ql-formula"><em><span class="math math-inline"><math display="inline">')
    assert "<msup><mi>x</mi><mn>2</mn></msup>" in html
    assert "&lt;" not in html


def test_sized_formula_node(config: ViewerConfig) -> None:
    node = FormulaNode(markup='<span style="font-size: 20px !important;"><b>f</b></span>', size=20, marks=["bold"])
    assert _body(render_html([node], config)) == (
        '<div class="ql-formula"><strong><span style="font-size: 20px !important;"><b>f</b></span></strong></div>'
    )


def test_non_xml_markup_falls_back_to_html_parsing(config: ViewerConfig) -> None:
    node = ParagraphNode(children=[TextRun(text="a "), MarkupRun(markup="x<br>y"), TextRun(text=" b")])
    assert _body(render_html([node], config)) == "<p>a <span>x<br>y</span> b</p>"


def test_aligned_paragraph(config: ViewerConfig) -> None:
    node = AlignNode(alignment="right", child=ParagraphNode(children=[TextRun(text="r")]))
    assert _body(render_html([node], config)) == (
        '<div class="ql-align-right" style="text-align: right;"><p>r</p></div>'
    )


def test_empty_sentinel(config: ViewerConfig) -> None:
    assert _body(render_html([EmptyNode()], config)) == (
        '<div class="delta-empty"><p>No content to display</p>'
        '<p class="delta-empty-hint">Paste Delta JSON in the left panel to see the preview</p></div>'
    )


def test_empty_document_renders_empty_container(config: ViewerConfig) -> None:
    assert render_html([], config) == '<div class="delta-preview"></div>'


def test_control_characters_are_dropped(config: ViewerConfig) -> None:
    nodes = DeltaCompiler().compile(make_delta(
        {"insert": "a\u0001b\u000b\n"},
        {"insert": "x", "attributes": {"link": "https://x.org/\u0002p"}},
        {"insert": {"image": "a\u0000.png"}},
    ))
    assert _body(render_html(nodes, config)) == (
        '<p>ab<br><a href="https://x.org/p" target="_blank" rel="noopener noreferrer">x</a></p>'
        '<img src="a.png" alt="Embedded content" width="300" height="200">'
    )


def test_control_characters_in_markup_are_dropped(config: ViewerConfig) -> None:
    node = ParagraphNode(children=[MarkupRun(markup="<b>a\u0007</b>")])
    assert _body(render_html([node], config)) == "<p><b>a</b></p>"
