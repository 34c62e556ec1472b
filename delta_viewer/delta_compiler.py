# delta_viewer/delta_compiler.py

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .config import ViewerConfig, get_config
from .formula_processor import Typesetter, contains_formulas, process_text_with_formulas, render_formula
from .logger import get_logger
from .schemas import (AlignNode, AnyInline, BlockquoteNode, CodeBlockNode, DeltaDocument, DeltaOperation,
                      DeltaSummary, EmptyNode, FormulaNode, HeadingNode, ImageNode, LineBreak, ListItem, ListNode,
                      MarkupRun, OpAttributes, ParagraphNode, RenderNode, TextRun)

logger = get_logger(__name__)

# Nesting order of inline marks, innermost first. Each entry wraps the result of the previous one.
INLINE_MARKS: Tuple[Tuple[str, Callable[[OpAttributes], bool]], ...] = (
    ('bold', lambda a: a.bold),
    ('italic', lambda a: a.italic),
    ('underline', lambda a: a.underline),
    ('strike', lambda a: a.strike),
    ('code', lambda a: a.code),
    ('link', lambda a: a.link is not None),
)
# Formula embeds take the text styling marks only.
EMBED_MARKS = INLINE_MARKS[:4]


def active_marks(attrs: OpAttributes, table=INLINE_MARKS) -> List[str]:
    return [mark for mark, applies in table if applies(attrs)]


# --- Compiler states ---
@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class OpenList:
    kind: str
    items: Tuple[ListItem, ...] = ()


@dataclass(frozen=True)
class OpenParagraph:
    children: Tuple[Any, ...] = ()


CompilerState = Union[Idle, OpenList, OpenParagraph]
IDLE = Idle()


def flush(state: CompilerState) -> List[RenderNode]:
    """Closes whatever run is open and returns the finished node, if any."""
    if isinstance(state, OpenList) and state.items:
        return [ListNode(kind=state.kind, items=list(state.items))]
    if isinstance(state, OpenParagraph) and state.children:
        return [ParagraphNode(children=list(state.children))]
    return []


def _wrap_block(children: List[AnyInline], attrs: OpAttributes) -> Optional[RenderNode]:
    if attrs.header is not None:
        return HeadingNode(level=attrs.header, children=children)
    if attrs.blockquote:
        return BlockquoteNode(children=children)
    if attrs.code_block:
        return CodeBlockNode(children=children)
    return None


class DeltaCompiler:
    """
    Turns a validated Delta document into a flat sequence of render nodes.

    The compiler is a single left-to-right pass. The only state carried between
    operations is the currently open list run or plain paragraph; see step().
    """

    def __init__(self, typesetter: Optional[Typesetter] = None, expand_inline_math: bool = False):
        self.typesetter = typesetter
        self.expand_inline_math = expand_inline_math

    @classmethod
    def from_config(cls, config: Optional[ViewerConfig] = None,
                    typesetter: Optional[Typesetter] = None) -> 'DeltaCompiler':
        config = config or get_config()
        return cls(typesetter=typesetter, expand_inline_math=config.formula.expand_inline_math)

    # --- inline content ---
    def _is_formula_text(self, text: str, attrs: OpAttributes) -> bool:
        return attrs.formula or (self.expand_inline_math and contains_formulas(text))

    def _render_formula_text(self, text: str) -> MarkupRun:
        if contains_formulas(text):
            markup = process_text_with_formulas(text, typesetter=self.typesetter)
        else:
            markup = render_formula(text, typesetter=self.typesetter)
        return MarkupRun(markup=markup)

    def _inline_run(self, text: str, attrs: OpAttributes) -> AnyInline:
        if self._is_formula_text(text, attrs):
            return self._render_formula_text(text)
        return TextRun(text=text, marks=active_marks(attrs), link=attrs.link)

    def _inline_content(self, text: str, attrs: OpAttributes) -> List[AnyInline]:
        """Splits on line breaks, styling each segment independently."""
        if self._is_formula_text(text, attrs):
            return [self._render_formula_text(text)]
        marks = active_marks(attrs)
        content: List[AnyInline] = []
        for i, segment in enumerate(text.split('\n')):
            if i:
                content.append(LineBreak())
            if segment:
                content.append(TextRun(text=segment, marks=list(marks), link=attrs.link))
        return content

    # --- per-operation transitions ---
    def _list_item(self, state: CompilerState, text: str,
                   attrs: OpAttributes) -> Tuple[CompilerState, List[RenderNode]]:
        emitted: List[RenderNode] = []
        if not (isinstance(state, OpenList) and state.kind == attrs.list_kind):
            emitted = flush(state)
            state = OpenList(kind=attrs.list_kind)
        item = ListItem(children=[self._inline_run(text, attrs)])
        return OpenList(kind=state.kind, items=state.items + (item,)), emitted

    def _text_block(self, state: CompilerState, text: str,
                    attrs: OpAttributes) -> Tuple[CompilerState, List[RenderNode]]:
        emitted: List[RenderNode] = []
        if isinstance(state, OpenList):
            emitted, state = flush(state), IDLE

        children = self._inline_content(text, attrs)
        block = _wrap_block(children, attrs)
        if block is None and attrs.align is None:
            # Unwrapped runs flow into the same paragraph.
            open_children = state.children if isinstance(state, OpenParagraph) else ()
            return OpenParagraph(children=open_children + tuple(children)), emitted

        emitted.extend(flush(state))
        node = block or ParagraphNode(children=children)
        if attrs.align is not None:
            node = AlignNode(alignment=attrs.align, child=node)
        return IDLE, emitted + [node]

    def _embed_node(self, embed: Dict[str, Any], attrs: OpAttributes) -> Optional[RenderNode]:
        if embed.get('image'):
            return ImageNode(src=str(embed['image']))
        if embed.get('formula'):
            markup = render_formula(str(embed['formula']), attrs.size, typesetter=self.typesetter)
            return FormulaNode(markup=markup, size=attrs.size, marks=active_marks(attrs, EMBED_MARKS))
        return None

    def step(self, state: CompilerState, op: DeltaOperation) -> Tuple[CompilerState, List[RenderNode]]:
        """
        Applies one operation.

        Args:
            state (CompilerState): The run open before this operation.
            op (DeltaOperation): The operation to consume.

        Returns:
            Tuple[CompilerState, List[RenderNode]]: The new state and the nodes completed by this step.
        """
        insert = op.insert
        if isinstance(insert, str):
            attrs = OpAttributes.from_raw(op.attributes)
            if attrs.list_kind is not None:
                return self._list_item(state, insert, attrs)
            return self._text_block(state, insert, attrs)

        if isinstance(insert, dict):
            node = self._embed_node(insert, OpAttributes.from_raw(op.attributes))
            if node is None:
                logger.debug("[COMPILE] Skipping unsupported embed: %s", sorted(insert))
                return state, []
            return IDLE, flush(state) + [node]

        # delete / retain: nothing to display.
        return state, []

    def compile(self, delta: Union[DeltaDocument, Mapping[str, Any], None]) -> List[RenderNode]:
        if delta is None:
            return [EmptyNode()]
        if not isinstance(delta, DeltaDocument):
            if not isinstance(delta.get('ops'), list):
                return [EmptyNode()]
            delta = DeltaDocument.model_validate(delta)

        state: CompilerState = IDLE
        nodes: List[RenderNode] = []
        for op in delta.ops:
            state, emitted = self.step(state, op)
            nodes.extend(emitted)
        nodes.extend(flush(state))
        logger.debug("[COMPILE] %d operations -> %d render nodes", len(delta.ops), len(nodes))
        return nodes


def compile_delta(delta: Union[DeltaDocument, Mapping[str, Any], None],
                  typesetter: Optional[Typesetter] = None,
                  config: Optional[ViewerConfig] = None) -> List[RenderNode]:
    """Compiles a document with the configured options. A missing document yields one EmptyNode."""
    return DeltaCompiler.from_config(config, typesetter=typesetter).compile(delta)


def summarize(delta: Union[DeltaDocument, Mapping[str, Any], None]) -> DeltaSummary:
    if delta is None:
        return DeltaSummary(op_count=0, has_content=False)
    ops = delta.ops if isinstance(delta, DeltaDocument) else delta.get('ops')
    return DeltaSummary(op_count=len(ops) if isinstance(ops, list) else 0, has_content=True)
