# delta_viewer/schemas.py

from typing import Any, Dict, List, Literal, Optional, Union, Annotated
from pydantic import BaseModel, ConfigDict, Field, field_validator

Alignment = Literal['left', 'center', 'right', 'justify']
ListKind = Literal['bullet', 'ordered']
InlineMark = Literal['bold', 'italic', 'underline', 'strike', 'code', 'link']

ALIGNMENTS = ('left', 'center', 'right', 'justify')
LIST_KINDS = ('bullet', 'ordered')
HEADER_LEVELS = (1, 2, 3)


# ==============================================================================
# SECTION 1: DELTA DOCUMENT SCHEMA
# ==============================================================================
class DeltaOperation(BaseModel):
    """One insert/delete/retain entry. Shape rules are enforced by delta_validation."""
    model_config = ConfigDict(extra='allow')

    insert: Optional[Union[str, Dict[str, Any]]] = None
    delete: Optional[Union[int, float]] = None
    retain: Optional[Union[int, float]] = None
    # Left untyped: a mistyped attribute bag is not a validation error, it just renders plain.
    attributes: Optional[Any] = None


class DeltaDocument(BaseModel):
    model_config = ConfigDict(extra='allow')

    ops: List[DeltaOperation] = Field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class OpAttributes(BaseModel):
    """
    Typed view over an operation's attribute bag.

    Unknown keys are ignored and values of the wrong type degrade to "absent",
    so the compiler can rely on well-typed fields.
    """
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    code: bool = False
    link: Optional[str] = None
    formula: bool = False
    header: Optional[Literal[1, 2, 3]] = None
    blockquote: bool = False
    code_block: bool = Field(False, alias='code-block')
    list_kind: Optional[ListKind] = Field(None, alias='list')
    align: Optional[Alignment] = None
    size: Optional[float] = None

    @field_validator('bold', 'italic', 'underline', 'strike', 'code', 'formula', 'blockquote', 'code_block',
                     mode='before')
    @classmethod
    def _truthy(cls, value: Any) -> bool:
        return bool(value)

    @field_validator('link', mode='before')
    @classmethod
    def _link(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value else None

    @field_validator('header', mode='before')
    @classmethod
    def _header(cls, value: Any) -> Optional[int]:
        if _is_number(value) and value in HEADER_LEVELS:
            return int(value)
        return None

    @field_validator('list_kind', mode='before')
    @classmethod
    def _list_kind(cls, value: Any) -> Optional[str]:
        return value if value in LIST_KINDS else None

    @field_validator('align', mode='before')
    @classmethod
    def _align(cls, value: Any) -> Optional[str]:
        if not value:
            return None
        return value if value in ALIGNMENTS else 'left'

    @field_validator('size', mode='before')
    @classmethod
    def _size(cls, value: Any) -> Optional[float]:
        return value if _is_number(value) and value > 0 else None

    @classmethod
    def from_raw(cls, raw: Any) -> 'OpAttributes':
        if not isinstance(raw, dict):
            return cls()
        return cls.model_validate(raw)


# ==============================================================================
# SECTION 2: RENDER TREE SCHEMA
# ==============================================================================
class TextRun(BaseModel):
    type: Literal['text'] = 'text'
    text: str
    marks: List[InlineMark] = Field(default_factory=list)  # innermost first
    link: Optional[str] = None


class MarkupRun(BaseModel):
    """Pre-rendered formula markup, treated as opaque by every consumer."""
    type: Literal['markup'] = 'markup'
    markup: str
    marks: List[InlineMark] = Field(default_factory=list)


class LineBreak(BaseModel):
    type: Literal['line_break'] = 'line_break'


AnyInline = Annotated[Union[TextRun, MarkupRun, LineBreak], Field(discriminator='type')]


class ListItem(BaseModel):
    children: List[AnyInline] = Field(default_factory=list)


class ParagraphNode(BaseModel):
    type: Literal['paragraph'] = 'paragraph'
    children: List[AnyInline] = Field(default_factory=list)


class HeadingNode(BaseModel):
    type: Literal['heading'] = 'heading'
    level: Literal[1, 2, 3]
    children: List[AnyInline] = Field(default_factory=list)


class BlockquoteNode(BaseModel):
    type: Literal['blockquote'] = 'blockquote'
    children: List[AnyInline] = Field(default_factory=list)


class CodeBlockNode(BaseModel):
    type: Literal['code_block'] = 'code_block'
    children: List[AnyInline] = Field(default_factory=list)


class ListNode(BaseModel):
    type: Literal['list'] = 'list'
    kind: ListKind
    items: List[ListItem] = Field(default_factory=list)


class ImageNode(BaseModel):
    type: Literal['image'] = 'image'
    src: str


class FormulaNode(BaseModel):
    type: Literal['formula'] = 'formula'
    markup: str
    size: Optional[float] = None
    marks: List[InlineMark] = Field(default_factory=list)


class AlignNode(BaseModel):
    type: Literal['align'] = 'align'
    alignment: Alignment
    child: 'RenderNode'


class EmptyNode(BaseModel):
    """Sentinel emitted when there is no document at all (as opposed to an empty one)."""
    type: Literal['empty'] = 'empty'
    message: str = "No content to display"
    hint: str = "Paste Delta JSON in the left panel to see the preview"


RenderNode = Annotated[
    Union[ParagraphNode, HeadingNode, BlockquoteNode, CodeBlockNode, ListNode, ImageNode, FormulaNode, AlignNode,
          EmptyNode],
    Field(discriminator='type')
]
AlignNode.model_rebuild()


class RenderTree(BaseModel):
    """Container used to (de)serialize a compiled node sequence."""
    nodes: List[RenderNode] = Field(default_factory=list)


# ==============================================================================
# SECTION 3: STATUS SUMMARY
# ==============================================================================
class DeltaSummary(BaseModel):
    op_count: int = 0
    has_content: bool = False

    @property
    def status_text(self) -> str:
        return "✓ Delta rendered" if self.has_content else "No Delta content"

    @property
    def count_text(self) -> str:
        return f"{self.op_count} operations"
