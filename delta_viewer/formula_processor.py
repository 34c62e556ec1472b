# delta_viewer/formula_processor.py
import html
import re
from typing import Callable, Iterator, List, Literal, Optional, Tuple

from pydantic import BaseModel

from .config import get_config
from .errors import FormulaRenderError
from .latex_converter import latex_to_mathml
from .logger import get_logger

logger = get_logger(__name__)

# (formula source, display mode) -> markup. May raise on malformed input.
Typesetter = Callable[[str, bool], str]

BLOCK_MATH_PATTERN = re.compile(r"\$\$([\s\S]*?)\$\$")
INLINE_MATH_PATTERN = re.compile(r"\$([^$\n]+?)\$")


class FormulaSpan(BaseModel):
    type: Literal['inline', 'block']
    formula: str
    match: str


def render_error_fragment(message: str, error_color: Optional[str] = None) -> str:
    color = error_color or get_config().formula.error_color
    return (f'<span style="color: {html.escape(color)}; font-family: monospace;">'
            f'Error: {html.escape(message, quote=False)}</span>')


def render_math(formula: str, display_mode: bool = False, typesetter: Optional[Typesetter] = None,
                throw_on_error: bool = False, error_color: Optional[str] = None) -> str:
    """
    Renders one formula, degrading to a visible error fragment on failure.

    Args:
        formula (str): LaTeX source without delimiters.
        display_mode (bool): Block layout instead of inline layout.
        typesetter (Optional[Typesetter]): Formula-to-markup function. Defaults to latex_to_mathml.
        throw_on_error (bool): Raise FormulaRenderError instead of returning the error fragment.
        error_color (Optional[str]): CSS color of the error fragment. Defaults to the configured one.

    Returns:
        str: The rendered markup, or the error fragment.
    """
    typeset = typesetter or latex_to_mathml
    try:
        return typeset(formula.strip(), display_mode)
    except Exception as e:
        error = FormulaRenderError(formula, str(e) or type(e).__name__)
        logger.warning("[FORMULA] Rendering error for %r: %s", formula, error.detail)
        if throw_on_error:
            raise error from e
        return render_error_fragment(error.detail, error_color)


def _split(text: str, pattern: re.Pattern, kind: str) -> Iterator[Tuple[str, str]]:
    pos = 0
    for match in pattern.finditer(text):
        if match.start() > pos:
            yield 'text', text[pos:match.start()]
        yield kind, match.group(1)
        pos = match.end()
    if pos < len(text):
        yield 'text', text[pos:]


def _split_segments(text: str) -> List[Tuple[str, str]]:
    """Block spans are cut out first, so the inline pattern only ever sees literal text."""
    segments = []
    for kind, chunk in _split(text, BLOCK_MATH_PATTERN, 'block'):
        if kind == 'text':
            segments.extend(_split(chunk, INLINE_MATH_PATTERN, 'inline'))
        else:
            segments.append((kind, chunk))
    return segments


def process_text_with_formulas(text: str, typesetter: Optional[Typesetter] = None) -> str:
    """
    Replaces every $$...$$ (display) and $...$ (inline) span of a text with rendered markup.

    Literal text between formulas is HTML-escaped so the result is a single markup string.
    A formula that fails to render becomes an inline error fragment; the rest of the text
    is processed normally.
    """
    if not text or not isinstance(text, str):
        return text
    parts = []
    for kind, chunk in _split_segments(text):
        if kind == 'text':
            parts.append(html.escape(chunk, quote=False))
        else:
            parts.append(render_math(chunk, display_mode=(kind == 'block'), typesetter=typesetter))
    return "".join(parts)


def contains_formulas(text: str) -> bool:
    if not text or not isinstance(text, str):
        return False
    return bool(INLINE_MATH_PATTERN.search(text) or BLOCK_MATH_PATTERN.search(text))


def extract_formulas(text: str) -> List[FormulaSpan]:
    """Lists block formulas first, then the inline formulas of the text with the blocks removed."""
    if not text or not isinstance(text, str):
        return []
    formulas = [FormulaSpan(type='block', formula=m.group(1).strip(), match=m.group(0))
                for m in BLOCK_MATH_PATTERN.finditer(text)]
    text_without_blocks = BLOCK_MATH_PATTERN.sub('', text)
    formulas.extend(FormulaSpan(type='inline', formula=m.group(1).strip(), match=m.group(0))
                    for m in INLINE_MATH_PATTERN.finditer(text_without_blocks))
    return formulas


def render_formula(formula: str, font_size: Optional[float] = None,
                   typesetter: Optional[Typesetter] = None) -> str:
    """Renders an embedded formula inline, scoped to a font size when one is given."""
    markup = render_math(formula, display_mode=False, typesetter=typesetter)
    if font_size:
        return f'<span style="font-size: {font_size:g}px !important;">{markup}</span>'
    return markup
