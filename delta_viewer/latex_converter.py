# delta_viewer/latex_converter.py
import re
from typing import List, Optional, Sequence

from lxml import etree

from .errors import FormulaSyntaxError

# --- 1. MathML constants ---
TEX_ANNOTATION_ENCODING = "application/x-tex"
SCRIPT_TOKENS = ('^', '_')

# --- Symbol and Function Maps ---
GREEK_LETTERS = {'\\alpha': 'α', '\\beta': 'β', '\\gamma': 'γ', '\\delta': 'δ', '\\epsilon': 'ϵ', '\\zeta': 'ζ',
                 '\\eta': 'η', '\\theta': 'θ', '\\iota': 'ι', '\\kappa': 'κ', '\\lambda': 'λ', '\\mu': 'μ', '\\nu': 'ν',
                 '\\xi': 'ξ', '\\omicron': 'ο', '\\pi': 'π', '\\rho': 'ρ', '\\sigma': 'σ', '\\tau': 'τ',
                 '\\upsilon': 'υ', '\\phi': 'ϕ', '\\chi': 'χ', '\\psi': 'ψ', '\\omega': 'ω', '\\Gamma': 'Γ',
                 '\\Delta': 'Δ', '\\Theta': 'Θ', '\\Lambda': 'Λ', '\\Xi': 'Ξ', '\\Pi': 'Π', '\\Sigma': 'Σ',
                 '\\Upsilon': 'Υ', '\\Phi': 'Φ', '\\Psi': 'Ψ', '\\Omega': 'Ω', '\\varepsilon': 'ε', '\\vartheta': 'ϑ',
                 '\\varpi': 'ϖ', '\\varrho': 'ϱ', '\\varsigma': 'ς', '\\varphi': 'φ', '\\hbar': 'ℏ', '\\ell': 'ℓ'}
OPERATORS = {'\\pm': '±', '\\mp': '∓', '\\times': '×', '\\div': '÷', '\\cdot': '⋅', '\\ast': '∗', '\\cup': '∪',
             '\\cap': '∩', '\\in': '∈', '\\notin': '∉', '\\ni': '∋', '\\subset': '⊂', '\\supset': '⊃',
             '\\subseteq': '⊆', '\\supseteq': '⊇', '\\neq': '≠', '\\ne': '≠', '\\equiv': '≡', '\\approx': '≈',
             '\\sim': '∼', '\\simeq': '≃', '\\propto': '∝', '\\le': '≤', '\\leq': '≤', '\\ge': '≥', '\\geq': '≥',
             '\\ll': '≪', '\\gg': '≫', '\\infty': '∞', '\\nabla': '∇', '\\partial': '∂', '\\forall': '∀',
             '\\exists': '∃', '\\neg': '¬', '\\land': '∧', '\\lor': '∨', '\\wedge': '∧', '\\vee': '∨',
             '\\angle': '∠', '\\prime': '′', '\\circ': '∘', '\\bullet': '∙', '\\oplus': '⊕', '\\otimes': '⊗',
             '\\perp': '⊥', '\\parallel': '∥', '\\mid': '∣', '\\setminus': '∖', '\\emptyset': '∅',
             '\\leftarrow': '←', '\\rightarrow': '→', '\\to': '→', '\\gets': '←', '\\mapsto': '↦',
             '\\uparrow': '↑', '\\downarrow': '↓', '\\leftrightarrow': '↔', '\\Leftarrow': '⇐', '\\Rightarrow': '⇒',
             '\\implies': '⟹', '\\iff': '⟺', '\\Uparrow': '⇑', '\\Downarrow': '⇓', '\\Leftrightarrow': '⇔'}
DELIMITERS = {'(': '(', ')': ')', '[': '[', ']': ']', '|': '|', '.': '', '\\{': '{', '\\}': '}', '\\|': '‖',
              '\\langle': '⟨', '\\rangle': '⟩', '\\lvert': '|', '\\rvert': '|', '\\lVert': '‖', '\\rVert': '‖',
              '\\lfloor': '⌊', '\\rfloor': '⌋', '\\lceil': '⌈', '\\rceil': '⌉', '/': '/'}
SYMBOLS = {'\\langle': '⟨', '\\rangle': '⟩', '\\{': '{', '\\}': '}', '\\|': '‖', '\\lvert': '|', '\\rvert': '|',
           '\\lfloor': '⌊', '\\rfloor': '⌋', '\\lceil': '⌈', '\\rceil': '⌉', '\\ldots': '…', '\\cdots': '⋯',
           '\\ddots': '⋱', '\\vdots': '⋮', '\\dots': '…', '\\%': '%', '\\$': '$', '\\#': '#', '\\&': '&',
           '\\_': '_'}
SPACES = {'\\quad': '1em', '\\qquad': '2em', '\\,': '0.1667em', '\\:': '0.2222em', '\\;': '0.2778em',
          '\\ ': '0.25em', '\\!': '-0.1667em', '~': '0.25em'}
KNOWN_FUNCTIONS = {'\\sin', '\\cos', '\\tan', '\\csc', '\\sec', '\\cot', '\\sinh', '\\cosh', '\\tanh', '\\coth',
                   '\\arcsin', '\\arccos', '\\arctan', '\\log', '\\ln', '\\lg', '\\exp', '\\det', '\\dim', '\\ker',
                   '\\deg', '\\gcd', '\\arg', '\\min', '\\max', '\\sup', '\\inf', '\\lim', '\\limsup', '\\liminf',
                   '\\Pr'}
LIMIT_FUNCTIONS = {'lim', 'limsup', 'liminf', 'min', 'max', 'sup', 'inf', 'det', 'gcd', 'Pr'}
NARY_OPERATORS = {'\\sum': '∑', '\\prod': '∏', '\\coprod': '∐', '\\int': '∫', '\\iint': '∬', '\\iiint': '∭',
                  '\\oint': '∮', '\\bigcup': '⋃', '\\bigcap': '⋂', '\\bigoplus': '⨁', '\\bigotimes': '⨂'}
LIMIT_OPERATORS = {'∑', '∏', '∐', '⋃', '⋂', '⨁', '⨂'}
ACCENTS = {'\\hat': '^', '\\widehat': '^', '\\vec': '→', '\\dot': '˙', '\\ddot': '¨', '\\bar': '¯',
           '\\overline': '¯', '\\tilde': '~', '\\widetilde': '~'}
FONT_VARIANTS = {'\\mathbf': 'bold', '\\mathrm': 'normal', '\\mathit': 'italic', '\\mathcal': 'script',
                 '\\mathbb': 'double-struck', '\\mathfrak': 'fraktur', '\\mathsf': 'sans-serif',
                 '\\mathtt': 'monospace', '\\boldsymbol': 'bold-italic'}
FRACTIONS = {'\\frac', '\\dfrac', '\\tfrac'}
BIG_DELIMITERS = {'\\big', '\\Big', '\\bigg', '\\Bigg', '\\bigl', '\\bigr', '\\Bigl', '\\Bigr', '\\biggl', '\\biggr'}
MATRIX_ENVIRONMENTS = {'matrix': None, 'pmatrix': ('(', ')'), 'bmatrix': ('[', ']'), 'Bmatrix': ('{', '}'),
                       'vmatrix': ('|', '|'), 'Vmatrix': ('‖', '‖'), 'cases': ('{', ''),
                       'aligned': None, 'array': None}
TEXT_COMMANDS = ('text', 'textrm', 'textit', 'textbf', 'mbox', 'operatorname*', 'operatorname')
OPERATOR_CHARS = {'-': '−', '*': '∗', "'": '′'}

TOKEN_REGEX = re.compile(
    r"(\\(?:" + "|".join(re.escape(c) for c in TEXT_COMMANDS) + r")\s*\{[^{}]*\}"
    r"|\\begin\{[a-zA-Z]+\*?\}|\\end\{[a-zA-Z]+\*?\}|\\(?:[a-zA-Z]+\*?|[^a-zA-Z]))"
)
TEXT_COMMAND_REGEX = re.compile(r"\\([a-zA-Z]+\*?)\s*\{([^{}]*)\}", re.DOTALL)
ENVIRONMENT_REGEX = re.compile(r'\\(begin|end)\{([a-zA-Z]+\*?)\}')


# --- 2. MathML element builders ---
def _create_token(tag: str, text: str, **attrs: str) -> etree._Element:
    element = etree.Element(tag, attrib=attrs)
    element.text = text
    return element


def _create_row(children: Sequence[etree._Element]) -> etree._Element:
    mrow = etree.Element('mrow')
    for child in children:
        mrow.append(child)
    return mrow


def _as_single(elements: Sequence[etree._Element]) -> etree._Element:
    """MathML layout schemata take exactly one element per argument slot."""
    if len(elements) == 1:
        return elements[0]
    return _create_row(elements)


def _create_space(width: str) -> etree._Element:
    return etree.Element('mspace', width=width)


def _create_fraction(num: List[etree._Element], den: List[etree._Element],
                     linethickness: Optional[str] = None) -> etree._Element:
    mfrac = etree.Element('mfrac')
    if linethickness is not None:
        mfrac.set('linethickness', linethickness)
    mfrac.append(_as_single(num))
    mfrac.append(_as_single(den))
    return mfrac


def _create_sqrt(base: List[etree._Element], index: Optional[List[etree._Element]] = None) -> etree._Element:
    if index:
        mroot = etree.Element('mroot')
        mroot.append(_as_single(base))
        mroot.append(_as_single(index))
        return mroot
    msqrt = etree.Element('msqrt')
    for el in base:
        msqrt.append(el)
    return msqrt


def _create_accent(base: List[etree._Element], char: str) -> etree._Element:
    mover = etree.Element('mover', accent='true')
    mover.append(_as_single(base))
    mover.append(_create_token('mo', char, stretchy='false'))
    return mover


def _create_scripts(base: List[etree._Element], sub: Optional[List[etree._Element]],
                    sup: Optional[List[etree._Element]], limits: bool = False) -> etree._Element:
    if sub is not None and sup is not None:
        tag = 'munderover' if limits else 'msubsup'
    elif sub is not None:
        tag = 'munder' if limits else 'msub'
    else:
        tag = 'mover' if limits else 'msup'
    scripted = etree.Element(tag)
    scripted.append(_as_single(base))
    if sub is not None:
        scripted.append(_as_single(sub))
    if sup is not None:
        scripted.append(_as_single(sup))
    return scripted


def _create_fence(char: str) -> Optional[etree._Element]:
    if not char:
        return None
    return _create_token('mo', char, fence='true', stretchy='true')


def _create_delimiter(open_c: str, close_c: str, content: List[etree._Element]) -> etree._Element:
    mrow = etree.Element('mrow')
    for el in (_create_fence(open_c), *content, _create_fence(close_c)):
        if el is not None:
            mrow.append(el)
    return mrow


def _create_matrix(rows: List[List[List[etree._Element]]], columnalign: Optional[str] = None) -> etree._Element:
    mtable = etree.Element('mtable')
    if columnalign:
        mtable.set('columnalign', columnalign)
    for row_data in rows:
        mtr = etree.SubElement(mtable, 'mtr')
        for cell in row_data:
            mtd = etree.SubElement(mtr, 'mtd')
            for el in cell:
                mtd.append(el)
    return mtable


def _apply_variant_recursively(elements: List[etree._Element], variant: str) -> List[etree._Element]:
    for element in elements:
        if element.tag in ('mi', 'mn', 'mo', 'mtext'):
            element.set('mathvariant', variant)
        else:
            _apply_variant_recursively(list(element), variant)
    return elements


# --- 3. LaTeX Parser ---
class ParserState:
    def __init__(self, tokens: List[str], display_mode: bool = False):
        self.tokens, self.pos, self.display_mode = tokens, 0, display_mode

    def has_tokens(self) -> bool: return self.pos < len(self.tokens)

    def current_token(self) -> Optional[str]: return self.tokens[self.pos] if self.has_tokens() else None

    def advance(self) -> Optional[str]:
        if self.has_tokens():
            token = self.current_token(); self.pos += 1; return token
        return None

    def expect(self, expected: str) -> None:
        token = self.advance()
        if token != expected:
            raise FormulaSyntaxError(f"Expected '{expected}', got {_describe(token)}")


def _describe(token: Optional[str]) -> str:
    return "end of input" if token is None else f"'{token}'"


def tokenize(latex_string: str) -> List[str]:
    latex_parts = TOKEN_REGEX.split(latex_string)
    tokens = []
    for part in latex_parts:
        if not part: continue
        if TOKEN_REGEX.fullmatch(part):
            tokens.append(part)
        else:
            tokens.extend(re.findall(r"[0-9]+(?:\.[0-9]+)?|\S", part))
    return tokens


def _parse_group(state: ParserState) -> List[etree._Element]:
    """Parses the body of a braced group; the opening '{' is already consumed."""
    elements = _parse_tokens(state, stop_tokens=('}',))
    state.expect('}')
    return elements


def _parse_argument(state: ParserState) -> List[etree._Element]:
    token = state.current_token()
    if token is None or token in ('}', '&', '\\\\', '\\right', *SCRIPT_TOKENS) or token.startswith('\\end'):
        raise FormulaSyntaxError(f"Expected argument, got {_describe(token)}")
    if token == '{':
        state.advance()
        return _parse_group(state)
    return _parse_single_element(state)


def _parse_optional_argument(state: ParserState) -> Optional[List[etree._Element]]:
    if state.current_token() != '[':
        return None
    state.advance()
    elements = _parse_tokens(state, stop_tokens=(']',))
    state.expect(']')
    return elements


def _parse_delimiter(state: ParserState, command: str) -> str:
    token = state.advance()
    if token not in DELIMITERS:
        raise FormulaSyntaxError(f"Missing or unknown delimiter after {command}: {_describe(token)}")
    return DELIMITERS[token]


def _takes_limits(state: ParserState, base: List[etree._Element]) -> bool:
    if not state.display_mode or len(base) != 1:
        return False
    element = base[0]
    if element.tag == 'mo':
        return element.text in LIMIT_OPERATORS
    return element.tag == 'mi' and element.text in LIMIT_FUNCTIONS


def _handle_scripts(state: ParserState, base: List[etree._Element]) -> etree._Element:
    sub_arg, sup_arg = None, None
    while state.current_token() in SCRIPT_TOKENS:
        op = state.advance()
        if op == '_':
            if sub_arg is not None: raise FormulaSyntaxError("Double subscript")
            sub_arg = _parse_argument(state)
        else:
            if sup_arg is not None: raise FormulaSyntaxError("Double superscript")
            sup_arg = _parse_argument(state)
    return _create_scripts(base, sub_arg, sup_arg, limits=_takes_limits(state, base))


def _parse_matrix_environment(state: ParserState, env_name: str) -> List[List[List[etree._Element]]]:
    rows, current_row = [], []
    stop_token = f'\\end{{{env_name}}}'
    if env_name == 'array' and state.current_token() == '{':
        # Column spec, e.g. {cc|c}; layout hints are not carried into MathML.
        state.advance()
        _parse_group(state)
    while True:
        cell = _parse_tokens(state, stop_tokens=('&', '\\\\', stop_token))
        current_row.append(cell)
        token = state.advance()
        if token == '&':
            continue
        if token == '\\\\':
            rows.append(current_row); current_row = []
            continue
        if token == stop_token:
            break
        raise FormulaSyntaxError(f"Unterminated environment '{env_name}', got {_describe(token)}")
    if current_row != [[]]:
        rows.append(current_row)
    return rows


def _parse_environment(state: ParserState, token: str) -> List[etree._Element]:
    match = ENVIRONMENT_REGEX.match(token)
    if match is None:
        raise FormulaSyntaxError("Missing environment name after \\begin")
    name = match.group(2)
    if name not in MATRIX_ENVIRONMENTS:
        raise FormulaSyntaxError(f"No such environment: {name}")
    columnalign = 'left' if name in ('cases', 'aligned') else None
    mat_el = _create_matrix(_parse_matrix_environment(state, name), columnalign)
    fences = MATRIX_ENVIRONMENTS[name]
    if fences:
        return [_create_delimiter(fences[0], fences[1], [mat_el])]
    return [mat_el]


def _parse_command(state: ParserState, token: str) -> List[etree._Element]:
    if token in GREEK_LETTERS: return [_create_token('mi', GREEK_LETTERS[token])]
    if token in OPERATORS: return [_create_token('mo', OPERATORS[token])]
    if token in SYMBOLS: return [_create_token('mo', SYMBOLS[token])]
    if token in SPACES: return [_create_space(SPACES[token])]
    if token in KNOWN_FUNCTIONS: return [_create_token('mi', token[1:])]
    if token in NARY_OPERATORS: return [_create_token('mo', NARY_OPERATORS[token], largeop='true')]
    if token in FRACTIONS: return [_create_fraction(_parse_argument(state), _parse_argument(state))]
    if token == '\\binom':
        fraction = _create_fraction(_parse_argument(state), _parse_argument(state), linethickness='0')
        return [_create_delimiter('(', ')', [fraction])]
    if token == '\\sqrt':
        index = _parse_optional_argument(state)
        return [_create_sqrt(_parse_argument(state), index)]
    if token in ACCENTS: return [_create_accent(_parse_argument(state), ACCENTS[token])]
    if token in FONT_VARIANTS:
        return _apply_variant_recursively(_parse_argument(state), FONT_VARIANTS[token])
    text_match = TEXT_COMMAND_REGEX.fullmatch(token)
    if text_match and text_match.group(1) in TEXT_COMMANDS:
        name, raw_text = text_match.groups()
        if name.startswith('operatorname'):
            return [_create_token('mi', raw_text.strip(), mathvariant='normal')]
        return [_create_token('mtext', raw_text)]
    if token in BIG_DELIMITERS:
        return [_create_token('mo', _parse_delimiter(state, token), stretchy='false')]
    if token == '\\left':
        open_c = _parse_delimiter(state, token)
        content = _parse_tokens(state, stop_tokens=('\\right',))
        if state.current_token() != '\\right':
            raise FormulaSyntaxError("Missing \\right to match \\left")
        state.advance()
        close_c = _parse_delimiter(state, '\\right')
        return [_create_delimiter(open_c, close_c, content)]
    if token.startswith('\\begin'):
        return _parse_environment(state, token)
    if token == '\\\\': return [etree.Element('mspace', linebreak='newline')]
    if token == '\\right' or token.startswith('\\end'):
        raise FormulaSyntaxError(f"Unexpected {token}")
    raise FormulaSyntaxError(f"Undefined control sequence: {token}")


def _parse_single_element(state: ParserState) -> List[etree._Element]:
    token = state.advance()
    if token.startswith('\\'):
        return _parse_command(state, token)
    if token == '{': return [_create_row(_parse_group(state))]
    if token == '}': raise FormulaSyntaxError("Unexpected '}'")
    if token == '&': raise FormulaSyntaxError("Unexpected '&' outside of an environment")
    if token in SPACES: return [_create_space(SPACES[token])]
    if token[0].isdigit(): return [_create_token('mn', token)]
    if token.isalpha(): return [_create_token('mi', token)]
    return [_create_token('mo', OPERATOR_CHARS.get(token, token))]


def _parse_tokens(state: ParserState, stop_tokens: Sequence[str] = ()) -> List[etree._Element]:
    elements: List[etree._Element] = []
    while state.has_tokens():
        token = state.current_token()
        if token in stop_tokens:
            break
        if token in SCRIPT_TOKENS:
            elements.append(_handle_scripts(state, []))
            continue
        base_elements = _parse_single_element(state)
        if state.current_token() in SCRIPT_TOKENS:
            elements.append(_handle_scripts(state, base_elements))
        else:
            elements.extend(base_elements)
    return elements


def latex_to_mathml(latex_string: str, display_mode: bool = False) -> str:
    """
    Typesets a LaTeX formula as a MathML fragment.

    Args:
        latex_string (str): The formula source, without $ delimiters.
        display_mode (bool): Block (display) layout instead of inline layout.

    Returns:
        str: A <span class="math ..."> wrapper around the <math> element.

    Raises:
        FormulaSyntaxError: The formula cannot be parsed.
    """
    source = latex_string.strip()
    state = ParserState(tokenize(source), display_mode)
    body = _parse_tokens(state)
    if state.has_tokens():
        raise FormulaSyntaxError(f"Unexpected {_describe(state.current_token())}")

    math = etree.Element('math', display='block' if display_mode else 'inline')
    semantics = etree.SubElement(math, 'semantics')
    semantics.append(_create_row(body))
    annotation = etree.SubElement(semantics, 'annotation', encoding=TEX_ANNOTATION_ENCODING)
    annotation.text = source
    wrapper = etree.Element('span', attrib={'class': 'math math-display' if display_mode else 'math math-inline'})
    wrapper.append(math)
    return etree.tostring(wrapper, encoding='unicode')
