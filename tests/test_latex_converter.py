import pytest
from lxml import etree

from delta_viewer.errors import FormulaSyntaxError
from delta_viewer.latex_converter import latex_to_mathml, tokenize


def _math(markup: str) -> etree._Element:
    wrapper = etree.fromstring(markup)
    assert wrapper.tag == "span"
    return wrapper.find("math")


def test_tokenize_groups_commands_and_numbers() -> None:
    assert tokenize(r"\alpha_{12}+x") == ["\\alpha", "_", "{", "12", "}", "+", "x"]


def test_tokenize_keeps_text_argument_whole() -> None:
    assert tokenize(r"\text{if } x") == ["\\text{if }", "x"]


def test_inline_formula_structure() -> None:
    markup = latex_to_mathml("x^2")
    wrapper = etree.fromstring(markup)
    assert wrapper.get("class") == "math math-inline"
    math = wrapper.find("math")
    assert math.get("display") == "inline"
    msup = math.find(".//msup")
    assert [child.tag for child in msup] == ["mi", "mn"]
    assert math.find(".//annotation").text == "x^2"


def test_display_mode_uses_limits_for_sums() -> None:
    math = _math(latex_to_mathml(r"\sum_{i=1}^{n} i", display_mode=True))
    assert math.get("display") == "block"
    assert math.find(".//munderover") is not None


def test_inline_mode_keeps_sum_scripts_beside_operator() -> None:
    math = _math(latex_to_mathml(r"\sum_{i=1}^{n} i"))
    assert math.find(".//msubsup") is not None
    assert math.find(".//munderover") is None


def test_fraction_and_root() -> None:
    math = _math(latex_to_mathml(r"\frac{a}{b} + \sqrt[3]{x}"))
    assert len(math.find(".//mfrac")) == 2
    assert math.find(".//mroot") is not None


def test_greek_letters_and_operators() -> None:
    math = _math(latex_to_mathml(r"\alpha \leq \beta - 1"))
    assert [mi.text for mi in math.iter("mi")] == ["α", "β"]
    assert "≤" in [mo.text for mo in math.iter("mo")]
    assert "−" in [mo.text for mo in math.iter("mo")]


def test_text_and_font_variants() -> None:
    math = _math(latex_to_mathml(r"\mathbf{v} \text{ if } x > 0"))
    assert math.find(".//mi").get("mathvariant") == "bold"
    assert math.find(".//mtext").text == " if "


def test_matrix_environment() -> None:
    math = _math(latex_to_mathml(r"\begin{pmatrix} a & b \\ c & d \end{pmatrix}"))
    table = math.find(".//mtable")
    assert len(table) == 2
    assert all(len(row) == 2 for row in table)
    assert [mo.text for mo in math.iter("mo") if mo.get("fence") == "true"] == ["(", ")"]


def test_left_right_delimiters() -> None:
    math = _math(latex_to_mathml(r"\left[ \frac{1}{2} \right)"))
    assert [mo.text for mo in math.iter("mo") if mo.get("fence") == "true"] == ["[", ")"]


def test_blank_formula_renders_empty_math() -> None:
    math = _math(latex_to_mathml("   "))
    assert len(math.find("semantics/mrow")) == 0


@pytest.mark.parametrize("source, message", [
    (r"\frac{a}{b", "Expected '}'"),
    (r"{x", "Expected '}'"),
    (r"x}", "Unexpected '}'"),
    (r"\foo", "Undefined control sequence"),
    (r"\frac{a}", "Expected argument"),
    (r"\left( x", "Missing \\right"),
    (r"x^1^2", "Double superscript"),
    (r"x_1_2", "Double subscript"),
    (r"\begin{pmatrix} a & b", "Unterminated environment"),
    (r"\begin{foo} a \end{foo}", "No such environment"),
    (r"a & b", "Unexpected '&'"),
    (r"\begin x", "Missing environment name"),
])
def test_malformed_formulas_raise(source: str, message: str) -> None:
    with pytest.raises(FormulaSyntaxError, match=message.replace("\\", "\\\\")):
        latex_to_mathml(source)
