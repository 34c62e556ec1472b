# delta_viewer/errors.py

from typing import Optional


class DeltaViewerError(Exception):
    """Base class for every error raised by the viewer core."""


# ==============================================================================
# SECTION 1: DOCUMENT VALIDATION ERRORS
# ==============================================================================
class DeltaValidationError(DeltaViewerError):
    """A raw text buffer could not be turned into a Delta document."""

    code = "invalid_delta"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EmptyInputError(DeltaValidationError):
    code = "empty_input"

    def __init__(self):
        super().__init__("JSON input is empty")


class MalformedJSONError(DeltaValidationError):
    code = "malformed_json"

    def __init__(self, detail: str):
        super().__init__(f"Invalid JSON: {detail}")
        self.detail = detail


class MissingOpsArrayError(DeltaValidationError):
    code = "missing_ops"

    def __init__(self):
        super().__init__(
            'Invalid Delta: missing "ops" array. '
            'Delta must have an "ops" property containing an array of operations.'
        )


class InvalidOperationError(DeltaValidationError):
    code = "invalid_operation"

    def __init__(self, index: int, reason: str):
        super().__init__(f"Invalid Delta: {reason}")
        self.index = index
        self.reason = reason


# ==============================================================================
# SECTION 2: FORMULA ERRORS
# ==============================================================================
class FormulaSyntaxError(ValueError):
    """Raised by the bundled LaTeX typesetter on malformed input."""

    def __init__(self, message: str, position: Optional[int] = None):
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(message)
        self.position = position


class FormulaRenderError(DeltaViewerError):
    """One formula failed to typeset. Always contained at formula granularity."""

    def __init__(self, formula: str, detail: str):
        super().__init__(detail)
        self.formula = formula
        self.detail = detail
