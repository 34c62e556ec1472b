# delta_viewer/delta_validation.py

import copy
import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from .errors import (DeltaValidationError, EmptyInputError, InvalidOperationError, MalformedJSONError,
                     MissingOpsArrayError)
from .logger import get_logger
from .schemas import DeltaDocument

logger = get_logger(__name__)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _loads(json_string: str) -> Any:
    """Strict json.loads: NaN and Infinity are rejected like any other non-JSON token."""
    return json.loads(json_string, parse_constant=_reject_constant)


class ValidationResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    is_valid: bool
    error: Optional[DeltaValidationError] = None
    delta: Optional[DeltaDocument] = None

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None

    def raise_for_error(self) -> DeltaDocument:
        """Returns the document, or raises the validation error for callers that prefer exceptions."""
        if self.error is not None:
            raise self.error
        return self.delta


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_operation(index: int, op: Any) -> None:
    if not isinstance(op, dict):
        raise InvalidOperationError(index, f"operation at index {index} is not an object")

    has_insert = 'insert' in op
    has_delete = 'delete' in op
    has_retain = 'retain' in op

    if not has_insert and not has_delete and not has_retain:
        raise InvalidOperationError(index, f'operation at index {index} must have "insert", "delete", or "retain" property')
    if has_delete and not _is_number(op['delete']):
        raise InvalidOperationError(index, f'"delete" at index {index} must be a number')
    if has_retain and not _is_number(op['retain']):
        raise InvalidOperationError(index, f'"retain" at index {index} must be a number')
    if has_insert and not isinstance(op['insert'], (str, dict)):
        raise InvalidOperationError(index, f'"insert" at index {index} must be a string or object')


def parse_delta(json_string: str) -> DeltaDocument:
    """
    Parses and structurally checks a Delta JSON text.

    Raises:
        EmptyInputError, MalformedJSONError, MissingOpsArrayError, InvalidOperationError
    """
    if not json_string or not json_string.strip():
        raise EmptyInputError()

    try:
        parsed = _loads(json_string)
    except (ValueError, RecursionError) as e:
        raise MalformedJSONError(str(e)) from e

    if not isinstance(parsed, dict) or not isinstance(parsed.get('ops'), list):
        raise MissingOpsArrayError()

    # Fail fast: only the first offending operation is reported.
    for i, op in enumerate(parsed['ops']):
        _check_operation(i, op)

    return DeltaDocument.model_validate(parsed)


def validate_delta(json_string: str) -> ValidationResult:
    """
    Validates raw Delta JSON text without raising.

    Args:
        json_string (str): The text buffer to check.

    Returns:
        ValidationResult: is_valid plus either the parsed document or the first error found.
    """
    try:
        delta = parse_delta(json_string)
    except DeltaValidationError as e:
        logger.debug("[VALIDATE] %s", e.message)
        return ValidationResult(is_valid=False, error=e)
    logger.debug("[VALIDATE] Valid Delta with %d operations.", len(delta.ops))
    return ValidationResult(is_valid=True, delta=delta)


def format_delta_json(json_string: str) -> str:
    """Pretty-prints JSON with two-space indentation; unparseable text comes back untouched."""
    try:
        return json.dumps(_loads(json_string), indent=2, ensure_ascii=False)
    except (ValueError, TypeError, RecursionError):
        return json_string


# --- Sample documents offered by the viewer ---
SAMPLE_DELTAS: Dict[str, Dict[str, Any]] = {
    "simple": {
        "ops": [
            {"insert": "Hello "},
            {"insert": "World", "attributes": {"bold": True}},
            {"insert": "!\n"}
        ]
    },
    "complex": {
        "ops": [
            {"insert": "Quill Rich Text Editor\n", "attributes": {"header": 1}},
            {"insert": "\nThis is a "},
            {"insert": "bold", "attributes": {"bold": True}},
            {"insert": " and "},
            {"insert": "italic", "attributes": {"italic": True}},
            {"insert": " text example.\n\nFeatures:\n"},
            {"insert": "Rich text formatting", "attributes": {"list": "bullet"}},
            {"insert": "\n"},
            {"insert": "Lists and headers", "attributes": {"list": "bullet"}},
            {"insert": "\n"},
            {"insert": "Links and images", "attributes": {"list": "bullet"}},
            {"insert": "\n\nVisit "},
            {"insert": "Quill.js", "attributes": {"link": "https://quilljs.com"}},
            {"insert": " for more information.\n"}
        ]
    },
    "withImage": {
        "ops": [
            {"insert": "Document with Image\n", "attributes": {"header": 2}},
            {"insert": "\nHere is an embedded image:\n"},
            {"insert": {"image": "https://via.placeholder.com/300x200"}},
            {"insert": "\nImage caption goes here.\n"}
        ]
    },
}


def get_sample_delta(name: str) -> Optional[Dict[str, Any]]:
    sample = SAMPLE_DELTAS.get(name)
    return copy.deepcopy(sample) if sample is not None else None
