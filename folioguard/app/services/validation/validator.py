"""Schema validation with end-user safe error messages.

pydantic reports every failing constraint; callers get at most one message
per field path, the first one pydantic reports for it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Type, Union

from pydantic import BaseModel, ValidationError

ROOT_PATH = "body"

REQUIRED_MESSAGE = "This field is required"


@dataclass
class SchemaValidationResult:
    """Outcome of validating a payload against a schema."""
    valid: bool
    errors: Dict[str, str] = field(default_factory=dict)
    data: Optional[BaseModel] = None

    @property
    def first_error(self) -> Optional[str]:
        return next(iter(self.errors.values()), None)


def format_path(loc: Sequence[Union[str, int]]) -> str:
    """Render a pydantic error location as ``experiences[0].company``."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path or ROOT_PATH


def friendly_message(error: Dict[str, Any]) -> str:
    """Map one pydantic error to a message safe to show the end user."""
    error_type = error.get("type", "")
    ctx = error.get("ctx") or {}

    if error_type == "missing":
        return REQUIRED_MESSAGE
    if error_type == "string_too_short":
        return f"Must be at least {ctx.get('min_length')} characters"
    if error_type == "string_too_long":
        return f"Must be at most {ctx.get('max_length')} characters"
    if error_type == "too_short":
        if not ctx.get("actual_length"):
            return REQUIRED_MESSAGE
        return f"At least {ctx.get('min_length')} entries required"
    if error_type == "too_long":
        return f"Too many entries (maximum {ctx.get('max_length')})"
    if error_type == "string_pattern_mismatch":
        return "Contains invalid characters"
    if error_type == "literal_error":
        return f"Must be one of: {ctx.get('expected')}"
    if error_type == "string_type":
        return "Must be text"
    if error_type == "list_type":
        return "Must be a list"
    if error_type in ("model_type", "model_attributes_type", "dict_type"):
        return "Must be an object"
    if error_type == "value_error":
        # Messages raised by our own validators are already user-facing
        return str(error.get("msg", "")).removeprefix("Value error, ") or "Invalid value"
    return "Invalid value"


def collect_errors(exc: ValidationError, schema: Type[BaseModel]) -> Dict[str, str]:
    """Collapse a ValidationError into one message per field path."""
    overrides = getattr(schema, "error_messages", {}) or {}
    errors: Dict[str, str] = {}

    for error in exc.errors(include_url=False):
        loc = tuple(error.get("loc", ()))
        path = format_path(loc)
        if path in errors:
            continue

        message = None
        if len(loc) == 1 and isinstance(loc[0], str):
            message = overrides.get(loc[0], {}).get(error.get("type", ""))
        errors[path] = message or friendly_message(error)

    return errors


def validate(data: Any, schema: Type[BaseModel]) -> SchemaValidationResult:
    """Validate ``data`` against a pydantic model class.

    Args:
        data: Decoded request payload
        schema: Model class declaring the rules

    Returns:
        SchemaValidationResult with the validated model on success, or one
        message per failing field path
    """
    try:
        model = schema.model_validate(data)
    except ValidationError as exc:
        return SchemaValidationResult(valid=False, errors=collect_errors(exc, schema))
    return SchemaValidationResult(valid=True, data=model)
