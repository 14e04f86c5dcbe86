from __future__ import annotations

from typing import Any, Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required", field=field_name)
    return str(value).strip()


def require_min_length(value: Optional[str], field_name: str, min_len: int) -> str:
    if value is None or len(value) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters long", field=field_name)
    return value


def require_positive_int(value: Any, field_name: str) -> int:
    """Coerce an id coming from JSON/URL input into a concrete positive int.

    ``None``, booleans, floats with a fraction, and non-numeric strings are
    rejected here so that nothing malformed ever reaches the store.
    """

    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} is required", field=field_name)

    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field_name} must be an integer", field=field_name)
        value = int(value)

    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdecimal()):
            raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
        value = int(value)

    if not isinstance(value, int):
        raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
    if value <= 0:
        raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
    return value


def optional_positive_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return require_positive_int(value, field_name)


def optional_bool(value: Any, field_name: str) -> Optional[bool]:
    """JSON booleans only; ``"false"`` or ``0`` are rejected instead of coerced."""
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be true or false", field=field_name)
    return value
