"""Input coercion helpers shared by the product service and routes.

These helpers never talk to FastAPI: they take raw JSON/query values and
either return a clean Python value or raise ValidationAppError.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from catalog_api.core.errors import ValidationAppError


def parse_int(value: Any, default: Optional[int]) -> Optional[int]:
    """Parse an integer, falling back to ``default`` for unusable input.

    Examples:
        >>> parse_int("25", 100)
        25
        >>> parse_int("abc", 100)
        100
        >>> parse_int(None, 0)
        0
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else default
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def clamp(value: int, minimum: int, maximum: Optional[int] = None) -> int:
    if value < minimum:
        return minimum
    if maximum is not None and value > maximum:
        return maximum
    return value


def clean_text(
    value: Any,
    *,
    field: str,
    max_length: int,
    required: bool,
) -> Optional[str]:
    """Trim a text field and enforce its length cap.

    Empty strings become None for optional fields and are rejected for
    required ones.

    Raises:
        ValidationAppError: Wrong type, missing required value or too long.
    """
    if value is None:
        if required:
            raise ValidationAppError(
                code="missing_field",
                message=f"{field} is required",
                details={"field": field},
            )
        return None

    if not isinstance(value, str):
        raise ValidationAppError(
            code="invalid_type",
            message=f"{field} must be a string",
            details={"field": field},
        )

    text = value.strip()
    if not text:
        if required:
            raise ValidationAppError(
                code="missing_field",
                message=f"{field} is required",
                details={"field": field},
            )
        return None

    if len(text) > max_length:
        raise ValidationAppError(
            code="field_too_long",
            message=f"{field} must be at most {max_length} characters",
            details={"field": field, "max_length": max_length, "actual_value": len(text)},
        )
    return text


def parse_number(
    value: Any,
    *,
    field: str,
    min_value: float,
    max_value: float,
) -> float:
    """Parse a finite number within ``[min_value, max_value]``.

    Numeric strings such as ``"19.90"`` are accepted; booleans are not.

    Raises:
        ValidationAppError: Not a number, not finite or out of range.
    """
    if isinstance(value, bool) or value is None:
        number = None
    elif isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            number = None
    else:
        number = None

    if number is None or not math.isfinite(number):
        raise ValidationAppError(
            code="invalid_number",
            message=f"{field} must be a number",
            details={"field": field},
        )

    if number < min_value or number > max_value:
        raise ValidationAppError(
            code="out_of_range",
            message=f"{field} must be between {min_value} and {max_value}",
            details={
                "field": field,
                "min_value": min_value,
                "max_value": max_value,
                "actual_value": number,
            },
        )
    return round(number, 2)


def check_int_range(value: int, *, field: str, min_value: int, max_value: int) -> int:
    if value < min_value or value > max_value:
        raise ValidationAppError(
            code="out_of_range",
            message=f"{field} must be between {min_value} and {max_value}",
            details={
                "field": field,
                "min_value": min_value,
                "max_value": max_value,
                "actual_value": value,
            },
        )
    return value
