from __future__ import annotations

from typing import Any

from .money import to_money


# Maximum amount accepted on any money field: 9,999,999.99
MAX_AMOUNT = 9_999_999.99


class ValidationError(ValueError):
    """400-level input problem (missing identifier, malformed quantity map, ...)."""


class NotFoundError(LookupError):
    """404-level: a referenced record is absent."""


class ProductNotFoundError(NotFoundError):
    """A product referenced by an invoice line, defect or adjustment is absent."""


class InsufficientStockError(ValueError):
    """409-level: a decrement exceeds the available variant quantity."""

    def __init__(self, message: str, *, available: int | None = None, requested: int | None = None):
        super().__init__(message)
        self.available = available
        self.requested = requested


class TransactionConflictError(RuntimeError):
    """409-level: a concurrent write collided and retries were exhausted."""


def require_text(value: Any, field: str) -> str:
    if value is None:
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{field} cannot be blank")
    return text


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion: rejects bools, floats with a fraction,
    scientific notation and decimal strings.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def coerce_positive_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be > 0")
    return number


def coerce_amount(value: Any, field: str, *, allow_negative: bool = False) -> float:
    """Validate a money amount and return it rounded to cents."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = float(to_money(value))
    except ValueError:
        raise ValidationError(f"{field} must be a number")
    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT:,.2f}")
    return amount


def validate_quantity_map(quantities: Any, *, field: str = "quantities") -> dict[str, dict[str, int]]:
    """
    Validate a nested `color -> size -> quantity` map.

    Quantities must be non-negative integers; color and size keys must be
    non-blank. Returns a normalized copy (string keys, int values).
    """
    if not isinstance(quantities, dict):
        raise ValidationError(f"{field} must be an object of color -> size -> quantity")

    normalized: dict[str, dict[str, int]] = {}
    for color, sizes in quantities.items():
        color_key = require_text(color, f"{field} color")
        if not isinstance(sizes, dict):
            raise ValidationError(f"{field}[{color_key}] must be an object of size -> quantity")
        normalized[color_key] = {}
        for size, quantity in sizes.items():
            size_key = require_text(size, f"{field}[{color_key}] size")
            qty = coerce_int(quantity, f"{field}[{color_key}][{size_key}]")
            if qty < 0:
                raise ValidationError(f"{field}[{color_key}][{size_key}] cannot be negative")
            normalized[color_key][size_key] = qty
    return normalized
