from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any


class LedgerError(Exception):
    """Base for errors surfaced to callers of the ledger and billing services."""

    kind = "internal"
    http_status = 500


class ValidationError(LedgerError, ValueError):
    """400-level input problem: missing field, bad quantity, over-removal, bad date range."""

    kind = "validation"
    http_status = 400


class NotFoundError(LedgerError, LookupError):
    """No ACTIVE pallet (or no invoice) matches the reference."""

    kind = "not_found"
    http_status = 404


class StorageError(LedgerError, RuntimeError):
    """Persistence failure that survived retries (write conflict, I/O fault)."""

    kind = "storage"
    http_status = 503


def require_text(value: Any, field: str) -> str:
    if value is None:
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{field} cannot be blank")
    return text


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_int(value: Any, field: str, *, default: int | None = None) -> int:
    """
    Strict integer coercion for JSON/CLI input.

    Rejects bools, floats, decimals in strings and scientific notation.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValidationError(f"{field} is required")
        return default

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def coerce_rate(value: Any, field: str) -> Decimal:
    """Money/rate input -> finite, non-negative Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    return amount


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_parts(parts: Any) -> list[dict] | None:
    """
    Parts are an optional ordered list of {part_number, quantity}.

    Shape is checked here; after check-in the list is stored as-is.
    """
    if parts is None:
        return None
    if not isinstance(parts, (list, tuple)):
        raise ValidationError("parts must be a list")

    cleaned: list[dict] = []
    for index, part in enumerate(parts):
        if not isinstance(part, dict):
            raise ValidationError(f"parts[{index}] must be an object")
        part_number = require_text(part.get("part_number"), f"parts[{index}].part_number")
        quantity = coerce_int(part.get("quantity"), f"parts[{index}].quantity", default=0)
        if quantity < 0:
            raise ValidationError(f"parts[{index}].quantity must be >= 0")
        cleaned.append({"part_number": part_number, "quantity": quantity})
    return cleaned
