from __future__ import annotations
from decimal import Decimal, InvalidOperation

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Upper bound for a single quantity value (Numeric(14, 3))
MAX_QUANTITY = Decimal("99999999999.999")


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(ValueError):
    """404-level: referenced product does not exist."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class ConcurrencyConflict(ValueError):
    """409-level: concurrent writers raced and retries were exhausted. Safe to retry."""


class LedgerImmutableError(RuntimeError):
    """Raised when code tries to modify an existing inventory history row."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: non-column fields a route accepts and handles itself
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_quantity(value: Any, field: str = "quantity") -> Decimal:
    """
    Parse a quantity from JSON input into a Decimal.

    Accepts ints, floats (via their repr, so 0.1 stays 0.1) and numeric strings.
    Rejects booleans, NaN/Infinity and anything non-numeric.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, int):
        dec = Decimal(value)
    elif isinstance(value, float):
        dec = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            dec = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(dec) > MAX_QUANTITY:
        raise ValidationError(f"{field} exceeds maximum {MAX_QUANTITY}")
    if dec.as_tuple().exponent < -3:
        raise ValidationError(f"{field} supports at most 3 decimal places")
    return dec


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Quantities (Decimal)
    if isinstance(coltype, Numeric):
        return coerce_quantity(value, col.key)

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable column fields.
    Fields listed in policy.extra_fields pass the allowlist but are left to the caller.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    extra = policy.extra_fields or set()

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k in extra:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in extra:
            continue
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("cost_price_cents", "selling_price_cents"):
        if field in patch and patch[field] is not None:
            price = patch[field]
            if price < 0:
                raise ValidationError(f"{field} must be >= 0")
            if price > MAX_PRICE_CENTS:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}")

    if "reorder_level" in patch and patch["reorder_level"] is not None:
        if patch["reorder_level"] < 0:
            raise ValidationError("reorder_level must be >= 0")


def enforce_positive_quantity(value: Any, field: str = "quantity") -> Decimal:
    # Purchases and sales carry an unsigned amount; direction comes from the flow
    qty = coerce_quantity(value, field)
    if qty <= 0:
        raise ValidationError(f"{field} must be > 0")
    return qty


def enforce_non_negative_quantity(value: Any, field: str = "quantity") -> Decimal:
    qty = coerce_quantity(value, field)
    if qty < 0:
        raise ValidationError(f"{field} must be >= 0")
    return qty
