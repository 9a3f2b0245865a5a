from __future__ import annotations
from datetime import date
from decimal import Decimal, InvalidOperation
from bizpilot.time_utils import parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Upper bound for any money or quantity input; keeps values inside Numeric(14, 4)
MAX_AMOUNT = Decimal("9999999999")
# Quantities are stored with 4 decimal places
QUANTITY_SCALE = Decimal("0.0001")

UNIT_OPTIONS = (
    "unit",  # generic count
    "piece",
    "kg",
    "g",
    "lb",
    "oz",
    "l",
    "ml",
    "gal",
    "pack",
    "box",
    "bag",
)


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level: unknown id, or a row owned by another business."""


class ConflictError(ValueError):
    """409-level business rule conflict."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: accepted keys that are not model columns (e.g. nested lists)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_decimal(value: Any, field: str) -> Decimal:
    """
    Strict Decimal parsing for stored numbers.

    Accepts int, Decimal, float and numeric strings; rejects bools, NaN and
    infinities. Floats go through str() so 0.1 stays 0.1.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float)):
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
    if abs(dec) > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds {MAX_AMOUNT}")
    return dec


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Decimals before Integer: Numeric is not an Integer subclass, but be explicit
    if isinstance(coltype, Numeric):
        return coerce_decimal(value, col.key)

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Dates (accept ISO-8601 strings)
    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

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
    Returns a cleaned patch dict with only writable fields.

    Keys listed in policy.extra_fields are passed through untouched for the
    caller to validate.

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
            patch[k] = raw
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


def _require_non_negative(patch: dict, *fields: str) -> None:
    for field in fields:
        value = patch.get(field)
        if value is not None and value < 0:
            raise ValidationError(f"{field} must be >= 0")


def enforce_rules_unit(patch: dict) -> None:
    if "unit" in patch and patch["unit"] not in UNIT_OPTIONS:
        raise ValidationError(f"unit must be one of: {', '.join(UNIT_OPTIONS)}")


def enforce_rules_business(patch: dict) -> None:
    _require_non_negative(patch, "hourly_rate", "default_margin")
    if patch.get("default_margin") is not None and patch["default_margin"] > 99:
        raise ValidationError("default_margin must be between 0 and 99")
    if "currency_code" in patch:
        from .currency import CURRENCY_CONFIGS

        code = (patch["currency_code"] or "").upper()
        if code not in CURRENCY_CONFIGS:
            raise ValidationError(f"unsupported currency_code: {patch['currency_code']}")
        patch["currency_code"] = code


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _require_non_negative(patch, "labor_minutes", "target_margin")
    # Margins at or above 100% have no finite selling price
    if patch.get("target_margin") is not None and patch["target_margin"] > 99:
        raise ValidationError("target_margin must be between 0 and 99")


def enforce_rules_inventory_item(patch: dict) -> None:
    if "current_quantity" in patch:
        raise ValidationError("current_quantity can only change through a stock adjustment")
    _require_non_negative(patch, "cost_per_unit")
    enforce_rules_unit(patch)


def coerce_quantity(value: Any, field: str) -> Decimal:
    dec = coerce_decimal(value, field)
    if dec != dec.quantize(QUANTITY_SCALE):
        raise ValidationError(f"{field} supports at most 4 decimal places")
    return dec


def enforce_rules_inventory_adjust(quantity_change: Any) -> Decimal:
    # ADJUST requires a non-zero delta; no-op adjustments are rejected
    if quantity_change is None:
        raise ValidationError("quantity_change is required")
    delta = coerce_quantity(quantity_change, "quantity_change")
    if delta == 0:
        raise ValidationError("quantity_change must be non-zero")
    return delta
