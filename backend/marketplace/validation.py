from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_LINE_QUANTITY = 100_000


class ValidationError(ValueError):
    """400-level input problem (malformed input, negative prices or rates)."""


class NotFoundError(ValueError):
    """404-level unknown item, category, session or transaction id."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., deleting a referenced item)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects floats, bools and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def coerce_rate(key: str, value: Any) -> Decimal:
    """Tax rates are fractions in [0, 1]; floats go through str() to keep 0.07 exact."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{key} must be a number")
    try:
        rate = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{key} must be a number")
    if not rate.is_finite():
        raise ValidationError(f"{key} must be a number")
    if rate < 0:
        raise ValidationError(f"{key} must be >= 0")
    if rate > 1:
        raise ValidationError(f"{key} must be a fraction <= 1")
    return rate


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

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

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
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


def _check_price(key: str, price) -> None:
    if not isinstance(price, int) or isinstance(price, bool):
        raise ValidationError(f"{key} must be an integer")
    if price < 0:
        raise ValidationError(f"{key} must be >= 0")
    if price > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")


def enforce_rules_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for key in ("cost_price_cents", "sale_price_cents"):
        if key in patch and patch[key] is not None:
            _check_price(key, patch[key])

    stock = patch.get("current_stock")
    if stock is not None and stock < 0:
        raise ValidationError("current_stock must be >= 0")


def enforce_rules_session(patch: dict) -> None:
    if patch.get("organizer_type") not in (None, "internal", "partner"):
        raise ValidationError("organizer_type must be internal or partner")

    if patch.get("association_type") not in (None, "event", "project", "general"):
        raise ValidationError("association_type must be event, project or general")

    if "expected_revenue_cents" in patch and patch["expected_revenue_cents"] is not None:
        _check_price("expected_revenue_cents", patch["expected_revenue_cents"])


def normalize_line_items(line_items: Any) -> list[dict]:
    """
    Normalizes POS line items to [{item_id, quantity, is_voucher}].

    Quantities must be positive integers; is_voucher defaults to False.
    """
    if not isinstance(line_items, list) or not line_items:
        raise ValidationError("line_items must be a non-empty list")

    lines = []
    for i, raw in enumerate(line_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"line_items[{i}] must be an object")
        if "item_id" not in raw:
            raise ValidationError(f"line_items[{i}].item_id is required")

        item_id = coerce_int(f"line_items[{i}].item_id", raw["item_id"])
        quantity = coerce_int(f"line_items[{i}].quantity", raw.get("quantity"))
        if quantity <= 0:
            raise ValidationError(f"line_items[{i}].quantity must be > 0")
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"line_items[{i}].quantity cannot exceed {MAX_LINE_QUANTITY}")

        is_voucher = raw.get("is_voucher", False)
        if not isinstance(is_voucher, bool):
            raise ValidationError(f"line_items[{i}].is_voucher must be a boolean")

        lines.append({"item_id": item_id, "quantity": quantity, "is_voucher": is_voucher})
    return lines


def normalize_item_ids(item_ids: Any) -> list[int]:
    """Coerce a list of catalog ids, dropping repeats but keeping first-seen order."""
    if not isinstance(item_ids, (list, tuple)):
        raise ValidationError("item_ids must be a list")
    seen: set[int] = set()
    ordered: list[int] = []
    for i, raw in enumerate(item_ids):
        item_id = coerce_int(f"item_ids[{i}]", raw)
        if item_id not in seen:
            seen.add(item_id)
            ordered.append(item_id)
    return ordered
