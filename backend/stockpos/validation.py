# Overview: Input validation and the 400-level error types shared by routes and services.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, Integer, String, Text

from stockpos.time_utils import parse_iso_date


# 9,999,999.99 in the shop currency
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """
    400-level input problem.

    Raised before any database write; callers can rely on no partial state
    having been created.
    """
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class ProductNotFoundError(ValidationError):
    code = "PRODUCT_NOT_FOUND"


class OutOfStockError(ValidationError):
    code = "OUT_OF_STOCK"


class StockLimitExceededError(ValidationError):
    code = "STOCK_LIMIT_EXCEEDED"


class EmptyCartError(ValidationError):
    code = "EMPTY_CART"


class PaymentMethodRequiredError(ValidationError):
    code = "PAYMENT_METHOD_REQUIRED"


class InvalidPaymentMethodError(ValidationError):
    code = "INVALID_PAYMENT_METHOD"


class MissingDebtorFieldError(ValidationError):
    code = "MISSING_DEBTOR_FIELD"

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"Debtor {field} is required", details={"field": field})
        self.field = field


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which model columns a client may send.

    writable_fields is the allowlist; anything else in the payload is
    rejected. required_on_create only applies to full (non-partial) payloads.
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _as_int(key: str, value: Any) -> int:
    # bool is an int subclass; JSON true/false is never a quantity
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be an integer")

    text = value.strip()
    if "e" in text.lower():
        raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
    if "." in text:
        raise ValidationError(f"{key} must be an integer (no decimals)")
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"{key} must be an integer")


def _as_date(key: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a date")
    try:
        parsed = parse_iso_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be an ISO-8601 date (YYYY-MM-DD)")
    return parsed


def _coerce_value(col, value: Any):
    """Normalize one JSON value to the Python type of `col`."""
    coltype = col.type
    if isinstance(coltype, Integer):
        return _as_int(col.key, value)
    if isinstance(coltype, Date):
        return _as_date(col.key, value)
    if isinstance(coltype, Boolean):
        return value if isinstance(value, bool) else bool(value)
    if isinstance(coltype, (String, Text)):
        return str(value).strip()
    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a JSON body against the model's columns and the policy allowlist.

    Returns a patch dict of coerced values for the fields that were sent.
    Nullability, String lengths and blank required strings come from the
    column metadata.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}

    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        value = _coerce_value(col, raw)
        if isinstance(value, str):
            if value == "" and not col.nullable:
                raise ValidationError(f"{key} cannot be blank")
            max_len = getattr(col.type, "length", None)
            if max_len and len(value) > max_len:
                raise ValidationError(f"{key} exceeds max length {max_len}")
        patch[key] = value

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Product rules the column types cannot express."""
    for key in ("cost_price_cents", "selling_price_cents"):
        price = patch.get(key)
        if price is None:
            continue
        if price < 0:
            raise ValidationError(f"{key} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")

    for key in ("stock_quantity", "low_stock_threshold"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")


def parse_cents(value: Any, field: str) -> int:
    """Strict non-negative integer cents from JSON input."""
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        raise ValidationError(f"{field} must be an integer number of cents")
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    return value


# Matches Sale.idempotency_key
IDEMPOTENCY_KEY_MAX_LENGTH = 64


def parse_idempotency_key(value: Any) -> str | None:
    """Optional client retry key: a non-blank string of at most 64 characters."""
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("idempotency_key must be a non-empty string")
    key = value.strip()
    if len(key) > IDEMPOTENCY_KEY_MAX_LENGTH:
        raise ValidationError(
            f"idempotency_key exceeds max length {IDEMPOTENCY_KEY_MAX_LENGTH}",
            details={"max_length": IDEMPOTENCY_KEY_MAX_LENGTH},
        )
    return key
