from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, DateTime, Enum, Float, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import parse_iso_datetime

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MAX_PAGE_LIMIT = 100


class FieldError(ValueError):
    """One field failed coercion; collected into ValidationError.errors."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or "e" in stripped.lower() or "." in stripped:
                raise FieldError(col.key, "must be a plain integer")
            try:
                return int(stripped)
            except ValueError:
                raise FieldError(col.key, "must be an integer")
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise FieldError(col.key, "must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise FieldError(col.key, "must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise FieldError(col.key, "must be an ISO-8601 datetime")
            if dt is None:
                raise FieldError(col.key, "must be an ISO-8601 datetime")
            return dt
        raise FieldError(col.key, "must be a datetime")

    # Numbers (Float is a Numeric subclass)
    if isinstance(coltype, Numeric):
        if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
            raise FieldError(col.key, "must be a number")
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise FieldError(col.key, "must be a number")
        if not number.is_finite():
            raise FieldError(col.key, "must be a number")
        if number < 0:
            raise FieldError(col.key, "must be >= 0")
        return float(number) if isinstance(coltype, Float) else number

    # Closed enums (Enum is a String subclass, check first)
    if isinstance(coltype, Enum) and coltype.enum_class is not None:
        try:
            return coltype.enum_class(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(m.value for m in coltype.enum_class)
            raise FieldError(col.key, f"must be one of: {allowed}")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

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

    Unknown keys are dropped silently: the frontend posts whole form state.
    Every failing field is reported at once as {field, message}.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []
    if not partial:
        for field in sorted(policy.required_on_create):
            value = payload.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append({"field": field, "message": f"{field} is required"})

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            continue
        if any(e["field"] == k for e in errors):
            continue
        col = cols[k]

        if raw is None or (isinstance(raw, str) and not raw.strip() and col.nullable):
            if not col.nullable:
                errors.append({"field": k, "message": f"{k} cannot be null"})
            else:
                patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except FieldError as exc:
            errors.append({"field": exc.field, "message": f"{exc.field} {exc.message}"})
            continue

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                errors.append({"field": k, "message": f"{k} cannot be blank"})
                continue

        if (
            isinstance(col.type, String)
            and not isinstance(col.type, Enum)
            and col.type.length
            and isinstance(val, str)
            and len(val) > col.type.length
        ):
            errors.append({"field": k, "message": f"{k} exceeds max length {col.type.length}"})
            continue

        patch[k] = val

    if errors:
        raise ValidationError("Invalid data", errors=errors)
    return patch


def normalize_email(value: Any) -> str:
    return str(value or "").strip().lower()


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))


def check_min_length(errors: list[dict], field: str, value: Any, minimum: int, label: str) -> str:
    """Append a field error when value is shorter than minimum; return the stripped value."""
    text = str(value or "").strip()
    if len(text) < minimum:
        errors.append({"field": field, "message": f"{label} must be at least {minimum} characters"})
    return text


def parse_int_arg(value: Any, field: str, *, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid data", errors=[{"field": field, "message": f"{field} must be an integer"}])


def parse_bool_arg(value: Any) -> bool | None:
    """Query-string booleans: "true"/"false" (anything else means no filter)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def clamp_pagination(page: Any, limit: Any, default_limit: int) -> tuple[int, int]:
    """page >= 1, limit clamped to 1..MAX_PAGE_LIMIT."""
    page = parse_int_arg(page, "page", default=1)
    limit = parse_int_arg(limit, "limit", default=default_limit)
    return max(1, page), min(max(1, limit), MAX_PAGE_LIMIT)


def pagination_dict(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit if total else 0,
    }
