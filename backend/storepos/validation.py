"""
Boundary parsing for JSON payloads and query strings.

Records arriving over HTTP are loosely typed; everything is converted here
into the explicit input dataclasses the services accept, so the core never
trusts a raw dict.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from storepos.errors import ValidationError
from storepos.time_utils import parse_iso_datetime
from storepos.services.sales_service import SaleLineInput, PaymentInput
from storepos.services.refund_service import RefundItemInput


# Maximum amount: 999,999,999 cents
# Keeps totals well inside a 32-bit integer column
MAX_AMOUNT_CENTS = 999_999_999


def coerce_int(name: str, value: Any, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion: ints and plain digit strings only.

    Floats, booleans, decimals and scientific notation are rejected.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", details={"field": name})

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer", details={"field": name})
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)", details={"field": name})
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)", details={"field": name})
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer", details={"field": name})
    elif isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal", details={"field": name})
    else:
        raise ValidationError(f"{name} must be an integer", details={"field": name})

    if minimum is not None and result < minimum:
        raise ValidationError(f"{name} must be >= {minimum}", details={"field": name, "value": result})
    if maximum is not None and result > maximum:
        raise ValidationError(f"{name} must be <= {maximum}", details={"field": name, "value": result})
    return result


def optional_int(name: str, value: Any, **kwargs) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_int(name, value, **kwargs)


def optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def require_field(payload: dict, name: str) -> Any:
    if name not in payload or payload[name] is None:
        raise ValidationError(f"{name} is required", details={"field": name})
    return payload[name]


def _require_list(payload: dict, name: str) -> list:
    value = require_field(payload, name)
    if not isinstance(value, list):
        raise ValidationError(f"{name} must be a list", details={"field": name})
    return value


def _require_object(value: Any, name: str) -> dict:
    if not isinstance(value, dict):
        raise ValidationError(f"{name} must be an object", details={"field": name})
    return value


def parse_datetime_param(name: str, value: str | None) -> datetime | None:
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime", details={"field": name})


# =============================================================================
# PAYLOADS
# =============================================================================

def _parse_lines(payload: dict) -> list[SaleLineInput]:
    lines = []
    for index, raw in enumerate(_require_list(payload, "items")):
        raw = _require_object(raw, f"items[{index}]")
        lines.append(SaleLineInput(
            product_id=coerce_int(f"items[{index}].product_id", require_field(raw, "product_id"), minimum=1),
            quantity=coerce_int(f"items[{index}].quantity", require_field(raw, "quantity"), minimum=1),
            variant_id=optional_int(f"items[{index}].variant_id", raw.get("variant_id"), minimum=1),
            discount_cents=optional_int(
                f"items[{index}].discount_cents",
                raw.get("discount_cents"),
                minimum=0,
                maximum=MAX_AMOUNT_CENTS,
            ) or 0,
        ))
    return lines


def parse_sale_payload(payload: dict) -> dict:
    """
    {"shift_id": 1, "items": [{"product_id", "quantity", "variant_id"?, "discount_cents"?}],
     "payments": [{"method", "amount_cents", "amount_received_cents"?, "reference"?}],
     "customer_id"?, "customer_email"?, "notes"?}
    """
    payload = _require_object(payload, "body")
    lines = _parse_lines(payload)

    payments = []
    for index, raw in enumerate(_require_list(payload, "payments")):
        raw = _require_object(raw, f"payments[{index}]")
        payments.append(PaymentInput(
            method=str(require_field(raw, "method")).strip().lower(),
            amount_cents=coerce_int(
                f"payments[{index}].amount_cents",
                require_field(raw, "amount_cents"),
                minimum=1,
                maximum=MAX_AMOUNT_CENTS,
            ),
            amount_received_cents=optional_int(
                f"payments[{index}].amount_received_cents",
                raw.get("amount_received_cents"),
                minimum=0,
                maximum=MAX_AMOUNT_CENTS,
            ),
            reference=optional_str(raw.get("reference")),
        ))

    return {
        "shift_id": coerce_int("shift_id", require_field(payload, "shift_id"), minimum=1),
        "lines": lines,
        "payments": payments,
        "notes": optional_str(payload.get("notes")),
        "customer_id": optional_int("customer_id", payload.get("customer_id"), minimum=1),
        "customer_email": optional_str(payload.get("customer_email")),
    }


def parse_park_payload(payload: dict) -> dict:
    """{"items": [...same as a sale...], "customer_name"?, "customer_phone"?, "notes"?}"""
    payload = _require_object(payload, "body")
    return {
        "lines": _parse_lines(payload),
        "customer_name": optional_str(payload.get("customer_name")),
        "customer_phone": optional_str(payload.get("customer_phone")),
        "notes": optional_str(payload.get("notes")),
    }


def parse_refund_payload(payload: dict) -> dict:
    """
    {"transaction_id" | "receipt_number", "items": [{"product_id", "quantity",
     "reason", "condition", "variant_id"?}], "notes"?}

    Reason length and condition are checked by the refund processor so the
    whole request is rejected together.
    """
    payload = _require_object(payload, "body")

    transaction_id = optional_int("transaction_id", payload.get("transaction_id"), minimum=1)
    receipt_number = optional_str(payload.get("receipt_number"))
    if transaction_id is None and receipt_number is None:
        raise ValidationError("transaction_id or receipt_number is required", details={"field": "transaction_id"})

    items = []
    for index, raw in enumerate(_require_list(payload, "items")):
        raw = _require_object(raw, f"items[{index}]")
        items.append(RefundItemInput(
            product_id=coerce_int(f"items[{index}].product_id", require_field(raw, "product_id"), minimum=1),
            quantity=coerce_int(f"items[{index}].quantity", require_field(raw, "quantity")),
            reason=str(raw.get("reason") or ""),
            condition=str(raw.get("condition") or "").strip().lower(),
            variant_id=optional_int(f"items[{index}].variant_id", raw.get("variant_id"), minimum=1),
        ))

    return {
        "transaction_id": transaction_id,
        "receipt_number": receipt_number,
        "items": items,
        "notes": optional_str(payload.get("notes")),
    }


def parse_clock_in_payload(payload: dict) -> dict:
    payload = _require_object(payload, "body")
    return {
        "register_id": coerce_int("register_id", require_field(payload, "register_id"), minimum=1),
        "opening_cash_cents": coerce_int(
            "opening_cash_cents",
            require_field(payload, "opening_cash_cents"),
            minimum=0,
            maximum=MAX_AMOUNT_CENTS,
        ),
        "notes": optional_str(payload.get("notes")),
    }


def parse_clock_out_payload(payload: dict) -> dict:
    payload = _require_object(payload, "body")
    return {
        "closing_cash_cents": coerce_int(
            "closing_cash_cents",
            require_field(payload, "closing_cash_cents"),
            minimum=0,
            maximum=MAX_AMOUNT_CENTS,
        ),
        "notes": optional_str(payload.get("notes")),
    }
