"""
Action boundary for the POS core.

Every core operation is exposed here wrapped in with_error_handling, which
turns raised PosErrors (and datastore failures) into a structured
ActionResult. Callers (routes, CLI, other tooling) never see an uncaught
exception from the core.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from functools import wraps
from typing import Any, Optional

from flask import current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .errors import PosError, ServerError
from .services import parked_order_service, receipt_service, refund_service, sales_service, shift_service
from .services.refund_service import RefundItemInput
from .services.sales_service import SaleLineInput, PaymentInput


@dataclass
class ActionResult:
    success: bool
    data: Any = None
    message: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None
    details: dict = field(default_factory=dict)
    status_code: int = 200

    @classmethod
    def ok(cls, data: Any = None, message: str | None = None, status_code: int = 200) -> "ActionResult":
        return cls(success=True, data=data, message=message, status_code=status_code)

    @classmethod
    def fail(cls, exc: PosError) -> "ActionResult":
        return cls(
            success=False,
            error=exc.message,
            code=exc.code,
            details=exc.details,
            status_code=exc.http_status,
        )

    def to_dict(self) -> dict:
        if self.success:
            body = {"success": True, "data": self.data}
            if self.message:
                body["message"] = self.message
            return body
        return {"success": False, "error": self.error, "code": self.code, "details": self.details}

    def to_response(self):
        return jsonify(self.to_dict()), self.status_code


def with_error_handling(func):
    """Run a core operation and convert any failure into ActionResult.fail."""
    @wraps(func)
    def wrapper(*args, **kwargs) -> ActionResult:
        try:
            return func(*args, **kwargs)
        except PosError as exc:
            db.session.rollback()
            return ActionResult.fail(exc)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Datastore failure in %s", func.__name__)
            return ActionResult.fail(ServerError("A database error occurred. Please try again."))

    return wrapper


# =============================================================================
# SALES
# =============================================================================

@with_error_handling
def record_sale(
    *,
    lines: list[SaleLineInput],
    payments: list[PaymentInput],
    shift_id: int,
    staff_id: int,
    notes: str | None = None,
    customer_id: int | None = None,
    customer_email: str | None = None,
) -> ActionResult:
    txn = sales_service.record_sale(
        lines=lines,
        payments=payments,
        shift_id=shift_id,
        staff_id=staff_id,
        notes=notes,
        customer_id=customer_id,
        customer_email=customer_email,
    )
    return ActionResult.ok(
        {"transaction": txn.to_dict(), "receipt_number": txn.receipt_number},
        message=f"Sale recorded ({txn.receipt_number})",
        status_code=201,
    )


@with_error_handling
def get_transaction(receipt_number: str) -> ActionResult:
    txn = sales_service.get_transaction_by_receipt(receipt_number)
    data = txn.to_dict()
    data["returns"] = [r.to_dict() for r in refund_service.get_transaction_returns(txn.id)]
    return ActionResult.ok({"transaction": data})


@with_error_handling
def generate_receipt(receipt_number: str) -> ActionResult:
    txn = sales_service.get_transaction_by_receipt(receipt_number)
    receipt, created = receipt_service.generate_receipt(txn.id)
    return ActionResult.ok(receipt.to_dict(), status_code=201 if created else 200)


# =============================================================================
# PARKED ORDERS
# =============================================================================

@with_error_handling
def park_order(
    *,
    staff_id: int,
    lines: list[SaleLineInput],
    customer_name: str | None = None,
    customer_phone: str | None = None,
    notes: str | None = None,
) -> ActionResult:
    order = parked_order_service.park_order(
        staff_id=staff_id,
        lines=lines,
        customer_name=customer_name,
        customer_phone=customer_phone,
        notes=notes,
    )
    return ActionResult.ok({"parked_order": order.to_dict()}, message="Order parked", status_code=201)


@with_error_handling
def list_parked_orders(staff_id: int | None = None) -> ActionResult:
    orders = parked_order_service.list_parked_orders(staff_id=staff_id)
    return ActionResult.ok({"parked_orders": [o.to_dict() for o in orders], "count": len(orders)})


@with_error_handling
def get_parked_order(order_id: int) -> ActionResult:
    return ActionResult.ok({"parked_order": parked_order_service.get_parked_order(order_id).to_dict()})


@with_error_handling
def restore_parked_order(order_id: int, *, actor_id: int) -> ActionResult:
    snapshot = parked_order_service.restore_parked_order(order_id, actor_id=actor_id)
    return ActionResult.ok({"parked_order": snapshot}, message="Order restored")


@with_error_handling
def delete_parked_order(order_id: int, *, actor_id: int) -> ActionResult:
    parked_order_service.delete_parked_order(order_id, actor_id=actor_id)
    return ActionResult.ok(None, message="Parked order deleted")


# =============================================================================
# REFUNDS
# =============================================================================

@with_error_handling
def lookup_transaction(receipt_number: str) -> ActionResult:
    return ActionResult.ok(refund_service.lookup(receipt_number).to_dict())


@with_error_handling
def process_refund(
    *,
    items: list[RefundItemInput],
    actor_id: int,
    transaction_id: int | None = None,
    receipt_number: str | None = None,
    notes: str | None = None,
) -> ActionResult:
    if transaction_id is None:
        transaction_id = sales_service.get_transaction_by_receipt(receipt_number).id
    result = refund_service.process_refund(
        transaction_id=transaction_id,
        items=items,
        actor_id=actor_id,
        notes=notes,
    )
    return ActionResult.ok(result.to_dict(), message=f"Refund processed ({result.return_number})", status_code=201)


# =============================================================================
# SHIFTS
# =============================================================================

@with_error_handling
def clock_in(*, staff_id: int, register_id: int, opening_cash_cents: int, notes: str | None = None) -> ActionResult:
    shift = shift_service.clock_in(
        staff_id=staff_id,
        register_id=register_id,
        opening_cash_cents=opening_cash_cents,
        notes=notes,
    )
    return ActionResult.ok({"shift": shift.to_dict()}, message="Clocked in", status_code=201)


@with_error_handling
def clock_out(
    *,
    shift_id: int,
    closing_cash_cents: int,
    actor_id: int,
    actor_role: str | None = None,
    notes: str | None = None,
) -> ActionResult:
    shift = shift_service.clock_out(
        shift_id=shift_id,
        closing_cash_cents=closing_cash_cents,
        notes=notes,
        actor_id=actor_id,
        actor_role=actor_role,
    )
    return ActionResult.ok({"shift": shift.to_dict()}, message="Clocked out")


@with_error_handling
def get_active_shift(staff_id: int) -> ActionResult:
    shift = shift_service.get_active_shift(staff_id)
    return ActionResult.ok({"shift": shift.to_dict() if shift else None})


@with_error_handling
def list_shifts(
    *,
    staff_id: int | None = None,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> ActionResult:
    shifts = shift_service.list_shifts(staff_id=staff_id, status=status, start=start, end=end)
    return ActionResult.ok({"shifts": [s.to_dict() for s in shifts], "count": len(shifts)})


@with_error_handling
def get_shift_summary(shift_id: int) -> ActionResult:
    return ActionResult.ok(shift_service.get_shift_summary(shift_id))


@with_error_handling
def list_registers() -> ActionResult:
    return ActionResult.ok({"registers": [r.to_dict() for r in shift_service.get_active_registers()]})
