"""
Shift Reconciler

Register and shift management: clock-in opens a shift on a cash register,
clock-out counts the drawer and reconciles it against what the shift's cash
sales say should be there.

DESIGN PRINCIPLES:
- One open shift per staff member, enforced by a partial unique index
- Shifts are immutable once closed (no transitions out of "closed")
- Expected cash uses the explicit shift reference on each transaction,
  never a timestamp window
- Discrepancies are recorded and surfaced, never prevented
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CashRegister, StaffShift, PosTransaction, PosTransactionItem, PosPayment, PosReturn
from ..models.sales import PAYMENT_METHOD_CASH, TRANSACTION_STATUS_COMPLETED
from ..models.shifts import SHIFT_STATUS_OPEN, SHIFT_STATUS_CLOSED
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..identity import ROLE_ADMIN
from ..money import format_currency
from storepos.time_utils import utcnow, to_utc_z
from . import side_effects
from .concurrency import lock_for_update, run_with_retry
from .notification_service import NOTIF_CLOCK_IN, NOTIF_CLOCK_OUT, NOTIF_CASH_DISCREPANCY


# =============================================================================
# REGISTER MANAGEMENT
# =============================================================================

def create_register(name: str, location: str | None = None) -> CashRegister:
    """Registers must exist before anyone can clock in on them."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Register name is required")

    existing = db.session.query(CashRegister).filter_by(name=name).first()
    if existing:
        raise ConflictError(f"Register '{name}' already exists", details={"register_id": existing.id})

    register = CashRegister(name=name, location=location, is_active=True)
    db.session.add(register)
    db.session.commit()
    return register


def get_active_registers() -> list[CashRegister]:
    return db.session.query(CashRegister).filter_by(is_active=True).order_by(CashRegister.name).all()


def get_register(register_id: int) -> CashRegister:
    register = db.session.get(CashRegister, register_id)
    if not register:
        raise NotFoundError("Register not found", details={"register_id": register_id})
    return register


# =============================================================================
# CLOCK IN / CLOCK OUT
# =============================================================================

def _get_open_shift(staff_id: int) -> StaffShift | None:
    return db.session.query(StaffShift).filter_by(staff_id=staff_id, status=SHIFT_STATUS_OPEN).first()


def clock_in(
    *,
    staff_id: int,
    register_id: int,
    opening_cash_cents: int,
    notes: str | None = None,
) -> StaffShift:
    """
    Open a shift for a staff member on an active register.

    The pre-check gives a friendly error; the partial unique index is what
    actually stops two concurrent clock-ins.

    Raises:
        ValidationError: negative or non-integer opening cash
        NotFoundError: unknown register
        ConflictError: staff member already has an open shift, or register inactive
    """
    if not isinstance(opening_cash_cents, int) or isinstance(opening_cash_cents, bool) or opening_cash_cents < 0:
        raise ValidationError(
            "Opening cash must be a non-negative integer (cents)",
            details={"opening_cash_cents": opening_cash_cents},
        )

    register = get_register(register_id)
    if not register.is_active:
        raise ConflictError("Cannot clock in on an inactive register", details={"register_id": register_id})

    existing = _get_open_shift(staff_id)
    if existing:
        raise ConflictError("Already clocked in", details={"shift_id": existing.id})

    shift = StaffShift(
        staff_id=staff_id,
        register_id=register.id,
        status=SHIFT_STATUS_OPEN,
        opening_cash_cents=opening_cash_cents,
        clock_in=utcnow(),
        notes=(notes or "").strip() or None,
    )
    db.session.add(shift)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Already clocked in", details={"staff_id": staff_id})

    side_effects.audit("clock_in", "staff_shift", shift.id, actor_id=staff_id, new_value=shift.to_dict())
    side_effects.notify(
        title="Staff Clocked In",
        message=(
            f"Staff #{staff_id} clocked in on {register.name} "
            f"with an opening float of {format_currency(opening_cash_cents)}."
        ),
        type=NOTIF_CLOCK_IN,
        link=f"/admin/shifts/{shift.id}",
    )
    current_app.logger.info("Shift %s opened by staff %s on register %s", shift.id, staff_id, register.id)
    return shift


def compute_expected_cash(shift: StaffShift) -> int:
    """Opening float plus every cash payment on completed sales tied to this shift."""
    cash_in = (
        db.session.query(func.coalesce(func.sum(PosPayment.amount_cents), 0))
        .join(PosTransaction, PosTransaction.id == PosPayment.transaction_id)
        .filter(
            PosTransaction.shift_id == shift.id,
            PosTransaction.status == TRANSACTION_STATUS_COMPLETED,
            PosPayment.method == PAYMENT_METHOD_CASH,
        )
        .scalar()
    )
    return shift.opening_cash_cents + int(cash_in or 0)


def _discrepancy_label(difference_cents: int) -> str:
    if difference_cents > 0:
        return f"+{format_currency(difference_cents)} overage"
    return f"-{format_currency(abs(difference_cents))} shortage"


def clock_out(
    *,
    shift_id: int,
    closing_cash_cents: int,
    notes: str | None = None,
    actor_id: int,
    actor_role: str | None = None,
) -> StaffShift:
    """
    Close a shift and reconcile the drawer.

    IMMUTABLE: once closed the shift cannot be reopened. A sale committed
    while this runs bumps the shift version, so the close fails its
    optimistic check and is retried with that sale counted.

    Raises:
        ValidationError: negative or non-integer closing cash
        NotFoundError: unknown shift
        ForbiddenError: actor is neither the shift owner nor an admin
        ConflictError: shift already closed
    """
    if not isinstance(closing_cash_cents, int) or isinstance(closing_cash_cents, bool) or closing_cash_cents < 0:
        raise ValidationError(
            "Closing cash must be a non-negative integer (cents)",
            details={"closing_cash_cents": closing_cash_cents},
        )

    def _op() -> StaffShift:
        shift = lock_for_update(db.session.query(StaffShift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found", details={"shift_id": shift_id})
        if shift.staff_id != actor_id and actor_role != ROLE_ADMIN:
            raise ForbiddenError("Only the shift owner or an admin can clock out this shift", details={"shift_id": shift_id})
        if shift.status != SHIFT_STATUS_OPEN:
            raise ConflictError("Already clocked out", details={"shift_id": shift_id})

        expected = compute_expected_cash(shift)

        shift.status = SHIFT_STATUS_CLOSED
        shift.clock_out = utcnow()
        shift.closing_cash_cents = closing_cash_cents
        shift.expected_cash_cents = expected
        shift.cash_difference_cents = closing_cash_cents - expected
        if notes and notes.strip():
            shift.notes = notes.strip()

        db.session.commit()
        return shift

    shift = run_with_retry(_op)
    difference = shift.cash_difference_cents

    side_effects.audit(
        "clock_out",
        "staff_shift",
        shift.id,
        actor_id=actor_id,
        old_value={"status": SHIFT_STATUS_OPEN},
        new_value=shift.to_dict(),
    )
    side_effects.notify(
        title="Staff Clocked Out",
        message=(
            f"Staff #{shift.staff_id} clocked out. Expected {format_currency(shift.expected_cash_cents)}, "
            f"counted {format_currency(shift.closing_cash_cents)}."
        ),
        type=NOTIF_CLOCK_OUT,
        link=f"/admin/shifts/{shift.id}",
    )

    tolerance = current_app.config.get("CASH_DIFF_TOLERANCE_CENTS", 5000)
    if abs(difference) > tolerance:
        label = _discrepancy_label(difference)
        current_app.logger.warning("Cash discrepancy on shift %s: %s", shift.id, label)
        side_effects.notify(
            title="Cash Discrepancy Detected",
            message=f"Shift #{shift.id} (staff #{shift.staff_id}) closed with a {label}.",
            type=NOTIF_CASH_DISCREPANCY,
            link=f"/admin/shifts/{shift.id}",
        )

    return shift


# =============================================================================
# QUERIES
# =============================================================================

def get_shift(shift_id: int) -> StaffShift:
    shift = db.session.get(StaffShift, shift_id)
    if not shift:
        raise NotFoundError("Shift not found", details={"shift_id": shift_id})
    return shift


def get_active_shift(staff_id: int) -> StaffShift | None:
    """The staff member's open shift, if any."""
    return _get_open_shift(staff_id)


def list_open_shifts() -> list[StaffShift]:
    return (
        db.session.query(StaffShift)
        .filter_by(status=SHIFT_STATUS_OPEN)
        .order_by(StaffShift.clock_in)
        .all()
    )


def list_shifts(
    *,
    staff_id: int | None = None,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[StaffShift]:
    """Shift history, newest first, filtered by staff, status and clock-in range."""
    if status and status not in (SHIFT_STATUS_OPEN, SHIFT_STATUS_CLOSED):
        raise ValidationError(f"Unknown shift status: {status}", details={"status": status})

    query = db.session.query(StaffShift)
    if staff_id is not None:
        query = query.filter(StaffShift.staff_id == staff_id)
    if status:
        query = query.filter(StaffShift.status == status)
    if start is not None:
        query = query.filter(StaffShift.clock_in >= start)
    if end is not None:
        query = query.filter(StaffShift.clock_in < end)
    return query.order_by(StaffShift.clock_in.desc(), StaffShift.id.desc()).limit(limit).all()


def get_shift_summary(shift_id: int) -> dict:
    shift = get_shift(shift_id)

    completed = db.session.query(PosTransaction).filter(
        PosTransaction.shift_id == shift.id,
        PosTransaction.status == TRANSACTION_STATUS_COMPLETED,
    )
    transaction_count = completed.count()
    gross_sales = (
        db.session.query(func.coalesce(func.sum(PosTransaction.total_cents), 0))
        .filter(PosTransaction.shift_id == shift.id, PosTransaction.status == TRANSACTION_STATUS_COMPLETED)
        .scalar()
    )
    items_sold = (
        db.session.query(func.coalesce(func.sum(PosTransactionItem.quantity), 0))
        .join(PosTransaction, PosTransaction.id == PosTransactionItem.transaction_id)
        .filter(PosTransaction.shift_id == shift.id, PosTransaction.status == TRANSACTION_STATUS_COMPLETED)
        .scalar()
    )
    refunds = (
        db.session.query(func.count(PosReturn.id), func.coalesce(func.sum(PosReturn.refund_amount_cents), 0))
        .join(PosTransaction, PosTransaction.id == PosReturn.transaction_id)
        .filter(PosTransaction.shift_id == shift.id)
        .one()
    )

    expected = shift.expected_cash_cents if shift.status == SHIFT_STATUS_CLOSED else compute_expected_cash(shift)

    return {
        "shift": shift.to_dict(),
        "transaction_count": int(transaction_count),
        "items_sold": int(items_sold or 0),
        "gross_sales_cents": int(gross_sales or 0),
        "cash_sales_cents": expected - shift.opening_cash_cents,
        "expected_cash_cents": expected,
        "return_count": int(refunds[0] or 0),
        "refunds_cents": int(refunds[1] or 0),
        "generated_at": to_utc_z(utcnow()),
    }
