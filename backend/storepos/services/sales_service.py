"""
Transaction Recorder

The only writer of POS sales. A sale is recorded in one database
transaction: stock is decremented through the Inventory Ledger, then the
header, line items and payments are inserted. Any failure (insufficient
stock, payment mismatch, closed shift) rolls the whole thing back, so there
is never a partial sale.

Unit prices are read from the catalog at call time and frozen on each line;
later catalog price changes never touch a recorded sale.

Recording is NOT idempotent: replaying a request sells twice. Callers must
not blindly retry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import PosTransaction, PosTransactionItem, PosPayment, StaffShift
from ..models.shifts import SHIFT_STATUS_OPEN
from ..models.sales import (
    PAYMENT_METHOD_CASH,
    TRANSACTION_STATUS_COMPLETED,
    VALID_PAYMENT_METHODS,
)
from ..errors import NotFoundError, ValidationError, ForbiddenError
from ..money import apply_rate_bps, format_currency
from storepos.time_utils import utcnow
from . import catalog_service, inventory_service, side_effects
from .concurrency import conditional_update, lock_for_update, run_with_retry
from .document_service import next_document_number, DOCUMENT_TYPE_RECEIPT
from .notification_service import NOTIF_POS_SALE


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class SaleLineInput:
    product_id: int
    quantity: int
    variant_id: Optional[int] = None
    discount_cents: int = 0


@dataclass(frozen=True)
class PaymentInput:
    method: str
    amount_cents: int
    amount_received_cents: Optional[int] = None
    reference: Optional[str] = None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def normalize_lines(lines: list[SaleLineInput]) -> list[SaleLineInput]:
    """Validate quantities and merge repeated product/variant lines, keeping first-seen order."""
    if not lines:
        raise ValidationError("A sale needs at least one line item")

    merged: dict[tuple[int, int | None], tuple[int, int]] = {}
    for line in lines:
        if not _is_int(line.quantity) or line.quantity <= 0:
            raise ValidationError(
                "Line quantity must be a positive integer",
                details={"product_id": line.product_id, "quantity": line.quantity},
            )
        if not _is_int(line.discount_cents) or line.discount_cents < 0:
            raise ValidationError(
                "Line discount must be a non-negative integer (cents)",
                details={"product_id": line.product_id, "discount_cents": line.discount_cents},
            )
        key = (line.product_id, line.variant_id)
        qty, discount = merged.get(key, (0, 0))
        merged[key] = (qty + line.quantity, discount + line.discount_cents)

    return [
        SaleLineInput(product_id=product_id, variant_id=variant_id, quantity=qty, discount_cents=discount)
        for (product_id, variant_id), (qty, discount) in merged.items()
    ]


def _check_stock(lines: list[SaleLineInput]) -> None:
    """
    Re-validate availability for every line before touching inventory.

    The guarded decrement in inventory_service is the real protection; this
    pass exists to reject the whole sale with a complete list of short lines.
    """
    insufficient = []
    for line in lines:
        on_hand = catalog_service.get_stock_quantity(line.product_id, line.variant_id)
        if on_hand < line.quantity:
            insufficient.append({
                "product_id": line.product_id,
                "variant_id": line.variant_id,
                "requested_quantity": line.quantity,
                "on_hand": on_hand,
            })

    if insufficient:
        raise ValidationError("Insufficient stock to complete sale", details={"items": insufficient})


def _normalize_email(value: str | None) -> str | None:
    email = (value or "").strip().lower()
    if not email:
        return None
    if len(email) > 255 or not EMAIL_RE.match(email):
        raise ValidationError("Invalid customer email", details={"customer_email": value})
    return email


def _check_discounts(priced: list[tuple[SaleLineInput, int]]) -> None:
    for line, unit_price in priced:
        if line.discount_cents > line.quantity * unit_price:
            raise ValidationError(
                "Line discount cannot exceed the line subtotal",
                details={
                    "product_id": line.product_id,
                    "variant_id": line.variant_id,
                    "discount_cents": line.discount_cents,
                    "subtotal_cents": line.quantity * unit_price,
                },
            )


def _build_payments(payments: list[PaymentInput], total_cents: int) -> list[PosPayment]:
    if not payments:
        raise ValidationError("At least one payment is required")

    rows = []
    for payment in payments:
        method = (payment.method or "").strip().lower()
        if method not in VALID_PAYMENT_METHODS:
            raise ValidationError(
                f"Invalid payment method: {payment.method}. Must be one of {list(VALID_PAYMENT_METHODS)}",
                details={"method": payment.method},
            )
        if not _is_int(payment.amount_cents) or payment.amount_cents <= 0:
            raise ValidationError("Payment amount must be a positive integer (cents)", details={"method": method})

        received = None
        change = None
        if method == PAYMENT_METHOD_CASH:
            received = payment.amount_cents if payment.amount_received_cents is None else payment.amount_received_cents
            if not _is_int(received) or received < payment.amount_cents:
                raise ValidationError(
                    "Insufficient cash received",
                    details={"amount_cents": payment.amount_cents, "amount_received_cents": received},
                )
            change = received - payment.amount_cents

        rows.append(PosPayment(
            method=method,
            amount_cents=payment.amount_cents,
            amount_received_cents=received,
            change_cents=change,
            reference=payment.reference,
            created_at=utcnow(),
        ))

    paid = sum(row.amount_cents for row in rows)
    if paid != total_cents:
        raise ValidationError(
            f"Payment total ({format_currency(paid)}) does not match transaction total ({format_currency(total_cents)})",
            details={"payments_total_cents": paid, "total_cents": total_cents},
        )
    return rows


def _require_open_shift(shift_id: int, staff_id: int) -> StaffShift:
    shift = lock_for_update(db.session.query(StaffShift).filter_by(id=shift_id)).first()
    if not shift:
        raise NotFoundError("Shift not found", details={"shift_id": shift_id})
    if not shift.is_open:
        raise ValidationError("No active shift. Please clock in first.", details={"shift_id": shift_id})
    if shift.staff_id != staff_id:
        raise ForbiddenError("Sales can only be recorded on your own open shift", details={"shift_id": shift_id})

    # Bump the shift version while it is still open. A concurrent clock-out
    # then fails its optimistic version check and recomputes expected cash
    # with this sale included.
    table = StaffShift.__table__
    claimed = conditional_update(
        update(table)
        .where(table.c.id == shift_id, table.c.status == SHIFT_STATUS_OPEN)
        .values(version_id=table.c.version_id + 1)
    )
    if not claimed:
        raise ValidationError("No active shift. Please clock in first.", details={"shift_id": shift_id})
    return shift


def record_sale(
    *,
    lines: list[SaleLineInput],
    payments: list[PaymentInput],
    shift_id: int,
    staff_id: int,
    notes: str | None = None,
    customer_id: int | None = None,
    customer_email: str | None = None,
) -> PosTransaction:
    """
    Record a completed sale against an open shift.

    Line discounts come off the subtotal before tax:
    total = subtotal - discount + tax.

    Side effects, in order: decrement stock for every line, insert the
    transaction header and line items, persist payments with change.
    Audit entry and sale notification are dispatched after commit.

    Raises:
        ValidationError: empty cart, bad quantity or discount, insufficient
            stock, payment mismatch, no open shift
        NotFoundError: unknown shift or product
        ForbiddenError: shift belongs to another staff member
    """
    normalized = normalize_lines(lines)
    customer_email = _normalize_email(customer_email)

    def _op() -> PosTransaction:
        shift = _require_open_shift(shift_id, staff_id)

        priced = [
            (line, catalog_service.get_unit_price_cents(line.product_id, line.variant_id))
            for line in normalized
        ]
        _check_discounts(priced)
        _check_stock(normalized)

        subtotal = sum(line.quantity * unit_price for line, unit_price in priced)
        discount = sum(line.discount_cents for line, _ in priced)
        tax = apply_rate_bps(subtotal - discount, current_app.config.get("TAX_RATE_BPS", 0))
        total = subtotal - discount + tax

        payment_rows = _build_payments(payments, total)

        receipt_number = next_document_number(
            document_type=DOCUMENT_TYPE_RECEIPT,
            prefix=current_app.config.get("RECEIPT_PREFIX", "RCP"),
            pad=6,
        )

        for line, _ in priced:
            inventory_service.decrement(
                line.product_id,
                line.quantity,
                line.variant_id,
                reference=receipt_number,
                actor_id=staff_id,
            )

        cash_rows = [row for row in payment_rows if row.method == PAYMENT_METHOD_CASH]

        txn = PosTransaction(
            receipt_number=receipt_number,
            shift_id=shift.id,
            staff_id=staff_id,
            register_id=shift.register_id,
            subtotal_cents=subtotal,
            discount_cents=discount,
            tax_cents=tax,
            total_cents=total,
            cash_received_cents=sum(row.amount_received_cents for row in cash_rows) if cash_rows else None,
            change_given_cents=sum(row.change_cents for row in cash_rows) if cash_rows else None,
            status=TRANSACTION_STATUS_COMPLETED,
            notes=notes,
            customer_id=customer_id,
            customer_email=customer_email,
            created_at=utcnow(),
        )
        db.session.add(txn)
        db.session.flush()

        for number, (line, unit_price) in enumerate(priced, start=1):
            db.session.add(PosTransactionItem(
                transaction_id=txn.id,
                line_number=number,
                product_id=line.product_id,
                variant_id=line.variant_id,
                quantity=line.quantity,
                unit_price_cents=unit_price,
                subtotal_cents=line.quantity * unit_price,
                discount_cents=line.discount_cents,
                refunded_quantity=0,
            ))

        for row in payment_rows:
            row.transaction_id = txn.id
            db.session.add(row)

        db.session.commit()
        return txn

    txn = run_with_retry(_op)

    side_effects.audit(
        "create",
        "pos_transaction",
        txn.id,
        actor_id=staff_id,
        new_value=txn.to_dict(),
    )
    item_count = sum(item.quantity for item in txn.items)
    side_effects.notify(
        title=f"POS Sale — {format_currency(txn.total_cents)}",
        message=(
            f"{item_count} item{'s' if item_count != 1 else ''} sold via POS for "
            f"{format_currency(txn.total_cents)} ({txn.receipt_number})."
        ),
        type=NOTIF_POS_SALE,
        link=f"/admin/pos?receipt={txn.receipt_number}",
    )

    return txn


# =============================================================================
# QUERIES
# =============================================================================

def get_transaction(transaction_id: int) -> PosTransaction:
    txn = db.session.get(PosTransaction, transaction_id)
    if not txn:
        raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
    return txn


def get_transaction_by_receipt(receipt_number: str) -> PosTransaction:
    receipt_number = (receipt_number or "").strip()
    txn = db.session.query(PosTransaction).filter_by(receipt_number=receipt_number).first()
    if not txn:
        raise NotFoundError(
            "Transaction not found. Check the receipt number and try again.",
            details={"receipt_number": receipt_number},
        )
    return txn


def get_shift_transactions(shift_id: int, *, status: str | None = TRANSACTION_STATUS_COMPLETED) -> list[PosTransaction]:
    """All transactions recorded on a shift, oldest first."""
    query = db.session.query(PosTransaction).filter_by(shift_id=shift_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(PosTransaction.created_at, PosTransaction.id).all()
