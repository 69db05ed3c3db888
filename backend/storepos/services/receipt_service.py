# Overview: Printable receipt snapshots for completed sales.

"""
A receipt is generated at most once per transaction and stored as a JSON
snapshot. Later calls (reprints) return the stored document unchanged.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PosReceipt, PosTransaction
from ..money import format_currency
from storepos.time_utils import to_utc_z
from .sales_service import get_transaction


def build_receipt_data(txn: PosTransaction) -> dict:
    """Assemble the snapshot from the sale as recorded; nothing is re-priced."""
    register = txn.shift.register if txn.shift else None
    return {
        "receipt_number": txn.receipt_number,
        "transaction_id": txn.id,
        "issued_at": to_utc_z(txn.created_at),
        "register": register.name if register else None,
        "served_by": txn.staff_id,
        "customer_email": txn.customer_email,
        "items": [
            {
                "line_number": item.line_number,
                "name": item.product.name if item.product else None,
                "sku": (item.variant.sku if item.variant else None) or (item.product.sku if item.product else None),
                "variant": item.variant.label if item.variant else None,
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "discount_cents": item.discount_cents,
                "subtotal_cents": item.net_cents,
            }
            for item in txn.items
        ],
        "subtotal_cents": txn.subtotal_cents,
        "discount_cents": txn.discount_cents,
        "tax_cents": txn.tax_cents,
        "total_cents": txn.total_cents,
        "total_display": format_currency(txn.total_cents),
        "payments": [
            {
                "method": payment.method,
                "amount_cents": payment.amount_cents,
                "amount_received_cents": payment.amount_received_cents,
                "change_cents": payment.change_cents,
                "reference": payment.reference,
            }
            for payment in txn.payments
        ],
        "cash_received_cents": txn.cash_received_cents,
        "change_given_cents": txn.change_given_cents,
        "notes": txn.notes,
    }


def get_receipt(transaction_id: int) -> PosReceipt | None:
    return db.session.query(PosReceipt).filter_by(transaction_id=transaction_id).first()


def generate_receipt(transaction_id: int) -> tuple[PosReceipt, bool]:
    """
    Return the transaction's receipt, creating it on first request.

    Returns (receipt, created).

    Raises:
        NotFoundError: transaction does not exist
    """
    existing = get_receipt(transaction_id)
    if existing:
        return existing, False

    txn = get_transaction(transaction_id)
    receipt = PosReceipt(
        transaction_id=txn.id,
        receipt_number=txn.receipt_number,
        receipt_data=build_receipt_data(txn),
    )
    db.session.add(receipt)
    try:
        db.session.commit()
    except IntegrityError:
        # Another terminal printed first; theirs is the receipt of record.
        db.session.rollback()
        return get_receipt(transaction_id), False

    current_app.logger.info("Receipt generated for %s", txn.receipt_number)
    return receipt, True
