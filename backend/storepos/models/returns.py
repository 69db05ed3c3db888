from __future__ import annotations

from ..extensions import db
from storepos.time_utils import to_utc_z

CONDITION_UNOPENED = "unopened"
CONDITION_OPENED = "opened"
CONDITION_DEFECTIVE = "defective"
CONDITION_DAMAGED = "damaged"

VALID_CONDITIONS = (
    CONDITION_UNOPENED,
    CONDITION_OPENED,
    CONDITION_DEFECTIVE,
    CONDITION_DAMAGED,
)

class PosReturn(db.Model):
    """
    Refund processed against a prior POS transaction.

    Immutable once created. A second refund against the same transaction is a
    new PosReturn for the remaining refundable quantity.
    """
    __tablename__ = "pos_returns"
    __table_args__ = (
        db.UniqueConstraint("return_number", name="uq_pos_returns_return_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable return number (e.g., "RET-20261019-0007")
    return_number = db.Column(db.String(64), nullable=False)

    transaction_id = db.Column(db.Integer, db.ForeignKey("pos_transactions.id"), nullable=False, index=True)

    # Sum of item refund_cents
    refund_amount_cents = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.Text, nullable=True)
    processed_by_staff_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    transaction = db.relationship("PosTransaction", backref=db.backref("returns", lazy=True))
    items = db.relationship("PosReturnItem", backref="pos_return", lazy=True, order_by="PosReturnItem.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_number": self.return_number,
            "transaction_id": self.transaction_id,
            "receipt_number": self.transaction.receipt_number if self.transaction else None,
            "refund_amount_cents": self.refund_amount_cents,
            "notes": self.notes,
            "processed_by_staff_id": self.processed_by_staff_id,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }

class PosReturnItem(db.Model):
    """Returned quantity of one sale line, priced at the line's frozen unit price less its discount share."""
    __tablename__ = "pos_return_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_pos_return_items_quantity_positive"),
        db.Index("ix_pos_return_items_txn_product", "transaction_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("pos_returns.id"), nullable=False, index=True)

    transaction_id = db.Column(db.Integer, db.ForeignKey("pos_transactions.id"), nullable=False)
    transaction_item_id = db.Column(db.Integer, db.ForeignKey("pos_transaction_items.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    # Share of the sale line discount handed back with these units
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    refund_cents = db.Column(db.Integer, nullable=False)

    condition = db.Column(db.String(16), nullable=False)
    reason = db.Column(db.Text, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "transaction_item_id": self.transaction_item_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "refund_cents": self.refund_cents,
            "condition": self.condition,
            "reason": self.reason,
        }
