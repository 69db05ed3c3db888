from __future__ import annotations

from ..extensions import db
from storepos.time_utils import to_utc_z

TRANSACTION_STATUS_COMPLETED = "completed"
TRANSACTION_STATUS_VOIDED = "voided"

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CARD = "card"
PAYMENT_METHOD_GCASH = "gcash"
PAYMENT_METHOD_MAYA = "maya"
PAYMENT_METHOD_EWALLET = "ewallet"

VALID_PAYMENT_METHODS = (
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CARD,
    PAYMENT_METHOD_GCASH,
    PAYMENT_METHOD_MAYA,
    PAYMENT_METHOD_EWALLET,
)

class PosTransaction(db.Model):
    """
    Completed point-of-sale transaction (sale header).

    Immutable once completed. The only later writes are the refunded_quantity
    counters on its items, maintained by the refund processor.
    """
    __tablename__ = "pos_transactions"
    __table_args__ = (
        db.UniqueConstraint("receipt_number", name="uq_pos_transactions_receipt_number"),
        db.Index("ix_pos_transactions_shift_status", "shift_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable receipt number (e.g., "RCP-20261019-000042"); refund lookup key
    receipt_number = db.Column(db.String(64), nullable=False)

    shift_id = db.Column(db.Integer, db.ForeignKey("staff_shifts.id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, nullable=False, index=True)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)

    # subtotal - discount + tax = total
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    # Cash handling summary across all cash payments
    cash_received_cents = db.Column(db.Integer, nullable=True)
    change_given_cents = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=TRANSACTION_STATUS_COMPLETED, index=True)
    notes = db.Column(db.Text, nullable=True)

    # Optional customer attached at the till (loyalty id, e-receipt address)
    customer_id = db.Column(db.Integer, nullable=True, index=True)
    customer_email = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    shift = db.relationship("StaffShift", backref=db.backref("transactions", lazy=True))
    items = db.relationship(
        "PosTransactionItem",
        backref="transaction",
        lazy=True,
        order_by="PosTransactionItem.line_number",
    )
    payments = db.relationship(
        "PosPayment",
        backref="transaction",
        lazy=True,
        order_by="PosPayment.id",
    )

    @property
    def refund_status(self) -> str:
        sold = sum(item.quantity for item in self.items)
        refunded = sum(item.refunded_quantity for item in self.items)
        if refunded <= 0:
            return "none"
        if refunded >= sold:
            return "full"
        return "partial"

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "shift_id": self.shift_id,
            "staff_id": self.staff_id,
            "register_id": self.register_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "cash_received_cents": self.cash_received_cents,
            "change_given_cents": self.change_given_cents,
            "status": self.status,
            "refund_status": self.refund_status,
            "notes": self.notes,
            "customer_id": self.customer_id,
            "customer_email": self.customer_email,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data

class PosTransactionItem(db.Model):
    """
    Sale line with its unit price frozen at time of sale.

    refunded_quantity is the serialization point for refunds: it only moves
    through a conditional UPDATE that keeps it <= quantity.
    """
    __tablename__ = "pos_transaction_items"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "line_number", name="uq_pos_items_txn_line"),
        db.CheckConstraint("quantity > 0", name="ck_pos_items_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_pos_items_price_non_negative"),
        db.CheckConstraint(
            "discount_cents >= 0 AND discount_cents <= subtotal_cents",
            name="ck_pos_items_discount_within_subtotal",
        ),
        db.CheckConstraint(
            "refunded_quantity >= 0 AND refunded_quantity <= quantity",
            name="ck_pos_items_refunded_within_sold",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("pos_transactions.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    # quantity x unit_price_cents, before the line discount
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    refunded_quantity = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product")
    variant = db.relationship("ProductVariant")

    @property
    def net_cents(self) -> int:
        return self.subtotal_cents - (self.discount_cents or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product.name if self.product else None,
            "sku": (self.variant.sku if self.variant else None) or (self.product.sku if self.product else None),
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "net_cents": self.net_cents,
            "refunded_quantity": self.refunded_quantity,
        }

class PosPayment(db.Model):
    """
    One tender applied to a transaction (split payments have several).

    amount_cents is what the tender pays toward the total. For cash,
    amount_received_cents is what the customer handed over and
    change_cents = amount_received_cents - amount_cents.
    """
    __tablename__ = "pos_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_pos_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("pos_transactions.id"), nullable=False, index=True)

    method = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    amount_received_cents = db.Column(db.Integer, nullable=True)
    change_cents = db.Column(db.Integer, nullable=True)

    # Card approval code, e-wallet reference, etc.
    reference = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "amount_received_cents": self.amount_received_cents,
            "change_cents": self.change_cents,
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }
