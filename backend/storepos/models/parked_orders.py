from __future__ import annotations

from ..extensions import db
from storepos.time_utils import to_utc_z

class ParkedOrder(db.Model):
    """
    Cart put on hold at the till so the cashier can serve someone else.

    Holds no stock and no prices: lines are re-priced and stock-checked when
    the cart is restored and rung up as a normal sale. Hidden once expires_at
    passes; purge_expired() deletes those rows.
    """
    __tablename__ = "parked_orders"
    __table_args__ = (
        db.Index("ix_parked_orders_staff_created", "staff_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, nullable=False, index=True)

    customer_name = db.Column(db.String(128), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    # [{"product_id", "variant_id", "quantity", "discount_cents"}]
    cart_data = db.Column(db.JSON, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    @property
    def item_count(self) -> int:
        return sum(int(line.get("quantity", 0)) for line in self.cart_data or [])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "items": list(self.cart_data or []),
            "item_count": self.item_count,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at),
        }
