from __future__ import annotations

from ..extensions import db
from storepos.time_utils import to_utc_z

class PosReceipt(db.Model):
    """
    Printable snapshot of a completed sale, generated once per transaction.

    receipt_data is frozen at generation time; reprints return the same
    document even if product names change later.
    """
    __tablename__ = "pos_receipts"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_pos_receipts_transaction"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("pos_transactions.id"), nullable=False)
    receipt_number = db.Column(db.String(64), nullable=False, index=True)
    receipt_data = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship("PosTransaction", backref=db.backref("receipt", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "receipt_number": self.receipt_number,
            "receipt": self.receipt_data,
            "created_at": to_utc_z(self.created_at),
        }
