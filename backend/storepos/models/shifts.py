from __future__ import annotations

from ..extensions import db
from storepos.time_utils import to_utc_z

SHIFT_STATUS_OPEN = "open"
SHIFT_STATUS_CLOSED = "closed"

class CashRegister(db.Model):
    """
    Physical POS register/terminal with its own cash drawer.

    Registers are never deleted; inactive registers cannot host new shifts.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_cash_registers_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    location = db.Column(db.String(128), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

class StaffShift(db.Model):
    """
    A staff member's register session, from clock-in to clock-out.

    LIFECYCLE:
    - open: clocked in, may record sales
    - closed: clocked out, cash counted, difference computed

    IMMUTABLE: Once closed, the shift cannot be reopened or modified.

    At most one open shift per staff member, enforced by a partial unique
    index so concurrent clock-ins cannot both succeed.
    """
    __tablename__ = "staff_shifts"
    __table_args__ = (
        db.Index(
            "uq_staff_shifts_one_open_per_staff",
            "staff_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        db.Index("ix_staff_shifts_staff_clock_in", "staff_id", "clock_in"),
        db.CheckConstraint("opening_cash_cents >= 0", name="ck_staff_shifts_opening_cash"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, nullable=False, index=True)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_STATUS_OPEN, index=True)

    # Cash tracking (all amounts in cents)
    opening_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_cash_cents = db.Column(db.Integer, nullable=True)
    expected_cash_cents = db.Column(db.Integer, nullable=True)  # opening + cash sales
    cash_difference_cents = db.Column(db.Integer, nullable=True)  # closing - expected

    clock_in = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    clock_out = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    register = db.relationship("CashRegister", backref=db.backref("shifts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_STATUS_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "register_id": self.register_id,
            "status": self.status,
            "opening_cash_cents": self.opening_cash_cents,
            "closing_cash_cents": self.closing_cash_cents,
            "expected_cash_cents": self.expected_cash_cents,
            "cash_difference_cents": self.cash_difference_cents,
            "clock_in": to_utc_z(self.clock_in),
            "clock_out": to_utc_z(self.clock_out) if self.clock_out else None,
            "notes": self.notes,
            "version_id": self.version_id,
        }
