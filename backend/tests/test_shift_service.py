"""Shift reconciler: clock-in/clock-out lifecycle and cash reconciliation."""

from datetime import timedelta

import pytest

from conftest import ADMIN_ID, OTHER_STAFF_ID, STAFF_ID
from storepos.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from storepos.models import CashRegister, StaffShift
from storepos.services import refund_service, sales_service, shift_service
from storepos.services.notification_service import (
    NOTIF_CASH_DISCREPANCY,
    NOTIF_CLOCK_IN,
    NOTIF_CLOCK_OUT,
    get_recent_notifications,
)
from storepos.services.refund_service import RefundItemInput
from storepos.services.sales_service import SaleLineInput, PaymentInput
from storepos.time_utils import utcnow


def _cash_sale(shift, product_id, qty, amount_cents, received=None):
    return sales_service.record_sale(
        lines=[SaleLineInput(product_id, qty)],
        payments=[PaymentInput("cash", amount_cents, amount_received_cents=received)],
        shift_id=shift.id,
        staff_id=shift.staff_id,
    )


def _notifications(type):
    return get_recent_notifications(type=type)


class TestRegisters:

    def test_create_and_list_registers(self, db_session):
        shift_service.create_register("Front Counter 2", location="Main Floor")
        inactive = CashRegister(name="Old Till", is_active=False)
        db_session.add(inactive)
        db_session.commit()

        names = [r.name for r in shift_service.get_active_registers()]

        assert names == ["Front Counter 2"]

    def test_duplicate_register_name(self, db_session, register):
        with pytest.raises(ConflictError):
            shift_service.create_register(register.name)


class TestClockIn:

    def test_clock_in_opens_shift(self, db_session, register):
        shift = shift_service.clock_in(staff_id=STAFF_ID, register_id=register.id, opening_cash_cents=100000)

        assert shift.status == "open"
        assert shift.opening_cash_cents == 100000
        assert shift.clock_out is None
        assert shift.closing_cash_cents is None
        assert len(_notifications(NOTIF_CLOCK_IN)) == 1

    def test_second_clock_in_is_conflict(self, db_session, open_shift, register):
        with pytest.raises(ConflictError):
            shift_service.clock_in(staff_id=STAFF_ID, register_id=register.id, opening_cash_cents=0)

        assert db_session.query(StaffShift).filter_by(staff_id=STAFF_ID).count() == 1

    def test_open_shift_index_rejects_duplicate_insert(self, db_session, open_shift, register):
        """The partial unique index holds even when the friendly pre-check is bypassed."""
        from sqlalchemy.exc import IntegrityError

        db_session.add(StaffShift(
            staff_id=STAFF_ID,
            register_id=register.id,
            status="open",
            opening_cash_cents=0,
            clock_in=utcnow(),
        ))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_other_staff_can_clock_in_concurrently(self, db_session, open_shift, register):
        other = shift_service.clock_in(staff_id=OTHER_STAFF_ID, register_id=register.id, opening_cash_cents=0)

        assert other.status == "open"
        assert len(shift_service.list_open_shifts()) == 2

    def test_clock_in_again_after_clock_out(self, db_session, open_shift, register):
        shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=100000, actor_id=STAFF_ID)

        again = shift_service.clock_in(staff_id=STAFF_ID, register_id=register.id, opening_cash_cents=50000)

        assert again.id != open_shift.id

    def test_negative_opening_cash(self, db_session, register):
        with pytest.raises(ValidationError):
            shift_service.clock_in(staff_id=STAFF_ID, register_id=register.id, opening_cash_cents=-1)

    def test_unknown_register(self, db_session):
        with pytest.raises(NotFoundError):
            shift_service.clock_in(staff_id=STAFF_ID, register_id=99999, opening_cash_cents=0)

    def test_inactive_register(self, db_session, register):
        db_session.get(CashRegister, register.id).is_active = False
        db_session.commit()

        with pytest.raises(ConflictError):
            shift_service.clock_in(staff_id=STAFF_ID, register_id=register.id, opening_cash_cents=0)


class TestClockOut:

    def test_reconciliation_overage(self, db_session, open_shift, product):
        # Opening ₱1,000.00, cash sales of ₱200.00 and ₱300.00, counted ₱1,550.00
        _cash_sale(open_shift, product.id, 2, 20000)
        _cash_sale(open_shift, product.id, 3, 30000, received=50000)

        shift = shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=155000, actor_id=STAFF_ID)

        assert shift.expected_cash_cents == 150000
        assert shift.cash_difference_cents == 5000
        assert shift.status == "closed"
        assert shift.clock_out is not None
        assert len(_notifications(NOTIF_CLOCK_OUT)) == 1

    def test_difference_at_tolerance_does_not_notify(self, db_session, open_shift, product):
        _cash_sale(open_shift, product.id, 2, 20000)

        shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=125000, actor_id=STAFF_ID)

        assert _notifications(NOTIF_CASH_DISCREPANCY) == []

    def test_shortage_above_tolerance_notifies(self, db_session, open_shift, product):
        _cash_sale(open_shift, product.id, 2, 20000)

        shift = shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=110000, actor_id=STAFF_ID)

        assert shift.cash_difference_cents == -10000
        [note] = _notifications(NOTIF_CASH_DISCREPANCY)
        assert "shortage" in note.message
        assert "₱100.00" in note.message

    def test_overage_above_tolerance_notifies(self, db_session, open_shift):
        shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=106000, actor_id=STAFF_ID)

        [note] = _notifications(NOTIF_CASH_DISCREPANCY)
        assert "overage" in note.message

    def test_non_cash_payments_are_excluded(self, db_session, open_shift, product):
        sales_service.record_sale(
            lines=[SaleLineInput(product.id, 1)],
            payments=[PaymentInput("card", 10000)],
            shift_id=open_shift.id,
            staff_id=STAFF_ID,
        )

        shift = shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=100000, actor_id=STAFF_ID)

        assert shift.expected_cash_cents == 100000
        assert shift.cash_difference_cents == 0

    def test_other_shifts_sales_are_excluded(self, db_session, open_shift, register, product):
        other = shift_service.clock_in(staff_id=OTHER_STAFF_ID, register_id=register.id, opening_cash_cents=0)
        _cash_sale(other, product.id, 1, 10000)

        shift = shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=100000, actor_id=STAFF_ID)

        assert shift.expected_cash_cents == 100000

    def test_already_closed_is_conflict(self, db_session, open_shift):
        shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=100000, actor_id=STAFF_ID)

        with pytest.raises(ConflictError):
            shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=100000, actor_id=STAFF_ID)

    def test_unknown_shift(self, db_session):
        with pytest.raises(NotFoundError):
            shift_service.clock_out(shift_id=99999, closing_cash_cents=0, actor_id=STAFF_ID)

    def test_other_staff_cannot_clock_out(self, db_session, open_shift):
        with pytest.raises(ForbiddenError):
            shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=100000, actor_id=OTHER_STAFF_ID)

        assert db_session.get(StaffShift, open_shift.id).status == "open"

    def test_admin_can_clock_out_any_shift(self, db_session, open_shift):
        shift = shift_service.clock_out(
            shift_id=open_shift.id,
            closing_cash_cents=100000,
            actor_id=ADMIN_ID,
            actor_role="admin",
        )

        assert shift.status == "closed"

    def test_negative_closing_cash(self, db_session, open_shift):
        with pytest.raises(ValidationError):
            shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=-5, actor_id=STAFF_ID)


class TestQueries:

    def test_active_shift(self, db_session, open_shift):
        assert shift_service.get_active_shift(STAFF_ID).id == open_shift.id
        assert shift_service.get_active_shift(OTHER_STAFF_ID) is None

    def test_list_shifts_filters(self, db_session, open_shift, register):
        shift_service.clock_out(shift_id=open_shift.id, closing_cash_cents=100000, actor_id=STAFF_ID)
        shift_service.clock_in(staff_id=OTHER_STAFF_ID, register_id=register.id, opening_cash_cents=0)

        assert len(shift_service.list_shifts()) == 2
        assert [s.staff_id for s in shift_service.list_shifts(staff_id=STAFF_ID)] == [STAFF_ID]
        assert [s.staff_id for s in shift_service.list_shifts(status="open")] == [OTHER_STAFF_ID]
        assert shift_service.list_shifts(start=utcnow() + timedelta(hours=1)) == []
        assert len(shift_service.list_shifts(end=utcnow() + timedelta(hours=1))) == 2

    def test_list_shifts_unknown_status(self, db_session):
        with pytest.raises(ValidationError):
            shift_service.list_shifts(status="paused")

    def test_shift_summary(self, db_session, open_shift, product):
        txn = _cash_sale(open_shift, product.id, 2, 20000)
        sales_service.record_sale(
            lines=[SaleLineInput(product.id, 1)],
            payments=[PaymentInput("maya", 10000)],
            shift_id=open_shift.id,
            staff_id=STAFF_ID,
        )
        refund_service.process_refund(
            transaction_id=txn.id,
            items=[RefundItemInput(product_id=product.id, quantity=1, reason="Defective seam", condition="defective")],
            actor_id=STAFF_ID,
        )

        summary = shift_service.get_shift_summary(open_shift.id)

        assert summary["transaction_count"] == 2
        assert summary["items_sold"] == 3
        assert summary["gross_sales_cents"] == 30000
        assert summary["cash_sales_cents"] == 20000
        assert summary["expected_cash_cents"] == 120000
        assert summary["return_count"] == 1
        assert summary["refunds_cents"] == 10000
