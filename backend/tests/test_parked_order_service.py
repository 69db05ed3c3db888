"""Parked carts: on-hold orders that reserve nothing and expire."""

from datetime import timedelta

import pytest

from conftest import STAFF_ID, OTHER_STAFF_ID
from storepos.errors import NotFoundError, ValidationError
from storepos.models import ParkedOrder, Product
from storepos.services import parked_order_service, sales_service
from storepos.services.audit_service import get_audit_trail
from storepos.services.sales_service import SaleLineInput, PaymentInput
from storepos.time_utils import utcnow


def _park(product, staff_id=STAFF_ID, **kwargs):
    return parked_order_service.park_order(
        staff_id=staff_id,
        lines=[SaleLineInput(product.id, 2)],
        **kwargs,
    )


class TestParkOrder:

    def test_park_stores_cart_and_customer(self, db_session, product):
        order = _park(product, customer_name="  Ana Cruz ", customer_phone="09171234567", notes="Getting wallet")

        assert order.customer_name == "Ana Cruz"
        assert order.customer_phone == "09171234567"
        assert order.cart_data == [{"product_id": product.id, "variant_id": None, "quantity": 2, "discount_cents": 0}]
        assert order.item_count == 2
        assert order.expires_at - order.created_at == timedelta(hours=24)

    def test_parking_reserves_no_stock(self, db_session, product):
        _park(product)

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock_quantity == 10

    def test_ttl_comes_from_config(self, app, db_session, product):
        app.config["PARKED_ORDER_TTL_HOURS"] = 2
        try:
            order = _park(product)
        finally:
            app.config["PARKED_ORDER_TTL_HOURS"] = 24

        assert order.expires_at - order.created_at == timedelta(hours=2)

    def test_empty_cart_is_rejected(self, db_session):
        with pytest.raises(ValidationError):
            parked_order_service.park_order(staff_id=STAFF_ID, lines=[])

    def test_unknown_product_is_rejected(self, db_session):
        with pytest.raises(NotFoundError):
            parked_order_service.park_order(staff_id=STAFF_ID, lines=[SaleLineInput(99999, 1)])

        assert db_session.query(ParkedOrder).count() == 0

    def test_park_is_audited(self, db_session, product):
        order = _park(product)

        [audit] = get_audit_trail("parked_order", order.id)
        assert audit.action == "park"


class TestListAndRetrieve:

    def test_list_hides_expired_and_sorts_newest_first(self, db_session, product):
        older = _park(product, customer_name="First")
        newer = _park(product, customer_name="Second")
        expired = _park(product, customer_name="Gone")
        expired.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        listed = parked_order_service.list_parked_orders()

        assert [o.id for o in listed] == [newer.id, older.id]

    def test_list_filters_by_staff(self, db_session, product):
        mine = _park(product)
        _park(product, staff_id=OTHER_STAFF_ID)

        assert [o.id for o in parked_order_service.list_parked_orders(staff_id=STAFF_ID)] == [mine.id]

    def test_expired_order_cannot_be_retrieved(self, db_session, product):
        order = _park(product)

        later = order.expires_at + timedelta(seconds=1)
        with pytest.raises(NotFoundError):
            parked_order_service.get_parked_order(order.id, now=later)

    def test_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            parked_order_service.get_parked_order(99999)


class TestRestoreAndDelete:

    def test_restored_cart_rings_up_as_a_sale(self, db_session, open_shift, product):
        order = _park(product)
        lines = parked_order_service.cart_lines(order)

        snapshot = parked_order_service.restore_parked_order(order.id, actor_id=STAFF_ID)
        txn = sales_service.record_sale(
            lines=lines,
            payments=[PaymentInput("cash", 20000)],
            shift_id=open_shift.id,
            staff_id=STAFF_ID,
        )

        assert snapshot["id"] == order.id
        assert txn.items[0].quantity == 2
        assert db_session.query(ParkedOrder).count() == 0

    def test_delete_removes_order(self, db_session, product):
        order = _park(product)
        order_id = order.id

        parked_order_service.delete_parked_order(order_id, actor_id=STAFF_ID)

        assert db_session.get(ParkedOrder, order_id) is None
        with pytest.raises(NotFoundError):
            parked_order_service.delete_parked_order(order_id)

    def test_purge_expired(self, db_session, product):
        keep = _park(product)
        stale = _park(product)
        stale.expires_at = utcnow() - timedelta(hours=1)
        db_session.commit()
        stale_id = stale.id

        assert parked_order_service.purge_expired() == 1

        assert db_session.query(ParkedOrder).filter_by(id=stale_id).count() == 0
        assert db_session.query(ParkedOrder).filter_by(id=keep.id).count() == 1
