"""Inventory ledger: guarded, never-negative stock adjustments."""

import pytest

from storepos.errors import NotFoundError, ValidationError
from storepos.models import Product, ProductVariant, InventoryMovement
from storepos.services import inventory_service


class TestAdjust:

    def test_decrement_reduces_stock_and_logs_movement(self, db_session, product):
        movement = inventory_service.decrement(product.id, 3, reference="RCP-TEST-1")
        db_session.commit()

        assert db_session.get(Product, product.id).stock_quantity == 7
        assert movement.quantity_delta == -3
        assert movement.quantity_after == 7
        assert movement.reason == inventory_service.MOVEMENT_SALE
        assert movement.reference == "RCP-TEST-1"

    def test_increment_restocks(self, db_session, product):
        inventory_service.increment(product.id, 5)
        db_session.commit()

        assert db_session.get(Product, product.id).stock_quantity == 15

    def test_decrement_to_exactly_zero_is_allowed(self, db_session, product):
        inventory_service.decrement(product.id, 10)
        db_session.commit()

        assert db_session.get(Product, product.id).stock_quantity == 0

    def test_decrement_below_zero_is_rejected(self, db_session, product):
        with pytest.raises(ValidationError) as exc:
            inventory_service.decrement(product.id, 11)
        db_session.rollback()

        assert exc.value.details["on_hand"] == 10
        assert exc.value.details["requested_quantity"] == 11
        assert db_session.get(Product, product.id).stock_quantity == 10
        assert db_session.query(InventoryMovement).count() == 0

    def test_unknown_product_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.decrement(99999, 1)

    def test_zero_delta_is_rejected(self, db_session, product):
        with pytest.raises(ValidationError):
            inventory_service.adjust(product.id, 0, reason=inventory_service.MOVEMENT_SALE)

    def test_variant_stock_is_tracked_separately(self, db_session, product, variant):
        inventory_service.decrement(product.id, 2, variant.id)
        db_session.commit()
        db_session.expire_all()

        assert db_session.get(ProductVariant, variant.id).stock_quantity == 2
        assert db_session.get(Product, product.id).stock_quantity == 10

    def test_variant_must_belong_to_product(self, db_session, product, second_product, variant):
        with pytest.raises(NotFoundError):
            inventory_service.decrement(second_product.id, 1, variant.id)


class TestMovements:

    def test_movements_are_listed_oldest_first(self, db_session, product):
        inventory_service.decrement(product.id, 2, reference="RCP-A")
        inventory_service.increment(product.id, 1, reference="RET-A")
        db_session.commit()

        movements = inventory_service.get_movements(product.id)

        assert [m.quantity_delta for m in movements] == [-2, 1]
        assert [m.quantity_after for m in movements] == [8, 9]
