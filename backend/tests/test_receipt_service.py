"""Receipt snapshots: generated once per sale, reprinted unchanged."""

import pytest

from conftest import STAFF_ID
from storepos.errors import NotFoundError
from storepos.models import PosReceipt, Product
from storepos.services import receipt_service, sales_service
from storepos.services.sales_service import SaleLineInput, PaymentInput


class TestGenerateReceipt:

    def test_snapshot_contents(self, db_session, open_shift, register, product, second_product):
        txn = sales_service.record_sale(
            lines=[SaleLineInput(product.id, 2, discount_cents=1000), SaleLineInput(second_product.id, 1)],
            payments=[PaymentInput("cash", 44000, amount_received_cents=50000)],
            shift_id=open_shift.id,
            staff_id=STAFF_ID,
            customer_email="ana@example.com",
        )

        receipt, created = receipt_service.generate_receipt(txn.id)
        data = receipt.receipt_data

        assert created is True
        assert data["receipt_number"] == txn.receipt_number
        assert data["register"] == register.name
        assert data["served_by"] == STAFF_ID
        assert data["customer_email"] == "ana@example.com"
        assert [(i["name"], i["quantity"], i["subtotal_cents"]) for i in data["items"]] == [
            (product.name, 2, 19000),
            (second_product.name, 1, 25000),
        ]
        assert data["subtotal_cents"] == 45000
        assert data["discount_cents"] == 1000
        assert data["total_cents"] == 44000
        assert data["payments"][0]["change_cents"] == 6000

    def test_reprint_returns_stored_snapshot(self, db_session, make_sale, product):
        txn = make_sale((product.id, 1))
        first, _ = receipt_service.generate_receipt(txn.id)

        db_session.get(Product, product.id).name = "Renamed Tee"
        db_session.commit()

        again, created = receipt_service.generate_receipt(txn.id)

        assert created is False
        assert again.id == first.id
        assert again.receipt_data["items"][0]["name"] == "Black Tee (M)"
        assert db_session.query(PosReceipt).count() == 1

    def test_unknown_transaction(self, db_session):
        with pytest.raises(NotFoundError):
            receipt_service.generate_receipt(99999)
