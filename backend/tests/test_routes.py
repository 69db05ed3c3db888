"""HTTP surface: blueprints render ActionResult payloads with matching status codes."""

from conftest import ADMIN_ID, OTHER_STAFF_ID, STAFF_ID, staff_headers
from storepos.models import PosReturn, Product


def _sale_body(shift_id, product_id, qty=1, amount=10000, received=None):
    payment = {"method": "cash", "amount_cents": amount}
    if received is not None:
        payment["amount_received_cents"] = received
    return {
        "shift_id": shift_id,
        "items": [{"product_id": product_id, "quantity": qty}],
        "payments": [payment],
    }


def _clock_in(client, register_id, staff_id=STAFF_ID, opening=100000):
    return client.post(
        "/api/shifts/clock-in",
        json={"register_id": register_id, "opening_cash_cents": opening},
        headers=staff_headers(staff_id),
    )


class TestIdentity:

    def test_missing_staff_header_is_401(self, client, db_session):
        resp = client.get("/api/shifts/active")
        assert resp.status_code == 401

    def test_malformed_staff_header_is_401(self, client, db_session):
        resp = client.get("/api/shifts/active", headers={"X-Staff-Id": "abc"})
        assert resp.status_code == 401

    def test_unknown_role_is_403(self, client, db_session):
        resp = client.get("/api/shifts/active", headers=staff_headers(role="owner"))
        assert resp.status_code == 403


class TestShiftRoutes:

    def test_clock_in_and_active(self, client, db_session, register):
        resp = _clock_in(client, register.id)
        assert resp.status_code == 201
        shift_id = resp.get_json()["data"]["shift"]["id"]

        active = client.get("/api/shifts/active", headers=staff_headers())
        assert active.get_json()["data"]["shift"]["id"] == shift_id

    def test_double_clock_in_is_409(self, client, db_session, register):
        _clock_in(client, register.id)
        resp = _clock_in(client, register.id)

        assert resp.status_code == 409
        body = resp.get_json()
        assert body["success"] is False
        assert body["code"] == "CONFLICT"

    def test_clock_in_rejects_decimal_cash(self, client, db_session, register):
        resp = client.post(
            "/api/shifts/clock-in",
            json={"register_id": register.id, "opening_cash_cents": 100.5},
            headers=staff_headers(),
        )
        assert resp.status_code == 400

    def test_clock_out_reconciles(self, client, db_session, register, product):
        shift_id = _clock_in(client, register.id).get_json()["data"]["shift"]["id"]
        client.post("/api/pos/transactions", json=_sale_body(shift_id, product.id, 2, 20000), headers=staff_headers())
        client.post("/api/pos/transactions", json=_sale_body(shift_id, product.id, 3, 30000), headers=staff_headers())

        resp = client.post(
            f"/api/shifts/{shift_id}/clock-out",
            json={"closing_cash_cents": 155000},
            headers=staff_headers(),
        )

        assert resp.status_code == 200
        shift = resp.get_json()["data"]["shift"]
        assert shift["expected_cash_cents"] == 150000
        assert shift["cash_difference_cents"] == 5000

    def test_clock_out_by_other_staff_is_403(self, client, db_session, register):
        shift_id = _clock_in(client, register.id).get_json()["data"]["shift"]["id"]

        resp = client.post(
            f"/api/shifts/{shift_id}/clock-out",
            json={"closing_cash_cents": 100000},
            headers=staff_headers(OTHER_STAFF_ID),
        )
        assert resp.status_code == 403

    def test_clock_out_by_admin(self, client, db_session, register):
        shift_id = _clock_in(client, register.id).get_json()["data"]["shift"]["id"]

        resp = client.post(
            f"/api/shifts/{shift_id}/clock-out",
            json={"closing_cash_cents": 100000},
            headers=staff_headers(ADMIN_ID, role="admin"),
        )
        assert resp.status_code == 200

    def test_clock_out_twice_is_409(self, client, db_session, register):
        shift_id = _clock_in(client, register.id).get_json()["data"]["shift"]["id"]
        body = {"closing_cash_cents": 100000}
        client.post(f"/api/shifts/{shift_id}/clock-out", json=body, headers=staff_headers())

        resp = client.post(f"/api/shifts/{shift_id}/clock-out", json=body, headers=staff_headers())
        assert resp.status_code == 409

    def test_history_is_scoped_for_staff(self, client, db_session, register):
        _clock_in(client, register.id)
        _clock_in(client, register.id, staff_id=OTHER_STAFF_ID)

        own = client.get("/api/shifts", headers=staff_headers())
        assert own.get_json()["data"]["count"] == 1

        denied = client.get(f"/api/shifts?staff_id={OTHER_STAFF_ID}", headers=staff_headers())
        assert denied.status_code == 403

        everyone = client.get("/api/shifts", headers=staff_headers(ADMIN_ID, role="admin"))
        assert everyone.get_json()["data"]["count"] == 2

    def test_history_rejects_bad_date(self, client, db_session):
        resp = client.get("/api/shifts?start=yesterday", headers=staff_headers())
        assert resp.status_code == 400

    def test_summary_and_registers(self, client, db_session, register, product):
        shift_id = _clock_in(client, register.id).get_json()["data"]["shift"]["id"]
        client.post("/api/pos/transactions", json=_sale_body(shift_id, product.id), headers=staff_headers())

        summary = client.get(f"/api/shifts/{shift_id}/summary", headers=staff_headers()).get_json()["data"]
        assert summary["transaction_count"] == 1
        assert summary["cash_sales_cents"] == 10000

        registers = client.get("/api/shifts/registers", headers=staff_headers()).get_json()["data"]["registers"]
        assert [r["name"] for r in registers] == [register.name]

    def test_summary_unknown_shift_is_404(self, client, db_session):
        resp = client.get("/api/shifts/99999/summary", headers=staff_headers())
        assert resp.status_code == 404


class TestPosRoutes:

    def test_record_and_fetch_sale(self, client, db_session, open_shift, product):
        resp = client.post(
            "/api/pos/transactions",
            json=_sale_body(open_shift.id, product.id, 2, 20000, received=50000),
            headers=staff_headers(),
        )
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["transaction"]["change_given_cents"] == 30000

        fetched = client.get(f"/api/pos/transactions/{data['receipt_number']}", headers=staff_headers())
        assert fetched.status_code == 200
        assert fetched.get_json()["data"]["transaction"]["returns"] == []

    def test_insufficient_stock_is_400(self, client, db_session, open_shift, product):
        resp = client.post(
            "/api/pos/transactions",
            json=_sale_body(open_shift.id, product.id, 11, 110000),
            headers=staff_headers(),
        )

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock_quantity == 10

    def test_missing_body_is_400(self, client, db_session, open_shift):
        resp = client.post("/api/pos/transactions", headers=staff_headers())
        assert resp.status_code == 400

    def test_unknown_receipt_is_404(self, client, db_session):
        resp = client.get("/api/pos/transactions/RCP-19990101-000001", headers=staff_headers())
        assert resp.status_code == 404

    def test_sale_with_discount_and_customer_email(self, client, db_session, open_shift, product):
        body = _sale_body(open_shift.id, product.id, 2, 18000)
        body["items"][0]["discount_cents"] = 2000
        body["customer_email"] = "ana@example.com"

        resp = client.post("/api/pos/transactions", json=body, headers=staff_headers())

        assert resp.status_code == 201
        txn = resp.get_json()["data"]["transaction"]
        assert txn["discount_cents"] == 2000
        assert txn["customer_email"] == "ana@example.com"

    def test_receipt_generated_then_reprinted(self, client, db_session, make_sale, product):
        txn = make_sale((product.id, 1))
        url = f"/api/pos/transactions/{txn.receipt_number}/receipt"

        first = client.post(url, headers=staff_headers())
        again = client.post(url, headers=staff_headers())

        assert first.status_code == 201
        assert again.status_code == 200
        assert again.get_json()["data"]["receipt"] == first.get_json()["data"]["receipt"]

    def test_receipt_for_unknown_sale_is_404(self, client, db_session):
        resp = client.post("/api/pos/transactions/RCP-19990101-000001/receipt", headers=staff_headers())
        assert resp.status_code == 404


class TestParkedOrderRoutes:

    def test_park_list_restore(self, client, db_session, product):
        parked = client.post(
            "/api/pos/parked",
            json={"items": [{"product_id": product.id, "quantity": 1}], "customer_name": "Ana"},
            headers=staff_headers(),
        )
        assert parked.status_code == 201
        order_id = parked.get_json()["data"]["parked_order"]["id"]

        listed = client.get("/api/pos/parked", headers=staff_headers())
        assert [o["id"] for o in listed.get_json()["data"]["parked_orders"]] == [order_id]

        fetched = client.get(f"/api/pos/parked/{order_id}", headers=staff_headers())
        assert fetched.get_json()["data"]["parked_order"]["customer_name"] == "Ana"

        restored = client.post(f"/api/pos/parked/{order_id}/restore", headers=staff_headers())
        assert restored.status_code == 200
        assert restored.get_json()["data"]["parked_order"]["items"][0]["product_id"] == product.id

        gone = client.get(f"/api/pos/parked/{order_id}", headers=staff_headers())
        assert gone.status_code == 404

    def test_delete_parked_order(self, client, db_session, product):
        parked = client.post(
            "/api/pos/parked",
            json={"items": [{"product_id": product.id, "quantity": 1}]},
            headers=staff_headers(),
        )
        order_id = parked.get_json()["data"]["parked_order"]["id"]

        deleted = client.delete(f"/api/pos/parked/{order_id}", headers=staff_headers())
        assert deleted.status_code == 200
        assert client.delete(f"/api/pos/parked/{order_id}", headers=staff_headers()).status_code == 404

    def test_park_empty_cart_is_400(self, client, db_session):
        resp = client.post("/api/pos/parked", json={"items": []}, headers=staff_headers())
        assert resp.status_code == 400


class TestRefundRoutes:

    def _sell(self, client, shift_id, product_id, qty):
        resp = client.post(
            "/api/pos/transactions",
            json=_sale_body(shift_id, product_id, qty, qty * 10000),
            headers=staff_headers(),
        )
        return resp.get_json()["data"]["receipt_number"]

    def test_lookup_and_refund_by_receipt(self, client, db_session, open_shift, product):
        receipt = self._sell(client, open_shift.id, product.id, 3)

        lookup = client.get(f"/api/pos/refunds/lookup/{receipt}", headers=staff_headers())
        assert lookup.status_code == 200
        assert lookup.get_json()["data"]["lines"][0]["quantity_refundable"] == 3

        resp = client.post(
            "/api/pos/refunds",
            json={
                "receipt_number": receipt,
                "items": [{"product_id": product.id, "quantity": 2, "reason": "Wrong size", "condition": "unopened"}],
                "notes": "Exchange not available",
            },
            headers=staff_headers(),
        )
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["refund_amount_cents"] == 20000
        assert data["return_number"].startswith("RET-")

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock_quantity == 9

    def test_short_reason_is_400_and_writes_nothing(self, client, db_session, open_shift, product):
        receipt = self._sell(client, open_shift.id, product.id, 1)

        resp = client.post(
            "/api/pos/refunds",
            json={
                "receipt_number": receipt,
                "items": [{"product_id": product.id, "quantity": 1, "reason": "x", "condition": "opened"}],
            },
            headers=staff_headers(),
        )

        assert resp.status_code == 400
        assert db_session.query(PosReturn).count() == 0

    def test_over_refund_is_409(self, client, db_session, open_shift, product):
        receipt = self._sell(client, open_shift.id, product.id, 1)

        resp = client.post(
            "/api/pos/refunds",
            json={
                "receipt_number": receipt,
                "items": [{"product_id": product.id, "quantity": 2, "reason": "Broken zipper", "condition": "defective"}],
            },
            headers=staff_headers(),
        )
        assert resp.status_code == 409

    def test_lookup_unknown_receipt_is_404(self, client, db_session):
        resp = client.get("/api/pos/refunds/lookup/RCP-19990101-000001", headers=staff_headers())
        assert resp.status_code == 404

    def test_refund_requires_transaction_reference(self, client, db_session):
        resp = client.post("/api/pos/refunds", json={"items": []}, headers=staff_headers())
        assert resp.status_code == 400
