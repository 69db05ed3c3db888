# Overview: Flask API routes for sales, receipts and parked carts at the till.

"""
POS Sales API Routes

- POST /api/pos/transactions            record a sale on the caller's open shift
- GET  /api/pos/transactions/<receipt>  read a sale with its returns
- POST /api/pos/transactions/<receipt>/receipt  print or reprint its receipt
- POST /api/pos/parked                  park a cart
- GET  /api/pos/parked                  unexpired parked carts
- GET  /api/pos/parked/<id>             one parked cart
- POST /api/pos/parked/<id>/restore     take a cart off hold
- DELETE /api/pos/parked/<id>           discard a parked cart
"""

from flask import Blueprint, request, current_app, g

from .. import actions, validation
from ..actions import ActionResult
from ..errors import PosError
from ..identity import require_staff


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _server_error():
    return {"success": False, "error": "Internal server error", "code": "SERVER_ERROR"}, 500


@pos_bp.post("/transactions")
@require_staff
def record_sale_route():
    """
    Record a completed sale.

    Request body:
    {
        "shift_id": 1,
        "items": [{"product_id": 3, "quantity": 2, "variant_id": null, "discount_cents": 0}],
        "payments": [{"method": "cash", "amount_cents": 20000, "amount_received_cents": 50000}],
        "customer_email": "optional", "notes": "optional"
    }
    """
    try:
        parsed = validation.parse_sale_payload(request.get_json(silent=True))
        result = actions.record_sale(staff_id=g.staff.staff_id, **parsed)
        return result.to_response()
    except PosError as e:
        return ActionResult.fail(e).to_response()
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return _server_error()


@pos_bp.get("/transactions/<string:receipt_number>")
@require_staff
def get_transaction_route(receipt_number: str):
    try:
        return actions.get_transaction(receipt_number).to_response()
    except Exception:
        current_app.logger.exception("Failed to load transaction %s", receipt_number)
        return _server_error()


@pos_bp.post("/transactions/<string:receipt_number>/receipt")
@require_staff
def generate_receipt_route(receipt_number: str):
    """Print (first call) or reprint a receipt; 201 when it was just generated."""
    try:
        return actions.generate_receipt(receipt_number).to_response()
    except Exception:
        current_app.logger.exception("Failed to generate receipt for %s", receipt_number)
        return _server_error()


# =============================================================================
# PARKED ORDERS
# =============================================================================

@pos_bp.post("/parked")
@require_staff
def park_order_route():
    """
    Put a cart on hold.

    Request body:
    {
        "items": [{"product_id": 3, "quantity": 2}],
        "customer_name": "Ana", "customer_phone": "0917...", "notes": "optional"
    }
    """
    try:
        parsed = validation.parse_park_payload(request.get_json(silent=True))
        return actions.park_order(staff_id=g.staff.staff_id, **parsed).to_response()
    except PosError as e:
        return ActionResult.fail(e).to_response()
    except Exception:
        current_app.logger.exception("Failed to park order")
        return _server_error()


@pos_bp.get("/parked")
@require_staff
def list_parked_orders_route():
    try:
        staff_id = validation.optional_int("staff_id", request.args.get("staff_id"), minimum=1)
        return actions.list_parked_orders(staff_id).to_response()
    except PosError as e:
        return ActionResult.fail(e).to_response()
    except Exception:
        current_app.logger.exception("Failed to list parked orders")
        return _server_error()


@pos_bp.get("/parked/<int:order_id>")
@require_staff
def get_parked_order_route(order_id: int):
    try:
        return actions.get_parked_order(order_id).to_response()
    except Exception:
        current_app.logger.exception("Failed to load parked order %s", order_id)
        return _server_error()


@pos_bp.post("/parked/<int:order_id>/restore")
@require_staff
def restore_parked_order_route(order_id: int):
    try:
        return actions.restore_parked_order(order_id, actor_id=g.staff.staff_id).to_response()
    except Exception:
        current_app.logger.exception("Failed to restore parked order %s", order_id)
        return _server_error()


@pos_bp.delete("/parked/<int:order_id>")
@require_staff
def delete_parked_order_route(order_id: int):
    try:
        return actions.delete_parked_order(order_id, actor_id=g.staff.staff_id).to_response()
    except Exception:
        current_app.logger.exception("Failed to delete parked order %s", order_id)
        return _server_error()
