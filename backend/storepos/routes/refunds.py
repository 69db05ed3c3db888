# Overview: Flask API routes for receipt lookup and item-level refunds.

"""
Refund API Routes

- GET  /api/pos/refunds/lookup/<receipt>  sale lines with refundable quantities
- POST /api/pos/refunds                   refund items and restock them

A refund request is all-or-nothing: any invalid item rejects the request.
"""

from flask import Blueprint, request, current_app, g

from .. import actions, validation
from ..actions import ActionResult
from ..errors import PosError
from ..identity import require_staff


refunds_bp = Blueprint("refunds", __name__, url_prefix="/api/pos/refunds")


@refunds_bp.get("/lookup/<string:receipt_number>")
@require_staff
def lookup_route(receipt_number: str):
    try:
        return actions.lookup_transaction(receipt_number).to_response()
    except Exception:
        current_app.logger.exception("Failed to look up receipt %s", receipt_number)
        return {"success": False, "error": "Internal server error", "code": "SERVER_ERROR"}, 500


@refunds_bp.post("")
@refunds_bp.post("/")
@require_staff
def process_refund_route():
    """
    Process a refund against a prior sale.

    Request body:
    {
        "receipt_number": "RCP-20261019-000001",   (or "transaction_id": 1)
        "items": [
            {"product_id": 3, "quantity": 1, "reason": "Torn packaging", "condition": "damaged"}
        ],
        "notes": "optional"
    }
    """
    try:
        parsed = validation.parse_refund_payload(request.get_json(silent=True))
        result = actions.process_refund(actor_id=g.staff.staff_id, **parsed)
        return result.to_response()
    except PosError as e:
        return ActionResult.fail(e).to_response()
    except Exception:
        current_app.logger.exception("Failed to process refund")
        return {"success": False, "error": "Internal server error", "code": "SERVER_ERROR"}, 500
