# Overview: Flask API routes for clock-in/clock-out and shift reporting.

"""
Shift API Routes

- POST /api/shifts/clock-in          open a shift for the caller
- POST /api/shifts/<id>/clock-out    close and reconcile (owner or admin)
- GET  /api/shifts/active            caller's open shift (or null)
- GET  /api/shifts                   history (?staff_id, ?status, ?start, ?end)
- GET  /api/shifts/<id>/summary      sales/refund totals for one shift
- GET  /api/shifts/registers         active cash registers
"""

from flask import Blueprint, request, current_app, g

from .. import actions, validation
from ..actions import ActionResult
from ..errors import PosError, ForbiddenError
from ..identity import require_staff


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


def _server_error():
    return {"success": False, "error": "Internal server error", "code": "SERVER_ERROR"}, 500


@shifts_bp.post("/clock-in")
@require_staff
def clock_in_route():
    """
    Request body:
    {
        "register_id": 1,
        "opening_cash_cents": 100000,
        "notes": "optional"
    }
    """
    try:
        parsed = validation.parse_clock_in_payload(request.get_json(silent=True))
        return actions.clock_in(staff_id=g.staff.staff_id, **parsed).to_response()
    except PosError as e:
        return ActionResult.fail(e).to_response()
    except Exception:
        current_app.logger.exception("Failed to clock in")
        return _server_error()


@shifts_bp.post("/<int:shift_id>/clock-out")
@require_staff
def clock_out_route(shift_id: int):
    """
    Request body:
    {
        "closing_cash_cents": 155000,
        "notes": "optional"
    }
    """
    try:
        parsed = validation.parse_clock_out_payload(request.get_json(silent=True))
        result = actions.clock_out(
            shift_id=shift_id,
            actor_id=g.staff.staff_id,
            actor_role=g.staff.role,
            **parsed,
        )
        return result.to_response()
    except PosError as e:
        return ActionResult.fail(e).to_response()
    except Exception:
        current_app.logger.exception("Failed to clock out shift %s", shift_id)
        return _server_error()


@shifts_bp.get("/active")
@require_staff
def active_shift_route():
    try:
        return actions.get_active_shift(g.staff.staff_id).to_response()
    except Exception:
        current_app.logger.exception("Failed to load active shift")
        return _server_error()


@shifts_bp.get("")
@shifts_bp.get("/")
@require_staff
def list_shifts_route():
    """Non-admins only ever see their own shifts."""
    try:
        staff_id = validation.optional_int("staff_id", request.args.get("staff_id"), minimum=1)
        if not g.staff.is_admin:
            if staff_id is not None and staff_id != g.staff.staff_id:
                raise ForbiddenError("Only admins can view other staff members' shifts")
            staff_id = g.staff.staff_id

        result = actions.list_shifts(
            staff_id=staff_id,
            status=validation.optional_str(request.args.get("status")),
            start=validation.parse_datetime_param("start", request.args.get("start")),
            end=validation.parse_datetime_param("end", request.args.get("end")),
        )
        return result.to_response()
    except PosError as e:
        return ActionResult.fail(e).to_response()
    except Exception:
        current_app.logger.exception("Failed to list shifts")
        return _server_error()


@shifts_bp.get("/<int:shift_id>/summary")
@require_staff
def shift_summary_route(shift_id: int):
    try:
        return actions.get_shift_summary(shift_id).to_response()
    except Exception:
        current_app.logger.exception("Failed to summarize shift %s", shift_id)
        return _server_error()


@shifts_bp.get("/registers")
@require_staff
def list_registers_route():
    try:
        return actions.list_registers().to_response()
    except Exception:
        current_app.logger.exception("Failed to list registers")
        return _server_error()
