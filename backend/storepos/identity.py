# Overview: Acting-staff identity for API routes.

"""
The identity collaborator is external: an upstream gateway authenticates the
staff member and forwards who they are in two headers. Routes trust them.

- X-Staff-Id: integer staff id (required)
- X-Staff-Role: "admin" or "staff" (defaults to "staff")
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import request, jsonify, g


STAFF_ID_HEADER = "X-Staff-Id"
STAFF_ROLE_HEADER = "X-Staff-Role"

ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"
VALID_ROLES = (ROLE_ADMIN, ROLE_STAFF)


@dataclass(frozen=True)
class StaffIdentity:
    staff_id: int
    role: str = ROLE_STAFF

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def require_staff(f):
    """
    Require the identity headers and expose them as g.staff.

    Returns 401 if the staff id is missing or not a positive integer,
    and 403 for an unknown role.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_id = (request.headers.get(STAFF_ID_HEADER) or "").strip()
        if not raw_id:
            return jsonify({"success": False, "error": "Staff identity required", "code": "UNAUTHENTICATED"}), 401
        if not raw_id.isdigit() or int(raw_id) <= 0:
            return jsonify({"success": False, "error": "Invalid staff identity", "code": "UNAUTHENTICATED"}), 401

        role = (request.headers.get(STAFF_ROLE_HEADER) or ROLE_STAFF).strip().lower()
        if role not in VALID_ROLES:
            return jsonify({"success": False, "error": f"Unknown staff role: {role}", "code": "FORBIDDEN"}), 403

        g.staff = StaffIdentity(staff_id=int(raw_id), role=role)
        return f(*args, **kwargs)

    return decorated_function
