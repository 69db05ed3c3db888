"""
Error taxonomy for the POS core.

Services raise these; the action boundary (storepos.actions) converts them
into structured ActionResult failures so nothing escapes to the operator as
an uncaught exception.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for expected, operator-facing failures."""

    code = "POS_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(PosError):
    """Unknown transaction, shift, register or product."""

    code = "NOT_FOUND"
    http_status = 404


class ConflictError(PosError):
    """State conflict: already clocked in/out, refund exceeds sold quantity."""

    code = "CONFLICT"
    http_status = 409


class ValidationError(PosError):
    """Bad input: short reason, non-positive quantity, payment mismatch, insufficient stock."""

    code = "VALIDATION_ERROR"
    http_status = 400


class ForbiddenError(PosError):
    """Acting staff member may not operate on someone else's shift."""

    code = "FORBIDDEN"
    http_status = 403


class ServerError(PosError):
    """Underlying datastore failure."""

    code = "SERVER_ERROR"
    http_status = 500
