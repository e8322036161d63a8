# Overview: JSON result envelopes shared by every blueprint.

"""
Every endpoint answers with one of two shapes:

    {"success": true, ...payload}
    {"success": false, "message": "..."}

Service exceptions map to status codes here so the blueprints only decide
what to log.
"""

from flask import jsonify

from .validation import (
    InsufficientStockError,
    NotFoundError,
    TransactionConflictError,
    ValidationError,
)


# Order matters: first isinstance() match wins
ERROR_STATUS = (
    (InsufficientStockError, 409),
    (TransactionConflictError, 409),
    (NotFoundError, 404),
    (ValidationError, 400),
)

SERVICE_ERRORS = tuple(error_cls for error_cls, _ in ERROR_STATUS)


def ok(payload: dict | None = None, status: int = 200):
    return jsonify({"success": True, **(payload or {})}), status


def fail(message: str, status: int = 400, **extra):
    return jsonify({"success": False, "message": message, **extra}), status


def service_error(exc: Exception):
    """Failure result for one of SERVICE_ERRORS."""
    for error_cls, status in ERROR_STATUS:
        if isinstance(exc, error_cls):
            if isinstance(exc, InsufficientStockError):
                return fail(str(exc), status, available=exc.available, requested=exc.requested)
            return fail(str(exc), status)
    raise TypeError(f"Not a service error: {exc!r}")


def internal_error():
    return fail("Internal server error", 500)
