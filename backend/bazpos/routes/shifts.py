# Overview: Flask API routes for shift settlement; parses input and returns JSON responses.

# backend/bazpos/routes/shifts.py
"""
Shift routes.

Time semantics:
- Shift windows are [startedAt, endedAt) in UTC, serialized with a trailing Z.
- /preview computes the open shift's figures without closing it.
"""

from flask import Blueprint, current_app, request

from ..results import SERVICE_ERRORS, fail, internal_error, ok, service_error
from ..services import shift_service


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("/close")
def close_shift_route():
    """Body: {"endedBy": username, "actualCashCounted": amount}"""
    payload = request.get_json(silent=True) or {}
    try:
        shift = shift_service.close_shift(
            ended_by=payload.get("endedBy"),
            actual_cash_counted=payload.get("actualCashCounted"),
        )
        return ok({"shift": shift}, 201)
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return internal_error()


@shifts_bp.get("/preview")
def preview_shift_route():
    try:
        return ok({"preview": shift_service.preview_shift()})
    except Exception:
        current_app.logger.exception("Failed to preview shift")
        return internal_error()


@shifts_bp.get("")
def list_shifts_route():
    limit = request.args.get("limit", 50, type=int)
    if limit is None or limit < 1:
        return fail("limit must be a positive integer", 400)
    try:
        return ok({"shifts": shift_service.list_shifts(limit=limit)})
    except Exception:
        current_app.logger.exception("Failed to list shifts")
        return internal_error()


@shifts_bp.get("/<shift_id>")
def get_shift_route(shift_id: str):
    try:
        return ok({"shift": shift_service.get_shift(shift_id)})
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to load shift %s", shift_id)
        return internal_error()
