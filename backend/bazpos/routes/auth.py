# Overview: Flask API routes for the shared admin password.

from flask import Blueprint, current_app, request

from ..results import SERVICE_ERRORS, fail, internal_error, ok, service_error
from ..services import auth_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/validate-password")
def validate_password_route():
    """
    Check the admin password.

    A wrong password is still a successful call: {"success": true, "valid": false}.
    """
    payload = request.get_json(silent=True) or {}
    try:
        return ok({"valid": auth_service.validate_admin_password(payload.get("password"))})
    except Exception:
        current_app.logger.exception("Admin password check failed")
        return internal_error()


@auth_bp.post("/password")
def change_password_route():
    """Set a new admin password; the current one must be supplied."""
    payload = request.get_json(silent=True) or {}
    try:
        if not auth_service.validate_admin_password(payload.get("currentPassword")):
            return fail("Current password is incorrect", 403)
        auth_service.set_admin_password(payload.get("newPassword"))
        return ok()
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to change admin password")
        return internal_error()
