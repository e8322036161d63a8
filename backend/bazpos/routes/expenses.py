# Overview: Flask API routes for daily expenses.

from flask import Blueprint, current_app, request

from ..results import SERVICE_ERRORS, internal_error, ok, service_error
from ..services import expense_service


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
def list_expenses_route():
    try:
        return ok({"expenses": expense_service.list_daily_expenses()})
    except Exception:
        current_app.logger.exception("Failed to list expenses")
        return internal_error()


@expenses_bp.post("")
def create_expense_route():
    payload = request.get_json(silent=True) or {}
    try:
        return ok({"expense": expense_service.save_daily_expense(payload)}, 201)
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to save expense")
        return internal_error()


@expenses_bp.put("/<expense_id>")
def update_expense_route(expense_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        return ok({"expense": expense_service.update_daily_expense(expense_id, payload)})
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to update expense %s", expense_id)
        return internal_error()


@expenses_bp.delete("/<expense_id>")
def delete_expense_route(expense_id: str):
    try:
        expense_service.delete_daily_expense(expense_id)
        return ok()
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete expense %s", expense_id)
        return internal_error()
