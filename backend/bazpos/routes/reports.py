# Overview: Flask API routes for computed report figures (receipts, bookings, salaries).

# backend/bazpos/routes/reports.py
"""
Report figure routes.

These return numbers only. Layout, PDF and spreadsheet generation happen on
the client.
"""

from flask import Blueprint, current_app, request

from ..results import SERVICE_ERRORS, internal_error, ok, service_error
from ..services import ledger_store, reporting_service
from ..services.ledger_store import BOOKINGS


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/salaries")
def salary_report_route():
    """?month=YYYY-MM"""
    try:
        return ok({"rows": reporting_service.salary_report(request.args.get("month"))})
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to build salary report")
        return internal_error()


@reports_bp.get("/receipts/<sale_id>")
def sale_receipt_route(sale_id: str):
    try:
        return ok({"receipt": reporting_service.get_sale_receipt(sale_id)})
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to build receipt for sale %s", sale_id)
        return internal_error()


@reports_bp.get("/bookings/<booking_id>")
def booking_receipt_route(booking_id: str):
    try:
        booking = ledger_store.require_document(BOOKINGS, booking_id)
        return ok({"booking": reporting_service.booking_totals(booking)})
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to build booking receipt %s", booking_id)
        return internal_error()
