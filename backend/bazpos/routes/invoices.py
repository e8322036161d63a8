# Overview: Flask API routes for supplier invoices (shipments) and shipment statements.

from flask import Blueprint, current_app, request

from ..results import SERVICE_ERRORS, internal_error, ok, service_error
from ..services import invoice_service, reporting_service


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.post("")
def commit_invoice_route():
    """
    Receive a supplier invoice.

    Body: {"supplierId", "date", "shippingCost", "items": [...]}
    Returns 201 with the new shipmentId.
    """
    payload = request.get_json(silent=True) or {}
    try:
        shipment_id = invoice_service.commit_invoice(
            supplier_id=payload.get("supplierId"),
            date=payload.get("date"),
            shipping_cost=payload.get("shippingCost", 0),
            line_items=payload.get("items"),
        )
        return ok({"shipmentId": shipment_id}, 201)
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to commit invoice")
        return internal_error()


@invoices_bp.get("")
def list_invoices_route():
    try:
        shipments = invoice_service.list_shipments(
            supplier_id=request.args.get("supplierId"),
            date=request.args.get("date"),
        )
        return ok({"shipments": shipments})
    except Exception:
        current_app.logger.exception("Failed to list shipments")
        return internal_error()


@invoices_bp.get("/statement")
def shipment_statement_route():
    """Supplier statement for one delivery day: ?supplierId=...&date=YYYY-MM-DD"""
    try:
        statement = reporting_service.shipment_statement(
            request.args.get("supplierId"),
            request.args.get("date"),
        )
        return ok({"statement": statement})
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to build shipment statement")
        return internal_error()


@invoices_bp.get("/<shipment_id>")
def get_invoice_route(shipment_id: str):
    try:
        return ok({"shipment": invoice_service.get_shipment(shipment_id)})
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to load shipment %s", shipment_id)
        return internal_error()
