# Overview: Flask API routes for defective-stock write-offs.

from flask import Blueprint, current_app, request

from ..results import SERVICE_ERRORS, internal_error, ok, service_error
from ..services import defect_service


defects_bp = Blueprint("defects", __name__, url_prefix="/api/defects")


@defects_bp.post("")
def record_defect_route():
    """
    Write off damaged units.

    Returns 409 with available/requested when the variant has too few units.
    """
    payload = request.get_json(silent=True) or {}
    try:
        defect_id = defect_service.record_defect(
            product_id=payload.get("productId"),
            color=payload.get("color"),
            size=payload.get("size"),
            quantity=payload.get("quantity"),
            reason=payload.get("reason"),
            purchase_price=payload.get("purchasePrice"),
            supplier_id=payload.get("supplierId"),
            shipment_date=payload.get("shipmentDate"),
            shipment_id=payload.get("shipmentId"),
            defect_id=payload.get("id"),
        )
        return ok({"defectId": defect_id}, 201)
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to record defect")
        return internal_error()


@defects_bp.get("")
def list_defects_route():
    try:
        defects = defect_service.list_defects(
            supplier_id=request.args.get("supplierId"),
            shipment_date=request.args.get("shipmentDate"),
            shipment_id=request.args.get("shipmentId"),
        )
        return ok({"defects": defects})
    except Exception:
        current_app.logger.exception("Failed to list defects")
        return internal_error()
