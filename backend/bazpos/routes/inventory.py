# Overview: Flask API routes for variant stock; parses input and returns JSON responses.

# backend/bazpos/routes/inventory.py
"""
Stock routes.

Adjustments posted together are applied as one unit: if any of them would
take a variant below zero, none is written.
"""

from flask import Blueprint, current_app, request

from ..results import SERVICE_ERRORS, fail, internal_error, ok, service_error
from ..services import stock_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/adjust")
def adjust_stock_route():
    """
    Body: {"adjustments": [{"productId", "color", "size", "delta"}, ...]}
    """
    payload = request.get_json(silent=True) or {}
    raw = payload.get("adjustments")
    if not isinstance(raw, list) or not raw:
        return fail("adjustments must be a non-empty list", 400)

    try:
        adjustments = [
            stock_service.VariantAdjustment.build(
                item.get("productId"), item.get("color"), item.get("size"), item.get("delta"),
            )
            for item in raw
            if isinstance(item, dict)
        ]
        if len(adjustments) != len(raw):
            return fail("Each adjustment must be an object", 400)

        results = stock_service.apply_adjustments(adjustments)
        return ok({
            "quantities": [
                {"productId": p, "color": c, "size": s, "quantity": q}
                for (p, c, s), q in results.items()
            ]
        })
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return internal_error()


@inventory_bp.get("/<product_id>")
def product_stock_route(product_id: str):
    try:
        return ok({"stock": stock_service.get_product_stock(product_id)})
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to load stock for %s", product_id)
        return internal_error()
