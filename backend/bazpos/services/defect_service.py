# Overview: Service-layer operations for defective-stock write-offs.

"""
Defect Service

WHY: Damaged or returned-to-supplier units leave inventory without a sale.
The write-off must check and consume stock in the same transaction: two
clerks writing off the last units of a variant at once must not both pass
the stock check.

DESIGN:
- A defect is created once and never updated in place.
- The defect carries an explicit shipmentId when the caller knows it. The
  supplierId + shipmentDate pair is kept for statements of older records that
  predate the explicit reference.
"""

from __future__ import annotations

import uuid

from flask import current_app

from ..time_utils import safe_parse_iso_datetime, to_utc_z, utcnow
from ..validation import (
    ProductNotFoundError,
    ValidationError,
    coerce_amount,
    coerce_positive_int,
    require_text,
)
from . import ledger_store
from .ledger_store import DEFECTS, PRODUCTS, SHIPMENTS
from .stock_service import VariantAdjustment, adjust_variant_quantity


def new_defect_id() -> str:
    return f"DF{uuid.uuid4().hex[:12].upper()}"


def record_defect(
    product_id: str,
    color: str,
    size: str,
    quantity,
    reason: str,
    purchase_price,
    supplier_id: str,
    shipment_date: str,
    *,
    shipment_id: str | None = None,
    defect_id: str | None = None,
) -> str:
    """
    Write off `quantity` units of one variant and record the defect.

    Returns:
        The defect id

    Raises:
        ValidationError: Malformed input or unknown shipment reference
        ProductNotFoundError: Product does not exist
        InsufficientStockError: quantity exceeds the variant's stock
    """
    product_id = require_text(product_id, "productId")
    color = require_text(color, "color")
    size = require_text(size, "size")
    quantity = coerce_positive_int(quantity, "quantity")
    reason = require_text(reason, "reason")
    price = coerce_amount(purchase_price, "purchasePrice")
    supplier_id = require_text(supplier_id, "supplierId")
    shipment_date = require_text(shipment_date, "shipmentDate")
    if safe_parse_iso_datetime(shipment_date) is None:
        raise ValidationError("shipmentDate must be an ISO-8601 date")
    defect_id = require_text(defect_id, "id") if defect_id is not None else new_defect_id()

    def _op():
        if ledger_store.get_row(DEFECTS, defect_id) is not None:
            raise ValidationError(f"Defect {defect_id} already recorded")

        if shipment_id is not None:
            shipment = ledger_store.get_document(SHIPMENTS, shipment_id)
            if shipment is None:
                raise ValidationError(f"Shipment {shipment_id} not found")
            if shipment.get("supplierId") != supplier_id:
                raise ValidationError(f"Shipment {shipment_id} is not from supplier {supplier_id}")

        product = ledger_store.get_document(PRODUCTS, product_id, lock=True)
        if product is None:
            raise ProductNotFoundError(f"Product with ID {product_id} not found.")

        # check-then-decrement happens inside adjust_variant_quantity
        remaining = adjust_variant_quantity(VariantAdjustment(product_id, color, size, -quantity))

        ledger_store.set_document(DEFECTS, defect_id, {
            "productId": product_id,
            "productName": product.get("name"),
            "color": color,
            "size": size,
            "quantity": quantity,
            "purchasePrice": price,
            "reason": reason,
            "supplierId": supplier_id,
            "shipmentDate": shipment_date,
            "shipmentId": shipment_id,
            "createdAt": to_utc_z(utcnow()),
        })
        return remaining

    remaining = ledger_store.transaction(_op)
    current_app.logger.info(
        "Recorded defect %s: %s x %s/%s of %s (%s left)",
        defect_id, quantity, color, size, product_id, remaining,
    )
    return defect_id


def list_defects(
    *,
    supplier_id: str | None = None,
    shipment_date: str | None = None,
    shipment_id: str | None = None,
) -> list[dict]:
    defects = ledger_store.list_documents(DEFECTS)
    if shipment_id is not None:
        defects = [d for d in defects if d.get("shipmentId") == shipment_id]
    if supplier_id is not None:
        defects = [d for d in defects if d.get("supplierId") == supplier_id]
    if shipment_date is not None:
        defects = [d for d in defects if d.get("shipmentDate") == shipment_date]
    return defects
