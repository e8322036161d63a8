# Overview: Service-layer operations for supplier invoices (shipments); encapsulates business logic.

"""
Invoice (Shipment) Service

WHY: A supplier delivery is the only way stock enters the shop. Receiving it
must raise every variant quantity and record what the delivery cost, as a
single unit: a half-received invoice would leave stock and cost disagreeing.

ONE TRANSACTION:
1. Products flagged isNew are created first (with zero stock), so the reads
   below see them.
2. Every product is re-read from the store; the caller's copy is never
   trusted for quantities or purchase price.
3. Each (color, size, quantity > 0) raises stock through the stock ledger and
   appends one flattened line to the shipment.
4. The shipment record is written with totalCost = sum(quantity * purchasePrice).

IMMUTABLE: Once committed a shipment is never edited. Defects recorded later
reference it instead.
"""

from __future__ import annotations

import copy
import re
import time
from dataclasses import dataclass, field

from flask import current_app

from ..money import cents_to_money, money_to_cents
from ..time_utils import safe_parse_iso_datetime, to_utc_z, utcnow
from ..validation import (
    ProductNotFoundError,
    ValidationError,
    coerce_amount,
    require_text,
    validate_quantity_map,
)
from . import ledger_store
from .ledger_store import PRODUCTS, SHIPMENTS
from .stock_service import VariantAdjustment, adjust_variant_quantity


SHIPMENT_PREFIX = "SH"


@dataclass
class InvoiceLine:
    """One line of an incoming invoice, before it is flattened per variant."""
    product_id: str
    quantities: dict[str, dict[str, int]]
    is_new: bool = False
    product_data: dict | None = field(default=None)

    @classmethod
    def from_payload(cls, payload: dict, index: int) -> "InvoiceLine":
        if not isinstance(payload, dict):
            raise ValidationError(f"items[{index}] must be an object")

        is_new = bool(payload.get("isNew"))
        product_data = payload.get("productData")

        if is_new:
            if not isinstance(product_data, dict):
                raise ValidationError(f"items[{index}] is new but has no productData")
            product_id = require_text(product_data.get("id") or payload.get("productId"), f"items[{index}].productData.id")
            if payload.get("productId") and str(payload["productId"]).strip() != product_id:
                raise ValidationError(f"items[{index}].productId does not match productData.id")
            require_text(product_data.get("name"), f"items[{index}].productData.name")
            coerce_amount(product_data.get("purchasePrice"), f"items[{index}].productData.purchasePrice")
        else:
            product_id = require_text(payload.get("productId"), f"items[{index}].productId")
            product_data = None

        quantities = validate_quantity_map(payload.get("quantities"), field=f"items[{index}].quantities")

        return cls(
            product_id=product_id,
            quantities=quantities,
            is_new=is_new,
            product_data=product_data,
        )


def _date_digits(date: str) -> str:
    return re.sub(r"\D", "", date)


def _time_suffix() -> int:
    return int(time.time() * 1000) % 100_000


def next_shipment_id(date: str) -> str:
    """
    SH<date digits>-<5-digit time suffix>.

    The suffix is advanced until it is free, so two invoices for the same day
    committed within the same millisecond still get distinct ids.
    """
    base = f"{SHIPMENT_PREFIX}{_date_digits(date)}"
    suffix = _time_suffix()
    for _ in range(100_000):
        candidate = f"{base}-{suffix:05d}"
        if ledger_store.get_row(SHIPMENTS, candidate) is None:
            return candidate
        suffix = (suffix + 1) % 100_000
    raise ValidationError(f"No free shipment id left for {date}")


def _new_product_body(product_data: dict) -> dict:
    """New products start with their variant structure but zero stock."""
    body = copy.deepcopy(product_data)
    body.pop("isNew", None)
    for color_entry in (body.get("colors") or {}).values():
        for variant in ((color_entry or {}).get("sizes") or {}).values():
            if isinstance(variant, dict):
                variant["quantity"] = 0
    return body


def _validate_header(supplier_id, date, shipping_cost) -> tuple[str, str, float]:
    supplier_id = require_text(supplier_id, "supplierId")
    date = require_text(date, "date")
    if safe_parse_iso_datetime(date) is None or not _date_digits(date):
        raise ValidationError("date must be an ISO-8601 date")
    shipping = coerce_amount(shipping_cost if shipping_cost is not None else 0, "shippingCost")
    return supplier_id, date, shipping


def commit_invoice(
    supplier_id: str,
    date: str,
    shipping_cost,
    line_items: list[dict],
) -> str:
    """
    Receive a supplier invoice.

    Args:
        supplier_id: Supplier delivering the goods
        date: Invoice date (ISO-8601, usually YYYY-MM-DD)
        shipping_cost: Shipping charged on the invoice
        line_items: [{productId | isNew+productData, quantities: {color: {size: qty}}}]

    Returns:
        The new shipment id

    Raises:
        ValidationError: Malformed header or line items
        ProductNotFoundError: A referenced product does not exist
        TransactionConflictError: Concurrent writes exhausted the retries
    """
    supplier_id, date, shipping = _validate_header(supplier_id, date, shipping_cost)

    if not isinstance(line_items, list) or not line_items:
        raise ValidationError("items must be a non-empty list")
    lines = [InvoiceLine.from_payload(item, i) for i, item in enumerate(line_items)]

    def _op():
        # Step 1: create new products before anything reads them
        for line in lines:
            if not line.is_new:
                continue
            if ledger_store.get_row(PRODUCTS, line.product_id) is not None:
                raise ValidationError(f"Product {line.product_id} already exists")
            ledger_store.set_document(PRODUCTS, line.product_id, _new_product_body(line.product_data))

        items: list[dict] = []
        total_cents = 0

        for line in lines:
            # Step 2: fresh read of the authoritative product
            product = ledger_store.get_document(PRODUCTS, line.product_id, lock=True)
            if product is None:
                raise ProductNotFoundError(f"Product data for {line.product_id} not found.")
            if product.get("purchasePrice") is None:
                raise ValidationError(f"Product {line.product_id} has no purchasePrice")
            price_cents = money_to_cents(product["purchasePrice"])

            # Step 3: one stock increase + one flattened line per variant
            for color, sizes in line.quantities.items():
                for size, quantity in sizes.items():
                    if quantity <= 0:
                        continue
                    adjust_variant_quantity(VariantAdjustment(line.product_id, color, size, quantity))
                    total_cents += quantity * price_cents
                    items.append({
                        "productId": line.product_id,
                        "productName": product.get("name"),
                        "color": color,
                        "size": size,
                        "quantity": quantity,
                        "purchasePrice": cents_to_money(price_cents),
                    })

        if not items:
            raise ValidationError("Invoice has no positive quantities")

        # Step 4: the shipment record
        shipment_id = next_shipment_id(date)
        ledger_store.set_document(SHIPMENTS, shipment_id, {
            "supplierId": supplier_id,
            "date": date,
            "shippingCost": shipping,
            "items": items,
            "totalCost": cents_to_money(total_cents),
            "createdAt": to_utc_z(utcnow()),
        })
        return shipment_id

    shipment_id = ledger_store.transaction(_op)
    current_app.logger.info("Committed shipment %s from supplier %s", shipment_id, supplier_id)
    return shipment_id


def get_shipment(shipment_id: str) -> dict:
    return ledger_store.require_document(SHIPMENTS, shipment_id)


def list_shipments(*, supplier_id: str | None = None, date: str | None = None) -> list[dict]:
    """Shipments, optionally for one supplier and/or one day (date prefix match)."""
    shipments = ledger_store.list_documents(SHIPMENTS)
    if supplier_id is not None:
        shipments = [s for s in shipments if s.get("supplierId") == supplier_id]
    if date is not None:
        shipments = [s for s in shipments if str(s.get("date", "")).startswith(date)]
    return shipments
