# Overview: Service-layer read models for receipts, bookings, shipment statements and salaries.

"""
Reporting Service

WHY: Receipts, shipment invoices and the salary sheet are rendered elsewhere
(templates, PDF, spreadsheets). Rendering does no arithmetic, so every figure
it prints is computed here, in cents, and handed over already rounded.
"""

from __future__ import annotations

import re
from collections import defaultdict

from ..money import cents_to_money, money_to_cents
from ..validation import NotFoundError, ValidationError, require_text
from . import ledger_store
from .defect_service import list_defects
from .invoice_service import list_shipments
from .ledger_store import SALES, SUPPLIERS, USERS
from .shift_service import discounted_return_cents


MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def sale_receipt_totals(sale: dict) -> dict:
    """
    Figures printed on a sale receipt.

    With returns on the sale, nothing is paid and the change column shows what
    the customer gets back (returned value less the sale's discount share).
    """
    total_cents = money_to_cents(sale.get("totalAmount"))
    delivery_cents = money_to_cents(sale.get("deliveryFee"))
    deposit_cents = money_to_cents(sale.get("depositPaidOnBooking"))
    paid_cents = money_to_cents(sale.get("paidAmount"))
    final_cents = total_cents + delivery_cents

    returned_raw_cents = sum(
        money_to_cents(item.get("unitPrice")) * int(item.get("returnedQty") or 0)
        for item in (sale.get("items") or [])
    )
    has_returns = returned_raw_cents > 0
    returns_cents = discounted_return_cents(sale, returned_raw_cents) if has_returns else 0

    if has_returns:
        displayed_paid_cents = 0
        change_cents = returns_cents
    else:
        displayed_paid_cents = paid_cents
        change_cents = paid_cents - (final_cents - deposit_cents)

    return {
        "saleId": sale.get("id"),
        "subtotal": cents_to_money(money_to_cents(sale.get("subtotal"))),
        "discountAmount": cents_to_money(money_to_cents(sale.get("discountAmount"))),
        "deliveryFee": cents_to_money(delivery_cents),
        "finalTotal": cents_to_money(final_cents),
        "depositPaid": cents_to_money(deposit_cents),
        "amountRemaining": cents_to_money(max(0, final_cents - deposit_cents)),
        "hasReturns": has_returns,
        "totalReturns": cents_to_money(returns_cents),
        "paidAmount": cents_to_money(displayed_paid_cents),
        "changeAmount": cents_to_money(change_cents),
    }


def get_sale_receipt(sale_id: str) -> dict:
    sale = ledger_store.get_document(SALES, sale_id)
    if sale is None:
        raise NotFoundError(f"Receipt with ID {sale_id} not found.")
    return sale_receipt_totals(sale)


def booking_totals(booking: dict) -> dict:
    subtotal_cents = sum(
        money_to_cents(item.get("price")) * int(item.get("quantity") or 0)
        for item in (booking.get("cart") or [])
    )
    deposit_cents = money_to_cents(booking.get("deposit"))
    return {
        "bookingId": booking.get("id"),
        "subtotal": cents_to_money(subtotal_cents),
        "deposit": cents_to_money(deposit_cents),
        "depositPaymentMethod": booking.get("depositPaymentMethod"),
        "amountDue": cents_to_money(subtotal_cents - deposit_cents),
    }


def _defects_for_statement(supplier_id: str, date: str, shipment_ids: set[str]) -> list[dict]:
    """
    Defects charged against a supplier's delivery day.

    Defects with an explicit shipmentId match by id. Older defects without one
    fall back to supplier + shipment date.
    """
    matched = []
    for defect in list_defects(supplier_id=supplier_id):
        if defect.get("shipmentId"):
            if defect["shipmentId"] in shipment_ids:
                matched.append(defect)
        elif defect.get("shipmentDate") == date:
            matched.append(defect)
    return matched


def shipment_statement(supplier_id: str, date: str) -> dict:
    """
    Everything received from one supplier on one day, less defects.

    gross = sum(shipment totalCost), net = gross - defects value,
    final = net + shipping.
    """
    supplier_id = require_text(supplier_id, "supplierId")
    date = require_text(date, "date")

    shipments = list_shipments(supplier_id=supplier_id, date=date)
    if not shipments:
        raise NotFoundError(f"No shipments found for this supplier on {date}.")

    supplier = ledger_store.get_document(SUPPLIERS, supplier_id)
    defects = _defects_for_statement(supplier_id, date, {s["id"] for s in shipments})

    defective_counts: dict[tuple, int] = defaultdict(int)
    for defect in defects:
        defective_counts[(defect.get("productId"), defect.get("color"), defect.get("size"))] += int(defect.get("quantity") or 0)

    items = []
    for shipment in shipments:
        for item in shipment.get("items") or []:
            line_cents = money_to_cents(item.get("purchasePrice")) * int(item.get("quantity") or 0)
            items.append({
                **item,
                "shipmentId": shipment["id"],
                "lineTotal": cents_to_money(line_cents),
                "defectiveCount": defective_counts[(item.get("productId"), item.get("color"), item.get("size"))],
            })

    defect_lines = []
    defects_cents = 0
    for defect in defects:
        line_cents = money_to_cents(defect.get("purchasePrice")) * int(defect.get("quantity") or 0)
        defects_cents += line_cents
        defect_lines.append({**defect, "lineTotal": cents_to_money(line_cents)})

    gross_cents = sum(money_to_cents(s.get("totalCost")) for s in shipments)
    shipping_cents = sum(money_to_cents(s.get("shippingCost")) for s in shipments)
    net_cents = gross_cents - defects_cents

    return {
        "supplierId": supplier_id,
        "supplierName": (supplier or {}).get("name", "Unknown Supplier"),
        "date": date,
        "shipmentIds": [s["id"] for s in shipments],
        "items": items,
        "defects": defect_lines,
        "grossCost": cents_to_money(gross_cents),
        "defectsValue": cents_to_money(defects_cents),
        "netCost": cents_to_money(net_cents),
        "shippingCost": cents_to_money(shipping_cents),
        "finalTotal": cents_to_money(net_cents + shipping_cents),
    }


def salary_report(month: str) -> list[dict]:
    """
    Monthly salary sheet: fixed + commission per piece sold (net of returns) + bonus.
    """
    if not isinstance(month, str) or not MONTH_RE.match(month):
        raise ValidationError("month must be YYYY-MM")

    config = ledger_store.get_config()
    salaries = config.get("salaries") or {}
    paid_status = config.get("salariesPaidStatus") or {}

    pieces_by_cashier: dict[str, int] = defaultdict(int)
    for sale in ledger_store.list_documents(SALES):
        if not str(sale.get("createdAt") or "").startswith(month):
            continue
        pieces_by_cashier[sale.get("cashier")] += sum(
            int(item.get("quantity") or 0) - int(item.get("returnedQty") or 0)
            for item in (sale.get("items") or [])
        )

    rows = []
    for user in ledger_store.list_documents(USERS):
        username = user.get("username")
        terms = salaries.get(username) or {}
        fixed_cents = money_to_cents(terms.get("fixed"))
        commission_cents = money_to_cents(terms.get("commission"))
        bonus_cents = money_to_cents(terms.get("bonus"))
        pieces = pieces_by_cashier.get(username, 0)
        total_commission_cents = pieces * commission_cents

        rows.append({
            "employeeId": user.get("employeeId") or "N/A",
            "username": username,
            "phone": user.get("phone") or "N/A",
            "fixedSalary": cents_to_money(fixed_cents),
            "commissionPerPiece": cents_to_money(commission_cents),
            "bonus": cents_to_money(bonus_cents),
            "piecesSold": pieces,
            "totalCommission": cents_to_money(total_commission_cents),
            "totalSalary": cents_to_money(fixed_cents + total_commission_cents + bonus_cents),
            "isPaid": bool(paid_status.get(f"{username}-{month}", False)),
        })
    return rows
