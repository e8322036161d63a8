"""
Shift Settlement Service

WHY: Closing a shift turns a window of cashier activity into the figures the
drawer is held to: what should be in it, what was counted, and how far apart
they are.

WINDOW:
- A shift covers [previous shift end, now). The first shift ever starts at
  BEGINNING_OF_TIME and so picks up all activity that was never closed.
- The end is truncated to whole seconds and stored as the new marker in the
  same transaction as the shift record. The next shift starts exactly there:
  nothing falls between two shifts and nothing is counted twice.

FIGURES (cash basis, no opening float):
- totalSales          = sum of sale totalAmount for sales created in the window
- totalReturnsValue   = sum of returned value, less the sale's proportional discount,
                        for returns made in the window
- totalDailyExpenses  = sum of expense amounts dated in the window
- expectedInDrawer    = totalSales - totalReturnsValue - totalDailyExpenses
- difference          = actual - expectedInDrawer, compared in whole cents

IMMUTABLE: A closed shift is never reopened or edited.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from flask import current_app

from ..money import cents_to_money, money_to_cents
from ..time_utils import (
    BEGINNING_OF_TIME,
    normalize_datetime,
    safe_parse_iso_datetime,
    to_utc_z,
    utcnow,
)
from ..validation import ValidationError, coerce_amount, require_text
from . import ledger_store
from .ledger_store import APP_CONFIG, CONFIG_DOC_ID, DAILY_EXPENSES, SALES, SHIFTS


RECONCILIATION_OVER = "over"
RECONCILIATION_SHORT = "short"
RECONCILIATION_EXACT = "exact"

MARKER_FIELD = "lastShiftReportTime"


def classify_difference(difference_cents: int) -> str:
    if difference_cents > 0:
        return RECONCILIATION_OVER
    if difference_cents < 0:
        return RECONCILIATION_SHORT
    return RECONCILIATION_EXACT


def discount_ratio(sale: dict) -> float:
    subtotal = float(sale.get("subtotal") or 0)
    if subtotal <= 0:
        return 0.0
    return float(sale.get("discountAmount") or 0) / subtotal


def discounted_return_cents(sale: dict, raw_cents: int) -> int:
    """Returned value less the share of the sale's discount it carried."""
    return int(round(raw_cents * (1 - discount_ratio(sale))))


def _return_raw_cents(entry: dict) -> int:
    return sum(
        money_to_cents(item.get("unitPrice")) * int(item.get("quantity") or 0)
        for item in (entry.get("items") or [])
    )


def _in_window(value, start: datetime, end: datetime) -> bool:
    moment = safe_parse_iso_datetime(value)
    return moment is not None and start <= moment < end


def get_last_shift_end() -> datetime | None:
    config = ledger_store.get_config()
    return safe_parse_iso_datetime(config.get(MARKER_FIELD))


def _window_end(now: datetime | None) -> datetime:
    end = normalize_datetime(now) if now is not None else utcnow()
    return end.replace(microsecond=0)


def compute_settlement(window_start: datetime, window_end: datetime) -> dict:
    """
    Collect the activity of [window_start, window_end) and compute the summary.

    Reads only; safe to call outside a transaction.
    """
    sales_snapshot = []
    returns_snapshot = []
    total_sales_cents = 0
    total_returns_cents = 0

    for sale in ledger_store.list_documents(SALES):
        if _in_window(sale.get("createdAt"), window_start, window_end):
            total_sales_cents += money_to_cents(sale.get("totalAmount"))
            sales_snapshot.append({
                "id": sale.get("id"),
                "createdAt": sale.get("createdAt"),
                "cashier": sale.get("cashier"),
                "paymentMethod": sale.get("paymentMethod"),
                "totalAmount": cents_to_money(money_to_cents(sale.get("totalAmount"))),
            })

        for entry in sale.get("returns") or []:
            if not _in_window(entry.get("returnedAt"), window_start, window_end):
                continue
            value_cents = discounted_return_cents(sale, _return_raw_cents(entry))
            total_returns_cents += value_cents
            returns_snapshot.append({
                "originalSaleId": sale.get("id"),
                "returnedAt": entry.get("returnedAt"),
                "cashier": entry.get("cashier"),
                "returnValue": cents_to_money(value_cents),
            })

    expenses_snapshot = []
    total_expenses_cents = 0
    for expense in ledger_store.list_documents(DAILY_EXPENSES):
        if not _in_window(expense.get("date"), window_start, window_end):
            continue
        total_expenses_cents += money_to_cents(expense.get("amount"))
        expenses_snapshot.append({
            "id": expense.get("id"),
            "date": expense.get("date"),
            "amount": cents_to_money(money_to_cents(expense.get("amount"))),
            "notes": expense.get("notes", ""),
        })

    expected_cents = total_sales_cents - total_returns_cents - total_expenses_cents

    sales_snapshot.sort(key=lambda s: s["createdAt"] or "")
    returns_snapshot.sort(key=lambda r: r["returnedAt"] or "")
    expenses_snapshot.sort(key=lambda e: e["date"] or "")

    return {
        "startedAt": to_utc_z(window_start),
        "endedAt": to_utc_z(window_end),
        "sales": sales_snapshot,
        "returns": returns_snapshot,
        "expenses": expenses_snapshot,
        "summary": {
            "totalSales": cents_to_money(total_sales_cents),
            "totalReturnsValue": cents_to_money(total_returns_cents),
            "totalDailyExpenses": cents_to_money(total_expenses_cents),
            "expectedInDrawer": cents_to_money(expected_cents),
        },
        "_expected_cents": expected_cents,
    }


def reconcile(expected_cents: int, actual) -> dict:
    actual_cents = money_to_cents(actual)
    difference_cents = actual_cents - expected_cents
    return {
        "actual": cents_to_money(actual_cents),
        "difference": cents_to_money(difference_cents),
        "type": classify_difference(difference_cents),
    }


def preview_shift(*, now: datetime | None = None) -> dict:
    """Figures the current shift would close with; writes nothing."""
    window_start = get_last_shift_end() or BEGINNING_OF_TIME
    settlement = compute_settlement(window_start, _window_end(now))
    settlement.pop("_expected_cents")
    return settlement


def close_shift(
    ended_by: str,
    actual_cash_counted,
    *,
    now: datetime | None = None,
) -> dict:
    """
    Close the current shift against the counted cash.

    Args:
        ended_by: Username of the cashier closing the shift
        actual_cash_counted: Cash physically counted in the drawer

    Returns:
        The committed shift record

    Raises:
        ValidationError: Bad input, or the clock is behind the last shift end
        TransactionConflictError: Another close raced this one and retries ran out
    """
    ended_by = require_text(ended_by, "endedBy")
    actual = coerce_amount(actual_cash_counted, "actualCashCounted")
    window_end = _window_end(now)

    def _op():
        # Locking the config row makes concurrent closes conflict on the marker
        config_row = ledger_store.get_row(APP_CONFIG, CONFIG_DOC_ID, lock=True)
        config = dict(config_row.data) if config_row is not None else {}
        window_start = safe_parse_iso_datetime(config.get(MARKER_FIELD)) or BEGINNING_OF_TIME

        if window_end < window_start:
            raise ValidationError(
                f"Shift end {to_utc_z(window_end)} is before the last shift end {to_utc_z(window_start)}"
            )

        settlement = compute_settlement(window_start, window_end)
        expected_cents = settlement.pop("_expected_cents")

        shift_id = f"SF{window_end:%Y%m%d%H%M%S}-{uuid.uuid4().hex[:4].upper()}"
        shift = ledger_store.set_document(SHIFTS, shift_id, {
            **settlement,
            "endedBy": ended_by,
            "reconciliation": reconcile(expected_cents, actual),
        })
        ledger_store.merge_config({MARKER_FIELD: settlement["endedAt"]})
        return shift

    shift = ledger_store.transaction(_op)
    current_app.logger.info(
        "Closed shift %s by %s: expected %.2f, counted %.2f (%s)",
        shift["id"], ended_by,
        shift["summary"]["expectedInDrawer"], shift["reconciliation"]["actual"],
        shift["reconciliation"]["type"],
    )
    return shift


def get_shift(shift_id: str) -> dict:
    return ledger_store.require_document(SHIFTS, shift_id)


def list_shifts(*, limit: int = 50) -> list[dict]:
    """Most recent shifts first."""
    shifts = ledger_store.list_documents(SHIFTS)
    shifts.sort(key=lambda s: s.get("endedAt") or "", reverse=True)
    return shifts[:limit]
