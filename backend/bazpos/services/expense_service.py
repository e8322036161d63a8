# Overview: Service-layer operations for daily expenses; encapsulates business logic and database work.

from __future__ import annotations

import uuid

from ..time_utils import safe_parse_iso_datetime, to_utc_z, utcnow
from ..validation import NotFoundError, ValidationError, coerce_amount, require_text
from . import ledger_store
from .ledger_store import DAILY_EXPENSES


EXPENSE_FIELDS = {"amount", "date", "notes"}


def new_expense_id() -> str:
    return f"EX{uuid.uuid4().hex[:12].upper()}"


def _clean(payload: dict, *, partial: bool) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Expense must be an object")

    unknown = set(payload) - EXPENSE_FIELDS - {"id"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    patch: dict = {}
    if "amount" in payload or not partial:
        patch["amount"] = coerce_amount(payload.get("amount"), "amount")
    if "date" in payload:
        if safe_parse_iso_datetime(payload["date"]) is None:
            raise ValidationError("date must be an ISO-8601 datetime")
        patch["date"] = payload["date"]
    elif not partial:
        patch["date"] = to_utc_z(utcnow())
    if "notes" in payload:
        patch["notes"] = str(payload["notes"] or "").strip()
    elif not partial:
        patch["notes"] = ""
    return patch


def save_daily_expense(payload: dict) -> dict:
    """Create an expense; the date defaults to now so it lands in the open shift."""
    expense_id = payload.get("id") if isinstance(payload, dict) else None
    expense_id = require_text(expense_id, "id") if expense_id is not None else new_expense_id()
    body = _clean(payload, partial=False)

    def _op():
        if ledger_store.get_row(DAILY_EXPENSES, expense_id) is not None:
            raise ValidationError(f"Expense {expense_id} already exists")
        return ledger_store.set_document(DAILY_EXPENSES, expense_id, body)

    return ledger_store.transaction(_op)


def update_daily_expense(expense_id: str, payload: dict) -> dict:
    expense_id = require_text(expense_id, "id")
    patch = _clean(payload, partial=True)
    if not patch:
        raise ValidationError("Nothing to update")

    def _op():
        if ledger_store.get_row(DAILY_EXPENSES, expense_id, lock=True) is None:
            raise NotFoundError(f"Expense {expense_id} not found")
        return ledger_store.set_document(DAILY_EXPENSES, expense_id, patch, merge=True)

    return ledger_store.transaction(_op)


def delete_daily_expense(expense_id: str) -> None:
    expense_id = require_text(expense_id, "id")

    def _op():
        if not ledger_store.delete_document(DAILY_EXPENSES, expense_id):
            raise NotFoundError(f"Expense {expense_id} not found")

    ledger_store.transaction(_op)


def list_daily_expenses() -> list[dict]:
    expenses = ledger_store.list_documents(DAILY_EXPENSES)
    expenses.sort(key=lambda e: e.get("date") or "")
    return expenses
