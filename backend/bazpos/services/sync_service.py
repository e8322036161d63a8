# Overview: Service-layer operations for loading and bulk-saving the in-memory working set.

"""
Bulk Sync Service

WHY: The UI edits an in-memory working set (products, sales, customers, ...)
and saves it back wholesale. Saving is a reconciliation, not a blind
overwrite: every record that carries an id is upserted, and every stored id
missing from the working set is deleted.

GUARANTEES:
- Idempotent: syncing the same records twice leaves the same stored state.
  Records whose body is unchanged are not rewritten at all.
- Records without an id are logged and skipped; they can never be addressed
  again, so they are not stored.
- Products whose variant quantities are not non-negative integers are logged
  and skipped too; their stored version is left untouched.
- Best effort, not serializable: writes are committed in batches of
  SYNC_BATCH_SIZE. A failing batch is rolled back and aborts the rest, but
  batches already committed stay committed.
- The shift marker (lastShiftReportTime) is owned by shift closing and is
  never written from a working set snapshot.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import StoredDocument
from ..validation import ValidationError
from . import ledger_store
from .ledger_store import COLLECTIONS, DAILY_EXPENSES, PRODUCTS
from .stock_service import validate_product_quantities


# Config keys a working set may save back
SYNCED_CONFIG_KEYS = ("categories", "salaries", "salariesPaidStatus")


@dataclass
class SyncResult:
    collection: str
    upserted: int = 0
    unchanged: int = 0
    deleted: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return {
            "collection": self.collection,
            "upserted": self.upserted,
            "unchanged": self.unchanged,
            "deleted": self.deleted,
            "skipped": self.skipped,
        }


@dataclass
class WorkingSet:
    """
    One session's in-memory snapshot of the store.

    Populated by load_working_set() at session start, saved back with
    sync_working_set(), discarded at session end.
    """
    collections: dict[str, list[dict]] = field(default_factory=dict)
    config: dict = field(default_factory=dict)

    def records(self, name: str) -> list[dict] | None:
        return self.collections.get(name)

    @property
    def categories(self) -> list[str]:
        return list(self.config.get("categories") or [])

    @property
    def salaries(self) -> dict:
        return dict(self.config.get("salaries") or {})

    @property
    def salaries_paid_status(self) -> dict:
        return dict(self.config.get("salariesPaidStatus") or {})

    @property
    def rent(self) -> dict:
        rent = (self.config.get("expenses") or {}).get("rent") or {}
        return {"amount": rent.get("amount", 0), "paidStatus": rent.get("paidStatus", {})}

    @property
    def last_shift_report_time(self) -> str | None:
        return self.config.get("lastShiftReportTime")

    @classmethod
    def from_payload(cls, payload: dict) -> "WorkingSet":
        """Build a working set from the shape to_dict() produces."""
        if not isinstance(payload, dict):
            raise ValidationError("Working set must be an object")

        collections: dict[str, list[dict]] = {}
        for name in COLLECTIONS:
            records = payload.get(name)
            if name == DAILY_EXPENSES and records is None:
                records = (payload.get("expenses") or {}).get("daily")
            if records is None:
                continue
            if not isinstance(records, list):
                raise ValidationError(f"{name} must be a list")
            collections[name] = records

        config = dict(payload.get("config") or {})
        for key in SYNCED_CONFIG_KEYS:
            if key in payload:
                config[key] = payload[key]
        rent = (payload.get("expenses") or {}).get("rent")
        if rent is not None:
            config["expenses"] = {"rent": rent}

        return cls(collections=collections, config=config)

    def to_dict(self) -> dict:
        data = {name: list(self.collections.get(name) or []) for name in COLLECTIONS}
        public_config = {k: v for k, v in self.config.items() if k != "adminPasswordHash"}
        data.update({
            "config": public_config,
            "categories": self.categories,
            "salaries": self.salaries,
            "salariesPaidStatus": self.salaries_paid_status,
            "expenses": {
                "rent": self.rent,
                "daily": list(self.collections.get(DAILY_EXPENSES) or []),
            },
            "lastShiftReportTime": self.last_shift_report_time,
        })
        return data


def load_working_set() -> WorkingSet:
    """Read every collection and the config document into a fresh working set."""
    collections = {name: ledger_store.list_documents(name) for name in COLLECTIONS}
    return WorkingSet(collections=collections, config=ledger_store.get_config())


def _batch_size(batch_size: int | None) -> int:
    if batch_size is None:
        batch_size = current_app.config.get("SYNC_BATCH_SIZE", 400)
    return max(1, int(batch_size))


def sync_collection(name: str, records: list[dict], *, batch_size: int | None = None) -> SyncResult:
    """
    Reconcile one stored collection with `records`.

    Pass 1 upserts every record with an id; pass 2 deletes every stored id
    the records do not mention.
    """
    if name not in COLLECTIONS:
        raise ValidationError(f"Collection {name} cannot be bulk synced")
    if not isinstance(records, list):
        raise ValidationError(f"{name} must be a list")

    result = SyncResult(collection=name)
    batch_size = _batch_size(batch_size)

    incoming: dict[str, dict] = {}
    # Rejected records keep their stored version: neither upserted nor deleted
    rejected: set[str] = set()
    for record in records:
        record_id = record.get("id") if isinstance(record, dict) else None
        if record_id is None or not str(record_id).strip():
            current_app.logger.warning("Item in collection %s is missing an ID: %r", name, record)
            result.skipped += 1
            continue
        record_id = str(record_id).strip()
        if name == PRODUCTS:
            try:
                validate_product_quantities(record)
            except ValidationError as e:
                current_app.logger.warning("Product %s rejected by sync: %s", record_id, e)
                rejected.add(record_id)
                result.skipped += 1
                continue
        incoming[record_id] = record

    stored = ledger_store.list_rows(name)
    pending = 0

    def _flush_batch(force: bool = False):
        nonlocal pending
        if pending and (force or pending >= batch_size):
            db.session.commit()
            pending = 0

    try:
        for record_id, record in incoming.items():
            body = copy.deepcopy(record)
            body["id"] = record_id
            row = stored.get(record_id)
            if row is not None and row.data == body:
                result.unchanged += 1
                continue
            if row is None:
                db.session.add(StoredDocument(collection=name, doc_id=record_id, data=body))
            else:
                ledger_store.write_row(row, body)
            result.upserted += 1
            pending += 1
            _flush_batch()

        for record_id in sorted(set(stored) - set(incoming) - rejected):
            db.session.delete(stored[record_id])
            result.deleted += 1
            pending += 1
            _flush_batch()

        _flush_batch(force=True)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Bulk sync of %s aborted after %s writes", name, result.upserted + result.deleted)
        raise

    return result


def sync_working_set(working_set: WorkingSet, *, batch_size: int | None = None) -> dict[str, SyncResult]:
    """Save a whole working set: every collection it holds, then the shared config."""
    results: dict[str, SyncResult] = {}
    for name in COLLECTIONS:
        records = working_set.records(name)
        if records is None:
            continue
        results[name] = sync_collection(name, records, batch_size=batch_size)

    config_patch: dict = {}
    if "categories" in working_set.config:
        config_patch["categories"] = [c for c in working_set.categories if c != "All"]
    if "salaries" in working_set.config:
        config_patch["salaries"] = working_set.salaries
    if "salariesPaidStatus" in working_set.config:
        config_patch["salariesPaidStatus"] = working_set.salaries_paid_status
    if "expenses" in working_set.config:
        config_patch["expenses"] = {"rent": working_set.rent}

    if config_patch:
        def _op():
            return ledger_store.merge_config(config_patch)
        ledger_store.transaction(_op)

    current_app.logger.info(
        "Synced working set: %s",
        ", ".join(f"{r.collection}={r.upserted}/{r.deleted}" for r in results.values()) or "no collections",
    )
    return results
