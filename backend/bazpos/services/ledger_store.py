# Overview: Service-layer operations for the document ledger store; keyed JSON documents per collection.

from __future__ import annotations

import copy

from ..extensions import db
from ..models import StoredDocument
from ..validation import NotFoundError, ValidationError
from .concurrency import lock_for_update, run_transaction
"""
Ledger Store Invariants (authoritative)

- A document is addressed by (collection, id); its JSON body always carries
  the same id under the "id" key.
- Readers get deep copies; mutating a returned dict never touches the session.
- Writers replace the JSON body wholesale so the change is always flushed and
  the optimistic version_id is bumped exactly once per write.
- Nothing here commits. Callers wrap multi-document work in run_transaction()
  (or commit explicitly, as bulk sync does per batch).
"""


PRODUCTS = "products"
SALES = "sales"
CUSTOMERS = "customers"
BOOKINGS = "bookings"
DEFECTS = "defects"
SUPPLIERS = "suppliers"
SHIPMENTS = "shipments"
SHIFTS = "shifts"
USERS = "users"
DAILY_EXPENSES = "daily_expenses"
APP_CONFIG = "app_config"

CONFIG_DOC_ID = "main"

# Collections owned by the working set and reconciled by bulk sync
COLLECTIONS = (
    PRODUCTS,
    SALES,
    CUSTOMERS,
    BOOKINGS,
    DEFECTS,
    SUPPLIERS,
    SHIPMENTS,
    SHIFTS,
    USERS,
    DAILY_EXPENSES,
)

ALL_COLLECTIONS = COLLECTIONS + (APP_CONFIG,)


def validate_collection(name: str) -> str:
    if name not in ALL_COLLECTIONS:
        raise ValidationError(f"Unknown collection: {name}")
    return name


def _normalize_id(doc_id) -> str:
    if doc_id is None:
        raise ValidationError("Document id is required")
    text = str(doc_id).strip()
    if not text:
        raise ValidationError("Document id cannot be blank")
    return text


def deep_merge(base: dict, patch: dict) -> dict:
    """Recursively merge patch into a copy of base (nested dicts merge, everything else replaces)."""
    merged = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_row(collection: str, doc_id, *, lock: bool = False) -> StoredDocument | None:
    """Fetch the mapped row itself (for services that write inside a transaction)."""
    query = db.session.query(StoredDocument).filter_by(
        collection=validate_collection(collection),
        doc_id=_normalize_id(doc_id),
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_document(collection: str, doc_id, *, lock: bool = False) -> dict | None:
    row = get_row(collection, doc_id, lock=lock)
    if row is None:
        return None
    return copy.deepcopy(row.data)


def require_document(collection: str, doc_id, *, lock: bool = False) -> dict:
    data = get_document(collection, doc_id, lock=lock)
    if data is None:
        raise NotFoundError(f"{collection}/{doc_id} not found")
    return data


def set_document(collection: str, doc_id, data: dict, *, merge: bool = False) -> dict:
    """
    Write a document body.

    merge=False replaces the body; merge=True deep-merges data into the
    existing body (creating the document when absent). Returns the stored body.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"{collection} document must be an object")
    doc_id = _normalize_id(doc_id)
    row = get_row(collection, doc_id)

    if row is not None and merge:
        body = deep_merge(row.data or {}, data)
    else:
        body = copy.deepcopy(data)
    body["id"] = doc_id

    if row is None:
        row = StoredDocument(collection=collection, doc_id=doc_id, data=body)
        db.session.add(row)
    else:
        row.data = body
    db.session.flush()
    return copy.deepcopy(body)


def write_row(row: StoredDocument, body: dict) -> None:
    """Replace the body of a row already loaded in this session."""
    body = copy.deepcopy(body)
    body["id"] = row.doc_id
    row.data = body
    db.session.flush()


def delete_document(collection: str, doc_id) -> bool:
    row = get_row(collection, doc_id)
    if row is None:
        return False
    db.session.delete(row)
    db.session.flush()
    return True


def list_documents(collection: str) -> list[dict]:
    rows = db.session.query(StoredDocument).filter_by(
        collection=validate_collection(collection)
    ).order_by(StoredDocument.doc_id).all()
    return [copy.deepcopy(row.data) for row in rows]


def list_document_ids(collection: str) -> set[str]:
    rows = db.session.query(StoredDocument.doc_id).filter_by(
        collection=validate_collection(collection)
    ).all()
    return {row.doc_id for row in rows}


def query_documents(collection: str, field: str, value) -> list[dict]:
    """Documents whose top-level `field` equals `value`."""
    return [doc for doc in list_documents(collection) if doc.get(field) == value]


def get_config() -> dict:
    return get_document(APP_CONFIG, CONFIG_DOC_ID) or {}


def merge_config(patch: dict) -> dict:
    return set_document(APP_CONFIG, CONFIG_DOC_ID, patch, merge=True)


def transaction(func, **retry_kwargs):
    """Run func() atomically against the store (see concurrency.run_transaction)."""
    return run_transaction(func, **retry_kwargs)


def list_rows(collection: str) -> dict[str, StoredDocument]:
    """Mapped rows of a collection keyed by id (bulk sync works on these directly)."""
    rows = db.session.query(StoredDocument).filter_by(
        collection=validate_collection(collection)
    ).all()
    return {row.doc_id: row for row in rows}
