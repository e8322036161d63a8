"""
Ledger store tests.

Covers keyed reads and writes, deep-merge semantics, copy isolation and the
optimistic version counter.
"""

import pytest

from bazpos.models import StoredDocument
from bazpos.services import ledger_store
from bazpos.services.ledger_store import CUSTOMERS, PRODUCTS
from bazpos.validation import NotFoundError, ValidationError


class TestDocuments:
    def test_set_and_get_round_trip_carries_id(self, db_session):
        ledger_store.set_document(CUSTOMERS, "C1", {"name": "Mona"})
        db_session.commit()

        assert ledger_store.get_document(CUSTOMERS, "C1") == {"id": "C1", "name": "Mona"}

    def test_missing_document_reads_none(self, db_session):
        assert ledger_store.get_document(CUSTOMERS, "nope") is None
        with pytest.raises(NotFoundError):
            ledger_store.require_document(CUSTOMERS, "nope")

    def test_returned_dicts_are_copies(self, db_session, seed):
        seed(CUSTOMERS, {"id": "C1", "tags": ["vip"]})

        doc = ledger_store.get_document(CUSTOMERS, "C1")
        doc["tags"].append("mutated")

        assert ledger_store.get_document(CUSTOMERS, "C1")["tags"] == ["vip"]

    def test_merge_keeps_unrelated_nested_keys(self, db_session, seed):
        seed(PRODUCTS, {"id": "P1", "colors": {"Red": {"sizes": {"M": {"quantity": 2}}}}})

        ledger_store.set_document(
            PRODUCTS, "P1", {"colors": {"Red": {"sizes": {"L": {"quantity": 1}}}}}, merge=True
        )
        db_session.commit()

        sizes = ledger_store.get_document(PRODUCTS, "P1")["colors"]["Red"]["sizes"]
        assert sizes == {"M": {"quantity": 2}, "L": {"quantity": 1}}

    def test_replace_drops_old_keys(self, db_session, seed):
        seed(CUSTOMERS, {"id": "C1", "name": "Mona", "phone": "0100"})

        ledger_store.set_document(CUSTOMERS, "C1", {"name": "Mona"})
        db_session.commit()

        assert "phone" not in ledger_store.get_document(CUSTOMERS, "C1")

    def test_delete_document(self, db_session, seed):
        seed(CUSTOMERS, {"id": "C1"})

        assert ledger_store.delete_document(CUSTOMERS, "C1") is True
        assert ledger_store.delete_document(CUSTOMERS, "C1") is False

    def test_query_documents_filters_on_field(self, db_session, seed):
        seed(CUSTOMERS, {"id": "C1", "city": "Cairo"})
        seed(CUSTOMERS, {"id": "C2", "city": "Giza"})
        seed(CUSTOMERS, {"id": "C3", "city": "Cairo"})

        found = ledger_store.query_documents(CUSTOMERS, "city", "Cairo")

        assert [d["id"] for d in found] == ["C1", "C3"]

    def test_unknown_collection_rejected(self, db_session):
        with pytest.raises(ValidationError):
            ledger_store.get_document("widgets", "W1")

    def test_blank_id_rejected(self, db_session):
        with pytest.raises(ValidationError):
            ledger_store.set_document(CUSTOMERS, "  ", {})

    def test_every_write_bumps_version(self, db_session, seed):
        seed(CUSTOMERS, {"id": "C1", "name": "Mona"})
        row = db_session.get(StoredDocument, (CUSTOMERS, "C1"))
        first_version = row.version_id

        ledger_store.set_document(CUSTOMERS, "C1", {"name": "Mona Z"})
        db_session.commit()

        assert db_session.get(StoredDocument, (CUSTOMERS, "C1")).version_id == first_version + 1


class TestConfig:
    def test_config_defaults_to_empty(self, db_session):
        assert ledger_store.get_config() == {}

    def test_merge_config_creates_then_merges(self, db_session):
        ledger_store.merge_config({"categories": ["Shirts"]})
        ledger_store.merge_config({"expenses": {"rent": {"amount": 500}}})
        db_session.commit()

        config = ledger_store.get_config()
        assert config["categories"] == ["Shirts"]
        assert config["expenses"]["rent"]["amount"] == 500
