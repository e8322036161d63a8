"""
Transaction helper tests.

Most conflicts are simulated by raising the exceptions SQLAlchemy raises on a
lost optimistic-lock race; the helpers must retry them and give up with
TransactionConflictError. TestOptimisticLocking races a real second
connection against a file-backed database.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from bazpos import create_app
from bazpos.extensions import db
from bazpos.models import StoredDocument
from bazpos.services import defect_service, ledger_store
from bazpos.services.concurrency import run_transaction, run_with_retry
from bazpos.services.ledger_store import CUSTOMERS, DEFECTS, PRODUCTS
from bazpos.services.stock_service import get_variant_quantity
from bazpos.validation import InsufficientStockError, TransactionConflictError, ValidationError


@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database, so two connections can race."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'TX_RETRY_BACKOFF_SECONDS': 0,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


class TestRunWithRetry:
    def test_retries_then_succeeds(self, db_session):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("version mismatch")
            return "done"

        assert run_with_retry(flaky, attempts=3, backoff_base=0) == "done"
        assert len(calls) == 3

    def test_exhausted_retries_raise_conflict(self, db_session):
        calls = []

        def always_stale():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(TransactionConflictError):
            run_with_retry(always_stale, attempts=4, backoff_base=0)
        assert len(calls) == 4

    def test_operational_error_is_retried(self, db_session):
        calls = []

        def locked():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("UPDATE documents", {}, Exception("database is locked"))
            return len(calls)

        assert run_with_retry(locked, backoff_base=0) == 2

    def test_racing_insert_retried_once(self, db_session):
        calls = []

        def duplicate_then_ok():
            calls.append(1)
            if len(calls) == 1:
                raise IntegrityError("INSERT INTO documents", {}, Exception("UNIQUE constraint failed"))
            return "inserted"

        assert run_with_retry(duplicate_then_ok, attempts=3, backoff_base=0) == "inserted"

    def test_repeated_integrity_error_is_not_a_conflict(self, db_session):
        calls = []

        def not_null_violation():
            calls.append(1)
            raise IntegrityError("INSERT INTO documents", {}, Exception("NOT NULL constraint failed"))

        with pytest.raises(IntegrityError):
            run_with_retry(not_null_violation, attempts=5, backoff_base=0)
        assert len(calls) == 2

    def test_business_errors_are_not_retried(self, db_session):
        calls = []

        def invalid():
            calls.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            run_with_retry(invalid, attempts=5, backoff_base=0)
        assert len(calls) == 1

    def test_attempts_default_from_config(self, app, db_session):
        calls = []

        def always_stale():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(TransactionConflictError):
            run_with_retry(always_stale)
        assert len(calls) == app.config["TX_RETRY_ATTEMPTS"]


class TestRunTransaction:
    def test_commits_on_success(self, db_session):
        run_transaction(lambda: ledger_store.set_document(CUSTOMERS, "C1", {"name": "Mona"}))
        db_session.rollback()

        assert ledger_store.get_document(CUSTOMERS, "C1")["name"] == "Mona"

    def test_rolls_back_every_write_on_failure(self, db_session):
        def half_done():
            ledger_store.set_document(CUSTOMERS, "C1", {"name": "Mona"})
            ledger_store.set_document(CUSTOMERS, "C2", {"name": "Ali"})
            raise ValidationError("second step failed")

        with pytest.raises(ValidationError):
            run_transaction(half_done)

        assert ledger_store.list_documents(CUSTOMERS) == []

    def test_retry_sees_fresh_state(self, db_session, seed):
        seed(CUSTOMERS, {"id": "C1", "visits": 1})
        attempts = []

        def bump():
            doc = ledger_store.require_document(CUSTOMERS, "C1")
            ledger_store.set_document(CUSTOMERS, "C1", {**doc, "visits": doc["visits"] + 1})
            attempts.append(doc["visits"])
            if len(attempts) == 1:
                raise StaleDataError("version mismatch")

        run_transaction(bump, backoff_base=0)

        assert attempts == [1, 1]
        assert ledger_store.get_document(CUSTOMERS, "C1")["visits"] == 2


class TestOptimisticLocking:
    def test_concurrent_stock_change_caught_by_version_check(self, file_app, monkeypatch):
        ledger_store.set_document(PRODUCTS, "P1", {
            "name": "Linen Shirt",
            "colors": {"Red": {"sizes": {"M": {"quantity": 5}}}},
        })
        db.session.commit()

        real_adjust = defect_service.adjust_variant_quantity
        calls = []

        def adjust_after_other_writer(adjustment):
            calls.append(1)
            if len(calls) == 1:
                # a second clerk sells 3 units between our read and our write
                with Session(db.engine) as other:
                    row = other.get(StoredDocument, (PRODUCTS, "P1"))
                    row.data = {**row.data, "colors": {"Red": {"sizes": {"M": {"quantity": 2}}}}}
                    other.commit()
            return real_adjust(adjustment)

        monkeypatch.setattr(defect_service, "adjust_variant_quantity", adjust_after_other_writer)

        with pytest.raises(InsufficientStockError) as excinfo:
            defect_service.record_defect(
                "P1", "Red", "M", 4, "torn seam", 20, "SUP1", "2024-03-05",
            )

        # first attempt lost the version race, the retry saw the fresh quantity
        assert len(calls) == 2
        assert excinfo.value.available == 2
        db.session.expire_all()
        product = ledger_store.get_document(PRODUCTS, "P1")
        assert get_variant_quantity(product, "Red", "M") == 2
        assert ledger_store.list_documents(DEFECTS) == []

    def test_stale_write_raises_stale_data_error(self, file_app):
        ledger_store.set_document(CUSTOMERS, "C1", {"visits": 1})
        db.session.commit()

        row = ledger_store.get_row(CUSTOMERS, "C1")
        assert row.data["visits"] == 1

        with Session(db.engine) as other:
            other_row = other.get(StoredDocument, (CUSTOMERS, "C1"))
            other_row.data = {"id": "C1", "visits": 10}
            other.commit()

        with pytest.raises(StaleDataError):
            ledger_store.write_row(row, {"visits": 2})
        db.session.rollback()

        assert ledger_store.get_document(CUSTOMERS, "C1")["visits"] == 10
