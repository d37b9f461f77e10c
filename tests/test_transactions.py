"""Tests for the atomic unit-of-work runner."""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from duka.core.exceptions import ConcurrentUpdate, NotFound, TransactionFailure
from duka.core.transactions import is_retryable, run_atomic
from duka.models.categories import ProductCategory


def locked():
    return OperationalError("UPDATE inventory", {}, Exception("database is locked"))



class LockNotAvailable(Exception):
    pgcode = "55P03"

class TestRunAtomic:
    def test_commits_result(self, db_session):
        def unit(session):
            category = ProductCategory(name="Timber")
            session.add(category)
            session.flush()
            return category

        category = run_atomic(db_session, unit)

        db_session.expire_all()
        assert db_session.get(ProductCategory, category.id).name == "Timber"

    def test_transient_errors_are_retried(self, db_session):
        attempts = []

        def unit(session):
            attempts.append(1)
            session.add(ProductCategory(name=f"Attempt {len(attempts)}"))
            session.flush()
            if len(attempts) < 3:
                raise locked()
            return len(attempts)

        assert run_atomic(db_session, unit, max_retries=3, backoff=0) == 3
        assert [c.name for c in db_session.query(ProductCategory).all()] == ["Attempt 3"]

    def test_lost_race_is_retried(self, db_session):
        attempts = []

        def unit(session):
            attempts.append(1)
            if len(attempts) == 1:
                raise ConcurrentUpdate("row created concurrently")
            return "done"

        assert run_atomic(db_session, unit, backoff=0) == "done"
        assert len(attempts) == 2

    def test_gives_up_after_max_retries(self, db_session):
        attempts = []

        def unit(session):
            attempts.append(1)
            raise locked()

        with pytest.raises(TransactionFailure):
            run_atomic(db_session, unit, max_retries=2, backoff=0)

        assert len(attempts) == 3

    def test_business_errors_roll_back_without_retry(self, db_session):
        attempts = []

        def unit(session):
            attempts.append(1)
            session.add(ProductCategory(name="Orphan"))
            session.flush()
            raise NotFound("Product not found")

        with pytest.raises(NotFound):
            run_atomic(db_session, unit, backoff=0)

        assert len(attempts) == 1
        assert db_session.query(ProductCategory).count() == 0

    def test_other_database_errors_become_transaction_failure(self, db_session):
        def unit(session):
            raise IntegrityError("INSERT INTO products", {}, Exception("constraint failed"))

        with pytest.raises(TransactionFailure) as excinfo:
            run_atomic(db_session, unit, description="product creation")

        assert excinfo.value.status_code == 500
        assert "product creation" in excinfo.value.message

    def test_permanent_operational_errors_are_not_retried(self, db_session):
        attempts = []

        def unit(session):
            attempts.append(1)
            raise OperationalError("SELECT * FROM stock", {}, Exception("no such table: stock"))

        with pytest.raises(TransactionFailure):
            run_atomic(db_session, unit, max_retries=3, backoff=0)

        assert len(attempts) == 1


class TestIsRetryable:
    @pytest.mark.parametrize("orig", [
        Exception("database is locked"),
        Exception("database table is locked: inventory"),
        Exception("deadlock detected"),
        LockNotAvailable("canceling statement due to lock timeout"),
    ])
    def test_lock_errors(self, orig):
        assert is_retryable(OperationalError("UPDATE inventory", {}, orig))

    @pytest.mark.parametrize("orig", [
        Exception("no such table: inventory"),
        Exception("unable to open database file"),
    ])
    def test_other_errors(self, orig):
        assert not is_retryable(OperationalError("UPDATE inventory", {}, orig))
