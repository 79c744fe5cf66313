"""Tests for the atomic-unit executor: bounded retry, rollback, post-commit hooks"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from yield_ledger.config import settings
from yield_ledger.domain.events import EventBus
from yield_ledger.domain.exceptions import ConcurrencyConflict
from yield_ledger.infrastructure.database.models import Product
from yield_ledger.infrastructure.database.unit_of_work import is_retryable, run_atomic


class SerializationFailure(Exception):
    pgcode = "40001"


def add_product(uow, product_id="p1"):
    uow.session.add(
        Product(
            id=product_id,
            name="Plan",
            price=Decimal("100.00"),
            daily_income=Decimal("5.00"),
            contract_period=10,
            purchase_limit=1,
            is_active=True,
        )
    )
    uow.session.flush()


def product_count(session_factory) -> int:
    with session_factory() as db:
        return db.query(Product).count()


def test_gives_up_after_max_attempts(session_factory):
    calls = []

    def unit(uow):
        calls.append(1)
        add_product(uow)
        raise StaleDataError("version mismatch")

    with pytest.raises(ConcurrencyConflict) as exc_info:
        run_atomic(session_factory, unit, name="test")

    assert exc_info.value.context["attempts"] == settings.tx_max_attempts
    assert exc_info.value.context["unit"] == "test"
    assert len(calls) == settings.tx_max_attempts
    assert product_count(session_factory) == 0


def test_explicit_attempt_budget(session_factory):
    calls = []

    def unit(uow):
        calls.append(1)
        raise StaleDataError("version mismatch")

    with pytest.raises(ConcurrencyConflict) as exc_info:
        run_atomic(session_factory, unit, name="test", max_attempts=3)

    assert exc_info.value.context["attempts"] == 3
    assert len(calls) == 3


def test_retry_commits_once(session_factory):
    calls = []
    committed = []
    received = []
    bus = EventBus()
    bus.subscribe("acc", received.append)

    def unit(uow):
        calls.append(1)
        add_product(uow)
        uow.on_commit(lambda: committed.append(1))
        uow.emit("test.event", "acc")
        if len(calls) == 1:
            raise StaleDataError("version mismatch")
        return "done"

    assert run_atomic(session_factory, unit, name="test", bus=bus) == "done"

    assert len(calls) == 2
    assert committed == [1]
    assert [e.type for e in received] == ["test.event"]
    assert product_count(session_factory) == 1


def test_other_errors_roll_back_without_retry(session_factory):
    calls = []

    def unit(uow):
        calls.append(1)
        add_product(uow)
        raise ValueError("boom")

    with pytest.raises(ValueError):
        run_atomic(session_factory, unit, name="test")

    assert len(calls) == 1
    assert product_count(session_factory) == 0


def test_failing_callback_does_not_fail_committed_unit(session_factory):
    received = []
    bus = EventBus()
    bus.subscribe("acc", received.append)

    def broken_metrics():
        raise RuntimeError("metrics down")

    def unit(uow):
        add_product(uow)
        uow.on_commit(broken_metrics)
        uow.emit("test.event", "acc")
        return "done"

    assert run_atomic(session_factory, unit, name="test", bus=bus) == "done"

    assert product_count(session_factory) == 1
    assert [e.type for e in received] == ["test.event"]


@pytest.mark.parametrize(
    "exc,expected",
    [
        (StaleDataError("version mismatch"), True),
        (OperationalError("UPDATE", {}, SerializationFailure("could not serialize")), True),
        (OperationalError("UPDATE", {}, Exception("database is locked")), True),
        (OperationalError("UPDATE", {}, Exception("server closed the connection unexpectedly")), False),
        (ValueError("boom"), False),
    ],
)
def test_is_retryable(exc, expected):
    assert is_retryable(exc) is expected
