"""Pytest fixtures for testing"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from yield_ledger.api.main import create_app
from yield_ledger.infrastructure.database.models import Account, Base, Product
from yield_ledger.infrastructure.database.session import build_engine, build_session_factory, get_session_factory
from yield_ledger.infrastructure.database.unit_of_work import run_atomic
from yield_ledger.services.account_store import SPENDABLE, AccountStore
from yield_ledger.services.accounts import register_account, upsert_product


@pytest.fixture
def engine(tmp_path) -> Generator[Engine, None, None]:
    """File-backed SQLite per test so worker threads share one database"""
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return build_session_factory(engine)


@pytest.fixture
def now() -> datetime:
    """Fixed clock: Monday 2024-03-04 18:00 UTC"""
    return datetime(2024, 3, 4, 18, 0)


@pytest.fixture
def client(session_factory: sessionmaker) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    return TestClient(app)


@pytest.fixture
def fund(session_factory: sessionmaker) -> Callable[..., None]:
    def _fund(account_id: str, amount, field: str = SPENDABLE) -> None:
        run_atomic(
            session_factory,
            lambda uow: AccountStore(uow.session).set_balance(account_id, field, amount),
            name="test_fund",
        )

    return _fund


@pytest.fixture
def make_account(session_factory: sessionmaker, fund) -> Callable[..., Account]:
    counter = {"n": 0}

    def _make(balance="0", inviter: Optional[Account] = None) -> Account:
        counter["n"] += 1
        account = register_account(
            session_factory,
            phone=f"+2348000000{counter['n']:03d}",
            inviter_id=inviter.id if inviter else None,
        )
        if Decimal(str(balance)) != 0:
            fund(account.id, balance)
        return account

    return _make


@pytest.fixture
def product(session_factory: sessionmaker) -> Product:
    """Price 500, daily income 50, 10-day term, one per account"""
    return upsert_product(
        session_factory,
        "starter",
        name="Starter Plan",
        price=Decimal("500"),
        daily_income=Decimal("50"),
        contract_period=10,
        purchase_limit=1,
    )


@pytest.fixture
def balance_of(session_factory: sessionmaker) -> Callable[..., Decimal]:
    def _balance(account_id: str, field: str = SPENDABLE) -> Decimal:
        with session_factory() as db:
            return getattr(db.get(Account, account_id), field)

    return _balance
