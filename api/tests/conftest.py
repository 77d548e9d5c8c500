import datetime as dt
from dataclasses import dataclass, replace
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bankrec.cache import QueryCache
from bankrec.config import Settings
from bankrec.deps import wire
from bankrec.models.account import Account
from bankrec.models.base import Base
from bankrec.models.category import Category
from bankrec.stores.sql import SqlItemStore, SqlLedgerStore, SqlLinkStore, SqlReferenceStore, SqlSessionStore

PERIOD_START = dt.date(2026, 1, 1)
PERIOD_END = dt.date(2026, 1, 31)


@dataclass
class Stores:
    ledger: SqlLedgerStore
    sessions: SqlSessionStore
    links: SqlLinkStore
    items: SqlItemStore
    reference: SqlReferenceStore


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    s = Session()
    yield s
    s.close()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def cache():
    return QueryCache()


@pytest.fixture
def stores(db):
    return Stores(
        ledger=SqlLedgerStore(db),
        sessions=SqlSessionStore(db),
        links=SqlLinkStore(db),
        items=SqlItemStore(db),
        reference=SqlReferenceStore(db),
    )


@pytest.fixture
def make_services(stores, cache, settings):
    """Build services, optionally swapping in a fault-injecting store or other settings."""

    def _make(settings=settings, **overrides):
        s = replace(stores, **overrides)
        return wire(s.ledger, s.sessions, s.links, s.items, s.reference, cache, settings)

    return _make


@pytest.fixture
def services(make_services):
    return make_services()


def _make_account(db, name="Main bank", opening=Decimal("1000")):
    acc = Account(name=name, account_type="bank", opening_balance=opening, balance=opening)
    db.add(acc)
    db.commit()
    db.refresh(acc)
    return acc


@pytest.fixture
def account(db):
    return _make_account(db)


@pytest.fixture
def other_account(db):
    return _make_account(db, name="Petty cash", opening=Decimal("50"))


@pytest.fixture
def categories(db):
    income = Category(kind="income", name="Interest")
    expenditure = Category(kind="expenditure", name="Bank charges")
    db.add_all([income, expenditure])
    db.commit()
    return {"income": income.id, "expenditure": expenditure.id}


@pytest.fixture
def post(services, account):
    """Post a manual transaction on ``account``; ``day`` is a day of January 2026."""

    def _post(kind, amount, day=15, account_id=None, svc=None):
        svc = svc or services
        return svc.ledger.create_transaction(
            account_id or account.id,
            kind,
            Decimal(amount),
            dt.date(2026, 1, day),
            description=f"{kind} {amount}",
        )

    return _post


@pytest.fixture
def scenario(post):
    """Opening 1000, +500 income, -200 expenditure: ledger balance 1300."""
    return [post("income", "500", 5), post("expenditure", "200", 10)]


@pytest.fixture
def open_session(services, account):
    def _open(bank_balance, book_balance=None, svc=None):
        svc = svc or services
        return svc.sessions.create_session(
            account.id,
            PERIOD_START,
            PERIOD_END,
            Decimal(bank_balance),
            book_balance=Decimal(book_balance) if book_balance is not None else None,
        )

    return _open


@pytest.fixture
def client(engine, cache):
    from bankrec.db import get_db
    from bankrec.deps import get_cache
    from bankrec.main import app

    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    def override_get_db():
        s = Session()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
