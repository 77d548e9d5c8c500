from dataclasses import dataclass

from fastapi import Depends
from sqlalchemy.orm import Session

from bankrec.cache import QueryCache
from bankrec.config import Settings, get_settings
from bankrec.db import get_db
from bankrec.services.adjustments import AdjustmentEngine
from bankrec.services.cascade import CascadeDeletionCoordinator
from bankrec.services.ledger import LedgerAccessor
from bankrec.services.lifecycle import SessionLifecycle
from bankrec.services.sessions import SessionService
from bankrec.services.tracker import ReconciliationTracker
from bankrec.stores.sql import SqlItemStore, SqlLedgerStore, SqlLinkStore, SqlReferenceStore, SqlSessionStore


_cache = QueryCache()


@dataclass
class Services:
    ledger: LedgerAccessor
    sessions: SessionService
    lifecycle: SessionLifecycle
    tracker: ReconciliationTracker
    adjustments: AdjustmentEngine
    cascade: CascadeDeletionCoordinator
    reference: SqlReferenceStore


def build_services(db: Session, cache: QueryCache | None = None, settings: Settings | None = None) -> Services:
    settings = settings or get_settings()
    ledger_store = SqlLedgerStore(db)
    session_store = SqlSessionStore(db)
    link_store = SqlLinkStore(db)
    item_store = SqlItemStore(db)
    reference = SqlReferenceStore(db)
    return wire(ledger_store, session_store, link_store, item_store, reference, cache, settings)


def wire(ledger_store, session_store, link_store, item_store, reference, cache, settings: Settings) -> Services:
    notifier = cache
    lifecycle = SessionLifecycle(
        session_store,
        tolerance=settings.balance_tolerance,
        lock_completed=settings.lock_completed_sessions,
        notifier=notifier,
    )
    ledger = LedgerAccessor(ledger_store, reference, cache=cache, notifier=notifier)
    return Services(
        ledger=ledger,
        sessions=SessionService(session_store, item_store, ledger, lifecycle, notifier=notifier),
        lifecycle=lifecycle,
        tracker=ReconciliationTracker(ledger_store, link_store, session_store, lifecycle, notifier=notifier),
        adjustments=AdjustmentEngine(
            ledger_store,
            link_store,
            session_store,
            reference,
            lifecycle,
            notifier=notifier,
            tolerance=settings.balance_tolerance,
            marker=settings.adjustment_marker,
            payment_method=settings.adjustment_payment_method,
        ),
        cascade=CascadeDeletionCoordinator(ledger_store, link_store, item_store, session_store, notifier=notifier),
        reference=reference,
    )


def get_cache() -> QueryCache:
    return _cache


def get_services(db: Session = Depends(get_db), cache: QueryCache = Depends(get_cache)) -> Services:
    return build_services(db, cache)
