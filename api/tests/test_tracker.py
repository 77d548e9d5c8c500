import datetime as dt
from decimal import Decimal

import pytest

from bankrec.errors import DataUnavailable, NotFoundError, ValidationError
from bankrec.services.tracker import Progress, ReconciliationView, progress
from bankrec.stores.sql import SqlLedgerStore, SqlLinkStore


class FlakyLedgerStore(SqlLedgerStore):
    """Refuses updates for the ids in ``fail_on``."""

    def __init__(self, db):
        super().__init__(db)
        self.fail_on = set()

    def update(self, transaction_id, fields):
        if transaction_id in self.fail_on:
            raise DataUnavailable("ledger.update failed: store unavailable")
        return super().update(transaction_id, fields)


class FlakyLinkStore(SqlLinkStore):
    def __init__(self, db):
        super().__init__(db)
        self.fail_on = set()

    def upsert(self, transaction_id, session_id, reconciled, reconciled_at):
        if transaction_id in self.fail_on:
            raise DataUnavailable("link.upsert failed: store unavailable")
        return super().upsert(transaction_id, session_id, reconciled, reconciled_at)


def _states(services, account):
    return {t.id: (t.is_reconciled, t.reconciliation_id) for t in services.ledger.list_transactions(account.id)}


def test_toggle_is_balance_neutral(services, account, scenario, open_session):
    rec = open_session("1300")
    before_book = rec.book_balance

    services.tracker.set_reconciled(scenario[0].id, True, rec.id)
    services.tracker.set_reconciled(scenario[1].id, True, rec.id)
    services.tracker.set_reconciled(scenario[1].id, False, rec.id)

    assert services.sessions.get_session(rec.id).book_balance == before_book
    assert services.ledger.compute_balance(account.id) == Decimal("1300.00")


def test_toggle_records_link_rows(services, stores, scenario, open_session):
    rec = open_session("1300")
    tx = scenario[0]

    marked = services.tracker.set_reconciled(tx.id, True, rec.id)
    assert marked.is_reconciled is True
    assert marked.reconciliation_id == rec.id
    [link] = stores.links.list_by_session(rec.id)
    assert link.transaction_id == tx.id
    assert link.is_reconciled is True
    assert link.reconciled_at is not None

    cleared = services.tracker.set_reconciled(tx.id, False, rec.id)
    assert cleared.is_reconciled is False
    assert cleared.reconciliation_id is None
    [link] = stores.links.list_by_session(rec.id)
    assert link.is_reconciled is False
    assert link.reconciled_at is None


def test_toggle_rejects_transaction_outside_period(services, account, open_session):
    rec = open_session("1000")
    late = services.ledger.create_transaction(account.id, "income", Decimal("5"), dt.date(2026, 2, 2))

    with pytest.raises(ValidationError):
        services.tracker.set_reconciled(late.id, True, rec.id)


def test_toggle_rejects_transaction_of_another_account(services, other_account, post, open_session):
    rec = open_session("1000")
    foreign = post("income", "5", account_id=other_account.id)

    with pytest.raises(ValidationError):
        services.tracker.set_reconciled(foreign.id, True, rec.id)


def test_progress_counts_reconciled_share(services, account, post, open_session):
    txs = [post("income", str(10 + i), day=i + 1) for i in range(10)]
    rec = open_session("1000")

    outcome = services.tracker.batch_set_reconciled([t.id for t in txs[:3]], True, rec.id)
    assert outcome.ok

    p = progress(services.ledger.list_transactions(account.id, rec.start_date, rec.end_date))
    assert p == Progress(reconciled=3, total=10)
    assert p.percent == 30.0


def test_progress_of_empty_period_is_zero():
    assert Progress(0, 0).percent == 0.0


def test_batch_applies_every_id(services, account, scenario, open_session):
    rec = open_session("1300")
    view = ReconciliationView.from_records(services.ledger.list_transactions(account.id))

    outcome = services.tracker.batch_set_reconciled([t.id for t in scenario], True, rec.id, view=view)

    assert outcome.ok
    assert outcome.applied == [t.id for t in scenario]
    assert view.progress() == Progress(2, 2)
    assert all(state == (True, rec.id) for state in _states(services, account).values())


def test_batch_is_all_or_nothing_when_ledger_write_fails(db, make_services, account, post, open_session):
    ledger = FlakyLedgerStore(db)
    services = make_services(ledger=ledger)
    t1, t2, t3 = (post(k, a, svc=services) for k, a in [("income", "10"), ("income", "20"), ("expenditure", "5")])
    rec = open_session("1025", svc=services)
    view = ReconciliationView.from_records(services.ledger.list_transactions(account.id))
    before = view.snapshot()
    ledger.fail_on.add(t2.id)

    outcome = services.tracker.batch_set_reconciled([t1.id, t2.id, t3.id], True, rec.id, view=view)

    assert not outcome.ok
    assert list(outcome.failed) == [t2.id]
    assert outcome.skipped == [t3.id]
    assert outcome.reverted
    assert view.snapshot() == before
    assert all(state == (False, None) for state in _states(services, account).values())


def test_batch_is_all_or_nothing_when_link_write_fails(db, make_services, stores, account, post, open_session):
    links = FlakyLinkStore(db)
    services = make_services(links=links)
    t1, t2, t3 = (post("income", a, svc=services) for a in ["10", "20", "30"])
    rec = open_session("1060", svc=services)
    links.fail_on.add(t2.id)

    outcome = services.tracker.batch_set_reconciled([t1.id, t2.id, t3.id], True, rec.id)

    assert not outcome.ok
    assert outcome.applied == [t1.id]
    assert all(state == (False, None) for state in _states(services, account).values())
    assert not [link for link in stores.links.list_by_session(rec.id) if link.is_reconciled]


def test_batch_validates_every_id_before_writing(services, account, post, open_session):
    inside = post("income", "10", 3)
    rec = open_session("1010")
    outside = services.ledger.create_transaction(account.id, "income", Decimal("5"), dt.date(2026, 3, 1))
    view = ReconciliationView.from_records([inside])

    with pytest.raises(ValidationError):
        services.tracker.batch_set_reconciled([inside.id, outside.id], True, rec.id, view=view)

    assert view.state(inside.id).is_reconciled is False
    assert services.ledger.get_transaction(inside.id).is_reconciled is False


def test_batch_ignores_duplicate_ids(services, scenario, open_session):
    rec = open_session("1300")
    tx = scenario[0]

    outcome = services.tracker.batch_set_reconciled([tx.id, tx.id], True, rec.id)

    assert outcome.requested == [tx.id]
    assert outcome.applied == [tx.id]


class VanishingLedgerStore(FlakyLedgerStore):
    """Rows in ``fail_on`` disappear between validation and write."""

    def update(self, transaction_id, fields):
        if transaction_id in self.fail_on:
            raise NotFoundError("Transaction", transaction_id)
        return SqlLedgerStore.update(self, transaction_id, fields)


def _active_links(stores, *sessions):
    return [s.id for s in sessions for link in stores.links.list_by_session(s.id) if link.is_reconciled]


def test_failed_toggle_is_reverted_and_cache_invalidated(db, make_services, stores, cache, account, post, open_session):
    links = FlakyLinkStore(db)
    services = make_services(links=links)
    tx = post("income", "10", svc=services)
    rec = open_session("1010", svc=services)
    services.ledger.list_transactions(account.id)
    links.fail_on.add(tx.id)

    with pytest.raises(DataUnavailable):
        services.tracker.set_reconciled(tx.id, True, rec.id)

    stored = stores.ledger.get(tx.id)
    assert (stored.is_reconciled, stored.reconciliation_id) == (False, None)
    assert ("ledger", account.id, None, None) not in cache
    assert _states(services, account) == {tx.id: (False, None)}
    assert _active_links(stores, rec) == []


def test_moving_a_transaction_releases_the_old_link(services, stores, scenario, open_session):
    first, second = open_session("1300"), open_session("1300")
    tx = scenario[0]

    services.tracker.set_reconciled(tx.id, True, first.id)
    moved = services.tracker.set_reconciled(tx.id, True, second.id)

    assert moved.reconciliation_id == second.id
    assert _active_links(stores, first, second) == [second.id]


def test_batch_move_releases_the_old_links(services, stores, scenario, open_session):
    first, second = open_session("1300"), open_session("1300")
    ids = [t.id for t in scenario]
    services.tracker.batch_set_reconciled(ids, True, first.id)

    outcome = services.tracker.batch_set_reconciled(ids, True, second.id)

    assert outcome.ok
    assert _active_links(stores, first, second) == [second.id, second.id]


def test_unreconciling_from_another_session_releases_its_link(services, stores, scenario, open_session):
    first, second = open_session("1300"), open_session("1300")
    tx = scenario[0]
    services.tracker.set_reconciled(tx.id, True, first.id)

    services.tracker.set_reconciled(tx.id, False, second.id)

    assert _active_links(stores, first, second) == []


def test_failed_move_keeps_the_original_session(db, make_services, stores, scenario, open_session):
    first, second = open_session("1300"), open_session("1300")
    tx = scenario[0]
    links = FlakyLinkStore(db)
    services = make_services(links=links)
    services.tracker.set_reconciled(tx.id, True, first.id)
    links.fail_on.add(tx.id)

    with pytest.raises(DataUnavailable):
        services.tracker.set_reconciled(tx.id, True, second.id)

    assert services.ledger.get_transaction(tx.id).reconciliation_id == first.id
    assert _active_links(stores, first, second) == [first.id]


def test_batch_reverts_when_a_row_vanishes(db, make_services, account, post, open_session):
    ledger = VanishingLedgerStore(db)
    services = make_services(ledger=ledger)
    t1, t2 = post("income", "10", svc=services), post("income", "20", svc=services)
    rec = open_session("1030", svc=services)
    view = ReconciliationView.from_records(services.ledger.list_transactions(account.id))
    before = view.snapshot()
    ledger.fail_on.add(t2.id)

    outcome = services.tracker.batch_set_reconciled([t1.id, t2.id], True, rec.id, view=view)

    assert not outcome.ok
    assert outcome.reverted
    assert view.snapshot() == before
    assert all(state == (False, None) for state in _states(services, account).values())
