"""Transaction Reconciliation Tracker.

Marks ledger transactions as matched against a session. Toggling is
balance-neutral: nothing in this module reads or writes a balance.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable
from uuid import UUID

from bankrec.cache import ChangeNotifier, NullNotifier
from bankrec.errors import NotFoundError, ReconciliationError, ValidationError
from bankrec.models.base import utcnow
from bankrec.models.reconciliation import ReconciliationSession
from bankrec.models.transaction import LedgerTransaction
from bankrec.services.ledger import TransactionRecord
from bankrec.services.lifecycle import SessionLifecycle
from bankrec.stores.base import LedgerStore, LinkStore, SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionState:
    is_reconciled: bool
    reconciliation_id: UUID | None = None


@dataclass(frozen=True)
class Progress:
    reconciled: int
    total: int

    @property
    def ratio(self) -> float:
        return self.reconciled / self.total if self.total else 0.0

    @property
    def percent(self) -> float:
        return round(self.ratio * 100, 2)


def progress(transactions: Iterable[TransactionRecord]) -> Progress:
    txs = list(transactions)
    return Progress(reconciled=sum(1 for t in txs if t.is_reconciled), total=len(txs))


class ReconciliationView:
    """The caller's optimistic picture of which transactions are reconciled."""

    def __init__(self, states: dict[UUID, TransactionState] | None = None):
        self._states: dict[UUID, TransactionState] = dict(states or {})

    @classmethod
    def from_records(cls, records: Iterable[TransactionRecord]) -> "ReconciliationView":
        return cls({r.id: TransactionState(r.is_reconciled, r.reconciliation_id) for r in records})

    def state(self, transaction_id: UUID) -> TransactionState:
        return self._states.get(transaction_id, TransactionState(False))

    def snapshot(self) -> dict[UUID, TransactionState]:
        return dict(self._states)

    def restore(self, snapshot: dict[UUID, TransactionState]) -> None:
        self._states = dict(snapshot)

    def apply(self, transaction_ids: Iterable[UUID], reconciled: bool, session_id: UUID) -> None:
        for tx_id in transaction_ids:
            self._states[tx_id] = TransactionState(reconciled, session_id if reconciled else None)

    def progress(self) -> Progress:
        return Progress(
            reconciled=sum(1 for s in self._states.values() if s.is_reconciled),
            total=len(self._states),
        )

    def __len__(self) -> int:
        return len(self._states)


@dataclass
class BatchOutcome:
    session_id: UUID
    reconciled: bool
    requested: list[UUID]
    applied: list[UUID] = field(default_factory=list)
    failed: dict[UUID, str] = field(default_factory=dict)
    skipped: list[UUID] = field(default_factory=list)
    reverted: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


class ReconciliationTracker:
    def __init__(
        self,
        ledger: LedgerStore,
        links: LinkStore,
        sessions: SessionStore,
        lifecycle: SessionLifecycle,
        notifier: ChangeNotifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ledger = ledger
        self.links = links
        self.sessions = sessions
        self.lifecycle = lifecycle
        self.notifier = notifier if notifier is not None else NullNotifier()
        self.clock = clock

    def _session(self, session_id: UUID) -> ReconciliationSession:
        rec = self.sessions.get(session_id)
        if rec is None:
            raise NotFoundError("Reconciliation", session_id)
        return rec

    def _transaction(self, transaction_id: UUID, session: ReconciliationSession) -> LedgerTransaction:
        tx = self.ledger.get(transaction_id)
        if tx is None:
            raise NotFoundError("Transaction", transaction_id)
        if tx.account_id != session.account_id:
            raise ValidationError(f"Transaction {transaction_id} belongs to a different account")
        if not (session.start_date <= tx.date <= session.end_date):
            raise ValidationError(f"Transaction {transaction_id} is outside the reconciliation period")
        return tx

    def _write(
        self,
        transaction_id: UUID,
        state: TransactionState,
        session_id: UUID,
        prior: TransactionState | None = None,
    ) -> LedgerTransaction:
        # a transaction holds at most one active link: release the one another session owns
        if prior is not None and prior.is_reconciled and prior.reconciliation_id not in (None, session_id, state.reconciliation_id):
            self.links.upsert(transaction_id, prior.reconciliation_id, False, None)
        tx = self.ledger.update(
            transaction_id,
            {"is_reconciled": state.is_reconciled, "reconciliation_id": state.reconciliation_id},
        )
        linked_here = state.is_reconciled and state.reconciliation_id == session_id
        self.links.upsert(transaction_id, session_id, linked_here, self.clock() if linked_here else None)
        if state.is_reconciled and state.reconciliation_id not in (None, session_id):
            # restoring a link owned by another session
            self.links.upsert(transaction_id, state.reconciliation_id, True, self.clock())
        return tx

    def set_reconciled(self, transaction_id: UUID, reconciled: bool, session_id: UUID) -> TransactionRecord:
        session = self._session(session_id)
        self.lifecycle.ensure_mutable(session, "toggle")
        tx = self._transaction(transaction_id, session)
        prior = TransactionState(bool(tx.is_reconciled), tx.reconciliation_id)
        if reconciled and prior.reconciliation_id not in (None, session_id):
            logger.info("transaction %s moves from reconciliation %s to %s", transaction_id, prior.reconciliation_id, session_id)

        target = TransactionState(reconciled, session_id if reconciled else None)
        try:
            tx = self._write(transaction_id, target, session_id, prior)
        except ReconciliationError as exc:
            logger.warning("toggling %s on reconciliation %s failed: %s; reverting", transaction_id, session_id, exc.message)
            self._compensate([transaction_id], {transaction_id: prior}, target, session_id)
            raise
        finally:
            self.notifier.notify_changed(("ledger", session.account_id), ("reconciliation", session_id))
        return TransactionRecord.from_model(tx)

    def batch_set_reconciled(
        self,
        transaction_ids: Iterable[UUID],
        reconciled: bool,
        session_id: UUID,
        view: ReconciliationView | None = None,
    ) -> BatchOutcome:
        """Apply one flag to many transactions, all or nothing.

        Every id is validated before anything is written. The view is updated
        optimistically; if any single write fails the view goes back to its
        pre-batch snapshot and the writes already made are undone on a
        best-effort basis.
        """
        ids = list(dict.fromkeys(transaction_ids))
        session = self._session(session_id)
        self.lifecycle.ensure_mutable(session, "batch toggle")
        prior = {}
        for tx_id in ids:
            tx = self._transaction(tx_id, session)
            prior[tx_id] = TransactionState(bool(tx.is_reconciled), tx.reconciliation_id)

        if view is None:
            view = ReconciliationView(prior)
        before = view.snapshot()
        view.apply(ids, reconciled, session_id)

        outcome = BatchOutcome(session_id=session_id, reconciled=reconciled, requested=ids)
        target = TransactionState(reconciled, session_id if reconciled else None)
        for i, tx_id in enumerate(ids):
            try:
                self._write(tx_id, target, session_id, prior[tx_id])
            except ReconciliationError as exc:
                outcome.failed[tx_id] = exc.message
                outcome.skipped = ids[i + 1:]
                view.restore(before)
                self._compensate(outcome.applied + [tx_id], prior, target, session_id)
                outcome.reverted = True
                logger.warning(
                    "batch reconcile on %s failed at %s after %d of %d; reverted",
                    session_id, tx_id, len(outcome.applied), len(ids),
                )
                self.notifier.notify_changed(("ledger", session.account_id), ("reconciliation", session_id))
                return outcome
            outcome.applied.append(tx_id)

        self.notifier.notify_changed(("ledger", session.account_id), ("reconciliation", session_id))
        return outcome

    def _compensate(
        self,
        transaction_ids: list[UUID],
        prior: dict[UUID, TransactionState],
        attempted: TransactionState,
        session_id: UUID,
    ) -> None:
        for tx_id in reversed(transaction_ids):
            try:
                self._write(tx_id, prior[tx_id], session_id, attempted)
            except ReconciliationError as exc:
                logger.error("could not restore reconciliation state of %s: %s", tx_id, exc.message)
