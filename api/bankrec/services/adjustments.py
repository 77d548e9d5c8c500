"""Difference & Adjustment Engine.

An adjustment is a ledger row posted to close the gap between the bank and
book balances of a session. In this model the book balance mirrors the bank
side: an expenditure adjustment raises the book balance and an income
adjustment lowers it.

Posting is deliberately asymmetric about failure. Anything that goes wrong
before the ledger row and its link exist aborts with nothing left behind.
Once they exist, a failure to store the new book balance only produces an
``InconsistentBalance`` warning and the ledger row stays.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable
from uuid import UUID

from bankrec.cache import ChangeNotifier, NullNotifier
from bankrec.errors import DataUnavailable, InconsistentBalance, NotFoundError, ValidationError
from bankrec.models.base import utcnow
from bankrec.models.reconciliation import ReconciliationSession
from bankrec.models.transaction import LedgerTransaction, TransactionKind, TransactionOrigin
from bankrec.money import money
from bankrec.services.ledger import TransactionRecord, parse_kind, signed_amount
from bankrec.services.lifecycle import SessionLifecycle
from bankrec.services.tracker import Progress, progress
from bankrec.stores.base import LedgerStore, LinkStore, ReferenceStore, SessionStore

logger = logging.getLogger(__name__)

ADJUSTMENT_KINDS = (TransactionKind.INCOME, TransactionKind.EXPENDITURE)


def compute_difference(session: ReconciliationSession) -> Decimal:
    return money(session.bank_balance) - money(session.book_balance)


def suggest_adjustment_kind(difference: Decimal) -> TransactionKind:
    return TransactionKind.EXPENDITURE if difference > 0 else TransactionKind.INCOME


def apply_adjustment(book_balance: Decimal, kind: TransactionKind, amount: Decimal) -> Decimal:
    # incremental on purpose: a resum would count adjustments already folded into book_balance
    if kind == TransactionKind.EXPENDITURE:
        return money(book_balance) + money(amount)
    return money(book_balance) - money(amount)


def reverse_adjustment(book_balance: Decimal, kind: TransactionKind, amount: Decimal) -> Decimal:
    if kind == TransactionKind.EXPENDITURE:
        return money(book_balance) - money(amount)
    return money(book_balance) + money(amount)


@dataclass(frozen=True)
class Suggestion:
    kind: TransactionKind
    amount: Decimal
    difference: Decimal


@dataclass
class AdjustmentEntry:
    transaction: TransactionRecord
    session_id: UUID
    previous_book_balance: Decimal
    book_balance: Decimal | None
    warning: InconsistentBalance | None = None

    @property
    def balances_updated(self) -> bool:
        return self.warning is None


@dataclass
class AdjustmentRemoval:
    transaction_id: UUID
    session_id: UUID | None
    book_balance: Decimal | None
    warning: InconsistentBalance | None = None


@dataclass
class ReconciliationSummary:
    total_transactions: int
    reconciled_transactions: int
    total_amount: Decimal
    reconciled_amount: Decimal
    cleared_income: Decimal
    cleared_expenditure: Decimal
    uncleared_income: Decimal
    uncleared_expenditure: Decimal
    bank_balance: Decimal
    book_balance: Decimal
    difference: Decimal
    is_balanced: bool
    adjusted_book_balance: Decimal
    final_difference: Decimal
    progress: Progress


class AdjustmentEngine:
    def __init__(
        self,
        ledger: LedgerStore,
        links: LinkStore,
        sessions: SessionStore,
        reference: ReferenceStore,
        lifecycle: SessionLifecycle,
        notifier: ChangeNotifier | None = None,
        tolerance: Decimal = Decimal("0.01"),
        marker: str = "[RECONCILIATION]",
        payment_method: str = "reconciliation",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ledger = ledger
        self.links = links
        self.sessions = sessions
        self.reference = reference
        self.lifecycle = lifecycle
        self.notifier = notifier if notifier is not None else NullNotifier()
        self.tolerance = tolerance
        self.marker = marker
        self.payment_method = payment_method
        self.clock = clock

    def _session(self, session_id: UUID) -> ReconciliationSession:
        rec = self.sessions.get(session_id)
        if rec is None:
            raise NotFoundError("Reconciliation", session_id)
        return rec

    def is_balanced(self, session: ReconciliationSession) -> bool:
        return abs(compute_difference(session)) < self.tolerance

    def suggest_adjustment(self, session: ReconciliationSession) -> Suggestion:
        difference = compute_difference(session)
        return Suggestion(kind=suggest_adjustment_kind(difference), amount=abs(difference), difference=difference)

    def describe(self, description: str | None, session_id: UUID) -> str:
        text = (description or "").strip() or "Reconciliation adjustment"
        return f"{self.marker} {text} (Reconciliation ID: {session_id})"

    def post_adjustment(
        self,
        session_id: UUID,
        kind: str | TransactionKind,
        amount: Decimal,
        category_id: UUID | None = None,
        description: str | None = None,
        on: date | None = None,
    ) -> AdjustmentEntry:
        kind = parse_kind(kind)
        if kind not in ADJUSTMENT_KINDS:
            raise ValidationError("Adjustments must be income or expenditure")
        if amount is None or money(amount) <= 0:
            raise ValidationError("Adjustment amount must be greater than zero")
        amount = money(amount)
        session = self._session(session_id)
        self.lifecycle.ensure_mutable(session, "adjustment")
        if category_id is not None:
            category = self.reference.get_category(category_id)
            if category is None or category.kind != kind.value:
                raise ValidationError(f"Invalid {kind.value} category")
        previous_book = money(session.book_balance)

        tx = LedgerTransaction(
            account_id=session.account_id,
            date=on or session.end_date,
            amount=signed_amount(kind, amount),
            description=self.describe(description, session_id),
            kind=kind.value,
            category_id=category_id,
            payment_method=self.payment_method,
            is_reconciled=True,
            reconciliation_id=session_id,
            origin=TransactionOrigin.RECONCILIATION_ADJUSTMENT.value,
            origin_session_id=session_id,
        )
        tx_id = self.ledger.insert(tx)
        record = TransactionRecord.from_model(tx)
        try:
            self.links.upsert(tx_id, session_id, True, self.clock())
        except DataUnavailable:
            self._discard(tx_id)
            raise
        logger.info("adjustment %s (%s %s) posted to reconciliation %s", tx_id, kind.value, amount, session_id)

        warning = None
        new_book = apply_adjustment(previous_book, kind, amount)
        try:
            self.sessions.update(session_id, {"book_balance": new_book})
        except (DataUnavailable, NotFoundError) as exc:
            warning = InconsistentBalance(session_id)
            logger.warning("%s: reconciliation %s, adjustment %s: %s", warning.message, session_id, tx_id, exc)
            new_book = None

        self.notifier.notify_changed(
            ("ledger", session.account_id),
            ("accounts", session.account_id),
            ("reconciliation", session_id),
        )
        return AdjustmentEntry(
            transaction=record,
            session_id=session_id,
            previous_book_balance=previous_book,
            book_balance=new_book,
            warning=warning,
        )

    def _discard(self, transaction_id: UUID) -> None:
        try:
            self.ledger.delete(transaction_id)
        except DataUnavailable as exc:
            # left for the marker-based cleanup in cascade deletion
            logger.error("orphaned adjustment %s could not be removed: %s", transaction_id, exc.message)

    def remove_adjustment(self, transaction_id: UUID) -> AdjustmentRemoval:
        """Delete one adjustment and undo its effect on the session's book balance."""
        tx = self.ledger.get(transaction_id)
        if tx is None:
            raise NotFoundError("Transaction", transaction_id)
        if tx.origin != TransactionOrigin.RECONCILIATION_ADJUSTMENT.value:
            raise ValidationError(f"Transaction {transaction_id} is not a reconciliation adjustment")
        kind = parse_kind(tx.kind)
        amount = abs(money(tx.amount))
        account_id = tx.account_id
        session_id = tx.origin_session_id
        session = self.sessions.get(session_id) if session_id else None
        if session is not None:
            self.lifecycle.ensure_mutable(session, "remove adjustment")

        self.links.delete_by_transaction(transaction_id)
        self.ledger.delete(transaction_id)
        logger.info("adjustment %s removed from reconciliation %s", transaction_id, session_id)

        result = AdjustmentRemoval(transaction_id=transaction_id, session_id=session_id, book_balance=None)
        if session is not None:
            new_book = reverse_adjustment(session.book_balance, kind, amount)
            try:
                self.sessions.update(session.id, {"book_balance": new_book})
                result.book_balance = new_book
            except (DataUnavailable, NotFoundError) as exc:
                result.warning = InconsistentBalance(session.id)
                logger.warning("%s: reconciliation %s: %s", result.warning.message, session.id, exc)

        keys = [("ledger", account_id), ("accounts", account_id)]
        if session_id:
            keys.append(("reconciliation", session_id))
        self.notifier.notify_changed(*keys)
        return result

    def summary(self, session: ReconciliationSession, transactions: Iterable[TransactionRecord]) -> ReconciliationSummary:
        txs = list(transactions)
        zero = Decimal("0.00")

        def total(rows):
            return money(sum((t.amount for t in rows), zero))

        def outflow(rows):
            return money(sum((abs(t.amount) for t in rows), zero))

        inflows = [t for t in txs if parse_kind(t.kind).is_inflow]
        outflows = [t for t in txs if not parse_kind(t.kind).is_inflow]
        uncleared_income = total(t for t in inflows if not t.is_reconciled)
        uncleared_expenditure = outflow(t for t in outflows if not t.is_reconciled)

        bank = money(session.bank_balance)
        book = money(session.book_balance)
        difference = bank - book
        adjusted = book + uncleared_income - uncleared_expenditure
        return ReconciliationSummary(
            total_transactions=len(txs),
            reconciled_transactions=sum(1 for t in txs if t.is_reconciled),
            total_amount=total(txs),
            reconciled_amount=total(t for t in txs if t.is_reconciled),
            cleared_income=total(t for t in inflows if t.is_reconciled),
            cleared_expenditure=outflow(t for t in outflows if t.is_reconciled),
            uncleared_income=uncleared_income,
            uncleared_expenditure=uncleared_expenditure,
            bank_balance=bank,
            book_balance=book,
            difference=difference,
            is_balanced=abs(difference) < self.tolerance,
            adjusted_book_balance=adjusted,
            final_difference=bank - adjusted,
            progress=progress(txs),
        )
