"""Ledger Accessor: reads account transactions and derives balances.

Balances are always a full resum of the current transaction set plus the
opening balance. Nothing here applies incremental deltas, so calling any of
the balance functions again after a partial failure converges on the right
value.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from bankrec.cache import ChangeNotifier, NullNotifier, QueryCache
from bankrec.errors import NotFoundError, ValidationError
from bankrec.models.transaction import LedgerTransaction, TransactionKind, TransactionOrigin
from bankrec.money import money
from bankrec.stores.base import LedgerFilter, LedgerStore, ReferenceStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionRecord:
    """Detached, cache-safe copy of a ledger row."""

    id: UUID
    account_id: UUID
    date: date
    amount: Decimal
    description: str | None
    kind: str
    category_id: UUID | None
    payment_method: str
    is_reconciled: bool
    reconciliation_id: UUID | None
    origin: str
    origin_session_id: UUID | None

    @classmethod
    def from_model(cls, t: LedgerTransaction) -> "TransactionRecord":
        return cls(
            id=t.id,
            account_id=t.account_id,
            date=t.date,
            amount=money(t.amount),
            description=t.description,
            kind=t.kind,
            category_id=t.category_id,
            payment_method=t.payment_method,
            is_reconciled=bool(t.is_reconciled),
            reconciliation_id=t.reconciliation_id,
            origin=t.origin,
            origin_session_id=t.origin_session_id,
        )

    @property
    def is_adjustment(self) -> bool:
        return self.origin == TransactionOrigin.RECONCILIATION_ADJUSTMENT.value


def signed_amount(kind: TransactionKind, amount: Decimal) -> Decimal:
    amount = money(amount)
    return amount if kind.is_inflow else -amount


def parse_kind(kind: str | TransactionKind) -> TransactionKind:
    try:
        return TransactionKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown transaction kind: {kind!r}") from None


class LedgerAccessor:
    def __init__(
        self,
        ledger: LedgerStore,
        reference: ReferenceStore,
        cache: QueryCache | None = None,
        notifier: ChangeNotifier | None = None,
    ):
        self.ledger = ledger
        self.reference = reference
        self.cache = cache
        if notifier is None:
            notifier = cache if cache is not None else NullNotifier()
        self.notifier = notifier

    def require_account(self, account_id: UUID):
        acc = self.reference.get_account(account_id)
        if acc is None:
            raise NotFoundError("Account", account_id)
        return acc

    def list_transactions(self, account_id: UUID, start_date: date | None = None, end_date: date | None = None) -> list[TransactionRecord]:
        if start_date and end_date and end_date < start_date:
            raise ValidationError("end_date must be on or after start_date")

        def load():
            rows = self.ledger.query(account_id, LedgerFilter(start_date=start_date, end_date=end_date))
            return [TransactionRecord.from_model(t) for t in rows]

        if self.cache is None:
            return load()
        return self.cache.get_or_load(("ledger", account_id, start_date, end_date), load)

    def get_transaction(self, transaction_id: UUID) -> TransactionRecord:
        t = self.ledger.get(transaction_id)
        if t is None:
            raise NotFoundError("Transaction", transaction_id)
        return TransactionRecord.from_model(t)

    def compute_balance(self, account_id: UUID) -> Decimal:
        return money(self.ledger.opening_balance(account_id) + self.ledger.sum_amounts(account_id))

    def compute_range_balance(self, account_id: UUID, start_date: date, end_date: date) -> Decimal:
        """Opening balance plus every transaction dated inside [start_date, end_date]."""
        if end_date < start_date:
            raise ValidationError("end_date must be on or after start_date")
        total = self.ledger.sum_amounts(account_id, start_date, end_date)
        return money(self.ledger.opening_balance(account_id) + total)

    def has_adjustments(self, account_id: UUID) -> bool:
        rows = self.ledger.query(
            account_id,
            LedgerFilter(origin=TransactionOrigin.RECONCILIATION_ADJUSTMENT.value, limit=1),
        )
        return len(rows) > 0

    def list_adjustments(self, session_id: UUID) -> list[TransactionRecord]:
        rows = self.ledger.query(
            None,
            LedgerFilter(
                origin=TransactionOrigin.RECONCILIATION_ADJUSTMENT.value,
                origin_session_id=session_id,
            ),
        )
        return [TransactionRecord.from_model(t) for t in rows]

    def list_reconciled(self, session_id: UUID) -> list[TransactionRecord]:
        rows = self.ledger.query(None, LedgerFilter(reconciliation_id=session_id))
        return [TransactionRecord.from_model(t) for t in rows if t.is_reconciled]

    def recalculate_account_balance(self, account_id: UUID) -> Decimal:
        balance = self.compute_balance(account_id)
        self.ledger.set_account_balance(account_id, balance)
        logger.info("account %s balance recalculated to %s", account_id, balance)
        self.notifier.notify_changed(("accounts", account_id))
        return balance

    def create_transaction(
        self,
        account_id: UUID,
        kind: str | TransactionKind,
        amount: Decimal,
        on: date,
        description: str | None = None,
        category_id: UUID | None = None,
        payment_method: str = "cash",
    ) -> TransactionRecord:
        kind = parse_kind(kind)
        if amount is None or money(amount) <= 0:
            raise ValidationError("Amount must be greater than zero")
        self.require_account(account_id)
        if category_id is not None and self.reference.get_category(category_id) is None:
            raise ValidationError("Invalid category")

        t = LedgerTransaction(
            account_id=account_id,
            date=on,
            amount=signed_amount(kind, amount),
            description=description,
            kind=kind.value,
            category_id=category_id,
            payment_method=payment_method,
            is_reconciled=False,
            origin=TransactionOrigin.MANUAL.value,
        )
        self.ledger.insert(t)
        self.notifier.notify_changed(("ledger", account_id), ("accounts", account_id))
        return TransactionRecord.from_model(t)
