"""Persistence contracts consumed by the reconciliation services.

Implementations must raise ``DataUnavailable`` when the backing store cannot
be reached. Every mutating call is its own unit of work; callers do not get
multi-call transactions.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol, Sequence
from uuid import UUID

from bankrec.models.account import Account
from bankrec.models.category import Category
from bankrec.models.reconciliation import ReconciliationItem, ReconciliationSession, TransactionReconciliation
from bankrec.models.transaction import LedgerTransaction


@dataclass(frozen=True)
class LedgerFilter:
    start_date: date | None = None
    end_date: date | None = None
    origin: str | None = None
    origin_session_id: UUID | None = None
    reconciliation_id: UUID | None = None
    limit: int | None = None


class LedgerStore(Protocol):
    def get(self, transaction_id: UUID) -> LedgerTransaction | None: ...

    def query(self, account_id: UUID | None, flt: LedgerFilter) -> Sequence[LedgerTransaction]: ...

    def sum_amounts(self, account_id: UUID, start_date: date | None = None, end_date: date | None = None) -> Decimal: ...

    def insert(self, transaction: LedgerTransaction) -> UUID: ...

    def update(self, transaction_id: UUID, fields: dict[str, Any]) -> LedgerTransaction: ...

    def delete(self, transaction_id: UUID) -> None: ...

    def opening_balance(self, account_id: UUID) -> Decimal: ...

    def set_account_balance(self, account_id: UUID, balance: Decimal) -> None: ...


class SessionStore(Protocol):
    def get(self, session_id: UUID) -> ReconciliationSession | None: ...

    def list(self, account_id: UUID | None = None) -> Sequence[ReconciliationSession]: ...

    def create(self, fields: dict[str, Any]) -> ReconciliationSession: ...

    def update(self, session_id: UUID, fields: dict[str, Any]) -> ReconciliationSession: ...

    def delete(self, session_id: UUID) -> None: ...


class LinkStore(Protocol):
    def upsert(
        self,
        transaction_id: UUID,
        session_id: UUID,
        reconciled: bool,
        reconciled_at: datetime | None,
    ) -> TransactionReconciliation: ...

    def list_by_session(self, session_id: UUID) -> Sequence[TransactionReconciliation]: ...

    def delete_by_session(self, session_id: UUID) -> int: ...

    def delete_by_transaction(self, transaction_id: UUID) -> int: ...


class ItemStore(Protocol):
    def add(self, fields: dict[str, Any]) -> ReconciliationItem: ...

    def list_by_session(self, session_id: UUID) -> Sequence[ReconciliationItem]: ...

    def delete_by_session(self, session_id: UUID) -> int: ...


class ReferenceStore(Protocol):
    """Read-only account and category lookups."""

    def get_account(self, account_id: UUID) -> Account | None: ...

    def list_accounts(self) -> Sequence[Account]: ...

    def get_category(self, category_id: UUID) -> Category | None: ...

    def list_categories(self, kind: str | None = None) -> Sequence[Category]: ...
