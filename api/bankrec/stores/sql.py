import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bankrec.errors import DataUnavailable, NotFoundError
from bankrec.money import money
from bankrec.models.account import Account
from bankrec.models.category import Category
from bankrec.models.reconciliation import ReconciliationItem, ReconciliationSession, TransactionReconciliation
from bankrec.models.transaction import LedgerTransaction
from bankrec.stores.base import LedgerFilter

logger = logging.getLogger(__name__)


@contextmanager
def _guard(db: Session, operation: str):
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("store operation %s failed: %s", operation, exc)
        raise DataUnavailable(f"{operation} failed: store unavailable") from exc


class SqlLedgerStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, transaction_id: UUID) -> LedgerTransaction | None:
        with _guard(self.db, "ledger.get"):
            return self.db.get(LedgerTransaction, transaction_id)

    def query(self, account_id: UUID | None, flt: LedgerFilter) -> list[LedgerTransaction]:
        with _guard(self.db, "ledger.query"):
            q = self.db.query(LedgerTransaction)
            if account_id is not None:
                q = q.filter(LedgerTransaction.account_id == account_id)
            if flt.start_date:
                q = q.filter(LedgerTransaction.date >= flt.start_date)
            if flt.end_date:
                q = q.filter(LedgerTransaction.date <= flt.end_date)
            if flt.origin:
                q = q.filter(LedgerTransaction.origin == flt.origin)
            if flt.origin_session_id:
                q = q.filter(LedgerTransaction.origin_session_id == flt.origin_session_id)
            if flt.reconciliation_id:
                q = q.filter(LedgerTransaction.reconciliation_id == flt.reconciliation_id)
            q = q.order_by(LedgerTransaction.date.desc(), LedgerTransaction.created_at.desc())
            if flt.limit:
                q = q.limit(flt.limit)
            return q.all()

    def sum_amounts(self, account_id: UUID, start_date: date | None = None, end_date: date | None = None) -> Decimal:
        with _guard(self.db, "ledger.sum"):
            q = self.db.query(sa.func.coalesce(sa.func.sum(LedgerTransaction.amount), 0)).filter(
                LedgerTransaction.account_id == account_id
            )
            if start_date:
                q = q.filter(LedgerTransaction.date >= start_date)
            if end_date:
                q = q.filter(LedgerTransaction.date <= end_date)
            return money(q.scalar())

    def insert(self, transaction: LedgerTransaction) -> UUID:
        with _guard(self.db, "ledger.insert"):
            self.db.add(transaction)
            self.db.commit()
            self.db.refresh(transaction)
            return transaction.id

    def update(self, transaction_id: UUID, fields: dict[str, Any]) -> LedgerTransaction:
        with _guard(self.db, "ledger.update"):
            t = self.db.get(LedgerTransaction, transaction_id)
            if t is None:
                raise NotFoundError("Transaction", transaction_id)
            for key, value in fields.items():
                setattr(t, key, value)
            self.db.commit()
            self.db.refresh(t)
            return t

    def delete(self, transaction_id: UUID) -> None:
        with _guard(self.db, "ledger.delete"):
            t = self.db.get(LedgerTransaction, transaction_id)
            if t is not None:
                self.db.delete(t)
                self.db.commit()

    def opening_balance(self, account_id: UUID) -> Decimal:
        with _guard(self.db, "ledger.opening_balance"):
            acc = self.db.get(Account, account_id)
            if acc is None:
                raise NotFoundError("Account", account_id)
            return money(acc.opening_balance)

    def set_account_balance(self, account_id: UUID, balance: Decimal) -> None:
        with _guard(self.db, "ledger.set_account_balance"):
            acc = self.db.get(Account, account_id)
            if acc is None:
                raise NotFoundError("Account", account_id)
            acc.balance = balance
            self.db.commit()


class SqlSessionStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, session_id: UUID) -> ReconciliationSession | None:
        with _guard(self.db, "session.get"):
            return self.db.get(ReconciliationSession, session_id)

    def list(self, account_id: UUID | None = None) -> list[ReconciliationSession]:
        with _guard(self.db, "session.list"):
            q = self.db.query(ReconciliationSession)
            if account_id is not None:
                q = q.filter(ReconciliationSession.account_id == account_id)
            return q.order_by(ReconciliationSession.end_date.desc(), ReconciliationSession.created_at.desc()).all()

    def create(self, fields: dict[str, Any]) -> ReconciliationSession:
        with _guard(self.db, "session.create"):
            rec = ReconciliationSession(**fields)
            self.db.add(rec)
            self.db.commit()
            self.db.refresh(rec)
            return rec

    def update(self, session_id: UUID, fields: dict[str, Any]) -> ReconciliationSession:
        with _guard(self.db, "session.update"):
            rec = self.db.get(ReconciliationSession, session_id)
            if rec is None:
                raise NotFoundError("Reconciliation", session_id)
            for key, value in fields.items():
                setattr(rec, key, value)
            self.db.commit()
            self.db.refresh(rec)
            return rec

    def delete(self, session_id: UUID) -> None:
        with _guard(self.db, "session.delete"):
            rec = self.db.get(ReconciliationSession, session_id)
            if rec is None:
                raise NotFoundError("Reconciliation", session_id)
            self.db.delete(rec)
            self.db.commit()


class SqlLinkStore:
    def __init__(self, db: Session):
        self.db = db

    def upsert(
        self,
        transaction_id: UUID,
        session_id: UUID,
        reconciled: bool,
        reconciled_at: datetime | None,
    ) -> TransactionReconciliation:
        with _guard(self.db, "link.upsert"):
            link = (
                self.db.query(TransactionReconciliation)
                .filter_by(transaction_id=transaction_id, reconciliation_id=session_id)
                .one_or_none()
            )
            if link is None:
                link = TransactionReconciliation(transaction_id=transaction_id, reconciliation_id=session_id)
                self.db.add(link)
            link.is_reconciled = reconciled
            link.reconciled_at = reconciled_at
            self.db.commit()
            self.db.refresh(link)
            return link

    def list_by_session(self, session_id: UUID) -> list[TransactionReconciliation]:
        with _guard(self.db, "link.list"):
            return self.db.query(TransactionReconciliation).filter_by(reconciliation_id=session_id).all()

    def delete_by_session(self, session_id: UUID) -> int:
        with _guard(self.db, "link.delete_by_session"):
            n = self.db.query(TransactionReconciliation).filter_by(reconciliation_id=session_id).delete()
            self.db.commit()
            return n

    def delete_by_transaction(self, transaction_id: UUID) -> int:
        with _guard(self.db, "link.delete_by_transaction"):
            n = self.db.query(TransactionReconciliation).filter_by(transaction_id=transaction_id).delete()
            self.db.commit()
            return n


class SqlItemStore:
    def __init__(self, db: Session):
        self.db = db

    def add(self, fields: dict[str, Any]) -> ReconciliationItem:
        with _guard(self.db, "item.add"):
            item = ReconciliationItem(**fields)
            self.db.add(item)
            self.db.commit()
            self.db.refresh(item)
            return item

    def list_by_session(self, session_id: UUID) -> list[ReconciliationItem]:
        with _guard(self.db, "item.list"):
            return (
                self.db.query(ReconciliationItem)
                .filter_by(reconciliation_id=session_id)
                .order_by(ReconciliationItem.date)
                .all()
            )

    def delete_by_session(self, session_id: UUID) -> int:
        with _guard(self.db, "item.delete_by_session"):
            n = self.db.query(ReconciliationItem).filter_by(reconciliation_id=session_id).delete()
            self.db.commit()
            return n


class SqlReferenceStore:
    def __init__(self, db: Session):
        self.db = db

    def get_account(self, account_id: UUID) -> Account | None:
        with _guard(self.db, "reference.get_account"):
            return self.db.get(Account, account_id)

    def list_accounts(self) -> list[Account]:
        with _guard(self.db, "reference.list_accounts"):
            return self.db.query(Account).order_by(Account.name).all()

    def get_category(self, category_id: UUID) -> Category | None:
        with _guard(self.db, "reference.get_category"):
            return self.db.get(Category, category_id)

    def list_categories(self, kind: str | None = None) -> list[Category]:
        with _guard(self.db, "reference.list_categories"):
            q = self.db.query(Category).filter(Category.hidden.is_(False))
            if kind:
                q = q.filter(Category.kind == kind)
            return q.order_by(Category.name).all()
