import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from bankrec.cache import ChangeNotifier, NullNotifier
from bankrec.errors import NotFoundError, ValidationError
from bankrec.models.reconciliation import ReconciliationItem, ReconciliationSession, SessionStatus
from bankrec.money import money
from bankrec.services.ledger import LedgerAccessor, parse_kind
from bankrec.services.lifecycle import SessionLifecycle
from bankrec.stores.base import ItemStore, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    session: ReconciliationSession
    account_balance: Decimal
    range_balance: Decimal
    preserved: bool


def _check_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ValidationError("end_date must be on or after start_date")


class SessionService:
    def __init__(
        self,
        sessions: SessionStore,
        items: ItemStore,
        ledger: LedgerAccessor,
        lifecycle: SessionLifecycle,
        notifier: ChangeNotifier | None = None,
    ):
        self.sessions = sessions
        self.items = items
        self.ledger = ledger
        self.lifecycle = lifecycle
        self.notifier = notifier if notifier is not None else NullNotifier()

    def get_session(self, session_id: UUID) -> ReconciliationSession:
        rec = self.sessions.get(session_id)
        if rec is None:
            raise NotFoundError("Reconciliation", session_id)
        return rec

    def list_sessions(self, account_id: UUID | None = None) -> list[ReconciliationSession]:
        return list(self.sessions.list(account_id))

    def create_session(
        self,
        account_id: UUID,
        start_date: date,
        end_date: date,
        bank_balance: Decimal,
        notes: str | None = None,
        book_balance: Decimal | None = None,
    ) -> ReconciliationSession:
        _check_range(start_date, end_date)
        if bank_balance is None:
            raise ValidationError("bank_balance is required")
        self.ledger.require_account(account_id)
        if book_balance is None:
            book_balance = self.ledger.compute_range_balance(account_id, start_date, end_date)

        rec = self.sessions.create(
            {
                "account_id": account_id,
                "start_date": start_date,
                "end_date": end_date,
                "bank_balance": money(bank_balance),
                "book_balance": money(book_balance),
                "status": SessionStatus.IN_PROGRESS.value,
                "notes": notes,
            }
        )
        logger.info(
            "reconciliation %s created for account %s (%s..%s) bank=%s book=%s",
            rec.id, account_id, start_date, end_date, rec.bank_balance, rec.book_balance,
        )
        self.notifier.notify_changed(("reconciliations",))
        return rec

    def update_session(
        self,
        session_id: UUID,
        bank_balance: Decimal | None = None,
        notes: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> ReconciliationSession:
        rec = self.get_session(session_id)
        self.lifecycle.ensure_mutable(rec, "edit")
        fields = {}
        if bank_balance is not None:
            fields["bank_balance"] = money(bank_balance)
        if notes is not None:
            fields["notes"] = notes
        new_start = start_date or rec.start_date
        new_end = end_date or rec.end_date
        _check_range(new_start, new_end)
        if start_date is not None:
            fields["start_date"] = start_date
        if end_date is not None:
            fields["end_date"] = end_date
        if (new_start, new_end) != (rec.start_date, rec.end_date):
            fields.update(self._rescope(rec, new_start, new_end))
        if not fields:
            return rec
        rec = self.sessions.update(session_id, fields)
        self.notifier.notify_changed(("reconciliation", session_id), ("reconciliations",))
        return rec

    def _rescope(self, rec: ReconciliationSession, start_date: date, end_date: date) -> dict:
        """Fields that follow from moving a session to a new period.

        Rejected while rows reconciled to the session would fall outside it.
        The book balance follows the new period unless the account carries
        adjustments, in which case the stored value stays authoritative.
        """
        stranded = [t.id for t in self.ledger.list_reconciled(rec.id) if not (start_date <= t.date <= end_date)]
        if stranded:
            raise ValidationError(
                f"{len(stranded)} transaction(s) reconciled to this session fall outside {start_date}..{end_date}; unreconcile them first"
            )
        if self.ledger.has_adjustments(rec.account_id):
            return {}
        book = self.ledger.compute_range_balance(rec.account_id, start_date, end_date)
        logger.info("reconciliation %s moved to %s..%s; book balance %s -> %s", rec.id, start_date, end_date, rec.book_balance, book)
        return {"book_balance": book}

    def refresh_book_balance(self, session_id: UUID) -> RefreshResult:
        """Recompute balances from the ledger.

        The book balance is replaced by the range resum only while the account
        has no reconciliation adjustments; once one exists the stored book
        balance is authoritative and left alone.
        """
        rec = self.get_session(session_id)
        self.lifecycle.ensure_mutable(rec, "refresh")
        account_balance = self.ledger.recalculate_account_balance(rec.account_id)
        range_balance = self.ledger.compute_range_balance(rec.account_id, rec.start_date, rec.end_date)

        if self.ledger.has_adjustments(rec.account_id):
            logger.info(
                "reconciliation %s has manual adjustments; preserving book balance %s (ledger says %s)",
                session_id, rec.book_balance, range_balance,
            )
            preserved = True
        else:
            if money(rec.book_balance) != range_balance:
                rec = self.sessions.update(session_id, {"book_balance": range_balance})
            preserved = False

        self.notifier.notify_changed(("reconciliation", session_id), ("ledger", rec.account_id))
        return RefreshResult(rec, account_balance, range_balance, preserved)

    def add_item(
        self,
        session_id: UUID,
        transaction_kind: str,
        amount: Decimal,
        on: date,
        transaction_id: UUID | None = None,
        is_cleared: bool = False,
        notes: str | None = None,
    ) -> ReconciliationItem:
        rec = self.get_session(session_id)
        self.lifecycle.ensure_mutable(rec, "add item")
        kind = parse_kind(transaction_kind)
        if amount is None or money(amount) <= 0:
            raise ValidationError("Amount must be greater than zero")
        if transaction_id is not None:
            tx = self.ledger.get_transaction(transaction_id)
            if tx.account_id != rec.account_id:
                raise ValidationError("Transaction belongs to a different account")
        item = self.items.add(
            {
                "reconciliation_id": session_id,
                "transaction_id": transaction_id,
                "transaction_kind": kind.value,
                "amount": money(amount),
                "date": on,
                "is_cleared": is_cleared,
                "notes": notes,
            }
        )
        self.notifier.notify_changed(("reconciliation", session_id))
        return item

    def list_items(self, session_id: UUID) -> list[ReconciliationItem]:
        self.get_session(session_id)
        return list(self.items.list_by_session(session_id))
