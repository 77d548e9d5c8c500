"""Cascade Deletion Coordinator.

Deleting a session runs an ordered list of steps. Critical steps (item rows,
the session row) abort the whole deletion on failure. Non-critical steps
(link rows, adjustment ledger rows) record a ``PartialCascadeFailure`` and
the deletion carries on; anything they leave behind stays findable through
the adjustment origin tag.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable
from uuid import UUID

from bankrec.cache import ChangeNotifier, NullNotifier
from bankrec.errors import DataUnavailable, NotFoundError, PartialCascadeFailure
from bankrec.models.transaction import TransactionOrigin
from bankrec.stores.base import ItemStore, LedgerFilter, LedgerStore, LinkStore, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class CascadeReport:
    session_id: UUID
    completed_steps: list[str] = field(default_factory=list)
    deleted: dict[str, int] = field(default_factory=dict)
    failures: list[PartialCascadeFailure] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class DeletionStep:
    name: str
    critical: bool
    action: Callable[[CascadeReport], None]


class CascadeDeletionCoordinator:
    def __init__(
        self,
        ledger: LedgerStore,
        links: LinkStore,
        items: ItemStore,
        sessions: SessionStore,
        notifier: ChangeNotifier | None = None,
    ):
        self.ledger = ledger
        self.links = links
        self.items = items
        self.sessions = sessions
        self.notifier = notifier if notifier is not None else NullNotifier()

    def steps(self, session_id: UUID) -> list[DeletionStep]:
        def delete_items(report: CascadeReport) -> None:
            report.deleted["items"] = self.items.delete_by_session(session_id)

        def delete_links(report: CascadeReport) -> None:
            report.deleted["links"] = self.links.delete_by_session(session_id)

        def delete_adjustments(report: CascadeReport) -> None:
            rows = self.ledger.query(
                None,
                LedgerFilter(
                    origin=TransactionOrigin.RECONCILIATION_ADJUSTMENT.value,
                    origin_session_id=session_id,
                ),
            )
            tx_ids = [t.id for t in rows]
            report.deleted["adjustments"] = 0
            for tx_id in tx_ids:
                try:
                    self.links.delete_by_transaction(tx_id)
                    self.ledger.delete(tx_id)
                    report.deleted["adjustments"] += 1
                except DataUnavailable as exc:
                    report.failures.append(PartialCascadeFailure("adjustments", exc.message, tx_id))
                    logger.warning("could not delete adjustment %s of reconciliation %s: %s", tx_id, session_id, exc.message)

        def delete_session(report: CascadeReport) -> None:
            self.sessions.delete(session_id)
            report.deleted["session"] = 1

        return [
            DeletionStep("items", True, delete_items),
            DeletionStep("links", False, delete_links),
            DeletionStep("adjustments", False, delete_adjustments),
            DeletionStep("session", True, delete_session),
        ]

    def delete_session(self, session_id: UUID) -> CascadeReport:
        rec = self.sessions.get(session_id)
        if rec is None:
            raise NotFoundError("Reconciliation", session_id)
        account_id = rec.account_id

        report = CascadeReport(session_id=session_id)
        for step in self.steps(session_id):
            try:
                step.action(report)
            except DataUnavailable as exc:
                if step.critical:
                    logger.error("deleting reconciliation %s aborted at step %s: %s", session_id, step.name, exc.message)
                    raise
                report.failures.append(PartialCascadeFailure(step.name, exc.message))
                logger.warning("step %s of deleting reconciliation %s failed: %s", step.name, session_id, exc.message)
                continue
            report.completed_steps.append(step.name)

        logger.info(
            "reconciliation %s deleted (%s); %d cleanup failure(s)",
            session_id, report.deleted, len(report.failures),
        )
        self.notifier.notify_changed(
            ("reconciliation", session_id),
            ("reconciliations",),
            ("ledger", account_id),
            ("accounts", account_id),
        )
        return report
