import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from bankrec.cache import ChangeNotifier, NullNotifier
from bankrec.errors import NotFoundError, SessionLockedError, ValidationError
from bankrec.models.reconciliation import ReconciliationSession, SessionStatus
from bankrec.money import money
from bankrec.stores.base import SessionStore

logger = logging.getLogger(__name__)


TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED}),
    SessionStatus.COMPLETED: frozenset(),
}


@dataclass
class CompletionResult:
    session: ReconciliationSession
    difference: Decimal
    balanced: bool
    already_completed: bool = False
    warning: str | None = None


def status_of(session: ReconciliationSession) -> SessionStatus:
    try:
        return SessionStatus(session.status)
    except ValueError:
        raise ValidationError(f"Unknown reconciliation status: {session.status!r}") from None


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in TRANSITIONS[current]


class SessionLifecycle:
    """Gatekeeper for session status.

    With ``lock_completed`` set, every mutating operation on a completed
    session raises ``SessionLockedError``. Without it the check only logs,
    matching the older advisory behaviour.
    """

    def __init__(
        self,
        sessions: SessionStore,
        tolerance: Decimal = Decimal("0.01"),
        lock_completed: bool = True,
        notifier: ChangeNotifier | None = None,
    ):
        self.sessions = sessions
        self.tolerance = tolerance
        self.lock_completed = lock_completed
        self.notifier = notifier if notifier is not None else NullNotifier()

    def is_mutable(self, session: ReconciliationSession) -> bool:
        return status_of(session) == SessionStatus.IN_PROGRESS

    def ensure_mutable(self, session: ReconciliationSession, operation: str) -> None:
        if self.is_mutable(session):
            return
        if self.lock_completed:
            raise SessionLockedError(session.id, operation)
        logger.warning("%s on completed reconciliation %s allowed (lock disabled)", operation, session.id)

    def allowed_operations(self, session: ReconciliationSession) -> list[str]:
        if self.is_mutable(session) or not self.lock_completed:
            return ["edit", "toggle", "batch_toggle", "adjust", "refresh", "complete", "delete"]
        return ["delete"]

    def complete(self, session_id: UUID) -> CompletionResult:
        rec = self.sessions.get(session_id)
        if rec is None:
            raise NotFoundError("Reconciliation", session_id)
        difference = money(rec.difference)
        balanced = abs(difference) < self.tolerance
        current = status_of(rec)
        if current == SessionStatus.COMPLETED:
            return CompletionResult(rec, difference, balanced, already_completed=True)
        if not can_transition(current, SessionStatus.COMPLETED):
            raise ValidationError(f"Cannot complete reconciliation in status {current.value}")

        warning = None
        if not balanced:
            # allowed; surfaced to the operator only
            warning = f"Reconciliation completed with an outstanding difference of {difference}"
            logger.warning("reconciliation %s completed unbalanced (difference %s)", session_id, difference)

        rec = self.sessions.update(session_id, {"status": SessionStatus.COMPLETED.value})
        logger.info("reconciliation %s completed", session_id)
        self.notifier.notify_changed(("reconciliation", session_id), ("reconciliations",))
        return CompletionResult(rec, difference, balanced, warning=warning)
