"""Typed errors raised by the reconciliation services.

Every error carries a machine-readable ``code``. Callers catch by type:

    ReconciliationError
    +-- DataUnavailable        store unreachable, retryable
    +-- ValidationError        bad input, rejected before any mutation
    |   +-- SessionLockedError mutation attempted on a completed session
    +-- NotFoundError

``PartialCascadeFailure`` and ``InconsistentBalance`` are never raised to
callers. They are recorded on cascade reports and adjustment results.
"""

from dataclasses import dataclass
from uuid import UUID


class ReconciliationError(Exception):
    code = "RECONCILIATION_ERROR"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DataUnavailable(ReconciliationError):
    code = "DATA_UNAVAILABLE"
    retryable = True


class ValidationError(ReconciliationError):
    code = "VALIDATION_ERROR"


class SessionLockedError(ValidationError):
    code = "SESSION_LOCKED"

    def __init__(self, session_id: UUID, operation: str):
        super().__init__(f"Reconciliation {session_id} is completed; {operation} is not allowed")
        self.session_id = session_id
        self.operation = operation


class NotFoundError(ReconciliationError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


@dataclass(frozen=True)
class PartialCascadeFailure:
    code = "PARTIAL_CASCADE_FAILURE"

    step: str
    message: str
    target_id: UUID | None = None


@dataclass(frozen=True)
class InconsistentBalance:
    code = "INCONSISTENT_BALANCE"

    session_id: UUID
    message: str = "Adjustment created but balances may not be accurate"
