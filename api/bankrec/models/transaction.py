import datetime as dt
import enum
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Boolean, Numeric, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from .base import Base, utcnow


class TransactionKind(str, enum.Enum):
    INCOME = "income"
    EXPENDITURE = "expenditure"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"

    @property
    def is_inflow(self) -> bool:
        return self in (TransactionKind.INCOME, TransactionKind.TRANSFER_IN)


class TransactionOrigin(str, enum.Enum):
    MANUAL = "manual"
    RECONCILIATION_ADJUSTMENT = "reconciliation_adjustment"


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)  # negative = outflow, positive = inflow
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    category_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("categories.id"), nullable=True)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="cash")
    is_reconciled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reconciliation_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    origin: Mapped[str] = mapped_column(String(32), nullable=False, default=TransactionOrigin.MANUAL.value)
    # set only when origin is reconciliation_adjustment
    origin_session_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_adjustment(self) -> bool:
        return self.origin == TransactionOrigin.RECONCILIATION_ADJUSTMENT.value
