import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .transactions import TxOut


class ReconciliationCreate(BaseModel):
    account_id: UUID
    start_date: date
    end_date: date
    bank_balance: Decimal
    book_balance: Optional[Decimal] = Field(None, description="Computed from the ledger when omitted")
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class ReconciliationPatch(BaseModel):
    bank_balance: Optional[Decimal] = None
    notes: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ReconciliationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    account_id: UUID
    start_date: date
    end_date: date
    bank_balance: Decimal
    book_balance: Decimal
    difference: Decimal
    status: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProgressOut(BaseModel):
    reconciled: int
    total: int
    percent: float


class SummaryOut(BaseModel):
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
    progress: ProgressOut


class ReconciliationDetail(BaseModel):
    reconciliation: ReconciliationOut
    summary: SummaryOut
    allowed_operations: list[str]


class ToggleRequest(BaseModel):
    transaction_id: UUID
    is_reconciled: bool


class BatchToggleRequest(BaseModel):
    transaction_ids: list[UUID] = Field(min_length=1)
    is_reconciled: bool


class BatchToggleResponse(BaseModel):
    ok: bool
    reconciled: bool
    applied: list[UUID]
    failed: dict[UUID, str]
    skipped: list[UUID]
    reverted: bool
    progress: ProgressOut


class SuggestionOut(BaseModel):
    kind: Literal["income", "expenditure"]
    amount: Decimal
    difference: Decimal


class AdjustmentRequest(BaseModel):
    kind: Literal["income", "expenditure"]
    amount: Decimal = Field(gt=0)
    category_id: Optional[UUID] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None


class AdjustmentResponse(BaseModel):
    transaction: TxOut
    previous_book_balance: Decimal
    book_balance: Optional[Decimal] = None
    difference: Optional[Decimal] = None
    warning: Optional[str] = None


class AdjustmentRemovalResponse(BaseModel):
    transaction_id: UUID
    reconciliation_id: Optional[UUID] = None
    book_balance: Optional[Decimal] = None
    warning: Optional[str] = None


class RefreshResponse(BaseModel):
    reconciliation: ReconciliationOut
    account_balance: Decimal
    range_balance: Decimal
    preserved: bool


class CompleteResponse(BaseModel):
    reconciliation: ReconciliationOut
    difference: Decimal
    balanced: bool
    already_completed: bool
    warning: Optional[str] = None


class CascadeFailureOut(BaseModel):
    step: str
    message: str
    target_id: Optional[UUID] = None


class DeleteResponse(BaseModel):
    reconciliation_id: UUID
    deleted: dict[str, int]
    failures: list[CascadeFailureOut]


class ItemCreate(BaseModel):
    transaction_kind: Literal["income", "expenditure", "transfer_in", "transfer_out"]
    amount: Decimal = Field(gt=0)
    date: date
    transaction_id: Optional[UUID] = None
    is_cleared: bool = False
    notes: Optional[str] = None


class ItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    reconciliation_id: UUID
    transaction_id: Optional[UUID] = None
    transaction_kind: str
    amount: Decimal
    date: date
    is_cleared: bool
    notes: Optional[str] = None
