from datetime import date
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class TxIn(BaseModel):
    kind: Literal["income", "expenditure", "transfer_in", "transfer_out"]
    amount: Decimal = Field(gt=0, description="Unsigned; the sign follows kind")
    date: date
    description: Optional[str] = None
    category_id: Optional[UUID] = None
    payment_method: str = "cash"


class TxOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    account_id: UUID
    date: date
    amount: Decimal  # negative = outflow, positive = inflow
    description: Optional[str] = None
    kind: str
    category_id: Optional[UUID] = None
    payment_method: str
    is_reconciled: bool
    reconciliation_id: Optional[UUID] = None
    origin: str
    origin_session_id: Optional[UUID] = None
