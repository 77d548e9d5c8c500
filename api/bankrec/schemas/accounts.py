from decimal import Decimal
from typing import Literal
from uuid import UUID
from pydantic import BaseModel, ConfigDict, constr


class AccountCreate(BaseModel):
    name: constr(min_length=1, max_length=200)
    account_type: Literal["cash", "bank", "mobile_money", "other"] = "bank"
    opening_balance: Decimal = Decimal("0")


class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    name: str
    account_type: str
    opening_balance: Decimal
    balance: Decimal


class BalanceOut(BaseModel):
    account_id: UUID
    balance: Decimal
