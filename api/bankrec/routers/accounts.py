from datetime import date
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bankrec.db import get_db
from bankrec.deps import Services, get_services
from bankrec.models.account import Account
from bankrec.money import money
from bankrec.schemas.accounts import AccountCreate, AccountOut, BalanceOut
from bankrec.schemas.transactions import TxIn, TxOut


router = APIRouter(prefix="/api/v1/accounts", tags=["accounts"])


@router.get("/", response_model=list[AccountOut])
def list_accounts(svc: Services = Depends(get_services)):
    return svc.reference.list_accounts()


@router.post("/", response_model=AccountOut, status_code=201)
def create_account(payload: AccountCreate, db: Session = Depends(get_db)):
    opening = money(payload.opening_balance)
    acc = Account(name=payload.name, account_type=payload.account_type, opening_balance=opening, balance=opening)
    db.add(acc)
    db.commit()
    db.refresh(acc)
    return acc


@router.get("/{account_id}/balance", response_model=BalanceOut)
def get_account_balance(account_id: UUID, svc: Services = Depends(get_services)):
    svc.ledger.require_account(account_id)
    return BalanceOut(account_id=account_id, balance=svc.ledger.compute_balance(account_id))


@router.post("/{account_id}/recalculate-balance", response_model=BalanceOut)
def recalculate_account_balance(account_id: UUID, svc: Services = Depends(get_services)):
    svc.ledger.require_account(account_id)
    return BalanceOut(account_id=account_id, balance=svc.ledger.recalculate_account_balance(account_id))


@router.get("/{account_id}/transactions", response_model=list[TxOut])
def list_transactions(
    account_id: UUID,
    start_date: date | None = None,
    end_date: date | None = None,
    svc: Services = Depends(get_services),
):
    svc.ledger.require_account(account_id)
    return svc.ledger.list_transactions(account_id, start_date, end_date)


@router.post("/{account_id}/transactions", response_model=TxOut, status_code=201)
def create_transaction(account_id: UUID, payload: TxIn, svc: Services = Depends(get_services)):
    return svc.ledger.create_transaction(
        account_id,
        payload.kind,
        payload.amount,
        payload.date,
        description=payload.description,
        category_id=payload.category_id,
        payment_method=payload.payment_method,
    )
