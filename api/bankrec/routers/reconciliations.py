from dataclasses import fields
from uuid import UUID
from fastapi import APIRouter, Depends, Response

from bankrec.deps import Services, get_services
from bankrec.errors import ValidationError
from bankrec.services.adjustments import ReconciliationSummary
from bankrec.services.tracker import Progress, ReconciliationView
from bankrec.schemas.reconcile import (
    AdjustmentRemovalResponse,
    AdjustmentRequest,
    AdjustmentResponse,
    BatchToggleRequest,
    BatchToggleResponse,
    CascadeFailureOut,
    CompleteResponse,
    DeleteResponse,
    ItemCreate,
    ItemOut,
    ProgressOut,
    ReconciliationCreate,
    ReconciliationDetail,
    ReconciliationOut,
    ReconciliationPatch,
    RefreshResponse,
    SuggestionOut,
    SummaryOut,
    ToggleRequest,
)
from bankrec.schemas.transactions import TxOut


router = APIRouter(prefix="/api/v1/reconciliations", tags=["reconciliations"])


def _progress_out(p: Progress) -> ProgressOut:
    return ProgressOut(reconciled=p.reconciled, total=p.total, percent=p.percent)


def _summary_out(s: ReconciliationSummary) -> SummaryOut:
    data = {f.name: getattr(s, f.name) for f in fields(s) if f.name != "progress"}
    return SummaryOut(**data, progress=_progress_out(s.progress))


def _session_transactions(svc: Services, rec):
    return svc.ledger.list_transactions(rec.account_id, rec.start_date, rec.end_date)


@router.get("/", response_model=list[ReconciliationOut])
def list_reconciliations(account_id: UUID | None = None, svc: Services = Depends(get_services)):
    return svc.sessions.list_sessions(account_id)


@router.post("/", response_model=ReconciliationOut, status_code=201)
def create_reconciliation(payload: ReconciliationCreate, svc: Services = Depends(get_services)):
    return svc.sessions.create_session(
        payload.account_id,
        payload.start_date,
        payload.end_date,
        payload.bank_balance,
        notes=payload.notes,
        book_balance=payload.book_balance,
    )


@router.get("/{reconciliation_id}", response_model=ReconciliationDetail)
def get_reconciliation(reconciliation_id: UUID, svc: Services = Depends(get_services)):
    rec = svc.sessions.get_session(reconciliation_id)
    summary = svc.adjustments.summary(rec, _session_transactions(svc, rec))
    return ReconciliationDetail(
        reconciliation=ReconciliationOut.model_validate(rec),
        summary=_summary_out(summary),
        allowed_operations=svc.lifecycle.allowed_operations(rec),
    )


@router.patch("/{reconciliation_id}", response_model=ReconciliationOut)
def update_reconciliation(reconciliation_id: UUID, payload: ReconciliationPatch, svc: Services = Depends(get_services)):
    return svc.sessions.update_session(
        reconciliation_id,
        bank_balance=payload.bank_balance,
        notes=payload.notes,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )


@router.delete("/{reconciliation_id}", response_model=DeleteResponse)
def delete_reconciliation(reconciliation_id: UUID, svc: Services = Depends(get_services)):
    report = svc.cascade.delete_session(reconciliation_id)
    return DeleteResponse(
        reconciliation_id=reconciliation_id,
        deleted=report.deleted,
        failures=[CascadeFailureOut(step=f.step, message=f.message, target_id=f.target_id) for f in report.failures],
    )


@router.get("/{reconciliation_id}/transactions", response_model=list[TxOut])
def list_reconciliation_transactions(reconciliation_id: UUID, svc: Services = Depends(get_services)):
    rec = svc.sessions.get_session(reconciliation_id)
    return _session_transactions(svc, rec)


@router.post("/{reconciliation_id}/transactions/toggle", response_model=TxOut)
def toggle_transaction(reconciliation_id: UUID, payload: ToggleRequest, svc: Services = Depends(get_services)):
    return svc.tracker.set_reconciled(payload.transaction_id, payload.is_reconciled, reconciliation_id)


@router.post("/{reconciliation_id}/transactions/batch", response_model=BatchToggleResponse)
def batch_toggle_transactions(
    reconciliation_id: UUID,
    payload: BatchToggleRequest,
    response: Response,
    svc: Services = Depends(get_services),
):
    rec = svc.sessions.get_session(reconciliation_id)
    view = ReconciliationView.from_records(_session_transactions(svc, rec))
    outcome = svc.tracker.batch_set_reconciled(payload.transaction_ids, payload.is_reconciled, reconciliation_id, view=view)
    if not outcome.ok:
        response.status_code = 503
    return BatchToggleResponse(
        ok=outcome.ok,
        reconciled=outcome.reconciled,
        applied=outcome.applied,
        failed=outcome.failed,
        skipped=outcome.skipped,
        reverted=outcome.reverted,
        progress=_progress_out(view.progress()),
    )


@router.get("/{reconciliation_id}/adjustment-suggestion", response_model=SuggestionOut)
def suggest_adjustment(reconciliation_id: UUID, svc: Services = Depends(get_services)):
    rec = svc.sessions.get_session(reconciliation_id)
    s = svc.adjustments.suggest_adjustment(rec)
    return SuggestionOut(kind=s.kind.value, amount=s.amount, difference=s.difference)


@router.post("/{reconciliation_id}/adjustments", response_model=AdjustmentResponse, status_code=201)
def post_adjustment(reconciliation_id: UUID, payload: AdjustmentRequest, svc: Services = Depends(get_services)):
    entry = svc.adjustments.post_adjustment(
        reconciliation_id,
        payload.kind,
        payload.amount,
        category_id=payload.category_id,
        description=payload.description,
        on=payload.date,
    )
    difference = None
    if entry.book_balance is not None:
        difference = svc.sessions.get_session(reconciliation_id).difference
    return AdjustmentResponse(
        transaction=TxOut.model_validate(entry.transaction),
        previous_book_balance=entry.previous_book_balance,
        book_balance=entry.book_balance,
        difference=difference,
        warning=entry.warning.message if entry.warning else None,
    )


@router.delete("/{reconciliation_id}/adjustments/{transaction_id}", response_model=AdjustmentRemovalResponse)
def remove_adjustment(reconciliation_id: UUID, transaction_id: UUID, svc: Services = Depends(get_services)):
    tx = svc.ledger.get_transaction(transaction_id)
    if tx.origin_session_id != reconciliation_id:
        raise ValidationError(f"Transaction {transaction_id} is not an adjustment of reconciliation {reconciliation_id}")
    result = svc.adjustments.remove_adjustment(transaction_id)
    return AdjustmentRemovalResponse(
        transaction_id=result.transaction_id,
        reconciliation_id=result.session_id,
        book_balance=result.book_balance,
        warning=result.warning.message if result.warning else None,
    )


@router.post("/{reconciliation_id}/refresh", response_model=RefreshResponse)
def refresh_reconciliation(reconciliation_id: UUID, svc: Services = Depends(get_services)):
    result = svc.sessions.refresh_book_balance(reconciliation_id)
    return RefreshResponse(
        reconciliation=ReconciliationOut.model_validate(result.session),
        account_balance=result.account_balance,
        range_balance=result.range_balance,
        preserved=result.preserved,
    )


@router.post("/{reconciliation_id}/complete", response_model=CompleteResponse)
def complete_reconciliation(reconciliation_id: UUID, svc: Services = Depends(get_services)):
    result = svc.lifecycle.complete(reconciliation_id)
    return CompleteResponse(
        reconciliation=ReconciliationOut.model_validate(result.session),
        difference=result.difference,
        balanced=result.balanced,
        already_completed=result.already_completed,
        warning=result.warning,
    )


@router.get("/{reconciliation_id}/items", response_model=list[ItemOut])
def list_items(reconciliation_id: UUID, svc: Services = Depends(get_services)):
    return svc.sessions.list_items(reconciliation_id)


@router.post("/{reconciliation_id}/items", response_model=ItemOut, status_code=201)
def add_item(reconciliation_id: UUID, payload: ItemCreate, svc: Services = Depends(get_services)):
    return svc.sessions.add_item(
        reconciliation_id,
        payload.transaction_kind,
        payload.amount,
        payload.date,
        transaction_id=payload.transaction_id,
        is_cleared=payload.is_cleared,
        notes=payload.notes,
    )
