from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from motopos.api.deps import http_error
from motopos.db.database import get_db
from motopos.models.sales import DraftStatus
from motopos.schemas.sales import DraftCreate, DraftFinalizeOut, DraftFinalizeRequest, DraftOut, DraftUpdate
from motopos.services import drafts as draft_service
from motopos.services.errors import DomainError

router = APIRouter(prefix="/drafts", tags=["Drafts"])


@router.get("", response_model=list[DraftOut])
def list_drafts(
    status_filter: DraftStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return draft_service.list_drafts(db, status_filter, limit)


@router.post("", response_model=DraftOut, status_code=status.HTTP_201_CREATED)
def create_draft(payload: DraftCreate, db: Session = Depends(get_db)):
    try:
        return draft_service.create_draft(db, payload)
    except DomainError as exc:
        raise http_error(exc) from exc


@router.get("/{draft_id}", response_model=DraftOut)
def get_draft(draft_id: int, db: Session = Depends(get_db)):
    try:
        return draft_service.get_draft(db, draft_id)
    except DomainError as exc:
        raise http_error(exc) from exc


@router.put("/{draft_id}", response_model=DraftOut)
def update_draft(draft_id: int, payload: DraftUpdate, db: Session = Depends(get_db)):
    try:
        return draft_service.update_draft(db, draft_id, payload)
    except DomainError as exc:
        db.rollback()
        raise http_error(exc) from exc


@router.delete("/{draft_id}", response_model=DraftOut)
def cancel_draft(draft_id: int, db: Session = Depends(get_db)):
    try:
        return draft_service.cancel_draft(db, draft_id)
    except DomainError as exc:
        db.rollback()
        raise http_error(exc) from exc


@router.post("/{draft_id}/process", response_model=DraftOut)
def process_draft(draft_id: int, db: Session = Depends(get_db)):
    try:
        return draft_service.process_draft(db, draft_id)
    except DomainError as exc:
        db.rollback()
        raise http_error(exc) from exc


@router.post("/{draft_id}/finalize", response_model=DraftFinalizeOut)
def finalize_draft(draft_id: int, payload: DraftFinalizeRequest, db: Session = Depends(get_db)):
    try:
        draft, sale, invoice = draft_service.finalize_draft(db, draft_id, payload)
    except DomainError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return DraftFinalizeOut(
        draft=DraftOut.model_validate(draft),
        sale_id=sale.id,
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
    )
