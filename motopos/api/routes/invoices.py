from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from motopos.api.deps import http_error
from motopos.db.database import get_db
from motopos.models.sales import InvoiceStatus
from motopos.schemas.sales import InvoiceOut, InvoiceSummaryOut, InvoiceUpdate
from motopos.services import invoices as invoice_service
from motopos.services.errors import DomainError

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.get("", response_model=list[InvoiceSummaryOut])
def list_invoices(
    customer_id: int | None = None,
    status_filter: InvoiceStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return invoice_service.list_invoices(db, customer_id=customer_id, status=status_filter, limit=limit)


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    try:
        invoice = invoice_service.get_invoice(db, invoice_id)
    except DomainError as exc:
        raise http_error(exc) from exc
    return invoice_service.invoice_detail(db, invoice)


@router.put("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(invoice_id: int, payload: InvoiceUpdate, db: Session = Depends(get_db)):
    try:
        invoice = invoice_service.update_invoice(db, invoice_id, payload)
    except DomainError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return invoice_service.invoice_detail(db, invoice)
