import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from motopos.models.customer import Customer
from motopos.models.sales import Draft, DraftItem, DraftStatus, Invoice, Sale
from motopos.schemas.sales import DraftCreate, DraftFinalizeRequest, DraftUpdate, LineItemIn
from motopos.services.draft_rules import (
    calculate_draft_totals,
    calculate_line_total,
    can_edit,
    can_transition,
    finalize_errors,
)
from motopos.services.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from motopos.services.inventory import ensure_items_exist
from motopos.services.sales import create_sale_from_draft

logger = logging.getLogger(__name__)


def _build_items(items: list[LineItemIn]) -> list[DraftItem]:
    return [
        DraftItem(
            item_type=item.item_type,
            product_id=item.product_id,
            motorcycle_id=item.motorcycle_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount=item.discount,
            tax_rate=item.tax_rate,
            line_total=calculate_line_total(item.quantity, item.unit_price, item.discount, item.tax_rate),
            notes=item.notes,
            position=index,
        )
        for index, item in enumerate(items)
    ]


def _apply_totals(draft: Draft) -> None:
    totals = calculate_draft_totals(draft.items, draft.discount_percent)
    draft.subtotal = totals.subtotal
    draft.tax_amount = totals.tax_amount
    draft.discount = totals.discount
    draft.total = totals.total


def _ensure_customer(db: Session, customer_id: int | None) -> None:
    if customer_id is not None and db.get(Customer, customer_id) is None:
        raise NotFoundError("Customer not found")


def _move(draft: Draft, status: DraftStatus) -> None:
    if not can_transition(draft.status, status):
        raise InvalidStateError(f"Draft cannot move from {draft.status.value} to {status.value}")
    draft.status = status


def get_draft(db: Session, draft_id: int, *, for_update: bool = False) -> Draft:
    query = select(Draft).where(Draft.id == draft_id)
    if for_update:
        query = query.with_for_update()
    draft = db.scalar(query)
    if not draft:
        raise NotFoundError("Draft not found")
    return draft


def list_drafts(db: Session, status: DraftStatus | None = None, limit: int = 100) -> list[Draft]:
    query = select(Draft).order_by(Draft.updated_at.desc(), Draft.id.desc()).limit(limit)
    if status is not None:
        query = query.where(Draft.status == status)
    return list(db.scalars(query).all())


def create_draft(db: Session, payload: DraftCreate) -> Draft:
    _ensure_customer(db, payload.customer_id)
    ensure_items_exist(db, payload.items)
    draft = Draft(
        type=payload.type,
        status=DraftStatus.CREATED,
        customer_id=payload.customer_id,
        discount_percent=payload.discount,
        payment_method=payload.payment_method,
        amount_paid=payload.amount_paid,
        notes=payload.notes,
        items=_build_items(payload.items),
    )
    _apply_totals(draft)
    db.add(draft)
    db.commit()
    db.refresh(draft)
    logger.info("Draft %s created (%s, %s items)", draft.id, draft.type.value, len(draft.items))
    return draft


def update_draft(db: Session, draft_id: int, payload: DraftUpdate) -> Draft:
    draft = get_draft(db, draft_id, for_update=True)
    if not can_edit(draft.status):
        raise InvalidStateError("Draft cannot be edited in its current state")

    fields = payload.model_fields_set
    if "customer_id" in fields:
        _ensure_customer(db, payload.customer_id)
        draft.customer_id = payload.customer_id
    if payload.items is not None:
        ensure_items_exist(db, payload.items)
        draft.items = _build_items(payload.items)
    if payload.discount is not None:
        draft.discount_percent = payload.discount
    if payload.payment_method is not None:
        draft.payment_method = payload.payment_method
    if payload.amount_paid is not None:
        draft.amount_paid = payload.amount_paid
    if payload.notes is not None:
        draft.notes = payload.notes
    if payload.status is not None and payload.status != draft.status:
        if payload.status in (DraftStatus.FINALIZING, DraftStatus.FINALIZED):
            raise InvalidStateError("Use the finalize endpoint to finalize a draft")
        _move(draft, payload.status)

    _apply_totals(draft)
    db.commit()
    db.refresh(draft)
    logger.debug("Draft %s updated (autosave)", draft.id)
    return draft


def process_draft(db: Session, draft_id: int) -> Draft:
    draft = get_draft(db, draft_id, for_update=True)
    if draft.status not in (DraftStatus.CREATED, DraftStatus.READY):
        raise InvalidStateError("Draft must be in CREATED or READY status to process")
    if draft.status == DraftStatus.CREATED:
        _move(draft, DraftStatus.READY)
    db.commit()
    db.refresh(draft)
    return draft


def cancel_draft(db: Session, draft_id: int) -> Draft:
    draft = get_draft(db, draft_id, for_update=True)
    _move(draft, DraftStatus.CANCELLED)
    draft.cancelled_at = datetime.utcnow()
    db.commit()
    db.refresh(draft)
    logger.info("Draft %s cancelled", draft.id)
    return draft


def finalize_draft(db: Session, draft_id: int, payload: DraftFinalizeRequest) -> tuple[Draft, Sale, Invoice]:
    draft = get_draft(db, draft_id, for_update=True)
    errors = finalize_errors(draft)
    if errors:
        raise ValidationError(errors)
    if draft.status == DraftStatus.FINALIZING:
        raise InvalidStateError("Draft is already being finalized")

    if draft.status in (DraftStatus.CREATED, DraftStatus.AUTOSAVING):
        _move(draft, DraftStatus.READY)
    _move(draft, DraftStatus.FINALIZING)
    db.commit()

    try:
        sale, invoice = create_sale_from_draft(db, draft, payload)
        _move(draft, DraftStatus.FINALIZED)
        draft.sale_id = sale.id
        draft.invoice_id = invoice.id
        draft.payment_method = payload.payment_method
        draft.amount_paid = Decimal(payload.amount_paid)
        draft.finalized_at = datetime.utcnow()
        db.commit()
    except Exception as exc:
        db.rollback()
        draft = get_draft(db, draft_id)
        draft.status = DraftStatus.READY
        db.commit()
        logger.warning("Finalizing draft %s failed, returned to READY: %s", draft_id, exc)
        if isinstance(exc, IntegrityError):
            raise ConflictError("Invoice number already exists") from exc
        raise

    db.refresh(draft)
    db.refresh(invoice)
    logger.info("Draft %s finalized into invoice %s", draft.id, invoice.invoice_number)
    return draft, sale, invoice
