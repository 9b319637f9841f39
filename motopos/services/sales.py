import logging
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from motopos.core.config import settings
from motopos.core.numbering import invoice_series
from motopos.models.customer import Customer
from motopos.models.sales import (
    Draft,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Sale,
    SaleItem,
    SaleStatus,
    SaleType,
)
from motopos.schemas.sales import DraftFinalizeRequest
from motopos.services.customers import charge_invoice, lock_customer
from motopos.services.draft_rules import CENT, quantize_money
from motopos.services.errors import ValidationError
from motopos.services.inventory import currency_for_lines, deduct_sold_stock

logger = logging.getLogger(__name__)

LINE_FIELDS = (
    "item_type",
    "product_id",
    "motorcycle_id",
    "quantity",
    "unit_price",
    "discount",
    "tax_rate",
    "line_total",
    "notes",
    "position",
)


def copy_line(line, target_cls):
    return target_cls(**{field: getattr(line, field) for field in LINE_FIELDS})


def payment_status(amount_paid: Decimal, total: Decimal) -> InvoiceStatus:
    if amount_paid >= total - CENT:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIALLY_PAID


def default_invoice_number(db: Session, customer_id: int | None, today: date | None = None) -> str:
    today = today or date.today()
    customer = db.get(Customer, customer_id) if customer_id else None
    return invoice_series(customer.name if customer else "INVOICE", today)


def create_sale_from_draft(db: Session, draft: Draft, payload: DraftFinalizeRequest) -> tuple[Sale, Invoice]:
    """Turn ``draft`` into a sale and its invoice; the caller owns the transaction."""
    if draft.type == SaleType.JUMLA and not draft.customer_id:
        raise ValidationError("Wholesale sales require a customer")
    if not draft.items:
        raise ValidationError("Draft must have at least one item")

    currency = payload.currency or currency_for_lines(draft.items)
    total = Decimal(draft.total)
    amount_paid = quantize_money(payload.amount_paid)
    amount_due = quantize_money(total - amount_paid)
    status = payment_status(amount_paid, total)
    invoice_number = (payload.invoice_number or "").strip() or default_invoice_number(db, draft.customer_id)
    now = datetime.utcnow()

    sale = Sale(
        type=draft.type,
        status=SaleStatus.COMPLETED,
        customer_id=draft.customer_id,
        subtotal=draft.subtotal,
        tax_amount=draft.tax_amount,
        discount=draft.discount,
        total=draft.total,
        payment_method=payload.payment_method,
        amount_paid=amount_paid,
        amount_due=amount_due,
        items=[copy_line(item, SaleItem) for item in draft.items],
    )
    db.add(sale)
    db.flush()

    invoice = Invoice(
        invoice_number=invoice_number,
        status=status,
        currency=currency,
        sale_id=sale.id,
        customer_id=draft.customer_id,
        draft_id=draft.id,
        subtotal=draft.subtotal,
        tax_amount=draft.tax_amount,
        discount=draft.discount,
        total=draft.total,
        amount_paid=amount_paid,
        amount_due=amount_due,
        invoice_date=now,
        due_date=now + timedelta(days=settings.invoice_due_days),
        paid_at=now if status == InvoiceStatus.PAID else None,
        notes=payload.notes or draft.notes,
        items=[copy_line(item, InvoiceItem) for item in draft.items],
    )
    db.add(invoice)
    db.flush()

    if draft.customer_id:
        customer = lock_customer(db, draft.customer_id)
        charge_invoice(
            db,
            customer,
            amount_due,
            currency,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            fully_paid=status == InvoiceStatus.PAID,
        )

    deduct_sold_stock(db, draft.items, sale_id=sale.id, invoice=invoice)
    logger.info("Sale %s created from draft %s with invoice %s", sale.id, draft.id, invoice.invoice_number)
    return sale, invoice
