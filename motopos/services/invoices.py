import logging
from datetime import datetime

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from motopos.models.catalog import Motorcycle, Product
from motopos.models.customer import Customer
from motopos.models.sales import (
    Draft,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    LineItemType,
    Sale,
    SaleItem,
    StockMovement,
)
from motopos.schemas.sales import InvoiceUpdate
from motopos.services.customers import charge_invoice, lock_customer, reverse_invoice_charge
from motopos.services.draft_rules import calculate_line_total, quantize_money
from motopos.services.errors import NotFoundError
from motopos.services.inventory import (
    currency_for_lines,
    deduct_sold_stock,
    ensure_items_exist,
    restore_sold_stock,
)
from motopos.services.sales import payment_status

logger = logging.getLogger(__name__)

UNCHARGED_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED)


def get_invoice(db: Session, invoice_id: int, *, for_update: bool = False) -> Invoice:
    query = select(Invoice).where(Invoice.id == invoice_id)
    if for_update:
        query = query.with_for_update()
    invoice = db.scalar(query)
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def list_invoices(
    db: Session,
    *,
    customer_id: int | None = None,
    status: InvoiceStatus | None = None,
    product_id: int | None = None,
    motorcycle_id: int | None = None,
    limit: int = 100,
) -> list[Invoice]:
    query = select(Invoice).order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).limit(limit)
    if customer_id is not None:
        query = query.where(Invoice.customer_id == customer_id)
    if status is not None:
        query = query.where(Invoice.status == status)
    item_conditions = []
    if product_id is not None:
        item_conditions.append(InvoiceItem.product_id == product_id)
    if motorcycle_id is not None:
        item_conditions.append(InvoiceItem.motorcycle_id == motorcycle_id)
    if item_conditions:
        query = query.where(Invoice.id.in_(select(InvoiceItem.invoice_id).where(or_(*item_conditions))))
    return list(db.scalars(query).all())


def _line_lookup(db: Session, line) -> tuple[str | None, int | None]:
    if line.item_type == LineItemType.MOTORCYCLE and line.motorcycle_id is not None:
        record = db.get(Motorcycle, line.motorcycle_id)
    elif line.product_id is not None:
        record = db.get(Product, line.product_id)
    else:
        record = None
    if record is None:
        return None, None
    return record.name, record.stock_quantity


def invoice_detail(db: Session, invoice: Invoice) -> dict:
    """Invoice with its customer, sale type, draft status and lines carrying current stock."""
    sale = db.get(Sale, invoice.sale_id)
    draft = db.get(Draft, invoice.draft_id) if invoice.draft_id else None
    items = []
    for line in invoice.items or (sale.items if sale else []):
        name, stock = _line_lookup(db, line)
        items.append(
            {
                "id": line.id,
                "item_type": line.item_type,
                "product_id": line.product_id,
                "motorcycle_id": line.motorcycle_id,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "discount": line.discount,
                "tax_rate": line.tax_rate,
                "line_total": line.line_total,
                "notes": line.notes,
                "position": line.position,
                "item_name": name,
                "stock_quantity": stock,
            }
        )
    return {
        **{column.key: getattr(invoice, column.key) for column in Invoice.__table__.columns},
        "sale_type": sale.type if sale else None,
        "draft_status": draft.status if draft else None,
        "customer": db.get(Customer, invoice.customer_id) if invoice.customer_id else None,
        "items": items,
    }


def _build_lines(payload: InvoiceUpdate, line_cls):
    return [
        line_cls(
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
        for index, item in enumerate(payload.items)
    ]


def update_invoice(db: Session, invoice_id: int, payload: InvoiceUpdate) -> Invoice:
    """Rewrite a committed invoice, undoing its stock and debt effects before applying the new ones."""
    invoice = get_invoice(db, invoice_id, for_update=True)
    sale = db.get(Sale, invoice.sale_id)
    if payload.customer_id is not None and db.get(Customer, payload.customer_id) is None:
        raise NotFoundError("Customer not found")
    ensure_items_exist(db, payload.items)

    try:
        previous_lines = list(invoice.items) or (list(sale.items) if sale else [])
        db.execute(delete(StockMovement).where(StockMovement.invoice_id == invoice.id))
        restore_sold_stock(db, previous_lines)

        if invoice.status not in UNCHARGED_STATUSES and invoice.customer_id:
            reverse_invoice_charge(
                db,
                lock_customer(db, invoice.customer_id),
                invoice.amount_due,
                invoice.currency,
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
            )

        currency = currency_for_lines(payload.items) if payload.items else (payload.currency or invoice.currency)
        total = quantize_money(payload.total)
        amount_paid = quantize_money(payload.amount_paid)
        amount_due = quantize_money(payload.amount_due if payload.amount_due is not None else total - amount_paid)
        status = InvoiceStatus(payload.status) if payload.status else payment_status(amount_paid, total)

        invoice.customer_id = payload.customer_id
        if payload.invoice_date is not None:
            invoice.invoice_date = payload.invoice_date
        invoice.due_date = payload.due_date
        invoice.subtotal = quantize_money(payload.subtotal)
        invoice.tax_amount = quantize_money(payload.tax_amount)
        invoice.discount = quantize_money(payload.discount)
        invoice.total = total
        invoice.amount_paid = amount_paid
        invoice.amount_due = amount_due
        invoice.currency = currency
        if status == InvoiceStatus.PAID:
            invoice.paid_at = invoice.paid_at if invoice.status == InvoiceStatus.PAID else datetime.utcnow()
        else:
            invoice.paid_at = None
        invoice.status = status
        invoice.items = _build_lines(payload, InvoiceItem)

        if sale:
            sale.customer_id = payload.customer_id
            sale.subtotal = invoice.subtotal
            sale.tax_amount = invoice.tax_amount
            sale.discount = invoice.discount
            sale.total = total
            sale.amount_paid = amount_paid
            sale.amount_due = amount_due
            sale.items = _build_lines(payload, SaleItem)
        db.flush()

        deduct_sold_stock(db, invoice.items, sale_id=invoice.sale_id, invoice=invoice)

        if invoice.customer_id:
            charge_invoice(
                db,
                lock_customer(db, invoice.customer_id),
                amount_due,
                currency,
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                fully_paid=status == InvoiceStatus.PAID,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(invoice)
    logger.info("Invoice %s updated (total %s %s)", invoice.invoice_number, invoice.total, invoice.currency.value)
    return invoice
