import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from motopos.models.catalog import Motorcycle, MotorcycleStatus, Product
from motopos.models.customer import Customer
from motopos.models.sales import Currency, Invoice, InvoiceItem, InvoiceStatus, Sale, SaleItem, SaleStatus
from motopos.services.draft_rules import quantize_money

logger = logging.getLogger(__name__)

LOW_STOCK_LIMIT = 20
RANKING_LIMIT = 10
GROWTH_WINDOW_DAYS = 30


def low_stock(db: Session, limit: int = LOW_STOCK_LIMIT) -> dict:
    """Products and motorcycles at or below their restock threshold, lowest stock first.

    A threshold of zero switches the warning off for that record.
    """
    products = list(
        db.scalars(
            select(Product)
            .where(
                Product.is_active.is_(True),
                Product.low_stock_threshold > 0,
                Product.stock_quantity <= Product.low_stock_threshold,
            )
            .order_by(Product.stock_quantity.asc(), Product.name.asc())
        ).all()
    )
    motorcycles = list(
        db.scalars(
            select(Motorcycle)
            .where(
                Motorcycle.status.in_([MotorcycleStatus.IN_STOCK, MotorcycleStatus.RESERVED]),
                Motorcycle.low_stock_threshold > 0,
                Motorcycle.stock_quantity <= Motorcycle.low_stock_threshold,
            )
            .order_by(Motorcycle.stock_quantity.asc(), Motorcycle.name.asc())
        ).all()
    )
    items = [_low_stock_item(product, "product") for product in products]
    items += [_low_stock_item(motorcycle, "motorcycle") for motorcycle in motorcycles]
    items.sort(key=lambda item: (item["stock_quantity"], item["name"].lower()))
    return {
        "products": products,
        "motorcycles": motorcycles,
        "items": items[:limit],
        "total_count": len(items),
    }


def _low_stock_item(record, item_type: str) -> dict:
    return {
        "id": record.id,
        "item_type": item_type,
        "name": record.name,
        "sku": record.sku,
        "stock_quantity": record.stock_quantity,
        "low_stock_threshold": record.low_stock_threshold,
    }


def most_sold_products(db: Session, limit: int = RANKING_LIMIT) -> list[dict]:
    # sales mirror their invoice lines, so only sales without an invoice add to the invoice counts
    invoiced = (
        select(InvoiceItem.product_id, func.sum(InvoiceItem.quantity))
        .join(Invoice, Invoice.id == InvoiceItem.invoice_id)
        .where(Invoice.status != InvoiceStatus.CANCELLED, InvoiceItem.product_id.is_not(None))
        .group_by(InvoiceItem.product_id)
    )
    uninvoiced = (
        select(SaleItem.product_id, func.sum(SaleItem.quantity))
        .join(Sale, Sale.id == SaleItem.sale_id)
        .where(
            Sale.status == SaleStatus.COMPLETED,
            SaleItem.product_id.is_not(None),
            ~select(Invoice.id).where(Invoice.sale_id == Sale.id).exists(),
        )
        .group_by(SaleItem.product_id)
    )
    sold: dict[int, int] = {}
    for query in (invoiced, uninvoiced):
        for product_id, quantity in db.execute(query).all():
            sold[product_id] = sold.get(product_id, 0) + int(quantity or 0)
    if not sold:
        return []

    found = db.scalars(select(Product).where(Product.id.in_(list(sold)))).all()
    products = {product.id: product for product in found}
    ranked = sorted(
        (product_id for product_id in sold if product_id in products),
        key=lambda product_id: (-sold[product_id], products[product_id].name.lower()),
    )
    return [
        {
            "id": product_id,
            "name": products[product_id].name,
            "sku": products[product_id].sku,
            "total_sold": sold[product_id],
        }
        for product_id in ranked[:limit]
    ]


def top_customers(db: Session, limit: int = RANKING_LIMIT) -> list[dict]:
    orders = func.count(Sale.id).label("total_orders")
    sales = func.coalesce(func.sum(Sale.total), 0).label("total_sales")
    rows = db.execute(
        select(Customer, orders, sales)
        .join(Sale, Sale.customer_id == Customer.id)
        .where(Sale.status == SaleStatus.COMPLETED)
        .group_by(Customer.id)
        .order_by(orders.desc(), sales.desc(), Customer.id.asc())
        .limit(limit)
    ).all()
    return [
        {
            "id": customer.id,
            "name": customer.name,
            "sku": customer.sku,
            "phone": customer.phone,
            "total_sales": quantize_money(Decimal(str(total_sales))),
            "total_orders": total_orders,
        }
        for customer, total_orders, total_sales in rows
    ]


def growth_rate(current: int, previous: int) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 1)
    return 100.0 if current > 0 else 0.0


def dashboard(db: Session, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    window_start = now - timedelta(days=GROWTH_WINDOW_DAYS)
    previous_start = now - timedelta(days=GROWTH_WINDOW_DAYS * 2)

    revenue = {currency: Decimal("0") for currency in Currency}
    rows = db.execute(
        select(Invoice.currency, func.sum(Invoice.total))
        .where(Invoice.status.in_([InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID]))
        .group_by(Invoice.currency)
    ).all()
    for currency, total in rows:
        revenue[Currency(currency)] += Decimal(str(total or 0))

    new_customers = db.scalar(select(func.count(Customer.id)).where(Customer.created_at >= window_start))
    previous_customers = db.scalar(
        select(func.count(Customer.id)).where(Customer.created_at >= previous_start, Customer.created_at < window_start)
    )
    return {
        "total_revenue_iqd": quantize_money(revenue[Currency.IQD]),
        "total_revenue_usd": quantize_money(revenue[Currency.USD]),
        "new_customers": new_customers,
        "total_customers": db.scalar(select(func.count(Customer.id))),
        "active_accounts": db.scalar(
            select(func.count(func.distinct(Invoice.customer_id))).where(Invoice.customer_id.is_not(None))
        ),
        "growth_rate": growth_rate(new_customers, previous_customers),
        "total_products": db.scalar(select(func.count(Product.id))),
        "total_motorcycles": db.scalar(select(func.count(Motorcycle.id))),
        "total_invoices": db.scalar(
            select(func.count(Invoice.id)).where(Invoice.status != InvoiceStatus.CANCELLED)
        ),
    }
