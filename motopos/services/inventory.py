import logging
from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from motopos.models.catalog import Motorcycle, MotorcycleStatus, Product
from motopos.models.sales import (
    Activity,
    ActivityEntityType,
    ActivityType,
    Currency,
    Invoice,
    LineItemType,
    StockMovement,
    StockMovementType,
)
from motopos.services.errors import InsufficientStockError, NotFoundError

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {Currency.IQD: "IQD ", Currency.USD: "$"}


def format_money(amount: Decimal, currency: Currency) -> str:
    return f"{CURRENCY_SYMBOLS[currency]}{Decimal(amount):,.2f}"


def currency_for_lines(lines: Iterable) -> Currency:
    if any(line.item_type == LineItemType.MOTORCYCLE for line in lines):
        return Currency.USD
    return Currency.IQD


def record_activity(
    db: Session,
    *,
    entity_type: ActivityEntityType,
    entity_id: int,
    activity_type: ActivityType,
    description: str,
    changes: dict | None = None,
    invoice_id: int | None = None,
) -> Activity:
    activity = Activity(
        entity_type=entity_type,
        entity_id=entity_id,
        type=activity_type,
        description=description,
        changes=changes,
        invoice_id=invoice_id,
    )
    db.add(activity)
    return activity


def sync_motorcycle_status(motorcycle: Motorcycle) -> None:
    if motorcycle.stock_quantity <= 0 and motorcycle.status == MotorcycleStatus.IN_STOCK:
        motorcycle.status = MotorcycleStatus.OUT_OF_STOCK
    elif motorcycle.stock_quantity > 0 and motorcycle.status == MotorcycleStatus.OUT_OF_STOCK:
        motorcycle.status = MotorcycleStatus.IN_STOCK


def lock_item(db: Session, item_type: LineItemType, item_id: int) -> Product | Motorcycle | None:
    model = Motorcycle if item_type == LineItemType.MOTORCYCLE else Product
    return db.scalar(select(model).where(model.id == item_id).with_for_update())


def ensure_items_exist(db: Session, lines: Iterable) -> None:
    for line in lines:
        if line.item_type == LineItemType.MOTORCYCLE:
            if db.get(Motorcycle, line.motorcycle_id) is None:
                raise NotFoundError(f"Motorcycle {line.motorcycle_id} not found")
        elif line.product_id is not None and db.get(Product, line.product_id) is None:
            raise NotFoundError(f"Product {line.product_id} not found")


def aggregate_lines(lines: Iterable) -> dict[tuple[LineItemType, int], tuple[int, Decimal]]:
    """Sum quantity and line totals per referenced item; unreferenced lines are skipped."""
    totals: dict[tuple[LineItemType, int], list] = defaultdict(lambda: [0, Decimal("0")])
    for line in lines:
        item_id = line.motorcycle_id if line.item_type == LineItemType.MOTORCYCLE else line.product_id
        if item_id is None:
            continue
        entry = totals[(line.item_type, item_id)]
        entry[0] += line.quantity
        entry[1] += Decimal(line.line_total)
    return {key: (quantity, amount) for key, (quantity, amount) in totals.items()}


def restore_sold_stock(db: Session, lines: Iterable) -> None:
    for (item_type, item_id), (quantity, _) in aggregate_lines(lines).items():
        record = lock_item(db, item_type, item_id)
        if record is None:
            logger.warning("Cannot restore stock, %s %s no longer exists", item_type.value, item_id)
            continue
        before = record.stock_quantity
        record.stock_quantity = before + quantity
        if isinstance(record, Motorcycle):
            sync_motorcycle_status(record)
        logger.info("Restored %s units of %s %s (%s -> %s)", quantity, item_type.value, item_id, before, record.stock_quantity)


def deduct_sold_stock(db: Session, lines: Iterable, *, sale_id: int, invoice: Invoice) -> None:
    for (item_type, item_id), (quantity, amount) in aggregate_lines(lines).items():
        record = lock_item(db, item_type, item_id)
        if record is None:
            logger.warning("Skipping stock deduction, %s %s no longer exists", item_type.value, item_id)
            continue
        if quantity > record.stock_quantity:
            raise InsufficientStockError(f"{item_type.value} {record.name}", record.stock_quantity, quantity)

        before = record.stock_quantity
        record.stock_quantity = before - quantity
        if isinstance(record, Motorcycle):
            sync_motorcycle_status(record)
            entity_type = ActivityEntityType.MOTORCYCLE
            currency = Currency.USD
        else:
            db.add(
                StockMovement(
                    product_id=record.id,
                    type=StockMovementType.SALE,
                    quantity=-quantity,
                    balance_after=record.stock_quantity,
                    sale_id=sale_id,
                    invoice_id=invoice.id,
                )
            )
            entity_type = ActivityEntityType.PRODUCT
            currency = Currency.IQD

        price = format_money(amount, currency)
        record_activity(
            db,
            entity_type=entity_type,
            entity_id=record.id,
            activity_type=ActivityType.STOCK_REDUCED,
            description=f"Stock reduced for {record.name} due to sale (Qty: {quantity}, Price: {price})",
            changes={"stock_quantity": {"old": before, "new": record.stock_quantity}},
            invoice_id=invoice.id,
        )
        record_activity(
            db,
            entity_type=entity_type,
            entity_id=record.id,
            activity_type=ActivityType.INVOICED,
            description=f"{record.name} was invoiced (Invoice: {invoice.invoice_number}, Qty: {quantity}, Price: {price})",
            changes={
                "invoice_number": invoice.invoice_number,
                "quantity": quantity,
                "total_price": str(amount),
            },
            invoice_id=invoice.id,
        )
        logger.info("Deducted %s units of %s %s for invoice %s", quantity, item_type.value, item_id, invoice.invoice_number)
