from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from motopos.db.database import get_db
from motopos.models.catalog import Category, Motorcycle, MotorcycleCategory, MotorcycleStatus, Product
from motopos.models.sales import ActivityEntityType, ActivityType, InvoiceStatus, StockMovement, StockMovementType
from motopos.schemas.catalog import (
    CategoryCreate,
    CategoryOut,
    MotorcycleCreate,
    MotorcycleOut,
    MotorcycleUpdate,
    ProductCreate,
    ProductOut,
    ProductUpdate,
)
from motopos.schemas.sales import InvoiceSummaryOut
from motopos.services.draft_rules import quantize_money
from motopos.services.inventory import record_activity, sync_motorcycle_status
from motopos.services.invoices import list_invoices

router = APIRouter(tags=["Catalog"])

PRODUCT_PRICE_FIELDS = ("purchase_price", "retail_price", "wholesale_price")
MOTORCYCLE_PRICE_FIELDS = ("usd_retail_price", "usd_wholesale_price")


def _get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


def _get_motorcycle(db: Session, motorcycle_id: int) -> Motorcycle:
    motorcycle = db.get(Motorcycle, motorcycle_id)
    if not motorcycle:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Motorcycle not found")
    return motorcycle


def _commit_or_conflict(db: Session, detail: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from exc


def _price_changes(record, payload, fields: tuple[str, ...]) -> dict:
    changes = {}
    for field in fields:
        value = getattr(payload, field)
        if value is None:
            continue
        old = Decimal(getattr(record, field))
        new = quantize_money(value)
        if old != new:
            changes[field] = {"old": str(old), "new": str(new)}
            setattr(record, field, new)
    return changes


def _stock_activity_type(delta: int) -> ActivityType:
    return ActivityType.STOCK_ADDED if delta > 0 else ActivityType.STOCK_REDUCED


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return list(db.scalars(select(Category).order_by(Category.name.asc())).all())


@router.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    if payload.parent_id is not None and db.get(Category, payload.parent_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent category not found")
    category = Category(**payload.model_dump())
    category.name = category.name.strip()
    db.add(category)
    _commit_or_conflict(db, "Category already exists")
    db.refresh(category)
    return category


@router.get("/motorcycle-categories", response_model=list[CategoryOut])
def list_motorcycle_categories(db: Session = Depends(get_db)):
    return list(db.scalars(select(MotorcycleCategory).order_by(MotorcycleCategory.name.asc())).all())


@router.post("/motorcycle-categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_motorcycle_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    if payload.parent_id is not None and db.get(MotorcycleCategory, payload.parent_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent category not found")
    category = MotorcycleCategory(**payload.model_dump())
    category.name = category.name.strip()
    db.add(category)
    _commit_or_conflict(db, "Category already exists")
    db.refresh(category)
    return category


@router.get("/products", response_model=list[ProductOut])
def list_products(
    search: str | None = None,
    category_id: int | None = None,
    low_stock: bool = False,
    include_inactive: bool = False,
    page_size: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    query = select(Product).order_by(Product.name.asc()).limit(page_size)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(Product.name.ilike(pattern), Product.sku.ilike(pattern), Product.barcode.ilike(pattern))
        )
    if category_id is not None:
        query = query.where(Product.category_id == category_id)
    if low_stock:
        query = query.where(Product.stock_quantity <= Product.low_stock_threshold)
    if not include_inactive:
        query = query.where(Product.is_active.is_(True))
    return list(db.scalars(query).all())


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    if payload.category_id is not None and db.get(Category, payload.category_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    product = Product(
        **payload.model_dump(exclude={"sku", "name", "purchase_price", "retail_price", "wholesale_price"}),
        sku=payload.sku.strip().upper(),
        name=payload.name.strip(),
        purchase_price=quantize_money(payload.purchase_price),
        retail_price=quantize_money(payload.retail_price),
        wholesale_price=quantize_money(payload.wholesale_price),
    )
    db.add(product)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product SKU already exists") from exc
    record_activity(
        db,
        entity_type=ActivityEntityType.PRODUCT,
        entity_id=product.id,
        activity_type=ActivityType.CREATED,
        description=f"Product {product.name} created with {product.stock_quantity} in stock",
    )
    db.commit()
    db.refresh(product)
    return product


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return _get_product(db, product_id)


@router.patch("/products/{product_id}", response_model=ProductOut)
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    product = db.scalar(select(Product).where(Product.id == product_id).with_for_update())
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    if payload.sku is not None:
        product.sku = payload.sku.strip().upper()
    if payload.name is not None:
        product.name = payload.name.strip()
    for field in ("name_ar", "name_ku", "barcode", "low_stock_threshold", "is_active"):
        value = getattr(payload, field)
        if value is not None:
            setattr(product, field, value)
    if payload.description is not None:
        product.description = payload.description.strip() or None
    if payload.notes is not None:
        product.notes = payload.notes.strip() or None
    if payload.category_id is not None and payload.category_id != product.category_id:
        if db.get(Category, payload.category_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
        record_activity(
            db,
            entity_type=ActivityEntityType.PRODUCT,
            entity_id=product.id,
            activity_type=ActivityType.CATEGORY_CHANGED,
            description=f"Category changed for {product.name}",
            changes={"category_id": {"old": product.category_id, "new": payload.category_id}},
        )
        product.category_id = payload.category_id

    price_changes = _price_changes(product, payload, PRODUCT_PRICE_FIELDS)
    if price_changes:
        record_activity(
            db,
            entity_type=ActivityEntityType.PRODUCT,
            entity_id=product.id,
            activity_type=ActivityType.PRICE_CHANGED,
            description=f"Prices changed for {product.name}",
            changes=price_changes,
        )

    if payload.stock_quantity is not None and payload.stock_quantity != product.stock_quantity:
        before = product.stock_quantity
        delta = payload.stock_quantity - before
        product.stock_quantity = payload.stock_quantity
        db.add(
            StockMovement(
                product_id=product.id,
                type=StockMovementType.ADJUSTMENT,
                quantity=delta,
                balance_after=product.stock_quantity,
                adjustment_reason=payload.stock_reason,
            )
        )
        record_activity(
            db,
            entity_type=ActivityEntityType.PRODUCT,
            entity_id=product.id,
            activity_type=_stock_activity_type(delta),
            description=f"Stock for {product.name} changed from {before} to {product.stock_quantity}",
            changes={"stock_quantity": {"old": before, "new": product.stock_quantity}},
        )

    _commit_or_conflict(db, "Product SKU already exists")
    db.refresh(product)
    return product


@router.delete("/products/{product_id}", response_model=ProductOut)
def archive_product(product_id: int, db: Session = Depends(get_db)):
    product = _get_product(db, product_id)
    product.is_active = False
    record_activity(
        db,
        entity_type=ActivityEntityType.PRODUCT,
        entity_id=product.id,
        activity_type=ActivityType.DELETED,
        description=f"Product {product.name} archived",
    )
    db.commit()
    db.refresh(product)
    return product


@router.get("/products/{product_id}/invoices", response_model=list[InvoiceSummaryOut])
def list_product_invoices(
    product_id: int,
    status_filter: InvoiceStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    _get_product(db, product_id)
    return list_invoices(db, product_id=product_id, status=status_filter)


@router.get("/motorcycles", response_model=list[MotorcycleOut])
def list_motorcycles(
    search: str | None = None,
    status_filter: MotorcycleStatus | None = Query(default=None, alias="status"),
    category_id: int | None = None,
    page_size: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    query = select(Motorcycle).order_by(Motorcycle.name.asc()).limit(page_size)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Motorcycle.name.ilike(pattern), Motorcycle.sku.ilike(pattern)))
    if status_filter is not None:
        query = query.where(Motorcycle.status == status_filter)
    if category_id is not None:
        query = query.where(Motorcycle.category_id == category_id)
    return list(db.scalars(query).all())


@router.post("/motorcycles", response_model=MotorcycleOut, status_code=status.HTTP_201_CREATED)
def create_motorcycle(payload: MotorcycleCreate, db: Session = Depends(get_db)):
    if payload.category_id is not None and db.get(MotorcycleCategory, payload.category_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    motorcycle = Motorcycle(
        name=payload.name.strip(),
        sku=payload.sku.strip().upper(),
        usd_retail_price=quantize_money(payload.usd_retail_price),
        usd_wholesale_price=quantize_money(payload.usd_wholesale_price),
        stock_quantity=payload.stock_quantity,
        low_stock_threshold=payload.low_stock_threshold,
        status=MotorcycleStatus.IN_STOCK,
        notes=payload.notes,
        category_id=payload.category_id,
    )
    sync_motorcycle_status(motorcycle)
    db.add(motorcycle)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Motorcycle SKU already exists") from exc
    record_activity(
        db,
        entity_type=ActivityEntityType.MOTORCYCLE,
        entity_id=motorcycle.id,
        activity_type=ActivityType.CREATED,
        description=f"Motorcycle {motorcycle.name} created with {motorcycle.stock_quantity} in stock",
    )
    db.commit()
    db.refresh(motorcycle)
    return motorcycle


@router.get("/motorcycles/{motorcycle_id}", response_model=MotorcycleOut)
def get_motorcycle(motorcycle_id: int, db: Session = Depends(get_db)):
    return _get_motorcycle(db, motorcycle_id)


@router.patch("/motorcycles/{motorcycle_id}", response_model=MotorcycleOut)
def update_motorcycle(motorcycle_id: int, payload: MotorcycleUpdate, db: Session = Depends(get_db)):
    motorcycle = db.scalar(select(Motorcycle).where(Motorcycle.id == motorcycle_id).with_for_update())
    if not motorcycle:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Motorcycle not found")

    if payload.name is not None:
        motorcycle.name = payload.name.strip()
    if payload.sku is not None:
        motorcycle.sku = payload.sku.strip().upper()
    if payload.low_stock_threshold is not None:
        motorcycle.low_stock_threshold = payload.low_stock_threshold
    if payload.notes is not None:
        motorcycle.notes = payload.notes.strip() or None
    if payload.category_id is not None:
        if db.get(MotorcycleCategory, payload.category_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
        motorcycle.category_id = payload.category_id
    if payload.status is not None:
        motorcycle.status = payload.status

    price_changes = _price_changes(motorcycle, payload, MOTORCYCLE_PRICE_FIELDS)
    if price_changes:
        record_activity(
            db,
            entity_type=ActivityEntityType.MOTORCYCLE,
            entity_id=motorcycle.id,
            activity_type=ActivityType.PRICE_CHANGED,
            description=f"Prices changed for {motorcycle.name}",
            changes=price_changes,
        )

    if payload.stock_quantity is not None and payload.stock_quantity != motorcycle.stock_quantity:
        before = motorcycle.stock_quantity
        motorcycle.stock_quantity = payload.stock_quantity
        sync_motorcycle_status(motorcycle)
        record_activity(
            db,
            entity_type=ActivityEntityType.MOTORCYCLE,
            entity_id=motorcycle.id,
            activity_type=_stock_activity_type(payload.stock_quantity - before),
            description=f"Stock for {motorcycle.name} changed from {before} to {motorcycle.stock_quantity}",
            changes={"stock_quantity": {"old": before, "new": motorcycle.stock_quantity}},
        )

    _commit_or_conflict(db, "Motorcycle SKU already exists")
    db.refresh(motorcycle)
    return motorcycle


@router.delete("/motorcycles/{motorcycle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_motorcycle(motorcycle_id: int, db: Session = Depends(get_db)):
    motorcycle = _get_motorcycle(db, motorcycle_id)
    record_activity(
        db,
        entity_type=ActivityEntityType.MOTORCYCLE,
        entity_id=motorcycle.id,
        activity_type=ActivityType.DELETED,
        description=f"Motorcycle {motorcycle.name} deleted",
    )
    db.delete(motorcycle)
    _commit_or_conflict(db, "Motorcycle is referenced by existing records")


@router.get("/motorcycles/{motorcycle_id}/invoices", response_model=list[InvoiceSummaryOut])
def list_motorcycle_invoices(motorcycle_id: int, db: Session = Depends(get_db)):
    _get_motorcycle(db, motorcycle_id)
    return list_invoices(db, motorcycle_id=motorcycle_id)
