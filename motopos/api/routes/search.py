import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from motopos.db.database import get_db
from motopos.models.catalog import Motorcycle, MotorcycleStatus, Product
from motopos.models.customer import Customer
from motopos.models.sales import Invoice
from motopos.schemas.statistics import SearchOut

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Search"])

MIN_QUERY_LENGTH = 2


@router.get("/search", response_model=SearchOut)
def global_search(
    q: str = "",
    limit: int = Query(default=5, ge=1, le=20),
    db: Session = Depends(get_db),
):
    """Look up products, motorcycles, invoices and customers with one query string."""
    term = q.strip()
    if len(term) < MIN_QUERY_LENGTH:
        return {"products": [], "motorcycles": [], "invoices": [], "customers": [], "total": 0}
    pattern = f"%{term}%"

    products = db.scalars(
        select(Product)
        .where(
            Product.is_active.is_(True),
            or_(
                Product.name.ilike(pattern),
                Product.name_ar.ilike(pattern),
                Product.name_ku.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.barcode.ilike(pattern),
                Product.description.ilike(pattern),
            ),
        )
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
    ).all()
    motorcycles = db.scalars(
        select(Motorcycle)
        .where(
            Motorcycle.status == MotorcycleStatus.IN_STOCK,
            or_(Motorcycle.name.ilike(pattern), Motorcycle.sku.ilike(pattern)),
        )
        .order_by(Motorcycle.created_at.desc(), Motorcycle.id.desc())
        .limit(limit)
    ).all()
    invoices = db.scalars(
        select(Invoice)
        .outerjoin(Customer, Customer.id == Invoice.customer_id)
        .where(
            or_(
                Invoice.invoice_number.ilike(pattern),
                Invoice.notes.ilike(pattern),
                Customer.name.ilike(pattern),
                Customer.sku.ilike(pattern),
            )
        )
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .limit(limit)
    ).all()
    customers = db.scalars(
        select(Customer)
        .where(
            or_(
                Customer.name.ilike(pattern),
                Customer.name_ar.ilike(pattern),
                Customer.sku.ilike(pattern),
                Customer.phone.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.city.ilike(pattern),
            )
        )
        .order_by(Customer.created_at.desc(), Customer.id.desc())
        .limit(limit)
    ).all()

    total = len(products) + len(motorcycles) + len(invoices) + len(customers)
    logger.debug("Search %r matched %s records", term, total)
    return {
        "products": list(products),
        "motorcycles": list(motorcycles),
        "invoices": list(invoices),
        "customers": list(customers),
        "total": total,
    }
