from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from motopos.api.deps import http_error
from motopos.db.database import get_db
from motopos.models.customer import Customer, CustomerBalance
from motopos.models.sales import InvoiceStatus
from motopos.schemas.customer import (
    BalanceEntryOut,
    CustomerBalanceOut,
    CustomerCreate,
    CustomerOut,
    CustomerUpdate,
    PaymentCreate,
)
from motopos.schemas.sales import InvoiceSummaryOut
from motopos.services.customers import lock_customer, record_payment
from motopos.services.draft_rules import quantize_money
from motopos.services.errors import DomainError
from motopos.services.invoices import list_invoices

router = APIRouter(prefix="/customers", tags=["Customers"])


def _get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


@router.get("", response_model=list[CustomerOut])
def list_customers(
    search: str | None = None,
    with_debt: bool = False,
    page_size: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    query = select(Customer).order_by(Customer.name.asc()).limit(page_size)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(Customer.name.ilike(pattern), Customer.sku.ilike(pattern), Customer.phone.ilike(pattern))
        )
    if with_debt:
        query = query.where(or_(Customer.debt_iqd > 0, Customer.debt_usd > 0))
    return list(db.scalars(query).all())


@router.post("", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(payload: CustomerCreate, db: Session = Depends(get_db)):
    debt_iqd = quantize_money(payload.debt_iqd)
    customer = Customer(
        **payload.model_dump(exclude={"name", "sku", "debt_iqd", "debt_usd"}),
        name=payload.name.strip(),
        sku=payload.sku.strip().upper(),
        debt_iqd=debt_iqd,
        debt_usd=quantize_money(payload.debt_usd),
        current_balance=debt_iqd,
    )
    db.add(customer)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Customer SKU already exists") from exc
    db.refresh(customer)
    return customer


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    return _get_customer(db, customer_id)


@router.patch("/{customer_id}", response_model=CustomerOut)
def update_customer(customer_id: int, payload: CustomerUpdate, db: Session = Depends(get_db)):
    customer = _get_customer(db, customer_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name"):
        changes["name"] = changes["name"].strip()
    if changes.get("sku"):
        changes["sku"] = changes["sku"].strip().upper()
    for field, value in changes.items():
        if value is None and field in ("name", "sku", "type"):
            continue
        setattr(customer, field, value)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Customer SKU already exists") from exc
    db.refresh(customer)
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    customer = _get_customer(db, customer_id)
    if customer.debt_iqd > 0 or customer.debt_usd > 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Customer still has outstanding debt")
    db.delete(customer)
    db.commit()


@router.get("/{customer_id}/balance", response_model=CustomerBalanceOut)
def get_customer_balance(
    customer_id: int,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    customer = _get_customer(db, customer_id)
    history = db.scalars(
        select(CustomerBalance)
        .where(CustomerBalance.customer_id == customer.id)
        .order_by(CustomerBalance.created_at.desc(), CustomerBalance.id.desc())
        .limit(limit)
    ).all()
    return CustomerBalanceOut(
        customer_id=customer.id,
        debt_iqd=customer.debt_iqd,
        debt_usd=customer.debt_usd,
        current_balance=customer.current_balance,
        last_payment_date=customer.last_payment_date,
        history=[BalanceEntryOut.model_validate(entry) for entry in history],
    )


@router.get("/{customer_id}/invoices", response_model=list[InvoiceSummaryOut])
def list_customer_invoices(
    customer_id: int,
    status_filter: InvoiceStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    _get_customer(db, customer_id)
    return list_invoices(db, customer_id=customer_id, status=status_filter)


@router.get("/{customer_id}/payments", response_model=list[BalanceEntryOut])
def list_customer_payments(customer_id: int, db: Session = Depends(get_db)):
    _get_customer(db, customer_id)
    return list(
        db.scalars(
            select(CustomerBalance)
            .where(CustomerBalance.customer_id == customer_id, CustomerBalance.payment_method.is_not(None))
            .order_by(CustomerBalance.created_at.desc(), CustomerBalance.id.desc())
        ).all()
    )


@router.post("/{customer_id}/payments", response_model=list[BalanceEntryOut], status_code=status.HTTP_201_CREATED)
def create_customer_payment(customer_id: int, payload: PaymentCreate, db: Session = Depends(get_db)):
    try:
        customer = lock_customer(db, customer_id)
        entries = record_payment(db, customer, payload)
        db.commit()
    except DomainError as exc:
        db.rollback()
        raise http_error(exc) from exc
    for entry in entries:
        db.refresh(entry)
    return entries
