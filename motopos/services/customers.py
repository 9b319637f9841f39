import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from motopos.models.customer import Customer, CustomerBalance
from motopos.models.sales import Currency
from motopos.schemas.customer import PaymentCreate
from motopos.services.draft_rules import quantize_money
from motopos.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def lock_customer(db: Session, customer_id: int) -> Customer:
    customer = db.scalar(select(Customer).where(Customer.id == customer_id).with_for_update())
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def _ledger(
    db: Session,
    customer: Customer,
    *,
    currency: Currency,
    amount: Decimal,
    description: str,
    invoice_id: int | None = None,
    payment_method: str | None = None,
) -> CustomerBalance:
    balance = customer.current_balance if currency == Currency.IQD else customer.debt_usd
    entry = CustomerBalance(
        customer_id=customer.id,
        currency=currency.value,
        amount=quantize_money(amount),
        balance=quantize_money(balance),
        payment_method=payment_method,
        description=description,
        invoice_id=invoice_id,
    )
    db.add(entry)
    return entry


def charge_invoice(
    db: Session,
    customer: Customer,
    amount_due: Decimal,
    currency: Currency,
    *,
    invoice_id: int,
    invoice_number: str,
    fully_paid: bool,
) -> None:
    amount_due = quantize_money(amount_due)
    if currency == Currency.IQD:
        customer.debt_iqd = quantize_money(customer.debt_iqd + amount_due)
        customer.current_balance = quantize_money(customer.current_balance + amount_due)
    else:
        customer.debt_usd = quantize_money(customer.debt_usd + amount_due)
    if fully_paid or amount_due <= ZERO:
        customer.last_payment_date = datetime.utcnow()
    if amount_due != ZERO:
        _ledger(
            db,
            customer,
            currency=currency,
            amount=amount_due,
            description=f"Invoice {invoice_number}",
            invoice_id=invoice_id,
        )
    logger.info("Customer %s charged %s %s for invoice %s", customer.id, amount_due, currency.value, invoice_number)


def reverse_invoice_charge(
    db: Session,
    customer: Customer,
    amount_due: Decimal,
    currency: Currency,
    *,
    invoice_id: int,
    invoice_number: str,
) -> None:
    amount_due = quantize_money(amount_due)
    if amount_due <= ZERO:
        return
    if currency == Currency.IQD:
        customer.debt_iqd = max(ZERO, customer.debt_iqd - amount_due)
        customer.current_balance = max(ZERO, customer.current_balance - amount_due)
    else:
        customer.debt_usd = max(ZERO, customer.debt_usd - amount_due)
    _ledger(
        db,
        customer,
        currency=currency,
        amount=-amount_due,
        description=f"Invoice {invoice_number} edited, previous amount due reversed",
        invoice_id=invoice_id,
    )
    logger.info("Customer %s charge of %s %s reversed for invoice %s", customer.id, amount_due, currency.value, invoice_number)


def record_payment(db: Session, customer: Customer, payload: PaymentCreate) -> list[CustomerBalance]:
    amount_iqd = quantize_money(payload.amount_iqd)
    amount_usd = quantize_money(payload.amount_usd)
    if amount_iqd <= ZERO and amount_usd <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    if amount_iqd > customer.current_balance:
        raise ValidationError(
            f"Payment amount ({amount_iqd:,.2f} IQD) exceeds customer balance "
            f"({customer.current_balance:,.2f} IQD). Cannot pay more than debt."
        )
    if amount_usd > customer.debt_usd:
        raise ValidationError(
            f"Payment amount (${amount_usd:,.2f}) exceeds customer debt (${customer.debt_usd:,.2f}). "
            "Cannot pay more than debt."
        )

    entries = []
    note = payload.description or f"Payment ({payload.payment_method})"
    if amount_iqd > ZERO:
        customer.debt_iqd = max(ZERO, customer.debt_iqd - amount_iqd)
        customer.current_balance = customer.current_balance - amount_iqd
        entries.append(
            _ledger(
                db,
                customer,
                currency=Currency.IQD,
                amount=-amount_iqd,
                description=note,
                payment_method=payload.payment_method,
            )
        )
    if amount_usd > ZERO:
        customer.debt_usd = customer.debt_usd - amount_usd
        entries.append(
            _ledger(
                db,
                customer,
                currency=Currency.USD,
                amount=-amount_usd,
                description=note,
                payment_method=payload.payment_method,
            )
        )
    customer.last_payment_date = datetime.utcnow()
    logger.info("Payment recorded for customer %s: %s IQD, %s USD", customer.id, amount_iqd, amount_usd)
    return entries
