from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from motopos.models.customer import CustomerType

PaymentMethod = Literal["CASH", "BANK_TRANSFER", "CHECK", "OTHER"]


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    name_ar: str | None = Field(default=None, max_length=160)
    sku: str = Field(min_length=2, max_length=64)
    phone: str | None = Field(default=None, max_length=40)
    email: str | None = Field(default=None, max_length=320)
    city: str | None = Field(default=None, max_length=120)
    type: CustomerType = CustomerType.INDIVIDUAL
    notes: str | None = None
    debt_iqd: Decimal = Field(default=Decimal("0"), ge=0)
    debt_usd: Decimal = Field(default=Decimal("0"), ge=0)


class CustomerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    name_ar: str | None = Field(default=None, max_length=160)
    sku: str | None = Field(default=None, min_length=2, max_length=64)
    phone: str | None = Field(default=None, max_length=40)
    email: str | None = Field(default=None, max_length=320)
    city: str | None = Field(default=None, max_length=120)
    type: CustomerType | None = None
    notes: str | None = None


class CustomerOut(BaseModel):
    id: int
    name: str
    name_ar: str | None
    sku: str
    phone: str | None
    email: str | None
    city: str | None
    type: CustomerType
    notes: str | None
    debt_iqd: Decimal
    debt_usd: Decimal
    current_balance: Decimal
    last_payment_date: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class BalanceEntryOut(BaseModel):
    id: int
    customer_id: int
    currency: str
    amount: Decimal
    balance: Decimal
    payment_method: str | None
    description: str | None
    invoice_id: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class CustomerBalanceOut(BaseModel):
    customer_id: int
    debt_iqd: Decimal
    debt_usd: Decimal
    current_balance: Decimal
    last_payment_date: datetime | None
    history: list[BalanceEntryOut]


class PaymentCreate(BaseModel):
    amount_iqd: Decimal = Field(default=Decimal("0"), ge=0)
    amount_usd: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: PaymentMethod = "CASH"
    description: str | None = Field(default=None, max_length=200)
