from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from motopos.models.sales import Currency, DraftStatus, InvoiceStatus, LineItemType, SaleType
from motopos.schemas.customer import CustomerOut


class LineItemIn(BaseModel):
    item_type: LineItemType = LineItemType.PRODUCT
    product_id: int | None = None
    motorcycle_id: int | None = None
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    notes: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def check_item_reference(self):
        if self.item_type == LineItemType.MOTORCYCLE:
            if self.motorcycle_id is None:
                raise ValueError("motorcycle lines require motorcycle_id")
            self.product_id = None
        else:
            self.motorcycle_id = None
        return self


class LineItemOut(BaseModel):
    id: int
    item_type: LineItemType
    product_id: int | None
    motorcycle_id: int | None
    quantity: int
    unit_price: Decimal
    discount: Decimal
    tax_rate: Decimal
    line_total: Decimal
    notes: str | None
    position: int

    model_config = {"from_attributes": True}


class DraftCreate(BaseModel):
    type: SaleType
    customer_id: int | None = None
    items: list[LineItemIn] = Field(default_factory=list)
    discount: Decimal = Field(default=Decimal("0"), ge=0, le=100, description="Invoice discount percent")
    payment_method: str | None = Field(default=None, max_length=32)
    amount_paid: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        if isinstance(value, str):
            normalized = value.strip().upper()
            return {"WHOLESALE": "JUMLA", "RETAIL": "MUFRAD"}.get(normalized, normalized)
        return value


class DraftUpdate(BaseModel):
    customer_id: int | None = None
    items: list[LineItemIn] | None = None
    discount: Decimal | None = Field(default=None, ge=0, le=100)
    payment_method: str | None = Field(default=None, max_length=32)
    amount_paid: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None
    status: DraftStatus | None = None


class DraftOut(BaseModel):
    id: int
    type: SaleType
    status: DraftStatus
    customer_id: int | None
    subtotal: Decimal
    tax_amount: Decimal
    discount: Decimal
    discount_percent: Decimal
    total: Decimal
    payment_method: str | None
    amount_paid: Decimal | None
    notes: str | None
    sale_id: int | None
    invoice_id: int | None
    created_at: datetime
    updated_at: datetime
    finalized_at: datetime | None
    cancelled_at: datetime | None
    items: list[LineItemOut]

    model_config = {"from_attributes": True}


class DraftFinalizeRequest(BaseModel):
    payment_method: str = Field(default="CASH", max_length=32)
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0)
    invoice_number: str | None = Field(default=None, max_length=200)
    currency: Currency | None = None
    notes: str | None = None


class DraftFinalizeOut(BaseModel):
    draft: DraftOut
    sale_id: int
    invoice_id: int
    invoice_number: str


class InvoiceItemOut(LineItemOut):
    item_name: str | None = None
    stock_quantity: int | None = None


class InvoiceSummaryOut(BaseModel):
    id: int
    invoice_number: str
    status: InvoiceStatus
    currency: Currency
    sale_id: int
    customer_id: int | None
    draft_id: int | None
    subtotal: Decimal
    tax_amount: Decimal
    discount: Decimal
    total: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    invoice_date: datetime
    due_date: datetime | None
    paid_at: datetime | None
    notes: str | None

    model_config = {"from_attributes": True}


class InvoiceOut(InvoiceSummaryOut):
    sale_type: SaleType | None = None
    draft_status: DraftStatus | None = None
    customer: CustomerOut | None = None
    items: list[InvoiceItemOut] = Field(default_factory=list)


class InvoiceUpdate(BaseModel):
    customer_id: int | None = None
    invoice_date: datetime | None = None
    due_date: datetime | None = None
    subtotal: Decimal = Field(ge=0)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(ge=0)
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0)
    amount_due: Decimal | None = None
    currency: Currency | None = None
    status: Literal["PAID", "PARTIALLY_PAID"] | None = None
    items: list[LineItemIn] = Field(default_factory=list)
