import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field

from motopos.core.config import settings

ItemKind = Literal["product", "motorcycle"]
CurrencyCode = Literal["IQD", "USD"]
DiscountType = Literal["percentage", "value"]

ZERO = Decimal("0")


class InvoiceType(str, Enum):
    WHOLESALE_PRODUCT = "wholesale-product"
    RETAIL_PRODUCT = "retail-product"
    WHOLESALE_MOTORCYCLE = "wholesale-motorcycle"
    RETAIL_MOTORCYCLE = "retail-motorcycle"

    @property
    def is_wholesale(self) -> bool:
        return self.value.startswith("wholesale")

    @property
    def is_retail(self) -> bool:
        return not self.is_wholesale

    @property
    def is_motorcycle(self) -> bool:
        return self.value.endswith("motorcycle")

    @property
    def item_kind(self) -> ItemKind:
        return "motorcycle" if self.is_motorcycle else "product"

    @property
    def currency(self) -> CurrencyCode:
        return "USD" if self.is_motorcycle else "IQD"

    @property
    def draft_type(self) -> str:
        return "JUMLA" if self.is_wholesale else "MUFRAD"

    @property
    def base_title(self) -> str:
        return self.value.replace("-", " ").title()


def new_line_id() -> str:
    return f"item-{uuid4().hex[:12]}"


class LineItem(BaseModel):
    id: str = Field(default_factory=new_line_id)
    item_id: int | None = None
    item_name: str = ""
    item_type: ItemKind = "product"
    quantity: int = 1
    rate: Decimal = ZERO
    amount: Decimal = ZERO
    # available-stock snapshot, None when the item is not resolved
    stock_quantity: int | None = None
    is_in_database: bool = False
    product_not_found: bool = False

    @property
    def is_resolved(self) -> bool:
        return self.item_id is not None and self.is_in_database


class CustomerSnapshot(BaseModel):
    id: int
    name: str
    sku: str | None = None
    phone: str | None = None
    email: str | None = None
    debt_iqd: Decimal = ZERO
    debt_usd: Decimal = ZERO
    current_balance: Decimal = ZERO

    def debt_for(self, currency: CurrencyCode) -> tuple[Decimal, Decimal]:
        """(current debt, current balance) in ``currency``."""
        if currency == "USD":
            return self.debt_usd, self.debt_usd
        return self.debt_iqd, self.current_balance


class FormState(BaseModel):
    draft_id: int | None = None
    draft_status: str | None = None
    naming_series: str = ""
    customer_id: int | None = None
    customer_name: str = ""
    selected_customer: CustomerSnapshot | None = None
    fetch_customer: bool = False
    date: dt.date | None = None
    posting_date: dt.date | None = None
    posting_time: str = ""
    due_date: dt.date | None = None
    currency: CurrencyCode = "IQD"
    is_return: bool = False
    is_pos: bool = False
    update_stock: bool = True
    items: list[LineItem] = Field(default_factory=list)
    discount_enabled: bool = False
    discount_type: DiscountType = "percentage"
    discount_amount: Decimal = ZERO
    total_advance: Decimal = ZERO
    customer_current_debt: Decimal = ZERO
    customer_current_balance: Decimal = ZERO
    original_invoice_amount_due: Decimal = ZERO

    @classmethod
    def new(cls, invoice_type: InvoiceType, now: dt.datetime | None = None) -> "FormState":
        now = now or dt.datetime.now()
        today = now.date()
        return cls(
            fetch_customer=invoice_type.is_wholesale,
            date=today,
            posting_date=today,
            posting_time=now.strftime("%H:%M:%S"),
            due_date=today + dt.timedelta(days=settings.invoice_due_days),
            currency=invoice_type.currency,
            items=[LineItem(item_type=invoice_type.item_kind)],
        )

    def find_item(self, line_id: str) -> LineItem | None:
        for item in self.items:
            if item.id == line_id:
                return item
        return None

    def has_data(self) -> bool:
        return (
            self.customer_id is not None
            or bool(self.customer_name.strip())
            or any(item.item_name.strip() for item in self.items)
            or self.total_advance > ZERO
        )


@dataclass(frozen=True)
class Alert:
    kind: Literal["error", "success", "info"]
    title: str
    message: str


class ProductRecord(BaseModel):
    id: int
    name: str
    sku: str | None = None
    retail_price: Decimal = ZERO
    wholesale_price: Decimal = ZERO
    stock_quantity: int = 0

    kind: ItemKind = "product"

    def price_for(self, wholesale: bool) -> Decimal:
        return self.wholesale_price if wholesale else self.retail_price


class MotorcycleRecord(BaseModel):
    id: int
    name: str
    sku: str | None = None
    usd_retail_price: Decimal = ZERO
    usd_wholesale_price: Decimal = ZERO
    stock_quantity: int = 0

    kind: ItemKind = "motorcycle"

    def price_for(self, wholesale: bool) -> Decimal:
        return self.usd_wholesale_price if wholesale else self.usd_retail_price


ItemRecord = ProductRecord | MotorcycleRecord
