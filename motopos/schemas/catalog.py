from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from motopos.models.catalog import MotorcycleStatus
from motopos.models.sales import ActivityEntityType, ActivityType


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    name_ar: str | None = Field(default=None, max_length=120)
    name_ku: str | None = Field(default=None, max_length=120)
    description: str | None = None
    parent_id: int | None = None


class CategoryOut(BaseModel):
    id: int
    name: str
    name_ar: str | None
    name_ku: str | None
    description: str | None
    parent_id: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    name_ar: str | None = Field(default=None, max_length=160)
    name_ku: str | None = Field(default=None, max_length=160)
    sku: str = Field(min_length=2, max_length=64)
    barcode: str | None = Field(default=None, max_length=64)
    description: str | None = None
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0)
    retail_price: Decimal = Field(ge=0)
    wholesale_price: Decimal = Field(ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)
    notes: str | None = None
    category_id: int | None = None


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    name_ar: str | None = Field(default=None, max_length=160)
    name_ku: str | None = Field(default=None, max_length=160)
    sku: str | None = Field(default=None, min_length=2, max_length=64)
    barcode: str | None = Field(default=None, max_length=64)
    description: str | None = None
    purchase_price: Decimal | None = Field(default=None, ge=0)
    retail_price: Decimal | None = Field(default=None, ge=0)
    wholesale_price: Decimal | None = Field(default=None, ge=0)
    stock_quantity: int | None = Field(default=None, ge=0)
    low_stock_threshold: int | None = Field(default=None, ge=0)
    notes: str | None = None
    category_id: int | None = None
    is_active: bool | None = None
    stock_reason: str | None = Field(default=None, max_length=255)


class ProductOut(BaseModel):
    id: int
    name: str
    name_ar: str | None
    name_ku: str | None
    sku: str
    barcode: str | None
    description: str | None
    purchase_price: Decimal
    retail_price: Decimal
    wholesale_price: Decimal
    stock_quantity: int
    low_stock_threshold: int
    notes: str | None
    is_active: bool
    category_id: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MotorcycleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    sku: str = Field(min_length=2, max_length=64)
    usd_retail_price: Decimal = Field(ge=0)
    usd_wholesale_price: Decimal = Field(ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)
    notes: str | None = None
    category_id: int | None = None


class MotorcycleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    sku: str | None = Field(default=None, min_length=2, max_length=64)
    usd_retail_price: Decimal | None = Field(default=None, ge=0)
    usd_wholesale_price: Decimal | None = Field(default=None, ge=0)
    stock_quantity: int | None = Field(default=None, ge=0)
    low_stock_threshold: int | None = Field(default=None, ge=0)
    status: MotorcycleStatus | None = None
    notes: str | None = None
    category_id: int | None = None


class MotorcycleOut(BaseModel):
    id: int
    name: str
    sku: str
    usd_retail_price: Decimal
    usd_wholesale_price: Decimal
    stock_quantity: int
    low_stock_threshold: int
    status: MotorcycleStatus
    notes: str | None
    category_id: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ActivityOut(BaseModel):
    id: int
    entity_type: ActivityEntityType
    entity_id: int
    type: ActivityType
    description: str
    changes: dict | None
    invoice_id: int | None
    created_at: datetime

    model_config = {"from_attributes": True}
