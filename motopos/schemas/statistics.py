from decimal import Decimal
from typing import Literal

from pydantic import BaseModel

from motopos.schemas.catalog import MotorcycleOut, ProductOut
from motopos.schemas.customer import CustomerOut
from motopos.schemas.sales import InvoiceSummaryOut


class LowStockItemOut(BaseModel):
    id: int
    item_type: Literal["product", "motorcycle"]
    name: str
    sku: str
    stock_quantity: int
    low_stock_threshold: int


class LowStockOut(BaseModel):
    products: list[ProductOut]
    motorcycles: list[MotorcycleOut]
    items: list[LowStockItemOut]
    total_count: int


class MostSoldOut(BaseModel):
    id: int
    name: str
    sku: str
    total_sold: int


class TopCustomerOut(BaseModel):
    id: int
    name: str
    sku: str
    phone: str | None
    total_sales: Decimal
    total_orders: int


class DashboardOut(BaseModel):
    total_revenue_iqd: Decimal
    total_revenue_usd: Decimal
    new_customers: int
    total_customers: int
    active_accounts: int
    growth_rate: float
    total_products: int
    total_motorcycles: int
    total_invoices: int


class SearchOut(BaseModel):
    products: list[ProductOut]
    motorcycles: list[MotorcycleOut]
    invoices: list[InvoiceSummaryOut]
    customers: list[CustomerOut]
    total: int
