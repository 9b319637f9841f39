from motopos.models.catalog import Category, Motorcycle, MotorcycleCategory, Product
from motopos.models.customer import Customer, CustomerBalance
from motopos.models.sales import (
    Activity,
    Draft,
    DraftItem,
    Invoice,
    InvoiceItem,
    Sale,
    SaleItem,
    StockMovement,
)

__all__ = [
    "Activity",
    "Category",
    "Customer",
    "CustomerBalance",
    "Draft",
    "DraftItem",
    "Invoice",
    "InvoiceItem",
    "Motorcycle",
    "MotorcycleCategory",
    "Product",
    "Sale",
    "SaleItem",
    "StockMovement",
]
