"""catalog and customers

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    motorcycle_status_enum = sa.Enum(
        "IN_STOCK",
        "RESERVED",
        "SOLD",
        "OUT_OF_STOCK",
        name="motorcyclestatus",
    )
    customer_type_enum = sa.Enum("INDIVIDUAL", "COMPANY", name="customertype")

    bind = op.get_bind()
    motorcycle_status_enum.create(bind, checkfirst=True)
    customer_type_enum.create(bind, checkfirst=True)

    for table in ("categories", "motorcycle_categories"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("name_ar", sa.String(length=120), nullable=True),
            sa.Column("name_ku", sa.String(length=120), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("parent_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["parent_id"], [f"{table}.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(op.f(f"ix_{table}_id"), table, ["id"], unique=False)
        op.create_index(op.f(f"ix_{table}_name"), table, ["name"], unique=False)
        op.create_index(op.f(f"ix_{table}_parent_id"), table, ["parent_id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("name_ar", sa.String(length=160), nullable=True),
        sa.Column("name_ku", sa.String(length=160), nullable=True),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("barcode", sa.String(length=64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("purchase_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("retail_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("wholesale_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("stock_quantity", sa.Integer(), nullable=False),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_products_id"), "products", ["id"], unique=False)
    op.create_index(op.f("ix_products_name"), "products", ["name"], unique=False)
    op.create_index(op.f("ix_products_sku"), "products", ["sku"], unique=True)
    op.create_index(op.f("ix_products_barcode"), "products", ["barcode"], unique=False)
    op.create_index(op.f("ix_products_category_id"), "products", ["category_id"], unique=False)

    op.create_table(
        "motorcycles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("usd_retail_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("usd_wholesale_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("stock_quantity", sa.Integer(), nullable=False),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False),
        sa.Column("status", motorcycle_status_enum, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["motorcycle_categories.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_motorcycles_id"), "motorcycles", ["id"], unique=False)
    op.create_index(op.f("ix_motorcycles_name"), "motorcycles", ["name"], unique=False)
    op.create_index(op.f("ix_motorcycles_sku"), "motorcycles", ["sku"], unique=True)
    op.create_index(op.f("ix_motorcycles_status"), "motorcycles", ["status"], unique=False)
    op.create_index(op.f("ix_motorcycles_category_id"), "motorcycles", ["category_id"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("name_ar", sa.String(length=160), nullable=True),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("type", customer_type_enum, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("debt_iqd", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("debt_usd", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("current_balance", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("last_payment_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_customers_id"), "customers", ["id"], unique=False)
    op.create_index(op.f("ix_customers_name"), "customers", ["name"], unique=False)
    op.create_index(op.f("ix_customers_sku"), "customers", ["sku"], unique=True)
    op.create_index(op.f("ix_customers_phone"), "customers", ["phone"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_customers_phone"), table_name="customers")
    op.drop_index(op.f("ix_customers_sku"), table_name="customers")
    op.drop_index(op.f("ix_customers_name"), table_name="customers")
    op.drop_index(op.f("ix_customers_id"), table_name="customers")
    op.drop_table("customers")

    op.drop_index(op.f("ix_motorcycles_category_id"), table_name="motorcycles")
    op.drop_index(op.f("ix_motorcycles_status"), table_name="motorcycles")
    op.drop_index(op.f("ix_motorcycles_sku"), table_name="motorcycles")
    op.drop_index(op.f("ix_motorcycles_name"), table_name="motorcycles")
    op.drop_index(op.f("ix_motorcycles_id"), table_name="motorcycles")
    op.drop_table("motorcycles")

    op.drop_index(op.f("ix_products_category_id"), table_name="products")
    op.drop_index(op.f("ix_products_barcode"), table_name="products")
    op.drop_index(op.f("ix_products_sku"), table_name="products")
    op.drop_index(op.f("ix_products_name"), table_name="products")
    op.drop_index(op.f("ix_products_id"), table_name="products")
    op.drop_table("products")

    for table in ("motorcycle_categories", "categories"):
        op.drop_index(op.f(f"ix_{table}_parent_id"), table_name=table)
        op.drop_index(op.f(f"ix_{table}_name"), table_name=table)
        op.drop_index(op.f(f"ix_{table}_id"), table_name=table)
        op.drop_table(table)

    bind = op.get_bind()
    sa.Enum(name="customertype").drop(bind, checkfirst=True)
    sa.Enum(name="motorcyclestatus").drop(bind, checkfirst=True)
