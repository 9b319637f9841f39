from decimal import Decimal

from sqlalchemy import select

from motopos.models import Activity, Customer, CustomerBalance, Draft, Invoice, Motorcycle, Product, StockMovement
from motopos.models.catalog import MotorcycleStatus
from motopos.models.sales import ActivityType, DraftStatus, StockMovementType


def _product_line(product, quantity=1, unit_price=None):
    return {
        "item_type": "product",
        "product_id": product.id,
        "quantity": quantity,
        "unit_price": str(unit_price if unit_price is not None else product.retail_price),
    }


def test_create_draft_computes_totals(client, db, factory):
    product = factory.create_product(db, stock=10, retail="100")

    response = client.post(
        "/drafts",
        json={"type": "RETAIL", "items": [_product_line(product, 2)], "discount": "10"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["type"] == "MUFRAD"
    assert body["status"] == "CREATED"
    assert Decimal(body["subtotal"]) == Decimal("200")
    assert Decimal(body["discount"]) == Decimal("20")
    assert Decimal(body["total"]) == Decimal("180")
    assert len(body["items"]) == 1


def test_create_draft_rejects_unknown_product(client):
    response = client.post(
        "/drafts",
        json={"type": "MUFRAD", "items": [{"product_id": 999, "quantity": 1, "unit_price": "10"}]},
    )

    assert response.status_code == 404


def test_update_draft_replaces_items(client, db, factory):
    first = factory.create_product(db, retail="100")
    second = factory.create_product(db, retail="40")
    draft = client.post("/drafts", json={"type": "MUFRAD", "items": [_product_line(first)]}).json()

    response = client.put(f"/drafts/{draft['id']}", json={"items": [_product_line(second, 3)]})

    assert response.status_code == 200
    body = response.json()
    assert [item["product_id"] for item in body["items"]] == [second.id]
    assert Decimal(body["total"]) == Decimal("120")


def test_cancelled_draft_cannot_be_edited(client, db, factory):
    product = factory.create_product(db)
    draft = client.post("/drafts", json={"type": "MUFRAD", "items": [_product_line(product)]}).json()

    assert client.delete(f"/drafts/{draft['id']}").json()["status"] == "CANCELLED"
    response = client.put(f"/drafts/{draft['id']}", json={"notes": "late edit"})

    assert response.status_code == 400


def test_status_field_cannot_finalize(client, db, factory):
    product = factory.create_product(db)
    draft = client.post("/drafts", json={"type": "MUFRAD", "items": [_product_line(product)]}).json()

    response = client.put(f"/drafts/{draft['id']}", json={"status": "FINALIZED"})

    assert response.status_code == 400


def test_process_moves_created_draft_to_ready(client, db, factory):
    product = factory.create_product(db)
    draft = client.post("/drafts", json={"type": "MUFRAD", "items": [_product_line(product)]}).json()

    response = client.post(f"/drafts/{draft['id']}/process")

    assert response.status_code == 200
    assert response.json()["status"] == "READY"


def test_finalize_retail_draft_creates_paid_invoice(client, db, factory):
    product = factory.create_product(db, stock=10, retail="100")
    draft = client.post("/drafts", json={"type": "MUFRAD", "items": [_product_line(product, 2)]}).json()

    response = client.post(
        f"/drafts/{draft['id']}/finalize",
        json={"payment_method": "CASH", "amount_paid": "200"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["draft"]["status"] == "FINALIZED"
    assert body["invoice_number"].startswith("INVOICE-")

    db.expire_all()
    invoice = db.get(Invoice, body["invoice_id"])
    assert invoice.status.value == "PAID"
    assert invoice.currency.value == "IQD"
    assert Decimal(invoice.amount_due) == Decimal("0")
    assert db.get(Product, product.id).stock_quantity == 8

    movement = db.scalar(select(StockMovement).where(StockMovement.invoice_id == invoice.id))
    assert movement.type == StockMovementType.SALE
    assert movement.quantity == -2
    assert movement.balance_after == 8

    activity_types = set(db.scalars(select(Activity.type).where(Activity.invoice_id == invoice.id)).all())
    assert activity_types == {ActivityType.STOCK_REDUCED, ActivityType.INVOICED}


def test_finalize_wholesale_partial_payment_charges_customer(client, db, factory):
    customer = factory.create_customer(db, name="Karwan", debt_iqd="500")
    product = factory.create_product(db, stock=10, wholesale="80")
    draft = client.post(
        "/drafts",
        json={
            "type": "JUMLA",
            "customer_id": customer.id,
            "items": [_product_line(product, 5, unit_price="80")],
        },
    ).json()

    response = client.post(f"/drafts/{draft['id']}/finalize", json={"payment_method": "CREDIT", "amount_paid": "100"})

    assert response.status_code == 200
    assert response.json()["invoice_number"].startswith("Karwan-")
    db.expire_all()
    invoice = db.get(Invoice, response.json()["invoice_id"])
    assert invoice.status.value == "PARTIALLY_PAID"
    assert Decimal(invoice.amount_due) == Decimal("300")

    refreshed = db.get(Customer, customer.id)
    assert Decimal(refreshed.debt_iqd) == Decimal("800")
    assert Decimal(refreshed.current_balance) == Decimal("800")
    ledger = db.scalars(select(CustomerBalance).where(CustomerBalance.customer_id == customer.id)).all()
    assert [Decimal(entry.amount) for entry in ledger] == [Decimal("300")]


def test_finalize_motorcycle_draft_uses_usd(client, db, factory):
    customer = factory.create_customer(db)
    motorcycle = factory.create_motorcycle(db, stock=1, wholesale="1200")
    draft = client.post(
        "/drafts",
        json={
            "type": "WHOLESALE",
            "customer_id": customer.id,
            "items": [{"item_type": "motorcycle", "motorcycle_id": motorcycle.id, "quantity": 1, "unit_price": "1200"}],
        },
    ).json()

    response = client.post(f"/drafts/{draft['id']}/finalize", json={"amount_paid": "200"})

    assert response.status_code == 200
    db.expire_all()
    invoice = db.get(Invoice, response.json()["invoice_id"])
    assert invoice.currency.value == "USD"
    refreshed = db.get(Customer, customer.id)
    assert Decimal(refreshed.debt_usd) == Decimal("1000")
    assert Decimal(refreshed.debt_iqd) == Decimal("0")
    sold_out = db.get(Motorcycle, motorcycle.id)
    assert sold_out.stock_quantity == 0
    assert sold_out.status == MotorcycleStatus.OUT_OF_STOCK


def test_wholesale_finalize_requires_customer(client, db, factory):
    product = factory.create_product(db)
    draft = client.post("/drafts", json={"type": "JUMLA", "items": [_product_line(product)]}).json()

    response = client.post(f"/drafts/{draft['id']}/finalize", json={})

    assert response.status_code == 400
    assert "require a customer" in response.json()["detail"]


def test_failed_finalize_returns_draft_to_ready(client, db, factory):
    product = factory.create_product(db, stock=1)
    draft = client.post("/drafts", json={"type": "MUFRAD", "items": [_product_line(product, 3)]}).json()

    response = client.post(f"/drafts/{draft['id']}/finalize", json={"amount_paid": "300"})

    assert response.status_code == 400
    assert "Insufficient stock" in response.json()["detail"]
    db.expire_all()
    assert db.get(Draft, draft["id"]).status == DraftStatus.READY
    assert db.get(Product, product.id).stock_quantity == 1
    assert db.scalars(select(Invoice)).all() == []


def test_duplicate_invoice_number_is_a_conflict(client, db, factory):
    product = factory.create_product(db, stock=10)
    first = client.post("/drafts", json={"type": "MUFRAD", "items": [_product_line(product)]}).json()
    second = client.post("/drafts", json={"type": "MUFRAD", "items": [_product_line(product)]}).json()

    assert client.post(f"/drafts/{first['id']}/finalize", json={"invoice_number": "INV-1"}).status_code == 200
    response = client.post(f"/drafts/{second['id']}/finalize", json={"invoice_number": "INV-1"})

    assert response.status_code == 409
    db.expire_all()
    assert db.get(Draft, second["id"]).status == DraftStatus.READY
