import asyncio
from decimal import Decimal

import httpx
import pytest

from motopos.invoice_form.client import ApiClient
from motopos.invoice_form.controller import InvoiceFormController, _stored_discount
from motopos.invoice_form.persistence import serialize
from motopos.invoice_form.state import FormState, InvoiceType
from motopos.invoice_form.storage import MemoryStore, form_key
from motopos.invoice_form.tabs import TabManager
from motopos.main import app
from motopos.models import Customer, Draft, Product


def _api() -> ApiClient:
    return ApiClient(base_url="http://testserver", transport=httpx.ASGITransport(app=app))


async def _open(api, invoice_type, *, store=None, tab_id="tab-1", **kwargs) -> InvoiceFormController:
    controller = InvoiceFormController(api, store or MemoryStore(), tab_id, invoice_type, **kwargs)
    await controller.open()
    return controller


async def _type_item(controller, name, line=None):
    line = line or controller.state.items[0]
    controller.update_item_name(line.id, name)
    await controller.resolver.wait_idle()
    return line


def test_retail_invoice_is_paid_and_submitted(db, factory):
    product = factory.create_product(db, name="Oil filter", stock=10, retail="100")

    async def scenario():
        async with _api() as api:
            controller = await _open(api, InvoiceType.RETAIL_PRODUCT)
            line = await _type_item(controller, "oil filter")
            controller.update_item(line.id, "quantity", 3)
            assert controller.totals.grand_total == Decimal("300")
            assert controller.state.total_advance == Decimal("300")
            number = await controller.submit()
            return controller, line, number

    controller, line, number = asyncio.run(scenario())

    assert line.item_id == product.id
    assert line.rate == Decimal("100")
    assert number
    assert controller.state.draft_status == "FINALIZED"
    assert controller.take_alerts()[-1].title == "Invoice created"
    db.expire_all()
    assert db.get(Product, product.id).stock_quantity == 7


def test_wholesale_payment_is_capped_at_debt_plus_total(db, factory):
    customer = factory.create_customer(db, name="Azad", debt_iqd="500")
    product = factory.create_product(db, stock=10, wholesale="100")

    async def scenario():
        async with _api() as api:
            controller = await _open(api, InvoiceType.WHOLESALE_PRODUCT)
            controller.select_customer(await api.get_customer(customer.id))
            line = controller.add_item(await api.get_product(product.id))
            controller.update_item(line.id, "quantity", 3)
            controller.set_payment("900")
            alerts = controller.take_alerts()
            number = await controller.submit()
            return controller, alerts, number

    controller, alerts, number = asyncio.run(scenario())

    assert controller.state.fetch_customer is True
    assert controller.state.total_advance == Decimal("800")
    assert [alert.title for alert in alerts] == ["Payment exceeds balance"]
    assert number.startswith("Azad-")
    db.expire_all()
    assert Decimal(db.get(Customer, customer.id).debt_iqd) == Decimal("0")


def test_editing_invoice_counts_sold_quantity_as_available(client, db, factory):
    product = factory.create_product(db, name="Brake pad", stock=15, retail="100")
    draft = client.post(
        "/drafts",
        json={"type": "MUFRAD", "items": [{"product_id": product.id, "quantity": 5, "unit_price": "100"}]},
    ).json()
    invoice = client.post(f"/drafts/{draft['id']}/finalize", json={"amount_paid": "500"}).json()

    async def scenario():
        async with _api() as api:
            controller = await _open(api, InvoiceType.RETAIL_PRODUCT, invoice_id=invoice["invoice_id"])
            line = controller.state.items[0]
            loaded_stock = line.stock_quantity
            controller.update_item(line.id, "quantity", 8)
            saved = await controller.save()
            return controller, loaded_stock, saved

    controller, loaded_stock, saved = asyncio.run(scenario())

    assert loaded_stock == 15
    assert saved is True
    assert controller.state.naming_series == invoice["invoice_number"]
    assert controller.take_alerts()[-1].title == "Invoice updated"
    db.expire_all()
    assert db.get(Product, product.id).stock_quantity == 7


def test_quantity_is_clamped_to_available_stock(db, factory):
    factory.create_product(db, name="Spark plug", stock=2, retail="5")

    async def scenario():
        async with _api() as api:
            controller = await _open(api, InvoiceType.RETAIL_PRODUCT)
            line = await _type_item(controller, "spark plug")
            controller.update_item(line.id, "quantity", 5)
            return controller, line

    controller, line = asyncio.run(scenario())

    assert line.quantity == 2
    assert line.amount == Decimal("10")
    assert [alert.title for alert in controller.take_alerts()] == ["Insufficient stock"]


def test_validation_blocks_submit(db, factory):
    async def scenario():
        async with _api() as api:
            controller = await _open(api, InvoiceType.WHOLESALE_PRODUCT)
            line = await _type_item(controller, "ghost part")
            result = await controller.submit()
            return controller, line, result

    controller, line, result = asyncio.run(scenario())

    assert result is None
    assert line.product_not_found
    message = controller.take_alerts()[-1].message
    assert "A customer is required for wholesale invoices" in message
    assert "Items not found in the catalog: ghost part" in message
    assert db.query(Draft).count() == 0


def test_save_creates_then_updates_one_draft(db, factory):
    product = factory.create_product(db, name="Mirror", stock=10, retail="20")
    store = MemoryStore()
    tabs = TabManager(store, InvoiceType.RETAIL_PRODUCT)
    tab = tabs.restore()[0]

    async def scenario():
        async with _api() as api:
            controller = await _open(api, InvoiceType.RETAIL_PRODUCT, store=store, tab_id=tab.id, tabs=tabs)
            line = await _type_item(controller, "mirror")
            assert await controller.save()
            first_draft = controller.state.draft_id
            controller.update_item(line.id, "quantity", 4)
            assert await controller.save()
            await controller.close()

            reopened = await _open(api, InvoiceType.RETAIL_PRODUCT, store=store, tab_id=tab.id)
            return first_draft, controller, reopened

    first_draft, controller, reopened = asyncio.run(scenario())

    assert controller.state.draft_id == first_draft
    assert tab.title == "Retail Product"
    assert db.query(Draft).count() == 1
    assert Decimal(db.get(Draft, first_draft).total) == Decimal("80")
    assert reopened.state.draft_id == first_draft
    assert [(item.item_id, item.quantity) for item in reopened.state.items] == [(product.id, 4)]


def test_forgotten_draft_is_dropped_on_open():
    store = MemoryStore()
    saved = FormState.new(InvoiceType.RETAIL_PRODUCT)
    saved.draft_id = 999
    saved.draft_status = "CREATED"
    store.set(form_key("tab-1"), serialize(saved))

    async def scenario():
        async with _api() as api:
            return await _open(api, InvoiceType.RETAIL_PRODUCT, store=store)

    controller = asyncio.run(scenario())

    assert controller.state.draft_id is None
    assert controller.state.draft_status is None


def test_missing_item_can_be_created_from_the_form():
    async def scenario():
        async with _api() as api:
            controller = await _open(api, InvoiceType.RETAIL_PRODUCT)
            line = await _type_item(controller, "Headlight bulb")
            assert line.product_not_found
            controller.update_item(line.id, "rate", "7.5")
            record = await controller.create_missing_item(line.id, stock_quantity=4)
            return controller, line, record

    controller, line, record = asyncio.run(scenario())

    assert record.name == "Headlight bulb"
    assert line.item_id == record.id
    assert line.is_in_database and not line.product_not_found
    assert line.rate == Decimal("7.5")
    assert line.stock_quantity == 4
    assert controller.validate() == []


def test_rows_discount_and_customer_name_edits(db, factory):
    factory.create_customer(db, name="Hevi Trading", debt_iqd="250")
    store = MemoryStore()
    tabs = TabManager(store, InvoiceType.RETAIL_PRODUCT)
    tab = tabs.restore()[0]

    async def scenario():
        async with _api() as api:
            controller = await _open(api, InvoiceType.RETAIL_PRODUCT, store=store, tab_id=tab.id, tabs=tabs)
            found = await api.search_customers("hevi")
            return controller, found

    controller, found = asyncio.run(scenario())

    assert not controller.state.has_data()
    extra = controller.add_row()
    controller.update_item(extra.id, "rate", "40")
    controller.update_item(extra.id, "quantity", 5)
    assert controller.totals.subtotal == Decimal("200")

    controller.set_discount(enabled=True, discount_type="percentage", amount="10")
    assert controller.totals.discount == Decimal("20.00")
    assert controller.state.total_advance == Decimal("180.00")

    controller.remove_item(extra.id)
    controller.remove_item(controller.state.items[0].id)
    assert len(controller.state.items) == 1
    assert controller.totals.grand_total == 0

    controller.select_customer(found[0])
    assert controller.state.customer_current_debt == Decimal("250")
    assert controller.state.naming_series.startswith("Hevi Trading-")
    assert tab.title == "Hevi Trading"

    controller.set_customer_name("Walk-in")
    assert controller.state.selected_customer is None
    assert controller.state.customer_current_debt == 0
    assert controller.state.naming_series.startswith("Walk-in-")
    assert tab.title == "Walk-in"
    assert controller.state.has_data()


def test_reloaded_discount_keeps_the_server_total(client, db, factory):
    product = factory.create_product(db, name="Helmet", stock=10, retail="100")
    draft = client.post(
        "/drafts",
        json={
            "type": "MUFRAD",
            "discount": "33.3333",
            "items": [{"product_id": product.id, "quantity": 3, "unit_price": "100"}],
        },
    ).json()
    invoice = client.post(f"/drafts/{draft['id']}/finalize", json={"amount_paid": "200"}).json()
    server = client.get(f"/invoices/{invoice['invoice_id']}").json()

    async def scenario():
        async with _api() as api:
            return await _open(api, InvoiceType.RETAIL_PRODUCT, invoice_id=invoice["invoice_id"])

    controller = asyncio.run(scenario())

    assert Decimal(server["total"]) == Decimal("200")
    assert controller.state.discount_type == "value"
    assert Decimal(controller.invoice_payload()["total"]) == Decimal(server["total"])
    assert Decimal(controller.invoice_payload()["discount"]) == Decimal(server["discount"])


def test_exact_percent_discount_reloads_as_percentage():
    assert _stored_discount(Decimal("20.00"), Decimal("200.00")) == ("percentage", Decimal("10.00"))
    assert _stored_discount(Decimal("100.00"), Decimal("300.00")) == ("value", Decimal("100.00"))
    assert _stored_discount(Decimal("0"), Decimal("300.00")) == ("value", Decimal("0"))


def test_reopened_edit_tab_takes_amount_due_from_the_server(client, db, factory):
    customer = factory.create_customer(db, name="Rebin")
    product = factory.create_product(db, name="Chain", stock=10, wholesale="100")
    draft = client.post(
        "/drafts",
        json={
            "type": "JUMLA",
            "customer_id": customer.id,
            "items": [{"product_id": product.id, "quantity": 3, "unit_price": "100"}],
        },
    ).json()
    invoice = client.post(f"/drafts/{draft['id']}/finalize", json={"amount_paid": "0"}).json()
    store = MemoryStore()

    async def first_visit():
        async with _api() as api:
            controller = await _open(api, InvoiceType.WHOLESALE_PRODUCT, store=store, invoice_id=invoice["invoice_id"])
            await controller.close()
            return controller

    first = asyncio.run(first_visit())
    assert first.state.original_invoice_amount_due == Decimal("300")

    response = client.put(
        f"/invoices/{invoice['invoice_id']}",
        json={
            "customer_id": customer.id,
            "subtotal": "300",
            "total": "300",
            "amount_paid": "300",
            "status": "PAID",
            "items": [{"product_id": product.id, "quantity": 3, "unit_price": "100"}],
        },
    )
    assert response.status_code == 200

    async def second_visit():
        async with _api() as api:
            return await _open(api, InvoiceType.WHOLESALE_PRODUCT, store=store, invoice_id=invoice["invoice_id"])

    reopened = asyncio.run(second_visit())

    assert reopened.state.original_invoice_amount_due == Decimal("0")


def test_unparseable_input_raises_an_alert_and_keeps_the_form():
    async def scenario():
        async with _api() as api:
            return await _open(api, InvoiceType.RETAIL_PRODUCT)

    controller = asyncio.run(scenario())
    line = controller.state.items[0]
    controller.update_item(line.id, "rate", "40")
    controller.update_item(line.id, "quantity", 2)
    controller.take_alerts()

    controller.update_item(line.id, "rate", "abc")
    controller.update_item(line.id, "quantity", "x")
    controller.update_item(line.id, "rate", "NaN")
    controller.set_payment("ten")
    controller.set_discount(enabled=True, discount_type="value", amount="1,5")

    assert [alert.title for alert in controller.take_alerts()] == ["Invalid value"] * 5
    assert (line.quantity, line.rate, line.amount) == (2, Decimal("40"), Decimal("80"))
    assert controller.state.discount_amount == 0
    assert controller.totals.grand_total == Decimal("80")
    with pytest.raises(ValueError):
        controller.update_item(line.id, "colour", "red")
