from decimal import Decimal


def _create_customer(client, **overrides):
    payload = {"name": "Azad Motors", "sku": "az-1", "type": "COMPANY", "debt_iqd": "500", "debt_usd": "300"}
    payload.update(overrides)
    response = client.post("/customers", json=payload)
    assert response.status_code == 201
    return response.json()


def test_create_customer_sets_current_balance(client):
    customer = _create_customer(client)

    assert customer["sku"] == "AZ-1"
    assert Decimal(customer["current_balance"]) == Decimal("500")


def test_search_customers(client):
    _create_customer(client)
    _create_customer(client, name="Hevi", sku="HV-2", debt_iqd="0", debt_usd="0")

    assert [row["name"] for row in client.get("/customers", params={"search": "hev"}).json()] == ["Hevi"]
    assert [row["name"] for row in client.get("/customers", params={"with_debt": True}).json()] == ["Azad Motors"]


def test_update_customer(client):
    customer = _create_customer(client)

    response = client.patch(f"/customers/{customer['id']}", json={"phone": "0750 000 0000"})

    assert response.status_code == 200
    assert response.json()["phone"] == "0750 000 0000"
    assert response.json()["name"] == "Azad Motors"


def test_payment_reduces_both_currencies(client):
    customer = _create_customer(client)

    response = client.post(
        f"/customers/{customer['id']}/payments",
        json={"amount_iqd": "200", "amount_usd": "50", "payment_method": "CASH"},
    )

    assert response.status_code == 201
    assert sorted(entry["currency"] for entry in response.json()) == ["IQD", "USD"]
    balance = client.get(f"/customers/{customer['id']}/balance").json()
    assert Decimal(balance["debt_iqd"]) == Decimal("300")
    assert Decimal(balance["current_balance"]) == Decimal("300")
    assert Decimal(balance["debt_usd"]) == Decimal("250")
    assert balance["last_payment_date"] is not None
    assert len(balance["history"]) == 2


def test_payment_cannot_exceed_debt(client):
    customer = _create_customer(client)

    response = client.post(f"/customers/{customer['id']}/payments", json={"amount_iqd": "900"})

    assert response.status_code == 400
    assert "Cannot pay more than debt" in response.json()["detail"]


def test_zero_payment_is_rejected(client):
    customer = _create_customer(client)

    assert client.post(f"/customers/{customer['id']}/payments", json={}).status_code == 400


def test_payment_listing_only_shows_payments(client, db, factory):
    customer = _create_customer(client, debt_iqd="0", debt_usd="0")
    product = factory.create_product(db, stock=5, wholesale="100")
    draft = client.post(
        "/drafts",
        json={
            "type": "JUMLA",
            "customer_id": customer["id"],
            "items": [{"product_id": product.id, "quantity": 2, "unit_price": "100"}],
        },
    ).json()
    client.post(f"/drafts/{draft['id']}/finalize", json={"amount_paid": "0"})
    client.post(f"/customers/{customer['id']}/payments", json={"amount_iqd": "150", "payment_method": "BANK_TRANSFER"})

    payments = client.get(f"/customers/{customer['id']}/payments").json()
    invoices = client.get(f"/customers/{customer['id']}/invoices").json()

    assert [(entry["payment_method"], Decimal(entry["amount"])) for entry in payments] == [
        ("BANK_TRANSFER", Decimal("-150"))
    ]
    assert len(invoices) == 1
    assert invoices[0]["status"] == "PARTIALLY_PAID"


def test_customer_with_debt_cannot_be_deleted(client):
    customer = _create_customer(client)

    assert client.delete(f"/customers/{customer['id']}").status_code == 400
    assert client.get(f"/customers/{customer['id']}").status_code == 200
