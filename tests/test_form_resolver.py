import asyncio
from decimal import Decimal

from motopos.invoice_form.resolver import (
    ItemResolver,
    apply_match,
    mark_not_found,
    match_motorcycle,
    match_product,
)
from motopos.invoice_form.state import LineItem, MotorcycleRecord, ProductRecord

PRODUCTS = [
    ProductRecord(id=1, name="Brake Pad Front", retail_price=Decimal("15"), wholesale_price=Decimal("12"), stock_quantity=10),
    ProductRecord(id=2, name="Brake Pad", retail_price=Decimal("10"), wholesale_price=Decimal("8"), stock_quantity=4),
]
MOTORCYCLES = [
    MotorcycleRecord(id=5, name="Honda CG125", sku="CG125", usd_retail_price=Decimal("1500"), usd_wholesale_price=Decimal("1300"), stock_quantity=2),
    MotorcycleRecord(id=6, name="Yamaha YBR", sku="YBR-250", usd_retail_price=Decimal("2500"), usd_wholesale_price=Decimal("2200"), stock_quantity=1),
]


def test_product_exact_name_wins_over_substring():
    assert match_product(PRODUCTS, "brake pad").id == 2
    assert match_product(PRODUCTS, "front").id == 1
    assert match_product(PRODUCTS, "Brake Pad Front Left").id == 1
    assert match_product(PRODUCTS, "chain") is None
    assert match_product(PRODUCTS, "  ") is None


def test_motorcycle_matches_name_or_sku():
    assert match_motorcycle(MOTORCYCLES, "ybr-250").id == 6
    assert match_motorcycle(MOTORCYCLES, "honda cg125").id == 5
    assert match_motorcycle(MOTORCYCLES, "cg1").id == 5
    assert match_motorcycle(MOTORCYCLES, "vespa") is None


def test_apply_match_fills_new_line():
    line = LineItem(item_name="brake pad", quantity=2)

    alert = apply_match([line], line, PRODUCTS[1], wholesale=True)

    assert alert is None
    assert line.item_id == 2
    assert line.rate == Decimal("8")
    assert line.amount == Decimal("16")
    assert line.stock_quantity == 4
    assert line.is_in_database and not line.product_not_found


def test_apply_match_keeps_user_rate_for_same_item():
    line = LineItem(item_id=2, item_name="Brake Pad", quantity=1, rate=Decimal("9.5"), is_in_database=True)

    apply_match([line], line, PRODUCTS[1], wholesale=False)

    assert line.rate == Decimal("9.5")


def test_apply_match_resets_rate_when_identity_switches():
    line = LineItem(item_id=2, item_name="Brake Pad Front", quantity=1, rate=Decimal("9.5"))

    apply_match([line], line, PRODUCTS[0], wholesale=False)

    assert line.rate == Decimal("15")


def test_apply_match_clamps_quantity_to_stock():
    line = LineItem(item_name="brake pad", quantity=9)

    alert = apply_match([line], line, PRODUCTS[1], wholesale=False)

    assert alert.title == "Insufficient stock"
    assert line.quantity == 4
    assert line.amount == Decimal("40")


def test_motorcycle_match_takes_canonical_name():
    line = LineItem(item_name="cg125", item_type="motorcycle")

    apply_match([line], line, MOTORCYCLES[0], wholesale=False)

    assert line.item_name == "Honda CG125"
    assert line.rate == Decimal("1500")


def test_mark_not_found():
    line = LineItem(item_name="ghost", stock_quantity=3, is_in_database=True)

    mark_not_found(line)

    assert line.stock_quantity is None
    assert not line.is_in_database
    assert line.product_not_found


def test_only_latest_lookup_is_applied():
    calls = []
    applied = []
    first_started = None

    async def search(kind, name):
        calls.append(name)
        if name == "bra":
            first_started.set()
            await asyncio.sleep(1)
        return PRODUCTS

    async def scenario():
        nonlocal first_started
        first_started = asyncio.Event()
        resolver = ItemResolver(search, delay=0)
        first = resolver.schedule("line-1", "product", "bra", lambda line_id, record: applied.append(record.id))
        await first_started.wait()
        second = resolver.schedule("line-1", "product", "brake pad", lambda line_id, record: applied.append(record.id))
        await resolver.wait_idle()
        return first, second

    first, second = asyncio.run(scenario())

    assert (first, second) == (1, 2)
    assert calls == ["bra", "brake pad"]
    assert applied == [2]


def test_stale_token_is_dropped_even_when_response_arrives():
    applied = []
    release = None

    async def search(kind, name):
        await release.wait()
        return PRODUCTS

    async def scenario():
        nonlocal release
        release = asyncio.Event()
        resolver = ItemResolver(search, delay=0)
        resolver.schedule("line-1", "product", "brake pad", lambda line_id, record: applied.append(record))
        await asyncio.sleep(0)
        # a newer token without a new task, as when the line is cleared
        resolver._tokens["line-1"] += 1
        release.set()
        await resolver.wait_idle()

    asyncio.run(scenario())

    assert applied == []


def test_lookup_failures_leave_line_untouched():
    applied = []

    async def search(kind, name):
        raise RuntimeError("network down")

    async def scenario():
        resolver = ItemResolver(search, delay=0)
        resolver.schedule("line-1", "product", "brake", lambda line_id, record: applied.append(record))
        await resolver.wait_idle()

    asyncio.run(scenario())

    assert applied == []


def test_close_cancels_pending_lookups():
    applied = []

    async def search(kind, name):
        return PRODUCTS

    async def scenario():
        resolver = ItemResolver(search, delay=10)
        resolver.schedule("line-1", "product", "brake pad", lambda line_id, record: applied.append(record))
        resolver.schedule("line-2", "product", "front", lambda line_id, record: applied.append(record))
        await resolver.close()
        return resolver.pending()

    assert asyncio.run(scenario()) == []
    assert applied == []
