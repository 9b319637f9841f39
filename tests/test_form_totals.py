from decimal import Decimal

from motopos.invoice_form.state import FormState, InvoiceType, LineItem
from motopos.invoice_form.stock import available_stock, clamp_quantity, restored_stock, stock_errors
from motopos.invoice_form.totals import compute_totals, discount_percent_for_api, totals_for


def _line(quantity, rate, **extra):
    rate = Decimal(rate)
    return LineItem(item_name=extra.pop("item_name", "Item"), quantity=quantity, rate=rate, amount=quantity * rate, **extra)


def test_single_line_without_discount():
    totals = compute_totals([_line(2, "100")])

    assert totals.total_qty == 2
    assert totals.subtotal == Decimal("200")
    assert totals.grand_total == Decimal("200")
    assert totals.rounding_adjustment == 0
    assert totals.outstanding == Decimal("200")


def test_percentage_discount_only_when_enabled():
    items = [_line(1, "300")]

    assert compute_totals(items, discount_enabled=False, discount_amount=Decimal("10")).discount == 0
    enabled = compute_totals(items, discount_enabled=True, discount_type="percentage", discount_amount=Decimal("10"))
    assert enabled.discount == Decimal("30.00")
    assert enabled.grand_total == Decimal("270.00")


def test_value_discount_and_rounding():
    totals = compute_totals(
        [_line(1, "100.60")],
        discount_enabled=True,
        discount_type="value",
        discount_amount=Decimal("0.10"),
        total_advance=Decimal("50"),
    )

    assert totals.grand_total == Decimal("100.50")
    assert totals.rounded_total == Decimal("101")
    assert totals.rounding_adjustment == Decimal("0.50")
    assert totals.outstanding == Decimal("50.50")


def test_totals_are_idempotent():
    state = FormState.new(InvoiceType.RETAIL_PRODUCT)
    state.items = [_line(3, "25"), _line(1, "10")]
    state.discount_enabled = True
    state.discount_amount = Decimal("5")

    assert totals_for(state) == totals_for(state)


def test_discount_percent_for_api():
    state = FormState.new(InvoiceType.RETAIL_PRODUCT)
    state.discount_enabled = True
    state.discount_type = "value"
    state.discount_amount = Decimal("50")

    assert discount_percent_for_api(state, Decimal("200")) == Decimal("25.0000")
    assert discount_percent_for_api(state, Decimal("0")) == 0
    state.discount_type = "percentage"
    assert discount_percent_for_api(state, Decimal("200")) == Decimal("50")


def test_available_stock_subtracts_other_lines_of_the_same_item():
    first = _line(4, "10", item_id=7, stock_quantity=10)
    second = _line(3, "10", item_id=7, stock_quantity=10)
    other = _line(9, "10", item_id=8, stock_quantity=10)
    items = [first, second, other]

    assert available_stock(items, first.id) == 7
    assert available_stock(items, second.id) == 6
    assert available_stock(items, other.id) == 10


def test_unresolved_lines_are_unconstrained():
    line = _line(50, "10")

    assert available_stock([line], line.id) is None
    assert clamp_quantity([line], line.id, 99) == (99, None)


def test_clamp_quantity():
    first = _line(8, "10", item_id=1, stock_quantity=10)
    second = _line(1, "10", item_id=1, stock_quantity=10)

    assert clamp_quantity([first, second], second.id, 5) == (2, 2)


def test_restored_stock_adds_back_sold_quantity():
    assert restored_stock(10, 5) == 15
    assert restored_stock(None, 5) is None


def test_stock_errors_lists_every_offending_line():
    first = _line(6, "10", item_id=1, stock_quantity=10, item_name="Tyre")
    second = _line(6, "10", item_id=1, stock_quantity=10, item_name="Tyre")
    fine = _line(1, "10", item_id=2, stock_quantity=10, item_name="Bulb")

    errors = stock_errors([first, second, fine])

    assert errors == ["Tyre: requested 6, available 4", "Tyre: requested 6, available 4"]
