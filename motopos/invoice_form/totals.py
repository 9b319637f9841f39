from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from motopos.invoice_form.state import ZERO, DiscountType, FormState, LineItem

HUNDRED = Decimal("100")
CENT = Decimal("0.01")
# matches the scale of drafts.discount_percent
PERCENT_STEP = Decimal("0.0001")


@dataclass(frozen=True)
class Totals:
    total_qty: int
    subtotal: Decimal
    taxes: Decimal
    discount: Decimal
    grand_total: Decimal
    rounding_adjustment: Decimal
    rounded_total: Decimal
    outstanding: Decimal


def line_amount(quantity: int, rate: Decimal) -> Decimal:
    return Decimal(quantity) * Decimal(rate)


def discount_value(subtotal: Decimal, enabled: bool, discount_type: DiscountType, amount: Decimal) -> Decimal:
    if not enabled or amount <= ZERO:
        return ZERO
    if discount_type == "percentage":
        return (subtotal * amount / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    return Decimal(amount)


def compute_totals(
    items: Iterable[LineItem],
    *,
    discount_enabled: bool = False,
    discount_type: DiscountType = "percentage",
    discount_amount: Decimal = ZERO,
    total_advance: Decimal = ZERO,
) -> Totals:
    items = list(items)
    subtotal = sum((item.amount for item in items), ZERO)
    total_qty = sum(item.quantity for item in items)
    taxes = ZERO
    discount = discount_value(subtotal, discount_enabled, discount_type, discount_amount)
    grand_total = subtotal + taxes - discount
    rounded_total = grand_total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return Totals(
        total_qty=total_qty,
        subtotal=subtotal,
        taxes=taxes,
        discount=discount,
        grand_total=grand_total,
        rounding_adjustment=rounded_total - grand_total,
        rounded_total=rounded_total,
        outstanding=grand_total - total_advance,
    )


def totals_for(state: FormState) -> Totals:
    return compute_totals(
        state.items,
        discount_enabled=state.discount_enabled,
        discount_type=state.discount_type,
        discount_amount=state.discount_amount,
        total_advance=state.total_advance,
    )


def discount_percent_for_api(state: FormState, subtotal: Decimal) -> Decimal:
    """Server drafts take the invoice discount as a percent of the subtotal."""
    if not state.discount_enabled or state.discount_amount <= ZERO:
        return ZERO
    if state.discount_type == "percentage":
        return Decimal(state.discount_amount)
    if subtotal <= ZERO:
        return ZERO
    return (Decimal(state.discount_amount) / subtotal * HUNDRED).quantize(PERCENT_STEP, rounding=ROUND_HALF_UP)
