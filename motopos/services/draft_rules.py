"""Pure draft rules shared by the draft, sale and invoice services."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from motopos.models.sales import DraftStatus, SaleType

HUNDRED = Decimal("100")
CENT = Decimal("0.01")

EDITABLE_STATUSES = frozenset({DraftStatus.CREATED, DraftStatus.AUTOSAVING, DraftStatus.READY})

ALLOWED_TRANSITIONS: dict[DraftStatus, frozenset[DraftStatus]] = {
    DraftStatus.CREATED: frozenset({DraftStatus.AUTOSAVING, DraftStatus.READY, DraftStatus.CANCELLED}),
    DraftStatus.AUTOSAVING: frozenset({DraftStatus.READY, DraftStatus.CREATED, DraftStatus.CANCELLED}),
    DraftStatus.READY: frozenset({DraftStatus.FINALIZING, DraftStatus.CANCELLED}),
    # READY is the rollback target when finalization fails
    DraftStatus.FINALIZING: frozenset({DraftStatus.FINALIZED, DraftStatus.READY}),
    DraftStatus.FINALIZED: frozenset(),
    DraftStatus.CANCELLED: frozenset(),
}


class PricedLine(Protocol):
    quantity: int
    unit_price: Decimal
    discount: Decimal
    tax_rate: Decimal


@dataclass(frozen=True)
class DraftTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount: Decimal
    total: Decimal


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_line_total(
    quantity: int,
    unit_price: Decimal,
    discount: Decimal = Decimal("0"),
    tax_rate: Decimal = Decimal("0"),
) -> Decimal:
    subtotal = Decimal(quantity) * Decimal(unit_price)
    after_discount = subtotal - subtotal * Decimal(discount) / HUNDRED
    return quantize_money(after_discount + after_discount * Decimal(tax_rate) / HUNDRED)


def calculate_draft_totals(items: Iterable[PricedLine], invoice_discount: Decimal = Decimal("0")) -> DraftTotals:
    subtotal = Decimal("0")
    tax_amount = Decimal("0")
    for item in items:
        line = Decimal(item.quantity) * Decimal(item.unit_price)
        after_discount = line - line * Decimal(item.discount or 0) / HUNDRED
        subtotal += after_discount
        tax_amount += after_discount * Decimal(item.tax_rate or 0) / HUNDRED
    discount = subtotal * Decimal(invoice_discount or 0) / HUNDRED
    return DraftTotals(
        subtotal=quantize_money(subtotal),
        tax_amount=quantize_money(tax_amount),
        discount=quantize_money(discount),
        total=quantize_money(subtotal - discount + tax_amount),
    )


def can_transition(current: DraftStatus, new: DraftStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def can_edit(status: DraftStatus) -> bool:
    return status in EDITABLE_STATUSES


def finalize_errors(draft) -> list[str]:
    """Return every reason ``draft`` cannot be finalized; empty means it can."""
    errors: list[str] = []
    if not draft.items:
        errors.append("Draft must have at least one item")
    if draft.type == SaleType.JUMLA and not draft.customer_id:
        errors.append("Jumla (wholesale) sales require a customer")
    if draft.status == DraftStatus.FINALIZED:
        errors.append("Draft is already finalized")
    if draft.status == DraftStatus.CANCELLED:
        errors.append("Cancelled drafts cannot be finalized")
    for index, item in enumerate(draft.items or [], start=1):
        if item.quantity <= 0:
            errors.append(f"Item {index} has invalid quantity")
        if Decimal(item.unit_price) < 0:
            errors.append(f"Item {index} has invalid unit price")
    if Decimal(draft.total or 0) <= 0:
        errors.append("Draft total must be greater than zero")
    return errors
