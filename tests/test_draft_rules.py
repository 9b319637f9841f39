from decimal import Decimal
from types import SimpleNamespace

import pytest

from motopos.models.sales import DraftStatus, SaleType
from motopos.services.draft_rules import (
    calculate_draft_totals,
    calculate_line_total,
    can_edit,
    can_transition,
    finalize_errors,
)


def _line(quantity=1, unit_price="100", discount="0", tax_rate="0"):
    return SimpleNamespace(
        quantity=quantity,
        unit_price=Decimal(unit_price),
        discount=Decimal(discount),
        tax_rate=Decimal(tax_rate),
    )


def _draft(**overrides):
    values = {
        "type": SaleType.MUFRAD,
        "status": DraftStatus.CREATED,
        "customer_id": None,
        "items": [_line()],
        "total": Decimal("100"),
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.parametrize(
    "current,new,allowed",
    [
        (DraftStatus.CREATED, DraftStatus.READY, True),
        (DraftStatus.CREATED, DraftStatus.FINALIZING, False),
        (DraftStatus.AUTOSAVING, DraftStatus.CREATED, True),
        (DraftStatus.READY, DraftStatus.FINALIZING, True),
        (DraftStatus.READY, DraftStatus.CREATED, False),
        (DraftStatus.FINALIZING, DraftStatus.READY, True),
        (DraftStatus.FINALIZED, DraftStatus.READY, False),
        (DraftStatus.CANCELLED, DraftStatus.CREATED, False),
    ],
)
def test_transitions(current, new, allowed):
    assert can_transition(current, new) is allowed


def test_only_open_drafts_are_editable():
    assert can_edit(DraftStatus.CREATED)
    assert can_edit(DraftStatus.AUTOSAVING)
    assert can_edit(DraftStatus.READY)
    assert not can_edit(DraftStatus.FINALIZING)
    assert not can_edit(DraftStatus.FINALIZED)
    assert not can_edit(DraftStatus.CANCELLED)


def test_line_total_applies_discount_then_tax():
    assert calculate_line_total(2, Decimal("100"), Decimal("10"), Decimal("5")) == Decimal("189.00")


def test_draft_totals_apply_invoice_discount_percent():
    totals = calculate_draft_totals([_line(2, "100"), _line(1, "50")], Decimal("10"))

    assert totals.subtotal == Decimal("250.00")
    assert totals.discount == Decimal("25.00")
    assert totals.total == Decimal("225.00")


def test_valid_draft_has_no_finalize_errors():
    assert finalize_errors(_draft()) == []


def test_finalize_errors_lists_every_problem():
    draft = _draft(
        type=SaleType.JUMLA,
        items=[_line(quantity=0, unit_price="-1")],
        total=Decimal("0"),
    )

    errors = finalize_errors(draft)

    assert "Jumla (wholesale) sales require a customer" in errors
    assert "Item 1 has invalid quantity" in errors
    assert "Item 1 has invalid unit price" in errors
    assert "Draft total must be greater than zero" in errors


def test_finalized_draft_cannot_be_finalized_again():
    assert "Draft is already finalized" in finalize_errors(_draft(status=DraftStatus.FINALIZED))
