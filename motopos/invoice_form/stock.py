from typing import Iterable

from motopos.invoice_form.state import LineItem


def _same_item(a: LineItem, b: LineItem) -> bool:
    return a.item_id is not None and a.item_type == b.item_type and a.item_id == b.item_id


def available_stock(items: Iterable[LineItem], line_id: str) -> int | None:
    """Stock left for ``line_id`` once other lines of the same item are taken out.

    ``None`` means the line carries no snapshot and is not constrained.
    """
    items = list(items)
    line = next((item for item in items if item.id == line_id), None)
    if line is None or line.stock_quantity is None:
        return None
    committed = sum(item.quantity for item in items if item.id != line_id and _same_item(item, line))
    return line.stock_quantity - committed


def clamp_quantity(items: Iterable[LineItem], line_id: str, requested: int) -> tuple[int, int | None]:
    available = available_stock(items, line_id)
    if available is None or requested <= available:
        return requested, available
    return max(available, 0), available


def restored_stock(current: int | None, sold: int) -> int | None:
    if current is None:
        return None
    return current + sold


def stock_errors(items: Iterable[LineItem]) -> list[str]:
    items = list(items)
    errors = []
    for item in items:
        if item.item_id is None or not item.item_name.strip():
            continue
        available = available_stock(items, item.id)
        if available is not None and item.quantity > available:
            errors.append(f"{item.item_name}: requested {item.quantity}, available {max(available, 0)}")
    return errors
