import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable, Iterable, Sequence

from motopos.core.config import settings
from motopos.invoice_form.state import (
    Alert,
    ItemKind,
    ItemRecord,
    LineItem,
    MotorcycleRecord,
    ProductRecord,
)
from motopos.invoice_form.stock import clamp_quantity
from motopos.invoice_form.totals import line_amount

logger = logging.getLogger(__name__)

SearchFn = Callable[[ItemKind, str], Awaitable[Sequence[ItemRecord]]]
ResultFn = Callable[[str, ItemRecord | None], None]


def _contains_either(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def match_product(records: Iterable[ProductRecord], name: str) -> ProductRecord | None:
    needle = name.strip().lower()
    if not needle:
        return None
    records = list(records)
    for record in records:
        if record.name.strip().lower() == needle:
            return record
    for record in records:
        if _contains_either(record.name.strip().lower(), needle):
            return record
    return None


def match_motorcycle(records: Iterable[MotorcycleRecord], name: str) -> MotorcycleRecord | None:
    needle = name.strip().lower()
    if not needle:
        return None
    records = list(records)
    for record in records:
        if record.name.strip().lower() == needle or (record.sku or "").strip().lower() == needle:
            return record
    for record in records:
        if _contains_either(record.name.strip().lower(), needle) or _contains_either(
            (record.sku or "").strip().lower(), needle
        ):
            return record
    return None


def match_record(kind: ItemKind, records: Sequence[ItemRecord], name: str) -> ItemRecord | None:
    if kind == "motorcycle":
        return match_motorcycle([r for r in records if isinstance(r, MotorcycleRecord)], name)
    return match_product([r for r in records if isinstance(r, ProductRecord)], name)


def apply_match(items: list[LineItem], line: LineItem, record: ItemRecord, *, wholesale: bool) -> Alert | None:
    """Copy ``record`` onto ``line``; returns an alert when the quantity had to be clamped."""
    identity_switched = line.item_id is not None and line.item_id != record.id
    if line.item_id is None or identity_switched or line.rate == 0:
        line.rate = record.price_for(wholesale)
    line.item_id = record.id
    line.item_type = record.kind
    line.stock_quantity = record.stock_quantity
    line.is_in_database = True
    line.product_not_found = False
    if record.kind == "motorcycle":
        line.item_name = record.name

    alert = None
    quantity, available = clamp_quantity(items, line.id, line.quantity)
    if quantity != line.quantity:
        alert = Alert(
            kind="error",
            title="Insufficient stock",
            message=f"Only {max(available or 0, 0)} of {record.name} available",
        )
        line.quantity = quantity
    line.amount = line_amount(line.quantity, line.rate)
    return alert


def mark_not_found(line: LineItem) -> None:
    line.stock_quantity = None
    line.is_in_database = False
    line.product_not_found = True


class ItemResolver:
    """Debounced remote lookups keyed by line id.

    Every ``schedule`` call bumps the line's token and cancels the pending
    task for that line; a finished lookup is only handed to ``on_result`` when
    its token is still the latest one.
    """

    def __init__(self, search: SearchFn, delay: float | None = None):
        self._search = search
        self.delay = settings.search_debounce_seconds if delay is None else delay
        self._tokens: dict[str, int] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def token(self, line_id: str) -> int:
        return self._tokens.get(line_id, 0)

    def is_current(self, line_id: str, token: int) -> bool:
        return self._tokens.get(line_id) == token

    def schedule(self, line_id: str, kind: ItemKind, name: str, on_result: ResultFn) -> int:
        token = self.token(line_id) + 1
        self._tokens[line_id] = token
        pending = self._tasks.pop(line_id, None)
        if pending is not None and not pending.done():
            pending.cancel()
        task = asyncio.get_running_loop().create_task(self._lookup(line_id, token, kind, name, on_result))
        self._tasks[line_id] = task
        task.add_done_callback(lambda done, line_id=line_id: self._forget(line_id, done))
        return token

    def cancel(self, line_id: str) -> None:
        self._tokens[line_id] = self.token(line_id) + 1
        task = self._tasks.pop(line_id, None)
        if task is not None and not task.done():
            task.cancel()

    def pending(self) -> list[asyncio.Task]:
        return [task for task in self._tasks.values() if not task.done()]

    async def wait_idle(self) -> None:
        while self.pending():
            await asyncio.gather(*self.pending(), return_exceptions=True)

    async def close(self) -> None:
        tasks = self.pending()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

    def _forget(self, line_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(line_id) is task:
            del self._tasks[line_id]

    async def _lookup(self, line_id: str, token: int, kind: ItemKind, name: str, on_result: ResultFn) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        try:
            records = await self._search(kind, name)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Lookup for %r failed: %s", name, exc, exc_info=True)
            return
        if not self.is_current(line_id, token):
            logger.debug("Dropping stale lookup for line %s (token %s)", line_id, token)
            return
        on_result(line_id, match_record(kind, records, name))
