import asyncio
import datetime as dt
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from motopos.core.numbering import invoice_series, random_code
from motopos.invoice_form.client import ApiClient, ApiError
from motopos.invoice_form.persistence import PersistenceBridge
from motopos.invoice_form.resolver import ItemResolver, apply_match, mark_not_found
from motopos.invoice_form.state import (
    ZERO,
    Alert,
    CustomerSnapshot,
    FormState,
    InvoiceType,
    ItemRecord,
    LineItem,
)
from motopos.invoice_form.stock import clamp_quantity, restored_stock, stock_errors
from motopos.invoice_form.storage import Store
from motopos.invoice_form.tabs import TabManager
from motopos.invoice_form.totals import (
    CENT,
    HUNDRED,
    Totals,
    discount_percent_for_api,
    discount_value,
    line_amount,
    totals_for,
)

logger = logging.getLogger(__name__)


def _money(value) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


def _parse_amount(value) -> Decimal | None:
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def _parse_quantity(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_date(value) -> dt.date | None:
    if not value:
        return None
    return dt.datetime.fromisoformat(str(value)).date()


def _stored_discount(discount: Decimal, subtotal: Decimal) -> tuple[str, Decimal]:
    """Percentage when a two-decimal percent gives back exactly ``discount``, else the fixed value."""
    if discount > ZERO and subtotal > ZERO and discount < subtotal:
        percent = (discount / subtotal * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
        if discount_value(subtotal, True, "percentage", percent) == discount:
            return "percentage", percent
    return "value", discount


class InvoiceFormController:
    """One sales invoice tab: edits the form state, mirrors it locally, syncs it remotely.

    Bad input, remote failures and storage failures end up in ``alerts``
    instead of raising. Asking ``update_item`` for a field other than
    quantity or rate is a programming error and raises ``ValueError``.
    """

    def __init__(
        self,
        api: ApiClient,
        store: Store,
        tab_id: str,
        invoice_type: InvoiceType,
        *,
        invoice_id: int | None = None,
        resolver: ItemResolver | None = None,
        tabs: TabManager | None = None,
    ):
        self.api = api
        self.tab_id = tab_id
        self.invoice_type = invoice_type
        self.invoice_id = invoice_id
        self.tabs = tabs
        self.bridge = PersistenceBridge(store, tab_id)
        self.resolver = resolver or ItemResolver(api.search_items)
        self.state = FormState.new(invoice_type)
        self.totals: Totals = totals_for(self.state)
        self.alerts: list[Alert] = []

    @property
    def editing(self) -> bool:
        return self.invoice_id is not None

    def take_alerts(self) -> list[Alert]:
        alerts, self.alerts = self.alerts, []
        return alerts

    def _alert(self, kind: str, title: str, message: str) -> None:
        alert = Alert(kind=kind, title=title, message=message)
        self.alerts.append(alert)
        logger.info("[%s] %s: %s", kind, title, message)

    def _changed(self) -> None:
        self.recalculate()
        self.bridge.save(self.state)

    # lifecycle

    async def open(self) -> FormState:
        if self.editing:
            await self.load_invoice()
        self.state = self.bridge.restore(
            self.state,
            editing=self.editing,
            wholesale=self.invoice_type.is_wholesale,
        )
        self._changed()
        if self.state.draft_id is not None and not self.editing:
            await self.refresh_draft_status()
        return self.state

    async def refresh_draft_status(self) -> None:
        try:
            draft = await self.api.get_draft(self.state.draft_id)
        except ApiError as exc:
            if exc.status_code == 404:
                logger.info("Draft %s no longer exists, starting a new one", self.state.draft_id)
                self.state.draft_id = None
                self.state.draft_status = None
                self._changed()
            else:
                logger.warning("Refreshing draft %s failed: %s", self.state.draft_id, exc)
            return
        self.state.draft_status = draft["status"]
        self._changed()

    async def close(self) -> None:
        await self.resolver.close()
        self.bridge.save(self.state)

    # items

    def add_row(self) -> LineItem:
        line = LineItem(item_type=self.invoice_type.item_kind)
        self.state.items.append(line)
        self._changed()
        return line

    def add_item(self, record: ItemRecord) -> LineItem | None:
        if record.stock_quantity <= 0:
            self._alert("error", "Out of stock", f"{record.name} is out of stock")
            return None
        line = next((item for item in self.state.items if not item.item_name.strip()), None)
        if line is None:
            line = LineItem(item_type=record.kind)
            self.state.items.append(line)
        line.item_name = record.name
        line.quantity = 1
        line.rate = ZERO
        line.item_id = None
        alert = apply_match(self.state.items, line, record, wholesale=self.invoice_type.is_wholesale)
        if alert:
            self._alert(alert.kind, alert.title, alert.message)
        self._changed()
        return line

    def update_item_name(self, line_id: str, name: str) -> None:
        line = self.state.find_item(line_id)
        if line is None:
            return
        if name != line.item_name:
            line.item_id = None
            line.stock_quantity = None
            line.is_in_database = False
            line.product_not_found = False
        line.item_name = name
        if not name.strip():
            self.resolver.cancel(line_id)
            line.rate = ZERO
            line.quantity = 1
            line.amount = ZERO
        elif line.item_type == self.invoice_type.item_kind:
            self.resolver.schedule(line_id, line.item_type, name, self._apply_lookup)
        self._changed()

    def _apply_lookup(self, line_id: str, record: ItemRecord | None) -> None:
        line = self.state.find_item(line_id)
        if line is None:
            return
        if record is None:
            mark_not_found(line)
        else:
            alert = apply_match(self.state.items, line, record, wholesale=self.invoice_type.is_wholesale)
            if alert:
                self._alert(alert.kind, alert.title, alert.message)
        self._changed()

    def update_item(self, line_id: str, field: str, value) -> None:
        line = self.state.find_item(line_id)
        if line is None:
            return
        if field not in ("quantity", "rate"):
            raise ValueError(f"Unsupported item field: {field}")
        parsed = _parse_quantity(value) if field == "quantity" else _parse_amount(value)
        if parsed is None:
            self._alert("error", "Invalid value", f"{value!r} is not a valid {field}")
            return
        if field == "quantity":
            requested = max(parsed, 0)
            quantity, available = clamp_quantity(self.state.items, line_id, requested)
            if quantity != requested:
                self._alert(
                    "error",
                    "Insufficient stock",
                    f"Only {max(available, 0)} of {line.item_name} available",
                )
            line.quantity = quantity
        else:
            line.rate = max(parsed, ZERO)
        line.amount = line_amount(line.quantity, line.rate)
        self._changed()

    def remove_item(self, line_id: str) -> None:
        self.resolver.cancel(line_id)
        self.state.items = [item for item in self.state.items if item.id != line_id]
        if not self.state.items:
            self.state.items.append(LineItem(item_type=self.invoice_type.item_kind))
        self._changed()

    async def create_missing_item(
        self,
        line_id: str,
        *,
        price: Decimal | None = None,
        stock_quantity: int = 0,
        sku: str | None = None,
    ) -> ItemRecord | None:
        line = self.state.find_item(line_id)
        if line is None or not line.item_name.strip():
            return None
        price = _money(price if price is not None else line.rate)
        sku = sku or f"SKU-{random_code(8)}"
        try:
            if line.item_type == "motorcycle":
                record = await self.api.create_motorcycle(
                    {
                        "name": line.item_name.strip(),
                        "sku": sku,
                        "usd_retail_price": str(price),
                        "usd_wholesale_price": str(price),
                        "stock_quantity": stock_quantity,
                    }
                )
            else:
                record = await self.api.create_product(
                    {
                        "name": line.item_name.strip(),
                        "sku": sku,
                        "retail_price": str(price),
                        "wholesale_price": str(price),
                        "stock_quantity": stock_quantity,
                    }
                )
        except ApiError as exc:
            self._alert("error", "Could not create item", exc.message)
            return None
        self._apply_lookup(line_id, record)
        self._alert("success", "Item created", f"{record.name} was added to the catalog")
        return record

    # customer, payment, discount

    def _regenerate_series(self) -> None:
        if self.editing:
            return
        name = self.state.customer_name.strip()
        on = self.state.posting_date or dt.date.today()
        self.state.naming_series = invoice_series(name, on) if name else ""

    def select_customer(self, customer: CustomerSnapshot | None) -> None:
        self.state.selected_customer = customer
        if customer is None:
            self.state.customer_id = None
            self.state.customer_name = ""
            self.state.customer_current_debt = ZERO
            self.state.customer_current_balance = ZERO
        else:
            self.state.customer_id = customer.id
            self.state.customer_name = customer.name
            debt, balance = customer.debt_for(self.state.currency)
            self.state.customer_current_debt = debt
            self.state.customer_current_balance = balance
        self._regenerate_series()
        if self.tabs is not None:
            self.tabs.update_customer_name(self.tab_id, self.state.customer_name or None)
        self._changed()

    def set_customer_name(self, name: str) -> None:
        selected = self.state.selected_customer
        if selected is not None and name.strip() != selected.name:
            self.state.selected_customer = None
            self.state.customer_id = None
            self.state.customer_current_debt = ZERO
            self.state.customer_current_balance = ZERO
        self.state.customer_name = name
        self._regenerate_series()
        if self.tabs is not None:
            self.tabs.update_customer_name(self.tab_id, name.strip() or None)
        self._changed()

    def max_payment(self) -> Decimal:
        balance_before_invoice = self.state.customer_current_debt
        if self.editing:
            balance_before_invoice -= self.state.original_invoice_amount_due
        return balance_before_invoice + totals_for(self.state).grand_total

    def set_payment(self, amount) -> None:
        parsed = _parse_amount(amount)
        if parsed is None:
            self._alert("error", "Invalid value", f"{amount!r} is not a valid payment")
            return
        amount = max(parsed, ZERO)
        if self.invoice_type.is_wholesale:
            limit = max(self.max_payment(), ZERO)
            if amount > limit:
                self._alert(
                    "error",
                    "Payment exceeds balance",
                    f"Payment cannot be more than {limit} {self.state.currency}",
                )
                amount = limit
        self.state.total_advance = amount
        self._changed()

    def set_discount(
        self,
        *,
        enabled: bool | None = None,
        discount_type: str | None = None,
        amount=None,
    ) -> None:
        if enabled is not None:
            self.state.discount_enabled = enabled
        if discount_type is not None:
            self.state.discount_type = discount_type
        if amount is not None:
            parsed = _parse_amount(amount)
            if parsed is None:
                self._alert("error", "Invalid value", f"{amount!r} is not a valid discount")
            else:
                self.state.discount_amount = max(parsed, ZERO)
        self._changed()

    def recalculate(self) -> Totals:
        totals = totals_for(self.state)
        if (
            self.invoice_type.is_retail
            and totals.grand_total > ZERO
            and abs(self.state.total_advance - totals.grand_total) > CENT
        ):
            self.state.total_advance = totals.grand_total
            totals = totals_for(self.state)
        self.totals = totals
        return totals

    # remote sync

    def validate(self) -> list[str]:
        errors = []
        if self.invoice_type.is_wholesale and (self.state.customer_id is None or self.state.selected_customer is None):
            errors.append("A customer is required for wholesale invoices")
        named = [item for item in self.state.items if item.item_name.strip()]
        if not named:
            errors.append("Add at least one item")
        missing = [item.item_name for item in named if not item.is_resolved]
        if missing:
            errors.append(f"Items not found in the catalog: {', '.join(missing)}")
        return errors

    def _line_payloads(self) -> list[dict]:
        lines = []
        for item in self.state.items:
            if item.item_id is None or not item.item_name.strip():
                continue
            line = {
                "item_type": item.item_type,
                "quantity": item.quantity,
                "unit_price": str(item.rate),
            }
            line["motorcycle_id" if item.item_type == "motorcycle" else "product_id"] = item.item_id
            lines.append(line)
        return lines

    def _payment_method(self) -> str:
        return "CASH" if self.invoice_type.is_retail else "CREDIT"

    def draft_payload(self) -> dict:
        totals = self.recalculate()
        return {
            "type": self.invoice_type.draft_type,
            "customer_id": self.state.customer_id,
            "items": self._line_payloads(),
            "discount": str(discount_percent_for_api(self.state, totals.subtotal)),
            "payment_method": self._payment_method(),
            "amount_paid": str(self.state.total_advance),
        }

    def invoice_payload(self) -> dict:
        totals = self.recalculate()
        paid = self.state.total_advance
        posting = self.state.posting_date or dt.date.today()
        return {
            "customer_id": self.state.customer_id,
            "invoice_date": f"{posting.isoformat()}T00:00:00",
            "due_date": f"{self.state.due_date.isoformat()}T00:00:00" if self.state.due_date else None,
            "subtotal": str(totals.subtotal),
            "tax_amount": str(totals.taxes),
            "discount": str(totals.discount),
            "total": str(totals.grand_total),
            "amount_paid": str(paid),
            "amount_due": str(max(totals.grand_total - paid, ZERO)),
            "currency": self.state.currency,
            "status": "PAID" if paid >= totals.grand_total - CENT else "PARTIALLY_PAID",
            "items": self._line_payloads(),
        }

    async def _push(self) -> bool:
        try:
            if self.editing:
                data = await self.api.update_invoice(self.invoice_id, self.invoice_payload())
                self.state.original_invoice_amount_due = _money(data["amount_due"])
                if data.get("customer"):
                    customer = CustomerSnapshot.model_validate(data["customer"])
                    self.state.selected_customer = customer
                    debt, balance = customer.debt_for(self.state.currency)
                    self.state.customer_current_debt = debt
                    self.state.customer_current_balance = balance
            elif self.state.draft_id is None:
                data = await self.api.create_draft(self.draft_payload())
                self.state.draft_id = data["id"]
                self.state.draft_status = data["status"]
                if self.tabs is not None:
                    self.tabs.update_draft_id(self.tab_id, data["id"])
            else:
                data = await self.api.update_draft(self.state.draft_id, self.draft_payload())
                self.state.draft_status = data["status"]
        except ApiError as exc:
            self._alert("error", "Save failed", exc.message)
            self.bridge.save(self.state)
            return False
        self._changed()
        return True

    async def save(self) -> bool:
        errors = self.validate()
        if errors:
            self._alert("error", "Cannot save invoice", "; ".join(errors))
            return False
        if not await self._push():
            return False
        if self.editing:
            self._alert("success", "Invoice updated", f"Invoice {self.state.naming_series} was updated")
        else:
            self._alert("success", "Draft saved", f"Draft {self.state.draft_id} was saved")
        return True

    async def submit(self) -> str | None:
        errors = self.validate()
        if errors:
            self._alert("error", "Cannot submit invoice", "; ".join(errors))
            return None
        problems = stock_errors(self.state.items)
        if problems:
            self._alert("error", "Insufficient stock", "; ".join(problems))
            return None
        if self.editing:
            return self.state.naming_series if await self.save() else None
        if not await self._push():
            return None

        payload = {
            "payment_method": self._payment_method(),
            "amount_paid": str(self.state.total_advance),
            "invoice_number": self.state.naming_series or None,
            "currency": self.state.currency,
        }
        try:
            data = await self.api.finalize_draft(self.state.draft_id, payload)
        except ApiError as exc:
            self._alert("error", "Submit failed", exc.message)
            return None
        self.state.draft_status = data["draft"]["status"]
        self.state.naming_series = data["invoice_number"]
        self._changed()
        self._alert("success", "Invoice created", f"Invoice {data['invoice_number']} was created")
        return data["invoice_number"]

    async def load_invoice(self) -> bool:
        try:
            data = await self.api.get_invoice(self.invoice_id)
        except ApiError as exc:
            self._alert("error", "Could not load invoice", exc.message)
            return False

        state = self.state
        state.naming_series = data["invoice_number"]
        state.currency = data["currency"]
        state.draft_id = data.get("draft_id")
        state.draft_status = data.get("draft_status")
        customer = data.get("customer")
        if customer:
            snapshot = CustomerSnapshot.model_validate(customer)
            state.selected_customer = snapshot
            state.customer_id = snapshot.id
            state.customer_name = snapshot.name
            state.customer_current_debt, state.customer_current_balance = snapshot.debt_for(state.currency)
        invoice_date = _as_date(data.get("invoice_date"))
        if invoice_date:
            state.date = invoice_date
            state.posting_date = invoice_date
        state.due_date = _as_date(data.get("due_date"))
        state.total_advance = _money(data.get("amount_paid"))
        state.original_invoice_amount_due = _money(data.get("amount_due"))

        discount = _money(data.get("discount"))
        subtotal = _money(data.get("subtotal"))
        state.discount_enabled = discount > ZERO
        state.discount_type, state.discount_amount = _stored_discount(discount, subtotal)

        state.items = await self._invoice_lines(data.get("items") or [])
        if not state.items:
            state.items = [LineItem(item_type=self.invoice_type.item_kind)]
        return True

    async def _invoice_lines(self, rows: list[dict]) -> list[LineItem]:
        sold: dict[tuple[str, int], int] = {}
        for row in rows:
            item_id = row.get("motorcycle_id") if row["item_type"] == "motorcycle" else row.get("product_id")
            if item_id is not None:
                key = (row["item_type"], item_id)
                sold[key] = sold.get(key, 0) + row["quantity"]

        async def details(row: dict) -> tuple[str | None, int | None]:
            if row.get("item_name") and row.get("stock_quantity") is not None:
                return row["item_name"], row["stock_quantity"]
            try:
                if row["item_type"] == "motorcycle" and row.get("motorcycle_id") is not None:
                    record = await self.api.get_motorcycle(row["motorcycle_id"])
                elif row.get("product_id") is not None:
                    record = await self.api.get_product(row["product_id"])
                else:
                    return row.get("item_name"), None
            except ApiError as exc:
                logger.warning("Loading details for invoice line %s failed: %s", row.get("id"), exc)
                return row.get("item_name"), None
            return record.name, record.stock_quantity

        resolved = await asyncio.gather(*(details(row) for row in rows))

        lines = []
        for row, (name, stock) in zip(rows, resolved):
            kind = row["item_type"]
            item_id = row.get("motorcycle_id") if kind == "motorcycle" else row.get("product_id")
            fallback = f"{'Motorcycle' if kind == 'motorcycle' else 'Product'} #{item_id}"
            rate = _money(row.get("unit_price"))
            quantity = int(row["quantity"])
            lines.append(
                LineItem(
                    item_id=item_id,
                    item_name=name or fallback,
                    item_type=kind,
                    quantity=quantity,
                    rate=rate,
                    amount=line_amount(quantity, rate),
                    stock_quantity=restored_stock(stock, sold.get((kind, item_id), 0)),
                    is_in_database=item_id is not None,
                )
            )
        return lines
