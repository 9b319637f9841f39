import logging
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError

from motopos.invoice_form.state import InvoiceType
from motopos.invoice_form.storage import Store, form_key, tabs_key

logger = logging.getLogger(__name__)

NEW_INVOICE_TITLE = "New Sales Invoice"


class InvoiceTab(BaseModel):
    id: str = Field(default_factory=lambda: f"tab-{uuid4().hex[:12]}")
    title: str = ""
    sale_type: InvoiceType
    draft_id: int | None = None
    customer_name: str | None = None


class TabsState(BaseModel):
    sale_type: InvoiceType
    tabs: list[InvoiceTab] = Field(default_factory=list)
    active_tab_id: str | None = None


def tab_title(sale_type: InvoiceType, index: int, draft_id: int | None, customer_name: str | None) -> str:
    if customer_name and customer_name.strip():
        return customer_name.strip()
    if index == 0 and draft_id is None:
        return NEW_INVOICE_TITLE
    if index == 0:
        return sale_type.base_title
    return f"{sale_type.base_title} {index + 1}"


class TabManager:
    def __init__(self, store: Store, sale_type: InvoiceType):
        self.store = store
        self.sale_type = sale_type
        self.tabs: list[InvoiceTab] = []
        self.active_tab_id: str | None = None

    @property
    def key(self) -> str:
        return tabs_key(self.sale_type.value)

    @property
    def active_tab(self) -> InvoiceTab | None:
        return self._find(self.active_tab_id) if self.active_tab_id else None

    def restore(self) -> list[InvoiceTab]:
        saved = self._load()
        if saved is not None and saved.sale_type == self.sale_type and saved.tabs:
            self.tabs = saved.tabs
            self._retitle()
            ids = {tab.id for tab in self.tabs}
            self.active_tab_id = saved.active_tab_id if saved.active_tab_id in ids else self.tabs[0].id
            self._persist()
            return self.tabs
        self.create_tab()
        return self.tabs

    def create_tab(self) -> InvoiceTab:
        tab = InvoiceTab(sale_type=self.sale_type)
        tab.title = tab_title(self.sale_type, len(self.tabs), None, None)
        self.tabs.append(tab)
        self.active_tab_id = tab.id
        self._persist()
        return tab

    def activate(self, tab_id: str) -> None:
        if self._find(tab_id) is None:
            raise KeyError(tab_id)
        self.active_tab_id = tab_id
        self._persist()

    def close_tab(self, tab_id: str) -> None:
        self.tabs = [tab for tab in self.tabs if tab.id != tab_id]
        if self.active_tab_id == tab_id:
            self.active_tab_id = self.tabs[-1].id if self.tabs else None
        try:
            self.store.remove(form_key(tab_id))
        except OSError as exc:
            logger.error("Removing form state for tab %s failed: %s", tab_id, exc, exc_info=True)
        self._retitle()
        self._persist()

    def update_draft_id(self, tab_id: str, draft_id: int | None) -> None:
        tab = self._find(tab_id)
        if tab is None:
            return
        tab.draft_id = draft_id
        self._retitle()
        self._persist()

    def update_customer_name(self, tab_id: str, customer_name: str | None) -> None:
        tab = self._find(tab_id)
        if tab is None:
            return
        tab.customer_name = customer_name
        self._retitle()
        self._persist()

    def _find(self, tab_id: str) -> InvoiceTab | None:
        return next((tab for tab in self.tabs if tab.id == tab_id), None)

    def _retitle(self) -> None:
        for index, tab in enumerate(self.tabs):
            tab.title = tab_title(tab.sale_type, index, tab.draft_id, tab.customer_name)

    def _load(self) -> TabsState | None:
        try:
            raw = self.store.get(self.key)
        except (OSError, ValueError) as exc:
            logger.error("Reading tabs %s failed: %s", self.key, exc, exc_info=True)
            return None
        if not raw:
            return None
        try:
            return TabsState.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Ignoring corrupt tabs state %s: %s", self.key, exc)
            return None

    def _persist(self) -> None:
        state = TabsState(sale_type=self.sale_type, tabs=self.tabs, active_tab_id=self.active_tab_id)
        try:
            self.store.set(self.key, state.model_dump_json())
        except OSError as exc:
            logger.error("Saving tabs %s failed: %s", self.key, exc, exc_info=True)
