import pytest

from motopos.invoice_form.state import InvoiceType
from motopos.invoice_form.storage import FileStore, MemoryStore, form_key
from motopos.invoice_form.tabs import NEW_INVOICE_TITLE, TabManager, tab_title


def test_tab_titles():
    sale_type = InvoiceType.WHOLESALE_PRODUCT

    assert tab_title(sale_type, 0, None, None) == NEW_INVOICE_TITLE
    assert tab_title(sale_type, 0, 12, None) == "Wholesale Product"
    assert tab_title(sale_type, 2, None, None) == "Wholesale Product 3"
    assert tab_title(sale_type, 2, 12, "  Azad Motors ") == "Azad Motors"


def test_restore_creates_first_tab():
    manager = TabManager(MemoryStore(), InvoiceType.RETAIL_PRODUCT)

    tabs = manager.restore()

    assert len(tabs) == 1
    assert manager.active_tab.title == NEW_INVOICE_TITLE


def test_restore_reuses_tabs_of_the_same_sale_type():
    store = MemoryStore()
    first = TabManager(store, InvoiceType.RETAIL_PRODUCT)
    first.restore()
    second_tab = first.create_tab()

    again = TabManager(store, InvoiceType.RETAIL_PRODUCT)
    again.restore()

    assert [tab.id for tab in again.tabs] == [tab.id for tab in first.tabs]
    assert again.active_tab_id == second_tab.id

    other = TabManager(store, InvoiceType.WHOLESALE_PRODUCT)
    other.restore()
    assert len(other.tabs) == 1
    assert other.tabs[0].id not in {tab.id for tab in first.tabs}


def test_close_tab_moves_active_and_drops_snapshot():
    store = MemoryStore()
    manager = TabManager(store, InvoiceType.RETAIL_PRODUCT)
    manager.restore()
    middle = manager.create_tab()
    last = manager.create_tab()
    store.set(form_key(last.id), "{}")

    manager.close_tab(last.id)

    assert form_key(last.id) not in store.data
    assert manager.active_tab_id == middle.id
    assert middle.title == "Retail Product 2"

    for tab in list(manager.tabs):
        manager.close_tab(tab.id)
    assert manager.tabs == []
    assert manager.active_tab_id is None


def test_draft_and_customer_retitle_tab():
    manager = TabManager(MemoryStore(), InvoiceType.RETAIL_MOTORCYCLE)
    manager.restore()
    tab = manager.active_tab

    manager.update_draft_id(tab.id, 4)
    assert tab.title == "Retail Motorcycle"

    manager.update_customer_name(tab.id, "Hevi")
    assert tab.title == "Hevi"

    manager.update_customer_name(tab.id, None)
    assert tab.title == "Retail Motorcycle"


def test_activate_switches_and_persists():
    store = MemoryStore()
    manager = TabManager(store, InvoiceType.RETAIL_PRODUCT)
    first = manager.restore()[0]
    manager.create_tab()

    manager.activate(first.id)

    again = TabManager(store, InvoiceType.RETAIL_PRODUCT)
    again.restore()
    assert again.active_tab_id == first.id
    with pytest.raises(KeyError):
        manager.activate("tab-missing")


def test_undecodable_tabs_file_starts_fresh(tmp_path):
    store = FileStore(tmp_path)
    manager = TabManager(store, InvoiceType.RETAIL_PRODUCT)
    store._path(manager.key).write_bytes(b"\xff\xfe\x00garbage")

    tabs = manager.restore()

    assert len(tabs) == 1
    assert manager.active_tab.title == NEW_INVOICE_TITLE
    assert TabManager(store, InvoiceType.RETAIL_PRODUCT).restore()[0].id == tabs[0].id
