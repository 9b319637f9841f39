import logging
from enum import Enum

from pydantic import ValidationError

from motopos.invoice_form.state import FormState
from motopos.invoice_form.storage import Store, form_key

logger = logging.getLogger(__name__)

# fields an edited invoice always takes from the server
EDIT_OWNED_FIELDS = frozenset({"naming_series", "items", "original_invoice_amount_due"})


class RestorePhase(str, Enum):
    PENDING = "PENDING"
    RESTORING = "RESTORING"
    RESTORED = "RESTORED"


def serialize(state: FormState) -> str:
    return state.model_dump_json()


class PersistenceBridge:
    """Mirrors one tab's form state into a ``Store``.

    Nothing is written until ``restore`` has run, so the blank state a tab
    starts with can never overwrite the snapshot of a previous session.
    """

    def __init__(self, store: Store, tab_id: str):
        self.store = store
        self.tab_id = tab_id
        self.phase = RestorePhase.PENDING

    @property
    def key(self) -> str:
        return form_key(self.tab_id)

    def save(self, state: FormState) -> bool:
        if self.phase != RestorePhase.RESTORED:
            logger.debug("Skipping save of %s while %s", self.key, self.phase.value)
            return False
        try:
            self.store.set(self.key, serialize(state))
        except (OSError, ValueError) as exc:
            logger.error("Saving form state %s failed: %s", self.key, exc, exc_info=True)
            return False
        return True

    def load(self) -> FormState | None:
        try:
            raw = self.store.get(self.key)
        except (OSError, ValueError) as exc:
            logger.error("Reading form state %s failed: %s", self.key, exc, exc_info=True)
            return None
        if not raw:
            return None
        try:
            return FormState.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Ignoring corrupt form state %s: %s", self.key, exc)
            return None

    def restore(self, current: FormState, *, editing: bool = False, wholesale: bool = False) -> FormState:
        self.phase = RestorePhase.RESTORING
        try:
            saved = self.load()
            if saved is None:
                restored = current
            else:
                restored = merge_saved(current, saved, editing=editing)
            if wholesale and not restored.fetch_customer:
                restored = restored.model_copy(update={"fetch_customer": True})
            logger.debug("Restored %s (%s)", self.key, "snapshot" if saved else "empty")
            return restored
        finally:
            self.phase = RestorePhase.RESTORED

    def clear(self) -> None:
        try:
            self.store.remove(self.key)
        except OSError as exc:
            logger.error("Removing form state %s failed: %s", self.key, exc, exc_info=True)


def merge_saved(current: FormState, saved: FormState, *, editing: bool) -> FormState:
    update = {}
    for field in saved.model_fields_set:
        if editing and field in EDIT_OWNED_FIELDS:
            continue
        update[field] = getattr(saved, field)
    merged = current.model_copy(update=update)

    if merged.selected_customer is not None:
        debt, balance = merged.selected_customer.debt_for(merged.currency)
        merged = merged.model_copy(update={"customer_current_debt": debt, "customer_current_balance": balance})
    return merged
