import logging
import os
import re
from pathlib import Path
from typing import Protocol

from motopos.core.config import settings

logger = logging.getLogger(__name__)

FORM_KEY_PREFIX = "sales-invoice-form-"
TABS_KEY_PREFIX = "sales-invoice-tabs-"


def form_key(tab_id: str) -> str:
    return f"{FORM_KEY_PREFIX}{tab_id}"


def tabs_key(sale_type: str) -> str:
    return f"{TABS_KEY_PREFIX}{sale_type}"


class Store(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self):
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class FileStore:
    """One JSON file per key under ``directory``."""

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory or settings.form_storage_dir)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9._-]", "_", key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)
        logger.debug("Stored %s (%s bytes)", key, len(value))

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
