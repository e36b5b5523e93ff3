"""
Storage for monthly stock documents.

One document per pharmacy and month, always written whole. A missing
document reads back as None and callers treat it as an empty month.
Subscribers of a month are called with the stored items after every save.
"""
import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Sequence

from pydantic import ValidationError

from . import settings
from .errors import MESSAGES, PersistenceError
from .schemas import InventoryItem, MonthlyStockSnapshot
from .utils import parse_month_key

logger = logging.getLogger(__name__)

OnChange = Callable[[list[InventoryItem] | None], None]
Unsubscribe = Callable[[], None]


class MonthlyStockRepository(ABC):
    """Document store interface used by the InventoryStore."""

    def __init__(self):
        self._listeners: dict[tuple[str, str], list[OnChange]] = {}
        self._listeners_lock = threading.Lock()

    @abstractmethod
    def load_month(self, pharmacy_id: str, month_key: str) -> list[InventoryItem] | None:
        """Returns the month's items, or None when no document exists."""

    @abstractmethod
    def load_all(self, pharmacy_id: str) -> dict[str, list[InventoryItem]]:
        """Returns every stored month for the pharmacy, keyed by month key."""

    @abstractmethod
    def _write(self, pharmacy_id: str, snapshot: MonthlyStockSnapshot) -> None:
        """Replaces the stored document. Raises PersistenceError on failure."""

    def save_month(
        self, pharmacy_id: str, month_key: str, items: Sequence[InventoryItem]
    ) -> None:
        parse_month_key(month_key)
        snapshot = MonthlyStockSnapshot(
            month_key=month_key,
            items=[item.model_copy(deep=True) for item in items],
        )
        self._write(pharmacy_id, snapshot)
        logger.debug(f"Saved {len(snapshot.items)} items for {pharmacy_id}/{month_key}")
        self._notify(pharmacy_id, month_key, snapshot.items)

    def subscribe_month(self, pharmacy_id: str, month_key: str, on_change: OnChange) -> Unsubscribe:
        key = (pharmacy_id, month_key)
        with self._listeners_lock:
            self._listeners.setdefault(key, []).append(on_change)

        def unsubscribe():
            with self._listeners_lock:
                callbacks = self._listeners.get(key, [])
                if on_change in callbacks:
                    callbacks.remove(on_change)

        return unsubscribe

    def _notify(self, pharmacy_id: str, month_key: str, items: Sequence[InventoryItem]) -> None:
        # Subscribers get the items just written, not a re-read.
        with self._listeners_lock:
            callbacks = list(self._listeners.get((pharmacy_id, month_key), []))
        for callback in callbacks:
            try:
                callback([item.model_copy(deep=True) for item in items])
            except Exception:
                logger.exception(f"Subscriber failed for {pharmacy_id}/{month_key}")


class InMemoryRepository(MonthlyStockRepository):
    """Keeps documents as plain JSON-ready dicts, the way a document store would."""

    def __init__(self):
        super().__init__()
        self._documents: dict[tuple[str, str], dict] = {}
        self._lock = threading.Lock()

    def load_month(self, pharmacy_id, month_key):
        with self._lock:
            document = self._documents.get((pharmacy_id, month_key))
        if document is None:
            return None
        return MonthlyStockSnapshot.model_validate(document).items

    def load_all(self, pharmacy_id):
        with self._lock:
            documents = {
                key: doc for (pid, key), doc in self._documents.items() if pid == pharmacy_id
            }
        return {
            key: MonthlyStockSnapshot.model_validate(doc).items
            for key, doc in sorted(documents.items())
        }

    def document(self, pharmacy_id: str, month_key: str) -> dict | None:
        """The raw stored document, as it would sit in the database."""
        with self._lock:
            return self._documents.get((pharmacy_id, month_key))

    def _write(self, pharmacy_id, snapshot):
        document = snapshot.model_dump(mode="json", by_alias=True)
        with self._lock:
            self._documents[(pharmacy_id, snapshot.month_key)] = document


class JsonFileRepository(MonthlyStockRepository):
    """
    Stores each month as a JSON file:
    <base_dir>/pharmacies/<pharmacy_id>/monthlyStock/<monthKey>.json
    """

    def __init__(self, base_dir: Path | None = None):
        super().__init__()
        self.base_dir = Path(base_dir) if base_dir is not None else settings.DATA_DIR

    def _month_dir(self, pharmacy_id: str) -> Path:
        if not pharmacy_id or "/" in pharmacy_id or "\\" in pharmacy_id or pharmacy_id in (".", ".."):
            raise PersistenceError(MESSAGES["load_failed"])
        return self.base_dir / "pharmacies" / pharmacy_id / "monthlyStock"

    def _path(self, pharmacy_id: str, month_key: str) -> Path:
        parse_month_key(month_key)
        return self._month_dir(pharmacy_id) / f"{month_key}.json"

    def _read(self, path: Path) -> MonthlyStockSnapshot:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            data.setdefault("monthKey", path.stem)
            return MonthlyStockSnapshot.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"❌ Could not read stock document {path}: {e}")
            raise PersistenceError(MESSAGES["load_failed"]) from e

    def load_month(self, pharmacy_id, month_key):
        path = self._path(pharmacy_id, month_key)
        if not path.exists():
            return None
        return self._read(path).items

    def load_all(self, pharmacy_id):
        month_dir = self._month_dir(pharmacy_id)
        if not month_dir.exists():
            return {}
        return {path.stem: self._read(path).items for path in sorted(month_dir.glob("*.json"))}

    def _write(self, pharmacy_id, snapshot):
        path = self._path(pharmacy_id, snapshot.month_key)
        tmp_path = path.parent / f"{path.name}.tmp"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(
                    snapshot.model_dump(mode="json", by_alias=True),
                    f,
                    ensure_ascii=False,
                    indent=2,
                )
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"❌ Could not write stock document {path}: {e}")
            raise PersistenceError(MESSAGES["save_failed"]) from e


def save_with_retry(
    repository: MonthlyStockRepository,
    pharmacy_id: str,
    month_key: str,
    items: Sequence[InventoryItem],
    retries: int | None = None,
    backoff: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Saves a month, retrying PersistenceError with a linear back-off (backoff * attempt)."""
    retries = settings.SAVE_RETRIES if retries is None else max(1, retries)
    backoff = settings.SAVE_RETRY_BACKOFF_SECONDS if backoff is None else backoff

    for attempt in range(retries):
        try:
            repository.save_month(pharmacy_id, month_key, items)
            return
        except PersistenceError as e:
            if attempt == retries - 1:
                raise
            logger.warning(
                f"⚠️ Save of {pharmacy_id}/{month_key} failed ({e.message}), "
                f"retry {attempt + 1}/{retries - 1}"
            )
            sleep(backoff * (attempt + 1))
