"""
InventoryStore: the one place a pharmacy's monthly stock is edited and read.

Edits are applied to local memory first and written to the repository
afterwards. Item updates are debounced per month so a burst of keystrokes
becomes one write; adding and deleting rows is written after a short fixed
delay. Pushes from the repository subscription replace the whole month
(last writer wins, no field merge), except while this store still has a
write of its own pending or running for that month.
"""
import logging
import threading
from datetime import date
from typing import Any, Callable

from pydantic import ValidationError

from . import settings
from .consumption import build_consumption
from .errors import MESSAGES, PersistenceError, PharmStockError
from .ledger import remaining_stock, stock_overview
from .persistence import MonthlyStockRepository, save_with_retry
from .rollover import next_month_key, rollover
from .schemas import ConsumptionRecord, InventoryItem, ShortageSummary, StockOverview
from .session import SessionProvider, require_pharmacy
from .shortages import Policy, classify, graded_shortages, summarize_graded
from .utils import month_key
from .validation import validate_item

logger = logging.getLogger(__name__)


class ThreadingScheduler:
    """
    Runs delayed callbacks on threading.Timer threads.
    Timers are non-daemon, so a write that is already scheduled still
    completes when the caller shuts down.
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = False
        timer.start()
        return timer


def merge_item(item: InventoryItem, fields: dict[str, Any]) -> InventoryItem:
    """Applies partial fields (python names or document aliases) to an item."""
    data = item.model_dump(by_alias=True)
    for name, value in fields.items():
        field = InventoryItem.model_fields.get(name)
        data[(field.alias or name) if field is not None else name] = value
    return InventoryItem.model_validate(data)


class InventoryStore:
    def __init__(
        self,
        repository: MonthlyStockRepository,
        pharmacy_id: str,
        validator: Callable[[InventoryItem], Any] = validate_item,
        scheduler=None,
        update_delay: float | None = None,
        save_delay: float | None = None,
        retries: int | None = None,
        retry_backoff: float | None = None,
        today: date | None = None,
    ):
        today = today or date.today()
        self.repository = repository
        self.pharmacy_id = pharmacy_id
        self.validator = validator
        self.scheduler = scheduler or ThreadingScheduler()
        self.update_delay = settings.UPDATE_DEBOUNCE_SECONDS if update_delay is None else update_delay
        self.save_delay = settings.DISCRETE_SAVE_DELAY_SECONDS if save_delay is None else save_delay
        self.retries = retries
        self.retry_backoff = retry_backoff

        self.month = today.month
        self.year = today.year
        self.loading = False
        self.error: str | None = None

        self._snapshots: dict[str, list[InventoryItem]] = {}
        self._lock = threading.RLock()
        # token -> (timer handle, month key, error message)
        self._pending: dict[object, tuple[Any, str, str]] = {}
        # month key -> token of its debounced update write
        self._debounced: dict[str, object] = {}
        # month key -> number of writes currently running
        self._in_flight: dict[str, int] = {}
        self._unsubscribe: Callable[[], None] | None = None

    @classmethod
    def from_session(
        cls, repository: MonthlyStockRepository, provider: SessionProvider, **kwargs
    ) -> "InventoryStore":
        return cls(repository, require_pharmacy(provider), **kwargs)

    # --- Selection ---

    @property
    def month_key(self) -> str:
        return month_key(self.year, self.month)

    def set_month(self, month: int) -> None:
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {month}")
        self.month = month
        self._follow_active_month()

    def set_year(self, year: int) -> None:
        self.year = year
        self._follow_active_month()

    # --- State ---

    @property
    def items(self) -> list[InventoryItem]:
        with self._lock:
            return list(self._snapshots.get(self.month_key, []))

    @property
    def snapshots(self) -> dict[str, list[InventoryItem]]:
        with self._lock:
            return {key: list(items) for key, items in self._snapshots.items()}

    @property
    def pending_writes(self) -> int:
        with self._lock:
            return len(self._pending)

    def clear_error(self) -> None:
        self.error = None

    # --- Loading & subscription ---

    def load(self) -> bool:
        """Loads every stored month for the pharmacy. Local months not in storage are kept."""
        self.loading = True
        try:
            loaded = self.repository.load_all(self.pharmacy_id)
        except PersistenceError as e:
            logger.error(f"❌ Loading stock for {self.pharmacy_id} failed: {e.message}")
            self.error = MESSAGES["load_failed"]
            return False
        finally:
            self.loading = False

        with self._lock:
            for key, items in loaded.items():
                self._snapshots[key] = list(items)
        logger.info(f"Loaded {len(loaded)} months for pharmacy {self.pharmacy_id}")
        return True

    def start(self) -> bool:
        loaded = self.load()
        self._subscribe()
        return loaded

    def close(self) -> None:
        """Stops listening for pushes. Writes already scheduled still run."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _subscribe(self) -> None:
        self.close()
        key = self.month_key
        self._unsubscribe = self.repository.subscribe_month(
            self.pharmacy_id, key, lambda items: self._on_remote_change(key, items)
        )

    def _follow_active_month(self) -> None:
        if self._unsubscribe is not None:
            self._subscribe()

    def _has_local_writes(self, key: str) -> bool:
        with self._lock:
            return bool(self._in_flight.get(key)) or any(
                pending_key == key for _, pending_key, _ in self._pending.values()
            )

    def _on_remote_change(self, key: str, items: list[InventoryItem] | None) -> None:
        with self._lock:
            # Local edits not yet written win over pushes, including the echo of our own save.
            if self._has_local_writes(key):
                logger.debug(f"Ignoring push for {self.pharmacy_id}/{key}: local writes pending")
                return
            self._snapshots[key] = list(items or [])
        logger.debug(f"Remote update for {self.pharmacy_id}/{key}: {len(items or [])} items")

    # --- Edits ---

    def add_item(self) -> int:
        """Appends an empty row to the active month; returns its index."""
        key = self.month_key
        with self._lock:
            items = self._snapshots.setdefault(key, [])
            items.append(InventoryItem())
            index = len(items) - 1
            self._schedule(key, self.save_delay, MESSAGES["add_failed"])
        return index

    def update_item(self, index: int, fields: dict[str, Any] | None = None, **changes) -> bool:
        key = self.month_key
        changes = {**(fields or {}), **changes}
        with self._lock:
            items = self._snapshots.get(key, [])
            if not 0 <= index < len(items):
                logger.warning(f"⚠️ update_item: no item at index {index} in {key}")
                return False
            try:
                items[index] = merge_item(items[index], changes)
            except ValidationError as e:
                logger.error(f"❌ Rejected update for item {index} in {key}: {e}")
                self.error = MESSAGES["update_failed"]
                return False
            self._schedule(key, self.update_delay, MESSAGES["update_failed"], debounce=True)
        return True

    def delete_item(self, index: int) -> bool:
        key = self.month_key
        with self._lock:
            items = self._snapshots.get(key, [])
            if not 0 <= index < len(items):
                logger.warning(f"⚠️ delete_item: no item at index {index} in {key}")
                return False
            del items[index]
            self._schedule(key, self.save_delay, MESSAGES["delete_failed"])
        return True

    def rollover(self) -> str:
        """Seeds next month from the active month's closing balances and saves it."""
        key = self.month_key
        target = next_month_key(key)
        with self._lock:
            updated = rollover(self._snapshots, key)
            self._snapshots[target] = updated[target]
        logger.info(f"Rolled {key} over into {target} ({len(updated[target])} items)")
        self._persist(target, MESSAGES["rollover_failed"])
        return target

    # --- Persistence ---

    def _schedule(self, key: str, delay: float, message: str, debounce: bool = False) -> None:
        token = object()

        def fire():
            with self._lock:
                if self._pending.pop(token, None) is None:
                    return  # flushed or superseded
                if self._debounced.get(key) is token:
                    del self._debounced[key]
            self._persist(key, message)

        with self._lock:
            if debounce:
                previous = self._debounced.pop(key, None)
                if previous is not None:
                    entry = self._pending.pop(previous, None)
                    if entry is not None:
                        entry[0].cancel()
                self._debounced[key] = token
            self._pending[token] = (self.scheduler.call_later(delay, fire), key, message)

    def flush(self) -> None:
        """Runs every scheduled write now, once per month."""
        with self._lock:
            entries = list(self._pending.values())
            self._pending.clear()
            self._debounced.clear()
        messages: dict[str, str] = {}
        for handle, key, message in entries:
            handle.cancel()
            messages[key] = message
        for key, message in messages.items():
            self._persist(key, message)

    def _persist(self, key: str, message: str) -> bool:
        """Validates and writes the full item list of one month."""
        with self._lock:
            items = [item.model_copy(deep=True) for item in self._snapshots.get(key, [])]
            self._in_flight[key] = self._in_flight.get(key, 0) + 1

        try:
            return self._validate_and_save(key, items, message)
        finally:
            with self._lock:
                self._in_flight[key] -= 1
                if not self._in_flight[key]:
                    del self._in_flight[key]

    def _validate_and_save(self, key: str, items: list[InventoryItem], message: str) -> bool:
        try:
            for item in items:
                self.validator(item)
        except PharmStockError as e:
            logger.warning(f"⚠️ Not saving {self.pharmacy_id}/{key}: {e.message}")
            self.error = e.message
            return False
        except Exception:
            # The validator is pluggable; whatever it raises must not escape a timer thread.
            logger.exception(f"❌ Validator failed for {self.pharmacy_id}/{key}")
            self.error = MESSAGES["save_failed"]
            return False

        try:
            save_with_retry(
                self.repository,
                self.pharmacy_id,
                key,
                items,
                retries=self.retries,
                backoff=self.retry_backoff,
            )
        except PersistenceError as e:
            logger.error(f"❌ Saving {self.pharmacy_id}/{key} failed: {e.message}")
            self.error = message
            return False

        logger.debug(f"Saved {len(items)} items to {self.pharmacy_id}/{key}")
        return True

    # --- Derived views (recomputed on every call) ---

    def consumption(self) -> dict[str, ConsumptionRecord]:
        return build_consumption(self.snapshots)

    def remaining_stock(self, item: InventoryItem | None) -> int:
        return remaining_stock(item)

    def shortages(self, policy: Policy = "simple"):
        consumption = self.consumption() if policy == "simple" else None
        return classify(self.items, policy, consumption)

    def shortage_summary(self) -> ShortageSummary:
        return summarize_graded(graded_shortages(self.items))

    def overview(self) -> StockOverview:
        return stock_overview(self.items)
