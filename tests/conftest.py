"""
Shared fixtures: item factory, in-memory repository and a manual scheduler
that runs delayed writes only when the test says so.
"""
from datetime import date

import pytest

from pharmstock.errors import MESSAGES, PersistenceError
from pharmstock.persistence import InMemoryRepository
from pharmstock.schemas import InventoryItem
from pharmstock.store import InventoryStore

PHARMACY_ID = "pharmacy-1"


class ManualHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.done = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback):
        handle = ManualHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self):
        return [h for h in self.handles if not h.cancelled and not h.done]

    def run_pending(self):
        while self.active:
            for handle in self.active:
                handle.done = True
                handle.callback()


class CountingRepository(InMemoryRepository):
    def __init__(self):
        super().__init__()
        self.saves = []

    def save_month(self, pharmacy_id, month_key, items):
        self.saves.append((pharmacy_id, month_key, [item.model_copy(deep=True) for item in items]))
        super().save_month(pharmacy_id, month_key, items)


class FailingRepository(InMemoryRepository):
    def _write(self, pharmacy_id, snapshot):
        raise PersistenceError(MESSAGES["save_failed"])


@pytest.fixture
def make_item():
    def _make(name="Panadol", opening=0, unit_price=0, dispense=None, incoming=None, sources=None):
        return InventoryItem(
            name=name,
            opening=opening,
            unit_price=unit_price,
            daily_dispense=dispense or {},
            daily_incoming=incoming or {},
            incoming_source=sources or {},
        )

    return _make


@pytest.fixture
def repository():
    return CountingRepository()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def store(repository, scheduler):
    return InventoryStore(
        repository,
        PHARMACY_ID,
        scheduler=scheduler,
        retries=1,
        today=date(2024, 1, 15),
    )
