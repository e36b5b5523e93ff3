import threading
import time
from datetime import date

import pytest

from conftest import PHARMACY_ID, FailingRepository
from pharmstock.errors import MESSAGES, PersistenceError, SessionError
from pharmstock.persistence import InMemoryRepository
from pharmstock.schemas import InventoryItem
from pharmstock.session import SessionState, StaticSessionProvider
from pharmstock.store import InventoryStore


def test_starts_on_given_month(store):
    assert store.month_key == "2024-01"
    assert store.items == []


def test_add_item_is_visible_immediately_and_saved_after_short_delay(store, repository, scheduler):
    index = store.add_item()

    assert index == 0
    assert store.items == [InventoryItem()]
    assert repository.saves == []
    assert [h.delay for h in scheduler.active] == [0.1]

    scheduler.run_pending()
    assert repository.load_month(PHARMACY_ID, "2024-01") == [InventoryItem()]


def test_updates_are_debounced_into_one_write(store, repository, scheduler):
    store.add_item()
    scheduler.run_pending()
    repository.saves.clear()

    store.update_item(0, {"name": "Panadol"})
    store.update_item(0, {"opening": 40})
    store.update_item(0, {"name": "Panadol Extra"})

    assert len(scheduler.active) == 1
    assert scheduler.active[0].delay == 0.5

    scheduler.run_pending()
    assert len(repository.saves) == 1
    (saved,) = repository.saves[0][2]
    assert saved.name == "Panadol Extra"
    assert saved.opening == 40


def test_update_accepts_document_aliases(store, scheduler):
    store.add_item()
    store.update_item(0, {"unitPrice": 2.5, "dailyDispense": {3: 4}})
    store.update_item(0, daily_incoming={1: 10})

    item = store.items[0]
    assert item.unit_price == 2.5
    assert item.daily_dispense == {"3": 4}
    assert item.daily_incoming == {"1": 10}


def test_update_out_of_range_is_ignored(store, scheduler):
    assert store.update_item(3, {"name": "x"}) is False
    assert store.update_item(-1, {"name": "x"}) is False
    assert scheduler.active == []


def test_update_with_bad_shape_is_rejected_locally(store, scheduler):
    store.add_item()
    scheduler.run_pending()
    assert store.update_item(0, {"dailyDispense": [1, 2, 3]}) is False
    assert store.error == MESSAGES["update_failed"]
    assert store.items[0] == InventoryItem()


def test_delete_item(store, repository, scheduler):
    store.add_item()
    store.update_item(0, {"name": "a"})
    store.add_item()
    store.update_item(1, {"name": "b"})
    scheduler.run_pending()

    assert store.delete_item(0) is True
    assert [i.name for i in store.items] == ["b"]
    scheduler.run_pending()
    assert [i.name for i in repository.load_month(PHARMACY_ID, "2024-01")] == ["b"]
    assert store.delete_item(5) is False


def test_validation_failure_keeps_local_edit_unsaved(store, repository, scheduler):
    store.add_item()
    scheduler.run_pending()

    store.update_item(0, {"name": "Panadol", "opening": -5})
    scheduler.run_pending()

    assert store.items[0].opening == -5
    assert store.error == MESSAGES["negative_opening"]
    assert repository.load_month(PHARMACY_ID, "2024-01") == [InventoryItem()]


def test_persistence_failure_is_reported_not_raised(scheduler):
    store = InventoryStore(FailingRepository(), PHARMACY_ID, scheduler=scheduler, retries=1, today=date(2024, 1, 1))
    store.add_item()
    scheduler.run_pending()
    assert store.error == MESSAGES["add_failed"]

    store.update_item(0, {"name": "x"})
    scheduler.run_pending()
    assert store.error == MESSAGES["update_failed"]
    assert store.items[0].name == "x"

    store.clear_error()
    store.delete_item(0)
    scheduler.run_pending()
    assert store.error == MESSAGES["delete_failed"]
    assert store.items == []


def test_unexpected_validator_error_is_reported_not_raised(repository, scheduler):
    def broken_validator(item):
        raise ValueError("bad item")

    store = InventoryStore(
        repository, PHARMACY_ID, validator=broken_validator, scheduler=scheduler, today=date(2024, 1, 1)
    )
    store.add_item()
    scheduler.run_pending()

    assert store.error == MESSAGES["save_failed"]
    assert repository.saves == []
    assert store.items == [InventoryItem()]

    store.clear_error()
    store.update_item(0, {"name": "x"})
    store.flush()
    assert store.error == MESSAGES["save_failed"]


def test_month_selection_keeps_loaded_history(store, scheduler, make_item, repository):
    repository.save_month(PHARMACY_ID, "2023-12", [make_item(name="A", dispense={1: 30})])
    repository.save_month(PHARMACY_ID, "2024-01", [make_item(name="A", dispense={1: 10})])
    store.load()

    store.set_month(3)
    store.set_year(2025)
    assert store.month_key == "2025-03"
    assert store.items == []
    assert set(store.snapshots) == {"2023-12", "2024-01"}
    assert store.consumption()["A"].average == 20

    with pytest.raises(ValueError):
        store.set_month(13)


def test_remote_push_replaces_the_active_month(store, repository, scheduler, make_item):
    store.start()
    store.add_item()
    scheduler.run_pending()

    # Another client writes the same month.
    repository.save_month(PHARMACY_ID, "2024-01", [make_item(name="remote")])
    assert [i.name for i in store.items] == ["remote"]


def test_remote_push_does_not_override_unsaved_edits(store, repository, scheduler, make_item):
    store.start()
    store.add_item()
    store.update_item(0, {"name": "local"})

    repository.save_month(PHARMACY_ID, "2024-01", [make_item(name="remote")])
    assert [i.name for i in store.items] == ["local"]

    scheduler.run_pending()
    assert [i.name for i in repository.load_month(PHARMACY_ID, "2024-01")] == ["local"]


class SlowRepository(InMemoryRepository):
    """Blocks inside the write until the test releases it."""

    def __init__(self):
        super().__init__()
        self.writing = threading.Event()
        self.release = threading.Event()

    def _write(self, pharmacy_id, snapshot):
        self.writing.set()
        assert self.release.wait(5)
        super()._write(pharmacy_id, snapshot)


def test_edit_made_during_a_save_survives_the_save_echo(scheduler):
    repository = SlowRepository()
    store = InventoryStore(repository, PHARMACY_ID, scheduler=scheduler, retries=1, today=date(2024, 1, 1))
    store.start()
    store.add_item()
    store.update_item(0, {"name": "first"})

    writer = threading.Thread(target=store.flush)
    writer.start()
    assert repository.writing.wait(5)

    store.update_item(0, {"name": "second"})
    repository.release.set()
    writer.join(5)

    assert [i.name for i in store.items] == ["second"]

    scheduler.run_pending()
    assert [i.name for i in repository.load_month(PHARMACY_ID, "2024-01")] == ["second"]
    assert store.error is None


def test_subscription_follows_the_active_month(store, repository, make_item):
    store.start()
    store.set_month(2)
    repository.save_month(PHARMACY_ID, "2024-01", [make_item(name="jan")])
    repository.save_month(PHARMACY_ID, "2024-02", [make_item(name="feb")])

    assert [i.name for i in store.items] == ["feb"]
    assert "2024-01" not in store.snapshots


def test_close_stops_pushes_but_pending_writes_still_run(store, repository, scheduler, make_item):
    store.start()
    store.add_item()
    store.update_item(0, {"name": "kept"})
    store.close()

    repository.save_month(PHARMACY_ID, "2024-01", [make_item(name="remote")])
    assert [i.name for i in store.items] == ["kept"]

    scheduler.run_pending()
    assert [i.name for i in repository.load_month(PHARMACY_ID, "2024-01")] == ["kept"]


def test_flush_writes_each_month_once(store, repository, scheduler):
    store.add_item()
    store.update_item(0, {"name": "a"})
    assert store.pending_writes == 2

    store.flush()
    assert store.pending_writes == 0
    assert len(repository.saves) == 1
    assert scheduler.active == []


def test_load_failure_sets_error():
    class BrokenRepository(InMemoryRepository):
        def load_all(self, pharmacy_id):
            raise PersistenceError(MESSAGES["load_failed"])

    store = InventoryStore(BrokenRepository(), PHARMACY_ID)
    assert store.load() is False
    assert store.error == MESSAGES["load_failed"]
    assert store.loading is False


def test_rollover_saves_next_month(store, repository, make_item):
    repository.save_month(PHARMACY_ID, "2024-01", [make_item(name="A", opening=100, incoming={1: 20}, dispense={1: 30})])
    store.load()

    assert store.rollover() == "2024-02"
    (saved,) = repository.load_month(PHARMACY_ID, "2024-02")
    assert saved.opening == 90
    assert saved.daily_dispense == {}
    assert store.snapshots["2024-02"] == [saved]


def test_derived_views(store, repository, make_item):
    repository.save_month(
        PHARMACY_ID,
        "2024-01",
        [
            make_item(name="low", opening=3, dispense={1: 2}),
            make_item(name="fine", opening=500, dispense={1: 5}),
        ],
    )
    store.load()

    assert store.remaining_stock(store.items[0]) == 1
    assert store.remaining_stock(store.items[1]) == 495
    assert [s.name for s in store.shortages()] == ["low"]
    assert [s.name for s in store.shortages("graded")] == ["low"]
    assert store.shortage_summary().total_shortages == 1
    assert store.overview().total_items == 2


def test_from_session():
    provider = StaticSessionProvider(SessionState(authenticated=True, user_id="u1", pharmacy_id="ph-9"))
    store = InventoryStore.from_session(InMemoryRepository(), provider)
    assert store.pharmacy_id == "ph-9"

    with pytest.raises(SessionError):
        InventoryStore.from_session(InMemoryRepository(), StaticSessionProvider(SessionState()))


def test_threading_scheduler_writes_in_background():
    repository = InMemoryRepository()
    store = InventoryStore(repository, PHARMACY_ID, update_delay=0.01, save_delay=0.01, retries=1)
    store.add_item()
    store.update_item(0, {"name": "bg"})

    def saved_names():
        saved = repository.load_month(PHARMACY_ID, store.month_key) or []
        return [i.name for i in saved]

    deadline = time.monotonic() + 5
    while (store.pending_writes or saved_names() != ["bg"]) and time.monotonic() < deadline:
        time.sleep(0.01)

    assert saved_names() == ["bg"]
