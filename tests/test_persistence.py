import json

import pytest

from pharmstock.errors import MESSAGES, PersistenceError
from pharmstock.persistence import InMemoryRepository, JsonFileRepository, save_with_retry


@pytest.fixture(params=["memory", "json"])
def repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryRepository()
    return JsonFileRepository(tmp_path)


def test_save_then_load_returns_equal_items(repo, make_item):
    items = [
        make_item(name="Panadol", opening=12, unit_price=3.5, dispense={1: 2}, incoming={4: 10}, sources={4: "مصنع"}),
        make_item(name="Augmentin", opening=0),
    ]
    repo.save_month("ph", "2024-03", items)
    assert repo.load_month("ph", "2024-03") == items


def test_absent_month_is_none(repo):
    assert repo.load_month("ph", "2024-03") is None


def test_load_all_returns_every_month_of_the_pharmacy(repo, make_item):
    repo.save_month("ph", "2024-02", [make_item(name="b")])
    repo.save_month("ph", "2024-01", [make_item(name="a")])
    repo.save_month("other", "2024-01", [make_item(name="z")])

    loaded = repo.load_all("ph")
    assert list(loaded) == ["2024-01", "2024-02"]
    assert loaded["2024-01"][0].name == "a"


def test_save_replaces_whole_document(repo, make_item):
    repo.save_month("ph", "2024-01", [make_item(name="a"), make_item(name="b")])
    repo.save_month("ph", "2024-01", [make_item(name="c")])
    assert [i.name for i in repo.load_month("ph", "2024-01")] == ["c"]


def test_subscribers_get_the_saved_month(repo, make_item):
    received = []
    unsubscribe = repo.subscribe_month("ph", "2024-01", received.append)

    repo.save_month("ph", "2024-01", [make_item(name="a")])
    repo.save_month("ph", "2024-02", [make_item(name="other month")])
    unsubscribe()
    repo.save_month("ph", "2024-01", [make_item(name="after")])

    assert len(received) == 1
    assert [i.name for i in received[0]] == ["a"]


def test_json_document_layout(tmp_path, make_item):
    repo = JsonFileRepository(tmp_path)
    repo.save_month("ph", "2024-01", [make_item(name="بنادول", opening=5)])

    path = tmp_path / "pharmacies" / "ph" / "monthlyStock" / "2024-01.json"
    document = json.loads(path.read_text(encoding="utf-8"))
    assert set(document) == {"monthKey", "items", "lastUpdated"}
    assert document["items"][0]["name"] == "بنادول"
    assert document["items"][0]["unitPrice"] == 0
    assert "dailyDispense" in document["items"][0]


def test_corrupted_json_document_raises_persistence_error(tmp_path):
    month_dir = tmp_path / "pharmacies" / "ph" / "monthlyStock"
    month_dir.mkdir(parents=True)
    (month_dir / "2024-01.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError) as exc:
        JsonFileRepository(tmp_path).load_month("ph", "2024-01")
    assert exc.value.message == MESSAGES["load_failed"]


class FlakyRepository(InMemoryRepository):
    def __init__(self, failures):
        super().__init__()
        self.failures = failures

    def _write(self, pharmacy_id, snapshot):
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError(MESSAGES["save_failed"])
        super()._write(pharmacy_id, snapshot)


def test_save_with_retry_recovers_after_failures(make_item):
    repo = FlakyRepository(failures=2)
    waits = []
    save_with_retry(repo, "ph", "2024-01", [make_item()], retries=3, backoff=1.0, sleep=waits.append)

    assert waits == [1.0, 2.0]
    assert repo.load_month("ph", "2024-01") is not None


def test_save_with_retry_gives_up(make_item):
    repo = FlakyRepository(failures=5)
    waits = []
    with pytest.raises(PersistenceError):
        save_with_retry(repo, "ph", "2024-01", [make_item()], retries=3, backoff=0.5, sleep=waits.append)
    assert waits == [0.5, 1.0]


class UnreadableJsonRepository(JsonFileRepository):
    def load_month(self, pharmacy_id, month_key):
        raise PersistenceError(MESSAGES["load_failed"])


def test_subscribers_get_saved_items_without_a_re_read(tmp_path, make_item):
    repo = UnreadableJsonRepository(tmp_path)
    received = []
    repo.subscribe_month("ph", "2024-01", received.append)
    waits = []

    save_with_retry(repo, "ph", "2024-01", [make_item(name="a")], retries=3, sleep=waits.append)

    assert waits == []
    assert [[i.name for i in items] for items in received] == [["a"]]
    assert (tmp_path / "pharmacies" / "ph" / "monthlyStock" / "2024-01.json").exists()
