import pytest

from pharmstock.rollover import next_month_key, rollover


def test_next_month_key():
    assert next_month_key("2024-01") == "2024-02"
    assert next_month_key("2024-09") == "2024-10"
    assert next_month_key("2024-12") == "2025-01"


@pytest.mark.parametrize("key", ["2024-13", "2024-1", "24-01", ""])
def test_next_month_key_rejects_bad_keys(key):
    with pytest.raises(ValueError):
        next_month_key(key)


def test_closing_balance_becomes_next_opening(make_item):
    item = make_item(
        opening=100,
        unit_price=4.5,
        incoming={1: 20},
        dispense={1: 30},
        sources={1: "مصنع"},
    )
    item.selected = True
    result = rollover({"2024-01": [item]}, "2024-01")

    (carried,) = result["2024-02"]
    assert carried.opening == 90
    assert carried.daily_dispense == {}
    assert carried.daily_incoming == {}
    assert carried.selected is False
    assert carried.name == item.name
    assert carried.unit_price == 4.5
    assert carried.incoming_source == {"1": "مصنع"}


def test_december_rolls_into_next_year(make_item):
    result = rollover({"2024-12": [make_item(opening=3)]}, "2024-12")
    assert "2025-01" in result
    assert result["2025-01"][0].opening == 3


def test_fractions_are_carried_unfloored(make_item):
    result = rollover({"2024-01": [make_item(opening=10.5, dispense={1: 0.25})]}, "2024-01")
    assert result["2024-02"][0].opening == 10.25


def test_input_is_not_mutated(make_item):
    item = make_item(opening=10, dispense={1: 4})
    snapshots = {"2024-01": [item]}
    result = rollover(snapshots, "2024-01")
    assert set(snapshots) == {"2024-01"}
    assert item.opening == 10
    assert item.daily_dispense == {"1": 4}
    assert result["2024-01"] == [item]


def test_repeated_rollover_overwrites_with_same_result(make_item):
    snapshots = {
        "2024-01": [make_item(opening=10, incoming={2: 5})],
        "2024-02": [make_item(name="stale", opening=999)],
    }
    first = rollover(snapshots, "2024-01")
    second = rollover(first, "2024-01")
    assert first["2024-02"] == second["2024-02"]
    assert [i.name for i in first["2024-02"]] == ["Panadol"]
    assert first["2024-02"][0].opening == 15


def test_missing_current_month_gives_empty_next_month():
    assert rollover({}, "2024-05") == {"2024-06": []}
