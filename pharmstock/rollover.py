from typing import Mapping, Sequence

from .schemas import InventoryItem
from .utils import month_key, parse_month_key, sum_values, to_number


def next_month_key(key: str) -> str:
    year, month = parse_month_key(key)
    if month == 12:
        return month_key(year + 1, 1)
    return month_key(year, month + 1)


def closing_balance(item: InventoryItem) -> float:
    # Not floored: the carried opening keeps any fractional remainder.
    return to_number(item.opening) + sum_values(item.daily_incoming) - sum_values(item.daily_dispense)


def carry_forward(item: InventoryItem) -> InventoryItem:
    """Next month's row for an item: closing balance as opening, empty logs."""
    return item.model_copy(
        deep=True,
        update={
            "opening": closing_balance(item),
            "daily_dispense": {},
            "daily_incoming": {},
            "selected": False,
        },
    )


def rollover(
    snapshots: Mapping[str, Sequence[InventoryItem]], current_key: str
) -> dict[str, list[InventoryItem]]:
    """
    Returns a new month map with the month after `current_key` seeded from its
    closing balances. The input is left untouched; an existing next month is
    overwritten, so repeating the call gives the same result.
    """
    current_items = snapshots.get(current_key) or []
    updated = {key: list(items) for key, items in snapshots.items()}
    updated[next_month_key(current_key)] = [carry_forward(item) for item in current_items]
    return updated
