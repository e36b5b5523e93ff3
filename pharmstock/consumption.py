import logging
import math
from typing import Mapping, Sequence

from . import settings
from .schemas import ConsumptionRecord, InventoryItem
from .utils import floor_sum

logger = logging.getLogger(__name__)

SnapshotMap = Mapping[str, Sequence[InventoryItem]]


def build_consumption(snapshots: SnapshotMap) -> dict[str, ConsumptionRecord]:
    """
    Folds every month's dispense log into per-item history, keyed by item name.
    - Each month contributes floor(sum of daily dispense) for the item.
    - Items without a name are skipped entirely.
    - average = floor(total / number of months the item appeared in).
    """
    records: dict[str, ConsumptionRecord] = {}

    for key, items in snapshots.items():
        for item in items or []:
            if item is None or not item.name:
                continue
            month_total = floor_sum(item.daily_dispense)
            record = records.setdefault(item.name, ConsumptionRecord())
            record.total += month_total
            record.months[key] = month_total

    for record in records.values():
        if record.months:
            record.average = math.floor(record.total / len(record.months))
        else:
            record.average = settings.DEFAULT_AVERAGE_CONSUMPTION

    logger.debug(f"Built consumption history for {len(records)} items.")
    return records


def average_consumption(
    records: Mapping[str, ConsumptionRecord],
    name: str,
    default: int | None = None,
) -> int:
    """The item's cross-month average, or the business default (10) with no history."""
    if default is None:
        default = settings.DEFAULT_AVERAGE_CONSUMPTION
    record = records.get(name)
    if record is None or not record.months:
        return default
    return record.average


def trailing_month_keys(
    snapshots: SnapshotMap,
    window: int | None = None,
    until: str | None = None,
) -> list[str]:
    """The last `window` month keys in order, optionally ignoring months after `until`."""
    if window is None:
        window = settings.CONSUMPTION_WINDOW_MONTHS
    if window <= 0:
        return []
    keys = sorted(k for k in snapshots if until is None or k <= until)
    return keys[-window:]
