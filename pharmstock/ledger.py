"""
Per-item stock arithmetic.

Every quantity in a day map is coerced with utils.to_number, and each total
is floored once after summing. Some data-entry screens used to floor every
entry before adding them up; the post-sum floor is the one kept here.
"""
import math
from typing import Iterable

from . import settings
from .schemas import InventoryItem, SourceTotals, StockOverview
from .utils import floor_sum, to_number


def total_incoming(item: InventoryItem) -> int:
    return floor_sum(item.daily_incoming)


def total_dispensed(item: InventoryItem) -> int:
    return floor_sum(item.daily_dispense)


def remaining_stock(item: InventoryItem | None) -> int:
    """floor(opening) + floor(sum incoming) - floor(sum dispensed)."""
    if item is None:
        return 0
    opening = math.floor(to_number(item.opening))
    return opening + total_incoming(item) - total_dispensed(item)


def remaining_value(item: InventoryItem) -> float:
    return remaining_stock(item) * to_number(item.unit_price)


def source_bucket(tag: str | None) -> str | None:
    """Maps a stored source tag to 'factory', 'company' or 'scissors' (or None)."""
    if not tag:
        return None
    tag = tag.strip()
    for bucket, label in settings.INCOMING_SOURCE_LABELS.items():
        if tag == label:
            return bucket
    return settings.INCOMING_SOURCE_ALIASES.get(tag.lower())


def incoming_by_source(item: InventoryItem) -> dict[str, float]:
    """Unfloored incoming per source bucket; untagged days land in no bucket."""
    buckets = {bucket: 0.0 for bucket in settings.INCOMING_SOURCE_LABELS}
    for day, amount in item.daily_incoming.items():
        bucket = source_bucket(item.incoming_source.get(day))
        if bucket is not None:
            buckets[bucket] += to_number(amount)
    return buckets


def total_by_source(item: InventoryItem) -> SourceTotals:
    buckets = incoming_by_source(item)
    return SourceTotals(**{bucket: math.floor(total) for bucket, total in buckets.items()})


def stock_overview(items: Iterable[InventoryItem]) -> StockOverview:
    """Headline counts for a month: out of stock, available, and running low."""
    overview = StockOverview()
    for item in items:
        stock = remaining_stock(item)
        overview.total_items += 1
        if stock <= 0:
            overview.shortages += 1
        else:
            overview.available += 1
            if stock <= settings.LOW_STOCK_THRESHOLD:
                overview.low_stock += 1
    return overview
