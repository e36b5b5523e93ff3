"""
Shortage classification.

Two report types use two different policies, and both stay:
- simple: current stock against the cross-month average consumption
  (quick shortage lists and exports).
- graded: current stock against minimum/reorder thresholds derived from the
  within-month daily dispense mean (the shortage analysis view).
Callers pick one explicitly.
"""
import math
from typing import Iterable, Literal, Mapping

from . import settings
from .consumption import average_consumption
from .ledger import remaining_stock
from .schemas import (
    UNBOUNDED,
    ConsumptionRecord,
    GradedShortage,
    InventoryItem,
    ShortageRecord,
    ShortageSummary,
)
from .utils import to_number

Policy = Literal["simple", "graded"]

PRIORITY_RANK = {"urgent": 0, "high": 1, "medium": 2}


def has_name(item: InventoryItem | None) -> bool:
    """Rows with a blank or whitespace-only name are left out of every shortage list."""
    return item is not None and bool(item.name.strip())


def simple_shortages(
    items: Iterable[InventoryItem],
    consumption: Mapping[str, ConsumptionRecord],
    default_average: int | None = None,
) -> list[ShortageRecord]:
    """Items at or below their average consumption, biggest shortage first."""
    shortages = []
    for item in items:
        if not has_name(item):
            continue

        current_stock = remaining_stock(item)
        average = average_consumption(consumption, item.name, default_average)

        if current_stock <= average:
            shortages.append(
                ShortageRecord(
                    name=item.name,
                    current_stock=current_stock,
                    average_consumption=average,
                    shortage=max(0, average - current_stock),
                    unit_price=to_number(item.unit_price),
                )
            )

    # sorted() is stable, so equal shortages keep list order.
    return sorted(shortages, key=lambda s: s.shortage, reverse=True)


def daily_average(item: InventoryItem) -> int:
    """floor(mean) of the item's daily dispense entries; 0 for an empty log."""
    values = list(item.daily_dispense.values())
    if not values:
        return 0
    return math.floor(sum(to_number(v) for v in values) / len(values))


def grade_item(item: InventoryItem) -> GradedShortage | None:
    """Classifies one item; returns None when its stock is normal."""
    current_stock = remaining_stock(item)
    avg = daily_average(item)

    minimum_stock = max(settings.MIN_STOCK_FLOOR, avg * settings.MIN_STOCK_DAYS)
    reorder_point = max(settings.REORDER_POINT_FLOOR, avg * settings.REORDER_DAYS)

    if current_stock <= 0:
        status, priority = "critical", "urgent"
        suggested_order = reorder_point
    elif current_stock <= minimum_stock:
        status, priority = "critical", "high"
        suggested_order = reorder_point - current_stock
    elif current_stock <= reorder_point:
        status, priority = "warning", "medium"
        suggested_order = reorder_point - current_stock
    else:
        return None

    unit_price = to_number(item.unit_price)
    return GradedShortage(
        name=item.name,
        current_stock=current_stock,
        avg_consumption=avg,
        minimum_stock=minimum_stock,
        reorder_point=reorder_point,
        status=status,
        priority=priority,
        suggested_order=suggested_order,
        unit_price=unit_price,
        estimated_value=suggested_order * unit_price,
        days_left=math.floor(current_stock / avg) if avg > 0 else UNBOUNDED,
    )


def _graded_sort_key(record: GradedShortage) -> tuple[int, float]:
    days = math.inf if record.days_left == UNBOUNDED else record.days_left
    return PRIORITY_RANK[record.priority], days


def graded_shortages(items: Iterable[InventoryItem]) -> list[GradedShortage]:
    """Critical and warning items, most urgent first, then fewest days left."""
    graded = []
    for item in items:
        if not has_name(item):
            continue
        record = grade_item(item)
        if record is not None:
            graded.append(record)
    return sorted(graded, key=_graded_sort_key)


def summarize_graded(records: Iterable[GradedShortage]) -> ShortageSummary:
    records = list(records)
    return ShortageSummary(
        total_shortages=len(records),
        critical_shortages=sum(1 for r in records if r.status == "critical"),
        warning_shortages=sum(1 for r in records if r.status == "warning"),
        total_value=math.floor(sum(r.estimated_value for r in records)),
    )


def classify(
    items: Iterable[InventoryItem],
    policy: Policy,
    consumption: Mapping[str, ConsumptionRecord] | None = None,
) -> list[ShortageRecord] | list[GradedShortage]:
    if policy == "simple":
        return simple_shortages(items, consumption or {})
    if policy == "graded":
        return graded_shortages(items)
    raise ValueError(f"Unknown shortage policy: {policy!r}")
