import math
import re
from datetime import datetime
from typing import Any

MONTH_KEY_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def to_number(value: Any) -> float:
    """
    Coerces a stored quantity to a float.
    Missing, empty, non-numeric and NaN values all count as 0; bad data is
    never an error anywhere in the ledger.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip()) if value.strip() else 0.0
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(number):
        return 0.0
    return number


def sum_values(mapping: dict | None) -> float:
    """Sums every value of a day map, coercing each entry (no flooring)."""
    return sum(to_number(v) for v in (mapping or {}).values())


def floor_sum(mapping: dict | None) -> int:
    """Sums first, floors once."""
    return math.floor(sum_values(mapping))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def month_key(year: int, month: int) -> str:
    """Builds the '{year}-{MM}' key for a 1-based month."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    return f"{year}-{month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    """Returns (year, month) for a '{year}-{MM}' key."""
    match = MONTH_KEY_PATTERN.match(key or "")
    if not match:
        raise ValueError(f"Invalid month key: {key!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month key: {key!r}")
    return year, month


def current_month_key() -> str:
    now = datetime.now()
    return month_key(now.year, now.month)


def get_date_suffix_for_filename() -> str:
    """Returns the current date as a YYYY-MM-DD string for filenames."""
    return datetime.now().strftime("%Y-%m-%d")
