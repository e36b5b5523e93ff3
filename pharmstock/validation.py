from .errors import MESSAGES, ItemValidationError
from .schemas import InventoryItem
from .utils import to_number


def has_movement(item: InventoryItem) -> bool:
    """True when the row carries any stock data at all."""
    return (
        to_number(item.opening) > 0
        or any(to_number(v) > 0 for v in item.daily_dispense.values())
        or any(to_number(v) > 0 for v in item.daily_incoming.values())
    )


def validate_item(item: InventoryItem) -> bool:
    """
    Pre-save checks for one item. Raises ItemValidationError with the message
    shown to the user.

    A blank name (whitespace only) is accepted for a freshly added row with no
    data yet, and rejected once the row has stock data. Opening balance and
    unit price must not be negative.
    """
    if item.name and item.name.strip() == "":
        if has_movement(item):
            raise ItemValidationError(MESSAGES["name_required"])
        return True

    if to_number(item.opening) < 0:
        raise ItemValidationError(MESSAGES["negative_opening"])
    if to_number(item.unit_price) < 0:
        raise ItemValidationError(MESSAGES["negative_unit_price"])
    return True
