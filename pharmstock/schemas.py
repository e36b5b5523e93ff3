from datetime import datetime, timezone
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import to_number

UNBOUNDED = "unbounded"

ShortageStatus = Literal["critical", "warning"]
ShortagePriority = Literal["urgent", "high", "medium"]


class InventoryItem(BaseModel):
    """
    One item row of a pharmacy's monthly stock document.
    Field aliases match the persisted document keys (camelCase), so
    model_dump(by_alias=True) is exactly what gets written.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    opening: float = 0
    unit_price: float = Field(default=0, alias="unitPrice")
    daily_dispense: dict[str, Any] = Field(default_factory=dict, alias="dailyDispense")
    daily_incoming: dict[str, Any] = Field(default_factory=dict, alias="dailyIncoming")
    incoming_source: dict[str, str] = Field(default_factory=dict, alias="incomingSource")
    selected: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def _name_or_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("opening", "unit_price", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> float:
        # Negatives are kept on purpose: validate_item is the one that rejects them.
        return to_number(value)

    @field_validator("daily_dispense", "daily_incoming", mode="before")
    @classmethod
    def _stringify_days(cls, value: Any) -> dict[str, Any]:
        if not value:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("day map must be a mapping of day -> quantity")
        return {str(day): qty for day, qty in dict(value).items()}

    @field_validator("incoming_source", mode="before")
    @classmethod
    def _stringify_sources(cls, value: Any) -> dict[str, str]:
        if not value:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("incoming source must be a mapping of day -> tag")
        return {
            str(day): "" if tag is None else str(tag)
            for day, tag in dict(value).items()
        }

    @field_validator("selected", mode="before")
    @classmethod
    def _falsy_selected(cls, value: Any) -> bool:
        return bool(value)


class MonthlyStockSnapshot(BaseModel):
    """The persisted document for one pharmacy and month."""

    model_config = ConfigDict(populate_by_name=True)

    month_key: str = Field(..., alias="monthKey")
    items: list[InventoryItem] = Field(default_factory=list)
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="lastUpdated"
    )


class ConsumptionRecord(BaseModel):
    total: int = 0
    average: int = 0
    months: dict[str, int] = Field(default_factory=dict)


class SourceTotals(BaseModel):
    factory: int = 0
    company: int = 0
    scissors: int = 0


class ShortageRecord(BaseModel):
    """A row of the simple shortage list (stock vs. cross-month average)."""

    name: str
    current_stock: int
    average_consumption: int
    shortage: int
    unit_price: float = 0


class GradedShortage(BaseModel):
    """A row of the graded shortage analysis (stock vs. reorder thresholds)."""

    name: str
    current_stock: int
    avg_consumption: int
    minimum_stock: int
    reorder_point: int
    status: ShortageStatus
    priority: ShortagePriority
    suggested_order: int
    unit_price: float = 0
    estimated_value: float = 0
    days_left: int | Literal["unbounded"]


class ShortageSummary(BaseModel):
    total_shortages: int = 0
    critical_shortages: int = 0
    warning_shortages: int = 0
    total_value: int = 0


class StockOverview(BaseModel):
    total_items: int = 0
    shortages: int = 0
    available: int = 0
    low_stock: int = 0


class StockStatusRow(BaseModel):
    """Defines the data contract for one item in the stock status export."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., alias="Item")
    opening: float = Field(default=0, alias="Opening")
    factory: int = Field(default=0, alias="Factory")
    company: int = Field(default=0, alias="Company")
    scissors: int = Field(default=0, alias="Scissors")
    total_incoming: int = Field(default=0, alias="Total Incoming")
    total_dispensed: int = Field(default=0, alias="Total Dispensed")
    current_stock: int = Field(default=0, alias="Current Stock")
    unit_price: float = Field(default=0, ge=0, alias="Unit Price")
    remaining_value: float = Field(default=0, alias="Remaining Value")


class ConsumptionReportRow(BaseModel):
    """Defines the data contract for one item in the trailing consumption export."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., alias="Item")
    months: int = Field(..., ge=1, alias="Months")
    total_dispensed: float = Field(default=0, alias="Total Dispensed")
    total_incoming: float = Field(default=0, alias="Total Incoming")
    avg_dispensed: int = Field(default=0, alias="Avg Dispensed")
    avg_incoming: int = Field(default=0, alias="Avg Incoming")
    factory: float = Field(default=0, alias="Factory")
    company: float = Field(default=0, alias="Company")
    scissors: float = Field(default=0, alias="Scissors")
