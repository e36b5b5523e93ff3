import logging
import pandas as pd
from pydantic import ValidationError

from pharmstock import ledger
from pharmstock.pipeline import ReportPipeline
from pharmstock.schemas import StockStatusRow
from pharmstock.utils import to_number

logger = logging.getLogger(__name__)


class StockStatusPipeline(ReportPipeline):
    """Per-item balance sheet of one month: opening, incoming by source, dispensed, current."""

    def __init__(self, snapshots, pharmacy_id: str, month_key: str, test_mode: bool = False):
        super().__init__("stock_status", snapshots, pharmacy_id, month_key, test_mode=test_mode)

    def extract(self) -> pd.DataFrame | None:
        logger.info("--- Building Stock Status ---")

        rows = []
        for item in self.items:
            if not item.name:
                continue
            sources = ledger.total_by_source(item)
            rows.append(
                {
                    "name": item.name,
                    "opening": to_number(item.opening),
                    "factory": sources.factory,
                    "company": sources.company,
                    "scissors": sources.scissors,
                    "total_incoming": ledger.total_incoming(item),
                    "total_dispensed": ledger.total_dispensed(item),
                    "current_stock": ledger.remaining_stock(item),
                    "unit_price": to_number(item.unit_price),
                }
            )

        overview = ledger.stock_overview(item for item in self.items if item.name)
        self.status_summary.update(overview.model_dump())

        if not rows:
            return None
        logger.info(f"  > {len(rows)} items, {overview.shortages} out of stock")
        return pd.DataFrame(rows)

    def transform(self, df: pd.DataFrame) -> list[StockStatusRow] | None:
        df["remaining_value"] = (df["current_stock"] * df["unit_price"]).round(2)

        try:
            logger.info("Validating data against schema...")
            validated_data = [StockStatusRow(**row) for row in df.to_dict("records")]
            logger.info(f"✅ Data validation successful ({len(validated_data)} records).")
            return validated_data
        except ValidationError as e:
            logger.error("❌ Data validation failed!")
            logger.error(e)
            return None
