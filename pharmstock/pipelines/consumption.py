import logging
import pandas as pd
from pydantic import ValidationError

from pharmstock import ledger, settings
from pharmstock.consumption import trailing_month_keys
from pharmstock.pipeline import ReportPipeline
from pharmstock.schemas import ConsumptionReportRow
from pharmstock.utils import round_half_up, sum_values

logger = logging.getLogger(__name__)


class ConsumptionReportPipeline(ReportPipeline):
    """
    Dispensed and incoming totals per item over the trailing months
    (default three) that end at the report month.
    """

    def __init__(
        self,
        snapshots,
        pharmacy_id: str,
        month_key: str,
        window: int | None = None,
        test_mode: bool = False,
    ):
        super().__init__("consumption", snapshots, pharmacy_id, month_key, test_mode=test_mode)
        self.window = window or settings.CONSUMPTION_WINDOW_MONTHS

    def extract(self) -> pd.DataFrame | None:
        month_keys = trailing_month_keys(self.snapshots, self.window, until=self.month_key)
        logger.info(f"--- Consumption window: {', '.join(month_keys) or 'no months'} ---")
        self.status_summary["months"] = month_keys

        # One long-format row per item per month.
        rows = []
        for key in month_keys:
            for item in self.snapshots.get(key) or []:
                if not item.name:
                    continue
                rows.append(
                    {
                        "month_key": key,
                        "name": item.name,
                        "dispensed": sum_values(item.daily_dispense),
                        "incoming": sum_values(item.daily_incoming),
                        **ledger.incoming_by_source(item),
                    }
                )

        if not rows:
            return None
        return pd.DataFrame(rows)

    def transform(self, df: pd.DataFrame) -> list[ConsumptionReportRow] | None:
        grouped = (
            df.groupby("name", sort=False)
            .agg(
                months=("month_key", "count"),
                total_dispensed=("dispensed", "sum"),
                total_incoming=("incoming", "sum"),
                factory=("factory", "sum"),
                company=("company", "sum"),
                scissors=("scissors", "sum"),
            )
            .reset_index()
        )
        grouped["avg_dispensed"] = (grouped["total_dispensed"] / grouped["months"]).apply(round_half_up)
        grouped["avg_incoming"] = (grouped["total_incoming"] / grouped["months"]).apply(round_half_up)

        try:
            logger.info("Validating data against schema...")
            validated_data = [ConsumptionReportRow(**row) for row in grouped.to_dict("records")]
            logger.info(f"✅ Data validation successful ({len(validated_data)} records).")
            return validated_data
        except ValidationError as e:
            logger.error("❌ Data validation failed!")
            logger.error(e)
            return None
