import logging
import pandas as pd
from pydantic import ValidationError

from pharmstock.consumption import build_consumption
from pharmstock.pipeline import ReportPipeline
from pharmstock.schemas import GradedShortage, ShortageRecord
from pharmstock.shortages import Policy, graded_shortages, simple_shortages, summarize_graded

logger = logging.getLogger(__name__)


class ShortagePipeline(ReportPipeline):
    def __init__(
        self,
        snapshots,
        pharmacy_id: str,
        month_key: str,
        policy: Policy = "simple",
        test_mode: bool = False,
    ):
        if policy not in ("simple", "graded"):
            raise ValueError(f"Unknown shortage policy: {policy!r}")
        super().__init__(f"shortages_{policy}", snapshots, pharmacy_id, month_key, test_mode=test_mode)
        self.policy = policy
        self.status_summary["policy"] = policy

    def extract(self) -> pd.DataFrame | None:
        logger.info(f"--- Classifying shortages ({self.policy}) ---")

        if self.policy == "simple":
            records = simple_shortages(self.items, build_consumption(self.snapshots))
        else:
            records = graded_shortages(self.items)
            self.status_summary.update(summarize_graded(records).model_dump())

        self.status_summary["shortageCount"] = len(records)
        if not records:
            logger.info("✅ No shortages this month.")
            return None
        return pd.DataFrame([record.model_dump() for record in records])

    def transform(self, df: pd.DataFrame) -> list[ShortageRecord] | list[GradedShortage] | None:
        model = ShortageRecord if self.policy == "simple" else GradedShortage
        try:
            logger.info("Validating data against schema...")
            records = df.to_dict("records")
            validated_data = [model(**{str(k): v for k, v in row.items()}) for row in records]
            logger.info(f"✅ Data validation successful ({len(validated_data)} records).")
            return validated_data
        except ValidationError as e:
            logger.error("❌ Data validation failed!")
            logger.error(e)
            return None
