import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

import pandas as pd

from pharmstock import data_handler
from pharmstock.schemas import InventoryItem

logger = logging.getLogger(__name__)


class ReportPipeline(ABC):
    """
    Abstract base class for report exports (stock status, consumption, shortages).
    Follows an Extract -> Transform -> Load (ETL) pattern over one pharmacy's
    loaded months; it only reads the ledger, never writes it.
    """

    def __init__(
        self,
        report_type: str,
        snapshots: Mapping[str, Sequence[InventoryItem]],
        pharmacy_id: str,
        month_key: str,
        test_mode: bool = False,
    ):
        self.report_type = report_type
        self.snapshots = snapshots
        self.pharmacy_id = pharmacy_id
        self.month_key = month_key
        self.test_mode = test_mode
        # Run metadata sent alongside the records
        self.status_summary: dict[str, Any] = {
            "pharmacyId": pharmacy_id,
            "monthKey": month_key,
        }

    @property
    def items(self) -> list[InventoryItem]:
        return list(self.snapshots.get(self.month_key) or [])

    def run(self) -> list[Any] | None:
        """
        Orchestrates the pipeline execution.
        """
        logger.info(f"🚀 STEP: {self.report_type.upper()} REPORT ({self.pharmacy_id} {self.month_key})")
        logger.info("-" * 30)

        # --- 1. EXTRACT ---
        raw_data = self.extract()
        if raw_data is None or raw_data.empty:
            logger.warning(f"⚠️ No data extracted for {self.report_type}. Sending empty report.")
            self.load([])
            return []

        # --- 2. TRANSFORM ---
        validated_data = self.transform(raw_data)
        if validated_data is None:
            logger.error(f"❌ Transformation failed for {self.report_type}.")
            return None

        # --- 3. LOAD ---
        self.load(validated_data)

        logger.info(f"✅ {self.report_type.capitalize()} Pipeline Finished.\n")
        logger.info("=" * 60)
        return validated_data

    @abstractmethod
    def extract(self) -> pd.DataFrame | None:
        """
        Builds the raw report table from the ledger.
        Should also populate self.status_summary with anything worth reporting.
        """
        pass

    @abstractmethod
    def transform(self, df: pd.DataFrame) -> list[Any] | None:
        """
        Derives report columns and validates every row.
        Returns a list of Pydantic models, or None if validation fails.
        """
        pass

    def load(self, validated_data: list[Any]):
        """
        Saves data to disk and posts to webhook.
        """
        logger.info("\n--- Final Status Summary ---")
        for key, value in self.status_summary.items():
            logger.info(f"{key}: {value}")

        if validated_data:
            data_handler.save_outputs(
                validated_data, f"{self.report_type}_{self.pharmacy_id}_{self.month_key}"
            )
        else:
            logger.warning("No data to save to disk.")

        if not self.test_mode:
            data_handler.post_to_webhook(
                validated_data=validated_data,
                metadata=self.status_summary,
                report_type=self.report_type,
            )
        else:
            logger.info("🧪 Test Mode: Skipping webhook post.")
