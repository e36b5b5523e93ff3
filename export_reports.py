import logging

from pharmstock import settings, utils
from pharmstock.errors import PersistenceError
from pharmstock.logger import setup_logger
from pharmstock.persistence import JsonFileRepository
from pharmstock.pipelines.consumption import ConsumptionReportPipeline
from pharmstock.pipelines.shortages import ShortagePipeline
from pharmstock.pipelines.stock_status import StockStatusPipeline

logger = logging.getLogger(__name__)


def run_reports(test_mode: bool = False):
    """Exports stock status, consumption and both shortage reports for one pharmacy month."""
    if not settings.PHARMACY_ID:
        logger.error("❌ PHARMACY_ID is not set. Nothing to export.")
        return

    month_key = settings.REPORT_MONTH or utils.current_month_key()
    logger.info(f"--- Exporting reports for {settings.PHARMACY_ID} / {month_key} ---")

    repository = JsonFileRepository(settings.DATA_DIR)
    try:
        snapshots = repository.load_all(settings.PHARMACY_ID)
    except PersistenceError as e:
        logger.error(f"❌ {e.message}")
        return

    if month_key not in snapshots:
        logger.warning(f"⚠️ No stock document for {month_key}; reports will be empty.")

    pipelines = [
        StockStatusPipeline(snapshots, settings.PHARMACY_ID, month_key, test_mode=test_mode),
        ConsumptionReportPipeline(snapshots, settings.PHARMACY_ID, month_key, test_mode=test_mode),
        ShortagePipeline(snapshots, settings.PHARMACY_ID, month_key, policy="simple", test_mode=test_mode),
        ShortagePipeline(snapshots, settings.PHARMACY_ID, month_key, policy="graded", test_mode=test_mode),
    ]
    for pipeline in pipelines:
        pipeline.run()

    logger.info("\n--- Process Finished Successfully ---")


if __name__ == "__main__":
    setup_logger()
    run_reports()
