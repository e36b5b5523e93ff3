import logging

from pharmstock import settings, utils
from pharmstock.logger import setup_logger
from pharmstock.persistence import JsonFileRepository
from pharmstock.store import InventoryStore

logger = logging.getLogger(__name__)


def run_rollover() -> str | None:
    """Carries the closing balances of REPORT_MONTH (default: this month) into the next month."""
    if not settings.PHARMACY_ID:
        logger.error("❌ PHARMACY_ID is not set. Nothing to roll over.")
        return None

    year, month = utils.parse_month_key(settings.REPORT_MONTH or utils.current_month_key())

    store = InventoryStore(JsonFileRepository(settings.DATA_DIR), settings.PHARMACY_ID)
    if not store.load():
        logger.error(f"❌ {store.error}")
        return None

    store.set_year(year)
    store.set_month(month)
    if not store.items:
        logger.warning(f"⚠️ {store.month_key} has no items; the next month will be empty.")

    target = store.rollover()
    if store.error:
        logger.error(f"❌ Rollover into {target} was not saved: {store.error}")
        return None

    logger.info(f"✅ Opening balances for {target} saved ({len(store.snapshots[target])} items).")
    return target


if __name__ == "__main__":
    setup_logger()
    run_rollover()
