import os
from pathlib import Path
from dotenv import load_dotenv

# --- Base Directory ---
BASE_DIR = Path(__file__).resolve().parent.parent

# --- Load Environment Variables ---
load_dotenv(BASE_DIR / ".env")

# --- Path Configuration ---
# Use Path objects for robust, OS-agnostic path handling.
DATA_DIR = BASE_DIR / os.getenv("DATA_DIR", "data")
OUTPUT_DIR = BASE_DIR / os.getenv("OUTPUT_DIR", "output")
LOG_DIR = BASE_DIR / os.getenv("LOG_DIR", "logs")

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE_NAME = os.getenv("LOG_FILE_NAME", "pharmstock.log")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", str(5 * 1024 * 1024)))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "3"))
# Third-party loggers that only get WARNING and above.
QUIET_LOGGERS = ("urllib3", "requests")

# --- Outputs ---
SAVE_JSON_OUTPUT = os.getenv("SAVE_JSON_OUTPUT", "true").lower() in ("1", "true", "yes")
WEBHOOK_URL = os.getenv("WEBHOOK_URL")

# --- Report Scope ---
# Which pharmacy and month the entry scripts operate on, e.g. "2024-01".
PHARMACY_ID = os.getenv("PHARMACY_ID")
REPORT_MONTH = os.getenv("REPORT_MONTH")

# --- Shared Business Logic ---
# Fallback average when an item has no consumption history at all.
DEFAULT_AVERAGE_CONSUMPTION = int(os.getenv("DEFAULT_AVERAGE_CONSUMPTION", "10"))

# Graded shortage thresholds: max(floor, avg * days).
MIN_STOCK_FLOOR = int(os.getenv("MIN_STOCK_FLOOR", "10"))
MIN_STOCK_DAYS = int(os.getenv("MIN_STOCK_DAYS", "5"))
REORDER_POINT_FLOOR = int(os.getenv("REORDER_POINT_FLOOR", "20"))
REORDER_DAYS = int(os.getenv("REORDER_DAYS", "10"))

LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", "10"))
CONSUMPTION_WINDOW_MONTHS = int(os.getenv("CONSUMPTION_WINDOW_MONTHS", "3"))

# --- Persistence Timing ---
UPDATE_DEBOUNCE_SECONDS = float(os.getenv("UPDATE_DEBOUNCE_SECONDS", "0.5"))
DISCRETE_SAVE_DELAY_SECONDS = float(os.getenv("DISCRETE_SAVE_DELAY_SECONDS", "0.1"))
SAVE_RETRIES = int(os.getenv("SAVE_RETRIES", "3"))
SAVE_RETRY_BACKOFF_SECONDS = float(os.getenv("SAVE_RETRY_BACKOFF_SECONDS", "1.0"))

# Incoming source tags as stored on each day entry.
INCOMING_SOURCE_LABELS = {
    "factory": "مصنع",
    "company": "هيئة شراء",
    "scissors": "مقصه",
}

# English tag names accepted as well when bucketing incoming by source.
INCOMING_SOURCE_ALIASES = {
    "factory": "factory",
    "company": "company",
    "authority": "company",
    "scissors": "scissors",
    "maqsa": "scissors",
}
