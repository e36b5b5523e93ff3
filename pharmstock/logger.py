import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from . import settings


def resolve_level(level: int | str | None) -> int:
    """Accepts a logging constant or a name like "debug"; unknown names fall back to INFO."""
    if level is None:
        level = settings.LOG_LEVEL
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    name: str | None = None,
    log_level: int | str | None = None,
    log_dir: Path | None = None,
) -> logging.Logger:
    """
    Configures console and rotating-file output for the entry scripts.
    Level, file name and rotation come from settings (LOG_* in .env).
    Library modules only call logging.getLogger(__name__).
    """
    level = resolve_level(log_level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    log_dir = Path(log_dir) if log_dir is not None else settings.LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_dir / settings.LOG_FILE_NAME,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(file_handler)

    for quiet in settings.QUIET_LOGGERS:
        logging.getLogger(quiet).setLevel(max(level, logging.WARNING))

    return logger
