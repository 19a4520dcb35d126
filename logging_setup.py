"""
Logging setup shared by the API server, the scheduler and the CLI.

Logs go to stdout and, when a log directory is configured, to a daily file
named ``carbon_YYYY-MM-DD.log``.
"""

import logging
import sys
from datetime import date
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", log_dir: str | None = None) -> Path | None:
    """Configure application-wide logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the daily log file; stdout only when empty

    Returns:
        Path of the log file, if one was opened
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file: Path | None = None
    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / f"carbon_{date.today().isoformat()}.log"
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    logging.getLogger(__name__).info("Logging initialised (level=%s, file=%s)", level.upper(), log_file)
    return log_file
