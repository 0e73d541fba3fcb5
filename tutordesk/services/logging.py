"""Root logger setup for the directory API server.

Level and file path come from Settings (LOG_LEVEL, LOG_FILE). At DEBUG the
query coordinator logs the chosen strategy and timing of every query.
"""

import logging
import sys
from pathlib import Path

from tutordesk.config import Settings, get_settings

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_log_level(name: str) -> int:
    """Logging level for a level name in any case; unknown names give INFO."""
    return logging.getLevelNamesMapping().get(name.strip().upper(), logging.INFO)


def setup_server_logging(settings: Settings | None = None) -> None:
    """Send every logger to stdout and the configured log file.

    Handlers already on the root logger are replaced.
    """
    settings = settings or get_settings()
    level = resolve_log_level(settings.log_level)

    log_path = Path(settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    for handler in (logging.StreamHandler(sys.stdout), logging.FileHandler(log_path)):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
