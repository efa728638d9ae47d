"""Logging for the sync jobs.

Jobs run unattended from cron, so everything goes to stderr through
``logging.ini`` when the checkout has one. The Google client and urllib3 log
every HTTP round trip; they are held at their own levels so a long dated-sheet
run stays readable even with ``LOG_LEVEL=DEBUG``.
"""

from __future__ import annotations

import logging
import logging.config
import os

from race_sync.paths import logging_config_path

LIBRARY_LOG_LEVELS = {
    "googleapiclient.discovery": logging.WARNING,
    "googleapiclient.discovery_cache": logging.ERROR,
    "urllib3": logging.WARNING,
}
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger(__name__)


def resolve_level(level_name: str | None = None) -> int:
    """``level_name`` or ``LOG_LEVEL``; unknown names fall back to INFO."""
    name = (level_name or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _quiet_libraries() -> None:
    for name, level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(level)


def configure_logging(level_name: str | None = None) -> logging.Logger:
    root = logging.getLogger()
    config_path = logging_config_path()
    if config_path.is_file():
        logging.config.fileConfig(str(config_path), disable_existing_loggers=False)
    elif not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(resolve_level(level_name))
    _quiet_libraries()
    if not config_path.is_file():
        logger.debug("No logging config at %s; using stderr defaults", config_path)
    return root
