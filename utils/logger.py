"""
utils/logger.py
---------------
Logging setup for storekeeper.

The root logger writes to stdout at LOG_LEVEL. The data-access packages
(db, repositories) have their own level, DB_LOG_LEVEL, so per-statement and
per-connection DEBUG events can be switched on without making the rest of
the application verbose.
"""

import logging
import sys

import config

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DATA_ACCESS_LOGGERS = ("db", "repositories")

_configured = False


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: str = config.LOG_LEVEL, db_level: str = config.DB_LOG_LEVEL) -> None:
    """
    Attach the stdout handler to the root logger and apply both levels.
    Calling it again only changes the levels.
    """
    global _configured
    root = logging.getLogger()
    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        root.addHandler(handler)
        _configured = True
    root.setLevel(_level(level))
    for name in DATA_ACCESS_LOGGERS:
        logging.getLogger(name).setLevel(_level(db_level))


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger, configuring logging on first use.

    Args:
        name: Usually ``__name__`` of the calling module.
    """
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
