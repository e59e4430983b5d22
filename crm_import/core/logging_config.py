"""
Logging setup shared by the API process and the operator console.

Import runs log per batch (parse summary, sample counts, final tallies) under
the ``crm_import`` namespace. Worker threads validating row chunks log through
the same handler, so the thread name is part of every line.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Optional


_is_configured = False

# Libraries that are noisy at INFO during uploads and bulk writes.
QUIET_LOGGERS = {
    "python_multipart": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "sqlalchemy.pool": "WARNING",
    "openpyxl": "ERROR",
}


def build_logging_config(level: str) -> dict:
    log_level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "import": {
                "format": "%(asctime)s | %(levelname)-7s | %(threadName)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "import",
                "stream": "ext://sys.stdout",
                "level": log_level,
            }
        },
        "root": {
            "handlers": ["console"],
            "level": "WARNING",
        },
        "loggers": {
            "crm_import": {"level": log_level},
            "uvicorn": {"level": "INFO"},
            **{name: {"level": quiet} for name, quiet in QUIET_LOGGERS.items()},
        },
    }


def configure_logging(level: Optional[str] = None) -> None:
    """
    Install the logging configuration once per process.

    Args:
        level: level for the ``crm_import`` loggers (e.g. "DEBUG"); defaults to INFO.
    """
    global _is_configured

    if _is_configured:
        return

    dictConfig(build_logging_config(level or "INFO"))
    _is_configured = True
