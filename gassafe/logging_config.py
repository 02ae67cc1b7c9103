from __future__ import annotations

import logging
import logging.config
from typing import Optional

from gassafe.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root + uvicorn loggers once, before the server starts.

    Uvicorn is launched with log_config=None so these handlers stay in charge.
    """
    resolved_level = (level or settings.log_level or "INFO").upper()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                "gassafe": {"level": resolved_level},
                "uvicorn": {"level": resolved_level},
                "uvicorn.access": {"level": "WARNING"},
                "sqlalchemy.engine": {"level": "WARNING"},
            },
            "root": {
                "handlers": ["console"],
                "level": resolved_level,
            },
        }
    )

    logging.getLogger("gassafe.logging").info("Logging configured (level=%s)", resolved_level)
