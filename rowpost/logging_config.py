"""
Custom logging configuration that keeps payload echoes short
"""

import logging
import logging.config
import os
from typing import Any, Dict, Optional

DEFAULT_MAX_MESSAGE_LENGTH = 2000


class TruncateFilter(logging.Filter):
    """Filter that shortens oversized messages (e.g. echoed row payloads)."""

    def __init__(self, max_length: int = DEFAULT_MAX_MESSAGE_LENGTH):
        super().__init__()
        self.max_length = max_length

    def filter(self, record: logging.LogRecord) -> bool:
        """Truncate the rendered message; never drops a record."""
        message = record.getMessage()
        if len(message) > self.max_length:
            record.msg = f"{message[:self.max_length]}... [{len(message) - self.max_length} chars truncated]"
            record.args = None
        return True


def get_logging_config(level: Optional[str] = None) -> Dict[str, Any]:
    """Get logging configuration with payload truncation."""
    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "truncate_filter": {
                "()": TruncateFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
                "filters": ["truncate_filter"]
            }
        },
        "loggers": {
            "rowpost": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            "httpx": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False
            }
        },
        "root": {
            "level": "WARNING",
            "handlers": ["default"]
        }
    }


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the rowpost logging configuration."""
    logging.config.dictConfig(get_logging_config(level))
