"""Structured logging configuration for the MBCB estimator."""
import json
import logging
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    """JSON structured log formatter for production."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        if hasattr(record, "quote_configuration"):
            log_entry["quote_configuration"] = record.quote_configuration
        return json.dumps(log_entry)


def build_logging_config(level: str = "INFO", json_output: bool = False) -> dict:
    """Return a ``LOGGING`` dict for Django settings."""
    level = level.upper() if isinstance(getattr(logging, level.upper(), None), int) else "INFO"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JSONFormatter},
            "plain": {"format": "%(asctime)s [%(name)s] %(levelname)s: %(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "json" if json_output else "plain",
            },
        },
        "root": {"handlers": ["console"], "level": level},
        "loggers": {
            # Suppress noisy loggers
            "django.server": {"level": "WARNING"},
            "django.db.backends": {"level": "WARNING"},
        },
    }
