"""Structured logging configuration for engine and job events."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from flowhub.core.config_file import get_settings

settings = get_settings()

# Logger for engine lifecycle events (executions, subscriptions, jobs)
engine_logger = logging.getLogger("flowhub.engine")

# Root logger for the application
app_logger = logging.getLogger("flowhub")


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = getattr(record, "event_data", None)
        if extra:
            payload.update(extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    Attach a console handler to the application logger.

    Args:
        level: Log level name (defaults to LOG_LEVEL setting).
        log_format: "human" or "json" (defaults to LOG_FORMAT setting).
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    app_logger.setLevel(getattr(logging, level_name, logging.INFO))

    if app_logger.handlers:
        return

    console_handler = logging.StreamHandler(sys.stdout)
    if (log_format or settings.LOG_FORMAT) == "json":
        console_handler.setFormatter(JsonFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    app_logger.addHandler(console_handler)


configure_logging()


def _stringify(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    return value


def log_engine_event(event: str, level: int = logging.INFO, **fields: Any) -> None:
    """
    Log an engine lifecycle event with structured fields.

    Args:
        event: Event name (e.g., "execution_completed", "webhook_rejected").
        level: Logging level.
        **fields: Identifiers and details (execution_id, flow_id, subscription_id...).
    """
    event_data = {"event": event, **{k: _stringify(v) for k, v in fields.items()}}
    details = ", ".join(f"{k}={v}" for k, v in event_data.items() if k != "event")
    engine_logger.log(level, f"{event} - {details}", extra={"event_data": event_data})
