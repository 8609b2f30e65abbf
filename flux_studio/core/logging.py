"""
Structured Logging Configuration with structlog

Outputs JSON logs in production and colored console logs in development.
Every log includes: version, timestamp and, when set, batch_id, item_id and stage.
Provider credentials are never bound into the logging context.
"""

import sys
import logging
import structlog
from typing import Optional, Any, Dict
from datetime import datetime, timezone
from contextvars import ContextVar

# Context variables for run-scoped logging
batch_id_var: ContextVar[Optional[str]] = ContextVar("batch_id", default=None)
item_id_var: ContextVar[Optional[str]] = ContextVar("item_id", default=None)
stage_var: ContextVar[Optional[str]] = ContextVar("stage", default=None)

# Application version
APP_VERSION = "1.0.0"


def add_app_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add application context to every log entry."""
    event_dict["version"] = APP_VERSION

    batch_id = batch_id_var.get()
    if batch_id:
        event_dict.setdefault("batch_id", batch_id)

    item_id = item_id_var.get()
    if item_id:
        event_dict.setdefault("item_id", item_id)

    stage = stage_var.get()
    if stage:
        event_dict.setdefault("stage", stage)

    return event_dict


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add ISO format timestamp."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = True
):
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON; if False, output colored console logs
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Silence noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_timestamp,
            add_app_context,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.UnicodeDecoder(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class LogContext:
    """
    Context manager for setting logging context.

    Usage:
        with LogContext(batch_id="b1", item_id="abc123", stage="upload"):
            logger.info("item_upload_started")
    """

    def __init__(
        self,
        batch_id: Optional[str] = None,
        item_id: Optional[str] = None,
        stage: Optional[str] = None
    ):
        self.batch_id = batch_id
        self.item_id = item_id
        self.stage = stage
        self._batch_id_token = None
        self._item_id_token = None
        self._stage_token = None

    def __enter__(self):
        if self.batch_id:
            self._batch_id_token = batch_id_var.set(self.batch_id)
        if self.item_id:
            self._item_id_token = item_id_var.set(self.item_id)
        if self.stage:
            self._stage_token = stage_var.set(self.stage)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._stage_token:
            stage_var.reset(self._stage_token)
        if self._item_id_token:
            item_id_var.reset(self._item_id_token)
        if self._batch_id_token:
            batch_id_var.reset(self._batch_id_token)
        return False


def set_stage(stage: Optional[str]):
    """Update the current stage for the running item."""
    stage_var.set(stage)


# Example log output structure:
# {
#   "timestamp": "2024-05-20T10:00:00+00:00",
#   "level": "info",
#   "event": "item_variant_completed",
#   "stage": "poll",
#   "batch_id": "3f0c...",
#   "item_id": "550e8400-e29b-41d4-a716-446655440000",
#   "version": "1.0.0",
#   "variant": 1,
#   "outputs": 1
# }
