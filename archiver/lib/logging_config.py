"""Structured logging configuration for the archiver process."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional


class StructuredFormatter(logging.Formatter):
    """JSON formatter, one object per line."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Pipeline run (and stage) the record belongs to
        if getattr(record, "run_id", None):
            log_data["run_id"] = record.run_id
        if getattr(record, "stage", None):
            log_data["stage"] = record.stage

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        # Flatten extra fields passed as extra_<name>
        for key, value in record.__dict__.items():
            if key.startswith("extra_"):
                log_data[key.replace("extra_", "", 1)] = value

        return json.dumps(log_data, default=str)


class RunContextFilter(logging.Filter):
    """Stamp records with the pipeline run that is executing.

    The runner binds its PipelineContext for the length of a run, so every
    record logged meanwhile carries the run ID and the stage in progress.
    """

    def __init__(self):
        super().__init__()
        self._context = None

    def bind(self, context) -> None:
        """Attach a running PipelineContext, or detach with None."""
        self._context = context

    @property
    def run_id(self) -> Optional[str]:
        return self._context.run_id if self._context is not None else None

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = self._context
        if ctx is None:
            return True
        if not hasattr(record, "run_id"):
            record.run_id = ctx.run_id
        state = getattr(ctx.state, "value", ctx.state)
        if state != "idle" and not hasattr(record, "stage"):
            record.stage = state
        return True


def setup_logging(service_name: str, level: int | str = logging.INFO) -> RunContextFilter:
    """Configure structured logging on the root logger.

    Args:
        service_name: Name reported in every record (e.g., "archiver")
        level: Logging level as int or name (DEBUG, INFO, WARNING, ...)

    Returns:
        RunContextFilter the scheduler uses to tag records with run IDs
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter(service_name))

    run_filter = RunContextFilter()
    handler.addFilter(run_filter)

    if isinstance(level, str):
        level = getattr(logging, level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Silence noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(max(level, logging.WARNING))

    return run_filter


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    exc_info: Any = None,
    **extra_fields: Any,
) -> None:
    """Log a message with additional structured fields.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Log message
        exc_info: Optional exception to attach
        **extra_fields: Fields emitted alongside the message
    """
    extra = {f"extra_{k}": v for k, v in extra_fields.items()}
    log_method = getattr(logger, level.lower())
    log_method(message, extra=extra, exc_info=exc_info)
