"""
Structured logging configuration for dep-promoter.

Provides consistent, machine-readable log events for workspace loading,
promotion planning and manifest writing.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """Structured logger emitting one JSON object per event."""

    def __init__(self, name: str = "dep_promoter"):
        self.logger = logging.getLogger(f"dep_promoter.{name}")
        self._setup_logger()
        self.run_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        """Setup logger with structured formatting."""
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False
            self.logger.setLevel(logging.WARNING)

    def set_run_context(
        self,
        workspace_root: Optional[str] = None,
        total_members: Optional[int] = None,
    ) -> None:
        """Set run context for logging."""
        self.run_context = {}
        if workspace_root:
            self.run_context["workspace_root"] = workspace_root
        if total_members is not None:
            self.run_context["total_members"] = total_members

    def clear_run_context(self) -> None:
        """Clear run context."""
        self.run_context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        getattr(self.logger, level)(event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        """Log info level event."""
        self._log("info", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        """Log debug level event."""
        self._log("debug", event_type, **kwargs)


# Global logger instances
_engine_logger = EventLogger("engine")
_workspace_logger = EventLogger("workspace")
_writer_logger = EventLogger("writer")

_ALL_LOGGERS = (_engine_logger, _workspace_logger, _writer_logger)


def log_plan_start(workspace_root: str, total_members: int, total_records: int) -> None:
    """Log promotion planning start."""
    for logger in _ALL_LOGGERS:
        logger.set_run_context(workspace_root, total_members)
    _engine_logger.info("plan_started", total_records=total_records)


def log_plan_complete(
    promoted_count: int, skipped_count: int, op_count: int, duration_ms: int
) -> None:
    """Log promotion planning completion."""
    _engine_logger.info(
        "plan_completed",
        promoted_groups=promoted_count,
        skipped_groups=skipped_count,
        rewrite_ops=op_count,
        duration_ms=duration_ms,
    )


def log_group_skipped(name: str, kind: str, reason: str, contributors: int) -> None:
    """Log a dependency group left untouched."""
    _engine_logger.debug(
        "group_skipped",
        dependency=name,
        kind=kind,
        reason=reason,
        contributors=contributors,
    )


def log_manifest_loaded(manifest_path: str, dependency_count: int) -> None:
    """Log a parsed member manifest."""
    _workspace_logger.debug(
        "manifest_loaded", manifest_path=manifest_path, dependencies=dependency_count
    )


def log_manifest_written(manifest_path: str, op_count: int) -> None:
    """Log a manifest written back to disk."""
    _writer_logger.info(
        "manifest_written", manifest_path=manifest_path, rewrite_ops=op_count
    )


def clear_run_context() -> None:
    """Clear run context on all loggers."""
    for logger in _ALL_LOGGERS:
        logger.clear_run_context()


def configure_logging(log_level: str = "WARNING") -> None:
    """Configure log level for all dep-promoter loggers."""
    level = getattr(logging, log_level.upper(), logging.WARNING)
    for logger in _ALL_LOGGERS:
        logger.logger.setLevel(level)
