"""
Error handling for dep-promoter.

Fatal conditions are raised as ``PromoterError`` subclasses. Non-fatal ones
(groups left untouched, unreadable files that are reported before raising)
go through a single ``ErrorHandler`` that logs them with credentials
stripped, counts them per category and notifies registered callbacks.
"""

import logging
import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional


class ErrorLevel(Enum):
    INFO = "INFO"
    ERROR = "ERROR"


class ErrorCategory(Enum):
    PARSING = "PARSING"
    FILESYSTEM = "FILESYSTEM"
    PLANNING = "PLANNING"


class PromoterError(Exception):
    """Base class for fatal dep-promoter failures."""


class MalformedInputError(PromoterError):
    """A member declaration cannot be normalized (duplicate or dangling)."""

    def __init__(self, member_id: str, name: str, kind: str, message: str = ""):
        self.member_id = member_id
        self.name = name
        self.kind = kind
        detail = message or "duplicate dependency declaration"
        super().__init__(f"{detail}: member '{member_id}', {kind} dependency '{name}'")


class ManifestError(PromoterError):
    """A manifest could not be read, parsed or updated."""

    def __init__(self, path: Path, message: str):
        self.path = Path(path)
        self.message = message
        super().__init__(f"{self.path}: {message}")


@dataclass
class ErrorContext:
    """One reported condition."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None


class SecureLogger:
    """Logger that strips credentials embedded in repository URLs."""

    _SENSITIVE_PATTERNS = [
        (r"((?:https?|ssh|git)://[^@\s/]+:)[^@\s/]+@", r"\1[REDACTED]@"),
        (r'token["\s]*[:=]["\s]*([a-zA-Z0-9_\-+=/.]{8,})', 'token="[REDACTED]"'),
    ]

    def __init__(self, name: str, level: int = logging.WARNING):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(handler)

    def sanitize_message(self, message: str) -> str:
        sanitized = message
        for pattern, replacement in self._SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
        return sanitized

    def log_error_context(self, context: ErrorContext) -> None:
        details = {
            key: self.sanitize_message(value) if isinstance(value, str) else value
            for key, value in context.details.items()
        }
        log_data = {
            "category": context.category.value,
            "where": f"{context.module}.{context.function}",
            "details": details,
        }
        if context.exception:
            log_data["exception"] = type(context.exception).__name__

        self.logger.log(
            getattr(logging, context.level.value),
            f"{self.sanitize_message(context.message)} | {log_data}",
        )


ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """Central sink for reported conditions: logging, statistics, callbacks."""

    def __init__(self, logger_name: str = "dep_promoter", log_level: int = logging.WARNING):
        self.logger = SecureLogger(logger_name, log_level)
        self.error_callbacks: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self.error_stats: Dict[str, int] = {}

    def register_callback(self, callback: ErrorCallback, category: ErrorCategory) -> None:
        self.error_callbacks.setdefault(category, []).append(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ErrorContext:
        """
        Log a condition, count it and pass it to the category's callbacks.

        Returns:
            ErrorContext: The created context
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
        )

        stat_key = f"{category.value}_{level.value}"
        self.error_stats[stat_key] = self.error_stats.get(stat_key, 0) + 1

        self.logger.log_error_context(context)

        for callback in self.error_callbacks.get(category, []):
            try:
                callback(context)
            except Exception as cb_error:
                # A failing callback must not abort the run
                self.logger.logger.error(f"Error in callback: {cb_error}")

        return context

    def info(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        return self.handle_error(ErrorLevel.INFO, category, message, module, function, **kwargs)

    def error(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        return self.handle_error(ErrorLevel.ERROR, category, message, module, function, **kwargs)

    def get_error_stats(self) -> Dict[str, int]:
        return self.error_stats.copy()

    def reset_stats(self) -> None:
        self.error_stats.clear()


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(log_level: int = logging.WARNING) -> ErrorHandler:
    """
    Replace the global error handler with one logging at ``log_level``.

    Returns:
        ErrorHandler: The new global handler
    """
    global _global_error_handler
    _global_error_handler = ErrorHandler(log_level=log_level)
    return _global_error_handler


def log_parsing_error(
    message: str,
    module: str,
    function: str,
    file_path: Optional[str] = None,
    exception: Optional[Exception] = None,
) -> None:
    """Report a manifest that could not be parsed."""
    details = {}
    if file_path is not None:
        details["file_path"] = str(file_path)

    get_error_handler().error(
        ErrorCategory.PARSING,
        message,
        module,
        function,
        details=details,
        exception=exception,
    )
