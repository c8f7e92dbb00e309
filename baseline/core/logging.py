"""Structured logging for Baseline.

Provides JSON-formatted logs for files and machines, and colored
text for humans at a terminal.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from logging.handlers import RotatingFileHandler

from colorama import Fore, Style, just_fix_windows_console

# Fields promoted to record attributes; anything else goes to extra_data
_KNOWN_FIELDS = ("component", "plugin", "repo", "source", "duration_ms", "success")


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _KNOWN_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for human-readable output."""

    COLORS = {
        "DEBUG": Style.DIM,
        "INFO": Fore.BLUE,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.MAGENTA,
    }
    PREFIXES = {
        "DEBUG": "•",
        "INFO": "ℹ",
        "WARNING": "⚠",
        "ERROR": "✗",
        "CRITICAL": "✗",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        prefix = f"{color}{self.PREFIXES.get(record.levelname, '-')}{Style.RESET_ALL}"

        if hasattr(record, "component"):
            prefix += f" [{record.component}]"

        message = record.getMessage()

        extras = []
        if hasattr(record, "plugin"):
            extras.append(f"plugin={record.plugin}")
        if hasattr(record, "repo"):
            extras.append(f"repo={record.repo}")
        if hasattr(record, "duration_ms"):
            extras.append(f"time={record.duration_ms:.0f}ms")

        if extras:
            message += f" ({', '.join(extras)})"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return f"{prefix} {message}"


class BaselineLogger:
    """Logger wrapper with convenience methods for Baseline-specific logging."""

    def __init__(self, name: str, logger: logging.Logger):
        self._name = name
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        self._log(logging.ERROR, message, exc_info=True, **kwargs)

    def _log(self, level: int, message: str, exc_info: bool = False, **kwargs):
        """Log with extra context fields."""
        extra = {}

        for key in _KNOWN_FIELDS:
            if key in kwargs:
                extra[key] = kwargs.pop(key)

        if kwargs:
            extra["extra_data"] = kwargs

        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    # Convenience methods for common plugin lifecycle events

    def plugin_registered(self, plugin_id: str, source: str):
        self.debug(f"Loaded plugin {plugin_id} from {source}", component="registry",
                   plugin=plugin_id, source=source)

    def plugin_rejected(self, plugin_id: str, reason: str, source: Optional[str] = None):
        self.warning(f"Plugin {plugin_id} {reason}, skipping", component="registry",
                     plugin=plugin_id, source=source or "unknown")

    def plugin_installed(self, plugin_id: str, version: str, source: str, duration_ms: float):
        self.info(
            f"Installed plugin {plugin_id}@{version}",
            component="installer",
            plugin=plugin_id,
            source=source,
            duration_ms=duration_ms,
            success=True
        )

    def command_resolved(self, repo: str, kind: str, command: Optional[str], origin: str):
        self.debug(
            f"{kind} command for {repo}: {command or '(none)'} [{origin}]",
            component="resolver",
            repo=repo,
            kind=kind,
            origin=origin
        )


# Global logger registry
_loggers: dict[str, BaselineLogger] = {}
_initialized = False


def setup_logging(
    level: str = "WARNING",
    format_type: str = "text",
    log_dir: Optional[Path] = None,
    file_enabled: bool = True,
    console_enabled: bool = True
) -> None:
    """Initialize the logging system.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: "json" or "text"
        log_dir: Directory for log files
        file_enabled: Write logs to file (only when log_dir is set)
        console_enabled: Write logs to stderr
    """
    global _initialized

    if _initialized:
        return

    root = logging.getLogger("baseline")
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    root.handlers.clear()

    if console_enabled:
        just_fix_windows_console()
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.DEBUG)

        if format_type == "json":
            console.setFormatter(JSONFormatter())
        else:
            console.setFormatter(ColoredFormatter())

        root.addHandler(console)

    if file_enabled and log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "baseline.log"

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=3
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    _initialized = True


def reset_logging() -> None:
    """Forget previous setup so setup_logging() can run again (tests)."""
    global _initialized
    logging.getLogger("baseline").handlers.clear()
    _initialized = False


def get_logger(name: str = "baseline") -> BaselineLogger:
    """Get a Baseline logger instance."""
    if name not in _loggers:
        logger_name = name if name == "baseline" or name.startswith("baseline.") else f"baseline.{name}"
        _loggers[name] = BaselineLogger(name, logging.getLogger(logger_name))
    return _loggers[name]
