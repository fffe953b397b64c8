"""Structured logging with optional JSON lines output"""

import sys
import json
import threading
from enum import Enum
from typing import Any, Dict, Optional, TextIO
from dataclasses import dataclass, asdict
from datetime import datetime, timezone


class LogLevel(Enum):
    """Log levels"""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


@dataclass
class LogEntry:
    """Structured log entry"""
    timestamp: str
    level: str
    logger: str
    message: str
    extra: Optional[Dict[str, Any]] = None


@dataclass
class _LogConfig:
    level: LogLevel = LogLevel.INFO
    json_output: bool = False
    stream: Optional[TextIO] = None


# Shared by every named logger, so reconfiguring after import still applies.
_config = _LogConfig()
_emit_lock = threading.Lock()
_loggers: Dict[str, "StructuredLogger"] = {}


class StructuredLogger:
    """Named logger writing human-readable or JSON records to stderr"""

    def __init__(self, name: str = "ddebug"):
        """Initialize logger.

        Args:
            name: Logger name, shown in every record
        """
        self.name = name

    def is_enabled(self, level: LogLevel) -> bool:
        return level.value >= _config.level.value

    def _format_entry(self, entry: LogEntry) -> str:
        if _config.json_output:
            return json.dumps(asdict(entry), default=str, sort_keys=True)

        line = f"[{entry.timestamp}] [{entry.level}] [{entry.logger}] {entry.message}"
        if entry.extra:
            extra_str = " ".join(f"{k}={v}" for k, v in entry.extra.items())
            line = f"{line} ({extra_str})"
        return line

    def _log(self, level: LogLevel, message: str, **extra: Any):
        if not self.is_enabled(level):
            return

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            level=level.name,
            logger=self.name,
            message=message,
            extra=extra or None,
        )

        formatted = self._format_entry(entry)
        stream = _config.stream or sys.stderr
        # Worker threads log concurrently; keep lines whole.
        with _emit_lock:
            print(formatted, file=stream, flush=True)

    def debug(self, message: str, **extra: Any):
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any):
        """Log info message."""
        self._log(LogLevel.INFO, message, **extra)

    def warning(self, message: str, **extra: Any):
        """Log warning message."""
        self._log(LogLevel.WARNING, message, **extra)

    def error(self, message: str, **extra: Any):
        """Log error message."""
        self._log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any):
        """Log critical message."""
        self._log(LogLevel.CRITICAL, message, **extra)


def get_logger(name: str = "ddebug") -> StructuredLogger:
    """Get the logger registered under ``name``, creating it on first use.

    Args:
        name: Logger name, conventionally ``ddebug.<component>``

    Returns:
        Logger instance
    """
    logger = _loggers.get(name)
    if logger is None:
        logger = _loggers.setdefault(name, StructuredLogger(name))
    return logger


def configure_logging(
    json_output: bool = False,
    level: LogLevel = LogLevel.INFO,
    stream: Optional[TextIO] = None
):
    """Configure output for all loggers.

    Args:
        json_output: Emit one JSON object per line
        level: Minimum level to emit
        stream: Output stream (default: stderr at emit time)
    """
    _config.json_output = json_output
    _config.level = level
    _config.stream = stream
