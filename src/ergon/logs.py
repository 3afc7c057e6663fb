"""Per-component loggers writing JSON-lines files and colored console lines.

Each component (``image-gen``, ``catalog``, ...) gets one ``logging.Logger``
from a :class:`LoggerRegistry`. File output goes to
``<config dir>/logs/<component>-YYYY-MM-DD.log``, one JSON object per line::

    {"timestamp": "...Z", "level": "INFO", "message": "...", "data": {...}}

Structured data is attached with ``logger.info("msg", extra={"data": {...}})``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from .config import get_config_dir
from .utils import ensure_dir

COMPONENT_NAMESPACE = "ergon.components"

LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
}
LEVELS_BY_NAME = {name: level for level, name in LEVEL_NAMES.items()}
LEVEL_COLORS = {
    "DEBUG": typer.colors.BRIGHT_BLACK,
    "INFO": typer.colors.BLUE,
    "WARN": typer.colors.YELLOW,
    "ERROR": typer.colors.RED,
}


class LogDestination(str, Enum):
    CONSOLE = "CONSOLE"
    FILE = "FILE"
    BOTH = "BOTH"


@dataclass
class LogEntry:
    """One line of a component log file."""

    timestamp: str
    level: str
    message: str
    data: Any = None

    def to_dict(self) -> Dict[str, Any]:
        entry = {"timestamp": self.timestamp, "level": self.level, "message": self.message}
        if self.data is not None:
            entry["data"] = self.data
        return entry


def level_name(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "ERROR"
    if levelno >= logging.WARNING:
        return "WARN"
    if levelno >= logging.INFO:
        return "INFO"
    return "DEBUG"


def parse_log_level(value: str) -> int:
    """Map ``debug|info|warn|warning|error`` to a ``logging`` level (INFO otherwise)."""

    name = value.strip().upper()
    if name == "WARNING":
        name = "WARN"
    return LEVELS_BY_NAME.get(name, logging.INFO)


def _entry_from_record(record: logging.LogRecord) -> LogEntry:
    timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return LogEntry(
        timestamp=timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        level=level_name(record.levelno),
        message=record.getMessage(),
        data=getattr(record, "data", None),
    )


def render_entry(entry: LogEntry, component: Optional[str] = None, *, color: bool = True) -> str:
    """Single-line human-readable form of a log entry."""

    timestamp = entry.timestamp.replace("T", " ").split(".")[0].rstrip("Z")
    level = typer.style(entry.level, fg=LEVEL_COLORS.get(entry.level)) if color else entry.level
    prefix = f"[{timestamp}]"
    if component:
        prefix += f" [{component}]"
    data = f" {json.dumps(entry.data, ensure_ascii=False, default=str)}" if entry.data is not None else ""
    return f"{prefix} {level} {entry.message}{data}"


class JsonLinesFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(_entry_from_record(record).to_dict(), ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    def __init__(self, component: str, color: bool = True):
        super().__init__()
        self.component = component
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        return render_entry(_entry_from_record(record), self.component, color=self.color)


class LoggerRegistry:
    """One logger per component name, configured from shared settings.

    Built once per process (in the CLI callback) and handed to commands.
    """

    def __init__(
        self,
        destination: LogDestination = LogDestination.CONSOLE,
        min_level: int = logging.INFO,
        log_dir: Optional[Path] = None,
    ):
        self.destination = LogDestination(destination)
        self.min_level = min_level
        self.log_dir = log_dir or get_config_dir() / "logs"
        self._loggers: Dict[str, logging.Logger] = {}

    def log_file_path(self, name: str, day: Optional[date] = None) -> Path:
        day = day or date.today()
        return self.log_dir / f"{name}-{day.isoformat()}.log"

    def get(self, name: str) -> logging.Logger:
        """Return the logger for ``name``, creating it on first use."""

        logger = self._loggers.get(name)
        if logger is None:
            logger = logging.getLogger(f"{COMPONENT_NAMESPACE}.{name}")
            logger.propagate = False
            self._attach_handlers(name, logger)
            self._loggers[name] = logger
        return logger

    def configure(self, destination: Optional[LogDestination] = None, min_level: Optional[int] = None) -> None:
        """Change destination/level for existing and future loggers."""

        if destination is not None:
            self.destination = LogDestination(destination)
        if min_level is not None:
            self.min_level = min_level
        for name, logger in self._loggers.items():
            self._attach_handlers(name, logger)

    def close(self) -> None:
        for logger in self._loggers.values():
            self._detach_handlers(logger)
        self._loggers.clear()

    def _detach_handlers(self, logger: logging.Logger) -> None:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def _attach_handlers(self, name: str, logger: logging.Logger) -> None:
        self._detach_handlers(logger)
        logger.setLevel(self.min_level)

        if self.destination in (LogDestination.CONSOLE, LogDestination.BOTH):
            console = logging.StreamHandler()
            console.setFormatter(ConsoleFormatter(name, color=console.stream.isatty()))
            logger.addHandler(console)

        if self.destination in (LogDestination.FILE, LogDestination.BOTH):
            ensure_dir(self.log_dir)
            file_handler = logging.FileHandler(self.log_file_path(name), encoding="utf-8", delay=True)
            file_handler.setFormatter(JsonLinesFormatter())
            logger.addHandler(file_handler)

    def read_entries(
        self,
        name: str,
        min_level: int = logging.INFO,
        max_entries: int = 100,
        day: Optional[date] = None,
    ) -> List[LogEntry]:
        """Return the newest ``max_entries`` entries at or above ``min_level``.

        Entries come back in file order. Lines that are not valid JSON are
        skipped; a missing log file yields an empty list.
        """

        path = self.log_file_path(name, day)
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []

        entries: List[LogEntry] = []
        for line in reversed(lines):
            if len(entries) >= max_entries:
                break
            try:
                raw = json.loads(line)
                entry = LogEntry(
                    timestamp=raw["timestamp"],
                    level=raw["level"],
                    message=raw["message"],
                    data=raw.get("data"),
                )
            except (ValueError, KeyError, TypeError):
                continue
            if LEVELS_BY_NAME.get(entry.level, logging.DEBUG) >= min_level:
                entries.append(entry)

        entries.reverse()
        return entries


def read_log_entries(
    name: str,
    min_level: int = logging.INFO,
    max_entries: int = 100,
    log_dir: Optional[Path] = None,
) -> List[LogEntry]:
    """Read today's entries for ``name`` without attaching any handlers."""

    return LoggerRegistry(log_dir=log_dir).read_entries(name, min_level, max_entries)


__all__ = [
    "LogDestination",
    "LogEntry",
    "LoggerRegistry",
    "parse_log_level",
    "read_log_entries",
    "render_entry",
]
