"""
Append-only log sink: one line to the console, one line to logs/app-YYYY-MM-DD.log.
Construct one per process and hand it to every handler.
"""
import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

console = logging.getLogger("voice_insight")
if not console.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(message)s"))
    console.addHandler(_handler)
    console.setLevel(logging.DEBUG)
    console.propagate = False

_CONSOLE_LEVELS = {
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "DEBUG": logging.DEBUG,
}


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    service: str
    message: str
    duration: int = None
    metadata: dict = field(default_factory=dict)

    def file_line(self) -> str:
        line = f"[{self.timestamp}] [{self.level}] [{self.service}] {self.message}"
        if self.duration is not None:
            line += f" | Duration: {self.duration}ms"
        if self.metadata:
            line += f" | Metadata: {json.dumps(self.metadata, default=str)}"
        return line + "\n"

    def console_line(self) -> str:
        line = f"[{self.level}] [{self.service}] {self.message}"
        if self.duration is not None:
            line += f" ({self.duration}ms)"
        if self.metadata:
            line += f" {json.dumps(self.metadata, default=str)}"
        return line


class LogSink:
    """Writes every entry to the console and appends it to a dated file. Never raises."""

    def __init__(self, log_dir=None, today=None):
        self.log_dir = log_dir or os.path.join(os.getcwd(), "logs")
        day = (today or datetime.now(timezone.utc).date()).isoformat()
        self.log_file = os.path.join(self.log_dir, f"app-{day}.log")
        try:
            os.makedirs(self.log_dir, exist_ok=True)
        except OSError as e:
            console.error("Failed to create log directory %s: %s", self.log_dir, e)

    def info(self, service, message, duration=None, metadata=None):
        return self._write("INFO", service, message, duration, metadata)

    def warn(self, service, message, duration=None, metadata=None):
        return self._write("WARN", service, message, duration, metadata)

    def debug(self, service, message, duration=None, metadata=None):
        return self._write("DEBUG", service, message, duration, metadata)

    def error(self, service, message, exc=None, duration=None, metadata=None):
        meta = dict(metadata or {})
        if exc is not None:
            meta["error"] = str(exc) or type(exc).__name__
            meta["errorType"] = type(exc).__name__
        return self._write("ERROR", service, message, duration, meta)

    def _write(self, level, service, message, duration, metadata) -> LogEntry:
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            level=level,
            service=service,
            message=message,
            duration=duration,
            metadata={k: v for k, v in (metadata or {}).items() if v is not None},
        )
        console.log(_CONSOLE_LEVELS[level], entry.console_line())
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(entry.file_line())
        except OSError as e:
            console.error("Failed to write to log file %s: %s", self.log_file, e)
        return entry


def measure_time(fn, *args, **kwargs):
    """Run fn and return (result, duration in whole milliseconds)."""
    start = time.perf_counter()
    result = fn(*args, **kwargs)
    return result, int(round((time.perf_counter() - start) * 1000))


def new_request_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"
