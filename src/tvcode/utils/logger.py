"""
Provides structured logging with log levels and an optional file mirror.

Every record is a single line with a UTC timestamp, a level, an event name and
key-value pairs, written through tqdm so log lines never tear the batch
progress bar.
"""
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, TextIO

from tqdm import tqdm

_separator = " | "
_log_file: Optional[TextIO] = None


class LogLevel(Enum):
    """Log level enumeration."""
    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4


_current_level = LogLevel.INFO


def set_log_level(level: LogLevel) -> None:
    """Set the current log level."""
    global _current_level
    _current_level = level


def get_log_level() -> LogLevel:
    """Get the current log level."""
    return _current_level


def set_log_file(path: Optional[Path]) -> None:
    """Mirror every log line and safe_print call to a file (None closes the mirror)."""
    global _log_file
    if _log_file is not None:
        _log_file.close()
        _log_file = None
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        _log_file = open(path, "a", encoding="utf-8", buffering=1)


def _format_kv(data: Dict[str, Any]) -> str:
    """Format key-value pairs for logging."""
    parts = []
    for key, value in data.items():
        if isinstance(value, str):
            # Keep entries single-line.
            escaped = value.replace("\r", "\\r").replace("\n", "\\n")
            escaped = escaped.replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        elif value is None:
            parts.append(f'{key}=null')
        elif isinstance(value, bool):
            parts.append(f'{key}={str(value).lower()}')
        else:
            parts.append(f'{key}={value}')
    return _separator.join(parts)


def _write_line(text: str, file: Optional[TextIO] = None) -> None:
    tqdm.write(text, file=file or sys.stdout)
    if _log_file is not None:
        _log_file.write(text + "\n")


def _should_log(level: LogLevel) -> bool:
    """Check if a message at the given level should be logged."""
    return level.value >= _current_level.value


def log(event: str, level: LogLevel = LogLevel.INFO, **kwargs) -> None:
    """
    Structured logging function.

    Args:
        event: Event name (e.g., 'probe.failed', 'transcode.complete')
        level: Log level (TRACE, DEBUG, INFO, WARN, ERROR)
        **kwargs: Key-value pairs to log
    """
    if not _should_log(level):
        return

    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    header = f"{timestamp}{_separator}[{level.name}]{_separator}{event}"
    kv_str = _format_kv(kwargs) if kwargs else ""

    line = f"{header}{_separator}{kv_str}" if kv_str else header
    _write_line(line, sys.stderr if level is LogLevel.ERROR else None)


def safe_print(*args, file: Optional[TextIO] = None, sep: str = " ") -> None:
    """Print a human-facing line without breaking the progress bar."""
    _write_line(sep.join(str(a) for a in args), file)
