from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, TextIO, Tuple, Union

from .errors import LoggingUnavailable, LogWriteFailed

PathLike = Union[str, Path]


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


_COLORS = {
    LogLevel.DEBUG: "\033[2m",
    LogLevel.INFO: "\033[36m",
    LogLevel.SUCCESS: "\033[32m",
    LogLevel.WARNING: "\033[33m",
    LogLevel.ERROR: "\033[31m",
}
_RESET = "\033[0m"


def _timestamp() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def format_line(message: str, level: LogLevel, ts: Optional[str] = None) -> str:
    return f"[{ts or _timestamp()}] [{level.value}] {message}"


class LogSink:
    """Console + append-only file logger with candidate-path fallback.

    Initialization is strict: if no candidate accepts a write, the run must not
    start. After that, file errors are latched and reported once; log() never
    raises.
    """

    def __init__(
        self,
        *,
        console: Optional[TextIO] = None,
        verbose: bool = False,
        use_colors: Optional[bool] = None,
    ) -> None:
        self.active_path: Optional[Path] = None
        self.write_failed = False
        self.verbose = verbose
        self._console = console
        self._use_colors = use_colors

    @property
    def console(self) -> TextIO:
        # Resolved per call so a replaced sys.stdout is honored.
        return self._console if self._console is not None else sys.stdout

    def _colors_enabled(self) -> bool:
        if self._use_colors is not None:
            return self._use_colors
        if os.environ.get("NO_COLOR"):
            return False
        isatty = getattr(self.console, "isatty", None)
        try:
            return bool(isatty and isatty())
        except ValueError:
            return False

    def initialize(self, candidates: Iterable[PathLike]) -> Path:
        """Pin the first writable candidate as the log file for this run."""

        attempts: List[Tuple[Path, str]] = []
        for candidate in candidates:
            path = Path(candidate)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                self._append(path, format_line(f"Log initialized at {path}", LogLevel.INFO))
            except OSError as e:
                attempts.append((path, str(e)))
                continue

            self.active_path = path
            self.write_failed = False
            for skipped, err in attempts:
                self.warning(f"Log location unavailable: {skipped} ({err})")
            return path

        raise LoggingUnavailable(attempts)

    def log(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        if level is LogLevel.DEBUG and not self.verbose:
            return

        line = format_line(message, level)
        self._write_console(line, level)

        if self.active_path is None or self.write_failed:
            return
        try:
            self._append(self.active_path, line)
        except (OSError, ValueError) as e:
            self.write_failed = True
            warning = LogWriteFailed(f"Cannot write log file {self.active_path}: {e}")
            self._write_console(
                format_line(f"{warning}; continuing with console output only", LogLevel.WARNING),
                LogLevel.WARNING,
            )

    def debug(self, message: str) -> None:
        self.log(message, LogLevel.DEBUG)

    def info(self, message: str) -> None:
        self.log(message, LogLevel.INFO)

    def success(self, message: str) -> None:
        self.log(message, LogLevel.SUCCESS)

    def warning(self, message: str) -> None:
        self.log(message, LogLevel.WARNING)

    def error(self, message: str) -> None:
        self.log(message, LogLevel.ERROR)

    @staticmethod
    def _append(path: Path, line: str) -> None:
        with path.open("a", encoding="utf-8", errors="backslashreplace") as f:
            f.write(line + "\n")

    def _write_console(self, line: str, level: LogLevel) -> None:
        if self._colors_enabled():
            line = f"{_COLORS[level]}{line}{_RESET}"
        try:
            self.console.write(line + "\n")
            self.console.flush()
        except (OSError, ValueError):
            # Closed or broken console; nothing left to report to.
            pass


def _level_for_record(record: logging.LogRecord) -> LogLevel:
    if record.levelno >= logging.ERROR:
        return LogLevel.ERROR
    if record.levelno >= logging.WARNING:
        return LogLevel.WARNING
    if record.levelno >= logging.INFO:
        return LogLevel.INFO
    return LogLevel.DEBUG


class SinkHandler(logging.Handler):
    """Routes stdlib logging records into a LogSink."""

    def __init__(self, sink: LogSink, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.sink = sink
        self.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
        except Exception:
            self.handleError(record)
            return
        self.sink.log(msg, _level_for_record(record))


def configure_logging(
    candidates: Iterable[PathLike],
    *,
    verbose: bool = False,
    console: Optional[TextIO] = None,
) -> LogSink:
    """Create the run's LogSink and route the logging module through it.

    Raises LoggingUnavailable when no candidate path is writable.
    Returns the initialized sink; its active_path is the file in use.
    """

    sink = LogSink(console=console, verbose=verbose)
    sink.initialize(candidates)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Replace a handler left by a previous call instead of stacking them.
    for h in list(root.handlers):
        if isinstance(h, SinkHandler):
            root.removeHandler(h)
    root.addHandler(SinkHandler(sink))

    logging.getLogger(__name__).debug("Logging initialized (actual=%s)", sink.active_path)
    return sink
