"""
Logging for CallBatch.

Console lines go through Rich and carry the run id and item position;
the log file gets one JSON object per record. Run context travels as
LogRecord attributes set through ``extra=`` or a ContextualLogger.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson
from rich.markup import escape

if TYPE_CHECKING:
    from rich.console import Console


ROOT_LOGGER_NAME = "callbatch"

# LogRecord attributes that make up the run context
CONTEXT_FIELDS = ("run_id", "target", "index", "tx_hash")

LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.INFO: "default",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def json_dumps(obj: Any) -> str:
    return orjson.dumps(obj, default=str).decode("utf-8")


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Run context fields present on a record."""
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, run context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json_dumps(entry)


class ContextTextFormatter(logging.Formatter):
    """Plain text lines with the run context appended as key=value pairs."""

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} ({pairs})"


class RichConsoleHandler(logging.Handler):
    """Prints records to a Rich console.

    Lines are prefixed with ``[run_id]`` when the record has one. Record
    text is escaped, so brackets in node error messages print as-is.
    """

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        try:
            style = LEVEL_STYLES.get(record.levelno, "default")
            run_id = getattr(record, "run_id", None)
            prefix = f"[cyan]{escape(f'[{run_id}]')}[/cyan] " if run_id else ""

            self.console.print(
                f"{prefix}[{style}]{escape(self.format(record))}[/{style}]",
                highlight=False,
            )
            if record.exc_info:
                self.console.print_exception()
        except Exception:
            self.handleError(record)


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
    console: "Console | None" = None,
) -> logging.Logger:
    """Configure the ``callbatch`` logger.

    Replaces any handlers from an earlier call, so it is safe to call once
    per command.

    Args:
        level: Console log level name
        log_file: File receiving every record at DEBUG and above
        json_format: JSON lines in the file instead of plain text
        rich_console: Rich console output instead of a plain stderr stream
        console: Rich console to print to (default: stderr)

    Returns:
        The ``callbatch`` logger
    """
    numeric_level = getattr(logging, level.upper())

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(min(numeric_level, logging.DEBUG) if log_file else numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if rich_console:
        console_handler: logging.Handler = RichConsoleHandler(console)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(ContextTextFormatter())
    console_handler.setLevel(numeric_level)
    logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter() if json_format else ContextTextFormatter())
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the ``callbatch`` namespace."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME)


class ContextualLogger(logging.LoggerAdapter):
    """Adapter that stamps bound run context onto every record.

    Explicit ``extra=`` values win over bound ones.
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        super().__init__(logger, {})
        self.context = {k: v for k, v in context.items() if v is not None}

    @property
    def run_id(self) -> str | None:
        return self.context.get("run_id")

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.context, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "ContextualLogger":
        """New adapter with additional context."""
        return ContextualLogger(self.logger, **{**self.context, **context})


def get_contextual_logger(name: str | None = None, **context: Any) -> ContextualLogger:
    """Logger under ``callbatch`` with run context bound, e.g. ``run_id=...``."""
    return ContextualLogger(get_logger(name), **context)
