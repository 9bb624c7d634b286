"""
Logging configuration for the ClauseGuard contract analysis service.

Rich console output for operators, optional JSON lines on disk, and
per-task context so every record emitted while a contract is being analysed
carries its contract id, even when several analyses run concurrently.
"""

import functools
import inspect
import json
import logging
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from clauseguard.config import get_settings

# LogRecord attributes that are not user-supplied extras
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# SDK and driver loggers that are too chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "anthropic", "openai", "asyncpg")

_log_context: ContextVar[Dict[str, Any]] = ContextVar("clauseguard_log_context", default={})


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message, context and extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(
            (key, value) for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextFilter(logging.Filter):
    """Copy the current task's log context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


context_filter = ContextFilter()


def current_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def setup_logging(
    log_level: Optional[str] = None,
    log_file_path: Optional[Path] = None,
    use_structured_logging: bool = True,
) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Logging level (defaults to LOG_LEVEL)
        log_file_path: Log file (defaults to LOG_FILE); console only when unset
        use_structured_logging: Write JSON lines to the file instead of plain text
    """
    settings = get_settings()
    level = (log_level or settings.log_level).upper()
    log_file_path = log_file_path or settings.get_log_file_path()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=settings.dev_mode,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=settings.dev_mode,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    handlers = [console_handler]

    if log_file_path:
        Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
        file_handler.setFormatter(
            StructuredFormatter()
            if use_structured_logging
            else logging.Formatter("%(asctime)s %(levelname)-8s %(name)s %(message)s")
        )
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured",
        extra={"log_level": level, "log_file": str(log_file_path) if log_file_path else None},
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind fields to every log record emitted inside the block.

    Bindings are per asyncio task, so concurrent analyses do not see each
    other's contract ids. Nested blocks add to the outer bindings.

    Usage:
        with LogContext(contract_id=contract.id):
            ...
    """

    def __init__(self, **fields: Any) -> None:
        self.fields = fields
        self._token = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set({**_log_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        _log_context.reset(self._token)


def _elapsed(start: float) -> float:
    return round(time.perf_counter() - start, 4)


def log_performance(func):
    """
    Log the duration of a pipeline stage, and its failure if it raises.

    Works on both coroutines and plain functions.

    Usage:
        @log_performance
        async def upload_and_analyze(self, data: bytes, ...) -> AnalysisOutcome:
            ...
    """
    logger = get_logger(func.__module__)
    stage = func.__qualname__

    def failed(start: float, error: Exception) -> None:
        logger.error(
            f"{stage} failed after {_elapsed(start)}s: {type(error).__name__}",
            extra={"stage": stage, "duration_seconds": _elapsed(start), "error": str(error)},
        )

    def completed(start: float) -> None:
        logger.info(
            f"{stage} completed in {_elapsed(start)}s",
            extra={"stage": stage, "duration_seconds": _elapsed(start)},
        )

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                failed(start, e)
                raise
            completed(start)
            return result

        return async_wrapper

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            failed(start, e)
            raise
        completed(start)
        return result

    return sync_wrapper


# Configure on first import unless the host application already did
if not logging.getLogger().handlers:
    setup_logging()
