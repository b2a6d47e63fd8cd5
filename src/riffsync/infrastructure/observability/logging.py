"""Structured logging configuration with JSON formatting and correlation IDs."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

# Hey future me - one correlation id per sync run (and per API request). contextvars
# follow asyncio tasks, so every log line of a run carries the same id even while
# other runs interleave on the loop. Grep a run's id to see its whole story.
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


def get_correlation_id() -> str:
    """Get the current correlation ID ("" if not set)."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID in context, generating a short one if None.

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = uuid.uuid4().hex[:12]
    correlation_id_var.set(correlation_id)
    return correlation_id


class CorrelationIdFilter(logging.Filter):
    """Stamp the active correlation id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return True


def _cause_chain(exc: BaseException) -> list[BaseException]:
    """Exceptions linked by __cause__/__context__, root cause first."""
    chain: list[BaseException] = []
    seen: set[int] = set()
    node: BaseException | None = exc
    while node is not None and id(node) not in seen:
        seen.add(id(node))
        chain.insert(0, node)
        node = node.__cause__ or node.__context__
    return chain


def _own_frames(exc: BaseException) -> list[str]:
    rendered: list[str] = []
    for frame in traceback.extract_tb(exc.__traceback__):
        if "riffsync" not in frame.filename or "/site-packages/" in frame.filename:
            continue
        rendered.append(
            f'    File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
        )
        if frame.line:
            rendered.append(f"      {frame.line.strip()}")
    return rendered


class CompactExceptionFormatter(logging.Formatter):
    """Human formatter with compact exception chains.

    Only frames from our own package are shown, root cause first:

        ERROR │ riffsync.application.use_cases.sync_album:210 │ [3f2a] Track t7 failed
        ╰─► ConnectError: All connection attempts failed
            File "content_fetch_client.py", line 88, in _call
              response = await client.post(self.settings.base_url, json=body)
        ╰─► ProviderError: content_fetch: selectFiles failed: ...
    """

    def format(self, record: logging.LogRecord) -> str:
        cid = getattr(record, "correlation_id", "")
        record.correlation_prefix = f"[{cid}] " if cid else ""
        return super().format(record)

    def formatException(self, ei: Any) -> str:
        exc = ei[1]
        if exc is None:
            return ""
        lines: list[str] = []
        for link in _cause_chain(exc):
            lines.append(f"╰─► {type(link).__name__}: {link}")
            lines.extend(_own_frames(link))
        return "\n".join(lines)


class CustomJsonFormatter(JsonFormatter):
    """One JSON object per line, with source location and correlation id."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.update(
            timestamp=self.formatTime(record, self.datefmt),
            level=record.levelname,
            logger=record.name,
            location=f"{record.module}.{record.funcName}:{record.lineno}",
        )
        cid = getattr(record, "correlation_id", "")
        if cid:
            log_record["correlation_id"] = cid
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)


HUMAN_FORMAT = (
    "%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(correlation_prefix)s%(message)s"
)
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"

# Chatty below WARNING and never about our own behaviour
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "aiosqlite", "asyncio", "uvicorn.access")


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return CustomJsonFormatter(JSON_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    return CompactExceptionFormatter(fmt=HUMAN_FORMAT, datefmt="%H:%M:%S")


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "riffsync",
) -> None:
    """Install the single stdout handler on the root logger.

    Safe to call again: previous handlers are replaced, not stacked.

    Args:
        log_level: Level name, case-insensitive; unknown names fall back to INFO
        json_format: Emit JSON lines instead of the human layout
        app_name: Reported in the startup line
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(_build_formatter(json_format))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"app_name": app_name, "log_level": log_level, "json_format": json_format},
    )


__all__ = [
    "CompactExceptionFormatter",
    "CorrelationIdFilter",
    "CustomJsonFormatter",
    "configure_logging",
    "correlation_id_var",
    "get_correlation_id",
    "set_correlation_id",
]
