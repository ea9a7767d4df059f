"""
Structured logging for the sync service.

Two pieces of request-scoped context ride along with every record:
- the HTTP correlation id (set by CorrelationIdMiddleware)
- the running sync (user, platform, mode), set by the orchestrator

Both live in ContextVars, so concurrent syncs on one event loop keep their
context apart. Production logs are JSON lines; development gets colored text.
"""
import logging
import json
import sys
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
sync_context_var: ContextVar[Optional[Dict[str, str]]] = ContextVar("sync_context", default=None)

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _context_fields() -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    correlation_id = correlation_id_var.get()
    if correlation_id:
        fields["correlation_id"] = correlation_id
    sync = sync_context_var.get()
    if sync:
        fields["sync"] = sync
    return fields


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: timestamp (UTC ISO 8601), level, logger, message, then
    correlation_id / sync when set, exception when present, and extra
    for fields passed via ``extra=``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context_fields())

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=str)


class ColoredFormatter(logging.Formatter):
    """Readable single-line output for a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        line = f"{color}{record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        context = _context_fields()
        sync = context.get("sync")
        if sync:
            line += f" [{sync['platform']}/{sync['mode']} user={sync['user_id']}]"
        if "correlation_id" in context:
            line += f" cid={context['correlation_id']}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    handler: Optional[logging.Handler] = None,
) -> None:
    """
    Install one handler on the root logger.

    Args:
        level: Root log level name
        json_output: JSONFormatter when True, ColoredFormatter otherwise
        handler: Handler to install (stdout stream handler by default)
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    handler = handler or logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else ColoredFormatter())
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> Token:
    """Bind a correlation id; pass the returned token to clear_correlation_id."""
    return correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    return correlation_id_var.get()


def clear_correlation_id(token: Token) -> None:
    correlation_id_var.reset(token)


@contextmanager
def sync_context(user_id: str, platform: str, mode: str) -> Iterator[None]:
    """
    Tag every record logged inside the block with the running sync.

    Example:
        with sync_context(user_id, "steam", "library"):
            await synchronizer.sync_library(user_id, credential)
    """
    token = sync_context_var.set({"user_id": user_id, "platform": platform, "mode": mode})
    try:
        yield
    finally:
        sync_context_var.reset(token)
