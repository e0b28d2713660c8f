"""
Structured logging configuration.

Provides JSON-lines logging for plan-document transitions and stream
events, plus helpers that keep logged payloads bounded.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

MAX_LOG_LEN = 1200

# LogRecord attribute carrying a plan transition (see log_plan_event)
PLAN_EVENT_ATTR = "plan_event"


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Records written by log_plan_event also carry the transition name,
    the document summary and any extra context as top-level keys, so a
    log shipper can filter on "event" directly.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        plan_event = getattr(record, PLAN_EVENT_ATTR, None)
        if isinstance(plan_event, dict):
            entry.update(plan_event)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    logger_name: str = "tripstream",
) -> logging.Logger:
    """
    Send the package's logs as JSON lines to stdout and optionally a file.

    The package logger stops propagating so records are not written a
    second time by a root handler.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional path of a file to append to
        logger_name: Logger to configure; module loggers live below it

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    formatter = StructuredFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def truncate(value: Any, max_len: int = MAX_LOG_LEN) -> Any:
    """Shorten long strings for logging; other values pass through."""
    if isinstance(value, str) and len(value) > max_len:
        return value[:max_len] + f"… [{len(value) - max_len} more chars]"
    return value


def safe_stringify(obj: Any) -> str:
    """JSON-encode for logging, never raising."""
    try:
        return json.dumps(obj, default=str)
    except (TypeError, ValueError):
        return "[Unserializable]"


def log_plan_event(
    event: str,
    summary: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a plan-document transition at DEBUG.

    Args:
        event: Transition name ("reset", "merge", "finalize", "move", "patch")
        summary: Document summary (turn, day count, item count, latch state)
        extra: Operation details, e.g. the move source and target
        logger: Logger to write to (default: the package logger)
    """
    logger = logger or logging.getLogger("tripstream")
    if not logger.isEnabledFor(logging.DEBUG):
        return

    data: Dict[str, Any] = {"event": event, "document": summary}
    if extra:
        data["details"] = extra
    logger.debug(
        f"Plan transition: {event} | {safe_stringify(summary)}",
        extra={PLAN_EVENT_ATTR: data},
    )
