"""
Logging setup for hosts embedding the recorder and dashboard.

Every module logs through ``logging.getLogger(__name__)``, so all records
fall under the ``funnel_analytics`` namespace. ``setup_logging`` attaches a
single handler to that namespace, writing either plain text or one JSON
object per line for log shippers.

Recorder lines carry the session id (and the step or mirror operation where
one applies) as record attributes; the JSON formatter lifts them to
top-level keys so lines can be grouped per visitor.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

from .models import format_timestamp

PACKAGE_LOGGER = "funnel_analytics"

# Record attributes promoted to JSON keys when present
CONTEXT_FIELDS = ("session_id", "step", "operation")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class AnalyticsJsonFormatter(logging.Formatter):
    """Formats a record as a single-line JSON object.

    Keys: ``time`` (UTC, same fixed-width form as stored timestamps),
    ``level``, ``logger``, ``message``, any of ``CONTEXT_FIELDS`` set on the
    record, and ``exception`` when one is attached.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": format_timestamp(datetime.fromtimestamp(record.created, UTC)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: int = logging.INFO,
    json_output: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Attach a handler to the ``funnel_analytics`` logger.

    Calling it again replaces the handler it added before; handlers the
    host installed itself are left alone.

    Args:
        level: Level for the package logger
        json_output: Emit JSON lines instead of plain text
        stream: Output stream (default: stderr)

    Returns:
        The package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_funnel_analytics", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(AnalyticsJsonFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    handler._funnel_analytics = True
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


class SessionLoggerAdapter(logging.LoggerAdapter):
    """Stamps every line with the recorder's session id.

    Per-call ``extra`` (e.g. ``step``) is merged over the adapter's own.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs
