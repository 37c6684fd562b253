"""
Logging setup for the campaign engine.

One stderr handler on the root logger. Production writes one JSON object
per line; DEBUG and TESTING write plain ``key=value`` lines. The request
attributes attached by the timing middleware are carried in both.
"""

import json
import logging
import sys
from datetime import datetime, timezone

# Attributes the timing middleware passes through ``extra=``
REQUEST_KEYS = (
    "request_id",
    "method",
    "path",
    "status",
    "remote_addr",
    "session_email",
)

_QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "alembic")


def request_context(record: logging.LogRecord) -> dict:
    """Request attributes present on *record*, in ``REQUEST_KEYS`` order."""
    return {
        key: getattr(record, key)
        for key in REQUEST_KEYS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **request_context(record),
        }
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            entry["duration_ms"] = round(duration, 1)
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class KeyValueFormatter(logging.Formatter):
    """``12:00:01 WARNING campaign_engine.x: message path=/… [42ms]``"""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [f"{ts} {record.levelname} {record.name}: {record.getMessage()}"]
        parts += [f"{k}={v}" for k, v in request_context(record).items()]
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            parts.append(f"[{duration:.0f}ms]")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the handler; the level comes from ``LOG_LEVEL``."""
    plain = app.config.get("DEBUG", False) or app.config.get("TESTING", False)
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(KeyValueFormatter() if plain else JSONFormatter())

    root = logging.getLogger()
    # create_app may run more than once per process
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    app.logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
