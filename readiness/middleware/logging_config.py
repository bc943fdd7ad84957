"""
Structured logging configuration.

- Production: one JSON object per line for the log aggregator
- Development/testing: coloured single-line records
- Level: LOG_LEVEL config / env variable

Services pass ``unit_id``, ``event_type`` and ``actor_role`` through
``extra=``.  Inside a request the filter below stamps the request id and
the calling actor onto every record.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Record attributes lifted into the JSON "ctx" object.
CONTEXT_FIELDS = (
    "request_id",
    "actor_id",
    "actor_role",
    "unit_id",
    "event_type",
    "method",
    "path",
    "status",
    "duration_ms",
)


class RequestContextFilter(logging.Filter):
    """Fill request id and actor on records emitted inside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = getattr(g, "request_id", None)
        actor = getattr(g, "actor", None)
        if actor is not None:
            if getattr(record, "actor_id", None) is None:
                record.actor_id = actor.user_id
            if getattr(record, "actor_role", None) is None:
                record.actor_role = actor.role
        return True


def _context(record: logging.LogRecord) -> dict:
    return {k: getattr(record, k) for k in CONTEXT_FIELDS if getattr(record, k, None) is not None}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        ctx = _context(record)
        if ctx:
            entry["ctx"] = ctx
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``09:00:00 INFO  readiness.services.unit_service: msg  unit=3 role=WORKSTREAM_LEAD``"""

    LEVEL_COLOURS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    SHOWN = (("unit_id", "unit"), ("event_type", "event"), ("actor_role", "role"),
             ("duration_ms", "ms"))

    def format(self, record: logging.LogRecord) -> str:
        colour = self.LEVEL_COLOURS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tags = " ".join(
            f"{label}={getattr(record, attr)}"
            for attr, label in self.SHOWN
            if getattr(record, attr, None) is not None
        )
        line = f"{colour}{ts} {record.levelname:<7}{self.RESET} {record.name}: {record.getMessage()}"
        if tags:
            line += f"  {tags}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for *app*'s environment."""
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = str(app.config.get("LOG_LEVEL") or ("INFO" if production else "DEBUG")).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    # create_app may run more than once per process (tests)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging ready: level=%s format=%s", level_name,
                        "json" if production else "readable")
