"""Shared service-layer helpers.

commit_or_conflict:  commit the unit-of-work, translating a stale version
                     check into ConcurrencyConflict
flush_or_conflict:   the same for a flush inside the unit-of-work
as_utc:              normalise datetimes read back from SQLite (naive) to UTC
parse_datetime:      ISO-8601 parsing for request bodies
"""
import logging
from datetime import date, datetime, timezone

from sqlalchemy.orm.exc import StaleDataError

from readiness.core.exceptions import ConcurrencyConflict
from readiness.models import db

logger = logging.getLogger(__name__)


def commit_or_conflict(resource: str = "Unit", resource_id=None):
    """Commit the current session.

    A ``StaleDataError`` means another transaction bumped the unit version
    after we read it: roll back and raise ``ConcurrencyConflict`` so the
    caller repeats the whole read-modify-write.  Any other error is rolled
    back and re-raised unchanged.
    """
    try:
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Stale write on %s id=%s: %s", resource, resource_id, exc)
        raise ConcurrencyConflict(resource, resource_id) from exc
    except Exception:
        db.session.rollback()
        raise


def flush_or_conflict(resource: str = "Unit", resource_id=None):
    """Flush pending writes with the same stale-version translation as commit."""
    try:
        db.session.flush()
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Stale write on %s id=%s: %s", resource, resource_id, exc)
        raise ConcurrencyConflict(resource, resource_id) from exc


def as_utc(value):
    """Return *value* as a timezone-aware UTC datetime (None passes through)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value):
    """Parse an ISO-8601 datetime string into an aware UTC datetime.

    Date-only strings resolve to midnight UTC.  Raises ValueError on bad
    input so blueprints can answer 400.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValueError(f"Invalid datetime {value!r}. Use ISO-8601.") from exc


def parse_date(value):
    """Parse a YYYY-MM-DD string to a date; raises ValueError on bad input."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValueError(f"Invalid date {value!r}. Use YYYY-MM-DD.") from exc
