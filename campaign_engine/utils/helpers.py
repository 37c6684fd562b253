"""Shared service helpers.

parse_date:        lenient date parsing (None on bad input)
parse_date_field:  strict date parsing for request fields (ValidationError on bad input)
clean_text:        type-checked strip for text fields
one_of:            vocabulary check for enum-like fields
unit_of_work:      commit-or-rollback wrapper around one service operation
"""
import logging
from contextlib import contextmanager
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError

from campaign_engine.core.exceptions import CampaignEngineError, PersistenceError, ValidationError
from campaign_engine.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


@contextmanager
def unit_of_work(operation: str):
    """Commit the session when the block exits cleanly, roll back otherwise.

    Usage::

        with unit_of_work("launch_campaign"):
            campaign.status = "live"
            append_activity(...)

    Domain errors raised inside the block are re-raised untouched after the
    rollback. Any other SQLAlchemy failure, including one during commit,
    becomes a PersistenceError so callers see a single failure type for
    "the database did not take the write".
    """
    try:
        yield db.session
        db.session.commit()
    except CampaignEngineError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error during %s", operation)
        raise PersistenceError(operation, exc) from exc


def parse_date_field(value, field: str):
    """Strict variant of :func:`parse_date` for request fields.

    ``None`` and ``""`` clear the field. Anything else must parse, otherwise
    ValidationError is raised so a stored date is never silently dropped.
    """
    if value is None or value == "":
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(
            f"{field} must be a date (YYYY-MM-DD)", details={field: value},
        )
    return parsed


def clean_text(value, field: str) -> str:
    """Return *value* stripped; ``None`` becomes ``""``. Non-strings are rejected."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: type(value).__name__})
    return value.strip()


def one_of(value, allowed, field: str, message: str | None = None):
    """Check *value* against a vocabulary; unhashable JSON values fail the same way."""
    if not isinstance(value, str) or value not in allowed:
        raise ValidationError(
            message or f"Invalid {field}: {value}",
            details={field: sorted(allowed) if isinstance(allowed, (set, frozenset)) else list(allowed)},
        )
    return value
