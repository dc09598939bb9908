"""Shared utility functions used by services and blueprints.

parse_datetime:      ISO date/datetime → aware UTC datetime (None on bad input)
parse_pagination:    page/limit query args with bounds
commit_or_raise:     commit the session, translating DB failures
"""
import logging
from datetime import date, datetime, time, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import ConflictError
from app.models import db

logger = logging.getLogger(__name__)


def parse_datetime(value):
    """Parse an ISO date or datetime into an aware UTC datetime.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (midnight UTC)
    - YYYY-MM-DDTHH:MM:SS[.ffffff][+HH:MM|Z]
    Naive values are taken as UTC.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def as_utc(value):
    """Attach UTC to datetimes read back from SQLite, which drops tzinfo."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def parse_pagination(args, default_limit=20, max_limit=100):
    """Return (page, limit) from query args: page ≥ 1, 1 ≤ limit ≤ max_limit."""
    page = max(1, args.get("page", 1, type=int) or 1)
    limit = args.get("limit", default_limit, type=int) or default_limit
    limit = min(max_limit, max(1, limit))
    return page, limit


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise(resource="Record", field="id", value=None):
    """Commit the current session, rolling back on failure.

    IntegrityError → ConflictError (409 via the app error handler)
    Other SQLAlchemy errors are logged and re-raised (500).
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError(resource, field, value) from exc
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database error on commit")
        raise
