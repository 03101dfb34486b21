"""Id and clock helpers shared by the services."""

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so comparisons never mix the two."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
