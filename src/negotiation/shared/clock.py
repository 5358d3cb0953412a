"""UTC helpers for comparing stored datetimes with the current time."""

from datetime import UTC, datetime


def utcnow():
    return datetime.now(UTC)


def as_utc(moment):
    """Datetimes may come back from storage without tzinfo; they are always UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)
