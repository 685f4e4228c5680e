"""UTC helpers shared by the models, schemas and ingestion code."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime) -> dt.datetime:
    """Return ``value`` as an aware UTC datetime; naive values are UTC.

    SQLite drops the offset of ``DateTime(timezone=True)`` columns, so values
    read back from it are naive even though they were written as UTC.
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


__all__ = ["as_utc", "utcnow"]
