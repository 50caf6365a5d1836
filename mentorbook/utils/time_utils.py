"""Instant handling shared by models, repositories and services."""

from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from typing import Annotated

from pydantic import AfterValidator, PlainSerializer

__all__ = ["Instant", "ensure_utc", "local_date", "to_iso", "utc_now"]


def utc_now() -> datetime:
    """Timezone-aware current instant in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime at millisecond precision.

    Naive datetimes are interpreted as UTC rather than local time, so the
    same input means the same instant on every host.  Sub-millisecond
    digits are dropped to match the wire format, so a value compared in
    memory is the value that gets stored.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def to_iso(value: datetime) -> str:
    """Serialise an instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Fixed width and a fixed ``Z`` suffix keep lexicographic order equal to
    chronological order, which the store queries rely on.
    """
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def local_date(value: datetime, tz: tzinfo = timezone.utc) -> date:
    """Calendar date of *value* as seen in *tz*."""
    return ensure_utc(value).astimezone(tz).date()


Instant = Annotated[
    datetime,
    AfterValidator(ensure_utc),
    PlainSerializer(to_iso, return_type=str, when_used="json"),
]
"""A UTC instant that serialises to the store's ISO wire format."""
