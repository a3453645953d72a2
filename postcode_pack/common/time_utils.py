"""UTC-focused helpers for dataset dates and run metadata."""

from __future__ import annotations

from datetime import date, datetime, timezone

EPOCH_DATE = date(1970, 1, 1)


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def parse_onspd_month(value: str | None) -> date | None:
    """Parse an ONSPD ``YYYYMM`` field to the first day of that month.

    Anything that is not a usable year and month is treated as no date, which is
    how the directory marks live postcodes in ``doterm``.
    """
    if value is None or len(value) < 6:
        return None
    try:
        year = int(value[0:4])
        month = int(value[4:6])
        return date(year, month, 1)
    except ValueError:
        return None


def date_to_unix(value: date) -> int:
    """Seconds since the unix epoch at midnight UTC on ``value``."""
    midnight = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return int(midnight.timestamp())


def unix_to_iso(value: int) -> str:
    return datetime.fromtimestamp(value, tz=timezone.utc).date().isoformat()
