"""Datetime helpers. All core arithmetic happens in UTC."""

from __future__ import annotations

from datetime import date, datetime

import pendulum

UTC = "UTC"


def utc_now() -> pendulum.DateTime:
    return pendulum.now(UTC)


def as_utc(value: datetime) -> pendulum.DateTime:
    if value.tzinfo is None:
        return pendulum.instance(value, tz=UTC)
    return pendulum.instance(value).in_timezone(UTC)


def parse_datetime(value: str | datetime) -> pendulum.DateTime:
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(pendulum.parse(value))


def start_of_day(value: datetime) -> pendulum.DateTime:
    return as_utc(value).start_of("day")


def window_cutoff(window_days: int, now: datetime | None = None) -> pendulum.DateTime:
    """First instant of a trailing window that counts today as day one."""
    if window_days < 1:
        raise ValueError("window_days must be at least 1")
    return start_of_day(now or utc_now()).subtract(days=window_days - 1)


def inclusive_days(start: date, end: date) -> int:
    return abs((end - start).days) + 1


def whole_days_between(earlier: datetime, later: datetime) -> int:
    seconds = (as_utc(later) - as_utc(earlier)).total_seconds()
    return int(seconds // 86400)


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")
