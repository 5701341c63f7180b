"""
FSM Reports - Tenant-local calendar

"Today" and "day of week" are always computed in the tenant's IANA timezone,
never in the host timezone. An invalid timezone degrades to UTC with a
warning instead of failing the run.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple

import pytz

logger = logging.getLogger("clock")

MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def utcnow() -> datetime:
    """Return the current instant (monkeypatched in tests)."""
    return datetime.now(timezone.utc)


def resolve_timezone(timezone_name: str):
    """
    pytz timezone for an IANA name, or pytz.UTC when the name is unusable.
    The fallback is logged: dates may then be off by the tenant's UTC offset.
    """
    try:
        return pytz.timezone(timezone_name)
    except Exception as e:
        logger.warning(
            f"[CLOCK] degraded precision: timezone {timezone_name!r} unusable "
            f"({type(e).__name__}), falling back to UTC"
        )
        return pytz.UTC


def local_now(timezone_name: str) -> datetime:
    tz = resolve_timezone(timezone_name)
    try:
        return utcnow().astimezone(tz)
    except Exception as e:
        logger.warning(f"[CLOCK] degraded precision: conversion failed for {timezone_name!r}: {e}")
        return utcnow().astimezone(timezone.utc)


def local_date(timezone_name: str) -> str:
    """Tenant-local calendar date, YYYY-MM-DD"""
    return local_now(timezone_name).date().isoformat()


def weekday_index(moment) -> int:
    """0=Sunday .. 6=Saturday (datetime.weekday() is 0=Monday)"""
    return (moment.weekday() + 1) % 7


def local_weekday(timezone_name: str) -> int:
    """Tenant-local day of week, 0=Sunday .. 6=Saturday"""
    return weekday_index(local_now(timezone_name))


def _local_midnight_utc(tz, day: date) -> datetime:
    naive = datetime.combine(day, time.min)
    if tz is pytz.UTC:
        return naive.replace(tzinfo=timezone.utc)
    return tz.localize(naive).astimezone(timezone.utc)


def local_day_bounds(timezone_name: str, day: date) -> Tuple[datetime, datetime]:
    """
    UTC instants [start, end) covering the tenant-local calendar day.
    end is the next local midnight, so DST days are 23h or 25h long.
    """
    return period_bounds(timezone_name, day, day)


def period_bounds(timezone_name: str, start: date, end: date) -> Tuple[datetime, datetime]:
    """UTC instants [start, end) covering local dates start..end inclusive"""
    tz = resolve_timezone(timezone_name)
    return (
        _local_midnight_utc(tz, start),
        _local_midnight_utc(tz, end + timedelta(days=1)),
    )


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def format_report_date(value) -> str:
    """'2025-12-05' -> '05 Dec 2025' (independent of the process locale)"""
    day = parse_date(value)
    return f"{day.day:02d} {MONTH_ABBR[day.month - 1]} {day.year}"


def format_period_label(start, end) -> str:
    start_day, end_day = parse_date(start), parse_date(end)
    if start_day == end_day:
        return format_report_date(start_day)
    return f"{format_report_date(start_day)} - {format_report_date(end_day)}"
