"""Timestamp normalization and display helpers.

Values reaching the display layer come in several shapes: ``datetime`` objects
from the repositories, ISO strings from JSON payloads, epoch milliseconds from
browser clients, and timestamp objects exposing a conversion method. Every
helper here funnels them through :func:`to_datetime` and never raises.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, time, timezone, tzinfo
from typing import Any

from formcraft.utils import ensure_aware, now_utc

logger = logging.getLogger(__name__)

_ACCESSORS = ("to_datetime", "to_date", "toDate")


def to_datetime(value: Any) -> datetime | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    for accessor in _ACCESSORS:
        method = getattr(value, accessor, None)
        if callable(method) and not isinstance(value, (datetime, date)):
            return to_datetime(method())
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        try:
            return ensure_aware(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def is_valid_date(value: Any) -> bool:
    try:
        return to_datetime(value) is not None
    except Exception:
        return False


def timestamp_of(value: Any) -> float:
    """Sort key for timestamps; unparseable values sort as the oldest possible."""
    try:
        parsed = to_datetime(value)
    except Exception:
        logger.exception("Error parsing date")
        return float("-inf")
    return parsed.timestamp() if parsed else float("-inf")


def format_date(
    value: Any,
    fmt: str | None = None,
    fallback: str = "recently",
    tz: tzinfo | None = None,
) -> str:
    if not value:
        return fallback
    try:
        parsed = to_datetime(value)
        if parsed is None:
            return fallback
        local = parsed.astimezone(tz)
        if fmt is None:
            return f"{local:%b} {local.day}, {local.year}"
        return local.strftime(fmt)
    except Exception:
        logger.exception("Error formatting date")
        return fallback


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit if count == 1 else unit + 's'} ago"


def format_relative_time(value: Any, now: datetime | None = None) -> str:
    if not value:
        return "recently"
    try:
        parsed = to_datetime(value)
        if parsed is None:
            return "recently"
        current = ensure_aware(now) if now else now_utc()
        secs = math.floor((current - parsed).total_seconds())
        mins = secs // 60
        hours = mins // 60
        days = hours // 24
        weeks = days // 7
        months = days // 30
        years = days // 365

        if secs < 60:
            return "just now"
        if mins < 60:
            return _plural(mins, "minute")
        if hours < 24:
            return _plural(hours, "hour")
        if days < 7:
            return _plural(days, "day")
        if weeks < 4:
            return _plural(weeks, "week")
        if months < 12:
            return _plural(months, "month")
        return _plural(years, "year")
    except Exception:
        logger.exception("Error formatting relative time")
        return "recently"


def format_last_response(value: Any, now: datetime | None = None) -> str:
    if not value:
        return "No responses yet"
    if to_datetime(value) is None:
        return "Invalid date"
    return format_relative_time(value, now=now)


def format_dt(value: Any) -> str:
    return format_date(value, "%Y-%m-%d %H:%M", fallback="N/A")
