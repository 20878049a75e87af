"""
Centralized Utilities for Time Handling in ExamStack.
Goal: Ensure consistent UTC storage and timezone-aware display.
"""
from datetime import datetime, timezone
from typing import Optional

import pytz
from flask import current_app


def utcnow() -> datetime:
    """
    Get the current timezone-aware UTC datetime.
    Always use this instead of datetime.utcnow() or datetime.now().
    """
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on read; treat naive values as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def elapsed_seconds(start: datetime, now: Optional[datetime] = None) -> float:
    """Seconds elapsed since ``start`` (never negative)."""
    now = ensure_aware(now) or utcnow()
    return max(0.0, (now - ensure_aware(start)).total_seconds())


def to_display_timezone(dt: Optional[datetime], tz_name: Optional[str] = None) -> Optional[datetime]:
    """
    Convert a UTC (or naive-as-UTC) datetime to the configured display timezone.

    Falls back to ``SYSTEM_TIMEZONE`` from the app config, then UTC.
    """
    if dt is None:
        return None

    if tz_name is None:
        tz_name = current_app.config.get('SYSTEM_TIMEZONE', 'UTC')

    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        tz = pytz.UTC

    return ensure_aware(dt).astimezone(tz)


def format_countdown(seconds: Optional[int]) -> Optional[str]:
    """Render remaining seconds as ``m:ss``."""
    if seconds is None:
        return None
    seconds = max(0, int(seconds))
    minutes, rest = divmod(seconds, 60)
    return f"{minutes}:{rest:02d}"
