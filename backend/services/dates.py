"""
Date helpers - everything is compared on calendar days in the business
timezone (config.APP_TZ).
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from config import APP_TZ, today_local


def parse_date(value: Any) -> Optional[date]:
    """
    Calendar day from a date, datetime, ISO string or epoch millis.
    Returns None for empty / unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(APP_TZ)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, APP_TZ).date()
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parse_date(parsed)
    return None


def parse_datetime(value: Any) -> Optional[datetime]:
    """Aware datetime (business timezone for naive / date-only values)"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else APP_TZ.localize(value)
    if isinstance(value, date):
        return APP_TZ.localize(datetime.combine(value, time.min))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, APP_TZ)
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return parse_datetime(date.fromisoformat(text))
            return parse_datetime(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def to_epoch_millis(value: Any) -> int:
    """Epoch millis for sorting; missing or unparseable values sort as 0"""
    parsed = parse_datetime(value)
    if parsed is None:
        return 0
    return int(parsed.timestamp() * 1000)


def days_until(value: Any, today: Optional[date] = None) -> Optional[int]:
    """
    Whole days between today 00:00 and the target day 00:00.
    Negative when the target day is in the past.
    """
    target = parse_date(value)
    if target is None:
        return None
    today = today or today_local()
    return (target - today).days


def start_of_day(day: date) -> datetime:
    return APP_TZ.localize(datetime.combine(day, time.min))


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)
