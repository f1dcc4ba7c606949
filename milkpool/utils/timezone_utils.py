from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone as dt_timezone


class TimezoneUtils:
    @staticmethod
    def utc_now() -> datetime:
        """Return the current UTC timestamp (timezone aware)."""
        return datetime.now(dt_timezone.utc)

    @staticmethod
    def start_of_day(value: date) -> datetime:
        """Return midnight UTC at the start of ``value``."""
        return datetime.combine(value, time.min, tzinfo=dt_timezone.utc)

    @staticmethod
    def end_of_day_exclusive(value: date) -> datetime:
        """Return midnight UTC at the start of the day after ``value``."""
        return TimezoneUtils.start_of_day(value) + timedelta(days=1)

    @staticmethod
    def isoformat(value: datetime | None) -> str | None:
        if value is None:
            return None
        return value.isoformat()
