"""
Allowed operating hours for the sync loop
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from core.config import settings


class ScheduleGate:
    """
    Daily window ``[start_hour, end_hour)`` in a fixed timezone.

    Naive datetimes are taken to be UTC.
    """

    def __init__(
        self,
        start_hour: Optional[int] = None,
        end_hour: Optional[int] = None,
        timezone_name: Optional[str] = None
    ):
        self.start_hour = settings.ALLOWED_START_HOUR if start_hour is None else start_hour
        self.end_hour = settings.ALLOWED_END_HOUR if end_hour is None else end_hour
        self.tz = ZoneInfo(timezone_name or settings.SCHEDULE_TIMEZONE)

    def _local(self, now: Optional[datetime]) -> datetime:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.tz)

    def is_within_allowed_window(self, now: Optional[datetime] = None) -> bool:
        return self.start_hour <= self._local(now).hour < self.end_hour

    def next_allowed_start(self, now: Optional[datetime] = None) -> datetime:
        """Next local ``start_hour:00``: today if still ahead, otherwise tomorrow"""
        local = self._local(now)
        day = local.date()
        if local.hour >= self.start_hour:
            day += timedelta(days=1)
        return datetime(day.year, day.month, day.day, self.start_hour, tzinfo=self.tz)

    def time_until_next_allowed_start(self, now: Optional[datetime] = None) -> timedelta:
        local = self._local(now)
        # Same-zone subtraction is wall-clock; compare in UTC to account for DST
        return (
            self.next_allowed_start(local).astimezone(timezone.utc)
            - local.astimezone(timezone.utc)
        )
