from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from syllabus_app.config import settings


APP_TIMEZONE = settings.app_timezone or 'UTC'
APP_ZONEINFO = ZoneInfo(APP_TIMEZONE)


class TimeProvider:
    def now(self) -> datetime:
        return datetime.now(APP_ZONEINFO)

    def today(self) -> date:
        return self.now().date()


def naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        raise ValueError('Naive datetime not allowed in business logic')
    return dt.astimezone(ZoneInfo('UTC')).replace(tzinfo=None)


default_time_provider = TimeProvider()
