import os
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo


def _timezone() -> ZoneInfo:
    name = os.environ.get("APP_TIMEZONE", "Asia/Kolkata")
    return ZoneInfo(name)


def now_tz() -> datetime:
    return datetime.now(_timezone())


def epoch_millis(dt: Optional[datetime] = None) -> int:
    moment = dt or now_tz()
    return int(moment.timestamp() * 1000)
