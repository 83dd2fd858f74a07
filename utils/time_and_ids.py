import random, string
from datetime import datetime, date, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from config import OFFICE_TIMEZONE

OFFICE_TZ = ZoneInfo(OFFICE_TIMEZONE)


def gen_ref(prefix: str = "EMP") -> str:
    """Generate a human-friendly unique reference like EMP-20250902-AB12CD."""
    now_office = datetime.now(OFFICE_TZ)
    tail = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"{prefix}-{now_office.strftime('%Y%m%d')}-{tail}"


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive values read back from the database (SQLite drops tzinfo).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_office(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return as_utc(value).astimezone(OFFICE_TZ)


def office_today() -> date:
    return datetime.now(OFFICE_TZ).date()
