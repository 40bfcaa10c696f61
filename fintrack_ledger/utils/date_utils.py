"""Date manipulation utilities"""

import calendar
from datetime import date, datetime
from typing import TypeVar
from zoneinfo import ZoneInfo

D = TypeVar("D", date, datetime)


def add_months(value: D, months: int) -> D:
    """Add calendar months, clamping the day to the target month's length"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def add_years(value: D, years: int) -> D:
    """Add calendar years; Feb 29 falls back to Feb 28 in non-leap years"""
    return add_months(value, years * 12)


def start_of_month(value: datetime) -> datetime:
    """Midnight on the first day of value's month"""
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def local_now(timezone_name: str) -> datetime:
    """Current wall time in the given IANA zone, as a naive datetime"""
    return datetime.now(ZoneInfo(timezone_name)).replace(tzinfo=None)
