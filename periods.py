from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def local_today() -> date:
    settings = get_settings()
    return datetime.now(ZoneInfo(settings.timezone)).date()


def month_start(d: date) -> date:
    return d.replace(day=1)


def add_months(d: date, count: int) -> date:
    """First day of the month `count` calendar months away from `d`."""
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def month_end(d: date) -> date:
    return add_months(d, 1) - date.resolution


def same_month(a: date, b: date) -> bool:
    return a.year == b.year and a.month == b.month


def month_label(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_period(d: date) -> Period:
    return Period(month_label(d), month_start(d), month_end(d))


def resolve_month(month: Optional[str], *, today: Optional[date] = None) -> date:
    """Reference date for a `YYYY-MM` query value; the current month when omitted."""
    today = today or local_today()
    if not month:
        return today
    try:
        year_str, month_str = month.split("-", 1)
        return date(int(year_str), int(month_str), 1)
    except ValueError as exc:
        raise ValueError(f"Invalid month '{month}', expected YYYY-MM") from exc
