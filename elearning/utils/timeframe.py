from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Literal, Optional

Timeframe = Literal["7d", "30d", "90d", "1y", "all"]

_TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the way timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def timeframe_start(timeframe: str, now: datetime) -> Optional[datetime]:
    """Lower bound for a dashboard timeframe; ``None`` means all time."""
    days = _TIMEFRAME_DAYS.get(timeframe)
    if days is None:
        return None
    return now - timedelta(days=days)


def is_monthly(timeframe: str) -> bool:
    """Yearly and all-time views are bucketed by month instead of by day."""
    return timeframe in ("1y", "all")


def bucket_key(value: datetime, monthly: bool = False) -> str:
    return value.strftime("%Y-%m" if monthly else "%Y-%m-%d")


def months_back(now: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` calendar months earlier, clamped to day 28."""
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    return now.replace(year=year, month=month + 1, day=min(now.day, 28))


def last_days(today: date, days: int) -> List[str]:
    """ISO dates of the ``days`` most recent days, oldest first, ending today."""
    return [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]


def group_by_bucket(
    rows: Iterable, date_attr: str, monthly: bool = False
) -> Dict[str, list]:
    """Group objects by the day or month of one of their datetime attributes."""
    buckets: Dict[str, list] = {}
    for row in rows:
        value = getattr(row, date_attr)
        if value is None:
            continue
        buckets.setdefault(bucket_key(value, monthly), []).append(row)
    return dict(sorted(buckets.items()))
