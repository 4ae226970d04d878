from datetime import date, datetime, timezone
from types import SimpleNamespace

from elearning.utils.rounding import percentage, round_half_up
from elearning.utils.timeframe import (
    group_by_bucket,
    is_monthly,
    last_days,
    months_back,
    timeframe_start,
    utcnow,
)


def test_round_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(-2.5) == -3
    assert round_half_up(2.675, 2) == 2.68
    assert round_half_up(None) == 0
    assert isinstance(round_half_up(7.2), int)


def test_percentage():
    assert percentage(1, 8) == 13
    assert percentage(2, 3, 1) == 66.7
    assert percentage(5, 0) == 0
    assert percentage(3, 3) == 100


def test_timeframe_start():
    now = datetime(2024, 3, 31, 12, 0)
    assert timeframe_start("7d", now) == datetime(2024, 3, 24, 12, 0)
    assert timeframe_start("1y", now) == datetime(2023, 4, 1, 12, 0)
    assert timeframe_start("all", now) is None

    assert is_monthly("1y")
    assert is_monthly("all")
    assert not is_monthly("90d")


def test_months_back_clamps_day():
    assert months_back(datetime(2024, 3, 31), 1) == datetime(2024, 2, 28)
    assert months_back(datetime(2024, 1, 15), 2) == datetime(2023, 11, 15)
    assert months_back(datetime(2024, 5, 10), 0) == datetime(2024, 5, 10)


def test_last_days():
    assert last_days(date(2024, 3, 2), 3) == ["2024-02-29", "2024-03-01", "2024-03-02"]


def test_group_by_bucket():
    rows = [
        SimpleNamespace(created_at=datetime(2024, 2, 3, 8)),
        SimpleNamespace(created_at=datetime(2024, 1, 20, 8)),
        SimpleNamespace(created_at=datetime(2024, 2, 3, 19)),
        SimpleNamespace(created_at=None),
    ]

    daily = group_by_bucket(rows, "created_at")
    assert list(daily) == ["2024-01-20", "2024-02-03"]
    assert len(daily["2024-02-03"]) == 2

    monthly = group_by_bucket(rows, "created_at", monthly=True)
    assert {key: len(value) for key, value in monthly.items()} == {"2024-01": 1, "2024-02": 2}


def test_utcnow_is_naive_utc():
    now = utcnow()
    assert now.tzinfo is None
    reference = datetime.now(timezone.utc).replace(tzinfo=None)
    assert abs((reference - now).total_seconds()) < 5
