from datetime import date, datetime, time, timedelta
from types import SimpleNamespace

import pytest

from eauction.errors import ErrorKind, MalformedSchedule
from eauction.services.clock import Clock, is_within


def _auction(**overrides):
    fields = {"auction_id": "AUC-0001", "auction_date": date(2026, 3, 10), "start_time": time(10, 0), "duration_minutes": 60}
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_window_is_start_plus_duration_in_configured_zone() -> None:
    clock = Clock("Asia/Colombo")
    window = clock.resolve_window(_auction())
    assert window.start == datetime(2026, 3, 10, 10, 0, tzinfo=clock.tz)
    assert window.end - window.start == timedelta(minutes=60)
    assert window.start.utcoffset() == timedelta(hours=5, minutes=30)


def test_window_accepts_stored_strings() -> None:
    clock = Clock("Asia/Colombo")
    window = clock.resolve_window(_auction(auction_date="2026-03-10", start_time="10:00:00.000"))
    assert window.start == datetime(2026, 3, 10, 10, 0, tzinfo=clock.tz)


def test_is_within_is_inclusive_on_both_ends() -> None:
    start = datetime(2026, 3, 10, 10, 0)
    end = datetime(2026, 3, 10, 11, 0)
    assert is_within(start, start, end)
    assert is_within(end, start, end)
    assert not is_within(start - timedelta(seconds=1), start, end)
    assert not is_within(end + timedelta(seconds=1), start, end)


@pytest.mark.parametrize(
    "overrides",
    [
        {"auction_date": "2026-13-45"},
        {"start_time": "25:99"},
        {"start_time": "ten o'clock"},
        {"auction_date": None},
        {"duration_minutes": 0},
        {"duration_minutes": -15},
        {"duration_minutes": "abc"},
    ],
)
def test_malformed_schedule_is_rejected(overrides) -> None:
    with pytest.raises(MalformedSchedule) as exc_info:
        Clock("Asia/Colombo").resolve_window(_auction(**overrides))
    assert exc_info.value.kind is ErrorKind.MALFORMED_SCHEDULE


def test_unknown_timezone_fails_fast() -> None:
    with pytest.raises(ValueError):
        Clock("Mars/Olympus_Mons")


def test_now_is_in_configured_zone() -> None:
    clock = Clock("Asia/Colombo")
    assert clock.now().utcoffset() == timedelta(hours=5, minutes=30)
