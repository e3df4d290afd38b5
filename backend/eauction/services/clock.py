"""Time source and auction window resolution in the single configured timezone."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from eauction.errors import MalformedSchedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return is_within(instant, self.start, self.end)

    def remaining(self, instant: datetime) -> timedelta:
        return max(self.end - instant, timedelta(0))


def is_within(now: datetime, start: datetime, end: datetime) -> bool:
    """Inclusive on both ends: a bid at exactly ``end`` is still inside."""
    return start <= now <= end


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def _parse_time(value) -> time:
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    text = str(value).strip()
    # Drop fractional seconds ("10:00:00.000") the way stored TIME values sometimes arrive
    if "." in text:
        text = text.split(".", 1)[0]
    return time.fromisoformat(text)


class Clock:
    def __init__(self, timezone: str = "Asia/Colombo"):
        try:
            self.tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {timezone}") from e

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def localize(self, day: date, at: time) -> datetime:
        return datetime.combine(day, at, tzinfo=self.tz)

    def resolve_window(self, auction) -> TimeWindow:
        """Start/end instants from the stored date, start time and duration.

        Raises MalformedSchedule when any part cannot be read; never guesses a
        window.
        """
        raw_date = getattr(auction, "auction_date", None)
        raw_time = getattr(auction, "start_time", None)
        duration = getattr(auction, "duration_minutes", None)
        ref = getattr(auction, "auction_id", None) or getattr(auction, "id", None)
        if raw_date is None or raw_time is None:
            raise MalformedSchedule(f"Auction {ref} is missing its date or start time")
        try:
            start = self.localize(_parse_date(raw_date), _parse_time(raw_time))
        except (TypeError, ValueError) as e:
            logger.warning("Unparseable schedule for auction %s: %s %s (%s)", ref, raw_date, raw_time, e)
            raise MalformedSchedule(f"Auction {ref} has an invalid date or start time") from e
        try:
            minutes = int(duration)
        except (TypeError, ValueError) as e:
            raise MalformedSchedule(f"Auction {ref} has an invalid duration") from e
        if minutes <= 0:
            raise MalformedSchedule(f"Auction {ref} has a non-positive duration")
        return TimeWindow(start=start, end=start + timedelta(minutes=minutes))
