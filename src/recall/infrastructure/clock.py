"""Clock adapters."""

from datetime import datetime, timedelta, timezone, tzinfo

from recall.domain.ports import Clock


class SystemClock(Clock):
    """Wall clock in a fixed time zone (UTC unless told otherwise)."""

    def __init__(self, tz: tzinfo | None = None):
        self.tz = tz or timezone.utc

    def now(self) -> datetime:
        return datetime.now(tz=self.tz)


class FixedClock(Clock):
    """A clock that only moves when told to. Used for deterministic scheduling."""

    def __init__(self, moment: datetime):
        if moment.tzinfo is None:
            raise ValueError("FixedClock needs a timezone-aware datetime")
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, **kwargs: float) -> datetime:
        self.moment = self.moment + timedelta(**kwargs)
        return self.moment

    def set(self, moment: datetime) -> None:
        self.moment = moment
