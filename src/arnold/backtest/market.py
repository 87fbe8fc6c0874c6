"""Market session boundaries and the simulated market clock.

The tracker and broker never compute session times themselves: the driver
builds a ``Session`` for the trading day and passes the Unix boundaries
into every tick call.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from .types import MarketState

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_PRE_MARKET_OPEN = "04:00"
DEFAULT_MARKET_OPEN = "09:30"
DEFAULT_MARKET_CLOSE = "16:00"


def get_market_state(
    now: int, pre_market_open: int, market_open: int, market_close: int
) -> MarketState:
    if market_open <= now <= market_close:
        return MarketState.OPEN
    if pre_market_open <= now < market_open:
        return MarketState.PREMARKET
    return MarketState.CLOSED


def parse_time_of_day(value: str | time) -> time:
    """Parse "HH:MM" or "HH:MM:SS"."""
    if isinstance(value, time):
        return value
    parts = [int(part) for part in value.split(":")]
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time of day: '{value}'")
    return time(*parts)


def time_on_date(day: date, time_of_day: str | time, tz: str | ZoneInfo = DEFAULT_TIMEZONE) -> int:
    """Unix timestamp of ``time_of_day`` on ``day`` in ``tz``."""
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    moment = datetime.combine(day, parse_time_of_day(time_of_day), tzinfo=zone)
    return int(moment.timestamp())


def get_pre_market_open(day: date, tz: str | ZoneInfo = DEFAULT_TIMEZONE) -> int:
    return time_on_date(day, DEFAULT_PRE_MARKET_OPEN, tz)


def get_market_open(day: date, tz: str | ZoneInfo = DEFAULT_TIMEZONE) -> int:
    return time_on_date(day, DEFAULT_MARKET_OPEN, tz)


def get_market_close(day: date, tz: str | ZoneInfo = DEFAULT_TIMEZONE) -> int:
    return time_on_date(day, DEFAULT_MARKET_CLOSE, tz)


@dataclass(frozen=True)
class Session:
    """Unix-second session boundaries for one trading day."""

    pre_market_open: int
    market_open: int
    market_close: int

    @classmethod
    def for_date(
        cls,
        day: date,
        pre_market_open: str | time = DEFAULT_PRE_MARKET_OPEN,
        market_open: str | time = DEFAULT_MARKET_OPEN,
        market_close: str | time = DEFAULT_MARKET_CLOSE,
        tz: str | ZoneInfo = DEFAULT_TIMEZONE,
    ) -> "Session":
        return cls(
            pre_market_open=time_on_date(day, pre_market_open, tz),
            market_open=time_on_date(day, market_open, tz),
            market_close=time_on_date(day, market_close, tz),
        )

    def state(self, now: int) -> MarketState:
        return get_market_state(now, self.pre_market_open, self.market_open, self.market_close)


@dataclass
class Market:
    """Simulated clock: the time of the tick currently being processed."""

    session: Session
    unix: int = 0
    current: datetime = field(default_factory=lambda: datetime.fromtimestamp(0, timezone.utc))

    @classmethod
    def create(cls, session: Session) -> "Market":
        market = cls(session=session)
        market.update(session.pre_market_open)
        return market

    def update(self, unix: int) -> None:
        self.unix = unix
        self.current = datetime.fromtimestamp(unix, timezone.utc)

    @property
    def status(self) -> MarketState:
        return self.session.state(self.unix)

    def get_market_time(self) -> datetime:
        return self.current
