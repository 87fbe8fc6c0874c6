"""Rolling per-symbol market state built from a tick stream.

The tracker is owned by exactly one symbol of one simulation run and is
mutated in place on every tick. It knows nothing about orders; the broker
reads ``bid``/``ask``/``last`` from it when deciding fills.
"""

from dataclasses import dataclass, field, replace
from datetime import timezone, tzinfo

import polars as pl

from .bars import (
    DEFAULT_PERIODS,
    MAXIMUM_BAR_COUNT,
    bars_to_frame,
    format_bar_time,
    new_bars,
    update_bar_from_minute_bar,
    update_bar_from_tick,
)
from .types import Bar, BarPeriod, Tick, TickType


def _tick_type(value) -> TickType | None:
    if isinstance(value, TickType):
        return value
    try:
        return TickType(value)
    except ValueError:
        return None


@dataclass
class Tracker:
    """Market snapshot plus m1/m5/daily bars for one symbol.

    Price fields use 0 for "not seen yet".
    """

    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    last: float = 0.0
    prev_close: float = 0.0
    volume: float = 0.0
    bid: float = 0.0
    ask: float = 0.0
    pre_market_high: float = 0.0
    pre_market_low: float = 0.0
    pre_market_volume: float = 0.0
    periods: tuple[BarPeriod, ...] = DEFAULT_PERIODS
    bars: dict[BarPeriod, list[Bar]] = field(default_factory=dict)
    max_bar_count: int = MAXIMUM_BAR_COUNT
    tz: tzinfo = field(default=timezone.utc, repr=False)

    def __post_init__(self):
        for period in self.periods:
            self.bars.setdefault(period, [])

    # === Tick updates ===

    def update(self, tick: Tick, market_open: int, market_close: int) -> None:
        """Apply one tick. Unknown tick types are ignored."""
        tick_type = _tick_type(tick.type)
        if tick_type is None:
            return

        if tick_type == TickType.BID:
            self.bid = tick.value
        elif tick_type == TickType.ASK:
            self.ask = tick.value
        elif tick_type == TickType.LAST:
            self.last = tick.value
        elif tick_type == TickType.HIGH:
            self.high = tick.value
        elif tick_type == TickType.LOW:
            self.low = tick.value
        elif tick_type == TickType.CLOSE:
            self.prev_close = tick.value
        elif tick_type == TickType.VOLUME_DELTA:
            self._apply_volume_delta(tick)
        elif tick_type == TickType.TRADE:
            self._apply_trade(tick, market_open, market_close)

    def _apply_trade(self, tick: Tick, market_open: int, market_close: int) -> None:
        value, size, time = tick.value, tick.size, tick.time

        self.last = value
        self.volume += size

        if time < market_open:
            self._update_pre_market(value, value, size)
        elif time <= market_close:
            self._update_session(value, value, value)

        for period in self.periods:
            update_bar_from_tick(
                self.bars[period], period, time, value, size, self.max_bar_count, self.tz
            )

    def _apply_volume_delta(self, tick: Tick) -> None:
        self.volume += tick.value

        # Without a last price there is nothing to seed a bar with
        if not self.last:
            return
        for period in self.periods:
            update_bar_from_tick(
                self.bars[period],
                period,
                tick.time,
                self.last,
                tick.value,
                self.max_bar_count,
                self.tz,
            )

    def _update_pre_market(self, high: float, low: float, volume: float) -> None:
        if not self.pre_market_high or high > self.pre_market_high:
            self.pre_market_high = high
        if not self.pre_market_low or low < self.pre_market_low:
            self.pre_market_low = low
        self.pre_market_volume += volume

    def _update_session(self, open_: float, high: float, low: float) -> None:
        if not self.open:
            self.open = open_
        if not self.high or high > self.high:
            self.high = high
        if not self.low or low < self.low:
            self.low = low

    # === Minute bar updates ===

    def update_from_minute_bar(
        self, bar: Bar, market_open: int, market_close: int, market_time: int
    ) -> None:
        """Fold a pre-aggregated minute bar into the tracker.

        A repeated update for a minute that already has an m1 bar only adds
        the volume that was not counted yet.
        """
        bar = replace(bar)

        m1 = self.bars.get(BarPeriod.M1)
        if m1:
            current = m1[-1]
            if current.time == format_bar_time(BarPeriod.M1, market_time, self.tz):
                bar.volume = max(0.0, bar.volume - current.volume)

        if market_time < market_open:
            self._update_pre_market(bar.high, bar.low, bar.volume)
        elif market_time <= market_close:
            self._update_session(bar.open, bar.high, bar.low)

        self.volume += bar.volume
        self.last = bar.close

        for period in self.periods:
            update_bar_from_minute_bar(
                self.bars[period], period, market_time, bar, self.max_bar_count, self.tz
            )

    def fill_missing_bar(self, market_time: int, market_open: int, market_close: int) -> None:
        """Carry the last m1 close forward for a minute without data."""
        m1 = self.bars.get(BarPeriod.M1)
        if not m1:
            return

        close = m1[-1].close
        bar = Bar(
            time=format_bar_time(BarPeriod.M1, market_time, self.tz),
            open=close,
            high=close,
            low=close,
            close=close,
            volume=0.0,
        )
        self.update_from_minute_bar(bar, market_open, market_close, market_time)

    # === Accessors ===

    @property
    def spread(self) -> float:
        if not self.bid or not self.ask:
            return 0.0
        return self.ask - self.bid

    def bars_frame(self, period: BarPeriod = BarPeriod.M1) -> pl.DataFrame:
        return bars_to_frame(self.bars.get(period, []))


def init_tracker(
    max_bar_count: int = MAXIMUM_BAR_COUNT,
    periods: tuple[BarPeriod, ...] = DEFAULT_PERIODS,
    tz: tzinfo = timezone.utc,
) -> Tracker:
    return Tracker(bars=new_bars(periods), periods=periods, max_bar_count=max_bar_count, tz=tz)
