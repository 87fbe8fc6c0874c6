"""Time-bucketed OHLCV bar building."""

from datetime import datetime, timezone, tzinfo

import polars as pl

from .types import Bar, BarPeriod

MAXIMUM_BAR_COUNT = 250

BAR_TIME_FORMAT = "%Y-%m-%d %H:%M"

DEFAULT_PERIODS: tuple[BarPeriod, ...] = (BarPeriod.M1, BarPeriod.M5, BarPeriod.DAILY)


def new_bars(periods: tuple[BarPeriod, ...] = DEFAULT_PERIODS) -> dict[BarPeriod, list[Bar]]:
    return {period: [] for period in periods}


def format_bar_time(period: BarPeriod, market_time: int, tz: tzinfo = timezone.utc) -> str:
    """Format the start of the bucket that ``market_time`` falls into.

    Intraday buckets are aligned on Unix time; daily buckets start at
    midnight in ``tz``.
    """
    if period == BarPeriod.DAILY:
        date = datetime.fromtimestamp(market_time, tz).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
    else:
        duration = period.minutes * 60
        date = datetime.fromtimestamp((market_time // duration) * duration, tz)
    return date.strftime(BAR_TIME_FORMAT)


def _trim(bars: list[Bar], max_count: int) -> None:
    excess = len(bars) - max_count
    if excess > 0:
        del bars[:excess]


def update_bar_from_tick(
    bars: list[Bar],
    period: BarPeriod,
    time: int,
    price: float,
    volume: float,
    max_count: int = MAXIMUM_BAR_COUNT,
    tz: tzinfo = timezone.utc,
) -> Bar:
    """Fold a trade into the last bar of ``bars``, appending a bar for a new bucket.

    Only the last bar is ever mutated. Returns the updated bar.
    """
    bucket = format_bar_time(period, time, tz)

    if not bars or bars[-1].time != bucket:
        bars.append(Bar(time=bucket, open=price, high=price, low=price, close=price, volume=0.0))
        _trim(bars, max_count)

    bar = bars[-1]
    if volume:
        bar.volume += volume
    if price:
        bar.close = price
        bar.high = max(bar.high, price)
        bar.low = min(bar.low, price)
    return bar


def update_bar_from_minute_bar(
    bars: list[Bar],
    period: BarPeriod,
    time: int,
    minute_bar: Bar,
    max_count: int = MAXIMUM_BAR_COUNT,
    tz: tzinfo = timezone.utc,
) -> Bar:
    """Fold a pre-aggregated minute bar into the last bar of ``bars``."""
    bucket = format_bar_time(period, time, tz)

    if not bars or bars[-1].time != bucket:
        bars.append(
            Bar(
                time=bucket,
                open=minute_bar.open,
                high=minute_bar.high,
                low=minute_bar.low,
                close=minute_bar.close,
                volume=0.0,
            )
        )
        _trim(bars, max_count)

    bar = bars[-1]
    bar.volume += minute_bar.volume
    bar.close = minute_bar.close
    bar.high = max(bar.high, minute_bar.high)
    bar.low = min(bar.low, minute_bar.low)
    return bar


def get_high(bars: list[Bar]) -> float:
    return max((bar.high for bar in bars), default=0.0)


def get_retrace_from_high(bars: list[Bar], high: float) -> float:
    """Largest drop from ``high`` seen in the bars printed after it.

    Walks back from the newest bar and stops at the first bar that reached
    ``high``. The oldest bar is never inspected.
    """
    retrace = 0.0
    for bar in reversed(bars[1:]):
        if bar.high >= high:
            return retrace
        retrace = max(retrace, high - bar.low)
    return retrace


def bars_to_frame(bars: list[Bar]) -> pl.DataFrame:
    """Convert a bar series to a polars DataFrame."""
    return pl.DataFrame(
        {
            "time": [bar.time for bar in bars],
            "open": [bar.open for bar in bars],
            "high": [bar.high for bar in bars],
            "low": [bar.low for bar in bars],
            "close": [bar.close for bar in bars],
            "volume": [bar.volume for bar in bars],
        },
        schema={
            "time": pl.Utf8,
            "open": pl.Float64,
            "high": pl.Float64,
            "low": pl.Float64,
            "close": pl.Float64,
            "volume": pl.Float64,
        },
    )
