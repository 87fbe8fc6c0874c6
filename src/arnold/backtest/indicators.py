"""Line indicators over a tracker's bar series.

Each indicator holds a reference to one live bar list (for example
``tracker.bars[BarPeriod.M1]``) and recomputes its values from it with
polars on ``update()``. The driver calls ``update()`` on every registered
indicator after each tracker update.

Example:
    >>> sma = context.add_indicator(SMA(20, context.tracker.bars[BarPeriod.M1]))
    >>> if context.tracker.last > sma.last:
    ...     ...
"""

import math
from abc import ABC, abstractmethod

import polars as pl

from .bars import bars_to_frame
from .types import Bar


class LineIndicator(ABC):
    """A series of float values derived from a bar list."""

    def __init__(self, bars: list[Bar]):
        self.bars = bars
        self._values: list[float] = []

    @abstractmethod
    def expression(self) -> pl.Expr:
        """Polars expression over the bar frame producing one value per bar."""

    def update(self) -> None:
        if not self.bars:
            self._values = []
            return
        frame = bars_to_frame(self.bars)
        self._values = frame.select(self.expression().alias("value"))["value"].drop_nulls().to_list()

    @property
    def values(self) -> list[float]:
        return self._values

    @property
    def last(self) -> float:
        return self._values[-1] if self._values else 0.0

    def __len__(self) -> int:
        return len(self._values)


class SMA(LineIndicator):
    """Simple moving average of closes; no value until ``period`` bars exist."""

    def __init__(self, period: int, bars: list[Bar]):
        super().__init__(bars)
        self.period = period

    def expression(self) -> pl.Expr:
        return pl.col("close").rolling_mean(window_size=self.period)


class EMA(LineIndicator):
    """Exponential moving average of closes, seeded with the first close.

    Smoothing factor is ``2 / (period + 1)``.
    """

    def __init__(self, period: int, bars: list[Bar]):
        super().__init__(bars)
        self.period = period

    def expression(self) -> pl.Expr:
        return pl.col("close").ewm_mean(span=self.period, adjust=False)


def true_range() -> pl.Expr:
    """Range of a single bar, taking the close into account."""
    return pl.max_horizontal(
        pl.col("high") - pl.col("low"),
        pl.col("high") - pl.col("close"),
        pl.col("close") - pl.col("low"),
    )


class ATR(LineIndicator):
    """Average true range over ``period`` bars; 0 during the warm-up."""

    def __init__(self, period: int, bars: list[Bar]):
        super().__init__(bars)
        self.period = period

    def expression(self) -> pl.Expr:
        return true_range().rolling_mean(window_size=self.period).fill_null(0.0)


class RetraceFromHigh(LineIndicator):
    """Distance of each close below the highest high printed so far."""

    def expression(self) -> pl.Expr:
        return pl.col("high").cum_max() - pl.col("close")


def hod_level(high: float) -> float:
    """Snap a high-of-day to the nearest whole number when it is within 0.2 of it."""
    fraction = high % 1
    if fraction >= 0.8:
        return float(math.ceil(high))
    if fraction < 0.2:
        return float(math.floor(high))
    return high
