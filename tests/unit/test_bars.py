"""Tests for bar bucketing and bar helpers."""

from zoneinfo import ZoneInfo

from arnold.backtest.bars import (
    bars_to_frame,
    format_bar_time,
    get_high,
    get_retrace_from_high,
    update_bar_from_minute_bar,
    update_bar_from_tick,
)
from arnold.backtest.types import Bar, BarPeriod

OPEN = 1_704_205_800  # 2024-01-02 14:30:00 UTC


def _bar(high, low, time="2024-01-02 14:30"):
    return Bar(time=time, open=low, high=high, low=low, close=high, volume=0.0)


class TestFormatBarTime:
    def test_minute_buckets(self):
        assert format_bar_time(BarPeriod.M1, OPEN) == "2024-01-02 14:30"
        assert format_bar_time(BarPeriod.M1, OPEN + 59) == "2024-01-02 14:30"
        assert format_bar_time(BarPeriod.M1, OPEN + 60) == "2024-01-02 14:31"

    def test_five_minute_buckets(self):
        assert format_bar_time(BarPeriod.M5, OPEN + 299) == "2024-01-02 14:30"
        assert format_bar_time(BarPeriod.M5, OPEN + 300) == "2024-01-02 14:35"

    def test_hour_bucket(self):
        assert format_bar_time(BarPeriod.M60, OPEN) == "2024-01-02 14:00"

    def test_daily_bucket_is_start_of_day(self):
        assert format_bar_time(BarPeriod.DAILY, OPEN) == "2024-01-02 00:00"

    def test_daily_bucket_in_exchange_timezone(self):
        # 03:00 UTC on Jan 3 is still Jan 2 in New York
        late = OPEN + 12 * 3600 + 30 * 60
        assert format_bar_time(BarPeriod.DAILY, late) == "2024-01-03 00:00"
        assert format_bar_time(BarPeriod.DAILY, late, ZoneInfo("America/New_York")) == (
            "2024-01-02 00:00"
        )


class TestUpdateBarFromTick:
    def test_new_bucket_is_seeded_at_price(self):
        bars = []
        bar = update_bar_from_tick(bars, BarPeriod.M1, OPEN, 10.0, 5)
        assert bars == [Bar("2024-01-02 14:30", 10.0, 10.0, 10.0, 10.0, 5)]
        assert bar is bars[-1]

    def test_same_bucket_extends_last_bar(self):
        bars = []
        update_bar_from_tick(bars, BarPeriod.M1, OPEN, 10.0, 5)
        update_bar_from_tick(bars, BarPeriod.M1, OPEN + 10, 12.0, 5)
        update_bar_from_tick(bars, BarPeriod.M1, OPEN + 20, 8.0, 5)
        assert bars == [Bar("2024-01-02 14:30", 10.0, 12.0, 8.0, 8.0, 15)]

    def test_zero_price_only_adds_volume(self):
        bars = [Bar("2024-01-02 14:30", 10.0, 10.0, 10.0, 10.0, 5)]
        update_bar_from_tick(bars, BarPeriod.M1, OPEN + 1, 0.0, 7)
        assert bars[0] == Bar("2024-01-02 14:30", 10.0, 10.0, 10.0, 10.0, 12)

    def test_eviction_keeps_newest(self):
        bars = []
        for minute in range(4):
            update_bar_from_tick(bars, BarPeriod.M1, OPEN + minute * 60, 1.0 + minute, 1, 2)
        assert [b.time for b in bars] == ["2024-01-02 14:32", "2024-01-02 14:33"]


class TestUpdateBarFromMinuteBar:
    def test_folds_minute_bars_into_five_minute_bar(self):
        bars = []
        update_bar_from_minute_bar(bars, BarPeriod.M5, OPEN, Bar("", 10, 11, 9.5, 10.5, 100))
        update_bar_from_minute_bar(bars, BarPeriod.M5, OPEN + 60, Bar("", 10.5, 12, 10, 11, 50))

        assert bars == [Bar("2024-01-02 14:30", 10, 12, 9.5, 11, 150)]


class TestHelpers:
    def test_get_high(self):
        assert get_high([_bar(10, 9), _bar(12, 11), _bar(11, 10)]) == 12
        assert get_high([]) == 0

    def test_retrace_stops_at_bar_reaching_high(self):
        bars = [_bar(10, 9), _bar(12, 11), _bar(11.5, 10.5), _bar(11, 10)]
        assert get_retrace_from_high(bars, 12) == 2

    def test_retrace_never_reads_oldest_bar(self):
        bars = [_bar(12, 1), _bar(11, 10)]
        assert get_retrace_from_high(bars, 12) == 2

    def test_retrace_of_empty_series(self):
        assert get_retrace_from_high([], 12) == 0

    def test_bars_to_frame(self):
        df = bars_to_frame([_bar(10, 9), _bar(12, 11, time="2024-01-02 14:31")])
        assert df.columns == ["time", "open", "high", "low", "close", "volume"]
        assert df["high"].to_list() == [10.0, 12.0]

    def test_bars_to_frame_empty(self):
        df = bars_to_frame([])
        assert df.is_empty()
        assert df.columns == ["time", "open", "high", "low", "close", "volume"]
