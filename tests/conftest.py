"""Pytest configuration and fixtures for arnold.backtest tests."""

import tempfile
from collections.abc import Generator
from datetime import date
from pathlib import Path

import polars as pl
import pytest

from arnold.backtest.broker import Broker, BrokerOptions
from arnold.backtest.market import Market, Session
from arnold.backtest.tracker import Tracker, init_tracker
from arnold.backtest.types import Order, Tick, TickType

TRADING_DAY = date(2024, 1, 2)
SESSION = Session.for_date(TRADING_DAY)  # America/New_York 04:00 / 09:30 / 16:00


class SimulatedMarket:
    """One symbol's tracker and broker driven by hand, one second per step.

    Mirrors what the engine does per tick: advance the clock, update the
    tracker, then let the broker evaluate open orders.
    """

    def __init__(
        self,
        symbol: str = "ZZZZ",
        initial_balance: float = 1000.0,
        commission_per_order: float = 0.0,
        order_execution_delay_ms: int = 1000,
        start: int = SESSION.market_open,
    ):
        self.symbol = symbol
        self.session = SESSION
        self.market = Market.create(SESSION)
        self.market.update(start)
        self.tracker: Tracker = init_tracker()
        self.broker = Broker(
            get_market_time=self.market.get_market_time,
            initial_balance=initial_balance,
            options=BrokerOptions(
                order_execution_delay_ms=order_execution_delay_ms,
                commission_per_order=commission_per_order,
            ),
        )

    @property
    def now(self) -> int:
        return self.market.unix

    def _apply(self, tick_type: TickType, value: float, size: float = 0.0) -> None:
        tick = Tick(time=self.now, type=tick_type, value=value, size=size, symbol=self.symbol)
        self.tracker.update(tick, self.session.market_open, self.session.market_close)

    def tick(
        self,
        bid: float | None = None,
        ask: float | None = None,
        trade: float | None = None,
        size: float = 0.0,
        seconds: int = 1,
    ) -> list[Order]:
        """Advance the clock, apply the quotes and run the broker once."""
        self.market.update(self.now + seconds)
        if bid is not None:
            self._apply(TickType.BID, bid)
        if ask is not None:
            self._apply(TickType.ASK, ask)
        if trade is not None:
            self._apply(TickType.TRADE, trade, size)
        return self.broker.handle_tick(self.symbol, self.tracker)

    def quote(self, value: float, seconds: int = 1) -> list[Order]:
        """Quote 0.05 either side of ``value``."""
        return self.tick(bid=round(value - 0.05, 6), ask=round(value + 0.05, 6), seconds=seconds)

    def set_quote(self, bid: float, ask: float) -> None:
        """Set bid/ask without advancing the clock or running the broker."""
        self._apply(TickType.BID, bid)
        self._apply(TickType.ASK, ask)

    def place(self, spec) -> int:
        return self.broker.place_order(self.symbol, spec)


@pytest.fixture
def sim() -> SimulatedMarket:
    return SimulatedMarket()


@pytest.fixture
def sim_with_commission() -> SimulatedMarket:
    return SimulatedMarket(commission_per_order=1.0)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def make_ticks_frame(rows: list[tuple]) -> pl.DataFrame:
    """Build a tick frame from ``(time, index, symbol, type, value, size)`` tuples."""
    return pl.DataFrame(
        rows,
        schema={
            "time": pl.Int64,
            "index": pl.Int64,
            "symbol": pl.Utf8,
            "type": pl.Utf8,
            "value": pl.Float64,
            "size": pl.Float64,
        },
        orient="row",
    )


@pytest.fixture
def quote_ticks() -> pl.DataFrame:
    """A short ZZZZ session: quotes every second from the open, one trade."""
    t0 = SESSION.market_open
    return make_ticks_frame(
        [
            (t0, 0, "ZZZZ", "BID", 1.1, 0.0),
            (t0, 1, "ZZZZ", "ASK", 1.2, 0.0),
            (t0 + 1, 0, "ZZZZ", "TRADE", 1.15, 100.0),
            (t0 + 2, 0, "ZZZZ", "BID", 1.2, 0.0),
            (t0 + 2, 1, "ZZZZ", "ASK", 1.3, 0.0),
            (t0 + 3, 0, "ZZZZ", "BID", 1.4, 0.0),
            (t0 + 3, 1, "ZZZZ", "ASK", 1.5, 0.0),
            (t0 + 4, 0, "ZZZZ", "BID", 1.5, 0.0),
            (t0 + 4, 1, "ZZZZ", "ASK", 1.6, 0.0),
        ]
    )
