"""Backtest driver: replays a tick stream through trackers, broker and strategy."""

from __future__ import annotations

import logging
import time as _time
from datetime import date, datetime
from zoneinfo import ZoneInfo

import polars as pl

from .broker import Broker
from .config import BacktestConfig
from .datafeed import TickFeed
from .errors import BacktestError
from .market import Market, Session
from .results import BacktestResult
from .strategy import BrokerFacade, Strategy, StrategyContext, get_strategy
from .tracker import Tracker, init_tracker
from .types import Tick

logger = logging.getLogger(__name__)

__all__ = ["BacktestResult", "Engine", "run_backtest"]


class Engine:
    """Sequential market driver for one primary symbol on one trading day.

    For every tick, in feed order: advance the market clock, update that
    symbol's tracker, let the broker fill against it, then hand the tick to
    the strategy if it belongs to the primary symbol.
    """

    def __init__(
        self,
        feed: TickFeed,
        strategy: Strategy,
        symbol: str,
        session: Session,
        config: BacktestConfig | None = None,
    ):
        if len(feed) == 0:
            raise BacktestError("no-ticks")

        self.feed = feed
        self.strategy = strategy
        self.symbol = symbol
        self.session = session
        self.config = config or BacktestConfig()

        self.symbols = list(dict.fromkeys([symbol, *strategy.extra_symbols]))
        tz = ZoneInfo(self.config.timezone)
        self.trackers: dict[str, Tracker] = {
            s: init_tracker(max_bar_count=self.config.max_bar_count, tz=tz) for s in self.symbols
        }

        self.market = Market.create(session)
        self.broker = Broker(
            get_market_time=self.market.get_market_time,
            initial_balance=self.config.initial_balance,
            options=self.config.broker_options(),
        )
        self.context = StrategyContext(
            symbol=symbol,
            tracker=self.trackers[symbol],
            trackers=self.trackers,
            market=self.market,
            broker=BrokerFacade(self.broker, symbol),
            log=logging.getLogger("arnold.backtest.strategy").info,
        )

    def run(self) -> BacktestResult:
        """Run the simulation and return the broker's final state."""
        feed_symbols = self.feed.symbols
        if self.symbol not in feed_symbols and "" not in feed_symbols:
            raise BacktestError("no-symbol-data", f"No ticks for {self.symbol}")

        start = _time.perf_counter()
        logger.info(f"Running {type(self.strategy).__name__} on {', '.join(self.symbols)}")

        self.strategy.init(self.context)

        tick_count = 0
        for tick in self.feed:
            self._process_tick(tick)
            tick_count += 1

        elapsed_ms = (_time.perf_counter() - start) * 1000
        logger.info(f"Finished {self.symbol}: {tick_count} ticks in {elapsed_ms:,.0f}ms")

        return BacktestResult(
            symbol=self.symbol,
            positions=self.broker.positions,
            orders=self.broker.orders,
            balance=self.broker.balance,
            initial_balance=self.broker.initial_balance,
            tick_count=tick_count,
            symbols=self.symbols,
        )

    def _process_tick(self, tick: Tick) -> None:
        # Unlabelled ticks belong to the primary symbol
        symbol = tick.symbol or self.symbol
        tracker = self.trackers.get(symbol)
        if tracker is None:
            raise BacktestError("invalid-symbol-data", f"Tick for untracked symbol '{symbol}'")

        self.market.update(tick.time)
        tracker.update(tick, self.session.market_open, self.session.market_close)
        for indicator in self.context.indicators:
            indicator.update()
        self.broker.handle_tick(symbol, tracker)

        if symbol != self.symbol:
            return
        if self.strategy.is_setup(self.context) or self.broker.has_open_orders(symbol):
            self.strategy.handle_tick(tick)


# === Convenience Function ===


def _build_feed(ticks: TickFeed | pl.DataFrame | str | list[Tick]) -> TickFeed:
    if isinstance(ticks, TickFeed):
        return ticks
    if isinstance(ticks, pl.DataFrame):
        return TickFeed(ticks_df=ticks)
    if isinstance(ticks, str):
        return TickFeed(ticks_path=ticks)
    if not ticks:
        raise BacktestError("no-ticks")
    return TickFeed.from_ticks(list(ticks))


def run_backtest(
    ticks: TickFeed | pl.DataFrame | str | list[Tick],
    strategy: Strategy | type[Strategy] | str,
    symbol: str,
    date: date | None = None,
    config: BacktestConfig | str | None = None,
) -> BacktestResult:
    """
    Run a backtest with minimal setup.

    Args:
        ticks: Tick feed, DataFrame, parquet path or list of ticks
        strategy: Strategy instance, class, or registered strategy name
        symbol: Primary symbol the strategy trades
        date: Trading day; defaults to the day of the first tick
        config: BacktestConfig instance, preset name, or None for defaults

    Example:
        result = run_backtest(ticks_df, "breakout", "AAPL", config="zero-cost")
    """
    if isinstance(config, str):
        config = BacktestConfig.from_preset(config)
    config = config or BacktestConfig()

    if isinstance(strategy, str):
        strategy = get_strategy(strategy)
    if isinstance(strategy, type):
        strategy = strategy()

    feed = _build_feed(ticks)
    if len(feed) == 0:
        raise BacktestError("no-ticks")

    if date is None:
        first = feed.ticks["time"][0]
        date = datetime.fromtimestamp(first, ZoneInfo(config.timezone)).date()

    session = config.session_for(date)
    return Engine(feed, strategy, symbol, session, config).run()
