"""arnold.backtest - Deterministic tick-level backtesting core.

A sequential simulation core with:
- Bid/ask/trade tick replay in stable (time, index) order
- Rolling market snapshots with m1/m5/daily bars
- SMA, EMA and ATR line indicators over those bars
- MKT, LMT, STP and TRAIL orders with parent/child linkage
- Polars-first tick input and result export
"""

__version__ = "0.1.0"

from .bars import format_bar_time, get_high, get_retrace_from_high
from .broker import Broker, BrokerOptions
from .config import BacktestConfig
from .datafeed import TickFeed, merge_tick_frames
from .engine import Engine, run_backtest
from .errors import BacktestError
from .indicators import ATR, EMA, SMA, LineIndicator, RetraceFromHigh, hod_level
from .market import Market, Session, get_market_state
from .results import BacktestResult
from .strategy import (
    BrokerFacade,
    Strategy,
    StrategyContext,
    get_strategy,
    register_strategy,
)
from .tracker import Tracker, init_tracker
from .types import (
    Bar,
    BarPeriod,
    MarketState,
    Order,
    OrderAction,
    OrderExecution,
    OrderSpec,
    OrderState,
    OrderType,
    Position,
    Tick,
    TickType,
)

__all__ = [
    # Core
    "Engine",
    "run_backtest",
    "BacktestResult",
    "BacktestConfig",
    "BacktestError",
    "TickFeed",
    "merge_tick_frames",
    # Broker
    "Broker",
    "BrokerOptions",
    # Market data
    "Tracker",
    "init_tracker",
    "Market",
    "Session",
    "get_market_state",
    "format_bar_time",
    "get_high",
    "get_retrace_from_high",
    # Indicators
    "LineIndicator",
    "SMA",
    "EMA",
    "ATR",
    "RetraceFromHigh",
    "hod_level",
    # Strategy
    "Strategy",
    "StrategyContext",
    "BrokerFacade",
    "register_strategy",
    "get_strategy",
    # Types
    "Bar",
    "BarPeriod",
    "MarketState",
    "Order",
    "OrderAction",
    "OrderExecution",
    "OrderSpec",
    "OrderState",
    "OrderType",
    "Position",
    "Tick",
    "TickType",
]
