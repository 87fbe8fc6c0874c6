"""Strategy interface and name-based strategy registry."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import ClassVar

from .broker import Broker
from .errors import BacktestError
from .indicators import LineIndicator
from .market import Market
from .tracker import Tracker
from .types import Order, OrderSpec, Position, Tick

logger = logging.getLogger(__name__)


class BrokerFacade:
    """The part of the broker a strategy may touch, bound to one symbol.

    ``orders`` and ``positions`` are the broker's live lists; strategies
    must treat them as read-only.
    """

    def __init__(self, broker: Broker, symbol: str):
        self._broker = broker
        self.symbol = symbol

    def place_order(self, spec: OrderSpec) -> int:
        return self._broker.place_order(self.symbol, spec)

    def has_open_orders(self) -> bool:
        return self._broker.has_open_orders(self.symbol)

    def get_position_size(self) -> float:
        return self._broker.get_position_size(self.symbol)

    def has_open_position(self) -> bool:
        return self._broker.has_open_position(self.symbol)

    def get_open_position(self) -> Position | None:
        return self._broker.get_open_position(self.symbol)

    def close_position(self, reason: str | None = None) -> int | None:
        return self._broker.close_position(self.symbol, reason)

    def close_order(self, order_id: int) -> None:
        self._broker.close_order(order_id)

    @property
    def orders(self) -> list[Order]:
        return self._broker.orders

    @property
    def positions(self) -> list[Position]:
        return self._broker.positions


@dataclass
class StrategyContext:
    """Everything a strategy sees of the running simulation."""

    symbol: str
    tracker: Tracker
    trackers: dict[str, Tracker]
    market: Market
    broker: BrokerFacade
    log: Callable[..., None] = field(default=logger.info)
    indicators: list[LineIndicator] = field(default_factory=list)

    def add_indicator(self, indicator: LineIndicator) -> LineIndicator:
        """Register an indicator for per-tick updates and compute it once now."""
        self.indicators.append(indicator)
        indicator.update()
        return indicator


class Strategy(ABC):
    """Base class for tick-driven strategies.

    Subclasses list any additional symbols they need in ``extra_symbols``;
    the driver tracks those too but only calls ``handle_tick`` for ticks of
    the primary symbol.
    """

    extra_symbols: ClassVar[tuple[str, ...]] = ()

    def __init__(self):
        self.context: StrategyContext | None = None

    def init(self, context: StrategyContext) -> None:
        """Called once before the first tick."""
        self.context = context

    @abstractmethod
    def handle_tick(self, tick: Tick) -> None:
        """React to a tick of the primary symbol."""

    def is_setup(self, context: StrategyContext) -> bool:
        """Whether the strategy wants ticks right now.

        The driver keeps calling ``handle_tick`` while this is true or while
        orders are open for the symbol.
        """
        return True


# === Registry ===

_STRATEGY_REGISTRY: dict[str, type[Strategy]] = {}


def register_strategy(name: str):
    def _wrap(cls: type[Strategy]):
        _STRATEGY_REGISTRY[name] = cls
        return cls

    return _wrap


def get_strategy(name: str) -> type[Strategy]:
    try:
        return _STRATEGY_REGISTRY[name]
    except KeyError:
        raise BacktestError("strategy-not-found", f"Strategy not registered: {name}") from None


def registered_strategies() -> list[str]:
    return sorted(_STRATEGY_REGISTRY)
