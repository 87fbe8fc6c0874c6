"""Core types for the tick simulation engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# === Enums ===


class TickType(Enum):
    TRADE = "TRADE"
    BID = "BID"
    ASK = "ASK"
    HIGH = "HIGH"
    LOW = "LOW"
    VOLUME_DELTA = "VOLUME_DELTA"
    LAST = "LAST"
    CLOSE = "CLOSE"


class OrderAction(Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(Enum):
    MKT = "MKT"
    LMT = "LMT"
    STP = "STP"
    TRAIL = "TRAIL"


class OrderState(Enum):
    """Order lifecycle state.

    ACCEPTED orders wait for their parent to fill, PENDING orders are
    eligible to fill. FILLED and CANCELLED are terminal.
    """

    ACCEPTED = "ACCEPTED"
    PENDING = "PENDING"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"


class MarketState(Enum):
    CLOSED = "CLOSED"
    PREMARKET = "PREMARKET"
    OPEN = "OPEN"


class BarPeriod(Enum):
    """Bar resolutions. The value is the bucket length in minutes."""

    M1 = "m1"
    M5 = "m5"
    M60 = "m60"
    DAILY = "daily"

    @property
    def minutes(self) -> int:
        return PERIOD_MINUTES[self]


PERIOD_MINUTES: dict[BarPeriod, int] = {
    BarPeriod.M1: 1,
    BarPeriod.M5: 5,
    BarPeriod.M60: 60,
    BarPeriod.DAILY: 1440,
}

OPEN_ORDER_STATES = frozenset({OrderState.ACCEPTED, OrderState.PENDING})


# === Dataclasses ===


@dataclass(frozen=True)
class Tick:
    """A single market event for one symbol.

    ``time`` is in Unix seconds. ``index`` orders ticks that share a second.
    """

    time: int
    type: TickType | str
    value: float
    size: float = 0.0
    index: int = 0
    symbol: str = ""
    date_time: datetime | None = None

    @property
    def sort_key(self) -> int:
        return self.time * 1_000_000 + self.index


@dataclass
class Bar:
    time: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class OrderSpec:
    """What a strategy asks for when placing an order.

    ``price`` is the limit price for LMT, the stop price for STP and the
    trail offset for TRAIL. MKT orders ignore it.
    """

    type: OrderType
    action: OrderAction
    shares: float
    price: float | None = None
    parent_id: int | None = None

    @classmethod
    def market(cls, action: OrderAction, shares: float, parent_id: int | None = None) -> "OrderSpec":
        return cls(OrderType.MKT, action, shares, parent_id=parent_id)

    @classmethod
    def limit(
        cls, action: OrderAction, shares: float, price: float, parent_id: int | None = None
    ) -> "OrderSpec":
        return cls(OrderType.LMT, action, shares, price, parent_id)

    @classmethod
    def stop(
        cls, action: OrderAction, shares: float, price: float, parent_id: int | None = None
    ) -> "OrderSpec":
        return cls(OrderType.STP, action, shares, price, parent_id)

    @classmethod
    def trailing_stop(
        cls, action: OrderAction, shares: float, offset: float, parent_id: int | None = None
    ) -> "OrderSpec":
        return cls(OrderType.TRAIL, action, shares, offset, parent_id)


@dataclass
class OrderExecution:
    shares: float
    price: float
    commission: float
    realized_pnl: float | None = None


@dataclass
class Order:
    id: int
    symbol: str
    action: OrderAction
    type: OrderType
    shares: float
    opened_at: datetime
    price: float | None = None
    parent_id: int | None = None
    state: OrderState = OrderState.PENDING
    filled_at: datetime | None = None
    avg_fill_price: float | None = None
    executions: dict[str, OrderExecution] = field(default_factory=dict)
    # Best price seen since placement (TRAIL only)
    watermark: float | None = None

    @property
    def is_buy(self) -> bool:
        return self.action == OrderAction.BUY

    @property
    def signed_shares(self) -> float:
        return self.shares if self.action == OrderAction.BUY else -self.shares

    @property
    def is_open(self) -> bool:
        return self.state in OPEN_ORDER_STATES


@dataclass
class Position:
    symbol: str
    opened_at: datetime
    orders: list[Order] = field(default_factory=list)
    size: float = 0.0
    # Share-weighted entry price of the open size
    avg_price: float = 0.0
    data: dict[str, Any] = field(default_factory=dict)
    close_reason: str | None = None
    is_closing: bool = False
    closed_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.closed_at is None
