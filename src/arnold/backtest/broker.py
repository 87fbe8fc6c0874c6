"""Simulated broker: order lifecycle, fills and position bookkeeping.

Broker state is mutated in place and owned by exactly one simulation run.
Fill decisions read the tracker snapshot (bid/ask), never the raw tick.
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from .derived import avg_execution_price, position_net_pnl
from .tracker import Tracker
from .types import (
    Order,
    OrderAction,
    OrderExecution,
    OrderSpec,
    OrderState,
    OrderType,
    Position,
)

logger = logging.getLogger(__name__)

TRAILING_STOP_REASON = "trailing-stop"

# Net sizes within this of zero count as flat
SIZE_TOLERANCE = 1e-9


@dataclass(frozen=True)
class BrokerOptions:
    order_execution_delay_ms: int = 1000
    commission_per_order: float = 0.0


class Broker:
    """Order and position state machine driven by tracker snapshots.

    Order states:
        PENDING  -> FILLED | CANCELLED
        ACCEPTED -> PENDING (parent filled) | CANCELLED
    """

    def __init__(
        self,
        get_market_time: Callable[[], datetime],
        initial_balance: float = 0.0,
        options: BrokerOptions | None = None,
    ):
        self.get_market_time = get_market_time
        self.options = options or BrokerOptions()
        self.initial_balance = initial_balance
        self.balance = initial_balance

        self.next_order_id = 1
        self.orders: list[Order] = []
        self.open_orders: dict[int, Order] = {}  # PENDING orders only
        self.positions: list[Position] = []
        self.open_positions: dict[str, Position] = {}

        self._orders_by_id: dict[int, Order] = {}
        self._order_positions: dict[int, Position] = {}

    # === Placement ===

    def place_order(self, symbol: str, spec: OrderSpec) -> int:
        """Register a new order and return its id.

        Orders with a parent start ACCEPTED and only become fillable once the
        parent fills. Share counts are not validated here; orders with no
        positive share count stay pending and never fill.
        """
        order_id = self.next_order_id
        self.next_order_id += 1
        now = self.get_market_time()

        order = Order(
            id=order_id,
            symbol=symbol,
            action=spec.action,
            type=spec.type,
            shares=spec.shares,
            price=spec.price,
            parent_id=spec.parent_id,
            opened_at=now,
            state=self._initial_state(spec),
        )

        if spec.shares <= 0:
            logger.warning(f"Order {order_id} for {symbol} has no positive share count and will never fill")

        self.orders.append(order)
        self._orders_by_id[order_id] = order
        if order.state == OrderState.PENDING:
            self.open_orders[order_id] = order

        self._attach_to_position(order, now)

        logger.debug(f"Placed order: {order}")
        return order_id

    def _attach_to_position(self, order: Order, now: datetime) -> None:
        """Add ``order`` to the symbol's open position, opening one if needed."""
        position = self.open_positions.get(order.symbol)
        if position is None:
            position = Position(symbol=order.symbol, opened_at=now)
            self.open_positions[order.symbol] = position
            self.positions.append(position)
        position.orders.append(order)
        self._order_positions[order.id] = position

    def _initial_state(self, spec: OrderSpec) -> OrderState:
        if spec.parent_id is None:
            return OrderState.PENDING

        parent = self._orders_by_id.get(spec.parent_id)
        if parent is None:
            logger.warning(f"Parent order {spec.parent_id} not found; child will wait indefinitely")
            return OrderState.ACCEPTED
        if parent.state == OrderState.FILLED:
            return OrderState.PENDING
        if parent.state == OrderState.CANCELLED:
            return OrderState.CANCELLED
        return OrderState.ACCEPTED

    # === Tick handling ===

    def handle_tick(self, symbol: str, tracker: Tracker, options: BrokerOptions | None = None) -> list[Order]:
        """Evaluate every pending order on ``symbol`` and fill the ones that trigger.

        Returns the orders filled on this tick.
        """
        options = options or self.options
        now = self.get_market_time()
        filled: list[Order] = []

        for order in [o for o in self.open_orders.values() if o.symbol == symbol]:
            # An earlier fill on this tick may have closed the position
            if order.state != OrderState.PENDING:
                continue

            if order.type == OrderType.TRAIL:
                self._update_watermark(order, tracker)

            elapsed_ms = (now - order.opened_at).total_seconds() * 1000
            if elapsed_ms < options.order_execution_delay_ms:
                continue

            price = self._fill_price(order, tracker)
            if price is None:
                continue

            self._fill(order, price, options.commission_per_order, now)
            filled.append(order)

        return filled

    @staticmethod
    def _update_watermark(order: Order, tracker: Tracker) -> None:
        """Move a trailing order's watermark, only ever in its favour."""
        if order.is_buy:
            if tracker.ask > 0 and (order.watermark is None or tracker.ask < order.watermark):
                order.watermark = tracker.ask
        elif tracker.bid > 0 and (order.watermark is None or tracker.bid > order.watermark):
            order.watermark = tracker.bid

    @staticmethod
    def _fill_price(order: Order, tracker: Tracker) -> float | None:
        """Price the order fills at on this snapshot, or None to keep waiting.

        BUY orders fill at the ask and SELL orders at the bid; an unset
        (zero) side never fills.
        """
        price = tracker.ask if order.is_buy else tracker.bid
        if price <= 0 or order.shares <= 0:
            return None

        if order.type == OrderType.MKT:
            return price

        if order.type == OrderType.LMT:
            triggered = price <= order.price if order.is_buy else price >= order.price

        elif order.type == OrderType.STP:
            triggered = price >= order.price if order.is_buy else price <= order.price

        elif order.type == OrderType.TRAIL:
            if order.watermark is None:
                return None
            if order.is_buy:
                triggered = price >= order.watermark + order.price
            else:
                triggered = price <= order.watermark - order.price

        else:
            return None

        return price if triggered else None

    def _fill(self, order: Order, price: float, commission: float, now: datetime) -> None:
        position = self._order_positions[order.id]
        signed = order.signed_shares
        realized_pnl = self._apply_fill_to_position(position, signed, price)

        exec_id = f"exec{len(order.executions) + 1}"
        order.executions[exec_id] = OrderExecution(
            shares=order.shares,
            price=price,
            commission=commission,
            realized_pnl=realized_pnl,
        )
        order.avg_fill_price = avg_execution_price(order)
        order.state = OrderState.FILLED
        order.filled_at = now
        self.open_orders.pop(order.id, None)

        logger.debug(f"Filled order {order.id} {order.action.value} {order.shares} {order.symbol} @ {price}")

        for child in self._children(order.id):
            if child.state == OrderState.ACCEPTED:
                child.state = OrderState.PENDING
                self.open_orders[child.id] = child

        if position.size == 0:
            if order.type == OrderType.TRAIL and position.close_reason is None:
                position.close_reason = TRAILING_STOP_REASON
            self._close(position, now, carry_over=self._descendants(order.id))

    @staticmethod
    def _apply_fill_to_position(position: Position, signed: float, price: float) -> float | None:
        """Update size and average price; return the realized PnL of any reduction."""
        old_size = position.size
        new_size = old_size + signed
        if math.isclose(new_size, 0.0, abs_tol=SIZE_TOLERANCE):
            new_size = 0.0
        realized_pnl = None

        if old_size == 0 or (old_size > 0) == (signed > 0):
            # Opening or adding
            position.avg_price = (position.avg_price * abs(old_size) + price * abs(signed)) / abs(new_size)
        else:
            closed_shares = min(abs(signed), abs(old_size))
            direction = 1 if old_size > 0 else -1
            realized_pnl = (price - position.avg_price) * closed_shares * direction

            if new_size == 0:
                position.avg_price = 0.0
            elif (new_size > 0) != (old_size > 0):
                # Flipped through zero: the remainder was opened at this price
                position.avg_price = price

        position.size = new_size
        return realized_pnl

    def _close(self, position: Position, now: datetime, carry_over: list[Order] | None = None) -> None:
        """Close ``position``, cancelling its leftover orders.

        Open orders in ``carry_over`` (the descendants of the fill that
        flattened the position) survive and move to the symbol's next
        position instead.
        """
        position.closed_at = now
        if self.open_positions.get(position.symbol) is position:
            del self.open_positions[position.symbol]

        carried = [
            o for o in carry_over or [] if o.is_open and self._order_positions[o.id] is position
        ]
        carried_ids = {o.id for o in carried}

        # Leftover orders (e.g. the other leg of an exit) die with the position
        for order in position.orders:
            if order.is_open and order.id not in carried_ids:
                self.close_order(order.id)

        self.balance += position_net_pnl(position)
        logger.debug(f"Closed position {position.symbol} at {now} reason={position.close_reason}")

        if carried:
            position.orders[:] = [o for o in position.orders if o.id not in carried_ids]
            for order in carried:
                self._attach_to_position(order, now)

    def _children(self, order_id: int) -> list[Order]:
        return [o for o in self.orders if o.parent_id == order_id]

    def _descendants(self, order_id: int) -> list[Order]:
        found = []
        for child in self._children(order_id):
            found.append(child)
            found.extend(self._descendants(child.id))
        return found

    # === Accessors ===

    def has_open_orders(self, symbol: str) -> bool:
        return any(o.symbol == symbol for o in self.open_orders.values())

    def has_open_position(self, symbol: str) -> bool:
        return symbol in self.open_positions

    def get_position_size(self, symbol: str) -> float:
        position = self.open_positions.get(symbol)
        return position.size if position else 0

    def get_open_position(self, symbol: str) -> Position | None:
        return self.open_positions.get(symbol)

    def get_order(self, order_id: int) -> Order | None:
        return self._orders_by_id.get(order_id)

    def get_open_orders(self, symbol: str | None = None) -> list[Order]:
        """Orders that can still fill or activate, optionally filtered by symbol."""
        return [
            o
            for o in self.orders
            if o.is_open and (symbol is None or o.symbol == symbol)
        ]

    # === Cancellation ===

    def close_order(self, order_id: int) -> None:
        """Cancel an order and its open children. Unknown or finished orders are ignored."""
        order = self._orders_by_id.get(order_id)
        if order is None or not order.is_open:
            return

        order.state = OrderState.CANCELLED
        self.open_orders.pop(order_id, None)
        logger.debug(f"Cancelled order {order_id}")

        for child in self._children(order_id):
            self.close_order(child.id)

    def close_open_orders(self) -> None:
        for order in self.get_open_orders():
            self.close_order(order.id)

    def close_position(self, symbol: str, reason: str | None = None) -> int | None:
        """Cancel the symbol's open orders and flatten it with a market order.

        Repeated calls are no-ops and the first reason is kept. Returns the id
        of the closing order, or None if nothing had to be placed.
        """
        position = self.open_positions.get(symbol)
        if position is None or position.is_closing:
            return None

        if position.close_reason is None:
            position.close_reason = reason
        position.is_closing = True

        for order in position.orders:
            if order.is_open:
                self.close_order(order.id)

        if position.size == 0:
            self._close(position, self.get_market_time())
            return None

        action = OrderAction.SELL if position.size > 0 else OrderAction.BUY
        return self.place_order(symbol, OrderSpec.market(action, abs(position.size)))
