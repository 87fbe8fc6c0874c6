"""Values derived from orders, positions and tracker state.

All functions are pure: they read orders and positions but never mutate
them.
"""

from collections.abc import Iterable

from .types import OPEN_ORDER_STATES, Order, OrderAction, OrderState, Position


def is_pending_order(order: Order) -> bool:
    """True for orders that can still fill or activate (ACCEPTED or PENDING)."""
    return order.state in OPEN_ORDER_STATES


def is_filled_order(order: Order) -> bool:
    return order.state == OrderState.FILLED


def is_buy_order(order: Order) -> bool:
    return order.action == OrderAction.BUY


def is_sell_order(order: Order) -> bool:
    return order.action == OrderAction.SELL


def _filled(orders: Iterable[Order]) -> list[Order]:
    return [o for o in orders if is_filled_order(o)]


# === PnL and commission ===


def order_realized_pnl(order: Order) -> float:
    return sum(
        e.realized_pnl for e in order.executions.values() if e.realized_pnl is not None
    )


def position_realized_pnl(position: Position) -> float:
    return sum(order_realized_pnl(o) for o in position.orders)


def order_commission(order: Order) -> float:
    return sum(e.commission for e in order.executions.values())


def position_commission(position: Position) -> float:
    return sum(order_commission(o) for o in position.orders)


def order_value(order: Order) -> float:
    """Executed value (shares x price) over all executions."""
    return sum(e.shares * e.price for e in order.executions.values())


def position_gross_pnl(position: Position) -> float:
    """Sold value minus bought value over filled orders, before commission."""
    filled = _filled(position.orders)
    bought = sum(order_value(o) for o in filled if is_buy_order(o))
    sold = sum(order_value(o) for o in filled if is_sell_order(o))
    return sold - bought


def position_net_pnl(position: Position) -> float:
    return position_gross_pnl(position) - position_commission(position)


# === Sizes and direction ===


def current_position_size(position: Position) -> float:
    """Signed net filled shares (BUY +, SELL -)."""
    return sum(o.signed_shares for o in _filled(position.orders))


def position_size(position: Position) -> float:
    """Largest one-sided filled volume of the position."""
    filled = _filled(position.orders)
    bought = sum(o.shares for o in filled if is_buy_order(o))
    sold = sum(o.shares for o in filled if is_sell_order(o))
    return max(bought, sold)


def position_action(position: Position) -> OrderAction:
    """Action of the position's first order; BUY for an empty position."""
    if not position.orders:
        return OrderAction.BUY
    return position.orders[0].action


def position_exit_action(position: Position) -> OrderAction:
    if position_action(position) == OrderAction.BUY:
        return OrderAction.SELL
    return OrderAction.BUY


def position_direction(position: Position) -> str:
    return "LONG" if position_action(position) == OrderAction.BUY else "SHORT"


# === Prices ===


def avg_execution_price(order: Order) -> float | None:
    """Share-weighted average price over an order's executions."""
    shares = sum(e.shares for e in order.executions.values())
    if not shares:
        return None
    return order_value(order) / shares


def position_avg_price(action: OrderAction, position: Position) -> float:
    """Share-weighted average fill price of the filled orders with ``action``."""
    shares = 0.0
    value = 0.0
    for order in _filled(position.orders):
        if order.action != action or order.avg_fill_price is None:
            continue
        shares += order.shares
        value += order.shares * order.avg_fill_price
    return value / shares if shares > 0 else 0.0


def position_avg_entry_price(position: Position) -> float:
    return position_avg_price(position_action(position), position)


def position_avg_exit_price(position: Position) -> float:
    return position_avg_price(position_exit_action(position), position)


def position_entry_price(position: Position) -> float | None:
    """Fill price of the first filled order, if any."""
    for order in position.orders:
        if is_filled_order(order):
            return order.avg_fill_price
    return None


def position_fill_price(position: Position) -> float:
    """Entry-side filled value spread over the position size.

    Unlike ``position_avg_entry_price`` the divisor is ``position_size``, so a
    position that sold more than it bought reports a diluted price.
    """
    size = position_size(position)
    action = position_action(position)
    value = sum(
        o.shares * o.avg_fill_price
        for o in position.orders
        if o.action == action and o.avg_fill_price
    )
    return value / size if size > 0 else 0.0


def position_open_pnl(position: Position, tracker) -> float:
    """Unrealized PnL of the open size marked at the tracker's last price."""
    price = position_fill_price(position)
    return position.size * tracker.last - position.size * price


def position_pnl(position: Position, tracker) -> float:
    return position_open_pnl(position, tracker) + position_realized_pnl(position)


def percent_change(tracker) -> float:
    """Change of the last price against the previous close."""
    if not tracker.prev_close:
        return 0.0
    return (tracker.last - tracker.prev_close) / tracker.prev_close
