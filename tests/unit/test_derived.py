"""Tests for order and position derived values."""

from datetime import datetime, timezone

import pytest

from arnold.backtest.derived import (
    avg_execution_price,
    current_position_size,
    is_buy_order,
    is_filled_order,
    is_pending_order,
    is_sell_order,
    order_commission,
    order_realized_pnl,
    percent_change,
    position_action,
    position_avg_entry_price,
    position_avg_exit_price,
    position_commission,
    position_direction,
    position_entry_price,
    position_exit_action,
    position_fill_price,
    position_gross_pnl,
    position_net_pnl,
    position_open_pnl,
    position_pnl,
    position_realized_pnl,
    position_size,
)
from arnold.backtest.tracker import init_tracker
from arnold.backtest.types import (
    Order,
    OrderAction,
    OrderExecution,
    OrderState,
    OrderType,
    Position,
)

T0 = datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)


def make_order(
    action=OrderAction.BUY,
    shares=100,
    state=OrderState.FILLED,
    price=None,
    commission=1.0,
    realized_pnl=None,
    order_id=1,
):
    order = Order(
        id=order_id,
        symbol="ZZZZ",
        action=action,
        type=OrderType.MKT,
        shares=shares,
        opened_at=T0,
        state=state,
    )
    if state == OrderState.FILLED and price is not None:
        order.executions["exec1"] = OrderExecution(shares, price, commission, realized_pnl)
        order.avg_fill_price = price
    return order


def make_position(*orders, size=0.0):
    return Position(symbol="ZZZZ", opened_at=T0, orders=list(orders), size=size)


@pytest.fixture
def round_trip():
    """Long 100 at 10.0, sold at 12.0, $1 commission per order."""
    return make_position(
        make_order(OrderAction.BUY, 100, price=10.0),
        make_order(OrderAction.SELL, 100, price=12.0, realized_pnl=200.0, order_id=2),
    )


class TestOrderPredicates:
    def test_pending_covers_accepted_and_pending(self):
        assert is_pending_order(make_order(state=OrderState.PENDING))
        assert is_pending_order(make_order(state=OrderState.ACCEPTED))
        assert not is_pending_order(make_order(state=OrderState.CANCELLED))
        assert not is_pending_order(make_order(state=OrderState.FILLED, price=1.0))

    def test_filled_and_side(self):
        order = make_order(OrderAction.SELL, price=1.0)
        assert is_filled_order(order)
        assert is_sell_order(order)
        assert not is_buy_order(order)


class TestPnl:
    def test_realized_and_commission(self, round_trip):
        assert order_realized_pnl(round_trip.orders[0]) == 0
        assert order_realized_pnl(round_trip.orders[1]) == 200.0
        assert position_realized_pnl(round_trip) == 200.0
        assert order_commission(round_trip.orders[0]) == 1.0
        assert position_commission(round_trip) == 2.0

    def test_gross_and_net(self, round_trip):
        assert position_gross_pnl(round_trip) == pytest.approx(200.0)
        assert position_net_pnl(round_trip) == pytest.approx(198.0)

    def test_unfilled_orders_do_not_count(self):
        position = make_position(
            make_order(OrderAction.BUY, 100, price=10.0),
            make_order(OrderAction.SELL, 100, state=OrderState.CANCELLED, order_id=2),
        )
        assert position_gross_pnl(position) == pytest.approx(-1000.0)

    def test_short_gross_pnl(self):
        position = make_position(
            make_order(OrderAction.SELL, 50, price=20.0),
            make_order(OrderAction.BUY, 50, price=18.0, order_id=2),
        )
        assert position_gross_pnl(position) == pytest.approx(100.0)


class TestSizes:
    def test_current_size_is_signed_net(self):
        position = make_position(
            make_order(OrderAction.BUY, 100, price=1.0),
            make_order(OrderAction.SELL, 30, price=1.0, order_id=2),
            make_order(OrderAction.SELL, 30, state=OrderState.PENDING, order_id=3),
        )
        assert current_position_size(position) == 70

    def test_position_size_is_largest_side(self, round_trip):
        assert position_size(round_trip) == 100

    def test_direction(self, round_trip):
        assert position_action(round_trip) == OrderAction.BUY
        assert position_exit_action(round_trip) == OrderAction.SELL
        assert position_direction(round_trip) == "LONG"

        short = make_position(make_order(OrderAction.SELL, 10, price=1.0))
        assert position_direction(short) == "SHORT"
        assert position_exit_action(short) == OrderAction.BUY

    def test_empty_position_defaults_to_long(self):
        assert position_action(make_position()) == OrderAction.BUY


class TestPrices:
    def test_avg_execution_price_is_share_weighted(self):
        order = make_order(price=None)
        order.executions["exec1"] = OrderExecution(100, 10.0, 0.0)
        order.executions["exec2"] = OrderExecution(300, 12.0, 0.0)
        assert avg_execution_price(order) == pytest.approx(11.5)

    def test_avg_execution_price_without_executions(self):
        assert avg_execution_price(make_order(state=OrderState.PENDING)) is None

    def test_entry_and_exit_prices(self, round_trip):
        assert position_avg_entry_price(round_trip) == pytest.approx(10.0)
        assert position_avg_exit_price(round_trip) == pytest.approx(12.0)
        assert position_entry_price(round_trip) == 10.0

    def test_avg_entry_over_several_fills(self):
        position = make_position(
            make_order(OrderAction.BUY, 100, price=100.0),
            make_order(OrderAction.BUY, 100, price=200.0, order_id=2),
        )
        assert position_avg_entry_price(position) == pytest.approx(150.0)
        assert position_fill_price(position) == pytest.approx(150.0)

    def test_fill_price_without_fills(self):
        position = make_position(make_order(state=OrderState.PENDING))
        assert position_fill_price(position) == 0
        assert position_entry_price(position) is None

    def test_fill_price_diluted_by_larger_exit(self):
        position = make_position(
            make_order(OrderAction.BUY, 100, price=100.0),
            make_order(OrderAction.SELL, 200, price=110.0, order_id=2),
        )
        assert position_fill_price(position) == pytest.approx(50.0)


class TestTrackerValues:
    def test_open_pnl_marks_to_last(self):
        position = make_position(make_order(OrderAction.BUY, 100, price=10.0), size=100)
        tracker = init_tracker()
        tracker.last = 10.5

        assert position_open_pnl(position, tracker) == pytest.approx(50.0)
        assert position_pnl(position, tracker) == pytest.approx(50.0)

    def test_percent_change(self):
        tracker = init_tracker()
        assert percent_change(tracker) == 0.0

        tracker.prev_close = 10.0
        tracker.last = 11.0
        assert percent_change(tracker) == pytest.approx(0.1)
