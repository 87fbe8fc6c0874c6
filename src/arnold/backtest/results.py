"""Backtest results export.

A finished run is handed to persistence as plain records or as polars
frames; nothing here computes performance metrics.
"""

from dataclasses import dataclass, field
from pathlib import Path

import polars as pl

from .derived import (
    position_avg_entry_price,
    position_avg_exit_price,
    position_commission,
    position_direction,
    position_gross_pnl,
    position_net_pnl,
    position_size,
)
from .types import Order, Position

ORDER_SCHEMA = {
    "id": pl.Int64,
    "symbol": pl.Utf8,
    "action": pl.Utf8,
    "type": pl.Utf8,
    "shares": pl.Float64,
    "price": pl.Float64,
    "parent_id": pl.Int64,
    "state": pl.Utf8,
    "opened_at": pl.Datetime("us", "UTC"),
    "filled_at": pl.Datetime("us", "UTC"),
    "avg_fill_price": pl.Float64,
}

EXECUTION_SCHEMA = {
    "order_id": pl.Int64,
    "exec_id": pl.Utf8,
    "symbol": pl.Utf8,
    "action": pl.Utf8,
    "shares": pl.Float64,
    "price": pl.Float64,
    "commission": pl.Float64,
    "realized_pnl": pl.Float64,
}

POSITION_SCHEMA = {
    "symbol": pl.Utf8,
    "direction": pl.Utf8,
    "size": pl.Float64,
    "opened_at": pl.Datetime("us", "UTC"),
    "closed_at": pl.Datetime("us", "UTC"),
    "close_reason": pl.Utf8,
    "order_count": pl.Int64,
    "shares": pl.Float64,
    "avg_entry_price": pl.Float64,
    "avg_exit_price": pl.Float64,
    "commission": pl.Float64,
    "gross_pnl": pl.Float64,
    "net_pnl": pl.Float64,
}


def _order_row(order: Order) -> dict:
    return {
        "id": order.id,
        "symbol": order.symbol,
        "action": order.action.value,
        "type": order.type.value,
        "shares": order.shares,
        "price": order.price,
        "parent_id": order.parent_id,
        "state": order.state.value,
        "opened_at": order.opened_at,
        "filled_at": order.filled_at,
        "avg_fill_price": order.avg_fill_price,
    }


def _position_row(position: Position) -> dict:
    return {
        "symbol": position.symbol,
        "direction": position_direction(position),
        "size": position.size,
        "opened_at": position.opened_at,
        "closed_at": position.closed_at,
        "close_reason": position.close_reason,
        "order_count": len(position.orders),
        "shares": position_size(position),
        "avg_entry_price": position_avg_entry_price(position),
        "avg_exit_price": position_avg_exit_price(position),
        "commission": position_commission(position),
        "gross_pnl": position_gross_pnl(position),
        "net_pnl": position_net_pnl(position),
    }


def orders_frame(orders: list[Order]) -> pl.DataFrame:
    return pl.DataFrame([_order_row(o) for o in orders], schema=ORDER_SCHEMA)


def executions_frame(orders: list[Order]) -> pl.DataFrame:
    """One row per execution, in order-id then execution order."""
    rows = [
        {
            "order_id": order.id,
            "exec_id": exec_id,
            "symbol": order.symbol,
            "action": order.action.value,
            "shares": execution.shares,
            "price": execution.price,
            "commission": execution.commission,
            "realized_pnl": execution.realized_pnl,
        }
        for order in orders
        for exec_id, execution in order.executions.items()
    ]
    return pl.DataFrame(rows, schema=EXECUTION_SCHEMA)


def positions_frame(positions: list[Position]) -> pl.DataFrame:
    return pl.DataFrame([_position_row(p) for p in positions], schema=POSITION_SCHEMA)


@dataclass
class BacktestResult:
    """Outcome of one simulation run for one symbol on one day."""

    symbol: str
    positions: list[Position]
    orders: list[Order]
    balance: float
    initial_balance: float = 0.0
    tick_count: int = 0
    symbols: list[str] = field(default_factory=list)

    @property
    def closed_positions(self) -> list[Position]:
        return [p for p in self.positions if not p.is_open]

    def get_orders(self) -> pl.DataFrame:
        return orders_frame(self.orders)

    def get_executions(self) -> pl.DataFrame:
        return executions_frame(self.orders)

    def get_positions(self) -> pl.DataFrame:
        return positions_frame(self.positions)

    def to_records(self) -> list[dict]:
        """Positions with their orders nested, ready for a document store."""
        records = []
        for position in self.positions:
            record = _position_row(position)
            record["data"] = dict(position.data)
            record["orders"] = [
                {
                    **_order_row(order),
                    "executions": {
                        exec_id: {
                            "shares": e.shares,
                            "price": e.price,
                            "commission": e.commission,
                            "realized_pnl": e.realized_pnl,
                        }
                        for exec_id, e in order.executions.items()
                    },
                }
                for order in position.orders
            ]
            records.append(record)
        return records

    def export_all(self, output_dir: Path | str) -> dict[str, Path]:
        """Write orders, executions and positions as parquet files.

        Example:
            >>> paths = result.export_all("results/")
            >>> sorted(paths)
            ['executions', 'orders', 'positions']
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        exported_files = {}
        for name, frame in (
            ("orders", self.get_orders()),
            ("executions", self.get_executions()),
            ("positions", self.get_positions()),
        ):
            path = output_dir / f"{name}.parquet"
            frame.write_parquet(path)
            exported_files[name] = path
        return exported_files

    def summary(self) -> dict:
        closed = self.closed_positions
        return {
            "symbol": self.symbol,
            "num_orders": len(self.orders),
            "num_positions": len(self.positions),
            "num_closed_positions": len(closed),
            "net_pnl": sum(position_net_pnl(p) for p in closed),
            "initial_balance": self.initial_balance,
            "final_balance": self.balance,
        }
