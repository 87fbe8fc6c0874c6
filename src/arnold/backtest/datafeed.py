"""Polars-backed tick feed with a stable ``(time, index)`` ordering."""

from collections.abc import Iterator

import polars as pl

from .types import Tick, TickType

TICK_COLUMNS = ["time", "index", "symbol", "type", "value", "size"]

_DEFAULTS = {
    "index": pl.lit(0, dtype=pl.Int64),
    "symbol": pl.lit("", dtype=pl.Utf8),
    "size": pl.lit(0.0, dtype=pl.Float64),
}


def _normalize(df: pl.DataFrame) -> pl.DataFrame:
    """Fill optional columns and cast to the canonical tick schema."""
    missing = [c for c in ("time", "type", "value") if c not in df.columns]
    if missing:
        raise ValueError(f"Tick data missing required columns: {missing}")

    df = df.with_columns(
        [expr.alias(name) for name, expr in _DEFAULTS.items() if name not in df.columns]
    )
    columns = TICK_COLUMNS + (["date_time"] if "date_time" in df.columns else [])
    return df.select(columns).with_columns(
        pl.col("time").cast(pl.Int64),
        pl.col("index").cast(pl.Int64).fill_null(0),
        pl.col("symbol").cast(pl.Utf8).fill_null(""),
        pl.col("type").cast(pl.Utf8),
        pl.col("value").cast(pl.Float64),
        pl.col("size").cast(pl.Float64).fill_null(0.0),
    )


def merge_tick_frames(*frames: pl.DataFrame) -> pl.DataFrame:
    """Concatenate tick sources and order them by ``(time, index)``.

    The sort is stable: ticks sharing both keys keep the order of ``frames``
    and, within a frame, their row order.
    """
    if not frames:
        return pl.DataFrame(schema={c: pl.Utf8 for c in TICK_COLUMNS}).pipe(_normalize)

    normalized = [_normalize(f) for f in frames]
    merged = pl.concat(normalized, how="diagonal_relaxed")
    return merged.sort(["time", "index"], maintain_order=True)


def _to_tick(row: dict) -> Tick:
    raw_type = row["type"]
    try:
        tick_type = TickType(raw_type)
    except ValueError:
        tick_type = raw_type
    return Tick(
        time=row["time"],
        type=tick_type,
        value=row["value"],
        size=row["size"] or 0.0,
        index=row["index"] or 0,
        symbol=row["symbol"] or "",
        date_time=row.get("date_time"),
    )


class TickFeed:
    """Ordered tick stream for one simulation run.

    Accepts either an in-memory DataFrame or a parquet path; ``ticks_df``
    wins when both are given.
    """

    def __init__(
        self,
        ticks_df: pl.DataFrame | None = None,
        ticks_path: str | None = None,
    ):
        ticks = (
            ticks_df
            if ticks_df is not None
            else (pl.scan_parquet(ticks_path).collect() if ticks_path else None)
        )
        if ticks is None:
            raise ValueError("ticks_path or ticks_df required")

        self.ticks = merge_tick_frames(ticks)

    @classmethod
    def from_ticks(cls, ticks: list[Tick]) -> "TickFeed":
        rows = [
            {
                "time": t.time,
                "index": t.index,
                "symbol": t.symbol,
                "type": t.type.value if isinstance(t.type, TickType) else t.type,
                "value": t.value,
                "size": t.size,
            }
            for t in ticks
        ]
        schema = {
            "time": pl.Int64,
            "index": pl.Int64,
            "symbol": pl.Utf8,
            "type": pl.Utf8,
            "value": pl.Float64,
            "size": pl.Float64,
        }
        df = pl.DataFrame(rows, schema=schema)
        if any(t.date_time is not None for t in ticks):
            df = df.with_columns(pl.Series("date_time", [t.date_time for t in ticks]))
        return cls(ticks_df=df)

    @property
    def symbols(self) -> list[str]:
        return sorted(self.ticks["symbol"].unique().to_list())

    def __len__(self) -> int:
        return self.ticks.height

    def __iter__(self) -> Iterator[Tick]:
        for row in self.ticks.iter_rows(named=True):
            yield _to_tick(row)
