"""
Backtest Configuration

Every setting a simulation run depends on, in one place:
1. Account (starting balance)
2. Execution (commission, fill delay)
3. Bars (ring size)
4. Session boundaries and the exchange time zone
5. Strategy name and symbol list

Usage:
    from arnold.backtest import BacktestConfig

    config = BacktestConfig()
    config = BacktestConfig.from_preset("zero-cost")
    config = BacktestConfig.from_yaml("my_config.yaml")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .bars import MAXIMUM_BAR_COUNT
from .broker import BrokerOptions
from .market import (
    DEFAULT_MARKET_CLOSE,
    DEFAULT_MARKET_OPEN,
    DEFAULT_PRE_MARKET_OPEN,
    DEFAULT_TIMEZONE,
    Session,
    parse_time_of_day,
)


@dataclass
class BacktestConfig:
    """Complete configuration for one backtest run."""

    # === Account ===
    initial_balance: float = 1000.0

    # === Execution ===
    commission_per_order: float = 1.0
    order_execution_delay_ms: int = 1000

    # === Bars ===
    max_bar_count: int = MAXIMUM_BAR_COUNT

    # === Session ===
    pre_market_open: str = DEFAULT_PRE_MARKET_OPEN
    market_open: str = DEFAULT_MARKET_OPEN
    market_close: str = DEFAULT_MARKET_CLOSE
    timezone: str = DEFAULT_TIMEZONE

    # === Strategy ===
    strategy: str | None = None
    symbols: list[str] = field(default_factory=list)

    # === Metadata ===
    preset_name: str | None = None

    def validate(self) -> list[str]:
        """Raise ValueError for unusable settings; return warnings for odd ones."""
        if self.commission_per_order < 0:
            raise ValueError(f"commission_per_order ({self.commission_per_order}) must be >= 0")
        if self.order_execution_delay_ms < 0:
            raise ValueError(
                f"order_execution_delay_ms ({self.order_execution_delay_ms}) must be >= 0"
            )
        if self.max_bar_count < 1:
            raise ValueError(f"max_bar_count ({self.max_bar_count}) must be >= 1")

        pre = parse_time_of_day(self.pre_market_open)
        open_ = parse_time_of_day(self.market_open)
        close = parse_time_of_day(self.market_close)
        if not pre <= open_ < close:
            raise ValueError(
                f"Session times must satisfy pre_market_open <= market_open < market_close, "
                f"got {self.pre_market_open}/{self.market_open}/{self.market_close}"
            )

        issues: list[str] = []
        if self.initial_balance <= 0:
            issues.append(f"initial_balance ({self.initial_balance}) is not positive")
        if self.commission_per_order == 0:
            issues.append("Commission is disabled. Results may be overly optimistic.")
        return issues

    def session_for(self, day) -> Session:
        return Session.for_date(
            day,
            pre_market_open=self.pre_market_open,
            market_open=self.market_open,
            market_close=self.market_close,
            tz=self.timezone,
        )

    def broker_options(self) -> BrokerOptions:
        return BrokerOptions(
            order_execution_delay_ms=self.order_execution_delay_ms,
            commission_per_order=self.commission_per_order,
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary for serialization."""
        return {
            "account": {
                "initial_balance": self.initial_balance,
            },
            "execution": {
                "commission_per_order": self.commission_per_order,
                "order_execution_delay_ms": self.order_execution_delay_ms,
            },
            "bars": {
                "max_bar_count": self.max_bar_count,
            },
            "session": {
                "pre_market_open": self.pre_market_open,
                "market_open": self.market_open,
                "market_close": self.market_close,
                "timezone": self.timezone,
            },
            "strategy": {
                "name": self.strategy,
                "symbols": list(self.symbols),
            },
        }

    @classmethod
    def from_dict(cls, data: dict, preset_name: str | None = None) -> BacktestConfig:
        """Create config from dictionary."""
        acct_cfg = data.get("account", {})
        exec_cfg = data.get("execution", {})
        bars_cfg = data.get("bars", {})
        session_cfg = data.get("session", {})
        strategy_cfg = data.get("strategy", {})

        return cls(
            # Account
            initial_balance=acct_cfg.get("initial_balance", 1000.0),
            # Execution
            commission_per_order=exec_cfg.get("commission_per_order", 1.0),
            order_execution_delay_ms=exec_cfg.get("order_execution_delay_ms", 1000),
            # Bars
            max_bar_count=bars_cfg.get("max_bar_count", MAXIMUM_BAR_COUNT),
            # Session
            pre_market_open=session_cfg.get("pre_market_open", DEFAULT_PRE_MARKET_OPEN),
            market_open=session_cfg.get("market_open", DEFAULT_MARKET_OPEN),
            market_close=session_cfg.get("market_close", DEFAULT_MARKET_CLOSE),
            timezone=session_cfg.get("timezone", DEFAULT_TIMEZONE),
            # Strategy
            strategy=strategy_cfg.get("name"),
            symbols=list(strategy_cfg.get("symbols", [])),
            # Metadata
            preset_name=preset_name,
        )

    def to_yaml(self, path: str | Path) -> None:
        """Save config to YAML file."""
        path = Path(path)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, path: str | Path) -> BacktestConfig:
        """Load config from YAML file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data, preset_name=path.stem)

    @classmethod
    def from_preset(cls, preset: str) -> BacktestConfig:
        """
        Load a predefined configuration preset.

        Available presets:
        - "default": $1 per order, one second fill delay
        - "zero-cost": no commission and immediate fills, for isolating strategy logic
        """
        presets = {
            "default": cls._default_preset,
            "zero-cost": cls._zero_cost_preset,
        }

        if preset not in presets:
            available = ", ".join(presets.keys())
            raise ValueError(f"Unknown preset '{preset}'. Available: {available}")

        config = presets[preset]()
        config.preset_name = preset
        return config

    @classmethod
    def _default_preset(cls) -> BacktestConfig:
        return cls()

    @classmethod
    def _zero_cost_preset(cls) -> BacktestConfig:
        return cls(commission_per_order=0.0, order_execution_delay_ms=0)

    def describe(self) -> str:
        """Return human-readable description of configuration."""
        lines = [
            f"BacktestConfig (preset: {self.preset_name or 'custom'})",
            "=" * 50,
            "",
            "Account:",
            f"  Initial balance: ${self.initial_balance:,.2f}",
            "",
            "Execution:",
            f"  Commission per order: ${self.commission_per_order:,.2f}",
            f"  Fill delay: {self.order_execution_delay_ms}ms",
            "",
            "Session:",
            f"  Pre-market: {self.pre_market_open}",
            f"  Open: {self.market_open}",
            f"  Close: {self.market_close}",
            f"  Time zone: {self.timezone}",
            "",
            "Strategy:",
            f"  Name: {self.strategy or '-'}",
            f"  Symbols: {', '.join(self.symbols) or '-'}",
        ]
        return "\n".join(lines)
