"""Errors raised around the simulation core."""

ERROR_CODES = (
    "no-ticks",
    "strategy-not-found",
    "no-symbol-data",
    "invalid-symbol-data",
    "unknown",
)

_MESSAGES = {
    "no-ticks": "No ticks provided",
    "strategy-not-found": "Strategy not found",
    "no-symbol-data": "No data available for symbol",
    "invalid-symbol-data": "Tick data references a symbol that is not being tracked",
}


class BacktestError(Exception):
    """Precondition and data errors raised by the backtest driver.

    The tracker and broker never raise during a run; this is only raised
    while setting a run up or when the input stream is unusable.
    """

    def __init__(self, code: str, message: str | None = None):
        if code not in ERROR_CODES:
            code = "unknown"
        self.code = code
        super().__init__(message or _MESSAGES.get(code, code))
