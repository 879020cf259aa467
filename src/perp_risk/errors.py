"""Exception types for the perp_risk engine.

The engine is pure arithmetic, so the taxonomy is narrow: everything here is a
caller contract violation. Numeric edge cases (flat positions, zero position
value, zero collateral) return defined fallback values instead of raising.
"""

from __future__ import annotations


class RiskEngineError(Exception):
    """Base class for all perp_risk errors."""


class InvalidMarginCalculationError(RiskEngineError):
    """Raised when an isolated view is requested for a market never added to the calculation."""

    def __init__(self, market_index: int) -> None:
        self.market_index = market_index
        super().__init__(f"missing isolated margin calculation for market {market_index}")


class MissingMarketError(RiskEngineError, KeyError):
    """Raised when a position references a market absent from the snapshot."""


class MissingBankError(RiskEngineError, KeyError):
    """Raised when a balance references a bank absent from the snapshot."""


class MissingPriceFeedError(RiskEngineError, KeyError):
    """Raised when a market or bank references an oracle absent from the snapshot."""


class MarginContextError(RiskEngineError, ValueError):
    """Raised when a MarginContext is built with a negative buffer."""


class UnsupportedBankDecimalsError(RiskEngineError, ValueError):
    """Raised when a bank's token decimals fall outside the balance precision (0..16)."""

    def __init__(self, bank_index: int, decimals: int) -> None:
        self.bank_index = bank_index
        self.decimals = decimals
        super().__init__(f"bank {bank_index} has unsupported decimals {decimals}")


class SnapshotInvariantError(RiskEngineError):
    """Raised when a snapshot violates one or more sanity invariants."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"snapshot invariant violations: {', '.join(violations)}")


class SnapshotFormatError(RiskEngineError, TypeError):
    """Raised when a snapshot dict or YAML document is malformed."""
