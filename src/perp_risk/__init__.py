"""`perp_risk`: account risk and liquidation-pricing engine.

Given an immutable snapshot of an account (perp positions, bank balances) and
the markets, banks and price feeds it references, computes collateral, margin
requirements, leverage, buying power and liquidation prices:
- deterministic, integer-only fixed-point arithmetic (truncating division),
- immutable inputs and accumulators (frozen dataclasses),
- no I/O during a calculation.

Public API:
- `RiskEngine(snapshot, amm=None, validate=False)`
- `MarginContext`, `MarginCalculation`
- `snapshot_from_dict()`, `snapshot_to_dict()`, `load_snapshot()`
"""

from .engine import RiskEngine
from .errors import (
    InvalidMarginCalculationError,
    MarginContextError,
    MissingBankError,
    MissingMarketError,
    MissingPriceFeedError,
    RiskEngineError,
    SnapshotFormatError,
    SnapshotInvariantError,
    UnsupportedBankDecimalsError,
)
from .liquidation import LIQUIDATION_PRICE_SENTINEL, as_scaled_price
from .margin_calculation import IsolatedMarginCalculation, MarginCalculation, MarginContext
from .pricing import AmmValuation, OracleValuation
from .snapshot import load_snapshot, snapshot_from_dict, snapshot_to_dict
from .types import (
    AccountSnapshot,
    Balance,
    BalanceType,
    Bank,
    LiquidationStatus,
    MarginCategory,
    MarginMode,
    Market,
    NoLiquidationPrice,
    Position,
    PositionDirection,
    Price,
    PriceFeed,
    empty_position,
)

__all__ = [
    "RiskEngine",
    "AccountSnapshot",
    "Position",
    "Balance",
    "BalanceType",
    "Market",
    "Bank",
    "PriceFeed",
    "PositionDirection",
    "MarginCategory",
    "MarginMode",
    "MarginContext",
    "MarginCalculation",
    "IsolatedMarginCalculation",
    "LiquidationStatus",
    "Price",
    "NoLiquidationPrice",
    "LIQUIDATION_PRICE_SENTINEL",
    "as_scaled_price",
    "AmmValuation",
    "OracleValuation",
    "empty_position",
    "snapshot_from_dict",
    "snapshot_to_dict",
    "load_snapshot",
    "RiskEngineError",
    "InvalidMarginCalculationError",
    "MissingMarketError",
    "MissingBankError",
    "MissingPriceFeedError",
    "MarginContextError",
    "SnapshotInvariantError",
    "SnapshotFormatError",
    "UnsupportedBankDecimalsError",
]
