"""Data types for the `perp_risk` engine.

All snapshot types are frozen dataclasses (immutable). A snapshot is built once
per calculation by the caller and discarded afterwards.

Units/conventions:
- `base_asset_amount` is signed base units scaled by 1e13 (long > 0, short < 0).
- quote amounts (`quote_asset_amount`, `unsettled_pnl`, `isolated_deposit`)
  are scaled by 1e6.
- prices and cumulative funding rates are scaled by 1e10.
- margin ratios, asset/liability weights and buffers are scaled by 1e4
  (500 = 5%).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from types import MappingProxyType
from typing import Mapping

from .math import CUMULATIVE_INTEREST_PRECISION, MARGIN_PRECISION


@unique
class PositionDirection(Enum):
    LONG = "long"
    SHORT = "short"

    @classmethod
    def of(cls, base_asset_amount: int) -> "PositionDirection":
        """Direction implied by a signed base amount (flat counts as long)."""
        return cls.SHORT if base_asset_amount < 0 else cls.LONG

    def signed(self, amount: int) -> int:
        return -amount if self is PositionDirection.SHORT else amount


@unique
class BalanceType(Enum):
    DEPOSIT = "deposit"
    BORROW = "borrow"


@unique
class MarginMode(Enum):
    STANDARD = "standard"
    LIQUIDATION = "liquidation"


@unique
class MarginCategory(Enum):
    """Which of a market's margin ratios applies."""
    INITIAL = "initial"
    PARTIAL = "partial"
    MAINTENANCE = "maintenance"
    FILL = "fill"

    def margin_ratio(self, market: "Market") -> int:
        if self is MarginCategory.INITIAL:
            return market.margin_ratio_initial
        if self is MarginCategory.PARTIAL:
            return market.margin_ratio_partial
        if self is MarginCategory.MAINTENANCE:
            return market.margin_ratio_maintenance
        # Fill sits halfway between opening and keeping a position.
        return (market.margin_ratio_initial + market.margin_ratio_maintenance) // 2

    def asset_weight(self, bank: "Bank") -> int:
        if self is MarginCategory.MAINTENANCE:
            return bank.maintenance_asset_weight
        return bank.initial_asset_weight


@dataclass(frozen=True)
class Position:
    """Exposure to one perp market."""

    market_index: int
    base_asset_amount: int = 0
    quote_asset_amount: int = 0
    quote_entry_amount: int = 0
    last_cumulative_funding_rate: int = 0
    open_orders: int = 0
    unsettled_pnl: int = 0

    # Isolated margin: collateral dedicated to this position only.
    is_isolated: bool = False
    isolated_deposit: int = 0

    @property
    def is_empty(self) -> bool:
        return self.base_asset_amount == 0

    @property
    def direction(self) -> PositionDirection:
        return PositionDirection.of(self.base_asset_amount)


def empty_position(market_index: int) -> Position:
    """Canonical record for a market the account has no position in."""
    return Position(market_index=market_index)


@dataclass(frozen=True)
class Balance:
    """Deposit or borrow held in one bank. The sign is implied by `balance_type`."""

    bank_index: int
    scaled_balance: int = 0
    balance_type: BalanceType = BalanceType.DEPOSIT

    @property
    def is_empty(self) -> bool:
        return self.scaled_balance == 0


@dataclass(frozen=True)
class Market:
    market_index: int
    oracle: str
    margin_ratio_initial: int = 1000
    margin_ratio_partial: int = 625
    margin_ratio_maintenance: int = 500
    cumulative_funding_rate_long: int = 0
    cumulative_funding_rate_short: int = 0

    def cumulative_funding_rate(self, direction: PositionDirection) -> int:
        if direction is PositionDirection.SHORT:
            return self.cumulative_funding_rate_short
        return self.cumulative_funding_rate_long


@dataclass(frozen=True)
class Bank:
    bank_index: int
    oracle: str
    decimals: int = 6
    initial_asset_weight: int = MARGIN_PRECISION
    maintenance_asset_weight: int = MARGIN_PRECISION
    initial_liability_weight: int = MARGIN_PRECISION
    cumulative_deposit_interest: int = CUMULATIVE_INTEREST_PRECISION
    cumulative_borrow_interest: int = CUMULATIVE_INTEREST_PRECISION


@dataclass(frozen=True)
class PriceFeed:
    """Oracle reading. The engine treats `price` as authoritative."""

    price: int
    confidence: int = 0
    slot: int = 0
    twap: int | None = None


def _freeze(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class AccountSnapshot:
    """Everything one calculation reads: the account plus the records it references."""

    positions: tuple[Position, ...] = ()
    balances: tuple[Balance, ...] = ()
    markets: Mapping[int, Market] = field(default_factory=dict)
    banks: Mapping[int, Bank] = field(default_factory=dict)
    price_feeds: Mapping[str, PriceFeed] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "positions", tuple(self.positions))
        object.__setattr__(self, "balances", tuple(self.balances))
        object.__setattr__(self, "markets", _freeze(self.markets))
        object.__setattr__(self, "banks", _freeze(self.banks))
        object.__setattr__(self, "price_feeds", _freeze(self.price_feeds))

    def position(self, market_index: int) -> Position:
        """Position in *market_index*, or the canonical empty record."""
        for position in self.positions:
            if position.market_index == market_index:
                return position
        return empty_position(market_index)

    def active_positions(self) -> tuple[Position, ...]:
        return tuple(p for p in self.positions if not p.is_empty)


@dataclass(frozen=True)
class LiquidationStatus:
    """Result of `can_be_liquidated()`."""

    can_be_liquidated: bool
    margin_ratio: int
    total_collateral: int = 0
    margin_requirement: int = 0


@dataclass(frozen=True)
class Price:
    """A finite liquidation price (1e10)."""

    value: int


@dataclass(frozen=True)
class NoLiquidationPrice:
    """No finite liquidation price exists for the hypothetical position."""

    reason: str


LiquidationPriceResult = Price | NoLiquidationPrice
