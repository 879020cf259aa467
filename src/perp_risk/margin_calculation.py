"""`MarginContext` and the immutable `MarginCalculation` accumulator.

A calculation is built once, front to back, as a left fold over an account's
balances and positions. Every `add_*` method returns a new calculation via
`dataclasses.replace()`; running totals are never rolled back.

Buffers (scaled by MARGIN_PRECISION) only apply when positive. They make
losses count extra and inflate requirements, which is how liquidation mode
decides whether an account may leave liquidation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

from .errors import InvalidMarginCalculationError, MarginContextError
from .math import apply_ratio, clamp_non_negative
from .types import MarginCategory, MarginMode


@dataclass(frozen=True)
class MarginContext:
    category: MarginCategory = MarginCategory.INITIAL
    mode: MarginMode = MarginMode.STANDARD
    strict: bool = False
    isolated_buffers: Mapping[int, int] = field(default_factory=dict)
    cross_buffer: int = 0

    def __post_init__(self) -> None:
        if self.cross_buffer < 0:
            raise MarginContextError(f"cross buffer must be non-negative, got {self.cross_buffer}")
        for market_index, buffer in self.isolated_buffers.items():
            if buffer < 0:
                raise MarginContextError(
                    f"isolated buffer for market {market_index} must be non-negative, got {buffer}"
                )
        object.__setattr__(self, "isolated_buffers", MappingProxyType(dict(self.isolated_buffers)))

    @classmethod
    def standard(cls, category: MarginCategory) -> "MarginContext":
        return cls(category=category)

    @classmethod
    def liquidation(cls, margin_buffer: int = 0) -> "MarginContext":
        """Maintenance context with *margin_buffer* applied to the cross account."""
        return cls(
            category=MarginCategory.MAINTENANCE,
            mode=MarginMode.LIQUIDATION,
            cross_buffer=margin_buffer,
        )

    def with_strict(self, strict: bool) -> "MarginContext":
        return replace(self, strict=strict)

    def with_cross_buffer(self, buffer: int) -> "MarginContext":
        return replace(self, cross_buffer=buffer)

    def with_isolated_buffers(self, buffers: Mapping[int, int]) -> "MarginContext":
        return replace(self, isolated_buffers=buffers)

    def isolated_buffer(self, market_index: int) -> int:
        return self.isolated_buffers.get(market_index, 0)


@dataclass(frozen=True)
class IsolatedMarginCalculation:
    """Totals scoped to a single isolated perp market."""

    margin_requirement: int = 0
    total_collateral: int = 0  # deposit + pnl
    total_collateral_buffer: int = 0
    margin_requirement_plus_buffer: int = 0

    def total_collateral_plus_buffer(self) -> int:
        return self.total_collateral + self.total_collateral_buffer

    def meets_margin_requirement(self) -> bool:
        return self.total_collateral >= self.margin_requirement

    def meets_margin_requirement_with_buffer(self) -> bool:
        return self.total_collateral_plus_buffer() >= self.margin_requirement_plus_buffer

    def free_collateral(self) -> int:
        return clamp_non_negative(self.total_collateral - self.margin_requirement)

    def margin_shortage(self) -> int:
        return clamp_non_negative(
            self.margin_requirement_plus_buffer - self.total_collateral_plus_buffer()
        )


@dataclass(frozen=True)
class MarginCalculation:
    context: MarginContext = field(default_factory=MarginContext)
    total_collateral: int = 0
    total_collateral_buffer: int = 0
    margin_requirement: int = 0
    margin_requirement_plus_buffer: int = 0
    isolated_margin_calculations: Mapping[int, IsolatedMarginCalculation] = field(
        default_factory=dict
    )
    num_spot_liabilities: int = 0
    num_perp_liabilities: int = 0
    total_spot_liability_value: int = 0
    total_perp_liability_value: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "isolated_margin_calculations",
            MappingProxyType(dict(self.isolated_margin_calculations)),
        )

    # -- Accumulation --------------------------------------------------------

    def add_cross_margin_total_collateral(self, delta: int) -> "MarginCalculation":
        buffer = self.context.cross_buffer
        collateral_buffer = self.total_collateral_buffer
        if buffer > 0 and delta < 0:
            collateral_buffer += apply_ratio(delta, buffer)
        return replace(
            self,
            total_collateral=self.total_collateral + delta,
            total_collateral_buffer=collateral_buffer,
        )

    def add_cross_margin_requirement(self, margin_requirement: int, liability_value: int) -> "MarginCalculation":
        buffer = self.context.cross_buffer
        plus_buffer = self.margin_requirement_plus_buffer
        if buffer > 0:
            plus_buffer += margin_requirement + apply_ratio(liability_value, buffer)
        return replace(
            self,
            margin_requirement=self.margin_requirement + margin_requirement,
            margin_requirement_plus_buffer=plus_buffer,
        )

    def add_isolated_margin_calculation(
        self,
        market_index: int,
        deposit_value: int,
        pnl: int,
        liability_value: int,
        margin_requirement: int,
    ) -> "MarginCalculation":
        """Create or overwrite the isolated entry for *market_index*."""
        buffer = self.context.isolated_buffer(market_index)
        collateral_buffer = apply_ratio(pnl, buffer) if buffer > 0 and pnl < 0 else 0
        plus_buffer = (
            margin_requirement + apply_ratio(liability_value, buffer)
            if buffer > 0
            else margin_requirement
        )
        isolated = dict(self.isolated_margin_calculations)
        isolated[market_index] = IsolatedMarginCalculation(
            margin_requirement=margin_requirement,
            total_collateral=deposit_value + pnl,
            total_collateral_buffer=collateral_buffer,
            margin_requirement_plus_buffer=plus_buffer,
        )
        return replace(self, isolated_margin_calculations=isolated)

    def add_spot_liability(self) -> "MarginCalculation":
        return replace(self, num_spot_liabilities=self.num_spot_liabilities + 1)

    def add_perp_liability(self) -> "MarginCalculation":
        return replace(self, num_perp_liabilities=self.num_perp_liabilities + 1)

    def add_spot_liability_value(self, value: int) -> "MarginCalculation":
        return replace(self, total_spot_liability_value=self.total_spot_liability_value + value)

    def add_perp_liability_value(self, value: int) -> "MarginCalculation":
        return replace(self, total_perp_liability_value=self.total_perp_liability_value + value)

    # -- Queries -------------------------------------------------------------

    def num_liabilities(self) -> int:
        return self.num_spot_liabilities + self.num_perp_liabilities

    def cross_total_collateral_plus_buffer(self) -> int:
        return self.total_collateral + self.total_collateral_buffer

    def meets_cross_margin_requirement(self) -> bool:
        return self.total_collateral >= self.margin_requirement

    def meets_cross_margin_requirement_with_buffer(self) -> bool:
        return self.cross_total_collateral_plus_buffer() >= self.margin_requirement_plus_buffer

    def meets_margin_requirement(self) -> bool:
        if not self.meets_cross_margin_requirement():
            return False
        return all(
            iso.meets_margin_requirement()
            for iso in self.isolated_margin_calculations.values()
        )

    def meets_margin_requirement_with_buffer(self) -> bool:
        if not self.meets_cross_margin_requirement_with_buffer():
            return False
        return all(
            iso.meets_margin_requirement_with_buffer()
            for iso in self.isolated_margin_calculations.values()
        )

    def can_exit_liquidation(self) -> bool:
        return self.meets_margin_requirement_with_buffer()

    def cross_free_collateral(self) -> int:
        return clamp_non_negative(self.total_collateral - self.margin_requirement)

    def margin_shortage(self) -> int:
        return clamp_non_negative(
            self.margin_requirement_plus_buffer - self.cross_total_collateral_plus_buffer()
        )

    def has_isolated_margin_calculation(self, market_index: int) -> bool:
        return market_index in self.isolated_margin_calculations

    def get_isolated_margin_calculation(self, market_index: int) -> IsolatedMarginCalculation:
        try:
            return self.isolated_margin_calculations[market_index]
        except KeyError:
            raise InvalidMarginCalculationError(market_index) from None

    def isolated_free_collateral(self, market_index: int) -> int:
        return self.get_isolated_margin_calculation(market_index).free_collateral()
