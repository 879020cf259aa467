"""`RiskEngine`: the public surface over one account snapshot.

The engine binds an immutable `AccountSnapshot` to an `AmmValuation` and
re-derives every answer from them on each call; nothing is cached or mutated,
so one instance may be shared across threads.

    engine = RiskEngine(snapshot)            # OracleValuation by default
    engine.free_collateral()
    engine.liquidation_price(market_index=0)
"""

from __future__ import annotations

from . import funding, leverage, liquidation, margin, valuation
from .invariants import check_snapshot_or_raise
from .margin_calculation import MarginCalculation, MarginContext
from .pricing import AmmValuation, OracleValuation
from .types import (
    AccountSnapshot,
    LiquidationPriceResult,
    LiquidationStatus,
    MarginCategory,
    PositionDirection,
)


class RiskEngine:
    def __init__(
        self,
        snapshot: AccountSnapshot,
        amm: AmmValuation | None = None,
        *,
        validate: bool = False,
    ) -> None:
        if validate:
            check_snapshot_or_raise(snapshot)
        self.snapshot = snapshot
        self.amm = amm if amm is not None else OracleValuation()

    # -- Valuation -----------------------------------------------------------

    def position_value(self, market_index: int) -> int:
        return valuation.position_value(self.snapshot, self.amm, market_index)

    def total_position_value(self) -> int:
        return valuation.total_position_value(self.snapshot, self.amm)

    def total_position_value_excluding_market(self, market_index: int) -> int:
        return valuation.total_position_value_excluding_market(self.snapshot, self.amm, market_index)

    def unrealized_pnl(self, include_funding: bool = False, market_index: int | None = None) -> int:
        return valuation.unrealized_pnl(self.snapshot, self.amm, include_funding, market_index)

    def unrealized_funding_pnl(self, market_index: int | None = None) -> int:
        return valuation.unrealized_funding_pnl(self.snapshot, market_index)

    def unsettled_pnl(self, market_index: int | None = None) -> int:
        return valuation.unsettled_pnl(self.snapshot, market_index)

    def collateral_value(self, bank_index: int | None = None) -> int:
        return valuation.collateral_value(self.snapshot, bank_index)

    def total_liability(self) -> int:
        return valuation.total_liability(self.snapshot)

    def total_collateral(self) -> int:
        return valuation.total_collateral(self.snapshot, self.amm)

    def position_estimated_exit_price(self, market_index: int) -> int:
        return valuation.position_estimated_exit_price(self.snapshot, self.amm, market_index)

    # -- Margin --------------------------------------------------------------

    def margin_requirement(self, category: MarginCategory) -> int:
        return margin.margin_requirement(self.snapshot, self.amm, category)

    def initial_margin_requirement(self) -> int:
        return margin.initial_margin_requirement(self.snapshot, self.amm)

    def partial_margin_requirement(self) -> int:
        return margin.partial_margin_requirement(self.snapshot, self.amm)

    def maintenance_margin_requirement(self) -> int:
        return margin.maintenance_margin_requirement(self.snapshot, self.amm)

    def margin_calculation(self, context: MarginContext | None = None) -> MarginCalculation:
        return margin.margin_calculation(self.snapshot, self.amm, context)

    def health(self, market_index: int | None = None) -> int:
        return margin.health(self.snapshot, self.amm, market_index)

    # -- Leverage ------------------------------------------------------------

    def free_collateral(self) -> int:
        return leverage.free_collateral(self.snapshot, self.amm)

    def buying_power(self, market_index: int) -> int:
        return leverage.buying_power(self.snapshot, self.amm, market_index)

    def leverage(self) -> int:
        return leverage.leverage(self.snapshot, self.amm)

    def max_leverage(self, market_index: int, category: MarginCategory = MarginCategory.INITIAL) -> int:
        return leverage.max_leverage(self.snapshot, market_index, category)

    def margin_ratio(self) -> int:
        return leverage.margin_ratio(self.snapshot, self.amm)

    def can_be_liquidated(self) -> LiquidationStatus:
        return leverage.can_be_liquidated(self.snapshot, self.amm)

    def max_trade_size(self, market_index: int, direction: PositionDirection) -> int:
        return leverage.max_trade_size(self.snapshot, self.amm, market_index, direction)

    def account_leverage_ratio_after_trade(
        self, market_index: int, quote_amount: int, direction: PositionDirection,
    ) -> int:
        return leverage.account_leverage_ratio_after_trade(
            self.snapshot, self.amm, market_index, quote_amount, direction,
        )

    # -- Liquidation / funding -----------------------------------------------

    def liquidation_price(
        self, market_index: int, base_size_change: int = 0, partial: bool = False,
    ) -> LiquidationPriceResult:
        return liquidation.liquidation_price(
            self.snapshot, self.amm, market_index, base_size_change, partial,
        )

    def liquidation_price_after_close(self, market_index: int, close_quote_amount: int) -> LiquidationPriceResult:
        return liquidation.liquidation_price_after_close(
            self.snapshot, self.amm, market_index, close_quote_amount,
        )

    def needs_to_settle_funding_payment(self) -> bool:
        return funding.needs_to_settle_funding_payment(self.snapshot)
