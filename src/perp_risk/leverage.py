"""Leverage, margin ratio, buying power and maximum trade size.

Leverage and margin ratio are in MARGIN_PRECISION (1e4 = 1x / 100%).
Trade sizes and buying power are quote amounts (1e6).
"""

from __future__ import annotations

import logging

from .margin import (
    initial_margin_requirement,
    partial_margin_requirement,
    position_margin_requirement,
)
from .math import (
    INFINITE_MARGIN_RATIO,
    MARGIN_PRECISION,
    abs_val,
    clamp_non_negative,
    div_trunc,
    max_leverage_for_ratio,
    shave_one_ppm,
)
from .pricing import AmmValuation, get_market
from .types import (
    AccountSnapshot,
    LiquidationStatus,
    MarginCategory,
    PositionDirection,
)
from .valuation import (
    position_value_of,
    total_collateral,
    total_position_value,
    total_position_value_excluding_market,
)

logger = logging.getLogger(__name__)


def free_collateral(snapshot: AccountSnapshot, valuation: AmmValuation) -> int:
    return clamp_non_negative(
        total_collateral(snapshot, valuation) - initial_margin_requirement(snapshot, valuation)
    )


def max_leverage(
    snapshot: AccountSnapshot,
    market_index: int,
    category: MarginCategory = MarginCategory.INITIAL,
) -> int:
    return max_leverage_for_ratio(category.margin_ratio(get_market(snapshot, market_index)))


def buying_power(snapshot: AccountSnapshot, valuation: AmmValuation, market_index: int) -> int:
    return div_trunc(
        free_collateral(snapshot, valuation) * max_leverage(snapshot, market_index),
        MARGIN_PRECISION,
    )


def leverage(snapshot: AccountSnapshot, valuation: AmmValuation) -> int:
    """Total position value over total collateral; 0 when collateral is not positive."""
    collateral = total_collateral(snapshot, valuation)
    if collateral <= 0:
        return 0
    return div_trunc(total_position_value(snapshot, valuation) * MARGIN_PRECISION, collateral)


def margin_ratio(snapshot: AccountSnapshot, valuation: AmmValuation) -> int:
    """Total collateral over total position value; INFINITE_MARGIN_RATIO with no exposure."""
    position_value = total_position_value(snapshot, valuation)
    if position_value == 0:
        return INFINITE_MARGIN_RATIO
    return div_trunc(total_collateral(snapshot, valuation) * MARGIN_PRECISION, position_value)


def can_be_liquidated(snapshot: AccountSnapshot, valuation: AmmValuation) -> LiquidationStatus:
    collateral = total_collateral(snapshot, valuation)
    requirement = partial_margin_requirement(snapshot, valuation)
    return LiquidationStatus(
        can_be_liquidated=collateral < requirement,
        margin_ratio=margin_ratio(snapshot, valuation),
        total_collateral=collateral,
        margin_requirement=requirement,
    )


def max_trade_size(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    market_index: int,
    direction: PositionDirection,
) -> int:
    """Largest quote amount tradeable in *direction* without breaching initial margin.

    Reducing an over-levered position on its own side is not sized: the
    result is 0 in that case.
    """
    position = snapshot.position(market_index)
    same_side = position.is_empty or position.direction is direction
    collateral = total_collateral(snapshot, valuation)
    requirement = initial_margin_requirement(snapshot, valuation)
    within_bounds = collateral >= requirement

    if within_bounds and same_side:
        branch = "same_side"
        size = buying_power(snapshot, valuation, market_index)
    elif within_bounds:
        branch = "flip"
        size = buying_power(snapshot, valuation, market_index) + 2 * position_value_of(
            snapshot, valuation, position,
        )
    elif same_side:
        branch = "over_levered_same_side"
        size = 0
    else:
        branch = "over_levered_close"
        current_value = position_value_of(snapshot, valuation, position)
        requirement_after_close = requirement - position_margin_requirement(
            snapshot, valuation, position, MarginCategory.INITIAL,
        )
        if requirement_after_close > collateral:
            size = current_value
        else:
            size = current_value + div_trunc(
                (collateral - requirement_after_close) * max_leverage(snapshot, market_index),
                MARGIN_PRECISION,
            )

    logger.debug(
        "max_trade_size market=%s direction=%s branch=%s size=%s",
        market_index, direction.value, branch, size,
    )
    return shave_one_ppm(size)


def account_leverage_ratio_after_trade(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    market_index: int,
    trade_quote_amount: int,
    trade_direction: PositionDirection,
) -> int:
    """Account leverage (1e4) if *trade_quote_amount* were added in *trade_direction*."""
    collateral = total_collateral(snapshot, valuation)
    if collateral <= 0:
        return 0
    position = snapshot.position(market_index)
    current = position.direction.signed(position_value_of(snapshot, valuation, position))
    trade = trade_direction.signed(trade_quote_amount)
    others = total_position_value_excluding_market(snapshot, valuation, market_index)
    total_after = abs_val(abs_val(current + trade) + others)
    return div_trunc(total_after * MARGIN_PRECISION, collateral)
