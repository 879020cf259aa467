"""Liquidation price solver.

Solves for the mark price at which the account's collateral after a price move
equals its margin requirement after that move, holding every other market
fixed:

    long:  delta = free_collateral * L / (L - 1) / base
    short: delta = free_collateral * L / (L + 1) / base   (base < 0, so delta < 0)
    liquidation price = reference price - delta

where L is the market's max leverage for the Partial or Maintenance category.
The result is `Price(value)` or `NoLiquidationPrice(reason)`.
"""

from __future__ import annotations

import logging

from .leverage import max_leverage
from .margin import perp_margin_requirement
from .math import (
    BASE_PRECISION,
    MARGIN_PRECISION,
    PRICE_TO_QUOTE_PRECISION_RATIO,
    abs_val,
    apply_ratio,
    div_trunc,
    mod_trunc,
)
from .pricing import AmmValuation, get_market, market_price_feed
from .types import (
    AccountSnapshot,
    LiquidationPriceResult,
    MarginCategory,
    NoLiquidationPrice,
    Price,
)
from .valuation import total_collateral, total_position_value_excluding_market

logger = logging.getLogger(__name__)

LIQUIDATION_PRICE_SENTINEL: int = -1

POSITION_CLOSED = "position_closed"
FULLY_COLLATERALIZED = "fully_collateralized"
NON_POSITIVE_PRICE = "non_positive_price"
UNBOUNDED_LEVERAGE = "unbounded_leverage"

# quote (1e6) per base (1e13) -> price (1e10)
_QUOTE_PER_BASE_TO_PRICE: int = PRICE_TO_QUOTE_PRECISION_RATIO * BASE_PRECISION


def as_scaled_price(result: LiquidationPriceResult) -> int:
    """Legacy form: the price, or -1 when no liquidation price exists."""
    if isinstance(result, Price):
        return result.value
    return LIQUIDATION_PRICE_SENTINEL


def _none(market_index: int, reason: str) -> NoLiquidationPrice:
    logger.debug("liquidation_price market=%s none reason=%s", market_index, reason)
    return NoLiquidationPrice(reason)


def liquidation_price(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    market_index: int,
    base_size_change: int = 0,
    partial: bool = False,
) -> LiquidationPriceResult:
    """Mark price (1e10) at which the market's position, after *base_size_change*, is liquidatable."""
    category = MarginCategory.PARTIAL if partial else MarginCategory.MAINTENANCE
    market = get_market(snapshot, market_index)
    feed = market_price_feed(snapshot, market)

    collateral = total_collateral(snapshot, valuation)
    position_value_ex = total_position_value_excluding_market(snapshot, valuation, market_index)

    proposed_base = snapshot.position(market_index).base_asset_amount + base_size_change
    if proposed_base == 0:
        return _none(market_index, POSITION_CLOSED)

    proposed_value = valuation.base_asset_value(market, proposed_base, feed)
    position_value_after = position_value_ex + proposed_value

    requirement_ex = perp_margin_requirement(
        snapshot, valuation, category, exclude_market=market_index,
    )
    free_collateral_ex = collateral - requirement_ex
    if position_value_after <= free_collateral_ex:
        return _none(market_index, FULLY_COLLATERALIZED)

    requirement_after = requirement_ex + apply_ratio(proposed_value, category.margin_ratio(market))
    free_collateral_after = collateral - requirement_after

    market_max_leverage = max_leverage(snapshot, market_index, category)
    if proposed_base < 0:
        denominator = market_max_leverage + MARGIN_PRECISION
    else:
        denominator = market_max_leverage - MARGIN_PRECISION
    if denominator == 0:
        return _none(market_index, UNBOUNDED_LEVERAGE)

    price_delta = div_trunc(
        div_trunc(free_collateral_after * market_max_leverage, denominator)
        * _QUOTE_PER_BASE_TO_PRICE,
        proposed_base,
    )

    if base_size_change == 0:
        reference_price = valuation.mark_price(market, feed)
    else:
        reference_price = valuation.mark_price_after_trade(market, base_size_change, feed)

    if price_delta > reference_price:
        return _none(market_index, NON_POSITIVE_PRICE)

    price = reference_price - price_delta
    logger.debug(
        "liquidation_price market=%s base=%s reference=%s delta=%s price=%s",
        market_index, proposed_base, reference_price, price_delta, price,
    )
    return Price(price)


def close_base_amount(base_asset_amount: int, quote_asset_amount: int, close_quote_amount: int) -> int:
    """Base change equivalent to closing *close_quote_amount* of quote exposure."""
    cost_basis = abs_val(quote_asset_amount)
    if cost_basis == 0:
        return 0
    scaled = base_asset_amount * close_quote_amount
    return -(div_trunc(scaled, cost_basis) + mod_trunc(scaled, cost_basis))


def liquidation_price_after_close(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    market_index: int,
    close_quote_amount: int,
) -> LiquidationPriceResult:
    position = snapshot.position(market_index)
    change = close_base_amount(
        position.base_asset_amount, position.quote_asset_amount, close_quote_amount,
    )
    return liquidation_price(snapshot, valuation, market_index, change, partial=True)
