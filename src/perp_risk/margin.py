"""Margin requirements per category and the full margin-calculation fold."""

from __future__ import annotations

from functools import reduce

from .margin_calculation import MarginCalculation, MarginContext
from .math import apply_ratio
from .pricing import AmmValuation, bank_price_feed, get_bank, get_market, strict_price
from .types import AccountSnapshot, Balance, BalanceType, MarginCategory, Position
from .valuation import balance_value, position_unrealized_pnl, position_value_of, total_liability


def position_margin_requirement(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    position: Position,
    category: MarginCategory,
) -> int:
    """``position_value * ratio[category] / 1e4``; zero when flat."""
    if position.is_empty:
        return 0
    market = get_market(snapshot, position.market_index)
    value = position_value_of(snapshot, valuation, position)
    return apply_ratio(value, category.margin_ratio(market))


def perp_margin_requirement(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    category: MarginCategory,
    exclude_market: int | None = None,
) -> int:
    """Position part of the requirement, optionally ignoring one market."""
    return sum(
        position_margin_requirement(snapshot, valuation, position, category)
        for position in snapshot.positions
        if position.market_index != exclude_market
    )


def margin_requirement(
    snapshot: AccountSnapshot, valuation: AmmValuation, category: MarginCategory,
) -> int:
    """Full requirement for *category*: positions plus weighted borrows."""
    return perp_margin_requirement(snapshot, valuation, category) + total_liability(snapshot)


def initial_margin_requirement(snapshot: AccountSnapshot, valuation: AmmValuation) -> int:
    return margin_requirement(snapshot, valuation, MarginCategory.INITIAL)


def partial_margin_requirement(snapshot: AccountSnapshot, valuation: AmmValuation) -> int:
    return margin_requirement(snapshot, valuation, MarginCategory.PARTIAL)


def maintenance_margin_requirement(snapshot: AccountSnapshot, valuation: AmmValuation) -> int:
    return margin_requirement(snapshot, valuation, MarginCategory.MAINTENANCE)


# -- Full calculation --------------------------------------------------------

def _fold_balance(
    snapshot: AccountSnapshot,
    calc: MarginCalculation,
    balance: Balance,
) -> MarginCalculation:
    if balance.is_empty:
        return calc
    context = calc.context
    bank = get_bank(snapshot, balance.bank_index)
    feed = bank_price_feed(snapshot, bank)

    if balance.balance_type is BalanceType.DEPOSIT:
        price = strict_price(feed, liability=False) if context.strict else feed.price
        value = balance_value(snapshot, balance, price)
        return calc.add_cross_margin_total_collateral(
            apply_ratio(value, context.category.asset_weight(bank))
        )

    price = strict_price(feed, liability=True) if context.strict else feed.price
    liability = apply_ratio(balance_value(snapshot, balance, price), bank.initial_liability_weight)
    return (
        calc.add_cross_margin_requirement(liability, liability)
        .add_spot_liability()
        .add_spot_liability_value(liability)
    )


def _fold_position(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    calc: MarginCalculation,
    position: Position,
) -> MarginCalculation:
    if position.is_empty:
        return calc
    value = position_value_of(snapshot, valuation, position)
    requirement = position_margin_requirement(snapshot, valuation, position, calc.context.category)
    pnl = (
        position_unrealized_pnl(snapshot, valuation, position, include_funding=True)
        + position.unsettled_pnl
    )

    calc = calc.add_perp_liability().add_perp_liability_value(value)
    if position.is_isolated:
        return calc.add_isolated_margin_calculation(
            position.market_index, position.isolated_deposit, pnl, value, requirement,
        )
    return calc.add_cross_margin_requirement(requirement, value).add_cross_margin_total_collateral(pnl)


def margin_calculation(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    context: MarginContext | None = None,
) -> MarginCalculation:
    """Fold every balance, then every position, into a `MarginCalculation`."""
    calc = MarginCalculation(context=context or MarginContext.standard(MarginCategory.INITIAL))
    calc = reduce(lambda acc, b: _fold_balance(snapshot, acc, b), snapshot.balances, calc)
    return reduce(lambda acc, p: _fold_position(snapshot, valuation, acc, p), snapshot.positions, calc)


def health(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    market_index: int | None = None,
) -> int:
    """Account health in [0, 100] from the maintenance calculation.

    With *market_index*, scores that isolated position instead of the cross
    account; raises InvalidMarginCalculationError if it is not isolated.
    """
    calc = margin_calculation(
        snapshot, valuation, MarginContext.standard(MarginCategory.MAINTENANCE),
    )
    if market_index is not None:
        iso = calc.get_isolated_margin_calculation(market_index)
        collateral, requirement = iso.total_collateral, iso.margin_requirement
    else:
        collateral, requirement = calc.total_collateral, calc.margin_requirement

    if requirement == 0 and collateral >= 0:
        return 100
    if collateral <= 0:
        return 0
    # round((1 - requirement / collateral) * 100), half away from zero
    numerator = 100 * (collateral - requirement)
    if numerator <= 0:
        return 0
    return min(100, (2 * numerator + collateral) // (2 * collateral))
