"""Valuation: signed monetary values of an account snapshot.

Every function is pure and returns quote precision (1e6) unless noted.
Positions are valued through the `AmmValuation` collaborator; balances through
`token_amount` and the bank's oracle price.
"""

from __future__ import annotations

from .math import (
    BASE_PRECISION,
    FUNDING_RATE_PRECISION,
    PRICE_PRECISION,
    QUOTE_PRECISION,
    abs_val,
    apply_ratio,
    div_trunc,
)
from .pricing import (
    AmmValuation,
    bank_price_feed,
    get_bank,
    get_market,
    market_price_feed,
    token_amount,
    token_value,
)
from .types import AccountSnapshot, Balance, BalanceType, Market, Position, PositionDirection


# -- Positions ---------------------------------------------------------------

def position_value_of(
    snapshot: AccountSnapshot, valuation: AmmValuation, position: Position,
) -> int:
    """Quote notional of fully closing *position*; zero when flat."""
    if position.is_empty:
        return 0
    market = get_market(snapshot, position.market_index)
    return valuation.base_asset_value(
        market, position.base_asset_amount, market_price_feed(snapshot, market),
    )


def position_value(snapshot: AccountSnapshot, valuation: AmmValuation, market_index: int) -> int:
    return position_value_of(snapshot, valuation, snapshot.position(market_index))


def funding_pnl(market: Market, position: Position) -> int:
    """Unsettled funding for *position*; funding owed is negative.

    ``-(rate[side] - last_rate) * base / 1e13 / 1e4``
    """
    if position.is_empty:
        return 0
    rate = market.cumulative_funding_rate(position.direction)
    delta = rate - position.last_cumulative_funding_rate
    return -div_trunc(
        delta * position.base_asset_amount,
        BASE_PRECISION * (FUNDING_RATE_PRECISION // QUOTE_PRECISION),
    )


def position_unrealized_pnl(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    position: Position,
    include_funding: bool = False,
) -> int:
    if position.is_empty:
        return 0
    notional = position_value_of(snapshot, valuation, position)
    cost_basis = abs_val(position.quote_asset_amount)
    if position.direction is PositionDirection.SHORT:
        pnl = cost_basis - notional
    else:
        pnl = notional - cost_basis
    if include_funding:
        pnl += funding_pnl(get_market(snapshot, position.market_index), position)
    return pnl


def unrealized_pnl(
    snapshot: AccountSnapshot,
    valuation: AmmValuation,
    include_funding: bool = False,
    market_index: int | None = None,
) -> int:
    """Unrealized PnL summed over positions, optionally restricted to one market."""
    return sum(
        position_unrealized_pnl(snapshot, valuation, position, include_funding)
        for position in snapshot.positions
        if market_index is None or position.market_index == market_index
    )


def unrealized_funding_pnl(snapshot: AccountSnapshot, market_index: int | None = None) -> int:
    return sum(
        funding_pnl(get_market(snapshot, position.market_index), position)
        for position in snapshot.positions
        if not position.is_empty
        and (market_index is None or position.market_index == market_index)
    )


def unsettled_pnl(snapshot: AccountSnapshot, market_index: int | None = None) -> int:
    """PnL already accrued on positions but not yet settled into balances."""
    return sum(
        position.unsettled_pnl
        for position in snapshot.positions
        if market_index is None or position.market_index == market_index
    )


def total_position_value(snapshot: AccountSnapshot, valuation: AmmValuation) -> int:
    return sum(position_value_of(snapshot, valuation, p) for p in snapshot.positions)


def total_position_value_excluding_market(
    snapshot: AccountSnapshot, valuation: AmmValuation, market_to_ignore: int,
) -> int:
    return sum(
        position_value_of(snapshot, valuation, p)
        for p in snapshot.positions
        if p.market_index != market_to_ignore
    )


def position_estimated_exit_price(
    snapshot: AccountSnapshot, valuation: AmmValuation, market_index: int,
) -> int:
    """Average price (1e10) received for closing the whole position; zero when flat."""
    position = snapshot.position(market_index)
    if position.is_empty:
        return 0
    value = position_value_of(snapshot, valuation, position)
    return div_trunc(
        value * PRICE_PRECISION * BASE_PRECISION,
        abs_val(position.base_asset_amount) * QUOTE_PRECISION,
    )


# -- Balances ----------------------------------------------------------------

def balance_value(snapshot: AccountSnapshot, balance: Balance, price: int | None = None) -> int:
    """Unweighted quote value of *balance*; *price* overrides the oracle price."""
    bank = get_bank(snapshot, balance.bank_index)
    if price is None:
        price = bank_price_feed(snapshot, bank).price
    amount = token_amount(balance.scaled_balance, bank, balance.balance_type)
    return token_value(amount, bank, price)


def collateral_value(snapshot: AccountSnapshot, bank_index: int | None = None) -> int:
    """Unweighted value of deposits, optionally for one bank."""
    return sum(
        balance_value(snapshot, balance)
        for balance in snapshot.balances
        if not balance.is_empty
        and balance.balance_type is BalanceType.DEPOSIT
        and (bank_index is None or balance.bank_index == bank_index)
    )


def weighted_collateral_value(snapshot: AccountSnapshot) -> int:
    """Deposit value weighted by each bank's initial asset weight."""
    total = 0
    for balance in snapshot.balances:
        if balance.is_empty or balance.balance_type is not BalanceType.DEPOSIT:
            continue
        bank = get_bank(snapshot, balance.bank_index)
        total += apply_ratio(balance_value(snapshot, balance), bank.initial_asset_weight)
    return total


def total_liability(snapshot: AccountSnapshot) -> int:
    """Borrow value weighted by each bank's initial liability weight."""
    total = 0
    for balance in snapshot.balances:
        if balance.is_empty or balance.balance_type is not BalanceType.BORROW:
            continue
        bank = get_bank(snapshot, balance.bank_index)
        total += apply_ratio(balance_value(snapshot, balance), bank.initial_liability_weight)
    return total


def isolated_deposits(snapshot: AccountSnapshot) -> int:
    """Quote collateral parked in open isolated positions."""
    return sum(
        position.isolated_deposit
        for position in snapshot.active_positions()
        if position.is_isolated
    )


def total_collateral(snapshot: AccountSnapshot, valuation: AmmValuation) -> int:
    """Weighted deposits + isolated deposits + unrealized PnL (with funding) + unsettled PnL.

    Account-wide: isolated positions count on both sides, matching the
    requirement totals. Per-position solvency comes from `margin_calculation`.
    """
    return (
        weighted_collateral_value(snapshot)
        + isolated_deposits(snapshot)
        + unrealized_pnl(snapshot, valuation, include_funding=True)
        + unsettled_pnl(snapshot)
    )
