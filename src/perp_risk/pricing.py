"""Collaborator boundary: valuation function, price lookup and token conversion.

The engine never simulates a liquidity curve. It asks an `AmmValuation` for
the quote notional of closing a position and for mark prices, and it reads
oracle prices from the snapshot's `price_feeds`.

`OracleValuation` is the reference implementation: it values every position at
the oracle price with no price impact. Callers with a curve model plug in their
own object satisfying the protocol.
"""

from __future__ import annotations

from typing import Protocol

from .errors import (
    MissingBankError,
    MissingMarketError,
    MissingPriceFeedError,
    UnsupportedBankDecimalsError,
)
from .math import (
    BALANCE_PRECISION_EXP,
    abs_val,
    base_to_quote,
    div_trunc,
    token_value_precision_decrease,
)
from .types import AccountSnapshot, BalanceType, Bank, Market, PriceFeed


class AmmValuation(Protocol):
    def base_asset_value(self, market: Market, base_asset_amount: int, price_feed: PriceFeed) -> int:
        """Unsigned quote notional (1e6) of fully closing *base_asset_amount*."""
        ...

    def mark_price(self, market: Market, price_feed: PriceFeed) -> int:
        """Current mark price (1e10)."""
        ...

    def mark_price_after_trade(self, market: Market, base_asset_amount: int, price_feed: PriceFeed) -> int:
        """Mark price (1e10) after trading the signed *base_asset_amount* against the market."""
        ...


class OracleValuation:
    """Values positions at the oracle price; trades have no price impact."""

    def base_asset_value(self, market: Market, base_asset_amount: int, price_feed: PriceFeed) -> int:
        return base_to_quote(abs_val(base_asset_amount), price_feed.price)

    def mark_price(self, market: Market, price_feed: PriceFeed) -> int:
        return price_feed.price

    def mark_price_after_trade(self, market: Market, base_asset_amount: int, price_feed: PriceFeed) -> int:
        return price_feed.price


# -- Snapshot lookups --------------------------------------------------------

def get_market(snapshot: AccountSnapshot, market_index: int) -> Market:
    try:
        return snapshot.markets[market_index]
    except KeyError:
        raise MissingMarketError(f"market {market_index} not in snapshot") from None


def get_bank(snapshot: AccountSnapshot, bank_index: int) -> Bank:
    try:
        return snapshot.banks[bank_index]
    except KeyError:
        raise MissingBankError(f"bank {bank_index} not in snapshot") from None


def get_price_feed(snapshot: AccountSnapshot, oracle: str) -> PriceFeed:
    try:
        return snapshot.price_feeds[oracle]
    except KeyError:
        raise MissingPriceFeedError(f"price feed {oracle!r} not in snapshot") from None


def market_price_feed(snapshot: AccountSnapshot, market: Market) -> PriceFeed:
    return get_price_feed(snapshot, market.oracle)


def bank_price_feed(snapshot: AccountSnapshot, bank: Bank) -> PriceFeed:
    return get_price_feed(snapshot, bank.oracle)


# -- Token conversion --------------------------------------------------------

def _check_decimals(bank: Bank) -> None:
    if not 0 <= bank.decimals <= BALANCE_PRECISION_EXP:
        raise UnsupportedBankDecimalsError(bank.bank_index, bank.decimals)


def token_amount(scaled_balance: int, bank: Bank, balance_type: BalanceType) -> int:
    """Actual token quantity (token decimals) of a scaled balance."""
    cumulative_interest = (
        bank.cumulative_deposit_interest
        if balance_type is BalanceType.DEPOSIT
        else bank.cumulative_borrow_interest
    )
    _check_decimals(bank)
    precision_decrease = 10 ** (BALANCE_PRECISION_EXP - bank.decimals)
    return div_trunc(scaled_balance * cumulative_interest, precision_decrease)


def token_value(amount: int, bank: Bank, price: int) -> int:
    """Quote value (1e6) of *amount* tokens at *price* (1e10)."""
    _check_decimals(bank)
    return div_trunc(amount * price, token_value_precision_decrease(bank.decimals))


def strict_price(price_feed: PriceFeed, *, liability: bool) -> int:
    """Conservative price: assets at min(price, twap), liabilities at max(price, twap)."""
    if price_feed.twap is None:
        return price_feed.price
    if liability:
        return max(price_feed.price, price_feed.twap)
    return min(price_feed.price, price_feed.twap)
