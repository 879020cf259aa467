"""Funding settlement check."""

from __future__ import annotations

from .pricing import get_market
from .types import AccountSnapshot


def needs_to_settle_funding_payment(snapshot: AccountSnapshot) -> bool:
    """True if any open position's last funding rate matches neither side of its market."""
    for position in snapshot.active_positions():
        market = get_market(snapshot, position.market_index)
        if position.last_cumulative_funding_rate in (
            market.cumulative_funding_rate_long,
            market.cumulative_funding_rate_short,
        ):
            continue
        return True
    return False
