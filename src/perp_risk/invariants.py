"""Sanity invariants for an `AccountSnapshot`.

Each function returns True when the invariant holds, and `check_all()` returns
the list of violated invariant IDs (empty = all pass).

These check parameter sanity and referential integrity only. Whether the
records were captured from the same external state version is the caller's
responsibility.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable

from .errors import SnapshotInvariantError
from .math import BALANCE_PRECISION_EXP, MARGIN_PRECISION
from .types import AccountSnapshot

logger = logging.getLogger(__name__)


def inv_margin_ratios_positive(s: AccountSnapshot) -> bool:
    return all(
        m.margin_ratio_initial > 0 and m.margin_ratio_partial > 0 and m.margin_ratio_maintenance > 0
        for m in s.markets.values()
    )


def inv_margin_ratios_ordered(s: AccountSnapshot) -> bool:
    return all(
        m.margin_ratio_initial >= m.margin_ratio_partial >= m.margin_ratio_maintenance
        for m in s.markets.values()
    )


def inv_asset_weights_bounded(s: AccountSnapshot) -> bool:
    return all(
        0 <= b.initial_asset_weight <= b.maintenance_asset_weight <= MARGIN_PRECISION
        for b in s.banks.values()
    )


def inv_liability_weight_floor(s: AccountSnapshot) -> bool:
    return all(b.initial_liability_weight >= MARGIN_PRECISION for b in s.banks.values())


def inv_bank_decimals_supported(s: AccountSnapshot) -> bool:
    return all(0 <= b.decimals <= BALANCE_PRECISION_EXP for b in s.banks.values())


def inv_interest_positive(s: AccountSnapshot) -> bool:
    return all(
        b.cumulative_deposit_interest > 0 and b.cumulative_borrow_interest > 0
        for b in s.banks.values()
    )


def inv_balances_nonneg(s: AccountSnapshot) -> bool:
    return all(b.scaled_balance >= 0 for b in s.balances)


def inv_positions_reference_markets(s: AccountSnapshot) -> bool:
    return all(p.market_index in s.markets for p in s.positions)


def inv_balances_reference_banks(s: AccountSnapshot) -> bool:
    return all(b.bank_index in s.banks for b in s.balances)


def inv_oracles_resolvable(s: AccountSnapshot) -> bool:
    oracles = [m.oracle for m in s.markets.values()] + [b.oracle for b in s.banks.values()]
    return all(oracle in s.price_feeds for oracle in oracles)


def inv_unique_positions(s: AccountSnapshot) -> bool:
    counts = Counter(p.market_index for p in s.positions)
    return all(n == 1 for n in counts.values())


def inv_prices_positive(s: AccountSnapshot) -> bool:
    return all(f.price > 0 for f in s.price_feeds.values())


# ---------------------------------------------------------------------------
# Registry + check_all
# ---------------------------------------------------------------------------

INVARIANT_REGISTRY: dict[str, Callable[[AccountSnapshot], bool]] = {
    "inv_margin_ratios_positive": inv_margin_ratios_positive,
    "inv_margin_ratios_ordered": inv_margin_ratios_ordered,
    "inv_asset_weights_bounded": inv_asset_weights_bounded,
    "inv_liability_weight_floor": inv_liability_weight_floor,
    "inv_bank_decimals_supported": inv_bank_decimals_supported,
    "inv_interest_positive": inv_interest_positive,
    "inv_balances_nonneg": inv_balances_nonneg,
    "inv_positions_reference_markets": inv_positions_reference_markets,
    "inv_balances_reference_banks": inv_balances_reference_banks,
    "inv_oracles_resolvable": inv_oracles_resolvable,
    "inv_unique_positions": inv_unique_positions,
    "inv_prices_positive": inv_prices_positive,
}


def check_all(snapshot: AccountSnapshot) -> list[str]:
    """Return list of violated invariant IDs (empty = all pass)."""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(snapshot)
    ]


def check_snapshot_or_raise(snapshot: AccountSnapshot) -> None:
    violations = check_all(snapshot)
    if violations:
        logger.warning("snapshot rejected: %s", ", ".join(violations))
        raise SnapshotInvariantError(violations)
