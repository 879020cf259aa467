"""Fixed-point constants and integer helpers for the `perp_risk` engine.

Every function is stateless and operates on plain Python ints.

Rounding: all divisions truncate toward zero (`div_trunc`), matching the
on-chain program the snapshots come from. Python's `//` floors toward -inf and
is only used here on operands known to be non-negative.
"""

from __future__ import annotations

# Domain constants (fixed-point scales)
QUOTE_PRECISION: int = 1_000_000  # 1e6
PRICE_PRECISION: int = 10_000_000_000  # 1e10
MARGIN_PRECISION: int = 10_000  # 1e4, also the leverage and buffer scale
BASE_PRECISION: int = 10_000_000_000_000  # 1e13
FUNDING_RATE_PRECISION: int = PRICE_PRECISION
CUMULATIVE_INTEREST_PRECISION: int = 10_000_000_000  # 1e10
PRICE_TO_QUOTE_PRECISION_RATIO: int = PRICE_PRECISION // QUOTE_PRECISION  # 1e4
BALANCE_PRECISION_EXP: int = 16
ONE_MILLION: int = 1_000_000

# "Infinite" margin ratio for accounts with no open exposure.
INFINITE_MARGIN_RATIO: int = 2**64 - 1


# -- Basic helpers -----------------------------------------------------------

def abs_val(x: int) -> int:
    """Absolute value of *x*."""
    return x if x >= 0 else -x


def div_trunc(a: int, b: int) -> int:
    """Integer division truncating toward zero. Raises ZeroDivisionError on b == 0."""
    q = abs_val(a) // abs_val(b)
    return q if (a >= 0) == (b >= 0) else -q


def mod_trunc(a: int, b: int) -> int:
    """Remainder matching `div_trunc`: the sign follows the dividend."""
    return a - b * div_trunc(a, b)


def clamp_non_negative(x: int) -> int:
    return x if x > 0 else 0


# -- Scale conversions -------------------------------------------------------

def base_to_quote(base_asset_amount: int, price: int) -> int:
    """Signed quote value of a base amount at *price*: ``base * price / 1e13 / 1e4``."""
    return div_trunc(base_asset_amount * price, BASE_PRECISION * PRICE_TO_QUOTE_PRECISION_RATIO)


def apply_ratio(value: int, ratio: int) -> int:
    """``value * ratio / MARGIN_PRECISION`` (ratios, weights and buffers share the scale)."""
    return div_trunc(value * ratio, MARGIN_PRECISION)


def max_leverage_for_ratio(margin_ratio: int) -> int:
    """Inverse of a margin ratio in leverage scale: ``1e4 * 1e4 / ratio``."""
    return div_trunc(MARGIN_PRECISION * MARGIN_PRECISION, margin_ratio)


def token_value_precision_decrease(decimals: int) -> int:
    """Divisor turning ``token_amount * price`` into quote precision: ``10**(4 + decimals)``."""
    return PRICE_PRECISION * 10**decimals // QUOTE_PRECISION


def shave_one_ppm(amount: int) -> int:
    """Remove one part-per-million, never going below zero."""
    if amount <= 0:
        return 0
    return amount - div_trunc(amount, ONE_MILLION)
