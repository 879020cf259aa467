"""Tests for perp_risk/leverage.py — leverage, buying power, max trade size."""

import logging

import pytest

from perp_risk.leverage import (
    account_leverage_ratio_after_trade,
    buying_power,
    can_be_liquidated,
    free_collateral,
    leverage,
    margin_ratio,
    max_leverage,
    max_trade_size,
)
from perp_risk.margin import margin_calculation
from perp_risk.margin_calculation import MarginContext
from perp_risk.math import BASE_PRECISION, INFINITE_MARGIN_RATIO, PRICE_PRECISION, QUOTE_PRECISION
from perp_risk.pricing import OracleValuation
from perp_risk.types import (
    AccountSnapshot,
    Balance,
    Bank,
    MarginCategory,
    Market,
    Position,
    PositionDirection,
    PriceFeed,
)

AMM = OracleValuation()
LONG = PositionDirection.LONG
SHORT = PositionDirection.SHORT


def _snapshot(positions=(), deposit=0) -> AccountSnapshot:
    """SOL-PERP (0) at $50 and BTC-PERP (1) at $100, both 10% initial margin."""
    balances = [Balance(0, scaled_balance=deposit)] if deposit else []
    return AccountSnapshot(
        positions=positions,
        balances=balances,
        markets={
            0: Market(market_index=0, oracle="sol"),
            1: Market(market_index=1, oracle="btc"),
        },
        banks={0: Bank(bank_index=0, oracle="usdc")},
        price_feeds={
            "sol": PriceFeed(price=50 * PRICE_PRECISION),
            "btc": PriceFeed(price=100 * PRICE_PRECISION),
            "usdc": PriceFeed(price=PRICE_PRECISION),
        },
    )


def _short_tenth_sol() -> AccountSnapshot:
    # short 0.1 SOL opened at $50, $6 collateral, no PnL
    return _snapshot(
        positions=[Position(0, base_asset_amount=-BASE_PRECISION // 10, quote_asset_amount=5 * QUOTE_PRECISION)],
        deposit=6 * QUOTE_PRECISION,
    )


def _long(market_index: int, price_units: int) -> Position:
    return Position(
        market_index,
        base_asset_amount=BASE_PRECISION,
        quote_asset_amount=price_units * QUOTE_PRECISION,
    )


# ---------------------------------------------------------------------------
# Free collateral, buying power, leverage
# ---------------------------------------------------------------------------


class TestCollateralMetrics:
    def test_free_collateral(self):
        assert free_collateral(_short_tenth_sol(), AMM) == 5_500_000

    def test_free_collateral_never_negative(self):
        s = _snapshot(positions=[_long(0, 50)], deposit=QUOTE_PRECISION)
        assert free_collateral(s, AMM) == 0

    def test_max_leverage(self):
        s = _snapshot()
        assert max_leverage(s, 0) == 100_000
        assert max_leverage(s, 0, MarginCategory.MAINTENANCE) == 200_000

    def test_buying_power(self):
        assert buying_power(_short_tenth_sol(), AMM, 0) == 55 * QUOTE_PRECISION

    def test_leverage(self):
        # 5 / 6
        assert leverage(_short_tenth_sol(), AMM) == 8333

    def test_margin_ratio(self):
        assert margin_ratio(_short_tenth_sol(), AMM) == 12_000


class TestEmptyAccount:
    def test_no_positions(self):
        s = _snapshot()
        assert margin_ratio(s, AMM) == INFINITE_MARGIN_RATIO
        assert leverage(s, AMM) == 0
        status = can_be_liquidated(s, AMM)
        assert not status.can_be_liquidated
        assert status.margin_ratio == INFINITE_MARGIN_RATIO

    def test_zero_collateral_leverage(self):
        s = _snapshot(positions=[_long(0, 60)])
        # collateral is -10, leverage is undefined
        assert leverage(s, AMM) == 0


class TestCanBeLiquidated:
    def test_healthy(self):
        status = can_be_liquidated(_short_tenth_sol(), AMM)
        assert not status.can_be_liquidated
        assert status.total_collateral == 6_000_000
        assert status.margin_requirement == 312_500

    def test_below_partial_requirement(self):
        # long 1 SOL at $50 with $3 collateral; partial = 6.25% of 50 = 3.125
        s = _snapshot(positions=[_long(0, 50)], deposit=3 * QUOTE_PRECISION)
        status = can_be_liquidated(s, AMM)
        assert status.can_be_liquidated
        assert status.margin_ratio == 600


class TestIsolatedAccount:
    @staticmethod
    def _isolated_sol(cost: int, deposit: int) -> AccountSnapshot:
        # long 1 SOL at $50, margined on its own deposit
        return _snapshot(positions=[Position(
            0, base_asset_amount=BASE_PRECISION, quote_asset_amount=cost * QUOTE_PRECISION,
            is_isolated=True, isolated_deposit=deposit * QUOTE_PRECISION,
        )])

    def test_deposit_counts_as_collateral(self):
        s = self._isolated_sol(cost=50, deposit=20)
        status = can_be_liquidated(s, AMM)
        assert status.total_collateral == 20 * QUOTE_PRECISION
        assert not status.can_be_liquidated
        assert free_collateral(s, AMM) == 15 * QUOTE_PRECISION

    @pytest.mark.parametrize("cost, deposit", [(50, 20), (70, 22), (70, 24), (50, 3), (50, 4)])
    def test_agrees_with_partial_margin_fold(self, cost, deposit):
        s = self._isolated_sol(cost, deposit)
        calc = margin_calculation(s, AMM, MarginContext.standard(MarginCategory.PARTIAL))
        status = can_be_liquidated(s, AMM)
        assert status.total_collateral == calc.get_isolated_margin_calculation(0).total_collateral
        assert status.can_be_liquidated is not calc.meets_margin_requirement()


# ---------------------------------------------------------------------------
# Max trade size
# ---------------------------------------------------------------------------


class TestMaxTradeSize:
    def test_same_side(self):
        assert max_trade_size(_short_tenth_sol(), AMM, 0, SHORT) == 54_999_945

    def test_flip_adds_twice_position_value(self):
        # 55 + 2 * 5, shaved by one ppm
        assert max_trade_size(_short_tenth_sol(), AMM, 0, LONG) == 64_999_935

    def test_no_position_is_same_side(self):
        s = _snapshot(deposit=10 * QUOTE_PRECISION)
        assert max_trade_size(s, AMM, 1, SHORT) == max_trade_size(s, AMM, 1, LONG) == 99_999_900

    def test_shave_drops_whole_ppm_only(self):
        # buying power 12_345_670 loses floor(12.34567) = 12
        s = _snapshot(deposit=1_234_567)
        assert max_trade_size(s, AMM, 0, LONG) == 12_345_658

    def test_over_levered_close_frees_margin(self):
        # long 1 SOL, $4 collateral, $5 initial requirement
        s = _snapshot(positions=[_long(0, 50)], deposit=4 * QUOTE_PRECISION)
        assert max_trade_size(s, AMM, 0, SHORT) == 89_999_910

    def test_over_levered_close_still_short(self):
        # closing SOL leaves BTC's $10 requirement above $4 of collateral
        s = _snapshot(positions=[_long(0, 50), _long(1, 100)], deposit=4 * QUOTE_PRECISION)
        assert max_trade_size(s, AMM, 0, SHORT) == 49_999_950

    def test_over_levered_same_side_is_zero(self):
        # Known limitation: adding to an over-levered side is not sized at all.
        s = _snapshot(positions=[_long(0, 50)], deposit=4 * QUOTE_PRECISION)
        assert max_trade_size(s, AMM, 0, LONG) == 0

    def test_logs_branch(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="perp_risk.leverage"):
            max_trade_size(_short_tenth_sol(), AMM, 0, LONG)
        assert "branch=flip" in caplog.text


class TestLeverageAfterTrade:
    def test_adding_to_short(self):
        # (5 + 5) / 6
        assert account_leverage_ratio_after_trade(_short_tenth_sol(), AMM, 0, 5 * QUOTE_PRECISION, SHORT) == 16_666

    def test_closing_short(self):
        assert account_leverage_ratio_after_trade(_short_tenth_sol(), AMM, 0, 5 * QUOTE_PRECISION, LONG) == 0

    def test_other_markets_add(self):
        s = _snapshot(
            positions=[
                Position(0, base_asset_amount=-BASE_PRECISION // 10, quote_asset_amount=5 * QUOTE_PRECISION),
                _long(1, 100),
            ],
            deposit=20 * QUOTE_PRECISION,
        )
        # |-5 - 5| + 100 over 20
        assert account_leverage_ratio_after_trade(s, AMM, 0, 5 * QUOTE_PRECISION, SHORT) == 55_000

    def test_non_positive_collateral(self):
        s = _snapshot(positions=[_long(0, 60)])
        assert account_leverage_ratio_after_trade(s, AMM, 0, QUOTE_PRECISION, LONG) == 0
