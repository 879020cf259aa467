"""Tests for perp_risk/margin.py — requirements, the margin fold, health."""

import pytest

from perp_risk.errors import InvalidMarginCalculationError
from perp_risk.margin import (
    health,
    initial_margin_requirement,
    maintenance_margin_requirement,
    margin_calculation,
    margin_requirement,
    partial_margin_requirement,
    perp_margin_requirement,
)
from perp_risk.margin_calculation import MarginContext
from perp_risk.math import BASE_PRECISION, PRICE_PRECISION, QUOTE_PRECISION
from perp_risk.pricing import OracleValuation
from perp_risk.types import (
    AccountSnapshot,
    Balance,
    BalanceType,
    Bank,
    MarginCategory,
    Market,
    Position,
    PriceFeed,
)

AMM = OracleValuation()

SHORT_SOL = Position(0, base_asset_amount=-BASE_PRECISION // 10, quote_asset_amount=5 * QUOTE_PRECISION)
USDC_6 = Balance(0, scaled_balance=6_000_000)


def _snapshot(positions=(), balances=(), sol_twap=None) -> AccountSnapshot:
    return AccountSnapshot(
        positions=positions,
        balances=balances,
        markets={
            0: Market(market_index=0, oracle="sol"),
            1: Market(market_index=1, oracle="btc"),
        },
        banks={
            0: Bank(bank_index=0, oracle="usdc"),
            1: Bank(
                bank_index=1, oracle="sol", decimals=9,
                initial_asset_weight=8000, maintenance_asset_weight=9000,
            ),
        },
        price_feeds={
            "sol": PriceFeed(price=50 * PRICE_PRECISION, twap=sol_twap),
            "btc": PriceFeed(price=100 * PRICE_PRECISION),
            "usdc": PriceFeed(price=PRICE_PRECISION),
        },
    )


def _isolated_btc(deposit=2 * QUOTE_PRECISION) -> Position:
    # long 1 BTC at $100, bought for $90
    return Position(
        1, base_asset_amount=BASE_PRECISION, quote_asset_amount=90 * QUOTE_PRECISION,
        is_isolated=True, isolated_deposit=deposit,
    )


# ---------------------------------------------------------------------------
# Requirements per category
# ---------------------------------------------------------------------------


class TestRequirements:
    def test_categories(self):
        s = _snapshot(positions=[SHORT_SOL], balances=[USDC_6])
        assert initial_margin_requirement(s, AMM) == 500_000
        assert partial_margin_requirement(s, AMM) == 312_500
        assert maintenance_margin_requirement(s, AMM) == 250_000

    def test_fill_is_between_initial_and_maintenance(self):
        s = _snapshot(positions=[SHORT_SOL])
        assert margin_requirement(s, AMM, MarginCategory.FILL) == 375_000

    def test_borrows_add_liability(self):
        borrow = Balance(0, scaled_balance=QUOTE_PRECISION, balance_type=BalanceType.BORROW)
        s = _snapshot(positions=[SHORT_SOL], balances=[USDC_6, borrow])
        assert initial_margin_requirement(s, AMM) == 1_500_000

    def test_exclude_market(self):
        s = _snapshot(positions=[SHORT_SOL, _isolated_btc()])
        assert perp_margin_requirement(s, AMM, MarginCategory.INITIAL) == 10_500_000
        assert perp_margin_requirement(s, AMM, MarginCategory.INITIAL, exclude_market=1) == 500_000

    def test_no_positions(self):
        assert initial_margin_requirement(AccountSnapshot(), AMM) == 0


# ---------------------------------------------------------------------------
# Full calculation
# ---------------------------------------------------------------------------


class TestMarginCalculationFold:
    def test_cross_account(self):
        calc = margin_calculation(_snapshot(positions=[SHORT_SOL], balances=[USDC_6]), AMM)
        assert calc.context.category is MarginCategory.INITIAL
        assert calc.total_collateral == 6_000_000
        assert calc.margin_requirement == 500_000
        assert calc.num_perp_liabilities == 1
        assert calc.total_perp_liability_value == 5_000_000
        assert calc.cross_free_collateral() == 5_500_000

    def test_borrow_counts_as_spot_liability(self):
        borrow = Balance(0, scaled_balance=QUOTE_PRECISION, balance_type=BalanceType.BORROW)
        calc = margin_calculation(_snapshot(balances=[USDC_6, borrow]), AMM)
        assert calc.margin_requirement == QUOTE_PRECISION
        assert calc.num_spot_liabilities == 1
        assert calc.total_spot_liability_value == QUOTE_PRECISION

    def test_isolated_position_kept_apart(self):
        s = _snapshot(positions=[SHORT_SOL, _isolated_btc()], balances=[USDC_6])
        calc = margin_calculation(s, AMM)
        assert calc.margin_requirement == 500_000
        assert calc.total_collateral == 6_000_000
        iso = calc.get_isolated_margin_calculation(1)
        assert iso.total_collateral == 12 * QUOTE_PRECISION
        assert iso.margin_requirement == 10 * QUOTE_PRECISION
        assert calc.isolated_free_collateral(1) == 2 * QUOTE_PRECISION
        assert calc.num_perp_liabilities == 2
        assert calc.meets_margin_requirement()

    def test_underwater_isolated_position(self):
        losing_btc = Position(
            1, base_asset_amount=BASE_PRECISION, quote_asset_amount=105 * QUOTE_PRECISION,
            is_isolated=True, isolated_deposit=2 * QUOTE_PRECISION,
        )
        s = _snapshot(positions=[losing_btc], balances=[USDC_6])
        calc = margin_calculation(s, AMM)
        assert calc.meets_cross_margin_requirement()
        assert not calc.meets_margin_requirement()

    def test_asset_weight_follows_category(self):
        s = _snapshot(balances=[Balance(1, scaled_balance=1_000_000)])  # 1 SOL
        initial = margin_calculation(s, AMM)
        maint = margin_calculation(s, AMM, MarginContext.standard(MarginCategory.MAINTENANCE))
        assert initial.total_collateral == 40 * QUOTE_PRECISION
        assert maint.total_collateral == 45 * QUOTE_PRECISION

    def test_strict_values_assets_at_lower_twap(self):
        s = _snapshot(balances=[Balance(1, scaled_balance=1_000_000)], sol_twap=40 * PRICE_PRECISION)
        loose = margin_calculation(s, AMM)
        strict = margin_calculation(s, AMM, MarginContext.standard(MarginCategory.INITIAL).with_strict(True))
        assert loose.total_collateral == 40 * QUOTE_PRECISION  # 50 * 0.8
        assert strict.total_collateral == 32 * QUOTE_PRECISION  # 40 * 0.8

    def test_liquidation_context_buffers(self):
        losing_short = Position(
            0, base_asset_amount=-BASE_PRECISION // 10, quote_asset_amount=4 * QUOTE_PRECISION,
        )
        s = _snapshot(positions=[losing_short], balances=[USDC_6])
        calc = margin_calculation(s, AMM, MarginContext.liquidation(100))
        assert calc.total_collateral == 5_000_000
        assert calc.total_collateral_buffer == -10_000
        assert calc.margin_requirement == 250_000
        assert calc.margin_requirement_plus_buffer == 300_000
        assert calc.can_exit_liquidation()

    def test_empty_snapshot(self):
        calc = margin_calculation(AccountSnapshot(), AMM)
        assert calc.total_collateral == 0
        assert calc.margin_requirement == 0
        assert calc.num_liabilities() == 0
        assert calc.meets_margin_requirement()


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_no_requirement_is_fully_healthy(self):
        assert health(_snapshot(balances=[USDC_6]), AMM) == 100
        assert health(AccountSnapshot(), AMM) == 100

    def test_rounded_percentage(self):
        # 1 - 250_000 / 6_000_000 = 95.83%
        assert health(_snapshot(positions=[SHORT_SOL], balances=[USDC_6]), AMM) == 96

    def test_no_collateral_is_zero(self):
        borrow = Balance(0, scaled_balance=QUOTE_PRECISION, balance_type=BalanceType.BORROW)
        assert health(_snapshot(balances=[borrow]), AMM) == 0

    def test_below_maintenance_is_zero(self):
        deep_loss = Position(0, base_asset_amount=-BASE_PRECISION // 10, quote_asset_amount=QUOTE_PRECISION)
        s = _snapshot(positions=[deep_loss], balances=[Balance(0, scaled_balance=4_100_000)])
        assert health(s, AMM) == 0

    def test_isolated_market(self):
        s = _snapshot(positions=[_isolated_btc()], balances=[USDC_6])
        # 1 - 5 / 12 = 58.3%
        assert health(s, AMM, market_index=1) == 58

    def test_cross_market_has_no_isolated_health(self):
        s = _snapshot(positions=[SHORT_SOL], balances=[USDC_6])
        with pytest.raises(InvalidMarginCalculationError):
            health(s, AMM, market_index=0)
