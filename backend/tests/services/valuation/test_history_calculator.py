# backend/tests/services/valuation/test_history_calculator.py
"""
Tests for history calculators.

Test Coverage:
- AssetHistoryCalculator: initial position, draining, proportional cost rescale
- PortfolioEvolutionCalculator: per-day aggregation and the sparse-data fallback
- compound_growth helper
"""

from datetime import date
from decimal import Decimal

import pytest

from carteira.services.valuation.history_calculator import (
    AssetHistoryCalculator,
    PortfolioEvolutionCalculator,
    compound_growth,
)
from carteira.services.valuation.types import AssetHistoryPoint, EvolutionPoint
from tests.conftest import MockAsset, buy, price_at, sell


def snapshot(day: date, current_total: str) -> AssetHistoryPoint:
    value = Decimal(current_total)
    return AssetHistoryPoint(
        date=day,
        price=value,
        quantity=Decimal("1"),
        average_price=value,
        total_invested=value,
        current_total=value,
        absolute_return=Decimal("0"),
        percent_return=Decimal("0"),
    )


# =============================================================================
# ASSET HISTORY
# =============================================================================

class TestAssetHistoryCalculator:
    """Tests for AssetHistoryCalculator."""

    @pytest.fixture
    def calc(self) -> AssetHistoryCalculator:
        return AssetHistoryCalculator()

    def test_no_transactions_returns_empty(self, calc):
        prices = [price_at(date(2024, 1, 5), "10")]
        assert calc.calculate(MockAsset(), [], prices, date(2024, 1, 1), date(2024, 12, 31)) == []

    def test_one_snapshot_per_price_in_range(self, calc):
        transactions = [buy(date(2024, 1, 1), "10", "100")]
        prices = [
            price_at(date(2023, 12, 29), "95"),   # before range
            price_at(date(2024, 1, 2), "101"),
            price_at(date(2024, 1, 3), "102"),
            price_at(date(2024, 2, 1), "110"),    # after range
        ]

        history = calc.calculate(MockAsset(), transactions, prices, date(2024, 1, 1), date(2024, 1, 31))

        assert [p.date for p in history] == [date(2024, 1, 2), date(2024, 1, 3)]
        assert history[0].current_total == Decimal("1010")
        assert history[1].absolute_return == Decimal("20")

    def test_initial_position_carried_in(self, calc):
        """Transactions before from_date form the starting position."""
        transactions = [
            buy(date(2023, 5, 1), "10", "50"),
            buy(date(2023, 8, 1), "10", "70"),
        ]
        prices = [price_at(date(2024, 1, 2), "80")]

        history = calc.calculate(MockAsset(), transactions, prices, date(2024, 1, 1), date(2024, 1, 31))

        assert history[0].quantity == Decimal("20")
        assert history[0].total_invested == Decimal("1200")
        assert history[0].average_price == Decimal("60")

    def test_transactions_drained_up_to_each_price_date(self, calc):
        """A transaction on a price date is applied before that snapshot."""
        transactions = [
            buy(date(2024, 1, 1), "10", "100"),
            buy(date(2024, 1, 3), "10", "120"),
        ]
        prices = [price_at(date(2024, 1, 2), "110"), price_at(date(2024, 1, 3), "120")]

        history = calc.calculate(MockAsset(), transactions, prices, date(2024, 1, 1), date(2024, 1, 31))

        assert history[0].quantity == Decimal("10")
        assert history[1].quantity == Decimal("20")
        assert history[1].total_invested == Decimal("2200")

    def test_sell_rescales_cost_proportionally(self, calc):
        """BUY 10 @ 100, BUY 10 @ 120, SELL 5: cost 2200 × 15/20, average stays 110."""
        transactions = [
            buy(date(2024, 1, 1), "10", "100"),
            buy(date(2024, 1, 2), "10", "120"),
            sell(date(2024, 1, 3), "5", "130"),
        ]
        prices = [price_at(date(2024, 1, 3), "130")]

        history = calc.calculate(MockAsset(), transactions, prices, date(2024, 1, 1), date(2024, 1, 31))

        point = history[0]
        assert point.quantity == Decimal("15")
        assert point.total_invested == Decimal("1650")
        assert point.average_price == Decimal("110")

    def test_full_sell_zero_quantity(self, calc):
        """Selling everything leaves zero cost and no division errors."""
        transactions = [
            buy(date(2024, 1, 1), "10", "100"),
            sell(date(2024, 1, 2), "10", "130"),
        ]
        prices = [price_at(date(2024, 1, 3), "130")]

        point = calc.calculate(MockAsset(), transactions, prices, date(2024, 1, 1), date(2024, 1, 31))[0]

        assert point.quantity == Decimal("0")
        assert point.total_invested == Decimal("0")
        assert point.average_price == Decimal("0")
        assert point.percent_return == Decimal("0")

    def test_dividend_yield_from_price(self, calc):
        transactions = [buy(date(2024, 1, 1), "1", "100")]
        prices = [price_at(date(2024, 1, 2), "100", dividend_yield="8.1")]

        point = calc.calculate(MockAsset(), transactions, prices, date(2024, 1, 1), date(2024, 1, 31))[0]

        assert point.dividend_yield == Decimal("8.1")


# =============================================================================
# PORTFOLIO EVOLUTION
# =============================================================================

class TestPortfolioEvolutionAggregate:
    """Tests for PortfolioEvolutionCalculator.aggregate()."""

    def test_shared_date_is_exact_sum(self):
        """At a date both assets have data, the aggregate is the exact sum."""
        histories = [
            [snapshot(date(2024, 1, 2), "100.10"), snapshot(date(2024, 1, 3), "101.20")],
            [snapshot(date(2024, 1, 2), "50.05"), snapshot(date(2024, 1, 4), "52.00")],
        ]

        points = PortfolioEvolutionCalculator().aggregate(histories)
        by_date = {p.date: p.total for p in points}

        assert by_date[date(2024, 1, 2)] == Decimal("150.15")

    def test_single_asset_date_is_not_carried_forward(self):
        """At a date only one asset has data, the aggregate is that asset alone."""
        histories = [
            [snapshot(date(2024, 1, 2), "100"), snapshot(date(2024, 1, 3), "101")],
            [snapshot(date(2024, 1, 2), "50")],
        ]

        points = PortfolioEvolutionCalculator().aggregate(histories)

        assert points == [
            EvolutionPoint(date=date(2024, 1, 2), total=Decimal("150")),
            EvolutionPoint(date=date(2024, 1, 3), total=Decimal("101")),
        ]

    def test_empty_histories_are_excluded(self):
        points = PortfolioEvolutionCalculator().aggregate([[], [snapshot(date(2024, 1, 2), "10")]])
        assert len(points) == 1


class TestPortfolioEvolutionFallback:
    """Tests for the sparse-data fallback."""

    @pytest.fixture
    def calc(self) -> PortfolioEvolutionCalculator:
        return PortfolioEvolutionCalculator(
            growth_rate=Decimal("0.085"),
            min_points=3,
            weekly_threshold_days=90,
        )

    def test_enough_points_returned_as_is(self, calc):
        histories = [[
            snapshot(date(2024, 1, 2), "10"),
            snapshot(date(2024, 1, 3), "11"),
            snapshot(date(2024, 1, 4), "12"),
        ]]

        points = calc.calculate(histories, date(2024, 1, 1), Decimal("10"), date(2024, 6, 1))

        assert len(points) == 3
        assert not any(p.is_estimated for p in points)

    def test_no_first_transaction_no_fallback(self, calc):
        assert calc.calculate([], None, Decimal("0"), date(2024, 6, 1)) == []

    def test_sparse_history_monthly_estimates(self, calc):
        """Long horizons synthesize monthly points plus one at today."""
        real = [snapshot(date(2024, 6, 10), "1200")]

        points = calc.calculate([real], date(2024, 1, 1), Decimal("1000"), date(2024, 6, 15))

        estimated = [p for p in points if p.is_estimated]
        assert [p.date for p in estimated] == [
            date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1),
            date(2024, 4, 1), date(2024, 5, 1), date(2024, 6, 1), date(2024, 6, 15),
        ]
        assert [p.date for p in points] == sorted(p.date for p in points)

    def test_real_points_kept_unflagged(self, calc):
        real = [snapshot(date(2024, 6, 10), "1200")]

        points = calc.calculate([real], date(2024, 1, 1), Decimal("1000"), date(2024, 6, 15))

        kept = [p for p in points if p.date == date(2024, 6, 10)]
        assert kept == [EvolutionPoint(date=date(2024, 6, 10), total=Decimal("1200"))]

    def test_short_horizon_steps_weekly(self, calc):
        points = calc.calculate([], date(2024, 5, 1), Decimal("1000"), date(2024, 5, 20))

        assert [p.date for p in points] == [
            date(2024, 5, 1), date(2024, 5, 8), date(2024, 5, 15), date(2024, 5, 20),
        ]

    def test_estimate_never_below_total_bought(self, calc):
        """A real value below cost still floors the synthesized points at total_bought."""
        real = [snapshot(date(2024, 6, 14), "500")]

        points = calc.calculate([real], date(2024, 1, 1), Decimal("1000"), date(2024, 6, 15))

        assert all(p.total >= Decimal("1000") for p in points if p.is_estimated)

    def test_final_estimate_converges_to_current_value(self, calc):
        """At today progress is 1, so the estimate equals the latest real value."""
        real = [snapshot(date(2024, 6, 10), "1500")]

        points = calc.calculate([real], date(2024, 1, 1), Decimal("1000"), date(2024, 6, 15))

        assert points[-1].date == date(2024, 6, 15)
        assert points[-1].total == Decimal("1500")

    def test_first_estimate_is_total_bought(self, calc):
        """At the first transaction no time has passed: growth equals the amount bought."""
        points = calc.calculate([], date(2024, 1, 1), Decimal("1000"), date(2024, 6, 15))

        assert points[0].date == date(2024, 1, 1)
        assert points[0].total == Decimal("1000")


def test_compound_growth_one_year():
    """365.25 days at 10% grows by exactly 10%."""
    result = compound_growth(Decimal("1000"), Decimal("0.10"), date(2023, 1, 1), date(2024, 1, 1))
    # 365 days is slightly less than a 365.25-day year
    assert Decimal("1099.9") < result < Decimal("1100")
