# backend/tests/services/valuation/test_evolution.py
"""
Tests for EvolutionWithPaymentsBuilder (wealth curve with treasury coupons).
"""

from datetime import date
from decimal import Decimal

import pytest

from carteira.services.valuation.evolution import EvolutionWithPaymentsBuilder
from carteira.services.valuation.history_calculator import compound_growth
from tests.conftest import MockAsset, buy, ipca_treasury, price_at, sell

FROM_DATE = date(2024, 1, 1)
TO_DATE = date(2025, 9, 7)
GROWTH = Decimal("0.085")


@pytest.fixture
def builder() -> EvolutionWithPaymentsBuilder:
    return EvolutionWithPaymentsBuilder(growth_rate=GROWTH, window_days=60)


@pytest.fixture
def bond() -> MockAsset:
    return ipca_treasury(asset_id=1, pays_semiannual_coupons=True)


@pytest.fixture
def ledger() -> dict:
    return {1: [buy(date(2024, 1, 1), "1", "2500")]}


class TestBuild:

    def test_monthly_steps(self, builder, bond, ledger):
        points = builder.build([bond], ledger, {1: price_at(date(2025, 9, 5), "2600")}, FROM_DATE, TO_DATE)

        assert len(points) == 21
        assert points[0].date == date(2024, 1, 1)
        assert points[-1].date == date(2025, 9, 1)

    def test_first_point_is_invested_amount(self, builder, bond, ledger):
        points = builder.build([bond], ledger, {1: price_at(date(2025, 9, 5), "2600")}, FROM_DATE, TO_DATE)

        first = points[0]
        assert first.invested == Decimal("2500")
        assert first.asset_value == Decimal("2500")
        assert first.payments_received == Decimal("0")
        assert first.total == Decimal("2500")
        assert not first.has_payment

    def test_coupon_month_carries_event(self, builder, bond, ledger):
        points = builder.build([bond], ledger, {1: price_at(date(2025, 9, 5), "2600")}, FROM_DATE, TO_DATE)
        july = next(p for p in points if p.date == date(2024, 7, 1))

        assert july.has_payment
        assert [e.date for e in july.events] == [date(2024, 7, 15)]
        assert july.daily_payment == Decimal("72.875")
        assert july.payments_received == Decimal("72.875")

    def test_payments_accumulate(self, builder, bond, ledger):
        points = builder.build([bond], ledger, {1: price_at(date(2025, 9, 5), "2600")}, FROM_DATE, TO_DATE)

        received = [p.payments_received for p in points]
        assert received == sorted(received)
        assert points[-1].payments_received == Decimal("218.625")

    def test_real_value_inside_window(self, builder, bond, ledger):
        """Within 60 days of to_date the real current value replaces the estimate."""
        points = builder.build([bond], ledger, {1: price_at(date(2025, 9, 5), "2600")}, FROM_DATE, TO_DATE)
        by_date = {p.date: p for p in points}

        assert by_date[date(2025, 9, 1)].asset_value == Decimal("2600")
        assert by_date[date(2025, 8, 1)].asset_value == Decimal("2600")
        assert by_date[date(2025, 7, 1)].asset_value == compound_growth(
            Decimal("2500"), GROWTH, FROM_DATE, date(2025, 7, 1)
        )
        assert by_date[date(2025, 9, 1)].total == Decimal("2600") + Decimal("218.625")

    def test_no_prices_uses_growth_estimate(self, builder, bond, ledger):
        points = builder.build([bond], ledger, {}, FROM_DATE, TO_DATE)

        assert points[-1].asset_value == compound_growth(Decimal("2500"), GROWTH, FROM_DATE, TO_DATE)

    def test_assets_without_coupons_have_no_events(self, builder):
        stock = MockAsset(id=2)
        points = builder.build(
            [stock],
            {2: [buy(date(2024, 1, 1), "10", "30")]},
            {2: price_at(date(2025, 9, 5), "35")},
            FROM_DATE,
            TO_DATE,
        )
        assert not any(p.has_payment for p in points)
        assert points[-1].payments_received == Decimal("0")


class TestInputs:

    def test_net_invested_can_go_negative(self):
        ledger = {
            1: [buy(date(2024, 1, 1), "10", "10"), sell(date(2024, 6, 1), "10", "25")],
        }
        assert EvolutionWithPaymentsBuilder.net_invested(ledger) == Decimal("-150")

    def test_current_value_none_without_prices(self):
        ledger = {1: [buy(date(2024, 1, 1), "10", "10")]}
        assert EvolutionWithPaymentsBuilder.current_value(ledger, {}) is None

    def test_current_value_sums_priced_assets(self):
        ledger = {
            1: [buy(date(2024, 1, 1), "10", "10"), sell(date(2024, 2, 1), "4", "12")],
            2: [buy(date(2024, 1, 1), "5", "20")],
        }
        latest = {1: price_at(date(2024, 3, 1), "11")}

        assert EvolutionWithPaymentsBuilder.current_value(ledger, latest) == Decimal("66")

    def test_coupons_restricted_to_range(self, builder, bond, ledger):
        coupons = builder.collect_coupons([bond], ledger, date(2024, 8, 1), TO_DATE)
        assert [c.date for c in coupons] == [date(2025, 1, 15), date(2025, 7, 15)]
