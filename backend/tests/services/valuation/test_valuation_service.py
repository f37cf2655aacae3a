# backend/tests/services/valuation/test_valuation_service.py
"""
Integration tests for ValuationService against an in-memory database.

Test Coverage:
- resolve_period helper
- Positions and summary
- Asset history and portfolio evolution
- Treasury coupons and IPCA+ estimates
- Distribution and performance reports
"""

from datetime import date
from decimal import Decimal

import pytest

from carteira.models import AssetType, TransactionType
from carteira.services.exceptions import AssetNotFoundError, InvalidPeriodError, ValidationError
from carteira.services.valuation import ValuationService, resolve_period
from carteira.services.valuation.types import CouponStatus
from tests.conftest import create_asset, create_price, create_transaction

TODAY = date(2025, 9, 7)


# =============================================================================
# PERIOD RESOLUTION
# =============================================================================

class TestResolvePeriod:

    @pytest.mark.parametrize("period, expected_from", [
        ("1m", date(2025, 8, 7)),
        ("3m", date(2025, 6, 7)),
        ("6m", date(2025, 3, 7)),
        ("1y", date(2024, 9, 7)),
        ("ytd", date(2025, 1, 1)),
        ("all", date(2020, 5, 4)),
    ])
    def test_periods(self, period, expected_from):
        assert resolve_period(period, TODAY, date(2020, 5, 4)) == (expected_from, TODAY)

    def test_clamped_to_first_transaction(self):
        assert resolve_period("1y", TODAY, date(2025, 6, 1)) == (date(2025, 6, 1), TODAY)

    def test_empty_ledger_all(self):
        assert resolve_period("all", TODAY, None) == (date(2010, 1, 1), TODAY)

    def test_unknown_period(self):
        with pytest.raises(InvalidPeriodError) as exc_info:
            resolve_period("5y", TODAY, None)
        assert exc_info.value.period == "5y"


# =============================================================================
# POSITIONS
# =============================================================================

class TestPositions:

    def test_unknown_asset(self, db):
        with pytest.raises(AssetNotFoundError):
            ValuationService().get_position(db, 999)

    def test_position_without_transactions_is_none(self, db, stock):
        assert ValuationService().get_position(db, stock.id) is None

    def test_position_uses_latest_price(self, db, stock):
        create_transaction(db, stock, day=date(2024, 1, 10), quantity="10", price="100")
        create_price(db, stock, day=date(2024, 3, 1), price="110")
        create_price(db, stock, day=date(2024, 6, 1), price="130")
        create_price(db, stock, day=date(2024, 2, 1), price="90")

        position = ValuationService().get_position(db, stock.id)

        assert position.latest_price == Decimal("130")
        assert position.current_total == Decimal("1300")
        assert position.percent_return == Decimal("30")

    def test_position_as_of(self, db, stock):
        create_transaction(db, stock, day=date(2024, 1, 10), quantity="10", price="100")
        create_transaction(db, stock, day=date(2024, 5, 10), quantity="10", price="120")
        create_price(db, stock, day=date(2024, 3, 1), price="110")
        create_price(db, stock, day=date(2024, 6, 1), price="130")

        position = ValuationService().get_position(db, stock.id, as_of=date(2024, 4, 1))

        assert position.quantity == Decimal("10")
        assert position.latest_price == Decimal("110")

    def test_summary_excludes_assets_without_transactions(self, db, stock):
        other = create_asset(db, ticker="HGLG11", name="CSHG Logística", asset_type=AssetType.REAL_ESTATE_FUND)
        create_asset(db, ticker="VALE3", name="Vale ON")
        create_transaction(db, stock, quantity="10", price="100")
        create_transaction(db, other, quantity="5", price="200")
        create_price(db, stock, day=date(2024, 2, 1), price="120")

        summary = ValuationService().get_summary(db)

        assert [p.ticker for p in summary.positions] == ["HGLG11", "PETR4"]
        assert summary.total_invested == Decimal("2000")
        assert summary.current_total == Decimal("1200")

    def test_summary_filtered_by_type(self, db, stock):
        other = create_asset(db, ticker="HGLG11", name="CSHG Logística", asset_type=AssetType.REAL_ESTATE_FUND)
        create_transaction(db, stock, quantity="10", price="100")
        create_transaction(db, other, quantity="5", price="200")

        summary = ValuationService().get_summary(db, asset_types=[AssetType.REAL_ESTATE_FUND])

        assert [p.ticker for p in summary.positions] == ["HGLG11"]


# =============================================================================
# TIME SERIES
# =============================================================================

class TestTimeSeries:

    def test_asset_history(self, db, stock):
        create_transaction(db, stock, day=date(2024, 1, 10), quantity="10", price="100")
        create_transaction(
            db, stock, transaction_type=TransactionType.SELL,
            day=date(2024, 2, 15), quantity="5", price="115",
        )
        create_price(db, stock, day=date(2024, 2, 1), price="110")
        create_price(db, stock, day=date(2024, 3, 1), price="120")

        history = ValuationService().get_asset_history(db, stock.id, date(2024, 1, 1), date(2024, 12, 31))

        assert [p.quantity for p in history] == [Decimal("10"), Decimal("5")]
        assert history[1].total_invested == Decimal("500")

    def test_evolution_with_real_history(self, db, stock):
        create_transaction(db, stock, day=date(2025, 1, 10), quantity="10", price="100")
        for day, price in [(date(2025, 2, 3), "110"), (date(2025, 3, 3), "120"), (date(2025, 4, 1), "130")]:
            create_price(db, stock, day=day, price=price)

        points = ValuationService().get_evolution(db, period="1y", today=TODAY)

        assert [p.total for p in points] == [Decimal("1100"), Decimal("1200"), Decimal("1300")]
        assert not any(p.is_estimated for p in points)

    def test_evolution_sparse_history_is_estimated(self, db, stock):
        create_transaction(db, stock, day=date(2025, 1, 10), quantity="10", price="100")
        create_price(db, stock, day=date(2025, 9, 1), price="120")

        points = ValuationService().get_evolution(db, period="1y", today=TODAY)

        assert len(points) > 1
        assert any(p.is_estimated for p in points)
        assert points[-1].date == TODAY

    def test_evolution_invalid_period(self, db):
        with pytest.raises(InvalidPeriodError):
            ValuationService().get_evolution(db, period="2w", today=TODAY)

    def test_asset_history_rejects_reversed_range(self, db, stock):
        with pytest.raises(ValidationError) as exc_info:
            ValuationService().get_asset_history(db, stock.id, date(2024, 12, 31), date(2024, 1, 1))
        assert exc_info.value.field == "from_date"

    def test_evolution_with_payments_rejects_reversed_range(self, db):
        with pytest.raises(ValidationError):
            ValuationService().get_evolution_with_payments(db, date(2025, 9, 7), date(2024, 1, 1))


# =============================================================================
# TREASURY
# =============================================================================

class TestTreasury:

    def test_semiannual_payments(self, db, treasury):
        create_transaction(db, treasury, day=date(2024, 1, 1), quantity="1", price="2500")

        payments = ValuationService().get_semiannual_payments(db, treasury.id, TODAY)

        assert [p.period for p in payments] == ["Julho 2024", "Janeiro 2025", "Julho 2025"]
        assert all(p.amount == Decimal("72.875") for p in payments)

    def test_semiannual_payments_for_stock_empty(self, db, stock):
        create_transaction(db, stock, day=date(2024, 1, 1))
        assert ValuationService().get_semiannual_payments(db, stock.id, TODAY) == []

    def test_upcoming_coupons(self, db, treasury):
        create_transaction(db, treasury, day=date(2024, 1, 1), quantity="1", price="2500")

        upcoming = ValuationService().get_upcoming_coupons(db, treasury.id, TODAY)

        assert [p.date for p in upcoming] == [date(2026, 1, 15), date(2026, 7, 15)]
        assert all(p.status == CouponStatus.EXPECTED for p in upcoming)

    def test_accumulated_return(self, db, treasury):
        create_transaction(db, treasury, day=date(2022, 1, 3), quantity="1", price="2800")
        create_price(db, treasury, day=date(2023, 6, 1), price="3100")

        result = ValuationService().get_accumulated_return(db, treasury.id, as_of=date(2023, 6, 1))

        assert result is not None
        assert result.total_return > result.real_return > 0

    def test_accumulated_return_without_price(self, db, treasury):
        create_transaction(db, treasury, day=date(2022, 1, 3), quantity="1", price="2800")
        assert ValuationService().get_accumulated_return(db, treasury.id, as_of=date(2023, 6, 1)) is None

    def test_evolution_with_payments(self, db, treasury):
        create_transaction(db, treasury, day=date(2024, 1, 1), quantity="1", price="2500")
        create_price(db, treasury, day=date(2025, 9, 5), price="2600")

        points = ValuationService().get_evolution_with_payments(db, date(2024, 1, 1), TODAY)

        assert points[-1].payments_received == Decimal("218.625")
        assert points[-1].asset_value == Decimal("2600")


# =============================================================================
# REPORTS
# =============================================================================

class TestReports:

    def test_distribution(self, db, stock):
        fund = create_asset(db, ticker="HGLG11", name="CSHG Logística", asset_type=AssetType.REAL_ESTATE_FUND)
        create_transaction(db, stock, quantity="10", price="100")
        create_transaction(db, fund, quantity="1", price="100")
        create_price(db, stock, day=date(2024, 2, 1), price="30")
        create_price(db, fund, day=date(2024, 2, 1), price="100")

        slices = ValuationService().get_distribution(db)

        assert [s.asset_type for s in slices] == [AssetType.BR_STOCK, AssetType.REAL_ESTATE_FUND]
        assert slices[0].percentage == Decimal("75")

    def test_performance(self, db, stock):
        create_transaction(db, stock, day=date(2024, 6, 3), quantity="10", price="100")
        create_transaction(db, stock, day=date(2025, 3, 3), quantity="10", price="110")
        create_price(db, stock, day=date(2024, 9, 9), price="105")
        create_price(db, stock, day=date(2025, 9, 1), price="120")

        report = ValuationService().get_performance(db, period="1y", today=TODAY)

        assert report.from_date == date(2024, 9, 7)
        assert report.contributions == Decimal("1100")
        assert report.initial_value == Decimal("1050")
        assert report.final_value == Decimal("2400")

    def test_performance_filtered_by_type(self, db, stock):
        fund = create_asset(db, ticker="HGLG11", name="CSHG Logística", asset_type=AssetType.REAL_ESTATE_FUND)
        create_transaction(db, stock, day=date(2025, 3, 3), quantity="10", price="100")
        create_transaction(db, fund, day=date(2025, 3, 3), quantity="1", price="150")

        report = ValuationService().get_performance(
            db, period="1y", asset_types=[AssetType.REAL_ESTATE_FUND], today=TODAY
        )

        assert report.contributions == Decimal("150")
