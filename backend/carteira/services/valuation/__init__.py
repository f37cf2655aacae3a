# backend/carteira/services/valuation/__init__.py
"""
Valuation Package.

The calculation core of carteira: positions, time series, treasury coupons
and IPCA+ estimators, plus the ValuationService that feeds them from the
database.

Usage:
    from carteira.services.valuation import ValuationService

    service = ValuationService()

    # Point in time
    position = service.get_position(db, asset_id=1)
    summary = service.get_summary(db)

    # Time series for charts
    curve = service.get_evolution(db, period="1y")
    wealth = service.get_evolution_with_payments(
        db,
        from_date=date(2024, 1, 1),
        to_date=date(2025, 9, 7),
    )

Architecture:
    valuation/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Output data classes
    ├── calculators.py           # Point-in-time calculators and reports
    ├── history_calculator.py    # Asset replay and portfolio curve
    ├── coupons.py               # Semiannual coupon schedules
    ├── treasury.py              # IPCA+ yield / return / price estimators
    ├── evolution.py             # Wealth curve with coupons
    └── service.py               # ValuationService (orchestrator)

Data Flow:
    Transactions → PositionCalculator → Position
    Transactions + Prices → AssetHistoryCalculator → AssetHistoryPoint[]
    AssetHistoryPoint[][] → PortfolioEvolutionCalculator → EvolutionPoint[]
    Transactions → SemiannualCouponEstimator → SemiannualPayment[]
    Coupons + Ledger → EvolutionWithPaymentsBuilder → EvolutionWithPaymentsPoint[]
"""

# Calculators (for testing / direct usage)
from carteira.services.valuation.calculators import (
    PositionCalculator,
    PortfolioSummaryCalculator,
    DistributionCalculator,
    PerformanceCalculator,
)
from carteira.services.valuation.coupons import SemiannualCouponEstimator
from carteira.services.valuation.evolution import EvolutionWithPaymentsBuilder
from carteira.services.valuation.history_calculator import (
    AssetHistoryCalculator,
    PortfolioEvolutionCalculator,
)
# Main service
from carteira.services.valuation.service import ValuationService, resolve_period
from carteira.services.valuation.treasury import (
    InflationLinkedYieldEstimator,
    is_inflation_linked_treasury,
)
# Types
from carteira.services.valuation.types import (
    Position,
    PortfolioSummary,
    AssetHistoryPoint,
    EvolutionPoint,
    CouponStatus,
    SemiannualPayment,
    EvolutionWithPaymentsPoint,
    AccumulatedReturn,
    DistributionSlice,
    PerformanceReport,
)

__all__ = [
    # Main service
    "ValuationService",
    "resolve_period",
    # Calculators
    "PositionCalculator",
    "PortfolioSummaryCalculator",
    "DistributionCalculator",
    "PerformanceCalculator",
    "AssetHistoryCalculator",
    "PortfolioEvolutionCalculator",
    "SemiannualCouponEstimator",
    "EvolutionWithPaymentsBuilder",
    "InflationLinkedYieldEstimator",
    "is_inflation_linked_treasury",
    # Types
    "Position",
    "PortfolioSummary",
    "AssetHistoryPoint",
    "EvolutionPoint",
    "CouponStatus",
    "SemiannualPayment",
    "EvolutionWithPaymentsPoint",
    "AccumulatedReturn",
    "DistributionSlice",
    "PerformanceReport",
]
