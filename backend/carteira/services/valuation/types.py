# backend/carteira/services/valuation/types.py
"""
Internal data types for the valuation core.

These dataclasses are the outputs of the calculators and the ValuationService.
They are plain records: presentation and export collaborators consume them
verbatim.

Design Principles:
- Immutable (frozen=True) for every output record
- Use Decimal for ALL financial values (never float)
- Use date (not datetime) for every business date
- Optional fields use None when data is missing, never a sentinel value

Type Hierarchy:
    Position                  - One asset's holdings, cost and return
    PortfolioSummary          - All positions plus portfolio totals
    AssetHistoryPoint         - One snapshot of an asset's replayed position
    EvolutionPoint            - One point of the aggregated portfolio curve
    SemiannualPayment         - One treasury coupon event
    EvolutionWithPaymentsPoint - One monthly point of the wealth curve with coupons
    AccumulatedReturn         - Real / inflation / total return of an IPCA+ bond
    DistributionSlice         - Current value per asset type
    PerformanceReport         - Contributions, withdrawals and returns over a period
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from carteira.models import AssetType, Currency


# =============================================================================
# POSITION
# =============================================================================

@dataclass(frozen=True)
class Position:
    """
    An asset's position derived from its full transaction ledger.

    Attributes:
        asset_id: Database ID of the asset
        ticker: Asset ticker
        name: Asset display name
        asset_type: Asset type
        currency: Asset currency (all money fields are in this currency)
        quantity: Net quantity held (BUY minus SELL)
        average_price: Weighted-average cost of everything ever bought
        total_invested: Cost of everything ever bought (SELLs never reduce it)
        latest_price: Most recent price, None without price data
        latest_price_date: Date of latest_price
        current_total: quantity × latest_price, None without price data
        absolute_return: current_total − total_invested, None without price data
        percent_return: absolute_return / total_invested × 100,
                        None without price data or when nothing was invested
        dividend_yield: Yield (%) from the latest price point, or the
                        inflation-linked estimate for IPCA+ treasuries
    """

    asset_id: int
    ticker: str
    name: str
    asset_type: AssetType
    currency: Currency
    quantity: Decimal
    average_price: Decimal
    total_invested: Decimal
    latest_price: Decimal | None = None
    latest_price_date: date | None = None
    current_total: Decimal | None = None
    absolute_return: Decimal | None = None
    percent_return: Decimal | None = None
    dividend_yield: Decimal | None = None

    @property
    def has_price(self) -> bool:
        return self.latest_price is not None


@dataclass(frozen=True)
class PortfolioSummary:
    """
    Portfolio totals over every asset with at least one transaction.

    Assets without price data add their cost to total_invested but nothing
    to current_total.
    """

    positions: list[Position]
    total_invested: Decimal
    current_total: Decimal
    absolute_return: Decimal
    percent_return: Decimal


# =============================================================================
# HISTORY & EVOLUTION
# =============================================================================

@dataclass(frozen=True)
class AssetHistoryPoint:
    """
    An asset's replayed position at one price observation.

    Unlike Position, the cost basis here is rescaled proportionally on every
    SELL, so average_price stays flat while total_invested shrinks.
    """

    date: date
    price: Decimal
    quantity: Decimal
    average_price: Decimal
    total_invested: Decimal
    current_total: Decimal
    absolute_return: Decimal
    percent_return: Decimal
    dividend_yield: Decimal | None = None


@dataclass(frozen=True)
class EvolutionPoint:
    """
    One day of the aggregated portfolio curve.

    Attributes:
        date: Calendar day
        total: Sum of every asset's current_total on that day
        is_estimated: True for points synthesized by the sparse-data fallback
    """

    date: date
    total: Decimal
    is_estimated: bool = False


class CouponStatus(str, enum.Enum):
    ESTIMATED = "estimated"  # on or before the reference date
    EXPECTED = "expected"    # after the reference date


@dataclass(frozen=True)
class SemiannualPayment:
    """
    A coupon event of a semiannual-paying treasury bond.

    Attributes:
        date: Payment date (15 January or 15 July)
        amount: Estimated coupon amount
        period: Label such as "Julho 2024"
        status: estimated (past) or expected (upcoming)
    """

    date: date
    amount: Decimal
    period: str
    status: CouponStatus = CouponStatus.ESTIMATED


@dataclass(frozen=True)
class EvolutionWithPaymentsPoint:
    """
    One monthly point of the wealth curve (asset value plus coupons received).

    Attributes:
        date: Month step date
        total: asset_value + payments_received
        invested: Net BUY minus SELL cash flow (not clamped at zero)
        asset_value: Growth estimate, or the real value near the end date
        payments_received: Coupons accumulated up to this month
        events: Coupons paid in this month
        has_payment: True when events is not empty
        daily_payment: Sum of this month's coupons
    """

    date: date
    total: Decimal
    invested: Decimal
    asset_value: Decimal
    payments_received: Decimal
    events: tuple[SemiannualPayment, ...] = field(default_factory=tuple)
    has_payment: bool = False
    daily_payment: Decimal = Decimal("0")


# =============================================================================
# INFLATION-LINKED TREASURIES
# =============================================================================

@dataclass(frozen=True)
class AccumulatedReturn:
    """Accumulated return (percent) of an IPCA+ bond since purchase."""

    real_return: Decimal
    inflation_return: Decimal
    total_return: Decimal
    years: Decimal


# =============================================================================
# REPORTS
# =============================================================================

@dataclass(frozen=True)
class DistributionSlice:
    """Current value of one asset type and its share of the portfolio (%)."""

    asset_type: AssetType
    current_total: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class PerformanceReport:
    """
    Cash flows and returns of the portfolio over a period.

    adjusted_return discounts contributions and withdrawals:
    (final_value − net_contributions) / net_contributions × 100.
    """

    period: str
    from_date: date
    to_date: date
    initial_value: Decimal
    final_value: Decimal
    absolute_return: Decimal
    percent_return: Decimal
    contributions: Decimal
    withdrawals: Decimal
    adjusted_return: Decimal

    @property
    def net_contributions(self) -> Decimal:
        return self.contributions - self.withdrawals
