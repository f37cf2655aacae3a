# backend/carteira/services/valuation/treasury.py
"""
Inflation-linked treasury estimators (Tesouro IPCA+).

An IPCA+ bond pays a contracted real rate on top of realized inflation.
This module estimates, from a small static inflation table:
- The annualized dividend yield (with a variant for semiannual coupons)
- The accumulated return since purchase (real, inflation and total)
- A theoretical present-value price against a 1000 face value

Both yield variants are price-independent: the estimated income is
computed as a percentage of the current price and then divided by that same
price, so the price cancels out. The price argument is still accepted so
callers can pass what they have.

All estimators return None (never raise) when the asset is not an IPCA+
treasury with the fields they need.

Usage:
    estimator = InflationLinkedYieldEstimator()

    dy = estimator.dividend_yield(asset, Decimal("3150.22"), date(2023, 6, 1))
    # rate 5.83 + 2023 inflation 4.62 -> Decimal("10.45")
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from carteira.config import settings
from carteira.models import AssetType, IndexType
from carteira.services.constants import (
    COUPON_DAY,
    COUPON_MONTHS,
    INFLATION_BY_YEAR,
    TREASURY_FACE_VALUE,
)
from carteira.services.valuation.types import AccumulatedReturn
from carteira.utils.date_utils import years_between

if TYPE_CHECKING:
    from carteira.models import Asset

HUNDRED = Decimal("100")


def is_inflation_linked_treasury(asset: Asset) -> bool:
    """True for treasury bonds indexed to IPCA, regardless of rate/maturity."""
    return asset.asset_type == AssetType.TREASURY_BOND and asset.index_type == IndexType.IPCA


class InflationLinkedYieldEstimator:
    """
    Yield, return and price estimates for IPCA+ treasury bonds.

    Stateless apart from its configuration: the inflation table and the
    default used for years missing from it.
    """

    def __init__(
            self,
            inflation_by_year: dict[int, Decimal] | None = None,
            default_inflation: Decimal | None = None,
    ) -> None:
        self._inflation_by_year = inflation_by_year if inflation_by_year is not None else INFLATION_BY_YEAR
        self._default_inflation = (
            default_inflation if default_inflation is not None else settings.default_inflation_rate
        )

    # =========================================================================
    # INFLATION LOOKUP
    # =========================================================================

    def annual_inflation(self, year: int) -> Decimal:
        """Annual inflation (%) for a year, or the default estimate."""
        return self._inflation_by_year.get(year, self._default_inflation)

    def accumulated_inflation(self, from_date: date, to_date: date) -> Decimal:
        """
        Simplified accumulated inflation (%) between two dates.

        Sums the table values of every year in [from_date.year, to_date.year];
        the first and last years count half. Years missing from the table add
        nothing here (no default substitution).
        """
        accumulated = Decimal("0")

        for year in range(from_date.year, to_date.year + 1):
            inflation = self._inflation_by_year.get(year)
            if inflation is None:
                continue
            if year in (from_date.year, to_date.year):
                accumulated += inflation / 2
            else:
                accumulated += inflation

        return accumulated

    # =========================================================================
    # APPLICABILITY
    # =========================================================================

    def is_applicable(self, asset: Asset) -> bool:
        """IPCA+ treasury with both a contracted rate and a maturity date."""
        return (
            is_inflation_linked_treasury(asset)
            and asset.rate is not None
            and asset.maturity_date is not None
        )

    # =========================================================================
    # DIVIDEND YIELD
    # =========================================================================

    def dividend_yield(
            self,
            asset: Asset,
            price: Decimal | None,
            reference_date: date,
    ) -> Decimal | None:
        """
        Estimated dividend yield (%), picking the variant that fits the asset.

        Semiannual-coupon bonds use semiannual_yield(), the rest annual_yield().
        """
        if asset.pays_semiannual_coupons:
            return self.semiannual_yield(asset, price, reference_date)
        return self.annual_yield(asset, price, reference_date)

    def total_rate(self, asset: Asset, reference_date: date) -> Decimal:
        """Contracted real rate plus the reference year's inflation (%)."""
        return asset.rate + self.annual_inflation(reference_date.year)

    def annual_yield(
            self,
            asset: Asset,
            price: Decimal | None,
            reference_date: date,
    ) -> Decimal | None:
        """
        Yield for bonds without coupons.

        annual_income = price × total_rate / 100 and yield = annual_income / price × 100,
        which is total_rate for any price.
        """
        if not self.is_applicable(asset):
            return None

        return self.total_rate(asset, reference_date)

    def semiannual_yield(
            self,
            asset: Asset,
            price: Decimal | None,
            reference_date: date,
    ) -> Decimal | None:
        """
        Yield for bonds paying coupons on 15 January and 15 July.

        yield = (total_rate / 2) × remaining_coupon_payments(reference_date),
        the price-free form of price × (total_rate / 2) × n / price × 100.
        """
        if not self.is_applicable(asset):
            return None

        remaining = self.remaining_coupon_payments(reference_date)
        return self.total_rate(asset, reference_date) / 2 * remaining

    @staticmethod
    def remaining_coupon_payments(reference_date: date) -> int:
        """
        Coupon dates of the reference year still ahead of reference_date.

        When both have passed the next cycle's two payments are counted.
        """
        remaining = sum(
            1 for month in COUPON_MONTHS
            if date(reference_date.year, month, COUPON_DAY) > reference_date
        )
        return remaining or len(COUPON_MONTHS)

    # =========================================================================
    # ACCUMULATED RETURN
    # =========================================================================

    def accumulated_return(
            self,
            asset: Asset,
            purchase_price: Decimal,
            purchase_date: date,
            current_price: Decimal,
            current_date: date,
    ) -> AccumulatedReturn | None:
        """
        Return (%) accumulated by an IPCA+ bond since purchase.

        real      = (1 + rate/100) ^ years − 1
        inflation = accumulated_inflation(purchase_date, current_date) / 100
        total     = (1 + real) × (1 + inflation) − 1

        Prices are accepted for symmetry with market-based returns but the
        estimate depends only on rate, dates and the inflation table.
        Needs an IPCA+ treasury with a rate; maturity is not required.
        """
        if not is_inflation_linked_treasury(asset) or asset.rate is None:
            return None

        years = years_between(purchase_date, current_date)
        real = (1 + asset.rate / HUNDRED) ** years - 1
        inflation = self.accumulated_inflation(purchase_date, current_date) / HUNDRED
        total = (1 + real) * (1 + inflation) - 1

        return AccumulatedReturn(
            real_return=real * HUNDRED,
            inflation_return=inflation * HUNDRED,
            total_return=total * HUNDRED,
            years=years,
        )

    # =========================================================================
    # THEORETICAL PRICE
    # =========================================================================

    def theoretical_price(self, asset: Asset, reference_date: date) -> Decimal | None:
        """
        Present value of the 1000 face value at the contracted rate plus inflation.

        PV = 1000 / (1 + rate/100 + inflation/100) ^ years_to_maturity,
        or 1000 once the bond has matured.
        """
        if not self.is_applicable(asset):
            return None

        time_to_maturity = years_between(reference_date, asset.maturity_date)
        if time_to_maturity <= 0:
            return TREASURY_FACE_VALUE

        total_rate = (
            asset.rate / HUNDRED
            + self.annual_inflation(reference_date.year) / HUNDRED
        )
        return TREASURY_FACE_VALUE / (1 + total_rate) ** time_to_maturity
