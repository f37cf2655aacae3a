# backend/carteira/services/valuation/evolution.py
"""
Wealth curve with semiannual coupons.

Combines a model-based asset value with the coupons received so far into one
monthly series. Outside the last few weeks of the range the asset value is a
compounding estimate from the net invested amount; inside that window it is
replaced by the real current value of the portfolio.

Usage:
    builder = EvolutionWithPaymentsBuilder()
    points = builder.build(assets, transactions_by_asset, latest_prices, start, end)
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from carteira.config import settings
from carteira.models import TransactionType
from carteira.services.valuation.calculators import ZERO
from carteira.services.valuation.coupons import SemiannualCouponEstimator
from carteira.services.valuation.history_calculator import compound_growth
from carteira.services.valuation.types import EvolutionWithPaymentsPoint, SemiannualPayment
from carteira.utils.date_utils import monthly_dates, same_or_earlier_month

if TYPE_CHECKING:
    from carteira.models import Asset, PricePoint, Transaction

logger = logging.getLogger(__name__)


class EvolutionWithPaymentsBuilder:
    """
    Builds the monthly wealth curve (asset value + accumulated coupons).

    Attributes:
        _coupons: Coupon schedule source
        _growth_rate: Annual growth of the asset value estimate
        _window_days: Days before to_date where the real value is used
    """

    def __init__(
            self,
            coupon_estimator: SemiannualCouponEstimator | None = None,
            growth_rate: Decimal | None = None,
            window_days: int | None = None,
    ) -> None:
        self._coupons = coupon_estimator or SemiannualCouponEstimator()
        self._growth_rate = growth_rate if growth_rate is not None else settings.evolution_growth_rate
        self._window_days = window_days if window_days is not None else settings.current_value_window_days

    def build(
            self,
            assets: list[Asset],
            transactions_by_asset: dict[int, list[Transaction]],
            latest_prices: dict[int, PricePoint | None],
            from_date: date,
            to_date: date,
    ) -> list[EvolutionWithPaymentsPoint]:
        """
        Build the curve over [from_date, to_date].

        Args:
            assets: Every asset in the portfolio
            transactions_by_asset: Full ledger per asset id
            latest_prices: Most recent price point per asset id (None if none)
            from_date: First month step
            to_date: Last day of the range

        Returns:
            One point per month step, ascending
        """
        total_invested = self.net_invested(transactions_by_asset)
        current_value = self.current_value(transactions_by_asset, latest_prices)
        if current_value is None:
            current_value = compound_growth(total_invested, self._growth_rate, from_date, to_date)

        coupons = self.collect_coupons(assets, transactions_by_asset, from_date, to_date)

        points: list[EvolutionWithPaymentsPoint] = []
        payments_accumulated = ZERO
        cursor = 0

        for step_date in monthly_dates(from_date, to_date):
            if (to_date - step_date).days <= self._window_days:
                asset_value = current_value
            else:
                asset_value = compound_growth(total_invested, self._growth_rate, from_date, step_date)

            while cursor < len(coupons) and same_or_earlier_month(coupons[cursor].date, step_date):
                payments_accumulated += coupons[cursor].amount
                cursor += 1

            events = tuple(
                c for c in coupons
                if (c.date.year, c.date.month) == (step_date.year, step_date.month)
            )

            points.append(EvolutionWithPaymentsPoint(
                date=step_date,
                total=asset_value + payments_accumulated,
                invested=total_invested,
                asset_value=asset_value,
                payments_received=payments_accumulated,
                events=events,
                has_payment=bool(events),
                daily_payment=sum((c.amount for c in events), ZERO),
            ))

        logger.debug(
            f"Evolution with payments {from_date} to {to_date}: {len(points)} point(s), "
            f"{len(coupons)} coupon(s), {payments_accumulated} received"
        )
        return points

    # =========================================================================
    # INPUTS
    # =========================================================================

    @staticmethod
    def net_invested(transactions_by_asset: dict[int, list[Transaction]]) -> Decimal:
        """BUY cash minus SELL cash over every transaction; may be negative."""
        total = ZERO
        for transactions in transactions_by_asset.values():
            for txn in transactions:
                amount = txn.quantity * txn.price
                total += amount if txn.transaction_type == TransactionType.BUY else -amount
        return total

    @staticmethod
    def current_value(
            transactions_by_asset: dict[int, list[Transaction]],
            latest_prices: dict[int, PricePoint | None],
    ) -> Decimal | None:
        """Net quantity × latest price summed over priced assets; None if none is priced."""
        total = ZERO
        priced = False

        for asset_id, transactions in transactions_by_asset.items():
            latest = latest_prices.get(asset_id)
            if latest is None:
                continue
            priced = True
            quantity = sum(
                (t.quantity if t.transaction_type == TransactionType.BUY else -t.quantity
                 for t in transactions),
                ZERO,
            )
            total += quantity * latest.price

        return total if priced else None

    def collect_coupons(
            self,
            assets: list[Asset],
            transactions_by_asset: dict[int, list[Transaction]],
            from_date: date,
            to_date: date,
    ) -> list[SemiannualPayment]:
        """Coupons of every semiannual-paying asset within [from_date, to_date]."""
        coupons: list[SemiannualPayment] = []

        for asset in assets:
            if not self._coupons.is_applicable(asset):
                continue
            schedule = self._coupons.schedule(
                asset, transactions_by_asset.get(asset.id, []), to_date
            )
            coupons.extend(c for c in schedule if from_date <= c.date <= to_date)

        return sorted(coupons, key=lambda c: c.date)
