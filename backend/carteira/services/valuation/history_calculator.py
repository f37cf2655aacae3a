# backend/carteira/services/valuation/history_calculator.py
"""
History calculators for time series valuation.

AssetHistoryCalculator replays one asset's ledger against its price points
and emits a snapshot per price. PortfolioEvolutionCalculator sums those
snapshots per calendar day and, when real history is too thin to draw,
synthesizes an estimated curve from the first transaction to today.

Rolling State:
    Transactions and prices are both walked once in date order. Before each
    price point every transaction dated on or before it is applied, so the
    replay is O(T + P) per asset.

Cost model:
    BUY  -> cost += quantity × price
    SELL -> cost = cost / quantity × (quantity − sold)

This proportional rescale differs from PositionCalculator, which never
reduces cost on a SELL.

Usage:
    history = AssetHistoryCalculator().calculate(asset, txns, prices, start, end)
    curve = PortfolioEvolutionCalculator().calculate(
        histories=[history, ...],
        first_transaction_date=date(2023, 5, 2),
        total_bought=Decimal("15000"),
        today=date.today(),
    )
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from carteira.config import settings
from carteira.models import TransactionType
from carteira.services.valuation.calculators import ZERO, sort_by_date
from carteira.services.valuation.treasury import HUNDRED
from carteira.services.valuation.types import AssetHistoryPoint, EvolutionPoint
from carteira.utils.date_utils import monthly_dates, weekly_dates, years_between

if TYPE_CHECKING:
    from carteira.models import Asset, PricePoint, Transaction

logger = logging.getLogger(__name__)


def compound_growth(amount: Decimal, annual_rate: Decimal, start_date: date, end_date: date) -> Decimal:
    """amount × (1 + annual_rate) ^ years, years on a 365.25-day year."""
    years = years_between(start_date, end_date)
    return amount * (1 + annual_rate) ** years


# =============================================================================
# ASSET HISTORY
# =============================================================================

class AssetHistoryCalculator:
    """Replays one asset's ledger into a snapshot per price point."""

    def calculate(
            self,
            asset: Asset,
            transactions: list[Transaction],
            prices: list[PricePoint],
            from_date: date,
            to_date: date,
    ) -> list[AssetHistoryPoint]:
        """
        Build an asset's history between two dates.

        Args:
            asset: The asset (used for logging only)
            transactions: The asset's ledger (any order, any dates)
            prices: The asset's price points (any order, any dates)
            from_date: First day of the series
            to_date: Last day of the series

        Returns:
            One snapshot per price point in [from_date, to_date], ascending;
            empty when the asset has no transactions
        """
        if not transactions:
            return []

        ordered = [t for t in sort_by_date(transactions) if t.date <= to_date]
        window = [p for p in sort_by_date(prices) if from_date <= p.date <= to_date]

        quantity = ZERO
        cost = ZERO
        cursor = 0

        # Initial position: everything strictly before the window
        while cursor < len(ordered) and ordered[cursor].date < from_date:
            quantity, cost = self._apply(quantity, cost, ordered[cursor])
            cursor += 1

        history: list[AssetHistoryPoint] = []

        for price_point in window:
            while cursor < len(ordered) and ordered[cursor].date <= price_point.date:
                quantity, cost = self._apply(quantity, cost, ordered[cursor])
                cursor += 1

            current_total = quantity * price_point.price
            absolute_return = current_total - cost

            history.append(AssetHistoryPoint(
                date=price_point.date,
                price=price_point.price,
                quantity=quantity,
                average_price=cost / quantity if quantity else ZERO,
                total_invested=cost,
                current_total=current_total,
                absolute_return=absolute_return,
                percent_return=absolute_return / cost * HUNDRED if cost > 0 else ZERO,
                dividend_yield=price_point.dividend_yield,
            ))

        logger.debug(
            f"History for {asset.ticker} {from_date} to {to_date}: {len(history)} point(s)"
        )
        return history

    @staticmethod
    def _apply(quantity: Decimal, cost: Decimal, txn: Transaction) -> tuple[Decimal, Decimal]:
        """Apply one transaction to the rolling (quantity, cost) state."""
        if txn.transaction_type == TransactionType.BUY:
            return quantity + txn.quantity, cost + txn.quantity * txn.price

        remaining = quantity - txn.quantity
        if quantity == 0:
            return remaining, ZERO
        return remaining, cost / quantity * remaining


# =============================================================================
# PORTFOLIO EVOLUTION
# =============================================================================

class PortfolioEvolutionCalculator:
    """
    Aggregates asset histories into the portfolio curve.

    Attributes:
        _growth_rate: Annual growth assumed by the sparse-data fallback
        _min_points: Fewer real points than this triggers the fallback
        _weekly_threshold_days: Horizons shorter than this step weekly
    """

    def __init__(
            self,
            growth_rate: Decimal | None = None,
            min_points: int | None = None,
            weekly_threshold_days: int | None = None,
    ) -> None:
        self._growth_rate = growth_rate if growth_rate is not None else settings.evolution_growth_rate
        self._min_points = min_points if min_points is not None else settings.sparse_history_min_points
        self._weekly_threshold_days = (
            weekly_threshold_days if weekly_threshold_days is not None
            else settings.weekly_step_threshold_days
        )

    def aggregate(self, histories: list[list[AssetHistoryPoint]]) -> list[EvolutionPoint]:
        """
        Sum current_total per calendar day across every history.

        An asset with no snapshot on a day adds nothing to that day; values
        are not carried forward.
        """
        daily_totals: dict[date, Decimal] = defaultdict(lambda: ZERO)

        for history in histories:
            for point in history:
                daily_totals[point.date] += point.current_total

        return [
            EvolutionPoint(date=day, total=total)
            for day, total in sorted(daily_totals.items())
        ]

    def calculate(
            self,
            histories: list[list[AssetHistoryPoint]],
            first_transaction_date: date | None,
            total_bought: Decimal,
            today: date,
    ) -> list[EvolutionPoint]:
        """
        Portfolio curve, with synthesized points when real data is sparse.

        Args:
            histories: Per-asset histories
            first_transaction_date: Earliest transaction in the portfolio
            total_bought: Sum of BUY quantity × price across the portfolio
            today: End of the synthesized curve

        Returns:
            Points ascending by date; synthesized ones have is_estimated=True
        """
        points = self.aggregate(histories)

        if len(points) >= self._min_points or first_transaction_date is None:
            return points

        logger.debug(
            f"Only {len(points)} real evolution point(s), "
            f"estimating from {first_transaction_date} to {today}"
        )
        return self.estimate(points, first_transaction_date, total_bought, today)

    def estimate(
            self,
            real_points: list[EvolutionPoint],
            start_date: date,
            total_bought: Decimal,
            today: date,
    ) -> list[EvolutionPoint]:
        """
        Blend a compounding growth curve toward the latest real value.

            growth   = total_bought × (1 + rate) ^ years
            progress = elapsed / span
            value    = growth + (current − growth) × progress²   (current > 0)
            total    = max(total_bought, value)

        Real points are kept as they are; estimates fill the other step dates.
        """
        current_value = real_points[-1].total if real_points else ZERO
        real_by_date = {p.date: p for p in real_points}
        span_days = (today - start_date).days

        if span_days < self._weekly_threshold_days:
            step_dates = weekly_dates(start_date, today)
        else:
            step_dates = monthly_dates(start_date, today)
        if not step_dates or step_dates[-1] != today:
            step_dates.append(today)

        merged: dict[date, EvolutionPoint] = dict(real_by_date)

        for step_date in step_dates:
            if step_date in real_by_date:
                continue

            growth = compound_growth(total_bought, self._growth_rate, start_date, step_date)
            progress = (
                Decimal((step_date - start_date).days) / Decimal(span_days)
                if span_days > 0 else Decimal("1")
            )
            if current_value > 0:
                value = growth + (current_value - growth) * progress ** 2
            else:
                value = growth

            merged[step_date] = EvolutionPoint(
                date=step_date,
                total=max(total_bought, value),
                is_estimated=True,
            )

        return [merged[day] for day in sorted(merged)]
