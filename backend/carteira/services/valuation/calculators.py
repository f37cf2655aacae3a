# backend/carteira/services/valuation/calculators.py
"""
Point-in-time valuation calculators.

Each calculator does one thing:
- PositionCalculator: Folds an asset's ledger into a Position
- PortfolioSummaryCalculator: Totals positions into a PortfolioSummary
- DistributionCalculator: Groups current value by asset type
- PerformanceCalculator: Cash flows and returns over a period

Design Principles:
- Stateless (no instance state besides injected collaborators)
- Receives all data explicitly, never touches the database
- Uses Decimal for ALL financial calculations
- Missing price data degrades to None fields, never raises

Usage:
    calc = PositionCalculator()
    position = calc.calculate(asset, transactions, latest_price)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from carteira.models import AssetType, TransactionType
from carteira.services.valuation.treasury import HUNDRED, InflationLinkedYieldEstimator
from carteira.services.valuation.types import (
    DistributionSlice,
    PerformanceReport,
    PortfolioSummary,
    Position,
)

if TYPE_CHECKING:
    from carteira.models import Asset, PricePoint, Transaction

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def sort_by_date(records: list) -> list:
    """Stable ascending sort by the `date` attribute."""
    return sorted(records, key=lambda r: r.date)


# =============================================================================
# POSITION CALCULATOR
# =============================================================================

class PositionCalculator:
    """
    Folds an asset's transaction ledger into a Position.

    Average cost uses every BUY ever made: SELLs reduce the quantity held but
    never the cost basis. The history replay in history_calculator rescales
    cost on SELLs instead; the two models are deliberately kept apart.
    """

    def __init__(self, yield_estimator: InflationLinkedYieldEstimator | None = None) -> None:
        self._yield_estimator = yield_estimator or InflationLinkedYieldEstimator()

    def calculate(
            self,
            asset: Asset,
            transactions: list[Transaction],
            latest_price: PricePoint | None,
            as_of: date | None = None,
    ) -> Position | None:
        """
        Calculate an asset's position.

        Args:
            asset: The asset
            transactions: The asset's ledger (any order)
            latest_price: Most recent price point, or None without price data
            as_of: Ignore transactions and prices dated after this day

        Returns:
            Position, or None when the asset has no transactions
        """
        if as_of is not None:
            transactions = [t for t in transactions if t.date <= as_of]
            if latest_price is not None and latest_price.date > as_of:
                latest_price = None

        if not transactions:
            return None

        quantity = ZERO
        total_quantity_bought = ZERO
        total_cost_bought = ZERO

        for txn in sort_by_date(transactions):
            if txn.transaction_type == TransactionType.BUY:
                quantity += txn.quantity
                total_quantity_bought += txn.quantity
                total_cost_bought += txn.quantity * txn.price
            else:
                quantity -= txn.quantity

        average_price = total_cost_bought / total_quantity_bought if total_quantity_bought else ZERO
        total_invested = total_cost_bought

        if latest_price is None:
            return Position(
                asset_id=asset.id,
                ticker=asset.ticker,
                name=asset.name,
                asset_type=asset.asset_type,
                currency=asset.currency,
                quantity=quantity,
                average_price=average_price,
                total_invested=total_invested,
                dividend_yield=self._dividend_yield(asset, None, as_of or date.today()),
            )

        current_total = quantity * latest_price.price
        absolute_return = current_total - total_invested
        percent_return = absolute_return / total_invested * HUNDRED if total_invested > 0 else None

        return Position(
            asset_id=asset.id,
            ticker=asset.ticker,
            name=asset.name,
            asset_type=asset.asset_type,
            currency=asset.currency,
            quantity=quantity,
            average_price=average_price,
            total_invested=total_invested,
            latest_price=latest_price.price,
            latest_price_date=latest_price.date,
            current_total=current_total,
            absolute_return=absolute_return,
            percent_return=percent_return,
            dividend_yield=self._dividend_yield(asset, latest_price, latest_price.date),
        )

    def _dividend_yield(
            self,
            asset: Asset,
            latest_price: PricePoint | None,
            reference_date: date,
    ) -> Decimal | None:
        """Inflation-linked estimate when it applies, else the recorded yield."""
        price = latest_price.price if latest_price is not None else None
        estimated = self._yield_estimator.dividend_yield(asset, price, reference_date)
        if estimated is not None:
            return estimated
        return latest_price.dividend_yield if latest_price is not None else None


# =============================================================================
# PORTFOLIO SUMMARY
# =============================================================================

class PortfolioSummaryCalculator:
    """
    Totals a list of positions.

    Positions without a price add their cost to total_invested and nothing
    to current_total.
    """

    def calculate(self, positions: list[Position]) -> PortfolioSummary:
        total_invested = sum((p.total_invested for p in positions), ZERO)
        current_total = sum(
            (p.current_total for p in positions if p.current_total is not None),
            ZERO,
        )
        absolute_return = current_total - total_invested
        percent_return = absolute_return / total_invested * HUNDRED if total_invested > 0 else ZERO

        return PortfolioSummary(
            positions=positions,
            total_invested=total_invested,
            current_total=current_total,
            absolute_return=absolute_return,
            percent_return=percent_return,
        )


# =============================================================================
# DISTRIBUTION
# =============================================================================

class DistributionCalculator:
    """Current value per asset type, largest first."""

    def calculate(self, positions: list[Position]) -> list[DistributionSlice]:
        totals: dict[AssetType, Decimal] = defaultdict(lambda: ZERO)

        for position in positions:
            # Positions without a price or with zero value are left out
            if not position.current_total:
                continue
            totals[position.asset_type] += position.current_total

        portfolio_total = sum(totals.values(), ZERO)

        slices = [
            DistributionSlice(
                asset_type=asset_type,
                current_total=total,
                percentage=total / portfolio_total * HUNDRED if portfolio_total else ZERO,
            )
            for asset_type, total in totals.items()
        ]
        return sorted(slices, key=lambda s: s.current_total, reverse=True)


# =============================================================================
# PERFORMANCE
# =============================================================================

class PerformanceCalculator:
    """
    Contributions, withdrawals and returns over [from_date, to_date].

    Per asset:
        initial_value = quantity held before from_date × first price in the period
        final_value   = quantity held at to_date × last price in the period

    Assets without prices in the period contribute cash flows but no value.
    """

    def calculate(
            self,
            period: str,
            from_date: date,
            to_date: date,
            transactions_by_asset: dict[int, list[Transaction]],
            prices_by_asset: dict[int, list[PricePoint]],
    ) -> PerformanceReport:
        """
        Build a performance report.

        Args:
            period: Period label the dates were resolved from
            from_date: First day of the period
            to_date: Last day of the period
            transactions_by_asset: Each asset's ledger up to to_date
            prices_by_asset: Each asset's prices within the period

        Returns:
            PerformanceReport
        """
        initial_value = ZERO
        final_value = ZERO
        contributions = ZERO
        withdrawals = ZERO

        for asset_id, transactions in transactions_by_asset.items():
            initial_quantity = ZERO
            final_quantity = ZERO

            for txn in transactions:
                if txn.date > to_date:
                    continue

                signed = txn.quantity if txn.transaction_type == TransactionType.BUY else -txn.quantity
                final_quantity += signed

                if txn.date < from_date:
                    initial_quantity += signed
                elif txn.transaction_type == TransactionType.BUY:
                    contributions += txn.quantity * txn.price
                else:
                    withdrawals += txn.quantity * txn.price

            prices = sort_by_date(prices_by_asset.get(asset_id, []))
            if not prices:
                continue

            initial_value += initial_quantity * prices[0].price
            final_value += final_quantity * prices[-1].price

        absolute_return = final_value - initial_value
        percent_return = absolute_return / initial_value * HUNDRED if initial_value > 0 else ZERO

        net_contributions = contributions - withdrawals
        adjusted_return = (
            (final_value - net_contributions) / net_contributions * HUNDRED
            if net_contributions > 0
            else ZERO
        )

        logger.debug(
            f"Performance {period} ({from_date} to {to_date}): "
            f"initial={initial_value}, final={final_value}, net={net_contributions}"
        )

        return PerformanceReport(
            period=period,
            from_date=from_date,
            to_date=to_date,
            initial_value=initial_value,
            final_value=final_value,
            absolute_return=absolute_return,
            percent_return=percent_return,
            contributions=contributions,
            withdrawals=withdrawals,
            adjusted_return=adjusted_return,
        )
