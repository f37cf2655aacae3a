# backend/carteira/services/valuation/service.py
"""
Valuation Service - Main orchestrator for portfolio valuation.

Single entry point for everything derived from the ledger:
- get_position() / get_summary(): point-in-time positions and totals
- get_asset_history() / get_evolution(): time series for charts
- get_evolution_with_payments(): wealth curve including treasury coupons
- get_semiannual_payments() / get_upcoming_coupons(): coupon schedules
- get_distribution() / get_performance(): reports
- get_accumulated_return(): IPCA+ accumulated return since purchase

Design Principles:
- Fetches data with explicit queries, hands plain lists to the calculators
- Calculators are injected (or built from settings) at construction
- No HTTP knowledge: raises domain exceptions only

Usage:
    from carteira.services.valuation import ValuationService

    service = ValuationService()
    summary = service.get_summary(db)
    curve = service.get_evolution(db, period="6m")
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy import select, and_, func
from sqlalchemy.orm import Session

from carteira.models import Asset, AssetType, PricePoint, Transaction, TransactionType
from carteira.services.constants import (
    DEFAULT_UPCOMING_COUPONS,
    EARLIEST_HISTORY_DATE,
    PERIOD_MONTHS,
    SPECIAL_PERIODS,
)
from carteira.schemas.validators import validate_date_range
from carteira.services.exceptions import AssetNotFoundError, InvalidPeriodError, ValidationError
from carteira.services.valuation.calculators import (
    DistributionCalculator,
    PerformanceCalculator,
    PortfolioSummaryCalculator,
    PositionCalculator,
    sort_by_date,
)
from carteira.services.valuation.coupons import SemiannualCouponEstimator
from carteira.services.valuation.evolution import EvolutionWithPaymentsBuilder
from carteira.services.valuation.history_calculator import (
    AssetHistoryCalculator,
    PortfolioEvolutionCalculator,
)
from carteira.services.valuation.treasury import InflationLinkedYieldEstimator
from carteira.services.valuation.types import (
    AccumulatedReturn,
    AssetHistoryPoint,
    DistributionSlice,
    EvolutionPoint,
    EvolutionWithPaymentsPoint,
    PerformanceReport,
    PortfolioSummary,
    Position,
    SemiannualPayment,
)
from carteira.utils.date_utils import add_months

logger = logging.getLogger(__name__)


def resolve_period(
        period: str,
        today: date,
        first_transaction_date: date | None,
) -> tuple[date, date]:
    """
    Translate a period label into a (from_date, to_date) range ending today.

    - 1m, 3m, 6m, 1y: that many calendar months back from today
    - ytd: 1 January of today's year
    - all: the first transaction date (2010-01-01 with an empty ledger)

    The from-date is moved forward to the first transaction when that is
    later, so ranges never start before the portfolio existed.

    Raises:
        InvalidPeriodError: Unknown period label
    """
    if period not in PERIOD_MONTHS and period not in SPECIAL_PERIODS:
        raise InvalidPeriodError(period)

    if period == "all" or first_transaction_date is None:
        return first_transaction_date or EARLIEST_HISTORY_DATE, today

    if period == "ytd":
        from_date = date(today.year, 1, 1)
    else:
        from_date = add_months(today, -PERIOD_MONTHS[period])

    if first_transaction_date > from_date:
        from_date = first_transaction_date

    return from_date, today


def _check_date_range(from_date: date, to_date: date) -> None:
    try:
        validate_date_range(from_date, to_date)
    except ValueError as e:
        raise ValidationError(str(e), field="from_date") from e


class ValuationService:
    """
    Main service for valuation operations.

    Attributes:
        _position_calc: Point-in-time position calculator
        _summary_calc: Portfolio totals
        _distribution_calc: Value per asset type
        _performance_calc: Period cash flows and returns
        _history_calc: Per-asset replay
        _evolution_calc: Portfolio curve with sparse-data fallback
        _payments_builder: Wealth curve with coupons
        _coupons: Semiannual coupon schedules
        _treasury: IPCA+ estimators
    """

    def __init__(
            self,
            yield_estimator: InflationLinkedYieldEstimator | None = None,
            coupon_estimator: SemiannualCouponEstimator | None = None,
            evolution_calc: PortfolioEvolutionCalculator | None = None,
            payments_builder: EvolutionWithPaymentsBuilder | None = None,
    ) -> None:
        self._treasury = yield_estimator or InflationLinkedYieldEstimator()
        self._coupons = coupon_estimator or SemiannualCouponEstimator()

        self._position_calc = PositionCalculator(self._treasury)
        self._summary_calc = PortfolioSummaryCalculator()
        self._distribution_calc = DistributionCalculator()
        self._performance_calc = PerformanceCalculator()
        self._history_calc = AssetHistoryCalculator()
        self._evolution_calc = evolution_calc or PortfolioEvolutionCalculator()
        self._payments_builder = payments_builder or EvolutionWithPaymentsBuilder(self._coupons)

    # =========================================================================
    # POSITIONS
    # =========================================================================

    def get_position(
            self,
            db: Session,
            asset_id: int,
            as_of: date | None = None,
    ) -> Position | None:
        """
        Position of one asset.

        Returns:
            Position, or None when the asset has no transactions

        Raises:
            AssetNotFoundError: Unknown asset id
        """
        asset = self._get_asset(db, asset_id)
        transactions = self._fetch_transactions(db, asset_id, to_date=as_of)
        latest = self._fetch_latest_price(db, asset_id, as_of)
        return self._position_calc.calculate(asset, transactions, latest, as_of=as_of)

    def get_positions(
            self,
            db: Session,
            as_of: date | None = None,
            asset_types: list[AssetType] | None = None,
    ) -> list[Position]:
        """Positions of every asset with at least one transaction, by ticker."""
        assets = self._fetch_assets(db, asset_types)
        transactions_by_asset = self._fetch_transactions_by_asset(db, to_date=as_of)
        latest_prices = self._fetch_latest_prices(db, as_of)

        positions: list[Position] = []
        for asset in assets:
            position = self._position_calc.calculate(
                asset,
                transactions_by_asset.get(asset.id, []),
                latest_prices.get(asset.id),
                as_of=as_of,
            )
            if position is not None:
                positions.append(position)

        return positions

    def get_summary(
            self,
            db: Session,
            as_of: date | None = None,
            asset_types: list[AssetType] | None = None,
    ) -> PortfolioSummary:
        """Positions plus portfolio totals."""
        positions = self.get_positions(db, as_of, asset_types)
        summary = self._summary_calc.calculate(positions)

        logger.info(
            f"Portfolio summary: {len(positions)} position(s), "
            f"invested={summary.total_invested}, current={summary.current_total}"
        )
        return summary

    # =========================================================================
    # TIME SERIES
    # =========================================================================

    def get_asset_history(
            self,
            db: Session,
            asset_id: int,
            from_date: date,
            to_date: date,
    ) -> list[AssetHistoryPoint]:
        """
        Snapshot of an asset's position at each price in [from_date, to_date].

        Raises:
            AssetNotFoundError: Unknown asset id
            ValidationError: from_date after to_date
        """
        _check_date_range(from_date, to_date)
        asset = self._get_asset(db, asset_id)
        transactions = self._fetch_transactions(db, asset_id, to_date=to_date)
        prices = self._fetch_prices(db, asset_id, from_date, to_date)
        return self._history_calc.calculate(asset, transactions, prices, from_date, to_date)

    def get_evolution(
            self,
            db: Session,
            period: str = "1y",
            today: date | None = None,
    ) -> list[EvolutionPoint]:
        """
        Portfolio value curve over a period.

        Falls back to an estimated curve (points flagged is_estimated) when
        fewer real points than the configured minimum exist.

        Raises:
            InvalidPeriodError: Unknown period label
        """
        today = today or date.today()
        first_date = self._first_transaction_date(db)
        from_date, to_date = resolve_period(period, today, first_date)

        assets = self._fetch_assets(db)
        transactions_by_asset = self._fetch_transactions_by_asset(db, to_date=to_date)
        prices_by_asset = self._fetch_prices_by_asset(db, from_date, to_date)

        histories = [
            self._history_calc.calculate(
                asset,
                transactions_by_asset.get(asset.id, []),
                prices_by_asset.get(asset.id, []),
                from_date,
                to_date,
            )
            for asset in assets
        ]

        total_bought = sum(
            (
                t.quantity * t.price
                for transactions in transactions_by_asset.values()
                for t in transactions
                if t.transaction_type == TransactionType.BUY
            ),
            Decimal("0"),
        )

        points = self._evolution_calc.calculate(histories, first_date, total_bought, today)
        logger.debug(f"Evolution {period} ({from_date} to {to_date}): {len(points)} point(s)")
        return points

    def get_evolution_with_payments(
            self,
            db: Session,
            from_date: date,
            to_date: date,
    ) -> list[EvolutionWithPaymentsPoint]:
        """
        Monthly wealth curve: estimated asset value plus coupons received.

        Raises:
            ValidationError: from_date after to_date
        """
        _check_date_range(from_date, to_date)
        assets = self._fetch_assets(db)
        transactions_by_asset = self._fetch_transactions_by_asset(db)
        latest_prices = self._fetch_latest_prices(db)

        return self._payments_builder.build(
            assets, transactions_by_asset, latest_prices, from_date, to_date
        )

    # =========================================================================
    # TREASURY
    # =========================================================================

    def get_semiannual_payments(
            self,
            db: Session,
            asset_id: int,
            reference_date: date | None = None,
    ) -> list[SemiannualPayment]:
        """
        Coupon schedule of a semiannual-paying bond up to reference_date.

        Empty for assets that do not pay semiannual coupons.

        Raises:
            AssetNotFoundError: Unknown asset id
        """
        asset = self._get_asset(db, asset_id)
        transactions = self._fetch_transactions(db, asset_id)
        return self._coupons.schedule(asset, transactions, reference_date or date.today())

    def get_upcoming_coupons(
            self,
            db: Session,
            asset_id: int,
            reference_date: date | None = None,
            count: int = DEFAULT_UPCOMING_COUPONS,
    ) -> list[SemiannualPayment]:
        """The next coupons of a semiannual-paying bond after reference_date."""
        asset = self._get_asset(db, asset_id)
        transactions = self._fetch_transactions(db, asset_id)
        return self._coupons.upcoming(asset, transactions, reference_date or date.today(), count)

    def get_accumulated_return(
            self,
            db: Session,
            asset_id: int,
            as_of: date | None = None,
    ) -> AccumulatedReturn | None:
        """
        Accumulated return of an IPCA+ bond since its first purchase.

        Returns None when the asset is not an IPCA+ treasury with a rate, has
        no purchase or has no price.
        """
        as_of = as_of or date.today()
        asset = self._get_asset(db, asset_id)

        buys = [
            t for t in self._fetch_transactions(db, asset_id, to_date=as_of)
            if t.transaction_type == TransactionType.BUY
        ]
        latest = self._fetch_latest_price(db, asset_id, as_of)
        if not buys or latest is None:
            return None

        first_buy = buys[0]
        return self._treasury.accumulated_return(
            asset, first_buy.price, first_buy.date, latest.price, as_of
        )

    def get_theoretical_price(
            self,
            db: Session,
            asset_id: int,
            reference_date: date | None = None,
    ) -> Decimal | None:
        """Present value of an IPCA+ bond's face value; None when not applicable."""
        asset = self._get_asset(db, asset_id)
        return self._treasury.theoretical_price(asset, reference_date or date.today())

    # =========================================================================
    # REPORTS
    # =========================================================================

    def get_distribution(self, db: Session, as_of: date | None = None) -> list[DistributionSlice]:
        """Current value per asset type, largest first."""
        return self._distribution_calc.calculate(self.get_positions(db, as_of))

    def get_performance(
            self,
            db: Session,
            period: str = "1y",
            asset_types: list[AssetType] | None = None,
            today: date | None = None,
    ) -> PerformanceReport:
        """
        Contributions, withdrawals and returns over a period.

        Raises:
            InvalidPeriodError: Unknown period label
        """
        today = today or date.today()
        from_date, to_date = resolve_period(period, today, self._first_transaction_date(db))

        asset_ids = {a.id for a in self._fetch_assets(db, asset_types)}
        transactions_by_asset = {
            asset_id: transactions
            for asset_id, transactions in self._fetch_transactions_by_asset(db, to_date=to_date).items()
            if asset_id in asset_ids
        }
        prices_by_asset = self._fetch_prices_by_asset(db, from_date, to_date)

        return self._performance_calc.calculate(
            period, from_date, to_date, transactions_by_asset, prices_by_asset
        )

    # =========================================================================
    # DATA FETCHING
    # =========================================================================

    def _get_asset(self, db: Session, asset_id: int) -> Asset:
        asset = db.get(Asset, asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        return asset

    def _fetch_assets(self, db: Session, asset_types: list[AssetType] | None = None) -> list[Asset]:
        query = select(Asset).order_by(Asset.ticker)
        if asset_types:
            query = query.where(Asset.asset_type.in_(asset_types))
        return list(db.scalars(query).all())

    def _fetch_transactions(
            self,
            db: Session,
            asset_id: int,
            to_date: date | None = None,
    ) -> list[Transaction]:
        """One asset's transactions in date order (ties by id)."""
        conditions = [Transaction.asset_id == asset_id]
        if to_date is not None:
            conditions.append(Transaction.date <= to_date)

        query = (
            select(Transaction)
            .where(and_(*conditions))
            .order_by(Transaction.date, Transaction.id)
        )
        return list(db.scalars(query).all())

    def _fetch_transactions_by_asset(
            self,
            db: Session,
            to_date: date | None = None,
    ) -> dict[int, list[Transaction]]:
        """Every transaction grouped by asset, each group in date order."""
        query = select(Transaction).order_by(Transaction.date, Transaction.id)
        if to_date is not None:
            query = query.where(Transaction.date <= to_date)

        grouped: dict[int, list[Transaction]] = defaultdict(list)
        for txn in db.scalars(query).all():
            grouped[txn.asset_id].append(txn)
        return dict(grouped)

    def _fetch_prices(
            self,
            db: Session,
            asset_id: int,
            from_date: date,
            to_date: date,
    ) -> list[PricePoint]:
        query = (
            select(PricePoint)
            .where(
                and_(
                    PricePoint.asset_id == asset_id,
                    PricePoint.date >= from_date,
                    PricePoint.date <= to_date,
                )
            )
            .order_by(PricePoint.date, PricePoint.id)
        )
        return list(db.scalars(query).all())

    def _fetch_prices_by_asset(
            self,
            db: Session,
            from_date: date,
            to_date: date,
    ) -> dict[int, list[PricePoint]]:
        """All prices in the range in one query, grouped by asset."""
        query = (
            select(PricePoint)
            .where(and_(PricePoint.date >= from_date, PricePoint.date <= to_date))
            .order_by(PricePoint.date, PricePoint.id)
        )

        grouped: dict[int, list[PricePoint]] = defaultdict(list)
        for price in db.scalars(query).all():
            grouped[price.asset_id].append(price)
        return dict(grouped)

    def _fetch_latest_price(
            self,
            db: Session,
            asset_id: int,
            as_of: date | None = None,
    ) -> PricePoint | None:
        """Price point with the greatest date (ties by id)."""
        query = select(PricePoint).where(PricePoint.asset_id == asset_id)
        if as_of is not None:
            query = query.where(PricePoint.date <= as_of)
        query = query.order_by(PricePoint.date.desc(), PricePoint.id.desc()).limit(1)
        return db.scalars(query).first()

    def _fetch_latest_prices(
            self,
            db: Session,
            as_of: date | None = None,
    ) -> dict[int, PricePoint]:
        """Latest price point per asset, batch-fetched."""
        query = select(PricePoint)
        if as_of is not None:
            query = query.where(PricePoint.date <= as_of)

        latest: dict[int, PricePoint] = {}
        for price in sort_by_date(list(db.scalars(query.order_by(PricePoint.id)).all())):
            latest[price.asset_id] = price
        return latest

    def _first_transaction_date(self, db: Session) -> date | None:
        return db.scalar(select(func.min(Transaction.date)))
