# backend/carteira/services/valuation/coupons.py
"""
Semiannual coupon schedule for treasury bonds.

Treasury bonds flagged with semiannual interest pay coupons on the 15th of
January and July. The estimator rebuilds the coupon events from the first
purchase up to a reference date.

Amount model:
    amount = net_quantity × first_purchase_price × (rate / 2 / 100)

The same amount is used for every coupon: the first purchase's price and the
ledger's current net quantity, with no lot tracking, no compounding between
coupons and no inflation adjustment.

Usage:
    estimator = SemiannualCouponEstimator()
    payments = estimator.schedule(asset, transactions, date(2025, 9, 7))
    received = estimator.total_paid(payments)
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from carteira.models import AssetType, TransactionType
from carteira.services.constants import (
    COUPON_DAY,
    COUPON_MONTH_LABELS,
    DEFAULT_UPCOMING_COUPONS,
)
from carteira.services.valuation.types import CouponStatus, SemiannualPayment
from carteira.utils.date_utils import same_or_earlier_month

if TYPE_CHECKING:
    from carteira.models import Asset, Transaction

logger = logging.getLogger(__name__)


class SemiannualCouponEstimator:
    """
    Builds coupon schedules for semiannual-paying treasury bonds.

    Stateless: every call works only on the asset and ledger it is given.
    """

    # =========================================================================
    # APPLICABILITY
    # =========================================================================

    @staticmethod
    def is_applicable(asset: Asset) -> bool:
        """Treasury bond flagged as paying semiannual coupons, with a contracted rate."""
        return (
            bool(asset.pays_semiannual_coupons)
            and asset.asset_type == AssetType.TREASURY_BOND
            and asset.rate is not None
        )

    # =========================================================================
    # COUPON CALENDAR
    # =========================================================================

    @staticmethod
    def first_coupon_date(purchase_date: date) -> date:
        """
        First coupon a purchase is entitled to.

        Purchases up to and including July get the July coupon of the same
        year; later purchases wait for January of the following year.
        """
        if purchase_date.month <= 7:
            return date(purchase_date.year, 7, COUPON_DAY)
        return date(purchase_date.year + 1, 1, COUPON_DAY)

    @staticmethod
    def following_coupon_date(coupon_date: date) -> date:
        """Coupon six months after the given one."""
        if coupon_date.month == 1:
            return date(coupon_date.year, 7, COUPON_DAY)
        return date(coupon_date.year + 1, 1, COUPON_DAY)

    @staticmethod
    def period_label(coupon_date: date) -> str:
        """Label such as "Janeiro 2025"."""
        return f"{COUPON_MONTH_LABELS[coupon_date.month]} {coupon_date.year}"

    # =========================================================================
    # AMOUNTS
    # =========================================================================

    def coupon_amount(self, asset: Asset, transactions: list[Transaction]) -> Decimal | None:
        """
        Per-coupon amount estimated from the ledger.

        Returns None when there is no BUY or the net quantity is not positive.
        """
        buys = [t for t in transactions if t.transaction_type == TransactionType.BUY]
        if not buys:
            return None

        first_purchase = min(buys, key=lambda t: t.date)

        net_quantity = Decimal("0")
        for txn in transactions:
            if txn.transaction_type == TransactionType.BUY:
                net_quantity += txn.quantity
            else:
                net_quantity -= txn.quantity

        if net_quantity <= 0:
            return None

        semiannual_rate = (asset.rate or Decimal("0")) / 2 / 100
        return net_quantity * first_purchase.price * semiannual_rate

    # =========================================================================
    # SCHEDULES
    # =========================================================================

    def schedule(
            self,
            asset: Asset,
            transactions: list[Transaction],
            reference_date: date,
    ) -> list[SemiannualPayment]:
        """
        Every coupon from the first purchase through the reference month.

        A coupon in the reference month is included even if its 15th is
        still ahead; it is then marked EXPECTED instead of ESTIMATED.

        Args:
            asset: The bond
            transactions: The bond's ledger (any order)
            reference_date: Last month to include

        Returns:
            Payments sorted by date; empty when the asset does not pay
            semiannual coupons or nothing is held
        """
        if not self.is_applicable(asset):
            return []

        amount = self.coupon_amount(asset, transactions)
        if amount is None:
            return []

        first_purchase_date = min(
            t.date for t in transactions if t.transaction_type == TransactionType.BUY
        )

        payments: list[SemiannualPayment] = []
        coupon_date = self.first_coupon_date(first_purchase_date)

        while same_or_earlier_month(coupon_date, reference_date):
            status = CouponStatus.ESTIMATED if coupon_date <= reference_date else CouponStatus.EXPECTED
            payments.append(SemiannualPayment(
                date=coupon_date,
                amount=amount,
                period=self.period_label(coupon_date),
                status=status,
            ))
            coupon_date = self.following_coupon_date(coupon_date)

        logger.debug(
            f"Coupon schedule for {asset.ticker}: {len(payments)} payment(s) "
            f"through {reference_date}"
        )
        return sorted(payments, key=lambda p: p.date)

    def upcoming(
            self,
            asset: Asset,
            transactions: list[Transaction],
            reference_date: date,
            count: int = DEFAULT_UPCOMING_COUPONS,
    ) -> list[SemiannualPayment]:
        """
        The next coupon dates strictly after reference_date, marked EXPECTED.

        Amounts use the same estimate as schedule(); they are zero when
        nothing is currently held.
        """
        if not self.is_applicable(asset):
            return []

        amount = self.coupon_amount(asset, transactions) or Decimal("0")

        if reference_date < date(reference_date.year, 1, COUPON_DAY):
            coupon_date = date(reference_date.year, 1, COUPON_DAY)
        else:
            coupon_date = self.first_coupon_date(reference_date)
            if coupon_date <= reference_date:
                coupon_date = self.following_coupon_date(coupon_date)

        upcoming: list[SemiannualPayment] = []
        for _ in range(count):
            upcoming.append(SemiannualPayment(
                date=coupon_date,
                amount=amount,
                period=self.period_label(coupon_date),
                status=CouponStatus.EXPECTED,
            ))
            coupon_date = self.following_coupon_date(coupon_date)

        return upcoming

    @staticmethod
    def total_paid(payments: list[SemiannualPayment]) -> Decimal:
        """Sum of the payment amounts."""
        return sum((p.amount for p in payments), Decimal("0"))
