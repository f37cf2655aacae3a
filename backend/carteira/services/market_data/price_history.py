# backend/carteira/services/market_data/price_history.py
"""
Price History Service - stores fetched market data as price points.

Two units of work:
- import_history(): replace an asset's price points with its fetched history
- record_latest_quote(): store today's quote as a new price point

Both go through LedgerService so the price rows are written the same way
as hand-entered prices.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from carteira.schemas import PricePointCreate
from carteira.services.constants import PRICE_HISTORY_START
from carteira.services.ledger import LedgerService
from carteira.services.market_data.quotes import QuoteService

if TYPE_CHECKING:
    from carteira.models import PricePoint
    from carteira.services.protocols import QuoteServiceProtocol

logger = logging.getLogger(__name__)


class PriceHistoryService:
    """
    Imports market data into the ledger.

    Attributes:
        _quotes: Quote fetcher (ordered fallback)
        _ledger: Ledger writer
    """

    def __init__(
            self,
            quote_service: QuoteServiceProtocol | None = None,
            ledger: LedgerService | None = None,
    ) -> None:
        self._quotes = quote_service or QuoteService()
        self._ledger = ledger or LedgerService()

    def import_history(
            self,
            db: Session,
            asset_id: int,
            start_date: date = PRICE_HISTORY_START,
            end_date: date | None = None,
    ) -> int:
        """
        Replace an asset's price points with its fetched daily history.

        Nothing is deleted when no source returns data.

        Returns:
            Number of price points stored

        Raises:
            AssetNotFoundError: Unknown asset id
        """
        end_date = end_date or date.today()
        asset = self._ledger.get_asset(db, asset_id)

        bars = self._quotes.fetch_history(asset, start_date, end_date)
        if not bars:
            logger.warning(f"No history imported for {asset.ticker}: no source returned data")
            return 0

        points = [
            PricePointCreate(date=bar.date, price=bar.close, volume=bar.volume)
            for bar in bars
        ]
        stored = self._ledger.replace_prices(db, asset_id, points)

        logger.info(f"Imported {stored} price point(s) for {asset.ticker} ({start_date} to {end_date})")
        return stored

    def record_latest_quote(self, db: Session, asset_id: int) -> PricePoint | None:
        """
        Store today's quote as a price point.

        Returns:
            The new price point, or None when no quote is available

        Raises:
            AssetNotFoundError: Unknown asset id
        """
        asset = self._ledger.get_asset(db, asset_id)

        quote = self._quotes.fetch_quote(asset)
        if quote is None:
            return None

        return self._ledger.add_price_point(
            db,
            asset_id,
            PricePointCreate(date=date.today(), price=quote.price, volume=quote.volume),
        )
