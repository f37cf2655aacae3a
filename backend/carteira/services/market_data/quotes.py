# backend/carteira/services/market_data/quotes.py
"""
Quote Service - ordered fallback across quote sources.

Sources are tried in order until one answers. A source that raises a
MarketDataError (after its own retries) or has nothing for the asset is
skipped. When every source fails the service answers None / [] so callers
degrade to "no current price" instead of failing.

Usage:
    service = QuoteService()                      # BRAPI, then Yahoo
    service = QuoteService([MockQuoteSource()])   # tests
    quote = service.fetch_quote(asset)
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from carteira.services.exceptions import MarketDataError
from carteira.services.market_data.base import PriceBar, Quote

if TYPE_CHECKING:
    from carteira.models import Asset
    from carteira.services.protocols import QuoteSource

logger = logging.getLogger(__name__)


class QuoteService:
    """
    Tries each QuoteSource in order.

    Attributes:
        _sources: Sources in priority order
    """

    def __init__(self, sources: list[QuoteSource] | None = None) -> None:
        # Lazy import to keep yfinance/requests out of pure-calculation imports
        if sources is None:
            from carteira.config import settings
            from carteira.services.market_data.brapi import BrapiQuoteSource
            from carteira.services.market_data.yahoo import YahooQuoteSource
            sources = [
                BrapiQuoteSource(),
                YahooQuoteSource(timeout=settings.market_data_timeout),
            ]

        self._sources = list(sources)

    @property
    def source_names(self) -> list[str]:
        return [source.name for source in self._sources]

    def fetch_quote(self, asset: Asset) -> Quote | None:
        """First quote any source returns, or None when all fail."""
        for source in self._sources:
            try:
                quote = source.fetch_quote(asset)
            except MarketDataError as e:
                logger.warning(f"Quote source {source.name} failed for {asset.ticker}: {e}")
                continue

            if quote is not None:
                logger.debug(f"Quote for {asset.ticker} from {source.name}: {quote.price}")
                return quote

        logger.warning(f"No quote available for {asset.ticker} from {self.source_names}")
        return None

    def fetch_history(self, asset: Asset, start_date: date, end_date: date) -> list[PriceBar]:
        """First non-empty history any source returns, or [] when all fail."""
        for source in self._sources:
            try:
                bars = source.fetch_history(asset, start_date, end_date)
            except MarketDataError as e:
                logger.warning(f"History source {source.name} failed for {asset.ticker}: {e}")
                continue

            if bars:
                logger.info(
                    f"History for {asset.ticker} from {source.name}: {len(bars)} bar(s)"
                )
                return bars

        logger.warning(
            f"No price history for {asset.ticker} between {start_date} and {end_date}"
        )
        return []
