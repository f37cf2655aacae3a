# backend/carteira/services/market_data/__init__.py
"""
Market data services package.

This package contains:
- Quote/PriceBar data classes and the shared retry helper (base.py)
- BRAPI quote source for B3 instruments (brapi.py)
- Yahoo Finance quote source (yahoo.py)
- Ordered-fallback quote service (quotes.py)
- Price history import into the ledger (price_history.py)

Usage:
    from carteira.services.market_data import QuoteService, PriceHistoryService

    quotes = QuoteService()  # BRAPI first, Yahoo second
    PriceHistoryService(quotes).import_history(db, asset_id)

Architecture:
    QuoteSource (Protocol)
    ├── BrapiQuoteSource
    └── YahooQuoteSource

    QuoteService
    └── Tries sources in order, skipping failures

    PriceHistoryService
    └── QuoteService → LedgerService.replace_prices
"""

from carteira.services.market_data.base import (
    PriceBar,
    Quote,
    execute_with_retry,
)
from carteira.services.market_data.brapi import BrapiQuoteSource
from carteira.services.market_data.price_history import PriceHistoryService
from carteira.services.market_data.quotes import QuoteService
from carteira.services.market_data.yahoo import YahooQuoteSource, build_yahoo_symbol

__all__ = [
    # Data classes
    "Quote",
    "PriceBar",
    # Retry
    "execute_with_retry",
    # Sources
    "BrapiQuoteSource",
    "YahooQuoteSource",
    "build_yahoo_symbol",
    # Services
    "QuoteService",
    "PriceHistoryService",
]
