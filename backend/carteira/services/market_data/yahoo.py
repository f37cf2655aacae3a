# backend/carteira/services/market_data/yahoo.py
"""
Yahoo Finance quote source.

Uses the yfinance library for latest quotes and daily closing history.
Yahoo Finance is a free data source suitable for personal use; it has
undocumented rate limits and may delay quotes by 15-20 minutes.

Symbol mapping:
    BRL tickers without a dot get the B3 suffix: PETR4 → PETR4.SA
    Anything else is sent as is: AAPL → AAPL, BRK.B → BRK.B
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any

import yfinance as yf

from carteira.models import Asset, Currency
from carteira.services.constants import B3_YAHOO_SUFFIX
from carteira.services.exceptions import (
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
)
from carteira.services.market_data.base import (
    PriceBar,
    Quote,
    execute_with_retry,
    to_decimal,
    to_int,
)

logger = logging.getLogger(__name__)


def build_yahoo_symbol(asset: Asset) -> str:
    """Yahoo symbol for an asset (B3 suffix for BRL tickers without one)."""
    ticker = asset.ticker.strip().upper()
    if asset.currency == Currency.BRL and "." not in ticker:
        return f"{ticker}{B3_YAHOO_SUFFIX}"
    return ticker


class YahooQuoteSource:
    """
    Quote source backed by yfinance.

    Retry Behavior:
        - Retries on ProviderUnavailableError and RateLimitError
        - Does NOT retry on TickerNotFoundError (permanent failure)

    Example:
        source = YahooQuoteSource(timeout=15)
        quote = source.fetch_quote(asset)
        bars = source.fetch_history(asset, date(2024, 1, 1), date(2024, 12, 31))
    """

    def __init__(self, timeout: int = 10) -> None:
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # QUOTES
    # =========================================================================

    def fetch_quote(self, asset: Asset) -> Quote | None:
        """
        Latest quote, or None when Yahoo has no market price for the symbol.

        Raises:
            TickerNotFoundError: Symbol unknown to Yahoo
            ProviderUnavailableError: Yahoo unavailable after retries
            RateLimitError: Rate limited after retries
        """
        return execute_with_retry(self._fetch_quote, asset)

    def _fetch_quote(self, asset: Asset) -> Quote | None:
        symbol = build_yahoo_symbol(asset)
        logger.debug(f"Fetching Yahoo quote for {symbol}")

        try:
            info = yf.Ticker(symbol).info
        except Exception as e:
            raise self._classify_error(e, asset.ticker, symbol) from e

        if not info:
            raise TickerNotFoundError(ticker=asset.ticker, provider=self.name)

        price = to_decimal(info.get("regularMarketPrice"))
        if price is None or price <= 0:
            logger.debug(f"No market price in Yahoo info for {symbol}")
            return None

        return Quote(
            symbol=symbol,
            price=price,
            change=to_decimal(info.get("regularMarketChange")),
            change_percent=to_decimal(info.get("regularMarketChangePercent")),
            day_high=to_decimal(info.get("regularMarketDayHigh")),
            day_low=to_decimal(info.get("regularMarketDayLow")),
            volume=to_int(info.get("regularMarketVolume")),
            timestamp=self._market_time(info.get("regularMarketTime")),
            source=self.name,
        )

    # =========================================================================
    # HISTORY
    # =========================================================================

    def fetch_history(self, asset: Asset, start_date: date, end_date: date) -> list[PriceBar]:
        """
        Daily closes between two dates (inclusive).

        Raises:
            TickerNotFoundError: Symbol unknown to Yahoo
            ProviderUnavailableError: Yahoo unavailable after retries
            RateLimitError: Rate limited after retries
        """
        return execute_with_retry(self._fetch_history, asset, start_date, end_date)

    def _fetch_history(self, asset: Asset, start_date: date, end_date: date) -> list[PriceBar]:
        symbol = build_yahoo_symbol(asset)
        logger.debug(f"Fetching Yahoo history for {symbol}: {start_date} to {end_date}")

        try:
            # Yahoo Finance end date is exclusive, so add 1 day
            df = yf.Ticker(symbol).history(
                start=start_date.isoformat(),
                end=(end_date + timedelta(days=1)).isoformat(),
                interval="1d",
                auto_adjust=False,
            )
        except Exception as e:
            raise self._classify_error(e, asset.ticker, symbol) from e

        if df.empty:
            logger.warning(f"No price data for {symbol} between {start_date} and {end_date}")
            return []

        bars = self._dataframe_to_bars(df)
        logger.debug(f"Fetched {len(bars)} days for {symbol}")
        return bars

    def _dataframe_to_bars(self, df) -> list[PriceBar]:
        """Convert a yfinance DataFrame (Close, Volume columns) to PriceBars."""
        bars = []

        for idx, row in df.iterrows():
            price_date = idx.date() if hasattr(idx, 'date') else idx
            close = to_decimal(row.get('Close'))

            # Skip rows with missing or non-positive close price
            if close is None or close <= 0:
                logger.warning(f"Skipping {price_date}: missing close price")
                continue

            bars.append(PriceBar(date=price_date, close=close, volume=to_int(row.get('Volume'))))

        return bars

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _classify_error(self, error: Exception, ticker: str, symbol: str) -> Exception:
        """Map a yfinance failure to the domain exception it represents."""
        error_str = str(error).lower()

        if "not found" in error_str or "no data" in error_str:
            return TickerNotFoundError(ticker=ticker, provider=self.name)
        if "rate limit" in error_str or "too many requests" in error_str:
            return RateLimitError(provider=self.name)

        logger.error(f"Yahoo Finance error for {symbol}: {error}")
        return ProviderUnavailableError(provider=self.name, reason=str(error))

    @staticmethod
    def _market_time(value: Any) -> datetime:
        """regularMarketTime is epoch seconds; fall back to now when absent."""
        seconds = to_int(value)
        if seconds is None:
            return datetime.now(timezone.utc)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
