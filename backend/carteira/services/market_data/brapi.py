# backend/carteira/services/market_data/brapi.py
"""
BRAPI quote source (brapi.dev).

BRAPI serves B3-listed instruments only, so this source answers for BRL
assets and returns None / [] for everything else without calling out.

Endpoints:
    GET {base}/quote/{ticker}                         latest quote
    GET {base}/quote/{ticker}?range=max&interval=1d   daily history

Both answer {"results": [...]}; the first result carries the quote fields
(regularMarketPrice, ...) and, for history, "historicalDataPrice" entries
with an epoch-seconds "date".
"""

import logging
from datetime import date, datetime, timezone
from typing import Any

import requests

from carteira.config import settings
from carteira.models import Asset, Currency
from carteira.services.exceptions import (
    MarketDataError,
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


class BrapiQuoteSource:
    """
    Quote source backed by the BRAPI REST API.

    Example:
        source = BrapiQuoteSource(token="...")
        quote = source.fetch_quote(asset)
    """

    def __init__(
            self,
            base_url: str | None = None,
            token: str | None = None,
            timeout: int | None = None,
            session: requests.Session | None = None,
    ) -> None:
        self._base_url = (base_url or settings.brapi_base_url).rstrip("/")
        self._token = token if token is not None else settings.brapi_token
        self._timeout = timeout or settings.market_data_timeout
        self._session = session or requests.Session()

    @property
    def name(self) -> str:
        return "brapi"

    @staticmethod
    def supports(asset: Asset) -> bool:
        return asset.currency == Currency.BRL

    # =========================================================================
    # QUOTES
    # =========================================================================

    def fetch_quote(self, asset: Asset) -> Quote | None:
        """
        Latest quote for a BRL asset; None for other currencies.

        Raises:
            TickerNotFoundError: Ticker unknown to BRAPI
            ProviderUnavailableError: BRAPI unavailable after retries
            RateLimitError: Rate limited after retries
        """
        if not self.supports(asset):
            return None
        return execute_with_retry(self._fetch_quote, asset)

    def _fetch_quote(self, asset: Asset) -> Quote | None:
        result = self._get_first_result(asset.ticker, params={})

        price = to_decimal(result.get("regularMarketPrice"))
        if price is None or price <= 0:
            return None

        return Quote(
            symbol=result.get("symbol", asset.ticker),
            price=price,
            change=to_decimal(result.get("regularMarketChange")),
            change_percent=to_decimal(result.get("regularMarketChangePercent")),
            day_high=to_decimal(result.get("regularMarketDayHigh")),
            day_low=to_decimal(result.get("regularMarketDayLow")),
            volume=to_int(result.get("regularMarketVolume")),
            timestamp=self._parse_time(result.get("regularMarketTime")),
            source=self.name,
        )

    # =========================================================================
    # HISTORY
    # =========================================================================

    def fetch_history(self, asset: Asset, start_date: date, end_date: date) -> list[PriceBar]:
        """Daily closes for a BRL asset between two dates (inclusive)."""
        if not self.supports(asset):
            return []
        return execute_with_retry(self._fetch_history, asset, start_date, end_date)

    def _fetch_history(self, asset: Asset, start_date: date, end_date: date) -> list[PriceBar]:
        result = self._get_first_result(asset.ticker, params={"range": "max", "interval": "1d"})

        bars = []
        for entry in result.get("historicalDataPrice") or []:
            seconds = to_int(entry.get("date"))
            close = to_decimal(entry.get("close"))
            if seconds is None or close is None or close <= 0:
                continue

            bar_date = datetime.fromtimestamp(seconds, tz=timezone.utc).date()
            if start_date <= bar_date <= end_date:
                bars.append(PriceBar(date=bar_date, close=close, volume=to_int(entry.get("volume"))))

        logger.debug(f"Fetched {len(bars)} BRAPI bars for {asset.ticker}")
        return sorted(bars, key=lambda b: b.date)

    # =========================================================================
    # HTTP
    # =========================================================================

    def _get_first_result(self, ticker: str, params: dict[str, str]) -> dict[str, Any]:
        """GET /quote/{ticker} and return results[0], classifying failures."""
        if self._token:
            params = {**params, "token": self._token}

        url = f"{self._base_url}/quote/{ticker}"
        logger.debug(f"GET {url}")

        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.RequestException as e:
            raise ProviderUnavailableError(provider=self.name, reason=str(e)) from e

        if response.status_code == 404:
            raise TickerNotFoundError(ticker=ticker, provider=self.name)
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                provider=self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code >= 400:
            raise ProviderUnavailableError(
                provider=self.name,
                reason=f"HTTP {response.status_code}",
            )

        try:
            results = response.json().get("results") or []
        except ValueError as e:
            raise MarketDataError(f"Malformed BRAPI response: invalid JSON ({e})", provider=self.name) from e

        if not results:
            raise TickerNotFoundError(ticker=ticker, provider=self.name)
        return results[0]

    @staticmethod
    def _parse_time(value: Any) -> datetime:
        """regularMarketTime is an ISO string; fall back to now when absent or malformed."""
        if isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                parsed = None
            if parsed is not None:
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc)
