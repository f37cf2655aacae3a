# backend/tests/services/market_data/test_yahoo_source.py
"""
Tests for YahooQuoteSource.

This module tests:
- Symbol building (B3 suffix for BRL tickers)
- Quote parsing from Ticker.info
- History conversion from the yfinance DataFrame
- Error classification and retries

Note: These tests mock the yfinance library to avoid actual API calls.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from carteira.models import AssetType, Currency
from carteira.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from carteira.services.market_data import base as market_data_base
from carteira.services.market_data.yahoo import YahooQuoteSource, build_yahoo_symbol
from tests.conftest import MockAsset


@pytest.fixture
def source() -> YahooQuoteSource:
    return YahooQuoteSource()


def sample_history() -> pd.DataFrame:
    dates = pd.date_range(start="2024-01-15", periods=3, freq="B")
    return pd.DataFrame({
        "Open": [38.0, 38.5, 39.0],
        "Close": [38.5, 39.0, 39.5],
        "Volume": [1000, 2000, 3000],
    }, index=dates)


# =============================================================================
# SYMBOLS
# =============================================================================

class TestBuildSymbol:

    @pytest.mark.parametrize("ticker, currency, expected", [
        ("PETR4", Currency.BRL, "PETR4.SA"),
        ("hglg11", Currency.BRL, "HGLG11.SA"),
        ("PETR4.SA", Currency.BRL, "PETR4.SA"),
        ("AAPL", Currency.USD, "AAPL"),
        ("BRK.B", Currency.USD, "BRK.B"),
    ])
    def test_symbols(self, ticker, currency, expected):
        asset = MockAsset(ticker=ticker, currency=currency)
        assert build_yahoo_symbol(asset) == expected


def test_source_name_and_timeout():
    source = YahooQuoteSource(timeout=30)
    assert source.name == "yahoo"
    assert source._timeout == 30


# =============================================================================
# QUOTES
# =============================================================================

class TestFetchQuote:

    @patch("carteira.services.market_data.yahoo.yf")
    def test_parses_info(self, mock_yf, source):
        mock_ticker = MagicMock()
        mock_ticker.info = {
            "regularMarketPrice": 38.5,
            "regularMarketChange": 0.42,
            "regularMarketChangePercent": 1.1,
            "regularMarketDayHigh": 39.0,
            "regularMarketDayLow": 37.8,
            "regularMarketVolume": 12345678,
            "regularMarketTime": 1757095200,
        }
        mock_yf.Ticker.return_value = mock_ticker

        quote = source.fetch_quote(MockAsset())

        mock_yf.Ticker.assert_called_once_with("PETR4.SA")
        assert quote.symbol == "PETR4.SA"
        assert quote.price == Decimal("38.5")
        assert quote.change == Decimal("0.42")
        assert quote.volume == 12345678
        assert quote.timestamp == datetime.fromtimestamp(1757095200, tz=timezone.utc)
        assert quote.source == "yahoo"

    @patch("carteira.services.market_data.yahoo.yf")
    def test_missing_price_returns_none(self, mock_yf, source):
        mock_ticker = MagicMock()
        mock_ticker.info = {"shortName": "Petrobras", "regularMarketPrice": None}
        mock_yf.Ticker.return_value = mock_ticker

        assert source.fetch_quote(MockAsset()) is None

    @patch("carteira.services.market_data.yahoo.yf")
    def test_empty_info_is_not_found(self, mock_yf, source):
        mock_ticker = MagicMock()
        mock_ticker.info = {}
        mock_yf.Ticker.return_value = mock_ticker

        with pytest.raises(TickerNotFoundError):
            source.fetch_quote(MockAsset(ticker="XXXX3"))

    @patch("carteira.services.market_data.yahoo.yf")
    def test_not_found_is_not_retried(self, mock_yf, source):
        mock_yf.Ticker.side_effect = Exception("No data found, symbol may be delisted")

        with pytest.raises(TickerNotFoundError):
            source.fetch_quote(MockAsset())
        assert mock_yf.Ticker.call_count == 1

    @patch("carteira.services.market_data.yahoo.yf")
    def test_rate_limit_retried_then_raised(self, mock_yf, source):
        mock_yf.Ticker.side_effect = Exception("Too Many Requests. Rate limited.")

        with pytest.raises(RateLimitError):
            source.fetch_quote(MockAsset())
        assert mock_yf.Ticker.call_count == market_data_base.MAX_RETRY_ATTEMPTS

    @patch("carteira.services.market_data.yahoo.yf")
    def test_transient_error_retried(self, mock_yf, source):
        mock_ticker = MagicMock()
        mock_ticker.info = {"regularMarketPrice": 40}
        mock_yf.Ticker.side_effect = [
            Exception("Connection reset"),
            mock_ticker,
        ]

        quote = source.fetch_quote(MockAsset())

        assert quote.price == Decimal("40")
        assert mock_yf.Ticker.call_count == 2

    @patch("carteira.services.market_data.yahoo.yf")
    def test_persistent_failure_raises_unavailable(self, mock_yf, source):
        mock_yf.Ticker.side_effect = Exception("Connection reset")

        with pytest.raises(ProviderUnavailableError):
            source.fetch_quote(MockAsset())


# =============================================================================
# HISTORY
# =============================================================================

class TestFetchHistory:

    @patch("carteira.services.market_data.yahoo.yf")
    def test_converts_dataframe(self, mock_yf, source):
        mock_ticker = MagicMock()
        mock_ticker.history.return_value = sample_history()
        mock_yf.Ticker.return_value = mock_ticker

        bars = source.fetch_history(MockAsset(), date(2024, 1, 15), date(2024, 1, 17))

        assert [b.date for b in bars] == [date(2024, 1, 15), date(2024, 1, 16), date(2024, 1, 17)]
        assert bars[0].close == Decimal("38.5")
        assert bars[2].volume == 3000

    @patch("carteira.services.market_data.yahoo.yf")
    def test_end_date_is_made_inclusive(self, mock_yf, source):
        mock_ticker = MagicMock()
        mock_ticker.history.return_value = sample_history()
        mock_yf.Ticker.return_value = mock_ticker

        source.fetch_history(MockAsset(), date(2024, 1, 15), date(2024, 1, 17))

        kwargs = mock_ticker.history.call_args.kwargs
        assert kwargs["start"] == "2024-01-15"
        assert kwargs["end"] == "2024-01-18"
        assert kwargs["interval"] == "1d"

    @patch("carteira.services.market_data.yahoo.yf")
    def test_skips_missing_close(self, mock_yf, source):
        df = sample_history()
        df.loc[df.index[1], "Close"] = float("nan")
        mock_ticker = MagicMock()
        mock_ticker.history.return_value = df
        mock_yf.Ticker.return_value = mock_ticker

        bars = source.fetch_history(MockAsset(), date(2024, 1, 15), date(2024, 1, 17))

        assert [b.date for b in bars] == [date(2024, 1, 15), date(2024, 1, 17)]

    @patch("carteira.services.market_data.yahoo.yf")
    def test_empty_dataframe(self, mock_yf, source):
        mock_ticker = MagicMock()
        mock_ticker.history.return_value = pd.DataFrame()
        mock_yf.Ticker.return_value = mock_ticker

        assert source.fetch_history(MockAsset(), date(2024, 1, 1), date(2024, 1, 31)) == []

    @patch("carteira.services.market_data.yahoo.yf")
    def test_usd_asset_sent_without_suffix(self, mock_yf, source):
        mock_ticker = MagicMock()
        mock_ticker.history.return_value = pd.DataFrame()
        mock_yf.Ticker.return_value = mock_ticker

        asset = MockAsset(ticker="AAPL", asset_type=AssetType.US_STOCK, currency=Currency.USD)
        source.fetch_history(asset, date(2024, 1, 1), date(2024, 1, 31))

        mock_yf.Ticker.assert_called_once_with("AAPL")
