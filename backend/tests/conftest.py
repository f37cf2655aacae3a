# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- Lightweight stand-ins for pure calculator tests (MockAsset, MockTransaction, MockPrice)
- Mock quote source fixtures
- Sample data factories
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from carteira.models import (
    Base,
    Asset,
    AssetType,
    Currency,
    IndexType,
    PricePoint,
    Transaction,
    TransactionType,
)
from carteira.services.exceptions import TickerNotFoundError
from carteira.services.market_data import base as market_data_base
from carteira.services.market_data.base import PriceBar, Quote


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    """Retries happen, but without sleeping between attempts."""
    monkeypatch.setattr(market_data_base, "RETRY_MULTIPLIER", 0)
    monkeypatch.setattr(market_data_base, "RETRY_MIN_WAIT", 0)
    monkeypatch.setattr(market_data_base, "RETRY_MAX_WAIT", 0)


# =============================================================================
# STAND-INS FOR PURE CALCULATORS (No database needed)
# =============================================================================

@dataclass
class MockAsset:
    """Mock Asset for unit testing."""
    id: int = 1
    ticker: str = "PETR4"
    name: str = "Petrobras PN"
    asset_type: AssetType = AssetType.BR_STOCK
    currency: Currency = Currency.BRL
    index_type: IndexType | None = None
    rate: Decimal | None = None
    maturity_date: date | None = None
    pays_semiannual_coupons: bool = False


@dataclass
class MockTransaction:
    """Mock Transaction for unit testing."""
    transaction_type: TransactionType
    date: date
    quantity: Decimal
    price: Decimal
    asset_id: int = 1
    fees: Decimal | None = None


@dataclass
class MockPrice:
    """Mock PricePoint for unit testing."""
    date: date
    price: Decimal
    asset_id: int = 1
    dividend_yield: Decimal | None = None
    volume: int | None = None


def buy(day: date, quantity: str, price: str, asset_id: int = 1) -> MockTransaction:
    return MockTransaction(TransactionType.BUY, day, Decimal(quantity), Decimal(price), asset_id)


def sell(day: date, quantity: str, price: str, asset_id: int = 1) -> MockTransaction:
    return MockTransaction(TransactionType.SELL, day, Decimal(quantity), Decimal(price), asset_id)


def price_at(day: date, price: str, asset_id: int = 1, dividend_yield: str | None = None) -> MockPrice:
    return MockPrice(
        date=day,
        price=Decimal(price),
        asset_id=asset_id,
        dividend_yield=Decimal(dividend_yield) if dividend_yield is not None else None,
    )


def ipca_treasury(
        asset_id: int = 1,
        rate: str = "5.83",
        maturity_date: date = date(2035, 5, 15),
        pays_semiannual_coupons: bool = False,
) -> MockAsset:
    """Tesouro IPCA+ stand-in."""
    return MockAsset(
        id=asset_id,
        ticker="IPCA2035",
        name="Tesouro IPCA+ 2035",
        asset_type=AssetType.TREASURY_BOND,
        index_type=IndexType.IPCA,
        rate=Decimal(rate),
        maturity_date=maturity_date,
        pays_semiannual_coupons=pays_semiannual_coupons,
    )


# =============================================================================
# MOCK QUOTE SOURCE
# =============================================================================

class MockQuoteSource:
    """
    Configurable QuoteSource for testing.

    Unknown tickers answer None / [] unless an error is configured.
    """

    def __init__(self, name: str = "mock"):
        self._name = name
        self._quotes: dict[str, Quote] = {}
        self._history: dict[str, list[PriceBar]] = {}
        self._errors: dict[str, Exception] = {}
        self.quote_calls = 0
        self.history_calls = 0

    @property
    def name(self) -> str:
        return self._name

    def add_quote(self, ticker: str, price: str, volume: int | None = None) -> None:
        self._quotes[ticker] = create_quote(ticker, price, volume=volume, source=self._name)

    def add_history(self, ticker: str, bars: list[PriceBar]) -> None:
        self._history[ticker] = bars

    def add_error(self, ticker: str, error: Exception) -> None:
        self._errors[ticker] = error

    def fetch_quote(self, asset) -> Quote | None:
        self.quote_calls += 1
        if asset.ticker in self._errors:
            raise self._errors[asset.ticker]
        return self._quotes.get(asset.ticker)

    def fetch_history(self, asset, start_date: date, end_date: date) -> list[PriceBar]:
        self.history_calls += 1
        if asset.ticker in self._errors:
            raise self._errors[asset.ticker]
        return [
            bar for bar in self._history.get(asset.ticker, [])
            if start_date <= bar.date <= end_date
        ]


@pytest.fixture
def mock_source() -> MockQuoteSource:
    """Create a fresh mock quote source for each test."""
    return MockQuoteSource()


def not_found(ticker: str, provider: str = "mock") -> TickerNotFoundError:
    return TickerNotFoundError(ticker=ticker, provider=provider)


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def create_quote(
        symbol: str = "PETR4",
        price: str = "38.50",
        volume: int | None = 1000,
        source: str = "mock",
) -> Quote:
    """Factory function for creating Quote test data."""
    return Quote(
        symbol=symbol,
        price=Decimal(price),
        change=None,
        change_percent=None,
        day_high=None,
        day_low=None,
        volume=volume,
        timestamp=datetime(2025, 9, 5, 18, 0, tzinfo=timezone.utc),
        source=source,
    )


def create_asset(
        db: Session,
        ticker: str = "PETR4",
        name: str = "Petrobras PN",
        asset_type: AssetType = AssetType.BR_STOCK,
        currency: Currency = Currency.BRL,
        index_type: IndexType | None = None,
        rate: Decimal | None = None,
        maturity_date: date | None = None,
        pays_semiannual_coupons: bool = False,
) -> Asset:
    """Factory function for creating Asset entities in the database."""
    asset = Asset(
        ticker=ticker,
        name=name,
        asset_type=asset_type,
        currency=currency,
        index_type=index_type,
        rate=rate,
        maturity_date=maturity_date,
        pays_semiannual_coupons=pays_semiannual_coupons,
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)
    return asset


def create_transaction(
        db: Session,
        asset: Asset,
        transaction_type: TransactionType = TransactionType.BUY,
        day: date = date(2024, 1, 10),
        quantity: str = "10",
        price: str = "100",
        fees: str | None = None,
) -> Transaction:
    """
    Factory function for creating Transaction entities in the database.

    Bypasses LedgerService, so the balance invariant is NOT checked.
    """
    transaction = Transaction(
        asset_id=asset.id,
        transaction_type=transaction_type,
        date=day,
        quantity=Decimal(quantity),
        price=Decimal(price),
        fees=Decimal(fees) if fees is not None else None,
    )
    db.add(transaction)
    db.commit()
    db.refresh(transaction)
    return transaction


def create_price(
        db: Session,
        asset: Asset,
        day: date = date(2024, 1, 10),
        price: str = "100",
        volume: int | None = None,
        dividend_yield: str | None = None,
) -> PricePoint:
    """Factory function for creating PricePoint entities in the database."""
    point = PricePoint(
        asset_id=asset.id,
        date=day,
        price=Decimal(price),
        volume=volume,
        dividend_yield=Decimal(dividend_yield) if dividend_yield is not None else None,
    )
    db.add(point)
    db.commit()
    db.refresh(point)
    return point


# =============================================================================
# FIXTURE EXPORTS (for convenience imports in tests)
# =============================================================================

@pytest.fixture
def stock(db: Session) -> Asset:
    """A BRL stock stored in the database."""
    return create_asset(db)


@pytest.fixture
def treasury(db: Session) -> Asset:
    """A semiannual-coupon Tesouro IPCA+ stored in the database."""
    return create_asset(
        db,
        ticker="IPCA2035",
        name="Tesouro IPCA+ 2035 com Juros Semestrais",
        asset_type=AssetType.TREASURY_BOND,
        index_type=IndexType.IPCA,
        rate=Decimal("5.83"),
        maturity_date=date(2035, 5, 15),
        pays_semiannual_coupons=True,
    )
