# backend/carteira/services/__init__.py
"""
Service layer for business logic.

Services:
- Have NO knowledge of HTTP or any other presentation layer
- Raise domain-specific exceptions
- Receive database sessions as parameters
- Are easily testable via dependency injection

Usage:
    from carteira.services import LedgerService, ValuationService
    from carteira.services import BackupService, BenchmarkService
    from carteira.services import (
        InsufficientQuantityError,
        AssetNotFoundError,
        MarketDataError,
    )

Architecture:
    services/
    ├── __init__.py          # This file - main exports
    ├── exceptions.py        # Domain exceptions
    ├── constants.py         # Business constants
    ├── protocols.py         # Service interfaces (Protocol classes)
    ├── ledger.py            # Assets, transactions, price points
    ├── backup.py            # JSON/CSV export and restore
    ├── benchmarks.py        # IPCA / CDI / SELIC series
    ├── market_data/         # Quote sources and price history import
    └── valuation/           # Calculation core and ValuationService
"""

from carteira.services.backup import BackupService, RestoreResult
from carteira.services.benchmarks import BenchmarkPoint, BenchmarkSeries, BenchmarkService
from carteira.services.exceptions import (
    # Base
    ServiceError,
    # Validation
    ValidationError,
    InsufficientQuantityError,
    DependentSalesError,
    DuplicateTickerError,
    AssetInUseError,
    InvalidPeriodError,
    ImportRowError,
    TransactionImportError,
    # Not found
    NotFoundError,
    AssetNotFoundError,
    TransactionNotFoundError,
    PricePointNotFoundError,
    # Market data
    MarketDataError,
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
    # Backup
    BackupError,
    RestoreError,
)
from carteira.services.ledger import LedgerService
from carteira.services.market_data import PriceHistoryService, QuoteService
from carteira.services.protocols import QuoteSource, QuoteServiceProtocol
from carteira.services.valuation import ValuationService

__all__ = [
    # Services
    "LedgerService",
    "ValuationService",
    "QuoteService",
    "PriceHistoryService",
    "BenchmarkService",
    "BackupService",
    # Result types
    "BenchmarkSeries",
    "BenchmarkPoint",
    "RestoreResult",
    # Protocols
    "QuoteSource",
    "QuoteServiceProtocol",
    # Exceptions
    "ServiceError",
    "ValidationError",
    "InsufficientQuantityError",
    "DependentSalesError",
    "DuplicateTickerError",
    "AssetInUseError",
    "InvalidPeriodError",
    "ImportRowError",
    "TransactionImportError",
    "NotFoundError",
    "AssetNotFoundError",
    "TransactionNotFoundError",
    "PricePointNotFoundError",
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    "BackupError",
    "RestoreError",
]
