# backend/carteira/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO transport
knowledge. Callers (CLI, HTTP layer, scheduled jobs) decide how to present them.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   ├── InsufficientQuantityError
    │   ├── DependentSalesError
    │   ├── DuplicateTickerError
    │   ├── AssetInUseError
    │   ├── InvalidPeriodError
    │   └── TransactionImportError
    ├── NotFoundError
    │   ├── AssetNotFoundError
    │   ├── TransactionNotFoundError
    │   └── PricePointNotFoundError
    ├── MarketDataError
    │   ├── ProviderUnavailableError
    │   ├── TickerNotFoundError
    │   └── RateLimitError
    └── BackupError
        └── RestoreError
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when a requested mutation breaks a domain rule.

    Field-level input validation (positive quantity, dates not in the
    future) is handled by the Pydantic schemas; this covers rules that need
    the stored ledger to decide.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InsufficientQuantityError(ValidationError):
    """
    Raised when a SELL would drive the running quantity of an asset negative.

    Attributes:
        asset_id: Asset being sold
        requested: Quantity the SELL asked for
        available: Quantity held as of the sale date
        as_of: Date the balance was evaluated at
    """

    def __init__(
            self,
            asset_id: int,
            requested: Decimal,
            available: Decimal,
            as_of: date,
    ) -> None:
        self.asset_id = asset_id
        self.requested = requested
        self.available = available
        self.as_of = as_of
        super().__init__(
            f"Insufficient quantity for asset {asset_id}: requested {requested}, "
            f"available {available} as of {as_of}",
            field="quantity",
        )


class DependentSalesError(ValidationError):
    """
    Raised when deleting or editing a BUY would leave later SELLs uncovered.

    Attributes:
        transaction_id: The BUY being removed or changed
        asset_id: Asset the ledger belongs to
        shortfall_date: First date where the replayed balance goes negative
    """

    def __init__(self, transaction_id: int, asset_id: int, shortfall_date: date) -> None:
        self.transaction_id = transaction_id
        self.asset_id = asset_id
        self.shortfall_date = shortfall_date
        super().__init__(
            f"Transaction {transaction_id} cannot be changed: sales of asset {asset_id} "
            f"depend on it (balance would go negative on {shortfall_date})"
        )


class DuplicateTickerError(ValidationError):
    """Raised when an asset is created or renamed to a ticker already in use."""

    def __init__(self, ticker: str) -> None:
        self.ticker = ticker
        super().__init__(f"Asset with ticker '{ticker}' already exists", field="ticker")


class AssetInUseError(ValidationError):
    """Raised when deleting an asset that still has transactions."""

    def __init__(self, asset_id: int, transaction_count: int) -> None:
        self.asset_id = asset_id
        self.transaction_count = transaction_count
        super().__init__(
            f"Asset {asset_id} has {transaction_count} transaction(s) and cannot be deleted"
        )


class InvalidPeriodError(ValidationError):
    """
    Raised when an unknown report period is requested.

    Valid periods are: 1m, 3m, 6m, 1y, ytd, all
    """

    def __init__(self, period: str) -> None:
        self.period = period
        super().__init__(
            f"Invalid period: '{period}'. Valid options: 1m, 3m, 6m, 1y, ytd, all",
            field="period",
        )


@dataclass(frozen=True)
class ImportRowError:
    """One rejected row of a batch transaction import."""

    index: int
    ticker: str
    error_type: str  # "asset_not_found" | "insufficient_quantity"
    message: str


class TransactionImportError(ValidationError):
    """
    Raised when a batch import has rejected rows. Nothing is imported.

    Attributes:
        errors: One entry per rejected row
    """

    def __init__(self, errors: list[ImportRowError]) -> None:
        self.errors = errors
        super().__init__(f"Transaction import rejected: {len(errors)} invalid row(s)")


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Asset", "Transaction")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class AssetNotFoundError(NotFoundError):
    """Raised when an asset id or ticker does not resolve."""

    def __init__(self, asset_id: int | str) -> None:
        super().__init__(
            f"Asset {asset_id} not found",
            resource_type="Asset",
            resource_id=asset_id,
        )


class TransactionNotFoundError(NotFoundError):
    """Raised when a transaction id does not resolve."""

    def __init__(self, transaction_id: int) -> None:
        super().__init__(
            f"Transaction {transaction_id} not found",
            resource_type="Transaction",
            resource_id=transaction_id,
        )


class PricePointNotFoundError(NotFoundError):
    """Raised when a price point id does not resolve."""

    def __init__(self, price_id: int) -> None:
        super().__init__(
            f"Price point {price_id} not found",
            resource_type="PricePoint",
            resource_id=price_id,
        )


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for market data provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a market data provider is temporarily unavailable
    (timeouts, 5xx responses, maintenance).

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """
    Raised when a symbol is not known to the provider.

    This is NOT a retryable error.
    """

    def __init__(self, ticker: str, provider: str) -> None:
        message = f"Ticker '{ticker}' not found by {provider}"
        super().__init__(message, provider=provider)
        self.ticker = ticker


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded.

    This is a retryable error (with backoff).

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


# =============================================================================
# BACKUP ERRORS
# =============================================================================


class BackupError(ServiceError):
    """Base exception for export and restore failures."""
    pass


class RestoreError(BackupError):
    """
    Raised when a backup payload cannot be restored.

    The database is rolled back, so the data present before the restore
    attempt is left untouched.
    """
    pass


__all__ = [
    # Base
    "ServiceError",
    # Validation
    "ValidationError",
    "InsufficientQuantityError",
    "DependentSalesError",
    "DuplicateTickerError",
    "AssetInUseError",
    "InvalidPeriodError",
    "ImportRowError",
    "TransactionImportError",
    # Not Found
    "NotFoundError",
    "AssetNotFoundError",
    "TransactionNotFoundError",
    "PricePointNotFoundError",
    # Market Data
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    # Backup
    "BackupError",
    "RestoreError",
]
