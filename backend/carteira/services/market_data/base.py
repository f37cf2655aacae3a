# backend/carteira/services/market_data/base.py
"""
Shared types and retry behavior for quote sources.

Every quote source (BRAPI, Yahoo Finance, test doubles) satisfies the
QuoteSource protocol in carteira.services.protocols; nothing here is a base
class. This module only holds what all sources share:
- Quote / PriceBar: read-only results handed to the services
- execute_with_retry(): exponential backoff for transient failures
- to_decimal() / to_int(): NaN-safe conversions for provider payloads

Retry Behavior:
    - Retries ProviderUnavailableError and RateLimitError
    - Never retries TickerNotFoundError (permanent failure)
    - Exponential backoff 1s → 2s → 4s, 3 attempts in total
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, TypeVar

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from carteira.services.exceptions import ProviderUnavailableError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_RETRY_ATTEMPTS: int = 3
RETRY_MIN_WAIT: int = 1
RETRY_MAX_WAIT: int = 10
RETRY_MULTIPLIER: int = 1


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """
    Latest market quote for a symbol.

    Attributes:
        symbol: Symbol as known to the source (e.g. "PETR4" or "PETR4.SA")
        price: Last traded price
        change: Absolute change versus the previous close
        change_percent: Change versus the previous close (percent)
        day_high: Highest price of the session
        day_low: Lowest price of the session
        volume: Session volume
        timestamp: When the quote was observed
        source: Name of the source that produced it
    """

    symbol: str
    price: Decimal
    change: Decimal | None
    change_percent: Decimal | None
    day_high: Decimal | None
    day_low: Decimal | None
    volume: int | None
    timestamp: datetime
    source: str

    def __post_init__(self) -> None:
        if self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")


@dataclass(frozen=True)
class PriceBar:
    """One day of closing price history."""

    date: date
    close: Decimal
    volume: int | None = None

    def __post_init__(self) -> None:
        if self.close <= 0:
            raise ValueError(f"close price must be positive, got {self.close}")


# =============================================================================
# RETRY HELPER
# =============================================================================

def execute_with_retry(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Execute a function with retry logic for transient failures.

    Raises:
        The last exception if all retries fail
    """

    @retry(
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(
            multiplier=RETRY_MULTIPLIER,
            min=RETRY_MIN_WAIT,
            max=RETRY_MAX_WAIT,
        ),
        retry=retry_if_exception_type((ProviderUnavailableError, RateLimitError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _inner() -> T:
        return func(*args, **kwargs)

    return _inner()


# =============================================================================
# CONVERSIONS
# =============================================================================

def to_decimal(value: Any) -> Decimal | None:
    """Convert a value to Decimal, returning None for NaN/None."""
    if value is None:
        return None
    try:
        if math.isnan(float(value)):
            return None
        return Decimal(str(value)).quantize(Decimal("0.00000001"))
    except (TypeError, ValueError):
        return None


def to_int(value: Any) -> int | None:
    """Convert a value to int, returning None for NaN/None."""
    if value is None:
        return None
    try:
        if math.isnan(float(value)):
            return None
        return int(value)
    except (TypeError, ValueError):
        return None
