# backend/carteira/schemas/validators.py
"""
Reusable validation functions for Pydantic schemas.

This module provides:
- Ticker validation and normalization
- Date validation (no future business dates, ordered ranges)
- Partial-update checks (no explicit null on required fields)

These validators ensure consistent input handling across all schemas.
"""

import re
from datetime import date

from pydantic import BaseModel

# =============================================================================
# CONSTANTS
# =============================================================================

# Ticker: 1-30 chars, alphanumeric plus dots, dashes and carets
# (PETR4, HGLG11, AAPL, BRK.B, IPCA-2035, ^BVSP)
TICKER_PATTERN = re.compile(r'^[\^]?[A-Z0-9][A-Z0-9.\-]{0,29}$')
TICKER_MAX_LENGTH = 30

# Oldest business date accepted anywhere
MIN_VALID_DATE = date(1990, 1, 1)


# =============================================================================
# TICKER VALIDATION
# =============================================================================

def validate_ticker(value: str) -> str:
    """
    Validate and normalize a ticker symbol.

    Args:
        value: Raw ticker input

    Returns:
        Normalized ticker (uppercase, trimmed)

    Raises:
        ValueError: If ticker format is invalid
    """
    if not value or not value.strip():
        raise ValueError("Ticker cannot be empty")

    normalized = value.strip().upper()

    if len(normalized) > TICKER_MAX_LENGTH:
        raise ValueError(f"Ticker cannot exceed {TICKER_MAX_LENGTH} characters")

    if not TICKER_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid ticker format: '{normalized}'. "
            "Ticker must be alphanumeric and may include dots (.) or dashes (-)"
        )

    return normalized


def normalize_ticker(value: str) -> str:
    """Uppercase and trim a ticker without validating it (lookups by ticker)."""
    return value.strip().upper() if value else ""


# =============================================================================
# PARTIAL UPDATES
# =============================================================================

def reject_explicit_nulls(model: BaseModel, required: tuple[str, ...]) -> None:
    """
    Reject an explicit null sent for a field the stored record requires.

    Update schemas default every field to None so that omitted fields are
    left alone; a None that was actually sent cannot be applied.

    Raises:
        ValueError: If a required field was sent as null
    """
    nulled = sorted(
        name for name in required
        if name in model.model_fields_set and getattr(model, name) is None
    )
    if nulled:
        raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")


# =============================================================================
# DATE VALIDATION
# =============================================================================

def validate_date_not_future(value: date, field_name: str = "Date") -> date:
    """
    Validate that a date is not in the future.

    Raises:
        ValueError: If date is after today
    """
    if value > date.today():
        raise ValueError(f"{field_name} cannot be in the future")
    if value < MIN_VALID_DATE:
        raise ValueError(f"{field_name} cannot be before {MIN_VALID_DATE}")
    return value


def validate_date_range(from_date: date, to_date: date) -> tuple[date, date]:
    """
    Validate an inclusive date range.

    Raises:
        ValueError: If from_date is after to_date
    """
    if from_date > to_date:
        raise ValueError("from_date must be before or equal to to_date")
    return from_date, to_date
