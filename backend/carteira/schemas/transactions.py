# backend/carteira/schemas/transactions.py
"""
Pydantic schemas for Transaction validation.

These schemas define:
- A single BUY/SELL to record (Create)
- Corrections to an existing transaction (Update)
- One row of a batch import, addressed by ticker (ImportRow)

Validation layers:
- Field constraints: positive quantity and price, non-negative fees
- Field validators: no future dates, ticker normalization
- LedgerService: asset existence and the running-balance invariant

IMPORTANT: All financial values use Decimal for precision.
Never use float for money!
"""

from datetime import date as Date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from carteira.models import TransactionType
from carteira.schemas.validators import (
    reject_explicit_nulls,
    validate_date_not_future,
    validate_ticker,
)


# =============================================================================
# BASE SCHEMA
# =============================================================================

class TransactionBase(BaseModel):
    """Fields common to Create and ImportRow."""

    transaction_type: TransactionType = Field(
        ...,
        description="BUY or SELL",
        examples=[TransactionType.BUY, TransactionType.SELL]
    )

    date: Date = Field(
        ...,
        description="Trade date (calendar day, not in the future)",
        examples=["2024-01-15"]
    )

    quantity: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Units traded (must be positive)",
        examples=["10", "0.5"]
    )

    price: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Unit price (must be positive)",
        examples=["31.45", "2500"]
    )

    fees: Decimal | None = Field(
        default=None,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Brokerage fees (0 or positive)"
    )

    notes: str | None = Field(default=None, max_length=2000)

    @field_validator('date')
    @classmethod
    def validate_date_not_in_future(cls, v: Date) -> Date:
        """Prevent recording transactions that haven't happened yet."""
        return validate_date_not_future(v, "Transaction date")


# =============================================================================
# CREATE SCHEMA
# =============================================================================

class TransactionCreate(TransactionBase):
    """Schema for recording a transaction against an existing asset."""

    asset_id: int = Field(..., gt=0, description="Asset the transaction belongs to")


# =============================================================================
# UPDATE SCHEMA
# =============================================================================

class TransactionUpdate(BaseModel):
    """
    Schema for correcting an existing transaction.

    All fields are optional. asset_id cannot be changed: delete the
    transaction and record a new one instead.
    """

    transaction_type: TransactionType | None = None
    date: Date | None = None
    quantity: Decimal | None = Field(default=None, gt=0, max_digits=18, decimal_places=8)
    price: Decimal | None = Field(default=None, gt=0, max_digits=18, decimal_places=8)
    fees: Decimal | None = Field(default=None, ge=0, max_digits=18, decimal_places=8)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator('date')
    @classmethod
    def validate_date_not_in_future(cls, v: Date | None) -> Date | None:
        if v is None:
            return None
        return validate_date_not_future(v, "Transaction date")

    @model_validator(mode="after")
    def check_required_fields_not_null(self) -> "TransactionUpdate":
        reject_explicit_nulls(self, ("transaction_type", "date", "quantity", "price"))
        return self


# =============================================================================
# BATCH IMPORT
# =============================================================================

class TransactionImportRow(TransactionBase):
    """One row of a batch import; the asset is resolved by ticker."""

    ticker: str = Field(..., min_length=1, max_length=30)

    @field_validator('ticker')
    @classmethod
    def validate_and_normalize_ticker(cls, v: str) -> str:
        return validate_ticker(v)
