# backend/carteira/schemas/prices.py
"""
Pydantic schemas for PricePoint validation.

Prices may be recorded by hand or imported from market data; both go
through PricePointCreate before reaching the ledger.
"""

from datetime import date as Date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from carteira.schemas.validators import validate_date_not_future


class PricePointCreate(BaseModel):
    """Schema for recording a price observation."""

    date: Date = Field(..., description="Observation day", examples=["2025-09-05"])

    price: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Price (must be positive)"
    )

    volume: int | None = Field(default=None, ge=0, description="Traded volume")

    dividend_yield: Decimal | None = Field(
        default=None,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Observed dividend yield (percent)"
    )

    @field_validator('date')
    @classmethod
    def validate_date_not_in_future(cls, v: Date) -> Date:
        return validate_date_not_future(v, "Price date")
