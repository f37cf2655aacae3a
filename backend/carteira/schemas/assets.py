# backend/carteira/schemas/assets.py
"""
Pydantic schemas for Asset validation.

These schemas define:
- What data callers must send to create an asset (Create)
- What data callers can update (Update)

Validation layers:
- Field constraints: type, length, numeric limits
- Field validators: normalization (uppercase, trim)
- Model validator: fixed-income fields only on fixed-income types
- LedgerService: uniqueness and dependency checks
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from carteira.models import AssetType, Currency, FIXED_INCOME_TYPES, IndexType
from carteira.schemas.validators import reject_explicit_nulls, validate_ticker


# =============================================================================
# BASE SCHEMA
# =============================================================================

class AssetBase(BaseModel):
    """Fields common to every asset payload."""

    ticker: str = Field(
        ...,
        min_length=1,
        max_length=30,
        examples=["PETR4", "HGLG11", "IPCA2035"],
        description="Unique trading symbol"
    )

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        examples=["Petrobras PN", "Tesouro IPCA+ 2035"],
        description="Display name"
    )

    asset_type: AssetType = Field(
        ...,
        description="Type of asset",
        examples=[AssetType.BR_STOCK, AssetType.TREASURY_BOND]
    )

    currency: Currency = Field(
        default=Currency.BRL,
        description="Currency the asset is priced in"
    )

    description: str | None = Field(default=None, max_length=2000)

    # Fixed income
    index_type: IndexType | None = Field(default=None, description="Rate index")
    rate: Decimal | None = Field(
        default=None,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Contracted annual rate (percent)",
        examples=["5.83"]
    )
    maturity_date: date | None = Field(default=None)
    pays_semiannual_coupons: bool = Field(
        default=False,
        description="Pays coupons on 15 January and 15 July"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================

    @field_validator('ticker')
    @classmethod
    def validate_and_normalize_ticker(cls, v: str) -> str:
        return validate_ticker(v)

    @field_validator('name')
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def check_fixed_income_fields(self) -> "AssetBase":
        """Index, rate, maturity and coupons only make sense for fixed income."""
        if self.asset_type in FIXED_INCOME_TYPES:
            return self

        has_fixed_income_fields = (
            self.index_type is not None
            or self.rate is not None
            or self.maturity_date is not None
            or self.pays_semiannual_coupons
        )
        if has_fixed_income_fields:
            raise ValueError(
                f"Fixed-income fields are not allowed for asset type {self.asset_type.value}"
            )
        return self


# =============================================================================
# CREATE SCHEMA
# =============================================================================

class AssetCreate(AssetBase):
    """Schema for creating a new asset."""
    pass


# =============================================================================
# UPDATE SCHEMA
# =============================================================================

class AssetUpdate(BaseModel):
    """
    Schema for updating an existing asset.

    All fields are optional; only the fields that were sent are applied
    (model_dump(exclude_unset=True)).
    """

    ticker: str | None = Field(default=None, min_length=1, max_length=30)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    asset_type: AssetType | None = None
    currency: Currency | None = None
    description: str | None = Field(default=None, max_length=2000)
    index_type: IndexType | None = None
    rate: Decimal | None = Field(default=None, ge=0, max_digits=18, decimal_places=8)
    maturity_date: date | None = None
    pays_semiannual_coupons: bool | None = None

    @field_validator('ticker')
    @classmethod
    def validate_and_normalize_ticker(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return validate_ticker(v)

    @field_validator('name')
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip()

    @model_validator(mode="after")
    def check_required_fields_not_null(self) -> "AssetUpdate":
        reject_explicit_nulls(
            self,
            ("ticker", "name", "asset_type", "currency", "pays_semiannual_coupons"),
        )
        return self
