# backend/carteira/schemas/__init__.py
"""
Pydantic schemas for ledger input validation.

This package contains the input schemas organized by domain:
- assets: Asset create/update
- transactions: Transaction create/update and batch import rows
- prices: Price point creation
- validators: Reusable validation functions (ticker, dates)

Usage:
    from carteira.schemas import AssetCreate, TransactionCreate
"""

from carteira.schemas.assets import (
    AssetBase,
    AssetCreate,
    AssetUpdate,
)
from carteira.schemas.prices import PricePointCreate
from carteira.schemas.transactions import (
    TransactionBase,
    TransactionCreate,
    TransactionUpdate,
    TransactionImportRow,
)

__all__ = [
    # Assets
    "AssetBase",
    "AssetCreate",
    "AssetUpdate",
    # Transactions
    "TransactionBase",
    "TransactionCreate",
    "TransactionUpdate",
    "TransactionImportRow",
    # Prices
    "PricePointCreate",
]
