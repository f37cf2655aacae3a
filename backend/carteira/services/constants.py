# backend/carteira/services/constants.py
"""
Centralized constants for the carteira services.

Single source of truth for business constants that are not meant to be
tuned per deployment. Tunable parameters (growth rate, override window,
default inflation) live in carteira.config.Settings instead.

Usage:
    from carteira.services.constants import (
        COUPON_MONTHS,
        PERIOD_MONTHS,
        INFLATION_BY_YEAR,
    )
"""

from datetime import date
from decimal import Decimal


# =============================================================================
# SEMIANNUAL COUPONS
# =============================================================================

# Treasury coupons are paid on the 15th of January and July
COUPON_DAY: int = 15
COUPON_MONTHS: tuple[int, int] = (1, 7)

# Period labels for coupon events
COUPON_MONTH_LABELS: dict[int, str] = {
    1: "Janeiro",
    7: "Julho",
}

# How many upcoming coupons the schedule helper returns by default
DEFAULT_UPCOMING_COUPONS: int = 2


# =============================================================================
# INFLATION-LINKED TREASURIES
# =============================================================================

# Realized annual IPCA (percent) by calendar year.
# Years missing from this table fall back to settings.default_inflation_rate.
INFLATION_BY_YEAR: dict[int, Decimal] = {
    2019: Decimal("4.31"),
    2020: Decimal("4.52"),
    2021: Decimal("10.06"),
    2022: Decimal("5.79"),
    2023: Decimal("4.62"),
}

# Face value used for theoretical treasury pricing
TREASURY_FACE_VALUE: Decimal = Decimal("1000")


# =============================================================================
# PERIODS
# =============================================================================

# Supported report periods and their length in calendar months.
# "ytd" and "all" are resolved separately.
PERIOD_MONTHS: dict[str, int] = {
    "1m": 1,
    "3m": 3,
    "6m": 6,
    "1y": 12,
}
SPECIAL_PERIODS: frozenset[str] = frozenset({"ytd", "all"})

# Start of the "all" period when the ledger is empty
EARLIEST_HISTORY_DATE: date = date(2010, 1, 1)


# =============================================================================
# MARKET DATA
# =============================================================================

# Yahoo Finance suffix for B3-listed tickers
B3_YAHOO_SUFFIX: str = ".SA"

# Default start for full price history imports
PRICE_HISTORY_START: date = date(2010, 1, 1)

# Price points inserted per flush when replacing an asset's history
PRICE_INSERT_BATCH_SIZE: int = 1000


# =============================================================================
# BENCHMARKS
# =============================================================================

# Banco Central SGS series codes
BCB_SERIES_CODES: dict[str, str] = {
    "IPCA": "433",   # monthly
    "CDI": "12",     # daily
    "SELIC": "11",   # daily
}

# Annual rates used to simulate a benchmark when the SGS fetch fails
BENCHMARK_FALLBACK_RATES: dict[str, Decimal] = {
    "IPCA": Decimal("0.045"),
    "CDI": Decimal("0.068"),
    "SELIC": Decimal("0.065"),
}
DEFAULT_BENCHMARK_FALLBACK_RATE: Decimal = Decimal("0.05")


# =============================================================================
# BACKUP
# =============================================================================

BACKUP_FORMAT_VERSION: int = 1

ASSET_CSV_FIELDS: tuple[str, ...] = ("ticker", "name", "type", "currency", "description")
TRANSACTION_CSV_FIELDS: tuple[str, ...] = ("date", "type", "quantity", "price", "fees", "notes", "asset_id")
PRICE_CSV_FIELDS: tuple[str, ...] = ("date", "price", "volume", "asset_id")
