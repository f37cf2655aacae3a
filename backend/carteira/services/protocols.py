# backend/carteira/services/protocols.py
"""
Protocol interfaces for service dependency injection.

Using typing.Protocol enables structural subtyping:
- Quote sources satisfy QuoteSource without inheriting from anything
- Test doubles work without explicit inheritance
- Clear documentation of required interfaces
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from carteira.models import Asset
    from carteira.services.market_data.base import PriceBar, Quote


class QuoteSource(Protocol):
    """
    A market data source consulted by QuoteService.

    Implementations return None / an empty list when they have nothing for
    the asset, and raise MarketDataError subclasses on failures.
    """

    @property
    def name(self) -> str:
        ...

    def fetch_quote(self, asset: Asset) -> Quote | None:
        ...

    def fetch_history(self, asset: Asset, start_date: date, end_date: date) -> list[PriceBar]:
        ...


class QuoteServiceProtocol(Protocol):
    """Interface required by PriceHistoryService."""

    def fetch_quote(self, asset: Asset) -> Quote | None:
        ...

    def fetch_history(self, asset: Asset, start_date: date, end_date: date) -> list[PriceBar]:
        ...
