# backend/carteira/services/benchmarks.py
"""
Benchmark Service - IPCA, CDI and SELIC reference series.

Each benchmark is an accumulated-value curve starting at
settings.benchmark_initial_value, built from a Banco Central SGS series:

    value_n = value_(n-1) × (1 + rate_n / 100)

SGS endpoint:
    GET {bcb_base_url}/bcdata.sgs.{code}/dados?formato=json
        &dataInicial=dd/mm/yyyy&dataFinal=dd/mm/yyyy

    → [{"data": "02/01/2024", "valor": "0.042"}, ...]

When a series cannot be fetched (after retries), a simulated monthly
series is produced from an average annual rate instead, and flagged with
is_fallback=True so callers can label it.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import requests

from carteira.config import settings
from carteira.services.constants import (
    BCB_SERIES_CODES,
    BENCHMARK_FALLBACK_RATES,
    DEFAULT_BENCHMARK_FALLBACK_RATE,
)
from carteira.services.exceptions import MarketDataError, ProviderUnavailableError
from carteira.services.market_data.base import execute_with_retry
from carteira.utils.date_utils import monthly_dates

logger = logging.getLogger(__name__)

BCB_DATE_FORMAT = "%d/%m/%Y"


@dataclass(frozen=True)
class BenchmarkPoint:
    """One accumulated value of a benchmark series."""

    date: date
    value: Decimal
    rate: Decimal  # Period rate in percent


@dataclass(frozen=True)
class BenchmarkSeries:
    """Accumulated curve for one benchmark."""

    name: str
    points: list[BenchmarkPoint] = field(default_factory=list)
    is_fallback: bool = False

    @property
    def final_value(self) -> Decimal | None:
        return self.points[-1].value if self.points else None


def format_bcb_date(d: date) -> str:
    return d.strftime(BCB_DATE_FORMAT)


def accumulate(rates: list[tuple[date, Decimal]], initial_value: Decimal) -> list[BenchmarkPoint]:
    """Compound a list of (date, percent rate) into accumulated values."""
    points = []
    value = initial_value

    for point_date, rate in rates:
        value *= Decimal("1") + rate / Decimal("100")
        points.append(BenchmarkPoint(date=point_date, value=value, rate=rate))

    return points


def fallback_rates(
        name: str,
        start_date: date,
        end_date: date,
) -> list[tuple[date, Decimal]]:
    """
    Simulated monthly rates from an average annual rate.

    The annual rate is converted to its monthly equivalent:
        monthly = (1 + annual)^(1/12) - 1
    """
    annual_rate = BENCHMARK_FALLBACK_RATES.get(name, DEFAULT_BENCHMARK_FALLBACK_RATE)
    monthly_rate = (Decimal("1") + annual_rate) ** (Decimal("1") / Decimal("12")) - Decimal("1")
    monthly_percent = monthly_rate * Decimal("100")

    return [(d, monthly_percent) for d in monthly_dates(start_date, end_date)]


class BenchmarkService:
    """
    Builds benchmark series from the Banco Central SGS API.

    Example:
        service = BenchmarkService()
        series = service.get_benchmarks(date(2024, 1, 1), date(2024, 12, 31))
        series["CDI"].final_value
    """

    def __init__(
            self,
            base_url: str | None = None,
            initial_value: Decimal | None = None,
            timeout: int | None = None,
            session: requests.Session | None = None,
    ) -> None:
        self._base_url = (base_url or settings.bcb_base_url).rstrip("/")
        self._initial_value = initial_value if initial_value is not None else settings.benchmark_initial_value
        self._timeout = timeout or settings.market_data_timeout
        self._session = session or requests.Session()

    def get_benchmarks(self, start_date: date, end_date: date) -> dict[str, BenchmarkSeries]:
        """All supported benchmarks, keyed by name (IPCA, CDI, SELIC)."""
        return {
            name: self.get_series(name, start_date, end_date)
            for name in BCB_SERIES_CODES
        }

    def get_series(self, name: str, start_date: date, end_date: date) -> BenchmarkSeries:
        """
        One benchmark series; a simulated series when the fetch fails.

        Raises:
            KeyError: Unknown benchmark name
        """
        code = BCB_SERIES_CODES[name]

        try:
            rates = execute_with_retry(self._fetch_rates, code, start_date, end_date)
        except MarketDataError as e:
            logger.warning(f"Benchmark {name} unavailable, using simulated series: {e}")
            return BenchmarkSeries(
                name=name,
                points=accumulate(fallback_rates(name, start_date, end_date), self._initial_value),
                is_fallback=True,
            )

        logger.info(f"Benchmark {name}: {len(rates)} rate(s) from {start_date} to {end_date}")
        return BenchmarkSeries(name=name, points=accumulate(rates, self._initial_value))

    # =========================================================================
    # HTTP
    # =========================================================================

    def _fetch_rates(self, code: str, start_date: date, end_date: date) -> list[tuple[date, Decimal]]:
        url = f"{self._base_url}/bcdata.sgs.{code}/dados"
        params = {
            "formato": "json",
            "dataInicial": format_bcb_date(start_date),
            "dataFinal": format_bcb_date(end_date),
        }
        logger.debug(f"GET {url} {params}")

        try:
            response = self._session.get(
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ProviderUnavailableError(provider="bcb", reason=str(e)) from e

        if response.status_code >= 400:
            raise ProviderUnavailableError(provider="bcb", reason=f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise MarketDataError(f"Malformed SGS response: invalid JSON ({e})", provider="bcb") from e

        if not isinstance(payload, list):
            raise MarketDataError("Malformed SGS response: expected a list of entries", provider="bcb")

        return [self._parse_entry(entry) for entry in payload]

    @staticmethod
    def _parse_entry(entry: dict[str, Any]) -> tuple[date, Decimal]:
        """SGS entry → (date, percent rate); an unparseable rate counts as 0."""
        try:
            entry_date = datetime.strptime(entry["data"], BCB_DATE_FORMAT).date()
        except (KeyError, TypeError, ValueError) as e:
            raise MarketDataError(f"Malformed SGS entry: {entry}", provider="bcb") from e

        try:
            rate = Decimal(str(entry.get("valor")).replace(",", "."))
        except InvalidOperation:
            rate = Decimal("0")
        if not rate.is_finite():
            rate = Decimal("0")

        return entry_date, rate
