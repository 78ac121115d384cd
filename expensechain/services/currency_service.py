"""Currency conversion and metadata helpers."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, Dict, List, Mapping, Optional

import requests

from expensechain.errors import ExternalServiceError

logger = logging.getLogger(__name__)

EXCHANGE_API_URL = "https://api.exchangerate-api.com/v4/latest/{base}"
REST_COUNTRIES_URL = "https://restcountries.com/v3.1/all?fields=name,currencies"

CENTS = Decimal("0.01")
RATE_PLACES = Decimal("0.0001")

# USD-pivoted seed table used when the rate API has never answered.
FALLBACK_RATES: Dict[str, Decimal] = {
    "USD": Decimal("1.0"),
    "EUR": Decimal("0.85"),
    "GBP": Decimal("0.73"),
    "JPY": Decimal("110.0"),
    "CAD": Decimal("1.25"),
    "AUD": Decimal("1.35"),
    "INR": Decimal("74.5"),
    "CNY": Decimal("6.45"),
    "CHF": Decimal("0.91"),
    "SEK": Decimal("8.42"),
    "NOK": Decimal("8.76"),
    "DKK": Decimal("6.34"),
}


@dataclass(frozen=True)
class RateTable:
    """Rates of each currency relative to ``pivot`` (the pivot itself is 1)."""

    pivot: str
    rates: Mapping[str, Decimal]
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = "fallback"

    def to_dict(self) -> dict:
        return {
            "pivot": self.pivot,
            "rates": {code: float(rate) for code, rate in sorted(self.rates.items())},
            "fetched_at": self.fetched_at.isoformat(),
            "source": self.source,
        }


def fallback_rate_table(pivot: str = "USD") -> RateTable:
    """Return the seed table, rebased onto ``pivot`` when that currency is known."""
    pivot = pivot.upper()
    anchor = FALLBACK_RATES.get(pivot)
    if anchor is None or pivot == "USD":
        return RateTable(pivot="USD", rates=dict(FALLBACK_RATES))
    rates = {code: rate / anchor for code, rate in FALLBACK_RATES.items()}
    rates[pivot] = Decimal("1")
    return RateTable(pivot=pivot, rates=rates)


def _rate_for(code: str, rates: Mapping[str, Decimal]) -> Decimal:
    # Unknown or unusable rates fall back to 1 so a missing code never blocks a submission.
    rate = rates.get(code)
    if rate is None or Decimal(rate) <= 0:
        logger.warning("No usable exchange rate for %s; assuming 1", code)
        return Decimal("1")
    return Decimal(rate)


def _rates_of(rates: RateTable | Mapping[str, Decimal]) -> Mapping[str, Decimal]:
    return rates.rates if isinstance(rates, RateTable) else rates


def convert_currency(
    amount: Decimal | float | str,
    source_currency: str,
    target_currency: str,
    rates: RateTable | Mapping[str, Decimal],
) -> Decimal:
    """Convert an amount between currencies by pivoting through the rate table.

    Identical codes return the amount untouched. Otherwise the result is
    rounded once, half away from zero, to two decimal places.
    """
    amount = Decimal(str(amount))
    source_currency = source_currency.upper()
    target_currency = target_currency.upper()
    if source_currency == target_currency:
        return amount

    table = _rates_of(rates)
    pivot_amount = amount / _rate_for(source_currency, table)
    converted = pivot_amount * _rate_for(target_currency, table)
    return converted.quantize(CENTS, rounding=ROUND_HALF_UP)


def exchange_rate(
    source_currency: str,
    target_currency: str,
    rates: RateTable | Mapping[str, Decimal],
) -> Decimal:
    """Display rate for one unit of ``source_currency``, four decimals."""
    source_currency = source_currency.upper()
    target_currency = target_currency.upper()
    if source_currency == target_currency:
        return Decimal("1")
    table = _rates_of(rates)
    rate = _rate_for(target_currency, table) / _rate_for(source_currency, table)
    return rate.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


class RateProvider:
    """Fetches exchange rates at most once per ``cache_seconds`` per pivot.

    Failures are absorbed: the last good table is served, or the seed
    fallback table when nothing has been fetched yet.
    """

    def __init__(
        self,
        api_url: str = EXCHANGE_API_URL,
        timeout: float = 10,
        cache_seconds: int = 3600,
        enabled: bool = True,
        http: Optional[requests.Session] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.cache_seconds = cache_seconds
        self.enabled = enabled
        self.http = http or requests.Session()
        self._monotonic = monotonic
        self._cache: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def fetch_rates(self, pivot: str = "USD") -> RateTable:
        pivot = pivot.upper()
        with self._lock:
            cached = self._cache.get(pivot)
        if cached and self._monotonic() - cached[0] < self.cache_seconds:
            return cached[1]

        if not self.enabled:
            return cached[1] if cached else fallback_rate_table(pivot)

        try:
            table = self._download(pivot)
        except ExternalServiceError as exc:
            if cached:
                logger.warning("Rate API unavailable (%s); serving cached %s rates", exc, pivot)
                return cached[1]
            logger.warning("Rate API unavailable (%s); using fallback rates", exc)
            return fallback_rate_table(pivot)

        with self._lock:
            self._cache[pivot] = (self._monotonic(), table)
        logger.info("Currency rates for %s updated (%d codes)", pivot, len(table.rates))
        return table

    def _download(self, pivot: str) -> RateTable:
        try:
            response = self.http.get(self.api_url.format(base=pivot), timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ExternalServiceError(f"Currency API error: {exc}") from exc

        raw_rates = payload.get("rates") or {}
        rates: Dict[str, Decimal] = {}
        for code, value in raw_rates.items():
            try:
                rates[code.upper()] = Decimal(str(value))
            except (InvalidOperation, AttributeError):
                continue
        if not rates:
            raise ExternalServiceError("Currency API returned no rates")
        rates.setdefault(pivot, Decimal("1"))
        return RateTable(pivot=pivot, rates=rates, source="api")

    def close(self) -> None:
        self.http.close()


@dataclass(frozen=True)
class Country:
    name: str
    currency_code: str
    currency_name: str
    currency_symbol: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "currency_code": self.currency_code,
            "currency_name": self.currency_name,
            "currency_symbol": self.currency_symbol,
        }


FALLBACK_COUNTRIES: List[Country] = sorted(
    [
        Country("United States", "USD", "US Dollar", "$"),
        Country("United Kingdom", "GBP", "British Pound", "£"),
        Country("Germany", "EUR", "Euro", "€"),
        Country("Japan", "JPY", "Japanese Yen", "¥"),
        Country("Canada", "CAD", "Canadian Dollar", "C$"),
        Country("Australia", "AUD", "Australian Dollar", "A$"),
        Country("India", "INR", "Indian Rupee", "₹"),
        Country("China", "CNY", "Chinese Yuan", "¥"),
    ],
    key=lambda country: country.name,
)


class CountryProvider:
    """Country and primary-currency list, cached for ``cache_seconds``."""

    def __init__(
        self,
        api_url: str = REST_COUNTRIES_URL,
        timeout: float = 10,
        cache_seconds: int = 24 * 3600,
        enabled: bool = True,
        http: Optional[requests.Session] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.cache_seconds = cache_seconds
        self.enabled = enabled
        self.http = http or requests.Session()
        self._monotonic = monotonic
        self._cache: Optional[tuple] = None

    def fetch_countries(self) -> List[Country]:
        if self._cache and self._monotonic() - self._cache[0] < self.cache_seconds:
            return self._cache[1]
        if not self.enabled:
            return list(FALLBACK_COUNTRIES)

        try:
            response = self.http.get(self.api_url, timeout=self.timeout)
            response.raise_for_status()
            raw_countries = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Failed to load countries from API: %s", exc)
            return self._cache[1] if self._cache else list(FALLBACK_COUNTRIES)

        countries = []
        for entry in raw_countries:
            common_name = (entry.get("name") or {}).get("common")
            currencies = entry.get("currencies") or {}
            if not common_name or not currencies:
                continue
            code, details = next(iter(currencies.items()))
            details = details or {}
            countries.append(
                Country(
                    name=common_name,
                    currency_code=code,
                    currency_name=details.get("name") or code,
                    currency_symbol=details.get("symbol") or code,
                )
            )
        if not countries:
            return list(FALLBACK_COUNTRIES)

        countries.sort(key=lambda country: country.name)
        self._cache = (self._monotonic(), countries)
        logger.info("Loaded %d countries with currency data", len(countries))
        return countries

    def currency_for_country(self, country_name: str) -> Optional[str]:
        """Return the primary currency code for a country name, if known."""
        target = country_name.strip().lower()
        for country in self.fetch_countries():
            if country.name.lower() == target:
                return country.currency_code
        return None

    def close(self) -> None:
        self.http.close()
