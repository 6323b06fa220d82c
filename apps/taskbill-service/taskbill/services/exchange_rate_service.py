"""USD -> INR exchange rate lookup with an in-process cache and fallbacks."""
from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import requests

from taskbill.db.models import now_utc
from taskbill.utils.runtime import env_float, env_int

logger = logging.getLogger(__name__)

FRANKFURTER_URL = "https://api.frankfurter.app/latest?from=USD&to=INR"
APILAYER_URL = "https://api.apilayer.com/exchangerates_data/latest?base=USD&symbols=INR"

SOURCE_LIVE = "live"
SOURCE_CACHED = "cached"
SOURCE_DEFAULT = "default"


class ExchangeRateError(RuntimeError):
    """Raised when the provider response cannot be used."""


@dataclass
class ExchangeRateConfig:
    api_key: Optional[str] = None
    timeout_seconds: int = 10
    cache_seconds: int = 3600
    default_rate: float = 83.5

    @classmethod
    def from_env(cls) -> "ExchangeRateConfig":
        return cls(
            api_key=(os.getenv("EXCHANGE_RATE_API_KEY") or "").strip() or None,
            timeout_seconds=env_int("EXCHANGE_RATE_TIMEOUT_SECONDS", 10),
            cache_seconds=env_int("EXCHANGE_RATE_CACHE_SECONDS", 3600),
            default_rate=env_float("DEFAULT_USD_INR_RATE", 83.5),
        )

    @property
    def url(self) -> str:
        return APILAYER_URL if self.api_key else FRANKFURTER_URL


@dataclass(frozen=True)
class RateQuote:
    rate: float
    source: str
    last_updated: Optional[datetime]


class ExchangeRateService:
    def __init__(self, config: Optional[ExchangeRateConfig] = None) -> None:
        self.config = config or ExchangeRateConfig.from_env()
        self._lock = threading.Lock()
        self._rate: Optional[float] = None
        self._fetched_at: Optional[datetime] = None
        self._fetched_monotonic: float = 0.0

    def _fetch(self) -> float:
        headers = {"apikey": self.config.api_key} if self.config.api_key else {}
        response = requests.get(self.config.url, headers=headers, timeout=self.config.timeout_seconds)
        response.raise_for_status()
        data = response.json()
        rate = (data.get("rates") or {}).get("INR") if isinstance(data, dict) else None
        if not isinstance(rate, (int, float)) or rate <= 0:
            raise ExchangeRateError("Invalid response format")
        return float(rate)

    def _cache_fresh(self) -> bool:
        if self._rate is None:
            return False
        return (time.monotonic() - self._fetched_monotonic) < self.config.cache_seconds

    def get_quote(self, *, force_refresh: bool = False) -> RateQuote:
        """Return the current rate; never raises.

        Order: fresh cache, live provider, stale cache, configured default.
        The provider call runs outside the lock; the lock only guards the cache.
        """
        with self._lock:
            if not force_refresh and self._cache_fresh():
                return RateQuote(self._rate, SOURCE_CACHED, self._fetched_at)
        try:
            rate = self._fetch()
        except (requests.RequestException, ValueError, ExchangeRateError) as exc:
            with self._lock:
                cached, cached_at = self._rate, self._fetched_at
            if cached is not None:
                logger.warning("Exchange rate fetch failed (%s); using cached rate %.4f", exc, cached)
                return RateQuote(cached, SOURCE_CACHED, cached_at)
            logger.warning(
                "Exchange rate fetch failed (%s); using default rate %.4f", exc, self.config.default_rate
            )
            return RateQuote(self.config.default_rate, SOURCE_DEFAULT, now_utc())
        fetched_at = now_utc()
        with self._lock:
            self._rate = rate
            self._fetched_at = fetched_at
            self._fetched_monotonic = time.monotonic()
        return RateQuote(rate, SOURCE_LIVE, fetched_at)

    def current_rate(self) -> float:
        return self.get_quote().rate

    def convert_usd_to_inr(self, amount_usd: float, *, conversion_factor: Optional[float] = None) -> float:
        if not amount_usd:
            return 0.0
        factor = conversion_factor if conversion_factor else 1.0
        return round(float(amount_usd) * self.current_rate() * float(factor), 2)


_service: Optional[ExchangeRateService] = None
_service_lock = threading.Lock()


def get_exchange_rate_service() -> ExchangeRateService:
    global _service
    with _service_lock:
        if _service is None:
            _service = ExchangeRateService()
        return _service


def reset_exchange_rate_service() -> None:
    global _service
    with _service_lock:
        _service = None
