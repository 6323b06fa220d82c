from unittest.mock import MagicMock, patch

import pytest
import requests

from taskbill.services import exchange_rate_service
from taskbill.services.exchange_rate_service import (
    APILAYER_URL,
    FRANKFURTER_URL,
    ExchangeRateConfig,
    ExchangeRateService,
)

# conftest stubs _fetch for every test; these tests exercise the real one
REAL_FETCH = ExchangeRateService.__dict__["_fetch"]


@pytest.fixture(autouse=True)
def _real_fetch(monkeypatch):
    monkeypatch.setattr(ExchangeRateService, "_fetch", REAL_FETCH)


def _response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("EXCHANGE_RATE_API_KEY", " abc ")
    monkeypatch.setenv("DEFAULT_USD_INR_RATE", "84.25")
    cfg = ExchangeRateConfig.from_env()
    assert cfg.api_key == "abc"
    assert cfg.default_rate == 84.25
    assert cfg.url == APILAYER_URL
    assert ExchangeRateConfig().url == FRANKFURTER_URL


def test_live_then_cached():
    svc = ExchangeRateService(ExchangeRateConfig(cache_seconds=3600))
    with patch("taskbill.services.exchange_rate_service.requests.get", return_value=_response({"rates": {"INR": 83.12}})) as get:
        first = svc.get_quote()
        second = svc.get_quote()
    assert (first.rate, first.source) == (83.12, "live")
    assert (second.rate, second.source) == (83.12, "cached")
    assert get.call_count == 1
    assert get.call_args.kwargs["timeout"] == 10


def test_api_key_is_sent_as_header():
    svc = ExchangeRateService(ExchangeRateConfig(api_key="k-1"))
    with patch("taskbill.services.exchange_rate_service.requests.get", return_value=_response({"rates": {"INR": 82.0}})) as get:
        svc.get_quote()
    assert get.call_args.args[0] == APILAYER_URL
    assert get.call_args.kwargs["headers"] == {"apikey": "k-1"}


def test_failure_without_cache_uses_default():
    svc = ExchangeRateService(ExchangeRateConfig(default_rate=83.5))
    with patch(
        "taskbill.services.exchange_rate_service.requests.get",
        side_effect=requests.ConnectionError("offline"),
    ):
        quote = svc.get_quote()
    assert (quote.rate, quote.source) == (83.5, "default")


def test_bad_payload_falls_back_to_stale_cache():
    svc = ExchangeRateService(ExchangeRateConfig(cache_seconds=0))
    with patch("taskbill.services.exchange_rate_service.requests.get", return_value=_response({"rates": {"INR": 81.0}})):
        svc.get_quote()
    with patch("taskbill.services.exchange_rate_service.requests.get", return_value=_response({"rates": {}})):
        quote = svc.get_quote(force_refresh=True)
    assert (quote.rate, quote.source) == (81.0, "cached")


def test_convert_usd_to_inr():
    svc = ExchangeRateService(ExchangeRateConfig())
    with patch("taskbill.services.exchange_rate_service.requests.get", return_value=_response({"rates": {"INR": 80.0}})):
        assert svc.convert_usd_to_inr(12.5) == 1000.0
        assert svc.convert_usd_to_inr(10, conversion_factor=0.5) == 400.0
        assert svc.convert_usd_to_inr(0) == 0.0


def test_singleton_accessor():
    first = exchange_rate_service.get_exchange_rate_service()
    assert exchange_rate_service.get_exchange_rate_service() is first
    exchange_rate_service.reset_exchange_rate_service()
    assert exchange_rate_service.get_exchange_rate_service() is not first


def test_provider_call_does_not_hold_the_cache_lock():
    svc = ExchangeRateService(ExchangeRateConfig())
    held_during_fetch = []

    def _get(*args, **kwargs):
        held_during_fetch.append(svc._lock.locked())
        return _response({"rates": {"INR": 84.0}})

    with patch("taskbill.services.exchange_rate_service.requests.get", side_effect=_get):
        quote = svc.get_quote()
    assert held_during_fetch == [False]
    assert (quote.rate, quote.source) == (84.0, "live")
