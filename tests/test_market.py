from __future__ import annotations

import pytest
import requests

from app.services import market as market_module
from app.services.market import fetch_coin_snapshot


def test_fetch_coin_snapshot_maps_simple_price(monkeypatch, fake_response) -> None:
    seen = {}

    def _fake_get(url, params=None, headers=None, timeout=None):
        seen.update(url=url, params=params, headers=headers)
        return fake_response(
            {
                "ethereum": {
                    "usd": 4491.64,
                    "usd_market_cap": 540000000000.0,
                    "usd_24h_vol": 21000000000.0,
                    "usd_24h_change": 0.26,
                    "last_updated_at": 1760000000,
                }
            }
        )

    monkeypatch.setenv("COINGECKO_DEMO_API_KEY", "cg-demo")
    monkeypatch.setattr(market_module.requests, "get", _fake_get)

    snapshot = fetch_coin_snapshot("ethereum")

    assert snapshot["usd"] == 4491.64
    assert snapshot["usd_24h_change"] == 0.26
    assert snapshot["last_updated_at"] == 1760000000
    assert snapshot["created_at"]
    assert seen["url"].endswith("/simple/price")
    assert seen["params"]["ids"] == "ethereum"
    assert seen["params"]["precision"] == "2"
    assert seen["headers"] == {"x-cg-demo-api-key": "cg-demo"}


def test_fetch_coin_snapshot_defaults_missing_fields_to_zero(monkeypatch, fake_response) -> None:
    monkeypatch.setattr(market_module.requests, "get", lambda *a, **k: fake_response({"bitcoin": {"usd": 100000}}))

    snapshot = fetch_coin_snapshot("bitcoin")

    assert snapshot["usd"] == 100000.0
    assert snapshot["usd_market_cap"] == 0
    assert snapshot["last_updated_at"] == 0


def test_fetch_coin_snapshot_retries_on_rate_limit(monkeypatch, fake_response) -> None:
    responses = [fake_response({}, status_code=429), fake_response({"ethereum": {"usd": 1.0}})]
    sleeps = []
    monkeypatch.setattr(market_module.requests, "get", lambda *a, **k: responses.pop(0))
    monkeypatch.setattr(market_module._get_simple_price.retry, "sleep", sleeps.append)

    snapshot = fetch_coin_snapshot("ethereum")

    assert snapshot["usd"] == 1.0
    assert sleeps == [1]


def test_fetch_coin_snapshot_gives_up_after_repeated_rate_limits(monkeypatch, fake_response) -> None:
    calls = []

    def _fake_get(*args, **kwargs):
        calls.append(1)
        return fake_response({}, status_code=429)

    monkeypatch.setattr(market_module.requests, "get", _fake_get)
    monkeypatch.setattr(market_module._get_simple_price.retry, "sleep", lambda seconds: None)

    assert fetch_coin_snapshot("ethereum") is None
    assert len(calls) == 3


def test_fetch_coin_snapshot_returns_none_for_unknown_coin(monkeypatch, fake_response) -> None:
    monkeypatch.setattr(market_module.requests, "get", lambda *a, **k: fake_response({}))
    assert fetch_coin_snapshot("not-a-coin") is None


def test_fetch_coin_snapshot_returns_none_on_network_error(monkeypatch) -> None:
    def _raise(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(market_module.requests, "get", _raise)
    assert fetch_coin_snapshot("ethereum") is None


def test_fetch_coin_snapshot_does_not_retry_other_http_errors(monkeypatch, fake_response) -> None:
    calls = []

    def _fake_get(*args, **kwargs):
        calls.append(1)
        return fake_response({}, status_code=500)

    monkeypatch.setattr(market_module.requests, "get", _fake_get)

    assert fetch_coin_snapshot("ethereum") is None
    assert len(calls) == 1


@pytest.mark.parametrize(
    "payload",
    [
        {"ethereum": {"usd": "n/a"}},
        {"ethereum": "4491.64"},
        [],
        "ethereum",
    ],
)
def test_fetch_coin_snapshot_returns_none_on_malformed_payload(monkeypatch, fake_response, payload) -> None:
    monkeypatch.setattr(market_module.requests, "get", lambda *a, **k: fake_response(payload))
    assert fetch_coin_snapshot("ethereum") is None
