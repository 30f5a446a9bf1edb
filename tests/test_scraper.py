from __future__ import annotations

import pytest
import requests

from app.services import scraper as scraper_module
from app.services.scraper import cache_busted, content_hash, scrape_url


def _capture_post(monkeypatch, response):
    calls = []

    def _fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers})
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(scraper_module.requests, "post", _fake_post)
    return calls


def test_scrape_url_returns_markdown_and_metadata(monkeypatch, fake_response) -> None:
    monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-test")
    calls = _capture_post(
        monkeypatch,
        fake_response(
            {
                "success": True,
                "data": {
                    "markdown": "# Ethereum\n4,491.64",
                    "html": "<html></html>",
                    "metadata": {"title": "Ethereum Technical Analysis", "statusCode": 200, "sourceURL": "https://x.test/eth"},
                },
            }
        ),
    )

    result = scrape_url("https://x.test/eth")

    assert result == {
        "markdown": "# Ethereum\n4,491.64",
        "title": "Ethereum Technical Analysis",
        "html": "<html></html>",
        "statusCode": 200,
        "url": "https://x.test/eth",
    }
    assert calls[0]["url"].endswith("/scrape")
    assert calls[0]["headers"]["Authorization"] == "Bearer fc-test"
    assert calls[0]["json"]["formats"] == ["markdown", "html"]
    assert calls[0]["json"]["waitFor"] == 1000
    assert "maxAge" not in calls[0]["json"]


def test_scrape_url_falls_back_to_html_title(monkeypatch, fake_response) -> None:
    _capture_post(
        monkeypatch,
        fake_response(
            {
                "success": True,
                "data": {
                    "markdown": "body",
                    "html": "<html><head><title> ETH/USD Technicals </title></head><body></body></html>",
                    "metadata": {},
                },
            }
        ),
    )

    result = scrape_url("https://x.test/eth")

    assert result["title"] == "ETH/USD Technicals"
    assert result["statusCode"] is None
    assert result["url"] == "https://x.test/eth"


def test_scrape_url_bust_cache_forces_fresh_fetch(monkeypatch, fake_response) -> None:
    calls = _capture_post(monkeypatch, fake_response({"success": True, "data": {"markdown": ""}}))

    scrape_url("https://x.test/eth?tab=daily", bust_cache=True)

    body = calls[0]["json"]
    assert body["url"].startswith("https://x.test/eth?tab=daily&t=")
    assert body["maxAge"] == 0


def test_cache_busted_picks_separator() -> None:
    assert cache_busted("https://x.test/eth").startswith("https://x.test/eth?t=")
    assert cache_busted("https://x.test/eth?a=1").startswith("https://x.test/eth?a=1&t=")


def test_scrape_url_returns_none_on_request_error(monkeypatch) -> None:
    _capture_post(monkeypatch, requests.ConnectionError("down"))
    assert scrape_url("https://x.test/eth") is None


def test_scrape_url_returns_none_on_http_error(monkeypatch, fake_response) -> None:
    _capture_post(monkeypatch, fake_response({"success": False}, status_code=402))
    assert scrape_url("https://x.test/eth") is None


def test_scrape_url_returns_none_when_firecrawl_reports_failure(monkeypatch, fake_response) -> None:
    _capture_post(monkeypatch, fake_response({"success": False, "error": "blocked"}))
    assert scrape_url("https://x.test/eth") is None


def test_scrape_url_returns_none_on_invalid_json(monkeypatch, fake_response) -> None:
    _capture_post(monkeypatch, fake_response(ValueError("not json")))
    assert scrape_url("https://x.test/eth") is None


def test_content_hash_is_md5_hex() -> None:
    assert content_hash("") == "d41d8cd98f00b204e9800998ecf8427e"
    assert content_hash(None) == content_hash("")
    assert content_hash("a") != content_hash("b")


@pytest.mark.parametrize(
    "payload",
    [
        ["x"],
        "not an object",
        {"success": True, "data": ["x"]},
        {"success": True, "data": {"markdown": "body", "metadata": "bad"}},
    ],
)
def test_scrape_url_returns_none_on_malformed_payload(monkeypatch, fake_response, payload) -> None:
    _capture_post(monkeypatch, fake_response(payload))
    assert scrape_url("https://x.test/eth") is None
