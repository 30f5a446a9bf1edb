# app/services/scraper.py
import os
import time
import hashlib
import logging
from typing import Any, Dict, Optional

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger("services.scraper")

FIRECRAWL_API_URL = os.getenv("FIRECRAWL_API_URL", "https://api.firecrawl.dev/v1")


def cache_busted(url: str) -> str:
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}t={int(time.time() * 1000)}"


def content_hash(markdown: Optional[str]) -> str:
    # md5 is only a change detector here, not a security hash
    return hashlib.md5((markdown or "").encode("utf-8")).hexdigest()


def _title_from_html(html: Optional[str]) -> Optional[str]:
    if not html:
        return None
    try:
        soup = BeautifulSoup(html, "html.parser")
    except Exception:
        return None
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return None


def _scrape_body(url: str, bust_cache: bool) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "url": url,
        "formats": ["markdown", "html"],
        # give the page's JS a second to fill in the tables
        "waitFor": 1000,
        "actions": [{"type": "wait", "milliseconds": 1000}],
    }
    if bust_cache:
        body["maxAge"] = 0
    return body


def scrape_url(url: str, bust_cache: bool = False, timeout: int = 60) -> Optional[Dict[str, Any]]:
    """
    Fetch ``url`` through Firecrawl and return
    ``{markdown, title, html, statusCode, url}``, or None when anything fails.
    """
    target_url = cache_busted(url) if bust_cache else url
    api_key = os.getenv("FIRECRAWL_API_KEY", "")

    logger.info("Scraping URL: %s", target_url)
    try:
        r = requests.post(
            f"{FIRECRAWL_API_URL}/scrape",
            json=_scrape_body(target_url, bust_cache),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
        )
        r.raise_for_status()
        payload = r.json()

        if not payload.get("success", True) or not payload.get("data"):
            logger.warning("Firecrawl returned no data for %s: %s", target_url, payload.get("error"))
            return None

        data = payload["data"]
        meta = data.get("metadata") or {}
        markdown = str(data.get("markdown") or "")
        html = data.get("html")

        result = {
            "markdown": markdown,
            "title": meta.get("title") or _title_from_html(html),
            "html": html,
            "statusCode": meta.get("statusCode"),
            "url": meta.get("url") or meta.get("sourceURL") or target_url,
        }
    except (requests.RequestException, TypeError, ValueError, AttributeError):
        logger.exception("An error occurred while scraping URL: %s", target_url)
        return None

    logger.info(
        "Scraping successful - content length: %d chars, status: %s, hash: %s",
        len(markdown),
        result["statusCode"] or "N/A",
        content_hash(markdown),
    )
    return result
