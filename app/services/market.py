import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger("services.market")

COINGECKO_API_URL = os.getenv("COINGECKO_API_URL", "https://api.coingecko.com/api/v3")


def _is_rate_limited(exc: BaseException) -> bool:
    response = getattr(exc, "response", None)
    return isinstance(exc, requests.HTTPError) and response is not None and response.status_code == 429


@retry(
    retry=retry_if_exception(_is_rate_limited),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def _get_simple_price(coin_id: str, timeout: int) -> Any:
    params = {
        "ids": coin_id,
        "vs_currencies": "usd",
        "include_market_cap": "true",
        "include_24hr_vol": "true",
        "include_24hr_change": "true",
        "include_last_updated_at": "true",
        "precision": "2",
    }
    headers = {}
    demo_key = os.getenv("COINGECKO_DEMO_API_KEY")
    if demo_key:
        headers["x-cg-demo-api-key"] = demo_key

    r = requests.get(f"{COINGECKO_API_URL}/simple/price", params=params, headers=headers, timeout=timeout)
    r.raise_for_status()
    return r.json()


def fetch_coin_snapshot(coin_id: str = "ethereum", timeout: int = 15) -> Optional[Dict[str, Any]]:
    try:
        coin = _get_simple_price(coin_id, timeout).get(coin_id)
        if not coin:
            return None
        return {
            "created_at": datetime.now(timezone.utc).isoformat(),
            "usd": float(coin.get("usd") or 0),
            "usd_market_cap": float(coin.get("usd_market_cap") or 0),
            "usd_24h_vol": float(coin.get("usd_24h_vol") or 0),
            "usd_24h_change": float(coin.get("usd_24h_change") or 0),
            "last_updated_at": int(coin.get("last_updated_at") or 0),
        }
    except (requests.RequestException, TypeError, ValueError, AttributeError):
        logger.exception("An error occurred fetching %s price from CoinGecko", coin_id)
        return None
