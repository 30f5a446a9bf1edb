
import os
import re
import time
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from ..services.scraper import scrape_url
from ..services.market import fetch_coin_snapshot
from ..services.technical_parser import parse_markdown
from ..services.storage import insert_market_snapshot, insert_technical_analysis
from ..schemas.technical import (
    MarketSnapshot,
    RawScrape,
    TechnicalAnalysisPayload,
    TechnicalAnalysisResponse,
)


router = APIRouter(prefix="/api", tags=["technical"])
logger = logging.getLogger("router.technical")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)

DEFAULT_URL = "https://www.investing.com/crypto/ethereum/technical"

# ---------- 10 minute TTL cache, keyed by target url ----------
_CACHE_TTL_SEC = 10 * 60
_CACHE_MAX_ENTRIES = 256
# { key: (expire_ts, payload) }
_CACHE: Dict[str, Any] = {}

def _cache_get(key: str):
    item = _CACHE.get(key)
    if not item:
        return None
    expire_ts, data = item
    if time.time() > expire_ts:
        _CACHE.pop(key, None)
        return None
    return data

def _cache_set(key: str, data: Any, ttl: int = _CACHE_TTL_SEC):
    now = time.time()
    for k in [k for k, (expire_ts, _) in _CACHE.items() if now > expire_ts]:
        _CACHE.pop(k, None)
    _CACHE.pop(key, None)
    # still full: drop whatever expires soonest
    while len(_CACHE) >= _CACHE_MAX_ENTRIES:
        _CACHE.pop(min(_CACHE, key=lambda k: _CACHE[k][0]))
    _CACHE[key] = (now + ttl, data)

def cache_clear():
    _CACHE.clear()

# ---------- auth ----------
def require_api_key(x_api_key: Optional[str] = Header(default=None)) -> str:
    valid = os.getenv("API_KEY")
    if not valid:
        logger.warning("API_KEY not set in environment variables")
        raise HTTPException(status_code=500, detail="Server configuration error")
    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key required. Include 'x-api-key' header.")
    if x_api_key != valid:
        logger.info("Invalid API key attempt: %s...", x_api_key[:8])
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_api_key

# ---------- input checks ----------
_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.I)
_COIN_RE = re.compile(r"^[a-z0-9\-]{1,64}$")

def _validate_url(url: str) -> str:
    url = (url or "").strip()
    if not _URL_RE.match(url):
        raise HTTPException(status_code=400, detail="Invalid URL format.")
    return url

def _validate_coin(coin_id: str) -> str:
    coin_id = (coin_id or "").strip().lower()
    if not _COIN_RE.match(coin_id):
        raise HTTPException(status_code=400, detail="Invalid coin id.")
    return coin_id


@router.get(
    "/technical-analysis",
    response_model=TechnicalAnalysisResponse,
    dependencies=[Depends(require_api_key)],
)
def fetch_technical_analysis(
    url: Optional[str] = Query(default=None),
    save: bool = False,
    fresh: bool = False,
):
    target_url = _validate_url(url or os.getenv("DEFAULT_TECHNICAL_URL", DEFAULT_URL))

    # fresh/save requests always go upstream
    if not fresh and not save:
        cached = _cache_get(target_url)
        if cached is not None:
            logger.info("Serving cached technical analysis for %s", target_url)
            return cached

    logger.info("Fetching technical analysis from %s (save=%s, fresh=%s)", target_url, save, fresh)

    # 1) scrape
    scraped = scrape_url(target_url, bust_cache=fresh)
    if not scraped:
        raise HTTPException(status_code=502, detail="Failed to scrape technical analysis data from URL")

    markdown = scraped.get("markdown") or ""

    # 2) parse -- a failed parse is reported as parsed=null, not as an error
    parsed = parse_markdown(markdown, target_url)
    if parsed is None:
        logger.warning("Failed to parse technical analysis data from %s", target_url)
    else:
        logger.info(
            "Parsed %d indicators, %d moving averages, overall=%s",
            len(parsed.technical_indicators),
            len(parsed.moving_averages),
            parsed.summary.overall,
        )

    # 3) persist
    saved = False
    if save and parsed is not None:
        saved = insert_technical_analysis(parsed)
        if not saved:
            logger.error("Failed to save technical analysis for %s", target_url)

    raw = RawScrape(
        url=target_url,
        title=scraped.get("title"),
        content=markdown,
        html=scraped.get("html"),
        content_length=len(markdown),
        scraped_at=datetime.now(timezone.utc).isoformat(),
        metadata={"statusCode": scraped.get("statusCode"), "originalUrl": scraped.get("url")},
    )
    message = "Technical analysis data fetched and parsed successfully"
    if saved:
        message += ", and saved to database"

    response = TechnicalAnalysisResponse(
        success=True,
        message=message,
        data=TechnicalAnalysisPayload(raw=raw, parsed=parsed, saved_to_database=saved),
    )
    if parsed is not None and not save:
        _cache_set(target_url, response)
    return response


@router.post("/eth-data", dependencies=[Depends(require_api_key)])
def fetch_and_store_eth_data():
    snapshot = fetch_coin_snapshot("ethereum")
    if not snapshot:
        raise HTTPException(status_code=502, detail="Failed to fetch ETH data from CoinGecko")

    data = MarketSnapshot(**snapshot)
    if not insert_market_snapshot(data):
        raise HTTPException(status_code=502, detail="Failed to insert ETH data into database")

    return {"success": True, "message": "ETH data successfully fetched and stored", "data": data}


@router.get("/price/{coin_id}", response_model=MarketSnapshot)
def get_price(coin_id: str):
    coin_id = _validate_coin(coin_id)
    snapshot = fetch_coin_snapshot(coin_id)
    if not snapshot:
        raise HTTPException(status_code=502, detail=f"Failed to fetch {coin_id} price from CoinGecko")
    return MarketSnapshot(**snapshot)
