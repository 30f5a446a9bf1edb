# app/services/storage.py
"""
Supabase persistence over its PostgREST endpoint.

Indicators, moving averages and pivot points go in as JSON text columns;
the database never looks inside them.
"""

import os
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

import requests

from ..schemas.technical import MarketSnapshot, TechnicalAnalysisData

logger = logging.getLogger("services.storage")

TECHNICAL_ANALYSIS_TABLE = "technical_analysis"
MARKET_HISTORY_TABLE = "eth_market_history"


def _headers() -> Dict[str, str]:
    key = os.getenv("SUPABASE_ANON_KEY", "")
    return {
        "apikey": key,
        "Authorization": f"Bearer {key}",
        "Content-Type": "application/json",
        "Prefer": "return=minimal",
    }


def insert_row(table: str, row: Dict[str, Any], timeout: int = 15) -> bool:
    base = os.getenv("SUPABASE_URL", "").rstrip("/")
    if not base:
        logger.error("SUPABASE_URL is not set; cannot insert into %s", table)
        return False
    try:
        r = requests.post(f"{base}/rest/v1/{table}", json=row, headers=_headers(), timeout=timeout)
        r.raise_for_status()
    except requests.RequestException:
        logger.exception("An error occurred while inserting into %s", table)
        return False
    logger.info("Row inserted into %s", table)
    return True


def technical_analysis_row(data: TechnicalAnalysisData) -> Dict[str, Any]:
    def _blob(items) -> str:
        return json.dumps([i.model_dump(by_alias=True) for i in items], ensure_ascii=False)

    return {
        "symbol": data.symbol,
        "price": data.price,
        "price_change": data.price_change,
        "price_change_percent": data.price_change_percent,
        "overall_summary": data.summary.overall,
        "technical_indicators_summary": data.summary.technical_indicators,
        "moving_averages_summary": data.summary.moving_averages,
        "technical_indicators": _blob(data.technical_indicators),
        "moving_averages": _blob(data.moving_averages),
        "pivot_points": _blob(data.pivot_points),
        "source_url": data.source_url,
        "scraped_at": data.scraped_at,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }


def insert_technical_analysis(data: TechnicalAnalysisData) -> bool:
    return insert_row(TECHNICAL_ANALYSIS_TABLE, technical_analysis_row(data))


def insert_market_snapshot(snapshot: MarketSnapshot) -> bool:
    return insert_row(MARKET_HISTORY_TABLE, snapshot.model_dump())
