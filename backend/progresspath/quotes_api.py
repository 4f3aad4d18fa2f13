# progresspath/quotes_api.py
from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from .schemas import QuoteOut, QuotesBatchRequest
from .settings import get_settings
from .store import get_store_client

router = APIRouter(prefix="/api/quotes", tags=["quotes"])

QUOTE_COLUMNS = "quote, author, language, translation"
MAX_BATCH = 20


def _require_store() -> Any:
    try:
        return get_store_client()
    except Exception:
        raise HTTPException(status_code=503, detail="Supabase client not configured")


def _count(client: Any, table: str, language: Optional[str]) -> int:
    query = client.table(table).select("id", count="exact")
    if language:
        query = query.eq("language", language)
    return int(query.execute().count or 0)


def _fetch_at(client: Any, table: str, language: Optional[str], offset: int) -> Optional[Dict[str, Any]]:
    query = client.table(table).select(QUOTE_COLUMNS)
    if language:
        query = query.eq("language", language)
    rows = query.range(offset, offset).execute().data or []
    return rows[0] if rows else None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/refresh")
def random_quote(language: Optional[str] = None):
    """One random quote from the live bucket: count, random offset, fetch that row."""
    client = _require_store()
    table = get_settings().QUOTES_TABLE

    try:
        total = _count(client, table, language)
        if total == 0:
            return JSONResponse(status_code=404, content={"error": "No quotes found matching criteria"})

        row = _fetch_at(client, table, language, random.randrange(total))
        if not row:
            # bucket was swapped between count and fetch
            return JSONResponse(status_code=404, content={"error": "No quotes found matching criteria"})
    except Exception as e:
        print(f"[quotes] random_quote error: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch quote"})

    return {"success": True, "quote": QuoteOut(**row).model_dump(), "timestamp": _now()}


@router.post("/refresh")
def random_quotes(payload: QuotesBatchRequest):
    """Several distinct random quotes (1..20) for prefetching."""
    client = _require_store()
    table = get_settings().QUOTES_TABLE
    wanted = min(max(1, payload.count), MAX_BATCH)

    try:
        total = _count(client, table, payload.language)
        if total == 0:
            return JSONResponse(status_code=404, content={"error": "No quotes found"})

        offsets = random.sample(range(total), min(wanted, total))
        quotes = []
        for offset in offsets:
            row = _fetch_at(client, table, payload.language, offset)
            if row:
                quotes.append(QuoteOut(**row).model_dump())
    except Exception as e:
        print(f"[quotes] random_quotes error: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch quotes"})

    return {"success": True, "quotes": quotes, "count": len(quotes), "timestamp": _now()}
