# progresspath/store.py
# Supabase REST client factory (service role, no direct psycopg2)

from __future__ import annotations

from typing import Optional

from supabase import Client, ClientOptions, create_client

from .settings import Settings, get_settings

# Built once; a failed construction is cached too so every caller sees the same error.
_store_client: Optional[Client] = None
_store_init_error: Optional[Exception] = None


def _normalize_url(raw: Optional[str]) -> str:
    raw = (raw or "").strip()
    if not raw:
        return ""
    if not raw.startswith("http://") and not raw.startswith("https://"):
        raw = "https://" + raw
    return raw.rstrip("/")


def get_store_client(settings: Optional[Settings] = None) -> Client:
    """Return the cached Supabase admin client, building it on first use."""
    global _store_client, _store_init_error

    if _store_client is not None:
        return _store_client
    if _store_init_error is not None:
        raise _store_init_error

    settings = settings or get_settings()
    url = _normalize_url(settings.SUPABASE_URL)
    key = (settings.SUPABASE_SERVICE_KEY or "").strip()

    try:
        if not url or not key:
            print(f"[store] Supabase credentials missing: has_url={bool(url)} has_service_key={bool(key)}")
            raise RuntimeError("Supabase credentials not configured")

        _store_client = create_client(
            url,
            key,
            options=ClientOptions(
                auto_refresh_token=False,
                persist_session=False,
                schema="public",
                # worker threads cannot be cancelled by with_timeout, so bound the transport too
                postgrest_client_timeout=settings.DB_TIMEOUT_MS / 1000,
            ),
        )
        print("[store] Supabase client initialized")
        return _store_client
    except Exception as e:
        _store_init_error = e
        print(f"[store] Failed to create Supabase client: {e}")
        raise


def reset_store_client() -> None:
    """Forget the cached handle and error (tests, credential rotation)."""
    global _store_client, _store_init_error
    _store_client = None
    _store_init_error = None


def store_ok() -> bool:
    try:
        get_store_client()
        return True
    except Exception:
        return False
