# progresspath/cron_api.py
from __future__ import annotations

import time
import uuid
from typing import Optional

from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse

from .config_check import READ_KEYS, validate_config
from .diagnostics import summarize_quotes
from .errors import AuthorizationError, ConfigurationError, RunInProgressError
from .guard import verify_bearer
from .pipeline import run_daily_quotes
from .repository import QuotesRepository, today_bucket
from .schemas import ExecutionReport
from .settings import get_settings
from .store import get_store_client

router = APIRouter(prefix="/api", tags=["daily-quotes"])

_NO_CACHE = {"Cache-Control": "no-store"}


def _status_for(report: ExecutionReport) -> int:
    if report.success:
        return 200
    if report.error == AuthorizationError.category:
        return 401
    if report.error == RunInProgressError.category:
        return 409
    return 500


def report_response(report: ExecutionReport) -> JSONResponse:
    status = _status_for(report)
    if status == 401:
        body = {"error": "Unauthorized", "message": report.message}
    else:
        body = report.to_body()
    return JSONResponse(status_code=status, content=body, headers=_NO_CACHE)


@router.get("/cron/daily-quotes")
async def daily_quotes_cron(authorization: Optional[str] = Header(None)):
    """
    Scheduled trigger. Requires "Authorization: Bearer <CRON_SECRET>".
    Regenerates today's quotes and replaces the stored collection.
    """
    report = await run_daily_quotes(authorization)
    return report_response(report)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def _unauthorized(e: AuthorizationError, id_key: str, id_value: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={
            "error": "Unauthorized",
            "message": e.message,
            "hint": 'Include "Authorization: Bearer YOUR_TEST_SECRET" header',
            id_key: id_value,
        },
        headers=_NO_CACHE,
    )


@router.post("/test/daily-quotes")
async def daily_quotes_test(authorization: Optional[str] = Header(None)):
    """
    Manual trigger for checking a deployment.
    Authorized by TEST_SECRET (falls back to CRON_SECRET), then runs the same pipeline.
    """
    test_id = _new_id("test")
    settings = get_settings()

    print(f"[daily_quotes/test] {test_id} manual run requested")
    try:
        verify_bearer(authorization, settings.TEST_SECRET or settings.CRON_SECRET)
    except AuthorizationError as e:
        print(f"[daily_quotes/test] {test_id} unauthorized")
        return _unauthorized(e, "testId", test_id)

    report = await run_daily_quotes(trusted=True, settings=settings)
    status = _status_for(report)
    print(f"[daily_quotes/test] {test_id} finished with status {status} in {report.duration}")

    return JSONResponse(
        status_code=status,
        content={
            "testRun": True,
            "testId": test_id,
            "status": status,
            "result": report.to_body(),
        },
        headers=_NO_CACHE,
    )


@router.get("/test/daily-quotes")
async def daily_quotes_inspect(authorization: Optional[str] = Header(None)):
    """
    Read-only view of the stored quotes: today's set, leftovers from other
    days, language and translation counts, and whether today is complete.
    Same secret as the manual trigger.
    """
    query_id = _new_id("query")
    settings = get_settings()
    started = time.monotonic()
    print(f"[daily_quotes/inspect] {query_id} requested")

    check = validate_config(settings, READ_KEYS)
    if not check.valid:
        return JSONResponse(
            status_code=500,
            content={
                "error": ConfigurationError.category,
                "message": check.message,
                "missing": check.missing,
                "queryId": query_id,
            },
            headers=_NO_CACHE,
        )

    try:
        verify_bearer(authorization, settings.TEST_SECRET or settings.CRON_SECRET)
    except AuthorizationError as e:
        print(f"[daily_quotes/inspect] {query_id} unauthorized")
        return _unauthorized(e, "queryId", query_id)

    try:
        repository = QuotesRepository(
            get_store_client(settings),
            table=settings.QUOTES_TABLE,
            db_timeout_ms=settings.DB_TIMEOUT_MS,
        )
        rows = await repository.fetch_all()
    except Exception as e:
        print(f"[daily_quotes/inspect] {query_id} failed: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "queryId": query_id,
                "error": str(e),
                "errorType": type(e).__name__,
                "duration": f"{int((time.monotonic() - started) * 1000)}ms",
                "troubleshooting": [
                    "Verify Supabase credentials are correct",
                    f"Check that the {settings.QUOTES_TABLE} table exists",
                    "Verify network connectivity to Supabase",
                ],
            },
            headers=_NO_CACHE,
        )

    body = summarize_quotes(rows, today_bucket(), settings.DAILY_QUOTES_TOTAL)
    print(
        f"[daily_quotes/inspect] {query_id} {len(rows)} quotes, "
        f"{body['summary']['todayQuotesCount']} today, status {body['diagnostics']['todayStatus']}"
    )
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "queryId": query_id,
            "duration": f"{int((time.monotonic() - started) * 1000)}ms",
            **body,
        },
        headers=_NO_CACHE,
    )
