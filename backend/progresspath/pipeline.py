# progresspath/pipeline.py
"""
Daily quotes refresh: validate -> authorize -> generate -> clean -> insert -> report.

No retries at this level; retries live inside generation.generate_with_retry.
A failed run is never resumed, the next trigger starts from validation again.
"""
from __future__ import annotations

import asyncio
import math
from typing import Any, Callable, Optional

from .config_check import validate_config
from .errors import ConfigurationError, PersistenceError, PipelineError, RunInProgressError
from .generation import BatchGenerator, Sleeper, generate_in_batches
from .guard import verify_bearer
from .llm_client import generate_quote_batch
from .reporter import ExecutionReporter, Phase
from .repository import QuotesRepository, today_bucket
from .schemas import ExecutionReport
from .settings import Settings, get_settings
from .store import get_store_client

# In-process guard only: a second worker/process is not covered.
_run_in_progress = False


def run_in_progress() -> bool:
    return _run_in_progress


async def run_daily_quotes(
    authorization: Optional[str] = None,
    *,
    trusted: bool = False,
    settings: Optional[Settings] = None,
    generate: Optional[BatchGenerator] = None,
    store: Optional[Any] = None,
    day: Optional[str] = None,
    sleep: Sleeper = asyncio.sleep,
    reporter_factory: Callable[[], ExecutionReporter] = ExecutionReporter,
) -> ExecutionReport:
    """
    One full pipeline run. Always returns a report, never raises PipelineError.

    trusted=True skips the bearer check (scheduler/CLI); config is still validated.
    generate/store/day/sleep are injection points for tests.
    """
    global _run_in_progress

    reporter = reporter_factory()
    settings = settings or get_settings()
    holds_lock = False

    try:
        # ---- Validating ----
        reporter.enter(Phase.VALIDATING)
        check = validate_config(settings)
        if not check.valid:
            raise ConfigurationError(check.missing)

        # ---- Authorizing ----
        reporter.enter(Phase.AUTHORIZING)
        if not trusted:
            verify_bearer(authorization, settings.CRON_SECRET)

        if _run_in_progress:
            raise RunInProgressError("Another daily quotes run is already in progress")
        _run_in_progress = True
        holds_lock = True

        # ---- Generating ----
        reporter.enter(Phase.GENERATING)
        if generate is None:
            async def generate(count: int):
                return await generate_quote_batch(count, settings)

        stats = reporter.statistics
        stats.batch_size = settings.DAILY_QUOTES_BATCH_SIZE
        stats.batches = math.ceil(settings.DAILY_QUOTES_TOTAL / max(1, settings.DAILY_QUOTES_BATCH_SIZE))
        try:
            outcome = await generate_in_batches(
                settings.DAILY_QUOTES_TOTAL,
                settings.DAILY_QUOTES_BATCH_SIZE,
                generate=generate,
                max_retries=settings.GENERATION_MAX_RETRIES,
                initial_delay_ms=settings.GENERATION_INITIAL_DELAY_MS,
                timeout_ms=settings.GENERATION_TIMEOUT_MS,
                inter_batch_delay_ms=settings.INTER_BATCH_DELAY_MS,
                sleep=sleep,
            )
        except PipelineError as e:
            stats.generation_attempts = getattr(e, "total_attempts", None) or 0
            raise

        stats.quotes_generated = len(outcome.items)
        stats.generation_attempts = outcome.attempts

        # ---- Cleaning ----
        reporter.enter(Phase.CLEANING)
        bucket = day or today_bucket()
        if store is None:
            try:
                store = get_store_client(settings)
            except Exception as e:
                raise PersistenceError(f"Supabase client unavailable: {e}") from e
        repository = QuotesRepository(
            store,
            table=settings.QUOTES_TABLE,
            db_timeout_ms=settings.DB_TIMEOUT_MS,
            insert_chunk_size=settings.INSERT_CHUNK_SIZE,
        )
        clean = await repository.clean_stale(bucket)
        stats.quotes_deleted = clean.deleted_count

        # ---- Inserting ----
        reporter.enter(Phase.INSERTING)
        inserted_ids = await repository.insert_items(outcome.items, bucket)
        stats.quotes_inserted = len(inserted_ids)
        stats.quotes_superseded = await repository.prune_superseded(clean.superseded_ids, inserted_ids)

        return reporter.succeed(
            f"Daily quotes refreshed for {bucket}: {stats.quotes_inserted} inserted, "
            f"{stats.quotes_deleted} previous removed"
        )

    except Exception as e:
        return reporter.fail(e)

    finally:
        if holds_lock:
            _run_in_progress = False
