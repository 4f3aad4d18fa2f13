# progresspath/generation.py
"""
Retry and batching around the single-request generation client.

generate_with_retry: bounded exponential backoff for one batch.
generate_in_batches: sequential batches until the daily target is met.
"""
from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple

from .errors import GenerationError, OperationTimeoutError, ValidationError
from .schemas import ContentItem
from .timeouts import with_timeout

# (count) -> items; llm_client.generate_quote_batch bound to settings in production
BatchGenerator = Callable[[int], Awaitable[List[ContentItem]]]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class GenerationOutcome:
    items: List[ContentItem] = field(default_factory=list)
    batches: int = 0
    attempts: int = 0


def backoff_delay_ms(retry: int, initial_delay_ms: int) -> int:
    """Delay before retry number `retry` (0-based): initial, 2x, 4x, ..."""
    return initial_delay_ms * (2 ** retry)


async def generate_with_retry(
    count: int,
    *,
    generate: BatchGenerator,
    max_retries: int = 3,
    initial_delay_ms: int = 1000,
    timeout_ms: int = 30_000,
    sleep: Sleeper = asyncio.sleep,
) -> Tuple[List[ContentItem], int]:
    """
    Call generate(count) up to max_retries + 1 times.
    Each attempt runs under its own deadline. Returns (items, attempts used).
    """
    last_error: Optional[GenerationError] = None

    for attempt in range(max_retries + 1):
        if attempt > 0:
            delay = backoff_delay_ms(attempt - 1, initial_delay_ms)
            print(f"[generation] Retrying in {delay}ms...")
            await sleep(delay / 1000)

        print(f"[generation] Generating {count} quotes (attempt {attempt + 1}/{max_retries + 1})")
        try:
            items = await with_timeout(lambda: generate(count), timeout_ms, label="generation request")
        except OperationTimeoutError as e:
            last_error = GenerationError(str(e))
            last_error.__cause__ = e
        except GenerationError as e:
            last_error = e
        else:
            if len(items) < count:
                # generators other than llm_client may under-deliver without raising
                last_error = ValidationError(f"Expected {count} quotes, got {len(items)}")
            else:
                return items, attempt + 1

        print(f"[generation] Attempt {attempt + 1} failed: {last_error}")

    attempts = max_retries + 1
    error = GenerationError(
        f"Failed to generate quotes after {attempts} attempts: {last_error}",
        attempts=attempts,
    )
    raise error from last_error


async def generate_in_batches(
    total: int,
    batch_size: int,
    *,
    generate: BatchGenerator,
    max_retries: int = 3,
    initial_delay_ms: int = 1000,
    timeout_ms: int = 30_000,
    inter_batch_delay_ms: int = 500,
    sleep: Sleeper = asyncio.sleep,
) -> GenerationOutcome:
    """
    Produce exactly `total` items in ceil(total / batch_size) sequential batches.
    The first batch that exhausts its retries aborts the whole generation.
    """
    if total < 1 or batch_size < 1:
        raise ValueError("total and batch_size must be positive")

    batches = math.ceil(total / batch_size)
    outcome = GenerationOutcome(batches=batches)
    print(f"[generation] Generating {total} quotes in {batches} batches of {batch_size}")

    for index in range(batches):
        requested = min(batch_size, total - len(outcome.items))
        print(f"[generation] Batch {index + 1}/{batches} ({requested} quotes)")

        try:
            items, attempts = await generate_with_retry(
                requested,
                generate=generate,
                max_retries=max_retries,
                initial_delay_ms=initial_delay_ms,
                timeout_ms=timeout_ms,
                sleep=sleep,
            )
        except GenerationError as e:
            outcome.attempts += e.attempts or 0
            e.batch_index = index
            e.message = f"Batch {index + 1}/{batches} failed: {e.message}"
            e.args = (e.message,)
            e.total_attempts = outcome.attempts
            raise

        outcome.items.extend(items[:requested])
        outcome.attempts += attempts

        if index < batches - 1:
            await sleep(inter_batch_delay_ms / 1000)

    print(f"[generation] All batches completed: {len(outcome.items)} quotes in {outcome.attempts} calls")
    return outcome
