# progresspath/timeouts.py
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from .errors import OperationTimeoutError

T = TypeVar("T")


async def with_timeout(
    operation: Callable[[], Awaitable[T]],
    deadline_ms: int,
    *,
    label: str = "operation",
) -> T:
    """
    Run operation() with a deadline.

    On expiry the awaiting task is cancelled and OperationTimeoutError is raised.
    asyncio.wait_for owns the timer, so nothing is left scheduled on either path.
    Work pushed into asyncio.to_thread keeps running in its thread; give such
    calls their own transport timeout as well.
    """
    try:
        return await asyncio.wait_for(operation(), timeout=deadline_ms / 1000)
    except asyncio.TimeoutError as e:
        if isinstance(e, OperationTimeoutError):
            # nested deadline already named itself
            raise
        raise OperationTimeoutError(label, deadline_ms) from None
