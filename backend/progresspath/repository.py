# progresspath/repository.py
# Supabase REST-based daily quotes repository (delete-then-insert with compensation)

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import PersistenceError
from .schemas import ContentItem
from .timeouts import with_timeout

TABLE = "daily_quotes"


def today_bucket(now: Optional[datetime] = None) -> str:
    """Day bucket key (UTC date, YYYY-MM-DD)."""
    return (now or datetime.now(timezone.utc)).date().isoformat()


@dataclass
class CleanResult:
    deleted_count: int = 0
    # rows already under today's bucket from an earlier run of the same day
    superseded_ids: List[str] = field(default_factory=list)


@dataclass
class PersistResult:
    deleted_count: int = 0
    inserted_count: int = 0
    superseded_count: int = 0
    inserted_ids: List[str] = field(default_factory=list)


class QuotesRepository:
    """
    Replaces the live day bucket in the daily_quotes table.

    The store gives no multi-statement transactions, so inserted ids are
    tracked chunk by chunk and removed again if a later chunk fails.
    Every store call runs under with_timeout(db_timeout_ms).
    """

    def __init__(
        self,
        client: Any,
        *,
        table: str = TABLE,
        db_timeout_ms: int = 10_000,
        insert_chunk_size: int = 10,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.table = table
        self.db_timeout_ms = db_timeout_ms
        self.insert_chunk_size = max(1, insert_chunk_size)
        self.clock = clock

    async def _run(self, label: str, fn: Callable[[], Any]) -> Any:
        # supabase-py is synchronous; keep the event loop free
        return await with_timeout(lambda: asyncio.to_thread(fn), self.db_timeout_ms, label=label)

    # =========================
    # Read
    # =========================
    async def fetch_all(self) -> List[Dict[str, Any]]:
        """Every stored row, oldest first."""

        def _select() -> List[Dict[str, Any]]:
            res = self.client.table(self.table).select("*").order("created_at").execute()
            return res.data or []

        return await self._run("fetch quotes", _select)

    # =========================
    # Clean
    # =========================
    async def clean_stale(self, day: str) -> CleanResult:
        """Delete every row outside `day`; remember ids already inside it."""
        print(f"[repository] Deleting quotes from previous days (keeping {day})")

        def _existing_today() -> List[str]:
            res = self.client.table(self.table).select("id").eq("day_id", day).execute()
            return [row["id"] for row in (res.data or []) if row.get("id") is not None]

        def _delete_stale() -> int:
            res = self.client.table(self.table).delete(count="exact").neq("day_id", day).execute()
            if res.count is not None:
                return int(res.count)
            return len(res.data or [])

        try:
            superseded = await self._run("select today's quotes", _existing_today)
            deleted = await self._run("delete previous quotes", _delete_stale)
        except Exception as e:
            print(f"[repository] delete error: {e}")
            raise PersistenceError(f"Database deletion failed: {e}") from e

        print(f"[repository] Deleted {deleted} previous quotes ({len(superseded)} of today's will be replaced)")
        return CleanResult(deleted_count=deleted, superseded_ids=superseded)

    # =========================
    # Insert (+ rollback)
    # =========================
    async def insert_items(self, items: List[ContentItem], day: str) -> List[str]:
        """
        Insert all items under `day`. Returns the generated ids in insert order.

        Every row of one call shares a single created_at stamp, so a failed
        insert can also be undone by (day_id, created_at) for rows whose ids
        never came back.
        """
        created_at = self.clock()
        stamp = created_at.isoformat()
        rows = [item.to_row(day, created_at) for item in items]
        inserted_ids: List[str] = []
        in_flight: Optional[asyncio.Future] = None

        print(f"[repository] Inserting {len(rows)} quotes for {day}")
        try:
            for start in range(0, len(rows), self.insert_chunk_size):
                chunk = rows[start : start + self.insert_chunk_size]

                def _insert(chunk: List[Dict[str, Any]] = chunk) -> List[str]:
                    res = self.client.table(self.table).insert(chunk).execute()
                    return [row["id"] for row in (res.data or [])]

                # shielded: a deadline cancels the wait, not the chunk in its worker thread
                in_flight = asyncio.ensure_future(asyncio.to_thread(_insert))
                pending = in_flight
                ids = await with_timeout(
                    lambda: asyncio.shield(pending), self.db_timeout_ms, label="insert quotes"
                )
                in_flight = None

                inserted_ids.extend(ids)
                if len(ids) != len(chunk):
                    raise RuntimeError(f"Store returned {len(ids)} ids for {len(chunk)} rows")
        except Exception as e:
            print(f"[repository] insert error: {e}")
            if in_flight is not None:
                inserted_ids.extend(await self._settle(in_flight))
            rollback_error, pending_ids = await self._rollback(inserted_ids, day, stamp)
            message = f"Database insertion failed: {e}"
            if rollback_error is not None:
                message += f"; rows for {day} with created_at={stamp} may remain"
            raise PersistenceError(
                message,
                rollback_error=rollback_error,
                pending_cleanup_ids=pending_ids,
            ) from e

        print(f"[repository] Inserted {len(inserted_ids)} quotes")
        return inserted_ids

    async def _settle(self, in_flight: asyncio.Future) -> List[str]:
        """
        Wait out a chunk that outlived its deadline; its rows may still land.
        Bounded by the client's own transport timeout (postgrest_client_timeout).
        """
        try:
            return await in_flight
        except Exception as e:
            # same failure the caller is already reporting
            print(f"[repository] abandoned insert finished with error: {e}")
            return []

    async def _rollback(self, ids: List[str], day: str, stamp: str) -> Tuple[Optional[Exception], List[str]]:
        """
        Compensating delete, by id then by this call's created_at stamp.
        Returns (failure, ids possibly still stored) instead of raising.
        """
        print(f"[repository] Rolling back {len(ids)} partially inserted quotes")
        if ids:
            try:
                await self._delete_ids("rollback inserted quotes", ids)
            except Exception as e:
                print(f"[repository] Rollback failed, manual cleanup needed for ids={ids}: {e}")
                return e, list(ids)

        def _delete_stamped() -> None:
            self.client.table(self.table).delete().eq("day_id", day).eq("created_at", stamp).execute()

        try:
            await self._run("rollback quotes by stamp", _delete_stamped)
        except Exception as e:
            print(f"[repository] Rollback by stamp failed, manual cleanup needed for created_at={stamp}: {e}")
            return e, []

        print("[repository] Rollback successful")
        return None, []

    async def _delete_ids(self, label: str, ids: List[str]) -> None:
        def _delete() -> None:
            self.client.table(self.table).delete().in_("id", ids).execute()

        await self._run(label, _delete)

    # =========================
    # Whole replacement
    # =========================
    async def prune_superseded(self, superseded_ids: List[str], inserted_ids: List[str]) -> int:
        """Drop an earlier same-day set once the new set is fully in place."""
        fresh = set(inserted_ids)
        superseded = [i for i in superseded_ids if i not in fresh]
        if not superseded:
            return 0

        try:
            await self._delete_ids("delete superseded quotes", superseded)
        except Exception as e:
            # the new set is complete; the old same-day rows stay until the next run
            print(f"[repository] Could not remove {len(superseded)} superseded quotes: {e}")
            raise PersistenceError(
                f"Removing superseded quotes failed: {e}",
                pending_cleanup_ids=superseded,
            ) from e

        print(f"[repository] Removed {len(superseded)} superseded quotes")
        return len(superseded)

    async def replace_day_bucket(self, items: List[ContentItem], day: str) -> PersistResult:
        clean = await self.clean_stale(day)
        inserted_ids = await self.insert_items(items, day)
        superseded = await self.prune_superseded(clean.superseded_ids, inserted_ids)

        return PersistResult(
            deleted_count=clean.deleted_count,
            inserted_count=len(inserted_ids),
            superseded_count=superseded,
            inserted_ids=inserted_ids,
        )
