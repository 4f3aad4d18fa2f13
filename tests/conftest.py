from __future__ import annotations

import time
import uuid
from types import SimpleNamespace
from typing import Any, Callable, Dict, Iterator, List, Optional

import pytest

from progresspath import pipeline, store
from progresspath.errors import GenerationError
from progresspath.schemas import ContentItem
from progresspath.settings import Settings

TODAY = "2026-10-19"
YESTERDAY = "2026-10-18"

ENV_KEYS = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_SERVICE_KEY",
    "GENERATION_SERVICE_KEY",
    "ANTHROPIC_API_KEY",
    "CRON_SECRET",
    "TEST_SECRET",
    "DAILY_QUOTES_SCHEDULER_ENABLED",
]


# ── Fake Supabase query builder ──────────────────────────────────────


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.count_mode: Optional[str] = None
        self.filters: List[tuple] = []
        self.payload: List[Dict[str, Any]] = []
        self.window: Optional[tuple] = None
        self.ordering: Optional[tuple] = None

    def select(self, columns: str = "*", count: Optional[str] = None) -> "FakeQuery":
        self.op, self.columns, self.count_mode = "select", columns, count
        return self

    def delete(self, count: Optional[str] = None) -> "FakeQuery":
        self.op, self.count_mode = "delete", count
        return self

    def insert(self, rows: Any) -> "FakeQuery":
        self.op = "insert"
        self.payload = list(rows) if isinstance(rows, list) else [rows]
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(("eq", column, value))
        return self

    def neq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(("neq", column, value))
        return self

    def in_(self, column: str, values: List[Any]) -> "FakeQuery":
        self.filters.append(("in", column, set(values)))
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.window = (start, end)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.ordering = (column, desc)
        return self

    def matches(self, row: Dict[str, Any]) -> bool:
        for op, column, value in self.filters:
            if op == "eq" and row.get(column) != value:
                return False
            if op == "neq" and row.get(column) == value:
                return False
            if op == "in" and row.get(column) not in value:
                return False
        return True

    def filter_ops(self) -> set:
        return {op for op, _, _ in self.filters}

    def execute(self) -> SimpleNamespace:
        return self.db.execute(self)


class FakeSupabase:
    """Just enough of supabase-py's table() builder for the repository and read routes."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {"daily_quotes": []}
        self.insert_calls = 0
        self.fail_insert_calls: set = set()
        self.fail_id_delete = False
        self.fail_stale_delete = False
        self.fail_stamp_delete = False
        self.delays: Dict[str, float] = {}
        self.log: List[str] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def seed(self, day: str, n: int, table: str = "daily_quotes") -> List[str]:
        ids = []
        for i in range(n):
            row_id = str(uuid.uuid4())
            self.tables.setdefault(table, []).append(
                {"id": row_id, "quote": f"Old {day} #{i}", "author": "Someone", "language": "en",
                 "translation": None, "day_id": day, "created_at": f"{day}T00:00:00+00:00"}
            )
            ids.append(row_id)
        return ids

    def rows(self, day: Optional[str] = None, table: str = "daily_quotes") -> List[Dict[str, Any]]:
        rows = self.tables.get(table, [])
        return [r for r in rows if day is None or r["day_id"] == day]

    def execute(self, q: FakeQuery) -> SimpleNamespace:
        self.log.append(q.op)
        delay = self.delays.get(q.op)
        if delay:
            time.sleep(delay)

        rows = self.tables.setdefault(q.table_name, [])

        if q.op == "insert":
            self.insert_calls += 1
            if self.insert_calls in self.fail_insert_calls:
                raise RuntimeError("insert rejected by store")
            created = [{"id": str(uuid.uuid4()), **row} for row in q.payload]
            rows.extend(created)
            return SimpleNamespace(data=[dict(r) for r in created], count=None)

        if q.op == "delete":
            if self.fail_id_delete and "in" in q.filter_ops():
                raise RuntimeError("delete by id rejected by store")
            if self.fail_stamp_delete and any(col == "created_at" for _, col, _ in q.filters):
                raise RuntimeError("delete by stamp rejected by store")
            if self.fail_stale_delete and "neq" in q.filter_ops():
                raise RuntimeError("delete stale rejected by store")
            doomed = [r for r in rows if q.matches(r)]
            self.tables[q.table_name] = [r for r in rows if not q.matches(r)]
            return SimpleNamespace(
                data=[dict(r) for r in doomed],
                count=len(doomed) if q.count_mode else None,
            )

        selected = [dict(r) for r in rows if q.matches(r)]
        count = len(selected) if q.count_mode else None
        if q.ordering is not None:
            column, desc = q.ordering
            selected.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if q.window is not None:
            start, end = q.window
            selected = selected[start : end + 1]
        return SimpleNamespace(data=selected, count=count)


# ── Fake generator ───────────────────────────────────────────────────


def make_item(i: int = 0, language: str = "en") -> ContentItem:
    return ContentItem(
        text=f"Keep going, step {i}",
        attribution=f"Author {i}",
        language_code=language,
        translation=None if language in ("en", "zh") else f"Translation {i}",
    )


class FakeGenerator:
    """Counts calls; call numbers (1-based) in fail_calls raise GenerationError."""

    def __init__(
        self,
        fail_calls: Optional[set] = None,
        extra: int = 0,
        short_calls: Optional[set] = None,
        error: Callable[[int], Exception] = lambda n: GenerationError(f"upstream 503 on call {n}"),
    ) -> None:
        self.fail_calls = fail_calls or set()
        self.short_calls = short_calls or set()
        self.extra = extra
        self.error = error
        self.calls: List[int] = []

    async def __call__(self, count: int) -> List[ContentItem]:
        self.calls.append(count)
        n = len(self.calls)
        if n in self.fail_calls:
            raise self.error(n)
        if n in self.short_calls:
            return [make_item(n * 100 + i) for i in range(count - 1)]
        return [make_item(n * 100 + i) for i in range(count + self.extra)]


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    store.reset_store_client()
    pipeline._run_in_progress = False
    yield
    store.reset_store_client()


@pytest.fixture()
def full_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setenv("CRON_SECRET", "cron-secret")
    monkeypatch.setenv("GENERATION_INITIAL_DELAY_MS", "0")
    monkeypatch.setenv("INTER_BATCH_DELAY_MS", "0")


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        SUPABASE_URL="https://example.supabase.co",
        SUPABASE_SERVICE_KEY="service-role-key",
        GENERATION_SERVICE_KEY="sk-ant-test",
        CRON_SECRET="cron-secret",
        GENERATION_INITIAL_DELAY_MS=0,
        INTER_BATCH_DELAY_MS=0,
    )


@pytest.fixture()
def fake_db() -> FakeSupabase:
    return FakeSupabase()
