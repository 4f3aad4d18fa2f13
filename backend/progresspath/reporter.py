# progresspath/reporter.py
from __future__ import annotations

import json
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from .errors import ConfigurationError, PersistenceError, PipelineError
from .schemas import ExecutionReport, GenerationStatistics


class Phase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    AUTHORIZING = "authorizing"
    GENERATING = "generating"
    CLEANING = "cleaning"
    INSERTING = "inserting"
    REPORTING = "reporting"


def new_execution_id(now_ms: Optional[int] = None) -> str:
    """run-<epoch ms>-<9 hex chars>"""
    ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"run-{ms}-{uuid.uuid4().hex[:9]}"


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ExecutionReporter:
    """
    Run id, timing and phase bookkeeping for one pipeline run.
    Produces the ExecutionReport that the trigger endpoint returns as-is.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic, tag: str = "daily_quotes"):
        self.execution_id = new_execution_id()
        self.tag = tag
        self.phase = Phase.IDLE
        self.statistics = GenerationStatistics()
        self._clock = clock
        self._t0 = clock()

    def enter(self, phase: Phase) -> None:
        self.phase = phase
        print(f"[{self.tag}] {self.execution_id} -> {phase.value}")

    def elapsed_ms(self) -> int:
        return int((self._clock() - self._t0) * 1000)

    def _finish(self, **fields) -> ExecutionReport:
        duration_ms = self.elapsed_ms()
        phase = self.phase
        self.phase = Phase.REPORTING
        report = ExecutionReport(
            execution_id=self.execution_id,
            timestamp=_utc_iso(),
            duration=f"{duration_ms}ms",
            duration_ms=duration_ms,
            phase=phase.value,
            **fields,
        )
        self.emit(report)
        return report

    def succeed(self, message: str = "Daily quotes successfully refreshed") -> ExecutionReport:
        return self._finish(success=True, message=message, statistics=self.statistics)

    def fail(self, error: BaseException) -> ExecutionReport:
        if isinstance(error, PipelineError):
            category = error.category
            message = error.message
        else:
            # unexpected: keep internals out of the response, the log line has them
            print(f"[{self.tag}] {self.execution_id} unexpected error: {error!r}")
            category = "internal_error"
            message = "Unexpected error during daily quotes refresh"

        return self._finish(
            success=False,
            error=category,
            message=message,
            statistics=self.statistics,
            missing=error.missing if isinstance(error, ConfigurationError) else None,
            pending_cleanup_ids=(
                error.pending_cleanup_ids or None if isinstance(error, PersistenceError) else None
            ),
        )

    def emit(self, report: ExecutionReport) -> None:
        """One JSON line per run for log search."""
        payload = {"event": "daily_quotes_run", **report.to_body()}
        print(json.dumps(payload, ensure_ascii=False))
