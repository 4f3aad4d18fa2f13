# progresspath/errors.py
from __future__ import annotations

from typing import List, Optional


class PipelineError(Exception):
    """Base for every failure the daily quotes pipeline reports by category."""

    category = "pipeline_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(PipelineError):
    category = "configuration_error"

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(
            f"Missing environment variables: {', '.join(self.missing)}. "
            "For the Supabase service key, use either SUPABASE_SERVICE_ROLE_KEY or SUPABASE_SERVICE_KEY."
        )


class AuthorizationError(PipelineError):
    category = "unauthorized"


class RunInProgressError(PipelineError):
    category = "run_in_progress"


class GenerationError(PipelineError):
    """Network failure, non-success status or unusable payload from the generator."""

    category = "generation_error"

    def __init__(self, message: str, *, attempts: Optional[int] = None, batch_index: Optional[int] = None):
        super().__init__(message)
        self.attempts = attempts
        self.batch_index = batch_index
        # calls made across every batch of the run, set by generate_in_batches
        self.total_attempts: Optional[int] = None


class ValidationError(GenerationError):
    """Generator answered, but the items break the generation contract."""

    category = "validation_error"


class OperationTimeoutError(PipelineError, TimeoutError):
    category = "timeout"

    def __init__(self, label: str, deadline_ms: int):
        self.label = label
        self.deadline_ms = deadline_ms
        super().__init__(f"{label} timed out after {deadline_ms}ms")


class PersistenceError(PipelineError):
    """
    Store failure during clean/insert.
    rollback_error is set when the compensating delete failed as well;
    pending_cleanup_ids then lists rows that may need manual removal.
    """

    category = "persistence_error"

    def __init__(
        self,
        message: str,
        *,
        rollback_error: Optional[BaseException] = None,
        pending_cleanup_ids: Optional[List[str]] = None,
    ):
        if rollback_error is not None:
            message = f"{message} (rollback failed: {rollback_error})"
        super().__init__(message)
        self.rollback_error = rollback_error
        self.pending_cleanup_ids = list(pending_cleanup_ids or [])
