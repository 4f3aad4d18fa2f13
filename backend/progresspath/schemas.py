# progresspath/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Languages whose quotes are shown as-is; every other language needs a translation.
NO_TRANSLATION_LANGUAGES = frozenset({"en", "zh"})


def requires_translation(language_code: str) -> bool:
    return (language_code or "").lower() not in NO_TRANSLATION_LANGUAGES


# =========================
# Content items
# =========================
class ContentItem(BaseModel):
    text: str = Field(min_length=1)
    attribution: str = Field(min_length=1)
    language_code: str = "en"
    translation: Optional[str] = None
    day_bucket: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_row(self, day_bucket: str, created_at: datetime) -> Dict[str, Any]:
        """Column layout of the daily_quotes table."""
        return {
            "quote": self.text,
            "author": self.attribution,
            "language": self.language_code,
            "translation": self.translation,
            "day_id": day_bucket,
            "created_at": created_at.isoformat(),
        }


class QuoteOut(BaseModel):
    quote: str
    author: str
    language: str = "en"
    translation: Optional[str] = None


# =========================
# /healthz
# =========================
class HealthOutput(BaseModel):
    ok: bool = True
    store: Optional[bool] = None
    build: Optional[str] = None
    routes: Optional[List[str]] = None


# =========================
# Pipeline report (camelCase on the wire)
# =========================
class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerationStatistics(_CamelModel):
    quotes_generated: int = 0
    quotes_deleted: int = 0
    quotes_inserted: int = 0
    quotes_superseded: int = 0
    batches: int = 0
    batch_size: int = 0
    generation_attempts: int = 0


class ExecutionReport(_CamelModel):
    success: bool
    execution_id: str
    timestamp: str
    duration: str
    duration_ms: int
    phase: str
    message: str
    statistics: Optional[GenerationStatistics] = None

    # failure only
    error: Optional[str] = None
    missing: Optional[List[str]] = None
    pending_cleanup_ids: Optional[List[str]] = None

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class QuotesBatchRequest(BaseModel):
    language: Optional[str] = None
    count: int = 5
