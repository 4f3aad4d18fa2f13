# progresspath/llm_client.py
from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Dict, List, Optional

import anthropic
from anthropic import Anthropic

from .errors import GenerationError, ValidationError
from .schemas import ContentItem, requires_translation
from .settings import Settings

# Soft hint for the prompt; never verified on the way back.
LANGUAGE_MIX = {
    "en": ("English", 60),
    "zh": ("Chinese", 15),
    "fr": ("French", 15),
    "other": ("other languages (es, de, it, ja, ...)", 10),
}


# =========================
# Client init (lazy, one per key)
# =========================
_claude: Optional[Anthropic] = None
_claude_key: str = ""


def _get_claude(api_key: str) -> Anthropic:
    global _claude, _claude_key
    if _claude is None or _claude_key != api_key:
        # retries belong to generation.generate_with_retry, not to the SDK
        _claude = Anthropic(api_key=api_key, max_retries=0)
        _claude_key = api_key
    return _claude


# =========================
# Helpers
# =========================
def _strip_json_fences(s: str) -> str:
    """Remove markdown code fences (```json ... ```) around a JSON payload."""
    if not s:
        return ""

    s = s.strip()
    s = re.sub(r"^```\s*(?:json)?\s*\n?", "", s, flags=re.IGNORECASE | re.MULTILINE)
    s = re.sub(r"\n?\s*```\s*$", "", s, flags=re.MULTILINE)
    return s.strip()


def _extract_json_array(text: str) -> Optional[List[Any]]:
    """
    Extract the first top-level JSON array from arbitrary text.
    Handles code fences and chatter around the array. Returns list or None.
    """
    if not text:
        return None

    s = _strip_json_fences(text)

    # Fast path
    if s.startswith("[") and s.endswith("]"):
        try:
            data = json.loads(s)
            return data if isinstance(data, list) else None
        except ValueError:
            pass

    # Bracket matching
    start = s.find("[")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for i, ch in enumerate(s[start:], start):
        if escape:
            escape = False
            continue
        if ch == "\\" and in_string:
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                try:
                    data = json.loads(s[start : i + 1])
                except ValueError:
                    return None
                return data if isinstance(data, list) else None

    return None


def _system_prompt(count: int) -> str:
    mix = ", ".join(f"~{pct}% {name}" for name, pct in LANGUAGE_MIX.values())
    return (
        f"You are a multilingual motivational quote generator. Generate exactly {count} unique, "
        "inspiring quotes about learning, growth, perseverance, success, and personal development.\n"
        "Only use real quotes from real, verifiable people.\n\n"
        "CRITICAL REQUIREMENTS:\n"
        "- Return ONLY a valid JSON array. No markdown, no code blocks, no additional text.\n"
        "- Keep quotes short to medium length (under 30 words).\n"
        "- Each object MUST have exactly these fields:\n"
        '  * "quote": the quote in its original language\n'
        '  * "author": the author\'s name\n'
        '  * "language": ISO 639-1 code (en, zh, fr, es, ...)\n'
        '  * "translation": English translation, or null if the quote is already in English or Chinese\n\n'
        f"Language mix: {mix}."
    )


def _validate_item(raw: Any, index: int, default_language: str) -> ContentItem:
    if not isinstance(raw, dict):
        raise ValidationError(f"Quote {index + 1} is not an object")

    text = str(raw.get("quote") or "").strip()
    author = str(raw.get("author") or "").strip()
    if not text or not author:
        raise ValidationError(f"Quote {index + 1} missing required fields")

    # null is fine, a missing key is not
    if "translation" not in raw:
        raise ValidationError(f"Quote {index + 1} missing translation field")

    language = str(raw.get("language") or "").strip().lower() or default_language
    translation = raw.get("translation")
    translation = str(translation).strip() if translation is not None else ""

    if requires_translation(language):
        if not translation:
            raise ValidationError(f"Quote {index + 1} ({language}) requires a translation")
    else:
        translation = ""

    return ContentItem(
        text=text,
        attribution=author,
        language_code=language,
        translation=translation or None,
    )


def parse_quote_items(text: str, count: int, default_language: str = "en") -> List[ContentItem]:
    """Turn a raw generator reply into exactly `count` validated items."""
    data = _extract_json_array(text)
    if data is None:
        print(f"[llm] Could not parse JSON array, snippet: {(text or '')[:200]!r}")
        raise ValidationError("Failed to parse JSON array from generator response")

    if len(data) < count:
        raise ValidationError(f"Expected {count} quotes, got {len(data)}")

    # extras are dropped unvalidated
    return [_validate_item(raw, i, default_language) for i, raw in enumerate(data[:count])]


# =========================
# Single request
# =========================
async def generate_quote_batch(count: int, settings: Settings) -> List[ContentItem]:
    """
    One Messages API request for `count` quotes. No retries here.
    Raises GenerationError (transport/status) or ValidationError (payload).
    """
    if count < 1:
        raise ValueError("count must be positive")

    api_key = (settings.GENERATION_SERVICE_KEY or "").strip()
    if not api_key:
        raise GenerationError("Generation service key not configured")

    claude = _get_claude(api_key)
    messages: List[Dict[str, str]] = [
        {
            "role": "user",
            "content": f"Generate exactly {count} motivational quotes in valid JSON array format. "
            "Return ONLY the JSON array, no other text.",
        }
    ]

    def _call() -> str:
        resp = claude.messages.create(
            model=settings.CLAUDE_MODEL,
            system=_system_prompt(count),
            messages=messages,
            max_tokens=count * settings.GENERATION_MAX_TOKENS_PER_ITEM,
            temperature=settings.GENERATION_TEMPERATURE,
            timeout=settings.GENERATION_TIMEOUT_MS / 1000,
        )
        if resp.content and len(resp.content) > 0:
            return getattr(resp.content[0], "text", "") or ""
        return ""

    try:
        text = await asyncio.to_thread(_call)
    except anthropic.APIStatusError as e:
        raise GenerationError(f"Anthropic API error {e.status_code}: {e.message}") from e
    except anthropic.APIError as e:
        raise GenerationError(f"Anthropic API error: {e.message}") from e

    if not text.strip():
        raise ValidationError("No content received from generation service")

    print(f"[llm] Response for {count} quotes ({len(text)} chars, model={settings.CLAUDE_MODEL})")
    return parse_quote_items(text, count, default_language=settings.DEFAULT_LANGUAGE)
