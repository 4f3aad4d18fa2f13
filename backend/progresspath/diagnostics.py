# progresspath/diagnostics.py
from __future__ import annotations

from typing import Any, Dict, List

ROW_FIELDS = ("id", "quote", "author", "language", "translation", "day_id", "created_at")
SAMPLE_SIZE = 5


def summarize_quotes(rows: List[Dict[str, Any]], today: str, expected: int) -> Dict[str, Any]:
    """
    Snapshot of the stored quotes for the manual check endpoint.
    Rows outside `today` should not exist after a successful run and are flagged.
    """
    today_rows = [r for r in rows if r.get("day_id") == today]
    other_rows = [r for r in rows if r.get("day_id") != today]

    other_dates: List[str] = []
    for r in other_rows:
        if r.get("day_id") not in other_dates:
            other_dates.append(r.get("day_id"))

    languages: Dict[str, int] = {}
    for r in today_rows:
        lang = r.get("language") or "unknown"
        languages[lang] = languages.get(lang, 0) + 1

    with_translation = sum(1 for r in today_rows if r.get("translation"))
    percentage = f"{with_translation / len(today_rows) * 100:.1f}%" if today_rows else "0%"

    body: Dict[str, Any] = {
        "summary": {
            "today": today,
            "todayQuotesCount": len(today_rows),
            "otherQuotesCount": len(other_rows),
            "totalQuotes": len(rows),
            "datesInDatabase": [today, *other_dates],
            "datesCount": len(other_dates) + 1,
        },
        "statistics": {
            "languageDistribution": languages,
            "translations": {
                "withTranslation": with_translation,
                "withoutTranslation": len(today_rows) - with_translation,
                "percentage": percentage,
            },
        },
        "todayQuotes": [{k: r.get(k) for k in ROW_FIELDS} for r in today_rows],
    }

    if other_rows:
        body["otherQuotes"] = {
            "count": len(other_rows),
            "dates": other_dates,
            "warning": "These quotes should have been deleted by the daily refresh",
            "samples": [
                {"id": r.get("id"), "author": r.get("author"), "day_id": r.get("day_id")}
                for r in other_rows[:SAMPLE_SIZE]
            ],
        }

    complete = len(today_rows) == expected
    body["diagnostics"] = {
        "databaseStatus": "Connected",
        "expectedQuotesPerDay": expected,
        "todayStatus": "Complete" if complete else "Incomplete",
    }
    if not complete:
        body["diagnostics"]["recommendation"] = (
            f"Expected {expected} quotes for today, found {len(today_rows)}. "
            "Consider running the daily refresh manually."
        )

    return body
