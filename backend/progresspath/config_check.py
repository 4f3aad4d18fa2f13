# progresspath/config_check.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from .settings import Settings

# Logical name -> settings attribute. Order is the order missing keys are reported in.
REQUIRED_KEYS = (
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "GENERATION_SERVICE_KEY",
    "CRON_SECRET",
)

# Read-only checks never call the generation service.
READ_KEYS = ("SUPABASE_URL", "SUPABASE_SERVICE_KEY", "CRON_SECRET")


@dataclass
class ConfigCheck:
    valid: bool
    missing: List[str] = field(default_factory=list)
    message: str = ""


def validate_config(settings: Settings, keys: Sequence[str] = REQUIRED_KEYS) -> ConfigCheck:
    """
    Check that every secret/endpoint the pipeline needs is present.
    Blank values count as missing. Nothing is contacted here.
    """
    missing = [key for key in keys if not (getattr(settings, key, None) or "").strip()]

    if missing:
        print(f"[config] Missing environment variables: {', '.join(missing)}")
        return ConfigCheck(
            valid=False,
            missing=missing,
            message=f"Missing environment variables: {', '.join(missing)}",
        )

    return ConfigCheck(valid=True, message="All required environment variables are present")
