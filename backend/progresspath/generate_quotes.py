# progresspath/generate_quotes.py
"""
One-shot daily quotes refresh from the command line.

    progresspath-generate-quotes
    python -m progresspath.generate_quotes

Exit code 0 on success, 1 on failure. The run is trusted (no bearer secret).
"""
from __future__ import annotations

import asyncio
import sys

from .pipeline import run_daily_quotes


def main() -> int:
    print("=" * 80)
    print("[generate_quotes] DAILY QUOTES GENERATOR STARTED")
    print("=" * 80)

    report = asyncio.run(run_daily_quotes(trusted=True))

    print("=" * 80)
    if report.success:
        print(f"[generate_quotes] COMPLETED SUCCESSFULLY in {report.duration}")
    else:
        print(f"[generate_quotes] FAILED in {report.duration} at {report.phase}: {report.message}")
    print("=" * 80)
    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
