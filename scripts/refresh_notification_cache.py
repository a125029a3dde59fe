from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date
from typing import Any, Dict, Optional

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(SCRIPT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


def load_env_file(env_path: str) -> None:
    if not os.path.exists(env_path):
        return
    with open(env_path, "r", encoding="utf-8") as env_file:
        for line in env_file:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Recompute revenue segments, at-risk renewals, duplicate estimates and neglected "
            "accounts, then write the notification cache."
        )
    )
    parser.add_argument(
        "--year",
        type=int,
        default=None,
        help="Target revenue year (default: current year).",
    )
    parser.add_argument(
        "--as-of",
        default=None,
        help="Evaluate renewals and interactions as of this ISO date (default: today).",
    )
    parser.add_argument(
        "--env-file",
        default=os.path.join(PROJECT_ROOT, ".env"),
        help="Path to .env file.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and print the summary without writing segments, caches or duplicate groups.",
    )
    return parser.parse_args()


def run_refresh(target_year: Optional[int], as_of: Optional[date], dry_run: bool) -> Dict[str, Any]:
    from src.api.dependencies import get_revenue_risk_service
    from src.core.config import get_settings
    from src.core.logging import configure_logging

    configure_logging(get_settings().log_level)
    service = get_revenue_risk_service()
    result = service.refresh(target_year=target_year, today=as_of, dry_run=dry_run)
    return result.model_dump(mode="json", by_alias=True)


def main() -> None:
    args = parse_args()
    load_env_file(os.path.abspath(args.env_file))
    if not os.environ.get("SUPABASE_URL"):
        raise RuntimeError("SUPABASE_URL must be set in the environment or .env")
    as_of = date.fromisoformat(args.as_of) if args.as_of else None
    result = run_refresh(target_year=args.year, as_of=as_of, dry_run=args.dry_run)
    print(json.dumps(result, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
