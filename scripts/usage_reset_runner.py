"""Zero monthly usage counters for subscriptions whose billing cycle closed.

Meant to be triggered by cron (at least weekly, see ``--window-days``).
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings
from app.db import SessionLocal, init_db
from app.logger import setup_logging
from app.services.access import ServicePrincipal
from app.services.usage_reset import reset_monthly_usage_counters

logger = logging.getLogger("usage_reset_runner")


def _parse_now(raw: str) -> datetime:
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO timestamp: {raw}") from exc


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reset monthly analysis counters.")
    parser.add_argument("--dry-run", action="store_true", help="Count eligible rows only")
    parser.add_argument(
        "--window-days",
        type=int,
        default=None,
        help="Reset cycles that closed within this many days (default from settings)",
    )
    parser.add_argument("--now", type=_parse_now, default=None, help="Override current time")
    args = parser.parse_args(argv)

    settings = Settings()
    setup_logging(settings.log_level)
    init_db(settings)

    try:
        with SessionLocal() as db:
            rows = reset_monthly_usage_counters(
                db,
                ServicePrincipal(name="usage_reset_runner"),
                now=args.now,
                window_days=args.window_days,
                dry_run=args.dry_run,
            )
    except (SQLAlchemyError, ValueError):
        logger.exception("usage reset run failed")
        return 1

    verb = "eligible" if args.dry_run else "reset"
    print(f"{rows} subscriptions {verb}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
