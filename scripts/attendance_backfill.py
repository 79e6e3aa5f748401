#!/usr/bin/env python3
"""Attendance backfill — the nightly ledger jobs, runnable from cron or by hand.

Jobs:
  daily    Weekend rows for today, Holiday / Not Updated for yesterday, and on
           the 1st the Absent sweep over the previous month.
  weekend  Weekend rows for one date (no-op on weekdays).
  missing  Holiday / Not Updated rows for one past weekday.
  absent   Close a month: Not Updated / Pending / NULL days become Absent.
  remind   Notify employees who still have unresolved days this month.

Every job only fills days with no row or a NULL status; recorded days are
never overwritten, so re-running is safe.

Usage:
    python -m scripts.attendance_backfill daily
    python -m scripts.attendance_backfill daily --date 2026-03-01
    python -m scripts.attendance_backfill absent --month 2026-02
    python -m scripts.attendance_backfill missing --date 2026-02-17 --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date, datetime
from pathlib import Path

from dotenv import load_dotenv

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

env_path = PROJECT_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)

from timesheet.attendance.jobs import AttendanceJobs  # noqa: E402
from timesheet.common.clock import Clock  # noqa: E402
from timesheet.config import settings  # noqa: E402
from timesheet.database import async_session_factory, engine  # noqa: E402

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("attendance_backfill")


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got '{value}'")


def _parse_month(value: str) -> tuple[int, int]:
    try:
        parsed = datetime.strptime(value, "%Y-%m")
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM, got '{value}'")
    return parsed.year, parsed.month


# ══════════════════════════════════════════════════════════════════════
# Runner
# ══════════════════════════════════════════════════════════════════════

async def run(job: str, target: date, month: tuple[int, int], dry_run: bool) -> dict[str, int]:
    async with async_session_factory() as session:
        try:
            if job == "daily":
                counts = await AttendanceJobs.run_daily(session, target)
            elif job == "weekend":
                counts = {"weekend": await AttendanceJobs.mark_weekend(session, target)}
            elif job == "missing":
                counts = {"not_updated": await AttendanceJobs.mark_not_updated(session, target)}
            elif job == "absent":
                counts = {"absent": await AttendanceJobs.mark_monthly_absent(session, *month)}
            else:
                counts = {"reminded": await AttendanceJobs.remind_unresolved(session, target)}

            if dry_run:
                logger.info("Dry run — rolling back")
                await session.rollback()
            else:
                await session.commit()
        except Exception:
            await session.rollback()
            raise
    await engine.dispose()
    return counts


# ══════════════════════════════════════════════════════════════════════
# Main
# ══════════════════════════════════════════════════════════════════════

def main():
    parser = argparse.ArgumentParser(
        description="Attendance backfill — weekend, not-updated and month-close jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s daily                          # what the nightly cron runs
  %(prog)s weekend --date 2026-02-21      # one Saturday
  %(prog)s absent --month 2026-01         # close January
  %(prog)s daily --dry-run                # compute counts, write nothing
        """,
    )
    parser.add_argument("job", choices=["daily", "weekend", "missing", "absent", "remind"])
    parser.add_argument("--date", dest="target", type=_parse_date,
                        help="Local date to run for (default: today in TIMEZONE)")
    parser.add_argument("--month", type=_parse_month,
                        help="Month for the absent sweep, YYYY-MM (default: previous month)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Run the job but roll back instead of committing")
    args = parser.parse_args()

    today = Clock().today()
    target = args.target or today
    if args.month:
        month = args.month
    else:
        month = (today.year - 1, 12) if today.month == 1 else (today.year, today.month - 1)

    logger.info("Running '%s' for %s (tz=%s)", args.job, target, settings.TIMEZONE)
    counts = asyncio.run(run(args.job, target, month, args.dry_run))
    for name, updated in counts.items():
        logger.info("  %-12s %d", name, updated)


if __name__ == "__main__":
    main()
