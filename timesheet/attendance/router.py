"""Attendance router — day entries, monthly ledger, timesheet blockers, backfills.

Path order matters: the static /blockers and /backfill routes are registered
before /{employee_id}/... so their segments are not parsed as UUIDs.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.attendance.jobs import AttendanceJobs
from timesheet.attendance.schemas import (
    AttendanceEntry,
    AttendanceRecordOut,
    BackfillResult,
    BlockerCreate,
    BlockerOut,
)
from timesheet.attendance.service import AttendanceService, BlockerService
from timesheet.common.actor import Actor, get_actor, require_role
from timesheet.common.clock import Clock, get_clock
from timesheet.common.constants import UserRole
from timesheet.common.exceptions import ForbiddenException
from timesheet.common.rate_limit import limiter
from timesheet.config import settings
from timesheet.database import get_db

router = APIRouter(prefix="", tags=["attendance"])


# ── Timesheet blockers (manager/admin) ──────────────────────────────

@router.post("/blockers", response_model=BlockerOut, status_code=201)
async def create_blocker(
    body: BlockerCreate,
    actor: Actor = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Lock an employee's timesheet for a date range."""
    return await BlockerService.create_blocker(db, body, actor)


@router.get("/blockers", response_model=list[BlockerOut])
async def list_blockers(
    employee_id: uuid.UUID = Query(...),
    actor: Actor = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    return await BlockerService.list_blockers(db, employee_id)


@router.delete("/blockers/{blocker_id}", status_code=204)
async def delete_blocker(
    blocker_id: uuid.UUID,
    actor: Actor = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    await BlockerService.delete_blocker(db, blocker_id)


# ── Backfills (admin) ───────────────────────────────────────────────

@router.post("/backfill/daily", response_model=list[BackfillResult])
async def run_daily_backfill(
    day: Optional[date] = Query(None, description="Local date to run for; defaults to today"),
    actor: Actor = Depends(require_role(UserRole.admin)),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Run the nightly jobs on demand (weekend, not-updated, month-close sweep on the 1st)."""
    target = day or clock.today()
    counts = await AttendanceJobs.run_daily(db, target)
    return [
        BackfillResult(job=job, target=target.isoformat(), updated=updated)
        for job, updated in counts.items()
    ]


@router.post("/backfill/absent", response_model=BackfillResult)
async def run_absent_sweep(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    actor: Actor = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    updated = await AttendanceJobs.mark_monthly_absent(db, year, month)
    return BackfillResult(job="absent", target=f"{year:04d}-{month:02d}", updated=updated)


# ── GET /{employee_id}/monthly ──────────────────────────────────────

@router.get("/{employee_id}/monthly", response_model=list[AttendanceRecordOut])
async def monthly_records(
    employee_id: uuid.UUID,
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """One employee's ledger for a month, ordered by day."""
    if not (actor.owns(employee_id) or actor.is_privileged):
        raise ForbiddenException("You can only view your own attendance.")
    return await AttendanceService.get_monthly_records(db, employee_id, year, month)


# ── PUT /{employee_id}/{working_date} ───────────────────────────────

@router.put("/{employee_id}/{working_date}", response_model=AttendanceRecordOut)
@limiter.limit(settings.RATE_LIMIT_WRITE)
async def record_attendance(
    request: Request,
    employee_id: uuid.UUID,
    working_date: date,
    body: AttendanceEntry,
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Write one day. Lower-priority writes return the existing record unchanged."""
    return await AttendanceService.record_attendance(
        db, employee_id, working_date, body, actor, clock,
    )
