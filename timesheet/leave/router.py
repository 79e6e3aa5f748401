"""Leave router — submit, transition, partial cancel/modify, read flags, stats.

The acting identity comes from forwarded headers (see common.actor); role and
ownership rules are enforced in the service so HTTP and scripted callers share them.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.common.actor import Actor, get_actor, require_role
from timesheet.common.clock import Clock, get_clock
from timesheet.common.constants import LeaveStatus, UserRole
from timesheet.common.rate_limit import limiter
from timesheet.config import settings
from timesheet.database import get_db
from timesheet.leave.schemas import (
    CancelDatesRequest,
    ClearAttendanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveStatsOut,
    ModifyDatesRequest,
    ReconciliationOut,
    TransitionOut,
    TransitionRequest,
)
from timesheet.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
@limiter.limit(settings.RATE_LIMIT_WRITE)
async def submit_request(
    request: Request,
    body: LeaveRequestCreate,
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave / WFH / client-visit / half-day request. Fails with 409 on a slot conflict."""
    return await LeaveService.submit(db, body, actor, clock)


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=list[LeaveRequestOut])
async def list_requests(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Employees see their own requests; managers/admins may filter by employee."""
    return await LeaveService.list_requests(
        db,
        actor,
        employee_id=employee_id,
        status=status,
        from_date=from_date,
        to_date=to_date,
    )


# ── Admin inbox ─────────────────────────────────────────────────────
# Registered before /requests/{request_id} so "unread" is not parsed as a UUID.

@router.get("/requests/unread", response_model=list[LeaveRequestOut])
async def list_unread(
    actor: Actor = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.list_unread(db)


@router.put("/requests/read-all")
async def mark_all_read(
    actor: Actor = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    updated = await LeaveService.mark_all_read(db)
    return {"updated": updated}


# ── Employee updates ────────────────────────────────────────────────

@router.get("/updates", response_model=list[LeaveRequestOut])
async def list_updates(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Decisions on the caller's requests that they have not opened yet."""
    return await LeaveService.list_employee_updates(db, actor.employee_id)


@router.put("/updates/read-all")
async def mark_all_updates_read(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    updated = await LeaveService.mark_all_employee_updates_read(db, actor.employee_id)
    return {"updated": updated}


@router.put("/updates/{request_id}/read", response_model=LeaveRequestOut)
async def mark_update_read(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.mark_employee_update_read(db, request_id, actor)


# ── GET /stats/{employee_id} ────────────────────────────────────────

@router.get("/stats/{employee_id}", response_model=LeaveStatsOut)
async def request_stats(
    employee_id: uuid.UUID,
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Applied / approved / rejected counts per request type for one month."""
    if not (actor.owns(employee_id) or actor.is_privileged):
        employee_id = actor.employee_id
    return await LeaveService.get_stats(db, employee_id, year, month)


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_request(db, request_id, actor)


@router.get("/requests/{request_id}/segments", response_model=list[LeaveRequestOut])
async def get_segments(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Cancellation / modification segments cut from this request."""
    return await LeaveService.get_segments(db, request_id, actor)


@router.put("/requests/{request_id}/read", response_model=LeaveRequestOut)
async def mark_read(
    request_id: uuid.UUID,
    actor: Actor = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.mark_read(db, request_id)


# ── POST /requests/{id}/transitions ─────────────────────────────────

@router.post("/requests/{request_id}/transitions", response_model=TransitionOut)
async def transition_request(
    request_id: uuid.UUID,
    body: TransitionRequest,
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Apply a lifecycle action. Approvals report which days reached the ledger."""
    outcome = await LeaveService.transition(
        db, request_id, body.action, actor, clock, remarks=body.remarks,
    )
    reconciliation = None
    if outcome.reconciliation is not None:
        reconciliation = ReconciliationOut(
            reconciled_dates=outcome.reconciliation.reconciled_dates,
            failed_dates=outcome.reconciliation.failed_dates,
            complete=outcome.reconciliation.complete,
        )
    return TransitionOut(
        request=LeaveRequestOut.model_validate(outcome.request),
        reconciliation=reconciliation,
    )


# ── POST /requests/{id}/cancel-dates ────────────────────────────────

@router.post("/requests/{request_id}/cancel-dates", response_model=list[LeaveRequestOut])
@limiter.limit(settings.RATE_LIMIT_WRITE)
async def cancel_dates(
    request: Request,
    request_id: uuid.UUID,
    body: CancelDatesRequest,
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Cancel selected days; the whole range becomes a full cancellation request."""
    return await LeaveService.cancel_dates(
        db, request_id, body.dates, actor, clock, reason=body.reason,
    )


# ── POST /requests/{id}/modify-dates ────────────────────────────────

@router.post("/requests/{request_id}/modify-dates", response_model=list[LeaveRequestOut])
@limiter.limit(settings.RATE_LIMIT_WRITE)
async def modify_dates(
    request: Request,
    request_id: uuid.UUID,
    body: ModifyDatesRequest,
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.modify_dates(
        db, request_id, body.dates, body.changes, actor, clock,
    )


# ── POST /requests/{id}/clear-attendance ────────────────────────────

@router.post("/requests/{request_id}/clear-attendance", response_model=ClearAttendanceOut)
async def clear_attendance(
    request_id: uuid.UUID,
    actor: Actor = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Wipe the ledger days tied to this request (used after a cancellation is approved)."""
    cleared = await LeaveService.clear_attendance(db, request_id, actor)
    return ClearAttendanceOut(request_id=request_id, cleared_days=cleared)
