"""Balance endpoints — yearly summary and one month's breakdown."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.balance.schemas import BalanceOut, MonthlyBalanceOut
from timesheet.balance.service import BalanceService
from timesheet.common.actor import Actor, get_actor
from timesheet.common.clock import Clock, get_clock
from timesheet.common.exceptions import ForbiddenException
from timesheet.database import get_db

router = APIRouter(prefix="", tags=["balance"])


def _check_access(actor: Actor, employee_id: uuid.UUID) -> None:
    if not (actor.owns(employee_id) or actor.is_privileged):
        raise ForbiddenException("You can only view your own leave balance.")


# ── GET /{employee_id}/monthly ──────────────────────────────────────

@router.get("/{employee_id}/monthly", response_model=MonthlyBalanceOut)
async def monthly_balance(
    employee_id: uuid.UUID,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Carry-over, accrual, usage, LOP and closing balance for one month."""
    _check_access(actor, employee_id)
    return await BalanceService.get_monthly_balance(db, employee_id, month, year)


# ── GET /{employee_id} ──────────────────────────────────────────────

@router.get("/{employee_id}", response_model=BalanceOut)
async def balance(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    _check_access(actor, employee_id)
    return await BalanceService.get_balance(
        db, employee_id, year or clock.today().year, clock,
    )
