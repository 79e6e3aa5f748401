"""Holiday calendar router — list for everyone, maintain for admins."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.common.actor import Actor, get_actor, require_role
from timesheet.common.constants import UserRole
from timesheet.database import get_db
from timesheet.holidays.schemas import HolidayCreate, HolidayOut
from timesheet.holidays.service import CalendarService

router = APIRouter(prefix="", tags=["calendar"])


@router.get("/holidays", response_model=list[HolidayOut])
async def list_holidays(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """List org-wide holidays, optionally for one year."""
    return await CalendarService.list_holidays(db, year=year)


@router.post("/holidays", response_model=HolidayOut, status_code=201)
async def create_holiday(
    body: HolidayCreate,
    actor: Actor = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await CalendarService.create_holiday(db, body)


@router.delete("/holidays/{holiday_id}", status_code=204)
async def delete_holiday(
    holiday_id: uuid.UUID,
    actor: Actor = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await CalendarService.delete_holiday(db, holiday_id)
