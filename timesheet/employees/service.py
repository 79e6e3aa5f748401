"""Employee directory lookups used by accrual and notification routing."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.common.constants import EmploymentType
from timesheet.common.exceptions import NotFoundException
from timesheet.employees.models import Employee


@dataclass(frozen=True)
class EmploymentFacts:
    """The subset of an employee record the accrual walk depends on."""

    employee_id: uuid.UUID
    employment_type: EmploymentType
    joining_date: Optional[date]
    conversion_date: Optional[date]
    designation: Optional[str] = None


def infer_employment_type(
    employment_type: Optional[EmploymentType],
    designation: Optional[str],
) -> EmploymentType:
    """Explicit type wins; otherwise an "intern" designation means Intern."""
    if employment_type is not None:
        return EmploymentType(employment_type)
    if designation and "intern" in designation.lower():
        return EmploymentType.intern
    return EmploymentType.full_timer


class DirectoryService:
    """Read-only view over the employees table."""

    @staticmethod
    async def get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", employee_id)
        return employee

    @staticmethod
    async def get_employment_facts(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> EmploymentFacts:
        employee = await DirectoryService.get_employee(db, employee_id)
        return EmploymentFacts(
            employee_id=employee.id,
            employment_type=infer_employment_type(
                employee.employment_type, employee.designation,
            ),
            joining_date=employee.joining_date,
            conversion_date=employee.conversion_date,
            designation=employee.designation,
        )

    @staticmethod
    async def get_manager_id(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Optional[uuid.UUID]:
        result = await db.execute(
            select(Employee.manager_id).where(Employee.id == employee_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_active_ids(db: AsyncSession) -> list[uuid.UUID]:
        result = await db.execute(
            select(Employee.id).where(Employee.is_active.is_(True)).order_by(Employee.employee_code)
        )
        return list(result.scalars().all())
