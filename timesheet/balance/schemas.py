"""Balance response schemas."""

import uuid
from decimal import Decimal

from pydantic import BaseModel

from timesheet.common.constants import EmploymentType


class BalanceOut(BaseModel):
    """Year view: entitlement accrued so far, year-to-date use, pending requests."""

    employee_id: uuid.UUID
    year: int
    as_of_month: int
    entitlement: Decimal
    used: Decimal
    pending: Decimal
    balance: Decimal
    lop: Decimal


class MonthlyBalanceOut(BaseModel):
    employee_id: uuid.UUID
    year: int
    month: int
    employment_type: EmploymentType
    carry_over: Decimal
    accrual: Decimal
    used: Decimal
    lop: Decimal
    balance: Decimal
