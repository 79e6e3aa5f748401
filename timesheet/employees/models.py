"""Employee directory ORM model — read by the engine, maintained by core HR."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet.common.constants import EmploymentType
from timesheet.database import Base, enum_column


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_code: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    designation: Mapped[Optional[str]] = mapped_column(sa.String(200))
    employment_type: Mapped[Optional[EmploymentType]] = mapped_column(
        enum_column(EmploymentType, "employment_type", length=20)
    )
    joining_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    conversion_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    manager: Mapped[Optional[Employee]] = relationship(
        remote_side=[id], lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Employee {self.employee_code} {self.full_name}>"
