"""Leave ORM models: LeaveRequest (with its segment tree) and LeaveDocument."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet.common.constants import HalfDayType, LeaveStatus
from timesheet.database import Base, enum_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("to_date >= from_date", name="ck_leave_request_range"),
        sa.Index("ix_leave_requests_employee_range", "employee_id", "from_date", "to_date"),
        sa.Index("ix_leave_requests_parent", "parent_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    # Leave | Work From Home | Client Visit | Half Day | "A + B"
    request_type: Mapped[str] = mapped_column(sa.String(80), nullable=False)
    from_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    to_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(sa.String(200))
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[LeaveStatus] = mapped_column(
        enum_column(LeaveStatus, "leave_status"),
        default=LeaveStatus.pending,
        nullable=False,
    )
    duration: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), default=Decimal("0"))
    first_half: Mapped[str] = mapped_column(sa.String(30), nullable=False)
    second_half: Mapped[str] = mapped_column(sa.String(30), nullable=False)
    is_half_day: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    half_day_type: Mapped[Optional[HalfDayType]] = mapped_column(
        enum_column(HalfDayType, "half_day_type", length=20)
    )
    submitted_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    # Local date the latest cancellation was asked for; the undo window runs from it
    cancellation_requested_on: Mapped[Optional[date]] = mapped_column(sa.Date)

    # Segment tree: cancellation / modification segments point at their parent
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="RESTRICT"),
        nullable=True,
    )
    # Proposed halves/type for a whole-request modification awaiting review
    pending_changes: Mapped[Optional[dict]] = mapped_column(JSONB)

    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    reviewer_remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_read: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    is_read_employee: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    parent: Mapped[Optional[LeaveRequest]] = relationship(
        remote_side=[id], back_populates="children", lazy="raise",
    )
    children: Mapped[list[LeaveRequest]] = relationship(
        back_populates="parent",
        order_by="LeaveRequest.from_date",
        lazy="raise",
    )
    documents: Mapped[list[LeaveDocument]] = relationship(
        back_populates="request", lazy="raise",
    )

    @property
    def is_segment(self) -> bool:
        return self.parent_id is not None

    @property
    def day_count(self) -> int:
        return (self.to_date - self.from_date).days + 1

    def __repr__(self) -> str:
        return (
            f"<LeaveRequest {self.request_type} {self.from_date}..{self.to_date} "
            f"{self.status.value if self.status else None}>"
        )


class LeaveDocument(Base):
    """Metadata for a stored supporting document; the stored object itself lives elsewhere."""

    __tablename__ = "leave_documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    storage_key: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    file_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    content_type: Mapped[Optional[str]] = mapped_column(sa.String(100))
    uploaded_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )

    request: Mapped[LeaveRequest] = relationship(back_populates="documents", lazy="raise")
