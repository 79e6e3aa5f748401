"""Leave service layer — submission, lifecycle transitions, partial operations, reads.

Business logic:
  - Submission with conflict check and working-day duration (weekends/holidays excluded)
  - Table-driven transitions (see state_machine) with ownership / role / deadline gates
  - Approval reconciles the attendance ledger day by day (resumable, idempotent)
  - Partial cancellation / modification via the range segmenter (child segments)
  - Read-flag maintenance and monthly request statistics

All gates (legality, role, deadline, conflict) run before the first write.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet.common.actor import Actor
from timesheet.common.audit import create_audit_entry
from timesheet.common.clock import Clock
from timesheet.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    GRANTED_LEAVE_STATUSES,
    Activity,
    HalfDayType,
    LeaveStatus,
    RequestType,
)
from timesheet.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from timesheet.config import settings
from timesheet.employees.service import DirectoryService
from timesheet.holidays.service import CalendarService, CalendarSnapshot
from timesheet.leave.conflicts import (
    conflict_types,
    describe_conflict,
    find_first_conflict,
    slot_label,
)
from timesheet.leave.documents import (
    DocumentStore,
    copy_documents_safely,
    default_document_store,
)
from timesheet.leave.models import LeaveRequest
from timesheet.leave.reconciler import LeaveReconciler, ReconciliationResult
from timesheet.leave.schemas import (
    TYPE_ACTIVITY,
    LeaveChanges,
    LeaveRequestCreate,
    LeaveStatsOut,
    TypeStats,
    is_composite,
    split_composite,
)
from timesheet.leave.segmenter import (
    Segment,
    covers_whole_request,
    group_contiguous,
    normalise_selection,
)
from timesheet.leave.state_machine import (
    DECISION_ACTIONS,
    PRIVILEGED_ACTIONS,
    LeaveAction,
    before_cutoff,
    next_status,
    undo_deadline,
)
from timesheet.notifications.service import (
    notify_request_submitted,
    notify_status_change,
)

logger = logging.getLogger(__name__)

HALF = Decimal("0.5")
ZERO = Decimal("0")

# Admin inbox: requests still waiting on a decision
AWAITING_DECISION = (
    LeaveStatus.pending,
    LeaveStatus.requesting_cancellation,
    LeaveStatus.requesting_modification,
)


@dataclass
class TransitionOutcome:
    request: LeaveRequest
    reconciliation: Optional[ReconciliationResult] = None


def _request_values(request: LeaveRequest) -> dict[str, Any]:
    return {
        "status": request.status,
        "request_type": request.request_type,
        "from_date": request.from_date,
        "to_date": request.to_date,
        "duration": request.duration,
        "first_half": request.first_half,
        "second_half": request.second_half,
        "parent_id": request.parent_id,
    }


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave lifecycle operations."""

    document_store: DocumentStore = default_document_store

    # ─────────────────────────────────────────────────────────────────
    # Pure helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def resolve_halves(
        request_type: str,
        is_half_day: bool,
        half_day_type: Optional[HalfDayType],
        first_half: Optional[str] = None,
        second_half: Optional[str] = None,
    ) -> tuple[str, str]:
        """Both halves of a request: explicit values win, otherwise derive from the type."""
        parts = split_composite(request_type)
        if len(parts) == 2:
            default_first, default_second = TYPE_ACTIVITY[parts[0]], TYPE_ACTIVITY[parts[1]]
        else:
            activity = TYPE_ACTIVITY.get(request_type, request_type)
            if not is_half_day:
                default_first = default_second = activity
            elif half_day_type == HalfDayType.second_half:
                default_first, default_second = Activity.office.value, activity
            else:
                default_first, default_second = activity, Activity.office.value
        return first_half or default_first, second_half or default_second

    @staticmethod
    def compute_duration(
        calendar: CalendarSnapshot,
        from_date: date,
        to_date: date,
        is_half_day: bool,
    ) -> Decimal:
        """Working days in range (weekends and holidays excluded), halved for half-day requests."""
        days = Decimal(calendar.working_days(from_date, to_date))
        return days * HALF if is_half_day else days

    # ─────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _get(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        request = await db.get(LeaveRequest, request_id)
        if request is None:
            raise NotFoundException("LeaveRequest", request_id)
        return request

    @staticmethod
    async def _family_ids(db: AsyncSession, request: LeaveRequest) -> set[uuid.UUID]:
        """The root request and every segment hanging off it."""
        root_id = request.parent_id or request.id
        result = await db.execute(
            select(LeaveRequest.id).where(LeaveRequest.parent_id == root_id)
        )
        return {root_id, request.id, *result.scalars().all()}

    @staticmethod
    async def _check_conflicts(
        db: AsyncSession,
        *,
        employee_id: uuid.UUID,
        request_type: str,
        from_date: date,
        to_date: date,
        is_half_day: bool,
        half_day_type: Optional[HalfDayType],
        first_half: Optional[str] = None,
        second_half: Optional[str] = None,
        exclude_ids: Iterable[uuid.UUID] = (),
    ) -> None:
        """Raise ConflictError on the first active request occupying a wanted slot."""
        query = select(LeaveRequest).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(list(ACTIVE_LEAVE_STATUSES)),
            LeaveRequest.from_date <= to_date,
            LeaveRequest.to_date >= from_date,
            LeaveRequest.request_type.in_(sorted(conflict_types(request_type))),
        )
        excluded = [rid for rid in exclude_ids if rid is not None]
        if excluded:
            query = query.where(LeaveRequest.id.not_in(excluded))
        result = await db.execute(query.order_by(LeaveRequest.from_date))

        candidate = find_first_conflict(
            result.scalars().all(),
            request_type=request_type,
            from_date=from_date,
            to_date=to_date,
            is_half_day=is_half_day,
            half_day_type=half_day_type,
            first_half=first_half,
            second_half=second_half,
        )
        if candidate is not None:
            raise ConflictError(
                detail=describe_conflict(candidate),
                errors={
                    "dates": [
                        f"{candidate.from_date.isoformat()} to {candidate.to_date.isoformat()}"
                    ],
                    "slot": [slot_label(candidate)],
                },
            )

    # ─────────────────────────────────────────────────────────────────
    # Gates
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _authorize(request: LeaveRequest, action: LeaveAction, actor: Actor) -> None:
        if action in PRIVILEGED_ACTIONS:
            if not actor.is_privileged:
                raise ForbiddenException(
                    f"Only a manager or admin can {action.value.replace('_', ' ')}."
                )
        elif not (actor.owns(request.employee_id) or actor.is_privileged):
            raise ForbiddenException("You can only act on your own requests.")

    @staticmethod
    def _require_before(clock: Clock, day: date, what: str) -> None:
        hour = settings.CANCELLATION_CUTOFF_HOUR
        if not before_cutoff(clock.now(), day, hour):
            raise ForbiddenException(
                f"{what} closed at {hour:02d}:00 on {day.isoformat()}."
            )

    # ─────────────────────────────────────────────────────────────────
    # Core transition step
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _apply(
        db: AsyncSession,
        request: LeaveRequest,
        action: LeaveAction,
        actor: Actor,
        clock: Clock,
        remarks: Optional[str] = None,
    ) -> LeaveStatus:
        """Move ``request`` along the table, stamp review fields, audit. Returns the old status."""
        old_values = _request_values(request)
        old_status = request.status
        request.status = next_status(request.status, action)
        if action in DECISION_ACTIONS and actor.is_privileged:
            request.reviewed_by = actor.employee_id
            request.reviewed_at = clock.now()
            if remarks:
                request.reviewer_remarks = remarks
            request.is_read = True
            request.is_read_employee = False
        await db.flush()
        await create_audit_entry(
            db,
            action=action.value,
            entity_type="leave_request",
            entity_id=request.id,
            actor_id=actor.employee_id,
            old_values=old_values,
            new_values=_request_values(request),
        )
        logger.info(
            "Leave request %s: %s → %s (%s by %s)",
            request.id, old_status.value, request.status.value, action.value, actor.employee_id,
        )
        return old_status

    # ═════════════════════════════════════════════════════════════════
    # submit
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def submit(
        db: AsyncSession,
        data: LeaveRequestCreate,
        actor: Actor,
        clock: Clock,
    ) -> LeaveRequest:
        """Create a Pending request after the conflict gate."""
        employee_id = data.employee_id or actor.employee_id
        if employee_id is None:
            raise ValidationException({"employee_id": ["employee_id is required."]})
        if not (actor.owns(employee_id) or actor.is_privileged):
            raise ForbiddenException("You can only submit requests for yourself.")
        await DirectoryService.get_employee(db, employee_id)

        first_half, second_half = LeaveService.resolve_halves(
            data.request_type,
            data.is_half_day,
            data.half_day_type,
            data.first_half,
            data.second_half,
        )

        await LeaveService._check_conflicts(
            db,
            employee_id=employee_id,
            request_type=data.request_type,
            from_date=data.from_date,
            to_date=data.to_date,
            is_half_day=data.is_half_day,
            half_day_type=data.half_day_type,
            first_half=first_half,
            second_half=second_half,
        )

        calendar = await CalendarService.snapshot(db, data.from_date, data.to_date)
        duration = LeaveService.compute_duration(
            calendar, data.from_date, data.to_date, data.is_half_day,
        )
        if duration == ZERO:
            raise ValidationException(
                {"to_date": ["The selected range has no working days (weekends/holidays only)."]}
            )

        request = LeaveRequest(
            employee_id=employee_id,
            request_type=data.request_type,
            from_date=data.from_date,
            to_date=data.to_date,
            title=data.title,
            description=data.description,
            status=LeaveStatus.pending,
            duration=duration,
            first_half=first_half,
            second_half=second_half,
            is_half_day=data.is_half_day,
            half_day_type=data.half_day_type,
            submitted_date=clock.today(),
            is_read=False,
            is_read_employee=True,
        )
        db.add(request)
        await db.flush()

        await create_audit_entry(
            db,
            action="submit",
            entity_type="leave_request",
            entity_id=request.id,
            actor_id=actor.employee_id,
            new_values=_request_values(request),
        )
        manager_id = await DirectoryService.get_manager_id(db, employee_id)
        await notify_request_submitted(db, request, manager_id)
        logger.info(
            "Leave request %s submitted: %s %s..%s (%s day(s))",
            request.id, request.request_type, request.from_date, request.to_date, duration,
        )
        return request

    # ═════════════════════════════════════════════════════════════════
    # transition — single entry point for status changes
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def transition(
        db: AsyncSession,
        request_id: uuid.UUID,
        action: LeaveAction,
        actor: Actor,
        clock: Clock,
        remarks: Optional[str] = None,
    ) -> TransitionOutcome:
        request = await LeaveService._get(db, request_id)
        LeaveService._authorize(request, action, actor)
        # Illegal pairs fail here, before any handler touches the ledger
        next_status(request.status, action)

        if action == LeaveAction.request_modification:
            raise ValidationException(
                {"action": ["Request a modification through modify-dates with the proposed changes."]}
            )

        handler = _HANDLERS[action]
        return await handler(db, request, actor, clock, remarks)

    # ── approve / reject / reconcile ────────────────────────────────

    @staticmethod
    async def _approve(db, request, actor, clock, remarks) -> TransitionOutcome:
        await LeaveService._apply(db, request, LeaveAction.approve, actor, clock, remarks)
        calendar = await CalendarService.snapshot(db, request.from_date, request.to_date)
        result = await LeaveReconciler.reconcile(
            db, request, calendar, actor_id=actor.employee_id,
        )
        await notify_status_change(db, request)
        return TransitionOutcome(request, result)

    @staticmethod
    async def _reject(db, request, actor, clock, remarks) -> TransitionOutcome:
        await LeaveService._apply(db, request, LeaveAction.reject, actor, clock, remarks)
        await LeaveReconciler.release_locks(db, [request.id])
        await notify_status_change(db, request)
        return TransitionOutcome(request)

    @staticmethod
    async def _reconcile(db, request, actor, clock, remarks) -> TransitionOutcome:
        await LeaveService._apply(db, request, LeaveAction.reconcile, actor, clock, remarks)
        calendar = await CalendarService.snapshot(db, request.from_date, request.to_date)
        result = await LeaveReconciler.reconcile(
            db, request, calendar, actor_id=actor.employee_id,
        )
        return TransitionOutcome(request, result)

    @staticmethod
    async def _mark_modified(db, request, actor, clock, remarks) -> TransitionOutcome:
        await LeaveService._apply(db, request, LeaveAction.mark_modified, actor, clock, remarks)
        return TransitionOutcome(request)

    # ── cancel / delete ─────────────────────────────────────────────

    @staticmethod
    async def _cancel(db, request, actor, clock, remarks) -> TransitionOutcome:
        """Direct cancellation; on an Approved request only before 10:00 on its first day."""
        if request.status == LeaveStatus.approved and not actor.is_privileged:
            LeaveService._require_before(clock, request.from_date, "Cancellation")
        old_status = await LeaveService._apply(
            db, request, LeaveAction.cancel, actor, clock, remarks,
        )
        if old_status in GRANTED_LEAVE_STATUSES:
            await LeaveReconciler.release_locks(db, [request.id])
            await LeaveReconciler.wipe_range(
                db, request.employee_id, request.from_date, request.to_date,
            )
        await notify_status_change(db, request)
        return TransitionOutcome(request)

    @staticmethod
    async def _delete(db, request, actor, clock, remarks) -> TransitionOutcome:
        await LeaveService._apply(db, request, LeaveAction.delete, actor, clock, remarks)
        return TransitionOutcome(request)

    @staticmethod
    async def delete_pending(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Actor,
        clock: Clock,
    ) -> LeaveRequest:
        """Withdraw a Pending request (recorded as Cancelled, never removed)."""
        outcome = await LeaveService.transition(
            db, request_id, LeaveAction.delete, actor, clock,
        )
        return outcome.request

    # ── cancellation requests ───────────────────────────────────────

    @staticmethod
    async def _request_cancellation(db, request, actor, clock, remarks) -> TransitionOutcome:
        if request.is_segment:
            raise ValidationException({"id": ["Cancel the original request, not a segment."]})
        LeaveService._require_before(clock, request.from_date, "Cancellation window")
        await LeaveService._apply(
            db, request, LeaveAction.request_cancellation, actor, clock, remarks,
        )
        request.cancellation_requested_on = clock.today()
        await db.flush()
        manager_id = await DirectoryService.get_manager_id(db, request.employee_id)
        await notify_request_submitted(db, request, manager_id)
        return TransitionOutcome(request)

    @staticmethod
    async def cancel_approved_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Actor,
        clock: Clock,
    ) -> LeaveRequest:
        """Ask to cancel a whole Approved request (before 10:00 on its first day)."""
        outcome = await LeaveService.transition(
            db, request_id, LeaveAction.request_cancellation, actor, clock,
        )
        return outcome.request

    @staticmethod
    async def _overlapping_approved(
        db: AsyncSession,
        request: LeaveRequest,
        exclude_ids: Iterable[uuid.UUID],
    ) -> Optional[LeaveRequest]:
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == request.employee_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.from_date <= request.to_date,
                LeaveRequest.to_date >= request.from_date,
                LeaveRequest.id.not_in(list(exclude_ids)),
            )
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def _restore_parent_duration(db: AsyncSession, segment: LeaveRequest) -> None:
        if segment.parent_id is None:
            return
        parent = await LeaveService._get(db, segment.parent_id)
        parent.duration = (parent.duration or ZERO) + (segment.duration or ZERO)
        await db.flush()

    @staticmethod
    async def _approve_cancellation(db, request, actor, clock, remarks) -> TransitionOutcome:
        """Cancellation Approved, or Cancellation Rejected when another grant now overlaps.

        The ledger is left as is; ``clear_attendance`` performs the wipe.
        """
        family = await LeaveService._family_ids(db, request)
        overlapping = await LeaveService._overlapping_approved(db, request, family)
        if overlapping is not None:
            logger.info(
                "Cancellation %s rejected: overlaps approved request %s",
                request.id, overlapping.id,
            )
            await LeaveService._apply(
                db, request, LeaveAction.reject_cancellation, actor, clock,
                remarks or f"Overlaps approved request {overlapping.from_date} to {overlapping.to_date}.",
            )
            if request.is_segment:
                await LeaveService._restore_parent_duration(db, request)
        else:
            await LeaveService._apply(
                db, request, LeaveAction.approve_cancellation, actor, clock, remarks,
            )
        await notify_status_change(db, request)
        return TransitionOutcome(request)

    @staticmethod
    async def _reject_cancellation(db, request, actor, clock, remarks) -> TransitionOutcome:
        if request.is_segment:
            await LeaveService._apply(
                db, request, LeaveAction.reject_cancellation, actor, clock, remarks,
            )
            await LeaveService._restore_parent_duration(db, request)
        else:
            await LeaveService._apply(
                db, request, LeaveAction.revert_cancellation, actor, clock, remarks,
            )
        await notify_status_change(db, request)
        return TransitionOutcome(request)

    @staticmethod
    async def _revert_cancellation(db, request, actor, clock, remarks) -> TransitionOutcome:
        if request.is_segment:
            raise ValidationException({"action": ["Segments are rejected, not reverted."]})
        await LeaveService._apply(
            db, request, LeaveAction.revert_cancellation, actor, clock, remarks,
        )
        await notify_status_change(db, request)
        return TransitionOutcome(request)

    @staticmethod
    async def _restore_master_duration(db: AsyncSession, segment: LeaveRequest) -> None:
        """Give a withdrawn segment's days back to the approved request it was cut from."""
        result = await db.execute(
            select(LeaveRequest).where(
                LeaveRequest.employee_id == segment.employee_id,
                LeaveRequest.request_type == segment.request_type,
                LeaveRequest.status.in_((LeaveStatus.approved, LeaveStatus.request_modified)),
                LeaveRequest.from_date <= segment.to_date,
                LeaveRequest.to_date >= segment.from_date,
                LeaveRequest.id != segment.id,
            )
        )
        masters = result.scalars().all()
        if not masters:
            logger.warning("No approved master found for withdrawn segment %s", segment.id)
            return
        master = next((m for m in masters if m.id == segment.parent_id), masters[0])
        master.duration = (master.duration or ZERO) + (segment.duration or ZERO)
        await db.flush()

    @staticmethod
    async def _withdraw_cancellation(db, request, actor, clock, remarks) -> TransitionOutcome:
        """Employee undo, only before 10:00 on the day after the cancellation was asked for."""
        requested_on = request.cancellation_requested_on or request.submitted_date
        LeaveService._require_before(clock, undo_deadline(requested_on), "Undo window")
        if request.is_segment:
            await LeaveService._apply(
                db, request, LeaveAction.withdraw_cancellation, actor, clock, remarks,
            )
            await LeaveService._restore_master_duration(db, request)
        else:
            await LeaveService._apply(
                db, request, LeaveAction.revert_cancellation, actor, clock, remarks,
            )
        return TransitionOutcome(request)

    @staticmethod
    async def undo_cancellation(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Actor,
        clock: Clock,
    ) -> LeaveRequest:
        outcome = await LeaveService.transition(
            db, request_id, LeaveAction.withdraw_cancellation, actor, clock,
        )
        return outcome.request

    # ── modification decisions ──────────────────────────────────────

    @staticmethod
    async def _approve_modification(db, request, actor, clock, remarks) -> TransitionOutcome:
        changes = request.pending_changes
        if changes:
            for field_name in ("request_type", "first_half", "second_half", "is_half_day", "title", "description"):
                if changes.get(field_name) is not None:
                    setattr(request, field_name, changes[field_name])
            if changes.get("half_day_type") is not None:
                request.half_day_type = HalfDayType(changes["half_day_type"])
            request.pending_changes = None

        calendar = await CalendarService.snapshot(db, request.from_date, request.to_date)
        if changes:
            request.duration = LeaveService.compute_duration(
                calendar, request.from_date, request.to_date, request.is_half_day,
            )
        await LeaveService._apply(
            db, request, LeaveAction.approve_modification, actor, clock, remarks,
        )
        result = await LeaveReconciler.reconcile(
            db, request, calendar, actor_id=actor.employee_id,
        )

        if request.parent_id is not None:
            parent = await LeaveService._get(db, request.parent_id)
            if parent.status in (LeaveStatus.approved, LeaveStatus.request_modified):
                await LeaveService._apply(db, parent, LeaveAction.mark_modified, actor, clock)
        await notify_status_change(db, request)
        return TransitionOutcome(request, result)

    @staticmethod
    async def _release_modification(db: AsyncSession, request: LeaveRequest) -> None:
        if request.is_segment:
            await LeaveReconciler.release_locks(
                db, [request.id, request.parent_id],
                start=request.from_date, end=request.to_date,
            )
        else:
            request.pending_changes = None
            await LeaveReconciler.release_locks(db, [request.id])

    @staticmethod
    async def _reject_modification(db, request, actor, clock, remarks) -> TransitionOutcome:
        await LeaveService._apply(
            db, request, LeaveAction.reject_modification, actor, clock, remarks,
        )
        await LeaveService._release_modification(db, request)
        await notify_status_change(db, request)
        return TransitionOutcome(request)

    @staticmethod
    async def _withdraw_modification(db, request, actor, clock, remarks) -> TransitionOutcome:
        await LeaveService._apply(
            db, request, LeaveAction.withdraw_modification, actor, clock, remarks,
        )
        await LeaveService._release_modification(db, request)
        return TransitionOutcome(request)

    @staticmethod
    async def undo_modification(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Actor,
        clock: Clock,
    ) -> LeaveRequest:
        outcome = await LeaveService.transition(
            db, request_id, LeaveAction.withdraw_modification, actor, clock,
        )
        return outcome.request

    # ═════════════════════════════════════════════════════════════════
    # Partial operations (range segmenter)
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _load_parent_for_split(
        db: AsyncSession,
        request_id: uuid.UUID,
        action: LeaveAction,
        actor: Actor,
    ) -> LeaveRequest:
        parent = await LeaveService._get(db, request_id)
        LeaveService._authorize(parent, action, actor)
        if parent.is_segment:
            raise ValidationException({"id": ["Segments cannot be split further."]})
        next_status(parent.status, action)
        return parent

    @staticmethod
    async def _create_segment(
        db: AsyncSession,
        parent: LeaveRequest,
        segment: Segment,
        *,
        status: LeaveStatus,
        duration: Decimal,
        request_type: str,
        first_half: str,
        second_half: str,
        is_half_day: bool,
        half_day_type: Optional[HalfDayType],
        description: Optional[str],
        actor: Actor,
        clock: Clock,
    ) -> LeaveRequest:
        child = LeaveRequest(
            employee_id=parent.employee_id,
            request_type=request_type,
            from_date=segment.from_date,
            to_date=segment.to_date,
            title=parent.title,
            description=description,
            status=status,
            duration=duration,
            first_half=first_half,
            second_half=second_half,
            is_half_day=is_half_day,
            half_day_type=half_day_type,
            submitted_date=clock.today(),
            parent_id=parent.id,
            cancellation_requested_on=(
                clock.today() if status == LeaveStatus.requesting_cancellation else None
            ),
            is_read=False,
            is_read_employee=True,
        )
        db.add(child)
        await db.flush()
        await create_audit_entry(
            db,
            action="segment",
            entity_type="leave_request",
            entity_id=child.id,
            actor_id=actor.employee_id,
            new_values=_request_values(child),
        )
        await copy_documents_safely(LeaveService.document_store, db, parent.id, child.id)
        return child

    @staticmethod
    async def cancel_dates(
        db: AsyncSession,
        request_id: uuid.UUID,
        dates: Sequence[date],
        actor: Actor,
        clock: Clock,
        reason: Optional[str] = None,
    ) -> list[LeaveRequest]:
        """Cancel selected days of an Approved request.

        Selecting the whole request falls back to a full cancellation request;
        otherwise one "Requesting for Cancellation" segment per contiguous run
        is created and its days are subtracted from the parent's duration.
        """
        parent = await LeaveService._load_parent_for_split(
            db, request_id, LeaveAction.request_cancellation, actor,
        )
        selected = normalise_selection(dates, parent.from_date, parent.to_date)

        if covers_whole_request(selected, parent.from_date, parent.to_date):
            return [await LeaveService.cancel_approved_request(db, parent.id, actor, clock)]

        LeaveService._require_before(clock, selected[0], "Cancellation window")
        segments = group_contiguous(selected)
        family = await LeaveService._family_ids(db, parent)
        for segment in segments:
            await LeaveService._check_conflicts(
                db,
                employee_id=parent.employee_id,
                request_type=parent.request_type,
                from_date=segment.from_date,
                to_date=segment.to_date,
                is_half_day=parent.is_half_day,
                half_day_type=parent.half_day_type,
                first_half=parent.first_half,
                second_half=parent.second_half,
                exclude_ids=family,
            )

        children: list[LeaveRequest] = []
        for segment in segments:
            duration = segment.duration(parent.is_half_day)
            child = await LeaveService._create_segment(
                db,
                parent,
                segment,
                status=LeaveStatus.requesting_cancellation,
                duration=duration,
                request_type=parent.request_type,
                first_half=parent.first_half,
                second_half=parent.second_half,
                is_half_day=parent.is_half_day,
                half_day_type=parent.half_day_type,
                description=reason or parent.description,
                actor=actor,
                clock=clock,
            )
            parent.duration = max(ZERO, (parent.duration or ZERO) - duration)
            children.append(child)
        await db.flush()

        manager_id = await DirectoryService.get_manager_id(db, parent.employee_id)
        for child in children:
            await notify_request_submitted(db, child, manager_id)
        logger.info(
            "Partial cancellation of %s: %d segment(s) for %d day(s)",
            parent.id, len(children), len(selected),
        )
        return children

    @staticmethod
    async def modify_dates(
        db: AsyncSession,
        request_id: uuid.UUID,
        dates: Sequence[date],
        changes: LeaveChanges,
        actor: Actor,
        clock: Clock,
    ) -> list[LeaveRequest]:
        """Propose new type/halves for selected days of a request.

        Selecting the whole request stores the proposal on the request itself
        (``pending_changes``); otherwise one "Requesting for Modification"
        segment per contiguous run carries the new values.
        """
        parent = await LeaveService._load_parent_for_split(
            db, request_id, LeaveAction.request_modification, actor,
        )
        selected = normalise_selection(dates, parent.from_date, parent.to_date)

        request_type = changes.request_type or parent.request_type
        is_half_day = changes.is_half_day if changes.is_half_day is not None else parent.is_half_day
        if request_type == RequestType.half_day.value or is_composite(request_type):
            is_half_day = True
        half_day_type = changes.half_day_type or parent.half_day_type
        first_half, second_half = LeaveService.resolve_halves(
            request_type, is_half_day, half_day_type, changes.first_half, changes.second_half,
        )
        family = await LeaveService._family_ids(db, parent)

        if covers_whole_request(selected, parent.from_date, parent.to_date):
            await LeaveService._check_conflicts(
                db,
                employee_id=parent.employee_id,
                request_type=request_type,
                from_date=parent.from_date,
                to_date=parent.to_date,
                is_half_day=is_half_day,
                half_day_type=half_day_type,
                first_half=first_half,
                second_half=second_half,
                exclude_ids=family,
            )
            parent.pending_changes = {
                "request_type": request_type,
                "first_half": first_half,
                "second_half": second_half,
                "is_half_day": is_half_day,
                "half_day_type": half_day_type.value if half_day_type else None,
                "title": changes.title,
                "description": changes.description,
            }
            await LeaveService._apply(
                db, parent, LeaveAction.request_modification, actor, clock,
            )
            manager_id = await DirectoryService.get_manager_id(db, parent.employee_id)
            await notify_request_submitted(db, parent, manager_id)
            return [parent]

        if parent.status == LeaveStatus.pending:
            raise ValidationException(
                {"dates": ["Only approved requests can be modified for selected dates."]}
            )

        segments = group_contiguous(selected)
        for segment in segments:
            await LeaveService._check_conflicts(
                db,
                employee_id=parent.employee_id,
                request_type=request_type,
                from_date=segment.from_date,
                to_date=segment.to_date,
                is_half_day=is_half_day,
                half_day_type=half_day_type,
                first_half=first_half,
                second_half=second_half,
                exclude_ids=family,
            )

        children: list[LeaveRequest] = []
        for segment in segments:
            child = await LeaveService._create_segment(
                db,
                parent,
                segment,
                status=LeaveStatus.requesting_modification,
                duration=segment.duration(is_half_day),
                request_type=request_type,
                first_half=first_half,
                second_half=second_half,
                is_half_day=is_half_day,
                half_day_type=half_day_type,
                description=changes.description or parent.description,
                actor=actor,
                clock=clock,
            )
            children.append(child)

        manager_id = await DirectoryService.get_manager_id(db, parent.employee_id)
        for child in children:
            await notify_request_submitted(db, child, manager_id)
        logger.info(
            "Partial modification of %s: %d segment(s) for %d day(s)",
            parent.id, len(children), len(selected),
        )
        return children

    # ═════════════════════════════════════════════════════════════════
    # clear attendance
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def clear_attendance(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Actor,
    ) -> int:
        """Wipe the ledger rows tied to a request (or its parent, within the segment's range)."""
        if not actor.is_privileged:
            raise ForbiddenException("Only a manager or admin can clear attendance.")
        request = await LeaveService._get(db, request_id)
        cleared = await LeaveReconciler.clear_attendance(
            db,
            [request.id, request.parent_id],
            start=request.from_date,
            end=request.to_date,
        )
        await create_audit_entry(
            db,
            action="clear_attendance",
            entity_type="leave_request",
            entity_id=request.id,
            actor_id=actor.employee_id,
            new_values={"cleared_days": cleared},
        )
        logger.info("Cleared %d attendance day(s) for request %s", cleared, request.id)
        return cleared

    # ═════════════════════════════════════════════════════════════════
    # Reads
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Actor,
    ) -> LeaveRequest:
        request = await LeaveService._get(db, request_id)
        if not (actor.owns(request.employee_id) or actor.is_privileged):
            raise ForbiddenException("You can only view your own requests.")
        return request

    @staticmethod
    async def get_segments(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Actor,
    ) -> list[LeaveRequest]:
        await LeaveService.get_request(db, request_id, actor)
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(selectinload(LeaveRequest.children))
            .execution_options(populate_existing=True)
        )
        return list(result.scalar_one().children)

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        actor: Actor,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> Sequence[LeaveRequest]:
        if not actor.is_privileged:
            employee_id = actor.employee_id
        query = select(LeaveRequest)
        if employee_id is not None:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if from_date is not None:
            query = query.where(LeaveRequest.to_date >= from_date)
        if to_date is not None:
            query = query.where(LeaveRequest.from_date <= to_date)
        result = await db.execute(
            query.order_by(LeaveRequest.from_date.desc(), LeaveRequest.created_at.desc())
        )
        return result.scalars().all()

    # ── read flags ──────────────────────────────────────────────────

    @staticmethod
    async def list_unread(db: AsyncSession) -> Sequence[LeaveRequest]:
        """Admin inbox: undecided requests not yet opened."""
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.is_read.is_(False),
                LeaveRequest.status.in_(AWAITING_DECISION),
            )
            .order_by(LeaveRequest.created_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def mark_read(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        request = await LeaveService._get(db, request_id)
        request.is_read = True
        await db.flush()
        return request

    @staticmethod
    async def mark_all_read(db: AsyncSession) -> int:
        result = await db.execute(
            update(LeaveRequest)
            .where(LeaveRequest.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()
        return result.rowcount or 0

    @staticmethod
    async def list_employee_updates(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Sequence[LeaveRequest]:
        """Decisions the employee has not seen yet."""
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.is_read_employee.is_(False),
            )
            .order_by(LeaveRequest.reviewed_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def mark_employee_update_read(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Actor,
    ) -> LeaveRequest:
        request = await LeaveService.get_request(db, request_id, actor)
        request.is_read_employee = True
        await db.flush()
        return request

    @staticmethod
    async def mark_all_employee_updates_read(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        result = await db.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.is_read_employee.is_(False),
            )
            .values(is_read_employee=True)
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()
        return result.rowcount or 0

    # ── stats ───────────────────────────────────────────────────────

    @staticmethod
    async def get_stats(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        month: int,
    ) -> LeaveStatsOut:
        """Applied / approved / rejected counts per type for requests submitted in a month."""
        if not 1 <= month <= 12:
            raise ValidationException({"month": ["Month must be between 1 and 12."]})
        start = date(year, month, 1)
        end = date(year + (month == 12), month % 12 + 1, 1) - timedelta(days=1)
        result = await db.execute(
            select(LeaveRequest).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.parent_id.is_(None),
                LeaveRequest.submitted_date >= start,
                LeaveRequest.submitted_date <= end,
            )
        )
        by_type: dict[str, TypeStats] = {t.value: TypeStats() for t in RequestType}
        for request in result.scalars().all():
            stats = by_type.setdefault(request.request_type, TypeStats())
            stats.applied += 1
            if request.status in GRANTED_LEAVE_STATUSES:
                stats.approved += 1
                stats.total += request.duration or ZERO
            elif request.status == LeaveStatus.rejected:
                stats.rejected += 1
        return LeaveStatsOut(employee_id=employee_id, year=year, month=month, by_type=by_type)


_HANDLERS = {
    LeaveAction.approve: LeaveService._approve,
    LeaveAction.reject: LeaveService._reject,
    LeaveAction.cancel: LeaveService._cancel,
    LeaveAction.delete: LeaveService._delete,
    LeaveAction.request_cancellation: LeaveService._request_cancellation,
    LeaveAction.approve_cancellation: LeaveService._approve_cancellation,
    LeaveAction.reject_cancellation: LeaveService._reject_cancellation,
    LeaveAction.revert_cancellation: LeaveService._revert_cancellation,
    LeaveAction.withdraw_cancellation: LeaveService._withdraw_cancellation,
    LeaveAction.approve_modification: LeaveService._approve_modification,
    LeaveAction.reject_modification: LeaveService._reject_modification,
    LeaveAction.withdraw_modification: LeaveService._withdraw_modification,
    LeaveAction.mark_modified: LeaveService._mark_modified,
    LeaveAction.reconcile: LeaveService._reconcile,
}
