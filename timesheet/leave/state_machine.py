"""Leave lifecycle state machine — transitions are a lookup on (status, action).

Any pair missing from ``TRANSITIONS`` is illegal and raises a
ValidationException before anything is written. Side effects (attendance
reconciliation, lock release, duration bookkeeping) live in the service;
this module only answers "where does this action lead?" and "who may do it?".
"""

from __future__ import annotations

import enum
from datetime import date, datetime, time, timedelta

from timesheet.common.constants import LeaveStatus
from timesheet.common.exceptions import ValidationException


class LeaveAction(str, enum.Enum):
    approve = "approve"
    reject = "reject"
    cancel = "cancel"
    delete = "delete"
    request_cancellation = "request_cancellation"
    approve_cancellation = "approve_cancellation"
    reject_cancellation = "reject_cancellation"
    revert_cancellation = "revert_cancellation"
    withdraw_cancellation = "withdraw_cancellation"
    request_modification = "request_modification"
    approve_modification = "approve_modification"
    reject_modification = "reject_modification"
    withdraw_modification = "withdraw_modification"
    mark_modified = "mark_modified"
    reconcile = "reconcile"


S = LeaveStatus
A = LeaveAction

TRANSITIONS: dict[tuple[LeaveStatus, LeaveAction], LeaveStatus] = {
    # Pending
    (S.pending, A.approve): S.approved,
    (S.pending, A.reject): S.rejected,
    (S.pending, A.cancel): S.cancelled,
    (S.pending, A.delete): S.cancelled,
    (S.pending, A.request_modification): S.requesting_modification,
    # Approved
    (S.approved, A.cancel): S.cancelled,
    (S.approved, A.request_cancellation): S.requesting_cancellation,
    (S.approved, A.request_modification): S.requesting_modification,
    (S.approved, A.mark_modified): S.request_modified,
    (S.approved, A.reconcile): S.approved,
    # Request Modified (a parent with at least one approved modification segment)
    (S.request_modified, A.request_modification): S.requesting_modification,
    (S.request_modified, A.mark_modified): S.request_modified,
    (S.request_modified, A.reconcile): S.request_modified,
    # Requesting for Cancellation
    (S.requesting_cancellation, A.approve_cancellation): S.cancellation_approved,
    (S.requesting_cancellation, A.reject_cancellation): S.cancellation_rejected,
    (S.requesting_cancellation, A.revert_cancellation): S.approved,
    (S.requesting_cancellation, A.withdraw_cancellation): S.cancelled,
    # Requesting for Modification
    (S.requesting_modification, A.approve_modification): S.modification_approved,
    (S.requesting_modification, A.reject_modification): S.modification_rejected,
    (S.requesting_modification, A.withdraw_modification): S.modification_cancelled,
    # Modification Approved
    (S.modification_approved, A.reconcile): S.modification_approved,
}

TERMINAL_STATUSES = frozenset({
    S.rejected,
    S.cancelled,
    S.cancellation_approved,
    S.cancellation_rejected,
    S.modification_approved,
    S.modification_rejected,
    S.modification_cancelled,
})

# Decisions reserved for managers/admins; everything else is the owner's (or theirs)
PRIVILEGED_ACTIONS = frozenset({
    A.approve,
    A.reject,
    A.approve_cancellation,
    A.reject_cancellation,
    A.revert_cancellation,
    A.approve_modification,
    A.reject_modification,
    A.mark_modified,
    A.reconcile,
})

# Actions an admin decision on; they flip the employee's "unread update" flag
DECISION_ACTIONS = PRIVILEGED_ACTIONS - {A.mark_modified, A.reconcile}


def next_status(current: LeaveStatus, action: LeaveAction) -> LeaveStatus:
    """Target status for ``action`` from ``current``; raises if the pair is illegal."""
    try:
        return TRANSITIONS[(LeaveStatus(current), LeaveAction(action))]
    except KeyError:
        raise ValidationException(
            {"status": [f"Cannot {LeaveAction(action).value.replace('_', ' ')} a request that is '{LeaveStatus(current).value}'."]}
        )


def allowed_actions(current: LeaveStatus) -> list[LeaveAction]:
    return [action for (status, action) in TRANSITIONS if status == current]


def before_cutoff(now: datetime, day: date, hour: int) -> bool:
    """True while ``now`` is earlier than ``hour``:00 local time on ``day``."""
    cutoff = datetime.combine(day, time(hour=hour), tzinfo=now.tzinfo)
    return now < cutoff


def undo_deadline(requested_on: date) -> date:
    """Day on whose cut-off hour a pending cancellation stops being undoable."""
    return requested_on + timedelta(days=1)
