"""Acting identity for engine operations.

Authentication is handled upstream; the gateway forwards the resolved identity
as ``X-Employee-Id`` / ``X-Role`` headers and the engine only enforces
role and ownership rules on top of it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException

from timesheet.common.constants import PRIVILEGED_ROLES, UserRole
from timesheet.common.exceptions import ForbiddenException

# Role hierarchy: each role implicitly includes lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.admin: {UserRole.admin, UserRole.manager, UserRole.employee},
    UserRole.manager: {UserRole.manager, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation. ``employee_id`` is None for system jobs."""

    employee_id: Optional[uuid.UUID]
    role: UserRole = UserRole.employee

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    def owns(self, employee_id: uuid.UUID) -> bool:
        return self.employee_id is not None and self.employee_id == employee_id

    @classmethod
    def system(cls) -> "Actor":
        return cls(employee_id=None, role=UserRole.admin)


# ── Header dependency ───────────────────────────────────────────────

async def get_actor(
    x_employee_id: Optional[str] = Header(None),
    x_role: Optional[str] = Header(None),
) -> Actor:
    """Resolve the acting identity from forwarded headers."""
    if not x_employee_id:
        raise HTTPException(status_code=401, detail="Missing X-Employee-Id header.")
    try:
        employee_id = uuid.UUID(x_employee_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-Employee-Id header.")
    try:
        role = UserRole(x_role) if x_role else UserRole.employee
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role '{x_role}'.")
    return Actor(employee_id=employee_id, role=role)


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. admin can access manager endpoints.
    """

    async def _check(actor: Actor = Depends(get_actor)) -> Actor:
        effective_roles = _ROLE_HIERARCHY.get(actor.role, {actor.role})
        if not effective_roles.intersection(set(allowed_roles)):
            raise ForbiddenException(
                detail=f"Role '{actor.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return actor

    return _check
