"""HTTP surface tests — identity headers, RFC 7807 errors, and the main flows end to end.

Seed data is committed before any request so the app's own sessions see it.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy import select

from timesheet.attendance.models import AttendanceRecord
from timesheet.common.constants import UserRole
from tests.conftest import TestSessionFactory, _headers

LEAVE = "/api/v1/leave"


def _leave_body(**overrides) -> dict:
    body = {
        "request_type": "Leave",
        "from_date": "2025-06-10",
        "to_date": "2025-06-13",
        "title": "Family trip",
    }
    body.update(overrides)
    return body


async def _submit(client: AsyncClient, employee, **overrides) -> dict:
    resp = await client.post(
        f"{LEAVE}/requests", json=_leave_body(**overrides), headers=_headers(employee.id),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _approve(client: AsyncClient, request_id: str, manager) -> dict:
    resp = await client.post(
        f"{LEAVE}/requests/{request_id}/transitions",
        json={"action": "approve"},
        headers=_headers(manager.id, UserRole.manager),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


# ═════════════════════════════════════════════════════════════════════
# 1. System and identity
# ═════════════════════════════════════════════════════════════════════


class TestIdentity:

    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    async def test_missing_identity_is_401(self, client):
        resp = await client.get(f"{LEAVE}/requests")
        assert resp.status_code == 401

    async def test_malformed_identity_is_401(self, client):
        resp = await client.get(
            f"{LEAVE}/requests", headers={"X-Employee-Id": "not-a-uuid"},
        )
        assert resp.status_code == 401

    async def test_unknown_role_is_401(self, client):
        resp = await client.get(
            f"{LEAVE}/requests",
            headers={"X-Employee-Id": str(uuid.uuid4()), "X-Role": "superuser"},
        )
        assert resp.status_code == 401

    async def test_manager_only_endpoint(self, client, db, employee):
        await db.commit()
        resp = await client.get(f"{LEAVE}/requests/unread", headers=_headers(employee.id))
        assert resp.status_code == 403
        assert resp.headers["content-type"].startswith("application/problem+json")

    async def test_admin_passes_manager_check(self, client, db, employee):
        await db.commit()
        resp = await client.get(
            f"{LEAVE}/requests/unread", headers=_headers(employee.id, UserRole.admin),
        )
        assert resp.status_code == 200


# ═════════════════════════════════════════════════════════════════════
# 2. Leave endpoints
# ═════════════════════════════════════════════════════════════════════


class TestLeaveApi:

    async def test_submit_and_fetch(self, client, db, employee):
        await db.commit()
        created = await _submit(client, employee)
        assert created["status"] == "Pending"
        assert Decimal(str(created["duration"])) == Decimal("4")
        assert created["first_half"] == "Leave"

        resp = await client.get(f"{LEAVE}/requests/{created['id']}", headers=_headers(employee.id))
        assert resp.status_code == 200
        assert resp.json()["title"] == "Family trip"

    async def test_conflict_is_409_problem(self, client, db, employee):
        await db.commit()
        await _submit(client, employee)
        resp = await client.post(
            f"{LEAVE}/requests",
            json=_leave_body(from_date="2025-06-12", to_date="2025-06-12"),
            headers=_headers(employee.id),
        )
        assert resp.status_code == 409
        body = resp.json()
        assert body["status"] == 409
        assert body["title"] == "Conflict"
        assert body["errors"]["slot"] == ["Full Day"]
        assert body["instance"] == f"{LEAVE}/requests"

    async def test_schema_validation_is_422(self, client, db, employee):
        await db.commit()
        resp = await client.post(
            f"{LEAVE}/requests",
            json=_leave_body(from_date="2025-06-13", to_date="2025-06-10"),
            headers=_headers(employee.id),
        )
        assert resp.status_code == 422
        assert resp.json()["type"].endswith("/validation-error")

    async def test_unknown_request_type_is_422(self, client, db, employee):
        await db.commit()
        resp = await client.post(
            f"{LEAVE}/requests",
            json=_leave_body(request_type="Sabbatical"),
            headers=_headers(employee.id),
        )
        assert resp.status_code == 422

    async def test_employee_cannot_approve(self, client, db, employee):
        await db.commit()
        created = await _submit(client, employee)
        resp = await client.post(
            f"{LEAVE}/requests/{created['id']}/transitions",
            json={"action": "approve"},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 403

    async def test_approve_reports_reconciliation(self, client, db, employee, manager):
        await db.commit()
        created = await _submit(client, employee)
        body = await _approve(client, created["id"], manager)

        assert body["request"]["status"] == "Approved"
        assert body["reconciliation"]["complete"] is True
        assert body["reconciliation"]["reconciled_dates"] == [
            "2025-06-10", "2025-06-11", "2025-06-12", "2025-06-13",
        ]

        async with TestSessionFactory() as session:
            result = await session.execute(
                select(AttendanceRecord).where(AttendanceRecord.employee_id == employee.id)
            )
            records = result.scalars().all()
        assert len(records) == 4
        assert {str(r.source_request_id) for r in records} == {created["id"]}

    async def test_illegal_transition_is_422(self, client, db, employee, manager):
        await db.commit()
        created = await _submit(client, employee)
        await _approve(client, created["id"], manager)
        resp = await client.post(
            f"{LEAVE}/requests/{created['id']}/transitions",
            json={"action": "approve"},
            headers=_headers(manager.id, UserRole.manager),
        )
        assert resp.status_code == 422
        assert "status" in resp.json()["errors"]

    async def test_unknown_request_is_404(self, client, db, manager):
        await db.commit()
        resp = await client.get(
            f"{LEAVE}/requests/{uuid.uuid4()}", headers=_headers(manager.id, UserRole.manager),
        )
        assert resp.status_code == 404

    async def test_cancel_dates_and_segments(self, client, db, employee, manager):
        await db.commit()
        created = await _submit(client, employee, from_date="2025-06-16", to_date="2025-06-20")
        await _approve(client, created["id"], manager)

        resp = await client.post(
            f"{LEAVE}/requests/{created['id']}/cancel-dates",
            json={"dates": ["2025-06-17", "2025-06-19"]},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 200, resp.text
        segments = resp.json()
        assert [s["status"] for s in segments] == ["Requesting for Cancellation"] * 2
        assert {s["parent_id"] for s in segments} == {created["id"]}

        resp = await client.get(
            f"{LEAVE}/requests/{created['id']}/segments", headers=_headers(employee.id),
        )
        assert len(resp.json()) == 2

        resp = await client.get(f"{LEAVE}/requests/{created['id']}", headers=_headers(employee.id))
        assert Decimal(str(resp.json()["duration"])) == Decimal("3")

    async def test_modify_dates(self, client, db, employee, manager):
        await db.commit()
        created = await _submit(client, employee, from_date="2025-06-16", to_date="2025-06-20")
        await _approve(client, created["id"], manager)

        resp = await client.post(
            f"{LEAVE}/requests/{created['id']}/modify-dates",
            json={"dates": ["2025-06-18"], "changes": {"request_type": "Work From Home"}},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 200, resp.text
        [segment] = resp.json()
        assert segment["status"] == "Requesting for Modification"
        assert segment["request_type"] == "Work From Home"

    async def test_modify_requires_a_change(self, client, db, employee):
        await db.commit()
        created = await _submit(client, employee)
        resp = await client.post(
            f"{LEAVE}/requests/{created['id']}/modify-dates",
            json={"dates": ["2025-06-10"], "changes": {}},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 422

    async def test_clear_attendance(self, client, db, employee, manager):
        await db.commit()
        created = await _submit(client, employee)
        await _approve(client, created["id"], manager)

        resp = await client.post(
            f"{LEAVE}/requests/{created['id']}/clear-attendance", headers=_headers(employee.id),
        )
        assert resp.status_code == 403

        resp = await client.post(
            f"{LEAVE}/requests/{created['id']}/clear-attendance",
            headers=_headers(manager.id, UserRole.manager),
        )
        assert resp.status_code == 200
        assert resp.json() == {"request_id": created["id"], "cleared_days": 4}

    async def test_read_flags(self, client, db, employee, manager):
        await db.commit()
        created = await _submit(client, employee)
        manager_headers = _headers(manager.id, UserRole.manager)

        resp = await client.get(f"{LEAVE}/requests/unread", headers=manager_headers)
        assert [r["id"] for r in resp.json()] == [created["id"]]

        resp = await client.put(f"{LEAVE}/requests/{created['id']}/read", headers=manager_headers)
        assert resp.json()["is_read"] is True

        await _approve(client, created["id"], manager)
        resp = await client.get(f"{LEAVE}/updates", headers=_headers(employee.id))
        assert [r["id"] for r in resp.json()] == [created["id"]]

        resp = await client.put(f"{LEAVE}/updates/read-all", headers=_headers(employee.id))
        assert resp.json() == {"updated": 1}

    async def test_stats(self, client, db, employee):
        await db.commit()
        await _submit(client, employee)
        resp = await client.get(
            f"{LEAVE}/stats/{employee.id}", params={"year": 2025, "month": 6},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 200
        assert resp.json()["by_type"]["Leave"]["applied"] == 1


# ═════════════════════════════════════════════════════════════════════
# 3. Attendance, balance, calendar
# ═════════════════════════════════════════════════════════════════════


class TestAttendanceApi:

    async def test_record_and_list_month(self, client, db, employee):
        await db.commit()
        resp = await client.put(
            f"/api/v1/attendance/{employee.id}/2025-06-09",
            json={"first_half": "Office", "second_half": "WFH"},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "Full Day"

        resp = await client.get(
            f"/api/v1/attendance/{employee.id}/monthly",
            params={"year": 2025, "month": 6},
            headers=_headers(employee.id),
        )
        assert [r["working_date"] for r in resp.json()] == ["2025-06-09"]

    async def test_other_employees_ledger_forbidden(self, client, db, employee, manager):
        await db.commit()
        resp = await client.get(
            f"/api/v1/attendance/{manager.id}/monthly",
            params={"year": 2025, "month": 6},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 403

    async def test_locked_month_is_403(self, client, db, employee):
        await db.commit()
        resp = await client.put(
            f"/api/v1/attendance/{employee.id}/2025-04-30",
            json={"total_hours": 9},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 403

    async def test_blocker_lifecycle(self, client, db, employee, manager):
        await db.commit()
        manager_headers = _headers(manager.id, UserRole.manager)
        resp = await client.post(
            "/api/v1/attendance/blockers",
            json={
                "employee_id": str(employee.id),
                "blocked_from": "2025-06-01",
                "blocked_to": "2025-06-30",
                "reason": "Payroll close",
            },
            headers=manager_headers,
        )
        assert resp.status_code == 201
        blocker_id = resp.json()["id"]

        resp = await client.put(
            f"/api/v1/attendance/{employee.id}/2025-06-09",
            json={"total_hours": 9},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 403

        resp = await client.delete(f"/api/v1/attendance/blockers/{blocker_id}", headers=manager_headers)
        assert resp.status_code == 204

    async def test_backfill_is_admin_only(self, client, db, employee, manager):
        await db.commit()
        resp = await client.post(
            "/api/v1/attendance/backfill/daily", params={"day": "2025-06-14"},
            headers=_headers(manager.id, UserRole.manager),
        )
        assert resp.status_code == 403

        resp = await client.post(
            "/api/v1/attendance/backfill/daily", params={"day": "2025-06-14"},
            headers=_headers(manager.id, UserRole.admin),
        )
        assert resp.status_code == 200
        by_job = {r["job"]: r["updated"] for r in resp.json()}
        assert by_job["weekend"] == 2


class TestBalanceApi:

    async def test_own_balance(self, client, db, employee):
        await db.commit()
        resp = await client.get(f"/api/v1/balance/{employee.id}", headers=_headers(employee.id))
        assert resp.status_code == 200
        body = resp.json()
        assert body["year"] == 2025
        assert body["as_of_month"] == 6
        assert Decimal(str(body["balance"])) == Decimal("27")

    async def test_monthly_balance(self, client, db, employee):
        await db.commit()
        resp = await client.get(
            f"/api/v1/balance/{employee.id}/monthly",
            params={"month": 1, "year": 2024},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 200
        assert resp.json()["employment_type"] == "FullTimer"
        assert Decimal(str(resp.json()["accrual"])) == Decimal("1.5")

    async def test_other_balance_forbidden(self, client, db, employee, manager):
        await db.commit()
        resp = await client.get(f"/api/v1/balance/{manager.id}", headers=_headers(employee.id))
        assert resp.status_code == 403


class TestCalendarApi:

    async def test_holiday_crud(self, client, db, employee):
        await db.commit()
        admin = _headers(employee.id, UserRole.admin)
        resp = await client.post(
            "/api/v1/calendar/holidays",
            json={"date": "2025-08-15", "name": "Independence Day"},
            headers=admin,
        )
        assert resp.status_code == 201
        holiday_id = resp.json()["id"]

        resp = await client.post(
            "/api/v1/calendar/holidays",
            json={"date": "2025-08-15", "name": "Duplicate"},
            headers=admin,
        )
        assert resp.status_code == 409

        resp = await client.get(
            "/api/v1/calendar/holidays", params={"year": 2025}, headers=_headers(employee.id),
        )
        assert [h["name"] for h in resp.json()] == ["Independence Day"]

        resp = await client.delete(f"/api/v1/calendar/holidays/{holiday_id}", headers=admin)
        assert resp.status_code == 204

    async def test_employee_cannot_add_holiday(self, client, db, employee):
        await db.commit()
        resp = await client.post(
            "/api/v1/calendar/holidays",
            json={"date": "2025-08-15", "name": "Independence Day"},
            headers=_headers(employee.id),
        )
        assert resp.status_code == 403
