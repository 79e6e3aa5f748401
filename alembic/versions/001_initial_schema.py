"""001 – Initial schema: directory, calendar, ledger, leave requests, notifications, audit.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-16 10:00:00.000000+05:30
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Enums are stored as VARCHAR holding the member value, guarded by CHECKs
CHECKED_VALUES: dict[str, list[str]] = {
    "employment_type": ["Intern", "FullTimer"],
    "leave_status": [
        "Pending",
        "Approved",
        "Rejected",
        "Cancelled",
        "Requesting for Cancellation",
        "Requesting for Modification",
        "Cancellation Approved",
        "Cancellation Rejected",
        "Modification Approved",
        "Modification Rejected",
        "Modification Cancelled",
        "Request Modified",
    ],
    "half_day_type": ["first_half", "second_half"],
    "attendance_status": [
        "Full Day",
        "Half Day",
        "Leave",
        "Pending",
        "Not Updated",
        "Weekend",
        "Holiday",
        "Absent",
    ],
    "work_location": ["WFH", "Client Visit"],
    "notification_type": ["info", "action_required", "approval", "reminder", "alert"],
}


def _check(column: str, kind: str) -> str:
    vals = ", ".join("'" + v.replace("'", "''") + "'" for v in CHECKED_VALUES[kind])
    return f"CHECK ({column} IS NULL OR {column} IN ({vals}))"


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE employees (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code    VARCHAR(20)  NOT NULL UNIQUE,
            full_name        VARCHAR(200) NOT NULL,
            email            VARCHAR(255) NOT NULL UNIQUE,
            designation      VARCHAR(200),
            employment_type  VARCHAR(20) {_check("employment_type", "employment_type")},
            joining_date     DATE,
            conversion_date  DATE,
            manager_id       UUID REFERENCES employees(id),
            is_active        BOOLEAN DEFAULT TRUE,
            created_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.create_index("ix_employees_manager", "employees", ["manager_id"])

    # ── 2. holidays ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE holidays (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            date         DATE NOT NULL UNIQUE,
            name         VARCHAR(200) NOT NULL,
            description  TEXT,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 3. leave_requests ─────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE leave_requests (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       UUID NOT NULL REFERENCES employees(id),
            request_type      VARCHAR(80) NOT NULL,
            from_date         DATE NOT NULL,
            to_date           DATE NOT NULL,
            title             VARCHAR(200),
            description       TEXT,
            status            VARCHAR(40) NOT NULL DEFAULT 'Pending'
                              {_check("status", "leave_status")},
            duration          NUMERIC(5,1) DEFAULT 0,
            first_half        VARCHAR(30) NOT NULL,
            second_half       VARCHAR(30) NOT NULL,
            is_half_day       BOOLEAN DEFAULT FALSE,
            half_day_type     VARCHAR(20) {_check("half_day_type", "half_day_type")},
            submitted_date    DATE NOT NULL,
            cancellation_requested_on DATE,
            parent_id         UUID REFERENCES leave_requests(id) ON DELETE RESTRICT,
            pending_changes   JSONB,
            reviewed_by       UUID,
            reviewed_at       TIMESTAMPTZ,
            reviewer_remarks  TEXT,
            is_read           BOOLEAN DEFAULT FALSE,
            is_read_employee  BOOLEAN DEFAULT TRUE,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_range CHECK (to_date >= from_date)
        )
    """)
    op.create_index(
        "ix_leave_requests_employee_range",
        "leave_requests",
        ["employee_id", "from_date", "to_date"],
    )
    op.create_index("ix_leave_requests_parent", "leave_requests", ["parent_id"])
    op.create_index(
        "ix_leave_requests_unread",
        "leave_requests",
        ["status"],
        postgresql_where=sa.text("is_read = FALSE"),
    )

    # ── 4. leave_documents ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_documents (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            request_id    UUID NOT NULL REFERENCES leave_requests(id) ON DELETE CASCADE,
            storage_key   VARCHAR(500) NOT NULL,
            file_name     VARCHAR(255) NOT NULL,
            content_type  VARCHAR(100),
            uploaded_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.create_index("ix_leave_documents_request", "leave_documents", ["request_id"])

    # ── 5. attendance_records (one row per employee per day) ──────────────
    op.execute(f"""
        CREATE TABLE attendance_records (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id        UUID NOT NULL REFERENCES employees(id),
            working_date       DATE NOT NULL,
            total_hours        NUMERIC(4,1),
            work_location      VARCHAR(20) {_check("work_location", "work_location")},
            status             VARCHAR(20) {_check("status", "attendance_status")},
            first_half         VARCHAR(30),
            second_half        VARCHAR(30),
            source_request_id  UUID REFERENCES leave_requests(id) ON DELETE SET NULL,
            updated_by         UUID,
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            updated_at         TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_attendance_employee_day UNIQUE (employee_id, working_date)
        )
    """)
    op.create_index(
        "ix_attendance_source_request", "attendance_records", ["source_request_id"],
    )

    # ── 6. timesheet_blockers ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE timesheet_blockers (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id   UUID NOT NULL REFERENCES employees(id),
            blocked_from  DATE NOT NULL,
            blocked_to    DATE NOT NULL,
            blocked_by    UUID,
            reason        TEXT,
            blocked_at    TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_blocker_range CHECK (blocked_to >= blocked_from)
        )
    """)
    op.create_index(
        "ix_blocker_employee_range",
        "timesheet_blockers",
        ["employee_id", "blocked_from", "blocked_to"],
    )

    # ── 7. notifications ──────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE notifications (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type          VARCHAR(20) DEFAULT 'info' {_check("type", "notification_type")},
            title         VARCHAR(200) NOT NULL,
            message       TEXT NOT NULL,
            entity_type   VARCHAR(50),
            entity_id     UUID,
            is_read       BOOLEAN DEFAULT FALSE,
            read_at       TIMESTAMPTZ,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.create_index(
        "ix_notifications_recipient_unread", "notifications", ["recipient_id", "is_read"],
    )

    # ── 8. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     UUID,
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID NOT NULL,
            old_values   JSONB,
            new_values   JSONB,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.create_index("ix_audit_trail_actor_id", "audit_trail", ["actor_id"])
    op.create_index("ix_audit_trail_entity", "audit_trail", ["entity_type", "entity_id"])
    op.create_index("ix_audit_trail_created_at", "audit_trail", ["created_at"])


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "notifications",
        "timesheet_blockers",
        "attendance_records",
        "leave_documents",
        "leave_requests",
        "holidays",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
