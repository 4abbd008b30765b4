"""001 – Initial schema: tenants, users, leave ledger, comp-off, time entries.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:30:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("employee_status", ["active", "on_notice", "exited"]),
    ("user_role", ["employee", "org_admin", "super_admin"]),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
    ("accrual_method", ["monthly", "yearly", "none"]),
    ("carry_forward_type", ["none", "limited", "unlimited"]),
    (
        "leave_transaction_type",
        [
            "accrual",
            "request",
            "cancellation",
            "adjustment",
            "comp_off",
            "carry_forward",
            "lapse",
        ],
    ),
    ("comp_off_source", ["overtime", "holiday_work", "manual"]),
    ("time_entry_type", ["check_in", "check_out"]),
    (
        "notification_type",
        [
            "leave_request",
            "leave_approved",
            "leave_rejected",
            "leave_cancelled",
            "comp_off_granted",
            "comp_off_applied",
            "balance_adjusted",
            "general",
        ],
    ),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. organizations ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE organizations (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(200) NOT NULL,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            employee_code   VARCHAR(30)  NOT NULL,
            first_name      VARCHAR(100) NOT NULL,
            last_name       VARCHAR(100),
            email           VARCHAR(255),
            designation     VARCHAR(150),
            status          employee_status DEFAULT 'active',
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_employee_org_code UNIQUE (organization_id, employee_code)
        )
    """)
    op.execute("CREATE INDEX ix_employees_organization_id ON employees(organization_id)")

    # ── 3. app_users ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE app_users (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID REFERENCES organizations(id) ON DELETE CASCADE,
            employee_id     UUID UNIQUE REFERENCES employees(id) ON DELETE SET NULL,
            email           VARCHAR(255) NOT NULL UNIQUE,
            role            user_role NOT NULL DEFAULT 'employee',
            is_active       BOOLEAN DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_app_users_organization_id ON app_users(organization_id)")

    # ── 4. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id     UUID NOT NULL REFERENCES app_users(id) ON DELETE CASCADE,
            token_hash  VARCHAR(128) NOT NULL,
            expires_at  TIMESTAMPTZ NOT NULL,
            is_revoked  BOOLEAN DEFAULT FALSE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_user_sessions_token_hash ON user_sessions(token_hash)")

    # ── 5. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID REFERENCES organizations(id) ON DELETE CASCADE,
            actor_id        UUID REFERENCES app_users(id) ON DELETE SET NULL,
            action          VARCHAR(50)  NOT NULL,
            entity_type     VARCHAR(50)  NOT NULL,
            entity_id       UUID NOT NULL,
            old_values      JSONB,
            new_values      JSONB,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute("""
        CREATE INDEX ix_audit_trail_entity
            ON audit_trail(entity_type, entity_id)
    """)
    op.execute("""
        CREATE INDEX ix_audit_trail_org_created
            ON audit_trail(organization_id, created_at)
    """)

    # ── 6. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID REFERENCES organizations(id) ON DELETE CASCADE,
            recipient_id    UUID NOT NULL REFERENCES app_users(id) ON DELETE CASCADE,
            type            notification_type DEFAULT 'general',
            title           VARCHAR(200) NOT NULL,
            message         TEXT NOT NULL,
            action_url      VARCHAR(500),
            entity_type     VARCHAR(50),
            entity_id       UUID,
            is_read         BOOLEAN DEFAULT FALSE,
            read_at         TIMESTAMPTZ,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_notifications_recipient_read
            ON notifications(recipient_id, is_read)
    """)

    # ── 7. leave_policies ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_policies (
            id                     UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id        UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            code                   VARCHAR(20)  NOT NULL,
            display_name           VARCHAR(100) NOT NULL,
            annual_quota           NUMERIC(6,2) NOT NULL DEFAULT 0,
            accrual_method         accrual_method DEFAULT 'yearly',
            monthly_accrual_rate   NUMERIC(6,2) DEFAULT 0,
            carry_forward_type     carry_forward_type DEFAULT 'none',
            carry_forward_limit    NUMERIC(6,2) DEFAULT 0,
            allow_negative_balance BOOLEAN DEFAULT FALSE,
            is_active              BOOLEAN DEFAULT TRUE,
            effective_from         DATE,
            effective_to           DATE,
            created_at             TIMESTAMPTZ DEFAULT NOW(),
            updated_at             TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_policy_org_code UNIQUE (organization_id, code)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_policies_organization_id
            ON leave_policies(organization_id)
    """)

    # ── 8. leave_balances ─────────────────────────────────────────────────
    # current balance = opening_balance + accrued - used + adjustment
    op.execute("""
        CREATE TABLE leave_balances (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            employee_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            policy_id       UUID NOT NULL REFERENCES leave_policies(id),
            year            INTEGER NOT NULL,
            opening_balance NUMERIC(6,2) NOT NULL DEFAULT 0,
            accrued         NUMERIC(6,2) NOT NULL DEFAULT 0,
            used            NUMERIC(6,2) NOT NULL DEFAULT 0,
            adjustment      NUMERIC(6,2) NOT NULL DEFAULT 0,
            last_accrued_at TIMESTAMPTZ,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, policy_id, year)
        )
    """)

    # ── 9. leave_transactions ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_transactions (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id  UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            employee_id      UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            balance_id       UUID NOT NULL REFERENCES leave_balances(id) ON DELETE CASCADE,
            policy_id        UUID NOT NULL REFERENCES leave_policies(id),
            transaction_type leave_transaction_type NOT NULL,
            field            VARCHAR(20)  NOT NULL,
            amount           NUMERIC(6,2) NOT NULL,
            balance_after    NUMERIC(6,2) NOT NULL,
            reference_id     UUID,
            notes            TEXT,
            created_by       UUID REFERENCES app_users(id) ON DELETE SET NULL,
            created_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_tx_employee_created
            ON leave_transactions(employee_id, created_at)
    """)

    # ── 10. leave_requests ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            employee_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            policy_id       UUID NOT NULL REFERENCES leave_policies(id),
            leave_type      VARCHAR(20)  NOT NULL,
            start_date      DATE NOT NULL,
            end_date        DATE NOT NULL,
            total_days      NUMERIC(6,2) NOT NULL,
            reason          TEXT,
            status          leave_status DEFAULT 'pending',
            reviewed_by     UUID REFERENCES app_users(id) ON DELETE SET NULL,
            reviewed_at     TIMESTAMPTZ,
            review_notes    TEXT,
            cancelled_at    TIMESTAMPTZ,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_dates CHECK (end_date >= start_date)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_requests_org_status
            ON leave_requests(organization_id, status)
    """)
    op.execute("""
        CREATE INDEX ix_leave_requests_employee
            ON leave_requests(employee_id, start_date)
    """)

    # ── 11. comp_off_grants ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE comp_off_grants (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            employee_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            work_date       DATE NOT NULL,
            hours_worked    NUMERIC(5,2) NOT NULL DEFAULT 8,
            days_granted    NUMERIC(6,2) NOT NULL,
            source          comp_off_source DEFAULT 'manual',
            reason          TEXT,
            granted_by      UUID REFERENCES app_users(id) ON DELETE SET NULL,
            is_applied      BOOLEAN DEFAULT FALSE,
            applied_at      TIMESTAMPTZ,
            balance_year    INTEGER,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_comp_off_hours CHECK (hours_worked >= 0),
            CONSTRAINT ck_comp_off_days  CHECK (days_granted >= 0)
        )
    """)
    op.execute("CREATE INDEX ix_comp_off_grants_employee_id ON comp_off_grants(employee_id)")
    op.execute("""
        CREATE INDEX ix_comp_off_org_applied
            ON comp_off_grants(organization_id, is_applied)
    """)

    # ── 12. time_entries ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE time_entries (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            employee_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            date            DATE NOT NULL,
            entry_type      time_entry_type NOT NULL,
            entry_time      TIMESTAMPTZ NOT NULL,
            notes           TEXT,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_time_entries_employee_date
            ON time_entries(employee_id, date)
    """)
    op.execute("""
        CREATE INDEX ix_time_entries_org_date
            ON time_entries(organization_id, date)
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "time_entries",
        "comp_off_grants",
        "leave_requests",
        "leave_transactions",
        "leave_balances",
        "leave_policies",
        "notifications",
        "audit_trail",
        "user_sessions",
        "app_users",
        "employees",
        "organizations",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
