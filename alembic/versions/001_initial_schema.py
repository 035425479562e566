"""001 – Initial schema: all tables, indexes, enums, seed data.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000+08:00
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
    ("user_role", ["ADMIN", "MANAGER", "HR", "ACCTG", "USER"]),
    ("approver_type", ["RECOMMENDING", "FINAL"]),
    ("gl_account_type", ["ASSET", "LIABILITY", "EQUITY", "REVENUE", "EXPENSE"]),
    (
        "request_status",
        ["PENDING_MANAGER", "PENDING_HR", "APPROVED", "REJECTED", "CANCELLED"],
    ),
    ("leave_session", ["FULL_DAY", "MORNING", "AFTERNOON"]),
    (
        "asset_status",
        [
            "AVAILABLE",
            "DEPLOYED",
            "IN_MAINTENANCE",
            "DAMAGED",
            "LOST",
            "RETIRED",
            "DISPOSED",
        ],
    ),
    (
        "deployment_status",
        [
            "PENDING_ACCOUNTING_APPROVAL",
            "APPROVED",
            "DEPLOYED",
            "RETURNED",
            "CANCELLED",
        ],
    ),
    (
        "disposal_reason",
        [
            "SOLD",
            "DONATED",
            "SCRAPPED",
            "LOST",
            "STOLEN",
            "TRANSFERRED",
            "END_OF_LIFE",
            "DAMAGED_BEYOND_REPAIR",
            "OBSOLETE",
            "REGULATORY_COMPLIANCE",
        ],
    ),
    (
        "disposal_method",
        ["SALE", "SCRAP", "DONATION", "TRADE_IN", "DESTRUCTION", "OTHER"],
    ),
    (
        "retirement_reason",
        [
            "END_OF_USEFUL_LIFE",
            "FULLY_DEPRECIATED",
            "OBSOLETE",
            "DAMAGED_BEYOND_REPAIR",
            "POLICY_CHANGE",
            "UPGRADE_REPLACEMENT",
        ],
    ),
    (
        "retirement_method",
        [
            "NORMAL_RETIREMENT",
            "EARLY_RETIREMENT",
            "EMERGENCY_RETIREMENT",
            "PLANNED_REPLACEMENT",
            "POLICY_DRIVEN",
        ],
    ),
    (
        "asset_condition",
        ["EXCELLENT", "GOOD", "FAIR", "POOR", "DAMAGED", "NON_FUNCTIONAL"],
    ),
    (
        "asset_history_action",
        [
            "CREATED",
            "UPDATED",
            "STATUS_CHANGED",
            "DEPLOYED",
            "RETURNED",
            "TRANSFERRED",
            "DISPOSED",
            "RETIRED",
            "DEPRECIATION_CALCULATED",
        ],
    ),
    (
        "depreciation_method",
        [
            "STRAIGHT_LINE",
            "DECLINING_BALANCE",
            "UNITS_OF_PRODUCTION",
            "SUM_OF_YEARS_DIGITS",
        ],
    ),
    ("depreciation_period", ["MONTHLY", "QUARTERLY", "ANNUALLY"]),
    ("schedule_type", ["MONTHLY", "QUARTERLY", "ANNUALLY"]),
    (
        "execution_status",
        ["PENDING", "RUNNING", "COMPLETED", "FAILED", "CANCELLED"],
    ),
    (
        "execution_asset_status",
        ["SUCCESS", "FAILED", "SKIPPED", "FULLY_DEPRECIATED", "NO_SETUP"],
    ),
    ("mrs_request_type", ["ITEM", "SERVICE"]),
    (
        "mrs_request_status",
        [
            "DRAFT",
            "FOR_REVIEW",
            "FOR_EDIT",
            "FOR_REC_APPROVAL",
            "REC_APPROVED",
            "FOR_FINAL_APPROVAL",
            "FINAL_APPROVED",
            "FOR_SERVING",
            "FOR_POSTING",
            "POSTED",
            "RECEIVED",
            "DISAPPROVED",
        ],
    ),
    ("approval_status", ["PENDING", "APPROVED", "DISAPPROVED"]),
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

    # ══════════════════════════════════════════════════════════════════════
    # ORGANIZATION
    # ══════════════════════════════════════════════════════════════════════

    # ── 1. business_units ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE business_units (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code         VARCHAR(20)  NOT NULL UNIQUE,
            name         VARCHAR(200) NOT NULL,
            description  TEXT,
            is_active    BOOLEAN DEFAULT TRUE,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── 2. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code              VARCHAR(20)  NOT NULL,
            name              VARCHAR(200) NOT NULL,
            description       TEXT,
            business_unit_id  UUID NOT NULL REFERENCES business_units(id),
            is_active         BOOLEAN DEFAULT TRUE,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_department_bu_code UNIQUE (business_unit_id, code)
        )
    """)

    # ── 3. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       VARCHAR(50)  NOT NULL UNIQUE,
            name              VARCHAR(200) NOT NULL,
            email             VARCHAR(255) UNIQUE,
            password_hash     VARCHAR(255),
            role              user_role NOT NULL DEFAULT 'USER',
            classification    VARCHAR(50),
            is_acctg          BOOLEAN DEFAULT FALSE,
            is_purchaser      BOOLEAN DEFAULT FALSE,
            business_unit_id  UUID REFERENCES business_units(id),
            department_id     UUID REFERENCES departments(id),
            approver_id       UUID REFERENCES users(id),
            hire_date         DATE,
            terminate_date    DATE,
            is_active         BOOLEAN DEFAULT TRUE,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_users_business_unit ON users(business_unit_id)")
    op.execute("CREATE INDEX ix_users_approver ON users(approver_id)")

    # ── 4. department_approvers ───────────────────────────────────────────
    op.execute("""
        CREATE TABLE department_approvers (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            department_id  UUID NOT NULL REFERENCES departments(id) ON DELETE CASCADE,
            employee_id    UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            approver_type  approver_type NOT NULL,
            is_active      BOOLEAN DEFAULT TRUE,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_department_approver
                UNIQUE (department_id, employee_id, approver_type)
        )
    """)

    # ── 5. gl_accounts ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE gl_accounts (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            account_code  VARCHAR(50)  NOT NULL UNIQUE,
            account_name  VARCHAR(200) NOT NULL,
            account_type  gl_account_type NOT NULL,
            description   TEXT,
            is_active     BOOLEAN DEFAULT TRUE,
            created_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at    TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── 6. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id             UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            token_hash          VARCHAR(512) NOT NULL,
            refresh_token_hash  VARCHAR(512),
            ip_address          INET,
            user_agent          TEXT,
            expires_at          TIMESTAMPTZ NOT NULL,
            is_revoked          BOOLEAN DEFAULT FALSE,
            created_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_user_sessions_token_hash ON user_sessions(token_hash)")
    op.execute(
        "CREATE INDEX ix_user_sessions_refresh_token_hash "
        "ON user_sessions(refresh_token_hash)"
    )

    # ══════════════════════════════════════════════════════════════════════
    # HR: LEAVE AND OVERTIME
    # ══════════════════════════════════════════════════════════════════════

    # ── 7. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                    VARCHAR(100) NOT NULL UNIQUE,
            description             TEXT,
            default_allocated_days  NUMERIC(5,1) DEFAULT 0,
            is_active               BOOLEAN DEFAULT TRUE,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── 8. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id         UUID NOT NULL REFERENCES users(id),
            leave_type_id   UUID NOT NULL REFERENCES leave_types(id),
            year            INTEGER NOT NULL,
            allocated_days  NUMERIC(5,1) DEFAULT 0,
            used_days       NUMERIC(5,1) DEFAULT 0,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (user_id, leave_type_id, year)
        )
    """)

    # ── 9. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id            UUID NOT NULL REFERENCES users(id),
            leave_type_id      UUID NOT NULL REFERENCES leave_types(id),
            start_date         DATE NOT NULL,
            end_date           DATE NOT NULL,
            session            leave_session NOT NULL DEFAULT 'FULL_DAY',
            reason             TEXT NOT NULL,
            status             request_status NOT NULL DEFAULT 'PENDING_MANAGER',
            manager_action_by  UUID REFERENCES users(id),
            manager_action_at  TIMESTAMPTZ,
            manager_comments   TEXT,
            hr_action_by       UUID REFERENCES users(id),
            hr_action_at       TIMESTAMPTZ,
            hr_comments        TEXT,
            created_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (end_date >= start_date)
        )
    """)
    op.execute("CREATE INDEX ix_leave_requests_user ON leave_requests(user_id)")
    op.execute("CREATE INDEX ix_leave_requests_status ON leave_requests(status)")

    # ── 10. overtime_requests ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE overtime_requests (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id            UUID NOT NULL REFERENCES users(id),
            start_time         TIMESTAMPTZ NOT NULL,
            end_time           TIMESTAMPTZ NOT NULL,
            reason             TEXT NOT NULL,
            status             request_status NOT NULL DEFAULT 'PENDING_MANAGER',
            manager_action_by  UUID REFERENCES users(id),
            manager_action_at  TIMESTAMPTZ,
            manager_comments   TEXT,
            hr_action_by       UUID REFERENCES users(id),
            hr_action_at       TIMESTAMPTZ,
            hr_comments        TEXT,
            created_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (end_time > start_time)
        )
    """)
    op.execute("CREATE INDEX ix_overtime_requests_user ON overtime_requests(user_id)")
    op.execute("CREATE INDEX ix_overtime_requests_status ON overtime_requests(status)")

    # ══════════════════════════════════════════════════════════════════════
    # ASSETS
    # ══════════════════════════════════════════════════════════════════════

    # ── 11. asset_categories ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE asset_categories (
            id                              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                            VARCHAR(200) NOT NULL,
            code                            VARCHAR(20)  NOT NULL,
            description                     TEXT,
            business_unit_id                UUID NOT NULL REFERENCES business_units(id),
            asset_gl_id                     UUID REFERENCES gl_accounts(id),
            depreciation_expense_gl_id      UUID REFERENCES gl_accounts(id),
            accumulated_depreciation_gl_id  UUID REFERENCES gl_accounts(id),
            is_active                       BOOLEAN DEFAULT TRUE,
            created_at                      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at                      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_asset_category_bu_code UNIQUE (business_unit_id, code)
        )
    """)

    # ── 12. assets ────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE assets (
            id                        UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            item_code                 VARCHAR(50) NOT NULL UNIQUE,
            description               TEXT NOT NULL,
            serial_number             VARCHAR(100),
            model_number              VARCHAR(100),
            brand                     VARCHAR(100),
            category_id               UUID NOT NULL REFERENCES asset_categories(id),
            business_unit_id          UUID NOT NULL REFERENCES business_units(id),
            department_id             UUID REFERENCES departments(id),
            status                    asset_status NOT NULL DEFAULT 'AVAILABLE',
            location                  VARCHAR(200),
            notes                     TEXT,
            purchase_date             DATE,
            purchase_price            NUMERIC(15,2),
            warranty_expiry           DATE,
            currently_assigned_to     UUID REFERENCES users(id),
            last_assigned_date        TIMESTAMPTZ,
            is_active                 BOOLEAN DEFAULT TRUE,
            created_by                UUID REFERENCES users(id),
            depreciation_method       depreciation_method,
            useful_life_years         INTEGER,
            useful_life_months        INTEGER,
            salvage_value             NUMERIC(15,2) DEFAULT 0,
            monthly_depreciation      NUMERIC(15,2),
            depreciation_rate         NUMERIC(7,4),
            total_expected_units      INTEGER,
            current_units             INTEGER DEFAULT 0,
            depreciation_start_date   DATE,
            current_book_value        NUMERIC(15,2),
            accumulated_depreciation  NUMERIC(15,2) DEFAULT 0,
            last_depreciation_date    DATE,
            next_depreciation_date    DATE,
            is_fully_depreciated      BOOLEAN DEFAULT FALSE,
            depreciation_period       depreciation_period DEFAULT 'MONTHLY',
            created_at                TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at                TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_assets_business_unit_status ON assets(business_unit_id, status)"
    )

    # ── 13. asset_deployments ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE asset_deployments (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            asset_id                UUID NOT NULL REFERENCES assets(id),
            employee_id             UUID NOT NULL REFERENCES users(id),
            business_unit_id        UUID NOT NULL REFERENCES business_units(id),
            transmittal_number      VARCHAR(50) NOT NULL UNIQUE,
            deployed_date           TIMESTAMPTZ,
            expected_return_date    DATE,
            returned_date           TIMESTAMPTZ,
            status                  deployment_status NOT NULL DEFAULT 'DEPLOYED',
            deployment_notes        TEXT,
            return_notes            TEXT,
            deployment_condition    VARCHAR(50),
            return_condition        VARCHAR(50),
            accounting_approver_id  UUID REFERENCES users(id),
            accounting_approved_at  TIMESTAMPTZ,
            accounting_notes        TEXT,
            created_by              UUID REFERENCES users(id),
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_asset_deployments_asset_id ON asset_deployments(asset_id)")

    # ── 14. asset_disposals ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE asset_disposals (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            asset_id                UUID NOT NULL REFERENCES assets(id),
            business_unit_id        UUID NOT NULL REFERENCES business_units(id),
            disposal_date           DATE NOT NULL,
            reason                  disposal_reason NOT NULL,
            disposal_method         disposal_method NOT NULL,
            disposal_location       VARCHAR(200),
            disposal_value          NUMERIC(15,2) DEFAULT 0,
            disposal_cost           NUMERIC(15,2) DEFAULT 0,
            net_disposal_value      NUMERIC(15,2) DEFAULT 0,
            book_value_at_disposal  NUMERIC(15,2) DEFAULT 0,
            gain_loss               NUMERIC(15,2) DEFAULT 0,
            notes                   TEXT,
            approved_by             UUID REFERENCES users(id),
            created_by              UUID REFERENCES users(id),
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_asset_disposals_asset_id ON asset_disposals(asset_id)")

    # ── 15. asset_retirements ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE asset_retirements (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            asset_id              UUID NOT NULL UNIQUE REFERENCES assets(id),
            business_unit_id      UUID NOT NULL REFERENCES business_units(id),
            retirement_date       DATE NOT NULL,
            reason                retirement_reason NOT NULL,
            retirement_method     retirement_method NOT NULL,
            condition             asset_condition,
            replacement_asset_id  UUID REFERENCES assets(id),
            disposal_planned      BOOLEAN DEFAULT FALSE,
            disposal_date         DATE,
            notes                 TEXT,
            approved_by           UUID REFERENCES users(id),
            created_by            UUID REFERENCES users(id),
            created_at            TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at            TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── 16. asset_history ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE asset_history (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            asset_id          UUID NOT NULL REFERENCES assets(id),
            action            asset_history_action NOT NULL,
            notes             TEXT,
            previous_value    TEXT,
            new_value         TEXT,
            performed_by      UUID REFERENCES users(id),
            business_unit_id  UUID REFERENCES business_units(id),
            metadata          JSONB,
            created_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_asset_history_asset_id ON asset_history(asset_id)")

    # ── 17. asset_depreciation ────────────────────────────────────────────
    op.execute("""
        CREATE TABLE asset_depreciation (
            id                        UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            asset_id                  UUID NOT NULL REFERENCES assets(id),
            depreciation_date         DATE NOT NULL,
            period_start_date         DATE NOT NULL,
            period_end_date           DATE NOT NULL,
            book_value_start          NUMERIC(15,2) NOT NULL,
            depreciation_amount       NUMERIC(15,2) NOT NULL,
            book_value_end            NUMERIC(15,2) NOT NULL,
            accumulated_depreciation  NUMERIC(15,2) NOT NULL,
            method                    depreciation_method NOT NULL,
            calculation_basis         JSONB,
            units_in_period           INTEGER,
            is_adjustment             BOOLEAN DEFAULT FALSE,
            notes                     TEXT,
            calculated_by             UUID REFERENCES users(id),
            created_at                TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at                TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_asset_depreciation_asset_date "
        "ON asset_depreciation(asset_id, depreciation_date)"
    )

    # ══════════════════════════════════════════════════════════════════════
    # DEPRECIATION SCHEDULING
    # ══════════════════════════════════════════════════════════════════════

    # ── 18. depreciation_schedules ────────────────────────────────────────
    op.execute("""
        CREATE TABLE depreciation_schedules (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            business_unit_id    UUID NOT NULL REFERENCES business_units(id),
            name                VARCHAR(200) NOT NULL,
            description         TEXT,
            schedule_type       schedule_type NOT NULL DEFAULT 'MONTHLY',
            execution_day       INTEGER NOT NULL DEFAULT 30
                                CHECK (execution_day BETWEEN 1 AND 31),
            is_active           BOOLEAN DEFAULT TRUE,
            include_categories  JSONB,
            exclude_categories  JSONB,
            created_by          UUID REFERENCES users(id),
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_depreciation_schedules_business_unit_id "
        "ON depreciation_schedules(business_unit_id)"
    )

    # ── 19. depreciation_executions ───────────────────────────────────────
    op.execute("""
        CREATE TABLE depreciation_executions (
            id                         UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            schedule_id                UUID REFERENCES depreciation_schedules(id),
            business_unit_id           UUID NOT NULL REFERENCES business_units(id),
            execution_date             DATE NOT NULL,
            scheduled_date             DATE NOT NULL,
            status                     execution_status NOT NULL DEFAULT 'PENDING',
            total_assets_processed     INTEGER DEFAULT 0,
            successful_calculations    INTEGER DEFAULT 0,
            failed_calculations        INTEGER DEFAULT 0,
            skipped_calculations       INTEGER DEFAULT 0,
            total_depreciation_amount  NUMERIC(15,2) DEFAULT 0,
            execution_duration_ms      INTEGER,
            error_message              TEXT,
            execution_summary          JSONB,
            executed_by                UUID REFERENCES users(id),
            completed_at               TIMESTAMPTZ,
            created_at                 TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at                 TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_depreciation_executions_schedule_date "
        "ON depreciation_executions(schedule_id, execution_date)"
    )

    # ── 20. depreciation_execution_assets ─────────────────────────────────
    op.execute("""
        CREATE TABLE depreciation_execution_assets (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            execution_id            UUID NOT NULL REFERENCES depreciation_executions(id),
            asset_id                UUID NOT NULL REFERENCES assets(id),
            depreciation_record_id  UUID REFERENCES asset_depreciation(id),
            status                  execution_asset_status NOT NULL,
            depreciation_amount     NUMERIC(15,2) DEFAULT 0,
            book_value_before       NUMERIC(15,2),
            book_value_after        NUMERIC(15,2),
            error_message           TEXT,
            calculation_details     JSONB,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_depreciation_execution_assets_execution_id "
        "ON depreciation_execution_assets(execution_id)"
    )

    # ══════════════════════════════════════════════════════════════════════
    # MATERIAL REQUESTS
    # ══════════════════════════════════════════════════════════════════════

    # ── 21. material_requests ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE material_requests (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            doc_no                  VARCHAR(30) NOT NULL UNIQUE,
            series                  VARCHAR(10) NOT NULL,
            type                    mrs_request_type NOT NULL,
            status                  mrs_request_status NOT NULL DEFAULT 'DRAFT',
            date_prepared           DATE NOT NULL,
            date_required           DATE NOT NULL,
            date_approved           TIMESTAMPTZ,
            date_posted             TIMESTAMPTZ,
            date_received           TIMESTAMPTZ,
            date_revised            TIMESTAMPTZ,
            business_unit_id        UUID NOT NULL REFERENCES business_units(id),
            department_id           UUID REFERENCES departments(id),
            requested_by_id         UUID NOT NULL REFERENCES users(id),
            charge_to               VARCHAR(200),
            bldg_code               VARCHAR(50),
            purpose                 TEXT,
            remarks                 TEXT,
            deliver_to              VARCHAR(200),
            is_store_use            BOOLEAN DEFAULT FALSE,
            freight                 NUMERIC(15,2) DEFAULT 0,
            discount                NUMERIC(15,2) DEFAULT 0,
            total                   NUMERIC(15,2) DEFAULT 0,
            reviewer_id             UUID REFERENCES users(id) ON DELETE SET NULL,
            reviewed_at             TIMESTAMPTZ,
            review_status           approval_status,
            review_remarks          TEXT,
            rec_approver_id         UUID REFERENCES users(id) ON DELETE SET NULL,
            rec_approval_status     approval_status,
            rec_approval_date       TIMESTAMPTZ,
            rec_approval_remarks    TEXT,
            final_approver_id       UUID REFERENCES users(id) ON DELETE SET NULL,
            final_approval_status   approval_status,
            final_approval_date     TIMESTAMPTZ,
            final_approval_remarks  TEXT,
            served_at               TIMESTAMPTZ,
            served_by               UUID REFERENCES users(id) ON DELETE SET NULL,
            served_notes            TEXT,
            supplier_bp_code        VARCHAR(50),
            supplier_name           VARCHAR(200),
            purchase_order_number   VARCHAR(50),
            confirmation_no         VARCHAR(50),
            processed_by            UUID REFERENCES users(id) ON DELETE SET NULL,
            processed_at            TIMESTAMPTZ,
            acknowledged_at         TIMESTAMPTZ,
            acknowledged_by_id      UUID REFERENCES users(id) ON DELETE SET NULL,
            signature_data          TEXT,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_material_requests_bu_status "
        "ON material_requests(business_unit_id, status)"
    )
    op.execute(
        "CREATE INDEX ix_material_requests_requested_by "
        "ON material_requests(requested_by_id)"
    )

    # ── 22. material_request_items ────────────────────────────────────────
    op.execute("""
        CREATE TABLE material_request_items (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            material_request_id  UUID NOT NULL
                                 REFERENCES material_requests(id) ON DELETE CASCADE,
            item_code            VARCHAR(50),
            description          TEXT NOT NULL,
            uom                  VARCHAR(20) NOT NULL,
            quantity             NUMERIC(12,2) NOT NULL CHECK (quantity > 0),
            unit_price           NUMERIC(15,2),
            total_price          NUMERIC(15,2),
            quantity_served      NUMERIC(12,2) DEFAULT 0,
            remarks              TEXT,
            created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_material_request_items_request "
        "ON material_request_items(material_request_id)"
    )

    # ══════════════════════════════════════════════════════════════════════
    # AUDIT
    # ══════════════════════════════════════════════════════════════════════

    # ── 23. audit_trail ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id          UUID REFERENCES users(id) ON DELETE SET NULL,
            business_unit_id  UUID,
            action            VARCHAR(50) NOT NULL,
            entity_type       VARCHAR(50) NOT NULL,
            entity_id         UUID NOT NULL,
            old_values        JSONB,
            new_values        JSONB,
            ip_address        INET,
            user_agent        TEXT,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")
    op.execute("CREATE INDEX ix_audit_trail_action ON audit_trail(action)")

    # ══════════════════════════════════════════════════════════════════════
    # SEED DATA
    # ══════════════════════════════════════════════════════════════════════

    # Leave types
    op.execute("""
        INSERT INTO leave_types (name, description, default_allocated_days) VALUES
        ('Vacation Leave',  'Annual paid vacation',              15),
        ('Sick Leave',      'Illness or medical appointments',   15),
        ('Emergency Leave', 'Urgent personal matters',            3),
        ('Leave Without Pay', 'Unpaid leave',                     0)
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "material_request_items",
        "material_requests",
        "depreciation_execution_assets",
        "depreciation_executions",
        "depreciation_schedules",
        "asset_depreciation",
        "asset_history",
        "asset_retirements",
        "asset_disposals",
        "asset_deployments",
        "assets",
        "asset_categories",
        "overtime_requests",
        "leave_requests",
        "leave_balances",
        "leave_types",
        "user_sessions",
        "gl_accounts",
        "department_approvers",
        "users",
        "departments",
        "business_units",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
