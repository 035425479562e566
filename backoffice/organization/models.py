"""Organization ORM models: BusinessUnit, Department, User, DepartmentApprover, GLAccount.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
Column names match the PostgreSQL schema defined in 001_initial_schema.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.common.constants import ApproverType, GLAccountType, UserRole
from backoffice.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from backoffice.database import Base

if TYPE_CHECKING:
    from backoffice.auth.models import UserSession
    from backoffice.leave.models import LeaveBalance, LeaveRequest
    from backoffice.overtime.models import OvertimeRequest


# ═════════════════════════════════════════════════════════════════════
# BusinessUnit
# ═════════════════════════════════════════════════════════════════════


class BusinessUnit(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Tenant / organizational scoping entity."""

    __tablename__ = "business_units"

    code: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )

    # ── Relationships ───────────────────────────────────────────────
    departments: Mapped[list[Department]] = relationship(
        back_populates="business_unit",
    )
    users: Mapped[list[User]] = relationship(
        back_populates="business_unit", foreign_keys="User.business_unit_id",
    )

    def __repr__(self) -> str:
        return f"<BusinessUnit {self.code!r}>"


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class Department(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Department scoped to a business unit."""

    __tablename__ = "departments"
    __table_args__ = (
        sa.UniqueConstraint("business_unit_id", "code", name="uq_department_bu_code"),
    )

    code: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    business_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"), nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )

    # ── Relationships ───────────────────────────────────────────────
    business_unit: Mapped[BusinessUnit] = relationship(back_populates="departments")
    users: Mapped[list[User]] = relationship(
        back_populates="department", foreign_keys="User.department_id",
    )
    approvers: Mapped[list[DepartmentApprover]] = relationship(
        back_populates="department", cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Department {self.code!r}>"


# ═════════════════════════════════════════════════════════════════════
# User (employee)
# ═════════════════════════════════════════════════════════════════════


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Employee account — login identity, role and org placement."""

    __tablename__ = "users"

    # ── Identifiers ─────────────────────────────────────────────────
    employee_id: Mapped[str] = mapped_column(
        sa.String(50), unique=True, nullable=False,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(sa.String(255), unique=True)
    password_hash: Mapped[Optional[str]] = mapped_column(sa.String(255))

    # ── Role / flags ────────────────────────────────────────────────
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role", create_type=False),
        default=UserRole.USER,
        server_default=UserRole.USER.value,
        nullable=False,
    )
    classification: Mapped[Optional[str]] = mapped_column(sa.String(50))
    is_acctg: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    is_purchaser: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )

    # ── Org hierarchy ───────────────────────────────────────────────
    business_unit_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"),
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"),
    )
    approver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )

    # ── Employment lifecycle ────────────────────────────────────────
    hire_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    terminate_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )

    # ── Relationships ───────────────────────────────────────────────
    business_unit: Mapped[Optional[BusinessUnit]] = relationship(
        back_populates="users", foreign_keys=[business_unit_id],
    )
    department: Mapped[Optional[Department]] = relationship(
        back_populates="users", foreign_keys=[department_id],
    )
    approver: Mapped[Optional[User]] = relationship(
        remote_side="User.id", foreign_keys=[approver_id],
    )
    sessions: Mapped[list["UserSession"]] = relationship(
        back_populates="user", cascade="all, delete-orphan",
    )
    leave_balances: Mapped[list["LeaveBalance"]] = relationship(
        back_populates="user",
    )
    leave_requests: Mapped[list["LeaveRequest"]] = relationship(
        back_populates="user", foreign_keys="LeaveRequest.user_id",
    )
    overtime_requests: Mapped[list["OvertimeRequest"]] = relationship(
        back_populates="user", foreign_keys="OvertimeRequest.user_id",
    )

    def __repr__(self) -> str:
        return f"<User {self.employee_id} {self.name}>"


# ═════════════════════════════════════════════════════════════════════
# DepartmentApprover
# ═════════════════════════════════════════════════════════════════════


class DepartmentApprover(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Recommending / final approver of a department's material requests."""

    __tablename__ = "department_approvers"
    __table_args__ = (
        sa.UniqueConstraint(
            "department_id", "employee_id", "approver_type",
            name="uq_department_approver",
        ),
    )

    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_type: Mapped[ApproverType] = mapped_column(
        sa.Enum(ApproverType, name="approver_type", create_type=False),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )

    department: Mapped[Department] = relationship(back_populates="approvers")
    employee: Mapped[User] = relationship()


# ═════════════════════════════════════════════════════════════════════
# GLAccount
# ═════════════════════════════════════════════════════════════════════


class GLAccount(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """General-ledger account referenced by asset categories."""

    __tablename__ = "gl_accounts"

    account_code: Mapped[str] = mapped_column(
        sa.String(50), unique=True, nullable=False,
    )
    account_name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    account_type: Mapped[GLAccountType] = mapped_column(
        sa.Enum(GLAccountType, name="gl_account_type", create_type=False),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )

    def __repr__(self) -> str:
        return f"<GLAccount {self.account_code!r}>"
