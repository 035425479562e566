"""Leave ORM models: LeaveType, LeaveBalance, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.common.constants import LeaveSession, RequestStatus
from backoffice.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from backoffice.database import Base

if TYPE_CHECKING:
    from backoffice.organization.models import User


class LeaveType(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "leave_types"

    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    default_allocated_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), server_default=sa.text("0")
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE")
    )

    # Relationships
    balances: Mapped[list[LeaveBalance]] = relationship(back_populates="leave_type")
    requests: Mapped[list[LeaveRequest]] = relationship(back_populates="leave_type")


class LeaveBalance(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "user_id", "leave_type_id", "year", name="uq_leave_balance"
        ),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    allocated_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), server_default=sa.text("0")
    )
    used_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), server_default=sa.text("0")
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="leave_balances")
    leave_type: Mapped[LeaveType] = relationship(back_populates="balances")

    @property
    def remaining_days(self) -> Decimal:
        return Decimal(self.allocated_days or 0) - Decimal(self.used_days or 0)


class LeaveRequest(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "leave_requests"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    session: Mapped[LeaveSession] = mapped_column(
        sa.Enum(LeaveSession, name="leave_session", create_type=False),
        default=LeaveSession.FULL_DAY,
        server_default=LeaveSession.FULL_DAY.value,
    )
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[RequestStatus] = mapped_column(
        sa.Enum(RequestStatus, name="request_status", create_type=False),
        default=RequestStatus.PENDING_MANAGER,
        server_default=RequestStatus.PENDING_MANAGER.value,
    )

    # Manager stage
    manager_action_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    manager_action_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    manager_comments: Mapped[Optional[str]] = mapped_column(sa.Text)

    # HR stage
    hr_action_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    hr_action_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    hr_comments: Mapped[Optional[str]] = mapped_column(sa.Text)

    # Relationships
    user: Mapped["User"] = relationship(
        back_populates="leave_requests", foreign_keys=[user_id]
    )
    leave_type: Mapped[LeaveType] = relationship(back_populates="requests")
    manager: Mapped[Optional["User"]] = relationship(foreign_keys=[manager_action_by])
    hr_approver: Mapped[Optional["User"]] = relationship(foreign_keys=[hr_action_by])
