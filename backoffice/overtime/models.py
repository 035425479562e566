"""Overtime ORM models: OvertimeRequest."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.common.constants import RequestStatus
from backoffice.common.models import TimestampMixin, UUIDPrimaryKeyMixin, as_utc
from backoffice.database import Base

if TYPE_CHECKING:
    from backoffice.organization.models import User


class OvertimeRequest(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "overtime_requests"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    end_time: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[RequestStatus] = mapped_column(
        sa.Enum(RequestStatus, name="request_status", create_type=False),
        default=RequestStatus.PENDING_MANAGER,
        server_default=RequestStatus.PENDING_MANAGER.value,
    )

    manager_action_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    manager_action_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    manager_comments: Mapped[Optional[str]] = mapped_column(sa.Text)

    hr_action_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    hr_action_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    hr_comments: Mapped[Optional[str]] = mapped_column(sa.Text)

    # Relationships
    user: Mapped["User"] = relationship(
        back_populates="overtime_requests", foreign_keys=[user_id]
    )
    manager: Mapped[Optional["User"]] = relationship(foreign_keys=[manager_action_by])
    hr_approver: Mapped[Optional["User"]] = relationship(foreign_keys=[hr_action_by])

    @property
    def total_hours(self) -> Decimal:
        return overtime_hours(self.start_time, self.end_time)


def overtime_hours(start_time: datetime, end_time: datetime) -> Decimal:
    """Duration between *start_time* and *end_time* in hours, 2 decimals."""
    seconds = (as_utc(end_time) - as_utc(start_time)).total_seconds()
    return round(Decimal(str(seconds)) / Decimal("3600"), 2)
