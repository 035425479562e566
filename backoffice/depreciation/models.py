"""Depreciation schedule and execution ORM models."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.common.constants import ExecutionAssetStatus, ExecutionStatus, ScheduleType
from backoffice.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from backoffice.database import Base

if TYPE_CHECKING:
    from backoffice.assets.models import Asset
    from backoffice.organization.models import BusinessUnit

_MONEY = sa.Numeric(15, 2)


class DepreciationSchedule(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "depreciation_schedules"

    business_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"), nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    schedule_type: Mapped[ScheduleType] = mapped_column(
        sa.Enum(ScheduleType, name="schedule_type", create_type=False),
        default=ScheduleType.MONTHLY,
        server_default=ScheduleType.MONTHLY.value,
        nullable=False,
    )
    execution_day: Mapped[int] = mapped_column(
        sa.Integer, default=30, server_default=sa.text("30"), nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    # Lists of asset category ids
    include_categories: Mapped[Optional[list]] = mapped_column(JSONB)
    exclude_categories: Mapped[Optional[list]] = mapped_column(JSONB)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )

    business_unit: Mapped["BusinessUnit"] = relationship()
    executions: Mapped[list[DepreciationExecution]] = relationship(
        back_populates="schedule", order_by="DepreciationExecution.created_at.desc()",
    )


class DepreciationExecution(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One run of a schedule (or a manual batch) over a business unit."""

    __tablename__ = "depreciation_executions"
    __table_args__ = (
        sa.Index("ix_depreciation_executions_schedule_date", "schedule_id", "execution_date"),
    )

    schedule_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("depreciation_schedules.id"),
    )
    business_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"), nullable=False,
    )
    execution_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    scheduled_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[ExecutionStatus] = mapped_column(
        sa.Enum(ExecutionStatus, name="execution_status", create_type=False),
        default=ExecutionStatus.PENDING,
        server_default=ExecutionStatus.PENDING.value,
        nullable=False,
    )
    total_assets_processed: Mapped[int] = mapped_column(sa.Integer, default=0)
    successful_calculations: Mapped[int] = mapped_column(sa.Integer, default=0)
    failed_calculations: Mapped[int] = mapped_column(sa.Integer, default=0)
    skipped_calculations: Mapped[int] = mapped_column(sa.Integer, default=0)
    total_depreciation_amount: Mapped[Decimal] = mapped_column(_MONEY, default=Decimal("0"))
    execution_duration_ms: Mapped[Optional[int]] = mapped_column(sa.Integer)
    error_message: Mapped[Optional[str]] = mapped_column(sa.Text)
    execution_summary: Mapped[Optional[dict]] = mapped_column(JSONB)
    executed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    schedule: Mapped[Optional[DepreciationSchedule]] = relationship(back_populates="executions")
    assets: Mapped[list[DepreciationExecutionAsset]] = relationship(
        back_populates="execution", order_by="DepreciationExecutionAsset.created_at",
    )


class DepreciationExecutionAsset(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "depreciation_execution_assets"

    execution_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("depreciation_executions.id"),
        nullable=False, index=True,
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("assets.id"), nullable=False,
    )
    depreciation_record_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("asset_depreciation.id"),
    )
    status: Mapped[ExecutionAssetStatus] = mapped_column(
        sa.Enum(ExecutionAssetStatus, name="execution_asset_status", create_type=False),
        nullable=False,
    )
    depreciation_amount: Mapped[Decimal] = mapped_column(_MONEY, default=Decimal("0"))
    book_value_before: Mapped[Optional[Decimal]] = mapped_column(_MONEY)
    book_value_after: Mapped[Optional[Decimal]] = mapped_column(_MONEY)
    error_message: Mapped[Optional[str]] = mapped_column(sa.Text)
    calculation_details: Mapped[Optional[dict]] = mapped_column(JSONB)

    execution: Mapped[DepreciationExecution] = relationship(back_populates="assets")
    asset: Mapped["Asset"] = relationship()
