"""Asset ORM models: categories, assets, deployments, disposals, retirements,
history and per-period depreciation records.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.common.constants import (
    AssetCondition,
    AssetHistoryAction,
    AssetStatus,
    DeploymentStatus,
    DepreciationMethod,
    DepreciationPeriod,
    DisposalMethod,
    DisposalReason,
    RetirementMethod,
    RetirementReason,
)
from backoffice.common.models import TimestampMixin, UUIDPrimaryKeyMixin, utcnow
from backoffice.database import Base

if TYPE_CHECKING:
    from backoffice.organization.models import BusinessUnit, Department, GLAccount, User

_MONEY = sa.Numeric(15, 2)


# ═════════════════════════════════════════════════════════════════════
# AssetCategory
# ═════════════════════════════════════════════════════════════════════


class AssetCategory(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "asset_categories"
    __table_args__ = (
        sa.UniqueConstraint("business_unit_id", "code", name="uq_asset_category_bu_code"),
    )

    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    code: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    business_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"), nullable=False,
    )
    asset_gl_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("gl_accounts.id"),
    )
    depreciation_expense_gl_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("gl_accounts.id"),
    )
    accumulated_depreciation_gl_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("gl_accounts.id"),
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )

    assets: Mapped[list[Asset]] = relationship(back_populates="category")
    asset_gl: Mapped[Optional["GLAccount"]] = relationship(foreign_keys=[asset_gl_id])
    depreciation_expense_gl: Mapped[Optional["GLAccount"]] = relationship(
        foreign_keys=[depreciation_expense_gl_id],
    )
    accumulated_depreciation_gl: Mapped[Optional["GLAccount"]] = relationship(
        foreign_keys=[accumulated_depreciation_gl_id],
    )


# ═════════════════════════════════════════════════════════════════════
# Asset
# ═════════════════════════════════════════════════════════════════════


class Asset(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A tracked physical asset and its depreciation state."""

    __tablename__ = "assets"
    __table_args__ = (
        sa.Index("ix_assets_business_unit_status", "business_unit_id", "status"),
    )

    # ── Identification ──────────────────────────────────────────────
    item_code: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    serial_number: Mapped[Optional[str]] = mapped_column(sa.String(100))
    model_number: Mapped[Optional[str]] = mapped_column(sa.String(100))
    brand: Mapped[Optional[str]] = mapped_column(sa.String(100))

    # ── Placement ───────────────────────────────────────────────────
    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("asset_categories.id"), nullable=False,
    )
    business_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"), nullable=False,
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"),
    )
    status: Mapped[AssetStatus] = mapped_column(
        sa.Enum(AssetStatus, name="asset_status", create_type=False),
        default=AssetStatus.AVAILABLE,
        server_default=AssetStatus.AVAILABLE.value,
        nullable=False,
    )
    location: Mapped[Optional[str]] = mapped_column(sa.String(200))
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Purchase ────────────────────────────────────────────────────
    purchase_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(_MONEY)
    warranty_expiry: Mapped[Optional[date]] = mapped_column(sa.Date)

    # ── Assignment ──────────────────────────────────────────────────
    currently_assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )
    last_assigned_date: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )

    # ── Depreciation setup / state ──────────────────────────────────
    depreciation_method: Mapped[Optional[DepreciationMethod]] = mapped_column(
        sa.Enum(DepreciationMethod, name="depreciation_method", create_type=False),
    )
    useful_life_years: Mapped[Optional[int]] = mapped_column(sa.Integer)
    useful_life_months: Mapped[Optional[int]] = mapped_column(sa.Integer)
    salvage_value: Mapped[Optional[Decimal]] = mapped_column(
        _MONEY, default=Decimal("0"), server_default=sa.text("0"),
    )
    monthly_depreciation: Mapped[Optional[Decimal]] = mapped_column(_MONEY)
    depreciation_rate: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(7, 4))
    total_expected_units: Mapped[Optional[int]] = mapped_column(sa.Integer)
    current_units: Mapped[Optional[int]] = mapped_column(
        sa.Integer, default=0, server_default=sa.text("0"),
    )
    depreciation_start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    current_book_value: Mapped[Optional[Decimal]] = mapped_column(_MONEY)
    accumulated_depreciation: Mapped[Decimal] = mapped_column(
        _MONEY, default=Decimal("0"), server_default=sa.text("0"),
    )
    last_depreciation_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    next_depreciation_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    is_fully_depreciated: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    depreciation_period: Mapped[DepreciationPeriod] = mapped_column(
        sa.Enum(DepreciationPeriod, name="depreciation_period", create_type=False),
        default=DepreciationPeriod.MONTHLY,
        server_default=DepreciationPeriod.MONTHLY.value,
    )

    # ── Relationships ───────────────────────────────────────────────
    category: Mapped[AssetCategory] = relationship(back_populates="assets")
    business_unit: Mapped["BusinessUnit"] = relationship()
    department: Mapped[Optional["Department"]] = relationship()
    assigned_to: Mapped[Optional["User"]] = relationship(foreign_keys=[currently_assigned_to])
    deployments: Mapped[list[AssetDeployment]] = relationship(
        back_populates="asset", order_by="AssetDeployment.created_at",
    )
    history: Mapped[list[AssetHistory]] = relationship(
        back_populates="asset", order_by="AssetHistory.created_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<Asset {self.item_code!r} {self.status.value if self.status else None}>"


# ═════════════════════════════════════════════════════════════════════
# AssetDeployment
# ═════════════════════════════════════════════════════════════════════


class AssetDeployment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "asset_deployments"

    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("assets.id"), nullable=False, index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False,
    )
    business_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"), nullable=False,
    )
    transmittal_number: Mapped[str] = mapped_column(
        sa.String(50), unique=True, nullable=False,
    )
    deployed_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    expected_return_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    returned_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    status: Mapped[DeploymentStatus] = mapped_column(
        sa.Enum(DeploymentStatus, name="deployment_status", create_type=False),
        default=DeploymentStatus.DEPLOYED,
        server_default=DeploymentStatus.DEPLOYED.value,
        nullable=False,
    )
    deployment_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    return_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    deployment_condition: Mapped[Optional[str]] = mapped_column(sa.String(50))
    return_condition: Mapped[Optional[str]] = mapped_column(sa.String(50))

    accounting_approver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )
    accounting_approved_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    accounting_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )

    asset: Mapped[Asset] = relationship(back_populates="deployments")
    employee: Mapped["User"] = relationship(foreign_keys=[employee_id])


# ═════════════════════════════════════════════════════════════════════
# AssetDisposal
# ═════════════════════════════════════════════════════════════════════


class AssetDisposal(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "asset_disposals"

    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("assets.id"), nullable=False, index=True,
    )
    business_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"), nullable=False,
    )
    disposal_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    reason: Mapped[DisposalReason] = mapped_column(
        sa.Enum(DisposalReason, name="disposal_reason", create_type=False),
        nullable=False,
    )
    disposal_method: Mapped[DisposalMethod] = mapped_column(
        sa.Enum(DisposalMethod, name="disposal_method", create_type=False),
        nullable=False,
    )
    disposal_location: Mapped[Optional[str]] = mapped_column(sa.String(200))
    disposal_value: Mapped[Decimal] = mapped_column(_MONEY, default=Decimal("0"))
    disposal_cost: Mapped[Decimal] = mapped_column(_MONEY, default=Decimal("0"))
    net_disposal_value: Mapped[Decimal] = mapped_column(_MONEY, default=Decimal("0"))
    book_value_at_disposal: Mapped[Decimal] = mapped_column(_MONEY, default=Decimal("0"))
    gain_loss: Mapped[Decimal] = mapped_column(_MONEY, default=Decimal("0"))
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )

    asset: Mapped[Asset] = relationship()


# ═════════════════════════════════════════════════════════════════════
# AssetRetirement
# ═════════════════════════════════════════════════════════════════════


class AssetRetirement(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "asset_retirements"

    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("assets.id"), unique=True, nullable=False,
    )
    business_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"), nullable=False,
    )
    retirement_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    reason: Mapped[RetirementReason] = mapped_column(
        sa.Enum(RetirementReason, name="retirement_reason", create_type=False),
        nullable=False,
    )
    retirement_method: Mapped[RetirementMethod] = mapped_column(
        sa.Enum(RetirementMethod, name="retirement_method", create_type=False),
        nullable=False,
    )
    condition: Mapped[Optional[AssetCondition]] = mapped_column(
        sa.Enum(AssetCondition, name="asset_condition", create_type=False),
    )
    replacement_asset_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("assets.id"),
    )
    disposal_planned: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    disposal_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )

    asset: Mapped[Asset] = relationship(foreign_keys=[asset_id])


# ═════════════════════════════════════════════════════════════════════
# AssetHistory
# ═════════════════════════════════════════════════════════════════════


class AssetHistory(Base):
    """Append-only lifecycle log of an asset."""

    __tablename__ = "asset_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("assets.id"), nullable=False, index=True,
    )
    action: Mapped[AssetHistoryAction] = mapped_column(
        sa.Enum(AssetHistoryAction, name="asset_history_action", create_type=False),
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    previous_value: Mapped[Optional[str]] = mapped_column(sa.Text)
    new_value: Mapped[Optional[str]] = mapped_column(sa.Text)
    performed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )
    business_unit_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"),
    )
    # "metadata" is reserved on declarative classes
    details: Mapped[Optional[dict]] = mapped_column("metadata", JSONB)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    asset: Mapped[Asset] = relationship(back_populates="history")


# ═════════════════════════════════════════════════════════════════════
# AssetDepreciation
# ═════════════════════════════════════════════════════════════════════


class AssetDepreciation(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One period's depreciation charge against an asset."""

    __tablename__ = "asset_depreciation"
    __table_args__ = (
        sa.Index("ix_asset_depreciation_asset_date", "asset_id", "depreciation_date"),
    )

    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("assets.id"), nullable=False,
    )
    depreciation_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    period_start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    period_end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    book_value_start: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    depreciation_amount: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    book_value_end: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    accumulated_depreciation: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    method: Mapped[DepreciationMethod] = mapped_column(
        sa.Enum(DepreciationMethod, name="depreciation_method", create_type=False),
        nullable=False,
    )
    calculation_basis: Mapped[Optional[dict]] = mapped_column(JSONB)
    units_in_period: Mapped[Optional[int]] = mapped_column(sa.Integer)
    is_adjustment: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    calculated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )

    asset: Mapped[Asset] = relationship()
