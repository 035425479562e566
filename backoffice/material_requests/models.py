"""Material request ORM models: MaterialRequest, MaterialRequestItem."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.common.constants import ApprovalStatus, MRSRequestStatus, RequestType
from backoffice.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from backoffice.database import Base

if TYPE_CHECKING:
    from backoffice.organization.models import BusinessUnit, Department, User


def _user_fk() -> sa.ForeignKey:
    return sa.ForeignKey("users.id", ondelete="SET NULL")


class MaterialRequest(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Procurement document routed through review, recommending and final approval."""

    __tablename__ = "material_requests"
    __table_args__ = (
        sa.Index("ix_material_requests_bu_status", "business_unit_id", "status"),
    )

    doc_no: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    series: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    type: Mapped[RequestType] = mapped_column(
        sa.Enum(RequestType, name="mrs_request_type", create_type=False),
        nullable=False,
    )
    status: Mapped[MRSRequestStatus] = mapped_column(
        sa.Enum(MRSRequestStatus, name="mrs_request_status", create_type=False),
        default=MRSRequestStatus.DRAFT,
        server_default=MRSRequestStatus.DRAFT.value,
        nullable=False,
    )

    # ── Dates ───────────────────────────────────────────────────────
    date_prepared: Mapped[date] = mapped_column(sa.Date, nullable=False)
    date_required: Mapped[date] = mapped_column(sa.Date, nullable=False)
    date_approved: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    date_posted: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    date_received: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    date_revised: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    # ── Placement ───────────────────────────────────────────────────
    business_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("business_units.id"), nullable=False,
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"),
    )
    requested_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False,
    )

    # ── Content ─────────────────────────────────────────────────────
    charge_to: Mapped[Optional[str]] = mapped_column(sa.String(200))
    bldg_code: Mapped[Optional[str]] = mapped_column(sa.String(50))
    purpose: Mapped[Optional[str]] = mapped_column(sa.Text)
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    deliver_to: Mapped[Optional[str]] = mapped_column(sa.String(200))
    is_store_use: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    freight: Mapped[Decimal] = mapped_column(
        sa.Numeric(15, 2), default=Decimal("0"), server_default=sa.text("0"),
    )
    discount: Mapped[Decimal] = mapped_column(
        sa.Numeric(15, 2), default=Decimal("0"), server_default=sa.text("0"),
    )
    total: Mapped[Decimal] = mapped_column(
        sa.Numeric(15, 2), default=Decimal("0"), server_default=sa.text("0"),
    )

    # ── Review (store use) ──────────────────────────────────────────
    reviewer_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), _user_fk())
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    review_status: Mapped[Optional[ApprovalStatus]] = mapped_column(
        sa.Enum(ApprovalStatus, name="approval_status", create_type=False),
    )
    review_remarks: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Recommending approval ───────────────────────────────────────
    rec_approver_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), _user_fk())
    rec_approval_status: Mapped[Optional[ApprovalStatus]] = mapped_column(
        sa.Enum(ApprovalStatus, name="approval_status", create_type=False),
    )
    rec_approval_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    rec_approval_remarks: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Final approval ──────────────────────────────────────────────
    final_approver_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), _user_fk())
    final_approval_status: Mapped[Optional[ApprovalStatus]] = mapped_column(
        sa.Enum(ApprovalStatus, name="approval_status", create_type=False),
    )
    final_approval_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    final_approval_remarks: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Serving ─────────────────────────────────────────────────────
    served_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    served_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), _user_fk())
    served_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    supplier_bp_code: Mapped[Optional[str]] = mapped_column(sa.String(50))
    supplier_name: Mapped[Optional[str]] = mapped_column(sa.String(200))
    purchase_order_number: Mapped[Optional[str]] = mapped_column(sa.String(50))

    # ── Posting ─────────────────────────────────────────────────────
    confirmation_no: Mapped[Optional[str]] = mapped_column(sa.String(50))
    processed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), _user_fk())
    processed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    # ── Acknowledgement ─────────────────────────────────────────────
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    acknowledged_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), _user_fk(),
    )
    signature_data: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Relationships ───────────────────────────────────────────────
    business_unit: Mapped["BusinessUnit"] = relationship()
    department: Mapped[Optional["Department"]] = relationship()
    requested_by: Mapped["User"] = relationship(foreign_keys=[requested_by_id])
    reviewer: Mapped[Optional["User"]] = relationship(foreign_keys=[reviewer_id])
    rec_approver: Mapped[Optional["User"]] = relationship(foreign_keys=[rec_approver_id])
    final_approver: Mapped[Optional["User"]] = relationship(foreign_keys=[final_approver_id])
    items: Mapped[list[MaterialRequestItem]] = relationship(
        back_populates="material_request",
        cascade="all, delete-orphan",
        order_by="MaterialRequestItem.created_at",
    )

    def __repr__(self) -> str:
        return f"<MaterialRequest {self.doc_no} {self.status.value}>"


class MaterialRequestItem(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "material_request_items"

    material_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("material_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_code: Mapped[Optional[str]] = mapped_column(sa.String(50))
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    uom: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    unit_price: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(15, 2))
    total_price: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(15, 2))
    quantity_served: Mapped[Decimal] = mapped_column(
        sa.Numeric(12, 2), default=Decimal("0"), server_default=sa.text("0"),
    )
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)

    material_request: Mapped[MaterialRequest] = relationship(back_populates="items")

    @property
    def is_fully_served(self) -> bool:
        return Decimal(self.quantity_served or 0) >= Decimal(self.quantity)
