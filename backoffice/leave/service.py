"""Leave service layer — leave types, requests, balances and yearly replenishment.

Business logic:
  - Leave day computation with half-day sessions
  - Submit / edit / cancel of the requester's own pending requests
  - Per-user balances with remaining days
  - Year initialisation from each type's default allocation
  - Year-end replenishment with carry-over of vacation/sick balances

Manager/HR approval of requests lives in ``backoffice.approvals``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.common.audit import create_audit_entry
from backoffice.common.constants import (
    CARRY_OVER_KEYWORDS,
    PENDING_STATUSES,
    LeaveSession,
    RequestStatus,
    UserRole,
)
from backoffice.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from backoffice.common.models import model_snapshot
from backoffice.common.pagination import PaginatedResponse, PaginationParams, paginate
from backoffice.config import settings
from backoffice.leave.models import LeaveBalance, LeaveRequest, LeaveType
from backoffice.leave.schemas import (
    EmployeeBrief,
    LeaveBalanceOut,
    LeaveBalanceUpsert,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestUpdate,
    LeaveTypeBrief,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
    ReplenishRequest,
    ReplenishResult,
    ReplenishRow,
)
from backoffice.organization.models import User

logger = logging.getLogger(__name__)

_HALF_DAY = Decimal("0.5")


def leave_days(start_date: date, end_date: date, session: LeaveSession) -> Decimal:
    """Inclusive calendar days; half-day sessions count half."""
    days = Decimal((end_date - start_date).days + 1)
    if session in (LeaveSession.MORNING, LeaveSession.AFTERNOON):
        days *= _HALF_DAY
    return days


def is_carry_over_type(name: str) -> bool:
    upper = name.upper()
    return any(keyword in upper for keyword in CARRY_OVER_KEYWORDS)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: types, requests, balances."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def build_request_response(req: LeaveRequest) -> LeaveRequestOut:
        """Build LeaveRequestOut from an ORM row loaded with user + leave_type."""
        out = LeaveRequestOut.model_validate(req)
        out.days = leave_days(req.start_date, req.end_date, req.session)
        out.employee = EmployeeBrief.model_validate(req.user)
        out.leave_type = LeaveTypeBrief.model_validate(req.leave_type)
        return out

    @staticmethod
    async def load_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(
                selectinload(LeaveRequest.user),
                selectinload(LeaveRequest.leave_type),
            )
            .execution_options(populate_existing=True)
        )
        req = result.scalars().first()
        if req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return req

    @staticmethod
    async def _get_active_leave_type(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        result = await db.execute(
            select(LeaveType).where(
                LeaveType.id == leave_type_id,
                LeaveType.is_active.is_(True),
            )
        )
        leave_type = result.scalars().first()
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    # ─────────────────────────────────────────────────────────────────
    # Leave Types
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_types(
        db: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> list[LeaveTypeOut]:
        query = select(LeaveType).order_by(LeaveType.name)
        if not include_inactive:
            query = query.where(LeaveType.is_active.is_(True))
        result = await db.execute(query)
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    @staticmethod
    async def create_leave_type(
        db: AsyncSession,
        data: LeaveTypeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveType:
        dup = await db.execute(select(LeaveType.id).where(LeaveType.name == data.name))
        if dup.first() is not None:
            raise ConflictError("name", data.name)

        leave_type = LeaveType(**data.model_dump())
        db.add(leave_type)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return leave_type

    @staticmethod
    async def update_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))

        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] != leave_type.name:
            dup = await db.execute(
                select(LeaveType.id).where(LeaveType.name == changes["name"]),
            )
            if dup.first() is not None:
                raise ConflictError("name", changes["name"])

        old_values = model_snapshot(leave_type, changes.keys())
        for field, value in changes.items():
            setattr(leave_type, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return leave_type

    # ─────────────────────────────────────────────────────────────────
    # Requests
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_leave(
        db: AsyncSession,
        user: User,
        data: LeaveRequestCreate,
    ) -> LeaveRequestOut:
        """Create a leave request in ``PENDING_MANAGER``."""
        if data.start_date > data.end_date:
            raise ValidationException({"end_date": ["End date must be on or after start date."]})
        await LeaveService._get_active_leave_type(db, data.leave_type_id)

        leave_req = LeaveRequest(
            user_id=user.id,
            leave_type_id=data.leave_type_id,
            start_date=data.start_date,
            end_date=data.end_date,
            session=data.session,
            reason=data.reason,
            status=RequestStatus.PENDING_MANAGER,
        )
        db.add(leave_req)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=user.id,
            business_unit_id=user.business_unit_id,
            new_values=model_snapshot(leave_req),
        )

        leave_req = await LeaveService.load_request(db, leave_req.id)
        return LeaveService.build_request_response(leave_req)

    @staticmethod
    async def update_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        user: User,
        data: LeaveRequestUpdate,
    ) -> LeaveRequestOut:
        """Owner edit, allowed only while pending and before any manager action."""
        leave_req = await LeaveService.load_request(db, request_id)
        if leave_req.user_id != user.id:
            raise ForbiddenException("You can only edit your own leave requests.")
        if leave_req.status not in PENDING_STATUSES or leave_req.manager_action_at is not None:
            raise BusinessRuleException(
                "Leave request can no longer be edited once a manager has acted on it.",
            )

        changes = data.model_dump(exclude_unset=True)
        start = changes.get("start_date", leave_req.start_date)
        end = changes.get("end_date", leave_req.end_date)
        if start > end:
            raise ValidationException({"end_date": ["End date must be on or after start date."]})
        if "leave_type_id" in changes:
            await LeaveService._get_active_leave_type(db, changes["leave_type_id"])

        old_values = model_snapshot(leave_req, changes.keys())
        for field, value in changes.items():
            setattr(leave_req, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=user.id,
            business_unit_id=user.business_unit_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        leave_req = await LeaveService.load_request(db, leave_req.id)
        return LeaveService.build_request_response(leave_req)

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        user: User,
    ) -> LeaveRequestOut:
        leave_req = await LeaveService.load_request(db, request_id)
        if leave_req.user_id != user.id:
            raise ForbiddenException("You can only cancel your own leave requests.")
        if leave_req.status not in PENDING_STATUSES:
            raise BusinessRuleException(
                f"Only pending requests can be cancelled (current: {leave_req.status.value}).",
            )

        old_status = leave_req.status.value
        leave_req.status = RequestStatus.CANCELLED
        await db.flush()

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=user.id,
            business_unit_id=user.business_unit_id,
            old_values={"status": old_status},
            new_values={"status": RequestStatus.CANCELLED.value},
        )
        return LeaveService.build_request_response(leave_req)

    @staticmethod
    async def list_my_requests(
        db: AsyncSession,
        user_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        status: Optional[RequestStatus] = None,
        year: Optional[int] = None,
    ) -> PaginatedResponse:
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.user_id == user_id)
            .options(
                selectinload(LeaveRequest.user),
                selectinload(LeaveRequest.leave_type),
            )
            .order_by(LeaveRequest.created_at.desc())
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if year is not None:
            query = query.where(
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
        return await paginate(
            db, query, pagination,
            model=LeaveRequest,
            transform=LeaveService.build_request_response,
        )

    @staticmethod
    async def get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        viewer: User,
    ) -> LeaveRequestOut:
        """Visible to the owner, the owner's approver, HR and ADMIN."""
        leave_req = await LeaveService.load_request(db, request_id)
        owner = leave_req.user
        allowed = (
            viewer.role == UserRole.ADMIN
            or owner.id == viewer.id
            or owner.approver_id == viewer.id
            or (viewer.role == UserRole.HR and owner.business_unit_id == viewer.business_unit_id)
        )
        if not allowed:
            raise ForbiddenException("You do not have access to this leave request.")
        return LeaveService.build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _build_balance(bal: LeaveBalance) -> LeaveBalanceOut:
        out = LeaveBalanceOut.model_validate(bal)
        out.leave_type = LeaveTypeBrief.model_validate(bal.leave_type)
        out.employee = EmployeeBrief.model_validate(bal.user)
        return out

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        user_id: uuid.UUID,
        year: int,
    ) -> list[LeaveBalanceOut]:
        result = await db.execute(
            select(LeaveBalance)
            .where(LeaveBalance.user_id == user_id, LeaveBalance.year == year)
            .options(selectinload(LeaveBalance.leave_type), selectinload(LeaveBalance.user))
            .order_by(LeaveBalance.leave_type_id)
        )
        return [LeaveService._build_balance(b) for b in result.scalars().all()]

    @staticmethod
    async def list_business_unit_balances(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        year: int,
    ) -> list[LeaveBalanceOut]:
        result = await db.execute(
            select(LeaveBalance)
            .join(User, LeaveBalance.user_id == User.id)
            .where(User.business_unit_id == business_unit_id, LeaveBalance.year == year)
            .options(selectinload(LeaveBalance.leave_type), selectinload(LeaveBalance.user))
            .order_by(User.name)
        )
        return [LeaveService._build_balance(b) for b in result.scalars().all()]

    @staticmethod
    async def find_balance(
        db: AsyncSession,
        user_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> Optional[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.user_id == user_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def upsert_balance(
        db: AsyncSession,
        data: LeaveBalanceUpsert,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveBalance:
        """Create a balance, or adjust the existing one for (user, type, year)."""
        user = await db.get(User, data.user_id)
        if user is None:
            raise NotFoundException("User", str(data.user_id))
        if await db.get(LeaveType, data.leave_type_id) is None:
            raise NotFoundException("LeaveType", str(data.leave_type_id))

        balance = await LeaveService.find_balance(db, data.user_id, data.leave_type_id, data.year)
        old_values: Optional[dict[str, Any]] = None
        if balance is None:
            balance = LeaveBalance(
                user_id=data.user_id,
                leave_type_id=data.leave_type_id,
                year=data.year,
                allocated_days=data.allocated_days,
                used_days=data.used_days or Decimal("0"),
            )
            db.add(balance)
            action = "create"
        else:
            old_values = model_snapshot(balance, ["allocated_days", "used_days"])
            balance.allocated_days = data.allocated_days
            if data.used_days is not None:
                balance.used_days = data.used_days
            action = "adjust"
        await db.flush()

        await create_audit_entry(
            db,
            action=action,
            entity_type="leave_balance",
            entity_id=balance.id,
            actor_id=actor_id,
            business_unit_id=user.business_unit_id,
            old_values=old_values,
            new_values=model_snapshot(balance, ["allocated_days", "used_days", "year"]),
        )
        return balance

    @staticmethod
    async def _active_users(db: AsyncSession, business_unit_id: uuid.UUID) -> Sequence[User]:
        result = await db.execute(
            select(User)
            .where(User.business_unit_id == business_unit_id, User.is_active.is_(True))
            .order_by(User.employee_id)
        )
        return result.scalars().all()

    @staticmethod
    async def _active_types(db: AsyncSession) -> Sequence[LeaveType]:
        result = await db.execute(
            select(LeaveType).where(LeaveType.is_active.is_(True)).order_by(LeaveType.name)
        )
        return result.scalars().all()

    @staticmethod
    async def initialize_balances(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        year: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> dict[str, int]:
        """Give every active user of the unit a balance per active leave type.

        Existing balances are left untouched.
        """
        users = await LeaveService._active_users(db, business_unit_id)
        leave_types = await LeaveService._active_types(db)

        existing = await db.execute(
            select(LeaveBalance.user_id, LeaveBalance.leave_type_id).where(
                LeaveBalance.year == year,
                LeaveBalance.user_id.in_([u.id for u in users]),
            )
        )
        have = {(row[0], row[1]) for row in existing.all()}

        created = skipped = 0
        for user in users:
            for lt in leave_types:
                if (user.id, lt.id) in have:
                    skipped += 1
                    continue
                db.add(
                    LeaveBalance(
                        user_id=user.id,
                        leave_type_id=lt.id,
                        year=year,
                        allocated_days=lt.default_allocated_days,
                        used_days=Decimal("0"),
                    )
                )
                created += 1
        await db.flush()

        await create_audit_entry(
            db,
            action="initialize_balances",
            entity_type="business_unit",
            entity_id=business_unit_id,
            actor_id=actor_id,
            business_unit_id=business_unit_id,
            new_values={"year": year, "created": created, "skipped": skipped},
        )
        logger.info(
            "Initialised %d leave balances for business unit %s, year %d (%d skipped)",
            created, business_unit_id, year, skipped,
        )
        return {"created": created, "skipped": skipped}

    # ─────────────────────────────────────────────────────────────────
    # Replenishment
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def compute_replenishment(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        from_year: int,
        to_year: int,
    ) -> list[ReplenishRow]:
        """Rows of the new year's allocation, without writing anything."""
        guideline = Decimal(settings.LEAVE_CARRY_OVER_GUIDELINE_DAYS)
        users = await LeaveService._active_users(db, business_unit_id)
        leave_types = await LeaveService._active_types(db)

        prior = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.year == from_year,
                LeaveBalance.user_id.in_([u.id for u in users]),
            )
        )
        prior_by_key = {(b.user_id, b.leave_type_id): b for b in prior.scalars().all()}

        rows: list[ReplenishRow] = []
        for user in users:
            for lt in leave_types:
                previous = prior_by_key.get((user.id, lt.id))
                remaining = previous.remaining_days if previous else Decimal("0")
                carry = max(remaining, Decimal("0")) if is_carry_over_type(lt.name) else Decimal("0")
                rows.append(
                    ReplenishRow(
                        user_id=user.id,
                        employee_id=user.employee_id,
                        employee_name=user.name,
                        leave_type_id=lt.id,
                        leave_type_name=lt.name,
                        remaining_days=remaining,
                        carry_over=carry,
                        new_allocation=Decimal(lt.default_allocated_days or 0) + carry,
                        exceeds_guideline=carry > guideline,
                    )
                )
        return rows

    @staticmethod
    async def preview_replenish(
        db: AsyncSession,
        data: ReplenishRequest,
    ) -> ReplenishResult:
        rows = await LeaveService.compute_replenishment(
            db, data.business_unit_id, data.from_year, data.to_year,
        )
        return ReplenishResult(
            from_year=data.from_year,
            to_year=data.to_year,
            created=0,
            rows=rows,
            excess_count=sum(1 for r in rows if r.exceeds_guideline),
        )

    @staticmethod
    async def replenish(
        db: AsyncSession,
        data: ReplenishRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ReplenishResult:
        """Create ``to_year`` balances carrying over eligible remaining days."""
        existing = await db.execute(
            select(LeaveBalance.id)
            .join(User, LeaveBalance.user_id == User.id)
            .where(
                User.business_unit_id == data.business_unit_id,
                LeaveBalance.year == data.to_year,
            )
            .limit(1)
        )
        if existing.first() is not None:
            raise BusinessRuleException(
                f"Leave balances for {data.to_year} already exist for this business unit.",
            )

        rows = await LeaveService.compute_replenishment(
            db, data.business_unit_id, data.from_year, data.to_year,
        )
        excess = [r for r in rows if r.exceeds_guideline]
        if excess and not data.acknowledge_excess:
            names = sorted({f"{r.employee_name} ({r.employee_id})" for r in excess})
            raise BusinessRuleException(
                f"Carry-over exceeds the {settings.LEAVE_CARRY_OVER_GUIDELINE_DAYS}-day "
                f"guideline for: {', '.join(names)}. Pass acknowledge_excess=true to proceed.",
            )

        for row in rows:
            db.add(
                LeaveBalance(
                    user_id=row.user_id,
                    leave_type_id=row.leave_type_id,
                    year=data.to_year,
                    allocated_days=row.new_allocation,
                    used_days=Decimal("0"),
                )
            )
        await db.flush()

        await create_audit_entry(
            db,
            action="replenish",
            entity_type="business_unit",
            entity_id=data.business_unit_id,
            actor_id=actor_id,
            business_unit_id=data.business_unit_id,
            new_values={
                "from_year": data.from_year,
                "to_year": data.to_year,
                "created": len(rows),
                "excess_count": len(excess),
            },
        )
        logger.info(
            "Replenished %d leave balances %d→%d for business unit %s",
            len(rows), data.from_year, data.to_year, data.business_unit_id,
        )
        return ReplenishResult(
            from_year=data.from_year,
            to_year=data.to_year,
            created=len(rows),
            rows=rows,
            excess_count=len(excess),
        )


def current_year() -> int:
    return datetime.now(timezone.utc).year
