"""Organization service layer — business units, departments, users,
department approvers and GL accounts.

Every mutation records an audit-trail entry.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.auth.service import hash_password, revoke_all_user_sessions
from backoffice.common.audit import create_audit_entry
from backoffice.common.constants import ApproverType
from backoffice.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    NotFoundException,
)
from backoffice.common.filters import apply_filters, apply_search
from backoffice.common.models import model_snapshot
from backoffice.common.pagination import PaginatedResponse, PaginationParams, paginate
from backoffice.organization.models import (
    BusinessUnit,
    Department,
    DepartmentApprover,
    GLAccount,
    User,
)
from backoffice.organization.schemas import (
    BusinessUnitCreate,
    BusinessUnitUpdate,
    DepartmentApproverAssign,
    DepartmentCreate,
    DepartmentUpdate,
    GLAccountCreate,
    GLAccountUpdate,
    UserCreate,
    UserUpdate,
)

logger = logging.getLogger(__name__)


def _apply_changes(obj: Any, changes: dict[str, Any]) -> None:
    for field, value in changes.items():
        setattr(obj, field, value)


# ═════════════════════════════════════════════════════════════════════
# BusinessUnitService
# ═════════════════════════════════════════════════════════════════════


class BusinessUnitService:

    @staticmethod
    async def list_business_units(
        db: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> Sequence[BusinessUnit]:
        query = select(BusinessUnit).order_by(BusinessUnit.code)
        if not include_inactive:
            query = query.where(BusinessUnit.is_active.is_(True))
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def get_business_unit(db: AsyncSession, bu_id: uuid.UUID) -> BusinessUnit:
        bu = await db.get(BusinessUnit, bu_id)
        if bu is None:
            raise NotFoundException("BusinessUnit", str(bu_id))
        return bu

    @staticmethod
    async def _ensure_unique_code(
        db: AsyncSession, code: str, exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(BusinessUnit.id).where(BusinessUnit.code == code)
        if exclude_id is not None:
            query = query.where(BusinessUnit.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("code", code)

    @staticmethod
    async def create_business_unit(
        db: AsyncSession,
        data: BusinessUnitCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> BusinessUnit:
        await BusinessUnitService._ensure_unique_code(db, data.code)
        bu = BusinessUnit(**data.model_dump())
        db.add(bu)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="business_unit",
            entity_id=bu.id,
            actor_id=actor_id,
            business_unit_id=bu.id,
            new_values=data.model_dump(mode="json"),
        )
        return bu

    @staticmethod
    async def update_business_unit(
        db: AsyncSession,
        bu_id: uuid.UUID,
        data: BusinessUnitUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> BusinessUnit:
        bu = await BusinessUnitService.get_business_unit(db, bu_id)
        changes = data.model_dump(exclude_unset=True)
        if "code" in changes and changes["code"] != bu.code:
            await BusinessUnitService._ensure_unique_code(db, changes["code"], bu.id)

        old_values = model_snapshot(bu, changes.keys())
        _apply_changes(bu, changes)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="business_unit",
            entity_id=bu.id,
            actor_id=actor_id,
            business_unit_id=bu.id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return bu

    @staticmethod
    async def deactivate_business_unit(
        db: AsyncSession,
        bu_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> BusinessUnit:
        bu = await BusinessUnitService.get_business_unit(db, bu_id)
        bu.is_active = False
        await db.flush()
        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="business_unit",
            entity_id=bu.id,
            actor_id=actor_id,
            business_unit_id=bu.id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        return bu


# ═════════════════════════════════════════════════════════════════════
# DepartmentService
# ═════════════════════════════════════════════════════════════════════


class DepartmentService:

    @staticmethod
    async def list_departments(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        *,
        include_inactive: bool = False,
    ) -> Sequence[Department]:
        query = (
            select(Department)
            .where(Department.business_unit_id == business_unit_id)
            .order_by(Department.name)
        )
        if not include_inactive:
            query = query.where(Department.is_active.is_(True))
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def get_department(db: AsyncSession, dept_id: uuid.UUID) -> Department:
        dept = await db.get(Department, dept_id)
        if dept is None:
            raise NotFoundException("Department", str(dept_id))
        return dept

    @staticmethod
    async def _ensure_unique_code(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        code: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Department.id).where(
            Department.business_unit_id == business_unit_id,
            Department.code == code,
        )
        if exclude_id is not None:
            query = query.where(Department.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError(
                "code", code,
                detail=f"Department code '{code}' already exists in this business unit.",
            )

    @staticmethod
    async def create_department(
        db: AsyncSession,
        data: DepartmentCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Department:
        await BusinessUnitService.get_business_unit(db, data.business_unit_id)
        await DepartmentService._ensure_unique_code(db, data.business_unit_id, data.code)

        dept = Department(**data.model_dump())
        db.add(dept)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="department",
            entity_id=dept.id,
            actor_id=actor_id,
            business_unit_id=dept.business_unit_id,
            new_values=data.model_dump(mode="json"),
        )
        return dept

    @staticmethod
    async def update_department(
        db: AsyncSession,
        dept_id: uuid.UUID,
        data: DepartmentUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Department:
        dept = await DepartmentService.get_department(db, dept_id)
        changes = data.model_dump(exclude_unset=True)
        if "code" in changes and changes["code"] != dept.code:
            await DepartmentService._ensure_unique_code(
                db, dept.business_unit_id, changes["code"], dept.id,
            )

        old_values = model_snapshot(dept, changes.keys())
        _apply_changes(dept, changes)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="department",
            entity_id=dept.id,
            actor_id=actor_id,
            business_unit_id=dept.business_unit_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return dept

    @staticmethod
    async def deactivate_department(
        db: AsyncSession,
        dept_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Department:
        dept = await DepartmentService.get_department(db, dept_id)
        dept.is_active = False
        await db.flush()
        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="department",
            entity_id=dept.id,
            actor_id=actor_id,
            business_unit_id=dept.business_unit_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        return dept


# ═════════════════════════════════════════════════════════════════════
# UserService
# ═════════════════════════════════════════════════════════════════════


class UserService:
    """Employee accounts within a business unit."""

    @staticmethod
    async def list_users(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        business_unit_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = select(User).order_by(User.name)
        query = apply_filters(
            query,
            User,
            {
                "business_unit_id": business_unit_id,
                "department_id": department_id,
                "role": role,
                "is_active": is_active,
            },
        )
        query = apply_search(query, User, search, ["name", "employee_id", "email"])
        return await paginate(db, query, pagination, model=User)

    @staticmethod
    async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
        result = await db.execute(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.department), selectinload(User.business_unit)),
        )
        user = result.scalars().first()
        if user is None:
            raise NotFoundException("User", str(user_id))
        return user

    @staticmethod
    async def _validate_placement(
        db: AsyncSession,
        business_unit_id: Optional[uuid.UUID],
        department_id: Optional[uuid.UUID],
        approver_id: Optional[uuid.UUID],
        user_id: Optional[uuid.UUID] = None,
    ) -> None:
        if department_id is not None:
            dept = await DepartmentService.get_department(db, department_id)
            if business_unit_id is not None and dept.business_unit_id != business_unit_id:
                raise BusinessRuleException(
                    "Department does not belong to the user's business unit.",
                )
        if approver_id is not None:
            if user_id is not None and approver_id == user_id:
                raise BusinessRuleException("A user cannot be their own approver.")
            if await db.get(User, approver_id) is None:
                raise NotFoundException("User", str(approver_id))

    @staticmethod
    async def create_user(
        db: AsyncSession,
        data: UserCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> User:
        existing = await db.execute(
            select(User.id).where(User.employee_id == data.employee_id),
        )
        if existing.first() is not None:
            raise ConflictError("employee_id", data.employee_id)
        if data.email:
            dup_email = await db.execute(select(User.id).where(User.email == data.email))
            if dup_email.first() is not None:
                raise ConflictError("email", data.email)

        await BusinessUnitService.get_business_unit(db, data.business_unit_id)
        await UserService._validate_placement(
            db, data.business_unit_id, data.department_id, data.approver_id,
        )

        user = User(
            **data.model_dump(exclude={"password"}),
            password_hash=hash_password(data.password),
        )
        db.add(user)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            business_unit_id=user.business_unit_id,
            new_values=data.model_dump(mode="json", exclude={"password"}),
        )
        logger.info("Created user %s in business unit %s", user.employee_id, user.business_unit_id)
        return user

    @staticmethod
    async def update_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        data: UserUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> User:
        user = await UserService.get_user(db, user_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("email") and changes["email"] != user.email:
            dup = await db.execute(
                select(User.id).where(User.email == changes["email"], User.id != user.id),
            )
            if dup.first() is not None:
                raise ConflictError("email", changes["email"])

        await UserService._validate_placement(
            db,
            user.business_unit_id,
            changes.get("department_id"),
            changes.get("approver_id"),
            user_id=user.id,
        )

        old_values = model_snapshot(user, changes.keys())
        _apply_changes(user, changes)
        await db.flush()

        if changes.get("is_active") is False:
            await revoke_all_user_sessions(db, user.id)

        await create_audit_entry(
            db,
            action="update",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            business_unit_id=user.business_unit_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return user

    @staticmethod
    async def reset_password(
        db: AsyncSession,
        user_id: uuid.UUID,
        new_password: str,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> User:
        user = await UserService.get_user(db, user_id)
        user.password_hash = hash_password(new_password)
        await revoke_all_user_sessions(db, user.id)

        await create_audit_entry(
            db,
            action="reset_password",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            business_unit_id=user.business_unit_id,
        )
        return user

    @staticmethod
    async def deactivate_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> User:
        user = await UserService.get_user(db, user_id)
        user.is_active = False
        await revoke_all_user_sessions(db, user.id)

        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            business_unit_id=user.business_unit_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        return user


# ═════════════════════════════════════════════════════════════════════
# DepartmentApproverService
# ═════════════════════════════════════════════════════════════════════


class DepartmentApproverService:
    """Recommending / final approvers for a department's material requests."""

    @staticmethod
    async def list_approvers(
        db: AsyncSession,
        *,
        department_id: Optional[uuid.UUID] = None,
        business_unit_id: Optional[uuid.UUID] = None,
    ) -> Sequence[DepartmentApprover]:
        query = (
            select(DepartmentApprover)
            .options(selectinload(DepartmentApprover.employee))
            .order_by(DepartmentApprover.created_at)
        )
        if department_id is not None:
            query = query.where(DepartmentApprover.department_id == department_id)
        if business_unit_id is not None:
            query = query.join(Department).where(
                Department.business_unit_id == business_unit_id,
            )
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def get_approver(db: AsyncSession, approver_id: uuid.UUID) -> DepartmentApprover:
        result = await db.execute(
            select(DepartmentApprover)
            .where(DepartmentApprover.id == approver_id)
            .options(selectinload(DepartmentApprover.department)),
        )
        approver = result.scalars().first()
        if approver is None:
            raise NotFoundException("DepartmentApprover", str(approver_id))
        return approver

    @staticmethod
    async def assign_approver(
        db: AsyncSession,
        data: DepartmentApproverAssign,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> list[DepartmentApprover]:
        """Assign one or more approver types; types already held are skipped."""
        dept = await DepartmentService.get_department(db, data.department_id)
        employee = await db.get(User, data.employee_id)
        if employee is None:
            raise NotFoundException("User", str(data.employee_id))

        result = await db.execute(
            select(DepartmentApprover.approver_type).where(
                DepartmentApprover.department_id == data.department_id,
                DepartmentApprover.employee_id == data.employee_id,
            ),
        )
        existing_types = {row[0] for row in result.all()}
        new_types = [t for t in dict.fromkeys(data.approver_types) if t not in existing_types]
        if not new_types:
            raise ConflictError(
                "approver_types",
                ",".join(t.value for t in data.approver_types),
                detail="Employee already holds every requested approver type in this department.",
            )

        created: list[DepartmentApprover] = []
        for approver_type in new_types:
            approver = DepartmentApprover(
                department_id=data.department_id,
                employee_id=data.employee_id,
                approver_type=approver_type,
            )
            db.add(approver)
            created.append(approver)
        await db.flush()

        for approver in created:
            await create_audit_entry(
                db,
                action="assign",
                entity_type="department_approver",
                entity_id=approver.id,
                actor_id=actor_id,
                business_unit_id=dept.business_unit_id,
                new_values=model_snapshot(approver),
            )
        return created

    @staticmethod
    async def toggle_approver(
        db: AsyncSession,
        approver_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> DepartmentApprover:
        approver = await DepartmentApproverService.get_approver(db, approver_id)
        approver.is_active = not approver.is_active
        await db.flush()
        await create_audit_entry(
            db,
            action="toggle",
            entity_type="department_approver",
            entity_id=approver.id,
            actor_id=actor_id,
            business_unit_id=approver.department.business_unit_id,
            old_values={"is_active": not approver.is_active},
            new_values={"is_active": approver.is_active},
        )
        return approver

    @staticmethod
    async def delete_approver(
        db: AsyncSession,
        approver_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        approver = await DepartmentApproverService.get_approver(db, approver_id)
        snapshot = model_snapshot(approver)
        bu_id = approver.department.business_unit_id
        await db.delete(approver)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="department_approver",
            entity_id=approver_id,
            actor_id=actor_id,
            business_unit_id=bu_id,
            old_values=snapshot,
        )

    @staticmethod
    async def active_approvers(
        db: AsyncSession,
        department_id: uuid.UUID,
        approver_type: ApproverType,
    ) -> Sequence[User]:
        """Active users holding *approver_type* for *department_id*."""
        result = await db.execute(
            select(User)
            .join(DepartmentApprover, DepartmentApprover.employee_id == User.id)
            .where(
                DepartmentApprover.department_id == department_id,
                DepartmentApprover.approver_type == approver_type,
                DepartmentApprover.is_active.is_(True),
                User.is_active.is_(True),
            )
            .order_by(User.name),
        )
        return result.scalars().all()

    @staticmethod
    async def is_department_approver(
        db: AsyncSession,
        department_id: Optional[uuid.UUID],
        user_id: uuid.UUID,
        approver_type: ApproverType,
    ) -> bool:
        if department_id is None:
            return False
        result = await db.execute(
            select(func.count()).select_from(DepartmentApprover).where(
                DepartmentApprover.department_id == department_id,
                DepartmentApprover.employee_id == user_id,
                DepartmentApprover.approver_type == approver_type,
                DepartmentApprover.is_active.is_(True),
            ),
        )
        return (result.scalar() or 0) > 0


# ═════════════════════════════════════════════════════════════════════
# GLAccountService
# ═════════════════════════════════════════════════════════════════════


class GLAccountService:

    @staticmethod
    async def list_accounts(
        db: AsyncSession,
        *,
        account_type: Optional[str] = None,
        include_inactive: bool = False,
    ) -> Sequence[GLAccount]:
        query = select(GLAccount).order_by(GLAccount.account_code)
        if account_type:
            query = query.where(GLAccount.account_type == account_type)
        if not include_inactive:
            query = query.where(GLAccount.is_active.is_(True))
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def get_account(db: AsyncSession, account_id: uuid.UUID) -> GLAccount:
        account = await db.get(GLAccount, account_id)
        if account is None:
            raise NotFoundException("GLAccount", str(account_id))
        return account

    @staticmethod
    async def create_account(
        db: AsyncSession,
        data: GLAccountCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> GLAccount:
        dup = await db.execute(
            select(GLAccount.id).where(GLAccount.account_code == data.account_code),
        )
        if dup.first() is not None:
            raise ConflictError("account_code", data.account_code)

        account = GLAccount(**data.model_dump())
        db.add(account)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="gl_account",
            entity_id=account.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return account

    @staticmethod
    async def update_account(
        db: AsyncSession,
        account_id: uuid.UUID,
        data: GLAccountUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> GLAccount:
        account = await GLAccountService.get_account(db, account_id)
        changes = data.model_dump(exclude_unset=True)
        old_values = model_snapshot(account, changes.keys())
        _apply_changes(account, changes)
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="gl_account",
            entity_id=account.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return account

    @staticmethod
    async def toggle_account(
        db: AsyncSession,
        account_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> GLAccount:
        account = await GLAccountService.get_account(db, account_id)
        account.is_active = not account.is_active
        await db.flush()
        await create_audit_entry(
            db,
            action="toggle",
            entity_type="gl_account",
            entity_id=account.id,
            actor_id=actor_id,
            old_values={"is_active": not account.is_active},
            new_values={"is_active": account.is_active},
        )
        return account
