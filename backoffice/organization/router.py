"""Organization router — business units, departments, users, department
approvers and GL accounts.

Routes:
    /business-units              — List, create business units (ADMIN)
    /business-units/{id}         — Get, update, deactivate
    /departments                 — List by business unit, create
    /departments/{id}            — Get, update, deactivate
    /users                       — List (searchable), create
    /users/{id}                  — Get, update, deactivate
    /users/{id}/reset-password   — Set a new password
    /department-approvers        — List, assign approver types
    /department-approvers/lookup — Active approvers of a department by type
    /gl-accounts                 — List, create, update, toggle
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import (
    ensure_business_unit_access,
    get_current_user,
    require_role,
)
from backoffice.common.constants import ApproverType, UserRole
from backoffice.common.pagination import PaginationParams
from backoffice.database import get_db
from backoffice.organization.models import User
from backoffice.organization.schemas import (
    BusinessUnitCreate,
    BusinessUnitResponse,
    BusinessUnitUpdate,
    DepartmentApproverAssign,
    DepartmentApproverResponse,
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    GLAccountCreate,
    GLAccountResponse,
    GLAccountUpdate,
    PasswordReset,
    UserBrief,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from backoffice.organization.service import (
    BusinessUnitService,
    DepartmentApproverService,
    DepartmentService,
    GLAccountService,
    UserService,
)


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

business_units_router = APIRouter(prefix="", tags=["business-units"])
departments_router = APIRouter(prefix="", tags=["departments"])
users_router = APIRouter(prefix="", tags=["users"])
approvers_router = APIRouter(prefix="", tags=["department-approvers"])
gl_accounts_router = APIRouter(prefix="", tags=["gl-accounts"])


def _dump(schema, obj) -> dict:
    return schema.model_validate(obj).model_dump(mode="json")


# ═════════════════════════════════════════════════════════════════════
# Business units
# ═════════════════════════════════════════════════════════════════════


@business_units_router.get("")
async def list_business_units(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    units = await BusinessUnitService.list_business_units(
        db, include_inactive=include_inactive,
    )
    if current_user.role != UserRole.ADMIN:
        units = [u for u in units if u.id == current_user.business_unit_id]
    return {"data": [_dump(BusinessUnitResponse, u) for u in units]}


@business_units_router.post("", status_code=201)
async def create_business_unit(
    body: BusinessUnitCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    bu = await BusinessUnitService.create_business_unit(db, body, actor_id=current_user.id)
    return _dump(BusinessUnitResponse, bu)


@business_units_router.get("/{bu_id}")
async def get_business_unit(
    bu_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_business_unit_access(current_user, bu_id)
    bu = await BusinessUnitService.get_business_unit(db, bu_id)
    return _dump(BusinessUnitResponse, bu)


@business_units_router.patch("/{bu_id}")
async def update_business_unit(
    bu_id: uuid.UUID,
    body: BusinessUnitUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    bu = await BusinessUnitService.update_business_unit(
        db, bu_id, body, actor_id=current_user.id,
    )
    return _dump(BusinessUnitResponse, bu)


@business_units_router.delete("/{bu_id}")
async def deactivate_business_unit(
    bu_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    bu = await BusinessUnitService.deactivate_business_unit(
        db, bu_id, actor_id=current_user.id,
    )
    return _dump(BusinessUnitResponse, bu)


# ═════════════════════════════════════════════════════════════════════
# Departments
# ═════════════════════════════════════════════════════════════════════


@departments_router.get("")
async def list_departments(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    bu_id = business_unit_id or current_user.business_unit_id
    ensure_business_unit_access(current_user, bu_id)
    depts = await DepartmentService.list_departments(
        db, bu_id, include_inactive=include_inactive,
    )
    return {"data": [_dump(DepartmentResponse, d) for d in depts]}


@departments_router.post("", status_code=201)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER)),
):
    ensure_business_unit_access(current_user, body.business_unit_id)
    dept = await DepartmentService.create_department(db, body, actor_id=current_user.id)
    return _dump(DepartmentResponse, dept)


@departments_router.get("/{dept_id}")
async def get_department(
    dept_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    dept = await DepartmentService.get_department(db, dept_id)
    ensure_business_unit_access(current_user, dept.business_unit_id)
    return _dump(DepartmentResponse, dept)


@departments_router.patch("/{dept_id}")
async def update_department(
    dept_id: uuid.UUID,
    body: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER)),
):
    dept = await DepartmentService.get_department(db, dept_id)
    ensure_business_unit_access(current_user, dept.business_unit_id)
    dept = await DepartmentService.update_department(
        db, dept_id, body, actor_id=current_user.id,
    )
    return _dump(DepartmentResponse, dept)


@departments_router.delete("/{dept_id}")
async def deactivate_department(
    dept_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER)),
):
    dept = await DepartmentService.get_department(db, dept_id)
    ensure_business_unit_access(current_user, dept.business_unit_id)
    dept = await DepartmentService.deactivate_department(
        db, dept_id, actor_id=current_user.id,
    )
    return _dump(DepartmentResponse, dept)


# ═════════════════════════════════════════════════════════════════════
# Users
# ═════════════════════════════════════════════════════════════════════


@users_router.get("")
async def list_users(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Search by name, employee ID or email"),
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    bu_id = business_unit_id or current_user.business_unit_id
    ensure_business_unit_access(current_user, bu_id)
    result = await UserService.list_users(
        db,
        pagination,
        business_unit_id=bu_id,
        department_id=department_id,
        role=role,
        is_active=is_active,
        search=search,
    )
    return {
        "data": [_dump(UserResponse, u) for u in result.data],
        "meta": result.meta.model_dump(),
    }


@users_router.post("", status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.HR)),
):
    ensure_business_unit_access(current_user, body.business_unit_id)
    user = await UserService.create_user(db, body, actor_id=current_user.id)
    return _dump(UserResponse, user)


@users_router.get("/{user_id}")
async def get_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = await UserService.get_user(db, user_id)
    ensure_business_unit_access(current_user, user.business_unit_id)
    return _dump(UserResponse, user)


@users_router.patch("/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.HR)),
):
    user = await UserService.get_user(db, user_id)
    ensure_business_unit_access(current_user, user.business_unit_id)
    user = await UserService.update_user(db, user_id, body, actor_id=current_user.id)
    return _dump(UserResponse, user)


@users_router.post("/{user_id}/reset-password")
async def reset_password(
    user_id: uuid.UUID,
    body: PasswordReset,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.HR)),
):
    user = await UserService.get_user(db, user_id)
    ensure_business_unit_access(current_user, user.business_unit_id)
    await UserService.reset_password(
        db, user_id, body.new_password, actor_id=current_user.id,
    )
    return {"message": "Password updated"}


@users_router.delete("/{user_id}")
async def deactivate_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.HR)),
):
    user = await UserService.get_user(db, user_id)
    ensure_business_unit_access(current_user, user.business_unit_id)
    user = await UserService.deactivate_user(db, user_id, actor_id=current_user.id)
    return _dump(UserResponse, user)


# ═════════════════════════════════════════════════════════════════════
# Department approvers
# ═════════════════════════════════════════════════════════════════════


@approvers_router.get("")
async def list_department_approvers(
    department_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    bu_id = None
    if department_id is not None:
        dept = await DepartmentService.get_department(db, department_id)
        ensure_business_unit_access(current_user, dept.business_unit_id)
    elif current_user.role != UserRole.ADMIN:
        bu_id = current_user.business_unit_id

    approvers = await DepartmentApproverService.list_approvers(
        db, department_id=department_id, business_unit_id=bu_id,
    )
    return {"data": [_dump(DepartmentApproverResponse, a) for a in approvers]}


@approvers_router.get("/lookup")
async def lookup_department_approvers(
    department_id: uuid.UUID = Query(...),
    approver_type: ApproverType = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    dept = await DepartmentService.get_department(db, department_id)
    ensure_business_unit_access(current_user, dept.business_unit_id)
    users = await DepartmentApproverService.active_approvers(db, department_id, approver_type)
    return {"data": [_dump(UserBrief, u) for u in users]}


@approvers_router.post("", status_code=201)
async def assign_department_approver(
    body: DepartmentApproverAssign,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER)),
):
    dept = await DepartmentService.get_department(db, body.department_id)
    ensure_business_unit_access(current_user, dept.business_unit_id)
    created = await DepartmentApproverService.assign_approver(
        db, body, actor_id=current_user.id,
    )
    return {
        "data": [
            {
                "id": str(a.id),
                "department_id": str(a.department_id),
                "employee_id": str(a.employee_id),
                "approver_type": a.approver_type.value,
                "is_active": a.is_active,
            }
            for a in created
        ],
        "message": f"Assigned {len(created)} approver role(s)",
    }


@approvers_router.patch("/{approver_id}/toggle")
async def toggle_department_approver(
    approver_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER)),
):
    approver = await DepartmentApproverService.get_approver(db, approver_id)
    ensure_business_unit_access(current_user, approver.department.business_unit_id)
    approver = await DepartmentApproverService.toggle_approver(
        db, approver_id, actor_id=current_user.id,
    )
    return {"id": str(approver.id), "is_active": approver.is_active}


@approvers_router.delete("/{approver_id}")
async def delete_department_approver(
    approver_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER)),
):
    approver = await DepartmentApproverService.get_approver(db, approver_id)
    ensure_business_unit_access(current_user, approver.department.business_unit_id)
    await DepartmentApproverService.delete_approver(db, approver_id, actor_id=current_user.id)
    return {"message": "Approver removed"}


# ═════════════════════════════════════════════════════════════════════
# GL accounts
# ═════════════════════════════════════════════════════════════════════


@gl_accounts_router.get("")
async def list_gl_accounts(
    account_type: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    accounts = await GLAccountService.list_accounts(
        db, account_type=account_type, include_inactive=include_inactive,
    )
    return {"data": [_dump(GLAccountResponse, a) for a in accounts]}


@gl_accounts_router.post("", status_code=201)
async def create_gl_account(
    body: GLAccountCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ACCTG)),
):
    account = await GLAccountService.create_account(db, body, actor_id=current_user.id)
    return _dump(GLAccountResponse, account)


@gl_accounts_router.patch("/{account_id}")
async def update_gl_account(
    account_id: uuid.UUID,
    body: GLAccountUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ACCTG)),
):
    account = await GLAccountService.update_account(
        db, account_id, body, actor_id=current_user.id,
    )
    return _dump(GLAccountResponse, account)


@gl_accounts_router.patch("/{account_id}/toggle")
async def toggle_gl_account(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ACCTG)),
):
    account = await GLAccountService.toggle_account(db, account_id, actor_id=current_user.id)
    return _dump(GLAccountResponse, account)
