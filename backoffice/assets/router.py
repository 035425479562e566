"""Asset router — categories, asset records and lifecycle actions.

Reads are open to any user of the business unit; writes need ACCTG (or ADMIN).
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.assets.schemas import (
    AssetCategoryCreate,
    AssetCategoryOut,
    AssetCategoryUpdate,
    AssetCreate,
    AssetDetail,
    AssetOut,
    AssetStatusChange,
    AssetUpdate,
    DeployAssetsRequest,
    DeploymentDecision,
    DeploymentOut,
    DeployResult,
    DisposeAssetsRequest,
    DisposeResult,
    PublicAssetOut,
    RetireAssetsRequest,
    RetireResult,
    ReturnAssetsRequest,
    TransferAssetsRequest,
    TransferResult,
)
from backoffice.assets.service import (
    AssetCategoryService,
    AssetService,
    DeploymentService,
    DisposalService,
)
from backoffice.auth.dependencies import (
    ensure_business_unit_access,
    get_current_user,
    require_role,
)
from backoffice.common.constants import AssetStatus, DeploymentStatus, UserRole
from backoffice.common.pagination import PaginationParams
from backoffice.common.rate_limit import PUBLIC_LOOKUP_RATE_LIMIT, limiter
from backoffice.database import get_db
from backoffice.organization.models import User

router = APIRouter(prefix="", tags=["assets"])

_asset_manager = require_role(UserRole.ACCTG)


# ── Categories ──────────────────────────────────────────────────────

@router.get("/categories", response_model=list[AssetCategoryOut])
async def list_categories(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    include_inactive: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    return await AssetCategoryService.list_categories(
        db, bu_id, include_inactive=include_inactive,
    )


@router.post("/categories", response_model=AssetCategoryOut, status_code=201)
async def create_category(
    body: AssetCategoryCreate,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await AssetCategoryService.create_category(db, body, user)


@router.patch("/categories/{category_id}", response_model=AssetCategoryOut)
async def update_category(
    category_id: uuid.UUID,
    body: AssetCategoryUpdate,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    category = await AssetCategoryService.get_category(db, category_id)
    ensure_business_unit_access(user, category.business_unit_id)
    return await AssetCategoryService.update_category(db, category, body, user)


@router.post("/categories/{category_id}/toggle", response_model=AssetCategoryOut)
async def toggle_category(
    category_id: uuid.UUID,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    category = await AssetCategoryService.get_category(db, category_id)
    ensure_business_unit_access(user, category.business_unit_id)
    return await AssetCategoryService.toggle_category(db, category, user)


@router.delete("/categories/{category_id}", status_code=204)
async def delete_category(
    category_id: uuid.UUID,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    category = await AssetCategoryService.get_category(db, category_id)
    ensure_business_unit_access(user, category.business_unit_id)
    await AssetCategoryService.delete_category(db, category, user)


# ── Lifecycle actions ───────────────────────────────────────────────

@router.post("/deploy", response_model=DeployResult, status_code=201)
async def deploy_assets(
    body: DeployAssetsRequest,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await DeploymentService.deploy_assets(db, body, user)


@router.post("/return", response_model=list[DeploymentOut])
async def return_assets(
    body: ReturnAssetsRequest,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await DeploymentService.return_assets(db, body, user)


@router.post("/transfer", response_model=TransferResult)
async def transfer_assets(
    body: TransferAssetsRequest,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await DeploymentService.transfer_assets(db, body, user)


@router.post("/dispose", response_model=DisposeResult)
async def dispose_assets(
    body: DisposeAssetsRequest,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await DisposalService.dispose_assets(db, body, user)


@router.post("/retire", response_model=RetireResult)
async def retire_assets(
    body: RetireAssetsRequest,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await DisposalService.retire_assets(db, body, user)


# ── Lifecycle history ───────────────────────────────────────────────

@router.get("/deployments")
async def list_deployments(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    status: Optional[DeploymentStatus] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    result = await DeploymentService.list_deployments(
        db, bu_id, pagination, status=status, employee_id=employee_id,
    )
    return result.to_json()


@router.post("/deployments/{deployment_id}/approve", response_model=DeploymentOut)
async def approve_deployment(
    deployment_id: uuid.UUID,
    body: DeploymentDecision,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    deployment = await DeploymentService.get_deployment(db, deployment_id)
    ensure_business_unit_access(user, deployment.business_unit_id)
    return await DeploymentService.decide_deployment(
        db, deployment, user, approve=True, notes=body.notes,
    )


@router.post("/deployments/{deployment_id}/reject", response_model=DeploymentOut)
async def reject_deployment(
    deployment_id: uuid.UUID,
    body: DeploymentDecision,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    deployment = await DeploymentService.get_deployment(db, deployment_id)
    ensure_business_unit_access(user, deployment.business_unit_id)
    return await DeploymentService.decide_deployment(
        db, deployment, user, approve=False, notes=body.notes,
    )


@router.get("/disposals")
async def list_disposals(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    return (await DisposalService.list_disposals(db, bu_id, pagination)).to_json()


@router.get("/retirements")
async def list_retirements(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    return (await DisposalService.list_retirements(db, bu_id, pagination)).to_json()


# ── Assets ──────────────────────────────────────────────────────────

@router.get("")
async def list_assets(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    status: Optional[AssetStatus] = Query(None),
    category_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    result = await AssetService.list_assets(
        db, bu_id, pagination,
        status=status,
        category_id=category_id,
        department_id=department_id,
        search=search,
        include_inactive=include_inactive,
    )
    return result.to_json()


@router.post("", response_model=AssetOut, status_code=201)
async def create_asset(
    body: AssetCreate,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await AssetService.create_asset(db, body, user)


@router.get("/{asset_id}", response_model=AssetDetail)
async def get_asset(
    asset_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    asset = await AssetService.get_asset(db, asset_id)
    ensure_business_unit_access(user, asset.business_unit_id)
    return asset


@router.patch("/{asset_id}", response_model=AssetOut)
async def update_asset(
    asset_id: uuid.UUID,
    body: AssetUpdate,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    asset = await AssetService.load_asset(db, asset_id)
    ensure_business_unit_access(user, asset.business_unit_id)
    return await AssetService.update_asset(db, asset, body, user)


@router.post("/{asset_id}/status", response_model=AssetOut)
async def change_asset_status(
    asset_id: uuid.UUID,
    body: AssetStatusChange,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    asset = await AssetService.load_asset(db, asset_id)
    ensure_business_unit_access(user, asset.business_unit_id)
    return await AssetService.change_status(db, asset, body, user)


@router.post("/{asset_id}/toggle", response_model=AssetOut)
async def toggle_asset(
    asset_id: uuid.UUID,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    asset = await AssetService.load_asset(db, asset_id)
    ensure_business_unit_access(user, asset.business_unit_id)
    return await AssetService.toggle_asset(db, asset, user)


@router.delete("/{asset_id}", status_code=204)
async def delete_asset(
    asset_id: uuid.UUID,
    user: User = Depends(_asset_manager),
    db: AsyncSession = Depends(get_db),
):
    asset = await AssetService.load_asset(db, asset_id)
    ensure_business_unit_access(user, asset.business_unit_id)
    await AssetService.delete_asset(db, asset, user)


# ── Public lookup ───────────────────────────────────────────────────

public_router = APIRouter(prefix="", tags=["public"])


@public_router.get("/assets/{asset_id}", response_model=PublicAssetOut)
@limiter.limit(PUBLIC_LOOKUP_RATE_LIMIT)
async def public_asset(
    request: Request,
    asset_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Asset details for anyone holding its id; no login required."""
    asset = await AssetService.public_detail(db, asset_id)
    if asset is None:
        return JSONResponse(status_code=404, content={"error": "Asset not found"})
    return asset
