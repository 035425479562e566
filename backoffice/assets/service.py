"""Asset service layer — categories, asset CRUD and the deployment,
transfer, disposal and retirement lifecycle.

Every lifecycle action works on a batch of asset ids inside one business
unit, validates the whole batch up front and then writes the state change,
an ``AssetHistory`` row per asset and an audit entry.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.assets.models import (
    Asset,
    AssetCategory,
    AssetDeployment,
    AssetDisposal,
    AssetHistory,
    AssetRetirement,
)
from backoffice.assets.schemas import (
    AssetCategoryCreate,
    AssetCategoryOut,
    AssetCategoryUpdate,
    AssetCreate,
    AssetDetail,
    AssetHistoryOut,
    AssetOut,
    AssetStatusChange,
    AssetUpdate,
    DeployAssetsRequest,
    DeploymentOut,
    DeployResult,
    DisposalOut,
    DisposeAssetsRequest,
    DisposeResult,
    PublicAssetOut,
    RetireAssetsRequest,
    RetirementOut,
    RetireResult,
    ReturnAssetsRequest,
    TransferAssetsRequest,
    TransferResult,
)
from backoffice.common.audit import create_audit_entry
from backoffice.common.constants import (
    DECOMMISSIONABLE_STATUSES,
    AssetCondition,
    AssetHistoryAction,
    AssetStatus,
    DeploymentStatus,
    DepreciationMethod,
)
from backoffice.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    NotFoundException,
)
from backoffice.common.filters import apply_filters, apply_search
from backoffice.common.models import model_snapshot
from backoffice.common.pagination import PaginatedResponse, PaginationParams, paginate
from backoffice.depreciation.calculator import straight_line_monthly, useful_life_in_months
from backoffice.organization.models import BusinessUnit, User

logger = logging.getLogger(__name__)

# Deployments that still hold the asset
ACTIVE_DEPLOYMENT_STATUSES = (DeploymentStatus.DEPLOYED, DeploymentStatus.APPROVED)
DAMAGED_CONDITIONS = (AssetCondition.DAMAGED, AssetCondition.NON_FUNCTIONAL)
PUBLIC_HISTORY_LIMIT = 20


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _history(
    asset: Asset,
    action: AssetHistoryAction,
    actor_id: Optional[uuid.UUID],
    notes: Optional[str] = None,
    *,
    previous_value: Optional[str] = None,
    new_value: Optional[str] = None,
    business_unit_id: Optional[uuid.UUID] = None,
    details: Optional[dict] = None,
) -> AssetHistory:
    return AssetHistory(
        asset_id=asset.id,
        action=action,
        notes=notes,
        previous_value=previous_value,
        new_value=new_value,
        performed_by=actor_id,
        business_unit_id=business_unit_id or asset.business_unit_id,
        details=details,
    )


def open_deployment(asset: Asset) -> Optional[AssetDeployment]:
    """The deployment currently holding *asset* (requires loaded deployments)."""
    for deployment in asset.deployments:
        if deployment.returned_date is None and deployment.status in ACTIVE_DEPLOYMENT_STATUSES:
            return deployment
    return None


def _pending_deployment(asset: Asset) -> Optional[AssetDeployment]:
    for deployment in asset.deployments:
        if deployment.status == DeploymentStatus.PENDING_ACCOUNTING_APPROVAL:
            return deployment
    return None


def _codes(assets: Sequence[Asset]) -> str:
    return ", ".join(a.item_code for a in assets)


# ═════════════════════════════════════════════════════════════════════
# Categories
# ═════════════════════════════════════════════════════════════════════


class AssetCategoryService:

    @staticmethod
    async def get_category(db: AsyncSession, category_id: uuid.UUID) -> AssetCategory:
        category = await db.get(AssetCategory, category_id)
        if category is None:
            raise NotFoundException("AssetCategory", str(category_id))
        return category

    @staticmethod
    async def _asset_count(db: AsyncSession, category_id: uuid.UUID) -> int:
        return (
            await db.execute(
                select(func.count(Asset.id)).where(Asset.category_id == category_id)
            )
        ).scalar_one()

    @staticmethod
    async def build_response(db: AsyncSession, category: AssetCategory) -> AssetCategoryOut:
        out = AssetCategoryOut.model_validate(category)
        out.asset_count = await AssetCategoryService._asset_count(db, category.id)
        return out

    @staticmethod
    async def list_categories(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        *,
        include_inactive: bool = False,
    ) -> list[AssetCategoryOut]:
        counts = (
            select(Asset.category_id, func.count(Asset.id).label("asset_count"))
            .group_by(Asset.category_id)
            .subquery()
        )
        query = (
            select(AssetCategory, func.coalesce(counts.c.asset_count, 0))
            .outerjoin(counts, counts.c.category_id == AssetCategory.id)
            .where(AssetCategory.business_unit_id == business_unit_id)
            .order_by(AssetCategory.name)
        )
        if not include_inactive:
            query = query.where(AssetCategory.is_active.is_(True))

        rows = (await db.execute(query)).all()
        items = []
        for category, count in rows:
            out = AssetCategoryOut.model_validate(category)
            out.asset_count = int(count)
            items.append(out)
        return items

    @staticmethod
    async def _ensure_code_free(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        code: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(AssetCategory.id).where(
            AssetCategory.business_unit_id == business_unit_id,
            AssetCategory.code == code,
        )
        if exclude_id is not None:
            query = query.where(AssetCategory.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none() is not None:
            raise ConflictError("code", code)

    @staticmethod
    async def create_category(
        db: AsyncSession,
        data: AssetCategoryCreate,
        actor: User,
    ) -> AssetCategoryOut:
        code = data.code.strip().upper()
        await AssetCategoryService._ensure_code_free(db, data.business_unit_id, code)

        category = AssetCategory(**data.model_dump(exclude={"code"}), code=code)
        db.add(category)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="asset_category",
            entity_id=category.id,
            actor_id=actor.id,
            business_unit_id=category.business_unit_id,
            new_values=model_snapshot(category),
        )
        return await AssetCategoryService.build_response(db, category)

    @staticmethod
    async def update_category(
        db: AsyncSession,
        category: AssetCategory,
        data: AssetCategoryUpdate,
        actor: User,
    ) -> AssetCategoryOut:
        changes = data.model_dump(exclude_unset=True)
        if changes.get("code"):
            changes["code"] = changes["code"].strip().upper()
            await AssetCategoryService._ensure_code_free(
                db, category.business_unit_id, changes["code"], exclude_id=category.id,
            )

        old_values = model_snapshot(category, changes.keys())
        for field, value in changes.items():
            setattr(category, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="asset_category",
            entity_id=category.id,
            actor_id=actor.id,
            business_unit_id=category.business_unit_id,
            old_values=old_values,
            new_values=model_snapshot(category, changes.keys()),
        )
        return await AssetCategoryService.build_response(db, category)

    @staticmethod
    async def toggle_category(
        db: AsyncSession,
        category: AssetCategory,
        actor: User,
    ) -> AssetCategoryOut:
        category.is_active = not category.is_active
        await db.flush()
        await create_audit_entry(
            db,
            action="activate" if category.is_active else "deactivate",
            entity_type="asset_category",
            entity_id=category.id,
            actor_id=actor.id,
            business_unit_id=category.business_unit_id,
            new_values={"is_active": category.is_active},
        )
        return await AssetCategoryService.build_response(db, category)

    @staticmethod
    async def delete_category(
        db: AsyncSession,
        category: AssetCategory,
        actor: User,
    ) -> None:
        if await AssetCategoryService._asset_count(db, category.id):
            raise BusinessRuleException(
                "Cannot delete a category that still has assets. Deactivate it instead.",
            )
        old_values = model_snapshot(category)
        await db.delete(category)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="asset_category",
            entity_id=category.id,
            actor_id=actor.id,
            business_unit_id=category.business_unit_id,
            old_values=old_values,
        )


# ═════════════════════════════════════════════════════════════════════
# Assets
# ═════════════════════════════════════════════════════════════════════


class AssetService:

    @staticmethod
    def build_response(asset: Asset) -> AssetOut:
        return AssetOut.model_validate(asset)

    @staticmethod
    async def load_asset(
        db: AsyncSession,
        asset_id: uuid.UUID,
        *,
        with_history: bool = False,
    ) -> Asset:
        options = [selectinload(Asset.category), selectinload(Asset.deployments)]
        if with_history:
            options.append(selectinload(Asset.history))
        result = await db.execute(
            select(Asset)
            .where(Asset.id == asset_id)
            .options(*options)
            .execution_options(populate_existing=True)
        )
        asset = result.scalars().first()
        if asset is None:
            raise NotFoundException("Asset", str(asset_id))
        return asset

    @staticmethod
    async def generate_item_code(db: AsyncSession, category: AssetCategory) -> str:
        """Category code followed by the next 3-digit sequence, e.g. ``IT007``."""
        rows = (
            await db.execute(
                select(Asset.item_code).where(Asset.item_code.startswith(category.code))
            )
        ).scalars().all()
        highest = 0
        for code in rows:
            suffix = code[len(category.code):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{category.code}{highest + 1:03d}"

    @staticmethod
    def _derive_depreciation(asset: Asset) -> None:
        life = useful_life_in_months(asset.useful_life_years, asset.useful_life_months)
        if asset.useful_life_months is None and life is not None:
            asset.useful_life_months = life
        if asset.depreciation_method == DepreciationMethod.STRAIGHT_LINE:
            asset.monthly_depreciation = straight_line_monthly(
                asset.purchase_price, asset.salvage_value, life,
            )
        if asset.depreciation_method is not None and asset.depreciation_start_date is None:
            asset.depreciation_start_date = asset.purchase_date

    @staticmethod
    async def list_assets(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        params: PaginationParams,
        *,
        status: Optional[AssetStatus] = None,
        category_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        include_inactive: bool = False,
    ) -> PaginatedResponse:
        query = (
            select(Asset)
            .where(Asset.business_unit_id == business_unit_id)
            .options(selectinload(Asset.category))
            .order_by(Asset.item_code)
        )
        query = apply_filters(query, Asset, {
            "status": status,
            "category_id": category_id,
            "department_id": department_id,
            "is_active": None if include_inactive else True,
        })
        query = apply_search(
            query, Asset, search,
            ["item_code", "description", "serial_number", "brand", "model_number"],
        )
        return await paginate(
            db, query, params, model=Asset, transform=AssetService.build_response,
        )

    @staticmethod
    async def get_asset(db: AsyncSession, asset_id: uuid.UUID) -> AssetDetail:
        asset = await AssetService.load_asset(db, asset_id, with_history=True)
        return AssetDetail.model_validate(asset)

    @staticmethod
    async def public_detail(db: AsyncSession, asset_id: uuid.UUID) -> Optional[PublicAssetOut]:
        """Asset, its current holder and recent history; ``None`` when unknown."""
        result = await db.execute(
            select(Asset)
            .where(Asset.id == asset_id)
            .options(
                selectinload(Asset.category),
                selectinload(Asset.business_unit),
                selectinload(Asset.department),
                selectinload(Asset.deployments).selectinload(AssetDeployment.employee),
                selectinload(Asset.history),
            )
        )
        asset = result.scalars().first()
        if asset is None:
            return None

        holding = [
            d for d in asset.deployments
            if d.returned_date is None and d.status in ACTIVE_DEPLOYMENT_STATUSES
        ]
        out = PublicAssetOut.model_validate(asset)
        out.current_deployment = DeploymentOut.model_validate(holding[-1]) if holding else None
        out.recent_history = [
            AssetHistoryOut.model_validate(h) for h in asset.history[:PUBLIC_HISTORY_LIMIT]
        ]
        return out

    @staticmethod
    async def create_asset(
        db: AsyncSession,
        data: AssetCreate,
        actor: User,
    ) -> AssetOut:
        category = await AssetCategoryService.get_category(db, data.category_id)
        if category.business_unit_id != data.business_unit_id:
            raise BusinessRuleException("Category does not belong to this business unit.")

        item_code = data.item_code.strip() if data.item_code else None
        if item_code:
            exists = await db.execute(select(Asset.id).where(Asset.item_code == item_code))
            if exists.scalar_one_or_none() is not None:
                raise ConflictError("item_code", item_code)
        else:
            item_code = await AssetService.generate_item_code(db, category)

        values = data.model_dump(exclude={"item_code"}, exclude_none=True)
        asset = Asset(**values, item_code=item_code, created_by=actor.id)
        asset.current_book_value = data.purchase_price
        asset.accumulated_depreciation = Decimal("0")
        AssetService._derive_depreciation(asset)
        db.add(asset)
        await db.flush()

        db.add(_history(asset, AssetHistoryAction.CREATED, actor.id, f"Asset {item_code} created"))
        await create_audit_entry(
            db,
            action="create",
            entity_type="asset",
            entity_id=asset.id,
            actor_id=actor.id,
            business_unit_id=asset.business_unit_id,
            new_values=model_snapshot(asset),
        )
        logger.info("Created asset %s in business unit %s", item_code, asset.business_unit_id)
        asset = await AssetService.load_asset(db, asset.id)
        return AssetService.build_response(asset)

    @staticmethod
    async def update_asset(
        db: AsyncSession,
        asset: Asset,
        data: AssetUpdate,
        actor: User,
    ) -> AssetOut:
        changes = data.model_dump(exclude_unset=True)
        if "category_id" in changes:
            category = await AssetCategoryService.get_category(db, changes["category_id"])
            if category.business_unit_id != asset.business_unit_id:
                raise BusinessRuleException("Category does not belong to this business unit.")

        old_values = model_snapshot(asset, changes.keys())
        for field, value in changes.items():
            setattr(asset, field, value)
        if changes.keys() & {
            "depreciation_method", "useful_life_years", "useful_life_months",
            "purchase_price", "salvage_value",
        }:
            AssetService._derive_depreciation(asset)
        if "purchase_price" in changes and asset.last_depreciation_date is None:
            asset.current_book_value = asset.purchase_price
        await db.flush()

        new_values = model_snapshot(asset, changes.keys())
        db.add(_history(
            asset, AssetHistoryAction.UPDATED, actor.id,
            "Updated " + ", ".join(sorted(changes)) if changes else "No changes",
            details={"old": old_values, "new": new_values},
        ))
        await create_audit_entry(
            db,
            action="update",
            entity_type="asset",
            entity_id=asset.id,
            actor_id=actor.id,
            business_unit_id=asset.business_unit_id,
            old_values=old_values,
            new_values=new_values,
        )
        asset = await AssetService.load_asset(db, asset.id)
        return AssetService.build_response(asset)

    @staticmethod
    async def change_status(
        db: AsyncSession,
        asset: Asset,
        data: AssetStatusChange,
        actor: User,
    ) -> AssetOut:
        if asset.status in (AssetStatus.DISPOSED, AssetStatus.RETIRED):
            raise BusinessRuleException(
                f"Asset {asset.item_code} is {asset.status.value} and cannot change status.",
            )
        if data.status in (AssetStatus.DEPLOYED, AssetStatus.DISPOSED, AssetStatus.RETIRED):
            raise BusinessRuleException(
                f"Use the {data.status.value.lower()} action to set status {data.status.value}.",
            )
        if open_deployment(asset) is not None:
            raise BusinessRuleException(
                f"Asset {asset.item_code} is deployed and must be returned first.",
            )

        previous = asset.status
        asset.status = data.status
        await db.flush()
        db.add(_history(
            asset, AssetHistoryAction.STATUS_CHANGED, actor.id, data.notes,
            previous_value=previous.value, new_value=data.status.value,
        ))
        await create_audit_entry(
            db,
            action="status_change",
            entity_type="asset",
            entity_id=asset.id,
            actor_id=actor.id,
            business_unit_id=asset.business_unit_id,
            old_values={"status": previous.value},
            new_values={"status": data.status.value},
        )
        asset = await AssetService.load_asset(db, asset.id)
        return AssetService.build_response(asset)

    @staticmethod
    async def toggle_asset(db: AsyncSession, asset: Asset, actor: User) -> AssetOut:
        asset.is_active = not asset.is_active
        await db.flush()
        await create_audit_entry(
            db,
            action="activate" if asset.is_active else "deactivate",
            entity_type="asset",
            entity_id=asset.id,
            actor_id=actor.id,
            business_unit_id=asset.business_unit_id,
            new_values={"is_active": asset.is_active},
        )
        asset = await AssetService.load_asset(db, asset.id)
        return AssetService.build_response(asset)

    @staticmethod
    async def delete_asset(db: AsyncSession, asset: Asset, actor: User) -> None:
        if asset.deployments:
            raise BusinessRuleException(
                f"Asset {asset.item_code} has deployment records and cannot be deleted.",
            )
        if asset.last_depreciation_date is not None:
            raise BusinessRuleException(
                f"Asset {asset.item_code} has depreciation records and cannot be deleted.",
            )
        old_values = model_snapshot(asset)
        for entry in (
            await db.execute(select(AssetHistory).where(AssetHistory.asset_id == asset.id))
        ).scalars():
            await db.delete(entry)
        await db.delete(asset)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="asset",
            entity_id=asset.id,
            actor_id=actor.id,
            business_unit_id=asset.business_unit_id,
            old_values=old_values,
        )


# ═════════════════════════════════════════════════════════════════════
# Deployments, returns and transfers
# ═════════════════════════════════════════════════════════════════════


async def _load_batch(
    db: AsyncSession,
    business_unit_id: uuid.UUID,
    asset_ids: Sequence[uuid.UUID],
) -> list[Asset]:
    """Load *asset_ids* from the unit with deployments; 404 if any is missing."""
    wanted = list(dict.fromkeys(asset_ids))
    result = await db.execute(
        select(Asset)
        .where(Asset.id.in_(wanted), Asset.business_unit_id == business_unit_id)
        .options(
            selectinload(Asset.deployments).selectinload(AssetDeployment.employee),
        )
        .execution_options(populate_existing=True)
    )
    assets = {a.id: a for a in result.scalars().all()}
    missing = [str(i) for i in wanted if i not in assets]
    if missing:
        raise NotFoundException("Asset", ", ".join(missing))
    return [assets[i] for i in wanted]


async def _business_unit(db: AsyncSession, business_unit_id: uuid.UUID) -> BusinessUnit:
    bu = await db.get(BusinessUnit, business_unit_id)
    if bu is None:
        raise NotFoundException("BusinessUnit", str(business_unit_id))
    return bu


async def _active_employee(
    db: AsyncSession,
    employee_id: uuid.UUID,
    business_unit_id: uuid.UUID,
) -> User:
    employee = (
        await db.execute(
            select(User).where(
                User.id == employee_id,
                User.business_unit_id == business_unit_id,
                User.is_active.is_(True),
            )
        )
    ).scalar_one_or_none()
    if employee is None:
        raise NotFoundException("Employee", str(employee_id))
    return employee


def _next_sequence(prefix: str, candidates: Sequence[str]) -> int:
    highest = 0
    pattern = re.compile(re.escape(prefix) + r"(\d+)")
    for value in candidates:
        match = pattern.search(value or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


class DeploymentService:

    @staticmethod
    def build_response(deployment: AssetDeployment) -> DeploymentOut:
        return DeploymentOut.model_validate(deployment)

    @staticmethod
    async def _reload(db: AsyncSession, ids: Sequence[uuid.UUID]) -> list[AssetDeployment]:
        result = await db.execute(
            select(AssetDeployment)
            .where(AssetDeployment.id.in_(ids))
            .options(selectinload(AssetDeployment.employee))
            .order_by(AssetDeployment.transmittal_number)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def generate_transmittal_number(
        db: AsyncSession,
        business_unit: BusinessUnit,
        kind: Optional[str] = None,
    ) -> str:
        """``{BU}-{YYYYMM}-{NNN}``, or ``{BU}-TXF{kind}-{YYYYMM}-{NNN}`` for transfers."""
        month = _now().strftime("%Y%m")
        prefix = (
            f"{business_unit.code}-TXF{kind}-{month}-" if kind
            else f"{business_unit.code}-{month}-"
        )
        if kind == "BU":
            # Unit transfers create no deployment, the number lives in history notes
            rows = (
                await db.execute(
                    select(AssetHistory.notes).where(
                        AssetHistory.action == AssetHistoryAction.TRANSFERRED,
                        AssetHistory.notes.contains(prefix),
                    )
                )
            ).scalars().all()
        else:
            rows = (
                await db.execute(
                    select(AssetDeployment.transmittal_number).where(
                        AssetDeployment.transmittal_number.startswith(prefix),
                    )
                )
            ).scalars().all()
        return f"{prefix}{_next_sequence(prefix, rows):03d}"

    @staticmethod
    async def deploy_assets(
        db: AsyncSession,
        data: DeployAssetsRequest,
        actor: User,
    ) -> DeployResult:
        business_unit = await _business_unit(db, data.business_unit_id)
        assets = await _load_batch(db, data.business_unit_id, data.asset_ids)

        unavailable = [a for a in assets if not a.is_active or a.status != AssetStatus.AVAILABLE]
        if unavailable:
            raise BusinessRuleException(
                f"Assets {_codes(unavailable)} are not available for deployment.",
            )
        busy = [a for a in assets if open_deployment(a) or _pending_deployment(a)]
        if busy:
            raise BusinessRuleException(f"Assets {_codes(busy)} already have an open deployment.")

        employee = await _active_employee(db, data.employee_id, data.business_unit_id)
        base = await DeploymentService.generate_transmittal_number(db, business_unit)
        now = _now()
        pending = data.requires_accounting_approval

        created: list[AssetDeployment] = []
        for index, asset in enumerate(assets, start=1):
            number = f"{base}-{index:02d}"
            deployment = AssetDeployment(
                asset_id=asset.id,
                employee_id=employee.id,
                business_unit_id=data.business_unit_id,
                transmittal_number=number,
                deployed_date=None if pending else now,
                expected_return_date=data.expected_return_date,
                status=(
                    DeploymentStatus.PENDING_ACCOUNTING_APPROVAL if pending
                    else DeploymentStatus.DEPLOYED
                ),
                deployment_notes=data.deployment_notes,
                deployment_condition=data.deployment_condition,
                created_by=actor.id,
            )
            db.add(deployment)
            created.append(deployment)
            if not pending:
                asset.status = AssetStatus.DEPLOYED
                asset.currently_assigned_to = employee.id
                asset.last_assigned_date = now
                db.add(_history(
                    asset, AssetHistoryAction.DEPLOYED, actor.id,
                    f"Deployed to {employee.name} ({employee.employee_id}) via transmittal {number}",
                    previous_value=AssetStatus.AVAILABLE.value,
                    new_value=AssetStatus.DEPLOYED.value,
                ))
        await db.flush()

        await create_audit_entry(
            db,
            action="deploy",
            entity_type="asset_deployment",
            entity_id=created[0].id,
            actor_id=actor.id,
            business_unit_id=data.business_unit_id,
            new_values={
                "transmittal_number": base,
                "employee_id": str(employee.id),
                "asset_ids": [str(a.id) for a in assets],
                "status": created[0].status.value,
            },
        )
        logger.info(
            "Deployment %s: %d asset(s) to %s (%s)",
            base, len(assets), employee.employee_id, created[0].status.value,
        )
        deployments = await DeploymentService._reload(db, [d.id for d in created])
        return DeployResult(
            transmittal_number=base,
            deployments=[DeploymentService.build_response(d) for d in deployments],
        )

    @staticmethod
    async def _load_deployment(db: AsyncSession, deployment_id: uuid.UUID) -> AssetDeployment:
        result = await db.execute(
            select(AssetDeployment)
            .where(AssetDeployment.id == deployment_id)
            .options(
                selectinload(AssetDeployment.asset),
                selectinload(AssetDeployment.employee),
            )
            .execution_options(populate_existing=True)
        )
        deployment = result.scalars().first()
        if deployment is None:
            raise NotFoundException("AssetDeployment", str(deployment_id))
        return deployment

    @staticmethod
    async def get_deployment(db: AsyncSession, deployment_id: uuid.UUID) -> AssetDeployment:
        return await DeploymentService._load_deployment(db, deployment_id)

    @staticmethod
    async def decide_deployment(
        db: AsyncSession,
        deployment: AssetDeployment,
        actor: User,
        *,
        approve: bool,
        notes: Optional[str] = None,
    ) -> DeploymentOut:
        if deployment.status != DeploymentStatus.PENDING_ACCOUNTING_APPROVAL:
            raise BusinessRuleException(
                f"Deployment {deployment.transmittal_number} is not awaiting accounting approval.",
            )
        asset = deployment.asset
        now = _now()
        deployment.accounting_approver_id = actor.id
        deployment.accounting_approved_at = now
        deployment.accounting_notes = notes

        if approve:
            if asset.status != AssetStatus.AVAILABLE:
                raise BusinessRuleException(
                    f"Asset {asset.item_code} is no longer available for deployment.",
                )
            deployment.status = DeploymentStatus.DEPLOYED
            deployment.deployed_date = now
            asset.status = AssetStatus.DEPLOYED
            asset.currently_assigned_to = deployment.employee_id
            asset.last_assigned_date = now
            db.add(_history(
                asset, AssetHistoryAction.DEPLOYED, actor.id,
                f"Deployed to {deployment.employee.name} ({deployment.employee.employee_id}) "
                f"via transmittal {deployment.transmittal_number}",
                previous_value=AssetStatus.AVAILABLE.value,
                new_value=AssetStatus.DEPLOYED.value,
            ))
        else:
            deployment.status = DeploymentStatus.CANCELLED
        await db.flush()

        await create_audit_entry(
            db,
            action="approve" if approve else "reject",
            entity_type="asset_deployment",
            entity_id=deployment.id,
            actor_id=actor.id,
            business_unit_id=deployment.business_unit_id,
            new_values={"status": deployment.status.value, "accounting_notes": notes},
        )
        deployment = await DeploymentService._load_deployment(db, deployment.id)
        return DeploymentService.build_response(deployment)

    @staticmethod
    async def return_assets(
        db: AsyncSession,
        data: ReturnAssetsRequest,
        actor: User,
    ) -> list[DeploymentOut]:
        assets = await _load_batch(db, data.business_unit_id, data.asset_ids)
        not_out = [
            a for a in assets
            if a.status != AssetStatus.DEPLOYED or open_deployment(a) is None
        ]
        if not_out:
            raise BusinessRuleException(f"Assets {_codes(not_out)} are not currently deployed.")

        returned_at = data.returned_date or _now()
        new_status = (
            AssetStatus.DAMAGED if data.return_condition in DAMAGED_CONDITIONS
            else AssetStatus.AVAILABLE
        )
        closed: list[AssetDeployment] = []
        for asset in assets:
            deployment = open_deployment(asset)
            deployment.returned_date = returned_at
            deployment.status = DeploymentStatus.RETURNED
            deployment.return_notes = data.return_notes
            deployment.return_condition = (
                data.return_condition.value if data.return_condition else None
            )
            closed.append(deployment)

            asset.status = new_status
            asset.currently_assigned_to = None
            db.add(_history(
                asset, AssetHistoryAction.RETURNED, actor.id,
                f"Returned by {deployment.employee.name} ({deployment.employee.employee_id})"
                + (f". Notes: {data.return_notes}" if data.return_notes else ""),
                previous_value=AssetStatus.DEPLOYED.value,
                new_value=new_status.value,
            ))
        await db.flush()

        await create_audit_entry(
            db,
            action="return",
            entity_type="asset_deployment",
            entity_id=closed[0].id,
            actor_id=actor.id,
            business_unit_id=data.business_unit_id,
            new_values={
                "asset_ids": [str(a.id) for a in assets],
                "asset_status": new_status.value,
            },
        )
        deployments = await DeploymentService._reload(db, [d.id for d in closed])
        return [DeploymentService.build_response(d) for d in deployments]

    @staticmethod
    async def transfer_assets(
        db: AsyncSession,
        data: TransferAssetsRequest,
        actor: User,
    ) -> TransferResult:
        business_unit = await _business_unit(db, data.business_unit_id)
        assets = await _load_batch(db, data.business_unit_id, data.asset_ids)
        not_out = [
            a for a in assets
            if a.status != AssetStatus.DEPLOYED or open_deployment(a) is None
        ]
        if not_out:
            raise BusinessRuleException(f"Assets {_codes(not_out)} are not currently deployed.")

        when = data.transfer_date or _now()
        if data.transfer_type == "EMPLOYEE":
            number = await DeploymentService._transfer_to_employee(
                db, data, assets, business_unit, actor, when,
            )
        else:
            number = await DeploymentService._transfer_to_business_unit(
                db, data, assets, business_unit, actor, when,
            )
        await db.flush()

        await create_audit_entry(
            db,
            action="transfer",
            entity_type="asset",
            entity_id=assets[0].id,
            actor_id=actor.id,
            business_unit_id=data.business_unit_id,
            new_values={
                "transmittal_number": number,
                "transfer_type": data.transfer_type,
                "asset_ids": [str(a.id) for a in assets],
                "to_employee_id": str(data.to_employee_id) if data.to_employee_id else None,
                "to_business_unit_id": (
                    str(data.to_business_unit_id) if data.to_business_unit_id else None
                ),
            },
        )
        logger.info("Transfer %s: %d asset(s)", number, len(assets))
        return TransferResult(transmittal_number=number, transferred=len(assets))

    @staticmethod
    async def _transfer_to_employee(
        db: AsyncSession,
        data: TransferAssetsRequest,
        assets: list[Asset],
        business_unit: BusinessUnit,
        actor: User,
        when: datetime,
    ) -> str:
        target = await _active_employee(db, data.to_employee_id, data.business_unit_id)
        number = await DeploymentService.generate_transmittal_number(db, business_unit, "EMP")
        for index, asset in enumerate(assets, start=1):
            current = open_deployment(asset)
            if current.employee_id == target.id:
                raise BusinessRuleException(
                    f"Asset {asset.item_code} is already deployed to {target.name}.",
                )
            current.returned_date = when
            current.status = DeploymentStatus.RETURNED
            current.return_notes = f"Transferred to {target.name} ({target.employee_id}) via {number}"

            db.add(AssetDeployment(
                asset_id=asset.id,
                employee_id=target.id,
                business_unit_id=data.business_unit_id,
                transmittal_number=f"{number}-{index:02d}",
                deployed_date=when,
                status=DeploymentStatus.DEPLOYED,
                deployment_notes=f"Transferred from previous assignment. Reason: {data.reason}",
                created_by=actor.id,
            ))
            asset.currently_assigned_to = target.id
            asset.last_assigned_date = when
            db.add(_history(
                asset, AssetHistoryAction.TRANSFERRED, actor.id,
                f"Transferred from {current.employee.name} ({current.employee.employee_id}) "
                f"to {target.name} ({target.employee_id}) via {number}. Reason: {data.reason}",
                previous_value=str(current.employee_id),
                new_value=str(target.id),
            ))
        return number

    @staticmethod
    async def _transfer_to_business_unit(
        db: AsyncSession,
        data: TransferAssetsRequest,
        assets: list[Asset],
        business_unit: BusinessUnit,
        actor: User,
        when: datetime,
    ) -> str:
        target = await _business_unit(db, data.to_business_unit_id)
        if not target.is_active:
            raise BusinessRuleException(f"Business unit {target.code} is inactive.")
        number = await DeploymentService.generate_transmittal_number(db, business_unit, "BU")
        for asset in assets:
            current = open_deployment(asset)
            current.returned_date = when
            current.status = DeploymentStatus.RETURNED
            current.return_notes = f"Transferred to {target.name} via {number}"

            asset.business_unit_id = target.id
            asset.department_id = None
            asset.currently_assigned_to = None
            asset.status = AssetStatus.AVAILABLE
            asset.last_assigned_date = when
            db.add(_history(
                asset, AssetHistoryAction.TRANSFERRED, actor.id,
                f"Transferred from {current.employee.name} ({current.employee.employee_id}) "
                f"to {target.name} via {number}. Reason: {data.reason}",
                previous_value=str(business_unit.id),
                new_value=str(target.id),
                business_unit_id=business_unit.id,
            ))
            db.add(_history(
                asset, AssetHistoryAction.TRANSFERRED, actor.id,
                f"Received from {business_unit.name} via {number}. Reason: {data.reason}",
                previous_value=str(business_unit.id),
                new_value=str(target.id),
                business_unit_id=target.id,
            ))
        return number

    @staticmethod
    async def list_deployments(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        params: PaginationParams,
        *,
        status: Optional[DeploymentStatus] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        query = (
            select(AssetDeployment)
            .where(AssetDeployment.business_unit_id == business_unit_id)
            .options(selectinload(AssetDeployment.employee))
            .order_by(AssetDeployment.created_at.desc())
        )
        query = apply_filters(query, AssetDeployment, {
            "status": status,
            "employee_id": employee_id,
        })
        return await paginate(
            db, query, params,
            model=AssetDeployment, transform=DeploymentService.build_response,
        )


# ═════════════════════════════════════════════════════════════════════
# Disposal and retirement
# ═════════════════════════════════════════════════════════════════════


class DisposalService:

    @staticmethod
    async def dispose_assets(
        db: AsyncSession,
        data: DisposeAssetsRequest,
        actor: User,
    ) -> DisposeResult:
        assets = await _load_batch(db, data.business_unit_id, data.asset_ids)
        ineligible = [a for a in assets if a.status not in DECOMMISSIONABLE_STATUSES]
        if ineligible:
            raise BusinessRuleException(f"Assets {_codes(ineligible)} cannot be disposed.")
        deployed = [a for a in assets if open_deployment(a) or _pending_deployment(a)]
        if deployed:
            raise BusinessRuleException(
                f"Assets {_codes(deployed)} are currently deployed and must be returned "
                "before disposal.",
            )

        net = data.disposal_value - data.disposal_cost
        records: list[AssetDisposal] = []
        for asset in assets:
            book = Decimal(str(asset.current_book_value or 0))
            gain_loss = net - book
            record = AssetDisposal(
                asset_id=asset.id,
                business_unit_id=data.business_unit_id,
                disposal_date=data.disposal_date,
                reason=data.disposal_reason,
                disposal_method=data.disposal_method,
                disposal_location=data.disposal_location,
                disposal_value=data.disposal_value,
                disposal_cost=data.disposal_cost,
                net_disposal_value=net,
                book_value_at_disposal=book,
                gain_loss=gain_loss,
                notes=data.notes,
                approved_by=data.approved_by,
                created_by=actor.id,
            )
            db.add(record)
            records.append(record)

            previous = asset.status
            asset.status = AssetStatus.DISPOSED
            asset.currently_assigned_to = None
            db.add(_history(
                asset, AssetHistoryAction.DISPOSED, actor.id,
                f"Asset disposed via {data.disposal_method.value}. "
                f"Reason: {data.disposal_reason.value}. Book value: {book}, "
                f"disposal value: {data.disposal_value}, gain/loss: {gain_loss}",
                previous_value=previous.value,
                new_value=AssetStatus.DISPOSED.value,
            ))
        await db.flush()

        total = sum((r.gain_loss for r in records), Decimal("0"))
        await create_audit_entry(
            db,
            action="dispose",
            entity_type="asset",
            entity_id=assets[0].id,
            actor_id=actor.id,
            business_unit_id=data.business_unit_id,
            new_values={
                "asset_ids": [str(a.id) for a in assets],
                "disposal_method": data.disposal_method.value,
                "total_gain_loss": str(total),
            },
        )
        logger.info("Disposed %d asset(s), total gain/loss %s", len(records), total)
        return DisposeResult(
            disposals=[DisposalOut.model_validate(r) for r in records],
            total_gain_loss=total,
        )

    @staticmethod
    async def retire_assets(
        db: AsyncSession,
        data: RetireAssetsRequest,
        actor: User,
    ) -> RetireResult:
        assets = await _load_batch(db, data.business_unit_id, data.asset_ids)
        ineligible = [a for a in assets if a.status not in DECOMMISSIONABLE_STATUSES]
        if ineligible:
            raise BusinessRuleException(f"Assets {_codes(ineligible)} cannot be retired.")

        retired = (
            await db.execute(
                select(AssetRetirement.asset_id).where(
                    AssetRetirement.asset_id.in_([a.id for a in assets]),
                )
            )
        ).scalars().all()
        if retired:
            codes = _codes([a for a in assets if a.id in set(retired)])
            raise BusinessRuleException(f"Assets {codes} are already retired.")

        replacement: Optional[Asset] = None
        if data.replacement_asset_id is not None:
            replacement = (
                await db.execute(
                    select(Asset).where(
                        Asset.id == data.replacement_asset_id,
                        Asset.business_unit_id == data.business_unit_id,
                        Asset.status == AssetStatus.AVAILABLE,
                    )
                )
            ).scalar_one_or_none()
            if replacement is None or replacement.id in {a.id for a in assets}:
                raise BusinessRuleException("Replacement asset not found or not available.")

        closed = 0
        records: list[AssetRetirement] = []
        for asset in assets:
            for deployment in asset.deployments:
                if deployment.returned_date is None and deployment.status in (
                    *ACTIVE_DEPLOYMENT_STATUSES, DeploymentStatus.PENDING_ACCOUNTING_APPROVAL,
                ):
                    deployment.returned_date = datetime.combine(
                        data.retirement_date, datetime.min.time(), tzinfo=timezone.utc,
                    )
                    deployment.status = DeploymentStatus.RETURNED
                    deployment.return_notes = f"Asset retired. Reason: {data.reason.value}"
                    closed += 1

            record = AssetRetirement(
                asset_id=asset.id,
                business_unit_id=data.business_unit_id,
                retirement_date=data.retirement_date,
                reason=data.reason,
                retirement_method=data.retirement_method,
                condition=data.condition,
                replacement_asset_id=data.replacement_asset_id,
                disposal_planned=data.disposal_planned,
                disposal_date=data.disposal_date,
                notes=data.notes,
                approved_by=data.approved_by,
                created_by=actor.id,
            )
            db.add(record)
            records.append(record)

            previous = asset.status
            asset.status = AssetStatus.RETIRED
            asset.currently_assigned_to = None
            notes = f"Asset retired. Reason: {data.reason.value}."
            if replacement is not None:
                notes += f" Replacement asset: {replacement.item_code}."
            if data.notes:
                notes += f" Notes: {data.notes}"
            db.add(_history(
                asset, AssetHistoryAction.RETIRED, actor.id, notes,
                previous_value=previous.value,
                new_value=AssetStatus.RETIRED.value,
            ))
        await db.flush()

        await create_audit_entry(
            db,
            action="retire",
            entity_type="asset",
            entity_id=assets[0].id,
            actor_id=actor.id,
            business_unit_id=data.business_unit_id,
            new_values={
                "asset_ids": [str(a.id) for a in assets],
                "reason": data.reason.value,
                "deployments_closed": closed,
            },
        )
        if closed:
            logger.info("Retirement closed %d open deployment(s)", closed)
        return RetireResult(
            retirements=[RetirementOut.model_validate(r) for r in records],
            deployments_closed=closed,
        )

    @staticmethod
    async def list_disposals(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        params: PaginationParams,
    ) -> PaginatedResponse:
        query = (
            select(AssetDisposal)
            .where(AssetDisposal.business_unit_id == business_unit_id)
            .order_by(AssetDisposal.disposal_date.desc(), AssetDisposal.created_at.desc())
        )
        return await paginate(
            db, query, params, model=AssetDisposal, transform=DisposalOut.model_validate,
        )

    @staticmethod
    async def list_retirements(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        params: PaginationParams,
    ) -> PaginatedResponse:
        query = (
            select(AssetRetirement)
            .where(AssetRetirement.business_unit_id == business_unit_id)
            .order_by(AssetRetirement.retirement_date.desc(), AssetRetirement.created_at.desc())
        )
        return await paginate(
            db, query, params, model=AssetRetirement, transform=RetirementOut.model_validate,
        )
