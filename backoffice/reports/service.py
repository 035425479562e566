"""Read-only asset reports — depreciation, damaged/lost items and deployments.

Every report is scoped to one business unit. Routers hand the optional
query parameters over as an :func:`apply_filters` dict, so a filter the
caller did not send never narrows the result.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections import defaultdict
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.assets.models import Asset, AssetDepreciation, AssetDeployment, AssetDisposal
from backoffice.assets.schemas import AssetHistoryOut, CategoryBrief, OrgRef
from backoffice.assets.service import open_deployment
from backoffice.common.constants import AssetStatus, DeploymentStatus
from backoffice.common.filters import apply_filters
from backoffice.common.models import as_utc
from backoffice.depreciation.calculator import add_months
from backoffice.leave.schemas import EmployeeBrief
from backoffice.organization.models import User
from backoffice.reports.schemas import (
    CountByName,
    DamagedLossReport,
    DamagedLossRow,
    DeployedAssetBrief,
    DeploymentReportRow,
    DeploymentSummary,
    DepreciationAssetRow,
    DepreciationBreakdown,
    DepreciationSummary,
    DepreciationTotals,
    DisposalInfo,
    MonthlyDepreciation,
)

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_CENT = Decimal("0.01")

# Remaining life (in months) at which an asset counts as nearly written off
NEARING_FULL_DEPRECIATION_MONTHS = 6
TREND_MONTHS = 12
UNASSIGNED = "Unassigned"
DAMAGED_LOSS_STATUSES = (AssetStatus.DAMAGED, AssetStatus.LOST)


def day_start(day: Optional[date]) -> Optional[datetime]:
    return datetime.combine(day, time.min, tzinfo=timezone.utc) if day else None


def day_end(day: Optional[date]) -> Optional[datetime]:
    return datetime.combine(day, time.max, tzinfo=timezone.utc) if day else None


def _money(value: Optional[Decimal]) -> Decimal:
    return value if value is not None else _ZERO


def _book_value(asset: Asset) -> Decimal:
    if asset.current_book_value is not None:
        return asset.current_book_value
    return _money(asset.purchase_price)


def _rate(accumulated: Decimal, price: Decimal) -> Decimal:
    if price <= 0:
        return _ZERO
    return (accumulated / price * 100).quantize(_CENT)


def _department(asset_or_user: Any) -> Optional[OrgRef]:
    dept = asset_or_user.department
    return OrgRef.model_validate(dept) if dept is not None else None


def _months_left(asset: Asset) -> Optional[int]:
    if asset.is_fully_depreciated:
        return 0
    monthly = asset.monthly_depreciation
    if not monthly or monthly <= 0:
        return None
    remaining = max(_book_value(asset) - _money(asset.salvage_value), _ZERO)
    return math.ceil(remaining / monthly)


def _breakdown(
    assets: Sequence[Asset],
    group: Callable[[Asset], tuple[str, str]],
) -> list[DepreciationBreakdown]:
    members: dict[tuple[str, str], list[Asset]] = defaultdict(list)
    for asset in assets:
        members[group(asset)].append(asset)

    rows = []
    for (key, name), grouped in members.items():
        price = sum((_money(a.purchase_price) for a in grouped), _ZERO)
        accumulated = sum((_money(a.accumulated_depreciation) for a in grouped), _ZERO)
        rows.append(DepreciationBreakdown(
            key=key,
            name=name,
            asset_count=len(grouped),
            purchase_value=price,
            current_book_value=sum((_book_value(a) for a in grouped), _ZERO),
            accumulated_depreciation=accumulated,
            depreciation_rate=_rate(accumulated, price),
        ))
    rows.sort(key=lambda r: r.name)
    return rows


def _by_category(asset: Asset) -> tuple[str, str]:
    return str(asset.category_id), asset.category.name


def _by_method(asset: Asset) -> tuple[str, str]:
    method = asset.depreciation_method.value if asset.depreciation_method else "NONE"
    return method, method


def _by_department(asset: Asset) -> tuple[str, str]:
    if asset.department is None:
        return "UNASSIGNED", UNASSIGNED
    return str(asset.department_id), asset.department.name


def _counts(names: list[str]) -> list[CountByName]:
    tally: dict[str, int] = defaultdict(int)
    for name in names:
        tally[name] += 1
    return [
        CountByName(name=name, count=count)
        for name, count in sorted(tally.items(), key=lambda item: (-item[1], item[0]))
    ]


class ReportService:

    # ── Depreciation ────────────────────────────────────────────────

    @staticmethod
    async def _load_assets(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        filters: dict[str, Any],
    ) -> list[Asset]:
        query = (
            select(Asset)
            .where(Asset.business_unit_id == business_unit_id, Asset.is_active.is_(True))
            .options(
                selectinload(Asset.category),
                selectinload(Asset.department),
                selectinload(Asset.deployments).selectinload(AssetDeployment.employee),
            )
        )
        query = apply_filters(query, Asset, filters)
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    def analysis_row(asset: Asset) -> DepreciationAssetRow:
        price = _money(asset.purchase_price)
        book = _book_value(asset)
        accumulated = _money(asset.accumulated_depreciation)
        months_left = _months_left(asset)

        projected = None
        if months_left and asset.next_depreciation_date is not None:
            projected = add_months(asset.next_depreciation_date, months_left)

        deployment = open_deployment(asset)
        return DepreciationAssetRow(
            id=asset.id,
            item_code=asset.item_code,
            description=asset.description,
            status=asset.status,
            category=CategoryBrief.model_validate(asset.category),
            department=_department(asset),
            purchase_date=asset.purchase_date,
            purchase_price=price,
            salvage_value=_money(asset.salvage_value),
            depreciation_method=asset.depreciation_method,
            useful_life_months=asset.useful_life_months,
            monthly_depreciation=asset.monthly_depreciation,
            depreciation_start_date=asset.depreciation_start_date,
            current_book_value=book,
            accumulated_depreciation=accumulated,
            last_depreciation_date=asset.last_depreciation_date,
            next_depreciation_date=asset.next_depreciation_date,
            is_fully_depreciated=asset.is_fully_depreciated,
            remaining_book_value=max(book - _money(asset.salvage_value), _ZERO),
            total_depreciation_to_date=price - book,
            remaining_useful_life_months=months_left,
            depreciation_rate=_rate(accumulated, price),
            projected_full_depreciation_date=projected,
            assigned_employee=(
                EmployeeBrief.model_validate(deployment.employee) if deployment else None
            ),
        )

    @staticmethod
    async def depreciation_assets(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        filters: dict[str, Any],
    ) -> list[DepreciationAssetRow]:
        """Net book value and depreciation schedule, one row per asset."""
        assets = await ReportService._load_assets(db, business_unit_id, filters)
        assets.sort(key=lambda a: (a.category.name, a.description))
        return [ReportService.analysis_row(a) for a in assets]

    @staticmethod
    async def depreciation_summary(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        filters: dict[str, Any],
        *,
        as_of: date,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None,
    ) -> DepreciationSummary:
        """Totals, breakdowns and a twelve-month trend ending with *as_of*.

        ``depreciation_expense`` sums the charges posted between
        *period_start* and *period_end* (either bound may be open).
        """
        assets = await ReportService._load_assets(db, business_unit_id, filters)
        trend_start = add_months(as_of.replace(day=1), -(TREND_MONTHS - 1))

        charges: list[tuple[uuid.UUID, date, Decimal]] = []
        if assets:
            query = select(
                AssetDepreciation.asset_id,
                AssetDepreciation.depreciation_date,
                AssetDepreciation.depreciation_amount,
            ).where(AssetDepreciation.asset_id.in_([a.id for a in assets]))
            if period_start is not None:
                query = query.where(
                    AssetDepreciation.depreciation_date >= min(period_start, trend_start),
                )
            charges = [tuple(row) for row in (await db.execute(query)).all()]

        expense = sum(
            (
                amount for _, on, amount in charges
                if (period_start is None or on >= period_start)
                and (period_end is None or on <= period_end)
            ),
            _ZERO,
        )

        months = [add_months(trend_start, i) for i in range(TREND_MONTHS)]
        amounts: dict[str, Decimal] = defaultdict(lambda: _ZERO)
        charged: dict[str, set] = defaultdict(set)
        for asset_id, on, amount in charges:
            key = f"{on.year:04d}-{on.month:02d}"
            amounts[key] += amount
            charged[key].add(asset_id)
        trend = [
            MonthlyDepreciation(
                month=key, depreciation_amount=amounts[key], asset_count=len(charged[key]),
            )
            for key in (f"{m.year:04d}-{m.month:02d}" for m in months)
        ]

        nearing = 0
        for asset in assets:
            months_left = _months_left(asset)
            if months_left and months_left <= NEARING_FULL_DEPRECIATION_MONTHS:
                nearing += 1

        totals = DepreciationTotals(
            total_assets=len(assets),
            total_purchase_value=sum((_money(a.purchase_price) for a in assets), _ZERO),
            total_current_book_value=sum((_book_value(a) for a in assets), _ZERO),
            total_accumulated_depreciation=sum(
                (_money(a.accumulated_depreciation) for a in assets), _ZERO,
            ),
            depreciation_expense=expense,
            fully_depreciated_count=sum(1 for a in assets if a.is_fully_depreciated),
            nearing_full_depreciation_count=nearing,
        )
        logger.debug(
            "Depreciation summary for %s: %d asset(s), %d charge(s)",
            business_unit_id, len(assets), len(charges),
        )
        return DepreciationSummary(
            totals=totals,
            by_category=_breakdown(assets, _by_category),
            by_method=_breakdown(assets, _by_method),
            by_department=_breakdown(assets, _by_department),
            monthly_trend=trend,
        )

    # ── Damaged / lost ──────────────────────────────────────────────

    @staticmethod
    async def damaged_loss(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        filters: dict[str, Any],
        *,
        include_disposed: bool = False,
    ) -> DamagedLossReport:
        """Damaged and lost assets; disposed (and inactive) ones on request."""
        statuses = list(DAMAGED_LOSS_STATUSES)
        if include_disposed:
            statuses.append(AssetStatus.DISPOSED)
        query = (
            select(Asset)
            .where(Asset.business_unit_id == business_unit_id, Asset.status.in_(statuses))
            .options(
                selectinload(Asset.category),
                selectinload(Asset.department),
                selectinload(Asset.history),
            )
            .order_by(Asset.item_code)
        )
        if not include_disposed:
            query = query.where(Asset.is_active.is_(True))
        query = apply_filters(query, Asset, filters)
        assets = (await db.execute(query)).scalars().all()

        disposals: dict[uuid.UUID, AssetDisposal] = {}
        if assets:
            result = await db.execute(
                select(AssetDisposal)
                .where(AssetDisposal.asset_id.in_([a.id for a in assets]))
                .order_by(AssetDisposal.disposal_date, AssetDisposal.created_at)
            )
            for disposal in result.scalars().all():
                disposals[disposal.asset_id] = disposal

        rows = []
        for asset in assets:
            disposal = disposals.get(asset.id)
            rows.append(DamagedLossRow(
                id=asset.id,
                item_code=asset.item_code,
                description=asset.description,
                serial_number=asset.serial_number,
                status=asset.status,
                is_active=asset.is_active,
                category=CategoryBrief.model_validate(asset.category),
                department=_department(asset),
                purchase_date=asset.purchase_date,
                purchase_price=asset.purchase_price,
                current_book_value=asset.current_book_value,
                disposal=DisposalInfo.model_validate(disposal) if disposal else None,
                last_history=(
                    AssetHistoryOut.model_validate(asset.history[0]) if asset.history else None
                ),
            ))

        by_status = defaultdict(int)
        for asset in assets:
            by_status[asset.status] += 1
        return DamagedLossReport(
            rows=rows,
            damaged_count=by_status[AssetStatus.DAMAGED],
            lost_count=by_status[AssetStatus.LOST],
            disposed_count=by_status[AssetStatus.DISPOSED],
            total_book_value=sum((_book_value(a) for a in assets), _ZERO),
        )

    # ── Deployments ─────────────────────────────────────────────────

    @staticmethod
    async def _load_deployments(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        filters: dict[str, Any],
        *,
        department_id: Optional[uuid.UUID] = None,
        category_id: Optional[uuid.UUID] = None,
        include_returned: bool = False,
    ) -> list[AssetDeployment]:
        query = (
            select(AssetDeployment)
            .join(AssetDeployment.asset)
            .join(AssetDeployment.employee)
            .where(AssetDeployment.business_unit_id == business_unit_id)
            .options(
                selectinload(AssetDeployment.asset).selectinload(Asset.category),
                selectinload(AssetDeployment.employee).selectinload(User.department),
            )
        )
        query = apply_filters(query, AssetDeployment, filters)
        if department_id is not None:
            query = query.where(User.department_id == department_id)
        if category_id is not None:
            query = query.where(Asset.category_id == category_id)
        if not include_returned and filters.get("status") is None:
            query = query.where(AssetDeployment.status != DeploymentStatus.RETURNED)
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    def deployment_row(deployment: AssetDeployment) -> DeploymentReportRow:
        asset = deployment.asset
        return DeploymentReportRow(
            id=deployment.id,
            transmittal_number=deployment.transmittal_number,
            status=deployment.status,
            deployed_date=deployment.deployed_date,
            expected_return_date=deployment.expected_return_date,
            returned_date=deployment.returned_date,
            deployment_condition=deployment.deployment_condition,
            return_condition=deployment.return_condition,
            asset=DeployedAssetBrief(
                id=asset.id,
                item_code=asset.item_code,
                description=asset.description,
                category=CategoryBrief.model_validate(asset.category),
                current_book_value=asset.current_book_value,
                purchase_price=asset.purchase_price,
            ),
            employee=EmployeeBrief.model_validate(deployment.employee),
            department=_department(deployment.employee),
        )

    @staticmethod
    async def deployments(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        filters: dict[str, Any],
        **scope: Any,
    ) -> list[DeploymentReportRow]:
        """Deployments grouped by department and employee, newest first within each."""
        deployments = await ReportService._load_deployments(db, business_unit_id, filters, **scope)
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        deployments.sort(
            key=lambda d: as_utc(d.deployed_date) if d.deployed_date else oldest, reverse=True,
        )
        deployments.sort(key=lambda d: (
            d.employee.department.name if d.employee.department else "",
            d.employee.name,
        ))
        return [ReportService.deployment_row(d) for d in deployments]

    @staticmethod
    async def deployment_summary(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        filters: dict[str, Any],
        **scope: Any,
    ) -> DeploymentSummary:
        scope["include_returned"] = True
        deployments = await ReportService._load_deployments(db, business_unit_id, filters, **scope)

        durations = [
            (as_utc(d.returned_date) - as_utc(d.deployed_date)).days
            for d in deployments
            if d.status == DeploymentStatus.RETURNED and d.deployed_date and d.returned_date
        ]
        average = None
        if durations:
            average = (Decimal(sum(durations)) / len(durations)).quantize(_CENT)

        return DeploymentSummary(
            total_deployments=len(deployments),
            active_deployments=sum(
                1 for d in deployments
                if d.status == DeploymentStatus.DEPLOYED and d.returned_date is None
            ),
            returned_deployments=sum(
                1 for d in deployments if d.status == DeploymentStatus.RETURNED
            ),
            pending_approval=sum(
                1 for d in deployments
                if d.status == DeploymentStatus.PENDING_ACCOUNTING_APPROVAL
            ),
            total_asset_value=sum((_book_value(d.asset) for d in deployments), _ZERO),
            average_deployment_days=average,
            by_department=_counts([
                d.employee.department.name if d.employee.department else UNASSIGNED
                for d in deployments
            ]),
            by_category=_counts([d.asset.category.name for d in deployments]),
        )
