"""Depreciation service layer.

Applies calculator results to assets (record + book values + history),
runs executions over a set of assets, and serves the manual calculation,
preview, history, summary and schedule administration endpoints.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import Counter, defaultdict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.assets.models import Asset, AssetDepreciation, AssetHistory
from backoffice.common.audit import create_audit_entry
from backoffice.common.constants import (
    AssetHistoryAction,
    ExecutionAssetStatus,
    ExecutionStatus,
    UserRole,
)
from backoffice.common.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
)
from backoffice.common.filters import apply_filters
from backoffice.common.models import model_snapshot
from backoffice.common.pagination import PaginatedResponse, PaginationParams, paginate
from backoffice.depreciation.calculator import (
    DepreciationResult,
    calculate_depreciation,
    has_setup,
    is_due,
    is_month_end,
    next_depreciation_date,
    opening_book_value,
    period_bounds,
)
from backoffice.depreciation.models import (
    DepreciationExecution,
    DepreciationExecutionAsset,
    DepreciationSchedule,
)
from backoffice.depreciation.schemas import (
    BatchCalculateRequest,
    CalculateAssetRequest,
    DepreciationRecordOut,
    DepreciationSummary,
    ExecutionDetail,
    ExecutionOut,
    PreviewResult,
    PreviewRow,
    ScheduleCreate,
    ScheduleOut,
    ScheduleUpdate,
)
from backoffice.organization.models import User

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def today() -> date:
    return datetime.now(timezone.utc).date()


# ═════════════════════════════════════════════════════════════════════
# Core: apply one period / run an execution
# ═════════════════════════════════════════════════════════════════════


def apply_depreciation(
    db: AsyncSession,
    asset: Asset,
    result: DepreciationResult,
    on: date,
    actor_id: Optional[uuid.UUID],
    *,
    units_in_period: Optional[int] = None,
    notes: Optional[str] = None,
) -> AssetDepreciation:
    """Write *result* onto *asset* and stage the record and history rows."""
    period_start, period_end = period_bounds(on)
    accumulated = Decimal(str(asset.accumulated_depreciation or 0)) + result.amount

    record = AssetDepreciation(
        id=uuid.uuid4(),
        asset_id=asset.id,
        depreciation_date=on,
        period_start_date=period_start,
        period_end_date=period_end,
        book_value_start=result.book_value_before,
        depreciation_amount=result.amount,
        book_value_end=result.book_value_after,
        accumulated_depreciation=accumulated,
        method=asset.depreciation_method,
        calculation_basis=result.basis,
        units_in_period=units_in_period,
        notes=notes,
        calculated_by=actor_id,
    )
    db.add(record)

    asset.current_book_value = result.book_value_after
    asset.accumulated_depreciation = accumulated
    asset.last_depreciation_date = on
    asset.next_depreciation_date = next_depreciation_date(on, asset.depreciation_period)
    asset.is_fully_depreciated = result.fully_depreciated
    if units_in_period:
        asset.current_units = (asset.current_units or 0) + units_in_period

    db.add(AssetHistory(
        asset_id=asset.id,
        action=AssetHistoryAction.DEPRECIATION_CALCULATED,
        notes=f"Depreciation of {result.amount} for {period_start:%B %Y}",
        previous_value=str(result.book_value_before),
        new_value=str(result.book_value_after),
        performed_by=actor_id,
        business_unit_id=asset.business_unit_id,
        details={
            "amount": str(result.amount),
            "accumulated_depreciation": str(accumulated),
            "record_id": str(record.id),
        },
    ))
    return record


def _evaluate_asset(
    db: AsyncSession,
    execution_id: uuid.UUID,
    asset: Asset,
    on: date,
    actor_id: Optional[uuid.UUID],
) -> DepreciationExecutionAsset:
    opening = opening_book_value(asset)
    row = DepreciationExecutionAsset(
        execution_id=execution_id,
        asset_id=asset.id,
        depreciation_amount=ZERO,
        book_value_before=opening,
        book_value_after=opening,
    )
    if not is_due(asset, on):
        row.status = ExecutionAssetStatus.SKIPPED
        row.calculation_details = {"reason": "not due"}
    elif not has_setup(asset):
        row.status = ExecutionAssetStatus.NO_SETUP
    else:
        result = calculate_depreciation(asset)
        record = apply_depreciation(db, asset, result, on, actor_id)
        row.depreciation_record_id = record.id
        row.depreciation_amount = result.amount
        row.book_value_after = result.book_value_after
        row.calculation_details = result.basis
        row.status = (
            ExecutionAssetStatus.FULLY_DEPRECIATED if result.fully_depreciated
            else ExecutionAssetStatus.SUCCESS
        )
    db.add(row)
    return row


async def _process_asset(
    db: AsyncSession,
    execution_id: uuid.UUID,
    asset: Asset,
    on: date,
    actor_id: Optional[uuid.UUID],
) -> DepreciationExecutionAsset:
    """Depreciate one asset inside its own savepoint.

    Any error, including one raised by the database while flushing, rolls
    back only this asset and is recorded as a ``FAILED`` row.
    """
    asset_id, item_code = asset.id, asset.item_code
    try:
        async with db.begin_nested():
            return _evaluate_asset(db, execution_id, asset, on, actor_id)
    except Exception as exc:
        logger.exception("Depreciation failed for asset %s", item_code)
        row = DepreciationExecutionAsset(
            execution_id=execution_id,
            asset_id=asset_id,
            status=ExecutionAssetStatus.FAILED,
            depreciation_amount=ZERO,
            error_message=str(exc),
        )
        db.add(row)
        await db.flush()
        return row


def _finish_execution(
    execution: DepreciationExecution,
    counts: Counter,
    total: Decimal,
    schedule_name: Optional[str],
) -> None:
    successes = counts[ExecutionAssetStatus.SUCCESS] + counts[ExecutionAssetStatus.FULLY_DEPRECIATED]
    failures = counts[ExecutionAssetStatus.FAILED]
    processed = sum(counts.values())
    if failures and not successes:
        execution.status = ExecutionStatus.FAILED
        execution.error_message = f"All {failures} asset calculation(s) failed"
    else:
        execution.status = ExecutionStatus.COMPLETED
    execution.total_assets_processed = processed
    execution.successful_calculations = successes
    execution.failed_calculations = failures
    execution.skipped_calculations = (
        counts[ExecutionAssetStatus.SKIPPED] + counts[ExecutionAssetStatus.NO_SETUP]
    )
    execution.total_depreciation_amount = total
    execution.execution_summary = {
        "schedule": schedule_name,
        "by_status": {status.value: n for status, n in counts.items()},
        "total_depreciation_amount": str(total),
    }
    execution.completed_at = datetime.now(timezone.utc)


async def select_assets(
    db: AsyncSession,
    business_unit_id: uuid.UUID,
    *,
    include_categories: Optional[Sequence] = None,
    exclude_categories: Optional[Sequence] = None,
) -> list[Asset]:
    """Active unit assets with a depreciation method that still depreciate."""
    query = (
        select(Asset)
        .where(
            Asset.business_unit_id == business_unit_id,
            Asset.is_active.is_(True),
            Asset.depreciation_method.is_not(None),
            Asset.is_fully_depreciated.is_(False),
        )
        .options(selectinload(Asset.category))
        .order_by(Asset.item_code)
    )
    if include_categories:
        query = query.where(Asset.category_id.in_([uuid.UUID(str(c)) for c in include_categories]))
    if exclude_categories:
        query = query.where(Asset.category_id.not_in([uuid.UUID(str(c)) for c in exclude_categories]))
    return list((await db.execute(query)).scalars().all())


async def run_execution(
    db: AsyncSession,
    *,
    business_unit_id: uuid.UUID,
    assets: Sequence[Asset],
    on: date,
    schedule: Optional[DepreciationSchedule] = None,
    executed_by: Optional[uuid.UUID] = None,
) -> DepreciationExecution:
    """Depreciate *assets* as one recorded execution.

    The run happens inside a savepoint. If it cannot complete, everything it
    wrote is rolled back and a ``FAILED`` execution carrying the error is
    stored in its place, leaving the session usable for the caller.
    """
    started = time.monotonic()
    schedule_id = schedule.id if schedule else None
    schedule_name = schedule.name if schedule else None
    total = ZERO

    try:
        async with db.begin_nested():
            execution = DepreciationExecution(
                schedule_id=schedule_id,
                business_unit_id=business_unit_id,
                execution_date=on,
                scheduled_date=on,
                status=ExecutionStatus.RUNNING,
                executed_by=executed_by,
            )
            db.add(execution)
            await db.flush()

            counts: Counter = Counter()
            for asset in assets:
                row = await _process_asset(db, execution.id, asset, on, executed_by)
                counts[row.status] += 1
                total += row.depreciation_amount

            _finish_execution(execution, counts, total, schedule_name)
            execution.execution_duration_ms = int((time.monotonic() - started) * 1000)
    except Exception as exc:
        logger.exception("Depreciation execution for schedule %s failed", schedule_name)
        execution = DepreciationExecution(
            schedule_id=schedule_id,
            business_unit_id=business_unit_id,
            execution_date=on,
            scheduled_date=on,
            status=ExecutionStatus.FAILED,
            executed_by=executed_by,
            total_assets_processed=0,
            successful_calculations=0,
            failed_calculations=0,
            skipped_calculations=0,
            total_depreciation_amount=ZERO,
            error_message=str(exc),
            completed_at=datetime.now(timezone.utc),
            execution_duration_ms=int((time.monotonic() - started) * 1000),
        )
        db.add(execution)
        await db.flush()
        total = ZERO

    logger.info(
        "Depreciation execution %s (%s): %d processed, %d ok, %d failed, total %s",
        execution.id, execution.status.value, execution.total_assets_processed,
        execution.successful_calculations, execution.failed_calculations, total,
    )
    return execution


# ═════════════════════════════════════════════════════════════════════
# Manual calculation, preview, history
# ═════════════════════════════════════════════════════════════════════


class DepreciationService:

    @staticmethod
    async def load_asset(db: AsyncSession, asset_id: uuid.UUID) -> Asset:
        asset = (
            await db.execute(
                select(Asset)
                .where(Asset.id == asset_id)
                .options(selectinload(Asset.category))
                .execution_options(populate_existing=True)
            )
        ).scalars().first()
        if asset is None:
            raise NotFoundException("Asset", str(asset_id))
        return asset

    @staticmethod
    async def calculate_asset(
        db: AsyncSession,
        asset: Asset,
        data: CalculateAssetRequest,
        actor: User,
    ) -> DepreciationRecordOut:
        on = data.calculation_date or today()
        if not has_setup(asset):
            raise BusinessRuleException(
                f"Asset {asset.item_code} has no depreciation setup.",
            )
        if asset.is_fully_depreciated:
            raise BusinessRuleException(f"Asset {asset.item_code} is fully depreciated.")
        if not is_due(asset, on):
            raise BusinessRuleException(
                f"Depreciation for asset {asset.item_code} is not due on {on.isoformat()}.",
            )

        old_values = model_snapshot(
            asset, ["current_book_value", "accumulated_depreciation", "last_depreciation_date"],
        )
        result = calculate_depreciation(asset, units_in_period=data.units_in_period)
        record = apply_depreciation(
            db, asset, result, on, actor.id,
            units_in_period=data.units_in_period, notes=data.notes,
        )
        await db.flush()

        await create_audit_entry(
            db,
            action="depreciate",
            entity_type="asset",
            entity_id=asset.id,
            actor_id=actor.id,
            business_unit_id=asset.business_unit_id,
            old_values=old_values,
            new_values=model_snapshot(
                asset, ["current_book_value", "accumulated_depreciation", "last_depreciation_date"],
            ),
        )
        return DepreciationRecordOut.model_validate(record)

    @staticmethod
    async def calculate_batch(
        db: AsyncSession,
        data: BatchCalculateRequest,
        actor: User,
    ) -> ExecutionDetail:
        on = data.calculation_date or today()
        if data.override and actor.role != UserRole.ADMIN:
            raise ForbiddenException("Only administrators can override the month-end restriction.")
        if not data.override and not is_month_end(on):
            raise BusinessRuleException(
                "Batch depreciation can only run at month end "
                "(the last day of the month or day 30 onwards).",
            )

        assets = await select_assets(
            db, data.business_unit_id,
            include_categories=[data.category_id] if data.category_id else None,
        )
        execution = await run_execution(
            db,
            business_unit_id=data.business_unit_id,
            assets=assets,
            on=on,
            executed_by=actor.id,
        )
        await create_audit_entry(
            db,
            action="depreciate_batch",
            entity_type="depreciation_execution",
            entity_id=execution.id,
            actor_id=actor.id,
            business_unit_id=data.business_unit_id,
            new_values={
                "calculation_date": on.isoformat(),
                "override": data.override,
                "total_depreciation_amount": str(execution.total_depreciation_amount),
            },
        )
        return await ExecutionService.get_execution(db, execution.id)

    @staticmethod
    async def preview(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        on: Optional[date] = None,
        *,
        category_id: Optional[uuid.UUID] = None,
    ) -> PreviewResult:
        """Dry run: what a batch would charge on *on*. Nothing is written."""
        on = on or today()
        assets = await select_assets(
            db, business_unit_id,
            include_categories=[category_id] if category_id else None,
        )
        rows: list[PreviewRow] = []
        by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
        by_method: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for asset in assets:
            if not is_due(asset, on) or not has_setup(asset):
                continue
            result = calculate_depreciation(asset)
            category = asset.category.name if asset.category else "Uncategorized"
            rows.append(PreviewRow(
                asset_id=asset.id,
                item_code=asset.item_code,
                description=asset.description,
                category=category,
                method=asset.depreciation_method,
                book_value=result.book_value_before,
                depreciation_amount=result.amount,
                book_value_after=result.book_value_after,
                will_be_fully_depreciated=result.fully_depreciated,
            ))
            by_category[category] += result.amount
            by_method[asset.depreciation_method.value] += result.amount

        return PreviewResult(
            calculation_date=on,
            assets=rows,
            total_amount=sum((r.depreciation_amount for r in rows), ZERO),
            by_category=dict(by_category),
            by_method=dict(by_method),
        )

    @staticmethod
    async def asset_history(db: AsyncSession, asset_id: uuid.UUID) -> list[DepreciationRecordOut]:
        result = await db.execute(
            select(AssetDepreciation)
            .where(AssetDepreciation.asset_id == asset_id)
            .order_by(AssetDepreciation.depreciation_date.desc(), AssetDepreciation.created_at.desc())
        )
        return [DepreciationRecordOut.model_validate(r) for r in result.scalars().all()]

    @staticmethod
    async def summary(db: AsyncSession, business_unit_id: uuid.UUID) -> DepreciationSummary:
        active = (Asset.business_unit_id == business_unit_id, Asset.is_active.is_(True))
        row = (
            await db.execute(
                select(
                    func.count(Asset.id),
                    func.count(Asset.depreciation_method),
                    func.coalesce(func.sum(Asset.purchase_price), 0),
                    func.coalesce(func.sum(Asset.current_book_value), 0),
                    func.coalesce(func.sum(Asset.accumulated_depreciation), 0),
                ).where(*active)
            )
        ).one()
        fully = (
            await db.execute(
                select(func.count(Asset.id)).where(*active, Asset.is_fully_depreciated.is_(True))
            )
        ).scalar_one()
        month_start, month_end = period_bounds(today())
        this_month = (
            await db.execute(
                select(func.coalesce(func.sum(AssetDepreciation.depreciation_amount), 0))
                .join(Asset, Asset.id == AssetDepreciation.asset_id)
                .where(
                    Asset.business_unit_id == business_unit_id,
                    AssetDepreciation.depreciation_date.between(month_start, month_end),
                )
            )
        ).scalar_one()

        return DepreciationSummary(
            business_unit_id=business_unit_id,
            total_assets=row[0],
            depreciable_assets=row[1],
            fully_depreciated_assets=fully,
            total_cost=Decimal(str(row[2])),
            total_book_value=Decimal(str(row[3])),
            total_accumulated_depreciation=Decimal(str(row[4])),
            depreciation_this_month=Decimal(str(this_month)),
        )


# ═════════════════════════════════════════════════════════════════════
# Schedules
# ═════════════════════════════════════════════════════════════════════


def _id_list(values: Optional[list]) -> Optional[list[str]]:
    return [str(v) for v in values] if values else None


class ScheduleService:

    @staticmethod
    async def get_schedule(db: AsyncSession, schedule_id: uuid.UUID) -> DepreciationSchedule:
        schedule = await db.get(DepreciationSchedule, schedule_id)
        if schedule is None:
            raise NotFoundException("DepreciationSchedule", str(schedule_id))
        return schedule

    @staticmethod
    async def list_schedules(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        *,
        include_inactive: bool = True,
    ) -> list[ScheduleOut]:
        query = (
            select(DepreciationSchedule)
            .where(DepreciationSchedule.business_unit_id == business_unit_id)
            .order_by(DepreciationSchedule.name)
        )
        if not include_inactive:
            query = query.where(DepreciationSchedule.is_active.is_(True))
        rows = (await db.execute(query)).scalars().all()
        return [ScheduleOut.model_validate(s) for s in rows]

    @staticmethod
    async def create_schedule(
        db: AsyncSession,
        data: ScheduleCreate,
        actor: User,
    ) -> ScheduleOut:
        schedule = DepreciationSchedule(
            business_unit_id=data.business_unit_id,
            name=data.name,
            description=data.description,
            schedule_type=data.schedule_type,
            execution_day=data.execution_day,
            include_categories=_id_list(data.include_categories),
            exclude_categories=_id_list(data.exclude_categories),
            created_by=actor.id,
        )
        db.add(schedule)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="depreciation_schedule",
            entity_id=schedule.id,
            actor_id=actor.id,
            business_unit_id=schedule.business_unit_id,
            new_values=model_snapshot(schedule),
        )
        return ScheduleOut.model_validate(schedule)

    @staticmethod
    async def update_schedule(
        db: AsyncSession,
        schedule: DepreciationSchedule,
        data: ScheduleUpdate,
        actor: User,
    ) -> ScheduleOut:
        changes = data.model_dump(exclude_unset=True)
        for key in ("include_categories", "exclude_categories"):
            if key in changes:
                changes[key] = _id_list(changes[key])

        old_values = model_snapshot(schedule, changes.keys())
        for field, value in changes.items():
            setattr(schedule, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="depreciation_schedule",
            entity_id=schedule.id,
            actor_id=actor.id,
            business_unit_id=schedule.business_unit_id,
            old_values=old_values,
            new_values=model_snapshot(schedule, changes.keys()),
        )
        return ScheduleOut.model_validate(schedule)

    @staticmethod
    async def toggle_schedule(
        db: AsyncSession,
        schedule: DepreciationSchedule,
        actor: User,
    ) -> ScheduleOut:
        schedule.is_active = not schedule.is_active
        await db.flush()
        await create_audit_entry(
            db,
            action="activate" if schedule.is_active else "deactivate",
            entity_type="depreciation_schedule",
            entity_id=schedule.id,
            actor_id=actor.id,
            business_unit_id=schedule.business_unit_id,
            new_values={"is_active": schedule.is_active},
        )
        return ScheduleOut.model_validate(schedule)

    @staticmethod
    async def delete_schedule(
        db: AsyncSession,
        schedule: DepreciationSchedule,
        actor: User,
    ) -> None:
        executions = (
            await db.execute(
                select(func.count(DepreciationExecution.id))
                .where(DepreciationExecution.schedule_id == schedule.id)
            )
        ).scalar_one()
        if executions:
            raise BusinessRuleException(
                "Schedule has execution history and cannot be deleted. Deactivate it instead.",
            )
        old_values = model_snapshot(schedule)
        await db.delete(schedule)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="depreciation_schedule",
            entity_id=schedule.id,
            actor_id=actor.id,
            business_unit_id=schedule.business_unit_id,
            old_values=old_values,
        )


# ═════════════════════════════════════════════════════════════════════
# Executions
# ═════════════════════════════════════════════════════════════════════


class ExecutionService:

    @staticmethod
    async def list_executions(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        params: PaginationParams,
        *,
        schedule_id: Optional[uuid.UUID] = None,
        status: Optional[ExecutionStatus] = None,
    ) -> PaginatedResponse:
        query = (
            select(DepreciationExecution)
            .where(DepreciationExecution.business_unit_id == business_unit_id)
            .order_by(DepreciationExecution.created_at.desc())
        )
        query = apply_filters(query, DepreciationExecution, {
            "schedule_id": schedule_id,
            "status": status,
        })
        return await paginate(
            db, query, params,
            model=DepreciationExecution, transform=ExecutionOut.model_validate,
        )

    @staticmethod
    async def get_execution(db: AsyncSession, execution_id: uuid.UUID) -> ExecutionDetail:
        execution = (
            await db.execute(
                select(DepreciationExecution)
                .where(DepreciationExecution.id == execution_id)
                .options(selectinload(DepreciationExecution.assets))
                .execution_options(populate_existing=True)
            )
        ).scalars().first()
        if execution is None:
            raise NotFoundException("DepreciationExecution", str(execution_id))
        return ExecutionDetail.model_validate(execution)
