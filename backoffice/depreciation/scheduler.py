"""Scheduled depreciation runs.

A schedule is due on a date when its ``execution_day`` falls on that day
(days past the month's length run on the last day), in the right month for
quarterly and annual schedules. Each schedule runs at most once per day.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.common.constants import ExecutionStatus, ScheduleType
from backoffice.depreciation.models import DepreciationExecution, DepreciationSchedule
from backoffice.depreciation.service import run_execution, select_assets, today

logger = logging.getLogger(__name__)


def effective_execution_day(execution_day: int, on: date) -> int:
    return min(execution_day, calendar.monthrange(on.year, on.month)[1])


def is_schedule_due(schedule: DepreciationSchedule, on: date) -> bool:
    if not schedule.is_active:
        return False
    if effective_execution_day(schedule.execution_day, on) != on.day:
        return False
    if schedule.schedule_type == ScheduleType.QUARTERLY:
        return on.month % 3 == 0
    if schedule.schedule_type == ScheduleType.ANNUALLY:
        return on.month == 12
    return True


async def due_schedules(db: AsyncSession, on: date) -> list[DepreciationSchedule]:
    result = await db.execute(
        select(DepreciationSchedule)
        .where(DepreciationSchedule.is_active.is_(True))
        .order_by(DepreciationSchedule.name)
    )
    return [s for s in result.scalars().all() if is_schedule_due(s, on)]


async def already_ran(db: AsyncSession, schedule: DepreciationSchedule, on: date) -> bool:
    existing = await db.execute(
        select(DepreciationExecution.id).where(
            DepreciationExecution.schedule_id == schedule.id,
            DepreciationExecution.execution_date == on,
        ).limit(1)
    )
    return existing.scalar_one_or_none() is not None


async def execute_schedule(
    db: AsyncSession,
    schedule: DepreciationSchedule,
    on: Optional[date] = None,
    *,
    executed_by=None,
) -> Optional[DepreciationExecution]:
    """Run *schedule* for *on*; ``None`` if it already ran that day."""
    on = on or today()
    if await already_ran(db, schedule, on):
        logger.info("Schedule %s already executed on %s, skipping", schedule.name, on)
        return None

    assets = await select_assets(
        db,
        schedule.business_unit_id,
        include_categories=schedule.include_categories,
        exclude_categories=schedule.exclude_categories,
    )
    logger.info("Executing schedule %s over %d asset(s)", schedule.name, len(assets))
    return await run_execution(
        db,
        business_unit_id=schedule.business_unit_id,
        assets=assets,
        on=on,
        schedule=schedule,
        executed_by=executed_by,
    )


async def run_schedules(
    db: AsyncSession,
    schedules: list[DepreciationSchedule],
    on: date,
    *,
    executed_by=None,
) -> list[dict[str, Any]]:
    """Execute each schedule, collecting one result dict per schedule.

    Each schedule runs in its own savepoint. A failing schedule is reported
    and does not stop the others.
    """
    results: list[dict[str, Any]] = []
    for schedule in schedules:
        entry: dict[str, Any] = {
            "schedule_id": str(schedule.id),
            "schedule_name": schedule.name,
        }
        try:
            async with db.begin_nested():
                execution = await execute_schedule(db, schedule, on, executed_by=executed_by)
        except Exception as exc:
            logger.exception("Schedule %s failed", entry["schedule_name"])
            entry.update(status="error", error=str(exc))
        else:
            if execution is None:
                entry.update(status="skipped", reason="already executed today")
            elif execution.status == ExecutionStatus.FAILED:
                entry.update(
                    status="error",
                    execution_id=str(execution.id),
                    execution_status=execution.status.value,
                    error=execution.error_message,
                )
            else:
                entry.update(
                    status="success",
                    execution_id=str(execution.id),
                    execution_status=execution.status.value,
                    assets_processed=execution.total_assets_processed,
                    total_depreciation_amount=str(execution.total_depreciation_amount),
                )
        results.append(entry)
    return results


async def run_due_schedules(db: AsyncSession, on: Optional[date] = None) -> list[dict[str, Any]]:
    on = on or today()
    schedules = await due_schedules(db, on)
    logger.info("Found %d depreciation schedule(s) due on %s", len(schedules), on)
    return await run_schedules(db, schedules, on)
