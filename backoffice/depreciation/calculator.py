"""Depreciation arithmetic.

Pure functions over plain values (or any object exposing the asset's
depreciation attributes), so they can be used from the manual endpoints,
the scheduler and the preview without touching the database.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from backoffice.common.constants import DepreciationMethod, DepreciationPeriod

CENT = Decimal("0.01")
ZERO = Decimal("0")

PERIOD_MONTHS: dict[DepreciationPeriod, int] = {
    DepreciationPeriod.MONTHLY: 1,
    DepreciationPeriod.QUARTERLY: 3,
    DepreciationPeriod.ANNUALLY: 12,
}


@dataclass(frozen=True)
class DepreciationResult:
    amount: Decimal
    book_value_before: Decimal
    book_value_after: Decimal
    fully_depreciated: bool
    basis: dict[str, Any] = field(default_factory=dict)


def _money(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def period_multiplier(period: Optional[DepreciationPeriod]) -> int:
    return PERIOD_MONTHS.get(period or DepreciationPeriod.MONTHLY, 1)


def useful_life_in_months(years: Optional[int], months: Optional[int]) -> Optional[int]:
    if months:
        return months
    if years:
        return years * 12
    return None


def straight_line_monthly(
    purchase_price: Any,
    salvage_value: Any,
    life_months: Optional[int],
) -> Optional[Decimal]:
    """``(cost - salvage) / life`` or ``None`` when the inputs are missing."""
    if purchase_price is None or not life_months:
        return None
    depreciable = Decimal(str(purchase_price)) - Decimal(str(salvage_value or 0))
    return _money(max(depreciable, ZERO) / Decimal(life_months))


def _monthly_amount(asset: Any) -> Decimal:
    if asset.monthly_depreciation is not None:
        return Decimal(str(asset.monthly_depreciation))
    life = useful_life_in_months(asset.useful_life_years, asset.useful_life_months)
    return straight_line_monthly(asset.purchase_price, asset.salvage_value, life) or ZERO


def opening_book_value(asset: Any) -> Decimal:
    if asset.current_book_value is not None:
        return _money(asset.current_book_value)
    return _money(asset.purchase_price)


def calculate_depreciation(
    asset: Any,
    *,
    units_in_period: Optional[int] = None,
) -> DepreciationResult:
    """Compute one period's depreciation for *asset*.

    The amount never takes the book value below salvage.
    """
    method = asset.depreciation_method
    multiplier = period_multiplier(asset.depreciation_period)
    book = opening_book_value(asset)
    salvage = _money(asset.salvage_value)
    basis: dict[str, Any] = {
        "method": method.value if method else None,
        "period_months": multiplier,
        "book_value": str(book),
        "salvage_value": str(salvage),
    }

    if method == DepreciationMethod.DECLINING_BALANCE:
        rate = Decimal(str(asset.depreciation_rate or 0))
        raw = book * (rate / Decimal(100) / Decimal(12)) * multiplier
        basis["rate"] = str(rate)
    elif (
        method == DepreciationMethod.UNITS_OF_PRODUCTION
        and units_in_period
        and asset.total_expected_units
    ):
        cost = Decimal(str(asset.purchase_price or 0))
        per_unit = (cost - salvage) / Decimal(asset.total_expected_units)
        raw = per_unit * units_in_period
        basis["per_unit"] = str(_money(per_unit))
        basis["units_in_period"] = units_in_period
    else:
        # STRAIGHT_LINE, and the monthly fallback for the others
        monthly = _monthly_amount(asset)
        raw = monthly * multiplier
        basis["monthly_depreciation"] = str(_money(monthly))

    amount = _money(min(max(raw, ZERO), max(book - salvage, ZERO)))
    after = max(book - amount, salvage)
    return DepreciationResult(
        amount=amount,
        book_value_before=book,
        book_value_after=after,
        fully_depreciated=after <= salvage,
        basis=basis,
    )


# ── Calendar helpers ────────────────────────────────────────────────

def month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def period_bounds(day: date) -> tuple[date, date]:
    """First and last day of the month containing *day*."""
    return day.replace(day=1), month_end(day)


def is_month_end(day: date) -> bool:
    return day == month_end(day) or day.day >= 30


def add_months(day: date, months: int) -> date:
    index = day.month - 1 + months
    year, month = day.year + index // 12, index % 12 + 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def months_between(earlier: date, later: date) -> int:
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def next_depreciation_date(day: date, period: Optional[DepreciationPeriod]) -> date:
    return add_months(day, period_multiplier(period))


def is_due(asset: Any, on: date) -> bool:
    """Whether *asset* should be depreciated on *on* without double-applying."""
    if asset.is_fully_depreciated:
        return False
    start = asset.depreciation_start_date
    if start is not None and on < start:
        return False
    last = asset.last_depreciation_date
    if last is None:
        return True
    if asset.next_depreciation_date is not None and on >= asset.next_depreciation_date:
        return True
    return months_between(last, on) >= period_multiplier(asset.depreciation_period)


def has_setup(asset: Any) -> bool:
    """Enough configuration to compute a non-trivial amount."""
    method = asset.depreciation_method
    if method is None or opening_book_value(asset) <= ZERO:
        return False
    if method == DepreciationMethod.DECLINING_BALANCE:
        return bool(asset.depreciation_rate)
    if method == DepreciationMethod.UNITS_OF_PRODUCTION and asset.total_expected_units:
        return True
    return _monthly_amount(asset) > ZERO
