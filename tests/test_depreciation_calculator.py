"""Depreciation arithmetic — methods, salvage floor, due dates, calendar helpers."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from backoffice.common.constants import DepreciationMethod, DepreciationPeriod
from backoffice.depreciation.calculator import (
    add_months,
    calculate_depreciation,
    has_setup,
    is_due,
    is_month_end,
    months_between,
    straight_line_monthly,
    useful_life_in_months,
)


def _asset(**overrides) -> SimpleNamespace:
    values = dict(
        depreciation_method=DepreciationMethod.STRAIGHT_LINE,
        depreciation_period=DepreciationPeriod.MONTHLY,
        purchase_price=Decimal("12000"),
        salvage_value=Decimal("0"),
        current_book_value=None,
        monthly_depreciation=None,
        useful_life_years=1,
        useful_life_months=None,
        depreciation_rate=None,
        total_expected_units=None,
        depreciation_start_date=date(2025, 1, 1),
        last_depreciation_date=None,
        next_depreciation_date=None,
        is_fully_depreciated=False,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestStraightLine:

    def test_monthly_amount(self):
        assert straight_line_monthly(Decimal("12000"), Decimal("0"), 12) == Decimal("1000.00")
        assert straight_line_monthly(Decimal("1000"), Decimal("100"), 3) == Decimal("300.00")
        assert straight_line_monthly(None, 0, 12) is None
        assert straight_line_monthly(Decimal("1000"), 0, None) is None

    def test_useful_life_prefers_months(self):
        assert useful_life_in_months(2, 30) == 30
        assert useful_life_in_months(2, None) == 24
        assert useful_life_in_months(None, None) is None

    def test_one_period(self):
        result = calculate_depreciation(_asset())
        assert result.amount == Decimal("1000.00")
        assert result.book_value_before == Decimal("12000.00")
        assert result.book_value_after == Decimal("11000.00")
        assert result.fully_depreciated is False

    def test_quarterly_period_triples_amount(self):
        result = calculate_depreciation(_asset(depreciation_period=DepreciationPeriod.QUARTERLY))
        assert result.amount == Decimal("3000.00")

    def test_never_goes_below_salvage(self):
        asset = _asset(current_book_value=Decimal("1500"), salvage_value=Decimal("1000"))
        result = calculate_depreciation(asset)
        assert result.amount == Decimal("500.00")
        assert result.book_value_after == Decimal("1000.00")
        assert result.fully_depreciated is True


class TestOtherMethods:

    def test_declining_balance(self):
        asset = _asset(
            depreciation_method=DepreciationMethod.DECLINING_BALANCE,
            depreciation_rate=Decimal("24"),
        )
        # 12000 * 24% / 12
        assert calculate_depreciation(asset).amount == Decimal("240.00")

    def test_units_of_production(self):
        asset = _asset(
            depreciation_method=DepreciationMethod.UNITS_OF_PRODUCTION,
            salvage_value=Decimal("2000"),
            total_expected_units=1000,
        )
        result = calculate_depreciation(asset, units_in_period=50)
        assert result.amount == Decimal("500.00")
        assert result.basis["units_in_period"] == 50

    def test_sum_of_years_digits_falls_back_to_monthly(self):
        asset = _asset(depreciation_method=DepreciationMethod.SUM_OF_YEARS_DIGITS)
        assert calculate_depreciation(asset).amount == Decimal("1000.00")

    def test_setup_requirements(self):
        assert has_setup(_asset())
        assert not has_setup(_asset(depreciation_method=None))
        assert not has_setup(_asset(purchase_price=None))
        assert not has_setup(_asset(
            depreciation_method=DepreciationMethod.DECLINING_BALANCE, depreciation_rate=None,
        ))


class TestDueDates:

    def test_first_run_due_after_start(self):
        assert is_due(_asset(), date(2025, 1, 31))
        assert not is_due(_asset(depreciation_start_date=date(2025, 2, 1)), date(2025, 1, 31))

    def test_no_double_charge_within_period(self):
        asset = _asset(
            last_depreciation_date=date(2025, 1, 31),
            next_depreciation_date=date(2025, 2, 28),
        )
        assert not is_due(asset, date(2025, 1, 31))
        assert is_due(asset, date(2025, 2, 28))

    def test_quarterly_waits_three_months(self):
        asset = _asset(
            depreciation_period=DepreciationPeriod.QUARTERLY,
            last_depreciation_date=date(2025, 3, 31),
        )
        assert not is_due(asset, date(2025, 5, 31))
        assert is_due(asset, date(2025, 6, 30))

    def test_fully_depreciated_never_due(self):
        assert not is_due(_asset(is_fully_depreciated=True), date(2025, 6, 30))


class TestCalendar:

    def test_month_end(self):
        assert is_month_end(date(2025, 2, 28))
        assert is_month_end(date(2025, 1, 30))
        assert not is_month_end(date(2025, 1, 29))
        assert not is_month_end(date(2024, 2, 28))

    def test_add_months_clamps_day(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2025, 11, 30), 3) == date(2026, 2, 28)

    def test_months_between(self):
        assert months_between(date(2024, 11, 30), date(2025, 2, 1)) == 3
