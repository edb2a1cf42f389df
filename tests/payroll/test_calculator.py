from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from shiftwatch.payroll.calculator.efficiency_weighted_calculator import EfficiencyWeightedCalculator
from shiftwatch.payroll.calculator.standard_calculator import StandardPayrollCalculator
from shiftwatch.payroll.factory import calculator_for

from conftest import make_worker, office_schedule


def test_daily_rate_spreads_salary_over_four_weeks_of_working_days():
    worker = make_worker(salary="100000")

    assert StandardPayrollCalculator().daily_amount(worker, 10) == Decimal("5000.00")


def test_daily_rate_rounds_half_up_to_cents():
    # 1000.1 / 20 = 50.005
    assert StandardPayrollCalculator.daily_rate(make_worker(salary="1000.1")) == Decimal("50.01")


def test_zero_salary_gives_zero_rate():
    assert StandardPayrollCalculator.daily_rate(make_worker(salary="0")) == Decimal("0.00")


def test_efficiency_weighted_scales_by_score():
    worker = make_worker(salary="100000")

    assert EfficiencyWeightedCalculator().daily_amount(worker, 85) == Decimal("4250.00")
    assert EfficiencyWeightedCalculator().daily_amount(worker, 140) == Decimal("5000.00")


def test_worked_minutes_subtracts_lunch_break():
    calc = StandardPayrollCalculator()

    minutes = calc.worked_minutes(datetime(2026, 3, 2, 9, 0), datetime(2026, 3, 2, 17, 0), office_schedule())

    assert minutes == 7 * 60


def test_worked_minutes_counts_only_break_overlap():
    calc = StandardPayrollCalculator()

    minutes = calc.worked_minutes(datetime(2026, 3, 2, 12, 30), datetime(2026, 3, 2, 14, 0), office_schedule())

    assert minutes == 60


def test_factory_picks_calculator_by_name():
    assert isinstance(calculator_for("standard"), StandardPayrollCalculator)
    assert isinstance(calculator_for("Efficiency_Weighted"), EfficiencyWeightedCalculator)
    with pytest.raises(ValueError):
        calculator_for("hourly")
