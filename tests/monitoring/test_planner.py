from __future__ import annotations

import random

import pytest

from shiftwatch.core.exceptions import ValidationError
from shiftwatch.monitoring.planner import MonitoringWindowPlanner
from shiftwatch.schedules.model import BreakInterval

from conftest import MONDAY, office_schedule

NINE, NOON, ONE, FIVE = 9 * 60, 12 * 60, 13 * 60, 17 * 60


def test_office_day_draws_ten_distinct_minutes_outside_lunch():
    planner = MonitoringWindowPlanner(random.Random(7))
    minutes = planner.plan(NINE, FIVE, [BreakInterval(NOON, ONE)], 10)

    assert len(minutes) == 10
    assert len(set(minutes)) == 10
    assert minutes == sorted(minutes)
    for m in minutes:
        assert NINE <= m < NOON or ONE <= m < FIVE


@pytest.mark.parametrize("seed", range(25))
def test_plan_respects_bounds_for_many_seeds(seed):
    rng = random.Random(seed)
    start = rng.randrange(0, 600)
    end = start + rng.randrange(30, 600)
    b_start = rng.randrange(start, end - 10)
    breaks = [BreakInterval(b_start, b_start + rng.randrange(1, 10))]
    target = rng.randrange(0, 40)

    minutes = MonitoringWindowPlanner(rng).plan(start, end, breaks, target)
    eligible = MonitoringWindowPlanner.eligible_minutes(start, end, breaks)

    assert len(minutes) == min(target, len(eligible))
    assert minutes == sorted(set(minutes))
    assert all(start <= m < end and not breaks[0].covers(m) for m in minutes)


def test_short_window_returns_every_eligible_minute():
    minutes = MonitoringWindowPlanner().plan(NINE, NINE + 8, [BreakInterval(NINE + 2, NINE + 5)], 10)

    assert minutes == [NINE, NINE + 1, NINE + 5, NINE + 6, NINE + 7]


def test_break_covering_whole_window_yields_nothing():
    assert MonitoringWindowPlanner().plan(NINE, NOON, [BreakInterval(NINE, NOON)], 10) == []


def test_zero_target_yields_nothing():
    assert MonitoringWindowPlanner().plan(NINE, FIVE, [], 0) == []


def test_end_before_start_is_rejected():
    with pytest.raises(ValidationError):
        MonitoringWindowPlanner().plan(FIVE, NINE, [], 10)


def test_overlapping_breaks_are_rejected():
    with pytest.raises(ValidationError):
        MonitoringWindowPlanner().plan(NINE, FIVE, [BreakInterval(NOON, ONE), BreakInterval(NOON + 30, ONE + 30)], 10)


def test_plan_day_returns_datetimes_on_the_work_date():
    instants = MonitoringWindowPlanner(random.Random(1)).plan_day(office_schedule(), MONDAY, 10)

    assert len(instants) == 10
    assert all(i.date() == MONDAY for i in instants)
    assert all(i.hour != 12 for i in instants)
