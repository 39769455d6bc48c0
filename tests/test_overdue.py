from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from motor_rental.core.enums import FineMethod
from motor_rental.core.exceptions import CalculationInvariantViolation
from motor_rental.core.timezone import LOCAL_TZ
from motor_rental.services.overdue import (
    PenaltyPolicy,
    calculate_fine,
    calculate_fine_breakdown,
    calculate_lateness_minutes,
    calculate_overdue,
)

pytestmark = pytest.mark.penalty

# 240000/day for 2 days
TOTAL_PRICE = 480000
BILLABLE_HOURS = 48


def test_lateness_rounds_partial_minutes_up():
    agreed = datetime(2025, 1, 10, 10, 0, tzinfo=LOCAL_TZ)
    assert calculate_lateness_minutes(agreed, agreed) == 0
    assert calculate_lateness_minutes(agreed, agreed - timedelta(hours=1)) == 0
    assert calculate_lateness_minutes(agreed, agreed + timedelta(seconds=1)) == 1
    assert calculate_lateness_minutes(agreed, agreed + timedelta(minutes=90)) == 90


def test_lateness_across_offsets():
    agreed = datetime(2025, 1, 10, 10, 0, tzinfo=LOCAL_TZ)
    # 03:30 UTC is 10:30 WIB
    reference = datetime(2025, 1, 10, 3, 30, tzinfo=timezone.utc)
    assert calculate_lateness_minutes(agreed, reference) == 30


def test_ninety_minutes_late_uses_per_minute_tier():
    breakdown = calculate_fine_breakdown(TOTAL_PRICE, BILLABLE_HOURS, 90)
    assert breakdown.method == FineMethod.PER_MINUTE
    assert breakdown.total_fine == 11250
    assert breakdown.hourly_rate == 10000
    assert breakdown.daily_rate == 240000
    assert breakdown.minimum_fine == 7500
    assert not breakdown.floor_applied


def test_three_hundred_minutes_late_uses_per_hour_tier():
    breakdown = calculate_fine_breakdown(TOTAL_PRICE, BILLABLE_HOURS, 300)
    assert breakdown.method == FineMethod.PER_HOUR
    assert breakdown.total_fine == 37500


def test_beyond_eight_hours_uses_per_day_tier():
    breakdown = calculate_fine_breakdown(TOTAL_PRICE, BILLABLE_HOURS, 600)
    assert breakdown.method == FineMethod.PER_DAY
    assert breakdown.total_fine == 180000


def test_tier_boundaries():
    assert calculate_fine_breakdown(TOTAL_PRICE, BILLABLE_HOURS, 120).method == (
        FineMethod.PER_MINUTE
    )
    assert calculate_fine_breakdown(TOTAL_PRICE, BILLABLE_HOURS, 121).method == (
        FineMethod.PER_HOUR
    )
    assert calculate_fine_breakdown(TOTAL_PRICE, BILLABLE_HOURS, 480).method == (
        FineMethod.PER_HOUR
    )
    assert calculate_fine_breakdown(TOTAL_PRICE, BILLABLE_HOURS, 481).method == (
        FineMethod.PER_DAY
    )


def test_minimum_charge_floor():
    breakdown = calculate_fine_breakdown(TOTAL_PRICE, BILLABLE_HOURS, 1)
    assert breakdown.floor_applied
    assert breakdown.method == FineMethod.MINIMUM_CHARGE
    assert breakdown.total_fine == 7500


def test_no_lateness_means_no_fine():
    breakdown = calculate_fine_breakdown(TOTAL_PRICE, BILLABLE_HOURS, 0)
    assert breakdown.method == FineMethod.NO_LATENESS
    assert breakdown.total_fine == 0
    assert calculate_fine(TOTAL_PRICE, BILLABLE_HOURS, -5) == 0


def test_fine_is_monotonic_and_floored():
    previous = 0
    for minutes in range(1, 2 * 24 * 60):
        fine = calculate_fine(TOTAL_PRICE, BILLABLE_HOURS, minutes)
        assert fine >= previous
        assert fine >= 7500
        previous = fine


def test_invalid_inputs_raise():
    with pytest.raises(CalculationInvariantViolation):
        calculate_fine_breakdown(-1, BILLABLE_HOURS, 10)
    with pytest.raises(CalculationInvariantViolation):
        calculate_fine_breakdown(TOTAL_PRICE, 0, 10)


def test_policy_is_configurable():
    policy = PenaltyPolicy(
        fine_rate=1.0,
        penalty_multiplier=1.0,
        per_minute_max_minutes=60,
        per_hour_max_minutes=240,
    )
    breakdown = calculate_fine_breakdown(TOTAL_PRICE, BILLABLE_HOURS, 90, policy)
    assert breakdown.method == FineMethod.PER_HOUR
    assert breakdown.total_fine == 20000
    assert breakdown.penalty_applied == 1.0


def test_calculate_overdue_for_rental_snapshot():
    agreed = datetime(2025, 1, 10, 10, 30, tzinfo=LOCAL_TZ)
    rental = SimpleNamespace(
        agreed_return_at=agreed,
        total_price=TOTAL_PRICE,
        duration_value=2,
        duration_unit="day",
    )

    late = calculate_overdue(rental, agreed + timedelta(minutes=90))
    assert late.is_overdue
    assert late.status == "overdue"
    assert late.lateness_minutes == 90
    assert late.lateness_hours == 2
    assert late.lateness_days == 1
    assert late.fine == 11250

    early = calculate_overdue(rental, agreed - timedelta(minutes=1))
    assert not early.is_overdue
    assert early.status == "active"
    assert early.fine == 0
