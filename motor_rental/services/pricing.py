import math
from datetime import datetime, timedelta
from fractions import Fraction
from typing import Iterable, Tuple

from motor_rental.core.enums import AdjustmentKind, DurationUnit
from motor_rental.core.exceptions import CalculationInvariantViolation
from motor_rental.schemas import Adjustment, AdjustmentTotals

HOURS_IN_DAY = 24
MICROSECONDS_IN_HOUR = 3_600_000_000


def hours_between(start: datetime, end: datetime) -> Fraction:
    micros = (end - start) // timedelta(microseconds=1)
    return Fraction(micros, MICROSECONDS_IN_HOUR)


def billable_hours_for(duration_value: int, duration_unit: DurationUnit) -> int:
    if DurationUnit(duration_unit) == DurationUnit.DAY:
        return duration_value * HOURS_IN_DAY
    return duration_value


def calculate_duration_and_price(
    start: datetime,
    end: datetime,
    duration_unit: DurationUnit,
    base_rate_per_day: int,
) -> Tuple[int, int]:
    if base_rate_per_day < 0:
        raise CalculationInvariantViolation(
            f"Negative base rate {base_rate_per_day}"
        )

    hours = hours_between(start, end)

    if DurationUnit(duration_unit) == DurationUnit.HOUR:
        duration = max(1, math.ceil(hours))
        base_price = math.ceil(Fraction(base_rate_per_day, HOURS_IN_DAY) * duration)
    else:
        duration = max(1, math.ceil(hours / HOURS_IN_DAY))
        base_price = base_rate_per_day * duration

    return duration, base_price


def calculate_adjustment_totals(adjustments: Iterable[Adjustment]) -> AdjustmentTotals:
    adjustments = list(adjustments or [])
    total_discount = sum(
        a.amount for a in adjustments if a.kind == AdjustmentKind.DISCOUNT
    )
    total_additional = sum(
        a.amount for a in adjustments if a.kind == AdjustmentKind.ADDITIONAL
    )
    return AdjustmentTotals(
        total_discount=total_discount,
        total_additional=total_additional,
        net=total_additional - total_discount,
    )


def calculate_net_price(base_price: int, adjustments: Iterable[Adjustment]) -> int:
    totals = calculate_adjustment_totals(adjustments)
    return max(0, base_price + totals.net)


def calculate_extension_fee(
    current_return: datetime,
    new_return: datetime,
    duration_unit: DurationUnit,
    base_rate_per_day: int,
) -> Tuple[int, int]:
    """Price top-up for pushing the agreed return forward: (extended_hours, fee)."""
    extended_hours = math.ceil(hours_between(current_return, new_return))
    if extended_hours <= 0:
        raise CalculationInvariantViolation(
            f"Extension must be positive, got {extended_hours}h"
        )

    if DurationUnit(duration_unit) == DurationUnit.HOUR:
        hourly_rate = math.ceil(Fraction(base_rate_per_day, HOURS_IN_DAY))
        fee = hourly_rate * extended_hours
    else:
        fee = base_rate_per_day * math.ceil(Fraction(extended_hours, HOURS_IN_DAY))

    return extended_hours, fee


def extension_in_unit(extended_hours: int, duration_unit: DurationUnit) -> int:
    if DurationUnit(duration_unit) == DurationUnit.DAY:
        return math.ceil(Fraction(extended_hours, HOURS_IN_DAY))
    return extended_hours
