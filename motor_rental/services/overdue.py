"""Lateness detection and the tiered fine formula.

Both are pure: the caller supplies the reference instant and decides what to
persist.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from fractions import Fraction

from loguru import logger

from motor_rental.config.settings import Settings
from motor_rental.core.enums import FineMethod, RentalStatus
from motor_rental.core.exceptions import CalculationInvariantViolation
from motor_rental.schemas import FineBreakdown, OverdueCalculation
from motor_rental.services.pricing import HOURS_IN_DAY, billable_hours_for

MINUTES_IN_HOUR = 60
MINUTES_IN_DAY = 24 * 60


@dataclass(frozen=True)
class PenaltyPolicy:
    fine_rate: float = 0.5
    penalty_multiplier: float = 1.5
    per_minute_max_minutes: int = 120
    per_hour_max_minutes: int = 480

    @classmethod
    def from_settings(cls, settings: Settings) -> "PenaltyPolicy":
        return cls(
            fine_rate=settings.fine_rate,
            penalty_multiplier=settings.penalty_multiplier,
            per_minute_max_minutes=settings.per_minute_max_minutes,
            per_hour_max_minutes=settings.per_hour_max_minutes,
        )

    @property
    def factor(self) -> Fraction:
        # str() keeps 0.1-style settings exact
        return Fraction(str(self.fine_rate)) * Fraction(str(self.penalty_multiplier))


DEFAULT_POLICY = PenaltyPolicy()


def calculate_lateness_minutes(agreed_return_at: datetime, reference: datetime) -> int:
    if reference <= agreed_return_at:
        return 0
    micros = (reference - agreed_return_at) // timedelta(microseconds=1)
    return math.ceil(Fraction(micros, 60_000_000))


def calculate_fine_breakdown(
    total_price: int,
    billable_hours: int,
    lateness_minutes: int,
    policy: PenaltyPolicy = DEFAULT_POLICY,
) -> FineBreakdown:
    if lateness_minutes <= 0:
        return FineBreakdown(method=FineMethod.NO_LATENESS)

    if total_price < 0 or billable_hours <= 0:
        raise CalculationInvariantViolation(
            f"Cannot derive fine from price={total_price}, hours={billable_hours}"
        )

    factor = policy.factor

    hourly_rate = math.ceil(Fraction(total_price, billable_hours))
    per_minute_rate = Fraction(hourly_rate, MINUTES_IN_HOUR)
    daily_rate = math.ceil(
        Fraction(total_price) / Fraction(billable_hours, HOURS_IN_DAY)
    )

    late_hours = math.ceil(Fraction(lateness_minutes, MINUTES_IN_HOUR))
    late_days = math.ceil(Fraction(lateness_minutes, MINUTES_IN_DAY))

    minute_candidate = per_minute_rate * factor * lateness_minutes
    hour_candidate = hourly_rate * factor * late_hours
    day_candidate = daily_rate * factor * late_days

    if lateness_minutes <= policy.per_minute_max_minutes:
        method = FineMethod.PER_MINUTE
        total_fine = math.ceil(minute_candidate)
    elif lateness_minutes <= policy.per_hour_max_minutes:
        method = FineMethod.PER_HOUR
        total_fine = math.ceil(hour_candidate)
    else:
        method = FineMethod.PER_DAY
        total_fine = math.ceil(day_candidate)

    # never less than one hour's penalised rate
    minimum_fine = math.ceil(hourly_rate * factor)
    floor_applied = total_fine < minimum_fine
    if floor_applied:
        total_fine = minimum_fine
        method = FineMethod.MINIMUM_CHARGE

    if total_fine < 0:
        raise CalculationInvariantViolation(f"Negative fine {total_fine}")

    breakdown = FineBreakdown(
        fine_per_minute=math.ceil(per_minute_rate * factor),
        fine_per_hour=math.ceil(hourly_rate * factor),
        fine_per_day=math.ceil(daily_rate * factor),
        total_fine=total_fine,
        penalty_applied=policy.penalty_multiplier,
        method=method,
        floor_applied=floor_applied,
        minimum_fine=minimum_fine,
        hourly_rate=hourly_rate,
        daily_rate=daily_rate,
    )

    logger.debug(
        "Fine breakdown: price={} hours={} late_min={} method={} fine={}",
        total_price,
        billable_hours,
        lateness_minutes,
        method.value,
        total_fine,
    )
    return breakdown


def calculate_fine(
    total_price: int,
    billable_hours: int,
    lateness_minutes: int,
    policy: PenaltyPolicy = DEFAULT_POLICY,
) -> int:
    return calculate_fine_breakdown(
        total_price, billable_hours, lateness_minutes, policy
    ).total_fine


def calculate_overdue(
    rental, reference: datetime, policy: PenaltyPolicy = DEFAULT_POLICY
) -> OverdueCalculation:
    """
    Overdue state of an open rental at ``reference``.

    ``rental`` needs ``agreed_return_at``, ``total_price``, ``duration_value``
    and ``duration_unit``. The returned status is what the rental should read
    (``overdue`` once the agreed return has passed, otherwise ``active``).
    """
    lateness = calculate_lateness_minutes(rental.agreed_return_at, reference)
    is_overdue = lateness > 0

    breakdown = calculate_fine_breakdown(
        rental.total_price,
        billable_hours_for(rental.duration_value, rental.duration_unit),
        lateness,
        policy,
    )

    return OverdueCalculation(
        is_overdue=is_overdue,
        lateness_minutes=lateness,
        lateness_hours=math.ceil(Fraction(lateness, MINUTES_IN_HOUR)),
        lateness_days=math.ceil(Fraction(lateness, MINUTES_IN_DAY)),
        status=(RentalStatus.OVERDUE if is_overdue else RentalStatus.ACTIVE).value,
        fine=breakdown.total_fine,
        breakdown=breakdown,
    )
