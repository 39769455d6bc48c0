import math
from datetime import datetime
from fractions import Fraction
from typing import Callable, List, Optional, Tuple

from loguru import logger
from sqlalchemy.orm import Session

from motor_rental.core.enums import (
    OPEN_RENTAL_STATUSES,
    CompletionStatus,
    RentalStatus,
    VehicleStatus,
)
from motor_rental.core.exceptions import (
    AlreadyCompletedException,
    EmptyUpdateException,
    InvalidStateTransitionException,
    InvalidTemporalOrderException,
    NotFoundException,
    RenterBlacklistedException,
    RenterHasActiveRentalException,
    VehicleUnavailableException,
)
from motor_rental.core.timezone import now_local, parse_local_datetime, to_local
from motor_rental.db.database import transaction
from motor_rental.db.models import History, Rental, Vehicle
from motor_rental.db.repositories.admin import AdminRepository
from motor_rental.db.repositories.history import HistoryRepository
from motor_rental.db.repositories.rental import (
    RentalRepository,
    parse_adjustments,
    serialize_adjustments,
    serialize_collateral,
)
from motor_rental.db.repositories.renter import RenterRepository
from motor_rental.db.repositories.vehicle import VehicleRepository
from motor_rental.monitoring.metrics import MetricsCollector
from motor_rental.schemas import (
    CompletionResult,
    CreateRentalRequest,
    ExtensionResult,
    FineBreakdown,
    OverdueCalculation,
    OverdueStats,
    OverdueSweepResult,
    RentalData,
    RentalStats,
    UpdateRentalRequest,
)
from motor_rental.services.overdue import (
    DEFAULT_POLICY,
    MINUTES_IN_HOUR,
    PenaltyPolicy,
    calculate_fine_breakdown,
    calculate_lateness_minutes,
    calculate_overdue,
)
from motor_rental.services.pricing import (
    billable_hours_for,
    calculate_duration_and_price,
    calculate_extension_fee,
    calculate_net_price,
    extension_in_unit,
)


class RentalService:
    """Owns a rental from creation through extension to completion.

    Every writer runs inside one transaction. Reads recalculate the overdue
    state of open rentals and persist it only when it differs from what is
    stored.
    """

    def __init__(
        self,
        session: Session,
        rental_repo: RentalRepository,
        vehicle_repo: VehicleRepository,
        renter_repo: RenterRepository,
        admin_repo: AdminRepository,
        history_repo: HistoryRepository,
        policy: PenaltyPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] = now_local,
    ):
        self.session = session
        self.rental_repo = rental_repo
        self.vehicle_repo = vehicle_repo
        self.renter_repo = renter_repo
        self.admin_repo = admin_repo
        self.history_repo = history_repo
        self.policy = policy
        self.clock = clock

    def _now(self, now: Optional[datetime] = None) -> datetime:
        return to_local(now) if now is not None else self.clock()

    # --- Lifecycle writers ---

    def create(
        self,
        request: CreateRentalRequest,
        admin_id: int,
        now: Optional[datetime] = None,
    ) -> RentalData:
        now = self._now(now)
        logger.info(
            f"Creating rental: vehicle={request.vehicle_id}, renter={request.renter_id}, "
            f"admin={admin_id}"
        )

        with transaction(self.session, "create rental"):
            vehicle = self.vehicle_repo.get_for_update(request.vehicle_id)
            if not vehicle:
                raise NotFoundException(f"Vehicle {request.vehicle_id} not found")
            if vehicle.status != VehicleStatus.AVAILABLE.value:
                logger.warning(
                    f"Vehicle {vehicle.id} is {vehicle.status}, rejecting rental"
                )
                raise VehicleUnavailableException(
                    f"Vehicle {vehicle.plate_number} is not available ({vehicle.status})"
                )
            if self.rental_repo.has_open_rental_for_vehicle(vehicle.id):
                logger.warning(f"Vehicle {vehicle.id} already has an open rental")
                raise VehicleUnavailableException(
                    f"Vehicle {vehicle.plate_number} is already rented"
                )

            renter = self.renter_repo.get_for_update(request.renter_id)
            if not renter:
                raise NotFoundException(f"Renter {request.renter_id} not found")
            if renter.is_blacklisted:
                logger.warning(f"Renter {renter.id} is blacklisted")
                raise RenterBlacklistedException(f"Renter {renter.name} is blacklisted")
            if self.rental_repo.has_open_rental_for_renter(renter.id):
                logger.warning(f"Renter {renter.id} already has an open rental")
                raise RenterHasActiveRentalException(
                    f"Renter {renter.name} already has an active rental"
                )

            if not self.admin_repo.get_by_id(admin_id):
                raise NotFoundException(f"Admin {admin_id} not found")

            start_at = parse_local_datetime(request.start_at, "start_at")
            agreed_return_at = parse_local_datetime(
                request.agreed_return_at, "agreed_return_at"
            )
            if agreed_return_at <= start_at:
                raise InvalidTemporalOrderException(
                    "agreed_return_at must be after start_at"
                )

            duration_value, base_price = calculate_duration_and_price(
                start_at, agreed_return_at, request.duration_unit, vehicle.base_rate_per_day
            )
            total_price = calculate_net_price(base_price, request.adjustments)

            rental = Rental(
                vehicle_id=vehicle.id,
                renter_id=renter.id,
                admin_id=admin_id,
                status=RentalStatus.ACTIVE.value,
                collateral=serialize_collateral(request.collateral),
                payment_method=request.payment_method,
                start_at=start_at,
                agreed_return_at=agreed_return_at,
                duration_value=duration_value,
                duration_unit=request.duration_unit.value,
                base_price=base_price,
                total_price=total_price,
                adjustments=serialize_adjustments(request.adjustments),
                notes=request.notes,
                is_overdue=False,
                overdue_minutes=0,
                last_overdue_calc=None,
                extended_hours=0,
                created_at=now,
                updated_at=now,
            )
            self.rental_repo.create_rental(rental)

            if not self.vehicle_repo.mark_rented(vehicle.id):
                # lost the race for the vehicle after the row check
                raise VehicleUnavailableException(
                    f"Vehicle {vehicle.plate_number} was rented concurrently"
                )

            data = self.rental_repo.to_rental_data(rental)

        MetricsCollector.record_rental(RentalStatus.ACTIVE.value)
        logger.info(
            f"Rental {data.id} created: {data.duration_value} {data.duration_unit.value}(s), "
            f"base={data.base_price}, total={data.total_price}"
        )
        return data

    def update(
        self,
        rental_id: int,
        request: UpdateRentalRequest,
        now: Optional[datetime] = None,
    ) -> RentalData:
        fields = request.model_fields_set
        if not fields:
            raise EmptyUpdateException()

        now = self._now(now)
        logger.info(f"Updating rental {rental_id}: fields={sorted(fields)}")

        with transaction(self.session, "update rental"):
            rental = self._get_open_rental(rental_id)
            reprice = False

            if "agreed_return_at" in fields:
                agreed_return_at = parse_local_datetime(
                    request.agreed_return_at, "agreed_return_at"
                )
                if agreed_return_at <= rental.start_at:
                    raise InvalidTemporalOrderException(
                        "agreed_return_at must be after start_at"
                    )
                vehicle = self._get_vehicle(rental.vehicle_id)
                duration_value, base_price = calculate_duration_and_price(
                    rental.start_at,
                    agreed_return_at,
                    rental.duration_unit,
                    vehicle.base_rate_per_day,
                )
                rental.agreed_return_at = agreed_return_at
                rental.duration_value = duration_value
                rental.base_price = base_price
                # a recomputed base supersedes earlier extension top-ups
                rental.extended_hours = 0
                self._reset_overdue(rental, now)
                reprice = True

            if "adjustments" in fields:
                rental.adjustments = serialize_adjustments(request.adjustments or [])
                reprice = True

            if reprice:
                rental.total_price = calculate_net_price(
                    rental.base_price, parse_adjustments(rental.adjustments)
                )

            if "collateral" in fields:
                rental.collateral = serialize_collateral(request.collateral or [])
            if "payment_method" in fields:
                rental.payment_method = request.payment_method
            if "notes" in fields:
                rental.notes = request.notes

            rental.updated_at = now
            self.session.flush()
            data = self.rental_repo.to_rental_data(rental)

        logger.info(f"Rental {rental_id} updated: total={data.total_price}")
        return data

    def extend(
        self,
        rental_id: int,
        new_agreed_return_at: str,
        now: Optional[datetime] = None,
    ) -> ExtensionResult:
        now = self._now(now)
        logger.info(f"Extending rental {rental_id} to {new_agreed_return_at}")

        with transaction(self.session, "extend rental"):
            rental = self._get_open_rental(rental_id)
            new_return = parse_local_datetime(
                new_agreed_return_at, "new_agreed_return_at"
            )
            if new_return <= rental.agreed_return_at:
                raise InvalidTemporalOrderException(
                    "New return date must be after the current agreed return"
                )

            vehicle = self._get_vehicle(rental.vehicle_id)
            extended_hours, extension_fee = calculate_extension_fee(
                rental.agreed_return_at,
                new_return,
                rental.duration_unit,
                vehicle.base_rate_per_day,
            )

            rental.agreed_return_at = new_return
            rental.duration_value += extension_in_unit(
                extended_hours, rental.duration_unit
            )
            rental.extended_hours += extended_hours
            rental.base_price += extension_fee
            rental.total_price = calculate_net_price(
                rental.base_price, parse_adjustments(rental.adjustments)
            )
            self._reset_overdue(rental, now)
            rental.updated_at = now
            self.session.flush()

            data = self.rental_repo.to_rental_data(rental)

        MetricsCollector.record_rental("extended")
        logger.info(
            f"Rental {rental_id} extended by {extended_hours}h, fee={extension_fee}, "
            f"total={data.total_price}"
        )
        return ExtensionResult(
            rental=data, extended_hours=extended_hours, extension_fee=extension_fee
        )

    def complete(
        self, rental_id: int, completed_at: str, notes: Optional[str] = None
    ) -> CompletionResult:
        logger.info(f"Completing rental {rental_id} at {completed_at}")

        with transaction(self.session, "complete rental"):
            completed = parse_local_datetime(completed_at, "completed_at")
            rental = self._get_open_rental(rental_id)
            if completed < rental.start_at:
                raise InvalidTemporalOrderException(
                    "completed_at must not be before start_at"
                )

            previous_status = rental.status
            lateness = calculate_lateness_minutes(rental.agreed_return_at, completed)
            breakdown = calculate_fine_breakdown(
                rental.total_price,
                billable_hours_for(rental.duration_value, rental.duration_unit),
                lateness,
                self.policy,
            )
            completion_status = (
                CompletionStatus.LATE if lateness > 0 else CompletionStatus.ON_TIME
            )

            vehicle = self._get_vehicle(rental.vehicle_id)
            renter = self.renter_repo.get_by_id(rental.renter_id)
            if not renter:
                raise NotFoundException(f"Renter {rental.renter_id} not found")
            admin = self.admin_repo.get_by_id(rental.admin_id)
            if not admin:
                raise NotFoundException(f"Admin {rental.admin_id} not found")

            history = History(
                rental_id=rental.id,
                completed_at=completed,
                completion_status=completion_status.value,
                price=rental.total_price,
                fine=breakdown.total_fine,
                lateness_minutes=lateness,
                completion_notes=notes,
                vehicle_plate=vehicle.plate_number,
                vehicle_brand=vehicle.brand,
                vehicle_model=vehicle.model,
                vehicle_year=vehicle.year,
                renter_name=renter.name,
                renter_whatsapp=renter.whatsapp,
                admin_name=admin.full_name,
                start_at=rental.start_at,
                agreed_return_at=rental.agreed_return_at,
                duration_value=rental.duration_value,
                duration_unit=rental.duration_unit,
                collateral=rental.collateral,
                payment_method=rental.payment_method,
                adjustments=rental.adjustments,
                notes=rental.notes,
                created_at=completed,
            )
            self.history_repo.create_history(history)
            self.rental_repo.delete_rental(rental)
            self.vehicle_repo.mark_available(vehicle.id)

            history_data = self.history_repo.to_history_data(history)

        MetricsCollector.record_rental(RentalStatus.COMPLETED.value)
        MetricsCollector.record_fine(completion_status.value, breakdown.total_fine)

        if completion_status == CompletionStatus.LATE:
            message = (
                f"Rental completed {lateness} minutes late, fine {breakdown.total_fine}"
            )
        else:
            message = "Rental completed on time"
        logger.info(f"Rental {rental_id} archived as history {history_data.id}: {message}")

        return CompletionResult(
            message=message,
            history=history_data,
            fine=breakdown.total_fine,
            lateness_minutes=lateness,
            lateness_hours=math.ceil(Fraction(lateness, MINUTES_IN_HOUR)),
            previous_status=previous_status,
            completion_status=completion_status,
            breakdown=breakdown,
        )

    def remove(self, rental_id: int) -> None:
        logger.info(f"Removing rental {rental_id}")

        with transaction(self.session, "remove rental"):
            rental = self._get_open_rental(rental_id)
            vehicle_id = rental.vehicle_id
            self.rental_repo.delete_rental(rental)
            self.vehicle_repo.mark_available(vehicle_id)

        MetricsCollector.record_rental("removed")
        logger.info(f"Rental {rental_id} removed, vehicle {vehicle_id} available")

    def update_notes(
        self, rental_id: int, notes: Optional[str], now: Optional[datetime] = None
    ) -> RentalData:
        now = self._now(now)

        with transaction(self.session, "update rental notes"):
            rental = self._get_open_rental(rental_id)
            rental.notes = notes
            rental.updated_at = now
            self.session.flush()
            data = self.rental_repo.to_rental_data(rental)

        logger.info(f"Notes updated for rental {rental_id}")
        return data

    # --- Reads with live recalculation ---

    def find_one(self, rental_id: int, now: Optional[datetime] = None) -> RentalData:
        now = self._now(now)

        with transaction(self.session, "read rental"):
            rental = self.rental_repo.get_by_id(rental_id)
            if not rental:
                self._raise_missing(rental_id)
            calculation, _ = self._refresh_overdue(rental, now)
            data = self.rental_repo.to_rental_data(rental)
            data.overdue = calculation

        return data

    def find_all(
        self, status: Optional[str] = None, now: Optional[datetime] = None
    ) -> List[RentalData]:
        now = self._now(now)

        with transaction(self.session, "list rentals"):
            calculations = self._refresh_open_rentals(now)
            rentals = self.rental_repo.list_rentals(status)
            result = []
            for rental in rentals:
                data = self.rental_repo.to_rental_data(rental)
                data.overdue = calculations.get(rental.id)
                result.append(data)

        return result

    def find_active(self, now: Optional[datetime] = None) -> List[RentalData]:
        return self.find_all(RentalStatus.ACTIVE.value, now)

    def find_overdue_rentals(self, now: Optional[datetime] = None) -> List[RentalData]:
        now = self._now(now)

        with transaction(self.session, "list overdue rentals"):
            result = []
            for rental in self.rental_repo.list_past_due(now):
                calculation, _ = self._refresh_overdue(rental, now)
                data = self.rental_repo.to_rental_data(rental)
                data.overdue = calculation
                result.append(data)

        MetricsCollector.record_overdue_count(len(result))
        return result

    def refresh_all_overdue(self, now: Optional[datetime] = None) -> OverdueSweepResult:
        now = self._now(now)
        result = OverdueSweepResult()

        with transaction(self.session, "refresh overdue rentals"):
            for rental in self.rental_repo.list_open_rentals():
                calculation, changed = self._refresh_overdue(rental, now)
                result.total += 1
                if changed:
                    result.updated += 1
                if calculation.is_overdue:
                    result.overdue += 1
                    result.total_fine += calculation.fine

        logger.info(
            f"Overdue sweep at {now.isoformat()}: total={result.total}, "
            f"updated={result.updated}, overdue={result.overdue}, "
            f"estimated_fine={result.total_fine}"
        )
        return result

    def get_overdue_stats(self, now: Optional[datetime] = None) -> OverdueStats:
        now = self._now(now)
        stats = OverdueStats()

        with transaction(self.session, "compute overdue stats"):
            for rental in self.rental_repo.list_open_rentals():
                calculation, _ = self._refresh_overdue(rental, now)
                stats.total_open += 1
                if calculation.is_overdue:
                    stats.total_overdue += 1
                    stats.total_minutes_overdue += calculation.lateness_minutes
                    stats.total_hours_overdue += calculation.lateness_hours
                    stats.total_days_overdue += calculation.lateness_days
                    stats.estimated_total_fine += calculation.fine

        MetricsCollector.record_overdue_count(stats.total_overdue)
        return stats

    def get_stats(self, now: Optional[datetime] = None) -> RentalStats:
        now = self._now(now)

        with transaction(self.session, "compute rental stats"):
            self._refresh_open_rentals(now)
            counts = self.rental_repo.count_by_status()
            completed = self.history_repo.count()

        active = counts.get(RentalStatus.ACTIVE.value, 0)
        overdue = counts.get(RentalStatus.OVERDUE.value, 0)
        return RentalStats(
            total=active + overdue,
            active=active,
            overdue=overdue,
            completed=completed,
        )

    def simulate_fine(
        self, total_price: int, billable_hours: int, lateness_minutes: int
    ) -> FineBreakdown:
        return calculate_fine_breakdown(
            total_price, billable_hours, lateness_minutes, self.policy
        )

    # --- Helpers ---

    def _raise_missing(self, rental_id: int):
        if self.history_repo.exists_for_rental(rental_id):
            logger.warning(f"Rental {rental_id} is already archived")
            raise AlreadyCompletedException(f"Rental {rental_id} is already completed")
        raise NotFoundException(f"Rental {rental_id} not found")

    def _get_open_rental(self, rental_id: int) -> Rental:
        rental = self.rental_repo.get_for_update(rental_id)
        if not rental:
            self._raise_missing(rental_id)
        if rental.status == RentalStatus.COMPLETED.value:
            raise AlreadyCompletedException(f"Rental {rental_id} is already completed")
        if rental.status not in OPEN_RENTAL_STATUSES:
            raise InvalidStateTransitionException(
                f"Rental {rental_id} is {rental.status}, expected active or overdue"
            )
        return rental

    def _get_vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = self.vehicle_repo.get_by_id(vehicle_id)
        if not vehicle:
            raise NotFoundException(f"Vehicle {vehicle_id} not found")
        return vehicle

    @staticmethod
    def _reset_overdue(rental: Rental, now: datetime) -> None:
        rental.is_overdue = False
        rental.overdue_minutes = 0
        rental.status = RentalStatus.ACTIVE.value
        rental.last_overdue_calc = now

    def _refresh_overdue(
        self, rental: Rental, now: datetime
    ) -> Tuple[Optional[OverdueCalculation], bool]:
        if rental.status not in OPEN_RENTAL_STATUSES:
            return None, False

        calculation = calculate_overdue(rental, now, self.policy)
        changed = (
            rental.is_overdue != calculation.is_overdue
            or rental.overdue_minutes != calculation.lateness_minutes
            or rental.status != calculation.status
        )
        if changed:
            if rental.status != calculation.status:
                logger.info(
                    f"Rental {rental.id} status {rental.status} -> {calculation.status}"
                )
            rental.is_overdue = calculation.is_overdue
            rental.overdue_minutes = calculation.lateness_minutes
            rental.status = calculation.status
            rental.last_overdue_calc = now
            self.session.flush()
            logger.debug(
                f"Rental {rental.id} recalculated: late={calculation.lateness_minutes}min, "
                f"fine={calculation.fine}"
            )
        return calculation, changed

    def _refresh_open_rentals(self, now: datetime) -> dict:
        calculations = {}
        for rental in self.rental_repo.list_open_rentals():
            calculation, _ = self._refresh_overdue(rental, now)
            calculations[rental.id] = calculation
        return calculations
