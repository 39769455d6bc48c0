from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from motor_rental.core.enums import AdjustmentKind, CollateralKind, DurationUnit
from motor_rental.core.exceptions import (
    AlreadyCompletedException,
    EmptyUpdateException,
    InvalidDateFormatException,
    InvalidTemporalOrderException,
    NotFoundException,
    RenterBlacklistedException,
    RenterHasActiveRentalException,
    StorageFailureException,
    VehicleUnavailableException,
)
from motor_rental.core.timezone import LOCAL_TZ
from motor_rental.db.models import History, Rental, Vehicle
from motor_rental.schemas import (
    Adjustment,
    CreateRentalRequest,
    UpdateRentalRequest,
)
from motor_rental.services.overdue import calculate_fine

pytestmark = pytest.mark.lifecycle

# clock of the rental_service fixture
FIXED_NOW = datetime(2025, 1, 10, 12, 0, tzinfo=LOCAL_TZ)


def make_request(**overrides) -> CreateRentalRequest:
    data = {
        "vehicle_id": 1,
        "renter_id": 1,
        "start_at": "2025-01-10T08:00",
        "agreed_return_at": "2025-01-12T08:00",
        "duration_unit": DurationUnit.DAY,
        "collateral": [CollateralKind.ID_CARD, CollateralKind.DRIVING_LICENSE],
        "payment_method": "cash",
    }
    data.update(overrides)
    return CreateRentalRequest(**data)


def count_rows(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar()


def vehicle_status(session, vehicle_id: int) -> str:
    session.expire_all()
    return session.get(Vehicle, vehicle_id).status


# --- create ---


def test_create_rental_prices_and_rents_vehicle(rental_service, sqlite_session):
    rental = rental_service.create(make_request(), admin_id=1)

    assert rental.status == "active"
    assert rental.duration_value == 2
    assert rental.base_price == 480000
    assert rental.total_price == 480000
    assert rental.is_overdue is False
    assert rental.overdue_minutes == 0
    assert rental.collateral == [CollateralKind.ID_CARD, CollateralKind.DRIVING_LICENSE]
    assert rental.start_at.utcoffset() == timedelta(hours=7)
    assert vehicle_status(sqlite_session, 1) == "rented"


def test_create_applies_adjustments(rental_service):
    adjustments = [
        Adjustment(description="Loyal customer", amount=30000, kind=AdjustmentKind.DISCOUNT),
        Adjustment(description="Helmet", amount=10000, kind=AdjustmentKind.ADDITIONAL),
    ]
    rental = rental_service.create(make_request(adjustments=adjustments), admin_id=1)

    assert rental.base_price == 480000
    assert rental.total_price == 460000
    assert [a.description for a in rental.adjustments] == ["Loyal customer", "Helmet"]


def test_create_hourly_rental(rental_service):
    rental = rental_service.create(
        make_request(agreed_return_at="2025-01-10T13:30", duration_unit=DurationUnit.HOUR),
        admin_id=1,
    )
    assert rental.duration_value == 6
    assert rental.base_price == 60000


def test_return_before_start_is_rejected(rental_service, sqlite_session):
    with pytest.raises(InvalidTemporalOrderException):
        rental_service.create(
            make_request(start_at="2025-01-12T08:00", agreed_return_at="2025-01-10T08:00"),
            admin_id=1,
        )

    assert count_rows(sqlite_session, Rental) == 0
    assert vehicle_status(sqlite_session, 1) == "available"


def test_invalid_date_format_is_rejected(rental_service, sqlite_session):
    with pytest.raises(InvalidDateFormatException):
        rental_service.create(make_request(start_at="10/01/2025"), admin_id=1)
    assert count_rows(sqlite_session, Rental) == 0


def test_rented_vehicle_is_unavailable(rental_service, sqlite_session):
    vehicle = sqlite_session.get(Vehicle, 1)
    vehicle.status = "rented"
    sqlite_session.commit()

    with pytest.raises(VehicleUnavailableException):
        rental_service.create(make_request(), admin_id=1)

    assert count_rows(sqlite_session, Rental) == 0


def test_vehicle_cannot_be_rented_twice(rental_service):
    rental_service.create(make_request(), admin_id=1)

    with pytest.raises(VehicleUnavailableException):
        rental_service.create(make_request(renter_id=2), admin_id=1)


def test_blacklisted_renter_is_rejected(rental_service, sqlite_session):
    with pytest.raises(RenterBlacklistedException):
        rental_service.create(make_request(renter_id=3), admin_id=1)
    assert vehicle_status(sqlite_session, 1) == "available"


def test_renter_with_open_rental_is_rejected(rental_service, sqlite_session):
    rental_service.create(make_request(), admin_id=1)

    with pytest.raises(RenterHasActiveRentalException):
        rental_service.create(make_request(vehicle_id=2), admin_id=1)
    assert vehicle_status(sqlite_session, 2) == "available"


@pytest.mark.parametrize(
    "overrides, admin_id",
    [({"vehicle_id": 99}, 1), ({"renter_id": 99}, 1), ({}, 99)],
)
def test_missing_references_are_not_found(rental_service, overrides, admin_id):
    with pytest.raises(NotFoundException):
        rental_service.create(make_request(**overrides), admin_id=admin_id)


def test_storage_failure_rolls_back(rental_service, sqlite_session):
    with patch.object(
        rental_service.rental_repo,
        "create_rental",
        side_effect=SQLAlchemyError("disk full"),
    ):
        with pytest.raises(StorageFailureException):
            rental_service.create(make_request(), admin_id=1)

    assert count_rows(sqlite_session, Rental) == 0
    assert vehicle_status(sqlite_session, 1) == "available"


# --- update ---


def test_update_agreed_return_reprices(rental_service):
    adjustments = [
        Adjustment(description="Loyal customer", amount=30000, kind=AdjustmentKind.DISCOUNT)
    ]
    rental = rental_service.create(make_request(adjustments=adjustments), admin_id=1)

    updated = rental_service.update(
        rental.id, UpdateRentalRequest(agreed_return_at="2025-01-13T08:00")
    )

    assert updated.duration_value == 3
    assert updated.base_price == 720000
    assert updated.total_price == 690000
    assert updated.status == "active"


def test_update_adjustments_only(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)

    updated = rental_service.update(
        rental.id,
        UpdateRentalRequest(
            adjustments=[
                Adjustment(description="Delivery", amount=25000, kind=AdjustmentKind.ADDITIONAL)
            ]
        ),
    )

    assert updated.base_price == 480000
    assert updated.total_price == 505000


def test_update_plain_fields(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)

    updated = rental_service.update(
        rental.id,
        UpdateRentalRequest(
            collateral=[CollateralKind.PASSPORT, CollateralKind.PASSPORT],
            payment_method="transfer",
            notes="Picked up by brother",
        ),
    )

    assert updated.collateral == [CollateralKind.PASSPORT]
    assert updated.payment_method == "transfer"
    assert updated.notes == "Picked up by brother"
    assert updated.total_price == 480000


def test_empty_update_is_rejected(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)
    with pytest.raises(EmptyUpdateException):
        rental_service.update(rental.id, UpdateRentalRequest())


def test_update_return_before_start_is_rejected(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)
    with pytest.raises(InvalidTemporalOrderException):
        rental_service.update(
            rental.id, UpdateRentalRequest(agreed_return_at="2025-01-10T07:00")
        )


def test_update_notes(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)
    updated = rental_service.update_notes(rental.id, "Customer called, on the way")
    assert updated.notes == "Customer called, on the way"


# --- extend ---


def test_extend_day_rental(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)

    result = rental_service.extend(rental.id, "2025-01-13T08:00")

    assert result.extended_hours == 24
    assert result.extension_fee == 240000
    assert result.rental.duration_value == 3
    assert result.rental.base_price == 720000
    assert result.rental.total_price == 720000
    assert result.rental.extended_hours == 24


def test_extend_hourly_rental(rental_service):
    rental = rental_service.create(
        make_request(agreed_return_at="2025-01-10T14:00", duration_unit=DurationUnit.HOUR),
        admin_id=1,
    )

    result = rental_service.extend(rental.id, "2025-01-10T16:30")

    assert result.extended_hours == 3
    assert result.extension_fee == 30000
    assert result.rental.duration_value == 9
    assert result.rental.base_price == 90000


def test_extend_to_same_instant_is_rejected(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)
    with pytest.raises(InvalidTemporalOrderException):
        rental_service.extend(rental.id, "2025-01-12T08:00")


def test_extend_clears_overdue(rental_service):
    rental = rental_service.create(
        make_request(start_at="2025-01-08T10:30", agreed_return_at="2025-01-10T10:30"),
        admin_id=1,
    )
    assert rental_service.find_one(rental.id).status == "overdue"

    result = rental_service.extend(rental.id, "2025-01-11T10:30")

    assert result.rental.status == "active"
    assert result.rental.is_overdue is False
    assert result.rental.overdue_minutes == 0


# --- live overdue recalculation ---


def test_find_one_recalculates_overdue(rental_service):
    rental = rental_service.create(
        make_request(start_at="2025-01-08T10:30", agreed_return_at="2025-01-10T10:30"),
        admin_id=1,
    )

    found = rental_service.find_one(rental.id)

    assert found.status == "overdue"
    assert found.is_overdue is True
    assert found.overdue_minutes == 90
    assert found.last_overdue_calc == FIXED_NOW
    assert found.overdue.fine == 11250


def test_recalculation_is_idempotent(rental_service):
    rental = rental_service.create(
        make_request(start_at="2025-01-08T10:30", agreed_return_at="2025-01-10T10:30"),
        admin_id=1,
    )

    first = rental_service.refresh_all_overdue()
    second = rental_service.refresh_all_overdue()
    found = rental_service.find_one(rental.id)

    assert first.updated == 1
    assert second.updated == 0
    assert second.overdue == 1
    assert second.total_fine == first.total_fine == 11250
    assert found.last_overdue_calc == FIXED_NOW


def test_recalculation_persists_changes_later(rental_service):
    rental = rental_service.create(
        make_request(start_at="2025-01-08T10:30", agreed_return_at="2025-01-10T10:30"),
        admin_id=1,
    )
    rental_service.find_one(rental.id)

    later = FIXED_NOW + timedelta(minutes=210)
    found = rental_service.find_one(rental.id, now=later)

    assert found.overdue_minutes == 300
    assert found.overdue.fine == 37500
    assert found.last_overdue_calc == later


def test_find_overdue_rentals_only_returns_past_due(rental_service):
    late = rental_service.create(
        make_request(start_at="2025-01-08T10:30", agreed_return_at="2025-01-10T10:30"),
        admin_id=1,
    )
    rental_service.create(make_request(vehicle_id=2, renter_id=2), admin_id=1)

    overdue = rental_service.find_overdue_rentals()

    assert [r.id for r in overdue] == [late.id]
    assert overdue[0].status == "overdue"
    assert overdue[0].overdue.lateness_minutes == 90


def test_find_all_filters_after_recalculation(rental_service):
    late = rental_service.create(
        make_request(start_at="2025-01-08T10:30", agreed_return_at="2025-01-10T10:30"),
        admin_id=1,
    )
    on_time = rental_service.create(make_request(vehicle_id=2, renter_id=2), admin_id=1)

    assert {r.id for r in rental_service.find_all()} == {late.id, on_time.id}
    assert [r.id for r in rental_service.find_all("overdue")] == [late.id]
    assert [r.id for r in rental_service.find_active()] == [on_time.id]


def test_stats(rental_service):
    late = rental_service.create(
        make_request(start_at="2025-01-08T10:30", agreed_return_at="2025-01-10T10:30"),
        admin_id=1,
    )
    rental_service.create(make_request(vehicle_id=2, renter_id=2), admin_id=1)

    overdue_stats = rental_service.get_overdue_stats()
    assert overdue_stats.total_open == 2
    assert overdue_stats.total_overdue == 1
    assert overdue_stats.total_minutes_overdue == 90
    assert overdue_stats.total_hours_overdue == 2
    assert overdue_stats.total_days_overdue == 1
    assert overdue_stats.estimated_total_fine == 11250

    rental_service.complete(late.id, "2025-01-10T12:00")
    stats = rental_service.get_stats()
    assert stats.total == 1
    assert stats.active == 1
    assert stats.overdue == 0
    assert stats.completed == 1


# --- complete ---


def test_complete_late_archives_and_frees_vehicle(rental_service, sqlite_session):
    rental = rental_service.create(
        make_request(start_at="2025-01-08T10:30", agreed_return_at="2025-01-10T10:30"),
        admin_id=1,
    )

    result = rental_service.complete(rental.id, "2025-01-10T12:00", notes="Scratch on mirror")

    assert result.completion_status == "late"
    assert result.lateness_minutes == 90
    assert result.lateness_hours == 2
    assert result.fine == 11250
    assert result.fine == calculate_fine(rental.total_price, 48, 90)
    assert result.previous_status == "active"
    assert result.history.price == rental.total_price
    assert result.history.vehicle_plate == "AB 1234 CD"
    assert result.history.renter_name == "Budi Santoso"
    assert result.history.admin_name == "Rina Admin"
    assert result.history.completion_notes == "Scratch on mirror"
    assert result.history.collateral == rental.collateral

    assert count_rows(sqlite_session, Rental) == 0
    assert count_rows(sqlite_session, History) == 1
    assert vehicle_status(sqlite_session, 1) == "available"


def test_complete_on_time_has_no_fine(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)

    result = rental_service.complete(rental.id, "2025-01-12T07:59")

    assert result.completion_status == "on_time"
    assert result.fine == 0
    assert result.breakdown.method == "no_lateness"


def test_complete_twice_is_already_completed(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)
    rental_service.complete(rental.id, "2025-01-12T08:00")

    with pytest.raises(AlreadyCompletedException):
        rental_service.complete(rental.id, "2025-01-12T09:00")
    with pytest.raises(AlreadyCompletedException):
        rental_service.extend(rental.id, "2025-01-13T08:00")


def test_complete_before_start_is_rejected(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)
    with pytest.raises(InvalidTemporalOrderException):
        rental_service.complete(rental.id, "2025-01-09T08:00")


def test_completed_vehicle_can_be_rented_again(rental_service):
    rental = rental_service.create(make_request(), admin_id=1)
    rental_service.complete(rental.id, "2025-01-12T08:00")

    again = rental_service.create(make_request(renter_id=2), admin_id=1)
    assert again.status == "active"


# --- remove ---


def test_remove_frees_vehicle_without_history(rental_service, sqlite_session):
    rental = rental_service.create(make_request(), admin_id=1)

    rental_service.remove(rental.id)

    assert count_rows(sqlite_session, Rental) == 0
    assert count_rows(sqlite_session, History) == 0
    assert vehicle_status(sqlite_session, 1) == "available"
    with pytest.raises(NotFoundException):
        rental_service.remove(rental.id)


def test_find_one_missing_rental(rental_service):
    with pytest.raises(NotFoundException):
        rental_service.find_one(12345)


def test_simulate_fine(rental_service):
    breakdown = rental_service.simulate_fine(480000, 48, 300)
    assert breakdown.total_fine == 37500
    assert breakdown.method == "per_hour"
