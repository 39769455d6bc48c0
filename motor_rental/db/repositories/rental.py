import json
from datetime import datetime
from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy import exists, func, select
from sqlalchemy.orm import Session

from motor_rental.core.enums import OPEN_RENTAL_STATUSES, CollateralKind
from motor_rental.core.utils import json_dumps
from motor_rental.db.models import Rental
from motor_rental.schemas import Adjustment, RentalData

COLLATERAL_SEPARATOR = ", "


def serialize_collateral(kinds: Iterable[CollateralKind]) -> Optional[str]:
    ordered = []
    for kind in kinds or []:
        kind = CollateralKind(kind)
        if kind not in ordered:
            ordered.append(kind)
    if not ordered:
        return None
    return COLLATERAL_SEPARATOR.join(kind.value for kind in ordered)


def parse_collateral(value: Optional[str]) -> List[CollateralKind]:
    if not value:
        return []
    kinds = []
    for part in value.split(","):
        part = part.strip()
        if part:
            kinds.append(CollateralKind(part))
    return kinds


def serialize_adjustments(adjustments: Iterable[Adjustment]) -> Optional[str]:
    items = [a.model_dump(mode="json") for a in adjustments or []]
    if not items:
        return None
    return json_dumps(items)


def parse_adjustments(value: Optional[str]) -> List[Adjustment]:
    if not value:
        return []
    return [Adjustment(**item) for item in json.loads(value)]


class RentalRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, rental_id: int) -> Optional[Rental]:
        return self.session.get(Rental, rental_id)

    def get_for_update(self, rental_id: int) -> Optional[Rental]:
        return self.session.get(Rental, rental_id, with_for_update=True)

    def create_rental(self, rental: Rental) -> None:
        self.session.add(rental)
        self.session.flush()

    def delete_rental(self, rental: Rental) -> None:
        self.session.delete(rental)
        self.session.flush()

    def list_rentals(self, status: Optional[str] = None) -> List[Rental]:
        query = select(Rental).order_by(Rental.created_at.desc(), Rental.id.desc())
        if status:
            query = query.where(Rental.status == status)
        return list(self.session.execute(query).scalars().all())

    def list_open_rentals(self) -> List[Rental]:
        query = (
            select(Rental)
            .where(Rental.status.in_(OPEN_RENTAL_STATUSES))
            .order_by(Rental.agreed_return_at.asc(), Rental.id.asc())
        )
        return list(self.session.execute(query).scalars().all())

    def list_past_due(self, now: datetime) -> List[Rental]:
        query = (
            select(Rental)
            .where(
                Rental.status.in_(OPEN_RENTAL_STATUSES),
                Rental.agreed_return_at < now,
            )
            .order_by(Rental.agreed_return_at.asc(), Rental.id.asc())
        )
        rentals = list(self.session.execute(query).scalars().all())
        logger.debug(f"Found {len(rentals)} past-due rentals at {now.isoformat()}")
        return rentals

    def has_open_rental_for_vehicle(self, vehicle_id: int) -> bool:
        return self.session.execute(
            select(
                exists().where(
                    Rental.vehicle_id == vehicle_id,
                    Rental.status.in_(OPEN_RENTAL_STATUSES),
                )
            )
        ).scalar()

    def has_open_rental_for_renter(self, renter_id: int) -> bool:
        return self.session.execute(
            select(
                exists().where(
                    Rental.renter_id == renter_id,
                    Rental.status.in_(OPEN_RENTAL_STATUSES),
                )
            )
        ).scalar()

    def count_by_status(self) -> dict:
        rows = self.session.execute(
            select(Rental.status, func.count(Rental.id)).group_by(Rental.status)
        ).all()
        return {status: count for status, count in rows}

    def to_rental_data(self, rental: Rental) -> RentalData:
        return RentalData(
            id=rental.id,
            vehicle_id=rental.vehicle_id,
            renter_id=rental.renter_id,
            admin_id=rental.admin_id,
            status=rental.status,
            start_at=rental.start_at,
            agreed_return_at=rental.agreed_return_at,
            duration_value=rental.duration_value,
            duration_unit=rental.duration_unit,
            base_price=rental.base_price,
            total_price=rental.total_price,
            adjustments=parse_adjustments(rental.adjustments),
            collateral=parse_collateral(rental.collateral),
            payment_method=rental.payment_method,
            notes=rental.notes,
            is_overdue=rental.is_overdue,
            overdue_minutes=rental.overdue_minutes,
            last_overdue_calc=rental.last_overdue_calc,
            extended_hours=rental.extended_hours,
            created_at=rental.created_at,
            updated_at=rental.updated_at,
        )


__all__ = [
    "RentalRepository",
    "serialize_collateral",
    "parse_collateral",
    "serialize_adjustments",
    "parse_adjustments",
]
