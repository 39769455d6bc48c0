from typing import Optional

from loguru import logger
from sqlalchemy import update
from sqlalchemy.orm import Session

from motor_rental.core.enums import VehicleStatus
from motor_rental.db.models import Vehicle


class VehicleRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, vehicle_id: int) -> Optional[Vehicle]:
        return self.session.get(Vehicle, vehicle_id)

    def get_for_update(self, vehicle_id: int) -> Optional[Vehicle]:
        return self.session.get(Vehicle, vehicle_id, with_for_update=True)

    def mark_rented(self, vehicle_id: int) -> bool:
        """Flips available -> rented; False when someone else got there first."""
        result = self.session.execute(
            update(Vehicle)
            .where(
                Vehicle.id == vehicle_id,
                Vehicle.status == VehicleStatus.AVAILABLE.value,
            )
            .values(status=VehicleStatus.RENTED.value)
        )

        updated = result.rowcount > 0
        if updated:
            logger.debug(f"Vehicle {vehicle_id} marked as rented")
        return updated

    def mark_available(self, vehicle_id: int) -> bool:
        result = self.session.execute(
            update(Vehicle)
            .where(Vehicle.id == vehicle_id)
            .values(status=VehicleStatus.AVAILABLE.value)
        )

        updated = result.rowcount > 0
        if updated:
            logger.debug(f"Vehicle {vehicle_id} marked as available")
        return updated
