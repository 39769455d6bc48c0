from typing import Optional

from sqlalchemy.orm import Session

from motor_rental.db.models import Renter


class RenterRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, renter_id: int) -> Optional[Renter]:
        return self.session.get(Renter, renter_id)

    def get_for_update(self, renter_id: int) -> Optional[Renter]:
        return self.session.get(Renter, renter_id, with_for_update=True)
