from typing import Optional

from sqlalchemy.orm import Session

from motor_rental.db.models import Admin


class AdminRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, admin_id: int) -> Optional[Admin]:
        return self.session.get(Admin, admin_id)
