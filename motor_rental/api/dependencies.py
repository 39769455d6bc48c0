from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session, sessionmaker

from motor_rental.config.settings import Settings
from motor_rental.core.exceptions import admin_id_missing_exception
from motor_rental.db.database import get_sessionmaker
from motor_rental.db.repositories.admin import AdminRepository
from motor_rental.db.repositories.history import HistoryRepository
from motor_rental.db.repositories.rental import RentalRepository
from motor_rental.db.repositories.renter import RenterRepository
from motor_rental.db.repositories.vehicle import VehicleRepository
from motor_rental.services.history import HistoryService
from motor_rental.services.overdue import PenaltyPolicy
from motor_rental.services.rental import RentalService


@lru_cache()
def get_settings() -> Settings:
    return Settings()


@lru_cache()
def get_session_factory() -> sessionmaker:
    return get_sessionmaker(get_settings())


def get_session() -> Session:
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def get_penalty_policy(settings: Settings = Depends(get_settings)) -> PenaltyPolicy:
    return PenaltyPolicy.from_settings(settings)


def get_rental_service(
    session: Session = Depends(get_session),
    policy: PenaltyPolicy = Depends(get_penalty_policy),
) -> RentalService:
    return RentalService(
        session,
        RentalRepository(session),
        VehicleRepository(session),
        RenterRepository(session),
        AdminRepository(session),
        HistoryRepository(session),
        policy,
    )


def get_history_service(session: Session = Depends(get_session)) -> HistoryService:
    return HistoryService(session, HistoryRepository(session))


def get_admin_id(
    admin_id: Optional[str] = Header(None, alias="X-Admin-Id"),
) -> int:
    if not admin_id or not admin_id.strip().isdigit():
        raise admin_id_missing_exception()
    return int(admin_id)
