from datetime import datetime
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from motor_rental.core.timezone import LOCAL_TZ
from motor_rental.db.models import Admin, Base, Renter, Vehicle
from motor_rental.db.repositories.admin import AdminRepository
from motor_rental.db.repositories.history import HistoryRepository
from motor_rental.db.repositories.rental import RentalRepository
from motor_rental.db.repositories.renter import RenterRepository
from motor_rental.db.repositories.vehicle import VehicleRepository
from motor_rental.services.history import HistoryService
from motor_rental.services.overdue import DEFAULT_POLICY
from motor_rental.services.rental import RentalService

# Friday noon, WIB
FIXED_NOW = datetime(2025, 1, 10, 12, 0, tzinfo=LOCAL_TZ)
BASE_RATE_PER_DAY = 240000


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine) -> sessionmaker:
    return sessionmaker(
        bind=sqlite_engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


@pytest.fixture
def sqlite_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(sqlite_session):
    """Admin 1, vehicles 1-2 (available), renters 1-2 and blacklisted renter 3."""
    sqlite_session.add_all(
        [
            Admin(id=1, full_name="Rina Admin", username="rina"),
            Vehicle(
                id=1,
                plate_number="AB 1234 CD",
                brand="Honda",
                model="Vario 125",
                year=2022,
                base_rate_per_day=BASE_RATE_PER_DAY,
                status="available",
            ),
            Vehicle(
                id=2,
                plate_number="AB 5678 EF",
                brand="Yamaha",
                model="NMAX",
                year=2023,
                base_rate_per_day=BASE_RATE_PER_DAY,
                status="available",
            ),
            Renter(id=1, name="Budi Santoso", whatsapp="081234567890"),
            Renter(id=2, name="Sari Dewi", whatsapp="081298765432"),
            Renter(id=3, name="Joko Widodo", whatsapp="081111111111", is_blacklisted=True),
        ]
    )
    sqlite_session.commit()
    return sqlite_session


@pytest.fixture
def rental_service(sqlite_session, seed):  # noqa: ARG001
    return RentalService(
        sqlite_session,
        RentalRepository(sqlite_session),
        VehicleRepository(sqlite_session),
        RenterRepository(sqlite_session),
        AdminRepository(sqlite_session),
        HistoryRepository(sqlite_session),
        DEFAULT_POLICY,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def history_service(sqlite_session, seed):  # noqa: ARG001
    return HistoryService(sqlite_session, HistoryRepository(sqlite_session))


@pytest.fixture
def client(session_factory, seed):  # noqa: ARG001
    from motor_rental.api.dependencies import get_session
    from motor_rental.main import app

    def _get_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def pytest_configure(config):
    config.addinivalue_line("markers", "api: mark test as HTTP API test")
    config.addinivalue_line("markers", "lifecycle: mark test as rental lifecycle test")
    config.addinivalue_line("markers", "penalty: mark test as fine calculation test")
