from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from motor_rental.core.enums import DurationUnit, RentalStatus, VehicleStatus
from motor_rental.core.timezone import LOCAL_TZ, now_local, to_local


class LocalDateTime(TypeDecorator):
    """Stores WIB wall-clock time and hands back offset-aware datetimes.

    Works the same on dialects without a session time zone (SQLite).
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_local(value, LOCAL_TZ).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return to_local(value, LOCAL_TZ)


class Base(DeclarativeBase):
    pass


class Admin(Base):
    __tablename__ = "admins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(255))
    username: Mapped[str] = mapped_column(String(64), unique=True)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plate_number: Mapped[str] = mapped_column(String(20), unique=True)
    brand: Mapped[str] = mapped_column(String(255))
    model: Mapped[str] = mapped_column(String(255))
    year: Mapped[int] = mapped_column(Integer)
    base_rate_per_day: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(
        String(20), default=VehicleStatus.AVAILABLE.value
    )  # available / rented / in_repair


class Renter(Base):
    __tablename__ = "renters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    whatsapp: Mapped[str] = mapped_column(String(20))
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_blacklisted: Mapped[bool] = mapped_column(Boolean, default=False)


class Rental(Base):
    __tablename__ = "rentals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicles.id"), index=True)
    renter_id: Mapped[int] = mapped_column(ForeignKey("renters.id"), index=True)
    admin_id: Mapped[int] = mapped_column(ForeignKey("admins.id"), index=True)
    status: Mapped[str] = mapped_column(
        String(20), default=RentalStatus.ACTIVE.value
    )  # active / overdue
    collateral: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    start_at: Mapped[datetime] = mapped_column(LocalDateTime)
    agreed_return_at: Mapped[datetime] = mapped_column(LocalDateTime)
    duration_value: Mapped[int] = mapped_column(Integer)
    duration_unit: Mapped[str] = mapped_column(
        String(20), default=DurationUnit.DAY.value
    )
    base_price: Mapped[int] = mapped_column(Integer, default=0)
    total_price: Mapped[int] = mapped_column(Integer, default=0)
    adjustments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_overdue: Mapped[bool] = mapped_column(Boolean, default=False)
    overdue_minutes: Mapped[int] = mapped_column(Integer, default=0)
    last_overdue_calc: Mapped[Optional[datetime]] = mapped_column(
        LocalDateTime, nullable=True
    )
    extended_hours: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        LocalDateTime, default=lambda: now_local()
    )
    updated_at: Mapped[datetime] = mapped_column(
        LocalDateTime, default=lambda: now_local(), onupdate=lambda: now_local()
    )


Index("ix_rentals_status_agreed_return", Rental.status, Rental.agreed_return_at)


class History(Base):
    __tablename__ = "histories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # plain reference, the rental row is gone once archived
    rental_id: Mapped[int] = mapped_column(Integer, index=True)
    completed_at: Mapped[datetime] = mapped_column(LocalDateTime, index=True)
    completion_status: Mapped[str] = mapped_column(String(20))  # on_time / late
    price: Mapped[int] = mapped_column(Integer)
    fine: Mapped[int] = mapped_column(Integer, default=0)
    lateness_minutes: Mapped[int] = mapped_column(Integer, default=0)
    completion_notes: Mapped[Optional[str]] = mapped_column(
        String(500), nullable=True
    )

    vehicle_plate: Mapped[str] = mapped_column(String(20), index=True)
    vehicle_brand: Mapped[str] = mapped_column(String(255))
    vehicle_model: Mapped[str] = mapped_column(String(255))
    vehicle_year: Mapped[int] = mapped_column(Integer)
    renter_name: Mapped[str] = mapped_column(String(255), index=True)
    renter_whatsapp: Mapped[str] = mapped_column(String(20))
    admin_name: Mapped[str] = mapped_column(String(255))

    start_at: Mapped[datetime] = mapped_column(LocalDateTime)
    agreed_return_at: Mapped[datetime] = mapped_column(LocalDateTime)
    duration_value: Mapped[int] = mapped_column(Integer)
    duration_unit: Mapped[str] = mapped_column(String(20))
    collateral: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    adjustments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        LocalDateTime, default=lambda: now_local()
    )
