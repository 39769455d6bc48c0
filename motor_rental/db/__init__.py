from .database import get_engine, get_sessionmaker, transaction
from .models import Admin, Base, History, Rental, Renter, Vehicle

__all__ = [
    "Base",
    "Admin",
    "Vehicle",
    "Renter",
    "Rental",
    "History",
    "get_engine",
    "get_sessionmaker",
    "transaction",
]
