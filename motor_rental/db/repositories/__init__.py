from .admin import AdminRepository
from .history import HistoryRepository
from .rental import RentalRepository
from .renter import RenterRepository
from .vehicle import VehicleRepository

__all__ = [
    "AdminRepository",
    "HistoryRepository",
    "RentalRepository",
    "RenterRepository",
    "VehicleRepository",
]
