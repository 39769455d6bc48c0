import enum


class RentalStatus(str, enum.Enum):
    ACTIVE = "active"
    OVERDUE = "overdue"
    COMPLETED = "completed"  # never persisted, the row moves to histories


OPEN_RENTAL_STATUSES = (RentalStatus.ACTIVE.value, RentalStatus.OVERDUE.value)


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    RENTED = "rented"
    IN_REPAIR = "in_repair"


class DurationUnit(str, enum.Enum):
    HOUR = "hour"
    DAY = "day"


class AdjustmentKind(str, enum.Enum):
    DISCOUNT = "discount"
    ADDITIONAL = "additional"


class CompletionStatus(str, enum.Enum):
    ON_TIME = "on_time"
    LATE = "late"


class FineMethod(str, enum.Enum):
    NO_LATENESS = "no_lateness"
    PER_MINUTE = "per_minute"
    PER_HOUR = "per_hour"
    PER_DAY = "per_day"
    MINIMUM_CHARGE = "minimum_charge"


class CollateralKind(str, enum.Enum):
    ID_CARD = "id_card"
    DRIVING_LICENSE = "driving_license"
    FAMILY_CARD = "family_card"
    STUDENT_CARD = "student_card"
    PASSPORT = "passport"
    VEHICLE_REGISTRATION = "vehicle_registration"
    MOTORCYCLE = "motorcycle"
    CASH_DEPOSIT = "cash_deposit"
