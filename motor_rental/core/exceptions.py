from fastapi import HTTPException


class RentalEngineException(Exception):
    status_code = 400
    default_message = "Rental operation failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundException(RentalEngineException):
    status_code = 404
    default_message = "Resource not found"


class InvalidDateFormatException(RentalEngineException):
    default_message = "Date must be YYYY-MM-DD or YYYY-MM-DDTHH:mm"


class InvalidTemporalOrderException(RentalEngineException):
    default_message = "Return date must be after the rental date"


class VehicleUnavailableException(RentalEngineException):
    status_code = 409
    default_message = "Vehicle is not available for rent"


class RenterBlacklistedException(RentalEngineException):
    status_code = 409
    default_message = "Renter is blacklisted"


class RenterHasActiveRentalException(RentalEngineException):
    status_code = 409
    default_message = "Renter already has an active rental"


class AlreadyCompletedException(RentalEngineException):
    status_code = 409
    default_message = "Rental is already completed"


class InvalidStateTransitionException(RentalEngineException):
    status_code = 409
    default_message = "Operation is not allowed in the current rental state"


class EmptyUpdateException(RentalEngineException):
    default_message = "No fields to update"


class CalculationInvariantViolation(RentalEngineException):
    status_code = 500
    default_message = "Rental calculation produced an invalid value"


class StorageFailureException(RentalEngineException):
    status_code = 500
    default_message = "Internal storage failure"


def http_exception_for(exc: RentalEngineException) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def internal_failure_exception():
    return HTTPException(status_code=500, detail="Internal server error")


def admin_id_missing_exception():
    return HTTPException(status_code=401, detail="X-Admin-Id header required")
