from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from motor_rental.api.dependencies import get_admin_id, get_rental_service
from motor_rental.core.enums import RentalStatus
from motor_rental.core.exceptions import (
    RentalEngineException,
    http_exception_for,
    internal_failure_exception,
)
from motor_rental.monitoring.metrics import MetricsCollector
from motor_rental.schemas import (
    CompleteRentalRequest,
    CompletionResult,
    CreateRentalRequest,
    ExtendRentalRequest,
    ExtensionResult,
    FineBreakdown,
    FineSimulationRequest,
    MessageResponse,
    OverdueStats,
    OverdueSweepResult,
    RentalData,
    RentalStats,
    UpdateNotesRequest,
    UpdateRentalRequest,
)
from motor_rental.services.rental import RentalService

router = APIRouter()


def _to_http(e: Exception, action: str) -> HTTPException:
    if isinstance(e, RentalEngineException):
        if e.status_code < 500:
            MetricsCollector.record_rejection(type(e).__name__)
            logger.warning(f"Rejected {action}: {e.message}")
        return http_exception_for(e)
    logger.exception(f"Error during {action}: {e}")
    return internal_failure_exception()


@router.get("/rentals", response_model=List[RentalData])
def list_rentals(
    status: Optional[RentalStatus] = Query(None),
    rental_service: RentalService = Depends(get_rental_service),
):
    try:
        return rental_service.find_all(status.value if status else None)
    except Exception as e:
        raise _to_http(e, "list rentals")


@router.post("/rentals", response_model=RentalData, status_code=201)
def create_rental(
    request: CreateRentalRequest,
    admin_id: int = Depends(get_admin_id),
    rental_service: RentalService = Depends(get_rental_service),
):
    try:
        return rental_service.create(request, admin_id)
    except Exception as e:
        raise _to_http(e, "create rental")


@router.get("/rentals/active", response_model=List[RentalData])
def list_active_rentals(rental_service: RentalService = Depends(get_rental_service)):
    try:
        return rental_service.find_active()
    except Exception as e:
        raise _to_http(e, "list active rentals")


@router.get("/rentals/overdue", response_model=List[RentalData])
def list_overdue_rentals(rental_service: RentalService = Depends(get_rental_service)):
    try:
        return rental_service.find_overdue_rentals()
    except Exception as e:
        raise _to_http(e, "list overdue rentals")


@router.post("/rentals/overdue/refresh", response_model=OverdueSweepResult)
def refresh_overdue(rental_service: RentalService = Depends(get_rental_service)):
    try:
        return rental_service.refresh_all_overdue()
    except Exception as e:
        raise _to_http(e, "refresh overdue rentals")


@router.get("/rentals/stats", response_model=RentalStats)
def rental_stats(rental_service: RentalService = Depends(get_rental_service)):
    try:
        return rental_service.get_stats()
    except Exception as e:
        raise _to_http(e, "compute rental stats")


@router.get("/rentals/overdue-stats", response_model=OverdueStats)
def overdue_stats(rental_service: RentalService = Depends(get_rental_service)):
    try:
        return rental_service.get_overdue_stats()
    except Exception as e:
        raise _to_http(e, "compute overdue stats")


@router.post("/rentals/fine-simulation", response_model=FineBreakdown)
def simulate_fine(
    request: FineSimulationRequest,
    rental_service: RentalService = Depends(get_rental_service),
):
    try:
        return rental_service.simulate_fine(
            request.total_price, request.billable_hours, request.lateness_minutes
        )
    except Exception as e:
        raise _to_http(e, "simulate fine")


@router.get("/rentals/{rental_id}", response_model=RentalData)
def get_rental(
    rental_id: int,
    rental_service: RentalService = Depends(get_rental_service),
):
    try:
        return rental_service.find_one(rental_id)
    except Exception as e:
        raise _to_http(e, f"read rental {rental_id}")


@router.put("/rentals/{rental_id}", response_model=RentalData)
def update_rental(
    rental_id: int,
    request: UpdateRentalRequest,
    rental_service: RentalService = Depends(get_rental_service),
):
    try:
        return rental_service.update(rental_id, request)
    except Exception as e:
        raise _to_http(e, f"update rental {rental_id}")


@router.delete("/rentals/{rental_id}", response_model=MessageResponse)
def delete_rental(
    rental_id: int,
    rental_service: RentalService = Depends(get_rental_service),
):
    try:
        rental_service.remove(rental_id)
        return MessageResponse(message=f"Rental {rental_id} deleted")
    except Exception as e:
        raise _to_http(e, f"delete rental {rental_id}")


@router.put("/rentals/{rental_id}/notes", response_model=RentalData)
def update_rental_notes(
    rental_id: int,
    request: UpdateNotesRequest,
    rental_service: RentalService = Depends(get_rental_service),
):
    try:
        return rental_service.update_notes(rental_id, request.notes)
    except Exception as e:
        raise _to_http(e, f"update notes of rental {rental_id}")


@router.post("/rentals/{rental_id}/extend", response_model=ExtensionResult)
def extend_rental(
    rental_id: int,
    request: ExtendRentalRequest,
    rental_service: RentalService = Depends(get_rental_service),
):
    try:
        return rental_service.extend(rental_id, request.new_agreed_return_at)
    except Exception as e:
        raise _to_http(e, f"extend rental {rental_id}")


@router.post("/rentals/{rental_id}/complete", response_model=CompletionResult)
def complete_rental(
    rental_id: int,
    request: CompleteRentalRequest,
    rental_service: RentalService = Depends(get_rental_service),
):
    try:
        return rental_service.complete(rental_id, request.completed_at, request.notes)
    except Exception as e:
        raise _to_http(e, f"complete rental {rental_id}")
