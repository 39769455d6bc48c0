from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from loguru import logger

from motor_rental.api.dependencies import get_history_service
from motor_rental.core.exceptions import (
    RentalEngineException,
    http_exception_for,
    internal_failure_exception,
)
from motor_rental.schemas import HistoryData, HistoryPage, HistoryStats, MessageResponse
from motor_rental.services.history import HistoryService

router = APIRouter()


@router.get("/histories", response_model=HistoryPage)
def list_histories(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    history_service: HistoryService = Depends(get_history_service),
):
    try:
        return history_service.list(page, limit, search)
    except RentalEngineException as e:
        raise http_exception_for(e)
    except Exception as e:
        logger.exception(f"Error listing histories: {e}")
        raise internal_failure_exception()


@router.get("/histories/stats", response_model=HistoryStats)
def history_stats(history_service: HistoryService = Depends(get_history_service)):
    try:
        return history_service.stats_summary()
    except Exception as e:
        logger.exception(f"Error computing history stats: {e}")
        raise internal_failure_exception()


@router.get("/histories/range", response_model=List[HistoryData])
def histories_by_completion_range(
    start: str = Query(...),
    end: str = Query(...),
    history_service: HistoryService = Depends(get_history_service),
):
    try:
        return history_service.by_completion_range(start, end)
    except RentalEngineException as e:
        raise http_exception_for(e)
    except Exception as e:
        logger.exception(f"Error listing histories by range: {e}")
        raise internal_failure_exception()


@router.get("/histories/{history_id}", response_model=HistoryData)
def get_history(
    history_id: int,
    history_service: HistoryService = Depends(get_history_service),
):
    try:
        return history_service.get(history_id)
    except RentalEngineException as e:
        raise http_exception_for(e)
    except Exception as e:
        logger.exception(f"Error reading history {history_id}: {e}")
        raise internal_failure_exception()


@router.delete("/histories/{history_id}", response_model=MessageResponse)
def delete_history(
    history_id: int,
    history_service: HistoryService = Depends(get_history_service),
):
    try:
        history_service.purge(history_id)
        return MessageResponse(message=f"History {history_id} deleted")
    except RentalEngineException as e:
        raise http_exception_for(e)
    except Exception as e:
        logger.exception(f"Error deleting history {history_id}: {e}")
        raise internal_failure_exception()
