import math
from typing import List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from motor_rental.core.exceptions import InvalidTemporalOrderException, NotFoundException
from motor_rental.core.timezone import parse_local_datetime
from motor_rental.db.database import transaction
from motor_rental.db.repositories.history import HistoryRepository
from motor_rental.schemas import HistoryData, HistoryPage, HistoryStats, Pagination

MAX_PAGE_SIZE = 100
RECENT_HISTORY_COUNT = 5


class HistoryService:
    def __init__(self, session: Session, history_repo: HistoryRepository):
        self.session = session
        self.history_repo = history_repo

    def list(
        self, page: int = 1, limit: int = 10, search: Optional[str] = None
    ) -> HistoryPage:
        page = max(1, page)
        limit = min(max(1, limit), MAX_PAGE_SIZE)
        search = search.strip() if search else None

        items, total = self.history_repo.list_page(page, limit, search)
        return HistoryPage(
            data=[self.history_repo.to_history_data(item) for item in items],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit) if total else 0,
            ),
        )

    def get(self, history_id: int) -> HistoryData:
        history = self.history_repo.get_by_id(history_id)
        if not history:
            raise NotFoundException(f"History {history_id} not found")
        return self.history_repo.to_history_data(history)

    def purge(self, history_id: int) -> None:
        with transaction(self.session, "delete history"):
            history = self.history_repo.get_by_id(history_id)
            if not history:
                raise NotFoundException(f"History {history_id} not found")
            self.history_repo.delete_history(history)

        logger.info(f"History {history_id} deleted")

    def stats_summary(self) -> HistoryStats:
        recent = self.history_repo.list_recent(RECENT_HISTORY_COUNT)
        return HistoryStats(
            total_histories=self.history_repo.count(),
            total_revenue=self.history_repo.get_total_revenue(),
            total_fines=self.history_repo.get_total_fines(),
            status_summary=self.history_repo.count_by_status(),
            recent=[self.history_repo.to_history_data(item) for item in recent],
        )

    def by_completion_range(self, start: str, end: str) -> List[HistoryData]:
        start_at = parse_local_datetime(start, "start")
        end_at = parse_local_datetime(end, "end")
        if end_at < start_at:
            raise InvalidTemporalOrderException("end must not be before start")

        items = self.history_repo.list_completed_between(start_at, end_at)
        return [self.history_repo.to_history_data(item) for item in items]
