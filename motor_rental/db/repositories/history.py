from datetime import datetime
from typing import Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import exists, func, or_, select
from sqlalchemy.orm import Session

from motor_rental.db.models import History
from motor_rental.db.repositories.rental import parse_adjustments, parse_collateral
from motor_rental.schemas import HistoryData


class HistoryRepository:
    def __init__(self, session: Session):
        self.session = session

    # --- Archive writes ---

    def create_history(self, history: History) -> None:
        self.session.add(history)
        self.session.flush()
        logger.debug(
            "Archived rental {} as history {} ({}, fine={})",
            history.rental_id,
            history.id,
            history.completion_status,
            history.fine,
        )

    def delete_history(self, history: History) -> None:
        self.session.delete(history)
        self.session.flush()

    # --- Lookups ---

    def get_by_id(self, history_id: int) -> Optional[History]:
        return self.session.get(History, history_id)

    def exists_for_rental(self, rental_id: int) -> bool:
        return self.session.execute(
            select(exists().where(History.rental_id == rental_id))
        ).scalar()

    def list_page(
        self, page: int, limit: int, search: Optional[str] = None
    ) -> Tuple[List[History], int]:
        query = select(History)
        count_query = select(func.count(History.id))

        if search:
            pattern = f"%{search}%"
            condition = or_(
                History.vehicle_plate.ilike(pattern),
                History.renter_name.ilike(pattern),
                History.completion_status.ilike(pattern),
            )
            query = query.where(condition)
            count_query = count_query.where(condition)

        query = (
            query.order_by(History.completed_at.desc(), History.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        items = list(self.session.execute(query).scalars().all())
        total = int(self.session.execute(count_query).scalar() or 0)
        return items, total

    def list_completed_between(self, start: datetime, end: datetime) -> List[History]:
        query = (
            select(History)
            .where(History.completed_at >= start, History.completed_at <= end)
            .order_by(History.completed_at.desc(), History.id.desc())
        )
        return list(self.session.execute(query).scalars().all())

    def list_recent(self, limit: int = 5) -> List[History]:
        query = (
            select(History)
            .order_by(History.created_at.desc(), History.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(query).scalars().all())

    # --- Aggregates ---

    def count(self) -> int:
        return int(self.session.execute(select(func.count(History.id))).scalar() or 0)

    def get_total_revenue(self) -> int:
        total = self.session.execute(
            select(func.coalesce(func.sum(History.price), 0))
        ).scalar()
        return int(total or 0)

    def get_total_fines(self) -> int:
        total = self.session.execute(
            select(func.coalesce(func.sum(History.fine), 0))
        ).scalar()
        return int(total or 0)

    def count_by_status(self) -> Dict[str, int]:
        rows = self.session.execute(
            select(History.completion_status, func.count(History.id)).group_by(
                History.completion_status
            )
        ).all()
        return {status: count for status, count in rows}

    def to_history_data(self, history: History) -> HistoryData:
        return HistoryData(
            id=history.id,
            rental_id=history.rental_id,
            completed_at=history.completed_at,
            completion_status=history.completion_status,
            price=history.price,
            fine=history.fine,
            lateness_minutes=history.lateness_minutes,
            completion_notes=history.completion_notes,
            vehicle_plate=history.vehicle_plate,
            vehicle_brand=history.vehicle_brand,
            vehicle_model=history.vehicle_model,
            vehicle_year=history.vehicle_year,
            renter_name=history.renter_name,
            renter_whatsapp=history.renter_whatsapp,
            admin_name=history.admin_name,
            start_at=history.start_at,
            agreed_return_at=history.agreed_return_at,
            duration_value=history.duration_value,
            duration_unit=history.duration_unit,
            collateral=parse_collateral(history.collateral),
            payment_method=history.payment_method,
            adjustments=parse_adjustments(history.adjustments),
            notes=history.notes,
            created_at=history.created_at,
        )
