"""Periodic overdue sweep over every open rental."""
import time
from contextlib import contextmanager

from loguru import logger

from motor_rental.config.logging import setup_logging
from motor_rental.config.settings import Settings
from motor_rental.db.database import get_sessionmaker
from motor_rental.db.repositories.admin import AdminRepository
from motor_rental.db.repositories.history import HistoryRepository
from motor_rental.db.repositories.rental import RentalRepository
from motor_rental.db.repositories.renter import RenterRepository
from motor_rental.db.repositories.vehicle import VehicleRepository
from motor_rental.monitoring.metrics import (
    MetricsCollector,
    init_app_info,
    start_metrics_server,
)
from motor_rental.services.overdue import PenaltyPolicy
from motor_rental.services.rental import RentalService


@contextmanager
def get_services(settings: Settings, session_factory=None):
    session_factory = session_factory or get_sessionmaker(settings)
    session = session_factory()
    try:
        rental_service = RentalService(
            session,
            RentalRepository(session),
            VehicleRepository(session),
            RenterRepository(session),
            AdminRepository(session),
            HistoryRepository(session),
            PenaltyPolicy.from_settings(settings),
        )
        yield rental_service
    finally:
        session.close()


def tick_once(settings: Settings, session_factory=None):
    start_time = time.time()

    with get_services(settings, session_factory) as rental_service:
        try:
            # commits or rolls back the whole sweep
            result = rental_service.refresh_all_overdue()
        except Exception as e:
            MetricsCollector.record_worker_error("overdue_sweep_failed")
            logger.error(f"Overdue sweep failed: {e}")
            raise

    duration = time.time() - start_time
    MetricsCollector.record_overdue_sweep(duration, result.overdue)

    logger.info(
        f"Overdue tick: interval_sec={settings.overdue_sweep_interval_sec}, "
        f"open={result.total}, "
        f"updated={result.updated}, "
        f"overdue={result.overdue}, "
        f"estimated_fine={result.total_fine}, "
        f"duration={duration:.2f}s"
    )
    return result


def main():
    settings = Settings()
    setup_logging(settings)

    start_metrics_server(settings.metrics_port)
    init_app_info("1.0.0", component="worker")

    logger.info(
        f"Starting overdue worker: interval_sec={settings.overdue_sweep_interval_sec}"
    )
    logger.info(f"Metrics server started on port {settings.metrics_port}")

    session_factory = get_sessionmaker(settings)
    while True:
        try:
            tick_once(settings, session_factory)
        except Exception as e:
            MetricsCollector.record_worker_error("tick_error")
            logger.error(f"Tick error: {e}")

        time.sleep(settings.overdue_sweep_interval_sec)


if __name__ == "__main__":
    main()
