from contextlib import contextmanager
from typing import Iterator

from loguru import logger
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from motor_rental.config.settings import Settings
from motor_rental.core.exceptions import RentalEngineException, StorageFailureException


def install_time_zone_hook(engine: Engine, time_zone: str) -> None:
    """Imposes the fixed local offset on every new DBAPI connection."""
    dialect = engine.dialect.name
    if dialect == "postgresql":
        statement = f"SET TIME ZONE '{time_zone}'"
    elif dialect in ("mysql", "mariadb"):
        statement = f"SET time_zone = '{time_zone}'"
    else:
        # sqlite has no session zone; LocalDateTime keeps values in WIB
        return

    @event.listens_for(engine, "connect")
    def _set_session_time_zone(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(statement)
        finally:
            cursor.close()


def get_engine(settings: Settings) -> Engine:
    engine = create_engine(settings.database_url, pool_pre_ping=True, future=True)
    install_time_zone_hook(engine, settings.database_time_zone)
    return engine


def get_sessionmaker(settings: Settings) -> sessionmaker:
    return sessionmaker(
        bind=get_engine(settings),
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


@contextmanager
def transaction(session: Session, operation: str) -> Iterator[Session]:
    """Commits on success; any failure rolls back every write of the operation."""
    try:
        yield session
        session.commit()
    except RentalEngineException:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception(f"Storage failure during {operation}: {e}")
        raise StorageFailureException(f"Failed to {operation}") from e
    except Exception:
        session.rollback()
        raise
