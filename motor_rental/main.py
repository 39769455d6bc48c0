from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from motor_rental.api.v1 import health, histories, rentals
from motor_rental.config.logging import setup_logging
from motor_rental.config.settings import Settings
from motor_rental.monitoring.metrics import init_app_info, setup_instrumentator


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    logger.info(
        f"Starting motor-rental service: fine_rate={settings.fine_rate}, "
        f"penalty_multiplier={settings.penalty_multiplier}, "
        f"time_zone={settings.database_time_zone}"
    )

    yield
    logger.info("Shutting down motor-rental service")


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title="Motor Rental Service",
        description="Rental lifecycle and overdue penalty engine",
        version="1.0.0",
        lifespan=lifespan,
    )

    instrumentator = setup_instrumentator()
    instrumentator.instrument(app).expose(app)

    init_app_info("1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(rentals.router, prefix="/api/v1", tags=["rentals"])
    app.include_router(histories.router, prefix="/api/v1", tags=["histories"])

    return app


def main():
    import uvicorn

    uvicorn.run(
        "motor_rental.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_config=None,
    )


app = create_app()


if __name__ == "__main__":
    main()
