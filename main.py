import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from cookie_consent.config import settings
from cookie_consent.database import Base, engine
from cookie_consent.exception_handlers import register_exception_handlers
from cookie_consent.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from cookie_consent.routes import consent
from cookie_consent.scheduler import install_archive_policy, scheduler

setup_structured_logging(settings.log_level, json_format=settings.log_json)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Tasks to run at application startup and shutdown."""
    logger.info("Starting up the application...")
    if settings.debug:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (if not existing).")

    if settings.archive_schedule_enabled:
        install_archive_policy(
            scheduler,
            retention_days=settings.archive_retention_days,
            output_format=settings.archive_output_format,
            project_dir=settings.project_dir,
            interval_hours=settings.archive_interval_hours,
        )
        scheduler.start()

    yield

    logger.info("Shutting down the application...")
    if scheduler.running:
        scheduler.shutdown(wait=False)
    await engine.dispose()


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Cookie consent banner backend with an auditable consent trail",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(StructuredLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(consent.router)

    @app.get("/health", tags=["Monitoring"])
    async def health():
        return {"status": "ok"}

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
