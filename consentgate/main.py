import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from consentgate.config import settings
from consentgate.database import Base, engine
from consentgate.exception_handlers import register_exception_handlers
from consentgate.middleware.csrf import CSRFMiddleware
from consentgate.middleware.gating import GatingMiddleware
from consentgate.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from consentgate.middleware.rate_limit import configure_rate_limiting
from consentgate.routes import audit, consent, monitoring
from consentgate.scheduler import shutdown_scheduler, start_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Tasks to run at application startup and shutdown."""
    setup_structured_logging(settings.log_level, settings.log_json)
    logger.info(f"Starting up {settings.app_name} {settings.app_version} ({settings.environment})")

    if settings.debug:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (if not existing).")

    start_scheduler()
    yield

    logger.info("Shutting down the application...")
    shutdown_scheduler()


def create_app(script_filters=()) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        script_filters: Callables ``(src, category) -> bool`` consulted before a
            script is blocked; returning False leaves that script executable.
    """
    app = FastAPI(
        title=settings.app_name,
        description="GDPR cookie consent with script and embed gating",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    register_exception_handlers(app)
    configure_rate_limiting(app)

    # Added first runs innermost: pages are gated before the CSRF cookie is attached
    app.add_middleware(GatingMiddleware, script_filters=script_filters)
    app.add_middleware(CSRFMiddleware, secret_key=settings.secret_key)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )
    app.add_middleware(StructuredLoggingMiddleware)

    app.include_router(consent.router, prefix="/api/v1")
    app.include_router(audit.router, prefix="/api/v1")
    app.include_router(monitoring.router)

    if settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)  # Logs SQL statements

    return app


app = create_app()
