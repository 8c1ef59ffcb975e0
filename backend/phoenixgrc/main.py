import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from phoenixgrc.config import Settings, settings as default_settings
from phoenixgrc.database import build_engine, build_sessionmaker, check_db_connection
from phoenixgrc.errors import install_error_handlers
from phoenixgrc.logging_config import setup_logging
from phoenixgrc.middleware.request_logging import RequestLoggingMiddleware
from phoenixgrc.routers.audit import router as audit_router
from phoenixgrc.routers.c2m2 import router as c2m2_router
from phoenixgrc.routers.dashboard import router as dashboard_router
from phoenixgrc.routers.risk import router as risk_router
from phoenixgrc.routers.risk_acceptance import router as risk_acceptance_router
from phoenixgrc.routers.webhook import router as webhook_router
from phoenixgrc.services.notifications import NotificationDispatcher, NotificationSink

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    engine: AsyncEngine | None = None,
    notifier: NotificationSink | None = None,
) -> FastAPI:
    """Build the application. ``engine`` and ``notifier`` are injectable for tests."""
    settings = settings or default_settings
    setup_logging(settings)

    owns_engine = engine is None
    engine = engine or build_engine(settings)
    sessionmaker = build_sessionmaker(engine)
    if notifier is None:
        notifier = NotificationDispatcher(settings, sessionmaker)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s %s", settings.APP_NAME, settings.APP_VERSION)
        if isinstance(notifier, NotificationDispatcher):
            await notifier.start()
        yield
        if isinstance(notifier, NotificationDispatcher):
            await notifier.stop()
        if owns_engine:
            await engine.dispose()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = sessionmaker
    app.state.notifier = notifier

    install_error_handlers(app)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(risk_router)
    app.include_router(risk_acceptance_router)
    app.include_router(audit_router)
    app.include_router(c2m2_router)
    app.include_router(dashboard_router)
    app.include_router(webhook_router)

    @app.get("/health")
    async def health(request: Request):
        """Health check: API is running and database is reachable."""
        try:
            await check_db_connection(request.app.state.engine)
            db_status = "connected"
        except Exception as exc:
            db_status = f"error: {exc}"

        return {
            "status": "ok" if db_status == "connected" else "degraded",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "database": db_status,
        }

    return app


app = create_app()
