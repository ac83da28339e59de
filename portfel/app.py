"""
Portfel Web API - FastAPI entry point.

Usage:
    uvicorn portfel.app:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portfel.api.dependencies import AppDependencies
from portfel.api.routers import notifications_router, portfolio_router, reports_router
from portfel.config import AppConfig, get_config
from portfel.notifications.reports import ReportDelivery, ReportGenerator
from portfel.notifications.scheduler import NotificationScheduler
from portfel.notifications.service import LocalNotificationService
from portfel.notifications.settings import NotificationSettingsStore
from portfel.portfolio import PortfolioStore
from portfel.storage import MemoryStorage, SqliteStorage, StorageAdapter

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


async def build_storage(config: AppConfig) -> StorageAdapter:
    if config.storage_backend == "memory":
        logger.warning("Using in-memory storage, nothing will be persisted")
        return MemoryStorage()
    return await SqliteStorage(config.database_path).connect()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup, cleanup on shutdown."""
    config: AppConfig = app.state.config

    # Startup
    storage = await build_storage(config)
    portfolio = PortfolioStore(storage, ttl_seconds=config.portfolio_cache_ttl_seconds)
    settings = NotificationSettingsStore(storage)

    service = LocalNotificationService(permission_granted=config.notifications_permission)
    await service.start()

    scheduler = NotificationScheduler(storage, service)
    reports = ReportGenerator(
        portfolio,
        storage,
        settings,
        currency=config.currency,
        history_limit=config.history_limit,
    )
    delivery = ReportDelivery(settings, reports, service)
    service.set_trigger_handler(delivery.handle_trigger)

    app.state.deps = AppDependencies(
        config=config,
        storage=storage,
        portfolio=portfolio,
        settings=settings,
        scheduler=scheduler,
        reports=reports,
        delivery=delivery,
        service=service,
    )

    # Registered triggers live in memory only; re-register what settings ask for
    status = await scheduler.schedule(await settings.load(), force=True)
    logger.info(f"Report schedule on startup: {status.value}")

    yield

    # Shutdown
    await service.stop()
    if isinstance(storage, SqliteStorage):
        await storage.close()
    logger.info("Portfel stopped")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application."""
    config = config or get_config()

    app = FastAPI(
        title=config.app_name,
        description="Personal portfolio tracker",
        version=VERSION,
        debug=config.debug,
        lifespan=lifespan,
    )
    app.state.config = config

    # CORS for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(portfolio_router, prefix="/api")
    app.include_router(notifications_router, prefix="/api")
    app.include_router(reports_router, prefix="/api")

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()
