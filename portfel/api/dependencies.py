"""FastAPI dependencies for API routers.

Components are built once in the app lifespan and stored on ``app.state``.
"""

from dataclasses import dataclass

from fastapi import Request

from portfel.config import AppConfig
from portfel.notifications.reports import ReportDelivery, ReportGenerator
from portfel.notifications.scheduler import NotificationScheduler
from portfel.notifications.service import NotificationService
from portfel.notifications.settings import NotificationSettingsStore
from portfel.portfolio import PortfolioStore
from portfel.storage.base import StorageAdapter


@dataclass
class AppDependencies:
    """Components shared by API routes.

    Usage:
        @router.get("/endpoint")
        async def my_endpoint(deps: Annotated[AppDependencies, Depends(get_deps)]):
            positions = await deps.portfolio.load()
    """

    config: AppConfig
    storage: StorageAdapter
    portfolio: PortfolioStore
    settings: NotificationSettingsStore
    scheduler: NotificationScheduler
    reports: ReportGenerator
    delivery: ReportDelivery
    service: NotificationService


async def get_deps(request: Request) -> AppDependencies:
    """Return the dependencies built at startup."""
    return request.app.state.deps
