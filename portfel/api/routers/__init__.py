"""API routers for Portfel.

Each router handles a specific domain of the API.
"""

from portfel.api.routers.notifications import router as notifications_router
from portfel.api.routers.portfolio import router as portfolio_router
from portfel.api.routers.reports import router as reports_router

__all__ = [
    "portfolio_router",
    "notifications_router",
    "reports_router",
]
