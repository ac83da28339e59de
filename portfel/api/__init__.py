"""Portfel API package.

Contains FastAPI routers for the web API.
"""

from portfel.api.dependencies import AppDependencies, get_deps

__all__ = ["AppDependencies", "get_deps"]
