"""Dependency injection functions for routes.

Everything here reads from ``app.state``, populated once by the lifespan in
chatrelay.main; nothing is a module-level singleton.
"""

from fastapi import Request

from chatrelay.config import Settings
from chatrelay.providers.base import BaseProvider
from chatrelay.services.history import HistoryStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider(request: Request) -> BaseProvider:
    """Get the shared upstream completion provider."""
    return request.app.state.provider


def get_history_store(request: Request) -> HistoryStore:
    """Get a history store bound to the application's session factory."""
    return HistoryStore(request.app.state.sessionmaker)
