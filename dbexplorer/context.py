"""Explicit object graph shared by the presentation layer"""
import logging
from typing import Optional

from fastapi import Request

from .config import settings
from .services.app_store import AppStore
from .services.backend import Backend, create_backend
from .services.dashboard_store import DashboardStore
from .services.database_session import DatabaseSession
from .services.query_executor import QueryExecutor
from .services.widget_refresh import WidgetRefreshCoordinator

logger = logging.getLogger(__name__)


class AppContext:
    """
    Holds one instance of every state container.

    Created once per application and handed to whatever owns the UI;
    nothing in the core reaches for module-level singletons.
    """

    def __init__(self, backend: Backend):
        self.backend = backend
        self.database = DatabaseSession(backend)
        self.queries = QueryExecutor(backend)
        self.dashboards = DashboardStore(backend)
        self.widgets = WidgetRefreshCoordinator(self.queries, self.dashboards)

    @classmethod
    def create(cls, store_path: Optional[str] = None, mode: Optional[str] = None) -> "AppContext":
        store = AppStore(store_path or settings.STORE_PATH)
        return cls(create_backend(store, mode))

    async def startup(self) -> None:
        """Load persisted dashboards and recent databases"""
        await self.dashboards.load()
        await self.database.load_recent_databases()
        logger.info(
            f"Context ready: {len(self.dashboards.dashboards)} dashboards, "
            f"{len(self.database.recent_databases)} recent databases"
        )

    async def shutdown(self) -> None:
        if self.database.is_connected:
            await self.database.close_database()


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the application's context"""
    return request.app.state.context
