"""Per-widget query refresh and projection cache"""
import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional, List

from ..core_api.result_transform import project
from ..errors import RefreshError, ExplorerError
from ..models import Dashboard, DashboardWidget, WidgetProjection
from .dashboard_store import DashboardStore
from .query_executor import QueryExecutor

logger = logging.getLogger(__name__)


class WidgetRefreshCoordinator:
    """
    Runs widget queries and keeps the latest projection per widget id.

    The cache is derived state: it is never persisted and only references
    widgets by id, so a projection may outlive its widget. A failed refresh
    leaves the previous projection in place.
    """

    def __init__(self, executor: QueryExecutor, store: DashboardStore):
        self.executor = executor
        self.store = store
        self._projections: Dict[str, WidgetProjection] = {}
        self._failures: Dict[str, str] = {}

    @property
    def projections(self) -> Mapping[str, WidgetProjection]:
        """Read-only snapshot of the cache"""
        return MappingProxyType(self._projections)

    @property
    def failures(self) -> Mapping[str, str]:
        """Last refresh error per widget id, cleared by a successful refresh"""
        return MappingProxyType(self._failures)

    def get(self, widget_id: str) -> Optional[WidgetProjection]:
        return self._projections.get(widget_id)

    def discard(self, widget_id: str) -> None:
        if widget_id in self._projections or widget_id in self._failures:
            self._projections = {k: v for k, v in self._projections.items() if k != widget_id}
            self._failures = {k: v for k, v in self._failures.items() if k != widget_id}

    async def refresh_one(self, widget: DashboardWidget) -> Optional[WidgetProjection]:
        """
        Re-run one widget's query and replace its projection.

        Failures are logged and recorded in ``failures``; they never
        propagate, and the previous projection is kept.

        Args:
            widget: Widget to refresh

        Returns:
            New projection, or None when the refresh failed
        """
        logger.info(f"Refreshing {widget.type} widget {widget.id}")
        try:
            result = await self.executor.execute(widget.query)
            projection = project(widget.id, widget.type, result, widget.config)
        except Exception as e:
            message = e.message if isinstance(e, ExplorerError) else str(e)
            error = RefreshError(widget.id, message)
            logger.warning(f"Failed to refresh widget {error.widget_id}: {error}")
            self._failures = {**self._failures, widget.id: message}
            return None

        self._projections = {**self._projections, widget.id: projection}
        if widget.id in self._failures:
            self._failures = {k: v for k, v in self._failures.items() if k != widget.id}
        logger.info(f"Widget {widget.id} refreshed with {len(projection.rows)} rows")
        return projection

    async def refresh_all(self, dashboard: Dashboard) -> List[Optional[WidgetProjection]]:
        """
        Refresh every widget of a dashboard one after another.

        Each query completes before the next is issued, in widget order, so
        at most one widget query is in flight.

        Returns:
            One entry per widget, None where the refresh failed
        """
        logger.info(f"Refreshing {len(dashboard.widgets)} widgets of dashboard {dashboard.id}")
        results = []
        for widget in dashboard.widgets:
            results.append(await self.refresh_one(widget))

        failed = sum(1 for r in results if r is None)
        logger.info(f"Dashboard {dashboard.id} refresh complete: {len(results) - failed} successful, {failed} errors")
        return results

    async def select_dashboard(self, dashboard_id: Optional[str]) -> Optional[Dashboard]:
        """
        Select a dashboard and refresh its widgets.

        Projections of previously selected dashboards are left in the cache.
        """
        dashboard = self.store.select(dashboard_id)
        if dashboard is not None:
            await self.refresh_all(dashboard)
        return dashboard
