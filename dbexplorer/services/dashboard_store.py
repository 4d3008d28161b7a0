"""Dashboard collection with write-through persistence"""
import logging
from typing import Optional, Tuple, Iterable

from ..errors import PersistenceError
from ..models import (
    Dashboard,
    DashboardWidget,
    WidgetConfig,
    WidgetType,
    utc_now_iso,
)
from .backend import Backend

logger = logging.getLogger(__name__)


def default_widget_size(widget_type: WidgetType) -> int:
    """KPI widgets occupy one grid cell per side, everything else two"""
    return 1 if widget_type == "kpi" else 2


class DashboardStore:
    """
    Owns the dashboards and the selected dashboard.

    Every mutation replaces the whole collection and then saves it through
    the backend. Mutations are optimistic: when the save fails, the
    in-memory change stays applied, ``persisted`` turns False and the
    message lands in ``error``. Callers may ``retry_save`` or undo the
    change themselves.
    """

    def __init__(self, backend: Backend):
        self.backend = backend
        self._dashboards: Tuple[Dashboard, ...] = ()
        self._current: Optional[Dashboard] = None
        self._is_loading = False
        self._error: Optional[str] = None
        self._persisted = True

    # Read-only slots

    @property
    def dashboards(self) -> Tuple[Dashboard, ...]:
        return self._dashboards

    @property
    def current_dashboard(self) -> Optional[Dashboard]:
        return self._current

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def persisted(self) -> bool:
        """False while the last save attempt failed"""
        return self._persisted

    def get(self, dashboard_id: str) -> Optional[Dashboard]:
        return next((d for d in self._dashboards if d.id == dashboard_id), None)

    # Persistence

    async def load(self) -> None:
        """Replace the collection with what the backend has stored"""
        self._is_loading = True
        try:
            dashboards = await self.backend.load_dashboards()
            self._dashboards = tuple(dashboards)
            self._persisted = True
            logger.info(f"Loaded {len(self._dashboards)} dashboards")
        except Exception as e:
            self._error = str(e)
            logger.error(f"Failed to load dashboards: {e}")
        finally:
            self._is_loading = False

    async def _persist(self) -> bool:
        try:
            await self.backend.save_dashboards(list(self._dashboards))
        except Exception as e:
            message = e.message if isinstance(e, PersistenceError) else str(e)
            self._error = message
            self._persisted = False
            logger.error(f"Failed to save dashboards (in-memory state kept): {message}")
            return False
        self._persisted = True
        return True

    async def retry_save(self) -> bool:
        """Save the current collection again; True on success"""
        saved = await self._persist()
        if saved:
            self._error = None
        return saved

    def clear_error(self) -> None:
        self._error = None

    # Dashboard CRUD

    async def create(self, name: str) -> Dashboard:
        """
        Create an empty dashboard and save the collection.

        Args:
            name: Display name

        Returns:
            Created dashboard
        """
        now = utc_now_iso()
        dashboard = Dashboard(name=name, widgets=[], createdAt=now, updatedAt=now)
        self._dashboards = self._dashboards + (dashboard,)
        await self._persist()

        logger.info(f"Created dashboard {dashboard.id} ({name})")
        return dashboard

    async def update(self, dashboard: Dashboard) -> Dashboard:
        """
        Replace a dashboard by id, stamping ``updatedAt``.

        Unknown ids are ignored. When the dashboard is selected, the selected
        slot is republished with the new value.

        Returns:
            The stamped dashboard
        """
        updated = dashboard.model_copy(update={"updatedAt": utc_now_iso()})

        if self.get(updated.id) is None:
            logger.warning(f"Dashboard {updated.id} not found, update ignored")
            return updated

        self._dashboards = tuple(
            updated if d.id == updated.id else d for d in self._dashboards
        )
        await self._persist()

        if self._current is not None and self._current.id == updated.id:
            self._current = updated

        return updated

    async def rename(self, dashboard_id: str, name: str) -> Optional[Dashboard]:
        dashboard = self.get(dashboard_id)
        if dashboard is None:
            return None
        return await self.update(dashboard.model_copy(update={"name": name}))

    async def delete(self, dashboard_id: str) -> None:
        """Remove a dashboard; clears the selection if it was selected"""
        self._dashboards = tuple(d for d in self._dashboards if d.id != dashboard_id)
        await self._persist()

        if self._current is not None and self._current.id == dashboard_id:
            self._current = None

        logger.info(f"Deleted dashboard {dashboard_id}")

    def select(self, dashboard_id: Optional[str]) -> Optional[Dashboard]:
        """Select a dashboard (None when not found). Not persisted."""
        self._current = self.get(dashboard_id) if dashboard_id else None
        return self._current

    # Widget operations

    async def add_widget(
        self,
        dashboard_id: str,
        widget_type: WidgetType,
        title: str,
        query: str,
        config: Optional[WidgetConfig] = None
    ) -> DashboardWidget:
        """
        Append a widget at (0, 0) with the default size for its type.

        Layout packing is left to the caller. When the dashboard does not
        exist the widget is returned but not stored.

        Returns:
            Created widget
        """
        size = default_widget_size(widget_type)
        widget = DashboardWidget(
            type=widget_type,
            title=title,
            query=query,
            x=0,
            y=0,
            cols=size,
            rows=size,
            config=config or WidgetConfig(),
        )

        dashboard = self.get(dashboard_id)
        if dashboard is None:
            logger.warning(f"Dashboard {dashboard_id} not found, widget {widget.id} not stored")
            return widget

        await self.update(
            dashboard.model_copy(update={"widgets": list(dashboard.widgets) + [widget]})
        )
        logger.info(f"Added {widget_type} widget {widget.id} to dashboard {dashboard_id}")
        return widget

    async def update_widget(self, dashboard_id: str, widget: DashboardWidget) -> None:
        """Replace a widget by id within its dashboard"""
        dashboard = self.get(dashboard_id)
        if dashboard is None:
            return
        widgets = [widget if w.id == widget.id else w for w in dashboard.widgets]
        await self.update(dashboard.model_copy(update={"widgets": widgets}))

    async def remove_widget(self, dashboard_id: str, widget_id: str) -> None:
        """Drop a widget by id from its dashboard"""
        dashboard = self.get(dashboard_id)
        if dashboard is None:
            return
        widgets = [w for w in dashboard.widgets if w.id != widget_id]
        await self.update(dashboard.model_copy(update={"widgets": widgets}))

    async def update_widget_positions(
        self,
        dashboard_id: str,
        widgets: Iterable[DashboardWidget]
    ) -> None:
        """Replace the widget list wholesale, e.g. after a drag in the grid"""
        dashboard = self.get(dashboard_id)
        if dashboard is None:
            return
        await self.update(dashboard.model_copy(update={"widgets": list(widgets)}))
