"""Dashboard API routes"""
import logging
from typing import List, Dict
from fastapi import APIRouter, Depends, HTTPException, status

from ..context import AppContext, get_context
from ..core_api.result_transform import preview_rows, format_cell
from ..models import (
    Dashboard,
    DashboardWidget,
)
from .models import (
    DashboardCreate,
    DashboardRename,
    WidgetCreate,
    WidgetUpdate,
    DashboardStateResponse,
    WidgetDataResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/dashboards", tags=["Dashboards"])


def _state(ctx: AppContext) -> DashboardStateResponse:
    store = ctx.dashboards
    return DashboardStateResponse(
        dashboards=list(store.dashboards),
        current_dashboard=store.current_dashboard,
        is_loading=store.is_loading,
        error=store.error,
        persisted=store.persisted,
    )


def _require_dashboard(ctx: AppContext, dashboard_id: str) -> Dashboard:
    dashboard = ctx.dashboards.get(dashboard_id)
    if dashboard is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Dashboard not found"
        )
    return dashboard


def _require_widget(dashboard: Dashboard, widget_id: str) -> DashboardWidget:
    widget = dashboard.find_widget(widget_id)
    if widget is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Widget not found"
        )
    return widget


def _widget_data(ctx: AppContext, widget: DashboardWidget) -> WidgetDataResponse:
    projection = ctx.widgets.get(widget.id)
    preview = []
    if projection is not None and widget.type == "table":
        preview = [[format_cell(cell) for cell in row] for row in preview_rows(projection.rows)]
    return WidgetDataResponse(
        projection=projection,
        preview=preview,
        error=ctx.widgets.failures.get(widget.id),
    )


@router.get("", response_model=DashboardStateResponse)
async def list_dashboards(ctx: AppContext = Depends(get_context)):
    """All dashboards plus the selection"""
    return _state(ctx)


@router.post("", response_model=Dashboard, status_code=status.HTTP_201_CREATED)
async def create_dashboard(
    dashboard_data: DashboardCreate,
    ctx: AppContext = Depends(get_context)
):
    """Create a dashboard and select it"""
    dashboard = await ctx.dashboards.create(dashboard_data.name)
    await ctx.widgets.select_dashboard(dashboard.id)
    return dashboard


@router.post("/save", response_model=DashboardStateResponse)
async def retry_save(ctx: AppContext = Depends(get_context)):
    """Retry persisting the collection after a failed save"""
    await ctx.dashboards.retry_save()
    return _state(ctx)


@router.get("/{dashboard_id}", response_model=Dashboard)
async def get_dashboard(dashboard_id: str, ctx: AppContext = Depends(get_context)):
    return _require_dashboard(ctx, dashboard_id)


@router.put("/{dashboard_id}", response_model=Dashboard)
async def rename_dashboard(
    dashboard_id: str,
    update_data: DashboardRename,
    ctx: AppContext = Depends(get_context)
):
    """Rename a dashboard"""
    _require_dashboard(ctx, dashboard_id)
    return await ctx.dashboards.rename(dashboard_id, update_data.name)


@router.delete("/{dashboard_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dashboard(dashboard_id: str, ctx: AppContext = Depends(get_context)):
    """Delete a dashboard and forget its widget projections"""
    dashboard = _require_dashboard(ctx, dashboard_id)
    await ctx.dashboards.delete(dashboard_id)
    for widget in dashboard.widgets:
        ctx.widgets.discard(widget.id)


@router.post("/{dashboard_id}/select", response_model=Dashboard)
async def select_dashboard(dashboard_id: str, ctx: AppContext = Depends(get_context)):
    """Select a dashboard and refresh all of its widgets"""
    _require_dashboard(ctx, dashboard_id)
    return await ctx.widgets.select_dashboard(dashboard_id)


@router.post("/{dashboard_id}/refresh", response_model=Dict[str, WidgetDataResponse])
async def refresh_dashboard(dashboard_id: str, ctx: AppContext = Depends(get_context)):
    """Refresh every widget in order"""
    dashboard = _require_dashboard(ctx, dashboard_id)
    await ctx.widgets.refresh_all(dashboard)
    return {widget.id: _widget_data(ctx, widget) for widget in dashboard.widgets}


@router.get("/{dashboard_id}/widgets/data", response_model=Dict[str, WidgetDataResponse])
async def get_widget_data(dashboard_id: str, ctx: AppContext = Depends(get_context)):
    """Cached projections for the dashboard's widgets"""
    dashboard = _require_dashboard(ctx, dashboard_id)
    return {widget.id: _widget_data(ctx, widget) for widget in dashboard.widgets}


@router.post(
    "/{dashboard_id}/widgets",
    response_model=DashboardWidget,
    status_code=status.HTTP_201_CREATED
)
async def add_widget(
    dashboard_id: str,
    widget_data: WidgetCreate,
    ctx: AppContext = Depends(get_context)
):
    """Add a widget and load its data"""
    _require_dashboard(ctx, dashboard_id)
    widget = await ctx.dashboards.add_widget(
        dashboard_id,
        widget_data.type,
        widget_data.title,
        widget_data.query,
        widget_data.config,
    )
    await ctx.widgets.refresh_one(widget)
    return widget


@router.put("/{dashboard_id}/widgets/positions", response_model=Dashboard)
async def update_widget_positions(
    dashboard_id: str,
    widgets: List[DashboardWidget],
    ctx: AppContext = Depends(get_context)
):
    """Replace the widget list after a layout change"""
    _require_dashboard(ctx, dashboard_id)
    await ctx.dashboards.update_widget_positions(dashboard_id, widgets)
    return ctx.dashboards.get(dashboard_id)


@router.put("/{dashboard_id}/widgets/{widget_id}", response_model=DashboardWidget)
async def update_widget(
    dashboard_id: str,
    widget_id: str,
    widget_data: WidgetUpdate,
    ctx: AppContext = Depends(get_context)
):
    """Edit a widget's title, query and config, then reload its data"""
    dashboard = _require_dashboard(ctx, dashboard_id)
    widget = _require_widget(dashboard, widget_id).model_copy(
        update={
            "title": widget_data.title,
            "query": widget_data.query,
            "config": widget_data.config,
        }
    )
    await ctx.dashboards.update_widget(dashboard_id, widget)
    await ctx.widgets.refresh_one(widget)
    return widget


@router.delete("/{dashboard_id}/widgets/{widget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_widget(
    dashboard_id: str,
    widget_id: str,
    ctx: AppContext = Depends(get_context)
):
    dashboard = _require_dashboard(ctx, dashboard_id)
    _require_widget(dashboard, widget_id)
    await ctx.dashboards.remove_widget(dashboard_id, widget_id)
    ctx.widgets.discard(widget_id)


@router.post("/{dashboard_id}/widgets/{widget_id}/refresh", response_model=WidgetDataResponse)
async def refresh_widget(
    dashboard_id: str,
    widget_id: str,
    ctx: AppContext = Depends(get_context)
):
    """Refresh one widget; on failure the previous data is returned with the error"""
    dashboard = _require_dashboard(ctx, dashboard_id)
    widget = _require_widget(dashboard, widget_id)
    await ctx.widgets.refresh_one(widget)
    return _widget_data(ctx, widget)
