"""Pydantic models for dashboard and database API requests/responses"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from ..models import (
    Dashboard,
    WidgetConfig,
    WidgetProjection,
    WidgetType,
    TableInfo,
    TableSchema,
)


# Request Models
class DashboardCreate(BaseModel):
    """Dashboard creation request"""
    name: str = Field(..., min_length=1, max_length=255)


class DashboardRename(BaseModel):
    """Dashboard rename request"""
    name: str = Field(..., min_length=1, max_length=255)


class WidgetCreate(BaseModel):
    """Widget creation request"""
    type: WidgetType
    title: str
    query: str
    config: WidgetConfig = Field(default_factory=WidgetConfig)


class WidgetUpdate(BaseModel):
    """Widget edit request"""
    title: str
    query: str
    config: WidgetConfig = Field(default_factory=WidgetConfig)


# Response Models
class DashboardStateResponse(BaseModel):
    """Store slots"""
    dashboards: List[Dashboard]
    current_dashboard: Optional[Dashboard] = None
    is_loading: bool
    error: Optional[str] = None
    persisted: bool


class WidgetDataResponse(BaseModel):
    """Projection with display-ready preview cells"""
    projection: Optional[WidgetProjection] = None
    preview: List[List[str]] = Field(default_factory=list)
    error: Optional[str] = None


class DatabasePathRequest(BaseModel):
    """Open/create database request"""
    path: str = Field(..., min_length=1)


class SampleDataRequest(BaseModel):
    """Sample data request"""
    sample_type: Literal["users", "products", "orders", "all"] = "all"


class DatabaseStateResponse(BaseModel):
    """Connection slots"""
    is_connected: bool
    current_database: Optional[str] = None
    database_name: Optional[str] = None
    tables: List[TableInfo]
    selected_table: Optional[str] = None
    selected_table_schema: Optional[TableSchema] = None
    recent_databases: List[str]
    is_loading: bool
    error: Optional[str] = None
