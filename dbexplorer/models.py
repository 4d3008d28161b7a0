"""Pydantic models for query results, dashboards and widget projections"""
from typing import List, Any, Optional, Literal, Dict, Union
from datetime import datetime, timezone
from uuid import uuid4
from pydantic import BaseModel, Field, model_validator


WidgetType = Literal["chart", "table", "kpi"]
ChartType = Literal["bar", "line", "pie", "doughnut"]
Aggregation = Literal["sum", "count", "avg", "min", "max"]
SortDirection = Literal["asc", "desc", ""]


def new_id() -> str:
    """Generate a fresh unique identifier"""
    return str(uuid4())


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g. 2024-01-01T12:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ============================================================================
# Query Models
# ============================================================================

class QueryResult(BaseModel):
    """Tabular result returned by the SQL engine"""
    columns: List[str] = Field(default_factory=list)
    column_types: List[str] = Field(default_factory=list)
    rows: List[List[Any]] = Field(default_factory=list)
    row_count: int = Field(0, ge=0)
    execution_time_ms: int = Field(0, ge=0)

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_shape(self) -> "QueryResult":
        width = len(self.columns)
        for index, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(
                    f"Row {index} has {len(row)} values, expected {width}"
                )
        if self.row_count != len(self.rows):
            raise ValueError(
                f"row_count {self.row_count} does not match {len(self.rows)} rows"
            )
        return self


class QueryHistoryItem(BaseModel):
    """One executed statement, immutable once recorded"""
    id: str = Field(default_factory=new_id)
    sql: str
    executed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    row_count: int = 0
    execution_time_ms: int = 0
    success: bool = False
    error: Optional[str] = None

    class Config:
        frozen = True


# ============================================================================
# Dashboard Models (persisted - field names match the store file)
# ============================================================================

class WidgetConfig(BaseModel):
    """Rendering configuration for a widget"""
    chartType: Optional[ChartType] = None
    labelColumn: Optional[str] = None
    valueColumn: Optional[str] = None
    # Accepted and persisted, not applied when projecting
    aggregation: Optional[Aggregation] = None

    class Config:
        frozen = True


class DashboardWidget(BaseModel):
    """A typed dashboard unit driven by one SQL query"""
    id: str = Field(default_factory=new_id)
    type: WidgetType
    title: str
    query: str
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)
    cols: int = Field(2, ge=0)
    rows: int = Field(2, ge=0)
    config: WidgetConfig = Field(default_factory=WidgetConfig)

    class Config:
        frozen = True


class Dashboard(BaseModel):
    """Named collection of widgets"""
    id: str = Field(default_factory=new_id)
    name: str
    widgets: List[DashboardWidget] = Field(default_factory=list)
    createdAt: str = Field(default_factory=utc_now_iso)
    updatedAt: str = Field(default_factory=utc_now_iso)

    class Config:
        frozen = True

    def find_widget(self, widget_id: str) -> Optional[DashboardWidget]:
        return next((w for w in self.widgets if w.id == widget_id), None)


# ============================================================================
# Projection Models (derived, never persisted)
# ============================================================================

class ChartDataset(BaseModel):
    """One labelled numeric series"""
    label: str
    data: List[Union[int, float]]

    class Config:
        frozen = True


class ChartData(BaseModel):
    """Chart-ready labels and series"""
    labels: List[str]
    datasets: List[ChartDataset]

    class Config:
        frozen = True


class WidgetProjection(BaseModel):
    """Last successfully fetched data for one widget, shaped for its type"""
    widget_id: str
    widget_type: WidgetType
    columns: List[str]
    rows: List[List[Any]]
    chart: Optional[ChartData] = None
    value: Any = None
    refreshed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True


class TableView(BaseModel):
    """A sorted page of a query result"""
    columns: List[str]
    rows: List[List[Any]]
    total_rows: int
    page_index: int
    page_size: int
    sort_column: Optional[str] = None
    sort_direction: SortDirection = ""

    class Config:
        frozen = True


# ============================================================================
# Database Models
# ============================================================================

class DatabaseInfo(BaseModel):
    """An opened database file"""
    path: str
    tables: List[str] = Field(default_factory=list)


class TableInfo(BaseModel):
    """Table name with its row count"""
    name: str
    row_count: int = 0

    class Config:
        frozen = True


class ColumnInfo(BaseModel):
    """Column definition"""
    name: str
    data_type: str
    nullable: bool = True
    default_value: Optional[str] = None
    is_primary_key: bool = False

    class Config:
        frozen = True


class TableSchema(BaseModel):
    """Columns of one table"""
    table_name: str
    columns: List[ColumnInfo]

    class Config:
        frozen = True


# ============================================================================
# Response Models
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    version: str
    timestamp: str
    dependencies: Dict[str, str]
