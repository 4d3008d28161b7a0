"""Core API request/response models"""
from typing import List, Optional
from pydantic import BaseModel, Field

from ..models import QueryResult, QueryHistoryItem, SortDirection


class ExecuteSQLRequest(BaseModel):
    """Request to execute SQL"""
    sql: str = Field(..., description="SQL passed verbatim to the engine")


class QueryStateResponse(BaseModel):
    """Snapshot of the query executor slots"""
    is_executing: bool
    current_result: Optional[QueryResult] = None
    current_error: Optional[str] = None


class QueryHistoryResponse(BaseModel):
    """History, most recent first"""
    items: List[QueryHistoryItem]


class TableViewRequest(BaseModel):
    """Sort and page parameters for the current result"""
    sort_column: Optional[str] = None
    sort_direction: SortDirection = ""
    page_index: int = Field(0, ge=0)
    page_size: Optional[int] = Field(None, gt=0)
