"""Query API routes"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..context import AppContext, get_context
from ..errors import QueryError
from ..models import QueryResult, TableView
from .models import (
    ExecuteSQLRequest,
    QueryStateResponse,
    QueryHistoryResponse,
    TableViewRequest,
)
from .result_transform import table_view

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/query", tags=["Query"])


@router.post("/execute", response_model=QueryResult)
async def execute_sql_endpoint(
    request: ExecuteSQLRequest,
    ctx: AppContext = Depends(get_context)
):
    """
    Execute SQL and return the result.

    The outcome is also recorded in the query state and history.
    """
    try:
        return await ctx.queries.execute(request.sql)
    except QueryError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


@router.get("/state", response_model=QueryStateResponse)
async def get_query_state(ctx: AppContext = Depends(get_context)):
    """Busy flag, current result and current error"""
    return QueryStateResponse(
        is_executing=ctx.queries.is_executing,
        current_result=ctx.queries.current_result,
        current_error=ctx.queries.current_error,
    )


@router.get("/history", response_model=QueryHistoryResponse)
async def get_query_history(ctx: AppContext = Depends(get_context)):
    """Query history, most recent first"""
    return QueryHistoryResponse(items=list(ctx.queries.query_history))


@router.delete("/history", status_code=status.HTTP_204_NO_CONTENT)
async def clear_query_history(ctx: AppContext = Depends(get_context)):
    ctx.queries.clear_history()


@router.post("/clear", status_code=status.HTTP_204_NO_CONTENT)
async def clear_query_result(ctx: AppContext = Depends(get_context)):
    """Reset current result and error"""
    ctx.queries.clear_result()


@router.get("/tables/{table_name}/data", response_model=QueryResult)
async def get_table_data(
    table_name: str,
    limit: Optional[int] = Query(None, gt=0),
    offset: int = Query(0, ge=0),
    ctx: AppContext = Depends(get_context)
):
    """Load one page of a table into the current result (not added to history)"""
    try:
        return await ctx.queries.get_table_data(table_name, limit, offset)
    except QueryError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


@router.post("/view", response_model=TableView)
async def view_current_result(
    request: TableViewRequest,
    ctx: AppContext = Depends(get_context)
):
    """Sorted, paginated view of the current result"""
    result = ctx.queries.current_result
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No query result")
    return table_view(
        result,
        sort_column=request.sort_column,
        sort_direction=request.sort_direction,
        page_index=request.page_index,
        page_size=request.page_size,
    )
