"""Database connection API routes"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status

from ..context import AppContext, get_context
from ..errors import DatabaseError
from ..models import TableSchema
from .models import DatabasePathRequest, DatabaseStateResponse, SampleDataRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/databases", tags=["Databases"])


def _state(ctx: AppContext) -> DatabaseStateResponse:
    session = ctx.database
    return DatabaseStateResponse(
        is_connected=session.is_connected,
        current_database=session.current_database,
        database_name=session.database_name,
        tables=list(session.tables),
        selected_table=session.selected_table,
        selected_table_schema=session.selected_table_schema,
        recent_databases=list(session.recent_databases),
        is_loading=session.is_loading,
        error=session.error,
    )


@router.get("", response_model=DatabaseStateResponse)
async def get_database_state(ctx: AppContext = Depends(get_context)):
    """Connection state, tables and recent databases"""
    return _state(ctx)


@router.post("/open", response_model=DatabaseStateResponse)
async def open_database(request: DatabasePathRequest, ctx: AppContext = Depends(get_context)):
    """Open an existing database file"""
    try:
        await ctx.database.open_database(request.path)
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return _state(ctx)


@router.post("/create", response_model=DatabaseStateResponse, status_code=status.HTTP_201_CREATED)
async def create_database(request: DatabasePathRequest, ctx: AppContext = Depends(get_context)):
    """Create a new database file and open it"""
    try:
        await ctx.database.create_database(request.path)
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return _state(ctx)


@router.post("/close", response_model=DatabaseStateResponse)
async def close_database(ctx: AppContext = Depends(get_context)):
    try:
        await ctx.database.close_database()
    except Exception as e:
        logger.exception("Failed to close database")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to close database: {str(e)}"
        )
    return _state(ctx)


@router.post("/sample-data", response_model=DatabaseStateResponse)
async def create_sample_data(request: SampleDataRequest, ctx: AppContext = Depends(get_context)):
    """Fill the open database with demo tables"""
    try:
        await ctx.database.create_sample_data(request.sample_type)
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return _state(ctx)


@router.post("/tables/refresh", response_model=DatabaseStateResponse)
async def refresh_tables(ctx: AppContext = Depends(get_context)):
    try:
        await ctx.database.refresh_tables()
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return _state(ctx)


@router.post("/tables/{table_name}/select", response_model=TableSchema)
async def select_table(table_name: str, ctx: AppContext = Depends(get_context)):
    """Select a table and return its schema"""
    try:
        return await ctx.database.select_table(table_name)
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


@router.delete("/error", status_code=status.HTTP_204_NO_CONTENT)
async def clear_error(ctx: AppContext = Depends(get_context)):
    ctx.database.clear_error()
