"""
Shared fixtures: an in-memory engine backend with scripted results
"""

import asyncio
from typing import Dict, List, Optional, Union

import pytest

from dbexplorer.errors import QueryError, DatabaseError, PersistenceError
from dbexplorer.models import QueryResult, DatabaseInfo, TableInfo, TableSchema, ColumnInfo
from dbexplorer.services.app_store import AppStore
from dbexplorer.services.backend import Backend, SAMPLE_DATA


def make_result(columns: List[str], rows: List[list], execution_time_ms: int = 1) -> QueryResult:
    """Build a QueryResult with inferred bookkeeping fields"""
    return QueryResult(
        columns=columns,
        column_types=["Unknown"] * len(columns),
        rows=rows,
        row_count=len(rows),
        execution_time_ms=execution_time_ms,
    )


class FakeBackend(Backend):
    """
    Backend whose query outcomes are scripted per SQL text.

    ``responses`` maps SQL to a QueryResult or an exception. Every call is
    appended to ``calls`` as ("start", sql) / ("end", sql) so tests can check
    ordering.
    """

    def __init__(self, store: AppStore):
        super().__init__(store)
        self.responses: Dict[str, Union[QueryResult, Exception]] = {}
        self.table_data: Dict[str, QueryResult] = {}
        self.tables: List[TableInfo] = []
        self.schemas: Dict[str, TableSchema] = {}
        self.calls: List[tuple] = []
        self.delays: Dict[str, float] = {}
        self.fail_save: Optional[str] = None
        self.save_count = 0
        self.open_error: Optional[str] = None

    async def execute_query(self, sql: str) -> QueryResult:
        self.calls.append(("start", sql))
        if sql in self.delays:
            await asyncio.sleep(self.delays[sql])
        else:
            await asyncio.sleep(0)
        self.calls.append(("end", sql))
        response = self.responses.get(sql)
        if response is None:
            raise QueryError(f"no such statement: {sql}")
        if isinstance(response, Exception):
            raise response
        return response

    async def get_table_data(self, table_name: str, limit: int, offset: int) -> QueryResult:
        self.calls.append(("table", table_name, limit, offset))
        if table_name not in self.table_data:
            raise QueryError(f"no such table: {table_name}")
        return self.table_data[table_name]

    async def open_database(self, path: str) -> DatabaseInfo:
        if self.open_error:
            raise DatabaseError(self.open_error)
        return DatabaseInfo(path=path, tables=[t.name for t in self.tables])

    async def create_database(self, path: str) -> DatabaseInfo:
        if self.open_error:
            raise DatabaseError(self.open_error)
        return DatabaseInfo(path=path, tables=[])

    async def close_database(self) -> None:
        return None

    async def get_tables(self) -> List[TableInfo]:
        return list(self.tables)

    async def get_table_schema(self, table_name: str) -> TableSchema:
        if table_name not in self.schemas:
            raise DatabaseError(f"Table {table_name} not found")
        return self.schemas[table_name]

    async def create_sample_data(self, sample_type: str) -> None:
        if sample_type not in SAMPLE_DATA:
            raise DatabaseError(f"Unknown sample type: {sample_type}")
        names = ["users", "products", "orders"] if sample_type == "all" else [sample_type]
        known = {t.name for t in self.tables}
        self.tables = self.tables + [TableInfo(name=n, row_count=1) for n in names if n not in known]

    async def save_dashboards(self, dashboards):
        self.save_count += 1
        if self.fail_save:
            raise PersistenceError(self.fail_save)
        await super().save_dashboards(dashboards)


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "store.json")


@pytest.fixture
def backend(store_path):
    backend = FakeBackend(AppStore(store_path))
    backend.tables = [TableInfo(name="users", row_count=2)]
    backend.schemas = {
        "users": TableSchema(
            table_name="users",
            columns=[
                ColumnInfo(name="id", data_type="INTEGER", nullable=False, is_primary_key=True),
                ColumnInfo(name="name", data_type="VARCHAR"),
            ],
        )
    }
    return backend
