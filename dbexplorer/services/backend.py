"""
Engine boundary.

The explorer core never talks to a SQL engine directly: it goes through a
``Backend``. ``LocalBackend`` drives a database file with SQLAlchemy,
``HttpBackend`` forwards to a remote engine service. Both persist
dashboards and recent databases in the same JSON ``AppStore``.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Dict, Any, Optional

import httpx
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..errors import QueryError, DatabaseError, PersistenceError
from ..models import (
    QueryResult,
    Dashboard,
    DatabaseInfo,
    TableInfo,
    TableSchema,
    ColumnInfo,
)
from ..utils.json_encoder import to_json_value
from .app_store import AppStore

logger = logging.getLogger(__name__)

DASHBOARDS_KEY = "dashboards"
RECENT_DATABASES_KEY = "recentDatabases"

SAMPLE_USERS = [
    "CREATE TABLE IF NOT EXISTS users ("
    "id INTEGER PRIMARY KEY, name VARCHAR, email VARCHAR, age INTEGER, "
    "city VARCHAR, created_at TIMESTAMP)",
    "DELETE FROM users",
    """
    WITH RECURSIVE seq(i) AS (SELECT 1 UNION ALL SELECT i + 1 FROM seq WHERE i < 100)
    INSERT INTO users (id, name, email, age, city, created_at)
    SELECT
        i,
        'User ' || i,
        'user' || i || '@example.com',
        20 + (i % 50),
        CASE (i % 5)
            WHEN 0 THEN 'Tokyo'
            WHEN 1 THEN 'Osaka'
            WHEN 2 THEN 'Nagoya'
            WHEN 3 THEN 'Fukuoka'
            ELSE 'Sapporo'
        END,
        datetime('now', '-' || (i * 24) || ' hours')
    FROM seq
    """,
]

SAMPLE_PRODUCTS = [
    "CREATE TABLE IF NOT EXISTS products ("
    "id INTEGER PRIMARY KEY, name VARCHAR, category VARCHAR, price DECIMAL(10,2), "
    "stock INTEGER, rating DECIMAL(2,1))",
    "DELETE FROM products",
    """
    WITH RECURSIVE seq(i) AS (SELECT 1 UNION ALL SELECT i + 1 FROM seq WHERE i < 50)
    INSERT INTO products (id, name, category, price, stock, rating)
    SELECT
        i,
        'Product ' || i,
        CASE (i % 5)
            WHEN 0 THEN 'Electronics'
            WHEN 1 THEN 'Clothing'
            WHEN 2 THEN 'Food'
            WHEN 3 THEN 'Books'
            ELSE 'Home'
        END,
        ROUND(10 + ((i * 37) % 990) + (i % 100) / 100.0, 2),
        (i * 53) % 1000,
        ROUND(1 + ((i * 7) % 41) / 10.0, 1)
    FROM seq
    """,
]

SAMPLE_ORDERS = [
    "CREATE TABLE IF NOT EXISTS orders ("
    "id INTEGER PRIMARY KEY, user_id INTEGER, product_id INTEGER, quantity INTEGER, "
    "total_price DECIMAL(10,2), status VARCHAR, order_date DATE)",
    "DELETE FROM orders",
    """
    WITH RECURSIVE seq(i) AS (SELECT 1 UNION ALL SELECT i + 1 FROM seq WHERE i < 500)
    INSERT INTO orders (id, user_id, product_id, quantity, total_price, status, order_date)
    SELECT
        i,
        1 + (i % 100),
        1 + (i % 50),
        1 + (i % 10),
        ROUND(100 + ((i * 61) % 900) + (i % 100) / 100.0, 2),
        CASE (i % 4)
            WHEN 0 THEN 'pending'
            WHEN 1 THEN 'processing'
            WHEN 2 THEN 'shipped'
            ELSE 'delivered'
        END,
        date('now', '-' || (i % 365) || ' days')
    FROM seq
    """,
]

SAMPLE_DATA: Dict[str, List[str]] = {
    "users": SAMPLE_USERS,
    "products": SAMPLE_PRODUCTS,
    "orders": SAMPLE_ORDERS,
    "all": SAMPLE_USERS + SAMPLE_PRODUCTS + SAMPLE_ORDERS,
}

SAMPLE_TYPES = tuple(SAMPLE_DATA)


def infer_type_from_value(value: Any) -> str:
    """Display type name for a JSON-normalised value"""
    if value is None:
        return "Null"
    if isinstance(value, bool):
        return "Boolean"
    if isinstance(value, int):
        return "Integer"
    if isinstance(value, float):
        return "Float"
    if isinstance(value, str):
        return "String"
    if isinstance(value, list):
        return "Array"
    if isinstance(value, dict):
        return "Object"
    return "Unknown"


def quote_identifier(name: str) -> str:
    """Double-quote a table name, escaping embedded quotes"""
    return '"' + name.replace('"', '""') + '"'


class Backend(ABC):
    """Asynchronous engine and persistence interface"""

    def __init__(self, store: AppStore):
        self.store = store

    # ------------------------------------------------------------------
    # Engine operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def execute_query(self, sql: str) -> QueryResult:
        """Run SQL verbatim. Raises QueryError."""

    @abstractmethod
    async def get_table_data(self, table_name: str, limit: int, offset: int) -> QueryResult:
        """One page of a table. Raises QueryError."""

    @abstractmethod
    async def open_database(self, path: str) -> DatabaseInfo:
        """Open an existing database. Raises DatabaseError."""

    @abstractmethod
    async def create_database(self, path: str) -> DatabaseInfo:
        """Create and open a new database. Raises DatabaseError."""

    @abstractmethod
    async def close_database(self) -> None:
        """Close the current database"""

    @abstractmethod
    async def get_tables(self) -> List[TableInfo]:
        """Tables of the current database. Raises DatabaseError."""

    @abstractmethod
    async def get_table_schema(self, table_name: str) -> TableSchema:
        """Column definitions of one table. Raises DatabaseError."""

    @abstractmethod
    async def create_sample_data(self, sample_type: str) -> None:
        """
        Fill the current database with demo tables.

        ``sample_type`` is one of SAMPLE_TYPES; existing rows of the sample
        tables are replaced. Raises DatabaseError.
        """

    async def health(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Persistence (whole-collection writes)
    # ------------------------------------------------------------------

    async def load_dashboards(self) -> List[Dashboard]:
        raw = await asyncio.to_thread(self.store.get, DASHBOARDS_KEY, [])
        try:
            return [Dashboard.model_validate(item) for item in raw or []]
        except ValueError as e:
            raise PersistenceError(f"Invalid dashboards in store: {e}") from e

    async def save_dashboards(self, dashboards: List[Dashboard]) -> None:
        payload = [d.model_dump(mode="json", exclude_none=True) for d in dashboards]
        await asyncio.to_thread(self.store.put, DASHBOARDS_KEY, payload)

    async def load_recent_databases(self) -> List[str]:
        raw = await asyncio.to_thread(self.store.get, RECENT_DATABASES_KEY, [])
        return [str(path) for path in raw or []]

    async def save_recent_databases(self, paths: List[str]) -> None:
        await asyncio.to_thread(self.store.put, RECENT_DATABASES_KEY, list(paths))


class LocalBackend(Backend):
    """SQLAlchemy-driven engine for database files"""

    def __init__(self, store: AppStore, url_template: Optional[str] = None):
        super().__init__(store)
        self.url_template = url_template or settings.ENGINE_URL_TEMPLATE
        self._path: Optional[str] = None
        self._engine: Optional[Engine] = None

    @property
    def current_path(self) -> Optional[str]:
        return self._path

    def _connect(self, path: str) -> Engine:
        url = self.url_template.format(path=path)
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        engine = create_engine(url, connect_args=connect_args)
        # Touch the file so errors surface on open, not on first query
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return engine

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise QueryError("No database selected")
        return self._engine

    def _swap_engine(self, path: Optional[str], engine: Optional[Engine]) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._path = path
        self._engine = engine

    def _run_sql(self, sql: str) -> QueryResult:
        engine = self._require_engine()
        start = time.perf_counter()
        try:
            with engine.connect() as conn:
                # Driver-level execution: no bind-parameter parsing of user SQL
                cursor = conn.exec_driver_sql(sql, execution_options={"no_parameters": True})
                if cursor.returns_rows:
                    columns = list(cursor.keys())
                    rows = [[to_json_value(value) for value in row] for row in cursor.fetchall()]
                else:
                    columns, rows = [], []
                conn.commit()
        except SQLAlchemyError as e:
            message = str(getattr(e, "orig", None) or e)
            logger.error(f"Query failed: {message}")
            raise QueryError(message) from e

        if rows:
            column_types = [infer_type_from_value(value) for value in rows[0]]
        else:
            column_types = ["Unknown"] * len(columns)

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info(f"Query returned {len(rows)} rows in {elapsed_ms} ms")

        return QueryResult(
            columns=columns,
            column_types=column_types,
            rows=rows,
            row_count=len(rows),
            execution_time_ms=elapsed_ms,
        )

    async def execute_query(self, sql: str) -> QueryResult:
        logger.info(f"Executing query: {sql[:200]}")
        return await asyncio.to_thread(self._run_sql, sql)

    async def get_table_data(self, table_name: str, limit: int, offset: int) -> QueryResult:
        sql = f"SELECT * FROM {quote_identifier(table_name)} LIMIT {int(limit)} OFFSET {int(offset)}"
        return await asyncio.to_thread(self._run_sql, sql)

    def _table_names(self, engine: Engine) -> List[str]:
        return sorted(inspect(engine).get_table_names())

    def _open(self, path: str, must_exist: bool) -> DatabaseInfo:
        resolved = Path(path).expanduser()
        if must_exist and not resolved.exists():
            raise DatabaseError(f"Failed to open database: {resolved} does not exist")
        if not must_exist and resolved.exists():
            raise DatabaseError(f"Failed to create database: {resolved} already exists")
        try:
            engine = self._connect(str(resolved))
            tables = self._table_names(engine)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to open database: {getattr(e, 'orig', None) or e}") from e
        self._swap_engine(str(resolved), engine)
        logger.info(f"Opened database {resolved} ({len(tables)} tables)")
        return DatabaseInfo(path=str(resolved), tables=tables)

    async def open_database(self, path: str) -> DatabaseInfo:
        return await asyncio.to_thread(self._open, path, True)

    async def create_database(self, path: str) -> DatabaseInfo:
        return await asyncio.to_thread(self._open, path, False)

    async def close_database(self) -> None:
        await asyncio.to_thread(self._swap_engine, None, None)
        logger.info("Closed database")

    def _list_tables(self) -> List[TableInfo]:
        engine = self._engine
        if engine is None:
            raise DatabaseError("No database selected")
        try:
            tables = []
            with engine.connect() as conn:
                for name in self._table_names(engine):
                    count = conn.execute(
                        text(f"SELECT COUNT(*) FROM {quote_identifier(name)}")
                    ).scalar()
                    tables.append(TableInfo(name=name, row_count=int(count or 0)))
            return tables
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to list tables: {getattr(e, 'orig', None) or e}") from e

    async def get_tables(self) -> List[TableInfo]:
        return await asyncio.to_thread(self._list_tables)

    def _describe(self, table_name: str) -> TableSchema:
        engine = self._engine
        if engine is None:
            raise DatabaseError("No database selected")
        try:
            inspector = inspect(engine)
            columns = inspector.get_columns(table_name)
            primary_keys = set(inspector.get_pk_constraint(table_name).get("constrained_columns") or [])
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to describe {table_name}: {getattr(e, 'orig', None) or e}") from e

        return TableSchema(
            table_name=table_name,
            columns=[
                ColumnInfo(
                    name=col["name"],
                    data_type=str(col["type"]),
                    nullable=bool(col.get("nullable", True)),
                    default_value=None if col.get("default") is None else str(col["default"]),
                    is_primary_key=col["name"] in primary_keys,
                )
                for col in columns
            ],
        )

    async def get_table_schema(self, table_name: str) -> TableSchema:
        return await asyncio.to_thread(self._describe, table_name)

    def _create_sample(self, sample_type: str) -> None:
        engine = self._engine
        if engine is None:
            raise DatabaseError("No database selected")
        statements = SAMPLE_DATA.get(sample_type)
        if statements is None:
            raise DatabaseError(f"Unknown sample type: {sample_type}")
        try:
            with engine.begin() as conn:
                for statement in statements:
                    conn.exec_driver_sql(statement, execution_options={"no_parameters": True})
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to create sample data: {getattr(e, 'orig', None) or e}") from e
        logger.info(f"Created {sample_type} sample data in {self._path}")

    async def create_sample_data(self, sample_type: str) -> None:
        await asyncio.to_thread(self._create_sample, sample_type)


class HttpBackend(Backend):
    """Client for a remote engine service"""

    def __init__(
        self,
        store: AppStore,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(store)
        self.base_url = (base_url or settings.ENGINE_SERVICE_URL).rstrip("/")
        self.timeout = httpx.Timeout(settings.ENGINE_TIMEOUT)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            return str(body.get("detail") or body.get("error") or body)
        return str(body)

    async def _post(self, path: str, payload: Dict[str, Any], error_cls=QueryError) -> Any:
        try:
            async with self._client() as client:
                response = await client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Engine service call {path} failed: {e}")
            raise error_cls(f"Engine service unavailable: {e}") from e

        if response.is_error:
            message = self._error_message(response)
            logger.warning(f"Engine service {path} returned {response.status_code}: {message}")
            raise error_cls(message)
        return response.json()

    async def execute_query(self, sql: str) -> QueryResult:
        logger.info("Calling engine execute-sql endpoint")
        logger.debug(f"SQL to execute: {sql[:200]}...")
        body = await self._post("/core/v1/execute-sql", {"sql": sql})
        return QueryResult.model_validate(body)

    async def get_table_data(self, table_name: str, limit: int, offset: int) -> QueryResult:
        body = await self._post(
            "/core/v1/table-data",
            {"table_name": table_name, "limit": limit, "offset": offset}
        )
        return QueryResult.model_validate(body)

    async def open_database(self, path: str) -> DatabaseInfo:
        body = await self._post("/core/v1/databases/open", {"path": path}, DatabaseError)
        return DatabaseInfo.model_validate(body)

    async def create_database(self, path: str) -> DatabaseInfo:
        body = await self._post("/core/v1/databases/create", {"path": path}, DatabaseError)
        return DatabaseInfo.model_validate(body)

    async def close_database(self) -> None:
        await self._post("/core/v1/databases/close", {}, DatabaseError)

    async def get_tables(self) -> List[TableInfo]:
        body = await self._post("/core/v1/tables", {}, DatabaseError)
        return [TableInfo.model_validate(item) for item in body]

    async def get_table_schema(self, table_name: str) -> TableSchema:
        body = await self._post("/core/v1/table-schema", {"table_name": table_name}, DatabaseError)
        return TableSchema.model_validate(body)

    async def create_sample_data(self, sample_type: str) -> None:
        await self._post("/core/v1/sample-data", {"sample_type": sample_type}, DatabaseError)

    async def health(self) -> bool:
        try:
            async with self._client() as client:
                response = await client.get("/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Engine service health check failed: {e}")
            return False


def create_backend(store: AppStore, mode: Optional[str] = None) -> Backend:
    """Build the backend selected by BACKEND_MODE"""
    mode = mode or settings.BACKEND_MODE
    if mode == "http":
        return HttpBackend(store)
    if mode != "local":
        raise ValueError(f"Unknown backend mode: {mode}")
    return LocalBackend(store)
