"""Connection state: open database, its tables and recently used files"""
import logging
import re
from typing import Optional, Tuple

from ..config import settings
from ..errors import DatabaseError, ExplorerError
from ..models import TableInfo, TableSchema
from .backend import Backend

logger = logging.getLogger(__name__)


def _message(error: Exception) -> str:
    return error.message if isinstance(error, ExplorerError) else str(error)


class DatabaseSession:
    """
    Tracks which database is open.

    Opening, creating and selecting a table record the error and then
    re-raise so the caller can react immediately.
    """

    def __init__(self, backend: Backend, recent_limit: Optional[int] = None):
        self.backend = backend
        self.recent_limit = recent_limit or settings.RECENT_DATABASES_LIMIT
        self._is_connected = False
        self._current_database: Optional[str] = None
        self._tables: Tuple[TableInfo, ...] = ()
        self._selected_table: Optional[str] = None
        self._selected_table_schema: Optional[TableSchema] = None
        self._recent_databases: Tuple[str, ...] = ()
        self._is_loading = False
        self._error: Optional[str] = None

    # Read-only slots

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def current_database(self) -> Optional[str]:
        return self._current_database

    @property
    def database_name(self) -> Optional[str]:
        """File name of the open database"""
        if not self._current_database:
            return None
        return re.split(r"[/\\]", self._current_database)[-1]

    @property
    def tables(self) -> Tuple[TableInfo, ...]:
        return self._tables

    @property
    def selected_table(self) -> Optional[str]:
        return self._selected_table

    @property
    def selected_table_schema(self) -> Optional[TableSchema]:
        return self._selected_table_schema

    @property
    def recent_databases(self) -> Tuple[str, ...]:
        return self._recent_databases

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    # Recent databases

    async def load_recent_databases(self) -> None:
        try:
            self._recent_databases = tuple(await self.backend.load_recent_databases())
        except Exception as e:
            logger.error(f"Failed to load recent databases: {e}")

    async def _add_to_recent(self, path: str) -> None:
        updated = (path,) + tuple(p for p in self._recent_databases if p != path)
        self._recent_databases = updated[:self.recent_limit]
        try:
            await self.backend.save_recent_databases(list(self._recent_databases))
        except Exception as e:
            logger.error(f"Failed to save recent databases: {e}")

    # Connection

    async def open_database(self, path: str) -> None:
        """
        Open a database file and load its tables.

        Raises:
            DatabaseError: If the backend cannot open the file
        """
        self._is_loading = True
        self._error = None
        try:
            info = await self.backend.open_database(path)
            self._current_database = info.path
            self._is_connected = True
            await self._add_to_recent(info.path)
            await self.refresh_tables()
            logger.info(f"Opened database {info.path}")
        except Exception as e:
            self._error = _message(e)
            logger.error(f"Failed to open database {path}: {self._error}")
            if isinstance(e, DatabaseError):
                raise
            raise DatabaseError(self._error) from e
        finally:
            self._is_loading = False

    async def create_database(self, path: str) -> None:
        """
        Create a new database file and open it.

        Raises:
            DatabaseError: If the backend cannot create the file
        """
        self._is_loading = True
        self._error = None
        try:
            info = await self.backend.create_database(path)
            self._current_database = info.path
            self._is_connected = True
            await self._add_to_recent(info.path)
            self._tables = ()
            logger.info(f"Created database {info.path}")
        except Exception as e:
            self._error = _message(e)
            logger.error(f"Failed to create database {path}: {self._error}")
            if isinstance(e, DatabaseError):
                raise
            raise DatabaseError(self._error) from e
        finally:
            self._is_loading = False

    async def close_database(self) -> None:
        try:
            await self.backend.close_database()
        except Exception as e:
            self._error = _message(e)
            raise
        self._current_database = None
        self._is_connected = False
        self._tables = ()
        self._selected_table = None
        self._selected_table_schema = None

    async def refresh_tables(self) -> None:
        """Reload the table list; does nothing while disconnected"""
        if not self._is_connected:
            return
        try:
            self._tables = tuple(await self.backend.get_tables())
        except Exception as e:
            self._error = _message(e)
            raise

    async def select_table(self, table_name: str) -> TableSchema:
        """
        Select a table and load its schema.

        Raises:
            DatabaseError: If the schema cannot be read
        """
        self._selected_table = table_name
        try:
            schema = await self.backend.get_table_schema(table_name)
        except Exception as e:
            self._error = _message(e)
            logger.error(f"Failed to load schema for {table_name}: {self._error}")
            if isinstance(e, DatabaseError):
                raise
            raise DatabaseError(self._error) from e
        self._selected_table_schema = schema
        return schema

    async def create_sample_data(self, sample_type: str) -> None:
        """
        Fill the open database with demo tables and reload the table list.

        Raises:
            DatabaseError: If the sample tables cannot be created
        """
        self._is_loading = True
        self._error = None
        try:
            await self.backend.create_sample_data(sample_type)
            await self.refresh_tables()
            logger.info(f"Created {sample_type} sample data")
        except Exception as e:
            self._error = _message(e)
            logger.error(f"Failed to create sample data: {self._error}")
            if isinstance(e, DatabaseError):
                raise
            raise DatabaseError(self._error) from e
        finally:
            self._is_loading = False

    def clear_error(self) -> None:
        self._error = None
