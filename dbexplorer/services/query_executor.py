"""Query execution state: busy flag, current result/error and history"""
import logging
from typing import Optional, Tuple

from ..config import settings
from ..errors import QueryError, ExplorerError
from ..models import QueryResult, QueryHistoryItem
from .backend import Backend

logger = logging.getLogger(__name__)


class QueryExecutor:
    """
    Runs SQL through the backend and records the outcome.

    Overlapping calls are not rejected: ``is_executing`` only reports that a
    call is in flight, and whichever call finishes last owns the
    ``current_result``/``current_error`` slots. Slots are replaced, never
    mutated, so readers always get a consistent snapshot.
    """

    def __init__(self, backend: Backend, history_limit: Optional[int] = None):
        self.backend = backend
        self.history_limit = history_limit or settings.QUERY_HISTORY_LIMIT
        self._is_executing = False
        self._current_result: Optional[QueryResult] = None
        self._current_error: Optional[str] = None
        self._history: Tuple[QueryHistoryItem, ...] = ()

    # Read-only slots

    @property
    def is_executing(self) -> bool:
        return self._is_executing

    @property
    def current_result(self) -> Optional[QueryResult]:
        return self._current_result

    @property
    def current_error(self) -> Optional[str]:
        return self._current_error

    @property
    def query_history(self) -> Tuple[QueryHistoryItem, ...]:
        """Most recent first"""
        return self._history

    # Operations

    async def execute(self, sql: str) -> QueryResult:
        """
        Execute SQL and record the result in state and history.

        On failure the previous result stays visible; only the error slot
        changes.

        Args:
            sql: SQL text, forwarded verbatim

        Returns:
            Query result

        Raises:
            QueryError: If the backend fails (after state has been recorded)
        """
        self._is_executing = True
        self._current_error = None

        try:
            result = await self.backend.execute_query(sql)
        except Exception as e:
            message = self._error_message(e)
            logger.warning(f"Query failed: {message}")
            self._current_error = message
            self._add_to_history(QueryHistoryItem(sql=sql, success=False, error=message))
            if isinstance(e, QueryError):
                raise
            raise QueryError(message) from e
        else:
            self._current_result = result
            self._add_to_history(
                QueryHistoryItem(
                    sql=sql,
                    row_count=result.row_count,
                    execution_time_ms=result.execution_time_ms,
                    success=True,
                )
            )
            logger.info(f"Query succeeded: {result.row_count} rows in {result.execution_time_ms} ms")
            return result
        finally:
            self._is_executing = False

    async def get_table_data(
        self,
        table_name: str,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> QueryResult:
        """
        Fetch one page of a table into the current result.

        Same state semantics as ``execute`` but never recorded in history.

        Raises:
            QueryError: If the backend fails
        """
        if limit is None:
            limit = settings.TABLE_DATA_LIMIT

        self._is_executing = True
        self._current_error = None

        try:
            result = await self.backend.get_table_data(table_name, limit, offset)
        except Exception as e:
            message = self._error_message(e)
            logger.warning(f"Failed to load table {table_name}: {message}")
            self._current_error = message
            if isinstance(e, QueryError):
                raise
            raise QueryError(message) from e
        else:
            self._current_result = result
            return result
        finally:
            self._is_executing = False

    def clear_result(self) -> None:
        """Reset result and error; history is kept"""
        self._current_result = None
        self._current_error = None

    def clear_history(self) -> None:
        self._history = ()

    def _add_to_history(self, item: QueryHistoryItem) -> None:
        self._history = ((item,) + self._history)[:self.history_limit]

    @staticmethod
    def _error_message(error: Exception) -> str:
        if isinstance(error, ExplorerError):
            return error.message
        return str(error) or error.__class__.__name__
