"""
Unit tests for the application store and engine backends
"""

import json

import httpx
import pytest

from dbexplorer.errors import QueryError, DatabaseError, PersistenceError
from dbexplorer.models import Dashboard, DashboardWidget
from dbexplorer.services.app_store import AppStore
from dbexplorer.services.backend import (
    LocalBackend,
    HttpBackend,
    create_backend,
    infer_type_from_value,
    quote_identifier,
)


class TestAppStore:
    """Test cases for AppStore"""

    def test_missing_file_is_empty(self, tmp_path):
        store = AppStore(str(tmp_path / "none.json"))

        assert store.get("dashboards", []) == []

    def test_put_writes_whole_file(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        store = AppStore(str(path))

        store.put("recentDatabases", ["/a.db"])
        store.put("dashboards", [])

        assert json.loads(path.read_text()) == {"recentDatabases": ["/a.db"], "dashboards": []}
        assert not (tmp_path / "nested" / "store.json.tmp").exists()

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[1, 2")

        with pytest.raises(PersistenceError):
            AppStore(str(path)).get("dashboards")

    def test_non_object_raises(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[]")

        with pytest.raises(PersistenceError):
            AppStore(str(path)).get("dashboards")

    def test_unwritable_location_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = AppStore(str(blocker / "store.json"))

        with pytest.raises(PersistenceError):
            store.put("dashboards", [])


class TestHelpers:

    def test_infer_type_from_value(self):
        assert infer_type_from_value(None) == "Null"
        assert infer_type_from_value(True) == "Boolean"
        assert infer_type_from_value(3) == "Integer"
        assert infer_type_from_value(3.5) == "Float"
        assert infer_type_from_value("x") == "String"
        assert infer_type_from_value([1]) == "Array"
        assert infer_type_from_value({"a": 1}) == "Object"

    def test_quote_identifier(self):
        assert quote_identifier("users") == '"users"'
        assert quote_identifier('we"ird') == '"we""ird"'

    def test_create_backend(self, tmp_path):
        store = AppStore(str(tmp_path / "s.json"))

        assert isinstance(create_backend(store, "local"), LocalBackend)
        assert isinstance(create_backend(store, "http"), HttpBackend)
        with pytest.raises(ValueError):
            create_backend(store, "carrier-pigeon")


class TestLocalBackend:
    """Test cases for LocalBackend against a sqlite file"""

    @pytest.fixture
    def backend(self, tmp_path):
        return LocalBackend(AppStore(str(tmp_path / "store.json")))

    @pytest.fixture
    def db_path(self, tmp_path):
        return str(tmp_path / "shop.db")

    @pytest.mark.asyncio
    async def test_query_without_database(self, backend):
        with pytest.raises(QueryError) as exc_info:
            await backend.execute_query("SELECT 1")

        assert exc_info.value.message == "No database selected"

    @pytest.mark.asyncio
    async def test_create_query_and_inspect(self, backend, db_path):
        info = await backend.create_database(db_path)
        assert info.tables == []
        assert backend.current_path == db_path

        await backend.execute_query(
            "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, score REAL)"
        )
        await backend.execute_query(
            "INSERT INTO users (id, name, score) VALUES (1, 'ada', 9.5), (2, 'bob', NULL), (3, 'cy', 7.0)"
        )

        result = await backend.execute_query("SELECT id, name, score FROM users ORDER BY id")
        assert result.columns == ["id", "name", "score"]
        assert result.column_types == ["Integer", "String", "Float"]
        assert result.rows == [[1, "ada", 9.5], [2, "bob", None], [3, "cy", 7.0]]
        assert result.row_count == 3
        assert result.execution_time_ms >= 0

        page = await backend.get_table_data("users", 2, 1)
        assert [row[0] for row in page.rows] == [2, 3]

        tables = await backend.get_tables()
        assert [(t.name, t.row_count) for t in tables] == [("users", 3)]

        schema = await backend.get_table_schema("users")
        columns = {c.name: c for c in schema.columns}
        assert columns["id"].is_primary_key is True
        assert columns["name"].nullable is False
        assert columns["score"].is_primary_key is False

    @pytest.mark.asyncio
    async def test_empty_result_types(self, backend, db_path):
        await backend.create_database(db_path)
        await backend.execute_query("CREATE TABLE t (a INTEGER, b TEXT)")

        result = await backend.execute_query("SELECT a, b FROM t")

        assert result.columns == ["a", "b"]
        assert result.column_types == ["Unknown", "Unknown"]
        assert result.rows == []

    @pytest.mark.asyncio
    async def test_invalid_sql(self, backend, db_path):
        await backend.create_database(db_path)

        with pytest.raises(QueryError) as exc_info:
            await backend.execute_query("SELEC nonsense")

        assert "syntax error" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_sql_is_passed_through_verbatim(self, backend, db_path):
        """Test colons inside literals are not treated as bind parameters"""
        await backend.create_database(db_path)

        colon = await backend.execute_query("SELECT 'x :y' AS v")
        as_json = await backend.execute_query("""SELECT json_extract('{"a":1}', '$.a') AS a""")

        assert colon.rows == [["x :y"]]
        assert as_json.rows == [[1]]

    @pytest.mark.asyncio
    async def test_create_sample_data(self, backend, db_path):
        await backend.create_database(db_path)

        await backend.create_sample_data("all")

        tables = {t.name: t.row_count for t in await backend.get_tables()}
        assert tables == {"orders": 500, "products": 50, "users": 100}

        cities = await backend.execute_query("SELECT DISTINCT city FROM users ORDER BY city")
        assert [row[0] for row in cities.rows] == ["Fukuoka", "Nagoya", "Osaka", "Sapporo", "Tokyo"]

    @pytest.mark.asyncio
    async def test_sample_data_replaces_rows(self, backend, db_path):
        await backend.create_database(db_path)

        await backend.create_sample_data("users")
        await backend.create_sample_data("users")

        tables = await backend.get_tables()
        assert [(t.name, t.row_count) for t in tables] == [("users", 100)]

    @pytest.mark.asyncio
    async def test_sample_data_errors(self, backend, db_path):
        with pytest.raises(DatabaseError):
            await backend.create_sample_data("users")

        await backend.create_database(db_path)
        with pytest.raises(DatabaseError) as exc_info:
            await backend.create_sample_data("invoices")

        assert exc_info.value.message == "Unknown sample type: invoices"

    @pytest.mark.asyncio
    async def test_open_missing_file(self, backend, tmp_path):
        with pytest.raises(DatabaseError):
            await backend.open_database(str(tmp_path / "missing.db"))

    @pytest.mark.asyncio
    async def test_create_existing_file(self, backend, db_path):
        await backend.create_database(db_path)

        with pytest.raises(DatabaseError):
            await backend.create_database(db_path)

    @pytest.mark.asyncio
    async def test_reopen_and_close(self, backend, db_path):
        await backend.create_database(db_path)
        await backend.execute_query("CREATE TABLE t (a INTEGER)")
        await backend.close_database()

        with pytest.raises(QueryError):
            await backend.execute_query("SELECT 1")

        info = await backend.open_database(db_path)
        assert info.tables == ["t"]

    @pytest.mark.asyncio
    async def test_dashboards_round_trip(self, backend):
        dashboard = Dashboard(
            name="d1",
            widgets=[DashboardWidget(type="kpi", title="K", query="SELECT 1", cols=1, rows=1)],
        )

        await backend.save_dashboards([dashboard])
        loaded = await backend.load_dashboards()

        assert loaded == [dashboard]

    @pytest.mark.asyncio
    async def test_invalid_dashboards_in_store(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps({"dashboards": [{"id": "x"}]}))
        backend = LocalBackend(AppStore(str(path)))

        with pytest.raises(PersistenceError):
            await backend.load_dashboards()


class TestHttpBackend:
    """Test cases for HttpBackend with a mocked transport"""

    def make_backend(self, tmp_path, handler):
        return HttpBackend(
            AppStore(str(tmp_path / "store.json")),
            base_url="http://engine.test",
            transport=httpx.MockTransport(handler),
        )

    @pytest.mark.asyncio
    async def test_execute_query(self, tmp_path):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "columns": ["n"],
                "column_types": ["Integer"],
                "rows": [[42]],
                "row_count": 1,
                "execution_time_ms": 3,
            })

        backend = self.make_backend(tmp_path, handler)

        result = await backend.execute_query("SELECT 42 AS n")

        assert seen == {"path": "/core/v1/execute-sql", "body": {"sql": "SELECT 42 AS n"}}
        assert result.rows == [[42]]

    @pytest.mark.asyncio
    async def test_error_detail_becomes_query_error(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"detail": "division by zero"})

        backend = self.make_backend(tmp_path, handler)

        with pytest.raises(QueryError) as exc_info:
            await backend.execute_query("SELECT 1/0")

        assert exc_info.value.message == "division by zero"

    @pytest.mark.asyncio
    async def test_connection_failure(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        backend = self.make_backend(tmp_path, handler)

        with pytest.raises(DatabaseError):
            await backend.open_database("/a.db")
        assert await backend.health() is False

    @pytest.mark.asyncio
    async def test_create_sample_data(self, tmp_path):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        backend = self.make_backend(tmp_path, handler)

        await backend.create_sample_data("orders")

        assert seen == {"path": "/core/v1/sample-data", "body": {"sample_type": "orders"}}

    @pytest.mark.asyncio
    async def test_get_tables(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"name": "users", "row_count": 5}])

        backend = self.make_backend(tmp_path, handler)

        tables = await backend.get_tables()

        assert tables[0].name == "users"
        assert tables[0].row_count == 5
