"""
Unit tests for the dashboard store
"""

import json

import pytest

from dbexplorer.models import Dashboard, WidgetConfig
from dbexplorer.services.app_store import AppStore
from dbexplorer.services.dashboard_store import DashboardStore, default_widget_size

from conftest import FakeBackend


class TestDashboardStore:
    """Test cases for DashboardStore"""

    @pytest.fixture
    def store(self, backend):
        return DashboardStore(backend)

    @pytest.mark.asyncio
    async def test_create_persists_collection(self, store, backend, store_path):
        """Test creating a dashboard appends it and saves the whole collection"""
        dashboard = await store.create("Sales")

        assert dashboard.name == "Sales"
        assert dashboard.widgets == []
        assert dashboard.createdAt == dashboard.updatedAt
        assert dashboard.createdAt.endswith("Z")
        assert store.dashboards == (dashboard,)

        with open(store_path) as fh:
            saved = json.load(fh)
        assert [d["id"] for d in saved["dashboards"]] == [dashboard.id]
        assert saved["dashboards"][0]["createdAt"] == dashboard.createdAt

    @pytest.mark.asyncio
    async def test_create_generates_unique_ids(self, store):
        first = await store.create("A")
        second = await store.create("B")

        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_update_replaces_and_republishes_selection(self, store):
        dashboard = await store.create("Old")
        store.select(dashboard.id)

        updated = await store.update(dashboard.model_copy(update={"name": "New"}))

        assert updated.name == "New"
        assert store.get(dashboard.id).name == "New"
        assert store.current_dashboard == updated
        assert updated.updatedAt >= dashboard.updatedAt

    @pytest.mark.asyncio
    async def test_update_unknown_id_is_noop(self, store, backend):
        await store.create("Existing")
        saves = backend.save_count

        await store.update(Dashboard(name="Ghost"))

        assert len(store.dashboards) == 1
        assert backend.save_count == saves

    @pytest.mark.asyncio
    async def test_delete_clears_selection(self, store):
        keep = await store.create("Keep")
        drop = await store.create("Drop")
        store.select(drop.id)

        await store.delete(drop.id)

        assert store.dashboards == (keep,)
        assert store.current_dashboard is None

    @pytest.mark.asyncio
    async def test_delete_keeps_other_selection(self, store):
        keep = await store.create("Keep")
        drop = await store.create("Drop")
        store.select(keep.id)

        await store.delete(drop.id)

        assert store.current_dashboard == keep

    @pytest.mark.asyncio
    async def test_select(self, store):
        dashboard = await store.create("One")

        assert store.select(dashboard.id) == dashboard
        assert store.select("missing") is None
        assert store.current_dashboard is None

    @pytest.mark.asyncio
    async def test_add_kpi_widget_layout(self, store):
        """Test a kpi widget is 1x1 at the origin"""
        dashboard = await store.create("d1")

        widget = await store.add_widget(
            dashboard.id, "kpi", "Total Users", "SELECT COUNT(*) AS n FROM users", WidgetConfig()
        )

        assert (widget.x, widget.y, widget.cols, widget.rows) == (0, 0, 1, 1)
        assert store.get(dashboard.id).widgets == [widget]

    @pytest.mark.asyncio
    async def test_add_chart_widget_layout(self, store):
        dashboard = await store.create("d1")

        widget = await store.add_widget(dashboard.id, "chart", "Sales", "SELECT 1")

        assert (widget.x, widget.y, widget.cols, widget.rows) == (0, 0, 2, 2)
        assert widget.config == WidgetConfig()
        assert default_widget_size("table") == 2

    @pytest.mark.asyncio
    async def test_add_widget_to_missing_dashboard(self, store, backend):
        widget = await store.add_widget("nope", "table", "T", "SELECT 1")

        assert widget.type == "table"
        assert backend.save_count == 0

    @pytest.mark.asyncio
    async def test_update_and_remove_widget(self, store):
        dashboard = await store.create("d1")
        first = await store.add_widget(dashboard.id, "table", "A", "SELECT 1")
        second = await store.add_widget(dashboard.id, "kpi", "B", "SELECT 2")

        edited = first.model_copy(update={"title": "A2"})
        await store.update_widget(dashboard.id, edited)
        assert [w.title for w in store.get(dashboard.id).widgets] == ["A2", "B"]

        await store.remove_widget(dashboard.id, first.id)
        assert store.get(dashboard.id).widgets == [second]

    @pytest.mark.asyncio
    async def test_update_widget_positions(self, store):
        dashboard = await store.create("d1")
        a = await store.add_widget(dashboard.id, "table", "A", "SELECT 1")
        b = await store.add_widget(dashboard.id, "table", "B", "SELECT 2")

        moved = [b.model_copy(update={"x": 2}), a]
        await store.update_widget_positions(dashboard.id, moved)

        assert store.get(dashboard.id).widgets == moved

    @pytest.mark.asyncio
    async def test_mutation_does_not_touch_previous_snapshot(self, store):
        """Test readers holding an old snapshot never see it change"""
        dashboard = await store.create("d1")
        snapshot = store.dashboards

        await store.add_widget(dashboard.id, "kpi", "K", "SELECT 1")

        assert snapshot[0].widgets == []
        assert store.dashboards is not snapshot

    @pytest.mark.asyncio
    async def test_persistence_failure_is_optimistic(self, store, backend):
        """Test a failed save keeps the change and reports the failure"""
        backend.fail_save = "disk full"

        dashboard = await store.create("Unsaved")

        assert store.dashboards == (dashboard,)
        assert store.persisted is False
        assert store.error == "disk full"

        backend.fail_save = None
        assert await store.retry_save() is True
        assert store.persisted is True
        assert store.error is None

    @pytest.mark.asyncio
    async def test_load_round_trip(self, store, store_path):
        """Test a load/save cycle leaves the persisted representation unchanged"""
        dashboard = await store.create("d1")
        await store.add_widget(
            dashboard.id, "chart", "C", "SELECT a, b FROM t",
            WidgetConfig(chartType="pie", labelColumn="a", valueColumn="b", aggregation="sum")
        )
        with open(store_path) as fh:
            before = json.load(fh)

        other_backend = FakeBackend(AppStore(store_path))
        loaded = await other_backend.load_dashboards()
        await other_backend.save_dashboards(loaded)

        with open(store_path) as fh:
            after = json.load(fh)
        assert after == before

    @pytest.mark.asyncio
    async def test_load_replaces_collection(self, backend, store_path):
        writer = DashboardStore(backend)
        await writer.create("Persisted")

        reader = DashboardStore(FakeBackend(AppStore(store_path)))
        await reader.load()

        assert [d.name for d in reader.dashboards] == ["Persisted"]
        assert reader.is_loading is False
        assert reader.error is None

    @pytest.mark.asyncio
    async def test_load_failure_sets_error(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        store = DashboardStore(FakeBackend(AppStore(str(path))))

        await store.load()

        assert store.dashboards == ()
        assert store.error is not None
        store.clear_error()
        assert store.error is None
