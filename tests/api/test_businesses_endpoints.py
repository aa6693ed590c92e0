"""Tests for business, reference and saved list endpoints."""

import base64
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from api.dependencies import (
    get_aggregate_service,
    get_instant_service,
    get_materializer,
)
from app import app
from bizregistry.cache import AggregateCache
from bizregistry.models import (
    BusinessRow,
    CountResult,
    FinancialBounds,
    Industry,
    PageResult,
    SortBy,
    SortOrder,
)
from bizregistry.services import (
    AggregateService,
    BulkListMaterializer,
    InstantListService,
    MaterializeEvent,
)


@pytest.fixture
def instant_service():
    return Mock(spec=InstantListService)


@pytest.fixture
def aggregate_service():
    return Mock(spec=AggregateService)


@pytest.fixture
def client(instant_service, aggregate_service):
    app.dependency_overrides[get_instant_service] = lambda: instant_service
    app.dependency_overrides[get_aggregate_service] = lambda: aggregate_service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestListBusinesses:
    """Test GET /businesses."""

    def test_page_response_shape(self, client, instant_service):
        instant_service.list_page.return_value = PageResult(
            items=[BusinessRow(id=1, org_number="999", name="Acme", revenue=10)],
            next_cursor="abc",
            took_ms=4,
        )
        response = client.get(
            "/businesses?city=oslo&revenueBucket=1-10M&limit=2&sortBy=revenue"
        )

        assert response.status_code == 200
        assert response.headers["cache-control"] == "s-maxage=15"
        body = response.json()
        assert body["cursor"] == {"next": "abc"}
        assert body["tookMs"] == 4
        assert body["items"][0]["org_number"] == "999"

        request = instant_service.list_page.call_args[0][0]
        assert request.filters.city == "oslo"
        assert request.filters.revenue_bucket == "1-10M"
        assert request.limit == 2
        assert request.sort_by is SortBy.REVENUE
        assert request.order is SortOrder.DESC

    @pytest.mark.parametrize(
        "limit,expected", [("0", 100), ("-5", 1), ("500", 200), ("abc", 100), ("", 100)]
    )
    def test_limit_is_clamped(self, client, instant_service, limit, expected):
        instant_service.list_page.return_value = PageResult()
        client.get(f"/businesses?limit={limit}")
        assert instant_service.list_page.call_args[0][0].limit == expected

    def test_name_sort_defaults_ascending(self, client, instant_service):
        instant_service.list_page.return_value = PageResult()
        client.get("/businesses?sortBy=name&order=sideways")
        request = instant_service.list_page.call_args[0][0]
        assert request.sort_by is SortBy.NAME
        assert request.order is SortOrder.ASC

    def test_failure_is_empty_success(self, client, instant_service):
        instant_service.list_page.return_value = PageResult(failed=True)
        response = client.get("/businesses?cursor=garbage")

        assert response.status_code == 200
        assert response.headers["cache-control"] == "s-maxage=5"
        assert response.json() == {"items": [], "cursor": {"next": None}, "tookMs": 0}

    def test_explain(self, client, instant_service):
        instant_service.list_page.return_value = PageResult(explain="plan", took_ms=9)
        response = client.get("/businesses?explain=true")
        assert response.json() == {"explain": "plan", "tookMs": 9}
        assert instant_service.list_page.call_args[0][0].explain is True


class TestCountBusinesses:
    """Test GET /businesses/count."""

    def test_count(self, client, instant_service):
        instant_service.count.return_value = CountResult(total=77, took_ms=2)
        response = client.get("/businesses/count?city=oslo&orgFormCode=AS")

        assert response.json() == {"total": 77, "tookMs": 2}
        assert response.headers["cache-control"] == (
            "s-maxage=60, stale-while-revalidate=300"
        )
        filters = instant_service.count.call_args[0][0]
        assert filters.org_form_codes == ["AS"]

    def test_count_failure(self, client, instant_service):
        instant_service.count.return_value = CountResult(failed=True)
        response = client.get("/businesses/count")
        assert response.status_code == 200
        assert response.json()["total"] == 0
        assert response.headers["cache-control"] == "s-maxage=15"


class TestAggregateEndpoints:
    """Test aggregate and reference endpoints."""

    def test_bounds(self, client, aggregate_service):
        aggregate_service.bounds.return_value = FinancialBounds(maxRevenue=5)
        assert client.get("/businesses/bounds").json() == {
            "maxRevenue": 5,
            "minRevenue": 0,
            "maxProfit": 0,
            "minProfit": 0,
        }

    def test_extremes_and_total(self, client, aggregate_service):
        aggregate_service.max_revenue.return_value = 1
        aggregate_service.min_revenue.return_value = 2
        aggregate_service.max_profit.return_value = 3
        aggregate_service.min_profit.return_value = -4
        aggregate_service.grand_total.return_value = 5
        assert client.get("/businesses/max-revenue").json() == {"maxRevenue": 1}
        assert client.get("/businesses/min-revenue").json() == {"minRevenue": 2}
        assert client.get("/businesses/max-profit").json() == {"maxProfit": 3}
        assert client.get("/businesses/min-profit").json() == {"minProfit": -4}
        assert client.get("/businesses/total").json() == {"total": 5}

    def test_industries(self, client, aggregate_service):
        aggregate_service.industries.return_value = [Industry(code="62", text="IT")]
        response = client.get("/industries?q=6")
        assert response.json() == [{"code": "62", "text": "IT"}]
        aggregate_service.industries.assert_called_once_with("6")

    def test_event_types_and_areas(self, client, aggregate_service):
        aggregate_service.event_types.return_value = ["Konkurs"]
        aggregate_service.areas.return_value = ["OSLO"]
        assert client.get("/events/types").json() == {"items": ["Konkurs"]}
        assert client.get("/areas").json() == {"items": ["OSLO"]}
        aggregate_service.areas.assert_called_once_with(None)

    def test_export(self, client, aggregate_service):
        aggregate_service.export_csv.return_value = iter(["orgNumber,name\n", "1,A\n"])
        response = client.get("/businesses/export")
        assert response.headers["content-type"].startswith("text/csv")
        assert response.text == "orgNumber,name\n1,A\n"


class TestSaveListStream:
    """Test GET /lists/save/stream."""

    @pytest.fixture
    def materializer(self):
        materializer = Mock(spec=BulkListMaterializer)
        app.dependency_overrides[get_materializer] = lambda: materializer
        yield materializer
        app.dependency_overrides.pop(get_materializer, None)

    def test_requires_owner(self, client, materializer):
        response = client.get("/lists/save/stream?name=x&fq=city%3Doslo")
        assert response.status_code == 401

    def test_requires_name(self, client, materializer):
        response = client.get("/lists/save/stream?fq=", headers={"X-User-Id": "u1"})
        assert response.status_code == 400

    def test_no_database(self, client):
        app.dependency_overrides[get_materializer] = lambda: None
        try:
            response = client.get(
                "/lists/save/stream?name=x", headers={"X-User-Id": "u1"}
            )
        finally:
            app.dependency_overrides.pop(get_materializer, None)
        assert response.status_code == 503

    def test_streams_events(self, client, materializer):
        materializer.materialize.return_value = iter(
            [
                MaterializeEvent("created", {"id": 3}),
                MaterializeEvent("progress", {"total": 0, "inserted": 0}),
                MaterializeEvent("done", {"inserted": 0, "total": 0, "id": 3}),
            ]
        )
        response = client.get(
            "/lists/save/stream?name=Mine&fq=%3Fcity%3Doslo",
            headers={"X-User-Id": "u1"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache, no-transform"
        assert response.headers["x-accel-buffering"] == "no"
        assert response.text == (
            'event: created\ndata: {"id": 3}\n\n'
            'event: progress\ndata: {"total": 0, "inserted": 0}\n\n'
            'event: done\ndata: {"inserted": 0, "total": 0, "id": 3}\n\n'
        )
        materializer.materialize.assert_called_once_with(
            "u1", "Mine", "?city=oslo", list_id=None
        )


class TestEndToEnd:
    """Test real services over SQLite."""

    def test_save_stream_over_sqlite(self, registry_db, insert_rows):
        insert_rows(
            '"Business"',
            [
                {
                    "id": i,
                    "orgNumber": f"92{i:07d}",
                    "orgFormCode": "AS",
                    "sectorCode": "2100",
                }
                for i in range(1, 4)
            ],
        )
        app.dependency_overrides[get_materializer] = lambda: BulkListMaterializer(
            registry_db, batch_size=2, batch_delay=0
        )
        try:
            response = TestClient(app).get(
                "/lists/save/stream?name=E2E&fq=sectorCode%3D2100",
                headers={"X-User-Id": "u1"},
            )
        finally:
            app.dependency_overrides.clear()

        events = [
            frame.split("\n")[0][len("event: ") :]
            for frame in response.text.strip().split("\n\n")
        ]
        assert events == ["created", "progress", "progress", "progress", "done"]
        assert registry_db.saved_lists.count_items(1) == 3

    def test_pages_over_sqlite(self, registry_db, seeded_matrix):
        service = InstantListService(registry_db, AggregateCache())
        app.dependency_overrides[get_instant_service] = lambda: service
        try:
            client = TestClient(app)
            first = client.get("/businesses?revenueBucket=1-10M&limit=2").json()
            second = client.get(
                "/businesses",
                params={
                    "revenueBucket": "1-10M",
                    "limit": "2",
                    "cursor": first["cursor"]["next"],
                },
            ).json()
        finally:
            app.dependency_overrides.clear()

        assert len(first["items"]) == 2
        assert first["cursor"]["next"] is not None
        first_ids = {item["id"] for item in first["items"]}
        assert not first_ids & {item["id"] for item in second["items"]}

    @pytest.mark.parametrize(
        "cursor",
        [
            base64.urlsafe_b64encode(b"[" * 3000).decode(),
            base64.urlsafe_b64encode(b'{"id":' * 500).decode(),
            "A" * 20000,
        ],
    )
    def test_hostile_cursor_over_sqlite_is_first_page(
        self, registry_db, seeded_matrix, cursor
    ):
        service = InstantListService(registry_db, AggregateCache())
        app.dependency_overrides[get_instant_service] = lambda: service
        try:
            client = TestClient(app)
            first = client.get("/businesses", params={"limit": "2"})
            hostile = client.get("/businesses", params={"limit": "2", "cursor": cursor})
        finally:
            app.dependency_overrides.clear()

        assert hostile.status_code == 200
        assert hostile.json()["items"] == first.json()["items"]
        assert len(hostile.json()["items"]) == 2


class TestDegradedMode:
    """Test the app without a configured database."""

    def test_empty_results_without_database(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("DATABASE_POOLING_URL", raising=False)
        with TestClient(app) as client:
            assert client.get("/").status_code == 200
            page = client.get("/businesses")
            assert page.json()["items"] == []
            assert page.headers["cache-control"] == "s-maxage=5"
            assert client.get("/businesses/count").json()["total"] == 0
            assert client.get("/businesses/bounds").json()["maxRevenue"] == 0
            stream = client.get(
                "/lists/save/stream?name=x", headers={"X-User-Id": "u"}
            )
            assert stream.status_code == 503
