"""
Unit tests for the Directory service HTTP surface.
"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from shared.config import get_config
from shared.errors import StoreError
from shared.test_helpers import InMemoryCache, TestDataFactory
from service_directory.app.main import DirectoryService, _parse_limit
from service_directory.app.persistence.memory import InMemoryRecordStore


class TestDirectoryService:
    """Test cases for DirectoryService."""

    @pytest.fixture
    def cache(self):
        return InMemoryCache()

    @pytest.fixture
    def store(self):
        return InMemoryRecordStore()

    @pytest.fixture
    def directory_service(self, store, cache):
        """Create DirectoryService with in-process backends."""
        config = get_config("directory", 8080, use_cache=True, store_backend="memory")
        return DirectoryService(config, store=store, cache=cache)

    @pytest.fixture
    def client(self, directory_service):
        """Create test client."""
        with TestClient(directory_service.app) as client:
            yield client

    def _create(self, client, name="Ariel", category="Thai", region="Haifa", **extra):
        return client.post("/records", json={"name": name, "category": category, "region": region, **extra})

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "directory"
        assert data["use_cache"] is True
        assert data["store_backend"] == "memory"

    def test_health_endpoint(self, client):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "directory"
        assert data["status"] == "ok"
        assert data["dependencies"] == {"store": "ok", "cache": "ok"}

    def test_health_degraded_when_cache_down(self, client, cache):
        cache.fail_operations.add("get")

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["dependencies"]["cache"] == "error"

    def test_metrics_endpoint(self, client):
        self._create(client)
        client.get("/records/Ariel")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "cache_hits_total" in response.text
        assert "http_requests_total" in response.text

    def test_request_id_is_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_create_and_get_record(self, client):
        """Test record creation and lookup."""
        response = self._create(client, rating=4.5)
        assert response.status_code == 200
        assert response.json() == {"success": True}

        response = client.get("/records/Ariel")
        assert response.status_code == 200
        assert response.json() == {
            "name": "Ariel",
            "category": "Thai",
            "region": "Haifa",
            "rating": 4.5,
            "rating_count": 0,
        }

    def test_create_duplicate(self, client):
        assert self._create(client).status_code == 200

        response = self._create(client, region="Eilat")

        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"
        assert client.get("/records/Ariel").json()["region"] == "Haifa"

    def test_create_missing_fields(self, client):
        response = client.post("/records", json={"name": "Ariel"})

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "BAD_REQUEST"
        assert data["details"]["missing"] == ["category", "region"]

    def test_create_malformed_body(self, client):
        """Schema violations are reported as BAD_REQUEST."""
        response = self._create(client, rating="excellent")

        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"

    def test_get_unknown_record(self, client):
        response = client.get("/records/Nobody")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_delete_record(self, client):
        self._create(client)
        client.get("/records/Ariel")

        response = client.delete("/records/Ariel")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert client.get("/records/Ariel").status_code == 404
        assert client.delete("/records/Ariel").status_code == 404

    def test_submit_rating(self, client):
        self._create(client)

        for sample in [5, 0, 2.5, 5, 1]:
            response = client.post("/records/rating", json={"name": "Ariel", "rating": sample})
            assert response.status_code == 200

        data = client.get("/records/Ariel").json()
        assert data["rating_count"] == 5
        assert data["rating"] == pytest.approx(2.7)

    def test_submit_rating_errors(self, client):
        assert client.post("/records/rating", json={"name": "Nobody", "rating": 3}).status_code == 404
        assert client.post("/records/rating", json={"name": "Ariel"}).status_code == 400
        assert client.post("/records/rating", json={"rating": 3}).status_code == 400

    @pytest.mark.parametrize("raw_rating", ["NaN", "Infinity", "-Infinity", "1" + "0" * 400])
    def test_submit_non_finite_rating(self, client, raw_rating):
        """Samples that are not finite numbers are rejected and leave the record untouched."""
        self._create(client)

        response = client.post(
            "/records/rating",
            content='{"name": "Ariel", "rating": ' + raw_rating + "}",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"
        record = client.get("/records/Ariel").json()
        assert record["rating"] == 0.0
        assert record["rating_count"] == 0

    def test_list_by_category(self, client):
        """Listings are filtered by rating floor and ordered highest first."""
        self._create(client, name="Low", rating=1)
        self._create(client, name="Mid", rating=3)
        self._create(client, name="Top", region="Eilat", rating=5)

        response = client.get("/records/category/Thai", params={"minRating": 3})

        assert response.status_code == 200
        assert [r["name"] for r in response.json()] == ["Top", "Mid"]
        assert len(client.get("/records/category/Thai").json()) == 3
        assert len(client.get("/records/category/Thai", params={"limit": 1}).json()) == 1

    @pytest.mark.parametrize("min_rating", ["9", "-1", "abc", "nan", "inf"])
    def test_list_by_category_invalid_min_rating(self, client, min_rating):
        response = client.get("/records/category/Thai", params={"minRating": min_rating})

        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"

    def test_list_by_region(self, client):
        for payload in TestDataFactory.record_payloads(12):
            assert client.post("/records", json=payload).status_code == 200

        haifa = client.get("/records/region/Haifa").json()
        assert {r["region"] for r in haifa} == {"Haifa"}
        assert len(haifa) == 3

        assert client.get("/records/region/Nowhere").json() == []

    def test_list_by_region_and_category(self, client):
        self._create(client, name="A")
        self._create(client, name="B", category="Greek")
        self._create(client, name="C", region="Eilat")

        response = client.get("/records/region/Haifa/category/Thai")

        assert response.status_code == 200
        assert [r["name"] for r in response.json()] == ["A"]

    def test_new_record_appears_in_cached_listing(self, client):
        """A listing cached before a create is invalidated by it."""
        self._create(client, name="A")
        assert [r["name"] for r in client.get("/records/region/Haifa").json()] == ["A"]

        self._create(client, name="B", rating=4)

        assert [r["name"] for r in client.get("/records/region/Haifa").json()] == ["B", "A"]

    def test_limit_is_clamped(self, client):
        for i in range(3):
            self._create(client, name=f"R{i}")

        assert len(client.get("/records/region/Haifa", params={"limit": 1000}).json()) == 3
        assert len(client.get("/records/region/Haifa", params={"limit": "many"}).json()) == 3

    def test_overflowing_limit_is_clamped(self, client):
        for i in range(3):
            self._create(client, name=f"R{i}")

        response = client.get("/records/region/Haifa", params={"limit": "1e400"})

        assert response.status_code == 200
        assert response.json() == client.get("/records/region/Haifa", params={"limit": 100}).json()

    def test_store_failure_is_internal_error(self, client, store):
        with patch.object(store, "get_record", AsyncMock(side_effect=StoreError("get", "connection lost"))):
            response = client.get("/records/Ariel")

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"

    def test_cache_outage_is_invisible_to_clients(self, client, cache):
        cache.fail_operations.update({"get", "set", "delete"})

        assert self._create(client).status_code == 200
        assert client.get("/records/Ariel").status_code == 200
        assert client.get("/records/category/Thai").json()[0]["name"] == "Ariel"
        assert client.delete("/records/Ariel").status_code == 200


class TestDirectoryServiceConfiguration:
    """Test cases for service wiring."""

    def test_cache_disabled_by_default(self):
        service = DirectoryService(get_config("directory", 8080, store_backend="memory"))

        assert service.config.use_cache is False
        assert service.cache is None
        assert isinstance(service.store, InMemoryRecordStore)

    def test_unknown_store_backend(self):
        with pytest.raises(ValueError):
            DirectoryService(get_config("directory", 8080, store_backend="cassandra"))

    def test_rating_settings_are_applied(self):
        config = get_config(
            "directory", 8080, store_backend="memory", rating_compare_and_swap=False, rating_max_attempts=2
        )
        service = DirectoryService(config)

        assert service.ratings.compare_and_swap is False
        assert service.ratings.max_attempts == 2

    @pytest.mark.parametrize("raw,expected", [
        (None, None),
        ("25", 25),
        ("2.9", 2),
        ("abc", None),
        ("1e400", 100),
        ("inf", 100),
        ("-inf", 1),
        ("nan", None),
    ])
    def test_parse_limit(self, raw, expected):
        assert _parse_limit(raw) == expected
