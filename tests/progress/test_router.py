"""Tests for the training progress API endpoints."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from playtrack.core.exceptions import CatalogUnavailable
from playtrack.progress.models import ProgressRecord
from playtrack.progress.store import InMemoryProgressStore


@pytest.fixture
def seeded_client(client: TestClient, items, user_id) -> TestClient:
    """Client whose backend holds the fixture catalog and two records."""
    for item in items:
        client.app.state.catalog.add(item)
    client.app.state.progress_store = InMemoryProgressStore(
        [
            ProgressRecord("c1", user_id, progress_percentage=60, id="r-1"),
            ProgressRecord("c3", user_id, progress_percentage=100, completed=True),
        ]
    )
    return client


def get(client: TestClient, path: str, user_id: str | None = "user-1", **params):
    headers = {"X-User-Id": user_id} if user_id else {}
    return client.get(path, params=params, headers=headers)


class TestListTrainingProgress:
    """Tests for GET /v1/trainings/progress."""

    def test_lists_rows(self, seeded_client: TestClient):
        """Every catalog item is listed with the caller's progress."""
        response = get(seeded_client, "/v1/trainings/progress")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        rows = {row["content_id"]: row for row in data["items"]}
        assert rows["c1"]["progress_percentage"] == 60
        assert rows["c1"]["status"] == "in_progress"
        assert rows["c2"]["progress_percentage"] == 0
        assert rows["c3"]["completed"] is True
        assert rows["c1"]["media_id"] == "dQw4w9WgXcQ"

    def test_filters(self, seeded_client: TestClient):
        """Search, status and audience query parameters filter rows."""
        response = get(
            seeded_client,
            "/v1/trainings/progress",
            search="guia",
            status="completed",
        )
        assert [r["content_id"] for r in response.json()["items"]] == ["c3"]

        response = get(seeded_client, "/v1/trainings/progress", audience="Facilitador")
        assert [r["content_id"] for r in response.json()["items"]] == ["c2", "c3"]

    def test_other_user_sees_nothing_started(self, seeded_client: TestClient):
        """Progress is per user."""
        response = get(seeded_client, "/v1/trainings/progress", user_id="user-2")
        assert all(r["progress_percentage"] == 0 for r in response.json()["items"])

    def test_missing_user_header(self, seeded_client: TestClient):
        """Callers must identify themselves."""
        response = get(seeded_client, "/v1/trainings/progress", user_id=None)
        assert response.status_code == 401
        assert response.json()["error"] is True

    def test_invalid_status(self, seeded_client: TestClient):
        """Unknown status filters are rejected."""
        response = get(seeded_client, "/v1/trainings/progress", status="paused")
        assert response.status_code == 422
        assert response.json()["message"] == "Validation error"

    def test_catalog_unavailable(self, client: TestClient):
        """A catalog outage answers 503."""
        catalog = AsyncMock()
        catalog.list_content.side_effect = CatalogUnavailable("Catalog request failed")
        client.app.state.catalog = catalog

        response = get(client, "/v1/trainings/progress")

        assert response.status_code == 503
        assert response.json()["message"] == "Catalog request failed"

    def test_backend_not_wired(self, client: TestClient):
        """Without a progress store the API is unavailable."""
        client.app.state.progress_store = None
        response = get(client, "/v1/trainings/progress")
        assert response.status_code == 503


class TestTrainingStats:
    """Tests for GET /v1/trainings/progress/stats."""

    def test_stats(self, seeded_client: TestClient):
        """Counts per status and completion ratio."""
        response = get(seeded_client, "/v1/trainings/progress/stats")

        assert response.status_code == 200
        assert response.json() == {
            "total": 3,
            "completed": 1,
            "in_progress": 1,
            "not_started": 1,
            "ratio": pytest.approx(1 / 3),
        }

    def test_stats_by_audience(self, seeded_client: TestClient):
        """Becario stats exclude facilitator-only items."""
        response = get(
            seeded_client, "/v1/trainings/progress/stats", audience="Becario"
        )
        data = response.json()
        assert data["total"] == 2
        assert data["completed"] == 0
