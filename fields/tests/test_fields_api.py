from __future__ import annotations

# ruff: noqa: S101
from collections.abc import Iterator
from datetime import timedelta
from typing import Any

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from fields.sessions import reset_workspaces
from ndvi.errors import UpstreamUnavailable
from ndvi.tests.fakes import (
    OTHER_POLYGON_ID,
    POLYGON_ID,
    FakeAgroProvider,
    polygon_payload,
    scene_payload,
)
from ndvi.timeutils import to_unix_seconds

DRAWN = [
    [-1.3, 36.8],
    [-1.3, 36.82],
    [-1.28, 36.82],
    [-1.3, 36.8],
]


@pytest.fixture
def provider(monkeypatch: pytest.MonkeyPatch) -> Iterator[FakeAgroProvider]:
    fake = FakeAgroProvider()
    fake.polygons = {
        POLYGON_ID: polygon_payload(),
        OTHER_POLYGON_ID: polygon_payload(OTHER_POLYGON_ID, "South"),
    }
    observed = timezone.now() - timedelta(days=2)
    fake.history = [
        {"dt": to_unix_seconds(observed), "data": {"mean": 0.55}}
    ]

    def scenes(**kwargs: Any) -> list[dict[str, Any]]:
        return [scene_payload(kwargs["start"] + 3600)]

    fake.scenes = scenes
    monkeypatch.setattr("fields.sessions.get_provider", lambda: fake)
    reset_workspaces()
    yield fake
    reset_workspaces()


def _observed_day() -> str:
    return (timezone.now() - timedelta(days=2)).date().isoformat()


def test_list_polygons_returns_map_order(provider: FakeAgroProvider) -> None:
    resp = APIClient().get("/api/v1/fields/polygons/")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == 0
    first = body["data"]["polygons"][0]
    assert first["id"] == POLYGON_ID
    assert first["center"] == [-1.29, 36.81]
    assert first["map_ring"][0] == [-1.3, 36.8]
    assert first["rings"][0][0] == [36.8, -1.3]
    assert body["data"]["selected_id"] is None


def test_create_polygon(provider: FakeAgroProvider) -> None:
    resp = APIClient().post(
        "/api/v1/fields/polygons/",
        {"name": "North field", "ring": DRAWN},
        format="json",
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["id"] == POLYGON_ID
    _, kwargs = provider.calls[0]
    assert kwargs["geo_json"]["geometry"]["coordinates"][0][0] == [
        36.8,
        -1.3,
    ]


def test_create_open_polygon_is_rejected(provider: FakeAgroProvider) -> None:
    resp = APIClient().post(
        "/api/v1/fields/polygons/",
        {"name": "Open", "ring": DRAWN[:-1] + [[-1.29, 36.8]]},
        format="json",
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["status"] == 1
    assert body["message"] == "Polygon must be closed properly."
    assert body["errors"]["code"] == "invalid_geometry"
    assert provider.calls == []


def test_create_requires_one_ring_shape(provider: FakeAgroProvider) -> None:
    resp = APIClient().post(
        "/api/v1/fields/polygons/",
        {"name": "Both", "ring": DRAWN, "rings": [DRAWN]},
        format="json",
    )
    assert resp.status_code == 400
    assert resp.json()["status"] == 1


def test_select_polygon_returns_history_and_imagery(
    provider: FakeAgroProvider,
) -> None:
    resp = APIClient().post(f"/api/v1/fields/polygons/{POLYGON_ID}/select/")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["polygon"]["id"] == POLYGON_ID
    assert data["errors"] == {}
    assert data["window"]["selected_date"] == _observed_day()
    assert data["window"]["available_dates"] == [_observed_day()]
    assert data["history"][0]["mean"] == 0.55
    imagery = data["imagery"]
    assert imagery["day"] == _observed_day()
    assert len(imagery["records"]) == 1
    assert "ndvi" in imagery["records"][0]["stats_by_index"]
    assert imagery["records"][0]["source_satellite"] == "Sentinel-2"


def test_select_reports_history_errors_inline(
    provider: FakeAgroProvider,
) -> None:
    provider.history = []
    resp = APIClient().post(f"/api/v1/fields/polygons/{POLYGON_ID}/select/")
    assert resp.status_code == 200
    errors = resp.json()["data"]["errors"]
    assert errors["history"]["code"] == "no_data"
    assert "2-5 days" in errors["history"]["remediation"]


def test_select_invalid_identifier(provider: FakeAgroProvider) -> None:
    resp = APIClient().post("/api/v1/fields/polygons/abc/select/")
    assert resp.status_code == 400
    assert resp.json()["errors"]["code"] == "invalid_identifier"


def test_navigation_is_scoped_to_workspace(
    provider: FakeAgroProvider,
) -> None:
    client = APIClient()
    client.post(
        f"/api/v1/fields/polygons/{POLYGON_ID}/select/",
        HTTP_X_WORKSPACE_ID="alpha",
    )

    other = client.post(
        "/api/v1/fields/navigation/",
        {"delta": -1},
        format="json",
        HTTP_X_WORKSPACE_ID="beta",
    )
    assert other.status_code == 404
    assert other.json()["errors"]["code"] == "not_found"

    resp = client.post(
        "/api/v1/fields/navigation/",
        {"delta": -1},
        format="json",
        HTTP_X_WORKSPACE_ID="alpha",
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["moved"] is True
    expected = (timezone.now() - timedelta(days=3)).date().isoformat()
    assert data["window"]["selected_date"] == expected
    assert data["imagery"]["day"] == expected


def test_navigation_validates_body(provider: FakeAgroProvider) -> None:
    resp = APIClient().post(
        "/api/v1/fields/navigation/",
        {"delta": 1, "date": "2025-01-01"},
        format="json",
    )
    assert resp.status_code == 400


def test_history_and_day_summary(provider: FakeAgroProvider) -> None:
    client = APIClient()
    client.post(f"/api/v1/fields/polygons/{POLYGON_ID}/select/")

    history = client.get("/api/v1/fields/history/", {"refresh": "true"})
    assert history.status_code == 200
    assert history.json()["data"]["entries"][0]["day"] == _observed_day()
    assert provider.count("ndvi_history") == 2

    summary = client.get(f"/api/v1/fields/history/{_observed_day()}/")
    assert summary.status_code == 200
    assert summary.json()["data"]["entry"]["mean"] == 0.55

    invalid = client.get("/api/v1/fields/history/not-a-date/")
    assert invalid.status_code == 400


def test_delete_selected_polygon_clears_selection(
    provider: FakeAgroProvider,
) -> None:
    client = APIClient()
    client.post(f"/api/v1/fields/polygons/{POLYGON_ID}/select/")

    resp = client.delete(f"/api/v1/fields/polygons/{POLYGON_ID}/")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"id": POLYGON_ID, "was_selected": True}

    imagery = client.get("/api/v1/fields/imagery/")
    assert imagery.status_code == 404


def test_delete_rejects_malformed_polygon_id(
    provider: FakeAgroProvider,
) -> None:
    resp = APIClient().delete("/api/v1/fields/polygons/abc/")
    assert resp.status_code == 400
    assert resp.json()["errors"]["code"] == "invalid_identifier"
    assert provider.count("delete_polygon") == 0


def test_upstream_outage_maps_to_503(provider: FakeAgroProvider) -> None:
    async def failing() -> Any:
        raise UpstreamUnavailable("HTTP error! status: 500")

    provider.list_polygons = failing  # type: ignore[method-assign]
    resp = APIClient().get("/api/v1/fields/polygons/")
    assert resp.status_code == 503
    body = resp.json()
    assert body["message"] == "HTTP error! status: 500"
    assert body["errors"]["code"] == "upstream_unavailable"


def test_invalid_timezone_header(provider: FakeAgroProvider) -> None:
    resp = APIClient().get(
        "/api/v1/fields/polygons/", HTTP_X_TIMEZONE="Mars/Olympus"
    )
    assert resp.status_code == 400
