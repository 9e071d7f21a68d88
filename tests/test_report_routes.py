from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from salon_reports.dependencies.services import get_repository
from salon_reports.main import app
from salon_reports.services.store import InMemorySalonStore, JsonFileSalonStore, reset_store

OCTOBER = {
    "filters": {
        "date_range": {"preset": "custom", "start_date": "2025-10-01", "end_date": "2025-10-31"}
    }
}


@pytest.fixture(autouse=True)
def _reset_state() -> None:
    reset_store()
    yield
    app.dependency_overrides.clear()
    reset_store()


def test_health() -> None:
    client = TestClient(app)

    assert client.get("/health").json() == {"ok": True}


def test_ready_reports_store_counts() -> None:
    app.dependency_overrides[get_repository] = lambda: InMemorySalonStore(seed=False)
    client = TestClient(app)

    response = client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "store": "InMemorySalonStore",
        "appointments": 0,
        "transactions": 0,
    }


def test_date_range_route_resolves_custom_range() -> None:
    client = TestClient(app)

    response = client.post("/tools/reports/date-range", json=OCTOBER)

    assert response.status_code == 200
    assert response.json() == {
        "preset": "custom",
        "start": "2025-10-01T00:00:00.000",
        "end": "2025-10-31T23:59:59.999",
    }


def test_summary_route_returns_every_section() -> None:
    client = TestClient(app)

    response = client.post("/tools/reports/summary", json={"filters": {"date_range": {"preset": "last30"}}})

    assert response.status_code == 200
    body = response.json()
    for section in ("revenue", "margin", "appointments", "retention", "services", "staff"):
        assert section in body
    assert body["revenue"]["invoice_count"] > 0
    assert body["date_range"]["preset"] == "last30"


@pytest.mark.parametrize(
    "path",
    ["revenue", "margin", "appointments", "retention", "services", "staff"],
)
def test_report_routes_accept_empty_request(path: str) -> None:
    app.dependency_overrides[get_repository] = lambda: InMemorySalonStore(seed=False)
    client = TestClient(app)

    response = client.post(f"/tools/reports/{path}", json={})

    assert response.status_code == 200


def test_unknown_preset_is_rejected() -> None:
    client = TestClient(app)

    response = client.post(
        "/tools/reports/revenue", json={"filters": {"date_range": {"preset": "fortnight"}}}
    )

    assert response.status_code == 422


def test_unavailable_snapshot_maps_to_bad_gateway(tmp_path) -> None:
    app.dependency_overrides[get_repository] = lambda: JsonFileSalonStore(tmp_path / "missing.json")
    client = TestClient(app)

    response = client.post("/tools/reports/revenue", json=OCTOBER)
    ready = client.get("/health/ready")

    assert response.status_code == 502
    assert "does not exist" in response.json()["detail"]
    assert ready.status_code == 503
