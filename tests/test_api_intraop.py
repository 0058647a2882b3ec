import pytest
from fastapi.testclient import TestClient

from intraop.core.config import get_settings, load_phase_catalog_config
from intraop.main import create_app


def _make_client(tmp_path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "intraop.duckdb"))
    monkeypatch.setenv("TELEMETRY_PATH", str(tmp_path / "telemetry.duckdb"))
    monkeypatch.setenv("PHASE_CATALOG_PATH", str(tmp_path / "missing.yaml"))
    get_settings.cache_clear()
    load_phase_catalog_config.cache_clear()
    app = create_app()
    app.state.store.add_case("case-1")
    return TestClient(app)


def _create(client: TestClient, **overrides):
    body = {
        "caseId": "case-1",
        "phase": "INDUCCION",
        "timestamp": "2024-03-01T10:00:00Z",
        "heartRate": 80,
        "sys": 120,
        "dia": 70,
    }
    body.update(overrides)
    return client.post("/v1/intraop", json=body)


def test_health(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "정상"}


def test_create_returns_201_with_map(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)

    response = _create(client)

    assert response.status_code == 201
    body = response.json()
    assert body["map"] == 87
    assert body["caseId"] == "case-1"
    assert body["heartRate"] == 80


def test_create_out_of_range_returns_400(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)

    response = _create(client, heartRate=300)

    assert response.status_code == 400
    assert response.json()["error_code"] == "INTRAOP_VALIDATION"
    assert client.get("/v1/intraop", params={"caseId": "case-1"}).json() == {"data": []}


def test_create_unknown_case_returns_404(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)

    response = _create(client, caseId="case-404")

    assert response.status_code == 404
    assert response.json()["error_code"] == "INTRAOP_NOT_FOUND"


def test_list_requires_case_id(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)
    assert client.get("/v1/intraop").status_code == 400


def test_list_filters_phase(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)
    _create(client)
    _create(client, phase="CIERRE", timestamp="2024-03-01T12:00:00Z")

    response = client.get("/v1/intraop", params={"caseId": "case-1", "phase": "CIERRE"})

    assert response.status_code == 200
    assert [item["phase"] for item in response.json()["data"]] == ["CIERRE"]


def test_get_update_delete_flow(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)
    record_id = _create(client).json()["id"]

    assert client.get(f"/v1/intraop/{record_id}").status_code == 200

    updated = client.put(f"/v1/intraop/{record_id}", json={"sys": 130})
    assert updated.status_code == 200
    assert updated.json()["map"] == 90

    deleted = client.delete(f"/v1/intraop/{record_id}")
    assert deleted.status_code == 200
    assert deleted.json()["deleted"] is True

    assert client.get(f"/v1/intraop/{record_id}").status_code == 404
    assert client.delete(f"/v1/intraop/{record_id}").status_code == 404


def test_update_invalid_returns_400(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)
    record_id = _create(client).json()["id"]

    response = client.put(f"/v1/intraop/{record_id}", json={"satO2": 20})

    assert response.status_code == 400


def test_duplicate(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)
    source = _create(client, cvp=7).json()

    response = client.post("/v1/intraop/duplicate", json={"caseId": "case-1", "phase": "INDUCCION"})

    assert response.status_code == 201
    body = response.json()
    assert body["id"] != source["id"]
    assert body["cvp"] == 7
    assert body["map"] == source["map"]


def test_duplicate_without_prior_returns_404(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)

    response = client.post("/v1/intraop/duplicate", json={"caseId": "case-1", "phase": "CIERRE"})

    assert response.status_code == 404


def test_duplicate_missing_phase_returns_400(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)

    response = client.post("/v1/intraop/duplicate", json={"caseId": "case-1"})

    assert response.status_code == 400


def test_stats_endpoint(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)
    _create(client, heartRate=80)
    _create(client, heartRate=91, timestamp="2024-03-01T10:05:00Z")

    response = client.get("/v1/intraop/stats/case-1/INDUCCION")

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert body["heartRate"] == {"avg": 86, "min": 80, "max": 91}


def test_stats_matches_padded_phase(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)
    _create(client, phase=" INDUCCION")

    response = client.get("/v1/intraop/stats/case-1/%20INDUCCION")

    assert response.status_code == 200
    assert response.json()["phase"] == "INDUCCION"
    assert response.json()["count"] == 1


def test_stats_empty_phase_returns_200(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)

    response = client.get("/v1/intraop/stats/case-1/ANHEPATICA")

    assert response.status_code == 200
    assert response.json()["count"] == 0


def test_chart_endpoint(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)
    _create(client)
    _create(client, phase="DISECCION", timestamp="2024-03-01T10:30:00Z")

    response = client.get("/v1/intraop/chart/case-1", params={"width": 200})

    assert response.status_code == 200
    body = response.json()
    assert body["labels"] == ["10:00", "10:30"]
    assert [segment["phase"] for segment in body["segments"]] == ["INDUCCION", "DISECCION"]
    assert body["bands"][0]["startX"] == 0
    assert body["bands"][0]["endX"] == 200


def test_chart_rejects_non_positive_width(tmp_path, monkeypatch):
    client = _make_client(tmp_path, monkeypatch)
    assert client.get("/v1/intraop/chart/case-1", params={"width": 0}).status_code == 400
