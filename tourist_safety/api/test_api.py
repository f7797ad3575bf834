import sys
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from tourist_safety.api import routes
from tourist_safety.api.routes import app
from tourist_safety.config import API_HOST, API_PORT
from tourist_safety.core.scoring import new_record
from tourist_safety.db.store import get_store
from tourist_safety.schemas.schemas import ActiveAnomaly, AnomalyKind


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_update_location(client, store):
    response = client.post("/location/update", json={
        "dtid": "DT-1", "latitude": 28.6139, "longitude": 77.2090, "altitude": 216,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["location"]["dtid"] == "DT-1"
    assert body["data"]["geofence_status"]["inside"] is False
    store.insert_location.assert_called_once()


def test_update_location_unknown_tourist(client, store):
    store.tourist_exists.return_value = False
    response = client.post("/location/update", json={"dtid": "DT-404", "latitude": 28.6, "longitude": 77.2})
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Tourist not found"}


def test_update_location_rejects_bad_latitude(client, store):
    response = client.post("/location/update", json={"dtid": "DT-1", "latitude": 128.6, "longitude": 77.2})
    assert response.status_code == 422
    store.insert_location.assert_not_called()


def test_update_location_storage_failure(client, store):
    store.insert_location.side_effect = PyMongoError("write concern error")
    response = client.post("/location/update", json={"dtid": "DT-1", "latitude": 28.6, "longitude": 77.2})
    assert response.status_code == 500
    assert response.json()["success"] is False


def test_latest_location_not_found(client):
    assert client.get("/location/DT-1/latest").status_code == 404


def test_location_history_passes_window(client, store, make_sample):
    store.get_location_history.return_value = [make_sample(), make_sample(minutes_ago=5)]

    response = client.get("/location/DT-1/history", params={
        "limit": 10, "from": "2026-03-14T11:00:00+00:00", "to": "2026-03-14T12:00:00+00:00",
    })

    assert response.status_code == 200
    assert response.json()["data"]["count"] == 2
    kwargs = store.get_location_history.call_args.kwargs
    assert kwargs["limit"] == 10
    assert kwargs["since"] == datetime(2026, 3, 14, 11, 0, tzinfo=timezone.utc)
    assert kwargs["until"] == datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


def test_geofence_check_breach(client, store, make_zone):
    store.get_active_zones.return_value = [make_zone(risk="critical", radius=1000)]

    response = client.post("/geofence/check", json={"dtid": "DT-1", "latitude": 28.6139, "longitude": 77.2090})

    data = response.json()["data"]
    assert data["inside"] is True
    assert data["risk_level"] == 4
    assert data["safety_score"]["current_score"] == 70
    assert data["anomaly"]["kind"] == "geofence_breach"


def test_restricted_zones_sorted_by_risk(client, store, make_zone):
    store.get_active_zones.return_value = [
        make_zone("a", risk="low"), make_zone("b", risk="critical"), make_zone("c", risk="medium"),
    ]
    response = client.get("/geofence/zones")
    assert [z["id"] for z in response.json()["data"]] == ["b", "c", "a"]


def test_safety_score_recomputes(client, store, make_sample):
    store.get_latest_location.return_value = make_sample(minutes_ago=0)
    store.get_safety_score.return_value = new_record("DT-1").model_copy(update={"current_score": 45})

    response = client.get("/safety-score/DT-1")

    data = response.json()["data"]
    assert response.status_code == 200
    assert data["current_score"] == 45
    assert data["risk_level"] == "high"
    assert data["active_anomalies_count"] == 0
    assert data["score_history"] == {"initial_score": 100, "current_score": 45, "score_change": -55}
    store.upsert_safety_score.assert_called_once()


def test_safety_score_unknown_tourist(client, store):
    store.tourist_exists.return_value = False
    assert client.get("/safety-score/DT-404").status_code == 404


def test_safety_scores_filtered_by_risk_level(client, store, now):
    store.get_safety_scores.return_value = [new_record("DT-1", now).model_copy(update={"current_score": 35})]

    response = client.get("/safety-score", params={"risk_level": "high", "limit": 5})

    store.get_safety_scores.assert_called_once_with(min_score=30, max_score=50, limit=5)
    assert response.json()["data"][0]["risk_level"] == "high"


def test_clusters(client, store, make_sample):
    store.get_recent_locations.return_value = [
        make_sample("DT-1", 28.6139, 77.2090, minutes_ago=1),
        make_sample("DT-2", 28.6239, 77.2090, minutes_ago=2),
        make_sample("DT-1", 29.0636, 77.2090, minutes_ago=60),
        make_sample("DT-3", 29.0636, 77.2090, minutes_ago=3),
    ]

    data = client.get("/dashboard/clusters", params={"radius": 5000}).json()["data"]

    assert data["total_tourists"] == 3
    assert data["cluster_count"] == 2
    assert sorted(c["count"] for c in data["clusters"]) == [1, 2]
    assert data["clustering_radius_m"] == 5000


def test_active_alerts(client, store, now):
    critical = ActiveAnomaly(id="A-1", dtid="DT-1", kind="geofence_breach", severity="critical", detected_at=now)
    high = ActiveAnomaly(id="A-2", dtid="DT-3", kind="geofence_breach", severity="high", detected_at=now)

    def active(severity=None, kind=None, limit=None, dtid=None):
        return [critical] if severity else [critical, high]

    store.get_active_anomalies.side_effect = active
    store.get_safety_scores.return_value = [new_record("DT-2", now).model_copy(update={"current_score": 10})]

    summary = client.get("/dashboard/alerts", params={"severity": "critical"}).json()["data"]["summary"]

    assert summary["total_alerts"] == 1
    assert summary["critical_count"] == 1
    assert summary["geofence_breaches"] == 2
    assert summary["low_safety_scores"] == 1
    filtered, breaches = store.get_active_anomalies.call_args_list
    assert filtered.kwargs["limit"] == 100
    assert breaches.kwargs == {"kind": AnomalyKind.GEOFENCE_BREACH}


def test_dashboard_stats(client, store, now):
    store.count_tourists.return_value = 12
    store.count_active_tourists.return_value = 7
    store.count_active_anomalies.return_value = 3
    store.count_active_zones.return_value = 4
    store.get_safety_scores.return_value = [
        new_record("DT-1", now).model_copy(update={"current_score": score}) for score in (10, 45, 60, 95, 100)
    ]

    data = client.get("/dashboard/stats").json()["data"]

    assert data["overview"] == {
        "total_tourists": 12, "active_tourists": 7, "active_anomalies": 3, "restricted_zones": 4,
    }
    assert data["safety_score_distribution"] == {"critical": 1, "high": 1, "medium": 1, "low": 2}


def test_serve_uses_configured_host_and_port():
    fake_uvicorn = MagicMock()
    with patch.dict(sys.modules, {"uvicorn": fake_uvicorn}):
        routes.serve()

    fake_uvicorn.run.assert_called_once_with(app, host=API_HOST, port=API_PORT)
