"""
test_api.py — HTTP surface: triggers, sensor ingestion, alerts and health.

The application is built around an AlertService wired with stub channels,
so dispatch outcomes are deterministic.

Run with:
    pytest tests/test_api.py -v
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.app.alerts.channels.base import ChannelOutcome
from backend.app.core.config import Settings
from backend.app.main import create_app

from conftest import StubAdapter, make_service


@pytest.fixture
def client():
    service = make_service(
        [
            StubAdapter("sms", ChannelOutcome.sent(5000), display_name="SMS Alerts"),
            StubAdapter("sirens", ChannelOutcome.failed("controller offline"),
                        display_name="Emergency Sirens"),
        ],
        category_channels={"flood": ["sms", "sirens"], "general": ["sms"]},
    )
    app = create_app(Settings(SEED_SAMPLE_TRIGGERS=True, PERSISTENCE_ENABLED=False), service)
    with TestClient(app) as test_client:
        yield test_client


def _trigger_body(**overrides):
    body = {
        "name": "PM2.5 Hazardous",
        "trigger_type": "air",
        "parameter": "pm25",
        "comparator": ">=",
        "threshold": 150,
        "unit": "μg/m³",
        "alert_category": "general",
        "severity": "high",
    }
    body.update(overrides)
    return body


def _alert_body(**overrides):
    body = {
        "title": "Flood Warning",
        "body": "River above critical level.",
        "category": "flood",
        "severity": "high",
        "channels": ["sms", "sirens"],
    }
    body.update(overrides)
    return body


# ═══════════════════════════════════════════════════════════════════════════
# Triggers
# ═══════════════════════════════════════════════════════════════════════════

class TestTriggerRoutes:
    def test_seeded_list(self, client):
        data = client.get("/api/v1/triggers").json()
        assert data["count"] == 5
        assert data["active"] == 4

    def test_catalog(self, client):
        data = client.get("/api/v1/triggers/catalog").json()
        assert "rainfall" in [p["parameter"] for p in data["trigger_types"]["weather"]]

    def test_create_and_get(self, client):
        created = client.post("/api/v1/triggers", json=_trigger_body())
        assert created.status_code == 201
        cid = created.json()["condition_id"]
        fetched = client.get(f"/api/v1/triggers/{cid}").json()
        assert fetched["comparator"] == ">="
        assert fetched["trigger_count"] == 0

    def test_create_invalid_parameter(self, client):
        response = client.post("/api/v1/triggers", json=_trigger_body(parameter="rainfall"))
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_create_missing_threshold(self, client):
        body = _trigger_body()
        del body["threshold"]
        assert client.post("/api/v1/triggers", json=body).status_code == 422

    def test_update_keeps_history(self, client):
        response = client.put(
            "/api/v1/triggers/TRG-RAINFALL",
            json=_trigger_body(name="Rainfall", trigger_type="weather", parameter="rainfall",
                               comparator=">", threshold=60, alert_category="flood"),
        )
        assert response.status_code == 200
        assert response.json()["threshold"] == 60
        assert response.json()["trigger_count"] == 3

    def test_update_unknown_is_404(self, client):
        response = client.put("/api/v1/triggers/TRG-NOPE", json=_trigger_body())
        assert response.status_code == 404

    def test_toggle(self, client):
        response = client.patch("/api/v1/triggers/TRG-HEAT/active", json={"is_active": True})
        assert response.json()["is_active"] is True

    def test_delete_active_needs_confirmation(self, client):
        response = client.delete("/api/v1/triggers/TRG-QUAKE")
        assert response.status_code == 428
        assert client.get("/api/v1/triggers/TRG-QUAKE").status_code == 200

        confirmed = client.delete("/api/v1/triggers/TRG-QUAKE", params={"confirm": True})
        assert confirmed.status_code == 200
        assert client.get("/api/v1/triggers/TRG-QUAKE").status_code == 404

    def test_delete_inactive_without_confirmation(self, client):
        assert client.delete("/api/v1/triggers/TRG-HEAT").status_code == 200


# ═══════════════════════════════════════════════════════════════════════════
# Sensor ingestion
# ═══════════════════════════════════════════════════════════════════════════

class TestSensorRoutes:
    def test_reading_fires_and_dispatches(self, client):
        response = client.post("/api/v1/sensors/readings", json={
            "sensor_id": "WL-01", "parameter": "water_level", "value": 9.0,
            "unit": "meters", "location": "Pio Duran River",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] is True
        assert data["fired"][0]["condition_id"] == "TRG-RIVER"
        dispatch = data["dispatches"][0]
        assert dispatch["outcome"] == "partial"
        assert dispatch["reach"] == 5000

        alerts = client.get("/api/v1/alerts", params={"status": "active"}).json()
        assert alerts["count"] == 1
        assert alerts["alerts"][0]["trigger_id"] == "TRG-RIVER"

    def test_quiet_reading(self, client):
        data = client.post("/api/v1/sensors/readings", json={
            "sensor_id": "RG-01", "parameter": "rainfall", "value": 12.0,
        }).json()
        assert data["fired"] == []
        assert client.get("/api/v1/sensors/readings").json()["count"] == 1

    def test_stale_reading(self, client):
        client.post("/api/v1/sensors/readings", json={
            "sensor_id": "RG-01", "parameter": "rainfall", "value": 10.0,
            "observed_at": "2025-06-01T10:00:00Z",
        })
        data = client.post("/api/v1/sensors/readings", json={
            "sensor_id": "RG-01", "parameter": "rainfall", "value": 80.0,
            "observed_at": "2025-06-01T09:00:00Z",
        }).json()
        assert data["accepted"] is False
        assert data["fired"] == []


# ═══════════════════════════════════════════════════════════════════════════
# Alerts
# ═══════════════════════════════════════════════════════════════════════════

class TestAlertRoutes:
    def test_create_draft(self, client):
        response = client.post("/api/v1/alerts", json=_alert_body())
        assert response.status_code == 201
        alert = response.json()["alert"]
        assert alert["status"] == "draft"
        assert alert["area"] == "Municipality-wide"
        assert alert["priority"] == 3
        assert response.json()["dispatch"] is None

    def test_create_and_dispatch(self, client):
        data = client.post("/api/v1/alerts", json=_alert_body(dispatch=True)).json()
        assert data["alert"]["status"] == "active"
        assert data["dispatch"]["outcome"] == "partial"
        assert len(data["alert"]["sent_to"]) == 2

    def test_create_invalid_priority(self, client):
        response = client.post("/api/v1/alerts", json=_alert_body(priority=9))
        assert response.status_code == 422

    def test_dispatch_then_resend(self, client):
        alert_id = client.post("/api/v1/alerts", json=_alert_body()).json()["alert"]["alert_id"]
        first = client.post(f"/api/v1/alerts/{alert_id}/dispatch").json()
        second = client.post(f"/api/v1/alerts/{alert_id}/dispatch").json()
        assert (first["batch"], second["batch"]) == (1, 2)
        assert len(client.get(f"/api/v1/alerts/{alert_id}").json()["sent_to"]) == 4

    def test_cancel_requires_confirmation(self, client):
        alert_id = client.post(
            "/api/v1/alerts", json=_alert_body(dispatch=True),
        ).json()["alert"]["alert_id"]

        assert client.post(f"/api/v1/alerts/{alert_id}/cancel").status_code == 428
        cancelled = client.post(f"/api/v1/alerts/{alert_id}/cancel", params={"confirm": True})
        assert cancelled.json()["status"] == "cancelled"

        resend = client.post(f"/api/v1/alerts/{alert_id}/dispatch")
        assert resend.status_code == 409
        assert resend.json()["error"]["code"] == "INVALID_TRANSITION"

    def test_cancel_draft_is_conflict(self, client):
        alert_id = client.post("/api/v1/alerts", json=_alert_body()).json()["alert"]["alert_id"]
        response = client.post(f"/api/v1/alerts/{alert_id}/cancel", params={"confirm": True})
        assert response.status_code == 409

    def test_dispatch_without_channels(self, client):
        alert_id = client.post(
            "/api/v1/alerts", json=_alert_body(channels=[]),
        ).json()["alert"]["alert_id"]
        assert client.post(f"/api/v1/alerts/{alert_id}/dispatch").status_code == 422

    def test_create_and_dispatch_without_channels_stores_nothing(self, client):
        response = client.post(
            "/api/v1/alerts", json={"title": "t", "body": "b", "dispatch": True},
        )
        assert response.status_code == 422
        assert response.json()["error"]["details"]["field"] == "channels"
        assert client.get("/api/v1/alerts").json()["count"] == 0

    def test_unknown_alert(self, client):
        assert client.get("/api/v1/alerts/ALR-NOPE").status_code == 404

    def test_invalid_status_filter(self, client):
        assert client.get("/api/v1/alerts", params={"status": "sleeping"}).status_code == 422

    def test_channels(self, client):
        data = client.get("/api/v1/alerts/channels").json()
        assert [c["channel_id"] for c in data["channels"]] == ["sms", "sirens"]
        assert data["category_defaults"]["flood"] == ["sms", "sirens"]

    def test_summary(self, client):
        client.post("/api/v1/alerts", json=_alert_body(dispatch=True))
        client.post("/api/v1/alerts", json=_alert_body())
        summary = client.get("/api/v1/alerts/summary").json()
        assert summary["total_alerts"] == 2
        assert summary["active_alerts"] == 1
        assert summary["active_reach"] == 5000
        assert summary["delivery_success_rate"] == "50.0%"

    def test_expiry_in_hours(self, client):
        alert = client.post(
            "/api/v1/alerts", json=_alert_body(expires_in_hours=2),
        ).json()["alert"]
        assert alert["expires_at"] is not None


# ═══════════════════════════════════════════════════════════════════════════
# Health & middleware
# ═══════════════════════════════════════════════════════════════════════════

class TestHealth:
    def test_liveness(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_deep_health(self, client):
        data = client.get("/health").json()
        names = {c["name"] for c in data["components"]}
        assert names == {"trigger_store", "alert_store", "channels", "expiry_sweeper", "database"}
        sweeper = [c for c in data["components"] if c["name"] == "expiry_sweeper"][0]
        assert sweeper["status"] == "healthy"

    def test_readiness(self, client):
        assert client.get("/health/ready").status_code == 200

    def test_request_id_header(self, client):
        response = client.get("/", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
        assert "X-Process-Time" in response.headers
