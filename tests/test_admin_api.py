"""Tests de la superficie HTTP de administración y del websocket de visores."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from common import db
from hub_gateway.core.domain import HubStatusMessage, PairingRequestMessage, TelemetryMessage
from hub_gateway.main import create_app

from .conftest import HUB_MAC, SENSOR_MAC, FakeBrokerClient, make_engine, make_settings

CANDIDATE = "66:55:44:33:22:11"


def _register(client, mac=HUB_MAC, name="Cocina"):
    response = client.post("/api/devices/register", json={"mac": mac, "name": name})
    assert response.status_code == 201
    return response.json()


def _ingest(client, **fields):
    values = dict(hub_mac=HUB_MAC, sensor_mac=SENSOR_MAC, temp=21.5, hum=47.0, battery=90, rssi=-62)
    values.update(fields)
    return client.app.state.handlers.handle_telemetry(TelemetryMessage(**values))


def _pending_request_id(client, sensor_mac=CANDIDATE):
    client.app.state.handlers.handle_pairing_request(PairingRequestMessage(hub_mac=HUB_MAC, sensor_mac=sensor_mac))
    [request] = client.get("/api/pairing/requests", params={"status": "pending"}).json()
    return request["id"]


# =============================================================================
# SALUD
# =============================================================================

class TestHealth:
    def test_health(self, app_client):
        assert app_client.get("/health").json() == {"status": "ok"}
        assert app_client.get("/api/health").status_code == 200

    def test_ready(self, app_client):
        assert app_client.get("/ready").json() == {"status": "ready"}

    def test_mqtt_disabled(self, app_client):
        body = app_client.get("/health/mqtt").json()
        assert body["status"] == "disabled"
        assert body["gateway"]["groups"] == 0


# =============================================================================
# AUTENTICACIÓN
# =============================================================================

class TestApiKey:
    @pytest.fixture
    def secured_client(self):
        app = create_app(
            settings=make_settings(admin_api_key="secret"),
            engine=make_engine(),
            mqtt_client=FakeBrokerClient(),
        )
        with TestClient(app) as client:
            yield client

    def test_missing_key(self, secured_client):
        assert secured_client.get("/api/devices").status_code == 401

    def test_wrong_key(self, secured_client):
        assert secured_client.get("/api/devices", headers={"X-API-Key": "nope"}).status_code == 401

    def test_valid_key(self, secured_client):
        assert secured_client.get("/api/devices", headers={"X-API-Key": "secret"}).status_code == 200

    def test_health_is_public(self, secured_client):
        assert secured_client.get("/health").status_code == 200

    def test_production_without_key_is_misconfigured(self):
        app = create_app(
            settings=make_settings(environment="production"),
            engine=make_engine(),
            mqtt_client=FakeBrokerClient(),
        )
        with TestClient(app) as client:
            assert client.get("/api/devices").status_code == 500

    def test_websocket_requires_key(self, secured_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with secured_client.websocket_connect("/ws"):
                pass
        assert exc_info.value.code == 1008

        with secured_client.websocket_connect("/ws?api_key=secret") as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}


# =============================================================================
# HUBS
# =============================================================================

class TestDevices:
    def test_register_issues_key_and_normalizes_mac(self, app_client):
        body = _register(app_client, mac=HUB_MAC.lower())

        assert body["mac"] == HUB_MAC
        assert len(body["api_key"]) == 64
        int(body["api_key"], 16)

    def test_reprovision_rotates_key(self, app_client):
        first = _register(app_client)
        second = app_client.post("/api/devices/register", json={"mac": HUB_MAC}).json()

        assert second["id"] == first["id"]
        assert second["name"] == "Cocina"
        assert second["api_key"] != first["api_key"]

    def test_register_bad_mac(self, app_client):
        response = app_client.post("/api/devices/register", json={"mac": "nope"})

        assert response.status_code == 400
        assert "MAC" in response.json()["detail"]

    def test_list_hides_api_key(self, app_client):
        _register(app_client)
        [device] = app_client.get("/api/devices").json()

        assert device["mac"] == HUB_MAC
        assert "api_key" not in device


# =============================================================================
# SENSORES Y LECTURAS
# =============================================================================

class TestSensors:
    def test_list_rename(self, app_client):
        _register(app_client)
        _ingest(app_client)

        [sensor] = app_client.get("/api/sensors").json()
        assert sensor["name"] == "TempSens-445566"
        assert sensor["hub_mac"] == HUB_MAC
        assert sensor["active"] is True

        response = app_client.put(f"/api/sensors/{sensor['id']}", json={"name": "  Nevera  "})
        assert response.json() == {"id": sensor["id"], "mac": SENSOR_MAC, "name": "Nevera"}

    def test_rename_validation(self, app_client):
        _register(app_client)
        _ingest(app_client)
        [sensor] = app_client.get("/api/sensors").json()

        assert app_client.put(f"/api/sensors/{sensor['id']}", json={"name": "   "}).status_code == 400
        long_name = app_client.put(f"/api/sensors/{sensor['id']}", json={"name": "x" * 100}).json()
        assert len(long_name["name"]) == 64
        assert app_client.put("/api/sensors/999", json={"name": "a"}).status_code == 404

    def test_delete_notifies_hub(self, app_client, broker_client):
        _register(app_client)
        _ingest(app_client)
        [sensor] = app_client.get("/api/sensors").json()

        assert app_client.delete(f"/api/sensors/{sensor['id']}").status_code == 204
        assert broker_client.published == [(f"sensors/{HUB_MAC}/sensor/remove", {"sensor_mac": SENSOR_MAC})]
        assert app_client.get(f"/api/sensors/{sensor['id']}/readings").json() == []

    def test_delete_succeeds_with_broker_down(self, app_client, broker_client):
        _register(app_client)
        _ingest(app_client)
        [sensor] = app_client.get("/api/sensors").json()
        broker_client.is_connected = False

        assert app_client.delete(f"/api/sensors/{sensor['id']}").status_code == 204
        assert broker_client.published == []

    def test_delete_unknown(self, app_client):
        assert app_client.delete("/api/sensors/42").status_code == 404

    def test_readings(self, app_client):
        _register(app_client)
        _ingest(app_client, temp=20.0)
        _ingest(app_client, temp=-999)
        [sensor] = app_client.get("/api/sensors").json()

        readings = app_client.get(f"/api/sensors/{sensor['id']}/readings").json()
        assert [r["temp"] for r in readings] == [None, 20.0]

        assert app_client.get(f"/api/sensors/{sensor['id']}/readings", params={"limit": 1}).json()[0]["temp"] is None
        assert app_client.get(f"/api/sensors/{sensor['id']}/readings/latest").json()["temp"] is None

        past = app_client.get(
            f"/api/sensors/{sensor['id']}/readings", params={"to": "2000-01-01T00:00:00Z"}
        ).json()
        assert past == []

    def test_latest_without_readings(self, app_client):
        assert app_client.get("/api/sensors/1/readings/latest").status_code == 404


# =============================================================================
# PAIRING
# =============================================================================

class TestPairing:
    def test_approve_publishes_decision_and_activates(self, app_client, broker_client):
        _register(app_client)
        request_id = _pending_request_id(app_client)

        response = app_client.post(f"/api/pairing/requests/{request_id}/approve")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "approved"
        assert body["resolved_by"] == "admin"
        assert broker_client.published == [
            (f"sensors/{HUB_MAC}/pairing/response", {"sensor_mac": CANDIDATE, "approved": True})
        ]
        assert [s["mac"] for s in app_client.get("/api/sensors").json()] == [CANDIDATE]

    def test_reject(self, app_client, broker_client):
        _register(app_client)
        request_id = _pending_request_id(app_client)

        assert app_client.post(f"/api/pairing/requests/{request_id}/reject").json()["status"] == "rejected"
        assert broker_client.published[0][1] == {"sensor_mac": CANDIDATE, "approved": False}
        assert app_client.get("/api/sensors").json() == []

    def test_resolve_only_once(self, app_client):
        _register(app_client)
        request_id = _pending_request_id(app_client)

        app_client.post(f"/api/pairing/requests/{request_id}/approve")
        assert app_client.post(f"/api/pairing/requests/{request_id}/reject").status_code == 404

    def test_broker_down_leaves_request_pending(self, app_client, broker_client):
        _register(app_client)
        request_id = _pending_request_id(app_client)
        broker_client.is_connected = False

        assert app_client.post(f"/api/pairing/requests/{request_id}/approve").status_code == 503

        [request] = app_client.get("/api/pairing/requests").json()
        assert request["status"] == "pending"

    def test_unknown_request(self, app_client):
        assert app_client.post("/api/pairing/requests/77/approve").status_code == 404

    def test_invalid_status_filter(self, app_client):
        response = app_client.get("/api/pairing/requests", params={"status": "done"})

        assert response.status_code == 400
        assert response.json()["detail"] == "status must be pending, approved, or rejected"

    def test_deleted_sensor_comes_back_only_through_pairing(self, app_client):
        _register(app_client)
        _ingest(app_client)
        [sensor] = app_client.get("/api/sensors").json()
        app_client.delete(f"/api/sensors/{sensor['id']}")

        assert _ingest(app_client).value == "inactive_sensor"

        request_id = _pending_request_id(app_client, sensor_mac=SENSOR_MAC)
        app_client.post(f"/api/pairing/requests/{request_id}/approve")

        assert _ingest(app_client).value == "reading_stored"


# =============================================================================
# ESTADO Y SYNC POR HUB
# =============================================================================

class TestHubs:
    def test_status(self, app_client):
        assert app_client.get(f"/api/hubs/{HUB_MAC}/status").status_code == 404

        app_client.app.state.handlers.handle_hub_status(HubStatusMessage(hub_mac=HUB_MAC, fields={"uptime": 9}))

        assert app_client.get(f"/api/hubs/{HUB_MAC.lower()}/status").json() == {"uptime": 9, "hub_mac": HUB_MAC}
        assert app_client.get("/api/hubs/bad-mac/status").status_code == 400

    def test_sync_push(self, app_client, broker_client):
        _register(app_client)
        _ingest(app_client)

        response = app_client.post(f"/api/hubs/{HUB_MAC}/sync")

        assert response.json() == {"hub_mac": HUB_MAC, "topic": f"sensors/{HUB_MAC}/sync"}
        assert broker_client.published == [
            (f"sensors/{HUB_MAC}/sync", {"sensors": [{"mac": SENSOR_MAC, "name": "TempSens-445566"}]})
        ]

    def test_sync_unknown_hub(self, app_client):
        assert app_client.post(f"/api/hubs/{HUB_MAC}/sync").status_code == 404

    def test_sync_broker_down(self, app_client, broker_client):
        _register(app_client)
        broker_client.is_connected = False
        assert app_client.post(f"/api/hubs/{HUB_MAC}/sync").status_code == 503


# =============================================================================
# WEBSOCKET
# =============================================================================

class TestViewerWebSocket:
    def test_join_receives_cached_status_and_live_events(self, app_client):
        state = app_client.app.state
        state.handlers.handle_hub_status(HubStatusMessage(hub_mac=HUB_MAC, fields={"uptime": 1}))

        with app_client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "join", "hub_mac": HUB_MAC.lower()})
            assert ws.receive_json() == {"event": "hubStatus", "data": {"uptime": 1, "hub_mac": HUB_MAC}}

            # El pong confirma que el join ya se procesó
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

            state.gateway.broadcast(HUB_MAC, "sensorData", {"sensor_mac": SENSOR_MAC, "temp": 20.5})
            assert ws.receive_json() == {"event": "sensorData", "data": {"sensor_mac": SENSOR_MAC, "temp": 20.5}}

    def test_garbage_frames_and_bad_join_ignored(self, app_client):
        with app_client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            ws.send_json([1, 2, 3])
            ws.send_json({"type": "join", "hub_mac": "nope"})
            ws.send_json({"type": "dance"})
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

        assert app_client.app.state.gateway.stats["groups"] == 0

    def test_binary_frames_ignored(self, app_client):
        with app_client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\x00\x01")
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

            # La sesión sigue viva después del frame binario
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}


# =============================================================================
# CICLO DE VIDA
# =============================================================================

class TestLifespan:
    def test_shared_engine_disposed_on_shutdown(self):
        """El engine compartido se libera al apagar y el siguiente arranque crea otro."""
        db.dispose_engine()
        app = create_app(settings=make_settings(), mqtt_client=FakeBrokerClient())
        shared = db._engine
        assert shared is not None

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200

        assert db._engine is None

    def test_shutdown_calls_dispose(self, monkeypatch, engine, broker_client):
        dispose = MagicMock()
        monkeypatch.setattr("hub_gateway.main.dispose_engine", dispose)
        app = create_app(settings=make_settings(), engine=engine, mqtt_client=broker_client)

        with TestClient(app):
            dispose.assert_not_called()

        dispose.assert_called_once_with()
