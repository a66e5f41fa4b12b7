"""Tests del publicador de respuestas a los hubs.

La decisión de pairing es obligatoria (el llamador ve el fallo); la orden
de borrado es best-effort (solo se loguea).
"""

from unittest.mock import MagicMock

import pytest

from hub_gateway.core.domain import BrokerUnavailableError
from hub_gateway.mqtt import PublishResult, ReconciliationPublisher

from .conftest import HUB_MAC, SENSOR_MAC


def test_pairing_decision_payload(broker_client, publisher):
    result = publisher.publish_pairing_decision(HUB_MAC, SENSOR_MAC, True)

    assert result.ok is True
    result.raise_for_status()
    assert broker_client.published == [
        (f"sensors/{HUB_MAC}/pairing/response", {"sensor_mac": SENSOR_MAC, "approved": True})
    ]


def test_pairing_decision_broker_down_raises(broker_client, publisher):
    broker_client.is_connected = False

    result = publisher.publish_pairing_decision(HUB_MAC, SENSOR_MAC, False)

    assert result.ok is False
    with pytest.raises(BrokerUnavailableError) as exc_info:
        result.raise_for_status()
    assert exc_info.value.topic == f"sensors/{HUB_MAC}/pairing/response"
    assert broker_client.published == []


def test_sensor_remove_broker_down_only_logs(broker_client, publisher, caplog):
    broker_client.is_connected = False

    result = publisher.publish_sensor_remove(HUB_MAC, SENSOR_MAC)

    assert result.ok is False
    assert "next sync/request" in caplog.text


def test_sensor_remove_payload(broker_client, publisher):
    assert publisher.publish_sensor_remove(HUB_MAC, SENSOR_MAC).ok is True
    assert broker_client.published == [(f"sensors/{HUB_MAC}/sensor/remove", {"sensor_mac": SENSOR_MAC})]


def test_sync_payload_only_mac_and_name(broker_client, publisher):
    publisher.publish_sync(HUB_MAC, [{"mac": SENSOR_MAC, "name": "Nevera", "id": 3, "active": True}])
    assert broker_client.published == [(f"sensors/{HUB_MAC}/sync", {"sensors": [{"mac": SENSOR_MAC, "name": "Nevera"}]})]


def test_client_rejection_and_exception_become_results():
    client = MagicMock(is_connected=True)
    publisher = ReconciliationPublisher(client)

    client.publish.return_value = False
    assert publisher.publish_sync(HUB_MAC, []).error == "publish rejected by client"

    client.publish.side_effect = OSError("socket closed")
    result = publisher.publish_sync(HUB_MAC, [])
    assert result.ok is False
    assert result.error == "OSError"


def test_ok_result_does_not_raise():
    PublishResult(ok=True, topic="t").raise_for_status()
