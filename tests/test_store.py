"""Tests del store relacional (SQLite en memoria)."""

from datetime import timedelta

from .conftest import FIXED_NOW, HUB_MAC, SENSOR_MAC

CANDIDATE = "66:55:44:33:22:11"


def test_upsert_returns_same_id_while_active(store, hub_id):
    first = store.upsert_active_sensor(hub_id, SENSOR_MAC, "TempSens-445566", FIXED_NOW)
    second = store.upsert_active_sensor(hub_id, SENSOR_MAC, "otro", FIXED_NOW)

    assert first is not None
    assert first == second
    assert store.list_active_sensors(hub_id) == [{"mac": SENSOR_MAC, "name": "TempSens-445566"}]


def test_upsert_refuses_inactive_sensor(store, hub_id):
    store.upsert_active_sensor(hub_id, SENSOR_MAC, "TempSens-445566", FIXED_NOW)
    assert store.soft_delete_sensor(HUB_MAC, SENSOR_MAC) == 1

    assert store.upsert_active_sensor(hub_id, SENSOR_MAC, "TempSens-445566", FIXED_NOW) is None
    assert store.list_active_sensors(hub_id) == []


def test_soft_delete_twice_affects_nothing(store, hub_id):
    store.upsert_active_sensor(hub_id, SENSOR_MAC, "TempSens-445566", FIXED_NOW)

    assert store.soft_delete_sensor(HUB_MAC, SENSOR_MAC) == 1
    assert store.soft_delete_sensor(HUB_MAC, SENSOR_MAC) == 0


def test_pending_pairing_unique(store, hub_id):
    assert store.create_pending_pairing_request(hub_id, CANDIDATE, FIXED_NOW) is not None
    assert store.create_pending_pairing_request(hub_id, CANDIDATE, FIXED_NOW) is None
    assert store.create_pending_pairing_request(hub_id, SENSOR_MAC, FIXED_NOW) is not None


def test_resolve_pairing_only_once(store, hub_id):
    request_id = store.create_pending_pairing_request(hub_id, CANDIDATE, FIXED_NOW)

    row = store.resolve_pairing_request(request_id, True, "admin", FIXED_NOW)
    assert row["status"] == "approved"
    assert row["resolved_by"] == "admin"
    assert row["slave_mac"] == CANDIDATE

    assert store.resolve_pairing_request(request_id, False, "admin", FIXED_NOW) is None
    assert store.get_pairing_request(request_id)["status"] == "approved"


def test_approval_activates_sensor(store, hub_id):
    request_id = store.create_pending_pairing_request(hub_id, CANDIDATE, FIXED_NOW)
    store.resolve_pairing_request(request_id, True, "admin", FIXED_NOW)

    assert store.list_active_sensors(hub_id) == [{"mac": CANDIDATE, "name": "TempSens-332211"}]


def test_approval_reactivates_tombstone(store, hub_id):
    sensor_id = store.upsert_active_sensor(hub_id, SENSOR_MAC, "Nevera", FIXED_NOW)
    store.delete_sensor(sensor_id)

    request_id = store.create_pending_pairing_request(hub_id, SENSOR_MAC, FIXED_NOW)
    store.resolve_pairing_request(request_id, True, "admin", FIXED_NOW)

    assert store.upsert_active_sensor(hub_id, SENSOR_MAC, "TempSens-445566", FIXED_NOW) == sensor_id
    assert store.list_active_sensors(hub_id) == [{"mac": SENSOR_MAC, "name": "Nevera"}]


def test_rejection_leaves_sensor_untouched(store, hub_id):
    request_id = store.create_pending_pairing_request(hub_id, CANDIDATE, FIXED_NOW)
    store.resolve_pairing_request(request_id, False, "admin", FIXED_NOW)

    assert store.list_active_sensors(hub_id) == []


def test_delete_sensor_purges_readings(store, hub_id):
    sensor_id = store.upsert_active_sensor(hub_id, SENSOR_MAC, "TempSens-445566", FIXED_NOW)
    store.insert_reading(sensor_id, 20.0, 40.0, 80, -70, FIXED_NOW)

    assert store.delete_sensor(sensor_id) is True
    assert store.list_readings(sensor_id, limit=10) == []
    assert store.delete_sensor(9999) is False


def test_readings_newest_first_with_window(store, hub_id):
    sensor_id = store.upsert_active_sensor(hub_id, SENSOR_MAC, "TempSens-445566", FIXED_NOW)
    for minutes in range(5):
        store.insert_reading(sensor_id, float(minutes), None, None, None, FIXED_NOW + timedelta(minutes=minutes))

    rows = store.list_readings(sensor_id, limit=10)
    assert [r["temp"] for r in rows] == [4.0, 3.0, 2.0, 1.0, 0.0]

    window = store.list_readings(
        sensor_id,
        limit=10,
        start=FIXED_NOW + timedelta(minutes=1),
        end=FIXED_NOW + timedelta(minutes=3),
    )
    assert [r["temp"] for r in window] == [3.0, 2.0, 1.0]

    assert store.list_readings(sensor_id, limit=2)[0]["temp"] == 4.0
    assert store.latest_reading(sensor_id)["temp"] == 4.0


def test_register_reprovision_rotates_key_keeps_name(store):
    first = store.register_device(HUB_MAC, "Cocina", "a" * 64, FIXED_NOW)
    second = store.register_device(HUB_MAC, None, "b" * 64, FIXED_NOW)

    assert second["id"] == first["id"]
    assert second["name"] == "Cocina"
    assert second["api_key"] == "b" * 64
    assert len(store.list_devices()) == 1


def test_find_device(store, hub_id):
    assert store.find_device_id(HUB_MAC) == hub_id
    assert store.find_device_mac(hub_id) == HUB_MAC
    assert store.find_device_id("00:00:00:00:00:00") is None
