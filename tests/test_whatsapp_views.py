def _post(client, url, payload=None):
    return client.post(url, payload or {}, content_type="application/json")


def test_device_lifecycle(admin_client, admin_user, backend):
    assert _post(admin_client, "/api/admin/whatsapp/devices/create", {"device_name": "CS"}).json()["errorCode"] == "missing_fields"

    device = _post(admin_client, "/api/admin/whatsapp/devices/create", {"device_name": "CS", "phone_number": "0812"}).json()["result"]["item"]
    assert device["connection_status"] == "pending"
    assert device["user_id"] == admin_user["id"]

    result = _post(admin_client, f"/api/admin/whatsapp/devices/{device['id']}/qr", {"action": "generate"}).json()["result"]
    assert result["qrCode"].startswith(f"whatsapp://qr/{device['id']}/")
    assert result["item"]["connection_status"] == "connecting"

    item = _post(admin_client, f"/api/admin/whatsapp/devices/{device['id']}/qr", {"action": "connect"}).json()["result"]["item"]
    assert item["connection_status"] == "connected"
    assert item["last_connected_at"]

    item = _post(admin_client, f"/api/admin/whatsapp/devices/{device['id']}/qr", {"action": "disconnect"}).json()["result"]["item"]
    assert item["connection_status"] == "disconnected"
    assert item["qr_code_data"] is None

    assert _post(admin_client, f"/api/admin/whatsapp/devices/{device['id']}/qr", {"action": "reboot"}).json()["errorCode"] == "invalid_action"
    assert _post(admin_client, "/api/admin/whatsapp/devices/missing/qr", {"action": "connect"}).status_code == 404

    assert [d["id"] for d in admin_client.get("/api/admin/whatsapp/devices").json()["result"]["items"]] == [device["id"]]
    assert _post(admin_client, f"/api/admin/whatsapp/devices/{device['id']}/delete").status_code == 200
    assert backend.rows("whatsapp_devices") == []


def test_devices_are_scoped_to_owner(admin_client, backend):
    (other,) = backend.insert("whatsapp_devices", {"device_name": "X", "phone_number": "1", "user_id": "other"})
    assert admin_client.get("/api/admin/whatsapp/devices").json()["result"]["items"] == []
    assert _post(admin_client, f"/api/admin/whatsapp/devices/{other['id']}/delete").status_code == 404


def test_config_insert_then_update_keeps_masked_key(admin_client, backend):
    assert admin_client.get("/api/admin/whatsapp/config").json()["result"]["config"] is None

    config = _post(admin_client, "/api/admin/whatsapp/config/update", {"api_key": "sk-rahasia-1234", "base_url": "https://wa.example.com"}).json()["result"]["config"]
    assert config["api_key"] == "***********1234"
    assert config["has_api_key"] is True
    assert config["is_configured"] is True

    _post(admin_client, "/api/admin/whatsapp/config/update", {"api_key": config["api_key"], "webhook_url": "https://hook.example.com"})
    (row,) = backend.rows("whatsapp_configs")
    assert row["api_key"] == "sk-rahasia-1234"
    assert row["webhook_url"] == "https://hook.example.com"

    fetched = admin_client.get("/api/admin/whatsapp/config").json()["result"]["config"]
    assert "rahasia" not in fetched["api_key"]


def test_config_accepts_new_key_containing_asterisk(admin_client, backend):
    _post(admin_client, "/api/admin/whatsapp/config/update", {"api_key": "sk-lama-0001"})
    _post(admin_client, "/api/admin/whatsapp/config/update", {"api_key": "sk*baru*0002"})
    (row,) = backend.rows("whatsapp_configs")
    assert row["api_key"] == "sk*baru*0002"

    _post(admin_client, "/api/admin/whatsapp/config/update", {"api_key": "********0002"})
    (row,) = backend.rows("whatsapp_configs")
    assert row["api_key"] == "sk*baru*0002"
