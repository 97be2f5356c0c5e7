from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from reminders.config import Settings
from reminders.main import create_app


@pytest.fixture
def client(tmp_path):
    settings = Settings(
        data_dir=str(tmp_path),
        tick_seconds=60.0,
        desktop_notifications=False,
        notification_permission="grant",
        toggle_off_scope="all",
    )
    with TestClient(create_app(settings)) as client:
        yield client


def _create(client, **overrides):
    payload = {
        "title": "Stretch",
        "start_time": "12:00:05",
        "repeat_every": "10",
        "repeat_unit": "sec",
    }
    payload.update(overrides)
    response = client.post("/api/reminders", json=payload)
    assert response.status_code == 201
    return response.json()


def test_healthcheck(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_and_view(client):
    # a start time that has always passed seeds the countdown with the interval
    created = _create(client, start_time="00:00:00")
    assert created["active"] is True
    assert created["countdown"] == 10
    assert created["repeat_unit"] == "second"

    views = client.get("/api/reminders/view").json()
    assert views == [{
        "id": created["id"],
        "title": "Stretch",
        "countdown": "00:00:10",
        "active": True,
    }]


def test_numeric_repeat_every_is_accepted(client):
    created = _create(client, repeat_every=15, repeat_unit="minute")
    assert created["repeat_every"] == "15"


def test_invalid_unit_is_rejected(client):
    response = client.post("/api/reminders", json={
        "title": "Stretch", "start_time": "08:00", "repeat_unit": "fortnight",
    })
    assert response.status_code == 422


def test_update_and_delete(client):
    created = _create(client)
    reminder_id = created["id"]

    response = client.patch(f"/api/reminders/{reminder_id}", json={"title": "Stand up"})
    assert response.status_code == 200
    assert response.json()["title"] == "Stand up"

    assert client.delete(f"/api/reminders/{reminder_id}").status_code == 204
    assert client.get(f"/api/reminders/{reminder_id}").status_code == 404
    assert client.delete(f"/api/reminders/{reminder_id}").status_code == 404


def test_toggle_and_rearm(client):
    first = _create(client)
    second = _create(client, title="Water")

    response = client.post(f"/api/reminders/{first['id']}/toggle", json={"active": False})
    assert response.status_code == 200
    assert response.json()["active"] is False
    assert client.get("/api/status").json()["armed"] == 0

    armed = client.post("/api/reminders/arm").json()["armed"]
    assert armed == [second["id"]]

    assert client.post("/api/reminders/disarm").status_code == 204
    assert client.get("/api/status").json()["armed"] == 0

    missing = client.post("/api/reminders/nope/toggle", json={"active": True})
    assert missing.status_code == 404


def test_checklist_endpoints(client):
    reminder_id = _create(client)["id"]

    response = client.post(f"/api/reminders/{reminder_id}/tasks", json={"name": "Neck"})
    assert response.status_code == 201
    assert response.json()["tasks"] == [{"name": "Neck", "is_completed": False}]

    response = client.patch(f"/api/reminders/{reminder_id}/tasks/0", json={"is_completed": True})
    assert response.json()["tasks"][0]["is_completed"] is True

    assert client.patch(f"/api/reminders/{reminder_id}/tasks/3",
                        json={"is_completed": True}).status_code == 404

    response = client.delete(f"/api/reminders/{reminder_id}/tasks/0")
    assert response.json()["tasks"] == []


def test_permission_endpoints(client):
    _create(client)
    assert client.get("/api/notifications/permission").json() == {"status": "granted"}

    response = client.post("/api/notifications/permission", json={"granted": False})
    assert response.json() == {"status": "denied"}

    client.patch(f"/api/reminders/{_create(client)['id']}", json={"title": "x"})
    assert client.get("/api/status").json()["last_save"] == "permission_denied"


def test_reminders_survive_restart(tmp_path):
    settings = Settings(data_dir=str(tmp_path), tick_seconds=60.0, desktop_notifications=False)

    with TestClient(create_app(settings)) as client:
        reminder_id = _create(client)["id"]

    with TestClient(create_app(settings)) as client:
        reminders = client.get("/api/reminders").json()
        assert [r["id"] for r in reminders] == [reminder_id]
        assert client.get("/api/status").json()["last_load"] == "ok"


def test_websocket_ping(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_patch_clears_end_time(client):
    reminder_id = _create(client, end_time="23:59:59")["id"]

    response = client.patch(f"/api/reminders/{reminder_id}", json={"end_time": None})
    assert response.status_code == 200
    assert response.json()["end_time"] is None

    response = client.patch(f"/api/reminders/{reminder_id}", json={"title": None})
    assert response.json()["title"] == "Stretch"
    assert client.get(f"/api/reminders/{reminder_id}").json()["end_time"] is None


def test_list_view_rearms_idle_reminders(client):
    _create(client)
    _create(client, title="Water")

    assert client.post("/api/reminders/disarm").status_code == 204
    assert client.get("/api/status").json()["armed"] == 0

    views = client.get("/api/reminders/view").json()
    assert [v["title"] for v in views] == ["Stretch", "Water"]
    assert client.get("/api/status").json()["armed"] == 2


def test_fired_reminder_is_pushed_over_websocket(client):
    reminder = _create(client, start_time="00:00:00", repeat_every="0")

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        assert client.app.state.scheduler.tick() == 1
        event = ws.receive_json()

    assert event == {
        "event": "reminder_fired",
        "reminder_id": reminder["id"],
        "title": "Stretch",
        "body": "Reminder due",
    }
