"""Tests for src.api.server — REST endpoints via Flask's test client."""

from unittest.mock import MagicMock

import pytest

from src.adapters.modal_board import ModalBoard
from src.api.server import ApiServer, create_api
from src.core.action_handler import ActionHandler
from src.data.models import TaskStatus
from src.ports.store_port import TaskStoreError


@pytest.fixture
def modals(clock, scheduler):
    return ModalBoard(clock, scheduler, timeout=30.0, snooze_minutes=5)


@pytest.fixture
def actions(memory_store, clock, scheduler, modals):
    return ActionHandler(memory_store, clock, scheduler, snooze_minutes=5, closers=[modals])


@pytest.fixture
def client(memory_store, actions, modals, clock):
    app = create_api(memory_store, actions, modals, clock)
    app.config["TESTING"] = True
    return app.test_client()


class TestHealth:
    def test_health(self, client, clock):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "ok"
        assert body["uptime"] >= 0
        assert body["timestamp"] == clock.now().isoformat()


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------


class TestCreateTask:
    def test_create(self, client, memory_store):
        resp = client.post("/api/tasks", json={"title": "Water plants", "scheduled_time": "9:00", "priority": "High"})
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["title"] == "Water plants"
        assert body["scheduled_time"] == "09:00"
        assert body["priority"] == "high"
        assert body["status"] == "pending"
        assert body["notified"] is False
        assert memory_store.get_task(body["id"]) is not None

    def test_create_with_legacy_field_names(self, client):
        resp = client.post("/api/tasks", json={"command": "Call mom", "time": "18:30"})
        assert resp.status_code == 201
        assert resp.get_json()["title"] == "Call mom"

    def test_create_with_mood_and_deadline(self, client):
        resp = client.post("/api/tasks", json={
            "title": "Taxes", "scheduled_time": "17:00", "mood": "dreading", "deadline": "2024-05-10",
        })
        body = resp.get_json()
        assert body["mood"] == "dreading"
        assert body["deadline"] == "2024-05-10"

    @pytest.mark.parametrize("payload", [
        {},
        {"scheduled_time": "09:00"},
        {"title": "   ", "scheduled_time": "09:00"},
        {"title": "A", "scheduled_time": "25:00"},
        {"title": "A", "scheduled_time": "09:00", "priority": "urgent"},
        {"title": "A", "scheduled_time": "09:00", "deadline": "next week"},
        {"title": "x" * 501, "scheduled_time": "09:00"},
    ])
    def test_validation_failed(self, client, memory_store, payload):
        resp = client.post("/api/tasks", json=payload)
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "Validation failed"
        assert body["details"]
        assert memory_store.list_tasks() == []

    def test_non_json_body(self, client):
        resp = client.post("/api/tasks", data="not json", content_type="text/plain")
        assert resp.status_code == 400


class TestReadTasks:
    def test_list(self, client, memory_store):
        memory_store.add_task(title="A", scheduled_time="09:00")
        memory_store.add_task(title="B", scheduled_time="10:00")
        resp = client.get("/api/tasks")
        assert resp.status_code == 200
        assert [t["title"] for t in resp.get_json()] == ["A", "B"]

    def test_get_one(self, client, memory_store):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        assert client.get(f"/api/tasks/{task.id}").get_json()["title"] == "A"

    def test_get_missing(self, client):
        resp = client.get("/api/tasks/999")
        assert resp.status_code == 404
        assert resp.get_json() == {"message": "Not found"}

    def test_unknown_route(self, client):
        assert client.get("/api/nope").status_code == 404


class TestUpdateTask:
    def test_time_change_resets_notified(self, client, memory_store):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        task.notified = True
        memory_store.replace_task(task)

        resp = client.put(f"/api/tasks/{task.id}", json={"scheduled_time": "10:30"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["scheduled_time"] == "10:30"
        assert body["notified"] is False
        assert memory_store.get_task(task.id).notified is False

    def test_title_change_keeps_notified(self, client, memory_store):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        task.notified = True
        memory_store.replace_task(task)

        body = client.put(f"/api/tasks/{task.id}", json={"title": "A2"}).get_json()
        assert body["title"] == "A2"
        assert body["notified"] is True

    def test_status_toggle(self, client, memory_store, clock):
        task = memory_store.add_task(title="A", scheduled_time="09:00")

        body = client.put(f"/api/tasks/{task.id}", json={"status": "completed"}).get_json()
        assert body["status"] == "completed"
        assert body["completed_at"] == clock.now().isoformat()

        body = client.put(f"/api/tasks/{task.id}", json={"status": "pending"}).get_json()
        assert body["status"] == "pending"
        assert body["completed_at"] is None

    def test_reopen_makes_task_remindable_again(self, client, memory_store):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        task.notified = True
        memory_store.replace_task(task)

        client.put(f"/api/tasks/{task.id}", json={"status": "completed"})
        body = client.put(f"/api/tasks/{task.id}", json={"status": "pending"}).get_json()
        assert body["notified"] is False

    def test_update_missing(self, client):
        assert client.put("/api/tasks/999", json={"title": "X"}).status_code == 404

    def test_update_invalid(self, client, memory_store):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        resp = client.put(f"/api/tasks/{task.id}", json={"status": "archived"})
        assert resp.status_code == 400
        assert memory_store.get_task(task.id).status == TaskStatus.PENDING


class TestDeleteTask:
    def test_delete_is_idempotent(self, client, memory_store):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        assert client.delete(f"/api/tasks/{task.id}").status_code == 204
        assert client.delete(f"/api/tasks/{task.id}").status_code == 204
        assert memory_store.get_task(task.id) is None

    def test_delete_closes_modal(self, client, memory_store, modals):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        modals.open(task)
        client.delete(f"/api/tasks/{task.id}")
        assert modals.active() == []


# ---------------------------------------------------------------------------
# History and stats
# ---------------------------------------------------------------------------


class TestHistoryAndStats:
    def test_completed_task_moves_to_history(self, client, memory_store, scheduler):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        client.post(f"/api/notifications/{task.id}/complete")
        scheduler.run_all()

        assert client.get("/api/tasks").get_json() == []
        history = client.get("/api/history").get_json()
        assert [t["id"] for t in history] == [task.id]
        assert history[0]["status"] == "completed"

    def test_completed_via_put_moves_to_history(self, client, memory_store, scheduler):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        client.put(f"/api/tasks/{task.id}", json={"status": "completed"})

        assert [delay for delay, _ in scheduler.calls] == [2.0]
        scheduler.run_all()

        assert client.get("/api/tasks").get_json() == []
        history = client.get("/api/history").get_json()
        assert [t["id"] for t in history] == [task.id]

    def test_reopened_before_removal_stays_active(self, client, memory_store, scheduler):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        client.put(f"/api/tasks/{task.id}", json={"status": "completed"})
        client.put(f"/api/tasks/{task.id}", json={"status": "pending"})
        scheduler.run_all()

        assert [t["id"] for t in client.get("/api/tasks").get_json()] == [task.id]
        assert client.get("/api/history").get_json() == []

    def test_other_edits_schedule_nothing(self, client, memory_store, scheduler):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        client.put(f"/api/tasks/{task.id}", json={"title": "A2"})
        assert scheduler.calls == []

    def test_stats(self, client, memory_store, scheduler):
        memory_store.add_task(title="A", scheduled_time="09:00")
        done = memory_store.add_task(title="B", scheduled_time="09:30")
        client.put(f"/api/tasks/{done.id}", json={"status": "completed"})
        scheduler.run_all()

        body = client.get("/api/stats").get_json()
        assert body["completed"] == 1
        assert body["pending"] == 1
        assert body["productivity"] == 50
        assert body["heatmap"][9] == 2


# ---------------------------------------------------------------------------
# In-app reminders
# ---------------------------------------------------------------------------


class TestNotifications:
    def test_list_open_modals(self, client, memory_store, modals):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        modals.open(task)

        body = client.get("/api/notifications").get_json()
        assert [m["task_id"] for m in body] == [task.id]
        assert body[0]["vibrate"] == [200, 100, 200, 100, 200]

    def test_snooze_default(self, client, memory_store, modals):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        modals.open(task)

        resp = client.post(f"/api/notifications/{task.id}/snooze")
        assert resp.status_code == 200
        assert resp.get_json()["task"]["scheduled_time"] == "09:05"
        assert modals.active() == []

    def test_snooze_custom_minutes(self, client, memory_store):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        resp = client.post(f"/api/notifications/{task.id}/snooze", json={"minutes": 15})
        assert resp.get_json()["task"]["scheduled_time"] == "09:15"

    def test_snooze_bad_minutes(self, client, memory_store):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        resp = client.post(f"/api/notifications/{task.id}/snooze", json={"minutes": 0})
        assert resp.status_code == 400

    def test_dismiss(self, client, memory_store, modals):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        modals.open(task)
        resp = client.post(f"/api/notifications/{task.id}/dismiss")
        assert resp.get_json()["ok"] is True
        assert modals.active() == []
        assert memory_store.get_task(task.id).scheduled_time == "09:00"

    def test_unknown_action(self, client, memory_store):
        task = memory_store.add_task(title="A", scheduled_time="09:00")
        assert client.post(f"/api/notifications/{task.id}/explode").status_code == 400

    def test_unknown_task(self, client, modals):
        resp = client.post("/api/notifications/999/complete")
        assert resp.status_code == 404


class TestTestNotification:
    def test_goes_through_dispatch(self, memory_store, actions, modals, clock):
        dispatch = MagicMock()
        app = create_api(memory_store, actions, modals, clock, dispatch=dispatch)

        resp = app.test_client().post("/api/notifications/test")

        assert resp.status_code == 202
        dispatch.assert_called_once()
        sample = dispatch.call_args[0][0]
        assert sample.title == "Test notification"
        assert sample.scheduled_time == "09:00"
        assert memory_store.list_tasks() == []

    def test_without_dispatch_opens_modal(self, client, modals):
        resp = client.post("/api/notifications/test")
        assert resp.status_code == 202
        assert [m.title for m in modals.active()] == ["Test notification"]


class TestStoreUnavailable:
    def test_returns_503(self, actions, modals, clock):
        store = MagicMock()
        store.list_tasks.side_effect = TaskStoreError("disk gone")
        app = create_api(store, actions, modals, clock)
        resp = app.test_client().get("/api/tasks")
        assert resp.status_code == 503


class TestApiServer:
    def test_start_and_stop(self, memory_store, actions, modals, clock):
        server = ApiServer(create_api(memory_store, actions, modals, clock), "127.0.0.1", 0)
        assert server.port > 0
        server.start()
        server.stop()
        assert not server._thread.is_alive()
