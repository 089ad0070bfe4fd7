"""Tests for the HTTP API."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from fieldsync.api import create_app


@pytest.fixture
def http(fieldsync):
    return TestClient(create_app(fieldsync))


def as_worker(worker):
    return {"X-Actor-Id": str(worker.id)}


class TestTasksApi:
    @pytest.mark.unit
    def test_create_and_list(self, http, store, workers):
        today = store.today().isoformat()

        response = http.post(
            "/api/tasks",
            json={"description": "Pallets to hall B", "scheduledDate": today, "assignedTo": workers.anna.id},
            headers=as_worker(workers.dispatcher),
        )

        assert response.status_code == 200
        task_id = response.json()["id"]

        listed = http.get("/api/tasks", params={"date": today}).json()
        assert [t["id"] for t in listed] == [task_id]
        assert listed[0]["assignedName"] == "Anna"
        assert listed[0]["status"] == "pending"

    @pytest.mark.unit
    def test_create_requires_session(self, http, store):
        response = http.post(
            "/api/tasks",
            json={"description": "Pallets", "scheduledDate": store.today().isoformat()},
        )

        assert response.status_code == 403
        assert "error" in response.json()

    @pytest.mark.unit
    def test_driver_cannot_create(self, http, store, workers):
        response = http.post(
            "/api/tasks",
            json={"description": "Pallets", "scheduledDate": store.today().isoformat()},
            headers=as_worker(workers.anna),
        )

        assert response.status_code == 403

    @pytest.mark.unit
    def test_invalid_body_is_400(self, http, workers):
        response = http.post("/api/tasks", json={"description": ""}, headers=as_worker(workers.dispatcher))

        assert response.status_code == 400
        assert response.json()["error"] == "Request validation failed"

    @pytest.mark.unit
    def test_missing_task_is_404(self, http):
        response = http.get(f"/api/tasks/{uuid4()}")

        assert response.status_code == 404

    @pytest.mark.unit
    def test_detail_includes_log(self, http, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)
        http.post(
            f"/api/tasks/{task.id}/logs",
            json={"actorId": workers.anna.id, "logType": "note", "message": "Gate closed"},
        )

        detail = http.get(f"/api/tasks/{task.id}").json()

        assert detail["events"][0]["message"] == "Gate closed"
        assert detail["events"][0]["actorName"] == "Anna"


class TestStatusApi:
    @pytest.mark.unit
    def test_transition(self, http, store, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)

        response = http.post(
            f"/api/tasks/{task.id}/status",
            json={"status": "in_progress", "actorId": workers.anna.id},
            headers=as_worker(workers.anna),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "in_progress"
        assert body["message"] == "Started"

    @pytest.mark.unit
    def test_invalid_transition_is_409(self, http, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)

        response = http.post(
            f"/api/tasks/{task.id}/status",
            json={"status": "paused", "actorId": workers.anna.id},
        )

        assert response.status_code == 409

    @pytest.mark.unit
    def test_session_cannot_act_for_someone_else(self, http, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)

        response = http.post(
            f"/api/tasks/{task.id}/status",
            json={"status": "in_progress", "actorId": workers.anna.id},
            headers=as_worker(workers.ben),
        )

        assert response.status_code == 403

    @pytest.mark.unit
    def test_unknown_session_is_403(self, http, workers, make_task):
        task = make_task()

        response = http.post(
            f"/api/tasks/{task.id}/join",
            json={"actorId": workers.ben.id},
            headers={"X-Actor-Id": "not-a-number"},
        )

        assert response.status_code == 403

    @pytest.mark.unit
    def test_join_and_participants(self, http, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)

        joined = http.post(f"/api/tasks/{task.id}/join", json={"actorId": workers.ben.id}).json()
        participants = http.get(f"/api/tasks/{task.id}/participants").json()

        assert joined == {"success": True, "joined": True}
        assert participants["primary"]["name"] == "Anna"
        assert [w["name"] for w in participants["joined"]] == ["Ben"]


class TestLogsApi:
    @pytest.mark.unit
    def test_delay_needs_reason(self, http, workers, make_task):
        task = make_task()

        response = http.post(
            f"/api/tasks/{task.id}/logs",
            json={"actorId": workers.anna.id, "logType": "delay", "delayMinutes": 10},
        )

        assert response.status_code == 400

    @pytest.mark.unit
    def test_status_change_log_rejected(self, http, workers, make_task):
        task = make_task()

        response = http.post(
            f"/api/tasks/{task.id}/logs",
            json={"actorId": workers.anna.id, "logType": "status_change", "message": "done"},
        )

        assert response.status_code == 400

    @pytest.mark.unit
    def test_delay_notifies_creator(self, http, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)

        response = http.post(
            f"/api/tasks/{task.id}/logs",
            json={"actorId": workers.anna.id, "logType": "delay", "delayReason": "traffic", "delayMinutes": 20},
        )

        assert response.status_code == 200
        inbox = http.get(f"/api/notifications/{workers.dispatcher.id}").json()
        assert inbox["unreadCount"] == 1
        assert inbox["notifications"][0]["title"] == "Delay"
        assert "20 min" in inbox["notifications"][0]["message"]


class TestNotificationsApi:
    @pytest.mark.unit
    def test_read_and_delete(self, http, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)
        http.post(f"/api/tasks/{task.id}/status", json={"status": "in_progress", "actorId": workers.anna.id})
        http.post(f"/api/tasks/{task.id}/status", json={"status": "paused", "actorId": workers.anna.id})
        inbox = http.get(f"/api/notifications/{workers.dispatcher.id}").json()
        assert inbox["unreadCount"] == 2

        http.post(f"/api/notifications/{inbox['notifications'][0]['id']}/read")
        assert http.get(f"/api/notifications/{workers.dispatcher.id}").json()["unreadCount"] == 1

        http.post(f"/api/notifications/user/{workers.dispatcher.id}/read-all")
        http.delete(f"/api/notifications/user/{workers.dispatcher.id}/delete-read")

        inbox = http.get(f"/api/notifications/{workers.dispatcher.id}").json()
        assert inbox == {"notifications": [], "unreadCount": 0}


class TestReportsApi:
    @pytest.mark.unit
    def test_report(self, http, workers):
        body = http.get("/api/reports", params={"period": "today"}).json()

        assert body["singleDay"] is True
        assert {w["name"] for w in body["workers"]} == {"Anna", "Ben", "Cara"}

    @pytest.mark.unit
    def test_bad_period(self, http):
        assert http.get("/api/reports", params={"period": "someday"}).status_code == 400
