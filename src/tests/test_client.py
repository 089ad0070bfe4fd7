"""Tests for the field client: task cache, remote API and worker session."""

import json
from datetime import date

import httpx
import pytest
import pytest_asyncio

from fieldsync import ClientConfig
from fieldsync.client import FieldClient, RemoteTaskApi, TaskCache
from fieldsync.client.actions import QueuedAction
from fieldsync.client.storage import JsonFileStore
from fieldsync.exceptions import TransientSyncFailure

DAY = date(2024, 5, 6)
TASK_ID = "3f1c9a52-8a6e-4c1d-9d0e-2b7f5a1e6c10"


def cached_task(**fields):
    task = {"id": TASK_ID, "description": "Pallets to hall B", "status": "in_progress", "hasPaused": False}
    task.update(fields)
    return task


class FakeServer:
    """httpx transport handler recording requests; answers with ``status`` or raises when ``down``."""

    def __init__(self):
        self.requests = []
        self.status = 200
        self.down = False
        self.tasks = [cached_task()]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            raise httpx.ConnectError("connection refused", request=request)
        self.requests.append(request)
        if self.status >= 400:
            return httpx.Response(self.status, json={"error": "Invalid transition"})
        if request.method == "GET":
            return httpx.Response(200, json=self.tasks)
        return httpx.Response(200, json={"success": True})


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def client_config(tmp_path):
    return ClientConfig(
        base_url="http://fieldsync.test",
        actor_id=7,
        queue_path=str(tmp_path / "queue.json"),
        cache_path=str(tmp_path / "tasks.json"),
    )


@pytest.fixture
def api(client_config, server):
    http = httpx.AsyncClient(base_url=client_config.base_url, transport=httpx.MockTransport(server))
    return RemoteTaskApi(client_config, client=http)


@pytest_asyncio.fixture
async def client(client_config, api):
    c = FieldClient(client_config, api=api, auto_drain=False)
    yield c
    await c.close()


class TestTaskCache:
    @pytest.mark.unit
    def test_replace_reports_changes(self, tmp_path):
        cache = TaskCache(JsonFileStore(tmp_path / "tasks.json"))

        assert cache.replace(DAY, [cached_task()]) is True
        assert cache.replace(DAY, [cached_task()]) is False
        assert cache.replace(DAY, [cached_task(status="paused")]) is True

    @pytest.mark.unit
    def test_persisted_by_date(self, tmp_path):
        storage = JsonFileStore(tmp_path / "tasks.json")
        TaskCache(storage).replace(DAY, [cached_task()])

        reloaded = TaskCache(storage)

        assert reloaded.get(DAY) == [cached_task()]
        assert reloaded.get(date(2024, 5, 7)) is None

    @pytest.mark.unit
    def test_update_task_returns_previous(self, tmp_path):
        cache = TaskCache(JsonFileStore(tmp_path / "tasks.json"))
        cache.replace(DAY, [cached_task()])

        previous = cache.update_task(DAY, TASK_ID, status="paused", hasPaused=True)

        assert previous == {"status": "in_progress", "hasPaused": False}
        assert cache.get(DAY)[0]["status"] == "paused"

    @pytest.mark.unit
    def test_update_missing_task(self, tmp_path):
        cache = TaskCache(JsonFileStore(tmp_path / "tasks.json"))

        assert cache.update_task(DAY, TASK_ID, status="paused") is None


class TestRemoteTaskApi:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_status_action_routed(self, api, server):
        action = QueuedAction(
            name="update_task_status",
            payload={"taskId": TASK_ID, "status": "paused", "actorId": 7},
        )

        await api.send(action)

        [request] = server.requests
        assert request.method == "POST"
        assert request.url.path == f"/api/tasks/{TASK_ID}/status"
        assert request.headers["X-Actor-Id"] == "7"
        assert json.loads(request.content) == {"status": "paused", "actorId": 7}
        assert action.payload["taskId"] == TASK_ID

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_status_is_transient(self, api, server):
        server.status = 409

        with pytest.raises(TransientSyncFailure, match="409"):
            await api.send(QueuedAction(name="join_task", payload={"taskId": TASK_ID, "actorId": 7}))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_network_error_is_transient(self, api, server):
        server.down = True

        with pytest.raises(TransientSyncFailure):
            await api.get_tasks(DAY)


class TestFieldClient:
    """Optimistic updates and their reconciliation."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refresh_fills_cache(self, client, server):
        tasks = await client.refresh(DAY)

        assert tasks == [cached_task()]
        assert client.tasks_for(DAY) == [cached_task()]
        assert server.requests[0].url.params["date"] == DAY.isoformat()
        assert server.requests[0].url.params["userId"] == "7"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refresh_offline_serves_cache(self, client, server):
        await client.refresh(DAY)
        server.down = True

        assert await client.refresh(DAY) == [cached_task()]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pause_is_optimistic(self, client, server):
        await client.refresh(DAY)

        client.pause(DAY, TASK_ID)

        assert client.tasks_for(DAY)[0]["status"] == "paused"
        assert client.tasks_for(DAY)[0]["hasPaused"] is True
        assert await client.queue.drain() == 1
        assert server.requests[-1].url.path == f"/api/tasks/{TASK_ID}/status"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rejected_action_keeps_local_state(self, client, server):
        """After the last attempt the failure is recorded and the cache waits for a refresh."""
        await client.refresh(DAY)
        server.status = 409
        client.pause(DAY, TASK_ID)

        for _ in range(3):
            await client.queue.drain()

        assert client.queue.pending == []
        assert [e.action_name for e in client.sync_errors] == ["update_task_status"]
        assert client.tasks_for(DAY)[0]["status"] == "paused"
        assert client.tasks_for(DAY)[0]["hasPaused"] is True

        server.status = 200
        await client.refresh(DAY)
        assert client.tasks_for(DAY)[0]["status"] == "in_progress"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_revert_on_failure_restores_cache(self, client_config, api, server):
        reverting = FieldClient(client_config, api=api, auto_drain=False, revert_on_failure=True)
        await reverting.refresh(DAY)
        server.status = 409
        reverting.pause(DAY, TASK_ID)

        for _ in range(3):
            await reverting.queue.drain()

        assert len(reverting.sync_errors) == 1
        assert reverting.tasks_for(DAY)[0]["status"] == "in_progress"
        assert reverting.tasks_for(DAY)[0]["hasPaused"] is False
        await reverting.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_log_payload(self, client, server):
        action_id = client.add_log(TASK_ID, "delay", delay_reason="waiting", delay_minutes=15)

        await client.queue.drain()

        request = server.requests[-1]
        assert request.url.path == f"/api/tasks/{TASK_ID}/logs"
        assert json.loads(request.content) == {
            "actorId": 7,
            "logType": "delay",
            "delayReason": "waiting",
            "delayMinutes": 15,
            "clientActionId": action_id,
        }
