"""Tests for the ActivityFeedClient.

Uses httpx.MockTransport so no task service is required.
"""

import asyncio

import httpx
import pytest

from task_time_machine.settings import Settings
from task_time_machine.time_machine.feed import ActivityFeedClient, ActivityFeedError


def activity(task_id: int, entry_id: int, new_value: str, timestamp: str) -> dict:
    """Build a raw activity entry as returned by the task service."""
    return {
        "id": entry_id,
        "taskId": task_id,
        "userId": "user-1",
        "actionType": "UPDATED_STATUS",
        "fieldName": "status",
        "oldValue": None,
        "newValue": new_value,
        "timestamp": timestamp,
        "message": "set status to Done",
    }


FEED = {
    1: [activity(1, 2, "done", "2024-01-05T09:00:00Z"), activity(1, 1, "inprogress", "2024-01-02T10:00:00Z")],
    2: [activity(2, 3, "inprogress", "2024-01-03T10:00:00Z")],
}


def feed_handler(request: httpx.Request) -> httpx.Response:
    """Serve FEED; task 3 fails, task 4 returns a non-list body."""
    task_id = int(request.url.path.split("/")[3])
    if task_id == 3:
        return httpx.Response(500, json={"error": "Failed to fetch activity logs"})
    if task_id == 4:
        return httpx.Response(200, json={"unexpected": True})
    return httpx.Response(200, json=FEED.get(task_id, []))


@pytest.fixture()
def client() -> ActivityFeedClient:
    """Return a client backed by feed_handler."""
    return ActivityFeedClient.from_settings(
        Settings(activity_base_url="http://tasks.test"),
        transport=httpx.MockTransport(feed_handler),
    )


@pytest.mark.asyncio
async def test_fetch_task_events_returns_raw_entries(client):
    entries = await client.fetch_task_events(1)
    assert [entry["id"] for entry in entries] == [2, 1]


@pytest.mark.asyncio
async def test_fetch_task_events_raises_on_server_error(client):
    with pytest.raises(ActivityFeedError) as excinfo:
        await client.fetch_task_events(3)
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_fetch_task_events_rejects_non_list_body(client):
    with pytest.raises(ActivityFeedError):
        await client.fetch_task_events(4)


@pytest.mark.asyncio
async def test_fetch_task_events_wraps_transport_errors():
    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = ActivityFeedClient(
        base_url="http://tasks.test",
        concurrency=1,
        timeout_s=1.0,
        transport=httpx.MockTransport(broken),
    )
    with pytest.raises(ActivityFeedError) as excinfo:
        await client.fetch_task_events(1)
    assert excinfo.value.status_code is None


@pytest.mark.asyncio
async def test_fetch_events_merges_and_orders(client):
    log = await client.fetch_events([1, 2, 3, 4, 1])
    assert [event.id for event in log] == [1, 3, 2]
    assert log.task_ids() == {1, 2}


@pytest.mark.asyncio
async def test_fetch_events_respects_concurrency_limit():
    in_flight = 0
    peak = 0

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return httpx.Response(200, json=[])

    client = ActivityFeedClient(
        base_url="http://tasks.test",
        concurrency=2,
        timeout_s=1.0,
        transport=httpx.MockTransport(slow_handler),
    )
    log = await client.fetch_events(range(1, 9))
    assert len(log) == 0
    assert 1 <= peak <= 2


def test_concurrency_must_be_positive():
    with pytest.raises(ValueError):
        ActivityFeedClient(base_url="http://tasks.test", concurrency=0, timeout_s=1.0)


@pytest.mark.asyncio
async def test_requests_go_to_activity_logs_path():
    seen: list[str] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return feed_handler(request)

    client = ActivityFeedClient.from_settings(
        Settings(activity_base_url="http://tasks.test/"),
        transport=httpx.MockTransport(recording_handler),
    )
    await client.fetch_task_events(2)
    assert seen == ["http://tasks.test/api/tasks/2/activity-logs"]


@pytest.mark.asyncio
async def test_from_settings_honors_environment(monkeypatch):
    monkeypatch.setenv("TIME_MACHINE_ACTIVITY_BASE_URL", "http://tasks.internal")
    monkeypatch.setenv("TIME_MACHINE_ACTIVITY_PATH_TEMPLATE", "/v2/tasks/{task_id}/history")
    seen: list[str] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json=[])

    client = ActivityFeedClient.from_settings(Settings(), transport=httpx.MockTransport(recording_handler))
    await client.fetch_task_events(7)
    assert seen == ["http://tasks.internal/v2/tasks/7/history"]
