"""Activity feed client for the task service.

Fetches the activity log of every task on a board from the task service's
REST API (``GET /api/tasks/{task_id}/activity-logs`` by default).
Requests are fanned out with bounded concurrency; a task whose log cannot
be fetched is logged and left out so one failing task does not blank the
whole timeline.

The client uses httpx for async HTTP. Tests inject an ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

import httpx

from task_time_machine.observability import get_logger
from task_time_machine.settings import Settings, get_settings
from task_time_machine.time_machine.event_log import EventLog
from task_time_machine.time_machine.events import TaskId

logger = get_logger(__name__)


class ActivityFeedError(Exception):
    """Raised when a task's activity log cannot be fetched.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the task service (if available).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ActivityFeedClient:
    """Async client for per-task activity logs.

    Args:
        base_url: Task service base URL.
        path_template: Activity log path; ``{task_id}`` is substituted.
        concurrency: Maximum number of requests in flight.
        timeout_s: Timeout for each request in seconds.
        headers: Extra headers sent with every request (e.g. Authorization).
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        base_url: str,
        concurrency: int,
        timeout_s: float,
        path_template: str = "/api/tasks/{task_id}/activity-logs",
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._base_url = base_url.rstrip("/")
        self._concurrency = concurrency
        self._timeout_s = timeout_s
        self._path_template = path_template
        self._headers = dict(headers or {})
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ActivityFeedClient:
        """Build a client from service settings.

        Args:
            settings: Service settings; defaults to ``get_settings()``.
            headers: Extra headers sent with every request.
            transport: Optional httpx transport, used by tests.

        Returns:
            A configured ActivityFeedClient.
        """
        settings = settings or get_settings()
        return cls(
            base_url=settings.activity_base_url,
            concurrency=settings.feed_concurrency,
            timeout_s=settings.feed_timeout_s,
            path_template=settings.activity_path_template,
            headers=headers,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout_s,
            headers=self._headers,
            transport=self._transport,
        )

    async def fetch_task_events(
        self,
        task_id: TaskId,
        client: httpx.AsyncClient | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch the raw activity entries of one task.

        Args:
            task_id: The task whose log to fetch.
            client: Shared client; a short-lived one is opened if omitted.

        Returns:
            The list of activity entry dicts as returned by the service.

        Raises:
            ActivityFeedError: On transport errors, non-2xx responses or a
                body that is not a JSON list.
        """
        if client is None:
            async with self._client() as owned:
                return await self.fetch_task_events(task_id, client=owned)

        path = self._path_template.format(task_id=task_id)
        try:
            response = await client.get(path)
        except httpx.TimeoutException as exc:
            raise ActivityFeedError(f"Activity request for task {task_id} timed out") from exc
        except httpx.RequestError as exc:
            raise ActivityFeedError(f"Activity request for task {task_id} failed: {exc}") from exc

        if not response.is_success:
            raise ActivityFeedError(
                f"Activity request for task {task_id} returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ActivityFeedError(f"Activity response for task {task_id} is not JSON") from exc
        if not isinstance(body, list):
            raise ActivityFeedError(f"Activity response for task {task_id} is not a list")
        return [entry for entry in body if isinstance(entry, dict)]

    async def fetch_events(self, task_ids: Iterable[TaskId]) -> EventLog:
        """Fetch and merge the activity logs of many tasks.

        Per-task failures are logged at WARNING and skipped.

        Args:
            task_ids: Tasks whose logs to fetch.

        Returns:
            One EventLog holding every fetched entry.
        """
        ids = list(dict.fromkeys(task_ids))
        semaphore = asyncio.Semaphore(self._concurrency)

        async with self._client() as client:

            async def fetch_one(task_id: TaskId) -> list[dict[str, Any]]:
                async with semaphore:
                    try:
                        return await self.fetch_task_events(task_id, client=client)
                    except ActivityFeedError as exc:
                        logger.warning(
                            "Skipping task activity log",
                            extra={"task_id": task_id, "status_code": exc.status_code, "error": str(exc)},
                        )
                        return []

            batches = await asyncio.gather(*(fetch_one(task_id) for task_id in ids))

        records = [record for batch in batches for record in batch]
        logger.info(
            "Fetched activity logs",
            extra={"task_count": len(ids), "record_count": len(records)},
        )
        return EventLog.from_records(records)
