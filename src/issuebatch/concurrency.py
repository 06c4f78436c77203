"""Async access to the blocking tracker client.

Network calls run on a bounded thread pool so the event loop only suspends
on I/O; everything else in the pipeline is plain coroutine code.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType
from typing import Any, TypeVar

from .logging import get_logger
from .tracker_rest import TrackerRestClient

T = TypeVar('T')

_MOCK_ISSUE_TYPES: list[dict[str, Any]] = [
    {"id": "10001", "name": "Story", "subtask": False},
    {"id": "10002", "name": "Task", "subtask": False},
    {"id": "10003", "name": "Epic", "subtask": False},
    {"id": "10004", "name": "Sub-task", "subtask": True},
]


class ConcurrencyConfig:
    """Configuration for concurrency settings."""

    def __init__(self, max_workers: int = 4):
        self.max_workers = max(1, max_workers)


class AsyncTrackerClient:
    """Async wrapper around :class:`TrackerRestClient`.

    In mock mode no HTTP is performed: issue types come from a fixed set,
    user searches echo the queried email and bulk creates return sequential
    ``MOCK-<n>`` keys.
    """

    def __init__(
        self,
        rest: TrackerRestClient | None,
        concurrency_config: ConcurrencyConfig | None = None,
        mock: bool = False,
    ):
        if rest is None and not mock:
            raise ValueError("A REST client is required unless mock mode is enabled")
        self.rest = rest
        self.config = concurrency_config or ConcurrencyConfig()
        self.mock = mock
        self.logger = get_logger()
        self._executor: ThreadPoolExecutor | None = None
        self._mock_counter = 0

    def __enter__(self) -> AsyncTrackerClient:
        if not self.mock:
            self._executor = ThreadPoolExecutor(max_workers=self.config.max_workers)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    async def __aenter__(self) -> AsyncTrackerClient:
        return self.__enter__()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)

    async def _call(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    async def get_issue_types(self, project_id: str) -> list[dict[str, Any]]:
        if self.mock:
            return [dict(entry) for entry in _MOCK_ISSUE_TYPES]
        assert self.rest is not None  # nosec B101 - guarded in __init__
        return await self._call(self.rest.get_issue_types, project_id)

    async def search_users(self, query: str) -> list[dict[str, Any]]:
        if self.mock:
            local = query.split('@', 1)[0]
            return [{"accountId": f"mock-{local}", "emailAddress": query}]
        assert self.rest is not None  # nosec B101
        self.logger.debug("Searching tracker users", query=query)
        return await self._call(self.rest.search_users, query)

    async def bulk_create(self, issue_updates: Sequence[dict[str, Any]]) -> dict[str, Any]:
        if self.mock:
            issues = []
            for _ in issue_updates:
                self._mock_counter += 1
                issues.append({"key": f"MOCK-{self._mock_counter}"})
            return {"issues": issues, "errors": []}
        assert self.rest is not None  # nosec B101
        return await self._call(self.rest.bulk_create, issue_updates)


async def gather_indexed(
    items: Sequence[T], worker: Callable[[int, T], Awaitable[Any]]
) -> list[Any]:
    """Run ``worker(index, item)`` for every item concurrently.

    Results come back in input order regardless of completion order.
    """
    tasks = [asyncio.create_task(worker(i, item)) for i, item in enumerate(items)]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


__all__ = ["ConcurrencyConfig", "AsyncTrackerClient", "gather_indexed"]
