"""Shared test doubles: an in-memory tracker and spreadsheet builders."""

from __future__ import annotations

import asyncio
import csv
import io
from collections.abc import Sequence
from typing import Any

DEFAULT_TYPES: list[dict[str, Any]] = [
    {"id": "10001", "name": "Story", "subtask": False},
    {"id": "10002", "name": "Task", "subtask": False},
    {"id": "10003", "name": "Epic", "subtask": False},
    {"id": "10004", "name": "Sub-task", "subtask": True},
]

HEADER = [
    "Summary",
    "Description",
    "Assignee (Email)",
    "Reporter (Email)",
    "Issue Type",
    "Story Points",
    "Parent Key",
]


class FakeTracker:
    """Stands in for AsyncTrackerClient; records every call.

    ``bulk_errors`` maps batch index -> error message; those elements are
    reported as failed and the rest get sequential keys.
    """

    def __init__(
        self,
        issue_types: list[dict[str, Any]] | None = None,
        users: dict[str, str] | None = None,
        bulk_errors: dict[int, str] | None = None,
        issue_types_error: Exception | None = None,
        bulk_error: Exception | None = None,
        user_error: Exception | None = None,
    ):
        self.issue_types = DEFAULT_TYPES if issue_types is None else issue_types
        self.users = users or {}
        self.bulk_errors = bulk_errors or {}
        self.issue_types_error = issue_types_error
        self.bulk_error = bulk_error
        self.user_error = user_error
        self.issue_type_calls: list[str] = []
        self.user_calls: list[str] = []
        self.bulk_calls: list[list[dict[str, Any]]] = []
        self._next_key = 1

    async def __aenter__(self) -> FakeTracker:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def get_issue_types(self, project_id: str) -> list[dict[str, Any]]:
        self.issue_type_calls.append(project_id)
        if self.issue_types_error is not None:
            raise self.issue_types_error
        return [dict(t) for t in self.issue_types]

    async def search_users(self, query: str) -> list[dict[str, Any]]:
        self.user_calls.append(query)
        if self.user_error is not None:
            raise self.user_error
        account = self.users.get(query.lower())
        if account is None:
            return []
        return [{"accountId": account, "emailAddress": query.upper()}]

    async def bulk_create(self, issue_updates: Sequence[dict[str, Any]]) -> dict[str, Any]:
        self.bulk_calls.append(list(issue_updates))
        if self.bulk_error is not None:
            raise self.bulk_error
        issues = []
        errors = []
        for index, _ in enumerate(issue_updates):
            if index in self.bulk_errors:
                errors.append(
                    {
                        "status": 400,
                        "failedElementNumber": index,
                        "elementErrors": {"errorMessages": [self.bulk_errors[index]], "errors": {}},
                    }
                )
            else:
                issues.append({"id": str(20000 + self._next_key), "key": f"PROJ-{self._next_key}"})
                self._next_key += 1
        return {"issues": issues, "errors": errors}


def csv_bytes(rows: list[list[str]], header: list[str] | None = None) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(header or HEADER)
    writer.writerows(rows)
    return buf.getvalue().encode("utf-8")


def row(
    summary: str = "",
    issue_type: str = "",
    *,
    description: str = "",
    assignee: str = "",
    reporter: str = "",
    points: str = "",
    parent: str = "",
) -> list[str]:
    return [summary, description, assignee, reporter, issue_type, points, parent]



class OverlapTracker(FakeTracker):
    """FakeTracker whose lookups linger so overlapping calls can be observed.

    ``peak`` is the most calls in flight at once per kind; ``mixed`` is set
    when an issue-type fetch and a user search were in flight together.
    """

    def __init__(self, *args: Any, delay: float = 0.02, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.delay = delay
        self.in_flight = {"types": 0, "users": 0}
        self.peak = {"types": 0, "users": 0}
        self.mixed = False

    async def _linger(self, kind: str) -> None:
        self.in_flight[kind] += 1
        self.peak[kind] = max(self.peak[kind], self.in_flight[kind])
        if self.in_flight["types"] and self.in_flight["users"]:
            self.mixed = True
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight[kind] -= 1

    async def get_issue_types(self, project_id: str) -> list[dict[str, Any]]:
        await self._linger("types")
        return await super().get_issue_types(project_id)

    async def search_users(self, query: str) -> list[dict[str, Any]]:
        await self._linger("users")
        return await super().search_users(query)
