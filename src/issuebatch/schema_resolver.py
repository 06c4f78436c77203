from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .concurrency import AsyncTrackerClient
from .errors import ConfigFetchError
from .logging import get_logger
from .models import IssueTypeDescriptor
from .tracker_rest import TrackerAPIError


def _key(name: str) -> str:
    return name.strip().lower()


@dataclass(frozen=True)
class IssueTypeSchema:
    """Immutable case-insensitive lookup of the issue types valid in a project."""

    project_id: str
    types: tuple[IssueTypeDescriptor, ...]
    by_name: Mapping[str, IssueTypeDescriptor] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "by_name", MappingProxyType({_key(t.name): t for t in self.types})
        )

    def lookup(self, name: str) -> IssueTypeDescriptor | None:
        return self.by_name.get(_key(name))

    def valid_names(self) -> list[str]:
        return [t.name for t in self.types]

    def subtask_type(self) -> IssueTypeDescriptor | None:
        return next((t for t in self.types if t.is_subtask), None)


def parse_issue_types(entries: Iterable[Mapping[str, Any]]) -> tuple[IssueTypeDescriptor, ...]:
    seen: set[str] = set()
    out: list[IssueTypeDescriptor] = []
    for entry in entries:
        type_id = entry.get("id")
        name = entry.get("name")
        if type_id is None or not isinstance(name, str) or not name.strip():
            continue
        # first occurrence wins when two types share a name
        if _key(name) in seen:
            continue
        seen.add(_key(name))
        out.append(
            IssueTypeDescriptor(id=str(type_id), name=name.strip(), is_subtask=bool(entry.get("subtask")))
        )
    return tuple(out)


async def resolve_schema(client: AsyncTrackerClient, project_id: str) -> IssueTypeSchema:
    """Fetch the project's issue types once; raise ConfigFetchError on failure or empty set."""
    try:
        raw = await client.get_issue_types(project_id)
    except TrackerAPIError as exc:
        raise ConfigFetchError(
            f"Failed to fetch issue types for project {project_id}. "
            f"Your token might have expired or lacks permissions. ({exc})"
        ) from exc
    types = parse_issue_types(raw)
    if not types:
        raise ConfigFetchError(
            f"Project {project_id} returned no issue types; "
            "please ensure the project exists and you have permissions"
        )
    get_logger().log_operation(
        "schema_resolved", project_id=project_id, issue_types=[t.name for t in types]
    )
    return IssueTypeSchema(project_id=project_id, types=types)


__all__ = ["IssueTypeSchema", "parse_issue_types", "resolve_schema"]
