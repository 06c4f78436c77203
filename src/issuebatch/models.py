from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union


def _freeze(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class RowRecord:
    """One data row of the uploaded spreadsheet.

    ``row_number`` is 1-indexed over data rows (the header row is excluded)
    and is the number every later stage reports the row under.
    """

    row_number: int
    values: Mapping[str, str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", _freeze(self.values))

    def get(self, column: str) -> str:
        return self.values.get(column, "").strip()


@dataclass(frozen=True)
class IssueTypeDescriptor:
    id: str
    name: str
    is_subtask: bool = False


@dataclass(frozen=True)
class ResolvedUser:
    account_id: str
    email: str


@dataclass(frozen=True)
class IssuePayload:
    fields: Mapping[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", _freeze(self.fields))

    @property
    def summary(self) -> str:
        return str(self.fields.get("summary", ""))

    def to_json(self) -> dict[str, Any]:
        return {"fields": dict(self.fields)}


@dataclass(frozen=True)
class Skipped:
    row_number: int
    reason: str
    kind: str = field(default="skipped", init=False)


@dataclass(frozen=True)
class Submitted:
    row_number: int
    payload: IssuePayload
    kind: str = field(default="submitted", init=False)


@dataclass(frozen=True)
class Created:
    row_number: int
    issue_key: str
    kind: str = field(default="created", init=False)


@dataclass(frozen=True)
class Failed:
    row_number: int
    reason: str
    kind: str = field(default="failed", init=False)


RowOutcome = Union[Skipped, Submitted, Created, Failed]


@dataclass(frozen=True)
class ImportReport:
    created_count: int
    failed_count: int
    outcomes: tuple[RowOutcome, ...] = ()

    @property
    def success(self) -> bool:
        return self.failed_count == 0

    def failure_reasons(self) -> list[str]:
        return [o.reason for o in self.outcomes if isinstance(o, (Skipped, Failed))]

    def message(self) -> str:
        if self.success:
            return f"Import complete. {self.created_count} issues created."
        if self.created_count == 0 and not any(isinstance(o, Failed) for o in self.outcomes):
            reasons = self.failure_reasons()
            return " ".join(reasons) if reasons else "No valid issues found in the file to import."
        return (
            f"Import complete. {self.created_count} issues created, "
            f"{self.failed_count} failed. Failures: " + "; ".join(self.failure_reasons())
        )

    def to_dict(self) -> dict[str, Any]:
        rows: list[dict[str, Any]] = []
        for outcome in self.outcomes:
            entry: dict[str, Any] = {"row": outcome.row_number, "outcome": outcome.kind}
            if isinstance(outcome, Created):
                entry["key"] = outcome.issue_key
            elif isinstance(outcome, (Skipped, Failed)):
                entry["reason"] = outcome.reason
            rows.append(entry)
        return {
            "success": self.success,
            "created": self.created_count,
            "failed": self.failed_count,
            "message": self.message(),
            "rows": rows,
        }


__all__ = [
    "RowRecord",
    "IssueTypeDescriptor",
    "ResolvedUser",
    "IssuePayload",
    "Skipped",
    "Submitted",
    "Created",
    "Failed",
    "RowOutcome",
    "ImportReport",
]
