"""Project-specific CSV import template."""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence

from .models import IssueTypeDescriptor
from .payloads import TEMPLATE_COLUMNS

PLACEHOLDER_PARENT = "PROJ-123"
SUBTASK_NOTE = (
    "NOTE for Sub-tasks: To create a sub-task, replace the placeholder "
    f"'{PLACEHOLDER_PARENT}' in the 'Parent Key' column with the key of an *existing* "
    "parent issue. A sub-task cannot be created in the same import file as its parent."
)


def template_rows(issue_types: Sequence[IssueTypeDescriptor]) -> list[list[str]]:
    rows: list[list[str]] = [list(TEMPLATE_COLUMNS)]
    for issue_type in issue_types:
        if issue_type.is_subtask:
            continue
        rows.append(
            [
                f"Example {issue_type.name} Summary",
                f"A description for the {issue_type.name}.",
                "user@example.com",
                "reporter@example.com",
                issue_type.name,
                "5" if issue_type.name.lower() == "story" else "",
                "",
            ]
        )
    subtask = next((t for t in issue_types if t.is_subtask), None)
    if subtask is not None:
        rows.append(
            [
                "Example Subtask",
                "This is a subtask and needs a parent.",
                "user@example.com",
                "reporter@example.com",
                subtask.name,
                "",
                PLACEHOLDER_PARENT,
            ]
        )
        rows.append([])
        rows.append([SUBTASK_NOTE])
    return rows


def render_template(issue_types: Sequence[IssueTypeDescriptor]) -> str:
    buf = io.StringIO()
    csv.writer(buf).writerows(template_rows(issue_types))
    return buf.getvalue()


__all__ = ["render_template", "template_rows", "SUBTASK_NOTE"]
