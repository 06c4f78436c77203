"""Per-row validation and issue-creation payload construction.

Rules run in a fixed order and the first failing rule decides the skip
reason. Optional references (users, story points) never fail a row; when they
cannot be resolved the field is simply left out of the payload.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .models import IssuePayload, IssueTypeDescriptor, ResolvedUser, RowRecord, Skipped
from .schema_resolver import IssueTypeSchema

COL_SUMMARY = "Summary"
COL_ISSUE_TYPE = "Issue Type"
COL_DESCRIPTION = "Description"
COL_ASSIGNEE = "Assignee (Email)"
COL_REPORTER = "Reporter (Email)"
COL_STORY_POINTS = "Story Points"
COL_PARENT_KEY = "Parent Key"

TEMPLATE_COLUMNS = [
    COL_SUMMARY,
    COL_DESCRIPTION,
    COL_ASSIGNEE,
    COL_REPORTER,
    COL_ISSUE_TYPE,
    COL_STORY_POINTS,
    COL_PARENT_KEY,
]
REQUIRED_COLUMNS = (COL_SUMMARY, COL_ISSUE_TYPE)

EPIC_TYPE_NAME = "epic"


@dataclass(frozen=True)
class FieldKeys:
    """Instance-specific custom field keys."""

    story_points: str = "customfield_10016"
    epic_name: str = "customfield_10011"


def parse_story_points(raw: str) -> float | None:
    text = raw.strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def to_document(text: str) -> dict[str, Any]:
    """Wrap plain text in the tracker's structured document format."""
    paragraphs = [p for p in text.replace("\r\n", "\n").split("\n\n") if p.strip()]
    content = []
    for para in paragraphs:
        nodes: list[dict[str, Any]] = []
        for idx, line in enumerate(para.split("\n")):
            if idx:
                nodes.append({"type": "hardBreak"})
            if line:
                nodes.append({"type": "text", "text": line})
        content.append({"type": "paragraph", "content": nodes})
    return {"type": "doc", "version": 1, "content": content}


def referenced_emails(rows: list[RowRecord], importer_email: str) -> list[str]:
    """All emails a row set may need resolved, including the importing user."""
    emails: list[str] = []
    for row in rows:
        for column in (COL_ASSIGNEE, COL_REPORTER):
            value = row.get(column)
            if value:
                emails.append(value)
    if importer_email:
        emails.append(importer_email)
    return emails


def validate_row(row: RowRecord, schema: IssueTypeSchema) -> IssueTypeDescriptor | Skipped:
    """Apply the structural rules; return the resolved issue type or a skip."""
    summary = row.get(COL_SUMMARY)
    type_name = row.get(COL_ISSUE_TYPE)
    if not summary or not type_name:
        missing = [c for c, v in ((COL_SUMMARY, summary), (COL_ISSUE_TYPE, type_name)) if not v]
        return Skipped(
            row.row_number,
            f"Row {row.row_number}: missing required value for {' and '.join(repr(m) for m in missing)}.",
        )
    issue_type = schema.lookup(type_name)
    if issue_type is None:
        return Skipped(
            row.row_number,
            f'Row {row.row_number}: Invalid issue type "{type_name}". '
            f"Valid types for this project are: {', '.join(schema.valid_names())}.",
        )
    if issue_type.is_subtask and not row.get(COL_PARENT_KEY):
        return Skipped(
            row.row_number,
            f"Row {row.row_number}: Sub-task \"{summary}\" is missing a 'Parent Key'.",
        )
    return issue_type


def build_payload(
    row: RowRecord,
    schema: IssueTypeSchema,
    users: Mapping[str, ResolvedUser | None],
    *,
    importer_email: str,
    field_keys: FieldKeys | None = None,
) -> IssuePayload | Skipped:
    """Validate ``row`` and build its creation payload.

    ``users`` is the already-populated email cache keyed by lowercased email.
    """
    keys = field_keys or FieldKeys()
    checked = validate_row(row, schema)
    if isinstance(checked, Skipped):
        return checked
    issue_type = checked

    summary = row.get(COL_SUMMARY)
    description = row.get(COL_DESCRIPTION)
    fields: dict[str, Any] = {
        "project": {"id": schema.project_id},
        "summary": summary,
        "description": to_document(description),
        "issuetype": {"id": issue_type.id},
    }

    assignee = users.get(row.get(COL_ASSIGNEE).lower()) if row.get(COL_ASSIGNEE) else None
    reporter_email = row.get(COL_REPORTER) or importer_email
    reporter = users.get(reporter_email.strip().lower()) if reporter_email else None
    if assignee is not None:
        fields["assignee"] = {"accountId": assignee.account_id}
    if reporter is not None:
        fields["reporter"] = {"accountId": reporter.account_id}

    points = parse_story_points(row.get(COL_STORY_POINTS))
    if points is not None:
        fields[keys.story_points] = points

    if issue_type.is_subtask:
        fields["parent"] = {"key": row.get(COL_PARENT_KEY)}

    # Epics need a separate short display name; the summary doubles as one.
    if issue_type.name.strip().lower() == EPIC_TYPE_NAME:
        fields[keys.epic_name] = summary

    return IssuePayload(fields=fields)


def missing_required_columns(columns: list[str]) -> list[str]:
    present = {c.strip() for c in columns}
    return [c for c in REQUIRED_COLUMNS if c not in present]


__all__ = [
    "FieldKeys",
    "build_payload",
    "validate_row",
    "parse_story_points",
    "to_document",
    "referenced_emails",
    "missing_required_columns",
    "TEMPLATE_COLUMNS",
    "REQUIRED_COLUMNS",
]
