"""Bulk import orchestration.

Flow for one import call::

    read_rows -> (resolve_schema || UserResolver.resolve_all)
              -> build_payload per row (fan-out / fan-in)
              -> submit_batch (one call) -> aggregate -> ImportReport

Fatal errors (:class:`~issuebatch.errors.ImportFailure` subclasses) propagate
to the caller; row-level problems end up in the report.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .concurrency import AsyncTrackerClient, gather_indexed
from .errors import ImportCancelled
from .ingest import header_columns, read_rows
from .logging import get_logger
from .models import ImportReport, IssuePayload, RowOutcome, RowRecord, Skipped, Submitted
from .payloads import (
    FieldKeys,
    build_payload,
    missing_required_columns,
    referenced_emails,
)
from .report import aggregate
from .schema_resolver import IssueTypeSchema, resolve_schema
from .submitter import submit_batch
from .users import UserResolver


@dataclass
class ImportPlan:
    """Validated rows ready for submission plus the rows already skipped.

    ``submitted`` is in row order; its positions are the batch indices.
    """

    schema: IssueTypeSchema
    skipped: list[Skipped] = field(default_factory=list)
    submitted: list[Submitted] = field(default_factory=list)

    @property
    def payloads(self) -> list[IssuePayload]:
        return [s.payload for s in self.submitted]

    def outcomes(self) -> list[RowOutcome]:
        merged: list[RowOutcome] = [*self.skipped, *self.submitted]
        return sorted(merged, key=lambda o: o.row_number)


async def _gather_or_cancel(*aws: Any) -> list[Any]:
    tasks = [asyncio.ensure_future(a) for a in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


class BulkImporter:
    """Runs the import pipeline against one project.

    ``importer_email`` identifies the user performing the import; it is the
    reporter for rows that do not name one.
    """

    def __init__(
        self,
        client: AsyncTrackerClient,
        importer_email: str,
        field_keys: FieldKeys | None = None,
    ):
        self.client = client
        self.importer_email = importer_email
        self.field_keys = field_keys or FieldKeys()
        self.logger = get_logger()

    async def plan(self, rows: Sequence[RowRecord], project_id: str) -> ImportPlan:
        missing = missing_required_columns(header_columns(rows))
        if missing:
            self.logger.warning(
                "Uploaded file lacks required columns; every row will be skipped",
                missing_columns=missing,
            )
        users = UserResolver(self.client)
        schema, resolved = await _gather_or_cancel(
            resolve_schema(self.client, project_id),
            users.resolve_all(referenced_emails(list(rows), self.importer_email)),
        )

        async def _process(_index: int, row: RowRecord) -> IssuePayload | Skipped:
            return build_payload(
                row,
                schema,
                resolved,
                importer_email=self.importer_email,
                field_keys=self.field_keys,
            )

        results = await gather_indexed(rows, _process)
        plan = ImportPlan(schema=schema)
        for row, result in zip(rows, results):
            if isinstance(result, Skipped):
                plan.skipped.append(result)
            else:
                plan.submitted.append(Submitted(row.row_number, result))
        self.logger.log_operation(
            "rows_validated",
            project_id=project_id,
            valid=len(plan.submitted),
            skipped=len(plan.skipped),
        )
        return plan

    async def submit(
        self, plan: ImportPlan, cancel_event: asyncio.Event | None = None
    ) -> ImportReport:
        if cancel_event is not None and cancel_event.is_set():
            raise ImportCancelled("Import cancelled before submission; no issues were created")
        batch = await submit_batch(self.client, plan.payloads)
        report = aggregate(plan.skipped, plan.submitted, batch)
        for outcome in report.outcomes:
            self.logger.log_row_outcome(outcome)
        return report

    async def run(
        self,
        data: bytes,
        project_id: str,
        *,
        file_format: str | None = None,
        filename: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ImportReport:
        with self.logger.timed_operation("bulk_import", project_id=project_id):
            rows = read_rows(data, file_format=file_format, filename=filename)
            plan = await self.plan(rows, project_id)
            report = await self.submit(plan, cancel_event)
        self.logger.log_operation(
            "import_complete",
            created_count=report.created_count,
            failed_count=report.failed_count,
        )
        return report

    async def dry_run(
        self,
        data: bytes,
        project_id: str,
        *,
        file_format: str | None = None,
        filename: str | None = None,
    ) -> ImportPlan:
        rows = read_rows(data, file_format=file_format, filename=filename)
        plan = await self.plan(rows, project_id)
        for outcome in plan.outcomes():
            self.logger.log_row_outcome(outcome, dry_run=True)
        return plan


def import_file(
    client: AsyncTrackerClient,
    data: bytes,
    project_id: str,
    importer_email: str,
    *,
    file_format: str | None = None,
    filename: str | None = None,
    field_keys: FieldKeys | None = None,
) -> ImportReport:
    """Synchronous convenience wrapper around :meth:`BulkImporter.run`."""

    async def _run() -> ImportReport:
        async with client:
            importer = BulkImporter(client, importer_email, field_keys)
            return await importer.run(data, project_id, file_format=file_format, filename=filename)

    return asyncio.run(_run())


__all__ = ["BulkImporter", "ImportPlan", "import_file"]
