from __future__ import annotations

from collections.abc import Mapping, Sequence

from .models import Created, Failed, ImportReport, RowOutcome, Skipped, Submitted
from .submitter import BatchResult

NOT_CONFIRMED = "The tracker did not confirm creation of this issue."


def aggregate(
    skipped: Sequence[Skipped],
    submitted: Sequence[Submitted],
    batch: BatchResult,
) -> ImportReport:
    """Merge validation skips and the bulk-create outcome into one report.

    ``submitted[i]`` is the row that went out as batch element ``i``; that
    position is the only link from a remote failure back to its row.
    """
    failures: Mapping[int, str] = {f.batch_index: f.reason for f in batch.failures}
    outcomes: list[RowOutcome] = list(skipped)
    for index, entry in enumerate(submitted):
        summary = entry.payload.summary
        if index in failures:
            outcomes.append(
                Failed(entry.row_number, f'Row {entry.row_number}: Issue "{summary}": {failures[index]}')
            )
        elif index in batch.created:
            outcomes.append(Created(entry.row_number, batch.created[index]))
        else:
            outcomes.append(
                Failed(entry.row_number, f'Row {entry.row_number}: Issue "{summary}": {NOT_CONFIRMED}')
            )
    outcomes.sort(key=lambda o: o.row_number)
    created = sum(1 for o in outcomes if isinstance(o, Created))
    return ImportReport(
        created_count=created,
        failed_count=len(outcomes) - created,
        outcomes=tuple(outcomes),
    )


__all__ = ["aggregate"]
