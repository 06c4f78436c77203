from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .concurrency import AsyncTrackerClient
from .errors import SubmissionError
from .logging import get_logger
from .models import IssuePayload
from .tracker_rest import TrackerAPIError

HTTP_BAD_REQUEST = 400
UNSPECIFIED_ERROR = "An unspecified error occurred."


@dataclass(frozen=True)
class ElementFailure:
    batch_index: int
    reason: str


@dataclass
class BatchResult:
    """Per-element outcome of one bulk-create call, keyed by batch index."""

    created: dict[int, str] = field(default_factory=dict)
    failures: list[ElementFailure] = field(default_factory=list)


def _element_reason(entry: Mapping[str, Any]) -> str:
    element = entry.get("elementErrors")
    parts: list[str] = []
    if isinstance(element, Mapping):
        messages = element.get("errorMessages")
        if isinstance(messages, list):
            parts.extend(str(m) for m in messages if m)
        errors = element.get("errors")
        if isinstance(errors, Mapping):
            parts.extend(f"{k}: {v}" for k, v in errors.items())
    return ", ".join(parts) if parts else UNSPECIFIED_ERROR


def parse_bulk_response(data: Mapping[str, Any], submitted: int) -> BatchResult:
    """Split a bulk-create response into created keys and element failures.

    The tracker lists created issues in submission order with failed elements
    left out, so keys are paired with the indices that did not fail.
    """
    result = BatchResult()
    failed_indices: set[int] = set()
    for entry in data.get("errors") or []:
        if not isinstance(entry, Mapping):
            continue
        index = entry.get("failedElementNumber")
        if not isinstance(index, int) or not 0 <= index < submitted:
            continue
        if index in failed_indices:
            continue
        failed_indices.add(index)
        result.failures.append(ElementFailure(batch_index=index, reason=_element_reason(entry)))

    remaining = (i for i in range(submitted) if i not in failed_indices)
    for issue in data.get("issues") or []:
        if not isinstance(issue, Mapping) or not issue.get("key"):
            continue
        index = next(remaining, None)
        if index is None:
            break
        result.created[index] = str(issue["key"])
    result.failures.sort(key=lambda f: f.batch_index)
    return result


def _has_element_errors(payload: Any) -> bool:
    if not isinstance(payload, Mapping):
        return False
    errors = payload.get("errors")
    return isinstance(errors, list) and any(
        isinstance(e, Mapping) and isinstance(e.get("failedElementNumber"), int) for e in errors
    )


async def submit_batch(client: AsyncTrackerClient, payloads: Sequence[IssuePayload]) -> BatchResult:
    """Issue exactly one bulk-create call for ``payloads``.

    Transport-level failures raise :class:`SubmissionError`. A 400 whose body
    carries per-element errors is the tracker rejecting every element, which
    is reported per element rather than as a failed call.
    """
    logger = get_logger()
    if not payloads:
        return BatchResult()
    body = [p.to_json() for p in payloads]
    try:
        data = await client.bulk_create(body)
    except TrackerAPIError as exc:
        if exc.status == HTTP_BAD_REQUEST and _has_element_errors(exc.payload):
            logger.warning("Bulk create rejected every element", status=exc.status)
            return parse_bulk_response(exc.payload, len(payloads))
        raise SubmissionError(f"Bulk issue creation failed: {exc}") from exc
    result = parse_bulk_response(data, len(payloads))
    logger.log_operation(
        "bulk_submitted",
        submitted=len(payloads),
        created_count=len(result.created),
        failed_count=len(result.failures),
    )
    return result


__all__ = ["BatchResult", "ElementFailure", "parse_bulk_response", "submit_batch"]
