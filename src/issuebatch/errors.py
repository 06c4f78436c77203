"""Error taxonomy & redaction for the import pipeline.

Fatal conditions are raised as subclasses of :class:`ImportFailure` and abort
the whole import with a single reason. Row-local problems are never raised;
they travel as ``Skipped`` / ``Failed`` outcomes inside the report.

Public API:
- ParseError / ConfigFetchError / UserLookupError / SubmissionError / ImportCancelled
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ATATT[A-Za-z0-9_\-=]{20,}"),  # Atlassian API tokens
    re.compile(r"(?i)(authorization:\s*basic\s+)[A-Za-z0-9+/=]+"),
    re.compile(r"(?i)(api[_-]?token[\"']?\s*[:=]\s*[\"']?)[^\s\"',]+"),
]

_REDACTION_PLACEHOLDER = "<redacted>"

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403


class ImportFailure(RuntimeError):
    """Base class for conditions that abort an entire import."""


class ParseError(ImportFailure):
    """The uploaded file is empty, malformed or has no header row."""


class ConfigFetchError(ImportFailure):
    """The project's issue-type schema could not be retrieved."""


class UserLookupError(ImportFailure):
    """A user search call failed at the transport level."""


class SubmissionError(ImportFailure):
    """The bulk-create call itself failed; no issues were created."""


class ImportCancelled(ImportFailure):
    """Cancellation was observed before the submission stage started."""


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Mask API tokens and Basic credentials in arbitrary text."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        if pat.groups:
            redacted = pat.sub(lambda m: m.group(1) + _REDACTION_PLACEHOLDER, redacted)
        else:
            redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def _status_of(exc: BaseException) -> int | None:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        status = getattr(current, "status", None)
        if isinstance(status, int):
            return status
        current = current.__cause__
    return None


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - ParseError -> 'parse'
    - 401/403 anywhere in the cause chain -> 'auth'
    - ConfigFetchError -> 'config'
    - SubmissionError -> 'submission'
    - timeouts / connection errors -> 'network', transient True
    - fallback -> 'generic'
    """
    msg = redact(str(exc) if exc else "")
    low = msg.lower()
    name = exc.__class__.__name__

    if isinstance(exc, ParseError):
        return ErrorInfo("parse", msg, name)
    status = _status_of(exc)
    if status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
        return ErrorInfo("auth", msg, name, details={"status": status})
    if any(k in low for k in ("timeout", "timed out", "connection reset", "connection refused")):
        return ErrorInfo("network", msg, name, transient=True)
    if isinstance(exc, ConfigFetchError):
        return ErrorInfo("config", msg, name)
    if isinstance(exc, SubmissionError):
        return ErrorInfo("submission", msg, name)
    return ErrorInfo("generic", msg, name)


__all__ = [
    "ImportFailure",
    "ParseError",
    "ConfigFetchError",
    "UserLookupError",
    "SubmissionError",
    "ImportCancelled",
    "ErrorInfo",
    "classify_error",
    "redact",
]
