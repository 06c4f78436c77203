"""issuebatch - bulk issue import for a REST issue tracker.

High-level public API:

from issuebatch import BulkImporter, AsyncTrackerClient, TrackerRestClient

rest = TrackerRestClient(domain='acme.atlassian.net', email=..., api_token=...)
async with AsyncTrackerClient(rest) as client:
    report = await BulkImporter(client, importer_email=...).run(data, project_id='10000')
print(report.message())

The CLI (``issuebatch import``) delegates to this library.
"""

from __future__ import annotations

from .concurrency import AsyncTrackerClient, ConcurrencyConfig
from .config import ImportConfig, load_config
from .errors import (
    ConfigFetchError,
    ImportCancelled,
    ImportFailure,
    ParseError,
    SubmissionError,
    UserLookupError,
)
from .importer import BulkImporter, ImportPlan, import_file
from .models import (
    Created,
    Failed,
    ImportReport,
    IssuePayload,
    IssueTypeDescriptor,
    ResolvedUser,
    RowRecord,
    Skipped,
    Submitted,
)
from .payloads import FieldKeys
from .tracker_rest import TrackerAPIError, TrackerRestClient

__version__ = "0.2.0"

__all__ = [
    "AsyncTrackerClient",
    "BulkImporter",
    "ConcurrencyConfig",
    "ConfigFetchError",
    "Created",
    "Failed",
    "FieldKeys",
    "ImportCancelled",
    "ImportConfig",
    "ImportFailure",
    "ImportPlan",
    "ImportReport",
    "IssuePayload",
    "IssueTypeDescriptor",
    "ParseError",
    "ResolvedUser",
    "RowRecord",
    "Skipped",
    "SubmissionError",
    "Submitted",
    "TrackerAPIError",
    "TrackerRestClient",
    "UserLookupError",
    "import_file",
    "load_config",
    "__version__",
]
