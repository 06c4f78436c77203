"""Pytest configuration for issuebatch tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install, forces mock mode so no test talks to a
real tracker. Test doubles live in ``helpers.py``.
"""

from __future__ import annotations

import os
import sys
import time
from collections.abc import Iterator
from pathlib import Path

import pytest

_TEST_START_TIMES: dict[str, float] = {}
_TEST_DURATIONS: list[tuple[str, float]] = []

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Force mock mode for the entire test session so the CLI never reaches the network
os.environ.setdefault("ISSUEBATCH_MOCK", "1")

from issuebatch import logging as issuebatch_logging  # noqa: E402
from issuebatch.tracker_rest import TrackerAPIError  # noqa: E402

from helpers import FakeTracker  # noqa: E402


@pytest.fixture
def fake_tracker() -> FakeTracker:
    return FakeTracker(users={"dev@example.com": "acc-dev", "me@example.com": "acc-me"})


@pytest.fixture
def api_error() -> TrackerAPIError:
    return TrackerAPIError("Tracker API failed with 500", status=500)


@pytest.fixture(autouse=True)
def _reset_global_logger() -> Iterator[None]:
    issuebatch_logging._GLOBAL = None
    yield
    issuebatch_logging._GLOBAL = None


# --- Timing utilities to help identify slow/stalling tests ---


def pytest_runtest_setup(item):  # type: ignore
    _TEST_START_TIMES[item.nodeid] = time.perf_counter()


def pytest_runtest_teardown(item):  # type: ignore
    start = _TEST_START_TIMES.pop(item.nodeid, None)
    if start is not None:
        _TEST_DURATIONS.append((item.nodeid, time.perf_counter() - start))


def pytest_sessionfinish(session, exitstatus):  # type: ignore
    if not _TEST_DURATIONS:
        return
    slow = sorted(_TEST_DURATIONS, key=lambda x: x[1], reverse=True)[:10]
    print("\n=== Slowest Tests (top 10) ===")
    for nodeid, secs in slow:
        print(f"{secs:0.3f}s  {nodeid}")
