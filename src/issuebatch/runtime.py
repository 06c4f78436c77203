"""Runtime helpers for CLI orchestration."""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from typing import Any, Protocol

from .concurrency import AsyncTrackerClient, ConcurrencyConfig
from .config import ImportConfig, load_config_or_default
from .env_auth import TrackerCredentials, credentials_from_config
from .logging import get_logger
from .tracker_rest import TrackerRestClient

MOCK_ENV = "ISSUEBATCH_MOCK"
MOCK_IMPORTER_EMAIL = "importer@example.com"


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def is_mock_mode() -> bool:
    return os.environ.get(MOCK_ENV) == "1"


def prepare_config(
    args: Any, *, loader: Callable[[str], ImportConfig] = load_config_or_default
) -> ImportConfig:
    """Load ImportConfig and apply command-line overrides."""
    cfg = loader(getattr(args, "config"))
    project_id = getattr(args, "project_id", None)
    if project_id:
        cfg.project_id = str(project_id)
    if getattr(args, "json_logs", False):
        cfg.logging_json_enabled = True
    level = getattr(args, "log_level", None)
    if level:
        cfg.logging_level = level
    return cfg


def build_client(cfg: ImportConfig) -> tuple[AsyncTrackerClient, str]:
    """Return an async client plus the importing user's email."""
    concurrency = ConcurrencyConfig(max_workers=cfg.max_workers)
    if is_mock_mode():
        return (
            AsyncTrackerClient(None, concurrency, mock=True),
            cfg.tracker_email or MOCK_IMPORTER_EMAIL,
        )
    creds: TrackerCredentials = credentials_from_config(cfg)
    rest = TrackerRestClient(
        domain=creds.domain,
        email=creds.email,
        api_token=creds.api_token,
        timeout=cfg.tracker_timeout,
    )
    return AsyncTrackerClient(rest, concurrency), creds.email


def execute_command(handler: _HandlerCallable, command: str) -> int:
    """Execute a command handler, logging its duration and exit code."""
    logger = get_logger()
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else 0
    except Exception as exc:
        logger.log_error(f"command {command} failed", error=str(exc), command=command)
        raise
    logger.log_performance(
        "command_complete", (time.monotonic() - start) * 1000, command=command, exit_code=exit_code
    )
    return exit_code


__all__ = ["prepare_config", "build_client", "execute_command", "is_mock_mode", "MOCK_ENV"]
