from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

DEFAULT_STORY_POINTS_FIELD = "customfield_10016"
DEFAULT_EPIC_NAME_FIELD = "customfield_10011"
DEFAULT_CONFIG_PATH = "issuebatch.config.yaml"


class ConfigError(RuntimeError):
    pass


@dataclass
class ImportConfig:
    version: int
    # Tracker connection
    tracker_domain: str | None
    tracker_email: str | None
    tracker_api_token: str | None
    tracker_timeout: float
    # Import defaults
    project_id: str | None
    # Instance-specific custom field keys
    story_points_field: str
    epic_name_field: str
    # Concurrency configuration
    max_workers: int
    # Logging configuration
    logging_json_enabled: bool
    logging_level: str
    # Environment authentication configuration
    env_auth_load_dotenv: bool
    env_auth_dotenv_path: str | None


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        return os.getenv(value[1:])
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def _normalize_domain(domain: Any) -> str | None:
    if domain is None:
        return None
    text = str(domain).strip().rstrip('/')
    if text.startswith(('http://', 'https://')):
        raise ConfigError('Tracker domain must be given without "http://" or "https://"')
    return text or None


def config_from_mapping(raw: dict[str, Any]) -> ImportConfig:
    tracker = _section(raw, 'tracker')
    imp = _section(raw, 'import')
    fields = _section(raw, 'fields')
    concurrency = _section(raw, 'concurrency')
    logging_config = _section(raw, 'logging')
    env_auth = _section(raw, 'environment')

    project_id = imp.get('project_id')
    return ImportConfig(
        version=int(raw.get('version', 1)),
        tracker_domain=_normalize_domain(_resolve_env_var(tracker.get('domain'))),
        tracker_email=_resolve_env_var(tracker.get('email')),
        tracker_api_token=_resolve_env_var(tracker.get('api_token')),
        tracker_timeout=float(tracker.get('timeout', 30)),
        project_id=str(project_id) if project_id is not None else None,
        story_points_field=str(fields.get('story_points') or DEFAULT_STORY_POINTS_FIELD),
        epic_name_field=str(fields.get('epic_name') or DEFAULT_EPIC_NAME_FIELD),
        max_workers=max(1, int(concurrency.get('max_workers', 4))),
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=str(logging_config.get('level', 'INFO')),
        env_auth_load_dotenv=bool(env_auth.get('load_dotenv', True)),
        env_auth_dotenv_path=env_auth.get('dotenv_path'),
    )


def load_config(path: str | Path) -> ImportConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        loaded = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f'Configuration root in {p} must be a mapping')
    return config_from_mapping(cast(dict[str, Any], loaded))


def load_config_or_default(path: str | Path) -> ImportConfig:
    """Load ``path`` if present, otherwise fall back to an all-defaults config.

    Credentials are then expected to come from the environment.
    """
    if Path(path).exists():
        return load_config(path)
    return config_from_mapping({})


__all__ = [
    "ConfigError",
    "ImportConfig",
    "config_from_mapping",
    "load_config",
    "load_config_or_default",
    "DEFAULT_CONFIG_PATH",
]
