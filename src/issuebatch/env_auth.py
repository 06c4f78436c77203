"""Environment-based credentials for the tracker REST API.

Values from the YAML config win; anything missing is filled from the
environment, optionally after loading a ``.env`` file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .config import ImportConfig
from .logging import get_logger

_ALTERNATIVES: dict[str, tuple[str, ...]] = {
    "TRACKER_DOMAIN": ("JIRA_DOMAIN",),
    "TRACKER_EMAIL": ("JIRA_EMAIL",),
    "TRACKER_API_TOKEN": ("JIRA_API_TOKEN",),
}


class MissingCredentialsError(RuntimeError):
    def __init__(self, missing: list[str]):
        super().__init__(
            "Missing tracker credentials: "
            + ", ".join(missing)
            + ". Set them in the config file, the environment or a .env file."
        )
        self.missing = missing


@dataclass
class EnvAuthConfig:
    load_dotenv: bool = True
    dotenv_path: str | None = None
    domain_var: str = "TRACKER_DOMAIN"
    email_var: str = "TRACKER_EMAIL"
    api_token_var: str = "TRACKER_API_TOKEN"


@dataclass(frozen=True)
class TrackerCredentials:
    domain: str
    email: str
    api_token: str


class EnvironmentAuthManager:
    """Reads tracker credentials from environment variables and .env files."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    def _load_dotenv(self) -> None:
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else ['.env', '.env.local']
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                load_dotenv(str(env_path))
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                break

    def _lookup(self, var: str) -> str | None:
        value = os.getenv(var)
        if value:
            return value.strip()
        for alt_var in _ALTERNATIVES.get(var, ()):
            value = os.getenv(alt_var)
            if value:
                self.logger.debug(f"Found {var} in {alt_var}")
                return value.strip()
        return None

    def resolve(
        self,
        domain: str | None = None,
        email: str | None = None,
        api_token: str | None = None,
    ) -> TrackerCredentials:
        values = {
            self.config.domain_var: domain or self._lookup(self.config.domain_var),
            self.config.email_var: email or self._lookup(self.config.email_var),
            self.config.api_token_var: api_token or self._lookup(self.config.api_token_var),
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise MissingCredentialsError(missing)
        resolved_domain = str(values[self.config.domain_var])
        for prefix in ('https://', 'http://'):
            if resolved_domain.startswith(prefix):
                resolved_domain = resolved_domain[len(prefix):]
        return TrackerCredentials(
            domain=resolved_domain.rstrip('/'),
            email=str(values[self.config.email_var]),
            api_token=str(values[self.config.api_token_var]),
        )


def credentials_from_config(cfg: ImportConfig) -> TrackerCredentials:
    manager = EnvironmentAuthManager(
        EnvAuthConfig(load_dotenv=cfg.env_auth_load_dotenv, dotenv_path=cfg.env_auth_dotenv_path)
    )
    return manager.resolve(cfg.tracker_domain, cfg.tracker_email, cfg.tracker_api_token)


__all__ = [
    "EnvAuthConfig",
    "EnvironmentAuthManager",
    "MissingCredentialsError",
    "TrackerCredentials",
    "credentials_from_config",
]
