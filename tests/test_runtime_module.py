from __future__ import annotations

from types import SimpleNamespace

import pytest

from issuebatch import runtime
from issuebatch.config import ImportConfig, config_from_mapping


def _cfg(**overrides: object) -> ImportConfig:
    raw: dict[str, object] = {
        "tracker": {"domain": "acme.example.net", "email": "me@example.com", "api_token": "tok"},
    }
    raw.update(overrides)
    return config_from_mapping(raw)


def test_prepare_config_requires_config_attribute() -> None:
    args = SimpleNamespace(cmd="import")
    with pytest.raises(AttributeError):
        runtime.prepare_config(args)


def test_prepare_config_applies_overrides() -> None:
    args = SimpleNamespace(
        cmd="import", config="config.yml", project_id="10000", json_logs=True, log_level="DEBUG"
    )

    def loader(path: str) -> ImportConfig:
        assert path == "config.yml"
        return _cfg()

    cfg = runtime.prepare_config(args, loader=loader)
    assert cfg.project_id == "10000"
    assert cfg.logging_json_enabled is True
    assert cfg.logging_level == "DEBUG"


def test_prepare_config_keeps_file_values_without_flags() -> None:
    args = SimpleNamespace(cmd="whoami", config="c.yml")
    cfg = runtime.prepare_config(args, loader=lambda _p: _cfg(**{"import": {"project_id": 7}}))
    assert cfg.project_id == "7"
    assert cfg.logging_level == "INFO"


def test_build_client_in_mock_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(runtime.MOCK_ENV, "1")
    client, email = runtime.build_client(config_from_mapping({}))
    assert client.mock is True
    assert client.rest is None
    assert email == runtime.MOCK_IMPORTER_EMAIL


def test_build_client_uses_configured_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(runtime.MOCK_ENV, raising=False)
    cfg = _cfg(environment={"load_dotenv": False}, concurrency={"max_workers": 2})
    client, email = runtime.build_client(cfg)
    assert email == "me@example.com"
    assert client.rest is not None
    assert client.rest.base_url == "https://acme.example.net/rest/api/3"
    assert client.config.max_workers == 2


def test_execute_command_returns_handler_code() -> None:
    assert runtime.execute_command(lambda: 1, "import") == 1
    assert runtime.execute_command(lambda: None, "import") == 0


def test_execute_command_propagates_exceptions() -> None:
    def boom() -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        runtime.execute_command(boom, "import")
