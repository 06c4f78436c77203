from __future__ import annotations

import json
import os
import subprocess
import sys
import textwrap
from collections.abc import Mapping, Sequence
from pathlib import Path

import pytest

from issuebatch.cli import EXIT_FATAL, EXIT_OK, EXIT_ROW_FAILURES, main

from helpers import csv_bytes, row

ROOT = Path(__file__).resolve().parents[1]

MIN_CONFIG = textwrap.dedent(
    """\
    version: 1
    tracker:
      domain: acme.example.net
      email: importer@example.com
    import:
      project_id: "10000"
    """
)

MIXED_ROWS = [
    row("Valid Story", "Story", assignee="dev@example.com", points="5"),
    row("Invalid", "Bug"),
    row("Orphan", "Sub-task"),
]


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ISSUEBATCH_MOCK", "1")
    monkeypatch.delenv("ISSUEBATCH_QUIET", raising=False)
    (tmp_path / "issuebatch.config.yaml").write_text(MIN_CONFIG)
    return tmp_path


def _run(cmd: Sequence[str], cwd: Path, env: Mapping[str, str] | None = None) -> tuple[int, str]:
    result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, env=env, check=False)
    return result.returncode, result.stdout + result.stderr


def test_import_reports_mixed_outcome(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workdir / "issues.csv").write_bytes(csv_bytes(MIXED_ROWS))
    rc = main(["import", "issues.csv"])
    out = capsys.readouterr().out
    assert rc == EXIT_ROW_FAILURES
    assert "[import] 1 created, 2 failed" in out
    assert "Story, Task, Epic, Sub-task" in out
    assert "Parent Key" in out


def test_import_json_output(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workdir / "issues.csv").write_bytes(csv_bytes([row("A", "Task"), row("B", "Epic")]))
    rc = main(["--quiet", "import", "issues.csv", "--json"])
    data = json.loads(capsys.readouterr().out)
    assert rc == EXIT_OK
    assert data["success"] is True
    assert data["created"] == 2
    assert [r["key"] for r in data["rows"]] == ["MOCK-1", "MOCK-2"]


def test_validate_submits_nothing(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workdir / "issues.csv").write_bytes(csv_bytes(MIXED_ROWS))
    rc = main(["validate", "issues.csv", "--project-id", "20000"])
    out = capsys.readouterr().out
    assert rc == EXIT_ROW_FAILURES
    assert '[validate] create row 1: "Valid Story"' in out
    assert "[validate] 1 valid, 2 skipped" in out


def test_template_written_to_file(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(["template", "--output", "template.csv"])
    assert rc == EXIT_OK
    content = (workdir / "template.csv").read_text(encoding="utf-8")
    lines = content.splitlines()
    assert lines[0] == (
        "Summary,Description,Assignee (Email),Reporter (Email),Issue Type,Story Points,Parent Key"
    )
    assert "PROJ-123" in content
    assert "[template] wrote template.csv" in capsys.readouterr().out


def test_whoami_mock(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["whoami"]) == EXIT_OK
    assert "[whoami] mock mode as importer@example.com" in capsys.readouterr().out


def test_missing_file_is_fatal(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(["import", "nope.csv"])
    assert rc == EXIT_FATAL
    assert "[import]" in capsys.readouterr().err


def test_unparseable_file_is_fatal(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workdir / "empty.csv").write_bytes(b"")
    rc = main(["import", "empty.csv"])
    assert rc == EXIT_FATAL
    assert "parse error" in capsys.readouterr().err


def test_missing_project_id_is_fatal(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workdir / "issuebatch.config.yaml").write_text("version: 1\n")
    (workdir / "issues.csv").write_bytes(csv_bytes([row("A", "Task")]))
    rc = main(["import", "issues.csv"])
    assert rc == EXIT_FATAL
    assert "project id" in capsys.readouterr().err


def test_cli_module_entrypoint(tmp_path: Path) -> None:
    (tmp_path / "issuebatch.config.yaml").write_text(MIN_CONFIG)
    (tmp_path / "issues.csv").write_bytes(csv_bytes([row("From subprocess", "Story")]))
    env = os.environ.copy()
    env["ISSUEBATCH_MOCK"] = "1"
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT / "src"), env.get("PYTHONPATH")]))
    rc, out = _run([sys.executable, "-m", "issuebatch", "import", "issues.csv"], tmp_path, env)
    assert rc == 0, out
    assert "[import] 1 created, 0 failed" in out
