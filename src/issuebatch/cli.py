"""issuebatch CLI.

Subcommands:
  import    -> create issues in bulk from a CSV/XLSX file
  validate  -> dry run: resolve and validate every row, submit nothing
  template  -> write a project-specific CSV template
  whoami    -> check tracker credentials
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from .config import DEFAULT_CONFIG_PATH, ConfigError, ImportConfig
from .env_auth import MissingCredentialsError
from .errors import ImportFailure, classify_error, redact
from .importer import BulkImporter
from .logging import configure_logging
from .models import Skipped
from .payloads import FieldKeys
from .runtime import build_client, execute_command, prepare_config
from .schema_resolver import resolve_schema
from .template import render_template
from .tracker_rest import TrackerAPIError

EXIT_OK = 0
EXIT_ROW_FAILURES = 1
EXIT_FATAL = 2

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _add_common(p: argparse.ArgumentParser, *, project: bool = True) -> None:
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    if project:
        p.add_argument("--project-id", help="Target project id (overrides config)")


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(prog="issuebatch", description="Bulk issue import for the tracker")
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational logging (env: ISSUEBATCH_QUIET=1)",
    )
    p.add_argument("--json-logs", action="store_true", help="Emit structured JSON log lines")
    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    imp = sub.add_parser("import", help="Create issues in bulk from a spreadsheet")
    imp.add_argument("file", type=Path)
    _add_common(imp)
    imp.add_argument("--format", choices=["csv", "xlsx"], help="Override format sniffing")
    imp.add_argument("--json", action="store_true", help="Print the report as JSON")

    val = sub.add_parser("validate", help="Validate a spreadsheet without creating issues")
    val.add_argument("file", type=Path)
    _add_common(val)
    val.add_argument("--format", choices=["csv", "xlsx"], help="Override format sniffing")

    tpl = sub.add_parser("template", help="Write a project-specific CSV template")
    _add_common(tpl)
    tpl.add_argument("--output", type=Path, help="Destination file (default: stdout)")

    who = sub.add_parser("whoami", help="Check tracker credentials")
    _add_common(who, project=False)
    return p


class _QuietLogs:
    """Context manager to silence the 'issuebatch' logger for machine-readable output."""

    def __enter__(self) -> _QuietLogs:  # noqa: D401
        self._logger = logging.getLogger("issuebatch")
        self._prev_level = self._logger.level
        self._logger.setLevel(logging.CRITICAL + 10)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: Any | None,
    ) -> None:  # noqa: D401
        self._logger.setLevel(self._prev_level)


def _require_project(cfg: ImportConfig) -> str:
    if not cfg.project_id:
        raise ConfigError("No project id given; pass --project-id or set import.project_id")
    return cfg.project_id


def _field_keys(cfg: ImportConfig) -> FieldKeys:
    return FieldKeys(story_points=cfg.story_points_field, epic_name=cfg.epic_name_field)


def _cmd_import(cfg: ImportConfig, args: argparse.Namespace) -> int:
    project_id = _require_project(cfg)
    data = args.file.read_bytes()
    client, importer_email = build_client(cfg)

    async def _run() -> Any:
        async with client:
            importer = BulkImporter(client, importer_email, _field_keys(cfg))
            return await importer.run(
                data, project_id, file_format=args.format, filename=args.file.name
            )

    if args.json:
        with _QuietLogs():
            report = asyncio.run(_run())
        print(json.dumps(report.to_dict(), indent=2))
    else:
        report = asyncio.run(_run())
        print(f"[import] {report.created_count} created, {report.failed_count} failed")
        print(f"[import] {report.message()}")
    return EXIT_OK if report.success else EXIT_ROW_FAILURES


def _cmd_validate(cfg: ImportConfig, args: argparse.Namespace) -> int:
    project_id = _require_project(cfg)
    data = args.file.read_bytes()
    client, importer_email = build_client(cfg)

    async def _run() -> Any:
        async with client:
            importer = BulkImporter(client, importer_email, _field_keys(cfg))
            return await importer.dry_run(
                data, project_id, file_format=args.format, filename=args.file.name
            )

    plan = asyncio.run(_run())
    for outcome in plan.outcomes():
        if isinstance(outcome, Skipped):
            print(f"[validate] skip   {outcome.reason}")
        else:
            print(f'[validate] create row {outcome.row_number}: "{outcome.payload.summary}"')
    print(f"[validate] {len(plan.submitted)} valid, {len(plan.skipped)} skipped")
    return EXIT_OK if not plan.skipped else EXIT_ROW_FAILURES


def _cmd_template(cfg: ImportConfig, args: argparse.Namespace) -> int:
    project_id = _require_project(cfg)
    client, _ = build_client(cfg)

    async def _run() -> Any:
        async with client:
            return await resolve_schema(client, project_id)

    schema = asyncio.run(_run())
    content = render_template(schema.types)
    if args.output:
        args.output.write_text(content, encoding="utf-8", newline="")
        print(f"[template] wrote {args.output}")
    else:
        sys.stdout.write(content)
    return EXIT_OK


def _cmd_whoami(cfg: ImportConfig, args: argparse.Namespace) -> int:
    client, email = build_client(cfg)
    if client.rest is None:
        print(f"[whoami] mock mode as {email}")
        return EXIT_OK
    me = client.rest.myself()
    print(f"[whoami] {me.get('displayName', '?')} <{me.get('emailAddress', email)}>")
    return EXIT_OK


def _build_handlers(args: argparse.Namespace, cfg: ImportConfig) -> dict[str, Any]:
    return {
        "import": lambda: _cmd_import(cfg, args),
        "validate": lambda: _cmd_validate(cfg, args),
        "template": lambda: _cmd_template(cfg, args),
        "whoami": lambda: _cmd_whoami(cfg, args),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.quiet and os.environ.get("ISSUEBATCH_QUIET") == "1":
        args.quiet = True
    try:
        cfg = prepare_config(args)
    except ConfigError as exc:
        print(f"[config] {exc}", file=sys.stderr)
        return EXIT_FATAL
    configure_logging(
        json_logging=cfg.logging_json_enabled,
        level="ERROR" if args.quiet else cfg.logging_level,
    )
    handler = _build_handlers(args, cfg).get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return EXIT_FATAL
    try:
        return execute_command(handler, args.cmd)
    except (ImportFailure, TrackerAPIError, ConfigError, MissingCredentialsError, OSError) as exc:
        info = classify_error(exc)
        print(f"[{args.cmd}] {info.category} error: {redact(str(exc))}", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
