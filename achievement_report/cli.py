from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from achievement_report import __version__ as TOOL_VERSION
from achievement_report.assembler import ReportResult, build_report
from achievement_report.contracts import build_contract_document, build_run_summary
from achievement_report.errors import PayloadError, TemplateFetchError, TemplateFormatError
from achievement_report.keys import normalize_key
from achievement_report.matcher import resolve_item_row
from achievement_report.payloads import load_payload
from achievement_report.schema import (
    SheetContext,
    build_sheet_context,
    cell_text,
    describe_sheet_context,
    find_cumulative_sheet_name,
)
from achievement_report.templates import (
    discover_templates,
    fetch_template_bytes,
    load_template_workbook,
    template_name_from_url,
)
from achievement_report.tokens import tokenize_item_name

TOOL_NAME = "achievement-report"
OUTPUT_STAMP_ENV_VAR = "ACHIEVEMENT_REPORT_OUTPUT_STAMP"

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_SKIPPED_RECORDS = 3


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class AchievementReportArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def configure_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True, default=str)


def timestamp_token() -> str:
    override = os.environ.get(OUTPUT_STAMP_ENV_VAR)
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(template_name: str) -> Path:
    return Path.cwd() / "achievement-report-output" / f"{Path(template_name).stem}-{timestamp_token()}"


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_bytes(path: Path, payload: bytes) -> None:
    ensure_parent(path)
    path.write_bytes(payload)


def write_json(path: Path, payload: Any) -> None:
    ensure_parent(path)
    path.write_text(json_dumps(payload), encoding="utf-8")


def safe_output_path(path: Path) -> Path:
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (TemplateFetchError, TemplateFormatError, PayloadError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def render_build_text(result: ReportResult, output_path: Path | None) -> str:
    summary = result.summary
    lines = [
        "achievement-report build",
        f"Template: {summary.template_name}",
        f"Period: {summary.start_date or '-'} to {summary.end_date or '-'}",
        f"Records: {summary.record_count}",
        f"Cells filled: {summary.filled_cells}",
        f"Sheets updated: {summary.sheets_updated}",
        f"Skipped records: {summary.skipped_records}",
    ]
    if output_path is not None:
        lines.append(f"Workbook: {output_path}")
    return "\n".join(lines) + "\n"


def render_schema_text(template_name: str, schemas: list[dict[str, Any]]) -> str:
    lines = ["achievement-report inspect", f"Template: {template_name}"]
    for schema in schemas:
        lines.append(
            f"Sheet {schema['sheet_name']}: header row {schema['header_row']}, "
            f"item column {schema['item_column']}, {schema['item_rows']} item rows, "
            f"{schema['serial_rows']} serial rows"
        )
        for column in schema["territory_columns"]:
            marker = " (total)" if column["total"] else ""
            lines.append(f"- column {column['column']}: {column['header']}{marker} -> {', '.join(column['keys'])}")
    return "\n".join(lines) + "\n"


def build_parser() -> argparse.ArgumentParser:
    parser = AchievementReportArgumentParser(
        prog=TOOL_NAME,
        description="Fill achievement report templates from backend payloads.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Fill a template with a saved payload.")
    build.add_argument("template", help="Template URL or path (.xlsx)")
    build.add_argument("payload", help="Payload file (.json, .jsonl, .csv, .tsv)")
    build.add_argument("--start", dest="start_date", help="Report start date label")
    build.add_argument("--end", dest="end_date", help="Report end date label")
    build.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    build.add_argument("--output", help="Explicit workbook output path")
    build.add_argument("--summary", dest="summary_path", help="Explicit JSON summary output path")
    build.add_argument("--timeout", type=float, help="Template download timeout in seconds")
    build.add_argument("--dry-run", action="store_true", help="Build without writing outputs")
    build.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    build.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    build.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    inspect = subparsers.add_parser("inspect", help="Show the schema detected on template sheets.")
    inspect.add_argument("template", help="Template URL or path (.xlsx)")
    inspect.add_argument("--sheet", dest="sheet_name", help="Only inspect this sheet")
    inspect.add_argument("--timeout", type=float, help="Template download timeout in seconds")
    inspect.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    inspect.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    match = subparsers.add_parser("match", help="Show which template row an item description resolves to.")
    match.add_argument("template", help="Template URL or path (.xlsx)")
    match.add_argument("label", help="Item description to resolve")
    match.add_argument("--sheet", dest="sheet_name", help="Sheet to match against (default: cumulative sheet)")
    match.add_argument("--timeout", type=float, help="Template download timeout in seconds")
    match.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    templates = subparsers.add_parser("templates", help="List templates under a directory.")
    templates.add_argument("root", help="Template directory")
    templates.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    subparsers.add_parser("version", help="Print version")
    return parser


def load_workbook_for(locator: str, timeout: float | None):
    return load_template_workbook(fetch_template_bytes(locator, timeout=timeout))


def run_build(args: argparse.Namespace) -> int:
    payload_path = Path(args.payload)
    if not payload_path.exists():
        eprint(f"File not found: {payload_path}")
        return EXIT_COMMAND_ERROR

    try:
        loaded = load_payload(payload_path)
        for warning in loaded["warnings"]:
            emit_human(f"Warning: {warning}", quiet=args.quiet)
        result = build_report(
            args.template,
            loaded["payload"],
            args.start_date,
            args.end_date,
            timeout=args.timeout,
        )

        if args.out_dir:
            out_dir = Path(args.out_dir)
        elif args.output:
            out_dir = Path(args.output).parent
        else:
            out_dir = default_output_dir(result.summary.template_name)
        output_path = Path(args.output) if args.output else out_dir / result.file_name
        summary_path = Path(args.summary_path) if args.summary_path else out_dir / "summary.json"
        if not args.dry_run:
            output_path = safe_output_path(output_path)
            summary_path = safe_output_path(summary_path)

        document = build_contract_document(
            "achievement_report.summary",
            {"file_name": result.file_name, "summary": result.summary.to_dict()},
            build_run_summary(
                tool=TOOL_NAME,
                command="build",
                template=args.template,
                payload_path=payload_path,
                output_path=None if args.dry_run else output_path,
                metrics=result.summary.to_dict(),
                warnings=loaded["warnings"],
            ),
        )
        if not args.dry_run:
            write_bytes(output_path, result.workbook_bytes)
            try:
                write_json(summary_path, document)
            except OSError:
                # no workbook is left without its summary
                output_path.unlink(missing_ok=True)
                raise

        if args.json:
            print(json_dumps(document))
        else:
            emit_human(render_build_text(result, None if args.dry_run else output_path).rstrip(), quiet=args.quiet)
            if not args.dry_run:
                emit_human(f"Summary: {summary_path}", quiet=args.quiet)
        return EXIT_SKIPPED_RECORDS if result.summary.skipped_records > 0 else EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_inspect(args: argparse.Namespace) -> int:
    try:
        workbook = load_workbook_for(args.template, args.timeout)
        if args.sheet_name and args.sheet_name not in workbook.sheetnames:
            raise CliError(f"Sheet not found: {args.sheet_name}", EXIT_COMMAND_ERROR)
        names = [args.sheet_name] if args.sheet_name else workbook.sheetnames
        schemas = []
        for name in names:
            context = build_sheet_context(workbook, name)
            if context is not None:
                schemas.append(describe_sheet_context(context))
        if not schemas:
            raise TemplateFormatError("Template format not recognized.")

        template_name = template_name_from_url(args.template)
        if args.json:
            document = build_contract_document(
                "achievement_report.schema",
                {
                    "cumulative_sheet": find_cumulative_sheet_name(workbook),
                    "sheets": schemas,
                },
                build_run_summary(
                    tool=TOOL_NAME,
                    command="inspect",
                    template=args.template,
                    metrics={"sheets_total": len(names), "sheets_recognized": len(schemas)},
                ),
            )
            print(json_dumps(document))
        else:
            print(render_schema_text(template_name, schemas).rstrip())
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def match_context(workbook, sheet_name: str | None) -> SheetContext:
    if sheet_name:
        if sheet_name not in workbook.sheetnames:
            raise CliError(f"Sheet not found: {sheet_name}", EXIT_COMMAND_ERROR)
        context = build_sheet_context(workbook, sheet_name)
    else:
        context = build_sheet_context(workbook, find_cumulative_sheet_name(workbook)) or build_sheet_context(
            workbook, workbook.sheetnames[0]
        )
    if context is None:
        raise TemplateFormatError("Template format not recognized.")
    return context


def run_match(args: argparse.Namespace) -> int:
    try:
        context = match_context(load_workbook_for(args.template, args.timeout), args.sheet_name)
        row = resolve_item_row(context, normalize_key(args.label) or None, args.label)
        payload = {
            "label": args.label,
            "sheet_name": context.sheet_name,
            "tokens": tokenize_item_name(args.label),
            "row": row,
            "matched_label": cell_text(context.worksheet, row, context.item_column) if row is not None else None,
        }
        if args.json:
            print(json_dumps(payload))
        else:
            print(
                "\n".join(
                    [
                        f"Label: {payload['label']}",
                        f"Sheet: {payload['sheet_name']}",
                        f"Tokens: {', '.join(payload['tokens']) or '[none]'}",
                        f"Row: {row if row is not None else 'no match'}",
                        f"Template item: {payload['matched_label'] or '-'}",
                    ]
                )
            )
        return EXIT_SUCCESS if row is not None else EXIT_SKIPPED_RECORDS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_templates(args: argparse.Namespace) -> int:
    root = Path(args.root)
    if not root.is_dir():
        eprint(f"Template directory not found: {root}")
        return EXIT_COMMAND_ERROR
    groups = discover_templates(root)
    if args.json:
        print(json_dumps([asdict(group) for group in groups]))
        return EXIT_SUCCESS
    if not groups:
        print("No templates found")
        return EXIT_SUCCESS
    lines = []
    for group in groups:
        lines.append(f"{group.category}:")
        lines.extend(f"- {option.label}: {option.value}" for option in group.options)
    print("\n".join(lines))
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(verbose=getattr(args, "verbose", False), quiet=getattr(args, "quiet", False))
        if args.command == "build":
            return run_build(args)
        if args.command == "inspect":
            return run_inspect(args)
        if args.command == "match":
            return run_match(args)
        if args.command == "templates":
            return run_templates(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
