"""
Command-line interface for the MariaDB converter.

    mariadb-converter convert dump.sql [-o out.sql] [--report text|json] [--fail-on error|warning]
    mariadb-converter serve [--host 0.0.0.0] [--port 8000]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import List, Optional

from backend.app.config import config
from backend.app.models.conversion import ConversionResult, IssueType
from backend.app.services.conversion import ConversionEngine
from backend.app.services.upload_service import UploadError, converted_file_name
from mariadbconverter._version import __version__

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mariadb-converter", description="Convert MySQL dumps to MariaDB 10.3 compatible SQL."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser("convert", help="Convert a MySQL dump file.")
    convert.add_argument("input", help="Path to the MySQL .sql dump.")
    convert.add_argument("-o", "--output", help="Output path. Defaults to <base>_mariadb103.sql next to the input.")
    convert.add_argument("--report", choices=["text", "json"], default="text", help="Issue report format.")
    convert.add_argument(
        "--fail-on",
        choices=["error", "warning"],
        help="Exit with status 1 when issues of this severity (or worse) remain.",
    )

    serve = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address.")
    serve.add_argument("--port", type=int, default=8000, help="Bind port.")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "convert":
        raise SystemExit(run_convert(args))
    if args.command == "serve":
        raise SystemExit(run_serve(args))


def run_convert(args: argparse.Namespace) -> int:
    source = Path(args.input)
    if not source.is_file():
        print(f"[error] input file not found: {source}", file=sys.stderr)
        return 2

    try:
        sql_text = read_dump(source)
    except UploadError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 2

    engine = ConversionEngine(config.get_conversion_options())
    result = engine.convert(sql_text)

    target = Path(args.output) if args.output else source.with_name(converted_file_name(source.name))
    target.write_text(result.converted_sql, encoding="utf-8")
    logger.info(f"💾 Wrote {target}")

    if args.report == "json":
        print(render_json_report(result, source, target))
    else:
        print(render_text_report(result, source, target))

    if fails_gate(result, args.fail_on):
        print(f"[gate] issues at or above '{args.fail_on}' severity remain", file=sys.stderr)
        return 1
    return 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("backend.app.main:app", host=args.host, port=args.port, log_level="info")
    return 0


def read_dump(path: Path) -> str:
    payload = path.read_bytes()
    try:
        return payload.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise UploadError(f"{path} is not valid UTF-8 (invalid byte at position {e.start})") from e


def fails_gate(result: ConversionResult, fail_on: Optional[str]) -> bool:
    if fail_on is None:
        return False
    if fail_on == "warning":
        return result.has_errors or result.stats.warnings_count > 0
    return result.has_errors


def render_text_report(result: ConversionResult, source: Path, target: Path) -> str:
    stats = result.stats
    lines = [f"{source} -> {target}"]
    for issue in result.issues:
        if issue.issue_type == IssueType.INFO:
            continue
        line = issue.line_number if issue.line_number is not None else "-"
        lines.append(f"  [{issue.issue_type.value}] {issue.rule_id} line {line}: {issue.description}")
    counts = Counter(issue.category.value for issue in result.issues)
    lines.append(
        f"[summary] issues={stats.total_issues} errors={stats.errors_count} warnings={stats.warnings_count} "
        f"info={stats.optimizations_count} auto_fixed={stats.auto_fixed} "
        f"syntax={counts.get('syntax', 0)} compatibility={counts.get('compatibility', 0)} "
        f"optimization={counts.get('optimization', 0)}"
    )
    return "\n".join(lines)


def render_json_report(result: ConversionResult, source: Path, target: Path) -> str:
    payload = {
        "input": str(source),
        "output": str(target),
        "stats": result.stats.model_dump(mode="json"),
        "issues": [issue.model_dump(mode="json") for issue in result.issues],
    }
    return json.dumps(payload, indent=2)


if __name__ == "__main__":
    main()
