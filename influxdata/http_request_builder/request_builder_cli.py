"""Command-line front end for building InfluxDB request descriptors."""

import argparse
import json
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from influx_errors import RequestBuildError
from influx_logging import LoggerReporter, configure_logging
from influx_profile import load_config, load_profile
from influx_query import QuerySettings, build_query_request
from influx_write import WriteSettings, build_write_request
from line_protocol import check_line

EXIT_SUCCESS = 0
EXIT_ERROR = 1


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Builds InfluxDB v2/v3 HTTP request descriptors without sending them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  influx-request-builder --token t query --table cpu --time-span 3600
  influx-request-builder --influx-version 3 --token t write lines.lp --tags region=us
  influx-request-builder lint lines.lp
        """,
    )
    parser.add_argument("--host", help="InfluxDB host")
    parser.add_argument("--port", help="InfluxDB HTTP port")
    parser.add_argument("--database", help="Database (v3) or bucket (v2)")
    parser.add_argument("--org", help="Organization (v2 writes)")
    parser.add_argument(
        "--influx-version", dest="version", help="API version: '2.x' or '3'"
    )
    parser.add_argument("--token", help="Authentication token")
    parser.add_argument("--config", help="TOML config file with profile and settings")
    parser.add_argument("--profile", help="Named profile from the config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    query = subparsers.add_parser("query", help="Build a time-windowed query request")
    query.add_argument("--table", help="Table to query")
    query.add_argument("--time-span", dest="time_span", help="Window in seconds")
    query.add_argument("--timeout", help="Timeout in milliseconds")

    write = subparsers.add_parser("write", help="Build a line protocol write request")
    write.add_argument("file", help="File with one line protocol record per line, '-' for stdin")
    write.add_argument("--tags", help="Comma-separated extra tag values")
    write.add_argument("--timeout", help="Timeout in milliseconds")

    lint = subparsers.add_parser("lint", help="Report records the write filter would drop")
    lint.add_argument("file", help="File with one line protocol record per line, '-' for stdin")

    return parser.parse_args(argv)


def _read_lines(path: str) -> List[str]:
    if path == "-":
        return sys.stdin.read().splitlines()
    return Path(path).read_text(encoding="utf-8").splitlines()


def _trigger_args(args: argparse.Namespace) -> Dict[str, Any]:
    trigger_args = {
        key: getattr(args, key)
        for key in ("host", "port", "database", "org", "version", "token", "profile")
        if getattr(args, key) is not None
    }
    if args.config:
        trigger_args["config_file_path"] = str(Path(args.config).resolve())
    return trigger_args


def run_lint(lines: List[str]) -> int:
    invalid = 0
    for number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        result = check_line(line)
        if not result.valid:
            invalid += 1
            print(f"line {number}: {result.reason}: {line}")
    print(f"{invalid} invalid record(s)")
    return EXIT_ERROR if invalid else EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    configure_logging(args.verbose)
    reporter = LoggerReporter()
    task_id = str(uuid.uuid4())[:8]

    try:
        if args.command == "lint":
            return run_lint(_read_lines(args.file))

        config = load_config(reporter, task_id, _trigger_args(args))
        profile = load_profile(config)

        warnings = []
        if args.command == "query":
            message = {"table": args.table, "timeSpan": args.time_span, "timeout": args.timeout}
            descriptor = build_query_request(
                message, profile, QuerySettings.from_mapping(config),
                influxdb3_local=reporter, task_id=task_id,
            )
        else:
            message = {
                "payload": [line for line in _read_lines(args.file) if line.strip()],
                "tags": args.tags,
                "timeout": args.timeout,
            }
            descriptor, warnings = build_write_request(
                message, profile, WriteSettings.from_mapping(config),
                influxdb3_local=reporter, task_id=task_id,
            )
    except RequestBuildError as e:
        print(f"{e.error_type}: {e}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    output = {
        "request": descriptor.to_message(),
        "warnings": [warning.to_dict() for warning in warnings],
    }
    print(json.dumps(output, indent=2))
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
