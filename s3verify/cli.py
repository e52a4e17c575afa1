"""Command-line interface for the S3 compliance verifier.

Provides argument parsing and main entry point for running the suite
from the command line.
"""

import argparse
import dataclasses
import sys
from typing import Optional

from s3verify.cases import CASE_CLASSES, default_cases, select_cases
from s3verify.config import ConfigError, load_config
from s3verify.executor import RequestExecutor, build_http_client
from s3verify.logging_config import configure_logging
from s3verify.reporters import ConsoleReporter, JsonReporter, Reporter
from s3verify.reporters.base import CompositeReporter
from s3verify.runner import DEFAULT_SHARED_OBJECTS, SuiteRunner
from s3verify.s3_client import build_s3_client
from s3verify.trace import TraceObserver


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="s3verify",
        description="Verify an S3-compatible endpoint against S3 API semantics",
    )

    parser.add_argument(
        "-c", "--config",
        default="config.json",
        help="Path to configuration file (default: config.json)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress per-case output, show only summary",
    )

    parser.add_argument(
        "-j", "--json-output",
        metavar="PATH",
        help="Write JSON results to file",
    )

    parser.add_argument(
        "--cases",
        metavar="LIST",
        help="Comma-separated list of case ids to run",
    )

    parser.add_argument(
        "--list-cases",
        action="store_true",
        help="List registered cases and exit",
    )

    parser.add_argument(
        "--workers",
        type=int,
        metavar="N",
        help="Maximum concurrent fixture operations (overrides configuration)",
    )

    parser.add_argument(
        "--objects",
        type=int,
        metavar="N",
        default=DEFAULT_SHARED_OBJECTS,
        help=f"Objects in the shared bucket (default: {DEFAULT_SHARED_OBJECTS})",
    )

    parser.add_argument(
        "--trace",
        action="store_true",
        help="Log every request and response (credentials redacted)",
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: WARNING)",
    )

    parser.add_argument(
        "--log-format",
        default="text",
        choices=["text", "json"],
        help="Log format (default: text)",
    )

    return parser.parse_args(argv)


def create_reporters(args: argparse.Namespace) -> list[Reporter]:
    """Create reporters based on command-line arguments.

    Args:
        args: Parsed command-line arguments

    Returns:
        List of configured reporters
    """
    reporters: list[Reporter] = [ConsoleReporter(quiet=args.quiet)]

    if args.json_output:
        reporters.append(JsonReporter(output_path=args.json_output))

    return reporters


def list_cases() -> None:
    for case_class in CASE_CLASSES:
        print(f"{case_class.case_id:<32} {case_class.description}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 if every case passed, 1 for failures, 2 for errors
    """
    args = parse_args(argv)

    if args.list_cases:
        list_cases()
        return 0

    # --trace needs debug output from the trace logger
    log_level = "DEBUG" if args.trace else args.log_level
    configure_logging(log_level, args.log_format)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.workers is not None:
        if args.workers < 1:
            print("Configuration error: --workers must be at least 1", file=sys.stderr)
            return 2
        config = dataclasses.replace(config, workers=args.workers)

    if args.cases:
        try:
            cases = select_cases(c.strip() for c in args.cases.split(","))
        except ValueError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 2
        if not cases:
            print("No matching cases found", file=sys.stderr)
            return 2
    else:
        cases = default_cases()

    reporters = create_reporters(args)
    if len(reporters) == 1:
        reporter = reporters[0]
    else:
        reporter = CompositeReporter(reporters)

    http_client = build_http_client(config)
    try:
        executor = RequestExecutor(http_client, observer=TraceObserver() if args.trace else None)
        runner = SuiteRunner(
            config,
            cases,
            executor=executor,
            fixture_client=build_s3_client(config),
            reporter=reporter,
            shared_objects=args.objects,
        )
        result = runner.run()
    finally:
        http_client.close()

    return 0 if result.all_passed else 1


if __name__ == "__main__":
    sys.exit(main())
