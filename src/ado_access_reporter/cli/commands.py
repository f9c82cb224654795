r"""Command-line interface for access reporting.

This module provides the command-line interface for the access reporter. It
handles argument parsing, configuration loading, logging setup and execution
coordination for producing access reports from the command line.

Key Components:
    parse_args: Handles CLI argument parsing and validation
    create_config: Builds a ReportConfig from a YAML file and CLI overrides
    create_view_mode: Converts string to ViewMode enum
    run: Orchestrates report collection and output
    main: Entry point for CLI execution

Output Formats:
    - plain: Simple text output suitable for logs and terminals
    - rich: Colorized output with tables
    - json: JSON snapshot for programmatic consumption
    - markdown: Markdown report for wikis and documentation

CLI Usage:
    ```bash
    # Report on every project of an organization
    $ ado-access-reporter --organization myorg --token mytoken

    # Report on specific projects and groups
    $ ado-access-reporter --organization myorg \
        --project Slim Fat \
        --group "Project Administrators" "Build Administrators"

    # Markdown report and JSON snapshot at once
    $ ado-access-reporter --organization myorg --output-format markdown json

    # Fail instead of reporting partial data
    $ ado-access-reporter --organization myorg \
        --pagination-policy strict --fail-fast

    # Read settings from a YAML file and use the legacy endpoints
    $ ado-access-reporter --organization myorg --config report.yml --legacy-url -vv
    ```

Raises:
    AuthenticationError: When Azure DevOps authentication fails
    InvalidConfigError: When configuration values are invalid
    InvalidViewModeError: When an invalid view mode is specified
"""

import argparse
import dataclasses
import logging
import os
import sys

from ado_access_reporter import __version__
from ado_access_reporter.core.client import AzureDevOpsClient
from ado_access_reporter.core.exceptions import ADOAccessReporterError
from ado_access_reporter.core.models import PaginationPolicy, ReportConfig, ViewMode
from ado_access_reporter.core.reporter import AccessReporter

from .printer import (
    ReportJSONPrinter,
    ReportMarkdownPrinter,
    ReportPlainPrinter,
    ReportRichPrinter,
)

PRINTERS = {
    "plain": ReportPlainPrinter,
    "rich": ReportRichPrinter,
    "json": ReportJSONPrinter,
    "markdown": ReportMarkdownPrinter,
}
FILE_EXTENSIONS = {"json": "json", "markdown": "md"}
DEFAULT_REPORT_NAME = "access-report"


def create_config(args: argparse.Namespace) -> ReportConfig:
    """Creates a ReportConfig from an optional YAML file overridden by CLI arguments."""
    if args.config:
        config = ReportConfig.from_yaml(args.config, organization=args.organization)
    else:
        config = ReportConfig(organization=args.organization)

    overrides = {}
    if args.project:
        overrides["projects"] = tuple(args.project)
    if args.group:
        overrides["groups"] = tuple(args.group)
    if args.pagination_policy:
        overrides["pagination_policy"] = PaginationPolicy.from_string(args.pagination_policy)
    if args.max_pages is not None:
        overrides["max_pages"] = args.max_pages
    if args.retries is not None:
        overrides["retry_attempts"] = args.retries
    if args.retry_delay is not None:
        overrides["retry_delay"] = args.retry_delay
    if args.timeout is not None:
        overrides["request_timeout"] = args.timeout
    if args.fail_fast:
        overrides["skip_failed_subtrees"] = False
    if args.skip_repositories:
        overrides["include_repositories"] = False
    if args.skip_users:
        overrides["include_users"] = False
    if args.legacy_url:
        overrides["use_legacy_url"] = True

    return dataclasses.replace(config, **overrides)


def create_view_mode(view: str) -> ViewMode:
    """Creates a ViewMode from CLI arguments."""
    return ViewMode.from_string(view)


def resolve_output_file(output_format: str, output_formats: list[str], output_file: str | None) -> str | None:
    """
    Determine where a format is written.

    With a single format the requested output file is honored. With several
    formats plain/rich go to stdout and json/markdown to access-report.[json|md].
    """
    if len(output_formats) == 1 and output_file:
        return output_file
    extension = FILE_EXTENSIONS.get(output_format)
    return f"{DEFAULT_REPORT_NAME}.{extension}" if extension else None


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Report Azure DevOps group membership and usage",
    )

    # Azure DevOps connection
    parser.add_argument(
        "--organization",
        required=True,
        help="Azure DevOps organization name",
    )
    parser.add_argument("--token", help="Azure DevOps PAT token")
    parser.add_argument(
        "--legacy-url",
        action="store_true",
        help="Use the {organization}.visualstudio.com endpoints",
    )
    parser.add_argument("--config", help="YAML file with report settings")

    # Scope configuration
    scope_group = parser.add_argument_group("scope", "What to report on")
    scope_group.add_argument(
        "--project",
        nargs="+",
        help="Project names to report on (not setting will report on all projects in the organization)",
    )
    scope_group.add_argument(
        "--group",
        nargs="+",
        help="Group names counted in every project (default: Project Administrators, Build Administrators, "
        "Contributors, Readers)",
    )
    scope_group.add_argument(
        "--skip-repositories",
        action="store_true",
        help="Do not count repositories per project",
    )
    scope_group.add_argument(
        "--skip-users",
        action="store_true",
        help="Do not count users in the organization",
    )

    # Fetch configuration
    fetch_group = parser.add_argument_group("fetch", "Pagination and retry configuration")
    fetch_group.add_argument(
        "--pagination-policy",
        choices=["lenient", "strict"],
        default=None,
        help="Handling of a failed page after the first one: keep partial data or fail (default: lenient)",
    )
    fetch_group.add_argument("--max-pages", type=int, default=None, help="Maximum pages per endpoint (default: 10)")
    fetch_group.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Attempts per membership or subject lookup (default: 3)",
    )
    fetch_group.add_argument(
        "--retry-delay",
        type=float,
        default=None,
        help="Seconds between lookup attempts (default: 1)",
    )
    fetch_group.add_argument("--timeout", type=float, default=None, help="Request read timeout in seconds (default: 30)")
    fetch_group.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort when a group cannot be resolved instead of skipping it",
    )

    # Output configuration
    output_group = parser.add_argument_group("output", "Output configuration")
    output_group.add_argument(
        "--output-format",
        choices=list(PRINTERS),
        nargs="+",
        default=["rich"],
        help="Output format(s) for results (default: rich). Multiple formats can be specified.",
    )
    output_group.add_argument(
        "--output-file",
        default=None,
        help="Output file (only used when a single output format is specified). When multiple formats are requested, "
        "plain/rich go to standard output and access-report.[json|md] files are created for file-based formats.",
    )
    output_group.add_argument(
        "--output-view",
        choices=[mode.value for mode in ViewMode],
        default="projects",
        help="Output view to display (default: projects)",
    )

    # Add verbosity control
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress all non-essential output",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Increase verbosity (can be used multiple times)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"{__version__}",
        help="Show the version of the ado-access-reporter",
    )

    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> None:
    """Run the access reporter with CLI arguments."""
    config = create_config(args)
    view_mode = create_view_mode(args.output_view)

    with AzureDevOpsClient(
        organization=config.organization,
        token=args.token,
        pagination_policy=config.pagination_policy,
        max_pages=config.max_pages,
        timeout=config.request_timeout,
        use_legacy_url=config.use_legacy_url,
    ) as client:
        report = AccessReporter(client=client, config=config).collect()

    for output_format in args.output_format:
        printer_cls = PRINTERS.get(output_format)
        if printer_cls is None:
            error_message = f"Invalid output format: {output_format}. Must be one of: {', '.join(PRINTERS)}"
            raise ValueError(error_message)

        output_file = resolve_output_file(output_format, args.output_format, args.output_file)
        printer_cls(report).print(view_mode=view_mode, output_file=output_file)

    if not report.is_complete:
        logging.warning("cli: report for '%s' is a best-effort snapshot", report.name)


def configure_logging(args: argparse.Namespace) -> None:
    """Configure logging from -q/-v or the ADO_ACCESS_REPORTER_LOG_LEVEL environment variable."""
    if getattr(args, "quiet", False):
        log_level = logging.CRITICAL
    elif getattr(args, "verbose", 0) > 0:
        # Map verbosity count to log levels
        log_level = {
            1: logging.WARNING,
            2: logging.INFO,
            3: logging.DEBUG,
        }.get(min(args.verbose, 3), logging.DEBUG)
    else:
        env_level = os.environ.get("ADO_ACCESS_REPORTER_LOG_LEVEL", "ERROR").upper()
        log_level = getattr(logging, env_level, logging.ERROR)

    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    # Suppress third-party loggers
    logging.getLogger("azure").setLevel(logging.ERROR)
    logging.getLogger("urllib3").setLevel(logging.ERROR)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = parse_args(argv)
    configure_logging(args)

    try:
        run(args)
    except ADOAccessReporterError as e:
        logging.critical("cli: %s", e)
        sys.exit(1)
