"""Command line interface for access reporting.

This subpackage provides the command-line interface components for access
reporting, including argument parsing, printer implementations, and execution
coordination.

Modules:
    commands: CLI argument parsing and execution
    printer: Output formatting and display

Components:
    Command-line Processing:
        parse_args: Command-line arguments parser
        create_config: Builds a ReportConfig from a YAML file and CLI overrides
        create_view_mode: Converts string to ViewMode enum
        configure_logging: Sets the log level from -q/-v or the environment
        run: Function to collect and print a report with parsed arguments
        main: CLI entry point function

    Output Formatters:
        ReportPrinter: Abstract base printer class
        ReportPlainPrinter: Simple text output format
        ReportRichPrinter: Rich text console output with tables
        ReportJSONPrinter: Structured JSON output format
        ReportMarkdownPrinter: Markdown output

Example:
    Using from command-line:
    ```bash
    $ ado-access-reporter --organization myorg --project Slim --output-format markdown
    ```

    Programmatic usage of CLI components:
    ```python
    from ado_access_reporter.cli import parse_args, run

    run(parse_args(["--organization", "myorg", "--output-format", "json"]))
    ```
"""

from ado_access_reporter.cli.commands import (
    configure_logging,
    create_config,
    create_view_mode,
    main,
    parse_args,
    run,
)
from ado_access_reporter.cli.printer import (
    ReportJSONPrinter,
    ReportMarkdownPrinter,
    ReportPlainPrinter,
    ReportPrinter,
    ReportRichPrinter,
)

__all__ = [  # noqa: RUF022
    # Command-line processing
    "configure_logging",
    "create_config",
    "create_view_mode",
    "parse_args",
    "run",
    "main",
    # Output formatters
    "ReportJSONPrinter",
    "ReportMarkdownPrinter",
    "ReportPlainPrinter",
    "ReportPrinter",
    "ReportRichPrinter",
]
