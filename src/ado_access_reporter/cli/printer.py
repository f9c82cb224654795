# ruff: noqa: E501
"""Command-line output formatting for access reports.

This module provides multiple output formatters for displaying an
organization's access snapshot. It supports different view modes and output
formats through a pluggable printer architecture with consistent output
handling.

Key Components:
    ReportPrinter: Abstract base class defining the output contract and stream handling
    ReportPlainPrinter: Simple text output for basic terminals and logs
    ReportRichPrinter: Rich text console output with tables and styling
    ReportJSONPrinter: Structured JSON snapshot with file support
    ReportMarkdownPrinter: Markdown report for wikis and pull requests

View Modes:
    PROJECTS: Member counts per project and group
    OVERVIEW: Organization-wide totals
    DIAGNOSTICS: Recoverable conditions met while collecting

Output Handling:
    - All printers support both stdout and file output
    - Abstract _write method enforcing output contract
    - UTF-8 encoding for file output

Example:
    ```python
    from ado_access_reporter.cli.printer import ReportMarkdownPrinter, ReportRichPrinter
    from ado_access_reporter.core.models import ViewMode

    ReportRichPrinter(report).print(ViewMode.PROJECTS)
    ReportMarkdownPrinter(report).print(ViewMode.OVERVIEW, output_file="access-report.md")
    ```

Raises:
    InvalidViewModeError: When an invalid view mode is specified
    IOError: When file output operations fail
"""

import json
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TextIO

from rich.console import Console
from rich.table import Table

from ado_access_reporter.core.exceptions import InvalidViewModeError
from ado_access_reporter.core.models import (
    Identity,
    OrganizationUsage,
    ProjectUsage,
    ViewMode,
)


ESCAPED_PIPE = "\\|"


def format_identity(identity: Identity) -> str:
    """Formats an identity by principal name, falling back to display name."""
    return identity.principal_name or identity.display_name or identity.descriptor


def format_count(count: int | None) -> str:
    """Formats a count that may not have been collected."""
    return "n/a" if count is None else str(count)


def sorted_members(project: ProjectUsage, group_name: str) -> list[str]:
    """Member names of a group, sorted for display."""
    return sorted(format_identity(member) for member in project.members.get(group_name, frozenset()))


class ReportPrinter(ABC):
    """Base printer with required type hints."""

    report: OrganizationUsage
    _output: TextIO | None = None

    def __init__(self, report: OrganizationUsage) -> None:
        """Initialize printer with the report."""
        self.report = report

    def print(self, view_mode: ViewMode = ViewMode.PROJECTS, output_file: str | None = None) -> None:
        """
        Print the report in specified view mode to given output file.

        Args:
            view_mode: The view mode to use for displaying results
            output_file: Path to output file, or None for stdout
        """
        self._validate_view_mode(view_mode)

        if output_file:
            with self._get_output_stream(output_file) as output:
                self._output = output
                self._print_content(view_mode)
        else:
            # Don't close stdout
            self._output = sys.stdout
            self._print_content(view_mode)

    def _print_content(self, view_mode: ViewMode) -> None:
        """Print content based on view mode to the configured output stream."""
        if view_mode == ViewMode.PROJECTS:
            self._print_projects()
        elif view_mode == ViewMode.OVERVIEW:
            self._print_overview()
        else:
            self._print_diagnostics()

    def _get_output_stream(self, output_file: str) -> TextIO:
        """Open output_file for writing."""
        return Path(output_file).open("w", encoding="utf-8")

    @abstractmethod
    def _write(self, content: str | Table | dict) -> None:
        """Write content to configured output stream."""

    @abstractmethod
    def _print_projects(self) -> None:
        """Print member counts per project."""

    @abstractmethod
    def _print_overview(self) -> None:
        """Print organization-wide totals."""

    @abstractmethod
    def _print_diagnostics(self) -> None:
        """Print diagnostics."""

    def _validate_view_mode(self, view_mode: ViewMode) -> None:
        """Validate that the view mode is one of the valid ViewMode enum values."""
        valid_modes = set(ViewMode)
        if view_mode not in valid_modes:
            valid_options = ", ".join(mode.name.lower() for mode in ViewMode)
            msg = f"Invalid view mode: {view_mode}. Must be one of: {valid_options}"
            raise InvalidViewModeError(msg)

    @property
    def _status(self) -> str:
        return "Complete" if self.report.is_complete else "Best effort"


class ReportPlainPrinter(ReportPrinter):
    """Report printer with plain text output."""

    def _write(self, content: str = "") -> None:
        """Write content to configured output."""
        print(content, file=self._output)

    def _print_header(self) -> None:
        report = self.report
        self._write(f"\n{report.name}")
        self._write(f"Status: {self._status}")
        self._write(f"Projects: {report.project_count}")
        self._write(f"Repositories: {report.repository_count}")
        self._write(f"Users: {format_count(report.user_count)}")

    def _print_projects(self) -> None:
        self._print_header()
        self._write("=" * 80)
        for project in self.report.projects:
            self._write(f"\nProject: {project.name}")
            self._write(f"Repositories: {format_count(project.repository_count)}")
            for group_name in self.report.groups:
                self._write(f"  {group_name}: {project.member_count(group_name)}")
                for member in sorted_members(project, group_name):
                    self._write(f"    - {member}")
            self._write("-" * 80)
        self._print_diagnostics_footer()

    def _print_overview(self) -> None:
        self._print_header()
        self._write("=" * 80)
        for group_name in self.report.groups:
            self._write(f"{group_name}: {self.report.member_counts.get(group_name, 0)} distinct users")
        self._write(f"\nProcessing time: {self.report.processing_time:.2f}s")
        self._print_diagnostics_footer()

    def _print_diagnostics_footer(self) -> None:
        if not self.report.diagnostics:
            return
        self._write(f"\nDiagnostics: {len(self.report.diagnostics)}")
        for diagnostic in self.report.diagnostics:
            self._write(f"  [{diagnostic.kind.value}] {diagnostic.message}")

    def _print_diagnostics(self) -> None:
        self._write(f"\n{self.report.name} - {len(self.report.diagnostics)} diagnostics")
        for diagnostic in self.report.diagnostics:
            self._write(f"[{diagnostic.kind.value}] {diagnostic.message}")


class ReportRichPrinter(ReportPrinter):
    """Report printer with rich text formatting."""

    def _write(self, content: str | Table) -> None:
        """Write content to configured output."""
        self._console.print(content)

    def _print_content(self, view_mode: ViewMode) -> None:
        """Initialize console with the current output stream, then print."""
        self._console = Console(file=self._output)
        super()._print_content(view_mode)

    def _title(self, heading: str) -> str:
        color = "green" if self.report.is_complete else "yellow"
        return (
            f"{heading} '{self.report.name}' - [{color}]{self._status}[/]\n"
            f"Projects: {self.report.project_count} | "
            f"Repositories: {self.report.repository_count} | "
            f"Users: {format_count(self.report.user_count)}"
        )

    def _print_projects(self) -> None:  # pragma: no cover
        table = Table(title=self._title("Access by project in"))
        table.add_column("Project", style="purple")
        table.add_column("Repositories", style="blue", justify="right")
        for group_name in self.report.groups:
            table.add_column(group_name, style="cyan", justify="right")

        for project in self.report.projects:
            table.add_row(
                project.name,
                format_count(project.repository_count),
                *(str(project.member_count(group_name)) for group_name in self.report.groups),
            )

        self._write(table)
        self._print_diagnostics_summary()

    def _print_overview(self) -> None:  # pragma: no cover
        table = Table(title=self._title("Access overview of"))
        table.add_column("Group", style="cyan")
        table.add_column("Distinct users", style="green", justify="right")
        for group_name in self.report.groups:
            table.add_row(group_name, str(self.report.member_counts.get(group_name, 0)))
        self._write(table)
        self._write(f"[dim]Processing time: {self.report.processing_time:.2f}s[/]")
        self._print_diagnostics_summary()

    def _print_diagnostics(self) -> None:  # pragma: no cover
        table = Table(title=f"Diagnostics for '{self.report.name}'")
        table.add_column("Kind", style="yellow")
        table.add_column("Message")
        for diagnostic in self.report.diagnostics:
            table.add_row(diagnostic.kind.value, diagnostic.message)
        self._write(table)

    def _print_diagnostics_summary(self) -> None:  # pragma: no cover
        if self.report.diagnostics:
            self._write(
                f"[yellow]{len(self.report.diagnostics)} diagnostics recorded, use the diagnostics view for details[/]",
            )


class ReportJSONPrinter(ReportPrinter):
    """Report printer with JSON output."""

    def _write(self, content: dict) -> None:
        """Write JSON content to configured output."""
        json.dump(content, self._output, indent=2)
        self._output.write("\n")

    def _print_projects(self) -> None:
        data = self._get_summary()
        data["projects"] = [self._get_project(project) for project in self.report.projects]
        self._write(data)

    def _print_overview(self) -> None:
        self._write(self._get_summary())

    def _print_diagnostics(self) -> None:
        self._write(
            {
                "organization": self.report.name,
                "diagnostics": [d.to_dict() for d in self.report.diagnostics],
            },
        )

    def _get_summary(self) -> dict:
        report = self.report
        return {
            "organization": report.name,
            "complete": report.is_complete,
            "processing_time": round(report.processing_time, 3),
            "summary": {
                "projects": report.project_count,
                "repositories": report.repository_count,
                "users": report.user_count,
                "members": {name: report.member_counts.get(name, 0) for name in report.groups},
            },
            "diagnostics": [d.to_dict() for d in report.diagnostics],
        }

    def _get_project(self, project: ProjectUsage) -> dict:
        return {
            "id": project.project.id,
            "name": project.name,
            "repositories": project.repository_count,
            "groups": {
                name: {
                    "count": project.member_count(name),
                    "members": sorted_members(project, name),
                }
                for name in self.report.groups
            },
        }


class ReportMarkdownPrinter(ReportPrinter):
    """Report printer with Markdown output."""

    def _write(self, content: str) -> None:
        """Write Markdown content to configured output."""
        self._output.write(content)
        self._output.write("\n")

    def _print_content(self, view_mode: ViewMode) -> None:
        super()._print_content(view_mode)
        self._write("")

    def _summary_lines(self) -> list[str]:
        report = self.report
        return [
            f"# {report.name}",
            "",
            "## Summary",
            "",
            f"- Status: {self._status}",
            f"- Projects: {report.project_count}",
            f"- Repositories: {report.repository_count}",
            f"- Users: {format_count(report.user_count)}",
            "",
        ]

    def _print_projects(self) -> None:
        groups = self.report.groups
        lines = self._summary_lines()
        lines.extend(
            [
                "## Projects",
                "",
                "| Project | Repositories | " + " | ".join(groups) + " |",
                "|---------|--------------|" + "|".join("---" for _ in groups) + "|",
            ],
        )
        for project in self.report.projects:
            counts = " | ".join(str(project.member_count(name)) for name in groups)
            lines.append(f"| {project.name} | {format_count(project.repository_count)} | {counts} |")

        lines.extend(["", "## Project Details", ""])
        for project in self.report.projects:
            lines.extend([f"### {project.name}", ""])
            for name in groups:
                members = sorted_members(project, name)
                lines.append(f"- **{name}** ({len(members)}): " + (", ".join(f"`{m}`" for m in members) or "none"))
            lines.append("")

        lines.extend(self._diagnostic_lines())
        self._write("\n".join(lines))

    def _print_overview(self) -> None:
        lines = self._summary_lines()
        lines.extend(
            [
                "## Organization-wide Members",
                "",
                "| Group | Distinct users |",
                "|-------|----------------|",
            ],
        )
        lines.extend(f"| {name} | {self.report.member_counts.get(name, 0)} |" for name in self.report.groups)
        lines.append("")
        lines.extend(self._diagnostic_lines())
        self._write("\n".join(lines))

    def _print_diagnostics(self) -> None:
        lines = [f"# {self.report.name}", "", *self._diagnostic_lines()]
        self._write("\n".join(lines))

    def _diagnostic_lines(self) -> list[str]:
        if not self.report.diagnostics:
            return []
        lines = ["## Diagnostics", "", "| Kind | Message |", "|------|---------|"]
        for diagnostic in self.report.diagnostics:
            message = diagnostic.message.replace("|", ESCAPED_PIPE)
            lines.append(f"| {diagnostic.kind.value} | {message} |")
        lines.append("")
        return lines
