"""Azure DevOps Access Reporter.

A tool for reporting who has access to an Azure DevOps organization: members
of the built-in groups of every project, resolved through nested groups down
to individual users, alongside organization-wide usage counts.

Package Structure:
    core: Core functionality for membership resolution and API interactions
        - client: Azure DevOps API client with continuation-token pagination
        - resolver: Recursive group membership resolution
        - metrics: Per-project and organization-wide member counts
        - reporter: Orchestration of a full access report
        - models: Data models for identities, configuration and snapshots
        - exceptions: Error types for graceful error handling

    cli: Command-line interface components
        - commands: CLI argument parsing and execution
        - printer: Output formatting in various formats (text, JSON, markdown)

Examples:
    CLI Usage:
        ```bash
        # Report on every project of an organization
        $ ado-access-reporter --organization myorg --token mytoken

        # Report on one project as Markdown
        $ ado-access-reporter \\
            --organization myorg \\
            --project Slim \\
            --output-format markdown \\
            --output-file report.md
        ```

    Programmatic Usage:
        ```python
        import os
        from ado_access_reporter import (
            AccessReporter,
            AzureDevOpsClient,
            ReportConfig,
            ViewMode,
        )
        from ado_access_reporter.cli import ReportJSONPrinter

        config = ReportConfig(
            organization=os.getenv("ADO_ORGANIZATION"),
            groups=("Project Administrators",),
        )

        with AzureDevOpsClient(
            organization=config.organization,
            token=os.getenv("ADO_TOKEN"),
        ) as client:
            report = AccessReporter(client=client, config=config).collect()

        ReportJSONPrinter(report).print(ViewMode.PROJECTS, output_file="access.json")
        ```
"""

__version__ = "0.1.0"

from ado_access_reporter.core import (
    AccessReporter,
    AzureDevOpsClient,
    Identity,
    MembershipResolver,
    MetricsAggregator,
    OrganizationUsage,
    PaginationPolicy,
    Project,
    ProjectUsage,
    ReportConfig,
    ViewMode,
)

__all__ = [
    "AccessReporter",
    "AzureDevOpsClient",
    "Identity",
    "MembershipResolver",
    "MetricsAggregator",
    "OrganizationUsage",
    "PaginationPolicy",
    "Project",
    "ProjectUsage",
    "ReportConfig",
    "ViewMode",
    "__version__",
]
