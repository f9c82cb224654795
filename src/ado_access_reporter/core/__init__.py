"""Core subpackage for Azure DevOps access reporting.

This subpackage provides the core components for reporting on who has access
to an Azure DevOps organization. It handles API interactions, nested group
resolution, metrics aggregation and the data models the report is built from.

Modules:
    client: Azure DevOps API client with continuation-token pagination
    resolver: Recursive group membership resolution
    metrics: Naming-convention lookups and member counts
    reporter: Orchestration of a full access report
    models: Data models for identities, configuration and snapshots
    exceptions: Error types and hierarchies for graceful error handling

Components:
    API Client:
        AzureDevOpsClient: Handles API interactions with Azure DevOps

    Reporting:
        AccessReporter: Orchestrates the collection of an access report
        MembershipResolver: Expands groups into users
        MetricsAggregator: Counts members per project and organization

    Configuration:
        ReportConfig: What to report on and how to fetch it
        PaginationPolicy: Handling of failures after the first page
        ViewMode: Controls results presentation format

    Resource Models:
        Identity: A user or group of the directory graph
        Project: Represents an Azure DevOps project
        ProjectUsage: Access snapshot of one project
        OrganizationUsage: Access snapshot of an organization

Example:
    Collecting an access report:

    >>> from ado_access_reporter.core import (
    ...     AccessReporter,
    ...     AzureDevOpsClient,
    ...     ReportConfig,
    ... )
    >>>
    >>> config = ReportConfig(organization="MyOrg")
    >>> with AzureDevOpsClient("MyOrg") as client:
    ...     report = AccessReporter(client, config).collect()
    ...     print(report.member_counts["Project Administrators"])
"""

from ado_access_reporter.core.client import AzureDevOpsClient
from ado_access_reporter.core.exceptions import (
    ADOAccessReporterError,
    AuthenticationError,
    ConfigurationError,
    FetchFailedError,
    InvalidConfigError,
    InvalidPaginationPolicyError,
    InvalidViewModeError,
    ResolutionFailedError,
)
from ado_access_reporter.core.metrics import MetricsAggregator, group_key
from ado_access_reporter.core.models import (
    Diagnostic,
    DiagnosticKind,
    Identity,
    MembershipEdge,
    OrganizationUsage,
    PagedResult,
    PaginationPolicy,
    Project,
    ProjectUsage,
    ReportConfig,
    Repository,
    SubjectKind,
    ViewMode,
)
from ado_access_reporter.core.reporter import AccessReporter
from ado_access_reporter.core.resolver import MembershipResolver

__all__ = [  # noqa: RUF022
    # Main components
    "AzureDevOpsClient",
    "AccessReporter",
    "MembershipResolver",
    "MetricsAggregator",
    "group_key",
    # Resource models
    "Diagnostic",
    "DiagnosticKind",
    "Identity",
    "MembershipEdge",
    "OrganizationUsage",
    "PagedResult",
    "Project",
    "ProjectUsage",
    "Repository",
    "SubjectKind",
    # Configuration models
    "PaginationPolicy",
    "ReportConfig",
    "ViewMode",
    # Exceptions
    "ADOAccessReporterError",
    "AuthenticationError",
    "ConfigurationError",
    "FetchFailedError",
    "InvalidConfigError",
    "InvalidPaginationPolicyError",
    "InvalidViewModeError",
    "ResolutionFailedError",
]
