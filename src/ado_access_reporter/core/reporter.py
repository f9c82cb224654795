"""Core access reporting functionality.

This module provides the orchestration that turns an Azure DevOps organization
into an access snapshot: which users are members of each built-in group of
each project, how many distinct users hold each role organization-wide, and
how many repositories and users the organization has.

Key Components:
    AccessReporter: Main class that lists projects and groups, resolves the
        configured groups of each project into users and aggregates counts.

Features:
    - Nested group resolution with cycle protection
    - Each group resolved once, even when several projects reference it
    - Organization-wide distinct user counts (no double counting)
    - Best-effort reports: missing groups, truncated pages and failed
      subtrees are recorded as diagnostics instead of aborting the run

Dependencies:
    - client: Azure DevOps API client for data retrieval
    - resolver: Recursive group membership resolution
    - metrics: Naming-convention lookups and counts
    - models: Configuration and snapshot data structures

Example:
    ```python
    from ado_access_reporter.core.client import AzureDevOpsClient
    from ado_access_reporter.core.models import ReportConfig
    from ado_access_reporter.core.reporter import AccessReporter

    config = ReportConfig(organization="MyOrg", projects=("Slim",))

    with AzureDevOpsClient(organization="MyOrg", token="PAT") as client:
        reporter = AccessReporter(client=client, config=config)
        report = reporter.collect()

        for project in report.projects:
            print(project.name, project.member_count("Project Administrators"))
        print("Complete" if report.is_complete else "Best effort")
    ```

Returns:
    The collect() method returns an OrganizationUsage snapshot.

Raises:
    AuthenticationError: When Azure DevOps authentication fails
    FetchFailedError: When projects or groups cannot be listed
    InvalidClientError: When an invalid client is provided
    ResolutionFailedError: When a group cannot be resolved and the
        configuration does not skip failed subtrees
"""

import logging
import time

from ado_access_reporter.core.client import AzureDevOpsClient
from ado_access_reporter.core.exceptions import (
    FetchFailedError,
    InvalidClientError,
    ResolutionFailedError,
)
from ado_access_reporter.core.metrics import MetricsAggregator
from ado_access_reporter.core.models import (
    Diagnostic,
    DiagnosticKind,
    Identity,
    OrganizationUsage,
    Project,
    ProjectUsage,
    ReportConfig,
)
from ado_access_reporter.core.resolver import MembershipResolver


class AccessReporter:
    """Collects group membership and usage metrics for an organization."""

    def __init__(
        self,
        client: AzureDevOpsClient,
        config: ReportConfig,
        resolver: MembershipResolver | None = None,
    ) -> None:
        """
        Initialize the reporter with required configuration.

        Args:
            client: Azure DevOps client instance
            config: What to report on and how to fetch it
            resolver: Membership resolver shared by every collect, a fresh one
                is created from config for each collect when omitted
        """
        if not isinstance(client, AzureDevOpsClient):
            raise InvalidClientError

        self.client = client
        self.config = config
        self._shared_resolver = resolver is not None
        self.resolver = resolver or self._create_resolver()
        self.diagnostics: list[Diagnostic] = []

    def collect(self) -> OrganizationUsage:
        """Collect the access snapshot of the configured organization."""
        start_time = time.perf_counter()
        self.diagnostics = []
        if not self._shared_resolver:
            self.resolver = self._create_resolver()
        resolver_diagnostics = len(self.resolver.diagnostics)

        # Step 1: Projects in scope
        projects = self._load_projects()
        logging.info("reporter: reporting on %d projects", len(projects))

        # Step 2: Every group of the organization
        groups = self.client.list_groups()
        self.diagnostics.extend(groups.diagnostics)
        logging.info("reporter: found %d groups", groups.total_count)

        # Step 3: Resolve the configured groups of every project
        resolved: dict[str, frozenset[Identity]] = {}
        aggregator = MetricsAggregator(groups.items, resolved)
        for project in projects:
            for group_name in self.config.groups:
                group = aggregator.lookup_group(group_name, project.name)
                if group is not None and group.descriptor not in resolved:
                    resolved[group.descriptor] = self._resolve(group)

        # Step 4: Aggregate
        project_usages = [
            ProjectUsage(
                project=project,
                repository_count=self._count_repositories(project),
                members={name: aggregator.members(name, project.name) for name in self.config.groups},
            )
            for project in projects
        ]
        project_names = [project.name for project in projects]
        member_counts = {name: aggregator.organization_count(name, project_names) for name in self.config.groups}
        user_count = self._count_users()

        self.diagnostics.extend(aggregator.diagnostics)
        self.diagnostics.extend(self.resolver.diagnostics[resolver_diagnostics:])

        processing_time = time.perf_counter() - start_time
        logging.info(
            "reporter: collected %d projects in %.2fs with %d diagnostics",
            len(project_usages),
            processing_time,
            len(self.diagnostics),
        )

        return OrganizationUsage(
            name=self.config.organization,
            groups=self.config.groups,
            projects=project_usages,
            member_counts=member_counts,
            user_count=user_count,
            diagnostics=list(self.diagnostics),
            processing_time=processing_time,
        )

    def _create_resolver(self) -> MembershipResolver:
        return MembershipResolver(
            self.client,
            max_attempts=self.config.retry_attempts,
            retry_delay=self.config.retry_delay,
            skip_failed_subtrees=self.config.skip_failed_subtrees,
        )

    def _load_projects(self) -> list[Project]:
        """List projects and apply the configured project filter."""
        projects = self.client.list_projects()
        self.diagnostics.extend(projects.diagnostics)
        if self.config.projects is None:
            return projects.items

        by_name = {project.name.lower(): project for project in projects.items}
        selected = []
        for name in self.config.projects:
            project = by_name.get(name.lower())
            if project is None:
                Diagnostic.record(
                    self.diagnostics,
                    DiagnosticKind.PROJECT_NOT_FOUND,
                    f"project '{name}' does not exist in '{self.config.organization}'",
                    name,
                )
                continue
            selected.append(project)
        return selected

    def _resolve(self, group: Identity) -> frozenset[Identity]:
        """Resolve a group, downgrading failures to a diagnostic unless configured otherwise."""
        try:
            return frozenset(self.resolver.resolve_members(group))
        except ResolutionFailedError as e:
            if not self.config.skip_failed_subtrees:
                raise
            self.resolver.diagnose_failure(group, e)
            return frozenset()

    def _count_repositories(self, project: Project) -> int | None:
        """Count the repositories of a project, None when disabled or unavailable."""
        if not self.config.include_repositories:
            return None
        try:
            repositories = self.client.list_repositories(project.id)
        except FetchFailedError as e:
            Diagnostic.record(
                self.diagnostics,
                DiagnosticKind.FETCH_FAILED,
                f"repositories of '{project.name}' unavailable: {e}",
                project.name,
            )
            return None
        self.diagnostics.extend(repositories.diagnostics)
        return repositories.total_count

    def _count_users(self) -> int | None:
        """Count the users of the organization, None when disabled or unavailable."""
        if not self.config.include_users:
            return None
        try:
            users = self.client.list_users()
        except FetchFailedError as e:
            Diagnostic.record(
                self.diagnostics,
                DiagnosticKind.FETCH_FAILED,
                f"users of '{self.config.organization}' unavailable: {e}",
                self.config.organization,
            )
            return None
        self.diagnostics.extend(users.diagnostics)
        return users.total_count
