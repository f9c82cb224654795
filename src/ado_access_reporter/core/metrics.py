"""Membership metrics aggregation.

This module cross-references resolved group memberships against the naming
convention of project-scoped Azure DevOps groups to compute per-project and
organization-wide member counts.

Project-scoped built-in groups carry a principal name of the form
``[{project}]\\{group name}``, e.g. ``[Slim]\\Project Administrators``. A lookup
must match exactly one group of the collection; a project lacking a given
group simply counts zero members so reports still render for it.

Example:
    ```python
    from ado_access_reporter.core.metrics import MetricsAggregator

    aggregator = MetricsAggregator(groups, resolved_sets)
    admins = aggregator.count_members("Project Administrators", "Slim")
    everyone = aggregator.organization_count("Contributors", ["Slim", "Fat"])
    ```
"""

import logging
from collections.abc import Iterable, Mapping

from ado_access_reporter.core.models import Diagnostic, DiagnosticKind, Identity


def group_key(project_scope: str, group_name: str) -> str:
    """Formats the principal name of a project-scoped group."""
    return f"[{project_scope}]\\{group_name}"


class MetricsAggregator:
    """Counts resolved group members per project and across the organization."""

    def __init__(
        self,
        groups: Iterable[Identity],
        resolved_sets: Mapping[str, frozenset[Identity] | set[Identity]],
    ) -> None:
        """
        Initialize the aggregator.

        Args:
            groups: Group collection searched by principal name
            resolved_sets: Resolved users keyed by group descriptor
        """
        self.resolved_sets = resolved_sets
        self.diagnostics: list[Diagnostic] = []
        self._groups_by_key: dict[str, list[Identity]] = {}
        for group in groups:
            self._groups_by_key.setdefault(group.principal_name, []).append(group)
        self._diagnosed: set[str] = set()

    def lookup_group(self, group_name: str, project_scope: str) -> Identity | None:
        """
        Find the group named group_name in project_scope.

        Returns:
            Identity | None: The single matching group, or None when no group or
            more than one group matches (recorded once per key as a diagnostic)
        """
        key = group_key(project_scope, group_name)
        matches = self._groups_by_key.get(key, [])
        if len(matches) == 1:
            return matches[0]

        if key not in self._diagnosed:
            self._diagnosed.add(key)
            if not matches:
                Diagnostic.record(
                    self.diagnostics,
                    DiagnosticKind.GROUP_NOT_FOUND,
                    f"no group named '{key}'",
                    key,
                )
            else:
                Diagnostic.record(
                    self.diagnostics,
                    DiagnosticKind.AMBIGUOUS_GROUP,
                    f"{len(matches)} groups named '{key}'",
                    key,
                )
        return None

    def members(self, group_name: str, project_scope: str) -> frozenset[Identity]:
        """Resolved users of a project-scoped group, empty when the group is missing."""
        group = self.lookup_group(group_name, project_scope)
        if group is None:
            return frozenset()
        resolved = self.resolved_sets.get(group.descriptor)
        if resolved is None:
            logging.debug("metrics: group '%s' has no resolved members", group.principal_name)
            return frozenset()
        return frozenset(resolved)

    def count_members(self, group_name: str, project_scope: str) -> int:
        """Number of distinct users in a project-scoped group, 0 when the group is missing."""
        return len(self.members(group_name, project_scope))

    def organization_members(self, group_name: str, project_scopes: Iterable[str]) -> frozenset[Identity]:
        """Union of the users of a group over every project."""
        users = set()
        for project_scope in project_scopes:
            users |= self.members(group_name, project_scope)
        return frozenset(users)

    def organization_count(self, group_name: str, project_scopes: Iterable[str]) -> int:
        """Distinct users of a group over every project, counting each user once."""
        return len(self.organization_members(group_name, project_scopes))
