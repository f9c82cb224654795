"""Recursive group membership resolution.

This module expands an Azure DevOps group into the flat set of individual
users reachable from it through nested group memberships.

Key Components:
    MembershipResolver: Depth-first expansion of a group with a cycle guard,
        bounded retries on every network lookup and per-resolver caching of
        direct members.

Algorithm:
    For a group, its direct membership edges are fetched (direction=down) and
    the member descriptors are resolved through the subject lookup API. Users
    are added to the result, groups are expanded recursively and their users
    merged in, any other subject kind is skipped. The descriptors of the
    groups on the path currently being expanded travel with the recursion, so
    a group containing itself (directly or transitively) is skipped instead of
    being expanded forever.

Example:
    ```python
    from ado_access_reporter.core.client import AzureDevOpsClient
    from ado_access_reporter.core.resolver import MembershipResolver

    with AzureDevOpsClient(organization="org", token="pat") as client:
        resolver = MembershipResolver(client, max_attempts=3, retry_delay=1)
        admins = next(
            g for g in client.list_groups().items
            if g.principal_name == "[Slim]\\\\Project Administrators"
        )
        users = resolver.resolve_members(admins)
        print(f"{len(users)} administrators")
        for diagnostic in resolver.diagnostics:
            print(diagnostic.kind, diagnostic.message)
    ```

Raises:
    InvalidClientError: When an invalid client is provided
    ResolutionFailedError: When the members of a group cannot be fetched
        after max_attempts attempts
"""

import logging

import requests
import tenacity

from ado_access_reporter.core.client import AzureDevOpsClient
from ado_access_reporter.core.exceptions import (
    FetchFailedError,
    InvalidClientError,
    ResolutionFailedError,
)
from ado_access_reporter.core.models import Diagnostic, DiagnosticKind, Identity


def _log_retry(retry_state: tenacity.RetryCallState) -> None:
    """Log a failed lookup attempt before sleeping."""
    logging.warning(
        "resolver: attempt %d of %s failed: %s",
        retry_state.attempt_number,
        getattr(retry_state.fn, "__name__", retry_state.fn),
        retry_state.outcome.exception() if retry_state.outcome else None,
    )


class MembershipResolver:
    """Resolves groups into the deduplicated set of users they contain."""

    MAX_ATTEMPTS = 3  # Attempts per membership fetch or subject lookup
    RETRY_DELAY = 1.0  # Fixed delay in seconds between attempts

    def __init__(
        self,
        client: AzureDevOpsClient,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = RETRY_DELAY,
        skip_failed_subtrees: bool = True,  # noqa: FBT001, FBT002
    ) -> None:
        """
        Initialize the resolver.

        Args:
            client: Azure DevOps client instance
            max_attempts: Attempts per membership fetch or subject lookup
            retry_delay: Fixed delay in seconds between attempts
            skip_failed_subtrees: Record nested groups that fail to resolve as
                diagnostics and keep going, instead of aborting the resolution
        """
        if not isinstance(client, AzureDevOpsClient):
            raise InvalidClientError

        self.client = client
        self.skip_failed_subtrees = skip_failed_subtrees
        self.diagnostics: list[Diagnostic] = []
        self._retrying = tenacity.Retrying(
            stop=tenacity.stop_after_attempt(max_attempts),
            wait=tenacity.wait_fixed(retry_delay),
            retry=tenacity.retry_if_exception_type(
                (FetchFailedError, requests.exceptions.RequestException),
            ),
            before_sleep=_log_retry,
            reraise=True,
        )
        # Direct members per group descriptor
        self._direct_members: dict[str, list[Identity]] = {}
        # Groups whose members could not be fetched, never retried
        self._failed: dict[str, ResolutionFailedError] = {}
        # Failed groups already recorded as diagnostics
        self._diagnosed_failures: set[str] = set()

    def resolve_members(self, root_group: Identity) -> set[Identity]:
        """
        Resolve a group into every user reachable from it.

        Args:
            root_group: The group to expand

        Returns:
            set[Identity]: Users reachable through any path, deduplicated by descriptor

        Raises:
            ResolutionFailedError: When the root group cannot be expanded, or a
                nested group cannot be expanded and skip_failed_subtrees is False
        """
        logging.info("resolver: resolving members of '%s'", root_group.principal_name or root_group.descriptor)
        users = self._expand(root_group, frozenset())
        logging.debug("resolver: '%s' resolved to %d users", root_group.principal_name, len(users))
        return users

    def _expand(self, group: Identity, path: frozenset[str]) -> set[Identity]:
        """Expand a group; path holds the descriptors of the groups being expanded above it."""
        path = path | {group.descriptor}
        users = set()

        for member in self.get_direct_members(group):
            if member.is_user:
                users.add(member)
            elif member.is_group:
                if member.descriptor in path:
                    self._diagnose(
                        DiagnosticKind.CYCLE_DETECTED,
                        f"group '{_label(member)}' is already being expanded, skipped inside '{_label(group)}'",
                        member.descriptor,
                    )
                    continue
                try:
                    users |= self._expand(member, path)
                except ResolutionFailedError as e:
                    if not self.skip_failed_subtrees:
                        raise
                    self.diagnose_failure(member, e)
            else:
                self._diagnose(
                    DiagnosticKind.UNHANDLED_SUBJECT_KIND,
                    f"skipping '{_label(member)}' of unhandled kind in '{_label(group)}'",
                    member.descriptor,
                )

        return users

    def get_direct_members(self, group: Identity) -> list[Identity]:
        """
        Get the direct members of a group, fetching them once per resolver.

        Raises:
            ResolutionFailedError: When the memberships or subjects cannot be
                fetched after max_attempts attempts
        """
        if group.descriptor in self._direct_members:
            return self._direct_members[group.descriptor]
        if group.descriptor in self._failed:
            raise self._failed[group.descriptor]

        try:
            edges = self._retrying(self.client.list_memberships, group.descriptor)
            descriptors = [edge.member_descriptor for edge in edges.items]
            subjects = self._retrying(self.client.lookup_subjects, descriptors) if descriptors else {}
        except (FetchFailedError, requests.exceptions.RequestException) as e:
            logging.exception("resolver: failed to fetch members of '%s'", _label(group))
            error = ResolutionFailedError(_label(group))
            self._failed[group.descriptor] = error
            raise error from e

        self.diagnostics.extend(edges.diagnostics)

        members = []
        for descriptor in descriptors:
            subject = subjects.get(descriptor)
            if subject is None:
                self._diagnose(
                    DiagnosticKind.SUBJECT_NOT_FOUND,
                    f"member '{descriptor}' of '{_label(group)}' was not found by subject lookup",
                    descriptor,
                )
                continue
            members.append(subject)

        self._direct_members[group.descriptor] = members
        return members

    def diagnose_failure(self, group: Identity, error: ResolutionFailedError) -> None:
        """Record a group that could not be resolved, once per group."""
        if group.descriptor in self._diagnosed_failures:
            return
        self._diagnosed_failures.add(group.descriptor)
        self._diagnose(DiagnosticKind.RESOLUTION_FAILED, str(error), group.descriptor)

    def _diagnose(self, kind: DiagnosticKind, message: str, subject: str | None = None) -> None:
        Diagnostic.record(self.diagnostics, kind, message, subject)


def _label(identity: Identity) -> str:
    return identity.principal_name or identity.display_name or identity.descriptor
