"""Core data models for access reporting.

This module defines the data models used throughout the access reporter,
representing Azure DevOps directory subjects, paginated API results, report
configuration and the usage snapshot produced for an organization. All
records are read-only snapshots fetched once per invocation.

Classes:
    Directory Graph:
        SubjectKind: Enum discriminating users from groups
        Identity: A user or group subject, compared by descriptor
        MembershipEdge: A container -> member relation between two subjects

    Azure DevOps Resources:
        Project: Represents an Azure DevOps project
        Repository: Represents an Azure DevOps git repository

    Fetching:
        PaginationPolicy: How a failure after the first page is handled
        PagedResult: Items collected across continuation-token pages
        Diagnostic / DiagnosticKind: Recoverable conditions met on the way

    Reporting:
        ReportConfig: What to report on and how to fetch it
        ProjectUsage: Resolved group members and counts for one project
        OrganizationUsage: Snapshot for the whole organization
        ViewMode: Enum for result presentation format

Example:
    ```python
    from ado_access_reporter.core.models import Identity, ReportConfig

    config = ReportConfig(
        organization="my-organization",
        projects=("Slim",),
        groups=("Project Administrators",),
    )

    admin = Identity.from_get_response(
        {
            "descriptor": "aad.MzQ1",
            "displayName": "Jane Doe",
            "principalName": "jane@contoso.com",
            "origin": "aad",
            "subjectKind": "user",
        }
    )
    ```

Raises:
    InvalidConfigError: When a report configuration is invalid
    InvalidPaginationPolicyError: When an invalid pagination policy is specified
    InvalidViewModeError: When an invalid view mode is specified
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

import yaml

from .exceptions import (
    InvalidConfigError,
    InvalidPaginationPolicyError,
    InvalidViewModeError,
)


class SubjectKind(Enum):
    """Represents the kind of a directory subject."""

    USER = "user"
    GROUP = "group"
    UNKNOWN = "unknown"  # servicePrincipal, scope, ...

    @classmethod
    def from_string(cls, value: str | None) -> "SubjectKind":
        """Convert an ADO subjectKind value to a SubjectKind enum."""
        normalized = (value or "").lower()
        for kind in (cls.USER, cls.GROUP):
            if kind.value == normalized:
                return kind
        return cls.UNKNOWN

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


@dataclass(frozen=True)
class Identity:
    """
    Represents a subject in the Azure DevOps directory graph.

    Identities are equal when their descriptors are equal, so a set of
    identities never holds the same subject twice.

    Attributes:
        descriptor: Opaque, stable identifier of the subject
        display_name: Name shown in the portal
        principal_name: Human-readable identity, e.g. ``[Slim]\\Readers``
        origin: Directory the subject comes from (aad, msa, vsts, ...)
        kind: User, group or unknown
    """

    descriptor: str
    display_name: str = field(default="", compare=False)
    principal_name: str = field(default="", compare=False)
    origin: str = field(default="", compare=False)
    kind: SubjectKind = field(default=SubjectKind.USER, compare=False)

    @classmethod
    def from_get_response(cls, data: dict[str, Any]) -> "Identity":
        """Creates an Identity instance from a Graph subject payload."""
        return cls(
            descriptor=data["descriptor"],
            display_name=data.get("displayName", ""),
            principal_name=data.get("principalName", ""),
            origin=data.get("origin", ""),
            kind=SubjectKind.from_string(data.get("subjectKind")),
        )

    @property
    def is_user(self) -> bool:
        """Whether the identity is an individual user."""
        return self.kind == SubjectKind.USER

    @property
    def is_group(self) -> bool:
        """Whether the identity is a group."""
        return self.kind == SubjectKind.GROUP


@dataclass(frozen=True)
class MembershipEdge:
    """Represents a directed container -> member relation."""

    container_descriptor: str
    member_descriptor: str

    @classmethod
    def from_get_response(cls, data: dict[str, Any]) -> "MembershipEdge":
        """Creates a MembershipEdge instance from a Graph membership payload."""
        return cls(
            container_descriptor=data["containerDescriptor"],
            member_descriptor=data["memberDescriptor"],
        )


class DiagnosticKind(Enum):
    """Recoverable conditions surfaced alongside a best-effort report."""

    PARTIAL_RESULT = "partial_result"
    FETCH_FAILED = "fetch_failed"
    RESOLUTION_FAILED = "resolution_failed"
    CYCLE_DETECTED = "cycle_detected"
    UNHANDLED_SUBJECT_KIND = "unhandled_subject_kind"
    SUBJECT_NOT_FOUND = "subject_not_found"
    GROUP_NOT_FOUND = "group_not_found"
    AMBIGUOUS_GROUP = "ambiguous_group"
    PROJECT_NOT_FOUND = "project_not_found"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


@dataclass(frozen=True)
class Diagnostic:
    """A recoverable condition met while fetching, resolving or aggregating."""

    kind: DiagnosticKind
    message: str
    subject: str | None = None

    # Diagnostics that mean the report may be missing data
    INCOMPLETE_KINDS: ClassVar[frozenset[DiagnosticKind]] = frozenset(
        {
            DiagnosticKind.PARTIAL_RESULT,
            DiagnosticKind.FETCH_FAILED,
            DiagnosticKind.RESOLUTION_FAILED,
        },
    )

    @classmethod
    def record(
        cls,
        diagnostics: list["Diagnostic"],
        kind: DiagnosticKind,
        message: str,
        subject: str | None = None,
    ) -> "Diagnostic":
        """Create a diagnostic, log it and append it to the given list."""
        diagnostic = cls(kind=kind, message=message, subject=subject)
        logging.warning("%s: %s", kind.value, message)
        diagnostics.append(diagnostic)
        return diagnostic

    @property
    def is_incomplete(self) -> bool:
        """Whether the diagnostic means data may be missing."""
        return self.kind in self.INCOMPLETE_KINDS

    def to_dict(self) -> dict[str, str | None]:
        """Convert the diagnostic to a JSON friendly dictionary."""
        return {"kind": self.kind.value, "message": self.message, "subject": self.subject}


class PaginationPolicy(Enum):
    """
    Defines how a failure on a page after the first one is handled.

    LENIENT:
    Stop paginating and return the items collected so far, marked incomplete.

    STRICT:
    Raise FetchFailedError; the whole fetch fails.

    A failure on the first page is always fatal.
    """

    LENIENT = "lenient"
    STRICT = "strict"

    @classmethod
    def from_string(cls, value: str) -> "PaginationPolicy":
        """Convert a string to a PaginationPolicy enum."""
        try:
            return cls[value.upper()]
        except KeyError as e:
            valid = ", ".join(m.name.lower() for m in cls)
            msg = f"Invalid pagination policy: {value}. Must be one of: {valid}"
            raise InvalidPaginationPolicyError(msg) from e

    def __str__(self) -> str:
        """Return the string representation of the enum."""
        return self.name


@dataclass(frozen=False)
class PagedResult:
    """
    Items collected across the pages of a paginated endpoint.

    Attributes:
        items: Items in page arrival order
        total_count: Number of items retrieved over all pages
        pages: Number of pages retrieved
        complete: False when pagination stopped before the cursor was exhausted
        diagnostics: Recoverable conditions met while paginating
    """

    items: list[Any] = field(default_factory=list)
    total_count: int = 0
    pages: int = 0
    complete: bool = True
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def add_page(self, items: list[Any]) -> None:
        """Append the items of one page."""
        self.items.extend(items)
        self.total_count += len(items)
        self.pages += 1

    def mark_partial(self, message: str, subject: str | None = None) -> None:
        """Flag the result as a best-effort snapshot."""
        self.complete = False
        Diagnostic.record(self.diagnostics, DiagnosticKind.PARTIAL_RESULT, message, subject)

    def convert(self, converter: Callable[[Any], Any]) -> "PagedResult":
        """Return a copy with every item converted, keeping counts and diagnostics."""
        return PagedResult(
            items=[converter(item) for item in self.items],
            total_count=self.total_count,
            pages=self.pages,
            complete=self.complete,
            diagnostics=list(self.diagnostics),
        )


@dataclass(frozen=True)
class Project:
    """Represents an Azure DevOps project."""

    id: str
    name: str

    @classmethod
    def from_get_response(cls, data: dict[str, Any]) -> "Project":
        """Creates a Project instance from API response."""
        return cls(id=data["id"], name=data["name"])


@dataclass(frozen=True)
class Repository:
    """Represents an Azure DevOps git repository."""

    id: str
    name: str
    project_id: str | None = None
    default_branch: str = ""

    @classmethod
    def from_get_response(cls, data: dict[str, Any]) -> "Repository":
        """Creates a Repository instance from API response."""
        return cls(
            id=data["id"],
            name=data["name"],
            project_id=data.get("project", {}).get("id"),
            default_branch=data.get("defaultBranch", "").replace("refs/heads/", ""),
        )


DEFAULT_GROUPS = (
    "Project Administrators",
    "Build Administrators",
    "Contributors",
    "Readers",
)


@dataclass(frozen=True)
class ReportConfig:
    """
    Configures what to report on and how to fetch it.

    Attributes:
        organization: Azure DevOps organization name
        projects: Optional project names to report on, defaults to all projects
        groups: Built-in group names counted in every project
        pagination_policy: How a failure after the first page is handled
        max_pages: Maximum number of pages fetched per endpoint
        retry_attempts: Attempts per membership or subject lookup
        retry_delay: Fixed delay in seconds between attempts
        request_timeout: Read timeout in seconds for every request
        skip_failed_subtrees: Skip nested groups that fail to resolve instead of aborting
        include_repositories: Count repositories per project
        include_users: Count users in the organization
        use_legacy_url: Use the {organization}.visualstudio.com endpoints

    Example:
        ```python
        config = ReportConfig.from_yaml("report.yml", organization="MyORG")
        ```
    """

    organization: str
    projects: tuple[str, ...] | None = None
    groups: tuple[str, ...] = DEFAULT_GROUPS
    pagination_policy: PaginationPolicy = PaginationPolicy.LENIENT
    max_pages: int = 10
    retry_attempts: int = 3
    retry_delay: float = 1.0
    request_timeout: float = 30.0
    skip_failed_subtrees: bool = True
    include_repositories: bool = True
    include_users: bool = True
    use_legacy_url: bool = False

    def __post_init__(self) -> None:
        """Validates the report configuration."""
        if not self.organization:
            msg = "Organization is required"
            raise InvalidConfigError(msg)
        if not self.groups:
            msg = "At least one group name is required"
            raise InvalidConfigError(msg)
        if self.max_pages < 1:
            msg = f"max_pages must be at least 1, got {self.max_pages}"
            raise InvalidConfigError(msg)
        if self.retry_attempts < 1:
            msg = f"retry_attempts must be at least 1, got {self.retry_attempts}"
            raise InvalidConfigError(msg)
        if self.retry_delay < 0:
            msg = f"retry_delay cannot be negative, got {self.retry_delay}"
            raise InvalidConfigError(msg)
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got {self.request_timeout}"
            raise InvalidConfigError(msg)

    @classmethod
    def from_dict(cls, data: dict[str, Any], organization: str | None = None) -> "ReportConfig":
        """
        Create a configuration from a dictionary, e.g. a parsed YAML file.

        Recognised keys are the attribute names; ``pagination`` and ``retry``
        sections are accepted as well:

            organization: MyORG
            projects: [Slim, Fat]
            groups: [Project Administrators, Contributors]
            pagination:
              policy: strict
              max_pages: 20
            retry:
              attempts: 5
              delay: 2

        Args:
            data: Configuration values
            organization: Overrides the organization found in data
        """
        if not isinstance(data, dict):
            msg = f"Configuration must be a mapping, got {type(data).__name__}"
            raise InvalidConfigError(msg)

        values = {key: value for key, value in data.items() if key not in {"pagination", "retry"}}
        pagination = data.get("pagination") or {}
        retry = data.get("retry") or {}
        for section, value in (("pagination", pagination), ("retry", retry)):
            if not isinstance(value, dict):
                msg = f"'{section}' must be a mapping, got {type(value).__name__}"
                raise InvalidConfigError(msg)
        if "policy" in pagination:
            values["pagination_policy"] = pagination["policy"]
        if "max_pages" in pagination:
            values["max_pages"] = pagination["max_pages"]
        if "attempts" in retry:
            values["retry_attempts"] = retry["attempts"]
        if "delay" in retry:
            values["retry_delay"] = retry["delay"]
        if organization:
            values["organization"] = organization

        unknown = set(values) - set(cls.__dataclass_fields__)
        if unknown:
            msg = f"Unknown configuration keys: {', '.join(sorted(unknown))}"
            raise InvalidConfigError(msg)

        if isinstance(values.get("pagination_policy"), str):
            values["pagination_policy"] = PaginationPolicy.from_string(values["pagination_policy"])
        for key in ("projects", "groups"):
            if values.get(key) is not None:
                values[key] = _as_names(values[key], key)

        try:
            return cls(**values)
        except TypeError as e:
            raise InvalidConfigError(str(e)) from e

    @classmethod
    def from_yaml(cls, path: str | Path, organization: str | None = None) -> "ReportConfig":
        """Create a configuration from a YAML file."""
        try:
            with Path(path).open(encoding="utf-8") as stream:
                data = yaml.safe_load(stream) or {}
        except yaml.YAMLError as e:
            msg = f"Error parsing YAML in {path}: {e!s}"
            raise InvalidConfigError(msg) from e
        except OSError as e:
            msg = f"Cannot read configuration file {path}: {e!s}"
            raise InvalidConfigError(msg) from e
        logging.debug("model: loaded configuration from %s", path)
        return cls.from_dict(data, organization=organization)


def _as_names(value: Any, key: str) -> tuple[str, ...]:
    """Normalise a single name or a list of names to a tuple of strings."""
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Iterable):
        return tuple(str(item) for item in value)
    msg = f"'{key}' must be a name or a list of names"
    raise InvalidConfigError(msg)


@dataclass(frozen=True)
class ProjectUsage:
    """
    Represents the access snapshot of one project.

    Attributes:
        project: The project
        repository_count: Number of repositories, None when not fetched
        members: Resolved users per built-in group name
    """

    project: Project
    repository_count: int | None = None
    members: dict[str, frozenset[Identity]] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Project name."""
        return self.project.name

    def member_count(self, group_name: str) -> int:
        """Number of distinct users in a group of this project."""
        return len(self.members.get(group_name, frozenset()))


@dataclass(frozen=True)
class OrganizationUsage:
    """
    Represents the access snapshot of an organization.

    Attributes:
        name: Organization name
        groups: Group names that were counted
        projects: Per-project snapshots
        member_counts: Distinct users per group name across all projects
        user_count: Users in the organization, None when not fetched
        diagnostics: Recoverable conditions met while collecting
        processing_time: Time taken to collect in seconds
    """

    name: str
    groups: tuple[str, ...] = DEFAULT_GROUPS
    projects: list[ProjectUsage] = field(default_factory=list)
    member_counts: dict[str, int] = field(default_factory=dict)
    user_count: int | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    processing_time: float = 0.0

    @property
    def project_count(self) -> int:
        """Number of projects in the report."""
        return len(self.projects)

    @property
    def repository_count(self) -> int:
        """Number of repositories over the projects whose repositories were counted."""
        return sum(p.repository_count for p in self.projects if p.repository_count is not None)

    @property
    def is_complete(self) -> bool:
        """False when any diagnostic means data may be missing."""
        return not any(d.is_incomplete for d in self.diagnostics)


class ViewMode(Enum):
    """
    Defines how to display report results.

    Modes:
        PROJECTS: Member counts per project and group
        OVERVIEW: Organization-wide totals
        DIAGNOSTICS: Recoverable conditions met while collecting
    """

    PROJECTS = "projects"
    OVERVIEW = "overview"
    DIAGNOSTICS = "diagnostics"

    @classmethod
    def from_string(cls, value: str) -> "ViewMode":
        """Convert a string to a ViewMode enum."""
        try:
            return cls[value.upper()]
        except KeyError as e:
            valid = ", ".join(m.name.lower() for m in cls)
            msg = f"Invalid view mode: {value}. Must be one of: {valid}"
            raise InvalidViewModeError(msg) from e

    def __str__(self) -> str:
        """Return the string representation of the enum."""
        return self.name
