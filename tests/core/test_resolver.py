# ruff: noqa: PLR2004
from unittest.mock import Mock, patch

import pytest
import requests

from ado_access_reporter.core.client import AzureDevOpsClient
from ado_access_reporter.core.exceptions import (
    AuthenticationError,
    FetchFailedError,
    InvalidClientError,
    ResolutionFailedError,
)
from ado_access_reporter.core.models import (
    DiagnosticKind,
    Identity,
    MembershipEdge,
    PagedResult,
    SubjectKind,
)
from ado_access_reporter.core.resolver import MembershipResolver


def user(descriptor: str) -> Identity:
    return Identity(descriptor, principal_name=f"{descriptor}@contoso.com", kind=SubjectKind.USER)


def group(descriptor: str) -> Identity:
    return Identity(descriptor, principal_name=f"[Slim]\\{descriptor}", kind=SubjectKind.GROUP)


class FakeDirectory:
    """In-memory directory graph answering membership and subject lookups."""

    def __init__(self, subjects: list[Identity], edges: dict[str, list[str]]) -> None:
        self.subjects = {subject.descriptor: subject for subject in subjects}
        self.edges = edges

    def list_memberships(self, descriptor: str) -> PagedResult:
        result = PagedResult()
        result.add_page([MembershipEdge(descriptor, member) for member in self.edges.get(descriptor, [])])
        return result

    def lookup_subjects(self, descriptors: list[str]) -> dict[str, Identity]:
        return {d: self.subjects[d] for d in descriptors if d in self.subjects}


@pytest.fixture
def client() -> AzureDevOpsClient:
    """Client whose requests are never sent."""
    return AzureDevOpsClient("org", "pat")


def make_resolver(
    client: AzureDevOpsClient,
    directory: FakeDirectory,
    **kwargs: object,
) -> tuple[MembershipResolver, Mock, Mock]:
    """Wire a resolver to a fake directory, returning the membership and lookup mocks."""
    memberships = patch.object(client, "list_memberships", side_effect=directory.list_memberships).start()
    lookups = patch.object(client, "lookup_subjects", side_effect=directory.lookup_subjects).start()
    resolver = MembershipResolver(client, retry_delay=0, **kwargs)
    return resolver, memberships, lookups


@pytest.fixture(autouse=True)
def stop_patches() -> None:
    """Undo patches started by make_resolver."""
    yield
    patch.stopall()


def kinds(resolver: MembershipResolver) -> list[DiagnosticKind]:
    return [diagnostic.kind for diagnostic in resolver.diagnostics]


def test_invalid_client() -> None:
    """Test that the resolver requires an AzureDevOpsClient."""
    with pytest.raises(InvalidClientError):
        MembershipResolver(Mock())


def test_nested_groups_are_flattened(client: AzureDevOpsClient) -> None:
    """Test G1 -> [U1, G2], G2 -> [U1, U2] resolves to {U1, U2}."""
    directory = FakeDirectory(
        [group("G1"), group("G2"), user("U1"), user("U2")],
        {"G1": ["U1", "G2"], "G2": ["U1", "U2"]},
    )
    resolver, _, _ = make_resolver(client, directory)

    members = resolver.resolve_members(group("G1"))

    if members != {user("U1"), user("U2")}:
        pytest.fail(f"Expected {{U1, U2}}, got {members}")
    if resolver.diagnostics:
        pytest.fail(f"Expected no diagnostics, got {resolver.diagnostics}")


def test_empty_group(client: AzureDevOpsClient) -> None:
    """Test that a group without members resolves to the empty set without a lookup."""
    resolver, _, lookups = make_resolver(client, FakeDirectory([group("G1")], {}))

    if resolver.resolve_members(group("G1")) != set():
        pytest.fail("Expected no members")
    lookups.assert_not_called()


def test_diamond_is_deduplicated(client: AzureDevOpsClient) -> None:
    """Test that a user reached through two paths is counted once."""
    directory = FakeDirectory(
        [group("G1"), group("G2"), group("G3"), group("G4"), user("U1"), user("U2")],
        {"G1": ["G2", "G3"], "G2": ["G4"], "G3": ["G4", "U2"], "G4": ["U1"]},
    )
    resolver, memberships, _ = make_resolver(client, directory)

    members = resolver.resolve_members(group("G1"))

    if members != {user("U1"), user("U2")}:
        pytest.fail(f"Unexpected members {members}")
    if kinds(resolver):
        pytest.fail("A group reached twice is not a cycle")
    fetched = [call.args[0] for call in memberships.call_args_list]
    if sorted(fetched) != ["G1", "G2", "G3", "G4"]:
        pytest.fail(f"Expected each group fetched once, got {fetched}")


def test_cycle_is_skipped(client: AzureDevOpsClient) -> None:
    """Test that G1 -> G2 -> G1 terminates with a cycle diagnostic."""
    directory = FakeDirectory(
        [group("G1"), group("G2"), user("U1"), user("U2")],
        {"G1": ["U1", "G2"], "G2": ["U2", "G1"]},
    )
    resolver, _, _ = make_resolver(client, directory)

    members = resolver.resolve_members(group("G1"))

    if members != {user("U1"), user("U2")}:
        pytest.fail(f"Unexpected members {members}")
    if kinds(resolver) != [DiagnosticKind.CYCLE_DETECTED]:
        pytest.fail(f"Expected one cycle diagnostic, got {resolver.diagnostics}")
    if resolver.diagnostics[0].subject != "G1":
        pytest.fail("Expected the cycle to name the repeated group")


def test_self_membership(client: AzureDevOpsClient) -> None:
    """Test that a group containing itself terminates."""
    directory = FakeDirectory([group("G1"), user("U1")], {"G1": ["G1", "U1"]})
    resolver, _, _ = make_resolver(client, directory)

    if resolver.resolve_members(group("G1")) != {user("U1")}:
        pytest.fail("Expected U1 only")
    if kinds(resolver) != [DiagnosticKind.CYCLE_DETECTED]:
        pytest.fail("Expected a cycle diagnostic")


def test_resolution_is_idempotent_and_cached(client: AzureDevOpsClient) -> None:
    """Test that resolving twice gives the same set without refetching."""
    directory = FakeDirectory(
        [group("G1"), group("G2"), user("U1"), user("U2")],
        {"G1": ["U1", "G2"], "G2": ["U2"]},
    )
    resolver, memberships, _ = make_resolver(client, directory)

    first = resolver.resolve_members(group("G1"))
    second = resolver.resolve_members(group("G1"))
    nested = resolver.resolve_members(group("G2"))

    if first != second:
        pytest.fail("Expected identical results")
    if nested != {user("U2")}:
        pytest.fail(f"Unexpected nested members {nested}")
    if memberships.call_count != 2:
        pytest.fail(f"Expected 2 membership fetches, got {memberships.call_count}")


def test_unhandled_subject_kind(client: AzureDevOpsClient) -> None:
    """Test that subjects that are neither users nor groups are skipped."""
    principal = Identity("sp.1", principal_name="pipeline", kind=SubjectKind.UNKNOWN)
    directory = FakeDirectory([group("G1"), user("U1"), principal], {"G1": ["U1", "sp.1"]})
    resolver, _, _ = make_resolver(client, directory)

    if resolver.resolve_members(group("G1")) != {user("U1")}:
        pytest.fail("Expected U1 only")
    if kinds(resolver) != [DiagnosticKind.UNHANDLED_SUBJECT_KIND]:
        pytest.fail(f"Expected unhandled kind diagnostic, got {resolver.diagnostics}")


def test_subject_not_found(client: AzureDevOpsClient) -> None:
    """Test that members unknown to subject lookup are skipped."""
    directory = FakeDirectory([group("G1"), user("U1")], {"G1": ["U1", "aad.deleted"]})
    resolver, _, _ = make_resolver(client, directory)

    if resolver.resolve_members(group("G1")) != {user("U1")}:
        pytest.fail("Expected U1 only")
    if kinds(resolver) != [DiagnosticKind.SUBJECT_NOT_FOUND]:
        pytest.fail(f"Expected subject not found diagnostic, got {resolver.diagnostics}")


def test_partial_memberships_are_reported(client: AzureDevOpsClient) -> None:
    """Test that pagination diagnostics of membership fetches are kept."""
    directory = FakeDirectory([group("G1"), user("U1")], {"G1": ["U1"]})
    resolver, memberships, _ = make_resolver(client, directory)
    partial = directory.list_memberships("G1")
    partial.mark_partial("stopped after 10 pages")
    memberships.side_effect = None
    memberships.return_value = partial

    resolver.resolve_members(group("G1"))

    if kinds(resolver) != [DiagnosticKind.PARTIAL_RESULT]:
        pytest.fail(f"Expected a partial result diagnostic, got {resolver.diagnostics}")


def test_transient_failure_is_retried(client: AzureDevOpsClient) -> None:
    """Test that a lookup succeeding on the third attempt resolves normally."""
    directory = FakeDirectory([group("G1"), user("U1")], {"G1": ["U1"]})
    resolver, memberships, _ = make_resolver(client, directory)
    memberships.side_effect = [
        FetchFailedError("https://example/memberships/G1"),
        requests.exceptions.ConnectionError("reset"),
        directory.list_memberships("G1"),
    ]

    if resolver.resolve_members(group("G1")) != {user("U1")}:
        pytest.fail("Expected U1")
    if memberships.call_count != 3:
        pytest.fail(f"Expected 3 attempts, got {memberships.call_count}")


def test_root_failure_raises(client: AzureDevOpsClient) -> None:
    """Test that the root group failing every attempt raises ResolutionFailedError."""
    directory = FakeDirectory([group("G1")], {})
    resolver, memberships, _ = make_resolver(client, directory)
    memberships.side_effect = FetchFailedError("https://example/memberships/G1")

    with pytest.raises(ResolutionFailedError) as exc_info:
        resolver.resolve_members(group("G1"))

    if memberships.call_count != 3:
        pytest.fail(f"Expected 3 attempts, got {memberships.call_count}")
    if exc_info.value.group != "[Slim]\\G1":
        pytest.fail(f"Unexpected group {exc_info.value.group}")


def test_lookup_failure_raises(client: AzureDevOpsClient) -> None:
    """Test that a failing subject lookup is retried then raises."""
    directory = FakeDirectory([group("G1"), user("U1")], {"G1": ["U1"]})
    resolver, _, lookups = make_resolver(client, directory, max_attempts=2)
    lookups.side_effect = requests.exceptions.Timeout("slow")

    with pytest.raises(ResolutionFailedError):
        resolver.resolve_members(group("G1"))

    if lookups.call_count != 2:
        pytest.fail(f"Expected 2 attempts, got {lookups.call_count}")


def test_nested_failure_is_skipped(client: AzureDevOpsClient) -> None:
    """Test that a failing nested group is recorded and its siblings kept."""
    directory = FakeDirectory(
        [group("G1"), group("G2"), user("U1")],
        {"G1": ["U1", "G2"]},
    )
    resolver, memberships, _ = make_resolver(client, directory)

    def flaky(descriptor: str) -> PagedResult:
        if descriptor == "G2":
            raise FetchFailedError(f"https://example/memberships/{descriptor}")
        return directory.list_memberships(descriptor)

    memberships.side_effect = flaky

    if resolver.resolve_members(group("G1")) != {user("U1")}:
        pytest.fail("Expected U1")
    if kinds(resolver) != [DiagnosticKind.RESOLUTION_FAILED]:
        pytest.fail(f"Expected a resolution failure diagnostic, got {resolver.diagnostics}")


def test_failed_group_reached_twice(client: AzureDevOpsClient) -> None:
    """Test that a failing group reachable through two parents is fetched and diagnosed once."""
    directory = FakeDirectory(
        [group("G1"), group("G2"), group("G3"), group("G4"), user("U1")],
        {"G1": ["G2", "G3"], "G2": ["G4", "U1"], "G3": ["G4"]},
    )
    resolver, memberships, _ = make_resolver(client, directory)

    def failing_leaf(descriptor: str) -> PagedResult:
        if descriptor == "G4":
            raise FetchFailedError(f"https://example/memberships/{descriptor}")
        return directory.list_memberships(descriptor)

    memberships.side_effect = failing_leaf

    if resolver.resolve_members(group("G1")) != {user("U1")}:
        pytest.fail("Expected U1")
    attempts = [call.args[0] for call in memberships.call_args_list].count("G4")
    if attempts != 3:
        pytest.fail(f"Expected 3 attempts for G4, got {attempts}")
    if kinds(resolver) != [DiagnosticKind.RESOLUTION_FAILED]:
        pytest.fail(f"Expected a single resolution failure, got {resolver.diagnostics}")


def test_failed_group_is_not_refetched(client: AzureDevOpsClient) -> None:
    """Test that a group that failed once fails again without new attempts."""
    resolver, memberships, _ = make_resolver(client, FakeDirectory([group("G1")], {}))
    memberships.side_effect = FetchFailedError("https://example/memberships/G1")

    for _ in range(2):
        with pytest.raises(ResolutionFailedError):
            resolver.resolve_members(group("G1"))

    if memberships.call_count != 3:
        pytest.fail(f"Expected 3 attempts in total, got {memberships.call_count}")


def test_nested_failure_fails_fast(client: AzureDevOpsClient) -> None:
    """Test that a failing nested group aborts when subtrees are not skipped."""
    directory = FakeDirectory([group("G1"), group("G2"), user("U1")], {"G1": ["U1", "G2"]})
    resolver, memberships, _ = make_resolver(client, directory, skip_failed_subtrees=False)

    def flaky(descriptor: str) -> PagedResult:
        if descriptor == "G2":
            raise FetchFailedError(f"https://example/memberships/{descriptor}")
        return directory.list_memberships(descriptor)

    memberships.side_effect = flaky

    with pytest.raises(ResolutionFailedError):
        resolver.resolve_members(group("G1"))


def test_authentication_error_is_not_retried(client: AzureDevOpsClient) -> None:
    """Test that authentication errors propagate immediately."""
    resolver, memberships, _ = make_resolver(client, FakeDirectory([], {}))
    memberships.side_effect = AuthenticationError()

    with pytest.raises(AuthenticationError):
        resolver.resolve_members(group("G1"))

    if memberships.call_count != 1:
        pytest.fail(f"Expected a single attempt, got {memberships.call_count}")
