# ruff: noqa: PLR2004
import pytest

from ado_access_reporter.core.metrics import MetricsAggregator, group_key
from ado_access_reporter.core.models import DiagnosticKind, Identity, SubjectKind


def group(descriptor: str, principal_name: str) -> Identity:
    return Identity(descriptor, principal_name=principal_name, kind=SubjectKind.GROUP)


def users(*descriptors: str) -> frozenset[Identity]:
    return frozenset(Identity(descriptor) for descriptor in descriptors)


SLIM_ADMINS = group("vssgp.slim.pa", "[Slim]\\Project Administrators")
FAT_ADMINS = group("vssgp.fat.pa", "[Fat]\\Project Administrators")
SLIM_READERS = group("vssgp.slim.r", "[Slim]\\Readers")


def test_group_key() -> None:
    """Test the principal name of a project-scoped group."""
    if group_key("Slim", "Project Administrators") != "[Slim]\\Project Administrators":
        pytest.fail(f"Unexpected key {group_key('Slim', 'Project Administrators')}")


def test_count_members() -> None:
    """Test counting the single admin of Slim."""
    aggregator = MetricsAggregator([SLIM_ADMINS, FAT_ADMINS], {SLIM_ADMINS.descriptor: users("U1")})

    if aggregator.count_members("Project Administrators", "Slim") != 1:
        pytest.fail("Expected 1 administrator in Slim")
    if aggregator.diagnostics:
        pytest.fail(f"Expected no diagnostics, got {aggregator.diagnostics}")


def test_group_not_found() -> None:
    """Test that a missing group counts zero members with a diagnostic."""
    aggregator = MetricsAggregator([SLIM_READERS], {SLIM_READERS.descriptor: users("U1")})

    if aggregator.count_members("Project Administrators", "Slim") != 0:
        pytest.fail("Expected 0 for a missing group")
    diagnostic = aggregator.diagnostics[0]
    if diagnostic.kind != DiagnosticKind.GROUP_NOT_FOUND:
        pytest.fail(f"Expected GROUP_NOT_FOUND, got {diagnostic.kind}")
    if diagnostic.subject != "[Slim]\\Project Administrators":
        pytest.fail(f"Unexpected subject {diagnostic.subject}")


def test_match_is_exact() -> None:
    """Test that display names and partial names do not match."""
    lookalikes = [
        group("vssgp.1", "[Slim]\\Project Administrators (old)"),
        group("vssgp.2", "[slim]\\project administrators"),
        Identity("vssgp.3", display_name="[Slim]\\Project Administrators", kind=SubjectKind.GROUP),
    ]
    aggregator = MetricsAggregator(lookalikes, {})

    if aggregator.lookup_group("Project Administrators", "Slim") is not None:
        pytest.fail("Expected no match")


def test_ambiguous_group() -> None:
    """Test that two groups with the same key count zero members."""
    duplicate = group("vssgp.slim.pa2", "[Slim]\\Project Administrators")
    aggregator = MetricsAggregator(
        [SLIM_ADMINS, duplicate],
        {SLIM_ADMINS.descriptor: users("U1"), duplicate.descriptor: users("U2")},
    )

    if aggregator.count_members("Project Administrators", "Slim") != 0:
        pytest.fail("Expected 0 for an ambiguous group")
    if [d.kind for d in aggregator.diagnostics] != [DiagnosticKind.AMBIGUOUS_GROUP]:
        pytest.fail(f"Expected AMBIGUOUS_GROUP, got {aggregator.diagnostics}")


def test_diagnostic_recorded_once_per_key() -> None:
    """Test that repeated lookups of a missing group are diagnosed once."""
    aggregator = MetricsAggregator([], {})

    for _ in range(3):
        aggregator.count_members("Readers", "Slim")
    aggregator.count_members("Readers", "Fat")

    if len(aggregator.diagnostics) != 2:
        pytest.fail(f"Expected 2 diagnostics, got {len(aggregator.diagnostics)}")


def test_unresolved_group_counts_zero() -> None:
    """Test that a group without a resolved set counts zero members."""
    aggregator = MetricsAggregator([SLIM_ADMINS], {})

    if aggregator.count_members("Project Administrators", "Slim") != 0:
        pytest.fail("Expected 0 for an unresolved group")
    if aggregator.diagnostics:
        pytest.fail("An unresolved group is not a missing group")


def test_organization_count_is_distinct() -> None:
    """Test that users administering several projects are counted once."""
    aggregator = MetricsAggregator(
        [SLIM_ADMINS, FAT_ADMINS],
        {SLIM_ADMINS.descriptor: users("U1", "U2"), FAT_ADMINS.descriptor: users("U2", "U3")},
    )

    if aggregator.organization_members("Project Administrators", ["Slim", "Fat"]) != users("U1", "U2", "U3"):
        pytest.fail("Unexpected organization members")
    if aggregator.organization_count("Project Administrators", ["Slim", "Fat", "Missing"]) != 3:
        pytest.fail("Expected 3 distinct administrators")
