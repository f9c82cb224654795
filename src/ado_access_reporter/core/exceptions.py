"""Custom exceptions for access reporting.

This module defines the exception hierarchy used throughout the access reporter.
Only fatal conditions are exceptions: recoverable conditions met while fetching
or resolving (truncated pagination, cycles, unknown subject kinds, missing
groups) are recorded as diagnostics on the report instead.

Exception Hierarchy:
    ADOAccessReporterError
    ├── AuthenticationError
    ├── ConfigurationError
    │   ├── InvalidClientError
    │   ├── InvalidConfigError
    │   ├── InvalidPaginationPolicyError
    │   └── InvalidViewModeError
    └── APIError
        ├── FetchFailedError
        └── ResolutionFailedError

Usage:
    ```python
    from ado_access_reporter.core.exceptions import (
        ADOAccessReporterError,
        AuthenticationError,
        FetchFailedError,
    )

    try:
        report = reporter.collect()
    except AuthenticationError:
        print("Authentication failed. Check your credentials.")
    except FetchFailedError as e:
        print(f"Could not fetch data: {e}")
    except ADOAccessReporterError as e:
        print(f"Error occurred: {e}")
    ```

Note:
    All exceptions inherit from ADOAccessReporterError to allow catching
    all package-specific exceptions with a single except clause.
"""


class ADOAccessReporterError(Exception):
    """Base exception for ADO Access Reporter."""


class AuthenticationError(ADOAccessReporterError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Failed to authenticate with Azure DevOps") -> None:
        super().__init__(message)


class ConfigurationError(ADOAccessReporterError):
    """Base class for configuration related errors."""


class InvalidClientError(ConfigurationError):
    """Raised when an invalid client is provided."""

    def __init__(self, message: str = "Client must be an instance of AzureDevOpsClient") -> None:
        super().__init__(message)


class InvalidConfigError(ConfigurationError):
    """Raised when a report configuration is invalid."""

    def __init__(self, message: str = "Invalid report configuration") -> None:
        super().__init__(message)


class InvalidPaginationPolicyError(ConfigurationError):
    """Raised when pagination policy is invalid."""

    def __init__(self, message: str = "Invalid pagination policy") -> None:
        super().__init__(message)


class InvalidViewModeError(ConfigurationError):
    """Raised when view mode is invalid."""

    def __init__(self, message: str = "Invalid view mode") -> None:
        super().__init__(message)


class APIError(ADOAccessReporterError):
    """Base class for API related errors."""


class FetchFailedError(APIError):
    """Raised when a request that cannot be downgraded to partial data fails."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Failed to fetch {url}")


class ResolutionFailedError(APIError):
    """Raised when the members of a group cannot be resolved after retrying."""

    def __init__(self, group: str) -> None:
        self.group = group
        super().__init__(f"Failed to resolve members of group '{group}'")
