"""Core Azure DevOps API client functionality.

This module provides the client used to read projects, repositories and the
directory graph (groups, users, memberships, subjects) of an Azure DevOps
organization. All operations are synchronous and blocking: each request
completes before the next one starts.

Key Components:
    AzureDevOpsClient: Main class that owns the HTTP session, authentication
        and the paginated fetcher every list operation goes through.

Features:
    - Automatic authentication with DefaultAzureCredential (bearer) or PAT (basic)
    - Continuation-token pagination with a page cap
    - Explicit lenient or strict handling of failures after the first page
    - Automatic transport retry with exponential backoff on 408/429/5xx
    - Explicit connect and read timeouts on every request
    - Legacy {organization}.visualstudio.com endpoints

Dependencies:
    - models.py: Data models for identities, projects and paged results
    - exceptions.py: Custom exceptions for error handling
    - requests: For HTTP operations
    - azure.identity: For Azure authentication

Example:
    ```python
    from ado_access_reporter.core.client import AzureDevOpsClient

    with AzureDevOpsClient(organization="org", token="pat") as client:
        projects = client.list_projects()
        print(f"{projects.total_count} projects in {projects.pages} pages")

        groups = client.list_groups()
        admins = next(
            g for g in groups.items
            if g.principal_name == "[Slim]\\\\Project Administrators"
        )
        edges = client.list_memberships(admins.descriptor)
        members = client.lookup_subjects(
            [edge.member_descriptor for edge in edges.items]
        )
    ```

Raises:
    AuthenticationError: When authentication fails or token is invalid
    FetchFailedError: When the first page of a paginated fetch fails
    requests.exceptions.RequestException: When other API requests fail
"""

import base64
import logging
from typing import Any, ClassVar

import requests
from azure.identity import DefaultAzureCredential
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ado_access_reporter.core.exceptions import AuthenticationError, FetchFailedError
from ado_access_reporter.core.models import (
    Identity,
    MembershipEdge,
    PagedResult,
    PaginationPolicy,
    Project,
    Repository,
)


class AzureDevOpsClient:
    """Handles API interactions with Azure DevOps at the organization level."""

    API_VERSION = "7.1-preview.1"  # Azure DevOps API version
    AZURE_DEVOPS_RESOURCE_ID = "499b84ac-1321-427f-aa17-267ca6975798"  # Azure DevOps resource ID
    CONTINUATION_HEADER = "x-ms-continuationtoken"  # Response header carrying the cursor
    CONTINUATION_PARAM = "continuationToken"  # Query parameter echoing the cursor
    MAX_PAGES = 10  # Maximum number of pages fetched per endpoint
    MAX_RETRIES = 3  # Maximum number of transport retries for API requests
    RETRY_BACKOFF = 1  # Exponential backoff factor
    RETRY_STATUS_CODES: ClassVar[list[int]] = [
        500,
        502,
        503,
        504,
        429,
        408,
    ]  # Status codes to retry on
    LOOKUP_BATCH_SIZE = 100  # Descriptors per subject lookup request
    CONNECT_TIMEOUT = 10  # Connection timeout in seconds
    READ_TIMEOUT = 30  # Read timeout in seconds

    def __init__(  # noqa: PLR0913
        self,
        organization: str,
        token: str | None = None,
        api_version: str = API_VERSION,
        pagination_policy: PaginationPolicy = PaginationPolicy.LENIENT,
        max_pages: int = MAX_PAGES,
        timeout: float = READ_TIMEOUT,
        use_legacy_url: bool = False,  # noqa: FBT001, FBT002
    ) -> None:
        # Base configuration
        self.organization = organization
        self.api_version = api_version
        self.pagination_policy = pagination_policy
        self.max_pages = max_pages
        self.timeout = (self.CONNECT_TIMEOUT, timeout)
        if use_legacy_url:
            self.base_url = f"https://{organization}.visualstudio.com"
            self.graph_url = f"https://{organization}.vssps.visualstudio.com"
        else:
            self.base_url = f"https://dev.azure.com/{organization}"
            self.graph_url = f"https://vssps.dev.azure.com/{organization}"

        # Authentication: a PAT uses basic auth, an Azure AD token bearer auth
        if token:
            self.token = token
            credentials = base64.b64encode(f":{token}".encode()).decode()
            authorization = f"Basic {credentials}"
        else:
            self.token = self.get_access_token()
            if not self.token:
                raise AuthenticationError
            authorization = f"Bearer {self.token}"
        self.headers = {
            "Authorization": authorization,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self.default_params = {"api-version": self.api_version}

        # Session
        self._session = None

    ### Session methods
    @property
    def session(self) -> requests.Session:
        """Lazy initialization of the session."""
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        """Creates a new requests session with retry logic."""
        session = requests.Session()
        retries = Retry(
            total=self.MAX_RETRIES,
            backoff_factor=self.RETRY_BACKOFF,
            status_forcelist=self.RETRY_STATUS_CODES,
            allowed_methods=None,  # subject lookup is a read-only POST
        )
        session.mount("https://", HTTPAdapter(max_retries=retries))
        session.headers.update(self.headers)
        return session

    ### Context manager methods
    def __enter__(self) -> "AzureDevOpsClient":
        """Context manager entry."""
        if self._session is None:
            self._session = self._create_session()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        """Context manager exit."""
        if self._session:
            self._session.close()
            self._session = None

    ### Request methods
    def _send(
        self,
        method: str,
        url: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> requests.Response:
        """Sends a request with error handling and returns the raw response."""
        try:
            merged_params = {**self.default_params, **(params or {})}
            response = self.session.request(
                method,
                url,
                params=merged_params,
                json=json,
                timeout=self.timeout,
            )
            if response.status_code == 401:  # noqa: PLR2004
                raise AuthenticationError
            response.raise_for_status()
            return response
        except requests.exceptions.HTTPError as e:
            logging.error("client: [%s] %s - %s", e.response.status_code, e.response.reason, url)  # noqa: LOG015, TRY400
            raise
        except requests.exceptions.RequestException as e:
            logging.error("client: Request error: %s - %s", type(e).__name__, url)  # noqa: LOG015, TRY400
            raise

    def _post(self, url: str, body: dict, params: dict | None = None) -> dict:
        """Handles POST requests and returns the JSON response."""
        return self._send("POST", url, params=params, json=body).json()

    def fetch_all(
        self,
        url: str,
        params: dict | None = None,
        max_pages: int | None = None,
        policy: PaginationPolicy | None = None,
    ) -> PagedResult:
        """
        Fetch every page of a paginated endpoint.

        Pages are requested until the response no longer carries a continuation
        token or max_pages pages have been retrieved. Items keep page arrival order.

        Args:
            url: Endpoint URL, the api-version parameter is added automatically
            params: Additional query parameters
            max_pages: Page cap, defaults to the client's max_pages
            policy: Handling of failures after the first page, defaults to the client's policy

        Returns:
            PagedResult: The raw items of every page; complete is False when the
            page cap was hit or a later page failed under the lenient policy.

        Raises:
            AuthenticationError: When a request is rejected with 401
            FetchFailedError: When the first page fails, or any page under the strict policy
        """
        max_pages = max_pages or self.max_pages
        policy = policy or self.pagination_policy
        result = PagedResult()
        continuation_token = None

        while True:
            page_params = dict(params or {})
            if continuation_token:
                page_params[self.CONTINUATION_PARAM] = continuation_token

            try:
                response = self._send("GET", url, params=page_params)
                data = response.json()
            except requests.exceptions.RequestException as e:
                if result.pages == 0 or policy == PaginationPolicy.STRICT:
                    raise FetchFailedError(url) from e
                result.mark_partial(
                    f"page {result.pages + 1} failed, returning {result.total_count} items collected so far",
                    subject=url,
                )
                break

            result.add_page(data.get("value", []))
            logging.debug("client: page %d of %s returned %d items", result.pages, url, len(data.get("value", [])))

            continuation_token = response.headers.get(self.CONTINUATION_HEADER)
            if not continuation_token:
                break
            if result.pages >= max_pages:
                result.mark_partial(
                    f"stopped after {result.pages} pages with more results pending",
                    subject=url,
                )
                break

        return result

    ### Authentication methods
    def get_access_token(self) -> str | None:
        """
        Retrieves an access token using the DefaultAzureCredential.

        This method attempts to obtain an access token for the Azure DevOps
        resource using the DefaultAzureCredential, which supports various
        authentication methods including managed identity, environment
        variables, and more.

        Returns:
          str: The access token if successfully retrieved, otherwise None.
        """
        try:
            credential = DefaultAzureCredential()
            return credential.get_token(self.AZURE_DEVOPS_RESOURCE_ID).token
        except requests.exceptions.RequestException:
            logging.exception("client: HTTP error occurred while retrieving token")
        except Exception:
            logging.exception("client: unexpected error retrieving access token")
        return None

    ### Project methods
    def list_projects(self) -> PagedResult:
        """Lists all projects in the organization."""
        url = f"{self.base_url}/_apis/projects"
        return self.fetch_all(url).convert(Project.from_get_response)

    ### Repository methods
    def list_repositories(self, project: str) -> PagedResult:
        """Lists all repositories in a project."""
        url = f"{self.base_url}/{project}/_apis/git/repositories"
        return self.fetch_all(url).convert(Repository.from_get_response)

    ### Graph methods
    def list_groups(self, scope_descriptor: str | None = None) -> PagedResult:
        """Lists all groups in the organization, or in a project scope."""
        url = f"{self.graph_url}/_apis/graph/groups"
        params = {"scopeDescriptor": scope_descriptor} if scope_descriptor else None
        return self.fetch_all(url, params=params).convert(Identity.from_get_response)

    def list_users(self) -> PagedResult:
        """Lists all users in the organization."""
        url = f"{self.graph_url}/_apis/graph/users"
        return self.fetch_all(url).convert(Identity.from_get_response)

    def list_memberships(self, descriptor: str) -> PagedResult:
        """Lists the direct membership edges from a group down to its members."""
        url = f"{self.graph_url}/_apis/graph/memberships/{descriptor}"
        return self.fetch_all(url, params={"direction": "down"}).convert(MembershipEdge.from_get_response)

    def lookup_subjects(self, descriptors: list[str]) -> dict[str, Identity]:
        """
        Resolves descriptors to identities using the subject lookup API.

        Descriptors are looked up in batches of LOOKUP_BATCH_SIZE. Descriptors
        unknown to the directory are absent from the returned mapping.
        """
        url = f"{self.graph_url}/_apis/graph/subjectlookup"
        subjects = {}
        for batch in _batched(list(dict.fromkeys(descriptors)), self.LOOKUP_BATCH_SIZE):
            body = {"lookupKeys": [{"descriptor": descriptor} for descriptor in batch]}
            data = self._post(url, body)
            for descriptor, subject in (data.get("value") or {}).items():
                subjects[descriptor] = Identity.from_get_response({"descriptor": descriptor, **subject})
        return subjects


def _batched(items: list[Any], size: int) -> list[list[Any]]:
    """Split a list into consecutive chunks of at most size items."""
    return [items[i : i + size] for i in range(0, len(items), size)]

