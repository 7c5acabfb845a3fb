"""Azure DevOps REST API client for repository and pipeline creation.

This module provides an async wrapper around the two Azure DevOps
endpoints the workflow needs:
- POST {project}/_apis/git/repositories (create repository)
- POST {project}/_apis/pipelines (create pipeline)

Requests authenticate with HTTP Basic (empty username, access token as
password). There is no retry logic: both calls create durable state and
are attempted at most once per workflow run.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from src.scaffolder.credentials import CredentialContext


logger = logging.getLogger(__name__)

HTML_CONTENT_TYPE = "text/html"


class AzureDevOpsAPIError(Exception):
    """Raised when an Azure DevOps API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code, or None if no response was received.
        response_body: Response body from Azure DevOps.
        request_url: The URL that was requested.
        html_response: True when the host answered with an HTML page,
            which signals a sign-in redirect rather than an API error.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        html_response: bool = False,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        self.html_response = html_response
        super().__init__(message)


class AzureDevOpsClient:
    """Async Azure DevOps client scoped to one organization.

    Attributes:
        credentials: Source-control credential used for Basic auth.
        organization: Azure DevOps organization name.
        base_url: Azure DevOps service URL (default: https://dev.azure.com).
        repositories_api_version: api-version for the git repositories API.
        pipelines_api_version: api-version for the pipelines API.
        timeout: Request timeout in seconds.

    Example:
        >>> async with AzureDevOpsClient(credentials, "TILabs00") as client:
        ...     await client.create_repository("Team-A", "svc-orders")
    """

    def __init__(
        self,
        credentials: CredentialContext,
        organization: str,
        base_url: str = "https://dev.azure.com",
        repositories_api_version: str = "6.0",
        pipelines_api_version: str = "6.0-preview.1",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.organization = organization
        self.base_url = base_url.rstrip("/")
        self.repositories_api_version = repositories_api_version
        self.pipelines_api_version = pipelines_api_version
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=f"{self.base_url}/{self.organization}",
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": self.credentials.basic_auth_header(),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AzureDevOpsClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        api_version: str,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make a single HTTP request and decode the JSON response.

        An HTML content type is checked before the status code: Azure
        DevOps answers unauthenticated API calls with a sign-in page,
        sometimes with a 2xx status.

        Args:
            method: HTTP method.
            path: Path relative to the organization URL.
            api_version: Value of the api-version query parameter.
            json_data: Optional JSON body.

        Returns:
            The decoded JSON response body.

        Raises:
            AzureDevOpsAPIError: On transport failure, HTML response,
                non-2xx status (redirects are not followed) or
                undecodable body.
        """
        try:
            response = await self.client.request(
                method=method,
                url=path,
                params={"api-version": api_version},
                json=json_data,
            )
        except httpx.RequestError as exc:
            logger.error(
                "Azure DevOps request failed",
                extra={"path": path, "method": method, "error": str(exc)},
            )
            raise AzureDevOpsAPIError(
                message=f"Azure DevOps request failed: {exc}",
                request_url=f"{self.base_url}/{self.organization}{path}",
            ) from exc

        content_type = response.headers.get("content-type", "")
        if HTML_CONTENT_TYPE in content_type:
            logger.error(
                "Received HTML response, indicating authentication or redirection issue",
                extra={"path": path, "status_code": response.status_code},
            )
            raise AzureDevOpsAPIError(
                message=(
                    "Authentication failed. Please check your Azure DevOps "
                    "token and permissions."
                ),
                status_code=response.status_code,
                response_body=response.text,
                request_url=str(response.url),
                html_response=True,
            )

        if not response.is_success:
            error_body = response.text
            logger.error(
                "Azure DevOps API error",
                extra={
                    "status_code": response.status_code,
                    "path": path,
                    "method": method,
                    "response_body": error_body[:500],
                },
            )
            raise AzureDevOpsAPIError(
                message=(
                    f"{response.status_code} {response.reason_phrase}, {error_body}"
                ),
                status_code=response.status_code,
                response_body=error_body,
                request_url=str(response.url),
            )

        try:
            return response.json()
        except ValueError as exc:
            raise AzureDevOpsAPIError(
                message="Azure DevOps returned a non-JSON response",
                status_code=response.status_code,
                response_body=response.text,
                request_url=str(response.url),
            ) from exc

    async def create_repository(
        self, project_name: str, repo_name: str
    ) -> Dict[str, Any]:
        """Create an empty git repository in a project.

        Args:
            project_name: Azure DevOps project name.
            repo_name: Name of the new repository.

        Returns:
            The created repository data (id, name, project, remoteUrl, ...).

        Raises:
            AzureDevOpsAPIError: If the request fails.
        """
        return await self._request(
            method="POST",
            path=f"/{project_name}/_apis/git/repositories",
            api_version=self.repositories_api_version,
            json_data={"name": repo_name},
        )

    async def create_pipeline(
        self, project_name: str, definition: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Create a pipeline in a project.

        Args:
            project_name: Azure DevOps project name.
            definition: Pipeline body (name and configuration).

        Returns:
            The created pipeline data (id, name, url, ...).

        Raises:
            AzureDevOpsAPIError: If the request fails.
        """
        return await self._request(
            method="POST",
            path=f"/{project_name}/_apis/pipelines",
            api_version=self.pipelines_api_version,
            json_data=definition,
        )
