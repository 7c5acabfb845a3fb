"""Argo CD REST API client for application registration.

Submits Application manifests to POST /api/v1/applications using bearer
token authentication. The Argo CD token is distinct from the Azure
DevOps credential and is supplied per request by the invoking host.
"""

import logging
from typing import Any, Dict, Optional

import httpx


logger = logging.getLogger(__name__)


class ArgoCDAPIError(Exception):
    """Raised when an Argo CD API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code, or None if no response was received.
        response_body: Response body from Argo CD.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class ArgoCDClient:
    """Async Argo CD API client.

    Attributes:
        base_url: Argo CD server URL (e.g. https://argocd.example.com).
        token: Bearer token for the Argo CD API.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ArgoCDClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def create_application(self, manifest: Dict[str, Any]) -> Dict[str, Any]:
        """Create an Argo CD Application.

        Args:
            manifest: Application resource (apiVersion, kind, metadata, spec).

        Returns:
            The created application as returned by Argo CD.

        Raises:
            ArgoCDAPIError: If the request fails, returns a non-2xx status
                (redirects are not followed) or an undecodable body.
        """
        path = "/api/v1/applications"
        name = manifest.get("metadata", {}).get("name")

        logger.info(
            "Registering Argo CD application",
            extra={"application": name, "argocd_url": self.base_url},
        )

        try:
            response = await self.client.post(path, json=manifest)
        except httpx.RequestError as exc:
            raise ArgoCDAPIError(
                message=f"Argo CD request failed: {exc}",
                request_url=f"{self.base_url}{path}",
            ) from exc

        if not response.is_success:
            error_body = response.text
            logger.error(
                "Argo CD API error",
                extra={
                    "status_code": response.status_code,
                    "application": name,
                    "response_body": error_body[:500],
                },
            )
            raise ArgoCDAPIError(
                message=f"{response.status_code} {response.reason_phrase}, {error_body}",
                status_code=response.status_code,
                response_body=error_body,
                request_url=str(response.url),
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ArgoCDAPIError(
                message="Argo CD returned a non-JSON response",
                status_code=response.status_code,
                response_body=response.text,
                request_url=str(response.url),
            ) from exc
