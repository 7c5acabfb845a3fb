"""Error taxonomy for the provisioning workflow.

Every failure the workflow can surface to its caller is one of four
kinds, all rooted at ScaffolderError:

- ConfigError: missing or invalid input/credential, raised before any
  external call is made
- AuthOrApiError: the source-control REST API rejected the request or
  answered with an HTML page (authentication/redirect failure)
- GitOperationError: clone, filesystem, commit or push failure while
  materializing template content
- RegistrationError: the pipeline or Argo CD API rejected the
  delivery registration

Nothing in the workflow recovers from these locally; they are logged
with the failing step and re-raised to the invoking host.
"""

from typing import Optional


class ScaffolderError(Exception):
    """Base class for all provisioning workflow errors."""

    pass


class ConfigError(ScaffolderError):
    """Raised when required input or credentials are missing or invalid."""

    pass


class UpstreamResponseError(ScaffolderError):
    """Raised when an upstream HTTP API returns a non-success response.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code, or None for transport failures.
        response_body: Raw response body for diagnostics.
        request_url: The URL that was requested (credential-free).
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


class AuthOrApiError(UpstreamResponseError):
    """Raised when repository creation fails at the source-control host."""

    pass


class RegistrationError(UpstreamResponseError):
    """Raised when a pipeline or Argo CD application cannot be registered."""

    pass


class GitOperationError(ScaffolderError):
    """Raised when a git or working-tree filesystem operation fails.

    Attributes:
        operation: The failing operation (e.g. "clone", "push").
        stderr: Captured error output with credentials redacted.
    """

    def __init__(self, operation: str, message: str, stderr: str = ""):
        self.operation = operation
        self.stderr = stderr
        super().__init__(f"git {operation} failed: {message}")
