"""Source-control credential resolved once per workflow run.

The Azure DevOps personal access token authenticates every REST call
(HTTP Basic, empty username) and every git clone/push (embedded in the
remote URL). It is read from the environment exactly once, at workflow
entry, and handed to the components that need it.
"""

import base64
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from src.scaffolder.errors import ConfigError

TOKEN_ENV_VAR = "AZURE_DEVOPS_TOKEN"
REDACTED = "***"


@dataclass(frozen=True)
class CredentialContext:
    """Read-only holder for the source-control access token.

    The token is excluded from repr so the context can be logged or
    shown in tracebacks without leaking it.

    Attributes:
        source_control_token: Azure DevOps personal access token.
    """

    source_control_token: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.source_control_token or not self.source_control_token.strip():
            raise ConfigError("source control token cannot be empty")

    @classmethod
    def from_environment(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "CredentialContext":
        """Build a context from the process environment.

        Args:
            environ: Mapping to read from; defaults to os.environ.

        Returns:
            CredentialContext holding the token.

        Raises:
            ConfigError: If AZURE_DEVOPS_TOKEN is unset or blank.
        """
        source = os.environ if environ is None else environ
        token = source.get(TOKEN_ENV_VAR, "")
        if not token or not token.strip():
            raise ConfigError(
                f"{TOKEN_ENV_VAR} is not set in the environment variables."
            )
        return cls(source_control_token=token)

    def basic_auth_header(self) -> str:
        """Build the Authorization header value for the REST API."""
        raw = f":{self.source_control_token}".encode("utf-8")
        return "Basic " + base64.b64encode(raw).decode("ascii")

    def authenticated_url(self, url: str) -> str:
        """Embed the token as userinfo in an https git URL.

        Args:
            url: Plain https URL, e.g. https://dev.azure.com/org/p/_git/r.

        Returns:
            The same URL with the token as the userinfo component.
        """
        parts = urlsplit(url)
        host = parts.hostname or ""
        if parts.port:
            host = f"{host}:{parts.port}"
        netloc = f"{self.source_control_token}@{host}"
        return urlunsplit(
            (parts.scheme, netloc, parts.path, parts.query, parts.fragment)
        )

    def redact(self, text: str) -> str:
        """Replace every occurrence of the token in text."""
        if not text:
            return text
        return text.replace(self.source_control_token, REDACTED)
