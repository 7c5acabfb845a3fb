"""Argo CD application registration for a provisioned repository.

Builds an Application manifest that tracks the pushed repository with an
automated (prune + self-heal) sync policy and submits it to Argo CD.
"""

import logging
from typing import Callable, Optional

from src.scaffolder.argocd.client import ArgoCDAPIError, ArgoCDClient
from src.scaffolder.config import ScaffolderSettings
from src.scaffolder.errors import ConfigError, RegistrationError
from src.scaffolder.models import (
    ApplicationDestination,
    ApplicationManifest,
    ApplicationMetadata,
    ApplicationSource,
    ApplicationSpec,
)

logger = logging.getLogger(__name__)

ArgoCDClientFactory = Callable[[str, str], ArgoCDClient]


def build_application_manifest(
    repo_url: str,
    settings: Optional[ScaffolderSettings] = None,
) -> ApplicationManifest:
    """Build the Argo CD Application for a repository.

    The application name comes from settings and is not derived from the
    repository, so a second registration with the defaults collides with
    the first.

    Args:
        repo_url: URL Argo CD pulls from; the same authenticated URL the
            content was pushed to.
        settings: Source of names, paths and destination; defaults apply
            when omitted.

    Returns:
        ApplicationManifest with automated prune and self-heal enabled.
    """
    cfg = settings or ScaffolderSettings()
    return ApplicationManifest(
        metadata=ApplicationMetadata(
            name=cfg.argocd_application_name,
            namespace=cfg.argocd_namespace,
        ),
        spec=ApplicationSpec(
            project=cfg.argocd_project,
            source=ApplicationSource(
                repo_url=repo_url,
                path=cfg.argocd_source_path,
                target_revision=cfg.argocd_target_revision,
            ),
            destination=ApplicationDestination(
                server=cfg.argocd_destination_server,
                namespace=cfg.argocd_destination_namespace,
            ),
        ),
    )


def _default_client_factory(timeout: float) -> ArgoCDClientFactory:
    def factory(base_url: str, token: str) -> ArgoCDClient:
        return ArgoCDClient(base_url=base_url, token=token, timeout=timeout)

    return factory


class GitOpsRegistrar:
    """Registers a repository as an Argo CD Application.

    Attributes:
        settings: Manifest defaults (name, namespace, path, destination).
        client_factory: Builds an ArgoCDClient from (url, token).
    """

    def __init__(
        self,
        settings: Optional[ScaffolderSettings] = None,
        client_factory: Optional[ArgoCDClientFactory] = None,
    ):
        self.settings = settings or ScaffolderSettings()
        self.client_factory = client_factory or _default_client_factory(
            self.settings.http_timeout_seconds
        )

    async def register(
        self,
        repository_url: str,
        argocd_url: str,
        argocd_token: str,
    ) -> ApplicationManifest:
        """Submit the Application manifest to Argo CD.

        Args:
            repository_url: Authenticated URL the content was pushed to.
            argocd_url: Argo CD server base URL.
            argocd_token: Bearer token for the Argo CD API.

        Returns:
            The submitted manifest.

        Raises:
            ConfigError: If the Argo CD URL or token is empty.
            RegistrationError: If Argo CD rejects the application.
        """
        if not argocd_url or not argocd_token:
            raise ConfigError("argocd_url and argocd_token are required")

        manifest = build_application_manifest(repository_url, self.settings)

        async with self.client_factory(argocd_url, argocd_token) as client:
            try:
                await client.create_application(manifest.to_payload())
            except ArgoCDAPIError as exc:
                raise RegistrationError(
                    f"Failed to register application: {exc.message}",
                    status_code=exc.status_code,
                    response_body=exc.response_body,
                    request_url=exc.request_url,
                ) from exc

        logger.info(
            "Application registered successfully in Argo CD",
            extra={"application": manifest.metadata.name},
        )
        return manifest
