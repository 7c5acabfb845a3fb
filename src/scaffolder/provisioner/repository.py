"""Remote repository creation on Azure DevOps.

Creates a new, empty git repository in a project of the configured
organization and returns the host-assigned identity. Creation is
attempted at most once: a duplicate name or a permission failure is
surfaced immediately as AuthOrApiError.
"""

import logging

from src.scaffolder.azure.client import AzureDevOpsAPIError, AzureDevOpsClient
from src.scaffolder.errors import AuthOrApiError, ConfigError
from src.scaffolder.models import RemoteRepository

logger = logging.getLogger(__name__)


class RepositoryProvisioner:
    """Creates remote repositories through the Azure DevOps REST API.

    Attributes:
        client: Authenticated Azure DevOps client.
    """

    def __init__(self, client: AzureDevOpsClient):
        self.client = client

    async def create_repository(
        self, project_name: str, repo_name: str
    ) -> RemoteRepository:
        """Create an empty repository and return its identity.

        Args:
            project_name: Azure DevOps project that receives the repository.
            repo_name: Name of the new repository.

        Returns:
            RemoteRepository with the host-assigned id and project id.

        Raises:
            ConfigError: If either name is empty.
            AuthOrApiError: If the host rejects the request, answers with
                an HTML page, or returns no repository identity.
        """
        if not project_name or not project_name.strip():
            raise ConfigError("project_name cannot be empty")
        if not repo_name or not repo_name.strip():
            raise ConfigError("repo_name cannot be empty")

        logger.info(
            "Creating repository",
            extra={"project": project_name, "repository": repo_name},
        )

        try:
            data = await self.client.create_repository(project_name, repo_name)
        except AzureDevOpsAPIError as exc:
            if exc.html_response:
                message = exc.message
            else:
                message = f"Failed to create repository: {exc.message}"
            raise AuthOrApiError(
                message,
                status_code=exc.status_code,
                response_body=exc.response_body,
                request_url=exc.request_url,
            ) from exc

        project = data.get("project") or {}
        if not data.get("id") or not data.get("name") or not project.get("id"):
            raise AuthOrApiError(
                "Repository creation response is missing the repository identity",
                response_body=str(data),
            )

        repository = RemoteRepository.from_api_response(data, project_name)

        logger.info(
            "Repository created",
            extra={
                "project": project_name,
                "repository": repository.name,
                "repository_id": repository.id,
                "project_id": repository.project_id,
            },
        )
        return repository
