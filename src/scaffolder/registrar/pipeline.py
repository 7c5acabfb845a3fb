"""Azure Pipelines registration for a provisioned repository."""

import logging

from src.scaffolder.azure.client import AzureDevOpsAPIError, AzureDevOpsClient
from src.scaffolder.errors import RegistrationError
from src.scaffolder.models import PipelineDefinition, RemoteRepository

logger = logging.getLogger(__name__)

PIPELINE_NAME_SUFFIX = "-pipeline"


def build_pipeline_definition(
    repository: RemoteRepository,
    yaml_path: str = "azure-pipelines.yaml",
    ref_name: str = "refs/heads/master",
) -> PipelineDefinition:
    """Build the YAML pipeline definition bound to a repository.

    Args:
        repository: Repository identity returned by repository creation.
        yaml_path: In-repository path of the pipeline YAML file.
        ref_name: Branch ref the pipeline builds.

    Returns:
        PipelineDefinition named "<repo>-pipeline".
    """
    return PipelineDefinition(
        name=f"{repository.name}{PIPELINE_NAME_SUFFIX}",
        path=yaml_path,
        repository=repository,
        ref_name=ref_name,
    )


class PipelineRegistrar:
    """Creates a CI pipeline bound to a newly provisioned repository.

    Attributes:
        client: Authenticated Azure DevOps client.
        yaml_path: Pipeline YAML path inside the repository.
        ref_name: Branch ref the pipeline is bound to.
    """

    def __init__(
        self,
        client: AzureDevOpsClient,
        yaml_path: str = "azure-pipelines.yaml",
        ref_name: str = "refs/heads/master",
    ):
        self.client = client
        self.yaml_path = yaml_path
        self.ref_name = ref_name

    async def register(
        self, repository: RemoteRepository, project_name: str
    ) -> PipelineDefinition:
        """Create the pipeline definition for a repository.

        Args:
            repository: Identity produced by repository creation.
            project_name: Project that owns the repository and pipeline.

        Returns:
            The submitted definition, with the host-assigned id when present.

        Raises:
            RegistrationError: If Azure DevOps rejects the pipeline.
        """
        definition = build_pipeline_definition(
            repository, yaml_path=self.yaml_path, ref_name=self.ref_name
        )

        logger.info(
            "Creating pipeline",
            extra={
                "project": project_name,
                "pipeline": definition.name,
                "repository_id": repository.id,
            },
        )

        try:
            data = await self.client.create_pipeline(
                project_name, definition.to_payload()
            )
        except AzureDevOpsAPIError as exc:
            raise RegistrationError(
                f"Failed to create pipeline: {exc.message}",
                status_code=exc.status_code,
                response_body=exc.response_body,
                request_url=exc.request_url,
            ) from exc

        pipeline_id = data.get("id")
        if pipeline_id is not None:
            definition = definition.model_copy(update={"id": int(pipeline_id)})

        logger.info(
            "Pipeline created",
            extra={"pipeline": definition.name, "pipeline_id": definition.id},
        )
        return definition
