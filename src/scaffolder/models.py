"""Data models for the provisioning workflow.

This module defines:
- RepoType / WorkflowMode: repository kind and delivery mode enums
- ProvisioningRequest: validated, immutable workflow input
- RemoteRepository: identity of the repository created on Azure DevOps
- MaterializedContent: summary of the pushed template content
- PipelineDefinition / ApplicationManifest: the two delivery registrations

The models use Pydantic for validation, consistent with config.py.
"""

from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from src.scaffolder.errors import ConfigError

DEFAULT_BRANCH_REF = "refs/heads/master"


class RepoType(str, Enum):
    """Kind of repository provisioned in pipeline mode.

    Attributes:
        APPLICATION: Application source repository.
        INFRASTRUCTURE: Infrastructure-as-code repository.
    """

    APPLICATION = "application"
    INFRASTRUCTURE = "infrastructure"


class WorkflowMode(str, Enum):
    """Delivery system the new repository is registered with.

    Attributes:
        PIPELINE: Azure Pipelines YAML pipeline bound to the repository.
        GITOPS: Argo CD Application tracking the repository.
    """

    PIPELINE = "pipeline"
    GITOPS = "gitops"


README_CONTENT: Dict[RepoType, str] = {
    RepoType.APPLICATION: "Aplicação",
    RepoType.INFRASTRUCTURE: "Infraestrutura",
}

# README written when no repository type applies (GitOps mode)
DEFAULT_README_CONTENT = "Aplicação GitOps"


def readme_content_for(repo_type: Optional[RepoType]) -> str:
    """Return the generated README text for a repository kind."""
    if repo_type is None:
        return DEFAULT_README_CONTENT
    return README_CONTENT[repo_type]


class ProvisioningRequest(BaseModel):
    """Immutable input of one provisioning workflow run.

    Exactly one mode must be specified: either ``repo_type`` (pipeline
    mode) or both ``argocd_url`` and ``argocd_token`` (GitOps mode).
    Field names are accepted in snake_case or in the camelCase used by
    the invoking host (``projectName``, ``repoName``, ...).

    Attributes:
        project_name: Azure DevOps project that receives the repository.
        repo_name: Name of the repository to create.
        repo_type: Repository kind; selects the template in pipeline mode.
        argocd_url: Argo CD server base URL (GitOps mode).
        argocd_token: Argo CD bearer token (GitOps mode).
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    project_name: str = Field(..., min_length=1, alias="projectName")
    repo_name: str = Field(..., min_length=1, alias="repoName")
    repo_type: Optional[RepoType] = Field(default=None, alias="repoType")
    argocd_url: Optional[str] = Field(default=None, alias="argocdUrl")
    argocd_token: Optional[str] = Field(
        default=None, alias="argocdToken", repr=False
    )

    @model_validator(mode="after")
    def validate_mode(self) -> "ProvisioningRequest":
        """Ensure exactly one delivery mode is fully specified."""
        has_gitops = bool(self.argocd_url) or bool(self.argocd_token)
        if self.repo_type is not None and has_gitops:
            raise ValueError(
                "repoType cannot be combined with argocdUrl/argocdToken"
            )
        if self.repo_type is None:
            if not self.argocd_url or not self.argocd_token:
                raise ValueError(
                    "either repoType or both argocdUrl and argocdToken are required"
                )
            if not self.argocd_url.startswith(("http://", "https://")):
                raise ValueError("argocdUrl must start with http:// or https://")
        return self

    @classmethod
    def from_input(cls, data: Dict[str, Any]) -> "ProvisioningRequest":
        """Validate raw host input into a request.

        Args:
            data: Named input fields supplied by the invoking host.

        Returns:
            The validated request.

        Raises:
            ConfigError: If a required field is missing, empty or invalid.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ConfigError(f"Invalid provisioning request: {problems}") from exc

    @property
    def mode(self) -> WorkflowMode:
        if self.repo_type is not None:
            return WorkflowMode.PIPELINE
        return WorkflowMode.GITOPS


class RemoteRepository(BaseModel):
    """Repository created on the source-control host.

    Identity (id, project_id) is assigned by Azure DevOps and is the
    input the pipeline registrar binds the pipeline to.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    project_id: str = Field(..., min_length=1)
    project_name: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    default_branch_ref: str = DEFAULT_BRANCH_REF
    remote_url: Optional[str] = None
    web_url: Optional[str] = None

    @classmethod
    def from_api_response(
        cls, data: Dict[str, Any], project_name: str
    ) -> "RemoteRepository":
        """Build from an Azure DevOps create-repository response.

        New repositories have no default branch until the first push,
        so the ref falls back to refs/heads/master.
        """
        project = data.get("project") or {}
        return cls(
            id=str(data.get("id", "")),
            project_id=str(project.get("id", "")),
            project_name=project.get("name") or project_name,
            name=data.get("name", ""),
            default_branch_ref=data.get("defaultBranch") or DEFAULT_BRANCH_REF,
            remote_url=data.get("remoteUrl"),
            web_url=data.get("webUrl"),
        )


class MaterializedContent(BaseModel):
    """Summary of the content pushed to the new repository."""

    commit_sha: str
    branch: str
    file_count: int = Field(default=0, ge=0)


class PipelineDefinition(BaseModel):
    """Azure Pipelines definition bound to a provisioned repository."""

    name: str = Field(..., min_length=1)
    source_type: str = "yaml"
    path: str
    repository: RemoteRepository
    ref_name: str
    id: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        """Render the body of POST {project}/_apis/pipelines."""
        return {
            "name": self.name,
            "configuration": {
                "type": self.source_type,
                "path": self.path,
                "repository": {
                    "id": self.repository.id,
                    "name": self.repository.name,
                    "type": "azureReposGit",
                    "project": {
                        "id": self.repository.project_id,
                        "name": self.repository.project_name,
                    },
                    "refName": self.ref_name,
                },
            },
        }


class _ManifestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ApplicationMetadata(_ManifestModel):
    name: str
    namespace: str


class ApplicationSource(_ManifestModel):
    repo_url: str = Field(..., alias="repoURL")
    path: str
    target_revision: str = Field(..., alias="targetRevision")


class ApplicationDestination(_ManifestModel):
    server: str
    namespace: str


class AutomatedSync(_ManifestModel):
    prune: bool = True
    self_heal: bool = Field(default=True, alias="selfHeal")


class SyncPolicy(_ManifestModel):
    automated: AutomatedSync = Field(default_factory=AutomatedSync)


class ApplicationSpec(_ManifestModel):
    project: str
    source: ApplicationSource
    destination: ApplicationDestination
    sync_policy: SyncPolicy = Field(default_factory=SyncPolicy, alias="syncPolicy")


class ApplicationManifest(_ManifestModel):
    """Argo CD Application resource submitted to /api/v1/applications."""

    api_version: str = Field(default="argoproj.io/v1alpha1", alias="apiVersion")
    kind: str = "Application"
    metadata: ApplicationMetadata
    spec: ApplicationSpec

    def to_payload(self) -> Dict[str, Any]:
        """Render the manifest with Kubernetes field names."""
        return self.model_dump(by_alias=True)


DeliveryRegistration = Union[PipelineDefinition, ApplicationManifest]
