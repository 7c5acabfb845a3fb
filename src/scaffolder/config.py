"""Scaffolder configuration using pydantic-settings.

This module defines the ScaffolderSettings class that reads configuration
from environment variables with the SCAFFOLDER_ prefix. Every field has a
default matching the TILabs00 Azure DevOps organization, so the service
starts without any configuration besides the access token.

The access token itself is not a setting: it is resolved once per
workflow run by CredentialContext.from_environment.
"""

from urllib.parse import quote

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScaffolderSettings(BaseSettings):
    """Repository scaffolder configuration from environment variables.

    All environment variables are prefixed with SCAFFOLDER_
    (e.g., SCAFFOLDER_ORGANIZATION).
    """

    model_config = SettingsConfigDict(
        env_prefix="SCAFFOLDER_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Azure DevOps
    # -------------------------------------------------------------------------
    azure_devops_base_url: str = "https://dev.azure.com"

    # Organization that owns both the templates and the new repositories
    organization: str = "TILabs00"

    repositories_api_version: str = "6.0"
    pipelines_api_version: str = "6.0-preview.1"

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------
    template_project: str = "ArgoCD"
    application_template_repo: str = "template-repo-application"
    infrastructure_template_repo: str = "template-repo-infra"
    gitops_template_repo: str = "temperature-converter-yaml"

    # -------------------------------------------------------------------------
    # Pipeline registration
    # -------------------------------------------------------------------------
    pipeline_yaml_path: str = "azure-pipelines.yaml"
    default_branch: str = "master"

    # -------------------------------------------------------------------------
    # Argo CD registration
    # -------------------------------------------------------------------------
    # Fixed application name; not derived from the repository name
    argocd_application_name: str = "my-application"
    argocd_namespace: str = "argocd"
    argocd_project: str = "default"
    argocd_source_path: str = "argo-app"
    argocd_target_revision: str = "HEAD"
    argocd_destination_server: str = "https://kubernetes.default.svc"
    argocd_destination_namespace: str = "default"

    # -------------------------------------------------------------------------
    # Git
    # -------------------------------------------------------------------------
    git_executable: str = "git"
    git_timeout_seconds: int = 300
    commit_author_name: str = "Repository Scaffolder"
    commit_author_email: str = "scaffolder@tilabs.local"

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------
    http_timeout_seconds: float = 30.0

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 8080

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("azure_devops_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate that the Azure DevOps URL is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                "azure_devops_base_url must start with http:// or https://"
            )
        return v.rstrip("/")

    @field_validator(
        "organization",
        "template_project",
        "application_template_repo",
        "infrastructure_template_repo",
        "gitops_template_repo",
        "argocd_application_name",
    )
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v

    @field_validator("default_branch")
    @classmethod
    def validate_default_branch(cls, v: str) -> str:
        """Validate that the branch name is a single non-empty token."""
        if not v or any(ch.isspace() for ch in v):
            raise ValueError("default_branch must be non-empty without whitespace")
        return v

    @field_validator("git_timeout_seconds", "http_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v):
        """Validate that timeouts are positive."""
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @property
    def default_branch_ref(self) -> str:
        """Fully qualified ref of the default branch."""
        return f"refs/heads/{self.default_branch}"

    def repository_url(self, project_name: str, repo_name: str) -> str:
        """Plain (credential-free) git URL of a repository.

        Path segments are percent-encoded, so project names with spaces
        produce the same URL for git that httpx sends to the REST API.
        """
        segments = (self.organization, project_name, "_git", repo_name)
        path = "/".join(quote(segment, safe="") for segment in segments)
        return f"{self.azure_devops_base_url}/{path}"

    def template_url(self, template_repo: str) -> str:
        """Plain git URL of a template repository."""
        return self.repository_url(self.template_project, template_repo)


def get_settings() -> ScaffolderSettings:
    """Create and return a ScaffolderSettings instance.

    Returns:
        ScaffolderSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If a configured value is invalid.
    """
    return ScaffolderSettings()
