"""Provisioning workflow orchestrator.

Drives one ProvisioningRequest through the linear workflow:
repository creation → template materialization → delivery registration.

Each step runs only after the previous one succeeded, since it consumes
that step's output (repository identity, pushed content). A failing step
is logged with its name, the run's state moves to FAILED, and the
original exception is re-raised with the final state attached as
``workflow_state``. Nothing is retried and nothing already created is
rolled back.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Mapping, Optional, TypeVar, Union

from src.scaffolder.azure.client import AzureDevOpsClient
from src.scaffolder.config import ScaffolderSettings, get_settings
from src.scaffolder.credentials import CredentialContext
from src.scaffolder.errors import ConfigError
from src.scaffolder.metrics import ScaffolderMetrics, get_metrics
from src.scaffolder.models import (
    DeliveryRegistration,
    MaterializedContent,
    ProvisioningRequest,
    RemoteRepository,
    RepoType,
    WorkflowMode,
    readme_content_for,
)
from src.scaffolder.provisioner.git import GitRunner
from src.scaffolder.provisioner.repository import RepositoryProvisioner
from src.scaffolder.provisioner.template import TemplateMaterializer
from src.scaffolder.registrar.gitops import GitOpsRegistrar
from src.scaffolder.registrar.pipeline import PipelineRegistrar
from src.scaffolder.state.machine import advance, fail, start
from src.scaffolder.state.models import WorkflowStage, WorkflowState, WorkflowStep

logger = logging.getLogger(__name__)

PIPELINE_COMMIT_MESSAGE = "Initial commit with README.md and template content"
GITOPS_COMMIT_MESSAGE = "Initial commit from template"

# Stands in for the repository name when the request itself is unusable
UNNAMED_REPOSITORY = "<unnamed>"

T = TypeVar("T")


@dataclass
class WorkflowResult:
    """Outcome of a successful provisioning run.

    Attributes:
        state: Final (REGISTERED) workflow state with full history.
        repository: Identity of the created repository.
        content: Summary of the pushed template content.
        registration: Pipeline definition or Argo CD manifest submitted.
    """

    state: WorkflowState
    repository: RemoteRepository
    content: MaterializedContent
    registration: DeliveryRegistration

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.state.current_stage.value,
            "repository": {
                "id": self.repository.id,
                "name": self.repository.name,
                "project_id": self.repository.project_id,
                "web_url": self.repository.web_url,
            },
            "commit": self.content.commit_sha,
            "registration": _registration_name(self.registration),
        }


def _registration_name(registration: DeliveryRegistration) -> str:
    metadata = getattr(registration, "metadata", None)
    if metadata is not None:
        return metadata.name
    return registration.name


class ProvisioningWorkflow:
    """Sequences provisioning, materialization and registration.

    All collaborators are injected so the workflow can run against
    fakes; build_workflow() wires the real ones.

    Attributes:
        settings: Template locations and registration defaults.
        credentials: Source-control credential for git URLs.
        provisioner: Creates the remote repository.
        materializer: Pushes template content to the new repository.
        pipeline_registrar: Registrar for pipeline mode.
        gitops_registrar: Registrar for GitOps mode.
        logger: Progress/error sink, usually supplied by the invoking host.
        metrics: Prometheus metrics updated per run and per step.
    """

    def __init__(
        self,
        settings: ScaffolderSettings,
        credentials: CredentialContext,
        provisioner: RepositoryProvisioner,
        materializer: TemplateMaterializer,
        pipeline_registrar: PipelineRegistrar,
        gitops_registrar: GitOpsRegistrar,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[ScaffolderMetrics] = None,
    ):
        self.settings = settings
        self.credentials = credentials
        self.provisioner = provisioner
        self.materializer = materializer
        self.pipeline_registrar = pipeline_registrar
        self.gitops_registrar = gitops_registrar
        self.logger = logger or logging.getLogger(__name__)
        self.metrics = metrics or get_metrics()

    def template_url(self, request: ProvisioningRequest) -> str:
        """Authenticated URL of the template for the request's mode."""
        if request.mode == WorkflowMode.GITOPS:
            template_repo = self.settings.gitops_template_repo
        elif request.repo_type == RepoType.APPLICATION:
            template_repo = self.settings.application_template_repo
        else:
            template_repo = self.settings.infrastructure_template_repo
        return self.credentials.authenticated_url(
            self.settings.template_url(template_repo)
        )

    def target_url(self, request: ProvisioningRequest) -> str:
        """Authenticated URL of the repository being provisioned."""
        return self.credentials.authenticated_url(
            self.settings.repository_url(request.project_name, request.repo_name)
        )

    async def run(self, request: ProvisioningRequest) -> WorkflowResult:
        """Execute the full workflow for one request.

        Args:
            request: Validated provisioning request.

        Returns:
            WorkflowResult in the REGISTERED stage.

        Raises:
            AuthOrApiError: Repository creation failed.
            GitOperationError: Template materialization failed.
            RegistrationError: Delivery registration failed.
        """
        self.metrics.runs_in_progress.inc()
        try:
            result = await self._execute(request)
        except Exception:
            self.metrics.record_run(request.mode.value, success=False)
            raise
        finally:
            self.metrics.runs_in_progress.dec()
        self.metrics.record_run(request.mode.value, success=True)
        return result

    async def _execute(self, request: ProvisioningRequest) -> WorkflowResult:
        state = start(request.repo_name)

        self.logger.info(
            "Creating repository %s in project %s (%s mode)",
            request.repo_name,
            request.project_name,
            request.mode.value,
            extra={
                "project": request.project_name,
                "repository": request.repo_name,
                "mode": request.mode.value,
                "repo_type": request.repo_type.value if request.repo_type else None,
            },
        )

        repository = await self._run_step(
            state,
            WorkflowStep.CREATE_REPOSITORY,
            self.provisioner.create_repository(request.project_name, request.repo_name),
        )
        state = advance(
            state,
            WorkflowStage.REPO_CREATED,
            details={"repository_id": repository.id},
        )

        target_url = self.target_url(request)
        content = await self._run_step(
            state,
            WorkflowStep.MATERIALIZE,
            self.materializer.materialize(
                template_repo_url=self.template_url(request),
                target_repo_url=target_url,
                readme_content=readme_content_for(request.repo_type),
                commit_message=(
                    PIPELINE_COMMIT_MESSAGE
                    if request.mode == WorkflowMode.PIPELINE
                    else GITOPS_COMMIT_MESSAGE
                ),
            ),
        )
        state = advance(
            state,
            WorkflowStage.CONTENT_PUSHED,
            details={"commit": content.commit_sha},
        )
        self.logger.info(
            "Repository %s created successfully in project %s",
            request.repo_name,
            request.project_name,
        )

        registration = await self._run_step(
            state,
            WorkflowStep.REGISTER,
            self._register(request, repository, target_url),
        )
        state = advance(
            state,
            WorkflowStage.REGISTERED,
            details={"registration": _registration_name(registration)},
        )

        self.logger.info(
            "Delivery registration %s created for repository %s",
            _registration_name(registration),
            request.repo_name,
        )
        return WorkflowResult(
            state=state,
            repository=repository,
            content=content,
            registration=registration,
        )

    async def _run_step(
        self,
        state: WorkflowState,
        step: WorkflowStep,
        operation: Awaitable[T],
    ) -> T:
        """Await one step, timing it and recording a failure if it raises."""
        started = time.monotonic()
        try:
            return await operation
        except Exception as exc:
            self._record_failure(state, step, exc)
            raise
        finally:
            self.metrics.record_step_duration(step.value, time.monotonic() - started)

    async def _register(
        self,
        request: ProvisioningRequest,
        repository: RemoteRepository,
        target_url: str,
    ) -> DeliveryRegistration:
        if request.mode == WorkflowMode.PIPELINE:
            return await self.pipeline_registrar.register(
                repository, request.project_name
            )
        return await self.gitops_registrar.register(
            repository_url=target_url,
            argocd_url=request.argocd_url,
            argocd_token=request.argocd_token,
        )

    def _record_failure(
        self,
        state: WorkflowState,
        step: WorkflowStep,
        exc: Exception,
    ) -> WorkflowState:
        """Move the run to FAILED and attach the final state to the error."""
        message = self.credentials.redact(str(exc))
        failed = fail(state, message, step)
        self.metrics.record_failure(step.value)
        self.logger.error(
            "Provisioning failed at step %s: %s",
            step.value,
            message,
            extra={
                "repository": state.repo_name,
                "step": step.value,
                "stage": state.current_stage.value,
            },
        )
        exc.workflow_state = failed
        return failed


def build_workflow(
    settings: ScaffolderSettings,
    credentials: CredentialContext,
    azure_client: AzureDevOpsClient,
    logger: Optional[logging.Logger] = None,
    metrics: Optional[ScaffolderMetrics] = None,
) -> ProvisioningWorkflow:
    """Wire the real collaborators into a ProvisioningWorkflow.

    Args:
        settings: Validated scaffolder settings.
        credentials: Source-control credential.
        azure_client: Authenticated Azure DevOps client.
        logger: Optional host-supplied logger.
        metrics: Metrics sink; the default-registry instance if None.

    Returns:
        Fully wired ProvisioningWorkflow.
    """
    git = GitRunner(
        executable=settings.git_executable,
        timeout_seconds=settings.git_timeout_seconds,
        redact=credentials.redact,
    )
    materializer = TemplateMaterializer(
        git=git,
        branch=settings.default_branch,
        author_name=settings.commit_author_name,
        author_email=settings.commit_author_email,
    )
    return ProvisioningWorkflow(
        settings=settings,
        credentials=credentials,
        provisioner=RepositoryProvisioner(client=azure_client),
        materializer=materializer,
        pipeline_registrar=PipelineRegistrar(
            client=azure_client,
            yaml_path=settings.pipeline_yaml_path,
            ref_name=settings.default_branch_ref,
        ),
        gitops_registrar=GitOpsRegistrar(settings=settings),
        logger=logger,
        metrics=metrics,
    )


async def provision(
    request: Union[ProvisioningRequest, Dict[str, Any]],
    settings: Optional[ScaffolderSettings] = None,
    environ: Optional[Mapping[str, str]] = None,
    logger: Optional[logging.Logger] = None,
    metrics: Optional[ScaffolderMetrics] = None,
) -> WorkflowResult:
    """Validate input, resolve the credential and run the workflow.

    Validation and credential lookup both happen before any network or
    filesystem operation. A rejected request is recorded as a failure of
    the validation step and carries that state as ``workflow_state``.

    Args:
        request: Request model or raw named input fields.
        settings: Scaffolder settings; loaded from the environment if None.
        environ: Environment to read AZURE_DEVOPS_TOKEN from.
        logger: Optional host-supplied logger.
        metrics: Metrics sink; the default-registry instance if None.

    Raises:
        ConfigError: Missing credential or invalid request.
    """
    log = logger or logging.getLogger(__name__)
    sink = metrics or get_metrics()
    try:
        credentials = CredentialContext.from_environment(environ)
        if not isinstance(request, ProvisioningRequest):
            request = ProvisioningRequest.from_input(request)
    except ConfigError as exc:
        exc.workflow_state = fail(
            start(_requested_repo_name(request)),
            str(exc),
            WorkflowStep.VALIDATION,
        )
        sink.record_failure(WorkflowStep.VALIDATION.value)
        log.error(
            "Provisioning failed at step %s: %s",
            WorkflowStep.VALIDATION.value,
            exc,
        )
        raise

    cfg = settings or get_settings()
    async with AzureDevOpsClient(
        credentials=credentials,
        organization=cfg.organization,
        base_url=cfg.azure_devops_base_url,
        repositories_api_version=cfg.repositories_api_version,
        pipelines_api_version=cfg.pipelines_api_version,
        timeout=cfg.http_timeout_seconds,
    ) as azure_client:
        workflow = build_workflow(
            cfg, credentials, azure_client, logger=logger, metrics=sink
        )
        return await workflow.run(request)


def _requested_repo_name(request: Union[ProvisioningRequest, Mapping[str, Any]]) -> str:
    if isinstance(request, ProvisioningRequest):
        return request.repo_name
    name = request.get("repoName") or request.get("repo_name")
    return str(name).strip() if name and str(name).strip() else UNNAMED_REPOSITORY
