"""Scaffolder actions exposed to the invoking host.

Two actions share the provisioning workflow and differ only in the
delivery registration they perform:

- ``azure:devops:create-repo``: repository from the application or
  infrastructure template, registered as an Azure Pipelines pipeline
- ``argocd:create-and-register-app``: repository from the GitOps
  template, registered as an Argo CD Application

The host passes the action's named input fields and, optionally, its
logger. Failures propagate as exceptions for the host to surface.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from src.scaffolder.config import ScaffolderSettings
from src.scaffolder.errors import ConfigError
from src.scaffolder.models import RepoType, WorkflowMode
from src.scaffolder.orchestrator import WorkflowResult, provision

_PROJECT_NAME = {
    "type": "string",
    "title": "Project Name",
    "description": "The name of the Azure DevOps project",
}
_REPO_NAME = {
    "type": "string",
    "title": "Repository Name",
    "description": "The name of the repository to create",
}


@dataclass(frozen=True)
class ScaffolderAction:
    """A host-invocable action and its input schema.

    Attributes:
        id: Action identifier used by the host.
        mode: Workflow mode the action runs.
        required: Input fields the host must supply.
        properties: JSON schema of each input field.
    """

    id: str
    mode: WorkflowMode
    required: List[str]
    properties: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "required": list(self.required),
            "properties": self.properties,
        }

    def build_input(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Keep only this action's fields, rejecting missing required ones.

        Raises:
            ConfigError: If a required field is missing or blank.
        """
        missing = [
            name
            for name in self.required
            if not str(values.get(name) or "").strip()
        ]
        if missing:
            raise ConfigError(f"{', '.join(missing)} are required")
        return {name: values[name] for name in self.properties if name in values}


CREATE_REPO_ACTION = ScaffolderAction(
    id="azure:devops:create-repo",
    mode=WorkflowMode.PIPELINE,
    required=["projectName", "repoName", "repoType"],
    properties={
        "projectName": _PROJECT_NAME,
        "repoName": _REPO_NAME,
        "repoType": {
            "type": "string",
            "title": "Repository Type",
            "description": "The type of the repository",
            "enum": [repo_type.value for repo_type in RepoType],
        },
    },
)

REGISTER_ARGO_APP_ACTION = ScaffolderAction(
    id="argocd:create-and-register-app",
    mode=WorkflowMode.GITOPS,
    required=["projectName", "repoName", "argocdUrl", "argocdToken"],
    properties={
        "projectName": _PROJECT_NAME,
        "repoName": _REPO_NAME,
        "argocdUrl": {
            "type": "string",
            "title": "ArgoCD URL",
            "description": "The URL of the ArgoCD server",
        },
        "argocdToken": {
            "type": "string",
            "title": "ArgoCD Token",
            "description": "The authentication token for ArgoCD",
        },
    },
)

ACTIONS: Dict[str, ScaffolderAction] = {
    action.id: action for action in (CREATE_REPO_ACTION, REGISTER_ARGO_APP_ACTION)
}


def get_action(action_id: str) -> ScaffolderAction:
    """Look up an action by id.

    Raises:
        ConfigError: If no action has this id.
    """
    action = ACTIONS.get(action_id)
    if action is None:
        raise ConfigError(f"Unknown scaffolder action: {action_id}")
    return action


async def run_action(
    action_id: str,
    values: Mapping[str, Any],
    logger: Optional[logging.Logger] = None,
    settings: Optional[ScaffolderSettings] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> WorkflowResult:
    """Run a scaffolder action with the host's input.

    Args:
        action_id: One of the ids in ACTIONS.
        values: Named input fields.
        logger: Host logger receiving progress and error messages.
        settings: Scaffolder settings; loaded from the environment if None.
        environ: Environment holding AZURE_DEVOPS_TOKEN (os.environ if None).

    Returns:
        WorkflowResult of the completed run.

    Raises:
        ConfigError: Unknown action, missing input or missing credential.
        AuthOrApiError, GitOperationError, RegistrationError: Step failures.
    """
    action = get_action(action_id)
    request_input = action.build_input(values)
    return await provision(
        request_input,
        settings=settings,
        environ=environ,
        logger=logger,
    )
