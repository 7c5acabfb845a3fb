"""FastAPI application entry point for the repository scaffolder.

Exposes the scaffolder actions over HTTP so a host (developer portal,
automation job) can trigger a provisioning run with a JSON body of the
action's named input fields.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse

from .actions import ACTIONS, get_action, run_action
from .config import ScaffolderSettings, get_settings
from .credentials import TOKEN_ENV_VAR
from .errors import ConfigError, ScaffolderError, UpstreamResponseError
from .metrics import generate_metrics_output, get_metrics

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters.

    Args:
        value: The secret value to redact.
        visible_chars: Number of characters to show at the start.

    Returns:
        Redacted string with asterisks replacing hidden characters.
    """
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: ScaffolderSettings) -> None:
    """Log configuration values on startup.

    Args:
        settings: The scaffolder settings to log.
    """
    logger.info("Scaffolder configuration:")
    logger.info(f"  Azure DevOps URL: {settings.azure_devops_base_url}")
    logger.info(f"  Organization: {settings.organization}")
    logger.info(f"  Template Project: {settings.template_project}")
    logger.info(f"  Application Template: {settings.application_template_repo}")
    logger.info(f"  Infrastructure Template: {settings.infrastructure_template_repo}")
    logger.info(f"  GitOps Template: {settings.gitops_template_repo}")
    logger.info(f"  Default Branch: {settings.default_branch}")
    logger.info(f"  Pipeline YAML Path: {settings.pipeline_yaml_path}")
    logger.info(f"  Argo CD Application Name: {settings.argocd_application_name}")
    logger.info(f"  Git Timeout Seconds: {settings.git_timeout_seconds}")
    logger.info(f"  HTTP Timeout Seconds: {settings.http_timeout_seconds}")
    token = os.environ.get(TOKEN_ENV_VAR, "")
    logger.info(
        f"  {TOKEN_ENV_VAR}: {_redact_secret(token) if token else '<not set>'}"
    )
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    """Build the error payload.

    The message comes from the failed workflow state when there is one:
    that copy has the source-control token redacted, while the exception
    text may echo it (e.g. an Argo CD body quoting the repoURL).
    """
    workflow_state = getattr(exc, "workflow_state", None)
    message = str(exc)
    if workflow_state is not None and workflow_state.error:
        message = workflow_state.error
    content: Dict[str, Any] = {
        "status": "error",
        "error_type": type(exc).__name__,
        "message": message,
    }
    if workflow_state is not None:
        content["failed_step"] = (
            workflow_state.failed_step.value if workflow_state.failed_step else None
        )
        content["completed_stages"] = [
            transition.to_stage.value
            for transition in workflow_state.history
            if transition.to_stage.value != "failed"
        ]
    if isinstance(exc, UpstreamResponseError):
        content["upstream_status"] = exc.status_code
    return JSONResponse(status_code=status_code, content=content)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load and log configuration on startup."""
    logger.info("Scaffolder starting up...")
    app.state.settings = get_settings()
    get_metrics()
    _log_configuration(app.state.settings)
    yield
    logger.info("Scaffolder shutdown complete")


app = FastAPI(
    title="Repository Scaffolder",
    description="Provisions Azure DevOps repositories from templates",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    """Liveness check endpoint."""
    return {"status": "healthy"}


@app.get("/metrics", response_class=PlainTextResponse)
async def metrics():
    """Prometheus metrics endpoint."""
    return generate_metrics_output().decode("utf-8")


@app.get("/actions")
async def list_actions():
    """List the available actions with their input schemas."""
    return {
        "actions": [
            {"id": action.id, "mode": action.mode.value, "schema": action.input_schema}
            for action in ACTIONS.values()
        ]
    }


@app.post("/actions/{action_id}")
async def invoke_action(action_id: str, values: Dict[str, Any]):
    """Run a scaffolder action synchronously.

    Returns 200 with the workflow result, 404 for an unknown action,
    400 for invalid input or a missing credential, and 502 when an
    upstream step fails. A 502 may leave a repository behind; the
    response lists the stages that completed.
    """
    try:
        get_action(action_id)
    except ConfigError as exc:
        return _error_response(404, exc)

    try:
        result = await run_action(
            action_id, values, settings=getattr(app.state, "settings", None)
        )
    except ConfigError as exc:
        return _error_response(400, exc)
    except ScaffolderError as exc:
        return _error_response(502, exc)

    return {"status": "completed", **result.to_dict()}


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "src.scaffolder.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
        reload=True,
    )
