"""Unit tests for pipeline and Argo CD registration."""

import asyncio
import json
from typing import List
from unittest.mock import AsyncMock

import httpx
import pytest

from src.scaffolder.argocd.client import ArgoCDClient
from src.scaffolder.azure.client import AzureDevOpsAPIError
from src.scaffolder.config import ScaffolderSettings
from src.scaffolder.errors import ConfigError, RegistrationError
from src.scaffolder.models import RemoteRepository
from src.scaffolder.registrar.gitops import GitOpsRegistrar, build_application_manifest
from src.scaffolder.registrar.pipeline import PipelineRegistrar, build_pipeline_definition


def run_async(coro):
    return asyncio.run(coro)


def _make_repository() -> RemoteRepository:
    return RemoteRepository(
        id="repo-1",
        project_id="proj-1",
        project_name="Team-A",
        name="svc-orders",
    )


def _argocd_factory(handler, requests: List[httpx.Request]):
    def recording_handler(request):
        requests.append(request)
        return handler(request)

    def factory(base_url: str, token: str) -> ArgoCDClient:
        return ArgoCDClient(
            base_url=base_url,
            token=token,
            transport=httpx.MockTransport(recording_handler),
        )

    return factory


class TestBuildPipelineDefinition:

    def test_name_derived_from_repository(self):
        definition = build_pipeline_definition(_make_repository())
        assert definition.name == "svc-orders-pipeline"
        assert definition.ref_name == "refs/heads/master"
        assert definition.path == "azure-pipelines.yaml"
        assert definition.source_type == "yaml"


class TestPipelineRegistrar:

    def test_submits_definition_with_repository_identity(self):
        client = AsyncMock()
        client.create_pipeline.return_value = {"id": 12, "name": "svc-orders-pipeline"}
        registrar = PipelineRegistrar(client=client)

        definition = run_async(registrar.register(_make_repository(), "Team-A"))

        project, payload = client.create_pipeline.await_args.args
        assert project == "Team-A"
        repository = payload["configuration"]["repository"]
        assert repository["id"] == "repo-1"
        assert repository["project"]["id"] == "proj-1"
        assert repository["name"] == "svc-orders"
        assert repository["refName"] == "refs/heads/master"
        assert definition.id == 12

    def test_api_failure_becomes_registration_error(self):
        client = AsyncMock()
        client.create_pipeline.side_effect = AzureDevOpsAPIError(
            "400 Bad Request, yaml not found",
            status_code=400,
            response_body="yaml not found",
        )
        registrar = PipelineRegistrar(client=client)

        with pytest.raises(RegistrationError) as exc_info:
            run_async(registrar.register(_make_repository(), "Team-A"))

        assert exc_info.value.status_code == 400
        assert exc_info.value.response_body == "yaml not found"
        assert "Failed to create pipeline" in str(exc_info.value)


class TestBuildApplicationManifest:

    def test_repo_url_and_sync_policy(self):
        manifest = build_application_manifest("https://pat@dev.azure.com/o/p/_git/r")
        assert manifest.spec.source.repo_url == "https://pat@dev.azure.com/o/p/_git/r"
        assert manifest.spec.sync_policy.automated.prune is True
        assert manifest.spec.sync_policy.automated.self_heal is True

    def test_application_name_is_fixed_not_repo_derived(self):
        first = build_application_manifest("https://host/a")
        second = build_application_manifest("https://host/b")
        assert first.metadata.name == second.metadata.name == "my-application"

    def test_application_name_from_settings(self):
        settings = ScaffolderSettings(argocd_application_name="svc-orders")
        manifest = build_application_manifest("https://host/a", settings)
        assert manifest.metadata.name == "svc-orders"


class TestGitOpsRegistrar:

    def test_posts_manifest_with_bearer_token(self):
        requests: List[httpx.Request] = []
        registrar = GitOpsRegistrar(
            client_factory=_argocd_factory(
                lambda request: httpx.Response(200, json={"metadata": {}}), requests
            )
        )

        manifest = run_async(
            registrar.register(
                repository_url="https://pat@dev.azure.com/TILabs00/Team-A/_git/svc",
                argocd_url="https://argocd.example.com/",
                argocd_token="argo-token",
            )
        )

        request = requests[0]
        assert str(request.url) == "https://argocd.example.com/api/v1/applications"
        assert request.headers["authorization"] == "Bearer argo-token"
        body = json.loads(request.content)
        assert body == manifest.to_payload()
        assert body["spec"]["source"]["repoURL"] == (
            "https://pat@dev.azure.com/TILabs00/Team-A/_git/svc"
        )

    def test_rejection_becomes_registration_error(self):
        registrar = GitOpsRegistrar(
            client_factory=_argocd_factory(
                lambda request: httpx.Response(
                    409, text='{"error":"existing application spec is different"}'
                ),
                [],
            )
        )

        with pytest.raises(RegistrationError) as exc_info:
            run_async(registrar.register("https://host/r", "https://argo", "t"))

        assert exc_info.value.status_code == 409
        assert "existing application" in exc_info.value.response_body

    def test_redirect_is_not_a_successful_registration(self):
        requests: List[httpx.Request] = []
        registrar = GitOpsRegistrar(
            client_factory=_argocd_factory(
                lambda request: httpx.Response(
                    307, headers={"location": "https://argocd.example.com/api/v1/applications"}
                ),
                requests,
            )
        )

        with pytest.raises(RegistrationError) as exc_info:
            run_async(registrar.register("https://host/r", "http://argocd.example.com", "t"))

        assert exc_info.value.status_code == 307
        assert len(requests) == 1

    def test_non_json_success_body_becomes_registration_error(self):
        registrar = GitOpsRegistrar(
            client_factory=_argocd_factory(
                lambda request: httpx.Response(200, text="<html>proxy</html>"), []
            )
        )

        with pytest.raises(RegistrationError, match="non-JSON"):
            run_async(registrar.register("https://host/r", "https://argo", "t"))

    def test_unreachable_controller_becomes_registration_error(self):
        def handler(request):
            raise httpx.ConnectError("no route to host", request=request)

        registrar = GitOpsRegistrar(client_factory=_argocd_factory(handler, []))

        with pytest.raises(RegistrationError, match="no route to host"):
            run_async(registrar.register("https://host/r", "https://argo", "t"))

    def test_missing_argocd_parameters_rejected(self):
        registrar = GitOpsRegistrar(client_factory=_argocd_factory(None, []))

        with pytest.raises(ConfigError):
            run_async(registrar.register("https://host/r", "", "t"))
