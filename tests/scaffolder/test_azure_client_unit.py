"""Unit tests for the Azure DevOps REST client.

HTTP traffic is served by httpx.MockTransport so requests can be
inspected without network access.
"""

import asyncio
import base64
import json
from typing import List

import httpx
import pytest

from src.scaffolder.azure.client import AzureDevOpsAPIError, AzureDevOpsClient
from src.scaffolder.credentials import CredentialContext


def run_async(coro):
    return asyncio.run(coro)


def _make_client(handler, requests: List[httpx.Request]) -> AzureDevOpsClient:
    def recording_handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return AzureDevOpsClient(
        credentials=CredentialContext("pat-token"),
        organization="TILabs00",
        transport=httpx.MockTransport(recording_handler),
    )


async def _create_repository(client: AzureDevOpsClient, project: str, name: str):
    async with client:
        return await client.create_repository(project, name)


async def _create_pipeline(client: AzureDevOpsClient, project: str, body: dict):
    async with client:
        return await client.create_pipeline(project, body)


class TestCreateRepository:

    def test_posts_name_to_repositories_api(self):
        requests: List[httpx.Request] = []
        client = _make_client(
            lambda request: httpx.Response(201, json={"id": "r1", "name": "svc"}),
            requests,
        )

        data = run_async(_create_repository(client, "Team-A", "svc"))

        assert data["id"] == "r1"
        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == "/TILabs00/Team-A/_apis/git/repositories"
        assert request.url.params["api-version"] == "6.0"
        assert json.loads(request.content) == {"name": "svc"}

    def test_uses_basic_auth_with_empty_username(self):
        requests: List[httpx.Request] = []
        client = _make_client(
            lambda request: httpx.Response(201, json={"id": "r1"}), requests
        )

        run_async(_create_repository(client, "Team-A", "svc"))

        scheme, encoded = requests[0].headers["authorization"].split(" ")
        assert scheme == "Basic"
        assert base64.b64decode(encoded).decode() == ":pat-token"

    def test_html_response_is_reported_as_auth_failure(self):
        requests: List[httpx.Request] = []
        client = _make_client(
            lambda request: httpx.Response(
                203,
                text="<html>Sign In</html>",
                headers={"content-type": "text/html; charset=utf-8"},
            ),
            requests,
        )

        with pytest.raises(AzureDevOpsAPIError) as exc_info:
            run_async(_create_repository(client, "Team-A", "svc"))

        assert exc_info.value.html_response is True
        assert exc_info.value.response_body == "<html>Sign In</html>"
        assert "Authentication failed" in exc_info.value.message

    def test_error_status_carries_body(self):
        requests: List[httpx.Request] = []
        client = _make_client(
            lambda request: httpx.Response(
                409, json={"message": "TF400948: A Git repository already exists"}
            ),
            requests,
        )

        with pytest.raises(AzureDevOpsAPIError) as exc_info:
            run_async(_create_repository(client, "Team-A", "svc"))

        assert exc_info.value.status_code == 409
        assert "TF400948" in exc_info.value.response_body
        assert exc_info.value.html_response is False

    def test_redirect_is_an_error(self):
        requests: List[httpx.Request] = []
        client = _make_client(
            lambda request: httpx.Response(
                302, headers={"location": "https://login.example.com/"}
            ),
            requests,
        )

        with pytest.raises(AzureDevOpsAPIError) as exc_info:
            run_async(_create_repository(client, "Team-A", "svc"))

        assert exc_info.value.status_code == 302
        assert len(requests) == 1

    def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _make_client(handler, [])

        with pytest.raises(AzureDevOpsAPIError) as exc_info:
            run_async(_create_repository(client, "Team-A", "svc"))

        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.message

    def test_no_retry_on_server_error(self):
        requests: List[httpx.Request] = []
        client = _make_client(lambda request: httpx.Response(503, text="busy"), requests)

        with pytest.raises(AzureDevOpsAPIError):
            run_async(_create_repository(client, "Team-A", "svc"))

        assert len(requests) == 1


class TestCreatePipeline:

    def test_posts_definition_to_pipelines_api(self):
        requests: List[httpx.Request] = []
        client = _make_client(
            lambda request: httpx.Response(200, json={"id": 7}), requests
        )
        body = {"name": "svc-pipeline", "configuration": {"type": "yaml"}}

        data = run_async(_create_pipeline(client, "Team-A", body))

        assert data == {"id": 7}
        request = requests[0]
        assert request.url.path == "/TILabs00/Team-A/_apis/pipelines"
        assert request.url.params["api-version"] == "6.0-preview.1"
        assert json.loads(request.content) == body

    def test_non_json_success_body_is_an_error(self):
        client = _make_client(lambda request: httpx.Response(200, text="ok"), [])

        with pytest.raises(AzureDevOpsAPIError, match="non-JSON"):
            run_async(_create_pipeline(client, "Team-A", {}))


class TestClientLifecycle:

    def test_close_is_idempotent(self):
        client = _make_client(lambda request: httpx.Response(200, json={}), [])

        async def exercise():
            _ = client.client
            await client.close()
            await client.close()

        run_async(exercise())
        assert client._client is None
