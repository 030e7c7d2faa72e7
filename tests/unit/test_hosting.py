"""Unit tests for hosting providers."""

import json

import httpx
import pytest

from netpad.core.exceptions import ConflictError, UpstreamError, ValidationError
from netpad.models.deployment import DatabaseConfig, Deployment, DeploymentStatus
from netpad.services.hosting import (
    MockHostingProvider,
    VercelHostingProvider,
    prepare_environment,
)


@pytest.fixture
def deployment() -> Deployment:
    return Deployment(
        deployment_id="deploy_1",
        project_id="proj_1",
        organization_id="org_1",
        app_name="IT Helpdesk",
        database=DatabaseConfig(
            provisioning="manual", connection_string="mongodb://db.example.net"
        ),
        environment_variables={"SESSION_SECRET": "keep-me"},
    )


class TestPrepareEnvironment:
    def test_builds_app_environment(self, deployment):
        env = prepare_environment(deployment)

        assert env["SESSION_SECRET"] == "keep-me"
        assert env["VAULT_ENCRYPTION_KEY"]
        assert env["MONGODB_URI"] == "mongodb://db.example.net"
        assert env["MONGODB_DATABASE"] == "netpad_app"
        assert env["STANDALONE_MODE"] == "true"

    def test_requires_connection_string(self, deployment):
        deployment.database.connection_string = None

        with pytest.raises(ValidationError, match="Database connection not configured"):
            prepare_environment(deployment)


class TestMockHostingProvider:
    """Tests for MockHostingProvider."""

    @pytest.mark.asyncio
    async def test_deploy_predicts_url(self, deployment):
        launch = await MockHostingProvider().deploy(deployment)

        assert launch.status == DeploymentStatus.CONFIGURING
        assert launch.deployed_url == "https://it-helpdesk.vercel.app"
        assert launch.vercel_project_id.startswith("prj_mock")

    @pytest.mark.asyncio
    async def test_advances_one_step_per_check(self, deployment):
        provider = MockHostingProvider()
        deployment.database.provisioning = "auto"
        deployment.status = DeploymentStatus.CONFIGURING
        seen = []

        while not deployment.status.is_terminal:
            state = await provider.check(deployment)
            deployment.status = state.status
            seen.append(state.status)

        assert seen == [
            DeploymentStatus.PROVISIONING,
            DeploymentStatus.DEPLOYING,
            DeploymentStatus.ACTIVE,
        ]
        assert state.deployed_url == "https://it-helpdesk.vercel.app"
        assert state.vercel_status.state == "READY"

    @pytest.mark.asyncio
    async def test_skips_provisioning_for_manual_database(self, deployment):
        deployment.status = DeploymentStatus.CONFIGURING

        state = await MockHostingProvider().check(deployment)

        assert state.status == DeploymentStatus.DEPLOYING

    @pytest.mark.asyncio
    async def test_scripted_failure(self, deployment):
        provider = MockHostingProvider(
            fail_at=DeploymentStatus.ACTIVE, failure_message="Build exited with 1"
        )
        deployment.status = DeploymentStatus.DEPLOYING

        state = await provider.check(deployment)

        assert state.status == DeploymentStatus.FAILED
        assert state.error == "Build exited with 1"

    @pytest.mark.asyncio
    async def test_rejection(self, deployment):
        with pytest.raises(UpstreamError, match="quota"):
            await MockHostingProvider(reject_with="Vercel quota exceeded").deploy(deployment)


class VercelApi:
    """Scripted Vercel REST API."""

    def __init__(self, project_status: int = 200, deployments: list | None = None):
        self.project_status = project_status
        self.deployments = deployments or []
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path == "/v10/projects":
            if self.project_status == 409:
                return httpx.Response(
                    409, json={"error": {"code": "conflict", "message": "Project already exists"}}
                )
            return httpx.Response(200, json={"id": "prj_123", "name": "it-helpdesk"})
        if request.method == "POST" and path == "/v10/projects/prj_123/env":
            return httpx.Response(201, json={"created": []})
        if request.method == "GET" and path == "/v6/deployments":
            return httpx.Response(200, json={"deployments": self.deployments})
        return httpx.Response(404, json={"error": {"message": "Not Found"}})


class TestVercelHostingProvider:
    """Tests for VercelHostingProvider."""

    @pytest.mark.asyncio
    async def test_deploy_creates_project_and_pushes_env(self, deployment):
        vercel = VercelApi()
        provider = VercelHostingProvider(
            token="tok_abc", team_id="team_1", transport=httpx.MockTransport(vercel)
        )

        launch = await provider.deploy(deployment)

        assert launch.status == DeploymentStatus.DEPLOYING
        assert launch.vercel_project_id == "prj_123"
        assert launch.deployed_url == "https://it-helpdesk.vercel.app"

        create, env = vercel.requests
        assert json.loads(create.content) == {"name": "it-helpdesk", "framework": "nextjs"}
        assert create.headers["Authorization"] == "Bearer tok_abc"
        assert create.url.params["teamId"] == "team_1"
        assert env.url.params["upsert"] == "true"
        keys = {item["key"] for item in json.loads(env.content)}
        assert {"MONGODB_URI", "SESSION_SECRET", "APP_URL"} <= keys

    @pytest.mark.asyncio
    async def test_existing_project_is_reused(self, deployment):
        vercel = VercelApi()
        deployment.vercel_project_id = "prj_123"
        provider = VercelHostingProvider(token="tok_abc", transport=httpx.MockTransport(vercel))

        await provider.deploy(deployment)

        assert [r.url.path for r in vercel.requests] == ["/v10/projects/prj_123/env"]

    @pytest.mark.asyncio
    async def test_taken_project_name_is_conflict(self, deployment):
        provider = VercelHostingProvider(
            token="tok_abc", transport=httpx.MockTransport(VercelApi(project_status=409))
        )

        with pytest.raises(ConflictError) as exc_info:
            await provider.deploy(deployment)

        assert exc_info.value.details["suggestion"].startswith("it-helpdesk-")

    @pytest.mark.asyncio
    async def test_legacy_token_rejected(self, deployment):
        provider = VercelHostingProvider(token="abc:def", transport=httpx.MockTransport(VercelApi()))

        with pytest.raises(UpstreamError, match="legacy"):
            await provider.deploy(deployment)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "state,expected",
        [
            ("READY", DeploymentStatus.ACTIVE),
            ("ERROR", DeploymentStatus.FAILED),
            ("CANCELED", DeploymentStatus.FAILED),
            ("BUILDING", DeploymentStatus.DEPLOYING),
            ("QUEUED", DeploymentStatus.DEPLOYING),
        ],
    )
    async def test_check_maps_state(self, deployment, state, expected):
        deployment.vercel_project_id = "prj_123"
        deployment.status = DeploymentStatus.DEPLOYING
        vercel = VercelApi(
            deployments=[
                {
                    "uid": "dpl_1",
                    "state": state,
                    "url": "it-helpdesk-abc.vercel.app",
                    "ready": 1767607200000,
                }
            ]
        )
        provider = VercelHostingProvider(token="tok_abc", transport=httpx.MockTransport(vercel))

        result = await provider.check(deployment)

        assert result.status == expected
        assert result.vercel_status.state == state
        assert vercel.requests[0].url.params["projectId"] == "prj_123"
        if expected == DeploymentStatus.ACTIVE:
            assert result.deployed_url == "https://it-helpdesk-abc.vercel.app"
            assert result.vercel_deployment_id == "dpl_1"
        if expected == DeploymentStatus.FAILED:
            assert result.error

    @pytest.mark.asyncio
    async def test_check_without_project(self, deployment):
        result = await VercelHostingProvider(token="tok_abc").check(deployment)

        assert result.status == deployment.status
        assert result.error == "Vercel integration not configured"
