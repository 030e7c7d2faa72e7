"""Unit tests for the deployment orchestrator."""

import json

import pytest

from netpad.core.exceptions import ConflictError, ValidationError
from netpad.core.orchestrator import DeploymentContext, DeploymentOrchestrator
from netpad.core.poller import StatusPoller
from netpad.models.deployment import DeploymentConfig, DeploymentStatus


@pytest.fixture
def context() -> DeploymentContext:
    return DeploymentContext(organization_id="org_1", project_id="proj_1", user_id="user_1")


@pytest.fixture
def orchestrator(deployment_client) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(
        deployment_client, StatusPoller(deployment_client, interval=0)
    )


class TestDeploymentOrchestrator:
    """Tests for DeploymentOrchestrator."""

    @pytest.mark.asyncio
    async def test_inject_failure_never_triggers_deploy(
        self, api, orchestrator, context, deployment_config, valid_bundle
    ):
        api.on("POST", "/deployments", (201, {"deployment": {"deploymentId": "d_1"}}))
        api.on("POST", "/deployments/d_1/inject-bundle", (400, {"error": "bad bundle"}))
        api.on("POST", "/deployments/d_1/deploy", (200, {"message": "started"}))

        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.launch(context, deployment_config, valid_bundle)

        assert exc_info.value.message == "bad bundle"
        assert api.calls("POST", "/deployments/d_1/deploy") == 0
        assert api.calls("GET", "/deployments/d_1/status") == 0

    @pytest.mark.asyncio
    async def test_sequence_then_poll_until_active(
        self, api, orchestrator, context, deployment_config, valid_bundle
    ):
        api.on("POST", "/deployments", (201, {"deployment": {"deploymentId": "d_42"}}))
        api.on("POST", "/deployments/d_42/inject-bundle", (200, {"success": True}))
        api.on("POST", "/deployments/d_42/deploy", (200, {"message": "started", "deployment": {}}))
        api.on(
            "GET",
            "/deployments/d_42/status",
            (200, {"status": "deploying"}),
            (200, {"status": "active", "deployedUrl": "https://d42.example.com"}),
            (200, {"status": "active", "deployedUrl": "https://stale.example.com"}),
        )
        updates = []

        handle = await orchestrator.launch(
            context, deployment_config, valid_bundle, on_progress=updates.append
        )
        progress = await handle.wait()

        assert progress.status == DeploymentStatus.ACTIVE
        assert progress.deployed_url == "https://d42.example.com"
        assert api.calls("GET", "/deployments/d_42/status") == 2
        assert [(r.method, r.url.path) for r in api.requests] == [
            ("POST", "/deployments"),
            ("POST", "/deployments/d_42/inject-bundle"),
            ("POST", "/deployments/d_42/deploy"),
            ("GET", "/deployments/d_42/status"),
            ("GET", "/deployments/d_42/status"),
        ]
        assert updates[-1].status == DeploymentStatus.ACTIVE
        assert any(u.status_message == "started" for u in updates)

    @pytest.mark.asyncio
    async def test_run_reports_each_step(
        self, api, orchestrator, context, deployment_config, valid_bundle
    ):
        api.on("POST", "/deployments", (201, {"deployment": {"deploymentId": "d_5"}}))
        api.on("POST", "/deployments/d_5/inject-bundle", (200, {}))
        api.on(
            "POST",
            "/deployments/d_5/deploy",
            (200, {"message": "Deployment initiated successfully", "deployment": {"deployedUrl": "https://helpdesk.vercel.app"}}),
        )
        updates = []

        launched = await orchestrator.run(
            context, deployment_config, valid_bundle, on_progress=updates.append
        )

        assert launched.deployment_id == "d_5"
        assert launched.trigger.deployed_url == "https://helpdesk.vercel.app"
        assert launched.progress.status == DeploymentStatus.DEPLOYING
        assert [u.status for u in updates] == [
            DeploymentStatus.DRAFT,
            DeploymentStatus.DRAFT,
            DeploymentStatus.CONFIGURING,
            DeploymentStatus.CONFIGURING,
            DeploymentStatus.DEPLOYING,
        ]
        assert updates[0].deployment_id == ""
        assert updates[1].deployment_id == "d_5"
        assert api.calls("GET", "/deployments/d_5/status") == 0

    @pytest.mark.asyncio
    async def test_ids_filled_from_context(
        self, api, orchestrator, context, valid_bundle
    ):
        api.on("POST", "/deployments", (201, {"deployment": {"deploymentId": "d_6"}}))
        api.on("POST", "/deployments/d_6/inject-bundle", (200, {}))
        api.on("POST", "/deployments/d_6/deploy", (200, {}))
        config = DeploymentConfig(app_name="Helpdesk", database={"provisioning": "auto"})

        await orchestrator.run(context, config, valid_bundle)

        body = json.loads(api.requests[0].content)
        assert body["organizationId"] == "org_1"
        assert body["projectId"] == "proj_1"

    @pytest.mark.asyncio
    async def test_create_conflict_aborts(
        self, api, orchestrator, context, deployment_config, valid_bundle
    ):
        api.on(
            "POST",
            "/deployments",
            (409, {"error": "App name taken", "suggestion": "helpdesk-2"}),
        )

        with pytest.raises(ConflictError):
            await orchestrator.run(context, deployment_config, valid_bundle)

        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_invalid_bundle_stops_before_inject_request(
        self, api, orchestrator, context, deployment_config
    ):
        api.on("POST", "/deployments", (201, {"deployment": {"deploymentId": "d_3"}}))

        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.run(
                context, deployment_config, {"manifest": {"name": "x"}}
            )

        assert exc_info.value.errors == ["Manifest must include a version"]
        assert [r.url.path for r in api.requests] == ["/deployments"]
