"""Deployment endpoints."""

import asyncio
from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable

from fastapi import APIRouter, Body, Depends, Query, status
from sse_starlette.sse import EventSourceResponse

from netpad.api.deps import DeploymentDep, EventsDep, ProviderDep, StoreDep
from netpad.config import settings
from netpad.core.events import Event
from netpad.core.exceptions import ConflictError, NetPadError, UpstreamError, ValidationError
from netpad.core.state_machine import can_transition
from netpad.models.bundle import Bundle
from netpad.models.deployment import (
    DatabaseConfig,
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    DeploymentStatusReport,
    DeploymentTarget,
    DeploymentUpdate,
    HealthCheckResult,
    HealthCheckSummary,
)
from netpad.services.bundles import inject_bundle_into_template
from netpad.services.health import check_health
from netpad.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

DEPLOYABLE_STATUSES = (DeploymentStatus.DRAFT, DeploymentStatus.CONFIGURING)
STREAM_KEEPALIVE_SECONDS = 30.0

HealthChecker = Callable[[str], Awaitable[HealthCheckResult]]


async def get_health_checker() -> HealthChecker:
    """Get the function used to probe deployed apps."""
    return check_health


HealthCheckerDep = Annotated[HealthChecker, Depends(get_health_checker)]


def public_view(deployment: Deployment) -> dict[str, Any]:
    """Wire form of a deployment without secrets.

    Environment variable values and the database connection string never
    leave the service; only the variable names are exposed.
    """
    data = deployment.to_wire()
    data.pop("environmentVariables", None)
    data.get("database", {}).pop("connectionString", None)
    data["environmentVariableKeys"] = sorted(deployment.environment_variables)
    return data


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a deployment",
)
async def create_deployment(config: DeploymentConfig, store: StoreDep) -> dict[str, Any]:
    """Register a new draft deployment."""
    missing = [
        name
        for name, value in (
            ("projectId", config.project_id),
            ("organizationId", config.organization_id),
            ("appName", config.app_name),
        )
        if not value.strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing)

    existing = await store.find_by_app_name(config.app_name)
    if existing is not None:
        raise ConflictError(
            f"App name '{config.app_name}' is already used by deployment "
            f"{existing.deployment_id}",
            suggestion=f"{existing.app_slug}-2",
        )

    if config.database is None:
        config = config.model_copy(update={"database": DatabaseConfig(provisioning="auto")})

    deployment = await store.create(config)
    return {"success": True, "deployment": public_view(deployment)}


@router.get(
    "",
    summary="List deployments",
)
async def list_deployments(
    store: StoreDep,
    project_id: Annotated[str | None, Query(alias="projectId")] = None,
    status_filter: Annotated[DeploymentStatus | None, Query(alias="status")] = None,
    target: DeploymentTarget | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=100)] = 20,
) -> dict[str, Any]:
    """List a project's deployments, newest first."""
    if not project_id:
        raise ValidationError("projectId query parameter is required")

    result = await store.list_deployments(
        project_id,
        status=status_filter,
        target=target,
        page=page,
        page_size=page_size,
    )
    data = result.to_wire()
    data["deployments"] = [public_view(d) for d in result.deployments]
    return data


@router.get(
    "/{deployment_id}",
    summary="Get deployment details",
)
async def get_deployment(deployment: DeploymentDep) -> dict[str, Any]:
    return {"deployment": public_view(deployment)}


@router.patch(
    "/{deployment_id}",
    summary="Update deployment configuration",
)
async def update_deployment(
    deployment: DeploymentDep,
    data: DeploymentUpdate,
    store: StoreDep,
) -> dict[str, Any]:
    """Update configuration fields; ``status`` only accepts ``paused``."""
    updates = data.model_dump(exclude_none=True, exclude={"status", "status_message"})
    if "app_name" in updates and not updates["app_name"].strip():
        raise ValidationError("appName cannot be empty", ["appName"])

    for field in updates:
        setattr(deployment, field, getattr(data, field))
    deployment = await store.update(deployment)

    if data.status == "paused":
        if not can_transition(deployment.status, DeploymentStatus.PAUSED):
            raise ValidationError(
                f"Deployment is {deployment.status.value} and cannot be paused"
            )
        deployment = await store.update_status(
            deployment.deployment_id,
            DeploymentStatus.PAUSED,
            status_message=data.status_message or "Deployment paused",
        )
    elif data.status_message is not None:
        deployment.status_message = data.status_message
        deployment = await store.update(deployment)

    return {"success": True, "deployment": public_view(deployment)}


@router.delete(
    "/{deployment_id}",
    summary="Delete a deployment",
)
async def delete_deployment(deployment: DeploymentDep, store: StoreDep) -> dict[str, Any]:
    """Soft delete a deployment."""
    await store.delete(deployment.deployment_id)
    logger.info("deployment.deleted", deployment_id=deployment.deployment_id)
    return {"success": True, "message": "Deployment deleted successfully"}


@router.post(
    "/{deployment_id}/inject-bundle",
    summary="Inject an application bundle",
)
async def inject_bundle(
    deployment: DeploymentDep,
    store: StoreDep,
    payload: Annotated[dict[str, Any], Body()],
) -> dict[str, Any]:
    """Validate a bundle and embed it into the deployment's template."""
    raw = payload.get("bundle")
    if not raw:
        raise ValidationError("Bundle is required")
    bundle = Bundle.from_raw(raw)

    if deployment.status not in DEPLOYABLE_STATUSES:
        raise ValidationError(
            f"Deployment is in {deployment.status.value} status and cannot accept a bundle"
        )

    bundle_path = None
    try:
        if settings.template_path:
            bundle_path = str(inject_bundle_into_template(settings.template_path, bundle))
        await store.save_bundle(deployment.deployment_id, bundle)
    except NetPadError as e:
        await store.update_status(
            deployment.deployment_id,
            DeploymentStatus.FAILED,
            status_message=f"Bundle injection failed: {e.message}",
            last_error=e.message,
        )
        raise

    await store.update_status(
        deployment.deployment_id,
        DeploymentStatus.CONFIGURING,
        status_message="Bundle injected successfully",
    )
    logger.info(
        "deployment.bundle_injected",
        deployment_id=deployment.deployment_id,
        bundle=bundle.manifest.name,
        version=bundle.manifest.version,
    )
    return {
        "success": True,
        "message": "Bundle injected successfully",
        "bundlePath": bundle_path,
        "bundle": {
            "name": bundle.manifest.name,
            "version": bundle.manifest.version,
            "formsCount": len(bundle.forms),
            "workflowsCount": len(bundle.workflows),
        },
    }


@router.get(
    "/{deployment_id}/inject-bundle",
    summary="Check whether a bundle is injected",
)
async def get_injected_bundle(deployment: DeploymentDep, store: StoreDep) -> dict[str, Any]:
    summary = deployment.deployed_bundle
    bundle = await store.get_bundle(deployment.deployment_id)
    return {
        "deploymentId": deployment.deployment_id,
        "hasBundle": summary is not None,
        "bundle": (
            summary.to_wire(include={"forms_count", "workflows_count", "exported_at"})
            if summary
            else None
        ),
        "bundleVersion": deployment.bundle_version,
        "manifest": bundle.manifest.to_wire() if bundle else None,
    }


@router.post(
    "/{deployment_id}/deploy",
    summary="Trigger a deployment",
)
async def trigger_deploy(
    deployment: DeploymentDep,
    store: StoreDep,
    provider: ProviderDep,
) -> dict[str, Any]:
    """Hand the deployment to the hosting provider."""
    if deployment.status not in DEPLOYABLE_STATUSES:
        raise ValidationError(
            f"Deployment is in {deployment.status.value} status and cannot be deployed"
        )

    log = logger.bind(deployment_id=deployment.deployment_id, provider=provider.name)
    try:
        launch = await provider.deploy(deployment)
    except NetPadError as e:
        log.error("deployment.deploy_failed", error=e.message)
        await store.update_status(
            deployment.deployment_id,
            DeploymentStatus.FAILED,
            status_message=e.message,
            last_error=e.message,
        )
        raise

    await store.update_status(
        deployment.deployment_id,
        launch.status,
        status_message=launch.status_message,
        vercel_project_id=launch.vercel_project_id,
    )
    log.info("deployment.deploy_started", status=launch.status.value)

    return {
        "success": True,
        "message": "Deployment initiated successfully",
        "deployment": {
            "deploymentId": deployment.deployment_id,
            "vercelProjectId": launch.vercel_project_id,
            "status": launch.status.value,
            "deployedUrl": launch.deployed_url,
        },
    }


@router.get(
    "/{deployment_id}/status",
    summary="Get deployment status",
)
async def get_deployment_status(
    deployment: DeploymentDep,
    store: StoreDep,
    provider: ProviderDep,
    health_checker: HealthCheckerDep,
) -> dict[str, Any]:
    """Report the latest status, refreshing it from the hosting provider.

    Only deployments in progress are checked with the provider; a settled
    deployment reports its stored state. Active deployments also get a
    health check of the running app.
    """
    was_active = deployment.status == DeploymentStatus.ACTIVE
    vercel_status = None

    if deployment.status.is_in_progress:
        try:
            state = await provider.check(deployment)
        except UpstreamError as e:
            # Keep reporting the stored state; the next poll will retry.
            logger.warning(
                "deployment.provider_check_failed",
                deployment_id=deployment.deployment_id,
                error=e.message,
            )
        else:
            vercel_status = state.vercel_status
            if state.status == deployment.status or can_transition(
                deployment.status, state.status
            ):
                deployment = await store.update_status(
                    deployment.deployment_id,
                    state.status,
                    status_message=state.status_message,
                    deployed_url=state.deployed_url,
                    deployed_at=state.deployed_at,
                    last_error=state.error if state.status == DeploymentStatus.FAILED else None,
                    vercel_deployment_id=state.vercel_deployment_id,
                )

    report = DeploymentStatusReport(
        deployment_id=deployment.deployment_id,
        status=deployment.status,
        status_message=deployment.status_message,
        vercel_status=vercel_status,
        deployed_url=deployment.deployed_url,
        deployed_at=deployment.deployed_at,
        error=deployment.last_error,
    )

    if was_active and deployment.deployed_url:
        health = await health_checker(deployment.deployed_url)
        report.health_check = HealthCheckSummary(
            status=health.status,
            checked_at=datetime.now(timezone.utc),
            error=health.error,
        )
        deployment.health_check_status = health.status
        await store.update(deployment)

    return report.to_wire()


@router.get(
    "/{deployment_id}/stream",
    summary="Stream deployment events (SSE)",
)
async def stream_deployment_events(
    deployment: DeploymentDep,
    events: EventsDep,
) -> EventSourceResponse:
    """Stream status events for a deployment using Server-Sent Events."""

    async def event_generator():
        queue = events.subscribe(deployment.deployment_id)

        try:
            yield {
                "event": "connected",
                "data": Event(
                    event_type="connected",
                    data={
                        "deployment_id": deployment.deployment_id,
                        "status": deployment.status.value,
                    },
                ).encode_data(),
            }
            if deployment.status.is_terminal:
                return

            # Stream events until the deployment settles or the client disconnects
            while True:
                try:
                    event: Event = await asyncio.wait_for(
                        queue.get(), timeout=STREAM_KEEPALIVE_SECONDS
                    )
                except asyncio.TimeoutError:
                    yield {"event": "keepalive", "data": "{}"}
                    continue

                yield {"event": event.event_type, "data": event.encode_data()}
                if event.is_final:
                    break
        finally:
            events.unsubscribe(deployment.deployment_id, queue)

    return EventSourceResponse(event_generator())
