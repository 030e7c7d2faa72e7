"""In-memory deployment store."""

import math
from datetime import datetime, timezone
from uuid import uuid4

from netpad.core.events import EventBus, get_event_bus
from netpad.models.bundle import Bundle
from netpad.models.deployment import (
    DatabaseConfig,
    DeployedBundle,
    Deployment,
    DeploymentConfig,
    DeploymentListResult,
    DeploymentStatus,
    DeploymentTarget,
    slugify_app_name,
)
from netpad.utils.logging import get_logger

logger = get_logger(__name__)


def generate_deployment_id() -> str:
    """Generate a unique deployment ID."""
    return f"deploy_{uuid4().hex[:16]}"


class DeploymentStore:
    """Keeps deployment records in memory.

    Note: For production, this should be backed by MongoDB.
    """

    def __init__(self, events: EventBus | None = None):
        self._deployments: dict[str, Deployment] = {}
        self._bundles: dict[str, Bundle] = {}
        self.events = events or get_event_bus()

    def clear(self) -> None:
        self._deployments.clear()
        self._bundles.clear()

    async def create(self, config: DeploymentConfig, created_by: str | None = None) -> Deployment:
        """Create a new draft deployment."""
        deployment = Deployment(
            deployment_id=generate_deployment_id(),
            project_id=config.project_id,
            organization_id=config.organization_id,
            created_by=created_by,
            target=config.target,
            app_name=config.app_name,
            environment=config.environment,
            database=config.database or DatabaseConfig(),
            environment_variables=config.environment_variables,
            branding=config.branding,
            vercel_installation_id=config.vercel_installation_id,
            status=DeploymentStatus.DRAFT,
        )
        self._deployments[deployment.deployment_id] = deployment
        logger.info(
            "store.deployment_created",
            deployment_id=deployment.deployment_id,
            project_id=deployment.project_id,
        )
        return deployment

    async def get(self, deployment_id: str) -> Deployment | None:
        """Get a deployment by ID, ignoring deleted ones."""
        deployment = self._deployments.get(deployment_id)
        if deployment is None or deployment.deleted_at is not None:
            return None
        return deployment

    async def find_by_app_name(self, app_name: str) -> Deployment | None:
        """Find a live deployment that already claims this app name."""
        slug = slugify_app_name(app_name)
        for deployment in self._deployments.values():
            if deployment.deleted_at is not None:
                continue
            if deployment.status == DeploymentStatus.FAILED:
                continue
            if deployment.app_slug == slug:
                return deployment
        return None

    async def update(self, deployment: Deployment) -> Deployment:
        """Update a deployment."""
        deployment.updated_at = datetime.now(timezone.utc)
        self._deployments[deployment.deployment_id] = deployment
        return deployment

    async def update_status(
        self,
        deployment_id: str,
        status: DeploymentStatus,
        *,
        status_message: str | None = None,
        deployed_url: str | None = None,
        deployed_at: datetime | None = None,
        last_error: str | None = None,
        vercel_project_id: str | None = None,
        vercel_deployment_id: str | None = None,
    ) -> Deployment | None:
        """Record a status change and publish it to subscribers."""
        deployment = await self.get(deployment_id)
        if deployment is None:
            return None

        previous = deployment.status
        now = datetime.now(timezone.utc)
        deployment.status = status
        if status_message is not None:
            deployment.status_message = status_message
        if deployed_url is not None:
            deployment.deployed_url = deployed_url
        if status == DeploymentStatus.ACTIVE:
            deployment.deployed_at = deployed_at or deployment.deployed_at or now
        if vercel_project_id is not None:
            deployment.vercel_project_id = vercel_project_id
        if vercel_deployment_id is not None:
            deployment.vercel_deployment_id = vercel_deployment_id
        if last_error is not None:
            deployment.last_error = last_error
            deployment.last_error_at = now
            deployment.error_count += 1

        await self.update(deployment)

        if previous != status:
            logger.info(
                "store.status_changed",
                deployment_id=deployment_id,
                previous=previous.value,
                status=status.value,
            )
            await self.events.publish_status_changed(
                deployment_id, status.value, deployment.status_message
            )
            if status == DeploymentStatus.ACTIVE:
                await self.events.publish_deployment_complete(
                    deployment_id, deployment.deployed_url or ""
                )
            elif status == DeploymentStatus.FAILED:
                await self.events.publish_error(
                    deployment_id, deployment.last_error or "Deployment failed"
                )
        return deployment

    async def save_bundle(self, deployment_id: str, bundle: Bundle) -> Deployment | None:
        """Keep the injected bundle and record its summary on the deployment."""
        deployment = await self.get(deployment_id)
        if deployment is None:
            return None
        self._bundles[deployment_id] = bundle
        deployment.bundle_version = bundle.manifest.version
        deployment.deployed_bundle = DeployedBundle(
            name=bundle.manifest.name,
            version=bundle.manifest.version,
            forms_count=len(bundle.forms),
            workflows_count=len(bundle.workflows),
        )
        return await self.update(deployment)

    async def get_bundle(self, deployment_id: str) -> Bundle | None:
        return self._bundles.get(deployment_id)

    async def delete(self, deployment_id: str) -> bool:
        """Soft delete a deployment."""
        deployment = await self.get(deployment_id)
        if deployment is None:
            return False
        deployment.deleted_at = datetime.now(timezone.utc)
        await self.update(deployment)
        return True

    async def list_deployments(
        self,
        project_id: str,
        *,
        status: DeploymentStatus | None = None,
        target: DeploymentTarget | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> DeploymentListResult:
        """List a project's deployments, newest first."""
        deployments = [
            d
            for d in self._deployments.values()
            if d.project_id == project_id and d.deleted_at is None
        ]

        if status:
            deployments = [d for d in deployments if d.status == status]
        if target:
            deployments = [d for d in deployments if d.target == target]

        deployments.sort(key=lambda d: d.created_at, reverse=True)

        total = len(deployments)
        start = (page - 1) * page_size
        return DeploymentListResult(
            deployments=deployments[start : start + page_size],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
        )


# Singleton instance
_store: DeploymentStore | None = None


def get_deployment_store() -> DeploymentStore:
    """Get the deployment store singleton."""
    global _store
    if _store is None:
        _store = DeploymentStore()
    return _store
