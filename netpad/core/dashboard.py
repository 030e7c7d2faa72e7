"""Deployment dashboard.

Lists a project's deployments and keeps the ones still in progress up to
date by polling each of them until it settles.
"""

from netpad.config import settings
from netpad.core.poller import StatusPoller
from netpad.models.deployment import (
    Deployment,
    DeploymentProgress,
    TriggerResult,
)
from netpad.services.client import DeploymentClient
from netpad.utils.logging import get_logger

logger = get_logger(__name__)


class DeploymentDashboard:
    """Live view over one project's deployments.

    Use as an async context manager, or call ``close()``, so no poll
    outlives the dashboard.
    """

    def __init__(
        self,
        client: DeploymentClient,
        project_id: str,
        *,
        poller: StatusPoller | None = None,
        page_size: int | None = None,
    ):
        self.client = client
        self.project_id = project_id
        self.page_size = page_size or settings.dashboard_page_size
        self.poller = poller or StatusPoller(
            client, interval=settings.dashboard_poll_interval_seconds
        )
        self._deployments: dict[str, Deployment] = {}

    async def __aenter__(self) -> "DeploymentDashboard":
        await self.refresh()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def deployments(self) -> list[Deployment]:
        return [d.model_copy() for d in self._deployments.values()]

    def get(self, deployment_id: str) -> Deployment | None:
        return self._deployments.get(deployment_id)

    @property
    def watching(self) -> list[str]:
        return self.poller.active_ids

    async def refresh(self) -> list[Deployment]:
        """Reload the list and poll every deployment still in progress."""
        result = await self.client.list_deployments(
            self.project_id, page_size=self.page_size
        )
        self._deployments = {d.deployment_id: d for d in result.deployments}

        for deployment_id in self.poller.active_ids:
            if deployment_id not in self._deployments:
                self.poller.cancel(deployment_id)

        for deployment in result.deployments:
            if deployment.status.is_in_progress:
                self.poller.start(
                    deployment.deployment_id,
                    status=deployment.status,
                    on_update=self._apply,
                )

        logger.debug(
            "dashboard.refreshed",
            project_id=self.project_id,
            total=len(self._deployments),
            watching=len(self.poller.active_ids),
        )
        return self.deployments

    def _apply(self, progress: DeploymentProgress) -> None:
        deployment = self._deployments.get(progress.deployment_id)
        if deployment is None:
            return
        self._deployments[progress.deployment_id] = deployment.model_copy(
            update={
                "status": progress.status,
                "status_message": progress.status_message,
                "deployed_url": progress.deployed_url,
                "last_error": progress.error or deployment.last_error,
            }
        )

    async def redeploy(self, deployment_id: str) -> TriggerResult:
        """Trigger the deployment again and reload the list."""
        result = await self.client.trigger_deploy(deployment_id)
        logger.info("dashboard.redeploy", deployment_id=deployment_id)
        await self.refresh()
        return result

    async def delete(self, deployment_id: str) -> None:
        """Stop watching a deployment and delete it."""
        self.poller.cancel(deployment_id)
        await self.client.delete_deployment(deployment_id)
        self._deployments.pop(deployment_id, None)
        logger.info("dashboard.deleted", deployment_id=deployment_id)

    async def close(self) -> None:
        await self.poller.close()
