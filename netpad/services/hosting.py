"""Hosting providers.

Publishes deployments to Vercel and reports their build state back. A mock
provider stands in when real Vercel deployment is disabled.
"""

import base64
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import httpx

from netpad.config import settings
from netpad.core.exceptions import ConflictError, UpstreamError, ValidationError
from netpad.models.deployment import Deployment, DeploymentStatus, VercelStatus
from netpad.utils.logging import get_logger

DEFAULT_DATABASE_NAME = "netpad_app"

# Vercel deployment state -> our status
VERCEL_STATE_MAP: dict[str, DeploymentStatus] = {
    "READY": DeploymentStatus.ACTIVE,
    "ERROR": DeploymentStatus.FAILED,
    "CANCELED": DeploymentStatus.FAILED,
    "BUILDING": DeploymentStatus.DEPLOYING,
    "INITIALIZING": DeploymentStatus.DEPLOYING,
    "QUEUED": DeploymentStatus.DEPLOYING,
}


@dataclass
class HostingLaunch:
    """What the provider did when asked to deploy."""

    status: DeploymentStatus
    status_message: str
    deployed_url: str | None = None
    vercel_project_id: str | None = None


@dataclass
class HostingState:
    """Latest state of a deployment on the provider."""

    status: DeploymentStatus
    status_message: str | None = None
    deployed_url: str | None = None
    deployed_at: datetime | None = None
    vercel_status: VercelStatus | None = None
    vercel_deployment_id: str | None = None
    error: str | None = None


def predicted_url(deployment: Deployment) -> str:
    """URL Vercel assigns to a project named after the app."""
    return f"https://{deployment.app_slug}.vercel.app"


def prepare_environment(deployment: Deployment) -> dict[str, str]:
    """Build the environment variables pushed to the standalone app.

    Raises:
        ValidationError: If no database connection string is available.
    """
    connection_string = deployment.database.connection_string
    if not connection_string:
        raise ValidationError("Database connection not configured")

    env_vars = dict(deployment.environment_variables)
    env_vars.setdefault("SESSION_SECRET", secrets.token_hex(32))
    env_vars.setdefault(
        "VAULT_ENCRYPTION_KEY", base64.b64encode(secrets.token_bytes(32)).decode()
    )
    env_vars["MONGODB_URI"] = connection_string
    env_vars["MONGODB_DATABASE"] = deployment.database.database_name or DEFAULT_DATABASE_NAME
    env_vars["NEXT_PUBLIC_APP_URL"] = "${VERCEL_URL}"
    env_vars["APP_URL"] = "${VERCEL_URL}"
    env_vars["STANDALONE_MODE"] = "true"
    return env_vars


class HostingProvider(ABC):
    """Base class for hosting providers."""

    def __init__(self):
        self.logger = get_logger(f"hosting.{self.name}")

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier."""
        pass

    @abstractmethod
    async def deploy(self, deployment: Deployment) -> HostingLaunch:
        """Start publishing a deployment.

        Raises:
            ConflictError: If the hosting project name is taken
            UpstreamError: If the provider rejects the deployment
        """
        pass

    @abstractmethod
    async def check(self, deployment: Deployment) -> HostingState:
        """Report the latest provider-side state of a deployment."""
        pass


class MockHostingProvider(HostingProvider):
    """Simulates a host that advances one step per status check.

    ``configuring -> provisioning -> deploying -> active``; the provisioning
    step only happens for auto-provisioned databases.
    """

    def __init__(
        self,
        fail_at: DeploymentStatus | None = None,
        failure_message: str = "Build failed",
        reject_with: str | None = None,
    ):
        super().__init__()
        self.fail_at = fail_at
        self.failure_message = failure_message
        self.reject_with = reject_with

    @property
    def name(self) -> str:
        return "mock"

    async def deploy(self, deployment: Deployment) -> HostingLaunch:
        if self.reject_with:
            raise UpstreamError(self.reject_with)

        project_id = f"prj_mock{uuid4().hex[:12]}"
        self.logger.info(
            "mock_deployment.started",
            deployment_id=deployment.deployment_id,
            vercel_project_id=project_id,
        )
        return HostingLaunch(
            status=DeploymentStatus.CONFIGURING,
            status_message="Preparing deployment configuration...",
            deployed_url=predicted_url(deployment),
            vercel_project_id=project_id,
        )

    def _next_status(self, deployment: Deployment) -> DeploymentStatus:
        current = deployment.status
        if current in (DeploymentStatus.DRAFT, DeploymentStatus.CONFIGURING):
            if deployment.database.provisioning == "auto":
                return DeploymentStatus.PROVISIONING
            return DeploymentStatus.DEPLOYING
        if current == DeploymentStatus.PROVISIONING:
            return DeploymentStatus.DEPLOYING
        if current == DeploymentStatus.DEPLOYING:
            return DeploymentStatus.ACTIVE
        return current

    async def check(self, deployment: Deployment) -> HostingState:
        status = self._next_status(deployment)

        if self.fail_at is not None and status == self.fail_at:
            return HostingState(
                status=DeploymentStatus.FAILED,
                status_message="Deployment failed",
                vercel_status=VercelStatus(state="ERROR"),
                error=self.failure_message,
            )

        if status == DeploymentStatus.PROVISIONING:
            return HostingState(
                status=status, status_message="Provisioning MongoDB Atlas cluster..."
            )
        if status == DeploymentStatus.DEPLOYING:
            return HostingState(
                status=status,
                status_message="Deployment building",
                vercel_status=VercelStatus(state="BUILDING"),
            )
        if status == DeploymentStatus.ACTIVE:
            url = deployment.deployed_url or predicted_url(deployment)
            now = datetime.now(timezone.utc)
            return HostingState(
                status=status,
                status_message="Deployment successful",
                deployed_url=url,
                deployed_at=now,
                vercel_status=VercelStatus(state="READY", url=url, ready_at=now),
                vercel_deployment_id=f"dpl_{uuid4().hex[:12]}",
            )
        return HostingState(status=status, status_message=deployment.status_message)


class VercelHostingProvider(HostingProvider):
    """Deploys through the Vercel REST API."""

    def __init__(
        self,
        token: str | None = None,
        team_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__()
        self.token = token or settings.vercel_token
        self.team_id = team_id or settings.vercel_team_id
        self._transport = transport

    @property
    def name(self) -> str:
        return "vercel"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=settings.vercel_api_url,
            timeout=settings.request_timeout_seconds,
            headers={"Authorization": f"Bearer {self.token}"},
            params={"teamId": self.team_id} if self.team_id else None,
            transport=self._transport,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"Vercel returned {response.status_code}"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        return f"Vercel returned {response.status_code}"

    async def _call(
        self, client: httpx.AsyncClient, method: str, path: str, **kwargs: Any
    ) -> Any:
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Could not reach Vercel: {e}") from e
        if response.status_code == 409:
            raise ConflictError(self._error_message(response))
        if response.is_error:
            raise UpstreamError(
                self._error_message(response), details={"vercel_status": response.status_code}
            )
        return response.json()

    async def deploy(self, deployment: Deployment) -> HostingLaunch:
        if ":" in self.token:
            # Legacy token format, rejected by the current API
            raise UpstreamError(
                "Invalid Vercel token format. Tokens with ':' are legacy format. "
                "Please create a new token at https://vercel.com/account/tokens"
            )

        env_vars = prepare_environment(deployment)
        slug = deployment.app_slug
        target = "production" if deployment.environment == "production" else "preview"

        async with self._client() as client:
            project_id = deployment.vercel_project_id
            if not project_id:
                try:
                    project = await self._call(
                        client,
                        "POST",
                        "/v10/projects",
                        json={"name": slug, "framework": "nextjs"},
                    )
                except ConflictError as e:
                    raise ConflictError(
                        f"Vercel project name '{slug}' is already taken",
                        suggestion=f"{slug}-{uuid4().hex[:4]}",
                    ) from e
                project_id = project["id"]
                self.logger.info(
                    "vercel.project_created",
                    deployment_id=deployment.deployment_id,
                    vercel_project_id=project_id,
                )

            await self._call(
                client,
                "POST",
                f"/v10/projects/{project_id}/env",
                params={"upsert": "true"},
                json=[
                    {"key": key, "value": value, "type": "encrypted", "target": [target]}
                    for key, value in env_vars.items()
                ],
            )

        self.logger.info(
            "vercel.deploy_started",
            deployment_id=deployment.deployment_id,
            env_count=len(env_vars),
        )
        return HostingLaunch(
            status=DeploymentStatus.DEPLOYING,
            status_message="Deployment in progress...",
            deployed_url=predicted_url(deployment),
            vercel_project_id=project_id,
        )

    async def check(self, deployment: Deployment) -> HostingState:
        if not deployment.vercel_project_id:
            return HostingState(
                status=deployment.status,
                status_message=deployment.status_message,
                error="Vercel integration not configured",
            )

        target = "production" if deployment.environment == "production" else "preview"
        async with self._client() as client:
            data = await self._call(
                client,
                "GET",
                "/v6/deployments",
                params={
                    "projectId": deployment.vercel_project_id,
                    "limit": 1,
                    "target": target,
                },
            )

        latest = (data.get("deployments") or [None])[0]
        if latest is None:
            return HostingState(status=deployment.status, status_message="No deployments found")

        state = latest.get("state") or latest.get("readyState") or ""
        url = f"https://{latest['url']}" if latest.get("url") else None
        ready_at = (
            datetime.fromtimestamp(latest["ready"] / 1000, tz=timezone.utc)
            if latest.get("ready")
            else None
        )
        vercel_status = VercelStatus(state=state, url=url, ready_at=ready_at)
        status = VERCEL_STATE_MAP.get(state, deployment.status)

        if status == DeploymentStatus.ACTIVE:
            return HostingState(
                status=status,
                status_message="Deployment successful",
                deployed_url=url,
                deployed_at=ready_at or datetime.now(timezone.utc),
                vercel_status=vercel_status,
                vercel_deployment_id=latest.get("uid"),
            )
        if status == DeploymentStatus.FAILED:
            return HostingState(
                status=status,
                status_message="Deployment failed",
                vercel_status=vercel_status,
                vercel_deployment_id=latest.get("uid"),
                error=latest.get("errorMessage") or f"Vercel deployment {state.lower()}",
            )
        return HostingState(
            status=status,
            status_message=f"Deployment {state.lower()}" if state else deployment.status_message,
            vercel_status=vercel_status,
            vercel_deployment_id=latest.get("uid"),
        )


def get_hosting_provider() -> HostingProvider:
    """Pick the provider configured for this process."""
    if settings.vercel_deploy_real and settings.vercel_token:
        return VercelHostingProvider()
    return MockHostingProvider()
