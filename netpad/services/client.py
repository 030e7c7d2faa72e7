"""Async client for the deployments REST API."""

from typing import Any

import httpx

from netpad.config import settings
from netpad.core.exceptions import (
    ConflictError,
    NetPadError,
    NetworkError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from netpad.models.bundle import Bundle
from netpad.models.deployment import (
    DeploymentConfig,
    DeploymentListResult,
    DeploymentStatus,
    DeploymentStatusReport,
    TriggerResult,
)
from netpad.utils.logging import get_logger


def _error_from_response(response: httpx.Response) -> NetPadError:
    """Build the exception matching an error response.

    The service answers errors as ``{"error": "..."}``; that string is kept
    verbatim as the exception message.
    """
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = body.get("error")
    if not isinstance(message, str) or not message:
        message = f"Request failed with status {response.status_code}"

    code = response.status_code
    if code in (400, 422):
        return ValidationError(message, body.get("validationErrors"))
    if code == 404:
        return NotFoundError(message)
    if code == 409:
        return ConflictError(message, suggestion=body.get("suggestion"))
    return UpstreamError(message, status_code=code)


class DeploymentClient:
    """Thin async wrapper over the deployments endpoints.

    Every call is a single request; nothing is retried. Cancelling the task
    awaiting a call aborts the in-flight request.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        token = token if token is not None else settings.api_token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._http = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.request_timeout_seconds,
            headers=headers,
            transport=transport,
        )
        self.logger = get_logger("deployment_client")

    async def __aenter__(self) -> "DeploymentClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._http.request(method, path, json=json, params=params)
        except httpx.TransportError as e:
            raise NetworkError(
                f"Could not reach deployments API: {e}",
                {"method": method, "path": path},
            ) from e

        if response.is_error:
            error = _error_from_response(response)
            self.logger.debug(
                "deployment_client.request_failed",
                method=method,
                path=path,
                status_code=response.status_code,
                error=error.message,
            )
            raise error

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(
                "Deployments API returned invalid JSON",
                status_code=response.status_code,
            ) from e
        return data if isinstance(data, dict) else {}

    async def create_deployment(self, config: DeploymentConfig) -> str:
        """Create a deployment and return its identifier.

        Raises:
            ValidationError: If required configuration is missing.
            ConflictError: If the app name is already taken.
        """
        missing = config.missing_fields()
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}", missing
            )

        data = await self._request("POST", "/deployments", json=config.to_wire())
        deployment = data.get("deployment") or {}
        deployment_id = deployment.get("deploymentId")
        if not deployment_id:
            raise UpstreamError("Deployments API did not return a deployment id")
        return deployment_id

    async def inject_bundle(self, deployment_id: str, bundle: Bundle | dict[str, Any]) -> None:
        """Upload the bundle to embed into the deployment's template.

        Raises:
            ValidationError: If the bundle fails structural checks.
            NotFoundError: If the deployment does not exist.
        """
        bundle = Bundle.from_raw(bundle)
        await self._request(
            "POST",
            f"/deployments/{deployment_id}/inject-bundle",
            json={"bundle": bundle.to_wire()},
        )

    async def trigger_deploy(self, deployment_id: str) -> TriggerResult:
        """Ask the host to start deploying.

        Raises:
            UpstreamError: If the host rejects the deployment.
        """
        data = await self._request("POST", f"/deployments/{deployment_id}/deploy")
        deployment = data.get("deployment") or {}
        return TriggerResult(
            status_message=data.get("message") or "Deployment in progress...",
            deployed_url=deployment.get("deployedUrl"),
        )

    async def get_status(self, deployment_id: str) -> DeploymentStatusReport:
        data = await self._request("GET", f"/deployments/{deployment_id}/status")
        try:
            return DeploymentStatusReport.model_validate(data)
        except ValueError as e:
            raise UpstreamError(f"Malformed status response: {e}") from e

    async def delete_deployment(self, deployment_id: str) -> None:
        await self._request("DELETE", f"/deployments/{deployment_id}")

    async def list_deployments(
        self,
        project_id: str,
        *,
        page: int = 1,
        page_size: int | None = None,
        status: DeploymentStatus | None = None,
    ) -> DeploymentListResult:
        params: dict[str, Any] = {
            "projectId": project_id,
            "page": page,
            "pageSize": page_size or settings.dashboard_page_size,
        }
        if status is not None:
            params["status"] = status.value

        data = await self._request("GET", "/deployments", params=params)
        return DeploymentListResult.model_validate(data)
