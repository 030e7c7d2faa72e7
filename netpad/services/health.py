"""Health checks against deployed applications."""

import httpx

from netpad.config import settings
from netpad.models.deployment import HealthCheckResult, HealthChecks
from netpad.utils.logging import get_logger

logger = get_logger(__name__)


def _unhealthy(error: str) -> HealthCheckResult:
    return HealthCheckResult(
        status="unhealthy",
        checks=HealthChecks(database="error", forms=0, workflows=0),
        error=error,
    )


async def check_health(
    deployed_url: str,
    *,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HealthCheckResult:
    """Probe ``{deployed_url}/api/health`` of a standalone app.

    Never raises; transport and protocol problems come back as an
    ``unhealthy`` result.
    """
    url = f"{deployed_url.rstrip('/')}/api/health"

    try:
        async with httpx.AsyncClient(
            timeout=timeout or settings.health_check_timeout_seconds,
            transport=transport,
        ) as client:
            response = await client.get(url, headers={"Content-Type": "application/json"})
    except httpx.HTTPError as e:
        logger.warning("health_check.unreachable", url=url, error=str(e))
        return _unhealthy(str(e) or "Health check failed")

    if response.is_error:
        return _unhealthy(f"Health check returned {response.status_code}")

    try:
        data = response.json()
    except ValueError:
        return _unhealthy("Health check returned invalid JSON")
    if not isinstance(data, dict):
        data = {}

    checks = data.get("checks")
    if not isinstance(checks, dict):
        checks = {}

    try:
        return HealthCheckResult(
            status=data.get("status") or "healthy",
            checks=HealthChecks(
                database=checks.get("database") or "ok",
                forms=checks.get("forms") or 0,
                workflows=checks.get("workflows") or 0,
                last_submission=checks.get("lastSubmission"),
            ),
            version=data.get("version"),
            uptime=data.get("uptime"),
        )
    except ValueError as e:
        return _unhealthy(f"Unexpected health payload: {e}")
