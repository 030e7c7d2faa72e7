"""Unit tests for deployed app health checks."""

import httpx
import pytest

from netpad.services.health import check_health


def _transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


class TestCheckHealth:
    """Tests for check_health."""

    @pytest.mark.asyncio
    async def test_healthy_app(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(
                200,
                json={
                    "status": "healthy",
                    "checks": {
                        "database": "ok",
                        "forms": 3,
                        "workflows": 1,
                        "lastSubmission": "2026-01-05T10:00:00Z",
                    },
                    "version": "1.0.0",
                    "uptime": 120.5,
                },
            )

        result = await check_health("https://app.example.com/", transport=_transport(handler))

        assert seen == ["https://app.example.com/api/health"]
        assert result.status == "healthy"
        assert result.checks.forms == 3
        assert result.checks.last_submission is not None
        assert result.version == "1.0.0"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_degraded_app(self):
        result = await check_health(
            "https://app.example.com",
            transport=_transport(
                lambda request: httpx.Response(
                    200, json={"status": "degraded", "checks": {"database": "error"}}
                )
            ),
        )

        assert result.status == "degraded"
        assert result.checks.database == "error"

    @pytest.mark.asyncio
    async def test_error_status_is_unhealthy(self):
        result = await check_health(
            "https://app.example.com",
            transport=_transport(lambda request: httpx.Response(503)),
        )

        assert result.status == "unhealthy"
        assert result.error == "Health check returned 503"

    @pytest.mark.asyncio
    async def test_unreachable_is_unhealthy(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        result = await check_health("https://app.example.com", transport=_transport(handler))

        assert result.status == "unhealthy"
        assert result.checks.database == "error"
        assert result.error == "timed out"

    @pytest.mark.asyncio
    async def test_invalid_json_is_unhealthy(self):
        result = await check_health(
            "https://app.example.com",
            transport=_transport(lambda request: httpx.Response(200, text="<html>")),
        )

        assert result.status == "unhealthy"
        assert result.error == "Health check returned invalid JSON"

    @pytest.mark.asyncio
    async def test_malformed_checks_fall_back_to_defaults(self):
        result = await check_health(
            "https://app.example.com",
            transport=_transport(
                lambda request: httpx.Response(200, json={"status": "healthy", "checks": ["x"]})
            ),
        )

        assert result.status == "healthy"
        assert result.checks.database == "ok"
        assert result.checks.forms == 0

    @pytest.mark.asyncio
    async def test_unexpected_status_is_unhealthy(self):
        result = await check_health(
            "https://app.example.com",
            transport=_transport(
                lambda request: httpx.Response(200, json={"status": "sleeping"})
            ),
        )

        assert result.status == "unhealthy"
        assert result.error.startswith("Unexpected health payload")
