"""Deployment data models."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import Field

from netpad.models.base import CamelModel

DeploymentTarget = Literal["vercel", "netlify", "railway", "self-hosted"]
DeploymentEnvironment = Literal["production", "staging", "development"]
DatabaseProvisioning = Literal["auto", "manual", "existing"]
HealthStatus = Literal["healthy", "degraded", "unhealthy"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeploymentStatus(str, Enum):
    """Deployment status lifecycle."""

    DRAFT = "draft"
    CONFIGURING = "configuring"
    PROVISIONING = "provisioning"
    DEPLOYING = "deploying"
    ACTIVE = "active"
    FAILED = "failed"
    PAUSED = "paused"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_in_progress(self) -> bool:
        return self in IN_PROGRESS_STATUSES


TERMINAL_STATUSES = frozenset(
    {DeploymentStatus.ACTIVE, DeploymentStatus.FAILED, DeploymentStatus.PAUSED}
)
IN_PROGRESS_STATUSES = frozenset(
    {
        DeploymentStatus.CONFIGURING,
        DeploymentStatus.PROVISIONING,
        DeploymentStatus.DEPLOYING,
    }
)


@dataclass(frozen=True)
class StatusDisplay:
    """How a status is presented to users."""

    label: str
    progress_label: str
    color: str
    chip: str


STATUS_DISPLAY: dict[DeploymentStatus, StatusDisplay] = {
    DeploymentStatus.DRAFT: StatusDisplay("Draft", "Preparing...", "#9E9E9E", "default"),
    DeploymentStatus.CONFIGURING: StatusDisplay(
        "Configuring", "Configuring...", "#2196F3", "info"
    ),
    DeploymentStatus.PROVISIONING: StatusDisplay(
        "Provisioning", "Provisioning Database...", "#2196F3", "info"
    ),
    DeploymentStatus.DEPLOYING: StatusDisplay(
        "Deploying", "Deploying to Vercel...", "#2196F3", "info"
    ),
    DeploymentStatus.ACTIVE: StatusDisplay("Active", "Active", "#00ED64", "success"),
    DeploymentStatus.FAILED: StatusDisplay("Failed", "Failed", "#F44336", "error"),
    DeploymentStatus.PAUSED: StatusDisplay("Paused", "Paused", "#FFC107", "warning"),
}


def slugify_app_name(app_name: str) -> str:
    """Turn an app name into the slug used for hosting project names."""
    return re.sub(r"[^a-z0-9-]", "-", app_name.strip().lower())


class DatabaseConfig(CamelModel):
    """Database configuration for a deployment."""

    provisioning: DatabaseProvisioning | None = None
    cluster_id: str | None = None
    vault_id: str | None = None
    connection_string: str | None = None
    database_name: str | None = None


class Branding(CamelModel):
    logo: str | None = None
    primary_color: str | None = None
    favicon: str | None = None


class DeploymentConfig(CamelModel):
    """Input for creating a deployment."""

    project_id: str = ""
    organization_id: str = ""
    target: DeploymentTarget = "vercel"
    app_name: str = ""
    environment: DeploymentEnvironment = "production"
    database: DatabaseConfig | None = None
    environment_variables: dict[str, str] = Field(default_factory=dict)
    branding: Branding | None = None
    vercel_installation_id: str | None = None

    def missing_fields(self) -> list[str]:
        """Return the wire names of required fields that are not set."""
        missing = []
        if not self.app_name.strip():
            missing.append("appName")
        if not self.organization_id.strip():
            missing.append("organizationId")
        if self.database is None or self.database.provisioning is None:
            missing.append("database.provisioning")
        return missing


class DeploymentUpdate(CamelModel):
    """Partial update of a deployment's configuration."""

    app_name: str | None = None
    environment: DeploymentEnvironment | None = None
    database: DatabaseConfig | None = None
    environment_variables: dict[str, str] | None = None
    branding: Branding | None = None
    status: Literal["paused"] | None = None
    status_message: str | None = None


class DeployedBundle(CamelModel):
    """Summary of the bundle injected into a deployment."""

    name: str
    version: str
    forms_count: int = 0
    workflows_count: int = 0
    exported_at: datetime = Field(default_factory=_utcnow)


class Deployment(CamelModel):
    """Complete deployment record."""

    deployment_id: str
    project_id: str
    organization_id: str
    created_by: str | None = None

    target: DeploymentTarget = "vercel"
    vercel_project_id: str | None = None
    vercel_deployment_id: str | None = None
    vercel_installation_id: str | None = None

    app_name: str
    environment: DeploymentEnvironment = "production"
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    environment_variables: dict[str, str] = Field(default_factory=dict)
    branding: Branding | None = None

    # Status tracking
    status: DeploymentStatus = DeploymentStatus.DRAFT
    status_message: str | None = None
    deployed_at: datetime | None = None
    deployed_url: str | None = None
    health_check_status: HealthStatus | None = None

    # Error tracking
    last_error: str | None = None
    error_count: int = 0
    last_error_at: datetime | None = None

    bundle_version: str | None = None
    deployed_bundle: DeployedBundle | None = None

    # Timestamps
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted_at: datetime | None = None

    @property
    def app_slug(self) -> str:
        return slugify_app_name(self.app_name)


class VercelStatus(CamelModel):
    """Raw state reported by Vercel for the latest deployment."""

    state: str
    url: str | None = None
    ready_at: datetime | None = None


class HealthChecks(CamelModel):
    database: Literal["ok", "error"] = "ok"
    forms: int = 0
    workflows: int = 0
    last_submission: datetime | None = None


class HealthCheckResult(CamelModel):
    """Result of probing a deployed application's health endpoint."""

    status: HealthStatus
    checks: HealthChecks = Field(default_factory=HealthChecks)
    version: str | None = None
    uptime: float | None = None
    error: str | None = None


class HealthCheckSummary(CamelModel):
    status: HealthStatus
    checked_at: datetime
    error: str | None = None


class DeploymentStatusReport(CamelModel):
    """Status response returned by the status endpoint."""

    deployment_id: str | None = None
    status: DeploymentStatus
    status_message: str | None = None
    vercel_status: VercelStatus | None = None
    health_check: HealthCheckSummary | None = None
    deployed_url: str | None = None
    deployed_at: datetime | None = None
    error: str | None = None


class TriggerResult(CamelModel):
    """Outcome of triggering a deploy."""

    status_message: str
    deployed_url: str | None = None


class DeploymentProgress(CamelModel):
    """Deployment state as observed by the client."""

    deployment_id: str = ""
    status: DeploymentStatus = DeploymentStatus.DRAFT
    status_message: str | None = None
    deployed_url: str | None = None
    vercel_status: VercelStatus | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def display(self) -> StatusDisplay:
        return STATUS_DISPLAY[self.status]


class DeploymentListResult(CamelModel):
    """One page of deployments."""

    deployments: list[Deployment] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20
    total_pages: int = 0
