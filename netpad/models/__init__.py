"""Data models for NetPad Deploy."""

from netpad.models.bundle import (
    Bundle,
    BundleAssets,
    BundleManifest,
    BundleValidationResult,
    FormDefinition,
    WorkflowDefinition,
)
from netpad.models.deployment import (
    STATUS_DISPLAY,
    Branding,
    DatabaseConfig,
    DeployedBundle,
    Deployment,
    DeploymentConfig,
    DeploymentListResult,
    DeploymentProgress,
    DeploymentStatus,
    DeploymentStatusReport,
    DeploymentUpdate,
    HealthCheckResult,
    HealthChecks,
    HealthCheckSummary,
    StatusDisplay,
    TriggerResult,
    VercelStatus,
)

__all__ = [
    # Deployment models
    "Deployment",
    "DeploymentConfig",
    "DeploymentStatus",
    "DeploymentStatusReport",
    "DeploymentUpdate",
    "DeploymentProgress",
    "DeploymentListResult",
    "DatabaseConfig",
    "Branding",
    "DeployedBundle",
    "TriggerResult",
    "VercelStatus",
    "StatusDisplay",
    "STATUS_DISPLAY",
    # Health models
    "HealthCheckResult",
    "HealthChecks",
    "HealthCheckSummary",
    # Bundle models
    "Bundle",
    "BundleAssets",
    "BundleManifest",
    "BundleValidationResult",
    "FormDefinition",
    "WorkflowDefinition",
]
