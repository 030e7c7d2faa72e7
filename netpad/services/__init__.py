"""Services for NetPad Deploy."""

from netpad.services.client import DeploymentClient
from netpad.services.health import check_health
from netpad.services.hosting import (
    HostingProvider,
    MockHostingProvider,
    VercelHostingProvider,
    get_hosting_provider,
)

__all__ = [
    "DeploymentClient",
    "check_health",
    "HostingProvider",
    "MockHostingProvider",
    "VercelHostingProvider",
    "get_hosting_provider",
]
