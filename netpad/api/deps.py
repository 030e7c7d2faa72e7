"""Dependency injection for API endpoints."""

from typing import Annotated

from fastapi import Depends

from netpad.core.events import EventBus, get_event_bus
from netpad.core.exceptions import NotFoundError
from netpad.core.store import DeploymentStore, get_deployment_store
from netpad.models.deployment import Deployment
from netpad.services.hosting import HostingProvider, get_hosting_provider


async def get_store() -> DeploymentStore:
    """Get the deployment store."""
    return get_deployment_store()


async def get_events() -> EventBus:
    """Get the event bus."""
    return get_event_bus()


async def get_provider() -> HostingProvider:
    """Get the configured hosting provider."""
    return get_hosting_provider()


async def get_deployment_by_id(
    deployment_id: str,
    store: Annotated[DeploymentStore, Depends(get_store)],
) -> Deployment:
    """Get a deployment by ID or raise 404."""
    deployment = await store.get(deployment_id)
    if not deployment:
        raise NotFoundError("Deployment not found", deployment_id=deployment_id)
    return deployment


# Type aliases for cleaner signatures
StoreDep = Annotated[DeploymentStore, Depends(get_store)]
EventsDep = Annotated[EventBus, Depends(get_events)]
ProviderDep = Annotated[HostingProvider, Depends(get_provider)]
DeploymentDep = Annotated[Deployment, Depends(get_deployment_by_id)]
