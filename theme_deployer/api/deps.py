"""Dependency injection for API endpoints."""

from typing import Annotated

from fastapi import Depends

from theme_deployer.core.deployments import DeploymentService, get_deployment_service
from theme_deployer.core.events import EventBus, get_event_bus
from theme_deployer.services.auth import TokenProvider, get_token_provider
from theme_deployer.services.dataverse import DataverseClient, get_dataverse_client


async def get_deployments() -> DeploymentService:
    """Get the deployment service."""
    return get_deployment_service()


async def get_events() -> EventBus:
    """Get the event bus."""
    return get_event_bus()


async def get_tokens() -> TokenProvider:
    """Get the Dataverse token provider."""
    return get_token_provider()


async def get_dataverse() -> DataverseClient:
    """Get the Dataverse client."""
    return get_dataverse_client()


# Type aliases for cleaner signatures
DeploymentsDep = Annotated[DeploymentService, Depends(get_deployments)]
EventsDep = Annotated[EventBus, Depends(get_events)]
TokensDep = Annotated[TokenProvider, Depends(get_tokens)]
DataverseDep = Annotated[DataverseClient, Depends(get_dataverse)]
