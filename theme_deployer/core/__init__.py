"""Core functionality for the theme deployer."""

from theme_deployer.core.cancellation import CancellationToken
from theme_deployer.core.events import EventBus, get_event_bus
from theme_deployer.core.exceptions import (
    AuthenticationError,
    CacheInvalidationError,
    DeploymentCancelledError,
    DeploymentConflictError,
    DeploymentNotFoundError,
    ExtractionError,
    InvalidTransitionError,
    PerFileUploadError,
    RemoteApiError,
    ThemeDeployerError,
    ValidationError,
)
from theme_deployer.core.store import DeploymentStore, get_deployment_store

__all__ = [
    "CancellationToken",
    "EventBus",
    "get_event_bus",
    "AuthenticationError",
    "CacheInvalidationError",
    "DeploymentCancelledError",
    "DeploymentConflictError",
    "DeploymentNotFoundError",
    "ExtractionError",
    "InvalidTransitionError",
    "PerFileUploadError",
    "RemoteApiError",
    "ThemeDeployerError",
    "ValidationError",
    "DeploymentStore",
    "get_deployment_store",
]
