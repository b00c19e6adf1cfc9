"""Custom exceptions for the theme deployer."""

from typing import Any


class ThemeDeployerError(Exception):
    """Base exception for the theme deployer."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(ThemeDeployerError):
    """Invalid deployment request input."""

    status_code = 400


class ExtractionError(ThemeDeployerError):
    """Theme archive could not be fetched or read."""

    status_code = 422


class AuthenticationError(ThemeDeployerError):
    """Token acquisition for the remote environment failed."""

    status_code = 502

    def __init__(self, environment_url: str, reason: str | None = None):
        details: dict[str, Any] = {"environment_url": environment_url}
        if reason:
            details["reason"] = reason
        super().__init__("Failed to authenticate with Dataverse", details)
        self.environment_url = environment_url


class RemoteApiError(ThemeDeployerError):
    """The Dataverse Web API answered with a non-success status."""

    status_code = 502

    def __init__(self, endpoint: str, remote_status: int, body: str | None = None):
        details: dict[str, Any] = {"endpoint": endpoint, "remote_status": remote_status}
        if body:
            details["body"] = body[:500]
        super().__init__(f"Dataverse API error: {remote_status}", details)
        self.endpoint = endpoint
        self.remote_status = remote_status


class PerFileUploadError(ThemeDeployerError):
    """Upload of a single theme file failed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to upload {path}: {reason}", {"path": path})
        self.path = path
        self.reason = reason


class CacheInvalidationError(ThemeDeployerError):
    """Best-effort site cache invalidation failed."""

    def __init__(self, website_id: str, reason: str):
        super().__init__(
            f"Cache invalidation failed for site {website_id}: {reason}",
            {"website_id": website_id},
        )


class DeploymentNotFoundError(ThemeDeployerError):
    """Deployment not found."""

    status_code = 404

    def __init__(self, deployment_id: str):
        super().__init__(
            f"Deployment not found: {deployment_id}",
            {"deployment_id": deployment_id},
        )


class DeploymentConflictError(ThemeDeployerError):
    """A conflicting deployment or site already exists."""

    status_code = 409


class DeploymentCancelledError(ThemeDeployerError):
    """A running deployment observed its cancellation signal."""

    def __init__(self, reason: str):
        super().__init__(f"Deployment cancelled: {reason}", {"reason": reason})
        self.reason = reason


class InvalidTransitionError(ThemeDeployerError):
    """A deployment record change would break its lifecycle rules."""

    status_code = 409
