"""Deployment service: the entry points callers use to start and poll deployments."""

from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse
from uuid import UUID, uuid4

from theme_deployer.config import settings
from theme_deployer.core.events import get_event_bus
from theme_deployer.core.exceptions import (
    DeploymentConflictError,
    DeploymentNotFoundError,
    ValidationError,
)
from theme_deployer.core.gallery import GalleryStore, get_gallery_store
from theme_deployer.core.orchestrator import DeploymentOrchestrator
from theme_deployer.core.organizations import BrandingStore, get_branding_store
from theme_deployer.core.store import DeploymentStore, get_deployment_store
from theme_deployer.core.worker import DeploymentHandle, DeploymentJob, DeploymentWorker
from theme_deployer.models.branding import BrandingProfile
from theme_deployer.models.deployment import (
    DeploymentLogEntry,
    DeploymentRecord,
    DeploymentStatus,
    DeploymentStatusResponse,
    EnvironmentTarget,
    LogLevel,
    ThemeSource,
)
from theme_deployer.services.auth import get_token_provider
from theme_deployer.services.dataverse import get_dataverse_client
from theme_deployer.services.publisher import RemotePublisher
from theme_deployer.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DeploymentRequest:
    """Everything needed to start a deployment."""

    theme_name: str
    source: ThemeSource
    target: EnvironmentTarget
    theme_id: str | None = None
    website_url: str | None = None
    organization_id: str | None = None
    apply_branding: bool = False
    branding: BrandingProfile | None = None


class DeploymentService:
    """Starts, polls and cancels deployments."""

    def __init__(
        self,
        store: DeploymentStore,
        worker: DeploymentWorker,
        branding_store: BrandingStore,
        gallery_store: GalleryStore | None = None,
        conflict_policy: Literal["reject", "supersede"] | None = None,
        recent_log_limit: int | None = None,
        max_archive_size: int | None = None,
    ):
        self.store = store
        self.worker = worker
        self.branding_store = branding_store
        self.gallery_store = gallery_store or get_gallery_store()
        self.conflict_policy = conflict_policy or settings.deployment_conflict_policy
        self.recent_log_limit = (
            recent_log_limit if recent_log_limit is not None else settings.recent_log_limit
        )
        self.max_archive_size = max_archive_size or settings.upload_max_file_size

    async def start_deployment(self, request: DeploymentRequest) -> DeploymentHandle:
        """Validate the request, create the pending record and queue the pipeline.

        Returns immediately; poll with :meth:`get_status` or await the handle.

        Raises:
            ValidationError: If the request is incomplete or malformed
            DeploymentConflictError: If the theme already has an active
                deployment and the conflict policy is ``reject``
        """
        self._validate_request(request)
        source = await self._resolve_source(request.source)
        branding = await self._resolve_branding(request)

        deployment_id = uuid4()
        theme_id = request.theme_id or uuid4().hex
        wait_for = await self._resolve_conflict(theme_id, deployment_id)

        record = DeploymentRecord(
            id=deployment_id,
            theme_id=theme_id,
            theme_name=request.theme_name.strip(),
            source_type=source.type,
            source_name=source.original_name,
            source_url=source.url,
            gallery_id=source.gallery_id,
            environment_url=request.target.environment_url,
            website_id=request.target.website_id,
            website_url=request.website_url,
            organization_id=request.organization_id,
            branding_applied=branding is not None,
            logs=[DeploymentLogEntry(level=LogLevel.INFO, message="Deployment initiated")],
        )
        record = await self.store.create(record)

        handle = await self.worker.submit(
            DeploymentJob(
                deployment_id=record.id,
                source=source,
                branding=branding,
                wait_for=wait_for,
            )
        )

        logger.info(
            "deployment.started",
            deployment_id=str(record.id),
            theme_id=theme_id,
            website_id=record.website_id,
            branding=branding is not None,
        )
        return handle

    async def get_status(self, deployment_id: UUID) -> DeploymentStatusResponse:
        """Current status of a deployment. Never waits on the pipeline."""
        record = await self.get_deployment(deployment_id)
        return DeploymentStatusResponse.from_record(record, self.recent_log_limit)

    async def get_deployment(self, deployment_id: UUID) -> DeploymentRecord:
        record = await self.store.get(deployment_id)
        if record is None:
            raise DeploymentNotFoundError(str(deployment_id))
        return record

    async def list_deployments(
        self,
        theme_id: str | None = None,
        status: DeploymentStatus | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[DeploymentRecord], int]:
        return await self.store.list(theme_id=theme_id, status=status, limit=limit, offset=offset)

    async def cancel_deployment(
        self, deployment_id: UUID, reason: str = "cancelled by user"
    ) -> DeploymentRecord:
        """Ask a running deployment to stop.

        The pipeline itself records the ``failed`` state at its next
        checkpoint; terminal deployments are returned unchanged.
        """
        record = await self.get_deployment(deployment_id)
        if record.status.is_terminal:
            return record

        handle = self.worker.get_handle(deployment_id)
        if handle is not None and handle.cancel(reason):
            logger.info("deployment.cancel_requested", deployment_id=str(deployment_id), reason=reason)
        return record

    def _validate_request(self, request: DeploymentRequest) -> None:
        if not request.theme_name or not request.theme_name.strip():
            raise ValidationError("Theme name is required")

        target = request.target
        if not target.website_id or not target.environment_url:
            raise ValidationError("Website ID and Environment URL are required")
        if not _is_http_url(target.environment_url):
            raise ValidationError(
                "Invalid environment URL", {"environment_url": target.environment_url}
            )

        source = request.source
        provided = [v for v in (source.archive, source.url, source.gallery_id) if v is not None]
        if len(provided) != 1:
            raise ValidationError(
                "Provide exactly one of a theme archive, a source URL or a gallery theme"
            )
        if source.url is not None and not _is_http_url(source.url):
            raise ValidationError("Invalid theme source URL", {"source_url": source.url})
        if source.archive is not None:
            if not source.archive:
                raise ValidationError("Uploaded theme archive is empty")
            if len(source.archive) > self.max_archive_size:
                raise ValidationError(
                    "Theme archive exceeds the maximum allowed size",
                    {"size": len(source.archive), "max_size": self.max_archive_size},
                )

        if request.apply_branding and not (request.organization_id or request.branding):
            raise ValidationError("Applying branding requires an organization")

    async def _resolve_source(self, source: ThemeSource) -> ThemeSource:
        """Turn a gallery selection into the archive URL it publishes."""
        if source.gallery_id is None:
            return source

        theme = await self.gallery_store.get(source.gallery_id)
        if theme is None:
            raise ValidationError("Gallery theme not found", {"gallery_id": source.gallery_id})
        return replace(
            source,
            type="gallery",
            url=theme.download_url,
            original_name=source.original_name or theme.name,
        )

    async def _resolve_branding(self, request: DeploymentRequest) -> BrandingProfile | None:
        if request.branding is not None:
            return request.branding
        if not (request.apply_branding and request.organization_id):
            return None

        organization = await self.branding_store.get(request.organization_id)
        if organization is None:
            raise ValidationError(
                "Organization not found", {"organization_id": request.organization_id}
            )
        return organization.branding_profile()

    async def _resolve_conflict(
        self, theme_id: str, deployment_id: UUID
    ) -> list[DeploymentHandle]:
        """Apply the policy for a theme that already has an active deployment.

        Returns the handles the new run has to wait for.
        """
        active = await self.store.list_active(theme_id)
        if not active:
            return []

        if self.conflict_policy == "reject":
            raise DeploymentConflictError(
                "A deployment for this theme is already in progress",
                {"theme_id": theme_id, "active_deployment_id": str(active[0].id)},
            )

        # Earlier superseded runs may still be settling; wait for all of them
        handles: list[DeploymentHandle] = []
        for record in active:
            handle = self.worker.get_handle(record.id)
            if handle is None:
                continue
            if handle.cancel(f"superseded by deployment {deployment_id}"):
                logger.info(
                    "deployment.superseded",
                    theme_id=theme_id,
                    previous_deployment_id=str(record.id),
                    deployment_id=str(deployment_id),
                )
            handles.append(handle)
        return handles


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@lru_cache
def get_deployment_service() -> DeploymentService:
    """Get the deployment service singleton wired to the live Dataverse API."""
    store = get_deployment_store()
    publisher = RemotePublisher(get_token_provider(), get_dataverse_client())
    orchestrator = DeploymentOrchestrator(
        publisher=publisher,
        store=store,
        events=get_event_bus(),
    )
    return DeploymentService(
        store=store,
        worker=DeploymentWorker(orchestrator),
        branding_store=get_branding_store(),
        gallery_store=get_gallery_store(),
    )
