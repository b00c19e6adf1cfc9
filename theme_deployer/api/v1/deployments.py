"""Deployment endpoints."""

import asyncio
from datetime import datetime
from pathlib import PurePath
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from theme_deployer.api.deps import DeploymentsDep, EventsDep
from theme_deployer.config import settings
from theme_deployer.core.deployments import DeploymentRequest
from theme_deployer.core.events import Event
from theme_deployer.models.deployment import (
    DeploymentAccepted,
    DeploymentLogEntry,
    DeploymentRecord,
    DeploymentStatus,
    DeploymentStatusResponse,
    EnvironmentTarget,
    ThemeSource,
)

router = APIRouter()


class DeploymentSummary(BaseModel):
    """A deployment as shown in listings."""

    deployment_id: UUID
    theme_id: str
    theme_name: str
    status: DeploymentStatus
    progress_percent: int
    website_id: str
    website_url: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_record(cls, record: DeploymentRecord) -> "DeploymentSummary":
        return cls(
            deployment_id=record.id,
            theme_id=record.theme_id,
            theme_name=record.theme_name,
            status=record.status,
            progress_percent=record.progress_percent,
            website_id=record.website_id,
            website_url=record.website_url,
            created_at=record.created_at,
            completed_at=record.completed_at,
        )


class DeploymentListResponse(BaseModel):
    """Response for listing deployments."""

    deployments: list[DeploymentSummary]
    total: int
    limit: int
    offset: int


class DeploymentDetail(BaseModel):
    """Full deployment record including the complete log."""

    deployment_id: UUID
    theme_id: str
    theme_name: str
    status: DeploymentStatus
    progress_percent: int
    source_type: str
    source_name: str | None = None
    source_url: str | None = None
    gallery_id: str | None = None
    environment_url: str
    website_id: str
    website_url: str | None = None
    organization_id: str | None = None
    branding_applied: bool
    total_files: int
    uploaded_files: int
    failed_files: int
    logs: list[DeploymentLogEntry]
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime
    deployed_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_record(cls, record: DeploymentRecord) -> "DeploymentDetail":
        return cls(
            deployment_id=record.id,
            progress_percent=record.progress_percent,
            **record.model_dump(exclude={"id"}),
        )


class CancelRequest(BaseModel):
    reason: str = "cancelled by user"


async def _read_archive(theme_file: UploadFile) -> bytes:
    filename = theme_file.filename or ""
    extension = PurePath(filename).suffix.lower()
    if extension not in settings.allowed_archive_extensions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Only .zip files are allowed.",
        )

    data = await theme_file.read(settings.upload_max_file_size + 1)
    if len(data) > settings.upload_max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Theme archive exceeds the maximum allowed size",
        )
    return data


@router.post(
    "",
    response_model=DeploymentAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a theme deployment",
    description="Queue a theme deployment to a Power Pages site. Returns immediately; poll the status endpoint for progress.",
)
async def start_deployment(
    deployments: DeploymentsDep,
    theme_name: Annotated[str, Form()],
    environment_url: Annotated[str, Form()],
    website_id: Annotated[str, Form()],
    theme_file: Annotated[UploadFile | None, File()] = None,
    source_url: Annotated[str | None, Form()] = None,
    gallery_id: Annotated[str | None, Form()] = None,
    theme_id: Annotated[str | None, Form()] = None,
    website_url: Annotated[str | None, Form()] = None,
    organization_id: Annotated[str | None, Form()] = None,
    apply_branding: Annotated[bool, Form()] = False,
) -> DeploymentAccepted:
    """Start a deployment from an uploaded archive, a download URL or a gallery theme."""
    if sum(bool(s) for s in (theme_file is not None, source_url, gallery_id)) > 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide only one of a theme file, a source URL or a gallery theme",
        )

    if theme_file is not None:
        source = ThemeSource(
            type="upload",
            archive=await _read_archive(theme_file),
            original_name=theme_file.filename,
        )
    elif source_url:
        source = ThemeSource(type="url", url=source_url)
    elif gallery_id:
        source = ThemeSource(type="gallery", gallery_id=gallery_id)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A theme file, source URL or gallery theme is required",
        )

    handle = await deployments.start_deployment(
        DeploymentRequest(
            theme_name=theme_name,
            source=source,
            target=EnvironmentTarget(environment_url=environment_url, website_id=website_id),
            theme_id=theme_id,
            website_url=website_url,
            organization_id=organization_id,
            apply_branding=apply_branding,
        )
    )

    record = await deployments.get_deployment(handle.deployment_id)
    return DeploymentAccepted(
        deployment_id=record.id,
        theme_id=record.theme_id,
        status=record.status,
    )


@router.get(
    "",
    response_model=DeploymentListResponse,
    summary="List deployments",
)
async def list_deployments(
    deployments: DeploymentsDep,
    theme_id: Annotated[str | None, Query()] = None,
    status_filter: Annotated[DeploymentStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> DeploymentListResponse:
    """List deployments with optional filtering."""
    records, total = await deployments.list_deployments(
        theme_id=theme_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )

    return DeploymentListResponse(
        deployments=[DeploymentSummary.from_record(r) for r in records],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{deployment_id}",
    response_model=DeploymentDetail,
    summary="Get deployment details",
)
async def get_deployment(deployment_id: UUID, deployments: DeploymentsDep) -> DeploymentDetail:
    """Get the full record of a deployment."""
    record = await deployments.get_deployment(deployment_id)
    return DeploymentDetail.from_record(record)


@router.get(
    "/{deployment_id}/status",
    response_model=DeploymentStatusResponse,
    summary="Poll deployment status",
)
async def get_deployment_status(
    deployment_id: UUID, deployments: DeploymentsDep
) -> DeploymentStatusResponse:
    """Current status, progress and most recent log lines."""
    return await deployments.get_status(deployment_id)


@router.post(
    "/{deployment_id}/cancel",
    response_model=DeploymentStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Cancel a running deployment",
)
async def cancel_deployment(
    deployment_id: UUID,
    deployments: DeploymentsDep,
    data: CancelRequest | None = None,
) -> DeploymentStatusResponse:
    """Request cancellation; the deployment stops at its next checkpoint."""
    reason = data.reason if data else "cancelled by user"
    await deployments.cancel_deployment(deployment_id, reason)
    return await deployments.get_status(deployment_id)


@router.get(
    "/{deployment_id}/stream",
    summary="Stream deployment events (SSE)",
)
async def stream_deployment_events(
    deployment_id: UUID,
    deployments: DeploymentsDep,
    events: EventsDep,
) -> EventSourceResponse:
    """Stream status changes and log lines using Server-Sent Events."""
    # Subscribe first so nothing published after the snapshot is missed
    queue = events.subscribe(deployment_id)
    try:
        current = await deployments.get_status(deployment_id)
    except Exception:
        events.unsubscribe(deployment_id, queue)
        raise

    async def event_generator():
        try:
            yield {
                "event": "connected",
                "data": current.model_dump_json(),
            }

            if current.status.is_terminal:
                return

            while True:
                try:
                    event: Event = await asyncio.wait_for(queue.get(), timeout=30.0)
                except asyncio.TimeoutError:
                    yield {"event": "keepalive", "data": "{}"}
                    continue

                yield {"event": event.event_type, "data": event.to_json()}

                if event.is_terminal:
                    break

        finally:
            events.unsubscribe(deployment_id, queue)

    return EventSourceResponse(event_generator())
