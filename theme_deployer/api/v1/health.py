"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from theme_deployer import __version__
from theme_deployer.api.deps import DeploymentsDep
from theme_deployer.config import settings
from theme_deployer.models.deployment import utc_now

router = APIRouter()


class WorkerHealth(BaseModel):
    running: bool
    concurrency: int
    conflict_policy: str


class HealthResponse(BaseModel):
    """Service liveness plus the state of the deployment workers."""

    status: str = "healthy"
    version: str
    environment: str
    dataverse_configured: bool
    workers: WorkerHealth
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
async def health_check(deployments: DeploymentsDep) -> HealthResponse:
    """Report whether the service can accept deployments."""
    worker = deployments.worker
    return HealthResponse(
        # Without credentials every deployment would fail at publish time
        status="healthy" if settings.dataverse_credentials_configured else "degraded",
        version=__version__,
        environment=settings.app_env,
        dataverse_configured=settings.dataverse_credentials_configured,
        workers=WorkerHealth(
            running=worker.running,
            concurrency=worker.concurrency,
            conflict_policy=deployments.conflict_policy,
        ),
        timestamp=utc_now(),
    )
