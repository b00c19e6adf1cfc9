"""Deployment data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class DeploymentStatus(str, Enum):
    """Deployment state machine states."""

    PENDING = "pending"
    VALIDATING = "validating"
    CREATING_SITE = "creating_site"
    DEPLOYING = "deploying"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.COMPLETED, DeploymentStatus.FAILED)


# Forward edges only; staying in the same non-terminal state is always allowed
STATUS_TRANSITIONS: dict[DeploymentStatus, frozenset[DeploymentStatus]] = {
    DeploymentStatus.PENDING: frozenset(
        {DeploymentStatus.VALIDATING, DeploymentStatus.FAILED}
    ),
    DeploymentStatus.VALIDATING: frozenset(
        {DeploymentStatus.CREATING_SITE, DeploymentStatus.FAILED}
    ),
    DeploymentStatus.CREATING_SITE: frozenset(
        {DeploymentStatus.DEPLOYING, DeploymentStatus.FAILED}
    ),
    DeploymentStatus.DEPLOYING: frozenset(
        {DeploymentStatus.COMPLETED, DeploymentStatus.FAILED}
    ),
    DeploymentStatus.COMPLETED: frozenset(),
    DeploymentStatus.FAILED: frozenset(),
}

PROGRESS_BY_STATUS: dict[DeploymentStatus, int] = {
    DeploymentStatus.PENDING: 0,
    DeploymentStatus.VALIDATING: 20,
    DeploymentStatus.CREATING_SITE: 40,
    DeploymentStatus.DEPLOYING: 70,
    DeploymentStatus.COMPLETED: 100,
    DeploymentStatus.FAILED: 0,
}


def can_transition(current: DeploymentStatus, new: DeploymentStatus) -> bool:
    """Check whether a status change respects the state machine."""
    if current == new:
        return not current.is_terminal
    return new in STATUS_TRANSITIONS[current]


class LogLevel(str, Enum):
    """Deployment log entry level."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class DeploymentLogEntry(BaseModel):
    """A single line of the deployment log shown to the user."""

    timestamp: datetime = Field(default_factory=utc_now)
    level: LogLevel = LogLevel.INFO
    message: str


class EnvironmentTarget(BaseModel):
    """The remote environment and Power Pages site a theme is published to."""

    environment_url: str
    website_id: str

    @property
    def api_root(self) -> str:
        return self.environment_url.rstrip("/")


@dataclass
class ThemeSource:
    """Where the theme archive comes from.

    Callers set exactly one of ``archive`` (raw bytes), ``url`` or
    ``gallery_id``. A gallery selection is resolved to its download ``url``
    before the pipeline runs.
    """

    type: Literal["upload", "gallery", "url"]
    archive: bytes | None = field(default=None, repr=False)
    url: str | None = None
    original_name: str | None = None
    gallery_id: str | None = None

    def describe(self) -> str:
        if self.url:
            return self.url
        return self.original_name or "uploaded archive"


class DeploymentRecord(BaseModel):
    """Persisted state of one deployment attempt."""

    id: UUID = Field(default_factory=uuid4)
    theme_id: str
    theme_name: str
    status: DeploymentStatus = DeploymentStatus.PENDING

    # Source metadata (the archive bytes themselves are never persisted)
    source_type: Literal["upload", "gallery", "url"] = "upload"
    source_name: str | None = None
    source_url: str | None = None
    gallery_id: str | None = None

    # Remote target, fixed before execution starts
    environment_url: str
    website_id: str
    website_url: str | None = None

    # Branding
    organization_id: str | None = None
    branding_applied: bool = False

    logs: list[DeploymentLogEntry] = Field(default_factory=list)
    error_message: str | None = None

    # Publish summary
    total_files: int = 0
    uploaded_files: int = 0
    failed_files: int = 0

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deployed_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal

    @property
    def progress_percent(self) -> int:
        return PROGRESS_BY_STATUS[self.status]

    @property
    def target(self) -> EnvironmentTarget:
        return EnvironmentTarget(
            environment_url=self.environment_url, website_id=self.website_id
        )


class DeploymentAccepted(BaseModel):
    """Response returned when a deployment is queued."""

    deployment_id: UUID
    theme_id: str
    status: DeploymentStatus


class DeploymentStatusResponse(BaseModel):
    """Polling view of a deployment."""

    deployment_id: UUID
    status: DeploymentStatus
    progress_percent: int
    recent_logs: list[DeploymentLogEntry] = Field(default_factory=list)
    website_url: str | None = None
    error_message: str | None = None

    @classmethod
    def from_record(
        cls, record: DeploymentRecord, log_limit: int = 20
    ) -> "DeploymentStatusResponse":
        """Build the polling view from a record snapshot."""
        recent = record.logs[-log_limit:] if log_limit > 0 else []
        return cls(
            deployment_id=record.id,
            status=record.status,
            progress_percent=record.progress_percent,
            recent_logs=recent,
            website_url=record.website_url,
            error_message=record.error_message,
        )


class FileUploadLog(BaseModel):
    """Upload outcome for one file in a publish call."""

    file: str
    status: Literal["success", "error"]
    error: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class PublishResult(BaseModel):
    """Aggregate outcome of publishing a theme's files."""

    total_files: int = 0
    success_count: int = 0
    error_count: int = 0
    per_file_log: list[FileUploadLog] = Field(default_factory=list)
    cache_invalidated: bool = True

    @property
    def success(self) -> bool:
        return self.error_count == 0

    @property
    def failed_files(self) -> list[str]:
        return [entry.file for entry in self.per_file_log if entry.status == "error"]
