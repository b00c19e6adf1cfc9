"""Deployment record persistence."""

from __future__ import annotations

from functools import lru_cache
from typing import Any
from uuid import UUID

from theme_deployer.core.exceptions import DeploymentNotFoundError, InvalidTransitionError
from theme_deployer.models.deployment import (
    DeploymentRecord,
    DeploymentStatus,
    can_transition,
    utc_now,
)


class DeploymentStore:
    """Keeps deployment records in memory.

    Every read returns an isolated snapshot, so pollers never observe a
    half-applied write and never hold a reference the pipeline mutates.

    Note: For production, this should be backed by a database.
    """

    def __init__(self) -> None:
        self._records: dict[UUID, DeploymentRecord] = {}

    async def create(self, record: DeploymentRecord) -> DeploymentRecord:
        """Persist a new record."""
        if record.id in self._records:
            raise InvalidTransitionError(
                f"Deployment already exists: {record.id}",
                {"deployment_id": str(record.id)},
            )
        self._records[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def get(self, deployment_id: UUID) -> DeploymentRecord | None:
        """Get a snapshot of a record by ID."""
        record = self._records.get(deployment_id)
        return record.model_copy(deep=True) if record else None

    async def update(self, deployment_id: UUID, **fields: Any) -> DeploymentRecord:
        """Apply a partial update to a record.

        Raises:
            DeploymentNotFoundError: If the record does not exist
            InvalidTransitionError: If the record is terminal or the status
                change would move the state machine backwards
        """
        current = self._records.get(deployment_id)
        if current is None:
            raise DeploymentNotFoundError(str(deployment_id))

        if current.status.is_terminal:
            raise InvalidTransitionError(
                f"Deployment {deployment_id} is {current.status.value} and can no longer change",
                {"deployment_id": str(deployment_id), "status": current.status.value},
            )

        new_status = DeploymentStatus(fields.get("status", current.status))
        if not can_transition(current.status, new_status):
            raise InvalidTransitionError(
                f"Cannot move deployment from {current.status.value} to {new_status.value}",
                {"from": current.status.value, "to": new_status.value},
            )

        fields["updated_at"] = utc_now()
        updated = current.model_copy(update=fields).model_copy(deep=True)
        self._records[deployment_id] = updated
        return updated.model_copy(deep=True)

    async def list(
        self,
        theme_id: str | None = None,
        status: DeploymentStatus | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[DeploymentRecord], int]:
        """List records, newest first."""
        records = list(self._records.values())

        if theme_id:
            records = [r for r in records if r.theme_id == theme_id]
        if status:
            records = [r for r in records if r.status == status]

        records.sort(key=lambda r: r.created_at, reverse=True)

        total = len(records)
        page = records[offset : offset + limit]
        return [r.model_copy(deep=True) for r in page], total

    async def list_active(self, theme_id: str) -> list[DeploymentRecord]:
        """Non-terminal records of a theme, newest first."""
        records = [
            r for r in self._records.values() if r.theme_id == theme_id and r.is_active
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in records]

    async def find_active(self, theme_id: str) -> DeploymentRecord | None:
        """Get the newest non-terminal record for a theme, if any."""
        active = await self.list_active(theme_id)
        return active[0] if active else None

    def clear(self) -> None:
        self._records.clear()


@lru_cache
def get_deployment_store() -> DeploymentStore:
    """Get the deployment store singleton."""
    return DeploymentStore()
