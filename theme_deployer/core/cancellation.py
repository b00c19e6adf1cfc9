"""Cooperative cancellation for running deployments."""

import asyncio

from theme_deployer.core.exceptions import DeploymentCancelledError


class CancellationToken:
    """A one-shot signal a pipeline checks between units of work."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by user") -> bool:
        """Request cancellation. Returns False if it was already requested."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise DeploymentCancelledError(self.reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()
