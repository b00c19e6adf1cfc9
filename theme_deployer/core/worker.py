"""Background execution of deployment pipelines.

Deployments are submitted as messages to a queue drained by a fixed pool
of worker tasks. Each submission returns a handle that exposes the run's
outcome, including crashes, and its cancellation signal.
"""

import asyncio
from dataclasses import dataclass, field
from uuid import UUID

from theme_deployer.config import settings
from theme_deployer.core.cancellation import CancellationToken
from theme_deployer.core.orchestrator import DeploymentOrchestrator
from theme_deployer.models.branding import BrandingProfile
from theme_deployer.models.deployment import DeploymentRecord, ThemeSource
from theme_deployer.utils.logging import get_logger

logger = get_logger(__name__)


class DeploymentHandle:
    """Observable lifecycle of one submitted deployment."""

    def __init__(self, deployment_id: UUID):
        self.deployment_id = deployment_id
        self.cancel_token = CancellationToken()
        self.result: DeploymentRecord | None = None
        self.error: BaseException | None = None
        self._done = asyncio.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def cancel(self, reason: str = "cancelled by user") -> bool:
        """Signal the pipeline to stop at its next checkpoint."""
        if self.done:
            return False
        return self.cancel_token.cancel(reason)

    async def wait(self) -> DeploymentRecord | None:
        """Wait for the run to finish; re-raises a crash of the pipeline."""
        await self._done.wait()
        if self.error is not None:
            raise self.error
        return self.result

    def _finish(
        self,
        result: DeploymentRecord | None = None,
        error: BaseException | None = None,
    ) -> None:
        self.result = result
        self.error = error
        self._done.set()


@dataclass
class DeploymentJob:
    """A message asking a worker to run one deployment."""

    deployment_id: UUID
    source: ThemeSource
    branding: BrandingProfile | None = None
    # Handles of deployments that must reach a terminal state first
    wait_for: list[DeploymentHandle] = field(default_factory=list)


class DeploymentWorker:
    """A bounded pool of tasks running deployment pipelines."""

    def __init__(
        self,
        orchestrator: DeploymentOrchestrator,
        concurrency: int | None = None,
    ):
        self.orchestrator = orchestrator
        self.concurrency = concurrency or settings.max_concurrent_deployments
        self._queue: asyncio.Queue[tuple[DeploymentJob, DeploymentHandle]] | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._handles: dict[UUID, DeploymentHandle] = {}

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Spawn the worker tasks. Must be called from a running event loop."""
        if self._tasks:
            return
        self._queue = asyncio.Queue()
        self._tasks = [
            asyncio.create_task(self._run_worker(index), name=f"deployment-worker-{index}")
            for index in range(self.concurrency)
        ]
        logger.info("worker.started", concurrency=self.concurrency)

    async def submit(self, job: DeploymentJob) -> DeploymentHandle:
        """Queue a deployment and return its handle immediately."""
        self.start()
        assert self._queue is not None

        handle = DeploymentHandle(job.deployment_id)
        self._handles[job.deployment_id] = handle
        self._queue.put_nowait((job, handle))

        logger.info(
            "worker.job_queued",
            deployment_id=str(job.deployment_id),
            queue_size=self._queue.qsize(),
        )
        return handle

    def get_handle(self, deployment_id: UUID) -> DeploymentHandle | None:
        """Handle of a queued or running deployment."""
        return self._handles.get(deployment_id)

    async def shutdown(self, reason: str = "service shutting down", timeout: float = 10.0) -> None:
        """Cancel in-flight deployments, let them settle, then stop the workers."""
        if not self._tasks:
            return

        # Queued jobs are registered too, so this covers runs that never started
        handles = list(self._handles.values())
        for handle in handles:
            handle.cancel(reason)

        assert self._queue is not None
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("worker.shutdown_timeout", pending=len(self._handles))

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

        # Runs stopped by task cancellation never recorded a terminal state
        for handle in handles:
            record = await self.orchestrator.abort(handle.deployment_id, reason)
            if not handle.done or isinstance(handle.error, asyncio.CancelledError):
                handle._finish(result=record)
        self._handles.clear()

        self._tasks = []
        self._queue = None
        logger.info("worker.stopped")

    async def _run_worker(self, index: int) -> None:
        assert self._queue is not None
        queue = self._queue

        while True:
            job, handle = await queue.get()
            try:
                await self._process(job, handle)
            finally:
                if not handle.done:
                    handle._finish(error=asyncio.CancelledError())
                self._handles.pop(job.deployment_id, None)
                queue.task_done()

    async def _process(self, job: DeploymentJob, handle: DeploymentHandle) -> None:
        for previous in job.wait_for:
            await previous._done.wait()

        try:
            record = await self.orchestrator.run(
                job.deployment_id,
                job.source,
                job.branding,
                handle.cancel_token,
            )
        except Exception as e:
            # The orchestrator has already failed the record; keep the crash visible
            logger.error(
                "worker.deployment_crashed",
                deployment_id=str(job.deployment_id),
                error=str(e),
                exc_info=True,
            )
            handle._finish(error=e)
            return

        handle._finish(result=record)
