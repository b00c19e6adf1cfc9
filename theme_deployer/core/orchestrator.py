"""Deployment orchestrator.

Drives one deployment through the state machine:

1. validating - extract the archive and check its structure
2. creating_site - prepare the target site (pre-existing, identified by id)
3. deploying - apply branding, then upload every file
4. completed / failed

The record is persisted after every transition, so a status poll always
sees a consistent snapshot that only moves forward.
"""

from uuid import UUID

from theme_deployer.config import settings
from theme_deployer.core.cancellation import CancellationToken
from theme_deployer.core.events import EventBus, get_event_bus
from theme_deployer.core.exceptions import (
    DeploymentCancelledError,
    DeploymentNotFoundError,
    ThemeDeployerError,
)
from theme_deployer.core.store import DeploymentStore, get_deployment_store
from theme_deployer.models.branding import BrandingProfile
from theme_deployer.models.deployment import (
    DeploymentLogEntry,
    DeploymentRecord,
    DeploymentStatus,
    LogLevel,
    PublishResult,
    ThemeSource,
    utc_now,
)
from theme_deployer.models.theme import ThemeFile
from theme_deployer.services.publisher import RemotePublisher
from theme_deployer.themes.archive import ArchiveExtractor
from theme_deployer.themes.branding import BrandingInjector
from theme_deployer.themes.validation import ThemeValidator
from theme_deployer.utils.logging import deployment_context, get_logger


class ThemeRejectedError(ThemeDeployerError):
    """The extracted theme failed structural validation."""

    def __init__(self, errors: tuple[str, ...]):
        super().__init__(
            f"Theme validation failed: {', '.join(errors)}",
            {"errors": list(errors)},
        )


class DeploymentOrchestrator:
    """Runs the deployment pipeline for a single record."""

    def __init__(
        self,
        publisher: RemotePublisher,
        store: DeploymentStore | None = None,
        events: EventBus | None = None,
        extractor: ArchiveExtractor | None = None,
        validator: ThemeValidator | None = None,
    ):
        self.publisher = publisher
        self.store = store or get_deployment_store()
        self.events = events or get_event_bus()
        self.extractor = extractor or ArchiveExtractor()
        self.validator = validator or ThemeValidator()
        self.logger = get_logger("orchestrator")

    async def run(
        self,
        deployment_id: UUID,
        source: ThemeSource,
        branding: BrandingProfile | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> DeploymentRecord:
        """Run the pipeline until the record reaches a terminal state.

        Expected failures (bad archive, rejected theme, authentication,
        cancellation) end in ``failed`` and are not raised. Anything else
        also fails the record and is then re-raised.

        Args:
            deployment_id: The pending record to process
            source: Where to read the theme archive from
            branding: Branding to inject, if requested
            cancel_token: Checked between stages and between file uploads

        Returns:
            The terminal record
        """
        record = await self.store.get(deployment_id)
        if record is None:
            raise DeploymentNotFoundError(str(deployment_id))

        cancel_token = cancel_token or CancellationToken()

        with deployment_context(str(deployment_id), theme_id=record.theme_id):
            self.logger.info("orchestrator.pipeline.started")

            try:
                cancel_token.raise_if_cancelled()
                record, files = await self._run_validation(record, source)

                cancel_token.raise_if_cancelled()
                record = await self._run_site_preparation(record)

                cancel_token.raise_if_cancelled()
                record = await self._run_deploying(record, files, branding, cancel_token)

                return await self._complete(record)

            except ThemeDeployerError as e:
                self.logger.warning("orchestrator.pipeline.failed", error=e.message)
                return await self._fail(deployment_id, e.message)

            except Exception as e:
                self.logger.error(
                    "orchestrator.pipeline.crashed", error=str(e), exc_info=True
                )
                await self._fail(deployment_id, f"Unexpected error: {e}")
                raise

    async def abort(self, deployment_id: UUID, reason: str) -> DeploymentRecord | None:
        """Fail a deployment whose run will never reach another checkpoint.

        Terminal records are returned unchanged.
        """
        record = await self.store.get(deployment_id)
        if record is None or record.status.is_terminal:
            return record

        with deployment_context(str(deployment_id), theme_id=record.theme_id):
            self.logger.warning("orchestrator.pipeline.aborted", reason=reason)
            return await self._fail(deployment_id, DeploymentCancelledError(reason).message)

    async def _run_validation(
        self, record: DeploymentRecord, source: ThemeSource
    ) -> tuple[DeploymentRecord, list[ThemeFile]]:
        """Extract the archive and check the theme structure."""
        record = await self._transition(
            record, DeploymentStatus.VALIDATING, "Validating theme structure..."
        )

        if source.archive is not None:
            files = await self.extractor.extract(source.archive)
        elif source.url:
            record = await self._append(record, f"Downloading {source.describe()}...")
            files = await self.extractor.extract(source.url)
        else:
            raise ThemeRejectedError(("No theme archive was provided",))

        record = await self._append(record, f"Extracted {len(files)} file(s) from archive")

        validation = self.validator.validate(files)
        if not validation.is_valid:
            raise ThemeRejectedError(validation.errors)

        for warning in validation.warnings:
            record = await self._append(record, f"Warning: {warning}", LogLevel.WARNING)

        return record, files

    async def _run_site_preparation(self, record: DeploymentRecord) -> DeploymentRecord:
        """Prepare the target site. The site already exists, so only progress is recorded."""
        return await self._transition(
            record,
            DeploymentStatus.CREATING_SITE,
            "Preparing Power Pages site structure...",
        )

    async def _run_deploying(
        self,
        record: DeploymentRecord,
        files: list[ThemeFile],
        branding: BrandingProfile | None,
        cancel_token: CancellationToken,
    ) -> DeploymentRecord:
        """Apply branding and upload the theme files."""
        if branding is not None:
            record = await self._transition(
                record, DeploymentStatus.DEPLOYING, "Applying organization branding..."
            )
            files = BrandingInjector(branding).inject(files)
            record = await self._append(record, "Uploading theme assets...")
        else:
            record = await self._transition(
                record, DeploymentStatus.DEPLOYING, "Uploading theme assets..."
            )

        result = await self.publisher.publish(record.target, files, cancel_token)
        return await self._record_publish_result(record, result)

    async def _record_publish_result(
        self, record: DeploymentRecord, result: PublishResult
    ) -> DeploymentRecord:
        entries: list[DeploymentLogEntry] = []

        # Partial failure is surfaced as a warning, never as a failed deployment
        if result.error_count > 0:
            entries.append(
                DeploymentLogEntry(
                    level=LogLevel.WARNING,
                    message=(
                        f"Deployed {result.success_count}/{result.total_files} files. "
                        f"{result.error_count} errors."
                    ),
                )
            )
        if not result.cache_invalidated:
            entries.append(
                DeploymentLogEntry(
                    level=LogLevel.WARNING,
                    message="Site cache could not be cleared; changes may take a few minutes to appear",
                )
            )

        record = await self.store.update(
            record.id,
            total_files=result.total_files,
            uploaded_files=result.success_count,
            failed_files=result.error_count,
            logs=[*record.logs, *entries],
        )
        for entry in entries:
            await self.events.publish_log(record.id, entry)
        return record

    async def _complete(self, record: DeploymentRecord) -> DeploymentRecord:
        website_url = record.website_url or settings.website_url_template.format(
            website_id=record.website_id
        )
        now = utc_now()
        entry = DeploymentLogEntry(
            level=LogLevel.SUCCESS, message="Deployment completed successfully!"
        )

        record = await self.store.update(
            record.id,
            status=DeploymentStatus.COMPLETED,
            website_url=website_url,
            deployed_at=now,
            completed_at=now,
            logs=[*record.logs, entry],
        )

        await self.events.publish_status_changed(
            record.id, record.status, record.progress_percent
        )
        await self.events.publish_log(record.id, entry)
        await self.events.publish_deployment_complete(record.id, website_url)

        self.logger.info("orchestrator.pipeline.completed", website_url=website_url)
        return record

    async def _fail(self, deployment_id: UUID, message: str) -> DeploymentRecord:
        # Stage helpers persist as they go; the local copy may be behind
        record = await self.store.get(deployment_id)
        if record is None:
            raise DeploymentNotFoundError(str(deployment_id))
        stage = record.status.value
        entry = DeploymentLogEntry(
            level=LogLevel.ERROR, message=f"Deployment failed: {message}"
        )

        record = await self.store.update(
            record.id,
            status=DeploymentStatus.FAILED,
            error_message=message,
            logs=[*record.logs, entry],
        )

        await self.events.publish_status_changed(
            record.id, record.status, record.progress_percent
        )
        await self.events.publish_log(record.id, entry)
        await self.events.publish_error(record.id, message, stage)
        return record

    async def _transition(
        self,
        record: DeploymentRecord,
        status: DeploymentStatus,
        message: str,
    ) -> DeploymentRecord:
        """Move to a new stage and persist it together with its log line."""
        entry = DeploymentLogEntry(level=LogLevel.INFO, message=message)
        record = await self.store.update(
            record.id, status=status, logs=[*record.logs, entry]
        )

        self.logger.info("orchestrator.stage.started", stage=status.value)
        await self.events.publish_status_changed(
            record.id, record.status, record.progress_percent
        )
        await self.events.publish_log(record.id, entry)
        return record

    async def _append(
        self,
        record: DeploymentRecord,
        message: str,
        level: LogLevel = LogLevel.INFO,
    ) -> DeploymentRecord:
        """Persist a log line without changing stage."""
        entry = DeploymentLogEntry(level=level, message=message)
        record = await self.store.update(record.id, logs=[*record.logs, entry])
        await self.events.publish_log(record.id, entry)
        return record
