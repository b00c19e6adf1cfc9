"""Remote publisher.

Uploads theme files one by one to a Power Pages site. A failed upload is
recorded against its file and never stops the remaining files; only a
failure to authenticate aborts the whole publish.
"""

import httpx

from theme_deployer.core.cancellation import CancellationToken
from theme_deployer.core.exceptions import (
    AuthenticationError,
    CacheInvalidationError,
    DeploymentCancelledError,
    PerFileUploadError,
    ThemeDeployerError,
)
from theme_deployer.models.deployment import EnvironmentTarget, FileUploadLog, PublishResult
from theme_deployer.models.theme import ThemeFile
from theme_deployer.services.auth import TokenProvider
from theme_deployer.services.dataverse import RemoteSiteClient
from theme_deployer.utils.logging import get_logger


class RemotePublisher:
    """Publishes theme files to a remote site and aggregates the outcome."""

    def __init__(self, token_provider: TokenProvider, client: RemoteSiteClient):
        self.token_provider = token_provider
        self.client = client
        self.logger = get_logger("publisher")

    async def publish(
        self,
        target: EnvironmentTarget,
        files: list[ThemeFile],
        cancel_token: CancellationToken | None = None,
    ) -> PublishResult:
        """Upload every file to the target site.

        Args:
            target: Environment and site to publish to
            files: Theme files, uploaded in order
            cancel_token: Checked before each upload

        Returns:
            Per-file outcomes and counts. ``success`` is False if any file failed.

        Raises:
            AuthenticationError: If no token could be acquired; nothing is uploaded
            DeploymentCancelledError: If cancellation is requested mid-publish
        """
        self.logger.info(
            "publisher.started",
            website_id=target.website_id,
            file_count=len(files),
        )

        try:
            token = await self.token_provider.get_token(target.environment_url)
        except httpx.HTTPError as e:
            raise AuthenticationError(target.environment_url, str(e)) from e

        result = PublishResult(total_files=len(files))

        for file in files:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            try:
                await self._upload(target, token, file)
            except PerFileUploadError as e:
                result.error_count += 1
                result.per_file_log.append(
                    FileUploadLog(file=file.path, status="error", error=e.reason)
                )
                self.logger.warning("publisher.file_failed", file=file.path, error=e.reason)
                continue

            result.success_count += 1
            result.per_file_log.append(FileUploadLog(file=file.path, status="success"))

        result.cache_invalidated = await self._invalidate_cache(target, token)

        self.logger.info(
            "publisher.completed",
            website_id=target.website_id,
            success_count=result.success_count,
            error_count=result.error_count,
        )
        return result

    async def _upload(self, target: EnvironmentTarget, token: str, file: ThemeFile) -> None:
        try:
            await self.client.upload_file(target, token, file)
        except (AuthenticationError, DeploymentCancelledError):
            raise
        except ThemeDeployerError as e:
            raise PerFileUploadError(file.path, e.message) from e
        except Exception as e:
            # Any other failure, e.g. a non-JSON gateway reply, is scoped to this file
            raise PerFileUploadError(file.path, str(e) or type(e).__name__) from e

    async def _invalidate_cache(self, target: EnvironmentTarget, token: str) -> bool:
        # Non-critical: a failure here never fails the publish
        try:
            await self.client.invalidate_cache(target, token)
        except CacheInvalidationError as e:
            self.logger.warning("publisher.cache_clear_failed", error=e.message)
            return False
        return True
