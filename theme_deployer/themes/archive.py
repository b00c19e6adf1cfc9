"""Theme archive extraction.

Turns a zip archive, either uploaded as raw bytes or downloaded from a
URL, into a flat list of in-memory theme files.
"""

import asyncio
import io
import zipfile
from pathlib import PurePosixPath

import httpx

from theme_deployer.config import settings
from theme_deployer.core.exceptions import ExtractionError
from theme_deployer.models.theme import ThemeFile
from theme_deployer.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES: dict[str, str] = {
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".eot": "application/vnd.ms-fontobject",
}


def guess_mime_type(path: str) -> str:
    """Map a file path to its MIME type by extension."""
    return MIME_TYPES.get(PurePosixPath(path).suffix.lower(), DEFAULT_MIME_TYPE)


def extract_archive(data: bytes) -> list[ThemeFile]:
    """Read every file entry of a zip archive into memory.

    Directory entries are skipped. Entry order is preserved.
    """
    if not data:
        raise ExtractionError("Failed to extract theme archive: archive is empty")

    files: list[ThemeFile] = []
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                path = info.filename.replace("\\", "/")
                files.append(
                    ThemeFile(
                        path=path,
                        mime_type=guess_mime_type(path),
                        content=archive.read(info),
                    )
                )
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, RuntimeError) as e:
        raise ExtractionError(
            f"Failed to extract theme archive: {e}", {"reason": str(e)}
        ) from e

    return files


class ArchiveExtractor:
    """Produces theme files from archive bytes or a download URL."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        max_size: int | None = None,
    ):
        self._http_client = http_client
        self.timeout = timeout or settings.archive_download_timeout_seconds
        self.max_size = max_size or settings.upload_max_file_size

    async def extract(self, source: bytes | str) -> list[ThemeFile]:
        """Extract a theme archive.

        Args:
            source: Raw archive bytes, or a URL to download them from

        Returns:
            Theme files in archive order

        Raises:
            ExtractionError: If the archive cannot be fetched or read
        """
        if isinstance(source, str):
            data = await self.fetch(source)
        else:
            data = source

        # Decompression is CPU bound; keep it off the event loop
        files = await asyncio.to_thread(extract_archive, data)

        logger.info(
            "archive.extracted",
            file_count=len(files),
            total_bytes=sum(f.size for f in files),
        )
        return files

    async def fetch(self, url: str) -> bytes:
        """Download archive bytes from a URL."""
        logger.info("archive.downloading", url=url)

        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise ExtractionError(
                f"Failed to download theme archive from {url}", {"reason": str(e)}
            ) from e

        if response.status_code >= 400:
            raise ExtractionError(
                f"Failed to download theme archive from {url}",
                {"status_code": response.status_code},
            )

        if len(response.content) > self.max_size:
            raise ExtractionError(
                "Theme archive exceeds the maximum allowed size",
                {"size": len(response.content), "max_size": self.max_size},
            )

        return response.content
