"""Power Pages access through the Dataverse Web API.

Web files are stored as ``adx_webfiles`` records bound to a site, with the
file body attached as a base64 ``annotations`` note.
"""

import base64
from functools import lru_cache
from typing import Any, Protocol

import httpx

from theme_deployer.config import settings
from theme_deployer.core.exceptions import (
    CacheInvalidationError,
    DeploymentConflictError,
    RemoteApiError,
)
from theme_deployer.models.deployment import EnvironmentTarget
from theme_deployer.models.theme import ThemeFile
from theme_deployer.models.website import (
    BlankSiteInstructions,
    SetupStep,
    SiteStatus,
    SuggestedSiteSettings,
    Website,
)
from theme_deployer.utils.logging import get_logger

logger = get_logger(__name__)

POWER_PAGES_MAKER_URL = "https://make.powerpages.microsoft.com"
PORTAL_MANAGEMENT_DOCS = (
    "https://learn.microsoft.com/power-pages/configure/portal-management-app"
)


class RemoteSiteClient(Protocol):
    """Operations the publisher needs from a remote site API."""

    async def upload_file(
        self, target: EnvironmentTarget, token: str, file: ThemeFile
    ) -> dict[str, Any]:
        ...

    async def invalidate_cache(self, target: EnvironmentTarget, token: str) -> None:
        ...

    async def list_websites(self, environment_url: str, token: str) -> list[Website]:
        ...


class DataverseClient:
    """Async client for the Power Pages tables of the Dataverse Web API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
    ):
        self._http_client = http_client
        self.api_version = api_version or settings.dataverse_api_version
        self.timeout = timeout or settings.dataverse_timeout_seconds

    def api_url(self, environment_url: str, endpoint: str) -> str:
        return f"{environment_url.rstrip('/')}/api/data/{self.api_version}/{endpoint}"

    @staticmethod
    def _headers(token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
            "Accept": "application/json",
            "Prefer": "return=representation",
        }

    async def request(
        self,
        environment_url: str,
        token: str,
        endpoint: str,
        method: str = "GET",
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Make an authenticated request and return the decoded JSON body.

        Returns ``None`` for ``204 No Content``.

        Raises:
            RemoteApiError: On any non-success response
        """
        url = self.api_url(environment_url, endpoint)
        headers = self._headers(token)

        if self._http_client is not None:
            response = await self._http_client.request(method, url, headers=headers, json=data)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, headers=headers, json=data)

        if response.status_code >= 400:
            logger.error(
                "dataverse.request_failed",
                endpoint=endpoint,
                status_code=response.status_code,
            )
            raise RemoteApiError(endpoint, response.status_code, response.text)

        if response.status_code == 204 or not response.content:
            return None

        return response.json()

    async def list_websites(self, environment_url: str, token: str) -> list[Website]:
        """List the active Power Pages sites of an environment."""
        result = await self.request(
            environment_url,
            token,
            "powerpagesites?$select=powerpagesiteid,name,websiteurl,statecode"
            "&$filter=statecode eq 0",
        )
        return [_website_from_row(row) for row in (result or {}).get("value", [])]

    async def get_website(
        self, environment_url: str, token: str, website_id: str
    ) -> Website:
        result = await self.request(environment_url, token, f"powerpagesites({website_id})")
        return _website_from_row(result or {"powerpagesiteid": website_id})

    async def list_web_files(
        self, environment_url: str, token: str, website_id: str
    ) -> list[dict[str, Any]]:
        result = await self.request(
            environment_url,
            token,
            "adx_webfiles?$select=adx_webfileid,adx_name,adx_partialurl"
            f"&$filter=_adx_websiteid_value eq {website_id}",
        )
        return (result or {}).get("value", [])

    async def upload_file(
        self, target: EnvironmentTarget, token: str, file: ThemeFile
    ) -> dict[str, Any]:
        """Create a web file record for a theme file and attach its content."""
        web_file = await self.request(
            target.environment_url,
            token,
            "adx_webfiles",
            "POST",
            {
                "adx_name": file.name,
                "adx_partialurl": file.path,
                "adx_websiteid@odata.bind": f"/powerpagesites({target.website_id})",
            },
        ) or {}

        if file.content:
            web_file_id = web_file.get("adx_webfileid")
            if not web_file_id:
                raise RemoteApiError("adx_webfiles", 502, "web file id missing from response")
            await self.request(
                target.environment_url,
                token,
                "annotations",
                "POST",
                {
                    "subject": file.name,
                    "filename": file.name,
                    "mimetype": file.mime_type,
                    "documentbody": base64.b64encode(file.content).decode("ascii"),
                    "objectid_adx_webfile@odata.bind": f"/adx_webfiles({web_file_id})",
                },
            )

        return web_file

    async def invalidate_cache(self, target: EnvironmentTarget, token: str) -> None:
        """Ask the site to clear and rebuild its cache."""
        logger.info("dataverse.clearing_cache", website_id=target.website_id)
        try:
            await self.request(
                target.environment_url,
                token,
                "ClearPortalCache",
                "POST",
                {"websiteId": target.website_id},
            )
        except (RemoteApiError, httpx.HTTPError, ValueError) as e:
            raise CacheInvalidationError(target.website_id, str(e)) from e

    async def get_site_status(
        self, environment_url: str, token: str, website_id: str
    ) -> SiteStatus:
        """Summarize a site and the number of web files it carries."""
        website = await self.get_website(environment_url, token, website_id)
        web_files = await self.list_web_files(environment_url, token, website_id)
        return SiteStatus(website=website, file_count=len(web_files))

    async def blank_site_instructions(
        self,
        environment_url: str,
        token: str,
        name: str,
        website_url: str | None = None,
        language: int = 1033,
    ) -> BlankSiteInstructions:
        """Manual instructions for creating a blank site.

        The Dataverse API cannot provision sites, so this only checks the
        name is free and describes the steps to take in Power Pages.

        Raises:
            DeploymentConflictError: If a site with this name already exists
        """
        existing = await self.list_websites(environment_url, token)
        if any(site.name.lower() == name.lower() for site in existing):
            raise DeploymentConflictError(
                f'A site with name "{name}" already exists',
                {"name": name, "environment_url": environment_url},
            )

        logger.info("dataverse.blank_site_instructions", name=name)

        slug = "-".join(name.lower().split())
        return BlankSiteInstructions(
            summary="Power Pages site creation requires Power Platform Admin access",
            steps=[
                SetupStep(
                    step=1,
                    title="Open Power Pages",
                    description=f"Go to {POWER_PAGES_MAKER_URL}",
                    url=POWER_PAGES_MAKER_URL,
                ),
                SetupStep(
                    step=2,
                    title="Select Environment",
                    description=f"Select your environment: {environment_url}",
                ),
                SetupStep(
                    step=3,
                    title="Create New Site",
                    description='Click "+ Create a site" and choose "Blank site" or "Start from template"',
                ),
                SetupStep(
                    step=4,
                    title="Configure Site",
                    description=f'Name your site "{name}" and complete the wizard',
                ),
                SetupStep(
                    step=5,
                    title="Get Website ID",
                    description="Once created, copy the Website ID from the site settings",
                ),
                SetupStep(
                    step=6,
                    title="Return Here",
                    description="Enter the Website ID to continue with theme deployment",
                ),
            ],
            cli_command=f'pac paportal create --name "{name}" --environment "{environment_url}"',
            documentation=PORTAL_MANAGEMENT_DOCS,
            suggested_settings=SuggestedSiteSettings(
                name=name,
                website_url=website_url or f"{slug}.powerappsportals.com",
                language=language,
            ),
        )


def _website_from_row(row: dict[str, Any]) -> Website:
    return Website(
        id=str(row.get("powerpagesiteid", "")),
        name=row.get("name") or "",
        url=row.get("websiteurl"),
        active=row.get("statecode", 0) == 0,
    )


@lru_cache
def get_dataverse_client() -> DataverseClient:
    """Get the Dataverse client singleton."""
    return DataverseClient()
