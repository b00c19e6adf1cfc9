"""Power Pages website endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from theme_deployer.api.deps import DataverseDep, TokensDep
from theme_deployer.models.website import BlankSiteInstructions, SiteStatus, Website

router = APIRouter()


class FetchWebsitesRequest(BaseModel):
    """Request to list the sites of an environment."""

    environment_url: str = Field(..., min_length=1)


class FetchWebsitesResponse(BaseModel):
    websites: list[Website]


class BlankSiteRequest(BaseModel):
    """Request for blank site creation instructions."""

    environment_url: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    website_url: str | None = None
    language: int = 1033


@router.post(
    "/fetch",
    response_model=FetchWebsitesResponse,
    summary="List Power Pages sites in an environment",
)
async def fetch_websites(
    data: FetchWebsitesRequest,
    tokens: TokensDep,
    dataverse: DataverseDep,
) -> FetchWebsitesResponse:
    """List the active sites a theme can be deployed to."""
    token = await tokens.get_token(data.environment_url)
    websites = await dataverse.list_websites(data.environment_url, token)
    return FetchWebsitesResponse(websites=websites)


@router.get(
    "/{website_id}/status",
    response_model=SiteStatus,
    summary="Get site deployment status",
)
async def get_site_status(
    website_id: str,
    environment_url: Annotated[str, Query(min_length=1)],
    tokens: TokensDep,
    dataverse: DataverseDep,
) -> SiteStatus:
    """Site details and how many web files it currently carries."""
    token = await tokens.get_token(environment_url)
    return await dataverse.get_site_status(environment_url, token, website_id)


@router.post(
    "/blank-site",
    response_model=BlankSiteInstructions,
    summary="Instructions for creating a blank site",
)
async def blank_site(
    data: BlankSiteRequest,
    tokens: TokensDep,
    dataverse: DataverseDep,
) -> BlankSiteInstructions:
    """Check the site name is free and describe how to create the site manually."""
    token = await tokens.get_token(data.environment_url)
    return await dataverse.blank_site_instructions(
        data.environment_url,
        token,
        data.name,
        website_url=data.website_url,
        language=data.language,
    )
