"""Power Pages website models."""

from datetime import datetime

from pydantic import BaseModel, Field

from theme_deployer.models.deployment import utc_now


class Website(BaseModel):
    """A Power Pages site in a Dataverse environment."""

    id: str
    name: str
    url: str | None = None
    active: bool = True


class SiteStatus(BaseModel):
    """Remote view of a site and how many web files it carries."""

    website: Website
    file_count: int
    last_checked: datetime = Field(default_factory=utc_now)


class SetupStep(BaseModel):
    """One manual step for creating a site."""

    step: int
    title: str
    description: str
    url: str | None = None


class SuggestedSiteSettings(BaseModel):
    name: str
    website_url: str
    language: int = 1033
    template: str = "blank"


class BlankSiteInstructions(BaseModel):
    """Manual instructions for provisioning a blank Power Pages site."""

    requires_manual_creation: bool = True
    summary: str
    steps: list[SetupStep]
    cli_command: str
    documentation: str
    suggested_settings: SuggestedSiteSettings
