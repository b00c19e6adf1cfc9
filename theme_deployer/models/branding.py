"""Organization branding models."""

from pydantic import BaseModel, Field


class BrandLogo(BaseModel):
    """Logo image reference."""

    url: str | None = None
    alt_text: str | None = None


class BrandColors(BaseModel):
    """Brand palette. Unset colors fall back to theme defaults."""

    primary: str | None = None
    secondary: str | None = None
    accent: str | None = None
    text: str | None = None
    background: str | None = None


class BrandFonts(BaseModel):
    """Heading and body font families."""

    heading: str | None = None
    body: str | None = None


class BrandingProfile(BaseModel):
    """An organization's visual identity applied to a theme at deploy time."""

    organization_name: str | None = None
    logo: BrandLogo | None = None
    colors: BrandColors | None = None
    fonts: BrandFonts | None = None


class Organization(BaseModel):
    """Organization as seen by the deployment pipeline (read-only)."""

    id: str
    name: str
    branding: BrandingProfile = Field(default_factory=BrandingProfile)

    def branding_profile(self) -> BrandingProfile:
        """Branding with the organization name filled in when missing."""
        if self.branding.organization_name:
            return self.branding
        return self.branding.model_copy(update={"organization_name": self.name})
