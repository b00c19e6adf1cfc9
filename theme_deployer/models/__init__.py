"""Data models for the theme deployer."""

from theme_deployer.models.branding import (
    BrandColors,
    BrandFonts,
    BrandingProfile,
    BrandLogo,
    Organization,
)
from theme_deployer.models.deployment import (
    DeploymentAccepted,
    DeploymentLogEntry,
    DeploymentRecord,
    DeploymentStatus,
    DeploymentStatusResponse,
    EnvironmentTarget,
    FileUploadLog,
    LogLevel,
    PublishResult,
    ThemeSource,
)
from theme_deployer.models.gallery import GalleryTheme
from theme_deployer.models.theme import ThemeFile, ValidationResult
from theme_deployer.models.website import (
    BlankSiteInstructions,
    SetupStep,
    SiteStatus,
    SuggestedSiteSettings,
    Website,
)

__all__ = [
    # Branding models
    "BrandColors",
    "BrandFonts",
    "BrandingProfile",
    "BrandLogo",
    "Organization",
    # Deployment models
    "DeploymentAccepted",
    "DeploymentLogEntry",
    "DeploymentRecord",
    "DeploymentStatus",
    "DeploymentStatusResponse",
    "EnvironmentTarget",
    "FileUploadLog",
    "LogLevel",
    "PublishResult",
    "ThemeSource",
    # Gallery models
    "GalleryTheme",
    # Theme file models
    "ThemeFile",
    "ValidationResult",
    # Website models
    "BlankSiteInstructions",
    "SetupStep",
    "SiteStatus",
    "SuggestedSiteSettings",
    "Website",
]
