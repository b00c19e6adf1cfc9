"""Theme archive processing: extraction, structure checks and branding."""

from theme_deployer.themes.archive import ArchiveExtractor, extract_archive, guess_mime_type
from theme_deployer.themes.branding import BrandingInjector, inject_branding
from theme_deployer.themes.validation import ThemeValidator, validate_theme

__all__ = [
    "ArchiveExtractor",
    "extract_archive",
    "guess_mime_type",
    "BrandingInjector",
    "inject_branding",
    "ThemeValidator",
    "validate_theme",
]
