"""Branding injection into theme HTML and CSS files.

All substitutions are literal find-and-replace over every occurrence of a
placeholder token. Missing branding fields either leave a token untouched
or fall back to the default palette; this stage never raises.
"""

from dataclasses import replace
from typing import Iterable

from theme_deployer.models.branding import BrandingProfile
from theme_deployer.models.theme import ThemeFile

DEFAULT_PRIMARY_COLOR = "#2563eb"
DEFAULT_SECONDARY_COLOR = "#1e40af"
DEFAULT_ACCENT_COLOR = "#06b6d4"
DEFAULT_TEXT_COLOR = "#1e293b"
DEFAULT_BACKGROUND_COLOR = "#ffffff"
DEFAULT_FONT = "'Plus Jakarta Sans'"

HTML_EXTENSIONS = (".html", ".htm")
CSS_EXTENSIONS = (".css",)


class BrandingInjector:
    """Rewrites placeholder tokens in theme files with an organization's branding."""

    def __init__(self, branding: BrandingProfile):
        self.branding = branding
        colors = branding.colors
        fonts = branding.fonts

        self.primary = (colors and colors.primary) or DEFAULT_PRIMARY_COLOR
        self.secondary = (colors and colors.secondary) or DEFAULT_SECONDARY_COLOR
        self.accent = (colors and colors.accent) or DEFAULT_ACCENT_COLOR
        self.text = (colors and colors.text) or DEFAULT_TEXT_COLOR
        self.background = (colors and colors.background) or DEFAULT_BACKGROUND_COLOR
        self.heading_font = (fonts and fonts.heading) or DEFAULT_FONT
        self.body_font = (fonts and fonts.body) or DEFAULT_FONT

    def inject(self, files: Iterable[ThemeFile]) -> list[ThemeFile]:
        """Return a new file list with branding applied.

        Input files are never modified; only HTML and CSS files are rewritten.
        """
        return [self.inject_file(f) for f in files]

    def inject_file(self, file: ThemeFile) -> ThemeFile:
        if file.extension in HTML_EXTENSIONS:
            return replace(file, content=self._rewrite_html(file.content))
        if file.extension in CSS_EXTENSIONS:
            return replace(file, content=self._rewrite_css(file.content))
        return file

    def _html_replacements(self) -> dict[str, str]:
        branding = self.branding
        replacements: dict[str, str] = {}

        if branding.logo and branding.logo.url:
            replacements["{{LOGO_URL}}"] = branding.logo.url
            alt_text = branding.logo.alt_text or branding.organization_name
            if alt_text:
                replacements["{{LOGO_ALT}}"] = alt_text

        if branding.organization_name:
            replacements["{{ORG_NAME}}"] = branding.organization_name

        # Color tokens are only touched when the organization defines a palette
        if branding.colors is not None:
            replacements["{{PRIMARY_COLOR}}"] = self.primary
            replacements["{{SECONDARY_COLOR}}"] = self.secondary
            replacements["{{ACCENT_COLOR}}"] = self.accent
        return replacements

    def _rewrite_html(self, content: bytes) -> bytes:
        text = _decode(content)
        for token, value in self._html_replacements().items():
            text = text.replace(token, value)
        return text.encode("utf-8")

    def css_variables_block(self) -> str:
        """The custom property block prepended to every CSS file."""
        return (
            ":root{"
            f"--brand-primary:{self.primary};"
            f"--brand-secondary:{self.secondary};"
            f"--brand-accent:{self.accent};"
            f"--brand-text:{self.text};"
            f"--brand-background:{self.background};"
            "}\n"
        )

    def _rewrite_css(self, content: bytes) -> bytes:
        text = self.css_variables_block() + _decode(content)
        if self.branding.fonts is not None:
            text = text.replace("{{HEADING_FONT}}", self.heading_font)
            text = text.replace("{{BODY_FONT}}", self.body_font)
        return text.encode("utf-8")


def _decode(content: bytes) -> str:
    # Undecodable bytes are kept as replacement characters rather than failing
    return content.decode("utf-8", errors="replace")


def inject_branding(
    files: Iterable[ThemeFile], branding: BrandingProfile
) -> list[ThemeFile]:
    """Convenience function to apply branding to a list of theme files."""
    return BrandingInjector(branding).inject(files)
