"""Unit tests for branding injection."""

import pytest

from theme_deployer.models.branding import BrandColors, BrandFonts, BrandingProfile, BrandLogo
from theme_deployer.models.theme import ThemeFile
from theme_deployer.themes.branding import BrandingInjector, inject_branding

DEFAULT_BLOCK = (
    ":root{--brand-primary:#2563eb;--brand-secondary:#1e40af;--brand-accent:#06b6d4;"
    "--brand-text:#1e293b;--brand-background:#ffffff;}\n"
)


def html(content: str, path: str = "index.html") -> ThemeFile:
    return ThemeFile(path=path, mime_type="text/html", content=content.encode("utf-8"))


def css(content: str, path: str = "css/site.css") -> ThemeFile:
    return ThemeFile(path=path, mime_type="text/css", content=content.encode("utf-8"))


class TestHtmlInjection:
    """Tests for placeholder replacement in HTML files."""

    def test_replaces_every_occurrence(self):
        branding = BrandingProfile(organization_name="Acme")
        [result] = inject_branding([html("{{ORG_NAME}} | {{ORG_NAME}}")], branding)

        assert result.content == b"Acme | Acme"

    def test_logo_tokens(self):
        branding = BrandingProfile(
            organization_name="Acme",
            logo=BrandLogo(url="https://cdn.example.com/acme.png", alt_text="Acme logo"),
        )
        [result] = inject_branding([html('<img src="{{LOGO_URL}}" alt="{{LOGO_ALT}}">')], branding)

        assert result.content == b'<img src="https://cdn.example.com/acme.png" alt="Acme logo">'

    def test_logo_alt_falls_back_to_org_name(self):
        branding = BrandingProfile(
            organization_name="Acme", logo=BrandLogo(url="https://cdn.example.com/acme.png")
        )
        [result] = inject_branding([html("{{LOGO_ALT}}")], branding)

        assert result.content == b"Acme"

    def test_logo_tokens_untouched_without_logo(self):
        branding = BrandingProfile(organization_name="Acme")
        [result] = inject_branding([html("{{LOGO_URL}} {{LOGO_ALT}}")], branding)

        assert result.content == b"{{LOGO_URL}} {{LOGO_ALT}}"

    def test_partial_palette_uses_defaults(self):
        """Missing colors fall back to the default palette."""
        branding = BrandingProfile(colors=BrandColors(primary="#ff0000"))
        [result] = inject_branding(
            [html("{{PRIMARY_COLOR}} {{SECONDARY_COLOR}} {{ACCENT_COLOR}}")], branding
        )

        assert result.content == b"#ff0000 #1e40af #06b6d4"

    def test_color_tokens_untouched_without_palette(self):
        [result] = inject_branding([html("{{PRIMARY_COLOR}}")], BrandingProfile())

        assert result.content == b"{{PRIMARY_COLOR}}"

    def test_htm_files_are_rewritten(self):
        branding = BrandingProfile(organization_name="Acme")
        [result] = inject_branding([html("{{ORG_NAME}}", path="about.HTM")], branding)

        assert result.content == b"Acme"


class TestCssInjection:
    """Tests for the CSS variable block and font tokens."""

    def test_prepends_variable_block(self):
        branding = BrandingProfile(colors=BrandColors(primary="#ff0000"))
        [result] = inject_branding([css("body{}")], branding)

        assert result.content.decode() == (
            ":root{--brand-primary:#ff0000;--brand-secondary:#1e40af;--brand-accent:#06b6d4;"
            "--brand-text:#1e293b;--brand-background:#ffffff;}\nbody{}"
        )

    def test_empty_branding_still_prepends_defaults(self):
        [result] = inject_branding([css("body{}")], BrandingProfile())

        assert result.content.decode() == DEFAULT_BLOCK + "body{}"

    def test_font_tokens(self):
        branding = BrandingProfile(fonts=BrandFonts(heading="'Inter'"))
        [result] = inject_branding([css("h1{font-family:{{HEADING_FONT}}}p{font-family:{{BODY_FONT}}}")], branding)

        text = result.content.decode()
        assert "h1{font-family:'Inter'}" in text
        assert "p{font-family:'Plus Jakarta Sans'}" in text

    def test_font_tokens_untouched_without_fonts(self):
        [result] = inject_branding([css("p{font-family:{{BODY_FONT}}}")], BrandingProfile())

        assert result.content.decode().endswith("p{font-family:{{BODY_FONT}}}")

    def test_injection_is_not_idempotent(self):
        """Applying branding twice prepends the block twice."""
        injector = BrandingInjector(BrandingProfile())
        once = injector.inject([css("body{}")])
        twice = injector.inject(once)

        assert twice[0].content.decode() == DEFAULT_BLOCK + DEFAULT_BLOCK + "body{}"


class TestInjectionScope:
    """Tests for which files are touched."""

    def test_other_files_pass_through(self):
        script = ThemeFile(path="js/app.js", mime_type="application/javascript", content=b"{{ORG_NAME}}")
        image = ThemeFile(path="img/logo.png", mime_type="image/png", content=b"\x89PNG{{ORG_NAME}}")

        result = inject_branding([script, image], BrandingProfile(organization_name="Acme"))

        assert result[0].content == b"{{ORG_NAME}}"
        assert result[1].content == b"\x89PNG{{ORG_NAME}}"

    def test_inputs_are_not_modified(self):
        original = html("{{ORG_NAME}}")
        result = inject_branding([original], BrandingProfile(organization_name="Acme"))

        assert original.content == b"{{ORG_NAME}}"
        assert result[0] is not original
        assert result[0].path == original.path

    def test_invalid_utf8_does_not_raise(self):
        broken = ThemeFile(path="index.html", mime_type="text/html", content=b"\xff{{ORG_NAME}}")
        [result] = inject_branding([broken], BrandingProfile(organization_name="Acme"))

        assert result.content.endswith(b"Acme")

    @pytest.mark.parametrize("count", [0, 1, 3])
    def test_file_count_preserved(self, count: int):
        files = [css("a{}", path=f"css/{i}.css") for i in range(count)]

        assert len(inject_branding(files, BrandingProfile())) == count

    def test_end_to_end_html_and_css(self):
        """Organization name and primary color reach both file kinds."""
        branding = BrandingProfile(organization_name="Acme", colors=BrandColors(primary="#ff0000"))
        page, sheet = inject_branding(
            [html("<h1>{{ORG_NAME}}</h1>"), css(".btn{color:{{PRIMARY_COLOR}}}")], branding
        )

        assert page.content == b"<h1>Acme</h1>"
        assert sheet.content.decode().startswith(":root{--brand-primary:#ff0000;")
