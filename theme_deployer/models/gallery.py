"""Gallery theme models."""

from pydantic import BaseModel


class GalleryTheme(BaseModel):
    """A curated theme published in the gallery (read-only)."""

    id: str
    name: str
    download_url: str
    slug: str | None = None
    description: str | None = None
    bootstrap_version: str = "5"
