"""Gallery theme lookup."""

from functools import lru_cache
from typing import Protocol

from theme_deployer.models.gallery import GalleryTheme


class GalleryStore(Protocol):
    """Read-only source of gallery themes."""

    async def get(self, gallery_id: str) -> GalleryTheme | None:
        ...


class InMemoryGalleryStore:
    """Gallery themes held in memory, keyed by id."""

    def __init__(self, themes: list[GalleryTheme] | None = None):
        self._themes = {theme.id: theme for theme in themes or []}

    async def get(self, gallery_id: str) -> GalleryTheme | None:
        theme = self._themes.get(gallery_id)
        return theme.model_copy(deep=True) if theme else None

    async def save(self, theme: GalleryTheme) -> GalleryTheme:
        self._themes[theme.id] = theme.model_copy(deep=True)
        return theme


@lru_cache
def get_gallery_store() -> InMemoryGalleryStore:
    """Get the gallery store singleton."""
    return InMemoryGalleryStore()
