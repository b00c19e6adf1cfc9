"""In-memory theme file models."""

from dataclasses import dataclass, field
from pathlib import PurePosixPath


@dataclass
class ThemeFile:
    """A single file extracted from a theme archive."""

    path: str
    mime_type: str
    content: bytes = field(repr=False)

    @property
    def name(self) -> str:
        """Final path segment, used as the web file name."""
        return PurePosixPath(self.path).name

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot, or an empty string."""
        return PurePosixPath(self.path).suffix.lower()

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking a theme's file structure."""

    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors
