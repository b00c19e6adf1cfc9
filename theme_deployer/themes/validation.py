"""Theme structure validation.

Every rule runs independently and the findings are merged. Only a
missing entry point is an error; everything else is a warning and never
blocks a deployment.
"""

from typing import Iterable, Sequence

from theme_deployer.models.theme import ThemeFile, ValidationResult

MAX_FILE_SIZE = 5 * 1024 * 1024

MISSING_INDEX_ERROR = "Missing index.html - every theme must have an entry point"
NO_CSS_WARNING = "No CSS files found - theme may not display correctly"
NO_BOOTSTRAP_WARNING = (
    "Bootstrap files not detected - ensure Bootstrap is properly included"
)


class ThemeValidator:
    """Checks an extracted theme for required and expected files."""

    def __init__(self, max_file_size: int = MAX_FILE_SIZE):
        self.max_file_size = max_file_size

    def validate(self, files: Iterable[ThemeFile]) -> ValidationResult:
        """Validate a theme's file list. Pure: no state, no side effects."""
        files = list(files)
        paths = [f.path.lower() for f in files]

        errors: list[str] = []
        warnings: list[str] = []

        if not self._has_entry_point(paths):
            errors.append(MISSING_INDEX_ERROR)

        if not any(p.endswith(".css") for p in paths):
            warnings.append(NO_CSS_WARNING)

        if not self._has_bootstrap(paths):
            warnings.append(NO_BOOTSTRAP_WARNING)

        oversized = self._count_oversized(files)
        if oversized:
            warnings.append(
                f"{oversized} file(s) exceed 5MB and may affect performance"
            )

        return ValidationResult(errors=tuple(errors), warnings=tuple(warnings))

    @staticmethod
    def _has_entry_point(paths: Sequence[str]) -> bool:
        return any(p == "index.html" or p.endswith("/index.html") for p in paths)

    @staticmethod
    def _has_bootstrap(paths: Sequence[str]) -> bool:
        return any(
            "bootstrap" in p and (p.endswith(".css") or p.endswith(".js"))
            for p in paths
        )

    def _count_oversized(self, files: Sequence[ThemeFile]) -> int:
        return sum(1 for f in files if f.size > self.max_file_size)


def validate_theme(files: Iterable[ThemeFile]) -> ValidationResult:
    """Convenience function to validate a theme with default limits."""
    return ThemeValidator().validate(files)
