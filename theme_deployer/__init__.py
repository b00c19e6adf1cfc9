"""Power Pages theme deployment service."""

__version__ = "0.1.0"
