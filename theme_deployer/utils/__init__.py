"""Utility functions for the theme deployer."""

from theme_deployer.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
