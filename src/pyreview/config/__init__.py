"""Configuration loading for pyreview."""

from pyreview.config.manager import ConfigManager

__all__ = ["ConfigManager"]
