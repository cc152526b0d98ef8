"""Helper utilities exposed under ``client.utils``."""

from . import properties, settings, traits

__all__ = ["properties", "settings", "traits"]
