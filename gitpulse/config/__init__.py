"""Configuration package."""

from gitpulse.config.settings import Settings, settings

__all__ = [
    "Settings",
    "settings",
]
