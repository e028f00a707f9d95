"""Configuration package."""

from src.config.settings import AppSettings, get_settings

__all__ = [
    "AppSettings",
    "get_settings",
]
