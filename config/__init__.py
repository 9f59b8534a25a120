"""Engine configuration utilities."""

from .settings import DEFAULT_CACHE_TTL_SECONDS, Settings, get_settings

__all__ = [
    "DEFAULT_CACHE_TTL_SECONDS",
    "Settings",
    "get_settings",
]
