"""
Core infrastructure: configuration, exceptions, logging, track cache.

The cache lives in spot_organizer.core.cache and is imported from there
directly, since it depends on the Spotify models.
"""

from spot_organizer.core.config import Config, load_config
from spot_organizer.core.exceptions import (
    CacheError,
    ConfigError,
    EnrichmentError,
    ReauthenticationRequired,
    SpotifyError,
    SpotOrganizerError,
)
from spot_organizer.core.logger import get_logger, setup_logging, shutdown_logging

__all__ = [
    "CacheError",
    "Config",
    "ConfigError",
    "EnrichmentError",
    "ReauthenticationRequired",
    "SpotOrganizerError",
    "SpotifyError",
    "get_logger",
    "load_config",
    "setup_logging",
    "shutdown_logging",
]
