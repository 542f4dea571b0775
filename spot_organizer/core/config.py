"""
Configuration management for spot-organizer.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml and the environment.

The configuration contains:
    - Spotify API credentials and endpoints (client_id, client_secret, redirect_uri)
    - ReccoBeats enrichment API settings (retries, backoff, pacing)
    - Location of the SQLite audio feature cache
    - HTTP timeout
    - Logging level and optional log file

Configuration Sources (highest precedence first):
    1. Environment variables (also read from a .env file via python-dotenv)
    2. config.yaml (explicit path, or current working directory)
    3. Defaults defined in this module

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: "http://127.0.0.1:8888/callback"

    reccobeats:
      max_retries: 3
      default_retry_after: 2
      requests_per_second: 5

    cache:
      path: "~/.spot-organizer/tracks_cache.db"

    logging:
      level: "INFO"
      file: null
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from spot_organizer.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_SCOPE = (
    "playlist-read-private playlist-modify-private "
    "playlist-modify-public user-read-recently-played"
)

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "SPOTIFY_CLIENT_ID": ("spotify", "client_id"),
    "SPOTIFY_CLIENT_SECRET": ("spotify", "client_secret"),
    "SPOTIFY_REDIRECT_URI": ("spotify", "redirect_uri"),
    "TRACK_CACHE_PATH": ("cache", "path"),
    "SPOT_ORGANIZER_LOG_LEVEL": ("logging", "level"),
}

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify API credentials and endpoint configuration.

    Credentials are obtained from the Spotify Developer Dashboard:
    https://developer.spotify.com/dashboard

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        redirect_uri: OAuth callback URL registered for the application.
        scope: Space separated list of OAuth scopes requested at login.
        api_base_url: Base URL of the Web API (trailing slash included).
        token_url: Token endpoint used for code exchange and refresh.
        token_file: Where the user's access/refresh tokens are persisted.
    """
    client_id: str
    client_secret: str
    redirect_uri: str = "http://127.0.0.1:8888/callback"
    scope: str = DEFAULT_SCOPE
    api_base_url: str = "https://api.spotify.com/v1/"
    token_url: str = "https://accounts.spotify.com/api/token"
    token_file: Path = Path("~/.spot-organizer/tokens.json").expanduser()


@dataclass(frozen=True)
class ReccoBeatsConfig:
    """
    ReccoBeats audio feature API configuration.

    Attributes:
        base_url: Base URL of the ReccoBeats API.
        max_retries: Retries allowed after an HTTP 429 before giving up.
        default_retry_after: Seconds to wait on 429 when no Retry-After header is sent.
        requests_per_second: Upper bound on request rate towards the API.
    """
    base_url: str = "https://api.reccobeats.com/"
    max_retries: int = 3
    default_retry_after: float = 2.0
    requests_per_second: int = 5


@dataclass(frozen=True)
class CacheConfig:
    """
    Audio feature cache configuration.

    Attributes:
        path: SQLite database file. Relative paths resolve against the
              current working directory.
    """
    path: Path = Path("tracks_cache.db")


@dataclass(frozen=True)
class HttpConfig:
    """
    Outbound HTTP configuration.

    Attributes:
        timeout: Total timeout in seconds for a single request.
    """
    timeout: float = 30.0


@dataclass(frozen=True)
class LoggingConfig:
    """
    Logging configuration.

    Attributes:
        level: Console log level name.
        file: Optional log file receiving DEBUG and above.
    """
    level: str = "INFO"
    file: Path | None = None


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    This is the main configuration object that aggregates all configuration
    sections. It is created by load_config() and should be treated as
    immutable (frozen dataclass).

    Example:
        config = load_config()
        print(f"Cache at: {config.cache.path}")
        print(f"Retries on 429: {config.reccobeats.max_retries}")
    """
    spotify: SpotifyConfig
    reccobeats: ReccoBeatsConfig
    cache: CacheConfig
    http: HttpConfig
    logging: LoggingConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory;
                     a missing default file is not an error.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is not found, the YAML is
                     invalid, or a value fails validation (including missing
                     Spotify credentials after environment overrides).

    Behavior:
        1. Load .env into the process environment (existing vars win)
        2. Read and parse YAML content if a file is available
        3. Apply environment variable overrides
        4. Validate and build each section
        5. Return frozen Config object
    """
    load_dotenv()

    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    raw_config: dict[str, Any] = {}
    if config_path.exists():
        raw_config = _read_yaml(config_path)
    elif explicit:
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    _apply_environment(raw_config)

    return Config(
        spotify=_parse_spotify_config(_section(raw_config, "spotify")),
        reccobeats=_parse_reccobeats_config(_section(raw_config, "reccobeats")),
        cache=_parse_cache_config(_section(raw_config, "cache")),
        http=_parse_http_config(_section(raw_config, "http")),
        logging=_parse_logging_config(_section(raw_config, "logging")),
    )


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return raw_config


def _apply_environment(raw_config: dict[str, Any]) -> None:
    """Overlay environment variables onto the raw YAML dictionary in place."""
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            target = raw_config.get(section)
            if not isinstance(target, dict):
                target = {}
                raw_config[section] = target
            target[key] = value


def _section(raw_config: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw_config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(
            f"Section '{name}' must be a dictionary",
            details={"section": name}
        )
    return section


def _require_string(section: dict[str, Any], key: str, field: str) -> str:
    value = section.get(key, "")
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{field}' must be a non-empty string",
            details={"field": field}
        )
    return value.strip()


def _optional_string(section: dict[str, Any], key: str, field: str, default: str) -> str:
    if section.get(key) is None:
        return default
    return _require_string(section, key, field)


def _positive_number(section: dict[str, Any], key: str, field: str, default, kind=int):
    value = section.get(key)
    if value is None:
        return default
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(
            f"'{field}' must be a number",
            details={"field": field, "value": value}
        )
    if kind is int and not isinstance(value, int):
        raise ConfigError(
            f"'{field}' must be an integer",
            details={"field": field, "value": value}
        )
    if value < 0:
        raise ConfigError(
            f"'{field}' must not be negative",
            details={"field": field, "value": value}
        )
    return kind(value)


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse and validate the Spotify configuration section.

    Raises:
        ConfigError: If client_id or client_secret is missing or empty.
    """
    defaults = SpotifyConfig(client_id="", client_secret="")

    token_file = Path(
        _optional_string(spotify_section, "token_file", "spotify.token_file", str(defaults.token_file))
    ).expanduser()

    return SpotifyConfig(
        client_id=_require_string(spotify_section, "client_id", "spotify.client_id"),
        client_secret=_require_string(spotify_section, "client_secret", "spotify.client_secret"),
        redirect_uri=_optional_string(
            spotify_section, "redirect_uri", "spotify.redirect_uri", defaults.redirect_uri
        ),
        scope=_optional_string(spotify_section, "scope", "spotify.scope", defaults.scope),
        api_base_url=_optional_string(
            spotify_section, "api_base_url", "spotify.api_base_url", defaults.api_base_url
        ),
        token_url=_optional_string(
            spotify_section, "token_url", "spotify.token_url", defaults.token_url
        ),
        token_file=token_file,
    )


def _parse_reccobeats_config(section: dict[str, Any]) -> ReccoBeatsConfig:
    defaults = ReccoBeatsConfig()
    requests_per_second = _positive_number(
        section, "requests_per_second", "reccobeats.requests_per_second", defaults.requests_per_second
    )
    if requests_per_second < 1:
        raise ConfigError(
            "'reccobeats.requests_per_second' must be at least 1",
            details={"field": "reccobeats.requests_per_second", "value": requests_per_second}
        )

    return ReccoBeatsConfig(
        base_url=_optional_string(section, "base_url", "reccobeats.base_url", defaults.base_url),
        max_retries=_positive_number(section, "max_retries", "reccobeats.max_retries", defaults.max_retries),
        default_retry_after=_positive_number(
            section, "default_retry_after", "reccobeats.default_retry_after",
            defaults.default_retry_after, kind=float
        ),
        requests_per_second=requests_per_second,
    )


def _parse_cache_config(section: dict[str, Any]) -> CacheConfig:
    raw_path = _optional_string(section, "path", "cache.path", str(CacheConfig().path))
    return CacheConfig(path=Path(raw_path).expanduser())


def _parse_http_config(section: dict[str, Any]) -> HttpConfig:
    timeout = _positive_number(section, "timeout", "http.timeout", HttpConfig().timeout, kind=float)
    if timeout == 0:
        raise ConfigError(
            "'http.timeout' must be greater than zero",
            details={"field": "http.timeout"}
        )
    return HttpConfig(timeout=timeout)


def _parse_logging_config(section: dict[str, Any]) -> LoggingConfig:
    level = _optional_string(section, "level", "logging.level", LoggingConfig().level).upper()
    if level not in VALID_LOG_LEVELS:
        raise ConfigError(
            f"Invalid logging level: {level}",
            details={"field": "logging.level", "value": level}
        )

    log_file = None
    if section.get("file") is not None:
        log_file = Path(_require_string(section, "file", "logging.file")).expanduser()

    return LoggingConfig(level=level, file=log_file)
