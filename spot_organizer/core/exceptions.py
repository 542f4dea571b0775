"""
Exception classes for spot-organizer.

This module defines all custom exceptions used throughout the application.
Each exception is designed to provide clear, actionable error messages
and to distinguish between the failure modes that must stop a request
and the ones that only degrade track enrichment.

Exception Hierarchy:
    SpotOrganizerError (base)
        ConfigError - Configuration file or environment issues
        CacheError - Audio feature cache cannot be opened
        SpotifyError - Spotify Web API issues
            ReauthenticationRequired - Credential unusable, login again
        EnrichmentError - Malformed enrichment payloads

Cancellation:
    Cancellation is signalled with asyncio.CancelledError and is never
    wrapped in one of these classes.
"""


class SpotOrganizerError(Exception):
    """
    Base exception for all spot-organizer errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all spot-organizer errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., track id, URL).

    Example:
        try:
            # some operation
        except SpotOrganizerError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'url': URL that caused the error
                     - 'status': HTTP status code returned by the API
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(SpotOrganizerError):
    """
    Raised when there's an issue with the configuration.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml has invalid YAML syntax
        - Spotify client_id / client_secret missing from file and environment
        - Invalid field values (e.g., negative retry count)

    Example:
        raise ConfigError(
            "'spotify.client_id' must be a non-empty string",
            details={'field': 'spotify.client_id'}
        )
    """
    pass


class CacheError(SpotOrganizerError):
    """
    Raised when the SQLite audio feature cache cannot be initialized.

    Only raised at startup. Once the cache is open, read and write
    failures are logged and treated as cache misses instead.

    Common causes:
        - Parent directory of the database file does not exist
        - Permission denied
        - File is not a SQLite database
    """
    pass


class SpotifyError(SpotOrganizerError):
    """
    Raised when there's an issue with the Spotify Web API.

    Can be CRITICAL (auth failure) or NON-CRITICAL (a single lookup
    failing during enrichment, which is downgraded by the caller).

    Common causes:
        - HTTP error status returned by the API (surfaced verbatim)
        - Rate limiting (HTTP 429)
        - Network connectivity issues
        - API response parsing failure

    Attributes:
        status: HTTP status code, or None for transport errors.
        is_auth_error: True if this is an authentication error (401/403).
        is_rate_limit: True if this is a rate limit error (429).

    Example:
        raise SpotifyError(
            "Spotify API returned HTTP 404",
            details={'url': url},
            status=404
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        status: int | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False
    ) -> None:
        """
        Initialize Spotify error with additional flags.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            status: HTTP status code of the failed response, if any.
            is_auth_error: Set to True if this is an authentication failure.
            is_rate_limit: Set to True if this is a rate limit error.
        """
        super().__init__(message, details)
        self.status = status
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit


class ReauthenticationRequired(SpotifyError):
    """
    Raised when a request was rejected with 401 and the token refresh failed.

    This is a CRITICAL error for the whole user session: the stored
    credential cannot be used for any further call, so the user has to
    go through the authorization flow again. Enrichment code never
    downgrades it to a partial result.

    Common causes:
        - No refresh token stored for the session
        - Refresh token revoked or expired on Spotify's side
        - Token endpoint unreachable
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message, details, status=401, is_auth_error=True)


class EnrichmentError(SpotOrganizerError):
    """
    Raised when an enrichment payload cannot be parsed.

    This is a NON-CRITICAL error - enrichment is best-effort decoration,
    so the client catches it and reports "no value" for the track.

    Example:
        raise EnrichmentError(
            "Audio features payload is missing 'tempo'",
            details={'field': 'tempo'}
        )
    """
    pass
