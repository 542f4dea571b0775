"""
Per-session credential storage.

CredentialStore keeps the OAuth token pair of every active user session
in memory, keyed by an opaque session ID. The authenticated request
pipeline reads the access token from here before each request and writes
the refreshed token back after a successful refresh.

Each session also owns an asyncio.Lock so that concurrent requests that
all hit 401 trigger a single token refresh.

The token file helpers persist a Credential between CLI runs.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path

from spot_organizer.core.logger import get_logger
from spot_organizer.spotify.models import Credential


logger = get_logger(__name__)


class CredentialStore:
    """
    In-memory credential storage keyed by session ID.

    Operations never fail: an unknown session reads as an empty Credential.

    Example:
        store = CredentialStore()
        store.store("default", Credential("access", "refresh"))
        store.update_access_token("default", "new-access")
        store.get("default").refresh_token  # still "refresh"
    """

    def __init__(self) -> None:
        self._credentials: dict[str, Credential] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, session_id: str) -> Credential:
        """Return the session's credential (empty if none is stored)."""
        return self._credentials.get(session_id, Credential())

    def store(self, session_id: str, credential: Credential) -> None:
        self._credentials[session_id] = credential

    def update_access_token(self, session_id: str, access_token: str) -> None:
        """Replace the access token, keeping the stored refresh token."""
        self._credentials[session_id] = self.get(session_id).with_access_token(access_token)

    def is_authenticated(self, session_id: str) -> bool:
        return bool(self.get(session_id).access_token)

    def remove(self, session_id: str) -> None:
        self._credentials.pop(session_id, None)
        self._locks.pop(session_id, None)

    def refresh_lock(self, session_id: str) -> asyncio.Lock:
        """The lock serializing token refreshes for one session."""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock


# =============================================================================
# Token file persistence
# =============================================================================


def load_credential(token_file: Path) -> Credential | None:
    """
    Load a stored credential from the token file.

    Args:
        token_file: JSON file written by save_credential().

    Returns:
        The stored Credential, or None if the file does not exist or is
        invalid (an invalid file is reported as a warning).
    """
    if not token_file.exists():
        return None

    try:
        with open(token_file, "r", encoding="utf-8") as f:
            token_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read token file {token_file}: {e}")
        return None

    if not isinstance(token_data, dict):
        logger.warning(f"Invalid token file {token_file}, login required")
        return None

    access_token = token_data.get("access_token")
    refresh_token = token_data.get("refresh_token")
    if not isinstance(access_token, str) or not isinstance(refresh_token, str):
        logger.warning(f"Invalid token structure in {token_file}, login required")
        return None

    return Credential(access_token=access_token, refresh_token=refresh_token)


def save_credential(token_file: Path, credential: Credential) -> None:
    """
    Write a credential to the token file.

    Creates parent directories if needed and restricts the file to the
    owner (0o600) where the platform supports it.

    Raises:
        OSError: If the file cannot be written.
    """
    token_file.parent.mkdir(parents=True, exist_ok=True)

    token_data = {
        "access_token": credential.access_token,
        "refresh_token": credential.refresh_token,
        "saved_at": datetime.now().isoformat(),
    }
    with open(token_file, "w", encoding="utf-8") as f:
        json.dump(token_data, f, indent=2)

    try:
        token_file.chmod(0o600)
    except OSError as e:
        logger.debug(f"Could not restrict permissions on {token_file}: {e}")
