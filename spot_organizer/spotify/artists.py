"""
Batch artist genre lookup.

Spotify's "Get Several Artists" endpoint accepts at most 50 IDs per call.
ArtistGenreLookup splits any number of artist IDs into such batches and
reduces each artist to its primary genre (the first one Spotify lists).

Failure Policy:
    Genres are decoration, so a failing batch does not fail the caller:
    the lookup stops, logs a warning and returns what it resolved so far.
    Two things are not downgraded:
        - ReauthenticationRequired (the session is unusable)
        - asyncio.CancelledError (the caller gave up)
"""

import asyncio
from typing import Any, Iterable

from spot_organizer.core.exceptions import ReauthenticationRequired
from spot_organizer.core.logger import get_logger
from spot_organizer.spotify.http import AuthenticatedSession
from spot_organizer.spotify.models import UNKNOWN_GENRE


logger = get_logger(__name__)

# Maximum IDs accepted by GET /artists
ARTIST_BATCH_SIZE = 50


class ArtistGenreLookup:
    """
    Resolve artist IDs to primary genres in batches of ARTIST_BATCH_SIZE.

    Args:
        session: Authenticated pipeline used for every batch request.
        base_url: Web API base URL, with trailing slash.
    """

    def __init__(self, session: AuthenticatedSession, base_url: str) -> None:
        self._session = session
        self._base_url = base_url

    async def resolve_many(
        self,
        artist_ids: Iterable[str],
        cancel_event: asyncio.Event | None = None
    ) -> dict[str, str]:
        """
        Resolve each artist ID to its primary genre.

        Args:
            artist_ids: Artist IDs. Empty IDs are ignored and duplicates are
                        requested once, in first-seen order.
            cancel_event: Optional event checked before every batch.

        Returns:
            dict mapping artist ID to its first genre, or "unknown" for an
            artist without genres. IDs Spotify did not return are absent.
            On a failed batch, only the batches before it are included.

        Raises:
            ReauthenticationRequired: If the session's token cannot be refreshed.
            asyncio.CancelledError: If cancelled (task cancel or cancel_event).
        """
        ids = [artist_id for artist_id in dict.fromkeys(artist_ids) if artist_id]
        genres: dict[str, str] = {}

        for start in range(0, len(ids), ARTIST_BATCH_SIZE):
            if cancel_event is not None and cancel_event.is_set():
                raise asyncio.CancelledError()

            batch = ids[start:start + ARTIST_BATCH_SIZE]
            try:
                payload = await self._session.get_json(
                    f"{self._base_url}artists",
                    params={"ids": ",".join(batch)},
                )
            except ReauthenticationRequired:
                raise
            except Exception as e:
                logger.warning(
                    f"Artist genre lookup stopped after {len(genres)} of {len(ids)} artists: {e}"
                )
                return genres

            for artist in _artist_list(payload):
                artist_id = artist.get("id")
                if not artist_id:
                    continue
                artist_genres = artist.get("genres") or []
                genres[artist_id] = artist_genres[0] if artist_genres else UNKNOWN_GENRE

        logger.debug(f"Resolved genres for {len(genres)} of {len(ids)} artists")
        return genres


def _artist_list(payload: Any) -> list[dict[str, Any]]:
    """Artist objects from either the {"artists": [...]} envelope or a bare array."""
    if isinstance(payload, dict):
        payload = payload.get("artists")
    if not isinstance(payload, list):
        return []
    # Unknown IDs come back as null entries
    return [artist for artist in payload if isinstance(artist, dict)]
