"""
Playlist track listing with enrichment.

TrackService fetches one page of a playlist's tracks and returns domain
Track objects carrying genre and audio features. The page fetch itself is
a primary operation (its errors propagate); enrichment is best-effort.
"""

import asyncio

from spot_organizer.core.exceptions import SpotifyError
from spot_organizer.core.logger import get_logger
from spot_organizer.spotify.enricher import TrackEnricher
from spot_organizer.spotify.http import AuthenticatedSession
from spot_organizer.spotify.models import SpotifyTrack, Track


logger = get_logger(__name__)


class TrackService:
    """
    Enriched playlist track listing.

    Args:
        session: Authenticated pipeline.
        base_url: Web API base URL, with trailing slash.
        enricher: Genre and audio feature enrichment.
    """

    def __init__(self, session: AuthenticatedSession, base_url: str, enricher: TrackEnricher) -> None:
        self._session = session
        self._base_url = base_url
        self._enricher = enricher

    async def get_playlist_tracks(
        self,
        playlist_id: str,
        offset: int = 0,
        limit: int = 100,
        cancel_event: asyncio.Event | None = None
    ) -> list[Track]:
        """
        Fetch and enrich one page of a playlist's tracks.

        Args:
            playlist_id: Spotify playlist ID.
            offset: Index of the first item.
            limit: Page size (Spotify allows at most 100).
            cancel_event: Optional cancellation signal for enrichment.

        Returns:
            Tracks in playlist order. Local files and unavailable items
            (no track object or no ID) are left out.

        Raises:
            SpotifyError: If the page cannot be fetched.
            ReauthenticationRequired: If the session cannot be refreshed.
            asyncio.CancelledError: If cancelled.
        """
        logger.debug(f"Fetching tracks for playlist {playlist_id} (offset={offset}, limit={limit})")

        try:
            payload = await self._session.get_json(
                f"{self._base_url}playlists/{playlist_id}/tracks",
                params={"offset": str(offset), "limit": str(limit)},
            ) or {}
        except SpotifyError as e:
            logger.error(
                f"Error getting tracks for playlist {playlist_id} "
                f"(offset={offset}, limit={limit}): {e}"
            )
            raise

        spotify_tracks = [
            SpotifyTrack.from_api(item["track"])
            for item in payload.get("items") or []
            if isinstance(item, dict)
            and isinstance(item.get("track"), dict)
            and item["track"].get("id")
        ]

        result = await self._enricher.enrich(spotify_tracks, cancel_event)
        tracks = result.apply(spotify_tracks)

        logger.info(f"Fetched {len(tracks)} tracks for playlist {playlist_id}")
        return tracks
