"""
Spotify user and playlist operations.

Every call goes through the authenticated pipeline, so an expired access
token is refreshed transparently. Failures are not downgraded here: they
are logged and re-raised as SpotifyError / ReauthenticationRequired.

Endpoints used:
    GET  me
    GET  me/playlists?limit=50         (paged via "next")
    GET  playlists/{id}
    POST users/{user_id}/playlists
    POST playlists/{id}/tracks         (at most 100 URIs per request)
"""

from typing import Iterable

from spot_organizer.core.exceptions import SpotifyError
from spot_organizer.core.logger import get_logger
from spot_organizer.spotify.http import AuthenticatedSession
from spot_organizer.spotify.models import Playlist, SpotifyUser, Track


logger = get_logger(__name__)

PLAYLIST_PAGE_SIZE = 50

# Maximum URIs accepted by POST /playlists/{id}/tracks
ADD_TRACKS_BATCH_SIZE = 100


class UserService:
    """Access to the current user's profile."""

    def __init__(self, session: AuthenticatedSession, base_url: str) -> None:
        self._session = session
        self._base_url = base_url

    async def get_current_user(self) -> SpotifyUser:
        """
        Fetch the profile of the user owning the session.

        Raises:
            SpotifyError: If the request fails.
        """
        try:
            payload = await self._session.get_json(f"{self._base_url}me")
        except SpotifyError as e:
            logger.error(f"Error getting current user: {e}")
            raise

        user = SpotifyUser.from_api(payload or {})
        logger.debug(f"Current user is {user.id}")
        return user


class PlaylistService:
    """
    Read and write access to the current user's playlists.

    Args:
        session: Authenticated pipeline.
        base_url: Web API base URL, with trailing slash.
        user_service: Used to find the owner when creating playlists.
    """

    def __init__(
        self,
        session: AuthenticatedSession,
        base_url: str,
        user_service: UserService
    ) -> None:
        self._session = session
        self._base_url = base_url
        self._user_service = user_service

    async def get_user_playlists(self) -> list[Playlist]:
        """
        All playlists of the current user, following pagination.

        Raises:
            SpotifyError: If any page request fails.
        """
        playlists: list[Playlist] = []
        url: str | None = f"{self._base_url}me/playlists"
        params: dict[str, str] | None = {"limit": str(PLAYLIST_PAGE_SIZE)}

        try:
            while url:
                payload = await self._session.get_json(url, params=params) or {}
                playlists.extend(
                    Playlist.from_api(item)
                    for item in payload.get("items") or []
                    if isinstance(item, dict)
                )
                # "next" already carries the query string
                url = payload.get("next")
                params = None
        except SpotifyError as e:
            logger.error(f"Error getting user playlists: {e}")
            raise

        logger.info(f"Fetched {len(playlists)} playlists")
        return playlists

    async def get_playlist(self, playlist_id: str) -> Playlist:
        """
        Fetch one playlist's metadata.

        Raises:
            SpotifyError: If the playlist cannot be fetched.
        """
        try:
            payload = await self._session.get_json(f"{self._base_url}playlists/{playlist_id}")
        except SpotifyError as e:
            logger.error(f"Error getting playlist {playlist_id}: {e}")
            raise

        playlist = Playlist.from_api(payload or {})
        logger.debug(f"Fetched playlist {playlist.name} ({playlist_id})")
        return playlist

    async def create_playlist(self, name: str, description: str | None = None) -> Playlist:
        """
        Create a private playlist owned by the current user.

        Raises:
            SpotifyError: If the user lookup or the creation fails.
        """
        try:
            user = await self._user_service.get_current_user()
            body = {"name": name, "public": False}
            if description is not None:
                body["description"] = description
            payload = await self._session.post_json(
                f"{self._base_url}users/{user.id}/playlists", json=body
            )
        except SpotifyError as e:
            logger.error(f"Error creating playlist {name}: {e}")
            raise

        playlist = Playlist.from_api(payload or {})
        logger.info(f"Created playlist {playlist.name} ({playlist.id})")
        return playlist

    async def add_tracks(self, playlist_id: str, track_uris: Iterable[str]) -> None:
        """
        Append tracks to a playlist, ADD_TRACKS_BATCH_SIZE URIs per request.

        Args:
            playlist_id: Target playlist.
            track_uris: Track URIs ("spotify:track:<id>"), added in order.

        Raises:
            SpotifyError: If a request fails. Earlier batches stay added.
        """
        uris = list(track_uris)
        try:
            for start in range(0, len(uris), ADD_TRACKS_BATCH_SIZE):
                await self._session.post_json(
                    f"{self._base_url}playlists/{playlist_id}/tracks",
                    json={"uris": uris[start:start + ADD_TRACKS_BATCH_SIZE]},
                )
        except SpotifyError as e:
            logger.error(f"Error adding tracks to playlist {playlist_id}: {e}")
            raise

        logger.info(f"Added {len(uris)} tracks to playlist {playlist_id}")

    async def find_playlist_by_name(self, name: str) -> Playlist | None:
        """First of the user's playlists whose name matches, ignoring case."""
        wanted = name.casefold()
        for playlist in await self.get_user_playlists():
            if playlist.name.casefold() == wanted:
                logger.debug(f"Found existing playlist {playlist.name} ({playlist.id})")
                return playlist
        return None

    async def get_or_create_playlist(self, name: str, description: str | None = None) -> Playlist:
        existing = await self.find_playlist_by_name(name)
        if existing is not None:
            return existing
        return await self.create_playlist(name, description)

    async def copy_tracks(
        self,
        tracks: Iterable[Track],
        name: str,
        description: str | None = None
    ) -> Playlist:
        """
        Add tracks to the playlist called name, creating it if needed.

        Returns:
            The target playlist.
        """
        playlist = await self.get_or_create_playlist(name, description)
        await self.add_tracks(playlist.id, (track.spotify_uri for track in tracks))
        return playlist
