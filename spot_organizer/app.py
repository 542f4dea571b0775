"""
Composition root.

open_app() wires every component for one user session on top of a single
aiohttp.ClientSession and releases the HTTP session and the cache database
on exit.

Usage:
    async with open_app(config, credential) as app:
        playlists = await app.playlists.get_user_playlists()
        tracks = await app.tracks.get_playlist_tracks(playlists[0].id)

    # Tokens may have been refreshed meanwhile
    save_credential(config.spotify.token_file, app.credential)
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import aiohttp

from spot_organizer.core.cache import TrackCache
from spot_organizer.core.config import Config
from spot_organizer.core.logger import get_logger
from spot_organizer.reccobeats.client import ReccoBeatsClient
from spot_organizer.spotify.artists import ArtistGenreLookup
from spot_organizer.spotify.auth import TokenRefreshClient
from spot_organizer.spotify.enricher import TrackEnricher
from spot_organizer.spotify.http import AuthenticatedSession
from spot_organizer.spotify.models import Credential
from spot_organizer.spotify.playlists import PlaylistService, UserService
from spot_organizer.spotify.session import CredentialStore
from spot_organizer.spotify.tracks import TrackService


logger = get_logger(__name__)


@dataclass
class App:
    """Services bound to one user session."""
    session_id: str
    store: CredentialStore
    session: AuthenticatedSession
    users: UserService
    playlists: PlaylistService
    tracks: TrackService
    enricher: TrackEnricher
    cache: TrackCache

    @property
    def credential(self) -> Credential:
        """The session's current credential, including refreshed tokens."""
        return self.store.get(self.session_id)


@asynccontextmanager
async def open_app(
    config: Config,
    credential: Credential,
    session_id: str = "default",
    show_progress: bool = False
) -> AsyncIterator[App]:
    """
    Build the services for one user session.

    Args:
        config: Loaded configuration.
        credential: The user's tokens.
        session_id: Key of the session in the credential store.
        show_progress: Show a progress bar during audio feature fetching.

    Raises:
        CacheError: If the track cache cannot be opened.
    """
    cache = TrackCache(config.cache.path)
    timeout = aiohttp.ClientTimeout(total=config.http.timeout)

    try:
        async with aiohttp.ClientSession(timeout=timeout) as http:
            store = CredentialStore()
            store.store(session_id, credential)

            token_client = TokenRefreshClient(
                http,
                config.spotify.client_id,
                config.spotify.client_secret,
                config.spotify.token_url,
            )
            session = AuthenticatedSession(http, store, session_id, token_client)

            reccobeats = ReccoBeatsClient(
                http,
                config.reccobeats.base_url,
                max_retries=config.reccobeats.max_retries,
                default_retry_after=config.reccobeats.default_retry_after,
                requests_per_second=config.reccobeats.requests_per_second,
            )
            enricher = TrackEnricher(
                ArtistGenreLookup(session, config.spotify.api_base_url),
                reccobeats,
                cache,
                show_progress=show_progress,
            )

            api_base = config.spotify.api_base_url
            users = UserService(session, api_base)

            yield App(
                session_id=session_id,
                store=store,
                session=session,
                users=users,
                playlists=PlaylistService(session, api_base, users),
                tracks=TrackService(session, api_base, enricher),
                enricher=enricher,
                cache=cache,
            )
    finally:
        cache.close()
        logger.debug("Application resources released")
