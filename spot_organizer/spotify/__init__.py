"""
Spotify Web API access.

Modules:
    models      - API records, domain Track/Playlist, AudioFeatures
    session     - Per-session credential store and token file
    auth        - Token refresh / code exchange, interactive login
    http        - Authenticated request pipeline (401 -> refresh -> retry once)
    artists     - Batch artist genre lookup
    enricher    - Genre and audio feature enrichment
    playlists   - User and playlist operations
    tracks      - Enriched playlist track listing
"""

from spot_organizer.spotify.artists import ArtistGenreLookup
from spot_organizer.spotify.auth import AuthorizationFlow, TokenRefreshClient
from spot_organizer.spotify.enricher import TrackEnricher
from spot_organizer.spotify.http import ApiResponse, AuthenticatedSession
from spot_organizer.spotify.models import (
    AudioFeatures,
    Credential,
    EnrichmentResult,
    Playlist,
    SpotifyAlbum,
    SpotifyArtist,
    SpotifyTrack,
    SpotifyUser,
    Track,
)
from spot_organizer.spotify.playlists import PlaylistService, UserService
from spot_organizer.spotify.session import CredentialStore, load_credential, save_credential
from spot_organizer.spotify.tracks import TrackService

__all__ = [
    "ApiResponse",
    "ArtistGenreLookup",
    "AudioFeatures",
    "AuthenticatedSession",
    "AuthorizationFlow",
    "Credential",
    "CredentialStore",
    "EnrichmentResult",
    "Playlist",
    "PlaylistService",
    "SpotifyAlbum",
    "SpotifyArtist",
    "SpotifyTrack",
    "SpotifyUser",
    "TokenRefreshClient",
    "Track",
    "TrackEnricher",
    "TrackService",
    "UserService",
    "load_credential",
    "save_credential",
]
