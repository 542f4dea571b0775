"""
Data models for Spotify entities and enrichment data.

This module defines three groups of frozen dataclasses:

    API records (parsed from Spotify Web API JSON):
        SpotifyArtist, SpotifyAlbum, SpotifyTrack, SpotifyUser

    Enrichment data:
        Credential - access/refresh token pair for one user session
        AudioFeatures - acoustic descriptors of a track (from ReccoBeats)
        EnrichmentResult - genres and audio features gathered for a batch

    Domain objects (what the rest of the application works with):
        Track - a playlist entry with its genre and audio features attached
        Playlist - playlist metadata plus grouping helpers

API records are never mutated. Enrichment builds an EnrichmentResult and
EnrichmentResult.apply() produces new Track objects from it.

Usage:
    tracks = [SpotifyTrack.from_api(item["track"]) for item in items]
    result = await enricher.enrich(tracks)
    domain_tracks = result.apply(tracks)
"""

import json
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Callable, Iterable

from spot_organizer.core.exceptions import EnrichmentError


UNKNOWN_GENRE = "unknown"
UNKNOWN_DECADE = "unknown"


@dataclass(frozen=True)
class Credential:
    """
    OAuth token pair for one user session.

    Either token may be empty. An empty access_token means no Authorization
    header is sent; an empty refresh_token means a 401 cannot be recovered.
    """
    access_token: str = ""
    refresh_token: str = ""

    def with_access_token(self, access_token: str) -> "Credential":
        """Return a copy holding a new access token and the same refresh token."""
        return replace(self, access_token=access_token)

    @property
    def is_empty(self) -> bool:
        return not self.access_token and not self.refresh_token


@dataclass(frozen=True)
class AudioFeatures:
    """
    Acoustic descriptors of a track.

    All fields default to zero, so AudioFeatures() is the placeholder used
    for tracks that have not been enriched.

    Attributes:
        acousticness: Confidence the track is acoustic (0.0 - 1.0).
        danceability: Suitability for dancing (0.0 - 1.0).
        energy: Perceived intensity (0.0 - 1.0).
        instrumentalness: Likelihood the track has no vocals (0.0 - 1.0).
        key: Pitch class of the track (0 = C, 1 = C#, ...).
        liveness: Presence of an audience (0.0 - 1.0).
        loudness: Overall loudness in dB (typically -60 - 0).
        mode: 1 for major, 0 for minor.
        speechiness: Presence of spoken words (0.0 - 1.0).
        tempo: Estimated tempo in BPM.
        valence: Musical positiveness (0.0 - 1.0).
    """
    acousticness: float = 0.0
    danceability: float = 0.0
    energy: float = 0.0
    instrumentalness: float = 0.0
    key: int = 0
    liveness: float = 0.0
    loudness: float = 0.0
    mode: int = 0
    speechiness: float = 0.0
    tempo: float = 0.0
    valence: float = 0.0

    @classmethod
    def from_api(cls, data: Any) -> "AudioFeatures":
        """
        Build AudioFeatures from an audio-features JSON object.

        Args:
            data: Parsed JSON object. Unknown keys (id, href, ...) are ignored.

        Returns:
            AudioFeatures with every field populated from data.

        Raises:
            EnrichmentError: If data is not an object, or a field is missing
                             or not numeric.
        """
        if not isinstance(data, dict):
            raise EnrichmentError(
                "Audio features payload is not a JSON object",
                details={"payload_type": type(data).__name__}
            )

        values = {}
        for f in fields(cls):
            raw = data.get(f.name)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise EnrichmentError(
                    f"Audio features payload has invalid '{f.name}'",
                    details={"field": f.name, "value": raw}
                )
            values[f.name] = int(raw) if f.type in (int, "int") else float(raw)

        return cls(**values)

    def to_json(self) -> str:
        """Serialize to the JSON text stored in the cache."""
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, text: str) -> "AudioFeatures":
        """
        Parse cached JSON text.

        Raises:
            EnrichmentError: If text is not valid JSON (including undecodable
                             bytes) or lacks a field.
        """
        try:
            data = json.loads(text)
        except (ValueError, TypeError) as e:
            raise EnrichmentError(
                f"Cached audio features are not valid JSON: {e}",
                details={"original_error": str(e)}
            ) from e
        return cls.from_api(data)


# =============================================================================
# Spotify API records
# =============================================================================


@dataclass(frozen=True)
class SpotifyArtist:
    """Artist as returned by the Web API (simplified or full object)."""
    id: str
    name: str
    genres: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SpotifyArtist":
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            genres=tuple(data.get("genres") or ()),
        )


@dataclass(frozen=True)
class SpotifyAlbum:
    """Album as embedded in a track object."""
    id: str
    name: str
    image_url: str | None = None
    release_date: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SpotifyAlbum":
        images = data.get("images") or []
        # Spotify orders images largest first
        image_url = images[0].get("url") if images and isinstance(images[0], dict) else None
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            image_url=image_url,
            release_date=data.get("release_date") or "",
        )


@dataclass(frozen=True)
class SpotifyTrack:
    """
    Track as returned by the Web API.

    Attributes:
        id: Spotify track ID (22 characters, base62).
        name: Track title.
        artists: Credited artists in credit order.
        album: Album the track belongs to.
    """
    id: str
    name: str
    artists: tuple[SpotifyArtist, ...] = ()
    album: SpotifyAlbum = field(default_factory=lambda: SpotifyAlbum(id="", name=""))

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SpotifyTrack":
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            artists=tuple(
                SpotifyArtist.from_api(a) for a in data.get("artists") or () if isinstance(a, dict)
            ),
            album=SpotifyAlbum.from_api(data.get("album") or {}),
        )

    @property
    def primary_artist_id(self) -> str:
        """ID of the first credited artist, or "" if the track has none."""
        return self.artists[0].id if self.artists else ""


@dataclass(frozen=True)
class SpotifyUser:
    """The current user's profile."""
    id: str
    display_name: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SpotifyUser":
        return cls(id=data.get("id") or "", display_name=data.get("display_name") or "")


# =============================================================================
# Domain objects
# =============================================================================


@dataclass(frozen=True)
class Track:
    """
    A playlist track with enrichment attached.

    Attributes:
        id: Spotify track ID.
        name: Track title.
        artists: Artist names in credit order.
        album: Album metadata.
        genre: Primary genre of the first artist. Never empty;
               "unknown" when no genre could be determined.
        audio_features: Acoustic descriptors, zero-valued when unavailable.
    """
    id: str
    name: str
    artists: tuple[str, ...] = ()
    album: SpotifyAlbum = field(default_factory=lambda: SpotifyAlbum(id="", name=""))
    genre: str = UNKNOWN_GENRE
    audio_features: AudioFeatures = field(default_factory=AudioFeatures)

    def __post_init__(self) -> None:
        if not self.genre:
            object.__setattr__(self, "genre", UNKNOWN_GENRE)

    @property
    def release_year(self) -> int | None:
        """Year parsed from the album release date (YYYY, YYYY-MM or YYYY-MM-DD)."""
        year = self.album.release_date[:4]
        return int(year) if len(year) == 4 and year.isdigit() else None

    @property
    def decade(self) -> str:
        """Decade label such as "1990s", or "unknown"."""
        year = self.release_year
        if year is None:
            return UNKNOWN_DECADE
        return f"{year // 10 * 10}s"

    @property
    def mood(self) -> str:
        """Coarse mood derived from valence and energy."""
        valence = self.audio_features.valence
        energy = self.audio_features.energy

        if valence > 0.6 and energy > 0.6:
            return "Upbeat/Happy"
        if valence > 0.5 and energy < 0.4:
            return "Chill/Calm"
        if valence < 0.3 and energy < 0.3:
            return "Sad/Gloomy"
        if valence < 0.3 and energy > 0.7:
            return "Angry/Aggressive"
        return "Neutral"

    @property
    def artist_display(self) -> str:
        return ", ".join(self.artists)

    @property
    def spotify_uri(self) -> str:
        return f"spotify:track:{self.id}"


@dataclass(frozen=True)
class Playlist:
    """
    Playlist metadata.

    Attributes:
        id: Spotify playlist ID.
        name: Playlist name.
        description: Playlist description (may be empty).
        image_url: Cover image URL, if any.
        track_count: Number of tracks reported by the API.
    """
    id: str
    name: str
    description: str = ""
    image_url: str | None = None
    track_count: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Playlist":
        images = data.get("images") or []
        image_url = images[0].get("url") if images and isinstance(images[0], dict) else None
        tracks = data.get("tracks") or {}
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            description=data.get("description") or "",
            image_url=image_url,
            track_count=int(tracks.get("total") or 0) if isinstance(tracks, dict) else 0,
        )

    @staticmethod
    def group_tracks_by_genre(tracks: Iterable[Track]) -> dict[str, list[Track]]:
        """Group tracks by genre, keeping first-seen genre order."""
        groups: dict[str, list[Track]] = {}
        for track in tracks:
            groups.setdefault(track.genre, []).append(track)
        return groups

    @staticmethod
    def group_tracks_by_decade(tracks: Iterable[Track]) -> dict[str, list[Track]]:
        """Group tracks by decade, keys sorted ascending ("unknown" sorts last)."""
        groups: dict[str, list[Track]] = {}
        for track in tracks:
            groups.setdefault(track.decade, []).append(track)
        return {
            key: groups[key]
            for key in sorted(groups, key=lambda d: (d == UNKNOWN_DECADE, d))
        }

    @staticmethod
    def filter_tracks(tracks: Iterable[Track], predicate: Callable[[Track], bool]) -> list[Track]:
        return [track for track in tracks if predicate(track)]


@dataclass(frozen=True)
class EnrichmentResult:
    """
    Enrichment gathered for a batch of tracks.

    Attributes:
        artist_genres: Artist ID -> primary genre ("unknown" if the artist has none).
        audio_features: Track ID -> audio features, only for tracks that have them.
    """
    artist_genres: dict[str, str] = field(default_factory=dict)
    audio_features: dict[str, AudioFeatures] = field(default_factory=dict)

    def genre_for(self, track: SpotifyTrack) -> str:
        """Primary genre for a track, "unknown" if its first artist is unresolved."""
        return self.artist_genres.get(track.primary_artist_id) or UNKNOWN_GENRE

    def to_domain(self, track: SpotifyTrack) -> Track:
        return Track(
            id=track.id,
            name=track.name,
            artists=tuple(a.name for a in track.artists),
            album=track.album,
            genre=self.genre_for(track),
            audio_features=self.audio_features.get(track.id, AudioFeatures()),
        )

    def apply(self, tracks: Iterable[SpotifyTrack]) -> list[Track]:
        """Build domain tracks, preserving input order."""
        return [self.to_domain(track) for track in tracks]
