"""
Track enrichment: primary genres and audio features.

TrackEnricher decorates a page of Spotify tracks with:
    - the primary genre of each track's first artist (ArtistGenreLookup)
    - audio features (TrackCache first, ReccoBeatsClient for the misses)

The tracks themselves are never modified. enrich() returns an
EnrichmentResult and EnrichmentResult.apply() builds the domain Track
objects from it.

Failure Policy:
    Enrichment never fails the listing it decorates. Lookup and fetch
    failures leave tracks with genre "unknown" and zero-valued features.
    Only cancellation and ReauthenticationRequired propagate.

Network fetches for audio features are strictly sequential: ReccoBeats
rate limits aggressively and sequencing keeps the 429 backoff predictable.
"""

import asyncio
from typing import TYPE_CHECKING, Iterable, Sequence

from tqdm import tqdm

from spot_organizer.core.exceptions import ReauthenticationRequired
from spot_organizer.core.logger import get_logger
from spot_organizer.spotify.artists import ArtistGenreLookup
from spot_organizer.spotify.models import AudioFeatures, EnrichmentResult, SpotifyTrack

if TYPE_CHECKING:
    from spot_organizer.core.cache import TrackCache
    from spot_organizer.reccobeats.client import ReccoBeatsClient


logger = get_logger(__name__)


class TrackEnricher:
    """
    Orchestrates genre and audio feature enrichment for a batch of tracks.

    Args:
        artist_lookup: Batch artist genre resolver.
        reccobeats: Audio features client.
        cache: Persistent audio features cache.
        show_progress: Show a tqdm progress bar while fetching features.
    """

    def __init__(
        self,
        artist_lookup: ArtistGenreLookup,
        reccobeats: "ReccoBeatsClient",
        cache: "TrackCache",
        show_progress: bool = False
    ) -> None:
        self._artist_lookup = artist_lookup
        self._reccobeats = reccobeats
        self._cache = cache
        self._show_progress = show_progress

    async def enrich(
        self,
        tracks: Sequence[SpotifyTrack],
        cancel_event: asyncio.Event | None = None
    ) -> EnrichmentResult:
        """
        Gather genres and audio features for tracks.

        Args:
            tracks: Spotify tracks to enrich (not modified).
            cancel_event: Optional event checked before each network step.

        Returns:
            EnrichmentResult covering every artist and track that could be
            resolved. Tracks missing from it get "unknown" genre and
            zero-valued features when applied.

        Raises:
            asyncio.CancelledError: If cancelled.
            ReauthenticationRequired: If the Spotify session cannot be refreshed.

        Behavior:
            1. Collect distinct first-artist IDs of tracks that have artists
            2. Resolve their genres in batches of 50
            3. Get audio features for the distinct non-empty track IDs
        """
        if not tracks:
            return EnrichmentResult()

        artist_ids = list(dict.fromkeys(
            track.primary_artist_id for track in tracks if track.primary_artist_id
        ))

        try:
            artist_genres = await self._artist_lookup.resolve_many(artist_ids, cancel_event)
        except ReauthenticationRequired:
            raise
        except Exception as e:
            logger.warning(f"Genre enrichment skipped: {e}")
            artist_genres = {}

        track_ids = list(dict.fromkeys(track.id for track in tracks if track.id))
        audio_features = await self.get_audio_features(track_ids, cancel_event)

        logger.info(
            f"Enriched {len(tracks)} tracks: {len(artist_genres)} artist genres, "
            f"{len(audio_features)} audio features"
        )
        return EnrichmentResult(artist_genres=artist_genres, audio_features=audio_features)

    async def get_audio_features(
        self,
        track_ids: Iterable[str],
        cancel_event: asyncio.Event | None = None
    ) -> dict[str, AudioFeatures]:
        """
        Audio features for track_ids, from cache where possible.

        Args:
            track_ids: Spotify track IDs.
            cancel_event: Optional event checked before every network fetch.

        Returns:
            dict mapping track ID to features for every track that has them.

        Raises:
            asyncio.CancelledError: If cancelled.

        Behavior:
            1. One batched cache read for all IDs (a failing cache counts as empty)
            2. For each missing ID, in order: check cancellation, fetch from
               ReccoBeats, store successes in the result and in the cache
            3. An unexpected error stops fetching and returns what was gathered
        """
        ids = list(dict.fromkeys(track_id for track_id in track_ids if track_id))
        if not ids:
            return {}

        try:
            result = dict(await self._cache.get_many(ids))
        except Exception as e:
            logger.warning(f"Track cache unavailable, fetching all audio features: {e}")
            result = {}
        missing = [track_id for track_id in ids if track_id not in result]
        logger.debug(f"Audio features: {len(result)} cached, {len(missing)} to fetch")

        if not missing:
            return result

        progress = tqdm(
            total=len(missing),
            desc="Audio features",
            unit="track",
            disable=not self._show_progress,
            leave=False,
        )
        try:
            for track_id in missing:
                if cancel_event is not None and cancel_event.is_set():
                    raise asyncio.CancelledError()

                features = await self._reccobeats.fetch_audio_features(track_id)
                if features is not None:
                    result[track_id] = features
                    await self._cache.put(track_id, features)
                progress.update(1)
        except Exception as e:
            logger.warning(f"Audio feature enrichment stopped early: {e}")
        finally:
            progress.close()

        return result
