"""Test the enrichment orchestrator"""

import asyncio
import sqlite3
from unittest.mock import AsyncMock

import pytest

from conftest import SAMPLE_FEATURES_PAYLOAD
from spot_organizer.core.cache import TrackCache
from spot_organizer.core.exceptions import CacheError, ReauthenticationRequired, SpotifyError
from spot_organizer.reccobeats.client import ReccoBeatsClient
from spot_organizer.spotify.artists import ArtistGenreLookup
from spot_organizer.spotify.enricher import TrackEnricher
from spot_organizer.spotify.models import AudioFeatures, SpotifyArtist, SpotifyTrack


def make_track(track_id, *artist_ids):
    return SpotifyTrack(
        id=track_id,
        name=f"Song {track_id}",
        artists=tuple(SpotifyArtist(id=a, name=f"Artist {a}") for a in artist_ids),
    )


@pytest.fixture
def artist_lookup():
    lookup = AsyncMock()
    lookup.resolve_many.return_value = {}
    return lookup


@pytest.fixture
def reccobeats():
    client = AsyncMock()
    client.fetch_audio_features.return_value = None
    return client


@pytest.fixture
def cache():
    track_cache = AsyncMock()
    track_cache.get_many.return_value = {}
    track_cache.put.return_value = True
    return track_cache


@pytest.fixture
def enricher(artist_lookup, reccobeats, cache):
    return TrackEnricher(artist_lookup, reccobeats, cache)


class TestEnrich:
    """Test enrich()"""

    @pytest.mark.asyncio
    async def test_genres_assigned_from_primary_artist(self, enricher, artist_lookup, reccobeats, cache):
        """Test genre resolution, the unknown sentinel and features for one track"""
        features = AudioFeatures(tempo=100.0, valence=0.9, energy=0.9)
        artist_lookup.resolve_many.return_value = {"a1": "rock", "a2": "unknown"}
        reccobeats.fetch_audio_features.side_effect = lambda track_id: features if track_id == "t1" else None
        tracks = [make_track("t1", "a1", "a9"), make_track("t2", "a2"), make_track("t3")]

        result = await enricher.enrich(tracks)
        enriched = result.apply(tracks)

        assert artist_lookup.resolve_many.await_args.args[0] == ["a1", "a2"]
        assert [t.genre for t in enriched] == ["rock", "unknown", "unknown"]
        assert enriched[0].audio_features == features
        assert enriched[1].audio_features == AudioFeatures()
        cache.put.assert_awaited_once_with("t1", features)
        # Input tracks are untouched
        assert tracks[0] == make_track("t1", "a1", "a9")

    @pytest.mark.asyncio
    async def test_empty_input(self, enricher, artist_lookup, cache):
        """Test nothing is looked up for no tracks"""
        result = await enricher.enrich([])

        assert result.artist_genres == {}
        artist_lookup.resolve_many.assert_not_awaited()
        cache.get_many.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_failure_degrades(self, enricher, artist_lookup, reccobeats):
        """Test a genre lookup error leaves genres unknown but still fetches features"""
        artist_lookup.resolve_many.side_effect = SpotifyError("boom")
        reccobeats.fetch_audio_features.return_value = AudioFeatures(tempo=80.0)
        tracks = [make_track("t1", "a1")]

        result = await enricher.enrich(tracks)

        assert result.artist_genres == {}
        assert result.apply(tracks)[0].genre == "unknown"
        assert result.audio_features["t1"].tempo == 80.0

    @pytest.mark.asyncio
    async def test_reauthentication_propagates(self, enricher, artist_lookup):
        """Test an unusable session is not downgraded"""
        artist_lookup.resolve_many.side_effect = ReauthenticationRequired("login again")

        with pytest.raises(ReauthenticationRequired):
            await enricher.enrich([make_track("t1", "a1")])

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, enricher, artist_lookup):
        """Test cancellation from the lookup unwinds through enrich"""
        artist_lookup.resolve_many.side_effect = asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await enricher.enrich([make_track("t1", "a1")])


class TestGetAudioFeatures:
    """Test get_audio_features()"""

    @pytest.mark.asyncio
    async def test_cache_hits_skip_network(self, enricher, reccobeats, cache):
        """Test fully cached IDs make no network call"""
        cached = {"t1": AudioFeatures(tempo=1.0), "t2": AudioFeatures(tempo=2.0)}
        cache.get_many.return_value = cached

        result = await enricher.get_audio_features(["t1", "t2"])

        assert result == cached
        cache.get_many.assert_awaited_once()
        reccobeats.fetch_audio_features.assert_not_awaited()
        cache.put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_only_misses_fetched(self, enricher, reccobeats, cache):
        """Test only uncached IDs are fetched, in order, and stored"""
        cache.get_many.return_value = {"t1": AudioFeatures(tempo=1.0)}
        reccobeats.fetch_audio_features.side_effect = lambda track_id: (
            AudioFeatures(tempo=3.0) if track_id == "t3" else None
        )

        result = await enricher.get_audio_features(["t1", "t2", "t3", "t2", ""])

        assert [c.args[0] for c in reccobeats.fetch_audio_features.await_args_list] == ["t2", "t3"]
        assert set(result) == {"t1", "t3"}
        cache.put.assert_awaited_once_with("t3", AudioFeatures(tempo=3.0))

    @pytest.mark.asyncio
    async def test_cancel_event_checked_before_each_fetch(self, enricher, reccobeats):
        """Test a set cancel event raises before the next fetch"""
        cancel_event = asyncio.Event()

        async def fetch(track_id):
            cancel_event.set()
            return AudioFeatures()

        reccobeats.fetch_audio_features.side_effect = fetch

        with pytest.raises(asyncio.CancelledError):
            await enricher.get_audio_features(["t1", "t2"], cancel_event)

        assert reccobeats.fetch_audio_features.await_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_partial(self, enricher, reccobeats):
        """Test an unexpected fetch error keeps what was gathered"""
        reccobeats.fetch_audio_features.side_effect = [AudioFeatures(tempo=1.0), RuntimeError("boom")]

        result = await enricher.get_audio_features(["t1", "t2", "t3"])

        assert set(result) == {"t1"}
        assert reccobeats.fetch_audio_features.await_count == 2

    @pytest.mark.asyncio
    async def test_progress_bar_enabled(self, artist_lookup, reccobeats, cache):
        """Test enrichment works with the progress bar shown"""
        enricher = TrackEnricher(artist_lookup, reccobeats, cache, show_progress=True)
        reccobeats.fetch_audio_features.return_value = AudioFeatures(tempo=5.0)

        result = await enricher.get_audio_features(["t1"])

        assert result["t1"].tempo == 5.0

    @pytest.mark.asyncio
    async def test_cache_failure_fetches_everything(self, enricher, reccobeats, cache):
        """Test a failing cache read counts as empty instead of raising"""
        cache.get_many.side_effect = CacheError("disk gone")
        reccobeats.fetch_audio_features.return_value = AudioFeatures(tempo=7.0)

        result = await enricher.get_audio_features(["t1", "t2"])

        assert set(result) == {"t1", "t2"}
        assert reccobeats.fetch_audio_features.await_count == 2


def serve_reccobeats(fake_server, *track_ids):
    """Answer the ReccoBeats lookup with rb-<id> and features for each track"""
    fake_server.on(
        "GET", "/rb/v1/track",
        lambda request: (200, {"content": [{"id": f"rb-{request.query['ids']}"}]}),
    )
    for track_id in track_ids:
        fake_server.add("GET", f"/rb/v1/track/rb-{track_id}/audio-features", (200, SAMPLE_FEATURES_PAYLOAD))


class TestEnrichWithRealCollaborators:
    """Test the orchestrator against a real cache and the fake HTTP backends"""

    @pytest.fixture
    def track_cache(self, temp_dir):
        track_cache = TrackCache(temp_dir / "tracks_cache.db")
        yield track_cache
        track_cache.close()

    @pytest.fixture
    def real_enricher(self, fake_server, http_session, spotify_session, track_cache):
        reccobeats = ReccoBeatsClient(http_session, fake_server.url("rb/"), requests_per_second=100)
        lookup = ArtistGenreLookup(spotify_session, fake_server.url("v1/"))
        return TrackEnricher(lookup, reccobeats, track_cache)

    @pytest.mark.asyncio
    async def test_fetched_features_persist(self, fake_server, real_enricher, track_cache, sample_features):
        """Test cached tracks skip the network and fetched ones are stored"""
        cached = AudioFeatures(tempo=90.0)
        await track_cache.put("t1", cached)
        serve_reccobeats(fake_server, "t2")

        result = await real_enricher.get_audio_features(["t1", "t2"])

        assert result == {"t1": cached, "t2": sample_features}
        lookups = fake_server.requests_to("GET", "/rb/v1/track")
        assert [r.query["ids"] for r in lookups] == ["t2"]
        assert await track_cache.get_many(["t1", "t2"]) == {"t1": cached, "t2": sample_features}

        request_count = len(fake_server.requests)
        assert await real_enricher.get_audio_features(["t1", "t2"]) == result
        assert len(fake_server.requests) == request_count

    @pytest.mark.asyncio
    async def test_corrupt_cache_row_refetched(self, fake_server, real_enricher, track_cache, sample_features):
        """Test an undecodable cache row is treated as a miss"""
        conn = sqlite3.connect(str(track_cache.db_path))
        try:
            conn.execute(
                "INSERT INTO audio_features_cache (track_id, json_data) VALUES (?, ?)", ("t1", b"\xff\xfe{")
            )
            conn.commit()
        finally:
            conn.close()
        serve_reccobeats(fake_server, "t1", "t2")

        result = await real_enricher.get_audio_features(["t1", "t2"])

        assert result == {"t1": sample_features, "t2": sample_features}

    @pytest.mark.asyncio
    async def test_shared_artist_resolved_once(self, fake_server, real_enricher):
        """Test tracks sharing an artist share its genre and trigger one lookup"""
        fake_server.add("GET", "/v1/artists", (200, {"artists": [{"id": "a1", "name": "A", "genres": ["rock"]}]}))
        tracks = [make_track("t1", "a1"), make_track("t2", "a1"), make_track("t3")]

        result = await real_enricher.enrich(tracks)
        enriched = result.apply(tracks)

        assert [t.genre for t in enriched] == ["rock", "rock", "unknown"]
        artist_requests = fake_server.requests_to("GET", "/v1/artists")
        assert [r.query["ids"] for r in artist_requests] == ["a1"]
