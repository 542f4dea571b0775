"""
Track filters used to build playlists from a subset of tracks.

Every filter exposes the same three members:
    name                     - label shown to the user
    suggested_playlist_name  - default name for a playlist built from it
    matches(track)           - whether the track passes

Variants:
    GenreFilter      - primary genre equals (case-insensitive)
    DecadeFilter     - decade label equals ("1990s")
    YearRangeFilter  - release year within an inclusive range
    TrackIdFilter    - membership in a precomputed ID set (AI results)
    CompositeFilter  - all of several filters

Example:
    track_filter = CompositeFilter((GenreFilter("rock"), DecadeFilter("1990s")))
    selected = apply_filter(tracks, track_filter)
    await playlists.copy_tracks(selected, track_filter.suggested_playlist_name)
"""

from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence, Union

from spot_organizer.spotify.models import Track


@dataclass(frozen=True)
class GenreFilter:
    genre: str

    @property
    def name(self) -> str:
        return self.genre

    @property
    def suggested_playlist_name(self) -> str:
        return f"{self.genre.title()} Mix"

    def matches(self, track: Track) -> bool:
        return track.genre.casefold() == self.genre.casefold()


@dataclass(frozen=True)
class DecadeFilter:
    decade: str

    @property
    def name(self) -> str:
        return self.decade

    @property
    def suggested_playlist_name(self) -> str:
        return f"{self.decade} Hits"

    def matches(self, track: Track) -> bool:
        return track.decade == self.decade


@dataclass(frozen=True)
class YearRangeFilter:
    """Release year in [min_year, max_year]; open-ended when max_year is None."""
    min_year: int
    max_year: int | None = None

    @property
    def name(self) -> str:
        if self.max_year is None:
            return f"Songs from {self.min_year} onwards"
        return f"Songs {self.min_year}-{self.max_year}"

    @property
    def suggested_playlist_name(self) -> str:
        if self.max_year is None:
            return f"Modern Classics ({self.min_year}+)"
        return f"Classics {self.min_year}-{self.max_year}"

    def matches(self, track: Track) -> bool:
        year = track.release_year
        if year is None:
            return False
        if year < self.min_year:
            return False
        return self.max_year is None or year <= self.max_year


@dataclass(frozen=True)
class TrackIdFilter:
    """Matches tracks whose ID is in a precomputed set."""
    label: str
    suggested_playlist_name: str
    track_ids: frozenset[str]

    @property
    def name(self) -> str:
        return self.label

    def matches(self, track: Track) -> bool:
        return track.id in self.track_ids


TrackFilter = Union[GenreFilter, DecadeFilter, YearRangeFilter, TrackIdFilter, "CompositeFilter"]


@dataclass(frozen=True)
class CompositeFilter:
    """
    Logical AND of one or more filters.

    Raises:
        ValueError: If constructed with no filters.
    """
    filters: tuple[TrackFilter, ...]

    def __post_init__(self) -> None:
        if not self.filters:
            raise ValueError("CompositeFilter requires at least one filter")
        object.__setattr__(self, "filters", tuple(self.filters))

    @property
    def name(self) -> str:
        return " + ".join(f.name for f in self.filters)

    @property
    def suggested_playlist_name(self) -> str:
        return self.filters[0].suggested_playlist_name

    def matches(self, track: Track) -> bool:
        return all(f.matches(track) for f in self.filters)


class TrackMatcher(Protocol):
    """
    Language-model collaborator that selects tracks for a free-text prompt.

    Implementations live outside this package.
    """

    async def filter_tracks(self, prompt: str, tracks: Sequence[Track]) -> set[str]:
        """IDs of the tracks that match prompt."""
        ...

    async def generate_playlist_name(self, prompt: str) -> str:
        ...


async def create_ai_filter(prompt: str, tracks: Sequence[Track], matcher: TrackMatcher) -> TrackIdFilter:
    """
    Build a TrackIdFilter from a matcher's selection for prompt.

    IDs returned by the matcher that are not in tracks are dropped.
    """
    known_ids = {track.id for track in tracks}
    selected = await matcher.filter_tracks(prompt, tracks)
    playlist_name = await matcher.generate_playlist_name(prompt)
    return TrackIdFilter(
        label=f"AI: {prompt}",
        suggested_playlist_name=playlist_name or prompt,
        track_ids=frozenset(track_id for track_id in selected if track_id in known_ids),
    )


def apply_filter(tracks: Iterable[Track], track_filter: TrackFilter) -> list[Track]:
    """Tracks that pass track_filter, in input order."""
    return [track for track in tracks if track_filter.matches(track)]
