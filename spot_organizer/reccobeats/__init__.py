"""
ReccoBeats integration.

Provides audio features (tempo, energy, valence, ...) for Spotify tracks.
"""

from spot_organizer.reccobeats.client import ReccoBeatsClient

__all__ = ["ReccoBeatsClient"]
