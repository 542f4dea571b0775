"""
spot-organizer: Organize Spotify playlists by genre, decade and mood.

This package lists a user's Spotify playlists, enriches their tracks with
the primary genre of the first artist and with audio features from
ReccoBeats, and copies filtered subsets into new playlists.

Architecture:
    Authenticated request pipeline (spotify/http.py):
        - Attaches the session's bearer token to every Spotify call
        - On 401, refreshes the token once (serialized per session) and
          replays the request once

    Enrichment (spotify/enricher.py):
        - Artist genres in batches of 50 (spotify/artists.py)
        - Audio features from the SQLite cache (core/cache.py), misses
          fetched sequentially from ReccoBeats (reccobeats/client.py)
        - Best-effort: failures leave "unknown" genre / zero features

Modules:
    core/        - Configuration, exceptions, logging, track cache
    spotify/     - Spotify models, auth, pipeline, services, enrichment
    reccobeats/  - ReccoBeats audio features client
    filters.py   - Track filters for building playlists
    app.py       - Wires the services for one user session
    cli.py       - Command-line interface

Usage:
    Command Line:
        spot-organizer login
        spot-organizer tracks <playlist-id> --group-by genre
        spot-organizer copy <playlist-id> --name "90s" --decade 1990s

    Python API:
        from spot_organizer.app import open_app
        from spot_organizer.core import load_config, setup_logging
        from spot_organizer.spotify import load_credential

        config = load_config()
        setup_logging(config.logging.level)
        credential = load_credential(config.spotify.token_file)

        async with open_app(config, credential) as app:
            tracks = await app.tracks.get_playlist_tracks(playlist_id)

Dependencies:
    - aiohttp: Async HTTP client
    - asyncio-throttle: Request pacing towards ReccoBeats
    - spotipy: Interactive OAuth login
    - click / rich-click: CLI framework and colors
    - tqdm / colorama: Progress bars and colored logs
    - pyyaml / python-dotenv: Configuration
"""

__version__ = "0.1.0"
__author__ = "spot-organizer"
__license__ = "MIT"
