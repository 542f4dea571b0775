"""
Command-line interface for spot-organizer.

This module implements the CLI using Click (rich-click for help colors).

Commands:
    spot-organizer login                          Authorize with Spotify
    spot-organizer playlists                      List your playlists
    spot-organizer tracks <playlist-id>           List enriched tracks
    spot-organizer copy <playlist-id> --name ...  Copy filtered tracks

Usage:
    # First run: authorize and store tokens
    spot-organizer login

    # Group a playlist by primary genre
    spot-organizer tracks 37i9dQZF1DXcBWIGoYBM5M --group-by genre

    # Copy the 90s rock tracks into a playlist (created if missing)
    spot-organizer copy 37i9dQZF1DXcBWIGoYBM5M --name "90s Rock" --genre rock --decade 1990s

Configuration:
    Reads config.yaml from the current directory (or --config) and the
    environment. Tokens are kept in spotify.token_file and written back
    after every command, since they may have been refreshed.

Exit Codes:
    0   success
    1   configuration error, or login required
    3   Spotify API error
    4   other spot-organizer error
    130 interrupted
"""

import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import aiohttp
import rich_click as click

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.MAX_WIDTH = 100

from spot_organizer import __version__
from spot_organizer.app import App, open_app
from spot_organizer.core import (
    Config,
    ConfigError,
    ReauthenticationRequired,
    SpotifyError,
    SpotOrganizerError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from spot_organizer.filters import (
    CompositeFilter,
    DecadeFilter,
    GenreFilter,
    TrackFilter,
    YearRangeFilter,
    apply_filter,
)
from spot_organizer.spotify.auth import AuthorizationFlow, TokenRefreshClient
from spot_organizer.spotify.models import Credential, Playlist, Track
from spot_organizer.spotify.session import load_credential, save_credential

logger = get_logger(__name__)

T = TypeVar("T")


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.version_option(__version__, "--version", prog_name="spot-organizer")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]) -> None:
    """
    spot-organizer: Organize Spotify playlists by genre, decade and mood.

    \b
    BASIC USAGE:
        spot-organizer login
        spot-organizer playlists
        spot-organizer tracks <playlist-id> --group-by decade
        spot-organizer copy <playlist-id> --name "Chill 80s" --decade 1980s
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.pass_context
def login(ctx: click.Context) -> None:
    """Authorize spot-organizer with your Spotify account."""

    def _login(config: Config) -> None:
        flow = AuthorizationFlow(
            config.spotify.client_id,
            config.spotify.client_secret,
            config.spotify.redirect_uri,
            config.spotify.scope,
        )
        click.echo(f"Opening Spotify authorization page:\n{flow.authorize_url()}")
        code = flow.wait_for_code()
        credential = asyncio.run(_exchange_code(config, flow, code))
        save_credential(config.spotify.token_file, credential)
        click.echo(f"Logged in. Tokens saved to {config.spotify.token_file}")

    _run_command(ctx, _login)


@cli.command()
@click.pass_context
def playlists(ctx: click.Context) -> None:
    """List your playlists."""

    async def _playlists(app: App) -> None:
        for playlist in await app.playlists.get_user_playlists():
            click.echo(_format_playlist(playlist))

    _run_command(ctx, lambda config: _with_app(config, _playlists))


@cli.command()
@click.argument("playlist_id")
@click.option(
    "--group-by",
    type=click.Choice(["genre", "decade"]),
    default=None,
    help="Group tracks by primary genre or release decade"
)
@click.option("--offset", type=click.IntRange(min=0), default=0, show_default=True, help="First track index")
@click.option("--limit", type=click.IntRange(1, 100), default=100, show_default=True, help="Tracks to fetch")
@click.pass_context
def tracks(
    ctx: click.Context,
    playlist_id: str,
    group_by: Optional[str],
    offset: int,
    limit: int
) -> None:
    """List a playlist's tracks with genre, decade and mood."""

    async def _tracks(app: App) -> None:
        items = await app.tracks.get_playlist_tracks(playlist_id, offset=offset, limit=limit)

        if group_by is None:
            for track in items:
                click.echo(_format_track(track))
            return

        groups = (
            Playlist.group_tracks_by_genre(items) if group_by == "genre"
            else Playlist.group_tracks_by_decade(items)
        )
        for key, group in groups.items():
            click.echo(f"\n{key} ({len(group)})")
            for track in group:
                click.echo(f"  {_format_track(track)}")

    _run_command(ctx, lambda config: _with_app(config, _tracks, show_progress=True))


@cli.command()
@click.argument("playlist_id")
@click.option("--name", default=None, help="Target playlist name (default: suggested by the filter)")
@click.option("--genre", default=None, help="Primary genre, case-insensitive")
@click.option("--decade", default=None, metavar="<1990s>", help="Release decade")
@click.option("--from-year", type=int, default=None, help="Earliest release year")
@click.option("--to-year", type=int, default=None, help="Latest release year (needs --from-year)")
@click.option("--limit", type=click.IntRange(1, 100), default=100, show_default=True, help="Tracks to scan")
@click.pass_context
def copy(
    ctx: click.Context,
    playlist_id: str,
    name: Optional[str],
    genre: Optional[str],
    decade: Optional[str],
    from_year: Optional[int],
    to_year: Optional[int],
    limit: int
) -> None:
    """Copy the tracks of a playlist that pass the filters into another playlist."""
    track_filter = _build_filter(genre, decade, from_year, to_year)
    target_name = name or track_filter.suggested_playlist_name

    async def _copy(app: App) -> None:
        items = await app.tracks.get_playlist_tracks(playlist_id, limit=limit)
        selected = apply_filter(items, track_filter)
        if not selected:
            click.echo(f"No tracks match {track_filter.name}")
            return

        playlist = await app.playlists.copy_tracks(
            selected, target_name, description=f"Filtered by spot-organizer: {track_filter.name}"
        )
        click.echo(f"Copied {len(selected)} tracks into '{playlist.name}' ({playlist.id})")

    _run_command(ctx, lambda config: _with_app(config, _copy, show_progress=True))


# =============================================================================
# Helpers
# =============================================================================


def _build_filter(
    genre: Optional[str],
    decade: Optional[str],
    from_year: Optional[int],
    to_year: Optional[int]
) -> TrackFilter:
    if to_year is not None and from_year is None:
        raise click.UsageError("--to-year requires --from-year")
    if from_year is not None and to_year is not None and to_year < from_year:
        raise click.UsageError("--to-year must not be before --from-year")

    filters: list[TrackFilter] = []
    if genre:
        filters.append(GenreFilter(genre))
    if decade:
        filters.append(DecadeFilter(decade))
    if from_year is not None:
        filters.append(YearRangeFilter(from_year, to_year))

    if not filters:
        raise click.UsageError("Give at least one of --genre, --decade, --from-year")
    if len(filters) == 1:
        return filters[0]
    return CompositeFilter(tuple(filters))


async def _exchange_code(config: Config, flow: AuthorizationFlow, code: str) -> Credential:
    timeout = aiohttp.ClientTimeout(total=config.http.timeout)
    async with aiohttp.ClientSession(timeout=timeout) as http:
        token_client = TokenRefreshClient(
            http,
            config.spotify.client_id,
            config.spotify.client_secret,
            config.spotify.token_url,
        )
        return await flow.exchange(code, token_client)


def _with_app(
    config: Config,
    action: Callable[[App], Awaitable[T]],
    show_progress: bool = False
) -> T:
    """Run action against a fresh App and persist the (possibly refreshed) tokens."""
    credential = load_credential(config.spotify.token_file)
    if credential is None:
        raise ReauthenticationRequired("No stored Spotify login")

    async def _run() -> T:
        async with open_app(config, credential, show_progress=show_progress) as app:
            try:
                return await action(app)
            finally:
                if app.credential != credential:
                    save_credential(config.spotify.token_file, app.credential)

    return asyncio.run(_run())


def _run_command(ctx: click.Context, command: Callable[[Config], object]) -> None:
    """
    Load configuration, set up logging and run command with uniform error handling.
    """
    try:
        config = load_config(ctx.obj.get("config_path"))
        setup_logging(config.logging.level, config.logging.file)
        command(config)

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except ReauthenticationRequired as e:
        click.echo(f"{e.message}. Run 'spot-organizer login' first.", err=True)
        logger.debug(f"Reauthentication required: {e.details}")
        sys.exit(1)

    except SpotifyError as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(3)

    except SpotOrganizerError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    finally:
        shutdown_logging()


def _format_playlist(playlist: Playlist) -> str:
    return f"{playlist.id}  {playlist.name} ({playlist.track_count} tracks)"


def _format_track(track: Track) -> str:
    return f"{track.name} - {track.artist_display} [{track.genre}, {track.decade}, {track.mood}]"


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `spot-organizer` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
