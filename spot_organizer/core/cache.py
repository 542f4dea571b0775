"""
SQLite cache for track audio features.

Audio features never change for a given Spotify track, so once fetched
they are stored here and reused across runs. Entries never expire.

Schema:
    audio_features_cache: One row per Spotify track ID, JSON-encoded features

Failure Policy:
    - Opening the database or creating the schema fails -> CacheError
    - Any later read or write failure is logged and treated as a miss,
      so a broken cache only slows enrichment down

Concurrency:
    A single persistent connection guarded by a threading.Lock. The async
    methods run the blocking sqlite3 calls through asyncio.to_thread.

Usage:
    cache = TrackCache(Path("tracks_cache.db"))

    cached = await cache.get_many(["4uLU6hMCjMI75M1A2tKUQC", ...])
    await cache.put("4uLU6hMCjMI75M1A2tKUQC", features)
"""

import asyncio
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterable

from spot_organizer.core.exceptions import CacheError, EnrichmentError
from spot_organizer.core.logger import get_logger
from spot_organizer.spotify.models import AudioFeatures


logger = get_logger(__name__)

# SQLite limits the number of bound parameters per statement
CACHE_QUERY_BATCH_SIZE = 500


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS audio_features_cache (
    track_id TEXT PRIMARY KEY,
    json_data TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_audio_features_cache_track_id ON audio_features_cache(track_id);
"""


class TrackCache:
    """
    Thread-safe audio feature cache backed by SQLite.

    Uses a single persistent connection with thread locking for safety.
    All blocking methods acquire self._lock before executing.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise CacheError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise CacheError(
                f"Failed to initialize track cache: {e}",
                details={"path": str(db_path)}
            ) from e

        logger.debug(f"Track cache ready at {db_path}")

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get the persistent database connection as a context manager.

        The connection is created once and reused for all operations.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # Thread safety handled by _lock
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        yield self._conn

    def _init_database(self) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.executescript(_SCHEMA_SQL)
                conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __del__(self) -> None:
        """Ensure connection is closed on garbage collection."""
        if hasattr(self, "_conn") and self._conn is not None:
            try:
                self._conn.close()
            except Exception:
                pass

    # =========================================================================
    # Async API
    # =========================================================================

    async def get_many(self, track_ids: Iterable[str]) -> dict[str, AudioFeatures]:
        """
        Look up cached audio features for several tracks.

        Args:
            track_ids: Spotify track IDs. Duplicates are ignored.

        Returns:
            dict mapping each cached track ID to its features. Missing IDs
            and rows that cannot be parsed are simply absent.

        Behavior:
            Queries in chunks of CACHE_QUERY_BATCH_SIZE IDs. If a query fails,
            the error is logged and whatever was read before is returned.
        """
        ids = list(dict.fromkeys(track_ids))
        if not ids:
            return {}
        return await asyncio.to_thread(self._get_many_sync, ids)

    async def put(self, track_id: str, features: AudioFeatures) -> bool:
        """
        Store (or overwrite) the audio features of one track.

        Returns:
            True if the row was written, False if the write failed.
        """
        return await asyncio.to_thread(self._put_sync, track_id, features)

    async def count(self) -> int:
        """Number of cached tracks (0 if the cache cannot be read)."""
        return await asyncio.to_thread(self._count_sync)

    # =========================================================================
    # Blocking implementation
    # =========================================================================

    def _get_many_sync(self, ids: list[str]) -> dict[str, AudioFeatures]:
        result: dict[str, AudioFeatures] = {}

        try:
            with self._lock:
                with self._get_connection() as conn:
                    for start in range(0, len(ids), CACHE_QUERY_BATCH_SIZE):
                        chunk = ids[start:start + CACHE_QUERY_BATCH_SIZE]
                        placeholders = ",".join("?" * len(chunk))
                        # BLOB so undecodable text fails per row instead of per query
                        cursor = conn.execute(
                            f"SELECT track_id, CAST(json_data AS BLOB) AS json_data "
                            f"FROM audio_features_cache "
                            f"WHERE track_id IN ({placeholders})",
                            chunk
                        )
                        for row in cursor.fetchall():
                            try:
                                result[row["track_id"]] = AudioFeatures.from_json(row["json_data"])
                            except EnrichmentError as e:
                                logger.warning(
                                    f"Skipping unreadable cache entry for {row['track_id']}: {e}"
                                )
        except Exception as e:
            logger.error(f"Track cache read failed: {e}")

        logger.debug(f"Track cache hit {len(result)}/{len(ids)}")
        return result

    def _put_sync(self, track_id: str, features: AudioFeatures) -> bool:
        try:
            with self._lock:
                with self._get_connection() as conn:
                    conn.execute(
                        "INSERT OR REPLACE INTO audio_features_cache (track_id, json_data) VALUES (?, ?)",
                        (track_id, features.to_json())
                    )
                    conn.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"Track cache write failed for {track_id}: {e}")
            return False

    def _count_sync(self) -> int:
        try:
            with self._lock:
                with self._get_connection() as conn:
                    row = conn.execute("SELECT COUNT(*) FROM audio_features_cache").fetchone()
                    return row[0] if row else 0
        except sqlite3.Error as e:
            logger.error(f"Track cache count failed: {e}")
            return 0
