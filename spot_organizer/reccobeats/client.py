"""
ReccoBeats audio features client.

Spotify no longer serves audio features to new applications, so they are
taken from ReccoBeats instead. ReccoBeats uses its own track IDs, which
makes every lookup a two-step operation:

    1. GET v1/track?ids=<spotify id>          -> content[0].id
    2. GET v1/track/<reccobeats id>/audio-features

Rate Limiting:
    Requests are paced by an asyncio-throttle Throttler. When the service
    still answers 429, the request is retried after Retry-After seconds
    (integer header) or default_retry_after when the header is absent or
    unparseable. The lookup and the features request share one budget of
    max_retries retries per fetch_audio_features call.

Result Policy:
    Audio features are optional decoration. Every failure (404, exhausted
    retries, other HTTP errors, network errors, malformed payloads) is
    logged and reported as None. Only cancellation propagates.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import aiohttp
from asyncio_throttle import Throttler

from spot_organizer.core.exceptions import EnrichmentError
from spot_organizer.core.logger import get_logger
from spot_organizer.spotify.models import AudioFeatures


logger = get_logger(__name__)

HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429


@dataclass
class _RetryBudget:
    """429 retries left for one fetch_audio_features call."""
    remaining: int


class ReccoBeatsClient:
    """
    Client for the ReccoBeats audio features API.

    Args:
        http: Shared aiohttp session.
        base_url: API base URL, with trailing slash.
        max_retries: Retries allowed after HTTP 429, per track across both requests.
        default_retry_after: Seconds to wait on 429 without a usable Retry-After.
        requests_per_second: Pacing applied to every outgoing request.
        sleep: Awaitable sleep used for backoff (replaceable in tests).

    Example:
        client = ReccoBeatsClient(http, "https://api.reccobeats.com/")
        features = await client.fetch_audio_features("4uLU6hMCjMI75M1A2tKUQC")
        if features is not None:
            print(features.tempo)
    """

    def __init__(
        self,
        http: aiohttp.ClientSession,
        base_url: str,
        max_retries: int = 3,
        default_retry_after: float = 2.0,
        requests_per_second: int = 5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ) -> None:
        self._http = http
        self._base_url = base_url
        self._max_retries = max_retries
        self._default_retry_after = default_retry_after
        self._throttler = Throttler(rate_limit=requests_per_second, period=1.0)
        self._sleep = sleep

    async def fetch_audio_features(self, spotify_track_id: str) -> AudioFeatures | None:
        """
        Fetch audio features for a Spotify track.

        Args:
            spotify_track_id: Spotify track ID.

        Returns:
            AudioFeatures, or None when ReccoBeats does not know the track
            or the request failed.

        Raises:
            asyncio.CancelledError: If the calling task is cancelled.
        """
        logger.debug(f"Fetching audio features for {spotify_track_id}")

        budget = _RetryBudget(self._max_retries)
        try:
            reccobeats_id = await self._lookup_track_id(spotify_track_id, budget)
            if not reccobeats_id:
                logger.debug(f"Track {spotify_track_id} not found in ReccoBeats")
                return None

            payload = await self._get_with_retry(
                f"{self._base_url}v1/track/{reccobeats_id}/audio-features",
                None,
                spotify_track_id,
                budget
            )
            if payload is None:
                return None

            return AudioFeatures.from_api(payload)
        except EnrichmentError as e:
            logger.warning(f"Malformed audio features for {spotify_track_id}: {e}")
            return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"HTTP error fetching audio features for {spotify_track_id}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"Invalid JSON from ReccoBeats for {spotify_track_id}: {e}")
            return None

    async def _lookup_track_id(self, spotify_track_id: str, budget: _RetryBudget) -> str | None:
        payload = await self._get_with_retry(
            f"{self._base_url}v1/track",
            {"ids": spotify_track_id},
            spotify_track_id,
            budget
        )
        if not isinstance(payload, dict):
            return None

        content = payload.get("content")
        if not isinstance(content, list) or not content or not isinstance(content[0], dict):
            return None

        reccobeats_id = content[0].get("id")
        return reccobeats_id if isinstance(reccobeats_id, str) else None

    async def _get_with_retry(
        self,
        url: str,
        params: dict[str, str] | None,
        spotify_track_id: str,
        budget: _RetryBudget
    ) -> Any:
        """
        GET url with the 429 retry policy.

        Each retry after 429 is taken from budget.

        Returns:
            Decoded JSON body, or None for 404, exhausted retries and
            other non-2xx statuses.
        """
        while True:
            async with self._throttler:
                async with self._http.get(url, params=params) as response:
                    if response.status == HTTP_TOO_MANY_REQUESTS:
                        delay = self._retry_after(response.headers.get("Retry-After"))
                    elif response.status == HTTP_NOT_FOUND:
                        return None
                    elif response.status >= 400:
                        logger.warning(
                            f"ReccoBeats returned HTTP {response.status} for {spotify_track_id}"
                        )
                        return None
                    else:
                        return await response.json(content_type=None)

            if budget.remaining <= 0:
                logger.warning(
                    f"Max retries reached for {spotify_track_id} due to rate limiting"
                )
                return None

            budget.remaining -= 1
            used = self._max_retries - budget.remaining
            logger.info(
                f"Rate limited for {spotify_track_id}, waiting {delay}s "
                f"before retry {used}/{self._max_retries}"
            )
            await self._sleep(delay)

    def _retry_after(self, header: str | None) -> float:
        if header is not None:
            try:
                return float(int(header.strip()))
            except ValueError:
                pass
        return self._default_retry_after
