"""
Authenticated request pipeline for the Spotify Web API.

Every Spotify call made on behalf of a user goes through
AuthenticatedSession.send(). It attaches the session's bearer token and
recovers from an expired token transparently.

Flow for one request:
    1. Read the session credential, set "Authorization: Bearer <token>"
       (no header if the access token is empty)
    2. Dispatch. Any status other than 401 is returned unchanged.
    3. On 401, take the session's refresh lock:
       - if another request already replaced the token meanwhile, reuse it
       - otherwise refresh; on failure raise ReauthenticationRequired
    4. Dispatch once more with the new token and return that response,
       whatever its status. There is never a second refresh for one call.

Transport failures (connection errors, timeouts) become SpotifyError.
Cancellation (asyncio.CancelledError) is never intercepted.
"""

import asyncio
import json as jsonlib
from dataclasses import dataclass, field
from typing import Any, Mapping

import aiohttp

from spot_organizer.core.exceptions import ReauthenticationRequired, SpotifyError
from spot_organizer.core.logger import get_logger
from spot_organizer.spotify.auth import TokenRefreshClient
from spot_organizer.spotify.session import CredentialStore


logger = get_logger(__name__)

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_TOO_MANY_REQUESTS = 429


@dataclass(frozen=True)
class ApiResponse:
    """
    A fully read HTTP response.

    Attributes:
        status: HTTP status code.
        headers: Response headers (case-insensitive mapping).
        body: Raw response body.
        url: Requested URL, for error messages.
    """
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """
        Decode the body as JSON. An empty body decodes to None.

        Raises:
            SpotifyError: If the body is not valid JSON.
        """
        if not self.body:
            return None
        try:
            return jsonlib.loads(self.body)
        except ValueError as e:
            raise SpotifyError(
                f"Invalid JSON in response from {self.url}",
                details={"url": self.url, "original_error": str(e)},
                status=self.status
            ) from e

    def raise_for_status(self) -> None:
        """
        Raise SpotifyError for a non-2xx status.

        429 is flagged as a rate limit, 401/403 as an auth error.
        """
        if self.ok:
            return

        message = f"Spotify API returned HTTP {self.status} for {self.url}"
        text = self.body[:300].decode("utf-8", errors="replace")
        if text:
            message = f"{message}: {text}"

        raise SpotifyError(
            message,
            details={"url": self.url, "status": self.status},
            status=self.status,
            is_auth_error=self.status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN),
            is_rate_limit=self.status == HTTP_TOO_MANY_REQUESTS
        )


class AuthenticatedSession:
    """
    Spotify HTTP access for one user session.

    Args:
        http: Shared aiohttp session.
        store: Credential store holding this session's tokens.
        session_id: Key of this session in the store.
        token_client: Client used to refresh an expired access token.

    Example:
        session = AuthenticatedSession(http, store, "default", token_client)
        response = await session.send("GET", "https://api.spotify.com/v1/me")
        response.raise_for_status()
        profile = response.json()
    """

    def __init__(
        self,
        http: aiohttp.ClientSession,
        store: CredentialStore,
        session_id: str,
        token_client: TokenRefreshClient
    ) -> None:
        self._http = http
        self._store = store
        self._session_id = session_id
        self._token_client = token_client

    @property
    def session_id(self) -> str:
        return self._session_id

    async def send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        data: Any = None
    ) -> ApiResponse:
        """
        Send a request with the session's bearer token, refreshing it once on 401.

        Args:
            method: HTTP method.
            url: Absolute URL.
            params: Optional query parameters.
            json: Optional JSON body.
            data: Optional form/raw body.

        Returns:
            ApiResponse: The response, status unchanged (non-2xx included).

        Raises:
            ReauthenticationRequired: If the request got 401 and the token
                                      could not be refreshed.
            SpotifyError: On connection errors or timeouts.
        """
        sent_token = self._store.get(self._session_id).access_token
        response = await self._dispatch(method, url, sent_token, params, json, data)
        if response.status != HTTP_UNAUTHORIZED:
            return response

        logger.warning(f"Spotify returned 401 for {method} {url}, refreshing access token")
        new_token = await self._refresh(sent_token, url)

        return await self._dispatch(method, url, new_token, params, json, data)

    async def get_json(self, url: str, params: Mapping[str, str] | None = None) -> Any:
        """GET url and return the decoded JSON body, raising on non-2xx."""
        response = await self.send("GET", url, params=params)
        response.raise_for_status()
        return response.json()

    async def post_json(self, url: str, json: Any = None) -> Any:
        """POST a JSON body and return the decoded JSON reply, raising on non-2xx."""
        response = await self.send("POST", url, json=json)
        response.raise_for_status()
        return response.json()

    async def _refresh(self, rejected_token: str, url: str) -> str:
        """
        Obtain a usable access token after rejected_token got a 401.

        Runs under the session's refresh lock. If the stored token already
        differs from the rejected one, another request refreshed it while
        this one was waiting and it is reused as is.
        """
        async with self._store.refresh_lock(self._session_id):
            credential = self._store.get(self._session_id)

            if credential.access_token and credential.access_token != rejected_token:
                logger.debug("Access token already refreshed by a concurrent request")
                return credential.access_token

            if not credential.refresh_token:
                logger.error("Access token rejected and no refresh token is stored")
                raise ReauthenticationRequired(
                    "Spotify session expired and cannot be refreshed, please log in again",
                    details={"url": url, "session_id": self._session_id}
                )

            new_token = await self._token_client.refresh_access_token(credential.refresh_token)
            if not new_token:
                logger.error("Access token refresh failed")
                raise ReauthenticationRequired(
                    "Spotify token refresh failed, please log in again",
                    details={"url": url, "session_id": self._session_id}
                )

            self._store.update_access_token(self._session_id, new_token)
            logger.info("Spotify access token refreshed")
            return new_token

    async def _dispatch(
        self,
        method: str,
        url: str,
        access_token: str,
        params: Mapping[str, str] | None,
        json: Any,
        data: Any
    ) -> ApiResponse:
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            async with self._http.request(
                method, url, params=params, json=json, data=data, headers=headers
            ) as response:
                body = await response.read()
                return ApiResponse(
                    status=response.status,
                    headers=response.headers,
                    body=body,
                    url=url,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SpotifyError(
                f"Request to Spotify failed: {method} {url}: {e}",
                details={"url": url, "original_error": str(e)}
            ) from e
