"""
OAuth token operations against the Spotify accounts service.

TokenRefreshClient:
    Exchanges a refresh token (or an authorization code) for tokens at the
    token endpoint. It holds no per-user state and never raises for
    refresh failures: callers receive None and decide what that means.

AuthorizationFlow:
    Interactive login for the CLI. Uses spotipy's SpotifyOAuth to open the
    consent page and capture the redirect on a local port. The code is then
    exchanged through TokenRefreshClient.exchange_code.

Token Request:
    POST {token_url}
    Authorization: Basic base64(client_id:client_secret)
    Content-Type: application/x-www-form-urlencoded

    grant_type=refresh_token&refresh_token=...
    grant_type=authorization_code&code=...&redirect_uri=...
"""

import asyncio
from typing import Any

import aiohttp
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth

from spot_organizer.core.exceptions import SpotifyError
from spot_organizer.core.logger import get_logger
from spot_organizer.spotify.models import Credential


logger = get_logger(__name__)


class TokenRefreshClient:
    """
    Stateless client for the Spotify token endpoint.

    Args:
        http: Shared aiohttp session.
        client_id: Spotify application client ID.
        client_secret: Spotify application client secret.
        token_url: Token endpoint URL.
    """

    def __init__(
        self,
        http: aiohttp.ClientSession,
        client_id: str,
        client_secret: str,
        token_url: str
    ) -> None:
        self._http = http
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url

    async def refresh_access_token(self, refresh_token: str) -> str | None:
        """
        Exchange a refresh token for a new access token.

        Args:
            refresh_token: The session's refresh token.

        Returns:
            The new access token, or None if the refresh failed for any
            reason (missing client credentials, HTTP error, network error,
            or a reply without an access_token). Failures are logged.

        Note:
            Spotify may rotate the refresh token in the reply. The new one
            is ignored; the session keeps its original refresh token.
        """
        if not refresh_token:
            logger.error("Token refresh skipped: no refresh token")
            return None

        payload = await self._request_token({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })
        if payload is None:
            return None

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            logger.error("Token refresh reply did not contain an access token")
            return None

        return access_token

    async def exchange_code(self, code: str, redirect_uri: str) -> Credential | None:
        """
        Exchange an authorization code for an access/refresh token pair.

        Returns:
            The new Credential, or None if the exchange failed.
        """
        payload = await self._request_token({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        })
        if payload is None:
            return None

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            logger.error("Code exchange reply did not contain an access token")
            return None

        return Credential(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or "",
        )

    async def _request_token(self, form: dict[str, str]) -> dict[str, Any] | None:
        if not self._client_id or not self._client_secret:
            logger.error("Token request skipped: client credentials are not configured")
            return None

        try:
            async with self._http.post(
                self._token_url,
                data=form,
                auth=aiohttp.BasicAuth(self._client_id, self._client_secret),
            ) as response:
                if response.status >= 400:
                    body = await response.text()
                    logger.error(
                        f"Token endpoint returned HTTP {response.status}: {body[:200]}"
                    )
                    return None
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Token request failed: {e}")
            return None

        if not isinstance(payload, dict):
            logger.error("Token endpoint reply is not a JSON object")
            return None
        return payload


class AuthorizationFlow:
    """
    Interactive authorization code flow for the CLI login command.

    Example:
        flow = AuthorizationFlow(client_id, client_secret, redirect_uri, scope)
        print(f"Open {flow.authorize_url()}")
        code = flow.wait_for_code()
        credential = await flow.exchange(code, token_client)
    """

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, scope: str) -> None:
        self._redirect_uri = redirect_uri
        self._oauth = SpotifyOAuth(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            scope=scope,
            cache_handler=MemoryCacheHandler(),
            open_browser=True,
        )

    def authorize_url(self) -> str:
        return self._oauth.get_authorize_url()

    def wait_for_code(self) -> str:
        """
        Open the consent page and wait for the redirect.

        For a localhost redirect URI spotipy runs a one-shot HTTP server on
        that port; otherwise the user pastes the redirected URL.
        """
        return self._oauth.get_auth_response()

    async def exchange(self, code: str, token_client: TokenRefreshClient) -> Credential:
        """
        Exchange the authorization code for tokens.

        Raises:
            SpotifyError: If the token endpoint rejects the code.
        """
        credential = await token_client.exchange_code(code, self._redirect_uri)
        if credential is None:
            raise SpotifyError(
                "Authorization failed: the authorization code was not accepted",
                details={"redirect_uri": self._redirect_uri},
                is_auth_error=True
            )
        return credential
