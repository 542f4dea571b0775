"""Test the token endpoint client"""

import pytest

from spot_organizer.core.exceptions import SpotifyError
from spot_organizer.spotify.auth import AuthorizationFlow, TokenRefreshClient
from spot_organizer.spotify.models import Credential


class TestTokenRefreshClient:
    """Test refresh and code exchange against the fake token endpoint"""

    @pytest.mark.asyncio
    async def test_refresh_returns_access_token(self, fake_server, token_client):
        """Test a successful refresh returns the new access token"""
        fake_server.add("POST", "/api/token", (200, {"access_token": "new-token", "refresh_token": "rotated"}))

        assert await token_client.refresh_access_token("refresh-token") == "new-token"

        request = fake_server.requests_to("POST", "/api/token")[0]
        assert request.headers["Content-Type"].startswith("application/x-www-form-urlencoded")

    @pytest.mark.asyncio
    async def test_refresh_http_error_returns_none(self, fake_server, token_client):
        """Test a rejected refresh returns None"""
        fake_server.add("POST", "/api/token", (400, {"error": "invalid_grant"}))

        assert await token_client.refresh_access_token("refresh-token") is None

    @pytest.mark.asyncio
    async def test_refresh_without_access_token_returns_none(self, fake_server, token_client):
        """Test a reply lacking access_token returns None"""
        fake_server.add("POST", "/api/token", (200, {"token_type": "Bearer"}))

        assert await token_client.refresh_access_token("refresh-token") is None

    @pytest.mark.asyncio
    async def test_refresh_malformed_json_returns_none(self, fake_server, token_client):
        """Test a non-JSON reply returns None"""
        fake_server.add("POST", "/api/token", (200, "not json"))

        assert await token_client.refresh_access_token("refresh-token") is None

    @pytest.mark.asyncio
    async def test_missing_client_credentials(self, fake_server, http_session):
        """Test no request is made without client credentials"""
        client = TokenRefreshClient(http_session, "client-id", "", fake_server.url("api/token"))

        assert await client.refresh_access_token("refresh-token") is None
        assert fake_server.requests == []

    @pytest.mark.asyncio
    async def test_empty_refresh_token(self, fake_server, token_client):
        """Test an empty refresh token is not sent"""
        assert await token_client.refresh_access_token("") is None
        assert fake_server.requests == []

    @pytest.mark.asyncio
    async def test_exchange_code(self, fake_server, token_client):
        """Test the authorization code grant"""
        fake_server.add("POST", "/api/token", (200, {"access_token": "access", "refresh_token": "refresh"}))

        credential = await token_client.exchange_code("auth-code", "http://127.0.0.1:8888/callback")

        assert credential == Credential("access", "refresh")
        assert fake_server.requests_to("POST", "/api/token")[0].form() == {
            "grant_type": "authorization_code",
            "code": "auth-code",
            "redirect_uri": "http://127.0.0.1:8888/callback",
        }

    @pytest.mark.asyncio
    async def test_exchange_code_failure(self, fake_server, token_client):
        """Test a rejected code returns None"""
        fake_server.add("POST", "/api/token", (400, {"error": "invalid_grant"}))

        assert await token_client.exchange_code("bad-code", "http://127.0.0.1:8888/callback") is None


class TestAuthorizationFlow:
    """Test the login code exchange"""

    @pytest.fixture
    def flow(self):
        return AuthorizationFlow("client-id", "client-secret", "http://127.0.0.1:8888/callback", "user-read-private")

    def test_authorize_url(self, flow):
        """Test the consent URL carries the client and redirect"""
        url = flow.authorize_url()

        assert "client_id=client-id" in url
        assert "redirect_uri=http%3A%2F%2F127.0.0.1%3A8888%2Fcallback" in url

    @pytest.mark.asyncio
    async def test_exchange_uses_token_client(self, fake_server, token_client, flow):
        """Test the code is exchanged at the token endpoint with the flow's redirect URI"""
        fake_server.add("POST", "/api/token", (200, {"access_token": "access", "refresh_token": "refresh"}))

        credential = await flow.exchange("auth-code", token_client)

        assert credential == Credential("access", "refresh")
        form = fake_server.requests_to("POST", "/api/token")[0].form()
        assert form["redirect_uri"] == "http://127.0.0.1:8888/callback"
        assert form["code"] == "auth-code"

    @pytest.mark.asyncio
    async def test_exchange_rejected(self, fake_server, token_client, flow):
        """Test a rejected code raises an auth error"""
        fake_server.add("POST", "/api/token", (400, {"error": "invalid_grant"}))

        with pytest.raises(SpotifyError) as exc_info:
            await flow.exchange("bad-code", token_client)

        assert exc_info.value.is_auth_error
