"""Test configuration and fixtures"""

import inspect
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qsl

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from spot_organizer.spotify.auth import TokenRefreshClient
from spot_organizer.spotify.http import AuthenticatedSession
from spot_organizer.spotify.models import AudioFeatures, Credential
from spot_organizer.spotify.session import CredentialStore


SESSION_ID = "test-session"

SAMPLE_FEATURES_PAYLOAD = {
    "id": "rb-1",
    "acousticness": 0.12,
    "danceability": 0.7,
    "energy": 0.8,
    "instrumentalness": 0.0,
    "key": 5,
    "liveness": 0.1,
    "loudness": -5.5,
    "mode": 1,
    "speechiness": 0.04,
    "tempo": 120.0,
    "valence": 0.65,
}


@dataclass
class RecordedRequest:
    """A request received by FakeServer"""
    method: str
    path: str
    query: dict[str, str]
    headers: dict[str, str]
    body: bytes = b""

    def form(self) -> dict[str, str]:
        return dict(parse_qsl(self.body.decode()))


@dataclass
class FakeServer:
    """
    Scriptable HTTP server for tests.

    Each (method, path) route is either a queue of responses, where the last
    one repeats, or a handler called with the RecordedRequest. A response is
    (status, payload) or (status, payload, headers); a dict/list payload is
    sent as JSON. Unknown routes answer 404.
    """
    base_url: str = ""
    requests: list[RecordedRequest] = field(default_factory=list)
    _routes: dict[tuple[str, str], Any] = field(default_factory=dict)

    def url(self, path: str = "") -> str:
        return f"{self.base_url}{path}"

    def add(self, method: str, path: str, *responses: tuple) -> None:
        self._routes[(method, path)] = list(responses)

    def on(self, method: str, path: str, handler: Callable[[RecordedRequest], Any]) -> None:
        self._routes[(method, path)] = handler

    def requests_to(self, method: str, path: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == method and r.path == path]

    async def handle(self, request: web.Request) -> web.StreamResponse:
        recorded = RecordedRequest(
            method=request.method,
            path=request.path,
            query=dict(request.query),
            headers=dict(request.headers),
            body=await request.read(),
        )
        self.requests.append(recorded)

        route = self._routes.get((request.method, request.path))
        if route is None:
            return web.json_response({"error": "not found"}, status=404)

        if callable(route):
            response = route(recorded)
            if inspect.isawaitable(response):
                response = await response
        else:
            response = route[0] if len(route) == 1 else route.pop(0)

        return _build_response(*response)


def _build_response(status: int, payload: Any = None, headers: dict | None = None) -> web.Response:
    if payload is None:
        return web.Response(status=status, headers=headers)
    if isinstance(payload, str):
        return web.Response(status=status, text=payload, headers=headers)
    if isinstance(payload, bytes):
        return web.Response(status=status, body=payload, headers=headers)
    return web.json_response(payload, status=status, headers=headers)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest_asyncio.fixture
async def fake_server():
    """Local HTTP server standing in for Spotify, its token endpoint and ReccoBeats"""
    fake = FakeServer()
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", fake.handle)

    server = TestServer(app)
    await server.start_server()
    fake.base_url = f"http://{server.host}:{server.port}/"

    yield fake

    await server.close()


@pytest_asyncio.fixture
async def http_session():
    """Shared aiohttp client session"""
    async with aiohttp.ClientSession() as session:
        yield session


@pytest.fixture
def credential_store():
    """Store holding an expired-looking token and a valid refresh token"""
    store = CredentialStore()
    store.store(SESSION_ID, Credential(access_token="old-token", refresh_token="refresh-token"))
    return store


@pytest.fixture
def token_client(fake_server, http_session):
    """Token client pointed at the fake token endpoint"""
    return TokenRefreshClient(http_session, "client-id", "client-secret", fake_server.url("api/token"))


@pytest.fixture
def spotify_session(http_session, credential_store, token_client):
    """Authenticated pipeline for SESSION_ID"""
    return AuthenticatedSession(http_session, credential_store, SESSION_ID, token_client)


@pytest.fixture
def sample_features():
    """AudioFeatures matching SAMPLE_FEATURES_PAYLOAD"""
    return AudioFeatures.from_api(SAMPLE_FEATURES_PAYLOAD)


@pytest.fixture
def sample_track_data():
    """Sample playlist track item for testing"""
    return {
        'added_at': '2024-01-01T00:00:00Z',
        'track': {
            'id': 'track_123',
            'name': 'Test Song',
            'artists': [{'id': 'artist_123', 'name': 'Test Artist'}],
            'album': {
                'id': 'album_123',
                'name': 'Test Album',
                'release_date': '1994-05-01',
                'images': [{'url': 'https://i.scdn.co/image/large'}, {'url': 'https://i.scdn.co/image/small'}],
            },
        }
    }
