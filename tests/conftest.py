from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from vinylplayer.config import Settings
from vinylplayer.main import create_app


FALLBACK_URL = "https://example.com/fallback-preview.mp3"


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        client_id="client-id",
        client_secret="client-secret",
        preview_fallback_url=FALLBACK_URL,
    )


@pytest.fixture
def token_fetcher():
    return MagicMock(return_value={"access_token": "app-token", "token_type": "Bearer", "expires_in": 3600})


@pytest.fixture
def oauth():
    oauth = MagicMock()
    oauth.get_authorize_url.side_effect = lambda state=None: f"https://accounts.spotify.com/authorize?state={state}"
    return oauth


@pytest.fixture
def spotify():
    """Stand-in for a spotipy.Spotify client."""
    return MagicMock()


@pytest.fixture
def client_factory(spotify):
    return MagicMock(return_value=spotify)


@pytest.fixture
def app(settings, token_fetcher, oauth, client_factory, clock):
    return create_app(
        settings,
        token_fetcher=token_fetcher,
        oauth_factory=lambda: oauth,
        client_factory=client_factory,
        clock=clock,
    )


@pytest.fixture
def client(app):
    return TestClient(app)
