from unittest.mock import MagicMock

import pytest
from spotipy.oauth2 import SpotifyOauthError

from vinylplayer.errors import UpstreamAuthError
from vinylplayer.tokens import EXPIRY_MARGIN_SECONDS, AppTokenCache


class TestAppTokenCache:
    def test_token_is_reused_within_lifetime(self, token_fetcher, clock):
        cache = AppTokenCache(token_fetcher, clock=clock)

        assert cache.get_token() == "app-token"
        clock.advance(60_000)
        assert cache.get_token() == "app-token"

        assert token_fetcher.call_count == 1

    def test_expiry_keeps_safety_margin(self, token_fetcher, clock):
        start = clock.now
        cache = AppTokenCache(token_fetcher, clock=clock)
        cache.get_token()

        assert cache.token.expires_at_ms == start + (3600 - EXPIRY_MARGIN_SECONDS) * 1000

    def test_refreshes_exactly_once_after_expiry(self, token_fetcher, clock):
        cache = AppTokenCache(token_fetcher, clock=clock)
        cache.get_token()

        token_fetcher.return_value = {"access_token": "second-token", "expires_in": 3600}
        clock.advance((3600 - EXPIRY_MARGIN_SECONDS) * 1000)

        assert cache.get_token() == "second-token"
        assert cache.get_token() == "second-token"
        assert token_fetcher.call_count == 2

    def test_still_fresh_one_ms_before_expiry(self, token_fetcher, clock):
        cache = AppTokenCache(token_fetcher, clock=clock)
        cache.get_token()
        clock.advance((3600 - EXPIRY_MARGIN_SECONDS) * 1000 - 1)

        assert cache.is_fresh()
        cache.get_token()
        assert token_fetcher.call_count == 1

    def test_fetch_failure_raises_upstream_auth_error(self, clock):
        fetcher = MagicMock(side_effect=SpotifyOauthError("invalid_client"))
        cache = AppTokenCache(fetcher, clock=clock)

        with pytest.raises(UpstreamAuthError):
            cache.get_token()
        assert cache.token is None
        assert fetcher.call_count == 1

    def test_empty_token_response_is_an_error(self, clock):
        cache = AppTokenCache(MagicMock(return_value={}), clock=clock)

        with pytest.raises(UpstreamAuthError):
            cache.get_token()

    def test_remaining_seconds(self, token_fetcher, clock):
        cache = AppTokenCache(token_fetcher, clock=clock)
        assert cache.remaining_seconds() == 0

        cache.get_token()
        clock.advance(40_000)

        assert cache.remaining_seconds() == 3600 - EXPIRY_MARGIN_SECONDS - 40


class TestTokenEndpoint:
    def test_returns_token_and_lifetime_hint(self, client):
        response = client.get("/api/spotify/token")

        assert response.status_code == 200
        assert response.json() == {"token": "app-token", "expiresIn": 3600 - EXPIRY_MARGIN_SECONDS}

    def test_token_endpoint_failure_is_generic_500(self, client, token_fetcher):
        token_fetcher.side_effect = SpotifyOauthError("invalid_client: secret abc123 rejected")

        response = client.get("/api/spotify/token")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to obtain Spotify access token"}
        assert "abc123" not in response.text
