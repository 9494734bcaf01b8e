"""Process-wide client-credentials token for anonymous catalog reads."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyClientCredentials, SpotifyOauthError

from vinylplayer.config import Settings
from vinylplayer.errors import UpstreamAuthError
from vinylplayer.models import AppToken


logger = logging.getLogger(__name__)

# Tokens are treated as stale this long before the provider's expiry.
EXPIRY_MARGIN_SECONDS = 60

Clock = Callable[[], int]
TokenFetcher = Callable[[], dict]


def now_ms() -> int:
    return int(time.time() * 1000)


def client_credentials_fetcher(settings: Settings) -> TokenFetcher:
    """Return a callable that requests a fresh client-credentials token."""

    def fetch() -> dict:
        manager = SpotifyClientCredentials(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            cache_handler=MemoryCacheHandler(),
        )
        # check_cache=False: expiry is tracked by AppTokenCache, not spotipy
        return manager.get_access_token(as_dict=True, check_cache=False)

    return fetch


class AppTokenCache:
    """Holds at most one live app token and refreshes it lazily."""

    def __init__(self, fetcher: TokenFetcher, clock: Clock = now_ms):
        self._fetcher = fetcher
        self._clock = clock
        self._token: Optional[AppToken] = None

    @property
    def token(self) -> Optional[AppToken]:
        return self._token

    def is_fresh(self) -> bool:
        return self._token is not None and self._clock() < self._token.expires_at_ms

    def get_token(self) -> str:
        """Reuse the cached token, or fetch and cache a new one when stale."""
        if self.is_fresh():
            return self._token.value
        return self.refresh().value

    def refresh(self) -> AppToken:
        now = self._clock()
        try:
            token_info = self._fetcher()
        except (SpotifyOauthError, OSError) as exc:
            logger.error("Error getting Spotify token: %s", exc)
            raise UpstreamAuthError(detail=str(exc)) from exc

        access_token = (token_info or {}).get("access_token")
        if not access_token:
            logger.error("Token endpoint returned no access token")
            raise UpstreamAuthError(detail="empty token response")

        expires_in = int(token_info.get("expires_in") or 3600)
        self._token = AppToken(
            value=access_token,
            expires_at_ms=now + (expires_in - EXPIRY_MARGIN_SECONDS) * 1000,
        )
        logger.info("Fetched new app token, valid for %ss", expires_in - EXPIRY_MARGIN_SECONDS)
        return self._token

    def remaining_seconds(self) -> int:
        if self._token is None:
            return 0
        return max(0, (self._token.expires_at_ms - self._clock()) // 1000)

    def clear(self) -> None:
        self._token = None
