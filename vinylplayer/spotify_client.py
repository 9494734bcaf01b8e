from __future__ import annotations

import logging
from typing import Callable, Optional

import spotipy
from spotipy.exceptions import SpotifyException

from vinylplayer.errors import NotFoundError, UpstreamRequestError


logger = logging.getLogger(__name__)

REQUESTS_TIMEOUT = 10

ClientFactory = Callable[[str], spotipy.Spotify]


def create_spotify_client(access_token: str) -> spotipy.Spotify:
    """Create a Spotipy client using a raw access token."""
    return spotipy.Spotify(auth=access_token, requests_timeout=REQUESTS_TIMEOUT, retries=1)


def get_current_user_profile(access_token: str) -> dict:
    """Fetch the current user's profile using the given token."""
    client = create_spotify_client(access_token)
    return client.me()


class CatalogGateway:
    """Read-only catalog calls made with the shared app token.

    ``token_provider`` is normally ``AppTokenCache.get_token``; a new spotipy
    client is built per call so a refreshed token is always picked up.
    """

    def __init__(
        self,
        token_provider: Callable[[], str],
        client_factory: ClientFactory = create_spotify_client,
        market: str = "US",
    ):
        self._token_provider = token_provider
        self._client_factory = client_factory
        self.market = market

    def client(self) -> spotipy.Spotify:
        return self._client_factory(self._token_provider())

    def search_artist(self, name: str) -> dict:
        """Return the single best match; no disambiguation between namesakes."""
        try:
            results = self.client().search(q=name, type="artist", limit=1)
        except SpotifyException as exc:
            logger.error("Error searching for artist %r: %s", name, exc)
            raise UpstreamRequestError("Failed to search for artist", detail=str(exc)) from exc

        items = ((results or {}).get("artists") or {}).get("items") or []
        if not items:
            raise NotFoundError("Artist not found")
        return items[0]

    def get_artist_albums(self, artist_id: str) -> list[dict]:
        try:
            results = self.client().artist_albums(artist_id, include_groups="album", limit=50)
        except SpotifyException as exc:
            logger.error("Error getting albums for artist %s: %s", artist_id, exc)
            raise UpstreamRequestError("Failed to get artist albums", detail=str(exc)) from exc
        return (results or {}).get("items") or []

    def get_album_details(self, album_id: str) -> dict:
        try:
            album = self.client().album(album_id)
        except SpotifyException as exc:
            logger.error("Error getting album %s: %s", album_id, exc)
            raise UpstreamRequestError("Failed to get album details", detail=str(exc)) from exc

        tracks = ((album or {}).get("tracks") or {}).get("items") or []
        available = sum(1 for t in tracks if t.get("preview_url"))
        logger.info("Album %r: %d/%d tracks have preview URLs", album.get("name"), available, len(tracks))
        if tracks and not available:
            # regional or rights-holder restrictions; the client falls back to crackle
            logger.warning("No tracks of album %s have preview URLs", album_id)
        return album

    def get_track(self, track_id: str) -> dict:
        try:
            return self.client().track(track_id, market=self.market)
        except SpotifyException as exc:
            logger.error("Error getting track %s: %s", track_id, exc)
            raise UpstreamRequestError("Failed to get track details", detail=str(exc)) from exc


class SpotifyFullPlayback:
    """Plays whole tracks on the user's active Spotify device.

    Needs a Premium account and an open Spotify client; when either is
    missing the Web API refuses with a 403/404 and ``play_uri`` returns
    False so the caller can fall back to the preview clip.
    """

    def __init__(self, access_token: str, client_factory: ClientFactory = create_spotify_client):
        self.access_token = access_token
        self._client_factory = client_factory

    def play_uri(self, uri: str) -> bool:
        try:
            self._client_factory(self.access_token).start_playback(uris=[uri])
        except (SpotifyException, OSError) as exc:
            logger.warning("Full playback of %s refused: %s", uri, exc)
            return False
        return True

    def pause(self) -> None:
        try:
            self._client_factory(self.access_token).pause_playback()
        except (SpotifyException, OSError) as exc:
            logger.warning("Error pausing playback: %s", exc)

    def resume(self) -> None:
        try:
            self._client_factory(self.access_token).start_playback()
        except (SpotifyException, OSError) as exc:
            logger.warning("Error resuming playback: %s", exc)

    def is_paused(self) -> Optional[bool]:
        """Current device state, or None when nothing is playing or it can't be read."""
        try:
            playback = self._client_factory(self.access_token).current_playback()
        except (SpotifyException, OSError) as exc:
            logger.warning("Error reading playback state: %s", exc)
            return None
        if not playback:
            return None
        return not playback.get("is_playing")
