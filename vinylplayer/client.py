"""HTTP client used by the Streamlit shell, plus its view of the auth state."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import requests

from vinylplayer.models import AuthStatus, PreviewSearchResponse


logger = logging.getLogger(__name__)

API_BASE = os.getenv("API_BASE", "http://localhost:3000")
TIMEOUT = 15


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class VinylApiClient:
    def __init__(self, base_url: str = API_BASE, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = self.session.request(method, self.url(path), timeout=TIMEOUT, **kwargs)
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise ApiError("Could not reach the server") from exc
        if not resp.ok:
            try:
                message = resp.json().get("error") or resp.reason
            except ValueError:
                message = resp.reason
            raise ApiError(message, status_code=resp.status_code)
        return resp.json()

    def search_artist(self, name: str) -> Dict[str, Any]:
        return self._request("GET", "/api/spotify/artist", params={"name": name})

    def artist_albums(self, artist_id: str) -> list:
        return self._request("GET", f"/api/spotify/artist/{artist_id}/albums")

    def album(self, album_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/spotify/album/{album_id}")

    def track(self, track_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/spotify/track/{track_id}")

    def find_previews(self, query: str = "hits", limit: int = 50) -> PreviewSearchResponse:
        data = self._request("GET", "/api/spotify/find-previews", params={"query": query, "limit": limit})
        return PreviewSearchResponse(**data)

    def check_auth(self) -> AuthStatus:
        return AuthStatus(**self._request("GET", "/auth/check"))

    def refresh_token(self, refresh_token: Optional[str]) -> Dict[str, Any]:
        return self._request("POST", "/auth/refresh-token", json={"refresh_token": refresh_token})

    def profile(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/profile")

    def logout(self) -> Dict[str, Any]:
        try:
            return self._request("GET", "/auth/logout")
        finally:
            # the copied browser cookies are not matched by the server's deletions
            self.session.cookies.clear()

    def logout_url(self) -> str:
        """Where to send the browser so its own cookies are cleared too."""
        return self.url("/auth/logout?redirect=1")


class AuthMirror:
    """Local copy of ``/auth/check``; the server's cookies are the truth.

    The copy is dropped and re-fetched on every page load (:meth:`sync`) and
    after each refresh or logout.
    """

    def __init__(self, api: VinylApiClient):
        self.api = api
        self.status = AuthStatus(authenticated=False)
        self.profile: Optional[Dict[str, Any]] = None

    @property
    def authenticated(self) -> bool:
        return self.status.authenticated and not self.status.expired

    def invalidate(self) -> None:
        self.status = AuthStatus(authenticated=False)
        self.profile = None

    def sync(self) -> AuthStatus:
        self.invalidate()
        try:
            self.status = self.api.check_auth()
        except ApiError as exc:
            logger.error("Error initializing auth: %s", exc.message)
            return self.status

        if self.status.authenticated and self.status.expired:
            # one refresh attempt; a second expiry means log in again
            self.refresh()
        elif self.status.authenticated:
            self._load_profile()
        return self.status

    def refresh(self) -> bool:
        try:
            self.api.refresh_token(self.status.refresh_token)
        except ApiError as exc:
            logger.error("Token refresh error: %s", exc.message)
            self.invalidate()
            return False

        self.invalidate()
        try:
            self.status = self.api.check_auth()
        except ApiError as exc:
            logger.error("Error re-checking auth after refresh: %s", exc.message)
            return False
        if not self.authenticated:
            self.invalidate()
            return False
        self._load_profile()
        return True

    def logout(self) -> None:
        try:
            self.api.logout()
        except ApiError as exc:
            logger.error("Error logging out: %s", exc.message)
        self.sync()

    def _load_profile(self) -> None:
        try:
            self.profile = self.api.profile()
        except ApiError as exc:
            logger.warning("Could not load profile: %s", exc.message)
            self.profile = None


class RequestGeneration:
    """Tags requests so a slow, superseded response cannot overwrite a newer one."""

    def __init__(self) -> None:
        self._current = 0

    def next(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, ticket: int) -> bool:
        return ticket == self._current
