from __future__ import annotations

import logging
import secrets
from typing import Callable, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse, Response
from pydantic import BaseModel
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from vinylplayer.config import Settings
from vinylplayer.errors import (
    BadRequestError,
    ExpiredTokenError,
    MissingTokenError,
    RefreshError,
    StateMismatchError,
    TokenExchangeError,
    UpstreamAuthError,
    UpstreamRequestError,
)
from vinylplayer.models import AuthStatus, RefreshResponse, TokenInfo, UserSession
from vinylplayer.spotify_client import get_current_user_profile
from vinylplayer.tokens import Clock, now_ms


logger = logging.getLogger(__name__)

STATE_COOKIE = "spotify_auth_state"
ACCESS_TOKEN_COOKIE = "spotify_access_token"
REFRESH_TOKEN_COOKIE = "spotify_refresh_token"
EXPIRES_AT_COOKIE = "spotify_expires_at"
SESSION_COOKIES = (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, EXPIRES_AT_COOKIE)

REFRESH_TOKEN_MAX_AGE = 30 * 24 * 60 * 60

SCOPES = (
    "user-read-private user-read-email user-read-playback-state "
    "user-modify-playback-state streaming"
)


def get_spotify_oauth(settings: Settings) -> SpotifyOAuth:
    """Create a SpotifyOAuth instance for the authorization-code flow.

    Tokens are never persisted by spotipy itself; they live in the
    browser's cookies.
    """
    return SpotifyOAuth(
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        redirect_uri=settings.redirect_uri,
        scope=SCOPES,
        cache_handler=MemoryCacheHandler(),
        show_dialog=True,
    )


def new_state() -> str:
    return secrets.token_hex(16)


class OAuthSessionManager:
    """Authorization-code login, refresh and cookie-derived session checks."""

    def __init__(
        self,
        oauth_factory: Callable[[], SpotifyOAuth],
        clock: Clock = now_ms,
        state_factory: Callable[[], str] = new_state,
    ):
        self._oauth_factory = oauth_factory
        self._clock = clock
        self._state_factory = state_factory

    def login(self) -> tuple[str, str]:
        """Return ``(state, authorize_url)`` for a new login attempt."""
        state = self._state_factory()
        try:
            return state, self._oauth_factory().get_authorize_url(state=state)
        except SpotifyOauthError as exc:
            # raised by spotipy when CLIENT_ID / CLIENT_SECRET are unset
            logger.error("Cannot build authorization URL: %s", exc)
            raise UpstreamAuthError(detail=str(exc)) from exc

    def exchange(self, code: Optional[str], state: Optional[str], stored_state: Optional[str]) -> TokenInfo:
        if not state or state != stored_state:
            logger.warning("OAuth callback state mismatch")
            raise StateMismatchError()
        if not code:
            raise TokenExchangeError(detail="missing authorization code")

        try:
            token_info = self._oauth_factory().get_access_token(code, as_dict=True, check_cache=False)
        except (SpotifyOauthError, OSError) as exc:
            logger.error("Error during token exchange: %s", exc)
            raise TokenExchangeError(detail=str(exc)) from exc
        if not token_info or not token_info.get("access_token"):
            raise TokenExchangeError(detail="no access token returned")
        return self._stamp(token_info)

    def refresh(self, refresh_token: str) -> TokenInfo:
        """Exchange a refresh token for a new access token.

        The refresh token itself is kept; Spotify does not rotate it here.
        """
        try:
            token_info = self._oauth_factory().refresh_access_token(refresh_token)
        except (SpotifyOauthError, OSError) as exc:
            logger.error("Error refreshing token: %s", exc)
            raise RefreshError(detail=str(exc)) from exc
        if not token_info or not token_info.get("access_token"):
            raise RefreshError(detail="no access token returned")
        token_info = dict(token_info, refresh_token=refresh_token)
        return self._stamp(token_info)

    def check(self, session: UserSession) -> AuthStatus:
        if not session.access_token or not session.refresh_token:
            return AuthStatus(authenticated=False)
        expired = self._clock() > (session.expires_at_ms or 0)
        return AuthStatus(
            authenticated=True,
            expired=expired,
            access_token=None if expired else session.access_token,
            refresh_token=session.refresh_token,
        )

    def _stamp(self, token_info: dict) -> TokenInfo:
        expires_in = int(token_info.get("expires_in") or 3600)
        return TokenInfo(
            access_token=token_info["access_token"],
            refresh_token=token_info.get("refresh_token"),
            expires_in=expires_in,
            expires_at_ms=self._clock() + expires_in * 1000,
        )


def session_from_request(request: Request) -> UserSession:
    cookies = request.cookies
    try:
        expires_at_ms = int(cookies.get(EXPIRES_AT_COOKIE) or 0)
    except ValueError:
        expires_at_ms = 0
    return UserSession(
        access_token=cookies.get(ACCESS_TOKEN_COOKIE),
        refresh_token=cookies.get(REFRESH_TOKEN_COOKIE),
        expires_at_ms=expires_at_ms,
        csrf_state=cookies.get(STATE_COOKIE),
    )


def set_session_cookies(response: Response, token_info: TokenInfo) -> None:
    response.set_cookie(ACCESS_TOKEN_COOKIE, token_info.access_token, max_age=token_info.expires_in)
    response.set_cookie(EXPIRES_AT_COOKIE, str(token_info.expires_at_ms), max_age=token_info.expires_in)
    if token_info.refresh_token:
        response.set_cookie(REFRESH_TOKEN_COOKIE, token_info.refresh_token, max_age=REFRESH_TOKEN_MAX_AGE)


def clear_session_cookies(response: Response) -> None:
    for name in SESSION_COOKIES:
        response.delete_cookie(name)


def error_redirect(error: str) -> RedirectResponse:
    return RedirectResponse("/#" + urlencode({"error": error}), status_code=302)


def get_session_manager(request: Request) -> OAuthSessionManager:
    return request.app.state.session_manager


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


router = APIRouter(prefix="/auth")


class RefreshRequest(BaseModel):
    refresh_token: str | None = None


@router.get("/login")
def login(manager: OAuthSessionManager = Depends(get_session_manager)) -> RedirectResponse:
    """Redirect the user to Spotify's authorization URL."""
    state, auth_url = manager.login()
    response = RedirectResponse(auth_url, status_code=302)
    response.set_cookie(STATE_COOKIE, state)
    return response


@router.get("/callback")
def callback(
    request: Request,
    manager: OAuthSessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings_dep),
) -> RedirectResponse:
    """Handle Spotify's redirect: verify state, exchange the code, set cookies.

    Also mounted at ``/callback`` since that is the default redirect URI.
    """
    params = request.query_params
    if params.get("error"):
        logger.warning("Authorization denied: %s", params["error"])
        return error_redirect(params["error"])

    try:
        token_info = manager.exchange(
            params.get("code"),
            params.get("state"),
            request.cookies.get(STATE_COOKIE),
        )
    except StateMismatchError:
        response = error_redirect("state_mismatch")
        response.delete_cookie(STATE_COOKIE)
        return response
    except TokenExchangeError:
        response = error_redirect("invalid_token")
        response.delete_cookie(STATE_COOKIE)
        return response

    response = RedirectResponse(settings.frontend_url or "/", status_code=302)
    response.delete_cookie(STATE_COOKIE)
    set_session_cookies(response, token_info)
    return response


@router.post("/refresh-token", response_model=RefreshResponse)
def refresh_token(
    request: Request,
    response: Response,
    body: RefreshRequest | None = None,
    manager: OAuthSessionManager = Depends(get_session_manager),
) -> RefreshResponse:
    token = (body.refresh_token if body else None) or request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not token:
        raise BadRequestError("Refresh token is required")

    token_info = manager.refresh(token)
    response.set_cookie(ACCESS_TOKEN_COOKIE, token_info.access_token, max_age=token_info.expires_in)
    response.set_cookie(EXPIRES_AT_COOKIE, str(token_info.expires_at_ms), max_age=token_info.expires_in)
    return RefreshResponse(
        access_token=token_info.access_token,
        expires_in=token_info.expires_in,
        expires_at=token_info.expires_at_ms,
    )


@router.get("/profile")
def profile(request: Request) -> dict:
    """Return the logged-in user's Spotify profile."""
    access_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not access_token:
        raise MissingTokenError()
    try:
        return get_current_user_profile(access_token)
    except SpotifyException as exc:
        logger.error("Error getting user profile: %s", exc)
        if exc.http_status == 401:
            raise ExpiredTokenError() from exc
        raise UpstreamRequestError("Failed to get user profile", detail=str(exc)) from exc


@router.get("/check", response_model=AuthStatus, response_model_exclude_none=True)
def check(request: Request, manager: OAuthSessionManager = Depends(get_session_manager)) -> AuthStatus:
    return manager.check(session_from_request(request))


@router.get("/logout", response_model=None)
def logout(
    response: Response,
    redirect: bool = False,
    settings: Settings = Depends(get_settings_dep),
) -> dict | RedirectResponse:
    """Clear the session cookies.

    With ``?redirect=1`` the browser itself is sent back to the UI, so the
    cookies are dropped from the browser and not just from an API client.
    """
    if redirect:
        redirect_response = RedirectResponse(settings.frontend_url or "/", status_code=302)
        clear_session_cookies(redirect_response)
        return redirect_response
    clear_session_cookies(response)
    return {"success": True}
