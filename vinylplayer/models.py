from __future__ import annotations

from pydantic import BaseModel, Field


class AppToken(BaseModel):
    value: str = Field(..., description="Client-credentials access token")
    expires_at_ms: int = Field(..., description="Epoch milliseconds after which the token is stale")


class TokenInfo(BaseModel):
    """Token endpoint payload, as returned by spotipy."""

    access_token: str = Field(..., description="Spotify access token")
    refresh_token: str | None = Field(None, description="Spotify refresh token")
    expires_in: int = Field(3600, description="Lifetime in seconds")
    expires_at_ms: int | None = Field(None, description="Epoch milliseconds when the token expires")


class UserSession(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at_ms: int | None = None
    csrf_state: str | None = None


class AppTokenResponse(BaseModel):
    token: str
    expiresIn: int


class RefreshResponse(BaseModel):
    access_token: str
    expires_in: int
    expires_at: int


class AuthStatus(BaseModel):
    authenticated: bool
    expired: bool | None = None
    access_token: str | None = None
    refresh_token: str | None = None


class Track(BaseModel):
    id: str | None = None
    name: str = "Unknown Track"
    duration_ms: int | None = None
    preview_url: str | None = None
    uri: str | None = None


class PreviewTrack(BaseModel):
    id: str | None = None
    name: str | None = None
    preview_url: str


class PreviewSearchResult(BaseModel):
    id: str | None = None
    name: str | None = None
    artist: str | None = None
    image: str | None = None
    type: str | None = None
    tracks_count: int = 0
    tracks_with_previews: int = 0
    tracks: list[PreviewTrack] = Field(default_factory=list)


class PreviewSearchResponse(BaseModel):
    query: str
    type: str
    total_results: int
    results: list[PreviewSearchResult]
