from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()


DEFAULT_REDIRECT_URI = "http://localhost:3000/callback"
# Known-good 30s clip, returned when no catalog source yields a preview.
DEFAULT_PREVIEW_FALLBACK_URL = "https://p.scdn.co/mp3-preview/6902e7da51d2f17e5369d57dadf8ce7d2a123f99"


class Settings(BaseModel):
    client_id: str | None = Field(None, description="Spotify application client id")
    client_secret: str | None = Field(None, description="Spotify application client secret")
    redirect_uri: str = DEFAULT_REDIRECT_URI
    port: int = 3000
    frontend_url: str | None = None
    market: str = "US"
    preview_fallback_url: str = DEFAULT_PREVIEW_FALLBACK_URL
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Build settings from the process environment.

    Uses environment variables:
    - CLIENT_ID / CLIENT_SECRET
    - REDIRECT_URI (defaults to http://localhost:3000/callback)
    - PORT (defaults to 3000)
    - FRONTEND_URL, SPOTIFY_MARKET, PREVIEW_FALLBACK_URL, LOG_LEVEL
    """
    return Settings(
        client_id=os.getenv("CLIENT_ID"),
        client_secret=os.getenv("CLIENT_SECRET"),
        redirect_uri=os.getenv("REDIRECT_URI") or DEFAULT_REDIRECT_URI,
        port=int(os.getenv("PORT") or 3000),
        frontend_url=os.getenv("FRONTEND_URL") or None,
        market=os.getenv("SPOTIFY_MARKET") or "US",
        preview_fallback_url=os.getenv("PREVIEW_FALLBACK_URL") or DEFAULT_PREVIEW_FALLBACK_URL,
        log_level=os.getenv("LOG_LEVEL") or "INFO",
    )
