from __future__ import annotations

import logging
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from spotipy.oauth2 import SpotifyOAuth

from vinylplayer import auth, catalog
from vinylplayer.config import Settings, get_settings
from vinylplayer.errors import VinylPlayerError
from vinylplayer.logging_config import setup_logging
from vinylplayer.previews import PreviewFinder
from vinylplayer.spotify_client import CatalogGateway, ClientFactory, create_spotify_client
from vinylplayer.tokens import AppTokenCache, Clock, TokenFetcher, client_credentials_fetcher, now_ms


logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    token_fetcher: Optional[TokenFetcher] = None,
    oauth_factory: Optional[Callable[[], SpotifyOAuth]] = None,
    client_factory: ClientFactory = create_spotify_client,
    clock: Clock = now_ms,
) -> FastAPI:
    """Build the API app.

    The collaborators that talk to Spotify can be swapped out, which is how
    the tests run without network access.
    """
    settings = settings or get_settings()
    app = FastAPI(title="Virtual Vinyl Player API", version="0.1.0")

    token_cache = AppTokenCache(token_fetcher or client_credentials_fetcher(settings), clock=clock)
    gateway = CatalogGateway(token_cache.get_token, client_factory=client_factory, market=settings.market)
    app.state.settings = settings
    app.state.token_cache = token_cache
    app.state.gateway = gateway
    app.state.preview_finder = PreviewFinder(gateway, fallback_url=settings.preview_fallback_url)
    app.state.session_manager = auth.OAuthSessionManager(
        oauth_factory or (lambda: auth.get_spotify_oauth(settings)),
        clock=clock,
    )

    # Allow a configured frontend origin (e.g. the Streamlit shell) to call the API
    allowed_origins = [settings.frontend_url] if settings.frontend_url else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(VinylPlayerError)
    async def vinyl_player_error_handler(request: Request, exc: VinylPlayerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.detail)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    app.include_router(auth.router)
    app.include_router(catalog.router)
    # default REDIRECT_URI points at the root-level callback
    app.add_api_route("/callback", auth.callback, methods=["GET"])

    @app.get("/")
    def index() -> dict:
        return {"name": "Virtual Vinyl Player", "status": "ok"}

    return app


def run() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Server running on port %s", settings.port)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
