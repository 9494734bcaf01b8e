from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from vinylplayer.errors import BadRequestError
from vinylplayer.models import AppTokenResponse, PreviewSearchResponse
from vinylplayer.previews import PreviewFinder
from vinylplayer.spotify_client import CatalogGateway
from vinylplayer.tokens import AppTokenCache


def get_token_cache(request: Request) -> AppTokenCache:
    return request.app.state.token_cache


def get_gateway(request: Request) -> CatalogGateway:
    return request.app.state.gateway


def get_preview_finder(request: Request) -> PreviewFinder:
    return request.app.state.preview_finder


router = APIRouter(prefix="/api/spotify")


@router.get("/token", response_model=AppTokenResponse)
def read_token(cache: AppTokenCache = Depends(get_token_cache)) -> AppTokenResponse:
    """App token plus a hint of how long it stays usable."""
    token = cache.get_token()
    return AppTokenResponse(token=token, expiresIn=cache.remaining_seconds())


@router.get("/artist")
def search_artist(name: str | None = None, gateway: CatalogGateway = Depends(get_gateway)) -> dict:
    if not name or not name.strip():
        raise BadRequestError("Artist name is required")
    return gateway.search_artist(name.strip())


@router.get("/artist/{artist_id}/albums")
def artist_albums(artist_id: str, gateway: CatalogGateway = Depends(get_gateway)) -> list:
    return gateway.get_artist_albums(artist_id)


@router.get("/album/{album_id}")
def album_details(album_id: str, gateway: CatalogGateway = Depends(get_gateway)) -> dict:
    return gateway.get_album_details(album_id)


@router.get("/track/{track_id}")
def track_details(track_id: str, gateway: CatalogGateway = Depends(get_gateway)) -> dict:
    return gateway.get_track(track_id)


@router.get("/find-previews", response_model=PreviewSearchResponse, response_model_exclude_none=True)
def find_previews(
    query: str = "hits",
    type: str = "track",
    limit: int = Query(50, ge=1),
    finder: PreviewFinder = Depends(get_preview_finder),
) -> PreviewSearchResponse:
    return finder.find(query=query, type_=type, limit=limit)
