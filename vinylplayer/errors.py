from __future__ import annotations


class VinylPlayerError(Exception):
    """Base error. ``message`` is safe to show to the browser."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None, *, detail: str | None = None):
        self.message = message or self.message
        # upstream provider text; logged, never returned to clients
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class UpstreamAuthError(VinylPlayerError):
    """The token endpoint refused or failed a client-credentials request."""

    message = "Failed to obtain Spotify access token"


class StateMismatchError(VinylPlayerError):
    status_code = 400
    message = "state_mismatch"


class TokenExchangeError(VinylPlayerError):
    """Authorization code could not be exchanged for tokens."""

    message = "invalid_token"


class RefreshError(VinylPlayerError):
    message = "Failed to refresh token"


class MissingTokenError(VinylPlayerError):
    status_code = 401
    message = "No access token"


class ExpiredTokenError(VinylPlayerError):
    status_code = 401
    message = "Access token expired"

    def to_dict(self) -> dict:
        return {"error": self.message, "needsRefresh": True}


class NotFoundError(VinylPlayerError):
    status_code = 404
    message = "Not found"


class BadRequestError(VinylPlayerError):
    status_code = 400
    message = "Bad request"


class UpstreamRequestError(VinylPlayerError):
    message = "Spotify request failed"
