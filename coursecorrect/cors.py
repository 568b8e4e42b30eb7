import logging
from typing import Optional

from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import Headers
from starlette.responses import PlainTextResponse, Response

from .config import Settings, allowed_origins


logger = logging.getLogger(__name__)

ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type", "x-bypass-key"]
ALLOW_METHODS = ["POST", "OPTIONS"]


def resolve_origin(origin: Optional[str], settings: Settings) -> Optional[str]:
    """Origin to reflect, or None when the request origin is not allowed."""
    if not origin:
        return None
    if origin in allowed_origins(settings):
        return origin
    if not settings.allowed_origin:
        logger.warning("CORS: No ALLOWED_ORIGIN set, allowing origin: %s", origin)
        return origin
    return None


class EdgeCORSMiddleware(CORSMiddleware):
    """Starlette CORS with the allow-list rule above.

    Reflected origins always come with ``Vary: Origin``. Preflights are always
    answered ``200 ok``; a disallowed origin simply gets no allow-origin header
    and the browser blocks the real request.
    """

    def __init__(self, app, settings: Settings):
        super().__init__(
            app,
            allow_origins=allowed_origins(settings),
            allow_methods=ALLOW_METHODS,
            allow_headers=ALLOW_HEADERS,
            allow_credentials=False,
        )
        self.settings = settings

    def is_allowed_origin(self, origin: str) -> bool:
        return resolve_origin(origin, self.settings) is not None

    def preflight_response(self, request_headers: Headers) -> Response:
        headers = {
            "Access-Control-Allow-Methods": ", ".join(ALLOW_METHODS),
            "Access-Control-Allow-Headers": ", ".join(ALLOW_HEADERS),
            "Vary": "Origin",
        }
        origin = resolve_origin(request_headers.get("origin"), self.settings)
        if origin:
            headers["Access-Control-Allow-Origin"] = origin
        return PlainTextResponse("ok", status_code=200, headers=headers)
