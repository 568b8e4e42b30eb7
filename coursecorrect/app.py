import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from mangum import Mangum
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import SupabaseAuth
from .config import Settings, get_settings
from .cors import EdgeCORSMiddleware, resolve_origin
from .errors import ModelOutputError, UpstreamError
from .gemini import PRO_MODEL, TEXT_MODEL, GeminiClient
from .handlers import analyze_course, cloud_metrics, demo_slides, generate_asset, jurisdiction
from .handlers import regulatory_update, visual_transform
from .models import CamelModel
from .monitoring import ServiceAccountTokens
from .ratelimit import RateLimiter
from .storage import ObjectStorage


logger = logging.getLogger(__name__)

HTTP_TIMEOUT = httpx.Timeout(120.0, connect=10.0)


def build_metrics_tokens(settings: Settings) -> Optional[ServiceAccountTokens]:
    if not settings.google_service_account_key:
        return None
    try:
        return ServiceAccountTokens(settings.google_service_account_key)
    except UpstreamError as e:
        logger.error("Cloud metrics disabled: %s", e)
        return None


class HealthResponse(CamelModel):
    status: str
    text_model: str
    pro_model: str
    limits: dict


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; generation calls will fail")

    http = httpx.AsyncClient(timeout=HTTP_TIMEOUT)
    app.state.http = http
    app.state.gemini = GeminiClient(settings.gemini_api_key, http, base_url=settings.gemini_base_url)
    app.state.auth = SupabaseAuth(settings, http)
    app.state.storage = ObjectStorage.from_settings(settings)
    app.state.rate_limiter = RateLimiter()
    app.state.metrics_tokens = build_metrics_tokens(settings)
    sweeper = asyncio.create_task(app.state.rate_limiter.run_sweeper())
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await http.aclose()


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        logger.info("Rejected request to %s: %s", request.url.path, exc.errors())
        return _error(400, "Invalid request body")

    @app.exception_handler(ModelOutputError)
    async def model_output_error(request: Request, exc: ModelOutputError):
        logger.error("Unusable model output on %s: %s", request.url.path, exc)
        return _error(502, "The model returned an invalid response. Please try again.")

    @app.exception_handler(UpstreamError)
    async def upstream_error(request: Request, exc: UpstreamError):
        logger.error("Upstream failure on %s: %s", request.url.path, exc)
        return _error(500, "Request failed. Please try again.")

    # Runs outside the CORS middleware, so the allow-origin header is added here.
    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        response = _error(500, "Internal server error")
        origin = resolve_origin(request.headers.get("origin"), request.app.state.settings)
        if origin:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
        return response


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="[%(asctime)s] %(levelname)s - %(name)s - %(message)s",
    )

    app = FastAPI(title="CourseCorrect API", lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(EdgeCORSMiddleware, settings=settings)
    install_error_handlers(app)

    for module in (
        analyze_course,
        cloud_metrics,
        demo_slides,
        generate_asset,
        jurisdiction,
        regulatory_update,
        visual_transform,
    ):
        app.include_router(module.router)

    @app.get("/health", response_model=HealthResponse, response_model_by_alias=True)
    def health():
        return HealthResponse(
            status="ok",
            text_model=TEXT_MODEL,
            pro_model=PRO_MODEL,
            limits={"anonDaily": settings.anon_daily_limit, "authDaily": settings.auth_daily_limit},
        )

    @app.options("/{path:path}")
    def options(path: str):
        return PlainTextResponse("ok")

    return app


app = create_app()
handler = Mangum(app)
