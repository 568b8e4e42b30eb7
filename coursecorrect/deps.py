"""FastAPI dependencies. Shared clients live on ``app.state`` and are built in the lifespan."""

from typing import Optional

import httpx
from fastapi import Depends, HTTPException, Request

from .auth import SupabaseAuth
from .config import Settings
from .files import FileResolver
from .gemini import GeminiClient
from .monitoring import ServiceAccountTokens
from .ratelimit import RateLimiter
from .storage import ObjectStorage


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_http(request: Request) -> httpx.AsyncClient:
    return request.app.state.http


def get_gemini(request: Request) -> GeminiClient:
    return request.app.state.gemini


def get_auth(request: Request) -> SupabaseAuth:
    return request.app.state.auth


def get_storage(request: Request) -> ObjectStorage:
    return request.app.state.storage


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_metrics_tokens(request: Request) -> Optional[ServiceAccountTokens]:
    return getattr(request.app.state, "metrics_tokens", None)


def get_resolver(
    storage: ObjectStorage = Depends(get_storage),
    gemini: GeminiClient = Depends(get_gemini),
    settings: Settings = Depends(get_app_settings),
) -> FileResolver:
    return FileResolver(storage, gemini, bucket=settings.course_files_bucket)


async def optional_user(request: Request, auth: SupabaseAuth = Depends(get_auth)) -> Optional[str]:
    return await auth.get_user_id(request.headers.get("authorization"))


async def require_user(user_id: Optional[str] = Depends(optional_user)) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id
