"""Environment-driven settings for the edge handlers."""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Mapping, Optional

from .errors import ConfigurationError


DEV_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
)


@dataclass(frozen=True)
class Settings:
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    storage_endpoint: str = ""
    storage_region: str = "us-east-1"
    storage_access_key_id: str = ""
    storage_secret_access_key: str = ""
    course_files_bucket: str = "course-files"
    generated_assets_bucket: str = "generated-assets"
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    allowed_origin: Optional[str] = None
    rate_limit_bypass_key: Optional[str] = None
    anon_daily_limit: int = 10
    auth_daily_limit: int = 50
    google_service_account_key: Optional[str] = None
    log_level: str = "INFO"


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _optional(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = (environ.get(name) or "").strip()
    return value or None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    supabase_url = (env.get("SUPABASE_URL") or "").rstrip("/")
    endpoint = env.get("STORAGE_S3_ENDPOINT") or (f"{supabase_url}/storage/v1/s3" if supabase_url else "")
    return Settings(
        supabase_url=supabase_url,
        supabase_anon_key=env.get("SUPABASE_ANON_KEY", ""),
        supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY", ""),
        storage_endpoint=endpoint,
        storage_region=env.get("STORAGE_S3_REGION") or "us-east-1",
        storage_access_key_id=env.get("STORAGE_S3_ACCESS_KEY_ID", ""),
        storage_secret_access_key=env.get("STORAGE_S3_SECRET_ACCESS_KEY", ""),
        course_files_bucket=env.get("COURSE_FILES_BUCKET") or "course-files",
        generated_assets_bucket=env.get("GENERATED_ASSETS_BUCKET") or "generated-assets",
        gemini_api_key=env.get("GEMINI_API_KEY", ""),
        gemini_base_url=(env.get("GEMINI_BASE_URL") or "https://generativelanguage.googleapis.com").rstrip("/"),
        allowed_origin=_optional(env, "ALLOWED_ORIGIN"),
        rate_limit_bypass_key=_optional(env, "RATE_LIMIT_BYPASS_KEY"),
        anon_daily_limit=_int(env, "ANON_DAILY_LIMIT", 10),
        auth_daily_limit=_int(env, "AUTH_DAILY_LIMIT", 50),
        google_service_account_key=_optional(env, "GOOGLE_SERVICE_ACCOUNT_KEY"),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def allowed_origins(settings: Settings) -> List[str]:
    """Production origin first (when configured), then the local dev origins."""
    origins = [settings.allowed_origin] if settings.allowed_origin else []
    origins.extend(DEV_ORIGINS)
    return origins
