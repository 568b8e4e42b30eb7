import logging
from typing import Optional

import httpx

from .config import Settings


logger = logging.getLogger(__name__)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class SupabaseAuth:
    """User lookup and usage rows against the backend's REST endpoints."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient):
        self.settings = settings
        self._http = http

    async def get_user_id(self, authorization: Optional[str]) -> Optional[str]:
        token = bearer_token(authorization)
        if not token or not self.settings.supabase_url:
            return None
        try:
            resp = await self._http.get(
                f"{self.settings.supabase_url}/auth/v1/user",
                headers={"apikey": self.settings.supabase_anon_key, "Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.warning("Auth lookup failed: %s", e)
            return None
        if resp.status_code != 200:
            return None
        try:
            user_id = (resp.json() or {}).get("id")
        except ValueError:
            return None
        return str(user_id) if user_id else None

    async def insert_row(self, table: str, row: dict) -> bool:
        key = self.settings.supabase_service_role_key
        try:
            resp = await self._http.post(
                f"{self.settings.supabase_url}/rest/v1/{table}",
                json=row,
                headers={
                    "apikey": key,
                    "Authorization": f"Bearer {key}",
                    "Prefer": "return=minimal",
                },
            )
        except httpx.HTTPError as e:
            logger.warning("Insert into %s failed: %s", table, e)
            return False
        if resp.status_code // 100 != 2:
            logger.warning("Insert into %s failed: %s %s", table, resp.status_code, resp.text[:500])
            return False
        return True

    async def track_usage(self, user_id: str, endpoint: str, model: str, tokens_used: Optional[int] = None) -> bool:
        return await self.insert_row(
            "api_usage",
            {"user_id": user_id, "endpoint": endpoint, "model": model, "tokens_used": tokens_used},
        )


def total_tokens(usage: Optional[dict]) -> Optional[int]:
    if not usage:
        return None
    value = usage.get("totalTokenCount")
    return int(value) if isinstance(value, (int, float)) else None
