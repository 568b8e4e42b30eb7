"""Shared fakes and fixtures for the CourseCorrect API tests."""

import base64
import io
import json
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from coursecorrect.app import create_app
from coursecorrect.config import load_settings
from coursecorrect.deps import get_auth, get_gemini, get_rate_limiter, get_storage
from coursecorrect.errors import StorageError, UpstreamError
from coursecorrect.gemini import GenerationResult, RemoteFile
from coursecorrect.ratelimit import RateLimiter
from coursecorrect.storage import StoredObject, mime_type_for


USAGE = {"promptTokenCount": 10, "candidatesTokenCount": 5, "totalTokenCount": 15}


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGemini:
    """Replays queued replies. A reply is a str, a dict (sent as JSON), a GenerationResult or an exception."""

    def __init__(self):
        self.replies: List[Any] = []
        self.calls: List[Dict[str, Any]] = []
        self.images: List[Any] = []
        self.image_calls: List[Dict[str, Any]] = []
        self.uploads: List[Dict[str, Any]] = []

    def queue(self, *replies: Any) -> None:
        self.replies.extend(replies)

    async def generate(self, model: str, messages: List[dict], **kwargs) -> GenerationResult:
        self.calls.append({"model": model, "messages": messages, **kwargs})
        if not self.replies:
            raise AssertionError("FakeGemini has no reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, GenerationResult):
            return reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return GenerationResult(text=reply, usage=dict(USAGE))

    async def generate_image(self, prompt: str, base_image: Optional[str] = None) -> str:
        self.image_calls.append({"prompt": prompt, "base_image": base_image})
        reply = self.images.pop(0) if self.images else "data:image/png;base64," + base64.b64encode(b"png").decode()
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def upload_file(self, data: bytes, mime_type: str, display_name: str) -> RemoteFile:
        self.uploads.append({"size": len(data), "mime_type": mime_type, "display_name": display_name})
        name = f"files/{len(self.uploads)}"
        return RemoteFile(name=name, uri=f"https://files.example/{name}", mime_type=mime_type, state="ACTIVE")

    def prompt_text(self, index: int = -1) -> str:
        parts = self.calls[index]["messages"][0]["parts"]
        return "\n".join(p["text"] for p in parts if "text" in p)


class FakeAuth:
    def __init__(self, users: Optional[Dict[str, str]] = None):
        self.users = users or {"Bearer good-token": "user-1"}
        self.lookups: List[Optional[str]] = []
        self.usage: List[Dict[str, Any]] = []
        self.rows: List[Dict[str, Any]] = []

    async def get_user_id(self, authorization: Optional[str]) -> Optional[str]:
        self.lookups.append(authorization)
        return self.users.get(authorization or "")

    async def insert_row(self, table: str, row: dict) -> bool:
        self.rows.append({"table": table, **row})
        return True

    async def track_usage(self, user_id: str, endpoint: str, model: str, tokens_used: Optional[int] = None) -> bool:
        self.usage.append({"user_id": user_id, "endpoint": endpoint, "model": model, "tokens_used": tokens_used})
        return True


class FakeStorage:
    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.uploaded: List[Dict[str, Any]] = []
        self.fail_uploads = False

    async def download(self, bucket: str, path: str) -> StoredObject:
        data = self.objects.get(f"{bucket}/{path}")
        if not data:
            raise StorageError(f"No data returned for {path}")
        return StoredObject(data=data, mime_type=mime_type_for(path))

    async def upload(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        if self.fail_uploads:
            raise StorageError(f"Storage upload failed: {key}")
        self.uploaded.append({"bucket": bucket, "key": key, "size": len(data), "content_type": content_type})

    def public_url(self, bucket: str, key: str) -> str:
        return f"https://project.supabase.co/storage/v1/object/public/{bucket}/{key}"


def make_pdf(pages: int = 1) -> bytes:
    from pypdf import PdfWriter

    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def settings():
    return load_settings(
        {
            "SUPABASE_URL": "https://project.supabase.co",
            "SUPABASE_ANON_KEY": "anon-key",
            "SUPABASE_SERVICE_ROLE_KEY": "service-key",
            "GEMINI_API_KEY": "test-key",
            "ALLOWED_ORIGIN": "https://coursecorrect.example",
            "RATE_LIMIT_BYPASS_KEY": "let-me-in",
            "ANON_DAILY_LIMIT": "3",
            "AUTH_DAILY_LIMIT": "5",
        }
    )


@pytest.fixture
def gemini():
    return FakeGemini()


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(clock=clock)


@pytest.fixture
def app(settings, gemini, auth, storage, limiter):
    app = create_app(settings)
    app.dependency_overrides[get_gemini] = lambda: gemini
    app.dependency_overrides[get_auth] = lambda: auth
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def authed():
    return {"Authorization": "Bearer good-token"}


def upstream_failure(message: str = "Gemini API error: 503") -> UpstreamError:
    return UpstreamError(message, status_code=503)
