import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .errors import UpstreamError, upstream_json


logger = logging.getLogger(__name__)

TEXT_MODEL = "gemini-3-flash-preview"
PRO_MODEL = "gemini-3-pro-preview"
IMAGE_MODEL = "gemini-2.5-flash-image"

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
SAFETY_THRESHOLD = "BLOCK_ONLY_HIGH"

FILE_POLL_ATTEMPTS = 30
FILE_POLL_INTERVAL = 1.0

Part = Dict[str, Any]
Message = Dict[str, Any]


def text_part(text: str) -> Part:
    return {"text": text}


def inline_part(mime_type: str, data_b64: str) -> Part:
    return {"inlineData": {"mimeType": mime_type, "data": data_b64}}


def file_part(mime_type: str, file_uri: str) -> Part:
    return {"fileData": {"mimeType": mime_type, "fileUri": file_uri}}


def user_message(parts: List[Part]) -> Message:
    return {"role": "user", "parts": parts}


def search_grounding() -> Dict[str, Any]:
    return {"googleSearch": {}}


def safety_settings() -> List[Dict[str, str]]:
    return [{"category": c, "threshold": SAFETY_THRESHOLD} for c in SAFETY_CATEGORIES]


@dataclass
class GenerationResult:
    text: str
    usage: Optional[Dict[str, Any]] = None


@dataclass
class RemoteFile:
    name: str
    uri: str
    mime_type: str
    state: str


def sum_usage(*usages: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Add token counts from several calls; None when no call reported usage."""
    present = [u for u in usages if u]
    if not present:
        return None
    total: Dict[str, Any] = {}
    for usage in present:
        for key, value in usage.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                total[key] = total.get(key, 0) + value
    return total


class GeminiClient:
    """REST client for the Generative Language API."""

    def __init__(
        self,
        api_key: str,
        http: httpx.AsyncClient,
        base_url: str = "https://generativelanguage.googleapis.com",
        poll_interval: float = FILE_POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_key = api_key
        self._http = http
        self._host = base_url.rstrip("/")
        self._poll_interval = poll_interval
        self._sleep = sleep

    @property
    def api_base(self) -> str:
        return f"{self._host}/v1beta"

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise UpstreamError("GEMINI_API_KEY environment variable is required")
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    async def _post_generate(self, model: str, body: Dict[str, Any]) -> Dict[str, Any]:
        headers = self._headers()
        url = f"{self.api_base}/models/{model}:generateContent"
        try:
            resp = await self._http.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Gemini API request failed: {e}")
        if resp.status_code // 100 != 2:
            logger.error("Gemini API error %s: %s", resp.status_code, resp.text[:2000])
            raise UpstreamError(f"Gemini API error: {resp.status_code}", status_code=resp.status_code)
        data = upstream_json(resp, "Gemini API")
        if data.get("error"):
            message = (data["error"] or {}).get("message", "unknown error")
            raise UpstreamError(f"Gemini API error: {message}")
        return data

    async def generate(
        self,
        model: str,
        messages: List[Message],
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> GenerationResult:
        body: Dict[str, Any] = {"contents": messages, "safetySettings": safety_settings()}
        if system_instruction:
            body["systemInstruction"] = {"parts": [text_part(system_instruction)]}

        generation_config: Dict[str, Any] = {}
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema
        if temperature is not None:
            generation_config["temperature"] = temperature
        if max_output_tokens is not None:
            generation_config["maxOutputTokens"] = max_output_tokens
        if generation_config:
            body["generationConfig"] = generation_config
        if tools:
            body["tools"] = tools

        data = await self._post_generate(model, body)
        candidates = data.get("candidates") or []
        if not candidates:
            raise UpstreamError("No response from Gemini API")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = next((p["text"] for p in parts if p.get("text")), None)
        if not text:
            raise UpstreamError("No text content in Gemini response")
        return GenerationResult(text=text, usage=data.get("usageMetadata"))

    async def generate_image(self, prompt: str, base_image: Optional[str] = None) -> str:
        parts: List[Part] = [text_part(prompt)]
        if base_image:
            data = base_image.split(",", 1)[1] if "," in base_image else base_image
            parts.append(inline_part("image/png", data))
        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {"responseModalities": ["IMAGE", "TEXT"]},
            "safetySettings": safety_settings(),
        }
        data = await self._post_generate(IMAGE_MODEL, body)
        candidates = data.get("candidates") or []
        parts_out = ((candidates[0].get("content") or {}).get("parts") or []) if candidates else []
        for p in parts_out:
            inline = p.get("inlineData") or {}
            if inline.get("data"):
                return f"data:image/png;base64,{inline['data']}"
        text = next((p["text"] for p in parts_out if p.get("text")), None)
        if text:
            raise UpstreamError(f"Image generation failed. Model response: {text}")
        raise UpstreamError("No image generated")

    async def upload_file(self, data: bytes, mime_type: str, display_name: str) -> RemoteFile:
        """Resumable upload to the File API, then wait for the file to become ACTIVE."""
        headers = self._headers()
        start_headers = {
            **headers,
            "X-Goog-Upload-Protocol": "resumable",
            "X-Goog-Upload-Command": "start",
            "X-Goog-Upload-Header-Content-Length": str(len(data)),
            "X-Goog-Upload-Header-Content-Type": mime_type,
        }
        try:
            start = await self._http.post(
                f"{self._host}/upload/v1beta/files",
                json={"file": {"display_name": display_name}},
                headers=start_headers,
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"File upload start failed: {e}")
        upload_url = start.headers.get("x-goog-upload-url")
        if start.status_code // 100 != 2 or not upload_url:
            logger.error("File upload start failed %s: %s", start.status_code, start.text[:2000])
            raise UpstreamError(f"File upload start failed: {start.status_code}", status_code=start.status_code)

        try:
            done = await self._http.post(
                upload_url,
                content=data,
                headers={
                    "x-goog-api-key": self.api_key,
                    "Content-Length": str(len(data)),
                    "X-Goog-Upload-Offset": "0",
                    "X-Goog-Upload-Command": "upload, finalize",
                },
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"File upload failed: {e}")
        if done.status_code // 100 != 2:
            logger.error("File upload failed %s: %s", done.status_code, done.text[:2000])
            raise UpstreamError(f"File upload failed: {done.status_code}", status_code=done.status_code)

        info = upstream_json(done, "File upload").get("file") or {}
        remote = RemoteFile(
            name=info.get("name", ""),
            uri=info.get("uri", ""),
            mime_type=info.get("mimeType") or mime_type,
            state=info.get("state", "PROCESSING"),
        )
        return await self._wait_active(remote)

    async def _wait_active(self, remote: RemoteFile) -> RemoteFile:
        for _ in range(FILE_POLL_ATTEMPTS):
            if remote.state == "ACTIVE":
                return remote
            if remote.state == "FAILED":
                raise UpstreamError(f"File processing failed: {remote.name}")
            await self._sleep(self._poll_interval)
            try:
                resp = await self._http.get(f"{self.api_base}/{remote.name}", headers={"x-goog-api-key": self.api_key})
            except httpx.HTTPError as e:
                logger.warning("File state poll failed for %s: %s", remote.name, e)
                continue
            if resp.status_code // 100 != 2:
                continue
            try:
                remote.state = upstream_json(resp, "File state poll").get("state", remote.state)
            except UpstreamError as e:
                logger.warning("File state poll for %s unreadable: %s", remote.name, e)
        if remote.state == "FAILED":
            raise UpstreamError(f"File processing failed: {remote.name}")
        if remote.state != "ACTIVE":
            logger.warning("File %s still %s after %d polls; using it anyway", remote.name, remote.state, FILE_POLL_ATTEMPTS)
        return remote
