import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import ModelOutputError
from ..files import FileResolver, ResolvedFile
from ..gemini import TEXT_MODEL, GeminiClient, GenerationResult, Part, search_grounding, text_part, user_message
from ..models import DemoSlidesRequest
from ..schema import parse_model_output, response_schema
from ..sanitize import sanitize_user_input


logger = logging.getLogger(__name__)

DEFAULT_SECTOR = "General"
DEFAULT_LOCATION = "United States"
DEFAULT_UPDATE_MODE = "full"
DEFAULT_STYLE = "modern"


@dataclass
class SlideJob:
    """One demo-slides request plus the collaborators an action needs."""

    req: DemoSlidesRequest
    gemini: GeminiClient
    resolver: FileResolver

    @property
    def topic(self) -> str:
        return sanitize_user_input(self.req.topic or "")

    @property
    def sector(self) -> str:
        return sanitize_user_input(self.req.sector or DEFAULT_SECTOR)

    @property
    def location(self) -> str:
        return sanitize_user_input(self.req.location or DEFAULT_LOCATION)

    @property
    def update_mode(self) -> str:
        return self.req.update_mode or DEFAULT_UPDATE_MODE

    @property
    def style(self) -> str:
        return self.req.style or DEFAULT_STYLE

    async def files(self) -> List[ResolvedFile]:
        return await self.resolver.resolve(self.req.all_files())

    async def generate(
        self,
        result_type: Any,
        parts: List[Part],
        system_instruction: Optional[str] = None,
        search: bool = False,
        max_output_tokens: Optional[int] = None,
    ) -> GenerationResult:
        return await self.gemini.generate(
            TEXT_MODEL,
            [user_message(parts)],
            system_instruction=system_instruction,
            response_schema=response_schema(result_type),
            tools=[search_grounding()] if search else None,
            max_output_tokens=max_output_tokens,
        )


def with_prompt(files: List[ResolvedFile], prompt: str) -> List[Part]:
    return [f.part for f in files] + [text_part(prompt)]


def parse_or_none(text: str, result_type: Any, action: str) -> Optional[Any]:
    try:
        return parse_model_output(text, result_type)
    except ModelOutputError as e:
        logger.warning("%s: unusable model output, using fallback (%s)", action, e)
        return None


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def respond(payload: Dict[str, Any], usage: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    payload["_usage"] = usage
    return payload
