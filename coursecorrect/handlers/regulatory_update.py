import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..auth import SupabaseAuth, total_tokens
from ..deps import get_auth, get_gemini, require_user
from ..errors import ModelOutputError, UpstreamError
from ..gemini import TEXT_MODEL, GeminiClient, search_grounding, text_part, user_message
from ..models import RegulatoryUpdateRequest
from ..results import RegulatoryUpdate
from ..sanitize import sanitize_user_input
from ..schema import parse_model_output, response_schema


logger = logging.getLogger(__name__)

router = APIRouter()


def build_system_prompt(req: RegulatoryUpdateRequest) -> str:
    context = []
    if req.domain_context:
        context.append(f"Industry Context: {sanitize_user_input(req.domain_context)}")
    if req.location:
        context.append(f"Geographic Jurisdiction: {sanitize_user_input(req.location)}")
    return (
        "You are a regulatory compliance specialist. Your task is to:\n"
        "1. Identify any facts, statistics, regulations, or standards mentioned in the content\n"
        "2. Use Google Search to verify if they are current and accurate\n"
        "3. For any outdated or incorrect information, provide the updated version with citation\n\n"
        + ("\n".join(context) + "\n\n" if context else "")
        + "For each issue found, provide:\n"
        "- The original text that needs updating\n"
        "- The corrected/updated text\n"
        '- A specific citation (e.g., "OSHA 1910.134(c)(2) - Updated Jan 2024")\n'
        "- The reason for the change\n"
        "- A source URL if available\n\n"
        "Be thorough and cite specific regulation numbers, publication dates, and official sources."
    )


def fallback_updates(raw_text: str) -> List[dict]:
    return [{"id": "1", "originalText": "", "updatedText": raw_text, "citation": "", "reason": "Analysis result"}]


@router.post("/regulatory-update")
async def regulatory_update(
    req: RegulatoryUpdateRequest,
    user_id: str = Depends(require_user),
    gemini: GeminiClient = Depends(get_gemini),
    auth: SupabaseAuth = Depends(get_auth),
):
    if not req.content:
        raise HTTPException(status_code=400, detail="Content is required")

    prompt = f"Review this content for regulatory accuracy and provide updates:\n\n{req.content}"
    try:
        result = await gemini.generate(
            TEXT_MODEL,
            [user_message([text_part(prompt)])],
            system_instruction=build_system_prompt(req),
            response_schema=response_schema(List[RegulatoryUpdate]),
            tools=[search_grounding()],
            max_output_tokens=8192,
        )
    except UpstreamError as e:
        logger.error("Regulatory update error: %s", e)
        raise HTTPException(status_code=500, detail="Regulatory update failed. Please try again.")

    await auth.track_usage(user_id, "regulatory-update", TEXT_MODEL, total_tokens(result.usage))

    try:
        updates = [u.dump() for u in parse_model_output(result.text, List[RegulatoryUpdate])]
    except ModelOutputError as e:
        logger.warning("Regulatory update output unparseable, returning raw text: %s", e)
        updates = fallback_updates(result.text)

    return {"updates": updates, "_usage": result.usage}
