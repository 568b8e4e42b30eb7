import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth import SupabaseAuth, total_tokens
from ..deps import get_auth, get_gemini, require_user
from ..errors import UpstreamError
from ..gemini import TEXT_MODEL, GeminiClient, search_grounding, text_part, user_message
from ..models import JurisdictionRequest
from ..sanitize import sanitize_user_input


logger = logging.getLogger(__name__)

router = APIRouter()

SYSTEM_INSTRUCTION = (
    "You are an expert in regulatory compliance and jurisdictional authority identification. "
    "Use location-based information to identify the correct regulatory bodies. "
    "Be specific about which level of government has authority."
)


def build_prompt(location: str, regulation_type: str = None) -> str:
    subject = sanitize_user_input(regulation_type) if regulation_type else "regulatory compliance"
    return (
        f'For the location "{sanitize_user_input(location)}", identify the local Authority Having Jurisdiction '
        f"(AHJ) for {subject}.\n\n"
        "Provide:\n"
        "1. The primary regulatory authority name\n"
        "2. The jurisdiction level (federal, state, county, city)\n"
        "3. Relevant contact information or website if available\n"
        "4. Any specific local regulations or codes that apply\n\n"
        "Focus on official government bodies that enforce regulations in this area."
    )


@router.post("/jurisdiction-lookup")
async def jurisdiction_lookup(
    req: JurisdictionRequest,
    user_id: str = Depends(require_user),
    gemini: GeminiClient = Depends(get_gemini),
    auth: SupabaseAuth = Depends(get_auth),
):
    if not req.location:
        raise HTTPException(status_code=400, detail="Location is required")

    try:
        result = await gemini.generate(
            TEXT_MODEL,
            [user_message([text_part(build_prompt(req.location, req.regulation_type))])],
            system_instruction=SYSTEM_INSTRUCTION,
            tools=[search_grounding()],
            max_output_tokens=4096,
        )
    except UpstreamError as e:
        logger.error("Jurisdiction lookup error: %s", e)
        raise HTTPException(status_code=500, detail="Jurisdiction lookup failed. Please try again.")

    await auth.track_usage(user_id, "jurisdiction-lookup", TEXT_MODEL, total_tokens(result.usage))

    return {
        "location": req.location,
        "regulationType": req.regulation_type,
        "authority": result.text,
        "_usage": result.usage,
    }
