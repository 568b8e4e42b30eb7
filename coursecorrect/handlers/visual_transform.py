import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..auth import SupabaseAuth, total_tokens
from ..deps import get_auth, get_gemini, require_user
from ..errors import ModelOutputError, UpstreamError
from ..gemini import TEXT_MODEL, GeminiClient, text_part, user_message
from ..models import VisualTransformRequest
from ..results import VisualTransformation
from ..sanitize import sanitize_user_input
from ..schema import parse_model_output, response_schema


logger = logging.getLogger(__name__)

router = APIRouter()

TRANSFORMATION_GUIDE = """Available transformation types:
- accordion: Collapsible sections for detailed content
- timeline: Chronological or sequential information
- flip_card: Key terms with definitions, Q&A pairs
- infographic: Data visualization, statistics, comparisons
- tabbed_content: Related topics in organized tabs
- process_diagram: Step-by-step procedures
- comparison_table: Side-by-side comparisons
- interactive_quiz: Knowledge check questions"""


def build_system_prompt(theme: str = None) -> str:
    lines = [
        "You are an expert instructional designer specializing in eLearning engagement.",
        "Your task is to identify text-heavy sections and suggest interactive transformations.",
        "",
        TRANSFORMATION_GUIDE,
        "",
    ]
    if theme:
        lines += [f"Visual Theme: {sanitize_user_input(theme)}", ""]
    lines += [
        "For each transformation:",
        "1. Identify a specific section that would benefit",
        "2. Explain why the suggested format improves engagement",
        "3. Provide an image prompt for AI-generated visuals",
        "4. Structure the content for the new format",
    ]
    return "\n".join(lines)


@router.post("/visual-transform")
async def visual_transform(
    req: VisualTransformRequest,
    user_id: str = Depends(require_user),
    gemini: GeminiClient = Depends(get_gemini),
    auth: SupabaseAuth = Depends(get_auth),
):
    if not req.content:
        raise HTTPException(status_code=400, detail="Content is required")

    prompt = f"Analyze this content and suggest visual transformations:\n\n{req.content}"
    try:
        result = await gemini.generate(
            TEXT_MODEL,
            [user_message([text_part(prompt)])],
            system_instruction=build_system_prompt(req.theme),
            response_schema=response_schema(List[VisualTransformation]),
            max_output_tokens=8192,
        )
    except UpstreamError as e:
        logger.error("Visual transformation error: %s", e)
        raise HTTPException(status_code=500, detail="Visual transformation failed. Please try again.")

    await auth.track_usage(user_id, "visual-transform", TEXT_MODEL, total_tokens(result.usage))

    try:
        transformations = [t.dump() for t in parse_model_output(result.text, List[VisualTransformation])]
    except ModelOutputError as e:
        logger.warning("Visual transform output unparseable: %s", e)
        transformations = []

    return {"transformations": transformations, "_usage": result.usage}
