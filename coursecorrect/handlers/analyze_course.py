import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth import SupabaseAuth, total_tokens
from ..deps import get_auth, get_gemini, get_resolver, require_user
from ..errors import ModelOutputError, UpstreamError
from ..files import FileResolver
from ..gemini import PRO_MODEL, GeminiClient, text_part, user_message
from ..models import AnalyzeCourseRequest
from ..results import CourseAnalysis
from ..sanitize import sanitize_user_input
from ..schema import parse_model_output, response_schema


logger = logging.getLogger(__name__)

router = APIRouter()

ENDPOINT = "analyze-course"


def build_system_prompt(req: AnalyzeCourseRequest) -> str:
    config = req.config
    context = []
    if config and config.target_audience:
        context.append(f"Target Audience: {sanitize_user_input(config.target_audience)}")
    if config and config.standards_context:
        context.append(f"Industry Standards: {sanitize_user_input(config.standards_context)}")
    if config and config.location:
        context.append(f"Geographic Focus: {sanitize_user_input(config.location)}")
    if config and config.goal:
        context.append(f"Update Goal: {sanitize_user_input(config.goal)}")
    return (
        "You are an expert course auditor specializing in regulatory compliance and instructional design.\n"
        "Analyze the provided course content for:\n"
        "1. FRESHNESS: Are facts, regulations, and statistics current? Identify outdated information.\n"
        "2. ENGAGEMENT: Is the content visually engaging? Identify text-heavy sections that could be interactive.\n\n"
        + ("\n".join(context) + "\n\n" if context else "")
        + "Be specific about issues and provide actionable feedback."
    )


def _attachable(mime_type: str, part: dict) -> bool:
    if "text" in part:
        return True
    return mime_type.startswith("image/") or mime_type == "application/pdf"


@router.post("/analyze-course")
async def analyze_course(
    req: AnalyzeCourseRequest,
    user_id: str = Depends(require_user),
    gemini: GeminiClient = Depends(get_gemini),
    resolver: FileResolver = Depends(get_resolver),
    auth: SupabaseAuth = Depends(get_auth),
):
    if not req.text and not req.files:
        raise HTTPException(status_code=400, detail="Either text or files must be provided")

    try:
        parts = []
        if req.text:
            parts.append(text_part(f"Course content:\n\n{req.text}"))
        for f in await resolver.resolve(req.files):
            if _attachable(f.mime_type, f.part):
                parts.append(f.part)
            else:
                logger.info("Skipping %s (%s) for course analysis", f.name, f.mime_type)
        parts.append(text_part("Analyze this course content and provide your assessment."))

        result = await gemini.generate(
            PRO_MODEL,
            [user_message(parts)],
            system_instruction=build_system_prompt(req),
            response_schema=response_schema(CourseAnalysis),
        )
        await auth.track_usage(user_id, ENDPOINT, PRO_MODEL, total_tokens(result.usage))
        analysis = parse_model_output(result.text, CourseAnalysis)
    except ModelOutputError as e:
        logger.error("Course analysis returned unusable output: %s", e)
        raise HTTPException(status_code=502, detail="Analysis failed. The model returned an invalid response.")
    except UpstreamError as e:
        logger.error("Analysis error: %s", e)
        raise HTTPException(status_code=500, detail="Analysis failed. Please try again.")

    return {**analysis.dump(), "_usage": result.usage}
