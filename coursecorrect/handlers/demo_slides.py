import hmac
import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from ..auth import SupabaseAuth
from ..config import Settings
from ..deps import get_app_settings, get_auth, get_gemini, get_rate_limiter, get_resolver
from ..errors import ModelOutputError, UpstreamError
from ..files import FileResolver
from ..gemini import GeminiClient
from ..models import DemoSlidesRequest
from ..ratelimit import RateLimiter, client_ip
from ..slides.basic import handle_basic
from ..slides.common import SlideJob
from ..slides.design import handle_font_options, handle_theme, handle_theme_options
from ..slides.enhanced import handle_enhanced
from ..slides.findings import handle_guided_generation, handle_scan, handle_verify
from ..slides.sector import handle_infer_sector
from ..slides.study import (
    handle_course_summary,
    handle_quiz,
    handle_select_infographic,
    handle_slide_content,
    handle_study_guide,
)


logger = logging.getLogger(__name__)

router = APIRouter()

MAX_TOPIC_LENGTH = 500
MAX_FILE_DATA_SIZE = 14 * 1024 * 1024  # base64 characters, ~10 MiB decoded
MAX_FILES = 10
MAX_USER_CONTEXT_LENGTH = 2000
MAX_APPROVED_FINDINGS = 20
MAX_SLIDES = 30
MAX_STUDY_GUIDE_SECTIONS = 20

BYPASS_HEADER = "x-bypass-key"

ACTIONS = {
    "generateTheme": handle_theme,
    "generateThemeOptions": handle_theme_options,
    "generateFontOptions": handle_font_options,
    "scan": handle_scan,
    "verify": handle_verify,
    "generateStudyGuide": handle_study_guide,
    "generateQuiz": handle_quiz,
    "generateCourseSummary": handle_course_summary,
    "generateSlideContent": handle_slide_content,
    "selectInfographicSlide": handle_select_infographic,
}


def validate(req: DemoSlidesRequest) -> Optional[str]:
    """Return the first validation error, or None."""
    if not req.topic:
        return "Topic is required"
    if len(req.topic) > MAX_TOPIC_LENGTH:
        return "Topic must be 500 characters or fewer"

    files = req.all_files()
    for f in files:
        if f.data and len(f.data) > MAX_FILE_DATA_SIZE:
            return "Inline file size exceeds limit. Use storage upload for large files."
    if len(files) > MAX_FILES:
        return f"Too many files. Maximum is {MAX_FILES}."
    if req.user_context and len(req.user_context) > MAX_USER_CONTEXT_LENGTH:
        return f"User context must be {MAX_USER_CONTEXT_LENGTH} characters or fewer"

    findings = req.approved_findings or []
    if len(findings) > MAX_APPROVED_FINDINGS:
        return f"Too many approved findings. Maximum is {MAX_APPROVED_FINDINGS}."
    if req.action == "verify" and not findings:
        return "At least one approved finding is required"
    if len(req.slides) > MAX_SLIDES:
        return f"Too many slides. Maximum is {MAX_SLIDES}."
    if req.action == "selectInfographicSlide" and not req.slides:
        return "At least one slide is required"
    if len(req.study_guide_sections) > MAX_STUDY_GUIDE_SECTIONS:
        return f"Too many study guide sections. Maximum is {MAX_STUDY_GUIDE_SECTIONS}."
    return None


def bypass_allowed(request: Request, settings: Settings) -> bool:
    expected = settings.rate_limit_bypass_key
    provided = request.headers.get(BYPASS_HEADER)
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def enforce_rate_limit(
    request: Request, user_id: Optional[str], limiter: RateLimiter, settings: Settings
) -> None:
    if bypass_allowed(request, settings):
        return
    if user_id:
        key, limit = f"user:{user_id}", settings.auth_daily_limit
    else:
        key, limit = f"ip:{client_ip(request.headers)}", settings.anon_daily_limit

    decision = limiter.hit(key, limit)
    if decision.allowed:
        return
    retry_after = max(1, math.ceil(decision.reset_at - limiter.now()))
    logger.warning("Rate limit exceeded for %s", key)
    raise HTTPException(
        status_code=429,
        detail="Daily demo limit reached. Please try again later.",
        headers={"Retry-After": str(retry_after)},
    )


def pick_handler(req: DemoSlidesRequest):
    action = req.action
    if action in ("generateTheme", "generateThemeOptions", "generateFontOptions", "scan"):
        return ACTIONS[action]
    if action == "generate" and req.approved_findings is not None:
        return handle_guided_generation
    if action in ACTIONS:
        return ACTIONS[action]
    if req.infer_sector:
        return handle_infer_sector
    if req.enhanced:
        return handle_enhanced
    return handle_basic


@router.post("/demo-slides")
async def demo_slides(
    req: DemoSlidesRequest,
    request: Request,
    auth: SupabaseAuth = Depends(get_auth),
    settings: Settings = Depends(get_app_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
    gemini: GeminiClient = Depends(get_gemini),
    resolver: FileResolver = Depends(get_resolver),
):
    error = validate(req)
    if error:
        raise HTTPException(status_code=400, detail=error)

    # optional sign-in only changes the rate limit bucket
    user_id = await auth.get_user_id(request.headers.get("authorization"))
    enforce_rate_limit(request, user_id, limiter, settings)

    handler = pick_handler(req)
    job = SlideJob(req=req, gemini=gemini, resolver=resolver)
    try:
        return await handler(job)
    except ModelOutputError as e:
        logger.error("Demo slides (%s) returned unusable output: %s", req.action or "default", e)
        raise HTTPException(status_code=502, detail="Failed to parse model response. Please try again.")
    except UpstreamError as e:
        logger.error("Demo slides error: %s", e)
        raise HTTPException(status_code=500, detail="Slide generation failed. Please try again.")
