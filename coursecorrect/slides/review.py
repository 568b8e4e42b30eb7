import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from .common import SlideJob, parse_or_none
from ..errors import UpstreamError
from ..gemini import text_part
from ..results import EnhancedDeck, SlideReview


logger = logging.getLogger(__name__)

REVIEW_INSTRUCTION = (
    "You are a strict presentation editor reviewing before/after slide pairs. "
    "A pair fails when the after slide reads like a light edit of the before slide."
)


def build_review_prompt(deck: EnhancedDeck) -> str:
    pairs = [
        {"id": s.id, "before": s.before.dump(), "after": s.after.dump(), "changesSummary": s.changes_summary}
        for s in deck.slides
    ]
    return (
        "Review these before/after slide pairs.\n\n"
        f"{json.dumps(pairs, ensure_ascii=False, indent=2)}\n\n"
        "Flag a slide when ANY of these hold:\n"
        "- after.title is the same as or a trivial rewording of before.title\n"
        "- most after bullets repeat before bullets with only minor wording changes\n"
        "- after bullets lack specific numbers, dates, or technical facts\n"
        "- after.keyFact is missing or is a sentence\n\n"
        "For each flagged slide return slideId, a one-line reason, and correctedAfter: a rewritten after slide "
        "that keeps the same topic and sourcePageNumber and the same citationIds where still relevant.\n"
        "Return an empty flagged array when every slide passes. Never flag a slide that passes."
    )


def apply_fixes(deck: EnhancedDeck, review: SlideReview) -> Tuple[EnhancedDeck, List[str]]:
    """Replace the after side of flagged slides. Each slide is corrected at most once."""
    fixes: Dict[str, Any] = {}
    for fix in review.flagged:
        fixes.setdefault(fix.slide_id, fix.corrected_after)
    replaced: List[str] = []
    slides = []
    for slide in deck.slides:
        corrected = fixes.get(slide.id)
        if corrected is not None and slide.id not in replaced:
            slide = slide.model_copy(update={"after": corrected})
            replaced.append(slide.id)
        slides.append(slide)
    return deck.model_copy(update={"slides": slides}), replaced


async def review_deck(job: SlideJob, deck: EnhancedDeck) -> Tuple[EnhancedDeck, List[str], Optional[dict]]:
    try:
        result = await job.generate(
            SlideReview,
            [text_part(build_review_prompt(deck))],
            system_instruction=REVIEW_INSTRUCTION,
        )
    except UpstreamError as e:
        logger.warning("Slide review failed, keeping first pass: %s", e)
        return deck, [], None

    review = parse_or_none(result.text, SlideReview, "review")
    if review is None or not review.flagged:
        return deck, [], result.usage
    deck, replaced = apply_fixes(deck, review)
    if replaced:
        logger.info("Review pass corrected slides: %s", ", ".join(replaced))
    return deck, replaced, result.usage
