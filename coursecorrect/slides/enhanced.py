"""Enhanced before/after deck, optionally search grounded, followed by a review pass."""

from typing import Any, Dict, List, Optional

from .common import SlideJob, now_iso, parse_or_none, respond, with_prompt
from .review import review_deck
from .styles import ICON_HINT, IMAGE_PROMPT_FORMAT, accent_for, deck_style
from ..files import total_pdf_pages
from ..gemini import sum_usage
from ..results import EnhancedDeck


VISUAL_ONLY_PERSONA = """You are an award-winning Presentation Designer specializing in visual modernization of existing course materials.

Your Design Principles:
1. FAITHFUL READING: You read every word, number, and visual element on each PDF page before working with it. You never invent, hallucinate, or substitute content.
2. Page Classification First: Before selecting pages to redesign, you classify EVERY page as TEXT_HEAVY, DIAGRAM, INFOGRAPHIC, or TITLE_PAGE.
3. Only Redesign Text: You ONLY redesign TEXT_HEAVY pages. Diagrams, infographics, org charts, flowcharts, and inheritance diagrams are SKIPPED because they are already visual.
4. Zero Content Loss: The redesigned slide contains 100% of the original text content. Same title, same data, same facts. Only the visual presentation changes.
5. Visual Hierarchy: You create clear hierarchy through typography size, color accents, and spatial layout, not by changing content.

What counts as a DIAGRAM or INFOGRAPHIC (SKIP these):
- Org charts, inheritance trees, permission matrices
- Flowcharts, process diagrams, architecture diagrams
- Magic quadrants, scatter plots, pie charts, bar graphs
- Network topology diagrams, system architecture visuals
- Any page where the primary content is a VISUAL ELEMENT rather than text bullets

What counts as TEXT_HEAVY (redesign these):
- Pages with a title and bullet points listing facts, features, or specifications
- Pages with paragraphs of text that could benefit from better visual hierarchy
- Pages with data tables that could be reformatted

Format Requirements: Output must be valid JSON matching the provided schema."""

CONTENT_PERSONA = """You are an award-winning Presentation Designer and Content Strategist. You take outdated course slides and create dramatically modernized versions with current data and compelling visual design.

Your Design Principles:
1. Radical Transformation: The before and after must look like completely different slides. The before is boring and vague; the after is specific, data-rich, and visually striking.
2. Visual Dominance: Prioritize big numbers, clear headings, and structured layouts over text walls.
3. Hierarchy: Clearly distinguish the Headline (the takeaway) from the Body (the evidence).
4. Data-Driven: Every after bullet must contain a specific number, date, or technical fact.

Format Requirements: Output must be valid JSON matching the provided schema."""

CLASSIFICATION_STEP = """
### STEP 1: PAGE CLASSIFICATION
Before generating any slides, examine EVERY page of the uploaded PDF.
For each page, record in pageClassifications:
- pageNumber: the 1-based page number
- pageTitle: the title or heading visible on that page
- classification: exactly one of TEXT_HEAVY, DIAGRAM, INFOGRAPHIC, TITLE_PAGE, TABLE_OF_CONTENTS
- reason: why you classified it this way (e.g., 'Contains a flowchart showing policy inheritance' or 'Bullet list of storage facts')

THEN select exactly 3 TEXT_HEAVY pages for redesign. If fewer than 3 TEXT_HEAVY pages exist, select as many as are available."""

VISUAL_ONLY_STEP = """
### STEP 2: VISUAL REDESIGN (zero content changes)
Create exactly 3 slides from TEXT_HEAVY pages only.

"before": faithful transcription of the PDF page:
- title: The EXACT title shown on the PDF page, character for character
- subtitle: The section/module label from the PDF page
- bullets: Transcribe ALL key data points. Every number, name, percentage, fact, and reference mentioned on the page.
- keyFact: Leave empty
- citationIds: Empty array
- sourcePageNumber: The page number from the PDF

"after": same content, modernized visual design (SAME page as before):
- title: IDENTICAL to before.title
- subtitle: IDENTICAL to before.subtitle
- keyFact: Pull one prominent number/stat from the before bullets (e.g., '31% market share' becomes '31%'). If no numbers, leave empty.
- bullets: EVERY bullet from before MUST appear. You may slightly reword for visual rhythm, but NO facts, numbers, or references may be dropped.
- citationIds: Empty array
- sourcePageNumber: SAME as before.sourcePageNumber

The ONLY changes are: typography hierarchy, color accents, spatial layout, and visual structure.

changesSummary: Vary between 'RESTRUCTURED', 'VISUAL HIERARCHY', 'STREAMLINED', 'MODERNIZED LAYOUT', 'ENHANCED READABILITY'. Different for each slide."""

CONTENT_STEP = """
### STEP 2: CONTENT + VISUAL REDESIGN
Create exactly 3 slides. Each shows a dramatic before/after transformation.

"before": a boring, outdated PowerPoint slide:
- title: Plain topic name only. No benefits language.
- subtitle: Generic module/section label (e.g., 'Module 3 - Core Services')
- bullets: 3-4 GENERIC, VAGUE phrases. No specific numbers, no citations. Should feel like 2018-era content.
- keyFact: Empty
- citationIds: Empty array
- sourcePageNumber: Page number from PDF if uploaded

"after": agency-quality modernized slide:
- title: Reframe as a BENEFIT or INSIGHT (e.g., 'Storage That Scales to Zero Cost'). Must differ from before title.
- subtitle: Punchy tagline, max 6 words
- keyFact: The single most impressive stat. A number or 2-4 word metric (e.g., '11 9s', '99.999%', '3x Faster'). NEVER a sentence.
- bullets: 3-4 phrases with specific numbers, dates, or specs in every bullet. Cite sources with [N] markers.
- citationIds: IDs matching citations array

changesSummary: Category labels such as 'UPDATED PRICING', 'NEW STANDARD', 'REVISED SPEC', 'CURRENT DATA'. Different for each slide."""

VISUAL_ONLY_CONSTRAINTS = """
### CRITICAL CONSTRAINTS (override everything above)
- pageClassifications MUST cover every page in the PDF, not just selected ones
- Only select TEXT_HEAVY pages for slides. NEVER redesign a DIAGRAM or INFOGRAPHIC page.
- SAME PAGE RULE: before.sourcePageNumber and after.sourcePageNumber must be identical.
- before.title and after.title MUST be identical, character for character.
- ZERO content loss: if before has N bullets, after must have at least N bullets.
- keyFact is NEVER a sentence. Max 5 words. Prefer numbers.
- No bullet starts with a gerund (Understanding, Exploring, Leveraging, Implementing, Ensuring)
- changesSummary MUST be DIFFERENT for each slide
- sourcePageNumber is REQUIRED for every before AND after slide, and they MUST match"""

CONTENT_CONSTRAINTS = """
### CRITICAL CONSTRAINTS (override everything above)
- 'before' must read like a REAL BORING slide, generic and vague. If a before bullet has a specific stat, you have failed.
- 'after' must be COMPLETELY DIFFERENT: specific, data-rich, benefit-oriented. If an after bullet lacks a number, you have failed.
- after titles name the TOPIC BENEFIT, not the update process
- Every citation must have a real URL from search results
- keyFact is NEVER a sentence. Max 5 words. Prefer numbers.
- No bullet starts with a gerund (Understanding, Exploring, Leveraging, Implementing, Ensuring)
- changesSummary MUST be DIFFERENT for each slide
- sourcePageNumber is REQUIRED for every before slide when a PDF is uploaded"""


def visual_style_section(style: str) -> str:
    return "\n".join(
        [
            "",
            "### VISUAL STYLE",
            f"- accentColor: '{accent_for(style)}' for all slides",
            "- layout assignments: Slide 1 (id 'slide-1') = 'hero', Slide 2 (id 'slide-2') = 'two-column', "
            "Slide 3 (id 'slide-3') = one of 'stats-highlight', 'timeline', 'comparison'",
            f"- iconSuggestion: {ICON_HINT}",
            "",
            f"imagePrompt format: '{IMAGE_PROMPT_FORMAT}'",
            "",
            "designReasoning: Explain why you chose this page and this layout. What visual transformation does it apply?",
        ]
    )


def build_prompt(job: SlideJob, has_files: bool, page_count: Optional[int]) -> str:
    visual_only = job.update_mode == "visual"
    style = job.style
    if has_files:
        source = "Source: Uploaded course PDF (attached as file). Read every page carefully."
        if page_count:
            source += f" The PDF has {page_count} pages."
    else:
        source = "Source: No file uploaded. Create realistic example slides for this topic."
    input_section = "\n".join(
        [
            "### INPUT DATA",
            '"""',
            f"Course Topic: {job.topic}",
            f"Industry: {job.sector}",
            f"Location: {job.location}",
            f"Style: {style}. {deck_style(style)}",
            source,
            '"""',
        ]
    )
    return (
        input_section
        + (CLASSIFICATION_STEP if has_files else "")
        + (VISUAL_ONLY_STEP if visual_only else CONTENT_STEP)
        + visual_style_section(style)
        + (VISUAL_ONLY_CONSTRAINTS if visual_only else CONTENT_CONSTRAINTS)
    )


def empty_deck(job: SlideJob) -> Dict[str, Any]:
    return {
        "slides": [],
        "citations": [],
        "metadata": {
            "sector": job.sector,
            "location": job.location,
            "updateMode": job.update_mode,
            "generatedAt": now_iso(),
            "searchQueries": [],
        },
    }


def deck_payload(deck: EnhancedDeck, job: SlideJob) -> Dict[str, Any]:
    meta = deck.metadata
    payload = {
        "slides": [s.dump() for s in deck.slides],
        "citations": [c.dump() for c in deck.citations],
        "metadata": {
            "sector": meta.sector or job.sector,
            "location": meta.location or job.location,
            "updateMode": meta.update_mode or job.update_mode,
            "generatedAt": now_iso(),
            "searchQueries": list(meta.search_queries),
        },
    }
    if deck.page_classifications:
        payload["pageClassifications"] = [p.dump() for p in deck.page_classifications]
    return payload


async def handle_enhanced(job: SlideJob) -> dict:
    files = await job.files()
    visual_only = job.update_mode == "visual"
    prompt = build_prompt(job, bool(files), total_pdf_pages(files))

    result = await job.generate(
        EnhancedDeck,
        with_prompt(files, prompt),
        system_instruction=VISUAL_ONLY_PERSONA if visual_only else CONTENT_PERSONA,
        search=not visual_only,
    )
    deck = parse_or_none(result.text, EnhancedDeck, "enhanced")
    if deck is None:
        return respond(empty_deck(job), result.usage)

    usage = result.usage
    reviewed: List[str] = []
    if not visual_only and deck.slides:
        deck, reviewed, review_usage = await review_deck(job, deck)
        usage = sum_usage(usage, review_usage)

    payload = deck_payload(deck, job)
    if reviewed:
        payload["metadata"]["reviewedSlideIds"] = reviewed
    return respond(payload, usage)
