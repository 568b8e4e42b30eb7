"""Study material actions: study guide, quiz, course summary, slide deck content and infographic pick."""

from typing import List

from .common import SlideJob, parse_or_none, respond, with_prompt
from ..files import total_pdf_pages
from ..models import SlideSummary, StudyGuideSection
from ..results import CourseSummary, InfographicSelection, Quiz, SlideDeckContent, StudyGuide
from ..sanitize import sanitize_user_input


LONG_OUTPUT_TOKENS = 8192


def build_study_guide_prompt(job: SlideJob, has_files: bool) -> str:
    topic, sector = job.topic, job.sector
    source = "for this course material" if has_files else "for a course on this topic"
    basis = (
        "based on the uploaded course materials"
        if has_files
        else f'about "{topic}" in the {sector} sector. Use your knowledge of this subject to create educational content.'
    )
    facts = (
        "Extract REAL content, facts, and concepts from the uploaded documents"
        if has_files
        else "Use accurate, current knowledge about this subject to create educational content"
    )
    return f"""Create a comprehensive study guide {source}.

<user_content>
Topic: "{topic}"
Industry: {sector}
</user_content>

TASK: Generate 8-12 well-structured sections for a study guide {basis}.

For each section provide:
- title: A clear, descriptive heading for the section
- summary: One sentence describing what this section covers
- keyPoints: 3-5 key points, each a COMPLETE, SPECIFIC sentence that teaches something. Include specific facts, numbers, tools, processes, or concepts{' from the course' if has_files else ''}.
- takeaway: One sentence capturing the single most important concept from this section

CRITICAL CONSTRAINTS (follow exactly):
- Every key point MUST be a complete, meaningful sentence, NOT a keyword list
- {facts}
- Each key point should teach something specific and actionable
- Sections should follow a logical learning progression
- If the materials are about a certification, organize by exam domains/objectives
- If a section covers tools or services, name them specifically
- Do NOT generate generic filler like "Understanding the basics of cloud computing"
- DO generate specific content like "Amazon S3 provides 11 9s (99.999999999%) of data durability across multiple Availability Zones\""""


async def handle_study_guide(job: SlideJob) -> dict:
    files = await job.files()
    result = await job.generate(
        StudyGuide,
        with_prompt(files, build_study_guide_prompt(job, bool(files))),
        search=True,
        max_output_tokens=LONG_OUTPUT_TOKENS,
    )
    guide = parse_or_none(result.text, StudyGuide, "generateStudyGuide") or StudyGuide()
    return respond({"sections": [s.dump() for s in guide.sections]}, result.usage)


def study_guide_context(sections: List[StudyGuideSection]) -> str:
    if not sections:
        return ""
    lines = [
        f"{i}. {sanitize_user_input(s.title)}: {sanitize_user_input('; '.join(s.key_points))}"
        for i, s in enumerate(sections, 1)
    ]
    return "\n\nSTUDY GUIDE SECTIONS (generate questions covering these topics):\n" + "\n".join(lines)


def build_quiz_prompt(job: SlideJob, has_files: bool) -> str:
    topic, sector = job.topic, job.sector
    sections = job.req.study_guide_sections
    if sections:
        task = "Generate questions that test the key concepts from the study guide sections below."
    elif has_files:
        task = (
            "Scan the course materials and identify the most important concepts, services, and facts "
            "that would appear on the certification exam or final assessment."
        )
    else:
        task = f'Create quiz questions about "{topic}" in the {sector} sector based on common exam topics and key concepts.'
    relevance = (
        "Every question must relate directly to content in the uploaded course materials"
        if has_files
        else "Every question must relate directly to key concepts and common exam topics for this subject"
    )
    source = "based on this course material" if has_files else "for a course on this topic"
    return f"""Create an exam-prep quiz {source}.

<user_content>
Topic: "{topic}"
Industry: {sector}
</user_content>

TASK: {task} Generate 10-15 multiple-choice questions testing these high-value topics.{study_guide_context(sections)}

Every question must have:
- id: Sequential number starting at 1
- type: Always "multiple-choice"
- topic: A short label (2-4 words) identifying the specific subject area being tested (e.g. "VPC Networking", "IAM Policies", "Fall Protection", "HIPAA Privacy Rule")
- question: A clear, specific question
- options: Exactly 4 answer choices
- correctAnswer: Must EXACTLY match one of the 4 options
- explanation: 1-2 sentences explaining WHY this is correct and what makes the distractors wrong

CRITICAL CONSTRAINTS (follow exactly):
- Focus on what matters for the exam: key services, core concepts, common gotchas, best practices
- Questions should test real understanding, not just vocabulary recognition
- Distractors must be plausible: real service names, real concepts, real numbers that are close but wrong
- Range from basic recall to scenario-based application
- {relevance}
- Explanations should teach the concept, not just confirm the answer"""


async def handle_quiz(job: SlideJob) -> dict:
    files = await job.files()
    result = await job.generate(
        Quiz,
        with_prompt(files, build_quiz_prompt(job, bool(files))),
        max_output_tokens=LONG_OUTPUT_TOKENS,
    )
    quiz = parse_or_none(result.text, Quiz, "generateQuiz") or Quiz()
    # drop questions whose answer is not one of the options
    questions = [q for q in quiz.questions if q.correct_answer in q.options]
    return respond({"questions": [q.dump() for q in questions]}, result.usage)


def build_summary_prompt(job: SlideJob, has_files: bool) -> str:
    source = "the uploaded course materials" if has_files else f'a course on "{job.topic}"'
    return f"""Summarize {source} for a course overview card.

<user_content>
Topic: "{job.topic}"
Industry: {job.sector}
</user_content>

Return:
- courseTitle: the course's actual title, or a clear title for the topic
- learningObjectives: 4-6 objectives, each starting with a measurable verb
- keyTopics: 5-8 specific subjects the course covers
- difficulty: "beginner", "intermediate", or "advanced"
- estimatedDuration: e.g. "6 hours" or "3 weeks"
- moduleCount: number of modules or major sections
- summary: 2-3 sentences describing who the course is for and what it teaches

Do not invent facts that are not in the materials or common knowledge about the subject."""


def fallback_summary(topic: str) -> dict:
    return CourseSummary(course_title=topic, summary="Unable to generate course summary.").dump()


async def handle_course_summary(job: SlideJob) -> dict:
    files = await job.files()
    result = await job.generate(CourseSummary, with_prompt(files, build_summary_prompt(job, bool(files))))
    summary = parse_or_none(result.text, CourseSummary, "generateCourseSummary")
    payload = summary.dump() if summary else fallback_summary(job.topic)
    return respond(payload, result.usage)


def build_slide_content_prompt(job: SlideJob, has_files: bool) -> str:
    topic, sector = job.topic, job.sector
    source = "from this course material" if has_files else "for a course on this topic"
    basis = "extracted from the uploaded materials" if has_files else f'about "{topic}" in the {sector} sector'
    facts = (
        "Extract REAL content from the uploaded materials, do not invent facts"
        if has_files
        else "Use accurate, current knowledge about this subject"
    )
    theme = ""
    prefs = job.req.theme_preferences
    if prefs and prefs.name:
        theme = (
            f"\n\nVisual theme: {sanitize_user_input(prefs.name)}. {sanitize_user_input(prefs.description)}\n"
            "Match the tone of titles and keyFacts to this theme."
        )
    return f"""Create a 10-15 slide presentation deck {source}.

<user_content>
Topic: "{topic}"
Industry: {sector}
</user_content>

TASK: Generate structured slide content. Each slide should have a clear purpose and contain specific, fact-rich content {basis}.{theme}

For each slide provide:
- title: A clear, engaging slide title
- subtitle: Optional subtitle or section label
- bullets: 3-5 specific, fact-rich bullet points. Each must contain a concrete detail, number, process name, or technical term.
- keyFact: The single most important stat or fact on this slide (a number, percentage, or 2-4 word metric). Leave empty if no standout stat.
- layoutSuggestion: One of "hero" (for intro/impact slides), "two-column" (for comparisons), "stats-highlight" (for data-heavy), "comparison" (for before/after), "timeline" (for sequential processes)
- sourceContext: Brief note on what part of the source material this slide covers

After generating slides, provide dataVerification:
- totalSourcePages: Total pages in the uploaded material (estimate if not a PDF)
- pagesReferenced: How many source pages contributed to slides
- coveragePercentage: Percentage of source material covered (0-100)
- missingTopics: Important topics from the source that were NOT included in the slides

CRITICAL CONSTRAINTS (follow exactly):
- {facts}
- Every bullet must contain a specific fact, number, tool name, or technical detail, NOT generic statements
- Vary layoutSuggestion across slides. First slide should use "hero" layout
- Do NOT generate generic filler like "Understanding the basics"
- If the source material contains a copyright notice, disclaimer, or distribution restriction, extract it verbatim into the disclaimer field"""


async def handle_slide_content(job: SlideJob) -> dict:
    files = await job.files()
    result = await job.generate(
        SlideDeckContent,
        with_prompt(files, build_slide_content_prompt(job, bool(files))),
        max_output_tokens=LONG_OUTPUT_TOKENS,
    )
    deck = parse_or_none(result.text, SlideDeckContent, "generateSlideContent")
    if deck is None:
        return respond({"slides": []}, result.usage)

    pages = total_pdf_pages(files)
    if pages and deck.data_verification is not None:
        deck.data_verification.total_source_pages = pages
    payload = deck.dump()
    if not deck.disclaimer:
        payload.pop("disclaimer", None)
    return respond(payload, result.usage)


def slides_text(slides: List[SlideSummary]) -> str:
    blocks = []
    for i, s in enumerate(slides):
        line = f"[{i}] {sanitize_user_input(s.title)}"
        if s.key_fact:
            line += f" (key fact: {sanitize_user_input(s.key_fact)})"
        bullets = "\n".join(f"    - {sanitize_user_input(b)}" for b in s.bullets)
        blocks.append(line + ("\n" + bullets if bullets else ""))
    return "\n".join(blocks)


def build_infographic_prompt(job: SlideJob) -> str:
    return f"""Pick the ONE slide from this deck that would benefit most from being turned into an infographic.

<user_content>
Course: "{job.topic}"
Industry: {job.sector}
Slides:
{slides_text(job.req.slides)}
</user_content>

Prefer slides with numbers, comparisons, processes, or hierarchies. Avoid the title slide.

Return:
- selectedSlideIndex: the 0-based index shown in brackets
- reasoning: one sentence on why this slide works as an infographic
- imagePrompt: a detailed image generation prompt for a clean, modern infographic of that slide's content, with clear labels and icons"""


def fallback_selection(job: SlideJob) -> dict:
    return {
        "selectedSlideIndex": min(2, len(job.req.slides) - 1),
        "reasoning": "Fallback selection",
        "imagePrompt": (
            f"Create a clean, modern infographic about {job.topic} in the {job.sector} sector. "
            "Use a professional color scheme with clear labels and icons."
        ),
    }


async def handle_select_infographic(job: SlideJob) -> dict:
    result = await job.generate(InfographicSelection, with_prompt([], build_infographic_prompt(job)))
    selection = parse_or_none(result.text, InfographicSelection, "selectInfographicSlide")
    if selection is None:
        return respond(fallback_selection(job), result.usage)

    last = len(job.req.slides) - 1
    payload = selection.dump()
    payload["selectedSlideIndex"] = max(0, min(selection.selected_slide_index, last))
    if not selection.image_prompt:
        payload["imagePrompt"] = fallback_selection(job)["imagePrompt"]
    return respond(payload, result.usage)
