"""Two-stage findings flow: scan, then guided generation from approved findings, plus verification."""

from typing import List

from .common import SlideJob, now_iso, parse_or_none, respond, with_prompt
from .enhanced import deck_payload, empty_deck
from .styles import ICON_HINT, IMAGE_PROMPT_FORMAT, accent_for, guided_style
from ..models import Finding
from ..results import EnhancedDeck, FindingsScan, Verification
from ..sanitize import sanitize_user_input
from ..schema import parse_model_output


OUTDATED_AND_COMPLIANCE = """
1. OUTDATED: Content that was once correct but has been superseded (old service names, deprecated features, outdated best practices, changed procedures)
2. COMPLIANCE: Regulatory or standards changes that affect the course content (only if the course explicitly teaches compliance topics)"""

MISSING_AND_STRUCTURAL = """
3. MISSING: Important topics that should be in a modern course on this subject but are absent
4. STRUCTURAL: Format issues (text-heavy slides, missing assessments, poor visual hierarchy)"""


def category_instructions(update_mode: str) -> str:
    out = ""
    if update_mode in ("regulatory", "full"):
        out += OUTDATED_AND_COMPLIANCE
    if update_mode in ("visual", "full"):
        out += MISSING_AND_STRUCTURAL
    return out


def build_scan_prompt(job: SlideJob) -> str:
    return f"""Analyze the following course materials and identify what needs updating.

<user_content>
Topic: "{job.topic}"
Industry: {job.sector}
Location: {job.location}
</user_content>

TASK: Identify what needs updating. DO NOT generate new slides or rewritten content. Only analyze and report findings.

Categories of findings:
{category_instructions(job.update_mode)}

For OUTDATED and COMPLIANCE findings, use search to verify what has actually changed.
For each finding, set sourceSnippet to the specific text or concept from the course that triggered the finding.
For each finding, set currentInfo to what the current correct state is (from search results).

CRITICAL CONSTRAINTS (follow exactly):
- Focus ONLY on the course's primary subject matter.
- Every factual claim must come from either the uploaded course materials or from search results. Do not invent facts, dates, regulation numbers, or statistics.
- If you cannot determine when the course was created, say "undated". Do not fabricate a year.
- Do NOT flag regulations unless the course explicitly teaches that regulatory topic.
- For technical certification courses, focus on: deprecated services/features, changed best practices, new tools/services, exam blueprint changes.
- Severity: HIGH = core content is wrong or could cause errors. MEDIUM = content is stale but not incorrect. LOW = nice-to-have improvement.
- Return the 3-5 most impactful findings. This is a demo preview.
- Set totalEstimatedFindings to your honest estimate of how many findings a full deep scan would produce across all categories. A large course might have 30-80+, a small one 10-25.
- Set id to "finding-1", "finding-2", etc.
- category must be exactly one of: "outdated", "missing", "compliance", "structural"
- severity must be exactly one of: "high", "medium", "low"
- If the content appears current and accurate, return an empty findings array with a courseSummary explaining that."""


async def handle_scan(job: SlideJob) -> dict:
    """Unparseable scan output is not replaced with a fallback; ModelOutputError propagates."""
    files = await job.files()
    result = await job.generate(FindingsScan, with_prompt(files, build_scan_prompt(job)), search=True)
    scan = parse_model_output(result.text, FindingsScan)
    return respond(scan.dump(), result.usage)


def findings_text(findings: List[Finding]) -> str:
    return "\n".join(
        f"- [{f.category.upper()}/{f.severity}] {sanitize_user_input(f.title)}: {sanitize_user_input(f.description)}"
        for f in findings
    )


def build_guided_prompt(job: SlideJob) -> str:
    req = job.req
    style = job.style
    lines = [
        f'Redesign course slides for: "{job.topic}" ({job.sector}, {job.location}).',
        f"Style: {style}. {guided_style(style)}",
    ]
    if req.user_context:
        lines.append(f"Context: {sanitize_user_input(req.user_context)}")
    prefs = req.design_preferences
    if prefs:
        lines += [
            "Design preferences:",
            f"- Target audience: {sanitize_user_input(prefs.audience or '')}",
            f"- Desired learner feeling: {sanitize_user_input(prefs.feeling or '')}",
            f"- Emphasis: {sanitize_user_input(prefs.emphasis or '')}",
        ]
    lines += [
        "",
        "Approved changes to incorporate:",
        findings_text(req.approved_findings or []),
        "",
        'Create 3 slides. Each addresses one approved finding above, shown as "before" (original with the problem) '
        'and "after" (redesigned with the fix incorporated).',
        "",
        'THE "BEFORE" AND "AFTER" MUST BE DRAMATICALLY DIFFERENT. If they look similar, the demo fails.',
        "",
        '"before" (the ORIGINAL slide, a real, boring, outdated PowerPoint):',
        "- title: Plain topic name only. No clever framing, no benefits language.",
        "- subtitle: Generic module/section label, e.g. \"Module 3 - Core Services\".",
        "- bullets: 3-4 GENERIC, VAGUE phrases showing the outdated content the finding identified. "
        "No impressive numbers, no citations.",
        "- keyFact: Leave empty.",
        "- citationIds: Empty array.",
        "- sourcePageNumber: The 1-based page number from the uploaded PDF. Required when a PDF is uploaded.",
        "",
        '"after" (the REDESIGNED slide, agency-quality):',
        '- title: Reframe the topic as a BENEFIT or INSIGHT statement that answers "why should I care?"',
        "- subtitle: Punchy tagline, max 6 words.",
        "- keyFact: THE SINGLE MOST IMPRESSIVE STAT related to the correction. A number, percentage, "
        "or punchy 2-4 word metric. Never a sentence.",
        "- bullets: 3-4 phrases, 5-10 words max. EVERY bullet MUST contain a specific number, percentage, date, "
        'or technical specification. Bullets with corrected info get a " [N]" citation marker.',
        "- citationIds: IDs for verified facts from search results",
        "",
        f"imagePrompt: Must reference the SPECIFIC topic of the slide. Format: \"{IMAGE_PROMPT_FORMAT}\"",
        "",
        "visualStyle:",
        f'- accentColor: "{accent_for(style)}". Same across all slides.',
        '- layout: Slide 1 (id "slide-1"): "hero"; Slide 2 (id "slide-2"): "two-column"; '
        'Slide 3 (id "slide-3"): one of "stats-highlight", "timeline", or "comparison". Never repeat a layout.',
        f"- iconSuggestion: {ICON_HINT}",
        "",
        'changesSummary: A 2-3 word CATEGORY LABEL such as "UPDATED PRICING", "NEW STANDARD", "REVISED SPEC", '
        '"CURRENT DATA", "NEW REQUIREMENT". Never repeat a label across slides.',
        "",
        "CRITICAL, these rules override everything above:",
        '- sourcePageNumber is REQUIRED for every "before" slide when a PDF is uploaded',
        "- keyFact is NEVER a sentence. Max 5 words. Prefer numbers.",
        "- No bullet starts with a gerund (Understanding, Exploring, Leveraging, Implementing, Ensuring)",
        '- "after" titles name the TOPIC BENEFIT, not the update process',
        "- Every citation must have a real URL from search results",
    ]
    return "\n".join(lines)


async def handle_guided_generation(job: SlideJob) -> dict:
    files = await job.files()
    result = await job.generate(EnhancedDeck, with_prompt(files, build_guided_prompt(job)), search=True)
    deck = parse_or_none(result.text, EnhancedDeck, "generate")
    if deck is None:
        return respond(empty_deck(job), result.usage)
    return respond(deck_payload(deck, job), result.usage)


def build_verify_prompt(job: SlideJob) -> str:
    blocks = []
    for f in job.req.approved_findings or []:
        block = [
            f"- id: {f.id}",
            f"  title: {sanitize_user_input(f.title)}",
            f"  claim: {sanitize_user_input(f.description)}",
        ]
        if f.current_info:
            block.append(f"  reported current state: {sanitize_user_input(f.current_info)}")
        blocks.append("\n".join(block))
    return f"""Fact-check these course findings using search.

<user_content>
Industry: {job.sector}
Location: {job.location}
Findings:
{chr(10).join(blocks)}
</user_content>

For each finding return:
- findingId: the id above
- title: the finding title
- status: "verified" if search confirms the finding as stated, "updated" if it is true but the details have changed since, "unverified" if search does not support it
- originalDescription: the claim as given
- updatedInfo: the current correct information when status is "updated"
- sourceUrl and sourceTitle: the best supporting source from search results
- confidence: "high", "medium", or "low"
- verificationNote: one sentence on what the search showed

Also list the searchQueries you ran. Never invent URLs."""


async def handle_verify(job: SlideJob) -> dict:
    result = await job.generate(Verification, with_prompt([], build_verify_prompt(job)), search=True)
    verification = parse_or_none(result.text, Verification, "verify") or Verification()
    payload = verification.dump()
    payload["verifiedAt"] = now_iso()
    return respond(payload, result.usage)
